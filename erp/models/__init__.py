"""
数据模型
导入全部模型，保证 Base.metadata 包含所有表
"""

from .support import Currency, Company, Partner, UOMCategory, UOM
from .security import User, Role, user_roles
from .product import Product, Lot
from .inventory import (
    Warehouse, Location, OperationType,
    Operation, Move, MoveLine,
    ProductQuantity, Scrap,
)
from .purchase import Requisition, RequisitionLine, PurchaseOrder, PurchaseOrderLine

__all__ = [
    "Currency", "Company", "Partner", "UOMCategory", "UOM",
    "User", "Role", "user_roles",
    "Product", "Lot",
    "Warehouse", "Location", "OperationType",
    "Operation", "Move", "MoveLine",
    "ProductQuantity", "Scrap",
    "Requisition", "RequisitionLine", "PurchaseOrder", "PurchaseOrderLine",
]
