from .warehouse import Warehouse, Location
from .operation_type import OperationType
from .operation import Operation, Move, MoveLine
from .quantity import ProductQuantity
from .scrap import Scrap

__all__ = [
    "Warehouse", "Location", "OperationType",
    "Operation", "Move", "MoveLine",
    "ProductQuantity", "Scrap",
]
