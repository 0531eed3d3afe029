"""
商品与批次
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text, DECIMAL, UniqueConstraint
from sqlalchemy.orm import relationship

from erp.db.base import Base


class Product(Base):
    """商品

    - tracking: none/lot/serial，决定盘点时是否必须指定批次
    - is_configurable: 可配置商品（模板），不可直接出入库
    - on_hand_quantity 为内部库位的 quant 汇总，由服务层计算
    """
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False, index=True)
    reference = Column(String(100), index=True, comment="内部编码")
    barcode = Column(String(100), comment="条码")
    type = Column(String(20), nullable=False, default="goods", comment="goods/service")
    tracking = Column(String(20), nullable=False, default="none", comment="none/lot/serial")
    is_configurable = Column(Boolean, nullable=False, default=False)
    is_storable = Column(Boolean, nullable=False, default=True)

    uom_id = Column(Integer, ForeignKey("uoms.id"), nullable=False)
    uom_po_id = Column(Integer, ForeignKey("uoms.id"), comment="采购单位")
    company_id = Column(Integer, ForeignKey("companies.id"))
    creator_id = Column(Integer, ForeignKey("users.id"))

    price = Column(DECIMAL(15, 4), nullable=False, default=Decimal("0"))
    cost = Column(DECIMAL(15, 4), nullable=False, default=Decimal("0"))
    description = Column(Text)

    deleted_at = Column(DateTime, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    uom = relationship("UOM", foreign_keys=[uom_id], lazy="joined")
    uom_po = relationship("UOM", foreign_keys=[uom_po_id])
    company = relationship("Company", foreign_keys=[company_id])
    creator = relationship("User", foreign_keys=[creator_id])

    def __repr__(self):
        return f"<Product {self.name}>"


class Lot(Base):
    """批次/序列号"""
    __tablename__ = "inventories_lots"
    __table_args__ = (
        UniqueConstraint("product_id", "name", name="uq_lot_product_name"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    reference = Column(String(100))
    description = Column(Text)
    expiration_date = Column(DateTime)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    uom_id = Column(Integer, ForeignKey("uoms.id"))
    company_id = Column(Integer, ForeignKey("companies.id"))
    creator_id = Column(Integer, ForeignKey("users.id"))
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    product = relationship("Product", foreign_keys=[product_id])
    uom = relationship("UOM", foreign_keys=[uom_id])
    company = relationship("Company", foreign_keys=[company_id])
    creator = relationship("User", foreign_keys=[creator_id])

    def __repr__(self):
        return f"<Lot {self.name}>"
