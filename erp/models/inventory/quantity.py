"""
库存数量（quant）- 某商品在某库位某批次上的现存量

改造自库存表：
- 以 (location_id, product_id, lot_id) 定位一条记录
- reserved_quantity 由作业预留占用
- counted_quantity / inventory_diff_quantity 用于盘点调整
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, Boolean, DateTime, ForeignKey, DECIMAL, Index
from sqlalchemy.orm import relationship

from erp.db.base import Base


class ProductQuantity(Base):
    __tablename__ = "inventories_product_quantities"

    # SQLite 中 lot_id 为 NULL 时唯一约束不生效，重复检查在服务层完成
    __table_args__ = (
        Index("ix_quant_location_product_lot", "location_id", "product_id", "lot_id"),
    )

    id = Column(Integer, primary_key=True, index=True)

    quantity = Column(DECIMAL(15, 4), nullable=False, default=Decimal("0"), comment="现存量（商品单位）")
    reserved_quantity = Column(DECIMAL(15, 4), nullable=False, default=Decimal("0"), comment="已预留")
    counted_quantity = Column(DECIMAL(15, 4), nullable=False, default=Decimal("0"), comment="盘点数")
    inventory_diff_quantity = Column(DECIMAL(15, 4), nullable=False, default=Decimal("0"), comment="盘点差异")
    inventory_quantity_set = Column(Boolean, nullable=False, default=False, comment="是否待应用盘点")

    incoming_at = Column(DateTime, default=datetime.utcnow, comment="入库时间，预留按此先进先出")
    scheduled_at = Column(DateTime, comment="计划盘点日期")

    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    location_id = Column(Integer, ForeignKey("inventories_locations.id"), nullable=False, index=True)
    lot_id = Column(Integer, ForeignKey("inventories_lots.id"), index=True)
    partner_id = Column(Integer, ForeignKey("partners.id"))
    user_id = Column(Integer, ForeignKey("users.id"))
    company_id = Column(Integer, ForeignKey("companies.id"))
    creator_id = Column(Integer, ForeignKey("users.id"))

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    product = relationship("Product", foreign_keys=[product_id], lazy="joined")
    location = relationship("Location", foreign_keys=[location_id], lazy="joined")
    lot = relationship("Lot", foreign_keys=[lot_id])
    partner = relationship("Partner", foreign_keys=[partner_id])
    user = relationship("User", foreign_keys=[user_id])
    company = relationship("Company", foreign_keys=[company_id])
    creator = relationship("User", foreign_keys=[creator_id])

    def __repr__(self):
        return f"<ProductQuantity {self.location_id}:{self.product_id} = {self.quantity}>"

    @property
    def available_quantity(self) -> Decimal:
        """可用数量 = 现存量 - 预留数量"""
        return (self.quantity or Decimal("0")) - (self.reserved_quantity or Decimal("0"))

    @property
    def difference_quantity(self) -> Decimal:
        """盘点数与现存量之差，未标记盘点时为 0"""
        if not self.inventory_quantity_set:
            return Decimal("0")
        return (self.counted_quantity or Decimal("0")) - (self.quantity or Decimal("0"))
