"""
作业类型 - 收货/发货/内部调拨/直运
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from erp.db.base import Base


class OperationType(Base):
    __tablename__ = "inventories_operation_types"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    type = Column(String(20), nullable=False, comment="incoming/outgoing/internal/dropship")
    sequence_code = Column(String(10), nullable=False, comment="单号段，如 IN/OUT/INT/DS")
    sort = Column(Integer, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    # 未完成数量如何处理：ask/always 生成欠单，never 直接丢弃
    create_backorder = Column(String(10), nullable=False, default="ask")
    reservation_method = Column(String(20), nullable=False, default="at_confirm")

    warehouse_id = Column(Integer, ForeignKey("inventories_warehouses.id"))
    source_location_id = Column(Integer, ForeignKey("inventories_locations.id"))
    destination_location_id = Column(Integer, ForeignKey("inventories_locations.id"))
    return_operation_type_id = Column(Integer, ForeignKey("inventories_operation_types.id"))
    company_id = Column(Integer, ForeignKey("companies.id"))
    creator_id = Column(Integer, ForeignKey("users.id"))

    deleted_at = Column(DateTime, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    warehouse = relationship("Warehouse", foreign_keys=[warehouse_id], lazy="joined")
    source_location = relationship("Location", foreign_keys=[source_location_id])
    destination_location = relationship("Location", foreign_keys=[destination_location_id])
    return_operation_type = relationship("OperationType", remote_side=[id], foreign_keys=[return_operation_type_id])
    company = relationship("Company", foreign_keys=[company_id])
    creator = relationship("User", foreign_keys=[creator_id])

    def __repr__(self):
        return f"<OperationType {self.sequence_code}: {self.type}>"
