"""
仓库与库位
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from erp.db.base import Base


class Warehouse(Base):
    __tablename__ = "inventories_warehouses"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    code = Column(String(10), nullable=False, unique=True, comment="简称，用作单号前缀，如 WH")
    sort = Column(Integer, default=0)
    company_id = Column(Integer, ForeignKey("companies.id"))
    partner_address_id = Column(Integer, ForeignKey("partners.id"))

    # 仓库根库位（视图）与库存库位
    view_location_id = Column(Integer, ForeignKey("inventories_locations.id", use_alter=True))
    lot_stock_location_id = Column(Integer, ForeignKey("inventories_locations.id", use_alter=True))

    creator_id = Column(Integer, ForeignKey("users.id"))
    deleted_at = Column(DateTime, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    company = relationship("Company", foreign_keys=[company_id])
    partner_address = relationship("Partner", foreign_keys=[partner_address_id])
    view_location = relationship("Location", foreign_keys=[view_location_id], post_update=True)
    lot_stock_location = relationship("Location", foreign_keys=[lot_stock_location_id], post_update=True)
    creator = relationship("User", foreign_keys=[creator_id])

    def __repr__(self):
        return f"<Warehouse {self.code}>"


class Location(Base):
    """库位

    type 决定库存语义：internal/transit 持有库存并参与预留，
    supplier/customer/inventory/production 为虚拟库位
    """
    __tablename__ = "inventories_locations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    full_name = Column(String(300), index=True, comment="含上级路径，如 WH/Stock")
    description = Column(String(300))
    type = Column(String(20), nullable=False, default="internal")
    parent_id = Column(Integer, ForeignKey("inventories_locations.id"))
    warehouse_id = Column(Integer, ForeignKey("inventories_warehouses.id"))
    company_id = Column(Integer, ForeignKey("companies.id"))
    is_scrap = Column(Boolean, nullable=False, default=False)
    is_replenish = Column(Boolean, nullable=False, default=False)
    barcode = Column(String(100))
    position = Column(Integer, default=0)

    creator_id = Column(Integer, ForeignKey("users.id"))
    deleted_at = Column(DateTime, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    parent = relationship("Location", remote_side=[id], foreign_keys=[parent_id])
    warehouse = relationship("Warehouse", foreign_keys=[warehouse_id])
    company = relationship("Company", foreign_keys=[company_id])
    creator = relationship("User", foreign_keys=[creator_id])

    def __repr__(self):
        return f"<Location {self.full_name or self.name}>"
