"""
报废单
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, DECIMAL, JSON
from sqlalchemy.orm import relationship

from erp.db.base import Base


class Scrap(Base):
    __tablename__ = "inventories_scraps"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), index=True, comment="单号，如 SP/00001")
    origin = Column(String(100))
    state = Column(String(10), nullable=False, default="draft", index=True)
    qty = Column(DECIMAL(15, 4), nullable=False, default=Decimal("0"))
    should_replenish = Column(Integer, default=0)
    tags = Column(JSON, nullable=False, default=list, comment="标签名列表")
    closed_at = Column(DateTime)

    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    uom_id = Column(Integer, ForeignKey("uoms.id"), nullable=False)
    lot_id = Column(Integer, ForeignKey("inventories_lots.id"))
    partner_id = Column(Integer, ForeignKey("partners.id"))
    operation_id = Column(Integer, ForeignKey("inventories_operations.id"))
    source_location_id = Column(Integer, ForeignKey("inventories_locations.id"), nullable=False)
    destination_location_id = Column(Integer, ForeignKey("inventories_locations.id"), nullable=False)
    company_id = Column(Integer, ForeignKey("companies.id"))
    creator_id = Column(Integer, ForeignKey("users.id"))

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    product = relationship("Product", foreign_keys=[product_id], lazy="joined")
    uom = relationship("UOM", foreign_keys=[uom_id], lazy="joined")
    lot = relationship("Lot", foreign_keys=[lot_id])
    partner = relationship("Partner", foreign_keys=[partner_id])
    operation = relationship("Operation", foreign_keys=[operation_id])
    source_location = relationship("Location", foreign_keys=[source_location_id])
    destination_location = relationship("Location", foreign_keys=[destination_location_id])
    company = relationship("Company", foreign_keys=[company_id])
    creator = relationship("User", foreign_keys=[creator_id])

    def __repr__(self):
        return f"<Scrap {self.name}: {self.state}>"
