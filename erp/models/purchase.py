"""
采购模块 - 采购协议（一揽子订单/采购模板）与采购订单
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text, DECIMAL
from sqlalchemy.orm import relationship

from erp.db.base import Base


class Requisition(Base):
    """采购协议"""
    __tablename__ = "purchases_requisitions"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), index=True, comment="单号，如 PA/00001")
    type = Column(String(30), nullable=False, comment="blanket_order/purchase_template")
    state = Column(String(20), nullable=False, default="draft", index=True)
    reference = Column(String(100))
    starts_at = Column(DateTime)
    ends_at = Column(DateTime)
    description = Column(Text)

    partner_id = Column(Integer, ForeignKey("partners.id"), nullable=False)
    currency_id = Column(Integer, ForeignKey("currencies.id"), nullable=False)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"))
    creator_id = Column(Integer, ForeignKey("users.id"))

    deleted_at = Column(DateTime, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    partner = relationship("Partner", foreign_keys=[partner_id])
    currency = relationship("Currency", foreign_keys=[currency_id])
    company = relationship("Company", foreign_keys=[company_id])
    user = relationship("User", foreign_keys=[user_id])
    creator = relationship("User", foreign_keys=[creator_id])
    lines = relationship(
        "RequisitionLine",
        back_populates="requisition",
        lazy="selectin",
        order_by="RequisitionLine.id",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Requisition {self.name}: {self.state}>"


class RequisitionLine(Base):
    __tablename__ = "purchases_requisition_lines"

    id = Column(Integer, primary_key=True, index=True)
    qty = Column(DECIMAL(15, 4), nullable=False, default=Decimal("0"))
    price_unit = Column(DECIMAL(15, 4), nullable=False, default=Decimal("0"))

    requisition_id = Column(
        Integer, ForeignKey("purchases_requisitions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    uom_id = Column(Integer, ForeignKey("uoms.id"))
    company_id = Column(Integer, ForeignKey("companies.id"))
    creator_id = Column(Integer, ForeignKey("users.id"))

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    requisition = relationship("Requisition", back_populates="lines", foreign_keys=[requisition_id])
    product = relationship("Product", foreign_keys=[product_id])
    uom = relationship("UOM", foreign_keys=[uom_id])
    company = relationship("Company", foreign_keys=[company_id])
    creator = relationship("User", foreign_keys=[creator_id])


class PurchaseOrder(Base):
    """采购订单

    状态流转：draft -> sent -> purchase -> done
                 \\-> canceled -> draft
    """
    __tablename__ = "purchases_orders"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), index=True, comment="单号，如 P00001")
    state = Column(String(20), nullable=False, default="draft", index=True)
    origin = Column(String(100))
    partner_reference = Column(String(100), comment="供应商单号")
    receipt_status = Column(String(10), nullable=False, default="no", comment="no/pending/partial/full")
    description = Column(Text)

    untaxed_amount = Column(DECIMAL(15, 4), nullable=False, default=Decimal("0"))
    tax_amount = Column(DECIMAL(15, 4), nullable=False, default=Decimal("0"))
    total_amount = Column(DECIMAL(15, 4), nullable=False, default=Decimal("0"))

    ordered_at = Column(DateTime, default=datetime.utcnow)
    planned_at = Column(DateTime)
    approved_at = Column(DateTime)
    mail_reminder_confirmed = Column(Boolean, nullable=False, default=False, comment="供应商已确认到货日期")

    partner_id = Column(Integer, ForeignKey("partners.id"), nullable=False)
    requisition_id = Column(Integer, ForeignKey("purchases_requisitions.id"))
    currency_id = Column(Integer, ForeignKey("currencies.id"))
    company_id = Column(Integer, ForeignKey("companies.id"))
    user_id = Column(Integer, ForeignKey("users.id"))
    creator_id = Column(Integer, ForeignKey("users.id"))

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    partner = relationship("Partner", foreign_keys=[partner_id])
    requisition = relationship("Requisition", foreign_keys=[requisition_id])
    currency = relationship("Currency", foreign_keys=[currency_id])
    company = relationship("Company", foreign_keys=[company_id])
    user = relationship("User", foreign_keys=[user_id])
    creator = relationship("User", foreign_keys=[creator_id])
    lines = relationship(
        "PurchaseOrderLine",
        back_populates="order",
        lazy="selectin",
        order_by="PurchaseOrderLine.id",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<PurchaseOrder {self.name}: {self.state}>"

    def compute_receipt_status(self) -> str:
        """收货状态：全部收齐 full，部分 partial，已确认未收 pending"""
        if self.state not in ("purchase", "done") or not self.lines:
            return "no"
        received = [Decimal(str(line.qty_received or 0)) for line in self.lines]
        ordered = [Decimal(str(line.product_qty or 0)) for line in self.lines]
        if all(r >= o for r, o in zip(received, ordered)):
            return "full"
        if any(r > 0 for r in received):
            return "partial"
        return "pending"


class PurchaseOrderLine(Base):
    __tablename__ = "purchases_order_lines"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200))
    product_qty = Column(DECIMAL(15, 4), nullable=False, default=Decimal("0"))
    price_unit = Column(DECIMAL(15, 4), nullable=False, default=Decimal("0"))
    price_subtotal = Column(DECIMAL(15, 4), nullable=False, default=Decimal("0"))
    qty_received = Column(DECIMAL(15, 4), nullable=False, default=Decimal("0"))
    planned_at = Column(DateTime)

    order_id = Column(Integer, ForeignKey("purchases_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    uom_id = Column(Integer, ForeignKey("uoms.id"), nullable=False)
    company_id = Column(Integer, ForeignKey("companies.id"))
    creator_id = Column(Integer, ForeignKey("users.id"))

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    order = relationship("PurchaseOrder", back_populates="lines", foreign_keys=[order_id])
    product = relationship("Product", foreign_keys=[product_id], lazy="joined")
    uom = relationship("UOM", foreign_keys=[uom_id], lazy="joined")
    company = relationship("Company", foreign_keys=[company_id])
    creator = relationship("User", foreign_keys=[creator_id])
