"""
库存作业（调拨单）、库存移动、移动明细

作业(Operation) 1 - N 移动(Move) 1 - N 明细(MoveLine)
- Move 记录需求数量（product_uom_qty）和已处理数量（quantity）
- MoveLine 记录从哪个 quant（库位+批次）实际取货/放货
作业状态由其下移动状态推导，见 services/inventory.py
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text, DECIMAL
from sqlalchemy.orm import relationship

from erp.db.base import Base


class Operation(Base):
    __tablename__ = "inventories_operations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), index=True, comment="单号，如 WH/IN/00001")
    origin = Column(String(100), comment="来源单据")
    move_type = Column(String(10), nullable=False, default="direct", comment="direct/one")
    state = Column(String(20), nullable=False, default="draft", index=True)
    is_favorite = Column(Boolean, default=False)
    description = Column(Text)
    has_deadline_issue = Column(Boolean, default=False)
    is_printed = Column(Boolean, default=False)
    is_locked = Column(Boolean, default=False)

    scheduled_at = Column(DateTime)
    deadline = Column(DateTime)
    closed_at = Column(DateTime)

    operation_type_id = Column(Integer, ForeignKey("inventories_operation_types.id"), nullable=False, index=True)
    source_location_id = Column(Integer, ForeignKey("inventories_locations.id"), nullable=False)
    destination_location_id = Column(Integer, ForeignKey("inventories_locations.id"), nullable=False)
    back_order_id = Column(Integer, ForeignKey("inventories_operations.id"), comment="欠单来源")
    return_id = Column(Integer, ForeignKey("inventories_operations.id"), comment="退货来源")
    purchase_order_id = Column(Integer, ForeignKey("purchases_orders.id"), index=True)
    partner_id = Column(Integer, ForeignKey("partners.id"))
    user_id = Column(Integer, ForeignKey("users.id"), comment="负责人")
    owner_id = Column(Integer, ForeignKey("partners.id"))
    company_id = Column(Integer, ForeignKey("companies.id"))
    creator_id = Column(Integer, ForeignKey("users.id"))

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    operation_type = relationship("OperationType", foreign_keys=[operation_type_id], lazy="joined")
    source_location = relationship("Location", foreign_keys=[source_location_id], lazy="joined")
    destination_location = relationship("Location", foreign_keys=[destination_location_id], lazy="joined")
    back_order_of = relationship("Operation", remote_side=[id], foreign_keys=[back_order_id])
    return_of = relationship("Operation", remote_side=[id], foreign_keys=[return_id])
    purchase_order = relationship("PurchaseOrder", foreign_keys=[purchase_order_id])
    partner = relationship("Partner", foreign_keys=[partner_id])
    user = relationship("User", foreign_keys=[user_id])
    owner = relationship("Partner", foreign_keys=[owner_id])
    company = relationship("Company", foreign_keys=[company_id])
    creator = relationship("User", foreign_keys=[creator_id])

    moves = relationship(
        "Move",
        back_populates="operation",
        lazy="selectin",
        order_by="Move.id",
        cascade="all, delete-orphan",
    )
    move_lines = relationship(
        "MoveLine",
        lazy="selectin",
        order_by="MoveLine.id",
        viewonly=True,
    )

    def __repr__(self):
        return f"<Operation {self.name}: {self.state}>"


class Move(Base):
    __tablename__ = "inventories_moves"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), comment="商品名快照")
    state = Column(String(30), nullable=False, default="draft", index=True)
    origin = Column(String(100))
    procure_method = Column(String(20), default="make_to_stock")
    reference = Column(String(50), comment="所属作业单号")
    description_picking = Column(Text)

    # product_uom_qty：按移动单位的需求数量；product_qty：换算为商品单位
    product_uom_qty = Column(DECIMAL(15, 4), nullable=False, default=Decimal("0"))
    product_qty = Column(DECIMAL(15, 4), nullable=False, default=Decimal("0"))
    # 已拣/已完成数量（移动单位）
    quantity = Column(DECIMAL(15, 4), nullable=False, default=Decimal("0"))
    is_picked = Column(Boolean, nullable=False, default=False)
    is_scraped = Column(Boolean, nullable=False, default=False)
    is_inventory = Column(Boolean, nullable=False, default=False)
    is_refund = Column(Boolean, nullable=False, default=False)

    scheduled_at = Column(DateTime)
    deadline = Column(DateTime)
    reservation_date = Column(DateTime)

    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    uom_id = Column(Integer, ForeignKey("uoms.id"), nullable=False)
    source_location_id = Column(Integer, ForeignKey("inventories_locations.id"), nullable=False)
    destination_location_id = Column(Integer, ForeignKey("inventories_locations.id"), nullable=False)
    final_location_id = Column(Integer, ForeignKey("inventories_locations.id"))
    operation_id = Column(Integer, ForeignKey("inventories_operations.id", ondelete="CASCADE"), index=True)
    operation_type_id = Column(Integer, ForeignKey("inventories_operation_types.id"))
    warehouse_id = Column(Integer, ForeignKey("inventories_warehouses.id"))
    scrap_id = Column(Integer, ForeignKey("inventories_scraps.id"), index=True)
    origin_returned_move_id = Column(Integer, ForeignKey("inventories_moves.id"), index=True)
    purchase_order_line_id = Column(Integer, ForeignKey("purchases_order_lines.id"), index=True)
    partner_id = Column(Integer, ForeignKey("partners.id"))
    company_id = Column(Integer, ForeignKey("companies.id"))
    creator_id = Column(Integer, ForeignKey("users.id"))

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    product = relationship("Product", foreign_keys=[product_id], lazy="joined")
    uom = relationship("UOM", foreign_keys=[uom_id], lazy="joined")
    source_location = relationship("Location", foreign_keys=[source_location_id], lazy="joined")
    destination_location = relationship("Location", foreign_keys=[destination_location_id], lazy="joined")
    final_location = relationship("Location", foreign_keys=[final_location_id])
    operation = relationship("Operation", back_populates="moves", foreign_keys=[operation_id])
    operation_type = relationship("OperationType", foreign_keys=[operation_type_id])
    warehouse = relationship("Warehouse", foreign_keys=[warehouse_id])
    scrap = relationship("Scrap", foreign_keys=[scrap_id])
    origin_returned_move = relationship("Move", remote_side=[id], foreign_keys=[origin_returned_move_id])
    purchase_order_line = relationship("PurchaseOrderLine", foreign_keys=[purchase_order_line_id])
    company = relationship("Company", foreign_keys=[company_id])
    creator = relationship("User", foreign_keys=[creator_id])

    lines = relationship(
        "MoveLine",
        back_populates="move",
        lazy="selectin",
        order_by="MoveLine.id",
        cascade="all, delete-orphan",
    )

    # 作为关联被加载时需一并加载的关系（reserved_quantity 依赖 lines）
    include_loads = ("lines",)

    def __repr__(self):
        return f"<Move {self.id}: {self.product_uom_qty} {self.state}>"

    @property
    def reserved_quantity(self) -> Decimal:
        """已预留数量（移动单位）= 未完成明细之和"""
        return sum((Decimal(str(line.qty or 0)) for line in self.lines), Decimal("0"))


class MoveLine(Base):
    __tablename__ = "inventories_move_lines"

    id = Column(Integer, primary_key=True, index=True)
    lot_name = Column(String(100))
    state = Column(String(30), nullable=False, default="draft", index=True)
    reference = Column(String(50), index=True)
    picking_description = Column(Text)

    # qty：移动单位数量；uom_qty：商品单位数量
    qty = Column(DECIMAL(15, 4), nullable=False, default=Decimal("0"))
    uom_qty = Column(DECIMAL(15, 4), nullable=False, default=Decimal("0"))
    is_picked = Column(Boolean, nullable=False, default=False)
    scheduled_at = Column(DateTime)

    move_id = Column(Integer, ForeignKey("inventories_moves.id", ondelete="CASCADE"), index=True)
    operation_id = Column(Integer, ForeignKey("inventories_operations.id", ondelete="CASCADE"), index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    uom_id = Column(Integer, ForeignKey("uoms.id"), nullable=False)
    lot_id = Column(Integer, ForeignKey("inventories_lots.id"), index=True)
    source_location_id = Column(Integer, ForeignKey("inventories_locations.id"), nullable=False)
    destination_location_id = Column(Integer, ForeignKey("inventories_locations.id"), nullable=False)
    company_id = Column(Integer, ForeignKey("companies.id"))
    creator_id = Column(Integer, ForeignKey("users.id"))

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    move = relationship("Move", back_populates="lines", foreign_keys=[move_id])
    operation = relationship("Operation", foreign_keys=[operation_id])
    product = relationship("Product", foreign_keys=[product_id])
    uom = relationship("UOM", foreign_keys=[uom_id])
    lot = relationship("Lot", foreign_keys=[lot_id])
    source_location = relationship("Location", foreign_keys=[source_location_id])
    destination_location = relationship("Location", foreign_keys=[destination_location_id])
    company = relationship("Company", foreign_keys=[company_id])
    creator = relationship("User", foreign_keys=[creator_id])

    def __repr__(self):
        return f"<MoveLine {self.id}: {self.qty}>"
