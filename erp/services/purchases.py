"""
采购服务
- 采购协议：状态流转、明细同步
- 采购订单：金额汇总、明细同步、确认时生成收货作业、取消时取消收货
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from erp.core.exceptions import ActionNotAllowed, FieldValidationError
from erp.models import (
    Location, Operation, OperationType, Move, Product, UOM, User, Warehouse,
    Requisition, RequisitionLine, PurchaseOrder, PurchaseOrderLine,
)
from erp.models.enums import (
    LocationType, MoveState, OperationState, OperationTypeEnum,
    PurchaseOrderState, ReceiptStatus, RequisitionState,
)
from erp.schemas.purchase import PurchaseOrderLineInput, RequisitionLineInput
from erp.services.inventory import cancel_operation, load_operation, todo_operation, to_decimal
from erp.services.sequence import generate_operation_name

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


async def _get_product(db: AsyncSession, product_id: int, field: str) -> Product:
    product = await db.get(Product, product_id)
    if product is None or product.deleted_at is not None:
        raise FieldValidationError.single(field, f"The selected {field.split('.')[-1]} is invalid.")
    return product


# ===== 采购协议 =====

async def sync_requisition_lines(
    db: AsyncSession,
    requisition: Requisition,
    lines: List[RequisitionLineInput],
    user: User,
) -> None:
    """按 id 更新已有明细、新增无 id 明细、删除未出现的明细"""
    existing = {line.id: line for line in requisition.lines}
    retained = set()

    for index, payload in enumerate(lines):
        product = await _get_product(db, payload.product_id, f"lines.{index}.product_id")
        values = dict(
            product_id=product.id,
            qty=to_decimal(payload.qty),
            price_unit=to_decimal(payload.price_unit),
            uom_id=payload.uom_id or product.uom_id,
            company_id=requisition.company_id,
        )
        line = existing.get(payload.id) if payload.id else None
        if line is not None:
            for key, value in values.items():
                setattr(line, key, value)
            retained.add(line.id)
        else:
            requisition.lines.append(RequisitionLine(creator_id=user.id, **values))

    for line_id, line in existing.items():
        if line_id not in retained:
            requisition.lines.remove(line)


def confirm_requisition(requisition: Requisition) -> Requisition:
    if requisition.state != RequisitionState.DRAFT.value:
        raise ActionNotAllowed("Only draft purchase agreements can be confirmed.")
    requisition.state = RequisitionState.CONFIRMED.value
    logger.info(f"✅ 采购协议 {requisition.name} 已确认")
    return requisition


def close_requisition(requisition: Requisition) -> Requisition:
    if requisition.state != RequisitionState.CONFIRMED.value:
        raise ActionNotAllowed("Only confirmed purchase agreements can be closed.")
    requisition.state = RequisitionState.CLOSED.value
    logger.info(f"🔒 采购协议 {requisition.name} 已关闭")
    return requisition


def cancel_requisition(requisition: Requisition) -> Requisition:
    if requisition.state not in (RequisitionState.DRAFT.value, RequisitionState.CONFIRMED.value):
        raise ActionNotAllowed("Only draft or confirmed purchase agreements can be canceled.")
    requisition.state = RequisitionState.CANCELED.value
    logger.info(f"❌ 采购协议 {requisition.name} 已取消")
    return requisition


# ===== 采购订单 =====

async def sync_order_lines(
    db: AsyncSession,
    order: PurchaseOrder,
    lines: List[PurchaseOrderLineInput],
    user: User,
) -> None:
    """同步订单行，规则同协议明细"""
    existing = {line.id: line for line in order.lines}
    retained = set()

    for index, payload in enumerate(lines):
        product = await _get_product(db, payload.product_id, f"lines.{index}.product_id")
        if product.is_configurable:
            raise FieldValidationError.single(
                f"lines.{index}.product_id",
                f"The product '{product.name}' is configurable and cannot be purchased. "
                "Please select a product variant instead.",
            )
        uom_id = payload.uom_id or product.uom_po_id or product.uom_id
        qty = to_decimal(payload.product_qty)
        price = to_decimal(payload.price_unit)
        values = dict(
            name=product.name,
            product_id=product.id,
            uom_id=uom_id,
            product_qty=qty,
            price_unit=price,
            price_subtotal=qty * price,
            planned_at=payload.planned_at or order.planned_at,
            company_id=order.company_id,
        )
        line = existing.get(payload.id) if payload.id else None
        if line is not None:
            for key, value in values.items():
                setattr(line, key, value)
            retained.add(line.id)
        else:
            order.lines.append(PurchaseOrderLine(creator_id=user.id, qty_received=ZERO, **values))

    for line_id, line in existing.items():
        if line_id not in retained:
            order.lines.remove(line)

    compute_order_amounts(order)


def compute_order_amounts(order: PurchaseOrder) -> None:
    untaxed = sum((to_decimal(line.price_subtotal) for line in order.lines), ZERO)
    order.untaxed_amount = untaxed
    order.tax_amount = ZERO
    order.total_amount = untaxed


def ensure_order_editable(order: PurchaseOrder, action: str) -> None:
    if order.state not in (PurchaseOrderState.DRAFT.value, PurchaseOrderState.SENT.value):
        raise ActionNotAllowed(f"Only draft or sent purchase orders can be {action}.")


def send_order(order: PurchaseOrder) -> PurchaseOrder:
    if order.state != PurchaseOrderState.DRAFT.value:
        raise ActionNotAllowed("Only draft purchase orders can be sent.")
    order.state = PurchaseOrderState.SENT.value
    logger.info(f"📨 采购订单 {order.name} 已发送")
    return order


async def order_receipts(db: AsyncSession, order_id: int) -> List[Operation]:
    result = await db.execute(
        select(Operation)
        .where(Operation.purchase_order_id == order_id)
        .order_by(Operation.id.asc())
    )
    return list(result.unique().scalars().all())


async def _receipt_route(db: AsyncSession):
    """收货作业类型（第一个仓库）、供应商库位、目标库位"""
    result = await db.execute(
        select(OperationType)
        .join(Warehouse, OperationType.warehouse_id == Warehouse.id)
        .where(OperationType.type == OperationTypeEnum.INCOMING.value)
        .where(OperationType.deleted_at.is_(None))
        .where(Warehouse.deleted_at.is_(None))
        .order_by(Warehouse.id.asc(), OperationType.id.asc())
        .limit(1)
    )
    operation_type = result.unique().scalar_one_or_none()
    if operation_type is None:
        return None, None, None

    result = await db.execute(
        select(Location.id)
        .where(Location.type == LocationType.SUPPLIER.value)
        .where(Location.deleted_at.is_(None))
        .order_by(Location.id.asc())
        .limit(1)
    )
    source_id = result.scalar() or operation_type.source_location_id
    destination_id = operation_type.warehouse.lot_stock_location_id or operation_type.destination_location_id
    return operation_type, source_id, destination_id


async def create_receipt(db: AsyncSession, order: PurchaseOrder, user: User) -> Optional[Operation]:
    """为已确认订单的可库存商品生成收货作业并标记待办"""
    storable: List[PurchaseOrderLine] = []
    for line in order.lines:
        product = await db.get(Product, line.product_id)
        if product.is_storable and product.type == "goods":
            storable.append(line)
    if not storable:
        return None

    operation_type, source_id, destination_id = await _receipt_route(db)
    if operation_type is None or not source_id or not destination_id:
        logger.warning(f"⚠️ 未配置收货作业类型，采购订单 {order.name} 不生成收货单")
        return None

    name = await generate_operation_name(db, operation_type)
    receipt = Operation(
        name=name,
        origin=order.name,
        move_type="direct",
        state=OperationState.DRAFT.value,
        scheduled_at=order.planned_at or datetime.utcnow(),
        operation_type_id=operation_type.id,
        source_location_id=source_id,
        destination_location_id=destination_id,
        purchase_order_id=order.id,
        partner_id=order.partner_id,
        user_id=order.user_id or user.id,
        company_id=order.company_id,
        creator_id=user.id,
        moves=[],
    )
    db.add(receipt)
    await db.flush()

    for line in storable:
        product = await db.get(Product, line.product_id)
        line_uom = await db.get(UOM, line.uom_id)
        remaining = to_decimal(line.product_qty) - to_decimal(line.qty_received)
        if remaining <= 0:
            continue
        receipt.moves.append(Move(
            name=product.name,
            state=MoveState.DRAFT.value,
            origin=order.name,
            procure_method="make_to_stock",
            reference=name,
            product_uom_qty=remaining,
            product_qty=line_uom.compute_quantity(remaining, product.uom),
            quantity=ZERO,
            is_picked=False,
            scheduled_at=line.planned_at or receipt.scheduled_at,
            product_id=product.id,
            uom_id=line_uom.id,
            source_location_id=source_id,
            destination_location_id=destination_id,
            operation_type_id=operation_type.id,
            warehouse_id=operation_type.warehouse_id,
            purchase_order_line_id=line.id,
            partner_id=order.partner_id,
            company_id=order.company_id,
            creator_id=user.id,
            lines=[],
        ))

    if not receipt.moves:
        await db.delete(receipt)
        return None

    await db.flush()
    await todo_operation(db, receipt)
    logger.info(f"📥 采购订单 {order.name} 生成收货单 {receipt.name}")
    return receipt


async def confirm_order(db: AsyncSession, order: PurchaseOrder, user: User) -> PurchaseOrder:
    if order.state not in (PurchaseOrderState.DRAFT.value, PurchaseOrderState.SENT.value):
        raise ActionNotAllowed("Only draft or sent purchase orders can be confirmed.")

    order.state = PurchaseOrderState.PURCHASE.value
    order.approved_at = datetime.utcnow()
    await create_receipt(db, order, user)
    order.receipt_status = order.compute_receipt_status()
    logger.info(f"✅ 采购订单 {order.name} 已确认")
    return order


async def cancel_order(db: AsyncSession, order: PurchaseOrder) -> PurchaseOrder:
    if order.state in (PurchaseOrderState.DONE.value, PurchaseOrderState.CANCELED.value):
        raise ActionNotAllowed("Only non-locked and non-canceled purchase orders can be canceled.")

    receipts = await order_receipts(db, order.id)
    if any(r.state == OperationState.DONE.value for r in receipts):
        raise ActionNotAllowed("Cannot cancel a purchase order with done receipts.")

    for receipt in receipts:
        if receipt.state != OperationState.CANCELED.value:
            receipt = await load_operation(db, receipt.id)
            await cancel_operation(db, receipt)

    order.state = PurchaseOrderState.CANCELED.value
    order.receipt_status = ReceiptStatus.NO.value
    logger.info(f"❌ 采购订单 {order.name} 已取消")
    return order


def reset_order_to_draft(order: PurchaseOrder) -> PurchaseOrder:
    if order.state != PurchaseOrderState.CANCELED.value:
        raise ActionNotAllowed("Only canceled purchase orders can be set to draft.")
    order.state = PurchaseOrderState.DRAFT.value
    order.approved_at = None
    return order


def toggle_order_lock(order: PurchaseOrder) -> PurchaseOrder:
    if order.state == PurchaseOrderState.PURCHASE.value:
        order.state = PurchaseOrderState.DONE.value
    elif order.state == PurchaseOrderState.DONE.value:
        order.state = PurchaseOrderState.PURCHASE.value
    else:
        raise ActionNotAllowed("Only purchase or done orders can toggle lock state.")
    return order


def confirm_receipt_date(order: PurchaseOrder) -> PurchaseOrder:
    if (order.state not in (PurchaseOrderState.PURCHASE.value, PurchaseOrderState.DONE.value)
            or order.mail_reminder_confirmed):
        raise ActionNotAllowed("Only unconfirmed purchase or done orders can confirm receipt date.")
    order.mail_reminder_confirmed = True
    return order


