"""
库存作业引擎

作业生命周期：
    draft --todo--> confirmed --预留--> assigned --validate--> done
      \\________________ cancel ________________/--> canceled
    done --return--> 新的反向作业

- 作业状态由移动状态推导（compute_operation_state）
- 预留：内部/中转库位按 quant 先进先出占用，并为每个 quant 生成移动明细；
  其它库位（供应商、客户等）不持有库存，直接视为全部可用
- 验证：按处理数量调整明细，quant 从源库位转到目标库位（允许负库存），
  未处理完的数量转入欠单（create_backorder=never 时丢弃）
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from erp.core.exceptions import ActionNotAllowed
from erp.models import (
    Location, Product, UOM, OperationType,
    Operation, Move, MoveLine, ProductQuantity,
    PurchaseOrder, PurchaseOrderLine,
)
from erp.models.enums import (
    OperationState, MoveState, MoveType, CreateBackorder, LocationType,
    STOCK_LOCATION_TYPES, OPEN_MOVE_STATES,
)
from erp.services.sequence import generate_operation_name

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

# 可参与预留的移动状态
RESERVABLE_MOVE_STATES = (MoveState.CONFIRMED.value, MoveState.PARTIALLY_ASSIGNED.value)


def to_decimal(value) -> Decimal:
    return Decimal(str(value or 0))


# ===== 查询 =====

async def load_operation(db: AsyncSession, operation_id: int, options=()) -> Optional[Operation]:
    """重新加载作业（含移动和明细），覆盖会话中的旧数据"""
    result = await db.execute(
        select(Operation)
        .where(Operation.id == operation_id)
        .options(*options)
        .execution_options(populate_existing=True)
    )
    return result.unique().scalar_one_or_none()


async def _move_context(db: AsyncSession, move: Move) -> Tuple[Product, UOM, Location, Location]:
    """取移动的商品、移动单位、源库位、目标库位（优先命中会话缓存）"""
    product = await db.get(Product, move.product_id)
    uom = await db.get(UOM, move.uom_id)
    source = await db.get(Location, move.source_location_id)
    destination = await db.get(Location, move.destination_location_id)
    return product, uom, source, destination


def _to_product_qty(qty, uom: UOM, product: Product) -> Decimal:
    return uom.compute_quantity(qty, product.uom)


def _to_move_qty(qty, product: Product, uom: UOM) -> Decimal:
    return product.uom.compute_quantity(qty, uom)


def is_stock_location(location: Optional[Location]) -> bool:
    return location is not None and location.type in STOCK_LOCATION_TYPES


def tracks_quants(location: Optional[Location]) -> bool:
    """视图库位不记录 quant"""
    return location is not None and location.type != LocationType.VIEW.value


# ===== quant =====

async def find_quants(
    db: AsyncSession,
    product_id: int,
    location_id: int,
    lot_id: Optional[int] = None,
    any_lot: bool = False,
) -> List[ProductQuantity]:
    """查询 quant，按入库时间先进先出排序"""
    conditions = [
        ProductQuantity.product_id == product_id,
        ProductQuantity.location_id == location_id,
    ]
    if not any_lot:
        if lot_id is None:
            conditions.append(ProductQuantity.lot_id.is_(None))
        else:
            conditions.append(ProductQuantity.lot_id == lot_id)

    result = await db.execute(
        select(ProductQuantity)
        .where(*conditions)
        .order_by(ProductQuantity.incoming_at.asc(), ProductQuantity.id.asc())
    )
    return list(result.unique().scalars().all())


async def get_or_create_quant(
    db: AsyncSession,
    product_id: int,
    location_id: int,
    lot_id: Optional[int] = None,
    company_id: Optional[int] = None,
    creator_id: Optional[int] = None,
) -> ProductQuantity:
    """获取或创建 quant"""
    quants = await find_quants(db, product_id, location_id, lot_id)
    if quants:
        return quants[0]

    quant = ProductQuantity(
        product_id=product_id,
        location_id=location_id,
        lot_id=lot_id,
        company_id=company_id,
        creator_id=creator_id,
        quantity=ZERO,
        reserved_quantity=ZERO,
        counted_quantity=ZERO,
        inventory_diff_quantity=ZERO,
        inventory_quantity_set=False,
        incoming_at=datetime.utcnow(),
    )
    db.add(quant)
    await db.flush()
    return quant


async def update_available_quantity(
    db: AsyncSession,
    product_id: int,
    location: Location,
    quantity: Decimal,
    lot_id: Optional[int] = None,
    company_id: Optional[int] = None,
    creator_id: Optional[int] = None,
) -> Optional[ProductQuantity]:
    """增减 quant 现存量（商品单位），允许出现负库存"""
    if not tracks_quants(location) or not quantity:
        return None

    quant = await get_or_create_quant(
        db, product_id, location.id, lot_id,
        company_id=company_id or location.company_id, creator_id=creator_id,
    )
    old_quantity = to_decimal(quant.quantity)
    quant.quantity = old_quantity + quantity
    if quantity > 0 and old_quantity <= 0:
        quant.incoming_at = datetime.utcnow()
    return quant


async def release_reserved_quantity(
    db: AsyncSession,
    product_id: int,
    location: Location,
    quantity: Decimal,
    lot_id: Optional[int] = None,
) -> None:
    """释放预留（商品单位）"""
    if not is_stock_location(location) or quantity <= 0:
        return

    remaining = quantity
    for quant in await find_quants(db, product_id, location.id, lot_id):
        reserved = to_decimal(quant.reserved_quantity)
        if reserved <= 0:
            continue
        release = min(reserved, remaining)
        quant.reserved_quantity = reserved - release
        remaining -= release
        if remaining <= 0:
            break


async def on_hand_quantities(db: AsyncSession, product_ids: List[int]) -> Dict[int, Decimal]:
    """商品在内部库位的现存量汇总"""
    if not product_ids:
        return {}
    result = await db.execute(
        select(ProductQuantity.product_id, func.coalesce(func.sum(ProductQuantity.quantity), 0))
        .join(Location, ProductQuantity.location_id == Location.id)
        .where(ProductQuantity.product_id.in_(product_ids))
        .where(Location.type == LocationType.INTERNAL.value)
        .group_by(ProductQuantity.product_id)
    )
    return {row[0]: to_decimal(row[1]) for row in result}


# ===== 状态 =====

def compute_operation_state(operation: Operation) -> str:
    """由移动状态推导作业状态"""
    moves = list(operation.moves)
    if not moves:
        return OperationState.DRAFT.value

    states = [m.state for m in moves]
    if all(s == MoveState.CANCELED.value for s in states):
        return OperationState.CANCELED.value
    if all(s in (MoveState.DONE.value, MoveState.CANCELED.value) for s in states):
        return OperationState.DONE.value
    if any(s == MoveState.DRAFT.value for s in states):
        return OperationState.DRAFT.value

    open_states = [s for s in states if s not in (MoveState.DONE.value, MoveState.CANCELED.value)]
    reserved_states = (MoveState.ASSIGNED.value, MoveState.PARTIALLY_ASSIGNED.value)

    if operation.move_type == MoveType.ONE.value:
        if all(s == MoveState.ASSIGNED.value for s in open_states):
            return OperationState.ASSIGNED.value
        return OperationState.CONFIRMED.value

    if any(s in reserved_states for s in open_states):
        return OperationState.ASSIGNED.value
    return OperationState.CONFIRMED.value


def refresh_operation_state(operation: Operation) -> str:
    operation.state = compute_operation_state(operation)
    return operation.state


# ===== 移动明细 =====

def _new_line(operation: Optional[Operation], move: Move, product_id: int, uom_id: int,
              source_location_id: int, lot_id: Optional[int] = None) -> MoveLine:
    line = MoveLine(
        operation_id=operation.id if operation is not None else move.operation_id,
        product_id=product_id,
        uom_id=uom_id,
        lot_id=lot_id,
        source_location_id=source_location_id,
        destination_location_id=move.destination_location_id,
        company_id=move.company_id,
        creator_id=move.creator_id,
        reference=move.reference,
        scheduled_at=move.scheduled_at,
        state=move.state,
        qty=ZERO,
        uom_qty=ZERO,
        is_picked=False,
    )
    move.lines.append(line)
    return line


def _reserved_product_qty(move: Move) -> Decimal:
    return sum((to_decimal(line.uom_qty) for line in move.lines), ZERO)


def _sync_line_states(move: Move) -> None:
    for line in move.lines:
        line.state = move.state


async def release_move(db: AsyncSession, move: Move, delete_lines: bool = True) -> None:
    """释放移动占用的预留"""
    _, _, source, _ = await _move_context(db, move)
    for line in list(move.lines):
        line_source = await db.get(Location, line.source_location_id) if line.source_location_id != source.id else source
        await release_reserved_quantity(db, move.product_id, line_source, to_decimal(line.uom_qty), line.lot_id)
        if delete_lines:
            move.lines.remove(line)


# ===== 预留 =====

async def reserve_move(db: AsyncSession, operation: Operation, move: Move) -> Decimal:
    """
    为单个移动预留库存

    Returns:
        本次新增的预留数量（商品单位）
    """
    if move.state not in RESERVABLE_MOVE_STATES:
        return ZERO

    product, uom, source, _ = await _move_context(db, move)
    demand = to_decimal(move.product_qty)
    missing = demand - _reserved_product_qty(move)
    reserved_now = ZERO

    if missing > 0:
        if not is_stock_location(source):
            # 虚拟库位不持有库存，整单视为可用
            line = move.lines[0] if move.lines else _new_line(operation, move, product.id, uom.id, source.id)
            line.uom_qty = to_decimal(line.uom_qty) + missing
            line.qty = _to_move_qty(line.uom_qty, product, uom)
            reserved_now = missing
            missing = ZERO
        else:
            for quant in await find_quants(db, product.id, source.id, any_lot=True):
                available = quant.available_quantity
                if available <= 0:
                    continue
                take = min(available, missing)
                quant.reserved_quantity = to_decimal(quant.reserved_quantity) + take

                line = next(
                    (l for l in move.lines
                     if l.lot_id == quant.lot_id and l.source_location_id == quant.location_id),
                    None,
                )
                if line is None:
                    line = _new_line(operation, move, product.id, uom.id, quant.location_id, quant.lot_id)
                line.uom_qty = to_decimal(line.uom_qty) + take
                line.qty = _to_move_qty(line.uom_qty, product, uom)

                reserved_now += take
                missing -= take
                if missing <= 0:
                    break

    if missing <= 0:
        move.state = MoveState.ASSIGNED.value
    elif _reserved_product_qty(move) > 0:
        move.state = MoveState.PARTIALLY_ASSIGNED.value
    else:
        move.state = MoveState.CONFIRMED.value

    if reserved_now > 0:
        move.reservation_date = datetime.utcnow()
    _sync_line_states(move)
    return reserved_now


async def reserve_operation(db: AsyncSession, operation: Operation) -> Operation:
    """检查可用性：为所有待预留移动占用库存"""
    total = ZERO
    for move in operation.moves:
        total += await reserve_move(db, operation, move)

    refresh_operation_state(operation)
    await db.flush()
    logger.info(f"📦 作业 {operation.name} 预留 {total}，状态 {operation.state}")
    return operation


async def confirm_operation(db: AsyncSession, operation: Operation) -> Operation:
    """草稿移动 -> 已确认"""
    for move in operation.moves:
        if move.state == MoveState.DRAFT.value:
            move.state = MoveState.CONFIRMED.value
            if move.product_qty is None or to_decimal(move.product_qty) <= 0:
                product, uom, _, _ = await _move_context(db, move)
                move.product_qty = _to_product_qty(move.product_uom_qty, uom, product)
            _sync_line_states(move)
    refresh_operation_state(operation)
    return operation


async def todo_operation(db: AsyncSession, operation: Operation) -> Operation:
    """标记为待办：确认并预留"""
    await confirm_operation(db, operation)
    await reserve_operation(db, operation)
    logger.info(f"✅ 作业 {operation.name} 已确认，状态 {operation.state}")
    return operation


# ===== 验证 =====

def processed_quantity(move: Move) -> Decimal:
    """移动的处理数量（移动单位）：填写了已拣数量按已拣，否则按需求"""
    quantity = to_decimal(move.quantity)
    if move.is_picked or quantity > 0:
        return quantity
    return to_decimal(move.product_uom_qty)


async def _reconcile_lines(db: AsyncSession, operation: Operation, move: Move,
                           product: Product, uom: UOM, source: Location, target: Decimal) -> None:
    """把明细调整为处理数量（商品单位），先释放全部预留"""
    await release_move(db, move, delete_lines=False)

    remaining = target
    for line in list(move.lines):
        line_qty = to_decimal(line.uom_qty)
        if remaining <= 0:
            move.lines.remove(line)
            continue
        keep = min(line_qty, remaining)
        line.uom_qty = keep
        line.qty = _to_move_qty(keep, product, uom)
        remaining -= keep

    if remaining > 0:
        line = move.lines[-1] if move.lines else _new_line(operation, move, product.id, uom.id, source.id)
        line.uom_qty = to_decimal(line.uom_qty) + remaining
        line.qty = _to_move_qty(line.uom_qty, product, uom)


async def _apply_move(db: AsyncSession, move: Move, product: Product, destination: Location) -> None:
    """按明细把库存从源库位转到目标库位"""
    for line in move.lines:
        qty = to_decimal(line.uom_qty)
        line_source = await db.get(Location, line.source_location_id)
        line_destination = (
            destination if line.destination_location_id == destination.id
            else await db.get(Location, line.destination_location_id)
        )
        await update_available_quantity(
            db, product.id, line_source, -qty, line.lot_id,
            company_id=move.company_id, creator_id=move.creator_id,
        )
        await update_available_quantity(
            db, product.id, line_destination, qty, line.lot_id,
            company_id=move.company_id, creator_id=move.creator_id,
        )
        line.is_picked = True
        line.state = MoveState.DONE.value


async def _update_purchase_lines(db: AsyncSession, moves: List[Move]) -> None:
    """已完成移动回写采购订单行的已收数量"""
    orders = {}
    for move in moves:
        if not move.purchase_order_line_id:
            continue
        po_line = await db.get(PurchaseOrderLine, move.purchase_order_line_id)
        if po_line is None:
            continue
        move_uom = await db.get(UOM, move.uom_id)
        received = move_uom.compute_quantity(move.quantity, po_line.uom)
        if move.is_refund:
            received = -received
        po_line.qty_received = to_decimal(po_line.qty_received) + received
        orders[po_line.order_id] = True

    for order_id in orders:
        order = await db.get(PurchaseOrder, order_id)
        if order is not None:
            order.receipt_status = order.compute_receipt_status()


async def _create_backorder(db: AsyncSession, operation: Operation,
                            remainders: List[Tuple[Move, Decimal]],
                            moved: List[Move]) -> Operation:
    operation_type = await db.get(OperationType, operation.operation_type_id)
    backorder = Operation(
        name=await generate_operation_name(db, operation_type),
        origin=operation.origin,
        move_type=operation.move_type,
        state=OperationState.DRAFT.value,
        description=operation.description,
        scheduled_at=operation.scheduled_at,
        deadline=operation.deadline,
        operation_type_id=operation.operation_type_id,
        source_location_id=operation.source_location_id,
        destination_location_id=operation.destination_location_id,
        back_order_id=operation.id,
        purchase_order_id=operation.purchase_order_id,
        partner_id=operation.partner_id,
        user_id=operation.user_id,
        owner_id=operation.owner_id,
        company_id=operation.company_id,
        creator_id=operation.creator_id,
        moves=[],
    )
    db.add(backorder)
    await db.flush()

    for move, remainder in remainders:
        product, uom, _, _ = await _move_context(db, move)
        backorder.moves.append(Move(
            name=move.name,
            state=MoveState.CONFIRMED.value,
            origin=move.origin,
            procure_method=move.procure_method,
            reference=backorder.name,
            description_picking=move.description_picking,
            product_uom_qty=remainder,
            product_qty=_to_product_qty(remainder, uom, product),
            quantity=ZERO,
            is_picked=False,
            scheduled_at=move.scheduled_at,
            deadline=move.deadline,
            product_id=move.product_id,
            uom_id=move.uom_id,
            source_location_id=move.source_location_id,
            destination_location_id=move.destination_location_id,
            final_location_id=move.final_location_id,
            operation_type_id=move.operation_type_id,
            warehouse_id=move.warehouse_id,
            purchase_order_line_id=move.purchase_order_line_id,
            origin_returned_move_id=move.origin_returned_move_id,
            is_refund=move.is_refund,
            partner_id=move.partner_id,
            company_id=move.company_id,
            creator_id=move.creator_id,
            lines=[],
        ))

    # 未处理的移动整行转入欠单
    for move in moved:
        operation.moves.remove(move)
        move.operation_id = backorder.id
        move.reference = backorder.name
        move.state = MoveState.CONFIRMED.value
        backorder.moves.append(move)

    await db.flush()
    await reserve_operation(db, backorder)
    logger.info(f"🔁 作业 {operation.name} 生成欠单 {backorder.name}")
    return backorder


async def validate_operation(db: AsyncSession, operation: Operation) -> Operation:
    """
    验证作业

    Raises:
        ActionNotAllowed: 没有可处理数量
    """
    if operation.state == OperationState.DRAFT.value:
        await todo_operation(db, operation)

    open_moves = [m for m in operation.moves if m.state in OPEN_MOVE_STATES]
    processed = {m.id: processed_quantity(m) for m in open_moves}
    if not any(qty > 0 for qty in processed.values()):
        raise ActionNotAllowed("There is no quantity to validate.")

    operation_type = await db.get(OperationType, operation.operation_type_id)
    create_backorder = operation_type.create_backorder != CreateBackorder.NEVER.value

    remainders: List[Tuple[Move, Decimal]] = []
    untouched: List[Move] = []
    done_moves: List[Move] = []

    for move in open_moves:
        product, uom, source, destination = await _move_context(db, move)
        qty = processed[move.id]
        demand = to_decimal(move.product_uom_qty)

        if qty <= 0:
            await release_move(db, move)
            if create_backorder:
                untouched.append(move)
            else:
                move.state = MoveState.CANCELED.value
            continue

        await _reconcile_lines(db, operation, move, product, uom, source,
                               _to_product_qty(qty, uom, product))
        await _apply_move(db, move, product, destination)

        if qty < demand:
            if create_backorder:
                remainders.append((move, demand - qty))
            move.product_uom_qty = qty
            move.product_qty = _to_product_qty(qty, uom, product)

        move.quantity = qty
        move.is_picked = True
        move.state = MoveState.DONE.value
        _sync_line_states(move)
        done_moves.append(move)

    await _update_purchase_lines(db, done_moves)
    await db.flush()

    if remainders or untouched:
        await _create_backorder(db, operation, remainders, untouched)

    refresh_operation_state(operation)
    if operation.state == OperationState.DONE.value:
        operation.closed_at = datetime.utcnow()
    await db.flush()
    logger.info(f"✅ 作业 {operation.name} 已验证")
    return operation


# ===== 取消 =====

async def cancel_operation(db: AsyncSession, operation: Operation) -> Operation:
    """取消作业：释放预留，删除未完成明细"""
    for move in operation.moves:
        if move.state in (MoveState.DONE.value, MoveState.CANCELED.value):
            continue
        await release_move(db, move)
        move.state = MoveState.CANCELED.value

    refresh_operation_state(operation)
    if operation.state != OperationState.DONE.value:
        operation.state = OperationState.CANCELED.value
    await db.flush()
    logger.info(f"❌ 作业 {operation.name} 已取消")
    return operation


# ===== 退货 =====

async def returned_quantities(db: AsyncSession, move_ids: List[int]) -> Dict[int, Decimal]:
    """已退数量（未取消的退货移动需求之和）"""
    if not move_ids:
        return {}
    result = await db.execute(
        select(Move.origin_returned_move_id, func.coalesce(func.sum(Move.product_uom_qty), 0))
        .where(Move.origin_returned_move_id.in_(move_ids))
        .where(Move.state != MoveState.CANCELED.value)
        .group_by(Move.origin_returned_move_id)
    )
    return {row[0]: to_decimal(row[1]) for row in result}


async def return_operation(db: AsyncSession, operation: Operation, user_id: Optional[int] = None) -> Operation:
    """
    为已完成作业创建反向作业

    Raises:
        ActionNotAllowed: 已全部退回
    """
    done_moves = [m for m in operation.moves if m.state == MoveState.DONE.value]
    returned_map = await returned_quantities(db, [m.id for m in done_moves])

    targets: List[Tuple[Move, Decimal]] = []
    for move in done_moves:
        returnable = to_decimal(move.quantity) - returned_map.get(move.id, ZERO)
        if returnable > 0:
            targets.append((move, returnable))
    if not targets:
        raise ActionNotAllowed("There is nothing left to return.")

    operation_type = await db.get(OperationType, operation.operation_type_id)
    return_type = operation_type
    if operation_type.return_operation_type_id:
        return_type = await db.get(OperationType, operation_type.return_operation_type_id) or operation_type

    returned = Operation(
        name=await generate_operation_name(db, return_type),
        origin=f"Return of {operation.name}",
        move_type=operation.move_type,
        state=OperationState.DRAFT.value,
        scheduled_at=datetime.utcnow(),
        operation_type_id=return_type.id,
        source_location_id=operation.destination_location_id,
        destination_location_id=operation.source_location_id,
        return_id=operation.id,
        purchase_order_id=operation.purchase_order_id,
        partner_id=operation.partner_id,
        user_id=operation.user_id,
        owner_id=operation.owner_id,
        company_id=operation.company_id,
        creator_id=user_id or operation.creator_id,
        moves=[],
    )
    db.add(returned)
    await db.flush()

    for move, qty in targets:
        product, uom, _, _ = await _move_context(db, move)
        returned.moves.append(Move(
            name=move.name,
            state=MoveState.DRAFT.value,
            origin=returned.origin,
            procure_method=move.procure_method,
            reference=returned.name,
            product_uom_qty=qty,
            product_qty=_to_product_qty(qty, uom, product),
            quantity=ZERO,
            is_picked=False,
            scheduled_at=returned.scheduled_at,
            product_id=move.product_id,
            uom_id=move.uom_id,
            source_location_id=move.destination_location_id,
            destination_location_id=move.source_location_id,
            operation_type_id=return_type.id,
            warehouse_id=move.warehouse_id,
            origin_returned_move_id=move.id,
            purchase_order_line_id=move.purchase_order_line_id,
            is_refund=move.purchase_order_line_id is not None,
            partner_id=move.partner_id,
            company_id=move.company_id,
            creator_id=user_id or move.creator_id,
            lines=[],
        ))

    await db.flush()
    await todo_operation(db, returned)
    logger.info(f"↩️ 作业 {operation.name} 创建退货单 {returned.name}")
    return returned
