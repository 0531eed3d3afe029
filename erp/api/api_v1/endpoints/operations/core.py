"""
库存作业核心功能模块
- 资源定义（收货/发货/内部调拨/直运）
- 列表查询、按类型加载
- 作业默认值与移动同步
"""

from datetime import datetime
from typing import Any, Dict, List, NamedTuple, Optional

from fastapi import HTTPException, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from erp.core.exceptions import FieldValidationError
from erp.models import Location, Move, Operation, OperationType, Partner, Product, UOM, User
from erp.models.enums import MoveState, OperationState, OperationTypeEnum
from erp.schemas.operation import MoveInput
from erp.schemas.resource import to_resource
from erp.services.inventory import (
    confirm_operation, release_move, reserve_operation, to_decimal,
)
from erp.services.query_builder import AllowedFilter, QueryBuilder
from erp.services.sequence import generate_operation_name
from erp.services.uom import compute_quantity


class OperationKind(NamedTuple):
    """一种作业资源：作业类型、提示语主语、权限资源名"""
    type: OperationTypeEnum
    label: str
    permission: str


RECEIPT = OperationKind(OperationTypeEnum.INCOMING, "Receipt", "receipt")
DELIVERY = OperationKind(OperationTypeEnum.OUTGOING, "Delivery", "delivery")
INTERNAL_TRANSFER = OperationKind(OperationTypeEnum.INTERNAL, "Internal transfer", "internal")
DROPSHIP = OperationKind(OperationTypeEnum.DROPSHIP, "Dropship", "dropship")

ALLOWED_INCLUDES = [
    "user",
    "owner",
    "operationType",
    "sourceLocation",
    "destinationLocation",
    "backOrderOf",
    "return",
    "partner",
    "company",
    "creator",
    "moves",
    "moves.product",
    "moves.uom",
    "moves.sourceLocation",
    "moves.destinationLocation",
    "moves.finalLocation",
    "moves.operationType",
    "moveLines",
]


def permission_for(action: str, kind: OperationKind) -> str:
    return f"{action}_inventory_{kind.permission}"


def _type_condition(kind: OperationKind):
    return Operation.operation_type_id.in_(
        select(OperationType.id).where(OperationType.type == kind.type.value)
    )


def operation_query(kind: OperationKind, request: Request) -> QueryBuilder:
    return QueryBuilder(
        Operation,
        request,
        filters=[
            AllowedFilter.exact("id"),
            AllowedFilter.partial("name"),
            AllowedFilter.exact("state"),
            AllowedFilter.exact("move_type"),
            AllowedFilter.exact("partner_id"),
            AllowedFilter.exact("user_id"),
            AllowedFilter.exact("company_id"),
            AllowedFilter.exact("operation_type_id"),
        ],
        sorts=["id", "name", "state", "scheduled_at", "deadline", "created_at", "updated_at"],
        includes=ALLOWED_INCLUDES,
        include_aliases={"return": "return_of"},
        conditions=[_type_condition(kind)],
    )


async def find_operation(db: AsyncSession, kind: OperationKind, operation_id: int) -> Operation:
    """按 id 加载作业，类型不符视为不存在"""
    result = await db.execute(
        select(Operation)
        .where(Operation.id == operation_id)
        .execution_options(populate_existing=True)
    )
    operation = result.unique().scalar_one_or_none()
    if operation is None or operation.operation_type.type != kind.type.value:
        raise HTTPException(status_code=404, detail="Not found.")
    return operation


async def operation_resource(db: AsyncSession, kind: OperationKind, request: Request,
                             operation_id: int) -> Dict[str, Any]:
    operation, includes = await operation_query(kind, request).find(db, operation_id)
    return to_resource(operation, includes)


# ===== 默认值 =====

async def resolve_operation_type(db: AsyncSession, kind: OperationKind,
                                 operation_type_id: Optional[int] = None) -> OperationType:
    if operation_type_id:
        operation_type = await db.get(OperationType, operation_type_id)
    else:
        result = await db.execute(
            select(OperationType)
            .where(OperationType.type == kind.type.value)
            .where(OperationType.deleted_at.is_(None))
            .order_by(OperationType.id.asc())
            .limit(1)
        )
        operation_type = result.unique().scalar_one_or_none()

    if operation_type is None:
        raise FieldValidationError.single("operation_type_id", "No operation type is configured for this resource.")
    if operation_type.type != kind.type.value:
        raise FieldValidationError.single(
            "operation_type_id", "The selected operation type does not match this resource."
        )
    return operation_type


async def _location_or_error(db: AsyncSession, location_id: Optional[int], field: str) -> Location:
    location = await db.get(Location, location_id) if location_id else None
    if location is None:
        if location_id:
            raise FieldValidationError.single(field, f"The selected {field.replace('_', ' ')} is invalid.")
        raise FieldValidationError.single(field, f"The {field} field could not be resolved automatically.")
    return location


async def prepare_operation_data(
    db: AsyncSession,
    kind: OperationKind,
    data: Dict[str, Any],
    user: User,
    existing: Optional[Operation] = None,
) -> Dict[str, Any]:
    """
    补全作业字段：作业类型、库位、公司、负责人、状态

    Raises:
        FieldValidationError: 作业类型不符或库位无法确定
    """
    operation_type = await resolve_operation_type(
        db, kind, data.get("operation_type_id") or (existing.operation_type_id if existing else None)
    )

    source = await _location_or_error(
        db,
        data.get("source_location_id")
        or (existing.source_location_id if existing else None)
        or operation_type.source_location_id,
        "source_location_id",
    )
    destination = await _location_or_error(
        db,
        data.get("destination_location_id")
        or (existing.destination_location_id if existing else None)
        or operation_type.destination_location_id,
        "destination_location_id",
    )

    if data.get("partner_id") and await db.get(Partner, data["partner_id"]) is None:
        raise FieldValidationError.single("partner_id", "The selected partner id is invalid.")
    if data.get("user_id") and await db.get(User, data["user_id"]) is None:
        raise FieldValidationError.single("user_id", "The selected user id is invalid.")

    prepared = dict(data)
    if prepared.get("move_type") is not None:
        prepared["move_type"] = prepared["move_type"].value
    else:
        prepared.pop("move_type", None)

    prepared["operation_type_id"] = operation_type.id
    prepared["source_location_id"] = source.id
    prepared["destination_location_id"] = destination.id

    if existing is None:
        company_location = source if kind.type == OperationTypeEnum.OUTGOING else destination
        prepared["company_id"] = company_location.company_id or user.default_company_id
        prepared["user_id"] = data.get("user_id") or user.id
        prepared["state"] = OperationState.DRAFT.value
        prepared["creator_id"] = user.id
        prepared["name"] = await generate_operation_name(db, operation_type)
        prepared["scheduled_at"] = data.get("scheduled_at") or datetime.utcnow()
        prepared.setdefault("move_type", "direct")
    else:
        for field in ("user_id", "scheduled_at"):
            if prepared.get(field) is None:
                prepared.pop(field, None)
    return prepared


# ===== 移动同步 =====

async def _move_values(db: AsyncSession, operation: Operation, payload: MoveInput, index: int) -> Dict[str, Any]:
    product = await db.get(Product, payload.product_id)
    if product is None or product.deleted_at is not None:
        raise FieldValidationError.single(
            f"moves.{index}.product_id", f"The selected moves.{index}.product_id is invalid."
        )
    if product.is_configurable:
        raise FieldValidationError.single(
            f"moves.{index}.product_id",
            f"The product '{product.name}' is configurable and cannot be used in operations. "
            "Please select a product variant instead.",
        )

    uom = await db.get(UOM, payload.uom_id) if payload.uom_id else product.uom
    if uom is None:
        raise FieldValidationError.single(f"moves.{index}.uom_id", f"The selected moves.{index}.uom_id is invalid.")

    if payload.final_location_id and await db.get(Location, payload.final_location_id) is None:
        raise FieldValidationError.single(
            f"moves.{index}.final_location_id", f"The selected moves.{index}.final_location_id is invalid."
        )

    product_uom_qty = to_decimal(payload.product_uom_qty)
    destination = await db.get(Location, operation.destination_location_id)
    return dict(
        name=product.name,
        product_id=product.id,
        uom_id=uom.id,
        product_uom_qty=product_uom_qty,
        product_qty=compute_quantity(product_uom_qty, uom, product.uom, field=f"moves.{index}.uom_id"),
        final_location_id=payload.final_location_id,
        description_picking=payload.description_picking,
        scheduled_at=payload.scheduled_at or operation.scheduled_at or datetime.utcnow(),
        deadline=payload.deadline,
        procure_method="make_to_stock",
        company_id=operation.company_id,
        warehouse_id=destination.warehouse_id if destination else None,
        operation_type_id=operation.operation_type_id,
        source_location_id=operation.source_location_id,
        destination_location_id=operation.destination_location_id,
        partner_id=operation.partner_id,
        reference=operation.name,
    )


async def sync_moves(db: AsyncSession, operation: Operation, moves: List[MoveInput], user: User) -> None:
    """
    同步作业移动：带 id 的更新，不带 id 的新建，未出现的删除

    作业已离开草稿时，新建/变更的移动随作业一起确认并预留
    """
    existing = {move.id: move for move in operation.moves}
    retained = set()

    for index, payload in enumerate(moves):
        values = await _move_values(db, operation, payload, index)
        move = existing.get(payload.id) if payload.id else None

        if move is not None and move.state not in (MoveState.DONE.value, MoveState.CANCELED.value):
            # 需求变化后按新需求重新预留
            if move.lines and (
                move.product_id != values["product_id"]
                or move.uom_id != values["uom_id"]
                or to_decimal(move.product_uom_qty) != values["product_uom_qty"]
            ):
                await release_move(db, move)
                if move.state != MoveState.DRAFT.value:
                    move.state = MoveState.CONFIRMED.value

            for key, value in values.items():
                setattr(move, key, value)
            if payload.quantity is not None:
                move.quantity = to_decimal(payload.quantity)
            if payload.is_picked is not None:
                move.is_picked = payload.is_picked
            retained.add(move.id)
        elif move is not None:
            retained.add(move.id)
        else:
            operation.moves.append(Move(
                state=MoveState.DRAFT.value,
                quantity=to_decimal(0),
                is_picked=False,
                creator_id=user.id,
                lines=[],
                **values,
            ))

    for move_id, move in existing.items():
        if move_id not in retained:
            if move.state == MoveState.DONE.value:
                continue
            await release_move(db, move)
            operation.moves.remove(move)

    await db.flush()

    if operation.state != OperationState.DRAFT.value:
        await confirm_operation(db, operation)
        await reserve_operation(db, operation)


def sync_move_locations(operation: Operation) -> None:
    """作业库位变更后同步到未完成移动"""
    for move in operation.moves:
        if move.state in (MoveState.DONE.value, MoveState.CANCELED.value):
            continue
        move.source_location_id = operation.source_location_id
        move.destination_location_id = operation.destination_location_id
        move.operation_type_id = operation.operation_type_id
