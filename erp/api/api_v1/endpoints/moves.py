"""库存移动明细查询API（只读）"""

from typing import Any

from fastapi import APIRouter, Depends, Request
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from erp.api.deps import require_permission
from erp.core.deps import get_db
from erp.models import Move, MoveLine, User
from erp.schemas.resource import paginated
from erp.services.query_builder import AllowedFilter, QueryBuilder

router = APIRouter()

ALLOWED_INCLUDES = [
    "move",
    "move.operation",
    "move.operation.operationType",
    "operation",
    "product",
    "uom",
    "lot",
    "sourceLocation",
    "destinationLocation",
    "company",
    "creator",
]


def _as_list(value):
    values = value if isinstance(value, list) else [value]
    return [int(v) for v in values if str(v).isdigit()]


def _location_filter(model, value):
    """源库位或目标库位任一匹配"""
    ids = _as_list(value)
    return or_(model.source_location_id.in_(ids), model.destination_location_id.in_(ids))


def _through_move(column):
    def condition(model, value):
        return model.move_id.in_(select(Move.id).where(column.in_(_as_list(value))))
    return condition


def _query(request: Request) -> QueryBuilder:
    return QueryBuilder(
        MoveLine,
        request,
        filters=[
            AllowedFilter.exact("id"),
            AllowedFilter.exact("move_id"),
            AllowedFilter.exact("operation_id"),
            AllowedFilter.exact("product_id"),
            AllowedFilter.exact("lot_id"),
            AllowedFilter.exact("source_location_id"),
            AllowedFilter.exact("destination_location_id"),
            AllowedFilter.exact("state"),
            AllowedFilter.partial("reference"),
            AllowedFilter.custom("location_id", _location_filter),
            AllowedFilter.custom("warehouse_id", _through_move(Move.warehouse_id)),
            AllowedFilter.custom("scrap_id", _through_move(Move.scrap_id)),
        ],
        sorts=["id", "scheduled_at", "reference", "qty", "uom_qty", "state", "created_at", "updated_at"],
        includes=ALLOWED_INCLUDES,
    )


@router.get("")
async def list_moves(
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission("view_any_inventory_move"))) -> Any:
    """移动明细列表（收发货、盘点、报废的实际库存流水）"""
    return paginated(await _query(request).paginate(db))
