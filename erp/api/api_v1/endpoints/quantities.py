"""库存数量与盘点API"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from erp.api.deps import require_permission
from erp.core.deps import get_db
from erp.models import ProductQuantity, User
from erp.schemas.quantity import QuantityCount, QuantityCreate
from erp.schemas.resource import paginated, to_resource
from erp.services.query_builder import AllowedFilter, QueryBuilder
from erp.services.quantities import apply_quantity, clear_quantity, count_quantity, create_quantity
from .common import get_or_404, respond

logger = logging.getLogger(__name__)

router = APIRouter()


def _query(request: Request) -> QueryBuilder:
    return QueryBuilder(
        ProductQuantity,
        request,
        filters=[
            AllowedFilter.exact("id"),
            AllowedFilter.exact("product_id"),
            AllowedFilter.exact("location_id"),
            AllowedFilter.exact("lot_id"),
            AllowedFilter.exact("partner_id"),
            AllowedFilter.exact("user_id"),
            AllowedFilter.exact("company_id"),
            AllowedFilter.exact("inventory_quantity_set"),
        ],
        sorts=[
            "id", "quantity", "reserved_quantity", "counted_quantity", "inventory_diff_quantity",
            "incoming_at", "scheduled_at", "created_at", "updated_at",
        ],
        includes=["product", "location", "lot", "partner", "user", "company", "creator"],
    )


async def _show(db: AsyncSession, request: Request, quantity_id: int):
    quant, includes = await _query(request).find(db, quantity_id)
    return to_resource(quant, includes)


@router.get("")
async def list_quantities(
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission("view_any_inventory_quantity"))) -> Any:
    """现存量列表"""
    return paginated(await _query(request).paginate(db))


@router.post("", status_code=201)
async def create_quantity_record(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    quantity_in: QuantityCreate,
    current_user: User = Depends(require_permission("create_inventory_quantity"))) -> Any:
    """新建盘点记录（待应用）"""
    quant = await create_quantity(db, quantity_in, current_user)
    await db.commit()
    return respond(await _show(db, request, quant.id), "Quantity created successfully.")


@router.get("/{quantity_id}")
async def get_quantity(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    quantity_id: int,
    current_user: User = Depends(require_permission("view_any_inventory_quantity"))) -> Any:
    return respond(await _show(db, request, quantity_id))


@router.put("/{quantity_id}")
@router.patch("/{quantity_id}")
async def update_quantity(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    quantity_id: int,
    quantity_in: QuantityCount,
    current_user: User = Depends(require_permission("create_inventory_quantity"))) -> Any:
    """录入盘点数"""
    quant = await get_or_404(db, ProductQuantity, quantity_id)
    count_quantity(quant, quantity_in.counted_quantity)
    await db.commit()
    return respond(await _show(db, request, quantity_id), "Quantity updated successfully.")


@router.post("/{quantity_id}/apply")
async def apply_quantity_record(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    quantity_id: int,
    current_user: User = Depends(require_permission("create_inventory_quantity"))) -> Any:
    """应用盘点"""
    quant = await get_or_404(db, ProductQuantity, quantity_id)
    await apply_quantity(db, quant, current_user)
    await db.commit()
    return respond(await _show(db, request, quantity_id), "Quantity applied successfully.")


@router.post("/{quantity_id}/clear")
async def clear_quantity_record(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    quantity_id: int,
    current_user: User = Depends(require_permission("create_inventory_quantity"))) -> Any:
    """清除盘点数"""
    quant = await get_or_404(db, ProductQuantity, quantity_id)
    clear_quantity(quant)
    await db.commit()
    logger.info(f"🧹 盘点记录 {quant.id} 已清除")
    return respond(await _show(db, request, quantity_id), "Quantity cleared successfully.")
