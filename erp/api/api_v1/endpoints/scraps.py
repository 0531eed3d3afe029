"""报废单API"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from erp.api.deps import require_permission
from erp.core.deps import get_db
from erp.core.exceptions import ActionNotAllowed
from erp.models import Location, Lot, Partner, Scrap, User, UOM
from erp.models.enums import ScrapState
from erp.schemas.resource import paginated, to_resource
from erp.schemas.scrap import ScrapCreate, ScrapUpdate
from erp.services.query_builder import AllowedFilter, QueryBuilder
from erp.services.scraps import prepare_scrap_data, validate_scrap
from erp.services.sequence import generate_scrap_name
from .common import ensure_exists, get_or_404, message_only, respond

logger = logging.getLogger(__name__)

router = APIRouter()


def _query(request: Request) -> QueryBuilder:
    return QueryBuilder(
        Scrap,
        request,
        filters=[
            AllowedFilter.exact("id"),
            AllowedFilter.partial("name"),
            AllowedFilter.partial("origin"),
            AllowedFilter.exact("state"),
            AllowedFilter.exact("product_id"),
            AllowedFilter.exact("lot_id"),
            AllowedFilter.exact("partner_id"),
            AllowedFilter.exact("source_location_id"),
            AllowedFilter.exact("destination_location_id"),
            AllowedFilter.exact("company_id"),
        ],
        sorts=["id", "name", "state", "qty", "closed_at", "created_at", "updated_at"],
        includes=[
            "product", "uom", "lot", "partner", "operation",
            "sourceLocation", "destinationLocation", "company", "creator",
        ],
    )


async def _check_references(db: AsyncSession, data: dict) -> None:
    await ensure_exists(db, UOM, data.get("uom_id"), "uom_id")
    await ensure_exists(db, Lot, data.get("lot_id"), "lot_id")
    await ensure_exists(db, Partner, data.get("partner_id"), "partner_id")
    await ensure_exists(db, Location, data.get("source_location_id"), "source_location_id")
    await ensure_exists(db, Location, data.get("destination_location_id"), "destination_location_id")


@router.get("")
async def list_scraps(
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission("view_any_inventory_scrap"))) -> Any:
    return paginated(await _query(request).paginate(db))


@router.post("", status_code=201)
async def create_scrap(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    scrap_in: ScrapCreate,
    current_user: User = Depends(require_permission("create_inventory_scrap"))) -> Any:
    """创建报废单（草稿）"""
    data = scrap_in.model_dump()
    await _check_references(db, data)
    data = await prepare_scrap_data(db, data, current_user)

    scrap = Scrap(name=await generate_scrap_name(db), **data)
    db.add(scrap)
    await db.commit()
    logger.info(f"📝 新建报废单 {scrap.name}")

    scrap, includes = await _query(request).find(db, scrap.id)
    return respond(to_resource(scrap, includes), "Scrap created successfully.")


@router.get("/{scrap_id}")
async def get_scrap(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    scrap_id: int,
    current_user: User = Depends(require_permission("view_inventory_scrap"))) -> Any:
    scrap, includes = await _query(request).find(db, scrap_id)
    return respond(to_resource(scrap, includes))


@router.put("/{scrap_id}")
@router.patch("/{scrap_id}")
async def update_scrap(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    scrap_id: int,
    scrap_in: ScrapUpdate,
    current_user: User = Depends(require_permission("update_inventory_scrap"))) -> Any:
    scrap = await get_or_404(db, Scrap, scrap_id)
    if scrap.state == ScrapState.DONE.value:
        raise ActionNotAllowed("Done scraps cannot be updated.")

    data = scrap_in.model_dump(exclude_unset=True)
    await _check_references(db, data)
    data = await prepare_scrap_data(db, data, current_user, existing=scrap)
    for field, value in data.items():
        setattr(scrap, field, value)
    await db.commit()

    scrap, includes = await _query(request).find(db, scrap_id)
    return respond(to_resource(scrap, includes), "Scrap updated successfully.")


@router.delete("/{scrap_id}")
async def delete_scrap(
    *,
    db: AsyncSession = Depends(get_db),
    scrap_id: int,
    current_user: User = Depends(require_permission("delete_inventory_scrap"))) -> Any:
    scrap = await get_or_404(db, Scrap, scrap_id)
    if scrap.state == ScrapState.DONE.value:
        raise ActionNotAllowed("Done scraps cannot be deleted.")
    await db.delete(scrap)
    await db.commit()
    return message_only("Scrap deleted successfully.")


@router.post("/{scrap_id}/validate")
async def validate(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    scrap_id: int,
    current_user: User = Depends(require_permission("update_inventory_scrap"))) -> Any:
    """验证报废单：扣减源库位并转入报废库位"""
    scrap = await get_or_404(db, Scrap, scrap_id)
    await validate_scrap(db, scrap, current_user)
    await db.commit()

    scrap, includes = await _query(request).find(db, scrap_id)
    return respond(to_resource(scrap, includes), "Scrap validated successfully.")
