"""库位管理API"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from erp.api.deps import require_permission
from erp.core.deps import get_db
from erp.core.exceptions import FieldValidationError
from erp.models import Company, Location, User, Warehouse
from erp.schemas.resource import paginated, to_resource
from erp.schemas.warehouse import LocationCreate, LocationUpdate
from erp.services.query_builder import AllowedFilter, QueryBuilder
from .common import ensure_exists, get_or_404, message_only, respond, restore_trashed, soft_delete

logger = logging.getLogger(__name__)

router = APIRouter()


def _query(request: Request) -> QueryBuilder:
    return QueryBuilder(
        Location,
        request,
        filters=[
            AllowedFilter.exact("id"),
            AllowedFilter.partial("name"),
            AllowedFilter.partial("full_name"),
            AllowedFilter.exact("type"),
            AllowedFilter.exact("parent_id"),
            AllowedFilter.exact("warehouse_id"),
            AllowedFilter.exact("company_id"),
            AllowedFilter.exact("is_scrap"),
            AllowedFilter.trashed(),
        ],
        sorts=["id", "name", "full_name", "type", "position", "created_at", "updated_at"],
        includes=["parent", "warehouse", "company", "creator"],
        soft_delete=True,
    )


async def _full_name(db: AsyncSession, name: str, parent_id: Optional[int]) -> str:
    """上级路径 + 名称，如 WH/Stock"""
    if not parent_id:
        return name
    parent = await db.get(Location, parent_id)
    if parent is None or parent.deleted_at is not None:
        raise FieldValidationError.single("parent_id", "The selected parent id is invalid.")
    return f"{parent.full_name or parent.name}/{name}"


@router.get("")
async def list_locations(
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission("view_any_inventory_location"))) -> Any:
    """库位列表"""
    return paginated(await _query(request).paginate(db))


@router.post("", status_code=201)
async def create_location(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    location_in: LocationCreate,
    current_user: User = Depends(require_permission("create_inventory_location"))) -> Any:
    """创建库位"""
    await ensure_exists(db, Warehouse, location_in.warehouse_id, "warehouse_id")
    await ensure_exists(db, Company, location_in.company_id, "company_id")

    data = location_in.model_dump()
    data["type"] = location_in.type.value
    data["full_name"] = await _full_name(db, location_in.name, location_in.parent_id)
    data["company_id"] = location_in.company_id or current_user.default_company_id
    location = Location(creator_id=current_user.id, **data)
    db.add(location)
    await db.commit()

    location, includes = await _query(request).find(db, location.id)
    return respond(to_resource(location, includes), "Location created successfully.")


@router.get("/{location_id}")
async def get_location(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    location_id: int,
    current_user: User = Depends(require_permission("view_inventory_location"))) -> Any:
    location, includes = await _query(request).find(db, location_id)
    return respond(to_resource(location, includes))


@router.put("/{location_id}")
@router.patch("/{location_id}")
async def update_location(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    location_id: int,
    location_in: LocationUpdate,
    current_user: User = Depends(require_permission("update_inventory_location"))) -> Any:
    """更新库位"""
    location = await get_or_404(db, Location, location_id)

    update_data = location_in.model_dump(exclude_unset=True)
    if update_data.get("parent_id") == location.id:
        raise FieldValidationError.single("parent_id", "A location cannot be its own parent.")
    await ensure_exists(db, Warehouse, update_data.get("warehouse_id"), "warehouse_id")
    await ensure_exists(db, Company, update_data.get("company_id"), "company_id")
    if update_data.get("type") is not None:
        update_data["type"] = update_data["type"].value

    for field, value in update_data.items():
        setattr(location, field, value)
    if "name" in update_data or "parent_id" in update_data:
        location.full_name = await _full_name(db, location.name, location.parent_id)
    await db.commit()

    location, includes = await _query(request).find(db, location_id)
    return respond(to_resource(location, includes), "Location updated successfully.")


@router.delete("/{location_id}")
async def delete_location(
    *,
    db: AsyncSession = Depends(get_db),
    location_id: int,
    current_user: User = Depends(require_permission("delete_inventory_location"))) -> Any:
    location = await get_or_404(db, Location, location_id)
    soft_delete(location)
    await db.commit()
    logger.info(f"🗑️ 库位 {location.full_name} 已删除")
    return message_only("Location deleted successfully.")


@router.post("/{location_id}/restore")
async def restore_location(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    location_id: int,
    current_user: User = Depends(require_permission("restore_inventory_location"))) -> Any:
    await restore_trashed(db, Location, location_id)
    await db.commit()
    location, includes = await _query(request).find(db, location_id)
    return respond(to_resource(location, includes), "Location restored successfully.")


@router.delete("/{location_id}/force")
async def force_delete_location(
    *,
    db: AsyncSession = Depends(get_db),
    location_id: int,
    current_user: User = Depends(require_permission("force_delete_inventory_location"))) -> Any:
    location = await get_or_404(db, Location, location_id, with_trashed=True)
    await db.delete(location)
    await db.commit()
    return message_only("Location permanently deleted.")
