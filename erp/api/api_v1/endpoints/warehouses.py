"""仓库管理API"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from erp.api.deps import require_permission
from erp.core.deps import get_db
from erp.core.exceptions import FieldValidationError
from erp.db.init_db import create_warehouse
from erp.models import Company, Partner, User, Warehouse
from erp.schemas.resource import paginated, to_resource
from erp.schemas.warehouse import WarehouseCreate, WarehouseUpdate
from erp.services.query_builder import AllowedFilter, QueryBuilder
from .common import ensure_exists, get_or_404, message_only, respond, restore_trashed, soft_delete

logger = logging.getLogger(__name__)

router = APIRouter()


def _query(request: Request) -> QueryBuilder:
    return QueryBuilder(
        Warehouse,
        request,
        filters=[
            AllowedFilter.exact("id"),
            AllowedFilter.partial("name"),
            AllowedFilter.partial("code"),
            AllowedFilter.exact("company_id"),
            AllowedFilter.trashed(),
        ],
        sorts=["id", "name", "code", "sort", "created_at", "updated_at"],
        includes=["company", "partnerAddress", "viewLocation", "lotStockLocation", "creator"],
        soft_delete=True,
    )


async def _ensure_unique_code(db: AsyncSession, code: str, exclude_id: int = None) -> None:
    query = select(Warehouse.id).where(Warehouse.code == code)
    if exclude_id:
        query = query.where(Warehouse.id != exclude_id)
    if (await db.execute(query)).scalar():
        raise FieldValidationError.single("code", "The code has already been taken.")


@router.get("")
async def list_warehouses(
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission("view_any_inventory_warehouse"))) -> Any:
    """仓库列表"""
    return paginated(await _query(request).paginate(db))


@router.post("", status_code=201)
async def create_warehouse_endpoint(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    warehouse_in: WarehouseCreate,
    current_user: User = Depends(require_permission("create_inventory_warehouse"))) -> Any:
    """创建仓库（同时创建库位与作业类型）"""
    await _ensure_unique_code(db, warehouse_in.code)
    await ensure_exists(db, Company, warehouse_in.company_id, "company_id")
    await ensure_exists(db, Partner, warehouse_in.partner_address_id, "partner_address_id")

    warehouse = await create_warehouse(
        db,
        warehouse_in.name,
        warehouse_in.code,
        company_id=warehouse_in.company_id or current_user.default_company_id,
        creator_id=current_user.id,
        partner_address_id=warehouse_in.partner_address_id,
    )
    if warehouse_in.sort is not None:
        warehouse.sort = warehouse_in.sort
    await db.commit()

    warehouse, includes = await _query(request).find(db, warehouse.id)
    return respond(to_resource(warehouse, includes), "Warehouse created successfully.")


@router.get("/{warehouse_id}")
async def get_warehouse(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    warehouse_id: int,
    current_user: User = Depends(require_permission("view_inventory_warehouse"))) -> Any:
    warehouse, includes = await _query(request).find(db, warehouse_id)
    return respond(to_resource(warehouse, includes))


@router.put("/{warehouse_id}")
@router.patch("/{warehouse_id}")
async def update_warehouse(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    warehouse_id: int,
    warehouse_in: WarehouseUpdate,
    current_user: User = Depends(require_permission("update_inventory_warehouse"))) -> Any:
    """更新仓库"""
    warehouse = await get_or_404(db, Warehouse, warehouse_id)

    update_data = warehouse_in.model_dump(exclude_unset=True)
    if update_data.get("code"):
        await _ensure_unique_code(db, update_data["code"], exclude_id=warehouse.id)
    await ensure_exists(db, Company, update_data.get("company_id"), "company_id")
    await ensure_exists(db, Partner, update_data.get("partner_address_id"), "partner_address_id")

    for field, value in update_data.items():
        setattr(warehouse, field, value)
    await db.commit()

    warehouse, includes = await _query(request).find(db, warehouse_id)
    return respond(to_resource(warehouse, includes), "Warehouse updated successfully.")


@router.delete("/{warehouse_id}")
async def delete_warehouse(
    *,
    db: AsyncSession = Depends(get_db),
    warehouse_id: int,
    current_user: User = Depends(require_permission("delete_inventory_warehouse"))) -> Any:
    warehouse = await get_or_404(db, Warehouse, warehouse_id)
    soft_delete(warehouse)
    await db.commit()
    logger.info(f"🗑️ 仓库 {warehouse.code} 已删除")
    return message_only("Warehouse deleted successfully.")


@router.post("/{warehouse_id}/restore")
async def restore_warehouse(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    warehouse_id: int,
    current_user: User = Depends(require_permission("restore_inventory_warehouse"))) -> Any:
    await restore_trashed(db, Warehouse, warehouse_id)
    await db.commit()
    warehouse, includes = await _query(request).find(db, warehouse_id)
    return respond(to_resource(warehouse, includes), "Warehouse restored successfully.")


@router.delete("/{warehouse_id}/force")
async def force_delete_warehouse(
    *,
    db: AsyncSession = Depends(get_db),
    warehouse_id: int,
    current_user: User = Depends(require_permission("force_delete_inventory_warehouse"))) -> Any:
    warehouse = await get_or_404(db, Warehouse, warehouse_id, with_trashed=True)
    await db.delete(warehouse)
    await db.commit()
    return message_only("Warehouse permanently deleted.")
