"""作业类型管理API"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from erp.api.deps import require_permission
from erp.core.deps import get_db
from erp.models import Company, Location, OperationType, User, Warehouse
from erp.schemas.resource import paginated, to_resource
from erp.schemas.warehouse import OperationTypeCreate, OperationTypeUpdate
from erp.services.query_builder import AllowedFilter, QueryBuilder
from .common import ensure_exists, get_or_404, message_only, respond, restore_trashed, soft_delete

logger = logging.getLogger(__name__)

router = APIRouter()

ENUM_FIELDS = ("type", "create_backorder")


def _query(request: Request) -> QueryBuilder:
    return QueryBuilder(
        OperationType,
        request,
        filters=[
            AllowedFilter.exact("id"),
            AllowedFilter.partial("name"),
            AllowedFilter.exact("type"),
            AllowedFilter.exact("sequence_code"),
            AllowedFilter.exact("warehouse_id"),
            AllowedFilter.exact("company_id"),
            AllowedFilter.trashed(),
        ],
        sorts=["id", "name", "type", "sort", "created_at", "updated_at"],
        includes=[
            "warehouse", "sourceLocation", "destinationLocation",
            "returnOperationType", "company", "creator",
        ],
        soft_delete=True,
    )


async def _check_references(db: AsyncSession, data: dict) -> None:
    await ensure_exists(db, Warehouse, data.get("warehouse_id"), "warehouse_id")
    await ensure_exists(db, Location, data.get("source_location_id"), "source_location_id")
    await ensure_exists(db, Location, data.get("destination_location_id"), "destination_location_id")
    await ensure_exists(db, OperationType, data.get("return_operation_type_id"), "return_operation_type_id")
    await ensure_exists(db, Company, data.get("company_id"), "company_id")


@router.get("")
async def list_operation_types(
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission("view_any_inventory_operation::type"))) -> Any:
    """作业类型列表"""
    return paginated(await _query(request).paginate(db))


@router.post("", status_code=201)
async def create_operation_type(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    type_in: OperationTypeCreate,
    current_user: User = Depends(require_permission("create_inventory_operation::type"))) -> Any:
    data = type_in.model_dump()
    await _check_references(db, data)
    for field in ENUM_FIELDS:
        data[field] = data[field].value
    if data.get("sort") is None:
        data["sort"] = 0
    data["company_id"] = data.get("company_id") or current_user.default_company_id

    operation_type = OperationType(creator_id=current_user.id, **data)
    db.add(operation_type)
    await db.commit()

    operation_type, includes = await _query(request).find(db, operation_type.id)
    return respond(to_resource(operation_type, includes), "Operation type created successfully.")


@router.get("/{type_id}")
async def get_operation_type(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    type_id: int,
    current_user: User = Depends(require_permission("view_inventory_operation::type"))) -> Any:
    operation_type, includes = await _query(request).find(db, type_id)
    return respond(to_resource(operation_type, includes))


@router.put("/{type_id}")
@router.patch("/{type_id}")
async def update_operation_type(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    type_id: int,
    type_in: OperationTypeUpdate,
    current_user: User = Depends(require_permission("update_inventory_operation::type"))) -> Any:
    operation_type = await get_or_404(db, OperationType, type_id)

    update_data = type_in.model_dump(exclude_unset=True)
    await _check_references(db, update_data)
    for field in ENUM_FIELDS:
        if update_data.get(field) is not None:
            update_data[field] = update_data[field].value

    for field, value in update_data.items():
        setattr(operation_type, field, value)
    await db.commit()

    operation_type, includes = await _query(request).find(db, type_id)
    return respond(to_resource(operation_type, includes), "Operation type updated successfully.")


@router.delete("/{type_id}")
async def delete_operation_type(
    *,
    db: AsyncSession = Depends(get_db),
    type_id: int,
    current_user: User = Depends(require_permission("delete_inventory_operation::type"))) -> Any:
    operation_type = await get_or_404(db, OperationType, type_id)
    soft_delete(operation_type)
    await db.commit()
    return message_only("Operation type deleted successfully.")


@router.post("/{type_id}/restore")
async def restore_operation_type(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    type_id: int,
    current_user: User = Depends(require_permission("restore_inventory_operation::type"))) -> Any:
    await restore_trashed(db, OperationType, type_id)
    await db.commit()
    operation_type, includes = await _query(request).find(db, type_id)
    return respond(to_resource(operation_type, includes), "Operation type restored successfully.")


@router.delete("/{type_id}/force")
async def force_delete_operation_type(
    *,
    db: AsyncSession = Depends(get_db),
    type_id: int,
    current_user: User = Depends(require_permission("force_delete_inventory_operation::type"))) -> Any:
    operation_type = await get_or_404(db, OperationType, type_id, with_trashed=True)
    await db.delete(operation_type)
    await db.commit()
    return message_only("Operation type permanently deleted.")
