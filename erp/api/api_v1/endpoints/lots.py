"""批次管理API"""

from typing import Any

from fastapi import APIRouter, Depends, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from erp.api.deps import require_permission
from erp.core.deps import get_db
from erp.core.exceptions import FieldValidationError
from erp.models import Company, Lot, Product, User
from erp.schemas.product import LotCreate, LotUpdate
from erp.schemas.resource import paginated, to_resource
from erp.services.query_builder import AllowedFilter, QueryBuilder
from .common import ensure_exists, get_or_404, message_only, respond

router = APIRouter()


def _query(request: Request) -> QueryBuilder:
    return QueryBuilder(
        Lot,
        request,
        filters=[
            AllowedFilter.exact("id"),
            AllowedFilter.partial("name"),
            AllowedFilter.partial("reference"),
            AllowedFilter.exact("product_id"),
            AllowedFilter.exact("company_id"),
        ],
        sorts=["id", "name", "expiration_date", "created_at", "updated_at"],
        includes=["product", "uom", "company", "creator"],
    )


async def _ensure_unique_name(db: AsyncSession, product_id: int, name: str, exclude_id: int = None) -> None:
    query = select(Lot.id).where(Lot.product_id == product_id, Lot.name == name)
    if exclude_id:
        query = query.where(Lot.id != exclude_id)
    if (await db.execute(query)).scalar():
        raise FieldValidationError.single("name", "The name has already been taken for this product.")


@router.get("")
async def list_lots(
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission("view_any_inventory_lot"))) -> Any:
    return paginated(await _query(request).paginate(db))


@router.post("", status_code=201)
async def create_lot(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    lot_in: LotCreate,
    current_user: User = Depends(require_permission("create_inventory_lot"))) -> Any:
    """创建批次"""
    product = await db.get(Product, lot_in.product_id)
    if product is None or product.deleted_at is not None:
        raise FieldValidationError.single("product_id", "The selected product id is invalid.")
    await ensure_exists(db, Company, lot_in.company_id, "company_id")
    await _ensure_unique_name(db, product.id, lot_in.name)

    lot = Lot(
        **lot_in.model_dump(exclude={"company_id"}),
        uom_id=product.uom_id,
        company_id=lot_in.company_id or product.company_id,
        creator_id=current_user.id,
    )
    db.add(lot)
    await db.commit()

    lot, includes = await _query(request).find(db, lot.id)
    return respond(to_resource(lot, includes), "Lot created successfully.")


@router.get("/{lot_id}")
async def get_lot(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    lot_id: int,
    current_user: User = Depends(require_permission("view_inventory_lot"))) -> Any:
    lot, includes = await _query(request).find(db, lot_id)
    return respond(to_resource(lot, includes))


@router.put("/{lot_id}")
@router.patch("/{lot_id}")
async def update_lot(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    lot_id: int,
    lot_in: LotUpdate,
    current_user: User = Depends(require_permission("update_inventory_lot"))) -> Any:
    lot = await get_or_404(db, Lot, lot_id)

    update_data = lot_in.model_dump(exclude_unset=True)
    if update_data.get("name"):
        await _ensure_unique_name(db, lot.product_id, update_data["name"], exclude_id=lot.id)
    await ensure_exists(db, Company, update_data.get("company_id"), "company_id")

    for field, value in update_data.items():
        setattr(lot, field, value)
    await db.commit()

    lot, includes = await _query(request).find(db, lot_id)
    return respond(to_resource(lot, includes), "Lot updated successfully.")


@router.delete("/{lot_id}")
async def delete_lot(
    *,
    db: AsyncSession = Depends(get_db),
    lot_id: int,
    current_user: User = Depends(require_permission("delete_inventory_lot"))) -> Any:
    lot = await get_or_404(db, Lot, lot_id)
    await db.delete(lot)
    await db.commit()
    return message_only("Lot deleted successfully.")
