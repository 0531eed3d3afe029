"""商品管理API"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from erp.api.deps import require_permission
from erp.core.deps import get_db
from erp.core.exceptions import FieldValidationError
from erp.models import Company, Product, UOM, User
from erp.models.enums import UOMType
from erp.schemas.resource import paginated, to_resource
from erp.schemas.product import ProductCreate, ProductUpdate
from erp.services.inventory import on_hand_quantities
from erp.services.query_builder import AllowedFilter, QueryBuilder
from .common import ensure_exists, get_or_404, message_only, respond, restore_trashed, soft_delete

logger = logging.getLogger(__name__)

router = APIRouter()


def _query(request: Request) -> QueryBuilder:
    return QueryBuilder(
        Product,
        request,
        filters=[
            AllowedFilter.exact("id"),
            AllowedFilter.partial("name"),
            AllowedFilter.partial("reference"),
            AllowedFilter.exact("barcode"),
            AllowedFilter.exact("type"),
            AllowedFilter.exact("tracking"),
            AllowedFilter.exact("is_storable"),
            AllowedFilter.exact("is_configurable"),
            AllowedFilter.exact("uom_id"),
            AllowedFilter.exact("company_id"),
            AllowedFilter.trashed(),
        ],
        sorts=["id", "name", "reference", "price", "cost", "created_at", "updated_at"],
        includes=["uom", "uomPo", "company", "creator"],
        soft_delete=True,
    )


async def _serialize(db: AsyncSession, products: List[Product], includes: Optional[Dict] = None) -> List[dict]:
    """附带现存量"""
    on_hand = await on_hand_quantities(db, [p.id for p in products])
    data = []
    for product in products:
        item = to_resource(product, includes)
        item["on_hand_quantity"] = float(on_hand.get(product.id, Decimal("0")))
        data.append(item)
    return data


async def _default_uom_id(db: AsyncSession) -> Optional[int]:
    result = await db.execute(
        select(UOM.id)
        .where(UOM.type == UOMType.REFERENCE.value)
        .order_by(UOM.id.asc())
        .limit(1)
    )
    return result.scalar()


async def _check_uoms(db: AsyncSession, uom_id: Optional[int], uom_po_id: Optional[int]) -> None:
    uom = await db.get(UOM, uom_id) if uom_id else None
    if uom is None:
        raise FieldValidationError.single("uom_id", "The selected uom id is invalid.")
    if uom_po_id:
        uom_po = await db.get(UOM, uom_po_id)
        if uom_po is None:
            raise FieldValidationError.single("uom_po_id", "The selected uom po id is invalid.")
        if uom_po.category_id != uom.category_id:
            raise FieldValidationError.single(
                "uom_po_id", "The purchase unit must belong to the same category as the product unit."
            )


@router.get("")
async def list_products(
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_permission("view_any_inventory_product"))) -> Any:
    """商品列表（含现存量）"""
    page = await _query(request).paginate(db)
    body = paginated(page)
    body["data"] = await _serialize(db, page["items"], page["includes"])
    return body


@router.post("", status_code=201)
async def create_product(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    product_in: ProductCreate,
    current_user: User = Depends(require_permission("create_inventory_product"))) -> Any:
    """创建商品"""
    data = product_in.model_dump()
    data["tracking"] = product_in.tracking.value
    data["uom_id"] = data.get("uom_id") or await _default_uom_id(db)
    await _check_uoms(db, data["uom_id"], data.get("uom_po_id"))
    await ensure_exists(db, Company, data.get("company_id"), "company_id")
    data["company_id"] = data.get("company_id") or current_user.default_company_id

    product = Product(creator_id=current_user.id, **data)
    db.add(product)
    await db.commit()
    logger.info(f"📦 新建商品 {product.name}")

    product, includes = await _query(request).find(db, product.id)
    return respond((await _serialize(db, [product], includes))[0], "Product created successfully.")


@router.get("/{product_id}")
async def get_product(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    product_id: int,
    current_user: User = Depends(require_permission("view_inventory_product"))) -> Any:
    product, includes = await _query(request).find(db, product_id)
    return respond((await _serialize(db, [product], includes))[0])


@router.put("/{product_id}")
@router.patch("/{product_id}")
async def update_product(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    product_id: int,
    product_in: ProductUpdate,
    current_user: User = Depends(require_permission("update_inventory_product"))) -> Any:
    """更新商品"""
    product = await get_or_404(db, Product, product_id)

    update_data = product_in.model_dump(exclude_unset=True)
    if update_data.get("tracking") is not None:
        update_data["tracking"] = update_data["tracking"].value
    if "uom_id" in update_data or "uom_po_id" in update_data:
        await _check_uoms(
            db,
            update_data.get("uom_id") or product.uom_id,
            update_data.get("uom_po_id", product.uom_po_id),
        )
    await ensure_exists(db, Company, update_data.get("company_id"), "company_id")

    for field, value in update_data.items():
        setattr(product, field, value)
    await db.commit()

    product, includes = await _query(request).find(db, product_id)
    return respond((await _serialize(db, [product], includes))[0], "Product updated successfully.")


@router.delete("/{product_id}")
async def delete_product(
    *,
    db: AsyncSession = Depends(get_db),
    product_id: int,
    current_user: User = Depends(require_permission("delete_inventory_product"))) -> Any:
    product = await get_or_404(db, Product, product_id)
    soft_delete(product)
    await db.commit()
    return message_only("Product deleted successfully.")


@router.post("/{product_id}/restore")
async def restore_product(
    *,
    request: Request,
    db: AsyncSession = Depends(get_db),
    product_id: int,
    current_user: User = Depends(require_permission("restore_inventory_product"))) -> Any:
    await restore_trashed(db, Product, product_id)
    await db.commit()
    product, includes = await _query(request).find(db, product_id)
    return respond((await _serialize(db, [product], includes))[0], "Product restored successfully.")


@router.delete("/{product_id}/force")
async def force_delete_product(
    *,
    db: AsyncSession = Depends(get_db),
    product_id: int,
    current_user: User = Depends(require_permission("force_delete_inventory_product"))) -> Any:
    product = await get_or_404(db, Product, product_id, with_trashed=True)
    await db.delete(product)
    await db.commit()
    return message_only("Product permanently deleted.")
