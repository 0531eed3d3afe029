"""
报废
草稿报废单验证后：源库位扣减、报废库位增加，并生成已完成的报废移动
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from erp.core.exceptions import ActionNotAllowed, FieldValidationError
from erp.models import Location, Move, MoveLine, Product, Scrap, User, UOM
from erp.models.enums import MoveState, ScrapState
from erp.services.inventory import find_quants, update_available_quantity, to_decimal
from erp.services.quantities import default_stock_location_id

logger = logging.getLogger(__name__)


async def default_scrap_location_id(db: AsyncSession) -> Optional[int]:
    result = await db.execute(
        select(Location.id)
        .where(Location.is_scrap.is_(True))
        .where(Location.deleted_at.is_(None))
        .order_by(Location.id.asc())
        .limit(1)
    )
    return result.scalar()


async def prepare_scrap_data(
    db: AsyncSession,
    data: Dict[str, Any],
    user: User,
    existing: Optional[Scrap] = None,
) -> Dict[str, Any]:
    """
    补全报废单默认值

    Raises:
        FieldValidationError: 默认值无法推导
    """
    product_id = data.get("product_id") or (existing.product_id if existing else None)
    product = await db.get(Product, product_id) if product_id else None
    if "product_id" in data and product is None:
        raise FieldValidationError.single("product_id", "The selected product id is invalid.")

    if not data.get("uom_id") and "product_id" in data:
        data["uom_id"] = product.uom_id
    if not data.get("source_location_id"):
        data["source_location_id"] = (
            existing.source_location_id if existing else await default_stock_location_id(db)
        )
    if not data.get("destination_location_id"):
        data["destination_location_id"] = (
            existing.destination_location_id if existing else await default_scrap_location_id(db)
        )
    if not data.get("company_id"):
        data["company_id"] = existing.company_id if existing else user.default_company_id

    for field in ("uom_id", "source_location_id", "destination_location_id", "company_id"):
        if not data.get(field) and not (existing and getattr(existing, field)):
            raise FieldValidationError.single(field, f"The {field} field could not be resolved automatically.")

    if existing is None:
        data["state"] = ScrapState.DRAFT.value
        data["creator_id"] = user.id
    if "tags" in data and data["tags"] is None:
        data["tags"] = []
    return data


async def validate_scrap(db: AsyncSession, scrap: Scrap, user: User) -> Scrap:
    """
    验证报废单

    Raises:
        ActionNotAllowed: 非草稿或源库位数量不足
    """
    if scrap.state != ScrapState.DRAFT.value:
        raise ActionNotAllowed("Only draft scraps can be validated.")

    product = await db.get(Product, scrap.product_id)
    uom = await db.get(UOM, scrap.uom_id)
    qty = uom.compute_quantity(scrap.qty, product.uom)

    quants = await find_quants(db, scrap.product_id, scrap.source_location_id, scrap.lot_id)
    if not quants or to_decimal(quants[0].quantity) < qty:
        raise ActionNotAllowed("Insufficient source quantity for this scrap.")

    source = await db.get(Location, scrap.source_location_id)
    destination = await db.get(Location, scrap.destination_location_id)
    quants[0].quantity = to_decimal(quants[0].quantity) - qty
    await update_available_quantity(
        db, scrap.product_id, destination, qty, scrap.lot_id,
        company_id=destination.company_id, creator_id=user.id,
    )

    now = datetime.utcnow()
    scrap.state = ScrapState.DONE.value
    scrap.closed_at = now

    db.add(Move(
        name=scrap.name,
        reference=scrap.name,
        origin=scrap.origin,
        state=MoveState.DONE.value,
        product_uom_qty=to_decimal(scrap.qty),
        product_qty=qty,
        quantity=to_decimal(scrap.qty),
        is_picked=True,
        is_scraped=True,
        scheduled_at=now,
        product_id=scrap.product_id,
        uom_id=scrap.uom_id,
        source_location_id=source.id,
        destination_location_id=destination.id,
        scrap_id=scrap.id,
        partner_id=scrap.partner_id,
        company_id=scrap.company_id,
        creator_id=user.id,
        lines=[MoveLine(
            state=MoveState.DONE.value,
            reference=scrap.name,
            qty=to_decimal(scrap.qty),
            uom_qty=qty,
            is_picked=True,
            scheduled_at=now,
            product_id=scrap.product_id,
            uom_id=scrap.uom_id,
            lot_id=scrap.lot_id,
            source_location_id=source.id,
            destination_location_id=destination.id,
            company_id=scrap.company_id,
            creator_id=user.id,
        )],
    ))
    await db.flush()
    logger.info(f"🗑️ 报废单 {scrap.name} 已验证：{product.name} x {qty}")
    return scrap
