"""
库存盘点
录入盘点数 -> 应用（按差异生成盘点移动）或清除
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from erp.core.exceptions import ActionNotAllowed, FieldValidationError
from erp.models import Location, Lot, Move, MoveLine, Product, ProductQuantity, User, Warehouse
from erp.models.enums import LocationType, MoveState, ProductTracking
from erp.schemas.quantity import QuantityCreate
from erp.services.inventory import find_quants, get_or_create_quant, to_decimal

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


async def default_stock_location_id(db: AsyncSession) -> Optional[int]:
    """第一个仓库的库存库位"""
    result = await db.execute(
        select(Warehouse.lot_stock_location_id)
        .where(Warehouse.deleted_at.is_(None))
        .order_by(Warehouse.id.asc())
        .limit(1)
    )
    return result.scalar()


async def adjustment_location(db: AsyncSession) -> Optional[Location]:
    result = await db.execute(
        select(Location)
        .where(Location.type == LocationType.INVENTORY.value)
        .where(Location.is_scrap.is_(False))
        .where(Location.deleted_at.is_(None))
        .order_by(Location.id.asc())
        .limit(1)
    )
    return result.unique().scalar_one_or_none()


async def create_quantity(db: AsyncSession, payload: QuantityCreate, user: User) -> ProductQuantity:
    """
    新建盘点记录

    Raises:
        FieldValidationError: 商品/批次/库位不合法
        ActionNotAllowed: 同一库位商品批次已存在记录
    """
    product = await db.get(Product, payload.product_id)
    if product is None or product.deleted_at is not None:
        raise FieldValidationError.single("product_id", "The selected product id is invalid.")
    if product.is_configurable:
        raise FieldValidationError.single(
            "product_id",
            f"The product '{product.name}' is configurable and cannot be used for quantities. "
            "Please select a product variant instead.",
        )

    if payload.lot_id is not None:
        lot = await db.get(Lot, payload.lot_id)
        if lot is None:
            raise FieldValidationError.single("lot_id", "The selected lot id is invalid.")
        if lot.product_id != product.id:
            raise FieldValidationError.single("lot_id", "The selected lot does not belong to the selected product.")
    elif product.tracking != ProductTracking.NONE.value:
        raise FieldValidationError.single("lot_id", "The lot field is required for tracked products.")

    if product.tracking == ProductTracking.SERIAL.value and payload.counted_quantity > 1:
        raise FieldValidationError.single(
            "counted_quantity", "The counted quantity for a serial tracked product cannot be greater than 1."
        )

    location_id = payload.location_id or await default_stock_location_id(db)
    location = await db.get(Location, location_id) if location_id else None
    if location is None:
        raise FieldValidationError.single("location_id", "The location_id field could not be resolved automatically.")

    if await find_quants(db, product.id, location.id, payload.lot_id):
        raise ActionNotAllowed("A quantity already exists for this product, location, lot, and package combination.")

    counted = to_decimal(payload.counted_quantity)
    quant = ProductQuantity(
        product_id=product.id,
        location_id=location.id,
        lot_id=payload.lot_id,
        partner_id=payload.partner_id,
        user_id=payload.user_id,
        company_id=payload.company_id or product.company_id,
        creator_id=user.id,
        quantity=ZERO,
        reserved_quantity=ZERO,
        counted_quantity=counted,
        inventory_diff_quantity=counted,
        inventory_quantity_set=True,
        incoming_at=datetime.utcnow(),
        scheduled_at=payload.scheduled_at or datetime.utcnow(),
    )
    db.add(quant)
    await db.flush()
    logger.info(f"📝 新建盘点记录 {quant.id}: 商品 {product.name} @ {location.full_name} = {counted}")
    return quant


def count_quantity(quant: ProductQuantity, counted_quantity) -> ProductQuantity:
    """录入盘点数"""
    counted = to_decimal(counted_quantity)
    quant.counted_quantity = counted
    quant.inventory_quantity_set = True
    quant.inventory_diff_quantity = counted - to_decimal(quant.quantity)
    return quant


def _ensure_marked(quant: ProductQuantity) -> None:
    if not quant.inventory_quantity_set:
        raise ActionNotAllowed("Quantity is not marked for inventory adjustment.")


async def apply_quantity(db: AsyncSession, quant: ProductQuantity, user: User) -> ProductQuantity:
    """
    应用盘点：现存量改为盘点数，差异记入盘点调整库位并生成已完成的盘点移动
    """
    _ensure_marked(quant)

    adjustment = await adjustment_location(db)
    if adjustment is None:
        raise ActionNotAllowed("Inventory adjustment location is not configured.")

    diff = to_decimal(quant.counted_quantity) - to_decimal(quant.quantity)
    quant.quantity = to_decimal(quant.counted_quantity)
    quant.counted_quantity = ZERO
    quant.inventory_diff_quantity = ZERO
    quant.inventory_quantity_set = False

    if diff != 0:
        adjustment_quant = await get_or_create_quant(
            db, quant.product_id, adjustment.id, quant.lot_id,
            company_id=quant.company_id, creator_id=user.id,
        )
        adjustment_quant.quantity = to_decimal(adjustment_quant.quantity) - diff

        product = await db.get(Product, quant.product_id)
        source_id, destination_id = (
            (quant.location_id, adjustment.id) if diff < 0 else (adjustment.id, quant.location_id)
        )
        amount = abs(diff)
        now = datetime.utcnow()
        db.add(Move(
            name="Product Quantity Updated",
            reference="Product Quantity Updated",
            state=MoveState.DONE.value,
            product_uom_qty=amount,
            product_qty=amount,
            quantity=amount,
            is_picked=True,
            is_inventory=True,
            scheduled_at=now,
            product_id=product.id,
            uom_id=product.uom_id,
            source_location_id=source_id,
            destination_location_id=destination_id,
            company_id=quant.company_id,
            creator_id=user.id,
            lines=[MoveLine(
                state=MoveState.DONE.value,
                reference="Product Quantity Updated",
                qty=amount,
                uom_qty=amount,
                is_picked=True,
                scheduled_at=now,
                product_id=product.id,
                uom_id=product.uom_id,
                lot_id=quant.lot_id,
                source_location_id=source_id,
                destination_location_id=destination_id,
                company_id=quant.company_id,
                creator_id=user.id,
            )],
        ))

    await db.flush()
    logger.info(f"✅ 盘点记录 {quant.id} 已应用，差异 {diff}")
    return quant


def clear_quantity(quant: ProductQuantity) -> ProductQuantity:
    """清除盘点数"""
    _ensure_marked(quant)
    quant.inventory_quantity_set = False
    quant.counted_quantity = ZERO
    quant.inventory_diff_quantity = ZERO
    return quant
