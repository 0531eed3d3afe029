import asyncio
import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from erp.core.auth.security import get_password_hash
from erp.core.config import settings
from erp.core.permissions import SUPER_ADMIN_ROLE
from erp.db.session import engine, SessionLocal
from erp.db.base import Base

# 导入所有模型，确保表能被创建
from erp.models import (
    Currency, Company, Partner, UOMCategory, UOM,
    User, Role, Warehouse, Location, OperationType,
)
from erp.models.enums import CreateBackorder, LocationType, OperationTypeEnum, UOMType

logger = logging.getLogger(__name__)


async def init_db() -> None:
    """
    初始化数据库 - 创建所有表并写入基础数据
    """
    await ensure_tables_exist()
    async with SessionLocal() as db:
        await seed_default_data(db)


async def ensure_tables_exist() -> None:
    """
    确保数据库表存在（应用启动时调用）
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def _first_location_id(db: AsyncSession, location_type: str) -> Optional[int]:
    result = await db.execute(
        select(Location.id)
        .where(Location.type == location_type)
        .where(Location.deleted_at.is_(None))
        .order_by(Location.id.asc())
        .limit(1)
    )
    return result.scalar()


async def create_warehouse(
    db: AsyncSession,
    name: str,
    code: str,
    company_id: Optional[int] = None,
    creator_id: Optional[int] = None,
    partner_address_id: Optional[int] = None,
) -> Warehouse:
    """
    新建仓库：同时创建视图库位、库存库位和四种作业类型
    """
    warehouse = Warehouse(
        name=name,
        code=code,
        company_id=company_id,
        partner_address_id=partner_address_id,
        creator_id=creator_id,
    )
    db.add(warehouse)
    await db.flush()

    view_location = Location(
        name=code, full_name=code, type=LocationType.VIEW.value,
        warehouse_id=warehouse.id, company_id=company_id, creator_id=creator_id,
    )
    db.add(view_location)
    await db.flush()

    stock_location = Location(
        name="Stock", full_name=f"{code}/Stock", type=LocationType.INTERNAL.value,
        parent_id=view_location.id, warehouse_id=warehouse.id,
        company_id=company_id, creator_id=creator_id,
    )
    db.add(stock_location)
    await db.flush()

    warehouse.view_location_id = view_location.id
    warehouse.lot_stock_location_id = stock_location.id

    supplier_id = await _first_location_id(db, LocationType.SUPPLIER.value)
    customer_id = await _first_location_id(db, LocationType.CUSTOMER.value)

    # (type, 名称, 单号段, 源库位, 目标库位)
    specs = [
        (OperationTypeEnum.INCOMING, "Receipts", "IN", supplier_id, stock_location.id),
        (OperationTypeEnum.OUTGOING, "Delivery Orders", "OUT", stock_location.id, customer_id),
        (OperationTypeEnum.INTERNAL, "Internal Transfers", "INT", stock_location.id, stock_location.id),
        (OperationTypeEnum.DROPSHIP, "Dropship", "DS", supplier_id, customer_id),
    ]
    types = {}
    for sort, (type_enum, type_name, sequence_code, source_id, destination_id) in enumerate(specs, start=1):
        operation_type = OperationType(
            name=type_name,
            type=type_enum.value,
            sequence_code=sequence_code,
            sort=sort,
            create_backorder=CreateBackorder.ASK.value,
            warehouse_id=warehouse.id,
            source_location_id=source_id,
            destination_location_id=destination_id,
            company_id=company_id,
            creator_id=creator_id,
        )
        db.add(operation_type)
        types[type_enum] = operation_type
    await db.flush()

    # 收货与发货互为退货类型
    types[OperationTypeEnum.INCOMING].return_operation_type_id = types[OperationTypeEnum.OUTGOING].id
    types[OperationTypeEnum.OUTGOING].return_operation_type_id = types[OperationTypeEnum.INCOMING].id
    await db.flush()

    logger.info(f"🏭 新建仓库 {code}: 库存库位 {stock_location.full_name}")
    return warehouse


async def seed_default_data(db: AsyncSession) -> bool:
    """
    空库时写入基础数据

    Returns:
        是否写入了数据
    """
    count = await db.scalar(select(func.count(Company.id)))
    if count:
        return False

    currency = Currency(name="USD", symbol="$", full_name="United States dollar")
    db.add(currency)
    await db.flush()

    company = Company(name="My Company", currency_id=currency.id)
    db.add(company)
    await db.flush()

    unit_category = UOMCategory(name="Unit")
    weight_category = UOMCategory(name="Weight")
    db.add_all([unit_category, weight_category])
    await db.flush()

    db.add_all([
        UOM(name="Units", category_id=unit_category.id, type=UOMType.REFERENCE.value,
            factor=Decimal("1"), rounding=Decimal("0.01")),
        UOM(name="Dozens", category_id=unit_category.id, type=UOMType.BIGGER.value,
            factor=Decimal("1") / Decimal("12"), rounding=Decimal("0.01")),
        UOM(name="kg", category_id=weight_category.id, type=UOMType.REFERENCE.value,
            factor=Decimal("1"), rounding=Decimal("0.01")),
        UOM(name="g", category_id=weight_category.id, type=UOMType.SMALLER.value,
            factor=Decimal("1000"), rounding=Decimal("1")),
    ])

    db.add(Partner(name="My Company", is_company=True, company_id=company.id))

    partners = Location(name="Partners", full_name="Partners", type=LocationType.VIEW.value)
    virtual = Location(name="Virtual Locations", full_name="Virtual Locations", type=LocationType.VIEW.value)
    db.add_all([partners, virtual])
    await db.flush()

    db.add_all([
        Location(name="Vendors", full_name="Partners/Vendors", type=LocationType.SUPPLIER.value,
                 parent_id=partners.id),
        Location(name="Customers", full_name="Partners/Customers", type=LocationType.CUSTOMER.value,
                 parent_id=partners.id),
        Location(name="Inventory adjustment", full_name="Virtual Locations/Inventory adjustment",
                 type=LocationType.INVENTORY.value, parent_id=virtual.id, company_id=company.id),
        Location(name="Scrap", full_name="Virtual Locations/Scrap", type=LocationType.INVENTORY.value,
                 parent_id=virtual.id, company_id=company.id, is_scrap=True),
    ])
    await db.flush()

    role = Role(
        name="Super Admin",
        code=SUPER_ADMIN_ROLE,
        description="拥有全部权限",
        permissions=[],
        is_system=True,
        is_active=True,
    )
    admin = User(
        name="Administrator",
        email=settings.ADMIN_EMAIL,
        password=get_password_hash(settings.ADMIN_PASSWORD),
        is_active=True,
        default_company_id=company.id,
        roles=[role],
    )
    db.add_all([role, admin])
    await db.flush()

    await create_warehouse(db, "My Warehouse", "WH", company_id=company.id, creator_id=admin.id)

    await db.commit()
    logger.info(f"🌱 基础数据已写入，管理员账号: {settings.ADMIN_EMAIL}")
    return True


if __name__ == "__main__":
    asyncio.run(init_db())
