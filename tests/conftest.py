"""
Shared pytest fixtures.

Every test gets a fresh SQLite file seeded with the default data
(company, units, partner locations, warehouse WH with its four operation types
and the admin user). Requests go through FastAPI's TestClient with `get_db`
overridden to use that file.
"""

import asyncio
import itertools
import os
import tempfile
from pathlib import Path

import pytest

_TMP_DIR = Path(tempfile.mkdtemp(prefix="erp-tests-"))

os.environ["SQLITE_DATABASE_URI"] = f"sqlite:///{_TMP_DIR / 'unused.db'}"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["SEED_DEFAULT_DATA"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LOG_DIR"] = str(_TMP_DIR / "logs")

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import select  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from erp.core.auth.security import create_access_token, get_password_hash  # noqa: E402
from erp.core.config import settings  # noqa: E402
from erp.core.deps import get_db  # noqa: E402
from erp.db.base import Base  # noqa: E402
from erp.db.init_db import seed_default_data  # noqa: E402
from erp.main import app  # noqa: E402
from erp.models import (  # noqa: E402
    Company, Currency, Location, OperationType, Partner, Role, UOM, User, Warehouse,
)
from erp.models.enums import LocationType, OperationTypeEnum  # noqa: E402

_db_counter = itertools.count(1)
_user_counter = itertools.count(1)


class Database:
    """A throw-away SQLite database for one test."""

    def __init__(self, path: Path):
        self.path = path
        self.engine = create_async_engine(f"sqlite+aiosqlite:///{path}", poolclass=NullPool)
        self.session_factory = sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            autoflush=False,
            expire_on_commit=False,
        )

    def run(self, fn):
        """Run `await fn(session)` in a new session and commit."""
        async def _run():
            async with self.session_factory() as session:
                result = await fn(session)
                await session.commit()
                return result
        return asyncio.run(_run())

    def create_all(self):
        async def _create():
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        asyncio.run(_create())

    def dispose(self):
        asyncio.run(self.engine.dispose())


class Seed:
    """Ids of the seeded default records."""

    def __init__(self, **ids):
        self.__dict__.update(ids)


async def _lookup_seed(db: AsyncSession) -> Seed:
    async def first(query):
        return (await db.execute(query.limit(1))).scalar()

    warehouse = (await db.execute(select(Warehouse).where(Warehouse.code == "WH"))).unique().scalar_one()
    types = {
        t.type: t.id
        for t in (await db.execute(select(OperationType))).unique().scalars().all()
    }
    return Seed(
        company_id=await first(select(Company.id)),
        currency_id=await first(select(Currency.id)),
        partner_id=await first(select(Partner.id)),
        admin_id=await first(select(User.id).where(User.email == settings.ADMIN_EMAIL)),
        warehouse_id=warehouse.id,
        stock_location_id=warehouse.lot_stock_location_id,
        view_location_id=warehouse.view_location_id,
        supplier_location_id=await first(select(Location.id).where(Location.type == LocationType.SUPPLIER.value)),
        customer_location_id=await first(select(Location.id).where(Location.type == LocationType.CUSTOMER.value)),
        adjustment_location_id=await first(
            select(Location.id)
            .where(Location.type == LocationType.INVENTORY.value)
            .where(Location.is_scrap.is_(False))
        ),
        scrap_location_id=await first(select(Location.id).where(Location.is_scrap.is_(True))),
        units_id=await first(select(UOM.id).where(UOM.name == "Units")),
        dozens_id=await first(select(UOM.id).where(UOM.name == "Dozens")),
        kg_id=await first(select(UOM.id).where(UOM.name == "kg")),
        incoming_type_id=types[OperationTypeEnum.INCOMING.value],
        outgoing_type_id=types[OperationTypeEnum.OUTGOING.value],
        internal_type_id=types[OperationTypeEnum.INTERNAL.value],
        dropship_type_id=types[OperationTypeEnum.DROPSHIP.value],
    )


@pytest.fixture
def database():
    db = Database(_TMP_DIR / f"test_{next(_db_counter)}.db")
    db.create_all()

    async def _get_db():
        async with db.session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    yield db
    app.dependency_overrides.pop(get_db, None)
    db.dispose()


@pytest.fixture
def seed(database) -> Seed:
    async def _seed(session):
        await seed_default_data(session)
        return await _lookup_seed(session)
    return database.run(_seed)


@pytest.fixture
def client(database, seed) -> TestClient:
    return TestClient(app)


def _bearer(user_id: int) -> dict:
    token = create_access_token(user_id)["access_token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin(seed) -> dict:
    """Headers for the seeded super admin."""
    return _bearer(seed.admin_id)


@pytest.fixture
def acting_as(database, seed):
    """
    Create a user holding exactly the given permissions and return auth headers.

    Usage:
        headers = acting_as(["view_any_inventory_receipt"])
    """
    def _acting_as(permissions=(), is_active=True) -> dict:
        n = next(_user_counter)

        async def _create(session):
            role = Role(name=f"Role {n}", code=f"role_{n}", permissions=list(permissions), is_active=True)
            user = User(
                name=f"User {n}",
                email=f"user{n}@example.com",
                password=get_password_hash("password"),
                is_active=is_active,
                default_company_id=seed.company_id,
                roles=[role],
            )
            session.add_all([role, user])
            await session.flush()
            return user.id

        return _bearer(database.run(_create))

    return _acting_as
