"""
Pytest configuration and fixtures for SmartPick tests.

Lifecycle tests run against a real async engine on a temporary SQLite file.
Every transaction starts with BEGIN IMMEDIATE, so concurrent writers queue
on the database lock the way SELECT ... FOR UPDATE queues them on
PostgreSQL.
"""
import os
import tempfile
from datetime import timedelta
from types import SimpleNamespace

import pytest

# Set test environment before importing app modules
_TEST_DIR = tempfile.mkdtemp(prefix="smartpick-tests-")
os.environ["ENVIRONMENT"] = "development"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/app.db"
os.environ["SECRET_KEY"] = "test-secret-key-for-unit-tests-only"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["EXPIRY_SWEEP_ENABLED"] = "false"

from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import event, select, func  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

from smartpick.core.database import Base, get_db  # noqa: E402
from smartpick.core.security import create_access_token  # noqa: E402
from smartpick.core.utils import utcnow  # noqa: E402
from smartpick.models import (  # noqa: E402
    Business,
    BusinessStatus,
    Product,
    ProductStatus,
    Reservation,
    ReservationStatus,
    User,
    UserRole,
)


class FakeClock:
    """Controllable UTC clock for the services."""

    def __init__(self, now=None):
        self.now = now or utcnow()

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
async def engine(tmp_path):
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path}/smartpick.db",
        connect_args={"timeout": 30},
    )

    @event.listens_for(test_engine.sync_engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(test_engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def seed(session_factory, clock):
    """
    Users, businesses and one 5-unit product.

    partner owns the approved "Bakery" with the product; other_partner owns
    an approved "Cafe"; lonely_partner owns nothing.
    """
    async with session_factory() as db:
        users = {
            "alice": User(email="alice@example.com", display_name="Alice", role=UserRole.USER),
            "bob": User(email="bob@example.com", display_name="Bob", role=UserRole.USER),
            "carol": User(email="carol@example.com", display_name="Carol", role=UserRole.USER),
            "partner": User(email="partner@example.com", display_name="Partner", role=UserRole.PARTNER),
            "other_partner": User(email="other@example.com", display_name="Other", role=UserRole.PARTNER),
            "lonely_partner": User(email="lonely@example.com", display_name="Lonely", role=UserRole.PARTNER),
            "admin": User(email="admin@example.com", display_name="Admin", role=UserRole.ADMIN),
        }
        db.add_all(users.values())
        await db.flush()

        bakery = Business(
            owner_id=users["partner"].id,
            name="Bakery",
            business_type="bakery",
            address="1 Rustaveli Ave",
            status=BusinessStatus.APPROVED,
        )
        cafe = Business(
            owner_id=users["other_partner"].id,
            name="Cafe",
            business_type="cafe",
            address="2 Chavchavadze Ave",
            status=BusinessStatus.APPROVED,
        )
        db.add_all([bakery, cafe])
        await db.flush()

        product = _product(bakery.id, clock.now, quantity=5)
        db.add(product)
        await db.commit()

        return SimpleNamespace(
            **{name: user.id for name, user in users.items()},
            bakery=bakery.id,
            cafe=cafe.id,
            product=product.id,
        )


def _product(business_id, now, quantity=5, **overrides) -> Product:
    fields = dict(
        business_id=business_id,
        title="Day-old croissants",
        description="Butter croissants from this morning",
        original_price=10,
        discounted_price=4,
        quantity=quantity,
        status=ProductStatus.SOLD_OUT if quantity == 0 else ProductStatus.AVAILABLE,
        pickup_time_start="18:00",
        pickup_time_end="20:00",
        available_date=now,
        expires_at=now + timedelta(hours=9),
    )
    fields.update(overrides)
    return Product(**fields)


@pytest.fixture
def make_product(session_factory, clock):
    """Insert another product and return its id."""
    async def _make(business_id, quantity=5, **overrides) -> int:
        async with session_factory() as db:
            product = _product(business_id, clock.now, quantity=quantity, **overrides)
            db.add(product)
            await db.commit()
            return product.id
    return _make


@pytest.fixture
def stock_of(session_factory):
    """Read (quantity, status, Σreserved+redeemed) for a product."""
    async def _stock(product_id):
        async with session_factory() as db:
            product = await db.get(Product, product_id)
            held = await db.scalar(
                select(func.coalesce(func.sum(Reservation.quantity), 0))
                .where(Reservation.product_id == product_id)
                .where(Reservation.status.in_([ReservationStatus.RESERVED, ReservationStatus.REDEEMED]))
            )
            return product.quantity, product.status, held
    return _stock


@pytest.fixture
def auth_headers():
    """Bearer header for a user id."""
    def _headers(user_id: int) -> dict:
        return {"Authorization": f"Bearer {create_access_token({'sub': user_id})}"}
    return _headers


@pytest.fixture
async def client(session_factory):
    """HTTP client against the app with get_db bound to the test engine."""
    from smartpick.main import app

    async def _get_test_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_test_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
