from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine

import delicute.models  # noqa: F401
from delicute.db.base import Base
from delicute.db.deps import get_async_session
from delicute.db.session import create_session_factory
from delicute.main import create_app
from delicute.models import Category, Coupon, MenuItem


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'delicute.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def menu(session_factory):
    """
    Pizza: Margherita 150, Pepperoni 200; Drinks: Cola 50, Lemonade 100.
    """
    async with session_factory() as session:
        pizza = Category(name="Pizza")
        drinks = Category(name="Drinks")
        session.add_all([pizza, drinks])
        await session.flush()

        items = {
            "margherita": MenuItem(name="Margherita", price=Decimal("150.00"), category_id=pizza.id),
            "pepperoni": MenuItem(name="Pepperoni", price=Decimal("200.00"), category_id=pizza.id),
            "cola": MenuItem(name="Cola", price=Decimal("50.00"), category_id=drinks.id),
            "lemonade": MenuItem(name="Lemonade", price=Decimal("100.00"), category_id=drinks.id),
        }
        session.add_all(items.values())
        await session.commit()

        ids = {name: item.id for name, item in items.items()}
        ids["pizza"] = pizza.id
        ids["drinks"] = drinks.id
        return ids


@pytest.fixture
def make_coupon(session_factory):
    async def _make(**fields):
        fields.setdefault("is_active", True)
        async with session_factory() as session:
            coupon = Coupon(**fields)
            session.add(coupon)
            await session.commit()
            return coupon.id
    return _make


@pytest_asyncio.fixture
async def client(session_factory):
    app = create_app()

    async def override_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_session] = override_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
