from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from delicute.config import Settings


def create_engine(settings: Settings) -> AsyncEngine:
    """
    Асинхронный движок. Создаётся один раз в lifespan приложения
    и хранится в app.state, а не на уровне модуля.
    """
    return create_async_engine(settings.DATABASE_URL, echo=settings.DB_ECHO, future=True)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Фабрика сессий
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


SYNC_DRIVERS = {
    "postgresql+asyncpg": "postgresql+psycopg2",
    "sqlite+aiosqlite": "sqlite",
}


def sync_database_url(database_url: str) -> str:
    """
    Тот же URL, но с синхронным драйвером (для offline-режима alembic).
    """
    url = make_url(database_url)
    return url.set(drivername=SYNC_DRIVERS.get(url.drivername, url.drivername)).render_as_string(hide_password=False)
