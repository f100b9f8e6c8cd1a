import asyncio
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine
from alembic import context

import delicute.models  # noqa: F401  регистрирует все модели в Base.metadata
from delicute.config import settings
from delicute.db.base import Base
from delicute.db.session import sync_database_url

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

# alembic -x database_url=... upgrade head
database_url = context.get_x_argument(as_dictionary=True).get("database_url", settings.DATABASE_URL)


def configure(**kwargs):
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        # SQLite не умеет ALTER COLUMN, нужен batch-режим
        render_as_batch=make_url(database_url).get_backend_name() == "sqlite",
        **kwargs,
    )


def run_migrations_offline():
    """Offline mode: SQL-скрипт через синхронный драйвер."""
    configure(
        url=sync_database_url(database_url),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection):
    configure(connection=connection)

    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online():
    engine = create_async_engine(database_url, poolclass=pool.NullPool)
    try:
        async with engine.begin() as connection:
            await connection.run_sync(do_run_migrations)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
