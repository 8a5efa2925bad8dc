# alembic/env.py
# Async migration runner bound to the application's metadata and DB_URL

import asyncio

from alembic import context
from sqlalchemy.ext.asyncio import create_async_engine

from sessionshare.config import get_settings
from sessionshare.db.base import metadata, to_async_url
from sessionshare.models import share_tables  # noqa: F401

config = context.config
target_metadata = metadata


def _database_url() -> str:
    # alembic.ini / programmatic override wins over the environment
    return to_async_url(config.get_main_option("sqlalchemy.url") or get_settings().DB_URL)


def run_migrations_offline() -> None:
    context.configure(
        url=_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def _do_run_migrations(connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    engine = create_async_engine(_database_url())
    async with engine.connect() as connection:
        await connection.run_sync(_do_run_migrations)
    await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
