"""
Alembic environment for the Pagesmith schema (async engine).

  • The database URL is read from pagesmith.core.config; there is no
    URL in any ini file.
  • All model modules are imported below so Base.metadata is complete
    for `alembic revision --autogenerate`.
  • SQLite (local experiments) needs batch mode for ALTER TABLE;
    PostgreSQL runs plain DDL.

Run from the repository root (script_location is set in pyproject.toml
under [tool.alembic]):
    alembic upgrade head
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

from pagesmith.core.config import settings
from pagesmith.core.database import Base

import pagesmith.models.account  # noqa: F401
import pagesmith.models.account_key  # noqa: F401
import pagesmith.models.media  # noqa: F401
import pagesmith.models.project  # noqa: F401
import pagesmith.models.rate_limit_window  # noqa: F401

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata
DATABASE_URL = settings.DATABASE_URL


def _configure(**kwargs) -> None:  # type: ignore[no-untyped-def]
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        render_as_batch=DATABASE_URL.startswith("sqlite"),
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emit SQL to stdout instead of connecting."""
    _configure(url=DATABASE_URL, literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def _run_with_connection(connection: Connection) -> None:
    _configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    engine = create_async_engine(DATABASE_URL, poolclass=pool.NullPool)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_run_with_connection)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
