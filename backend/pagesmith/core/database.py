"""
Async database access for Pagesmith.

  • build_engine() picks engine options per backend: PostgreSQL (asyncpg)
    gets a pre-pinged pool; SQLite (aiosqlite, local runs and tests) gets
    NullPool so connections never outlive the event loop that opened them.
  • Models share one declarative Base, which Alembic reads for
    autogenerate.
  • JSONType is JSONB on PostgreSQL and JSON everywhere else.
  • Routes get a session from get_db_session; scripts use session_scope().
    Services commit their own units of work in both cases.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from pagesmith.core.config import settings

JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Declarative base shared by every Pagesmith model."""


def build_engine(url: str, *, echo: bool = False) -> AsyncEngine:
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=echo, poolclass=NullPool)
    return create_async_engine(url, echo=echo, pool_pre_ping=True)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Objects stay readable after commit; services refresh explicitly
    return async_sessionmaker(bind=bind, class_=AsyncSession, expire_on_commit=False)


engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)
async_session_factory = build_session_factory(engine)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session (FastAPI dependency, overridden in tests)."""
    async with async_session_factory() as session:
        yield session


@asynccontextmanager
async def session_scope() -> AsyncGenerator[AsyncSession, None]:
    """Session for scripts and one-off jobs outside a request."""
    async with async_session_factory() as session:
        yield session
