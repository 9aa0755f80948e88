"""
Fixed-window rate limiter for content-authoring operations.

Keyed by (identity, operation) where identity is the caller address.
One window per key:
  • no window, or window expired → start a new window with count 1, allow
  • count below the limit        → increment, allow
  • otherwise                    → reject (RateLimitExceeded)

Two backends behind one interface:
  • MemoryRateLimiter   — default. Per-process dict guarded by an
    asyncio.Lock. Under-counts when several instances run side by side.
  • DatabaseRateLimiter — RATE_LIMIT_BACKEND=database. Counter rows in
    rate_limit_windows. One upsert both checks the limit and increments,
    so every instance shares one count and concurrent checks never
    overshoot it.

Design decisions:
  • Check BEFORE increment — a rejected (429) request doesn't inflate
    the counter.
  • Windows are aligned to the epoch in the database backend (bucketing,
    one row per window) and anchored at the first request in memory.
"""

from __future__ import annotations

import asyncio
import datetime
import logging
import time
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from pagesmith.core.config import settings
from pagesmith.core.errors import RateLimitExceeded
from pagesmith.models.rate_limit_window import RateLimitWindow

logger = logging.getLogger(__name__)

# ── Operation classes ───────────────────────────────────────
OP_TRIAL_GENERATE = "trial_generate"
OP_TRIAL_EDIT = "trial_edit"
OP_GENERATE = "generate"
OP_EDIT = "edit"


def limit_for(operation: str) -> int:
    """Requests allowed per window for an operation class."""
    limits = {
        OP_TRIAL_GENERATE: settings.TRIAL_GENERATE_LIMIT,
        OP_TRIAL_EDIT: settings.TRIAL_EDIT_LIMIT,
        OP_GENERATE: settings.GENERATE_LIMIT,
        OP_EDIT: settings.EDIT_LIMIT,
    }
    try:
        return limits[operation]
    except KeyError:
        raise ValueError(f"unknown rate-limited operation {operation!r}") from None


class RateLimiter(Protocol):
    async def check(self, identity: str, operation: str) -> None:
        """Count one request; raise RateLimitExceeded when over the limit."""
        ...


# ── In-memory backend ───────────────────────────────────────
@dataclass(slots=True)
class _Window:
    started_at: float
    count: int


class MemoryRateLimiter:
    """Per-process fixed windows. `clock` is injectable for tests."""

    def __init__(
        self,
        window_seconds: int | None = None,
        clock=time.monotonic,
    ) -> None:
        self.window_seconds = window_seconds or settings.RATE_LIMIT_WINDOW_SECONDS
        self._clock = clock
        self._windows: dict[tuple[str, str], _Window] = {}
        self._lock = asyncio.Lock()

    async def check(self, identity: str, operation: str) -> None:
        limit = limit_for(operation)
        key = (identity, operation)

        async with self._lock:
            now = self._clock()
            window = self._windows.get(key)

            if window is None or now - window.started_at >= self.window_seconds:
                self._windows[key] = _Window(started_at=now, count=1)
                self._evict_expired(now)
                return

            if window.count >= limit:
                logger.info("Rate limit hit: %s:%s (%d/%d)", operation, identity, window.count, limit)
                raise RateLimitExceeded(f"{operation} limit exceeded for {identity}")

            window.count += 1

    def _evict_expired(self, now: float) -> None:
        expired = [
            key for key, window in self._windows.items()
            if now - window.started_at >= self.window_seconds
        ]
        for key in expired:
            del self._windows[key]


# ── Database backend ────────────────────────────────────────
class DatabaseRateLimiter:
    """Shared fixed windows in the rate_limit_windows table."""

    def __init__(self, session: AsyncSession, window_seconds: int | None = None) -> None:
        self.session = session
        self.window_seconds = window_seconds or settings.RATE_LIMIT_WINDOW_SECONDS

    def _bucket(self, now: datetime.datetime) -> datetime.datetime:
        """Floor a timestamp to the start of its window (UTC, epoch-aligned)."""
        epoch = int(now.timestamp())
        start = epoch - epoch % self.window_seconds
        return datetime.datetime.fromtimestamp(start, tz=datetime.timezone.utc)

    async def _take_slot(self, identity: str, operation: str, window_start, limit: int) -> int | None:
        """
        Count one request in a single upsert. The limit sits in the
        conflict WHERE, so a full window updates nothing and returns no row.
        """
        dialect = self.session.get_bind().dialect.name
        insert = sqlite_insert if dialect == "sqlite" else pg_insert
        stmt = insert(RateLimitWindow).values(
            identity=identity,
            operation=operation,
            window_start=window_start,
            request_count=1,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["identity", "operation", "window_start"],
            set_={"request_count": RateLimitWindow.request_count + 1},
            where=RateLimitWindow.request_count < limit,
        ).returning(RateLimitWindow.request_count)
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def check(self, identity: str, operation: str) -> None:
        limit = limit_for(operation)
        window_start = self._bucket(datetime.datetime.now(datetime.timezone.utc))

        count = await self._take_slot(identity, operation, window_start, limit) if limit > 0 else None
        if count is None:
            await self.session.rollback()
            logger.info("Rate limit hit: %s:%s (limit %d)", operation, identity, limit)
            raise RateLimitExceeded(f"{operation} limit exceeded for {identity}")

        await self.session.commit()  # persist counters before the slow work starts


# Process-wide instance for the default backend
memory_limiter = MemoryRateLimiter()


def get_limiter(session: AsyncSession) -> RateLimiter:
    """Pick the configured backend."""
    if settings.RATE_LIMIT_BACKEND == "database":
        return DatabaseRateLimiter(session)
    return memory_limiter
