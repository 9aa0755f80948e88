import asyncio

import pytest
from sqlalchemy import select

from pagesmith.core.errors import RateLimitExceeded
from pagesmith.models.rate_limit_window import RateLimitWindow
from pagesmith.services.rate_limiter import (
    OP_EDIT,
    OP_TRIAL_GENERATE,
    DatabaseRateLimiter,
    MemoryRateLimiter,
    limit_for,
)


class Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


async def test_memory_allows_up_to_limit_then_rejects():
    limiter = MemoryRateLimiter(window_seconds=3600, clock=Clock())
    for _ in range(limit_for(OP_TRIAL_GENERATE)):
        await limiter.check("1.2.3.4", OP_TRIAL_GENERATE)
    with pytest.raises(RateLimitExceeded):
        await limiter.check("1.2.3.4", OP_TRIAL_GENERATE)


async def test_memory_window_resets_after_expiry():
    clock = Clock()
    limiter = MemoryRateLimiter(window_seconds=60, clock=clock)
    for _ in range(limit_for(OP_TRIAL_GENERATE)):
        await limiter.check("1.2.3.4", OP_TRIAL_GENERATE)

    clock.now += 60
    await limiter.check("1.2.3.4", OP_TRIAL_GENERATE)


async def test_memory_keys_are_independent():
    limiter = MemoryRateLimiter(window_seconds=3600, clock=Clock())
    for _ in range(limit_for(OP_TRIAL_GENERATE)):
        await limiter.check("1.2.3.4", OP_TRIAL_GENERATE)

    await limiter.check("5.6.7.8", OP_TRIAL_GENERATE)
    await limiter.check("1.2.3.4", OP_EDIT)


async def test_rejected_requests_do_not_extend_the_count():
    clock = Clock()
    limiter = MemoryRateLimiter(window_seconds=60, clock=clock)
    limit = limit_for(OP_TRIAL_GENERATE)
    for _ in range(limit):
        await limiter.check("ip", OP_TRIAL_GENERATE)
    for _ in range(3):
        with pytest.raises(RateLimitExceeded):
            await limiter.check("ip", OP_TRIAL_GENERATE)
    assert limiter._windows[("ip", OP_TRIAL_GENERATE)].count == limit


def test_unknown_operation_is_an_error():
    with pytest.raises(ValueError):
        limit_for("publish")


async def test_database_backend_shares_one_counter(session_factory):
    limit = limit_for(OP_TRIAL_GENERATE)
    async with session_factory() as first, session_factory() as second:
        # Two "instances" with their own sessions
        a = DatabaseRateLimiter(first)
        b = DatabaseRateLimiter(second)
        for i in range(limit):
            await (a if i % 2 else b).check("9.9.9.9", OP_TRIAL_GENERATE)
        with pytest.raises(RateLimitExceeded):
            await a.check("9.9.9.9", OP_TRIAL_GENERATE)


async def test_database_backend_never_overshoots_under_concurrency(session_factory):
    limit = limit_for(OP_TRIAL_GENERATE)
    sessions = [session_factory() for _ in range(limit + 3)]

    async def one_check(session):
        async with session:
            await DatabaseRateLimiter(session).check("7.7.7.7", OP_TRIAL_GENERATE)

    results = await asyncio.gather(*(one_check(s) for s in sessions), return_exceptions=True)

    rejected = [r for r in results if isinstance(r, RateLimitExceeded)]
    assert len(rejected) == 3
    assert results.count(None) == limit
    async with session_factory() as session:
        counts = (await session.execute(select(RateLimitWindow.request_count))).scalars().all()
    assert counts == [limit]
