"""
FastAPI dependencies for rate limit enforcement.

Identity is the caller address, resolved in order:
  X-Forwarded-For (first hop) → X-Real-IP → socket peer → "unknown"

One dependency factory per operation class:
    TrialGenerateLimit = Depends(rate_limited(OP_TRIAL_GENERATE))

Order in request pipeline: (AUTH →) RATE LIMIT → ROUTER LOGIC.

On limit exceeded the engine's RateLimitExceeded propagates to the app
exception handler (429). Remaining quota and retry-after headers are not
exposed.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from pagesmith.core.database import get_db_session
from pagesmith.services.rate_limiter import RateLimiter, get_limiter


def client_identity(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

    real_ip = request.headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    if request.client and request.client.host:
        return request.client.host
    return "unknown"


async def get_rate_limiter(
    session: AsyncSession = Depends(get_db_session),
) -> RateLimiter:
    return get_limiter(session)


def rate_limited(operation: str) -> Callable[..., Awaitable[str]]:
    """Build a dependency that counts one `operation` request for the caller."""

    async def enforce(
        request: Request,
        limiter: RateLimiter = Depends(get_rate_limiter),
    ) -> str:
        identity = client_identity(request)
        await limiter.check(identity, operation)
        return identity

    return enforce
