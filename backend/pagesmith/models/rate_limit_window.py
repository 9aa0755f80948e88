"""
Shared fixed-window counters for the database-backed rate limiter.

Each row is the request count for one (identity, operation) pair in one
window. Composite PK: (identity, operation, window_start) — one row per
bucket, so INSERT … ON CONFLICT DO UPDATE increments atomically across
every app instance.

Only used when RATE_LIMIT_BACKEND=database; the default limiter keeps
its windows in process memory.
"""

import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from pagesmith.core.database import Base


class RateLimitWindow(Base):
    """Per-identity, per-operation request counter."""

    __tablename__ = "rate_limit_windows"

    identity: Mapped[str] = mapped_column(String(255), primary_key=True)
    operation: Mapped[str] = mapped_column(String(50), primary_key=True)
    window_start: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        primary_key=True,
    )
    request_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return (
            f"<RateLimitWindow {self.operation}:{self.identity} "
            f"start={self.window_start:%H:%M} count={self.request_count}>"
        )
