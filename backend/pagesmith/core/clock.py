"""
Time helpers.

All timestamps the engine writes are timezone-aware UTC. SQLite (tests)
hands back naive datetimes, so anything doing arithmetic on a loaded
value goes through as_utc() first.
"""

import datetime


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def as_utc(value: datetime.datetime | None) -> datetime.datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value.astimezone(datetime.timezone.utc)
