"""
Account model — the owner of projects and the recipient of notifications.

Sign-up, passwords and sessions live in the external auth collaborator;
this row only carries what the engine needs: a stable id, an e-mail
address for reminders, and the nurture-sequence cursor.
"""

import datetime
import uuid

from sqlalchemy import DateTime, Integer, String, Text, Uuid
from sqlalchemy.sql import func
from sqlalchemy.orm import Mapped, mapped_column

from pagesmith.core.database import Base


class Account(Base):
    """A customer account."""

    __tablename__ = "accounts"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    name: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Highest nurture stage (days since sign-up) already e-mailed; 0 = none
    last_nurture_day: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<Account id={self.id!s:.8} email={self.email!r}>"
