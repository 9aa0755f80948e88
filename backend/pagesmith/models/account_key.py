"""
Account key model — bearer credential that identifies an account.

Security notes:
  • Raw keys are NEVER stored. Only a SHA-256 hash is persisted.
  • `prefix` keeps the first 12 characters for identification in logs/UI.
  • `is_active` allows revocation without deletion (audit trail).
"""

import uuid
import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.sql import func
from sqlalchemy.orm import Mapped, mapped_column

from pagesmith.core.database import Base


class AccountKey(Base):
    """Hashed API key belonging to an account."""

    __tablename__ = "account_keys"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    key_hash: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    prefix: Mapped[str] = mapped_column(String(12), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return (
            f"<AccountKey id={self.id!s:.8} prefix={self.prefix!r} "
            f"active={self.is_active}>"
        )
