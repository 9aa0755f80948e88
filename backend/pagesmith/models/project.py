"""
Project model — one generated website and everything billed against it.

A project owns its structured content, the generated document, the token
balance, the edit history, and its public addresses.

Design notes:
  • status transitions go through compare-and-swap UPDATEs
    (services/lifecycle.py) — never assign `status` on a loaded instance.
  • token_balance is mutated only by services/ledger.py; the CHECK
    constraint is the last line of the non-negative invariant.
  • edit_history lives on the row (not a separate table) because undo must
    read-modify-write it atomically together with `document`.
    history_revision is bumped on every history write for CAS.
  • updated_at has no ORM onupdate: services set it when content, the
    document or the status changes, so ledger and reminder bookkeeping
    never count as unpublished changes.
"""

import datetime
import enum
import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import Mapped, mapped_column

from pagesmith.core.database import Base, JSONType


class ProjectStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PROCESSING = "PROCESSING"
    GENERATED = "GENERATED"
    PUBLISHED = "PUBLISHED"
    LIVE = "LIVE"
    CANCELLED = "CANCELLED"


class Project(Base):
    """One customer website — the unit of ownership and billing."""

    __tablename__ = "projects"

    # ── Identity / ownership ────────────────────────────────
    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    plan_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    subscription_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # ── Lifecycle ───────────────────────────────────────────
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ProjectStatus.DRAFT.value,
    )
    status_before_cancel: Mapped[str | None] = mapped_column(String(20), nullable=True)
    generation_locked: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
    )
    cancelled_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    sent_reminder_milestones: Mapped[list] = mapped_column(
        JSONType, nullable=False, default=list,
    )

    # ── Content + document ──────────────────────────────────
    structured_content: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    document: Mapped[str | None] = mapped_column(Text, nullable=True)
    document_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # ── Ledger ──────────────────────────────────────────────
    token_balance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tokens_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # ── Edit history (ordered, append-only except undo) ─────
    edit_history: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    history_revision: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_edited_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    # ── Public addresses ────────────────────────────────────
    subdomain: Mapped[str | None] = mapped_column(String(63), nullable=True, unique=True)
    custom_domain: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    custom_domain_verified: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
    )
    published_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    # ── Timestamps ──────────────────────────────────────────
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        CheckConstraint("token_balance >= 0", name="ck_token_balance_non_neg"),
        CheckConstraint("document_version >= 0", name="ck_document_version_non_neg"),
        CheckConstraint(
            "status IN ('DRAFT', 'PROCESSING', 'GENERATED', 'PUBLISHED', 'LIVE', 'CANCELLED')",
            name="ck_project_status_valid",
        ),
        Index("ix_projects_cancelled_at", "cancelled_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<Project id={self.id!s:.8} name={self.name!r} "
            f"status={self.status} tokens={self.token_balance}>"
        )
