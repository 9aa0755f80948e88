"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Accounts and their keys, projects (content, document, ledger, history,
public addresses, grace-period state), media, invoices, and the shared
rate-limit counters.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    # ── accounts ────────────────────────────────────────────
    op.create_table(
        "accounts",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("last_nurture_day", sa.Integer(), server_default="0", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )

    # ── account_keys ────────────────────────────────────────
    op.create_table(
        "account_keys",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("account_id", sa.Uuid(), nullable=False),
        sa.Column("key_hash", sa.Text(), nullable=False),
        sa.Column("prefix", sa.String(12), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["account_id"], ["accounts.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("key_hash"),
    )
    op.create_index("ix_account_keys_account_id", "account_keys", ["account_id"])

    # ── projects ────────────────────────────────────────────
    op.create_table(
        "projects",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("owner_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("plan_name", sa.String(100), nullable=True),
        sa.Column("subscription_id", sa.String(255), nullable=True),
        sa.Column("status", sa.String(20), server_default="DRAFT", nullable=False),
        sa.Column("status_before_cancel", sa.String(20), nullable=True),
        sa.Column("generation_locked", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sent_reminder_milestones", JSON, server_default="[]", nullable=False),
        sa.Column("structured_content", JSON, nullable=True),
        sa.Column("document", sa.Text(), nullable=True),
        sa.Column("document_version", sa.Integer(), server_default="0", nullable=False),
        sa.Column("token_balance", sa.Integer(), server_default="0", nullable=False),
        sa.Column("tokens_used", sa.Integer(), server_default="0", nullable=False),
        sa.Column("edit_history", JSON, server_default="[]", nullable=False),
        sa.Column("history_revision", sa.Integer(), server_default="0", nullable=False),
        sa.Column("last_edited_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("subdomain", sa.String(63), nullable=True),
        sa.Column("custom_domain", sa.String(255), nullable=True),
        sa.Column("custom_domain_verified", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["owner_id"], ["accounts.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("subdomain"),
        sa.UniqueConstraint("custom_domain"),
        sa.CheckConstraint("token_balance >= 0", name="ck_token_balance_non_neg"),
        sa.CheckConstraint("document_version >= 0", name="ck_document_version_non_neg"),
        sa.CheckConstraint(
            "status IN ('DRAFT', 'PROCESSING', 'GENERATED', 'PUBLISHED', 'LIVE', 'CANCELLED')",
            name="ck_project_status_valid",
        ),
    )
    op.create_index("ix_projects_owner_id", "projects", ["owner_id"])
    op.create_index("ix_projects_cancelled_at", "projects", ["cancelled_at"])

    # ── media_assets ────────────────────────────────────────
    op.create_table(
        "media_assets",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("project_id", sa.Uuid(), nullable=False),
        sa.Column("storage_key", sa.Text(), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column("content_type", sa.String(100), nullable=True),
        sa.Column("source", sa.String(20), server_default="upload", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_media_assets_project_id", "media_assets", ["project_id"])

    # ── invoices ────────────────────────────────────────────
    op.create_table(
        "invoices",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("project_id", sa.Uuid(), nullable=False),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("external_reference", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("external_reference"),
    )
    op.create_index("ix_invoices_project_id", "invoices", ["project_id"])

    # ── rate_limit_windows ──────────────────────────────────
    op.create_table(
        "rate_limit_windows",
        sa.Column("identity", sa.String(255), nullable=False),
        sa.Column("operation", sa.String(50), nullable=False),
        sa.Column("window_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("request_count", sa.Integer(), server_default="0", nullable=False),
        sa.PrimaryKeyConstraint("identity", "operation", "window_start"),
    )


def downgrade() -> None:
    op.drop_table("rate_limit_windows")
    op.drop_index("ix_invoices_project_id", table_name="invoices")
    op.drop_table("invoices")
    op.drop_index("ix_media_assets_project_id", table_name="media_assets")
    op.drop_table("media_assets")
    op.drop_index("ix_projects_cancelled_at", table_name="projects")
    op.drop_index("ix_projects_owner_id", table_name="projects")
    op.drop_table("projects")
    op.drop_index("ix_account_keys_account_id", table_name="account_keys")
    op.drop_table("account_keys")
    op.drop_table("accounts")
