"""
Token ledger — the only code that mutates Project.token_balance.

Design decisions:
  • Debit is ONE conditional UPDATE … WHERE token_balance >= :amount
    RETURNING token_balance. Two concurrent debits cannot both pass the
    check. The CHECK constraint on the table is the backstop.
  • Debit runs BEFORE any external call and is committed immediately —
    a crash during the model call cannot resurrect spent tokens.
  • Failed edits are not refunded (business rule). No refund path.
  • Purchases are credited together with an Invoice row whose
    external_reference is unique, so a replayed webhook is refused.
"""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pagesmith.core.config import settings
from pagesmith.core.errors import DuplicatePurchase, InsufficientTokens, ProjectNotFound
from pagesmith.models.media import Invoice
from pagesmith.models.project import Project

logger = logging.getLogger(__name__)

# ── Token packages (key → tokens, price EUR) ────────────────
TOKEN_PACKAGES: dict[str, tuple[int, Decimal]] = {
    "tokens_500": (500, Decimal("5.00")),
    "tokens_1500": (1500, Decimal("12.00")),
    "tokens_5000": (5000, Decimal("35.00")),
}


def edit_price() -> int:
    """Tokens charged for one free-text AI edit."""
    return settings.TOKENS_PER_EDIT


async def get_balance(session: AsyncSession, project_id: uuid.UUID) -> int:
    stmt = select(Project.token_balance).where(Project.id == project_id)
    balance = (await session.execute(stmt)).scalar_one_or_none()
    if balance is None:
        raise ProjectNotFound(f"project {project_id} not found")
    return balance


async def debit(session: AsyncSession, project_id: uuid.UUID, amount: int) -> int:
    """
    Atomically take `amount` tokens from a project.

    Returns the new balance.
    Raises InsufficientTokens (with required/remaining) when the balance
    is too low — nothing is changed in that case.
    """
    if amount <= 0:
        raise ValueError("debit amount must be positive")

    stmt = (
        update(Project)
        .where(Project.id == project_id, Project.token_balance >= amount)
        .values(
            token_balance=Project.token_balance - amount,
            tokens_used=Project.tokens_used + amount,
        )
        .returning(Project.token_balance)
        .execution_options(synchronize_session=False)
    )
    new_balance = (await session.execute(stmt)).scalar_one_or_none()

    if new_balance is None:
        await session.rollback()
        remaining = await get_balance(session, project_id)
        logger.info(
            "Debit refused: project=%s needed=%d remaining=%d",
            project_id, amount, remaining,
        )
        raise InsufficientTokens(tokens_needed=amount, tokens_remaining=remaining)

    await session.commit()
    logger.info("Debited %d tokens from project=%s (balance=%d)", amount, project_id, new_balance)
    return new_balance


async def credit(session: AsyncSession, project_id: uuid.UUID, amount: int) -> int:
    """Add tokens to a project. Returns the new balance. Caller commits."""
    if amount <= 0:
        raise ValueError("credit amount must be positive")

    stmt = (
        update(Project)
        .where(Project.id == project_id)
        .values(token_balance=Project.token_balance + amount)
        .returning(Project.token_balance)
        .execution_options(synchronize_session=False)
    )
    new_balance = (await session.execute(stmt)).scalar_one_or_none()
    if new_balance is None:
        raise ProjectNotFound(f"project {project_id} not found")
    return new_balance


async def record_purchase(
    session: AsyncSession,
    project_id: uuid.UUID,
    package_key: str,
    external_reference: str,
) -> int:
    """
    Credit a completed token purchase and record its invoice in one unit.

    Raises DuplicatePurchase when the external reference was already used.
    """
    if package_key not in TOKEN_PACKAGES:
        raise ValueError(f"unknown token package {package_key!r}")
    tokens, price = TOKEN_PACKAGES[package_key]

    existing = await session.execute(
        select(Invoice.id).where(Invoice.external_reference == external_reference)
    )
    if existing.scalar_one_or_none() is not None:
        raise DuplicatePurchase(f"reference {external_reference} already credited")

    new_balance = await credit(session, project_id, tokens)
    session.add(
        Invoice(
            project_id=project_id,
            kind="TOKEN_PURCHASE",
            amount=price,
            description=f"Token purchase: {tokens} tokens",
            external_reference=external_reference,
        )
    )
    try:
        await session.commit()
    except IntegrityError as exc:
        # Lost a race with a concurrent delivery of the same event
        await session.rollback()
        raise DuplicatePurchase(f"reference {external_reference} already credited") from exc

    logger.info(
        "Credited %d tokens to project=%s via %s (balance=%d)",
        tokens, project_id, package_key, new_balance,
    )
    return new_balance
