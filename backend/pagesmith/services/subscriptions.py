"""
Subscription purchases: the only place projects are created.

A completed checkout finds or creates the Account by e-mail, creates a
DRAFT project with the initial token grant, and records the
SUBSCRIPTION invoice, all in one commit. A replayed checkout (same
external_reference) is refused before anything is written.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pagesmith.auth.hashing import display_prefix, generate_account_key
from pagesmith.core.config import settings
from pagesmith.core.errors import DuplicatePurchase
from pagesmith.models.account import Account
from pagesmith.models.account_key import AccountKey
from pagesmith.models.media import Invoice
from pagesmith.models.project import Project, ProjectStatus

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CheckoutResult:
    project_id: uuid.UUID
    account_id: uuid.UUID
    token_balance: int
    api_key: str | None = None


async def complete_checkout(
    session: AsyncSession,
    *,
    email: str,
    customer_name: str | None,
    plan_name: str,
    subscription_id: str,
    project_name: str,
    amount: Decimal,
    external_reference: str,
) -> CheckoutResult:
    duplicate = await session.execute(
        select(Invoice.id).where(Invoice.external_reference == external_reference)
    )
    if duplicate.scalar_one_or_none() is not None:
        raise DuplicatePurchase(f"checkout {external_reference} already processed")

    email = email.strip().lower()
    account = (await session.execute(select(Account).where(Account.email == email))).scalar_one_or_none()

    raw_key: str | None = None
    if account is None:
        account = Account(id=uuid.uuid4(), email=email, name=customer_name)
        session.add(account)
        raw_key, key_hash = generate_account_key()
        session.add(AccountKey(account_id=account.id, key_hash=key_hash, prefix=display_prefix(raw_key)))

    project = Project(
        id=uuid.uuid4(),
        owner_id=account.id,
        name=project_name,
        plan_name=plan_name,
        subscription_id=subscription_id,
        status=ProjectStatus.DRAFT.value,
        token_balance=settings.INITIAL_TOKEN_GRANT,
        edit_history=[],
        sent_reminder_milestones=[],
    )
    session.add(project)
    session.add(
        Invoice(
            project_id=project.id,
            kind="SUBSCRIPTION",
            amount=amount,
            description=f"Subscription: {plan_name}",
            external_reference=external_reference,
        )
    )
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise DuplicatePurchase(f"checkout {external_reference} already processed") from exc

    logger.info(
        "Checkout %s: project %s created for account %s (plan=%s)",
        external_reference, project.id, account.id, plan_name,
    )
    return CheckoutResult(
        project_id=project.id,
        account_id=account.id,
        token_balance=settings.INITIAL_TOKEN_GRANT,
        api_key=raw_key,
    )
