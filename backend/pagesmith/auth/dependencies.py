"""
FastAPI dependencies for caller authentication.

Account keys (owner endpoints):
  1. Extract Bearer token from the Authorization header
  2. Hash it (SHA-256) and look up account_keys by hash
  3. Require is_active and load the owning Account
  4. Return AuthContext

Shared secrets (machine callers):
  • /cron     — Authorization: Bearer <CRON_SECRET>
  • /billing  — X-Billing-Secret: <BILLING_WEBHOOK_SECRET>
  An unset secret rejects every call.

Every failure mode raises the same AuthenticationFailed (401); raw keys
are never logged.
"""

from __future__ import annotations

import hmac
import logging
import uuid
from dataclasses import dataclass

from fastapi import Depends, Header
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pagesmith.auth.hashing import hash_account_key
from pagesmith.core.config import settings
from pagesmith.core.database import get_db_session
from pagesmith.core.errors import AuthenticationFailed
from pagesmith.models.account import Account
from pagesmith.models.account_key import AccountKey

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AuthContext:
    """Authenticated request context injected into every owner route."""

    account: Account
    key_id: uuid.UUID

    @property
    def account_id(self) -> uuid.UUID:
        return self.account.id


def _bearer_token(authorization: str | None) -> str:
    if not authorization:
        raise AuthenticationFailed("missing Authorization header")
    parts = authorization.split(" ", maxsplit=1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        raise AuthenticationFailed("malformed Authorization header")
    return parts[1].strip()


async def get_current_account(
    authorization: str | None = Header(default=None, alias="Authorization"),
    session: AsyncSession = Depends(get_db_session),
) -> AuthContext:
    """
    Resolve a Bearer account key to an AuthContext.

    Usage in routers:
        Auth = Annotated[AuthContext, Depends(get_current_account)]
    """
    token_hash = hash_account_key(_bearer_token(authorization))

    stmt = (
        select(AccountKey, Account)
        .join(Account, Account.id == AccountKey.account_id)
        .where(AccountKey.key_hash == token_hash)
    )
    row = (await session.execute(stmt)).one_or_none()
    if row is None:
        raise AuthenticationFailed("unknown key")

    key, account = row
    if not key.is_active:
        logger.info("Rejected inactive key %s", key.prefix)
        raise AuthenticationFailed("inactive key")

    return AuthContext(account=account, key_id=key.id)


def _secret_matches(presented: str | None, expected: str) -> bool:
    if not expected or not presented:
        return False
    return hmac.compare_digest(presented.encode("utf-8"), expected.encode("utf-8"))


async def require_cron_secret(
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> None:
    token = _bearer_token(authorization)
    if not _secret_matches(token, settings.CRON_SECRET):
        logger.warning("Rejected cron call with wrong secret")
        raise AuthenticationFailed("bad cron secret")


async def require_billing_secret(
    secret: str | None = Header(default=None, alias="X-Billing-Secret"),
) -> None:
    if not _secret_matches(secret, settings.BILLING_WEBHOOK_SECRET):
        logger.warning("Rejected billing call with wrong secret")
        raise AuthenticationFailed("bad billing secret")
