"""
Pydantic v2 schemas for the payment-collaborator webhooks and cron reports.

The payment collaborator has already verified the payment; these
payloads only carry what the engine needs to act on it. Every paid
event carries an external_reference, which is unique across invoices.
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


# ── Requests ────────────────────────────────────────────────
class CheckoutCompleted(BaseModel):
    """A subscription was bought: create the project (and account if new)."""

    model_config = ConfigDict(extra="forbid")

    email: str = Field(..., max_length=320, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    customer_name: str | None = Field(default=None, max_length=200)
    plan_name: str = Field(..., min_length=1, max_length=100, examples=["Basic"])
    subscription_id: str = Field(..., min_length=1, max_length=255)
    project_name: str = Field(default="New website", min_length=1, max_length=200)
    amount: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    external_reference: str = Field(..., min_length=1, max_length=255)


class TokenPurchase(BaseModel):
    model_config = ConfigDict(extra="forbid")

    project_id: uuid.UUID
    package: Literal["tokens_500", "tokens_1500", "tokens_5000"]
    external_reference: str = Field(..., min_length=1, max_length=255)


class SubscriptionEnded(BaseModel):
    model_config = ConfigDict(extra="forbid")

    project_id: uuid.UUID


class SubscriptionRenewed(BaseModel):
    model_config = ConfigDict(extra="forbid")

    project_id: uuid.UUID
    subscription_id: str | None = Field(default=None, max_length=255)


# ── Responses ───────────────────────────────────────────────
class CheckoutResponse(BaseModel):
    project_id: uuid.UUID
    account_id: uuid.UUID
    token_balance: int
    # Returned once, only when the checkout created the account
    api_key: str | None = None


class TokenPurchaseResponse(BaseModel):
    project_id: uuid.UUID
    token_balance: int


class SubscriptionResponse(BaseModel):
    project_id: uuid.UUID
    status: str


class ReminderReport(BaseModel):
    reminders_sent: int
    projects_deleted: int
    errors: int
    details: list[dict[str, Any]]


class NurtureReport(BaseModel):
    sent: int
    errors: int
    details: list[dict[str, Any]]
