"""
Billing router — webhooks from the payment collaborator.

  POST /billing/checkout-completed     — subscription bought: account + DRAFT project
  POST /billing/token-purchase         — credit a token package + invoice
  POST /billing/subscription-ended     — start the grace period (CANCELLED)
  POST /billing/subscription-renewed   — reactivate a cancelled project

Every call must carry X-Billing-Secret. Replays of a paid event
(same external_reference) answer 409 and change nothing.
"""

import logging

from fastapi import APIRouter, Depends, status

from pagesmith.auth.dependencies import require_billing_secret
from pagesmith.routers.deps import DbSession
from pagesmith.schemas.billing import (
    CheckoutCompleted,
    CheckoutResponse,
    SubscriptionEnded,
    SubscriptionRenewed,
    SubscriptionResponse,
    TokenPurchase,
    TokenPurchaseResponse,
)
from pagesmith.services import ledger, lifecycle
from pagesmith.services.subscriptions import CheckoutResult, complete_checkout

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Billing"], dependencies=[Depends(require_billing_secret)])


@router.post(
    "/checkout-completed",
    response_model=CheckoutResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a project for a new subscription",
    description=(
        "Finds or creates the account by e-mail and creates a DRAFT project "
        "with the initial token grant. A raw API key is returned only when "
        "the account was created by this call."
    ),
)
async def checkout_completed(payload: CheckoutCompleted, session: DbSession) -> CheckoutResult:
    return await complete_checkout(session, **payload.model_dump())


@router.post(
    "/token-purchase",
    response_model=TokenPurchaseResponse,
    summary="Credit a token package",
)
async def token_purchase(payload: TokenPurchase, session: DbSession) -> TokenPurchaseResponse:
    await lifecycle.load_project(session, payload.project_id)
    balance = await ledger.record_purchase(
        session, payload.project_id, payload.package, payload.external_reference,
    )
    return TokenPurchaseResponse(project_id=payload.project_id, token_balance=balance)


@router.post(
    "/subscription-ended",
    response_model=SubscriptionResponse,
    summary="Cancel a project's subscription",
)
async def subscription_ended(payload: SubscriptionEnded, session: DbSession) -> SubscriptionResponse:
    project = await lifecycle.cancel(session, payload.project_id)
    return SubscriptionResponse(project_id=project.id, status=project.status)


@router.post(
    "/subscription-renewed",
    response_model=SubscriptionResponse,
    summary="Reactivate a cancelled project",
)
async def subscription_renewed(payload: SubscriptionRenewed, session: DbSession) -> SubscriptionResponse:
    project = await lifecycle.reactivate(session, payload.project_id, payload.subscription_id)
    return SubscriptionResponse(project_id=project.id, status=project.status)
