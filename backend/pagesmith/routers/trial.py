"""
Trial router — the public try-it flow. No account, no project, no tokens.

  POST /try/generate   — one-shot page from a name and a description
  POST /try/edit       — free-text edit of a page the caller holds

Nothing is persisted; the caller keeps the document. Both endpoints are
rate limited per caller address.
"""

from fastapi import APIRouter, Depends

from pagesmith.auth.rate_limit import rate_limited
from pagesmith.routers.deps import TrialOrchestrator
from pagesmith.schemas.project import TrialEditRequest, TrialGenerateRequest, TrialResponse
from pagesmith.services.generation import TrialResult
from pagesmith.services.rate_limiter import OP_TRIAL_EDIT, OP_TRIAL_GENERATE

router = APIRouter(tags=["Trial"])


@router.post(
    "/generate",
    response_model=TrialResponse,
    summary="Generate a trial page",
    dependencies=[Depends(rate_limited(OP_TRIAL_GENERATE))],
)
async def trial_generate(payload: TrialGenerateRequest, orchestrator: TrialOrchestrator) -> TrialResult:
    return await orchestrator.trial_generate(payload.business_name, payload.business_description)


@router.post(
    "/edit",
    response_model=TrialResponse,
    summary="Edit a trial page",
    dependencies=[Depends(rate_limited(OP_TRIAL_EDIT))],
)
async def trial_edit(payload: TrialEditRequest, orchestrator: TrialOrchestrator) -> TrialResult:
    return await orchestrator.trial_edit(payload.document, payload.request_text)
