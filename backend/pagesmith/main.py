"""
FastAPI application entrypoint.

Lifespan:
  • On startup: verify DB connectivity, report which collaborators are configured.
  • On shutdown: dispose the engine cleanly.

Routers:
  • /projects — generation, editing, publishing, media (account key)
  • /try      — public trial flow (rate limited)
  • /billing  — payment webhooks (shared secret)
  • /cron     — periodic jobs (cron secret)
  • /health   — shallow liveness probe

Errors:
  Every EngineError becomes {"error": {kind, code, message, retryable, …}}
  with the localized catalogue message; request validation failures use
  the same envelope with kind "validation".
"""

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from pagesmith.core.config import settings
from pagesmith.core.database import engine
from pagesmith.core.errors import AuthenticationFailed, ContentValidationError, EngineError
from pagesmith.routers.billing import router as billing_router
from pagesmith.routers.cron import router as cron_router
from pagesmith.routers.media import router as media_router
from pagesmith.routers.projects import router as projects_router
from pagesmith.routers.publishing import router as publishing_router
from pagesmith.routers.trial import router as trial_router

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan ────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""

    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database connection verified ✓")
    except (SQLAlchemyError, OSError):
        logger.warning(
            "Could not reach the database on startup. "
            "The app will start, but requests will fail until the DB is available."
        )

    if not settings.GEMINI_API_KEY:
        logger.warning("GEMINI_API_KEY is not set — generation endpoints will answer 503")
    if not settings.SMTP_HOST:
        logger.info("SMTP_HOST is not set — e-mails are logged, not sent")
    if not settings.VERCEL_API_TOKEN:
        logger.info("VERCEL_API_TOKEN is not set — domain provisioning is log-only")

    yield  # ← application runs here

    await engine.dispose()
    logger.info("Database engine disposed ✓")


# ── App ─────────────────────────────────────────────────────
app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    description=(
        "Website generation and lifecycle engine — structured content in, "
        "hosted single-file pages out, with paid AI edits, undo, publishing "
        "and a subscription grace period."
    ),
    lifespan=lifespan,
)


# ── Error envelope ──────────────────────────────────────────
@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.kind.value, exc.detail)
    else:
        logger.info("%s %s rejected: %s (%s)", request.method, request.url.path, exc.kind.value, exc.detail)
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationFailed) else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.to_payload(settings.LOCALE)},
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    error = ContentValidationError("request validation failed")
    payload = error.to_payload(settings.LOCALE)
    payload["fields"] = [
        {"loc": [str(part) for part in item.get("loc", ())], "msg": item.get("msg", "")}
        for item in exc.errors()
    ]
    return JSONResponse(status_code=error.status_code, content={"error": payload})


# Mount routers
app.include_router(projects_router, prefix="/projects")
app.include_router(publishing_router, prefix="/projects")
app.include_router(media_router, prefix="/projects")
app.include_router(trial_router, prefix="/try")
app.include_router(billing_router, prefix="/billing")
app.include_router(cron_router, prefix="/cron")


# ── Health check ────────────────────────────────────────────
@app.get(
    "/health",
    tags=["System"],
    summary="Liveness probe",
)
async def health_check() -> dict[str, str]:
    """Shallow health check — confirms the process is alive."""
    return {"status": "healthy"}
