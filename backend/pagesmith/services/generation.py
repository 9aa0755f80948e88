"""
Generation orchestrator — drives the content model through every flow
that produces or changes a document.

Flows:
  • create            DRAFT → PROCESSING → GENERATED (or back to DRAFT)
  • edit              paid free-text edit with history + undo snapshot
  • surgical_update   content form re-submit, diffed by the merge compiler
  • save_content      store content only, document untouched
  • trial_generate /
    trial_edit        stateless public try-it flows (no project)

Shared rules:
  • Every model call runs under asyncio.wait_for. On timeout the call is
    cancelled and its late result is never applied (GenerationTimeout).
  • Output is fence-stripped and structurally validated before it can
    reach the database (services/documents.py).
  • On ANY failure the project's status and document are exactly what
    they were before the attempt. Tokens debited for a failed edit are
    not refunded.
  • Internal failures are logged with project id + operation; callers
    only ever see catalogue messages.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from pagesmith.core.clock import utcnow
from pagesmith.core.config import settings
from pagesmith.core.errors import (
    ConfigurationError,
    EditConflict,
    EngineError,
    GenerationTimeout,
    InvalidTransition,
)
from pagesmith.core.messages import render
from pagesmith.models.project import Project, ProjectStatus as S
from pagesmith.schemas.content import StructuredContent
from pagesmith.services import history, ledger, lifecycle
from pagesmith.services.documents import clean_document
from pagesmith.services.history import EditAttempt
from pagesmith.services.images import SLOT_FIELDS, TEMPLATE_STYLES, ImageChain
from pagesmith.services.llm_client import ContentModel
from pagesmith.services.merge_compiler import FieldChange, compile_changes
from pagesmith.services.prompts import (
    build_create_prompt,
    build_edit_prompt,
    build_surgical_prompt,
    build_trial_prompt,
)

logger = logging.getLogger(__name__)


# ── Outcomes ────────────────────────────────────────────────
@dataclass(slots=True)
class EditOutcome:
    document: str
    message: str
    document_version: int
    tokens_consumed: int
    tokens_remaining: int


@dataclass(slots=True)
class SurgicalOutcome:
    applied: bool
    document_version: int
    changes: list[FieldChange] = field(default_factory=list)


@dataclass(slots=True)
class TrialResult:
    document: str
    message: str | None = None


class GenerationOrchestrator:
    """
    One orchestrator per request.

    `images` may be None — create then skips image acquisition and uses
    whatever URLs the content already has.
    """

    def __init__(
        self,
        session: AsyncSession | None,
        model: ContentModel,
        images: ImageChain | None = None,
        locale: str | None = None,
    ) -> None:
        self.session = session
        self.model = model
        self.images = images
        self.locale = locale or settings.LOCALE

    # ── Internals ───────────────────────────────────────────
    def _require_model(self) -> None:
        if not self.model.configured:
            raise ConfigurationError("content model is not configured")

    async def _call_model(self, prompt: str, timeout: float, operation: str) -> str:
        """Race the model against the deadline; the loser is cancelled."""
        try:
            return await asyncio.wait_for(self.model.generate(prompt), timeout=timeout)
        except asyncio.TimeoutError as exc:
            logger.warning("%s: model call exceeded %.0fs", operation, timeout)
            raise GenerationTimeout(f"{operation} timed out after {timeout}s") from exc

    async def _fill_images(self, project_id: uuid.UUID, content: dict[str, Any]) -> dict[str, Any]:
        """Acquire images for empty slots only; owner-supplied URLs win."""
        if self.images is None:
            return content
        empty = tuple(slot for slot, fld in SLOT_FIELDS.items() if not content.get(fld))
        if not empty:
            return content

        urls = await self.images.acquire_page_images(
            content.get("business_name", ""),
            content.get("description", ""),
            style_key=TEMPLATE_STYLES.get(content.get("template", "")),
            key_prefix=str(project_id),
            slots=empty,
        )
        filled = dict(content)
        for slot, url in urls.items():
            filled[SLOT_FIELDS[slot]] = url
        return filled

    # ── Create ──────────────────────────────────────────────
    async def create(
        self,
        project_id: uuid.UUID,
        content: StructuredContent,
        owner_id: uuid.UUID | None = None,
    ) -> Project:
        """
        Generate the first document for a DRAFT project.

        At most once per project: anything but an unlocked DRAFT is
        rejected before any side effect.
        """
        session = self.session
        project = await lifecycle.load_project(session, project_id, owner_id)
        lifecycle.ensure_not_cancelled(project)
        if project.status == S.PROCESSING.value:
            raise InvalidTransition(f"project {project_id} is generating", message_key="generation_in_progress")
        if project.status != S.DRAFT.value or project.generation_locked:
            raise InvalidTransition(f"project {project_id} already generated", message_key="already_generated")
        self._require_model()

        stored = content.stored()
        await lifecycle.transition(
            session,
            project_id,
            S.DRAFT,
            S.PROCESSING,
            message_key="generation_in_progress",
            structured_content=stored,
            name=content.business_name,
        )
        logger.info("Generating document for project %s (%s)", project_id, content.business_name)

        try:
            stored = await self._fill_images(project_id, stored)
            raw = await self._call_model(
                build_create_prompt(stored, self.locale),
                settings.GENERATION_TIMEOUT_SECONDS,
                "create",
            )
            document, _ = clean_document(raw)
        except Exception as exc:
            logger.error("Create failed for project %s: %s", project_id, getattr(exc, "detail", exc))
            await lifecycle.transition(session, project_id, S.PROCESSING, S.DRAFT)
            raise

        await lifecycle.transition(
            session,
            project_id,
            S.PROCESSING,
            S.GENERATED,
            document=document,
            document_version=Project.document_version + 1,
            generation_locked=True,
            structured_content=stored,
        )
        logger.info("Project %s generated (%d chars)", project_id, len(document))
        return await lifecycle.refresh(session, project)

    # ── Paid free-text edit ─────────────────────────────────
    async def edit(
        self,
        project_id: uuid.UUID,
        request_text: str,
        owner_id: uuid.UUID | None = None,
    ) -> EditOutcome:
        session = self.session
        project = await lifecycle.load_project(session, project_id, owner_id)
        lifecycle.ensure_has_document(project)
        self._require_model()

        price = ledger.edit_price()
        base_version = project.document_version
        snapshot = project.document

        # Debit BEFORE the call; raises InsufficientTokens with nothing spent
        remaining = await ledger.debit(session, project_id, price)

        try:
            raw = await self._call_model(
                build_edit_prompt(snapshot, request_text, self.locale),
                settings.EDIT_TIMEOUT_SECONDS,
                "edit",
            )
            document, summary = clean_document(raw, with_summary=True)
            new_version = await history.commit_edit(
                session,
                project_id,
                base_version=base_version,
                new_document=document,
                attempt=EditAttempt.success(request_text, price, snapshot),
            )
        except Exception as exc:
            if isinstance(exc, EditConflict):
                reason = "document changed concurrently"
            elif isinstance(exc, EngineError):
                reason = exc.kind.value
            else:
                reason = "internal error"
                logger.exception("Edit crashed for project %s", project_id)
            await history.record_attempt(
                session,
                project_id,
                EditAttempt.failure(request_text, price, reason),
            )
            logger.warning("Edit failed for project %s: %s (tokens not refunded)", project_id, reason)
            raise

        logger.info("Edit applied to project %s → v%d", project_id, new_version)
        return EditOutcome(
            document=document,
            message=summary or render("edit_applied", self.locale),
            document_version=new_version,
            tokens_consumed=price,
            tokens_remaining=remaining,
        )

    # ── Surgical update ─────────────────────────────────────
    async def surgical_update(
        self,
        project_id: uuid.UUID,
        content: StructuredContent,
        owner_id: uuid.UUID | None = None,
    ) -> SurgicalOutcome:
        """
        Apply only the fields that changed to the existing document.

        No changes → no model call, document_version unchanged.
        """
        session = self.session
        project = await lifecycle.load_project(session, project_id, owner_id)
        lifecycle.ensure_has_document(project)

        new_content = content.stored()
        previous = project.structured_content
        base_version = project.document_version
        changes = compile_changes(previous, new_content)
        if not changes:
            logger.info("Surgical update on project %s: no changes", project_id)
            return SurgicalOutcome(applied=False, document_version=base_version)

        self._require_model()
        logger.info(
            "Surgical update on project %s: %s",
            project_id, "; ".join(c.description for c in changes),
        )
        raw = await self._call_model(
            build_surgical_prompt(project.document, previous, new_content, changes),
            settings.GENERATION_TIMEOUT_SECONDS,
            "surgical_update",
        )
        document, _ = clean_document(raw)

        stmt = (
            update(Project)
            .where(
                Project.id == project_id,
                Project.document_version == base_version,
                Project.status != S.CANCELLED.value,
            )
            .values(
                structured_content=new_content,
                document=document,
                name=content.business_name,
                document_version=base_version + 1,
                updated_at=utcnow(),
            )
            .returning(Project.id)
            .execution_options(synchronize_session=False)
        )
        if (await session.execute(stmt)).scalar_one_or_none() is None:
            await session.rollback()
            raise EditConflict(f"project {project_id} changed during surgical update")
        await session.commit()

        return SurgicalOutcome(applied=True, document_version=base_version + 1, changes=changes)

    # ── Save content only ───────────────────────────────────
    async def save_content(
        self,
        project_id: uuid.UUID,
        content: StructuredContent,
        owner_id: uuid.UUID | None = None,
    ) -> Project:
        session = self.session
        project = await lifecycle.load_project(session, project_id, owner_id)
        lifecycle.ensure_not_cancelled(project)

        stmt = (
            update(Project)
            .where(Project.id == project_id, Project.status != S.CANCELLED.value)
            .values(
                structured_content=content.stored(),
                name=content.business_name,
                updated_at=utcnow(),
            )
            .returning(Project.id)
            .execution_options(synchronize_session=False)
        )
        if (await session.execute(stmt)).scalar_one_or_none() is None:
            await session.rollback()
            raise InvalidTransition(f"project {project_id} is cancelled", message_key="project_cancelled")
        await session.commit()
        return await lifecycle.refresh(session, project)

    # ── Trial flows (stateless) ─────────────────────────────
    def _cap(self, document: str) -> str:
        limit = settings.MAX_TRIAL_DOCUMENT_CHARS
        return document[:limit] if len(document) > limit else document

    async def trial_generate(self, business_name: str, business_description: str) -> TrialResult:
        self._require_model()
        logger.info("Trial generate for %r", business_name[:60])
        raw = await self._call_model(
            build_trial_prompt(business_name, business_description, self.locale),
            settings.GENERATION_TIMEOUT_SECONDS,
            "trial_generate",
        )
        document, _ = clean_document(raw)
        return TrialResult(document=self._cap(document))

    async def trial_edit(self, document: str, request_text: str) -> TrialResult:
        self._require_model()
        logger.info("Trial edit: %r", request_text[:80])
        raw = await self._call_model(
            build_edit_prompt(document, request_text, self.locale),
            settings.EDIT_TIMEOUT_SECONDS,
            "trial_edit",
        )
        edited, summary = clean_document(raw, with_summary=True)
        return TrialResult(
            document=self._cap(edited),
            message=summary or render("edit_applied", self.locale),
        )
