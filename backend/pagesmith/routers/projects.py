"""
Projects router — owner-facing generation and editing.

  GET    /projects                          — list the caller's projects
  GET    /projects/{id}                     — project with content + document
  POST   /projects/{id}/generate            — first generation (once per project)
  PUT    /projects/{id}/content             — save content, document untouched
  POST   /projects/{id}/content/apply       — surgical update from changed content
  POST   /projects/{id}/edit                — paid free-text AI edit
  GET    /projects/{id}/history             — edit attempts, newest last
  POST   /projects/{id}/undo                — restore the last succeeded edit
  DELETE /projects/{id}                     — delete the project and its media

A project owned by another account answers 404, same as a missing one.
"""

import logging
import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy import select

from pagesmith.auth.rate_limit import rate_limited
from pagesmith.core.config import settings
from pagesmith.core.errors import InvalidTransition
from pagesmith.core.messages import render
from pagesmith.models.project import Project, ProjectStatus
from pagesmith.routers.deps import Auth, DbSession, Orchestrator, Provisioner, StorageDep
from pagesmith.schemas.content import StructuredContent
from pagesmith.schemas.project import (
    EditRequest,
    EditResponse,
    HistoryEntryResponse,
    HistoryResponse,
    ProjectDetailResponse,
    ProjectResponse,
    SurgicalUpdateResponse,
    UndoResponse,
)
from pagesmith.services import history, lifecycle, publishing, retention
from pagesmith.services.rate_limiter import OP_EDIT, OP_GENERATE

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Projects"])


@router.get(
    "",
    response_model=list[ProjectResponse],
    summary="List the caller's projects",
)
async def list_projects(session: DbSession, auth: Auth) -> list[Project]:
    stmt = (
        select(Project)
        .where(Project.owner_id == auth.account_id)
        .order_by(Project.created_at.desc())
    )
    return list((await session.execute(stmt)).scalars().all())


@router.get(
    "/{project_id}",
    response_model=ProjectDetailResponse,
    summary="Get one project with its content and document",
)
async def get_project(project_id: uuid.UUID, session: DbSession, auth: Auth) -> Project:
    return await lifecycle.load_project(session, project_id, auth.account_id)


@router.post(
    "/{project_id}/generate",
    response_model=ProjectDetailResponse,
    summary="Generate the first document",
    description=(
        "DRAFT → PROCESSING → GENERATED. Empty image slots are filled by the "
        "image chain. Allowed once per project; on failure the project is "
        "back in DRAFT with nothing changed. Rate limited."
    ),
    dependencies=[Depends(rate_limited(OP_GENERATE))],
)
async def generate_project(
    project_id: uuid.UUID,
    content: StructuredContent,
    auth: Auth,
    orchestrator: Orchestrator,
) -> Project:
    return await orchestrator.create(project_id, content, owner_id=auth.account_id)


@router.put(
    "/{project_id}/content",
    response_model=ProjectDetailResponse,
    summary="Save structured content without touching the document",
)
async def save_content(
    project_id: uuid.UUID,
    content: StructuredContent,
    auth: Auth,
    orchestrator: Orchestrator,
) -> Project:
    return await orchestrator.save_content(project_id, content, owner_id=auth.account_id)


@router.post(
    "/{project_id}/content/apply",
    response_model=SurgicalUpdateResponse,
    summary="Apply changed content to the existing document",
    description=(
        "Diffs the submitted content against the stored content and asks the "
        "model to change only those parts of the page. No changes means no "
        "model call. Not charged."
    ),
)
async def apply_content(
    project_id: uuid.UUID,
    content: StructuredContent,
    auth: Auth,
    orchestrator: Orchestrator,
) -> SurgicalUpdateResponse:
    outcome = await orchestrator.surgical_update(project_id, content, owner_id=auth.account_id)
    if outcome.applied:
        message = "; ".join(change.description for change in outcome.changes)
    else:
        message = render("no_changes", settings.LOCALE)
    return SurgicalUpdateResponse(
        applied=outcome.applied,
        message=message,
        document_version=outcome.document_version,
        changes=[{"field": c.field, "description": c.description} for c in outcome.changes],
    )


@router.post(
    "/{project_id}/edit",
    response_model=EditResponse,
    summary="Apply a free-text AI edit",
    description=(
        "Debits the per-edit token price before the model call. Failed edits "
        "are recorded in history and are not refunded. Rate limited."
    ),
    dependencies=[Depends(rate_limited(OP_EDIT))],
)
async def edit_project(
    project_id: uuid.UUID,
    payload: EditRequest,
    auth: Auth,
    orchestrator: Orchestrator,
):
    return await orchestrator.edit(project_id, payload.request_text, owner_id=auth.account_id)


@router.get(
    "/{project_id}/history",
    response_model=HistoryResponse,
    summary="List edit attempts",
)
async def get_history(project_id: uuid.UUID, session: DbSession, auth: Auth) -> HistoryResponse:
    project = await lifecycle.load_project(session, project_id, auth.account_id)
    records = history.read_history(project)
    return HistoryResponse(
        entries=[HistoryEntryResponse.model_validate(r) for r in records],
        can_undo=any(r.get("succeeded") for r in records),
    )


@router.post(
    "/{project_id}/undo",
    response_model=UndoResponse,
    summary="Undo the last succeeded edit",
)
async def undo_edit(project_id: uuid.UUID, session: DbSession, auth: Auth) -> UndoResponse:
    project = await lifecycle.load_project(session, project_id, auth.account_id)
    lifecycle.ensure_has_document(project)
    version, record = await history.undo(session, project_id)
    return UndoResponse(
        document=record["document_snapshot"],
        document_version=version,
        undone_request=record["request_text"],
    )


@router.delete(
    "/{project_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a project permanently",
    description=(
        "Releases its public addresses, removes stored media, invoices and the "
        "project itself. Not allowed while a generation is running."
    ),
)
async def delete_project(
    project_id: uuid.UUID,
    session: DbSession,
    auth: Auth,
    storage: StorageDep,
    provisioner: Provisioner,
) -> None:
    project = await lifecycle.load_project(session, project_id, auth.account_id)
    if project.status == ProjectStatus.PROCESSING.value:
        raise InvalidTransition(f"project {project_id} is generating", message_key="generation_in_progress")

    await publishing.release_addresses(provisioner, project)
    removed = await retention.purge_project(session, storage, project_id)
    logger.info("Project %s deleted by its owner (%d media objects removed)", project_id, removed)
