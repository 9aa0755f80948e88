"""
Project lifecycle state machine.

Edges:
    DRAFT      → PROCESSING, CANCELLED
    PROCESSING → GENERATED, DRAFT
    GENERATED  → PUBLISHED, CANCELLED
    PUBLISHED  → GENERATED, LIVE, CANCELLED
    LIVE       → GENERATED, PUBLISHED, CANCELLED
    CANCELLED  → <status_before_cancel>   (reactivation)

Every transition is a compare-and-swap:
    UPDATE projects SET status = :target, …
    WHERE id = :id AND status = :expected
The row that loses the race matches zero rows and gets InvalidTransition,
so concurrent requests on one project serialize without explicit locks.

Deletion after the grace period is not an edge here — it is a row delete
owned by services/retention.py.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from pagesmith.core.clock import utcnow
from pagesmith.core.errors import InvalidTransition, ProjectNotFound
from pagesmith.models.project import Project, ProjectStatus as S

logger = logging.getLogger(__name__)

TRANSITIONS: dict[S, frozenset[S]] = {
    S.DRAFT: frozenset({S.PROCESSING, S.CANCELLED}),
    S.PROCESSING: frozenset({S.GENERATED, S.DRAFT}),
    S.GENERATED: frozenset({S.PUBLISHED, S.CANCELLED}),
    S.PUBLISHED: frozenset({S.GENERATED, S.LIVE, S.CANCELLED}),
    S.LIVE: frozenset({S.GENERATED, S.PUBLISHED, S.CANCELLED}),
    # Reactivation target is whatever status_before_cancel says
    S.CANCELLED: frozenset({S.DRAFT, S.GENERATED, S.PUBLISHED, S.LIVE}),
}

HAS_DOCUMENT = frozenset({S.GENERATED, S.PUBLISHED, S.LIVE})
PUBLISHED_STATES = frozenset({S.PUBLISHED, S.LIVE})


def can_transition(current: str, target: str) -> bool:
    return S(target) in TRANSITIONS[S(current)]


# ── Loading ─────────────────────────────────────────────────
async def load_project(
    session: AsyncSession,
    project_id: uuid.UUID,
    owner_id: uuid.UUID | None = None,
) -> Project:
    """
    Fetch a project, optionally scoped to an owner.

    A project that exists but belongs to someone else is reported exactly
    like a missing one.
    """
    stmt = select(Project).where(Project.id == project_id)
    if owner_id is not None:
        stmt = stmt.where(Project.owner_id == owner_id)
    project = (await session.execute(stmt)).scalar_one_or_none()
    if project is None:
        raise ProjectNotFound(f"project {project_id} not found for owner {owner_id}")
    return project


async def refresh(session: AsyncSession, project: Project) -> Project:
    await session.refresh(project)
    return project


# ── Guards ──────────────────────────────────────────────────
def ensure_not_cancelled(project: Project) -> None:
    if project.status == S.CANCELLED.value:
        raise InvalidTransition(
            f"project {project.id} is cancelled",
            message_key="project_cancelled",
        )


def ensure_has_document(project: Project) -> None:
    """Edit / surgical update / undo preconditions."""
    ensure_not_cancelled(project)
    if project.status not in {s.value for s in HAS_DOCUMENT} or not project.document:
        raise InvalidTransition(
            f"project {project.id} has no document (status={project.status})",
            message_key="not_generated",
        )


# ── Compare-and-swap ────────────────────────────────────────
async def transition(
    session: AsyncSession,
    project_id: uuid.UUID,
    expected: S | str,
    target: S | str,
    *,
    message_key: str = "invalid_transition",
    **values: Any,
) -> None:
    """
    Move a project from `expected` to `target`, writing `values` with it.

    Commits on success. Raises InvalidTransition when the edge is not in
    TRANSITIONS or the row is no longer in `expected`.
    """
    expected = S(expected)
    target = S(target)
    if target not in TRANSITIONS[expected]:
        raise InvalidTransition(f"{expected.value} → {target.value} is not an edge", message_key=message_key)

    values.setdefault("updated_at", utcnow())
    stmt = (
        update(Project)
        .where(Project.id == project_id, Project.status == expected.value)
        .values(status=target.value, **values)
        .returning(Project.id)
        .execution_options(synchronize_session=False)
    )
    matched = (await session.execute(stmt)).scalar_one_or_none()
    if matched is None:
        await session.rollback()
        raise InvalidTransition(
            f"project {project_id} is not {expected.value}",
            message_key=message_key,
        )

    await session.commit()
    logger.info("Project %s: %s → %s", project_id, expected.value, target.value)


# ── Subscription-driven edges ───────────────────────────────
async def cancel(session: AsyncSession, project_id: uuid.UUID) -> Project:
    """
    Subscription ended: start the grace period.

    cancelled_at, status and subscription_id change in the same UPDATE.
    Cancelling an already-cancelled project is a no-op. A project in
    PROCESSING must settle first.
    """
    project = await load_project(session, project_id)
    current = S(project.status)

    if current == S.CANCELLED:
        logger.info("Project %s already cancelled — nothing to do", project_id)
        return project
    if current == S.PROCESSING:
        raise InvalidTransition(
            f"project {project_id} is generating",
            message_key="generation_in_progress",
        )

    await transition(
        session,
        project_id,
        current,
        S.CANCELLED,
        status_before_cancel=current.value,
        cancelled_at=utcnow(),
        subscription_id=None,
        sent_reminder_milestones=[],
    )
    return await refresh(session, project)


async def reactivate(
    session: AsyncSession,
    project_id: uuid.UUID,
    subscription_id: str | None = None,
) -> Project:
    """
    Subscription renewed during the grace period: restore the prior status.

    Clears cancelled_at and the reminder milestones.
    """
    project = await load_project(session, project_id)
    if project.status != S.CANCELLED.value:
        raise InvalidTransition(f"project {project_id} is not cancelled")

    restored = S(project.status_before_cancel or S.DRAFT.value)
    values: dict[str, Any] = {
        "status_before_cancel": None,
        "cancelled_at": None,
        "sent_reminder_milestones": [],
    }
    if subscription_id is not None:
        values["subscription_id"] = subscription_id

    await transition(session, project_id, S.CANCELLED, restored, **values)
    return await refresh(session, project)
