"""
Edit/undo manager.

History lives on the project row as an ordered JSON list of attempt
records. It is append-only; the one exception is undo, which truncates
the tail starting at the restored record.

Concurrency:
  Every history write is a compare-and-swap on history_revision:
      UPDATE … SET edit_history = :new, history_revision = :rev + 1
      WHERE id = :id AND history_revision = :rev
  A write that loses the race re-reads and retries, so two appends never
  overwrite each other. Writes that replace the document (successful edit,
  undo) are additionally guarded by document_version, so a surgical update
  landing in between is never overwritten.

Snapshots are full documents. Nothing here caps the list — see DESIGN.md.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import asdict, dataclass, field
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from pagesmith.core.clock import utcnow
from pagesmith.core.errors import EditConflict, NothingToUndo, ProjectNotFound
from pagesmith.models.project import Project

logger = logging.getLogger(__name__)

MAX_CAS_ATTEMPTS = 5


@dataclass(slots=True)
class EditAttempt:
    """One free-text edit attempt, succeeded or not."""

    request_text: str
    succeeded: bool
    timestamp: str = field(default_factory=lambda: utcnow().isoformat())
    tokens_consumed: int = 0
    document_snapshot: str | None = None  # document BEFORE the edit; success only
    error_summary: str | None = None      # failure only

    @classmethod
    def success(cls, request_text: str, tokens: int, snapshot: str) -> "EditAttempt":
        return cls(
            request_text=request_text,
            succeeded=True,
            tokens_consumed=tokens,
            document_snapshot=snapshot,
        )

    @classmethod
    def failure(cls, request_text: str, tokens: int, error_summary: str) -> "EditAttempt":
        return cls(
            request_text=request_text,
            succeeded=False,
            tokens_consumed=tokens,
            error_summary=error_summary,
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        if self.succeeded:
            data.pop("error_summary")
        else:
            data.pop("document_snapshot")
        return data


@dataclass(frozen=True, slots=True)
class _HistoryState:
    history: list[dict[str, Any]]
    revision: int
    document: str | None
    document_version: int


async def _read_state(session: AsyncSession, project_id: uuid.UUID) -> _HistoryState:
    stmt = select(
        Project.edit_history,
        Project.history_revision,
        Project.document,
        Project.document_version,
    ).where(Project.id == project_id)
    row = (await session.execute(stmt)).one_or_none()
    if row is None:
        raise ProjectNotFound(f"project {project_id} not found")
    return _HistoryState(
        history=list(row.edit_history or []),
        revision=row.history_revision,
        document=row.document,
        document_version=row.document_version,
    )


async def _swap(
    session: AsyncSession,
    project_id: uuid.UUID,
    revision: int,
    history: list[dict[str, Any]],
    extra_where: tuple = (),
    **values: Any,
) -> bool:
    """One CAS write. Commits and returns True when it landed."""
    stmt = (
        update(Project)
        .where(Project.id == project_id, Project.history_revision == revision, *extra_where)
        .values(
            edit_history=history,
            history_revision=revision + 1,
            **values,
        )
        .returning(Project.id)
        .execution_options(synchronize_session=False)
    )
    matched = (await session.execute(stmt)).scalar_one_or_none()
    if matched is None:
        await session.rollback()
        return False
    await session.commit()
    return True


# ── Public operations ───────────────────────────────────────
def read_history(project: Project) -> list[dict[str, Any]]:
    return list(project.edit_history or [])


async def record_attempt(
    session: AsyncSession,
    project_id: uuid.UUID,
    attempt: EditAttempt,
) -> None:
    """Append one record, retrying on history contention."""
    for _ in range(MAX_CAS_ATTEMPTS):
        state = await _read_state(session, project_id)
        if await _swap(session, project_id, state.revision, state.history + [attempt.to_dict()]):
            return
    raise EditConflict(f"could not append history for project {project_id}")


async def commit_edit(
    session: AsyncSession,
    project_id: uuid.UUID,
    *,
    base_version: int,
    new_document: str,
    attempt: EditAttempt,
    **values: Any,
) -> int:
    """
    Write a successful edit: new document + history record in one UPDATE.

    `base_version` is the document_version the edit was computed from.
    If the document moved on meanwhile, nothing is written and
    EditConflict is raised — the caller records a failed attempt.
    Returns the new document_version.
    """
    for _ in range(MAX_CAS_ATTEMPTS):
        state = await _read_state(session, project_id)
        if state.document_version != base_version:
            raise EditConflict(
                f"project {project_id} document moved from v{base_version} "
                f"to v{state.document_version} during the edit"
            )
        now = utcnow()
        landed = await _swap(
            session,
            project_id,
            state.revision,
            state.history + [attempt.to_dict()],
            extra_where=(Project.document_version == base_version,),
            document=new_document,
            document_version=base_version + 1,
            last_edited_at=now,
            updated_at=now,
            **values,
        )
        if landed:
            return base_version + 1
    raise EditConflict(f"history contention on project {project_id}")


async def undo(session: AsyncSession, project_id: uuid.UUID) -> tuple[int, dict[str, Any]]:
    """
    Restore the snapshot of the last succeeded edit.

    Drops that record and everything after it (including later failed
    attempts), bumps document_version. No tokens move; status is untouched.

    Returns (new document_version, the undone record).
    """
    base_version: int | None = None
    for _ in range(MAX_CAS_ATTEMPTS):
        state = await _read_state(session, project_id)
        if base_version is None:
            base_version = state.document_version
        elif state.document_version != base_version:
            raise EditConflict(
                f"project {project_id} document moved from v{base_version} "
                f"to v{state.document_version} during undo"
            )

        index = next(
            (i for i in range(len(state.history) - 1, -1, -1) if state.history[i].get("succeeded")),
            None,
        )
        if index is None:
            raise NothingToUndo(f"project {project_id} has no succeeded edit")

        record = state.history[index]
        snapshot = record.get("document_snapshot")
        if not snapshot:
            raise NothingToUndo(f"project {project_id} record {index} has no snapshot")

        now = utcnow()
        landed = await _swap(
            session,
            project_id,
            state.revision,
            state.history[:index],
            extra_where=(Project.document_version == state.document_version,),
            document=snapshot,
            document_version=state.document_version + 1,
            last_edited_at=now,
            updated_at=now,
        )
        if landed:
            logger.info(
                "Undo on project %s: restored snapshot of record %d, history %d → %d",
                project_id, index, len(state.history), index,
            )
            return state.document_version + 1, record
    raise EditConflict(f"history contention on project {project_id}")
