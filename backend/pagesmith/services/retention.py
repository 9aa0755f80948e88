"""
Periodic jobs: grace-period automaton and account nurture.

Both are triggered by the cron router and return a JSON-serializable
report. A failure on one project (or account) is logged and counted;
the run moves on to the next one.

Deletion reminders
  days = whole days since cancelled_at
  days >= GRACE_PERIOD_DAYS → delete media objects (best effort), media
                              rows, invoices, the project; send confirmation
  otherwise                 → every due milestone not yet in
                              sent_reminder_milestones gets one e-mail,
                              then the day is persisted

Nurture
  stages 3 / 7 / 14 days after signup; one e-mail per account per run
  (the highest eligible stage), then last_nurture_day moves forward.
"""

from __future__ import annotations

import datetime
import logging
import smtplib
import uuid
from dataclasses import dataclass
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pagesmith.core.clock import as_utc, utcnow
from pagesmith.core.config import settings
from pagesmith.core.errors import EngineError
from pagesmith.models.account import Account
from pagesmith.models.media import Invoice, MediaAsset
from pagesmith.models.project import Project
from pagesmith.services.notifications import Mailer, render_email
from pagesmith.services.storage import Storage

logger = logging.getLogger(__name__)

# Failures a single project/account can produce without aborting the run
JOB_ERRORS = (EngineError, SQLAlchemyError, smtplib.SMTPException, OSError)


@dataclass(frozen=True, slots=True)
class Milestone:
    day: int
    label: str
    urgency: str


REMINDER_MILESTONES: tuple[Milestone, ...] = (
    Milestone(30, "2 months", "low"),
    Milestone(60, "1 month", "medium"),
    Milestone(83, "7 days", "high"),
    Milestone(87, "3 days", "critical"),
    Milestone(89, "24 hours", "critical"),
)

NURTURE_STAGES: tuple[int, ...] = (3, 7, 14)


@dataclass(frozen=True, slots=True)
class _CancelledProject:
    id: uuid.UUID
    name: str
    plan_name: str | None
    cancelled_at: datetime.datetime
    sent: tuple[int, ...]
    owner_email: str
    owner_name: str | None


def days_between(start: datetime.datetime, now: datetime.datetime) -> int:
    return int((as_utc(now) - as_utc(start)).total_seconds() // 86400)


def due_milestones(days: int, sent: tuple[int, ...] | list[int]) -> list[Milestone]:
    return [m for m in REMINDER_MILESTONES if days >= m.day and m.day not in sent]


def nurture_stage(days_since_signup: int, last_sent: int) -> int | None:
    eligible = [s for s in NURTURE_STAGES if days_since_signup >= s and last_sent < s]
    return max(eligible) if eligible else None


# ── Deletion reminders ──────────────────────────────────────
async def _cancelled_projects(session: AsyncSession) -> list[_CancelledProject]:
    stmt = (
        select(
            Project.id,
            Project.name,
            Project.plan_name,
            Project.cancelled_at,
            Project.sent_reminder_milestones,
            Account.email,
            Account.name.label("owner_name"),
        )
        .join(Account, Account.id == Project.owner_id)
        .where(Project.cancelled_at.is_not(None))
        .order_by(Project.cancelled_at)
    )
    rows = (await session.execute(stmt)).all()
    return [
        _CancelledProject(
            id=row.id,
            name=row.name,
            plan_name=row.plan_name,
            cancelled_at=row.cancelled_at,
            sent=tuple(row.sent_reminder_milestones or ()),
            owner_email=row.email,
            owner_name=row.owner_name,
        )
        for row in rows
    ]


async def purge_project(session: AsyncSession, storage: Storage, project_id: uuid.UUID) -> int:
    """Delete a project and its dependents. Returns the number of storage objects removed."""
    keys = (
        await session.execute(select(MediaAsset.storage_key).where(MediaAsset.project_id == project_id))
    ).scalars().all()

    removed = 0
    if storage.configured:
        for key in keys:
            try:
                await storage.delete(key)
                removed += 1
            except EngineError as exc:
                logger.warning("Could not delete storage object %s: %s", key, exc.detail)

    await session.execute(delete(MediaAsset).where(MediaAsset.project_id == project_id))
    await session.execute(delete(Invoice).where(Invoice.project_id == project_id))
    await session.execute(delete(Project).where(Project.id == project_id))
    await session.commit()
    return removed


async def run_deletion_reminders(
    session: AsyncSession,
    mailer: Mailer,
    storage: Storage,
    now: datetime.datetime | None = None,
) -> dict[str, Any]:
    now = now or utcnow()
    report: dict[str, Any] = {"reminders_sent": 0, "projects_deleted": 0, "errors": 0, "details": []}

    projects = await _cancelled_projects(session)
    logger.info("Deletion reminders: %d cancelled projects", len(projects))

    for project in projects:
        days = days_between(project.cancelled_at, now)
        days_left = settings.GRACE_PERIOD_DAYS - days

        if days_left <= 0:
            try:
                removed = await purge_project(session, storage, project.id)
            except JOB_ERRORS as exc:
                await session.rollback()
                report["errors"] += 1
                report["details"].append(
                    {"project": str(project.id), "action": "delete_error", "error": type(exc).__name__}
                )
                logger.error("Failed to delete project %s: %s", project.id, exc)
                continue

            report["projects_deleted"] += 1
            report["details"].append(
                {"project": str(project.id), "action": "deleted", "days": days, "media_removed": removed}
            )
            logger.info("Permanently deleted project %s (%s)", project.id, project.name)

            message = render_email(
                "deletion_confirmation",
                project_name=project.name,
                user_name=project.owner_name,
            )
            try:
                await mailer.send(to_email=project.owner_email, subject=message.subject, html_body=message.html)
            except (smtplib.SMTPException, OSError) as exc:
                logger.error("Deletion confirmation for project %s not sent: %s", project.id, exc)
            continue

        sent = list(project.sent)
        for milestone in due_milestones(days, sent):
            message = render_email(
                "deletion_reminder",
                urgency=milestone.urgency,
                project_name=project.name,
                plan_name=project.plan_name or "-",
                user_name=project.owner_name,
                label=milestone.label,
                days_left=days_left,
            )
            try:
                await mailer.send(to_email=project.owner_email, subject=message.subject, html_body=message.html)
                sent.append(milestone.day)
                await session.execute(
                    update(Project)
                    .where(Project.id == project.id, Project.cancelled_at.is_not(None))
                    .values(sent_reminder_milestones=sent)
                    .execution_options(synchronize_session=False)
                )
                await session.commit()
            except JOB_ERRORS as exc:
                await session.rollback()
                report["errors"] += 1
                report["details"].append(
                    {"project": str(project.id), "milestone": milestone.day, "error": type(exc).__name__}
                )
                logger.error(
                    "Reminder %d for project %s failed: %s", milestone.day, project.id, exc,
                )
                break

            report["reminders_sent"] += 1
            report["details"].append(
                {
                    "project": str(project.id),
                    "action": "reminder_sent",
                    "milestone": milestone.day,
                    "label": milestone.label,
                    "days_left": days_left,
                }
            )
            logger.info("Reminder sent for project %s: %s before deletion", project.id, milestone.label)

    logger.info(
        "Deletion reminders done: %d sent, %d deleted, %d errors",
        report["reminders_sent"], report["projects_deleted"], report["errors"],
    )
    return report


# ── Nurture ─────────────────────────────────────────────────
async def run_nurture(
    session: AsyncSession,
    mailer: Mailer,
    now: datetime.datetime | None = None,
) -> dict[str, Any]:
    now = now or utcnow()
    report: dict[str, Any] = {"sent": 0, "errors": 0, "details": []}

    stmt = select(Account.id, Account.email, Account.name, Account.created_at, Account.last_nurture_day).where(
        Account.last_nurture_day < max(NURTURE_STAGES)
    )
    accounts = (await session.execute(stmt)).all()

    for account in accounts:
        stage = nurture_stage(days_between(account.created_at, now), account.last_nurture_day)
        if stage is None:
            continue

        message = render_email(f"nurture_{stage}", user_name=account.name)
        try:
            await mailer.send(to_email=account.email, subject=message.subject, html_body=message.html)
            await session.execute(
                update(Account)
                .where(Account.id == account.id, Account.last_nurture_day < stage)
                .values(last_nurture_day=stage)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
        except JOB_ERRORS as exc:
            await session.rollback()
            report["errors"] += 1
            report["details"].append({"account": str(account.id), "stage": stage, "error": type(exc).__name__})
            logger.error("Nurture stage %d for account %s failed: %s", stage, account.id, exc)
            continue

        report["sent"] += 1
        report["details"].append({"account": str(account.id), "stage": stage})

    logger.info("Nurture done: %d sent, %d errors", report["sent"], report["errors"])
    return report
