"""
Publishing: subdomains, custom domains and the PUBLISHED / LIVE states.

    publish                GENERATED → PUBLISHED  (provisions <slug>.<ROOT_DOMAIN>)
    republish              PUBLISHED|LIVE, refreshes published_at only
    unpublish              PUBLISHED|LIVE → GENERATED
    add_custom_domain      PUBLISHED|LIVE, stores the domain unverified
    verify_custom_domain   PUBLISHED → LIVE once the provider confirms
    remove_custom_domain   LIVE → PUBLISHED

Provisioning happens before the status write. Deprovisioning on
unpublish/remove is best effort: a provider failure is logged and the
project still leaves the published state.

Custom-domain bookkeeping keeps updated_at as it was, so it never shows
up as an unpublished content change.
"""

from __future__ import annotations

import datetime
import logging
import re
import uuid
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pagesmith.core.clock import as_utc, utcnow
from pagesmith.core.config import settings
from pagesmith.core.errors import (
    ContentValidationError,
    DomainInUse,
    EngineError,
    InvalidTransition,
)
from pagesmith.models.project import Project, ProjectStatus as S
from pagesmith.services import lifecycle
from pagesmith.services.domains import DomainProvisioner, generate_subdomain, normalize_domain

logger = logging.getLogger(__name__)

# Content edited this long after publishing counts as unpublished changes
UNPUSHED_TOLERANCE = datetime.timedelta(seconds=2)

_DOMAIN_RE = re.compile(r"^(?=.{4,253}$)([a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z]{2,63}$")


@dataclass(slots=True)
class PublicationStatus:
    status: str
    published: bool
    published_at: datetime.datetime | None
    updated_at: datetime.datetime | None
    has_unpushed_changes: bool
    subdomain: str | None
    subdomain_url: str | None
    custom_domain: str | None
    custom_domain_url: str | None
    custom_domain_verified: bool


def subdomain_host(subdomain: str) -> str:
    return f"{subdomain}.{settings.ROOT_DOMAIN}"


def publication_status(project: Project) -> PublicationStatus:
    published_at = as_utc(project.published_at)
    updated_at = as_utc(project.updated_at)
    unpushed = bool(published_at and updated_at and updated_at - published_at > UNPUSHED_TOLERANCE)
    return PublicationStatus(
        status=project.status,
        published=published_at is not None,
        published_at=published_at,
        updated_at=updated_at,
        has_unpushed_changes=unpushed,
        subdomain=project.subdomain,
        subdomain_url=f"https://{subdomain_host(project.subdomain)}" if project.subdomain else None,
        custom_domain=project.custom_domain,
        custom_domain_url=f"https://{project.custom_domain}" if project.custom_domain else None,
        custom_domain_verified=project.custom_domain_verified,
    )


def _ensure_published(project: Project) -> S:
    lifecycle.ensure_not_cancelled(project)
    current = S(project.status)
    if current not in lifecycle.PUBLISHED_STATES:
        raise InvalidTransition(f"project {project.id} is not published", message_key="not_published")
    return current


async def _deprovision(provisioner: DomainProvisioner, domain: str) -> None:
    try:
        await provisioner.remove(domain)
    except EngineError as exc:
        logger.error("Could not deprovision %s: %s", domain, exc.detail)


async def release_addresses(provisioner: DomainProvisioner, project: Project) -> None:
    """Deprovision the subdomain and custom domain, best effort."""
    if project.subdomain:
        await _deprovision(provisioner, subdomain_host(project.subdomain))
    if project.custom_domain:
        await _deprovision(provisioner, project.custom_domain)


async def _write(session: AsyncSession, project_id: uuid.UUID, statuses: set[str], **values: Any) -> None:
    """Plain field update guarded by the current status."""
    stmt = (
        update(Project)
        .where(Project.id == project_id, Project.status.in_(statuses))
        .values(**values)
        .returning(Project.id)
        .execution_options(synchronize_session=False)
    )
    try:
        matched = (await session.execute(stmt)).scalar_one_or_none()
    except IntegrityError as exc:
        await session.rollback()
        raise DomainInUse(f"unique address conflict on project {project_id}") from exc
    if matched is None:
        await session.rollback()
        raise InvalidTransition(f"project {project_id} left {sorted(statuses)}", message_key="not_published")
    await session.commit()


async def _subdomain_taken(session: AsyncSession, subdomain: str, project_id: uuid.UUID) -> bool:
    stmt = select(Project.id).where(Project.subdomain == subdomain, Project.id != project_id)
    return (await session.execute(stmt)).first() is not None


# ── Publish / republish / unpublish ─────────────────────────
async def publish(
    session: AsyncSession,
    provisioner: DomainProvisioner,
    project_id: uuid.UUID,
    owner_id: uuid.UUID | None = None,
) -> Project:
    project = await lifecycle.load_project(session, project_id, owner_id)
    lifecycle.ensure_not_cancelled(project)
    current = S(project.status)
    if current in lifecycle.PUBLISHED_STATES:
        raise InvalidTransition(f"project {project_id} already published", message_key="already_published")
    if current != S.GENERATED:
        raise InvalidTransition(f"project {project_id} is {current.value}", message_key="not_generated")

    subdomain = project.subdomain or generate_subdomain(project.name)
    if await _subdomain_taken(session, subdomain, project_id):
        subdomain = f"{subdomain[:58]}-{str(project_id)[-4:]}"

    await provisioner.add(subdomain_host(subdomain))
    now = utcnow()
    try:
        await lifecycle.transition(
            session,
            project_id,
            S.GENERATED,
            S.PUBLISHED,
            message_key="already_published",
            subdomain=subdomain,
            published_at=now,
            updated_at=now,
        )
    except IntegrityError as exc:
        await session.rollback()
        await _deprovision(provisioner, subdomain_host(subdomain))
        raise DomainInUse(f"subdomain {subdomain} taken concurrently") from exc

    logger.info("Project %s published at %s", project_id, subdomain_host(subdomain))
    return await lifecycle.refresh(session, project)


async def republish(session: AsyncSession, project_id: uuid.UUID, owner_id: uuid.UUID | None = None) -> Project:
    """Mark the current document as the published one."""
    project = await lifecycle.load_project(session, project_id, owner_id)
    _ensure_published(project)

    now = utcnow()
    await _write(
        session,
        project_id,
        {s.value for s in lifecycle.PUBLISHED_STATES},
        published_at=now,
        updated_at=now,
    )
    logger.info("Project %s republished", project_id)
    return await lifecycle.refresh(session, project)


async def unpublish(
    session: AsyncSession,
    provisioner: DomainProvisioner,
    project_id: uuid.UUID,
    owner_id: uuid.UUID | None = None,
) -> Project:
    """Take the site offline. The subdomain is kept for a later publish."""
    project = await lifecycle.load_project(session, project_id, owner_id)
    current = _ensure_published(project)

    await release_addresses(provisioner, project)

    await lifecycle.transition(
        session,
        project_id,
        current,
        S.GENERATED,
        message_key="not_published",
        published_at=None,
        custom_domain=None,
        custom_domain_verified=False,
    )
    return await lifecycle.refresh(session, project)


# ── Custom domains ──────────────────────────────────────────
async def add_custom_domain(
    session: AsyncSession,
    provisioner: DomainProvisioner,
    project_id: uuid.UUID,
    domain: str,
    owner_id: uuid.UUID | None = None,
) -> Project:
    project = await lifecycle.load_project(session, project_id, owner_id)
    current = _ensure_published(project)

    cleaned = normalize_domain(domain)
    if not _DOMAIN_RE.match(cleaned):
        raise ContentValidationError(f"invalid domain {domain!r}")
    if cleaned == project.custom_domain:
        return project

    stmt = select(Project.id).where(Project.custom_domain == cleaned, Project.id != project_id)
    if (await session.execute(stmt)).first() is not None:
        raise DomainInUse(f"domain {cleaned} is attached to another project")

    previous = project.custom_domain
    await provisioner.add(cleaned)
    if previous:
        await _deprovision(provisioner, previous)

    values: dict[str, Any] = {
        "custom_domain": cleaned,
        "custom_domain_verified": False,
        "updated_at": Project.updated_at,
    }
    try:
        if current == S.LIVE:
            # The verified domain is gone; back to PUBLISHED until the new one verifies
            await lifecycle.transition(
                session, project_id, S.LIVE, S.PUBLISHED, message_key="not_published", **values,
            )
        else:
            await _write(session, project_id, {S.PUBLISHED.value}, **values)
    except (IntegrityError, DomainInUse) as exc:
        await session.rollback()
        await _deprovision(provisioner, cleaned)
        raise DomainInUse(f"domain {cleaned} taken concurrently") from exc

    logger.info("Project %s: custom domain %s added (unverified)", project_id, cleaned)
    return await lifecycle.refresh(session, project)


async def verify_custom_domain(
    session: AsyncSession,
    provisioner: DomainProvisioner,
    project_id: uuid.UUID,
    owner_id: uuid.UUID | None = None,
) -> Project:
    project = await lifecycle.load_project(session, project_id, owner_id)
    current = _ensure_published(project)
    if not project.custom_domain:
        raise InvalidTransition(f"project {project_id} has no custom domain", message_key="no_custom_domain")

    verified = await provisioner.verify(project.custom_domain)
    logger.info("Project %s: %s verified=%s", project_id, project.custom_domain, verified)
    if not verified:
        return project

    if current == S.PUBLISHED:
        await lifecycle.transition(
            session,
            project_id,
            S.PUBLISHED,
            S.LIVE,
            message_key="not_published",
            custom_domain_verified=True,
            updated_at=Project.updated_at,
        )
    else:
        await _write(session, project_id, {S.LIVE.value}, custom_domain_verified=True)
    return await lifecycle.refresh(session, project)


async def remove_custom_domain(
    session: AsyncSession,
    provisioner: DomainProvisioner,
    project_id: uuid.UUID,
    owner_id: uuid.UUID | None = None,
) -> Project:
    project = await lifecycle.load_project(session, project_id, owner_id)
    current = _ensure_published(project)
    if not project.custom_domain:
        raise InvalidTransition(f"project {project_id} has no custom domain", message_key="no_custom_domain")

    await _deprovision(provisioner, project.custom_domain)
    values: dict[str, Any] = {
        "custom_domain": None,
        "custom_domain_verified": False,
        "updated_at": Project.updated_at,
    }
    if current == S.LIVE:
        await lifecycle.transition(session, project_id, S.LIVE, S.PUBLISHED, message_key="not_published", **values)
    else:
        await _write(session, project_id, {S.PUBLISHED.value}, **values)

    logger.info("Project %s: custom domain removed", project_id)
    return await lifecycle.refresh(session, project)
