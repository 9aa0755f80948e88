"""
Publishing router — public addresses of a project.

  GET    /projects/{id}/publication       — addresses + unpublished-changes flag
  POST   /projects/{id}/publish           — GENERATED → PUBLISHED
  POST   /projects/{id}/republish         — refresh published_at
  POST   /projects/{id}/unpublish         — PUBLISHED|LIVE → GENERATED
  POST   /projects/{id}/domain            — attach a custom domain (unverified)
  POST   /projects/{id}/domain/verify     — PUBLISHED → LIVE once verified
  DELETE /projects/{id}/domain            — detach the custom domain
"""

import uuid

from fastapi import APIRouter

from pagesmith.routers.deps import Auth, DbSession, Provisioner
from pagesmith.schemas.project import CustomDomainRequest, PublicationStatusResponse
from pagesmith.services import lifecycle, publishing
from pagesmith.services.publishing import PublicationStatus

router = APIRouter(tags=["Publishing"])


@router.get(
    "/{project_id}/publication",
    response_model=PublicationStatusResponse,
    summary="Publication status",
)
async def get_publication(project_id: uuid.UUID, session: DbSession, auth: Auth) -> PublicationStatus:
    project = await lifecycle.load_project(session, project_id, auth.account_id)
    return publishing.publication_status(project)


@router.post(
    "/{project_id}/publish",
    response_model=PublicationStatusResponse,
    summary="Publish to a subdomain",
    description="Derives a DNS-safe subdomain from the project name and provisions it.",
)
async def publish(
    project_id: uuid.UUID, session: DbSession, auth: Auth, provisioner: Provisioner,
) -> PublicationStatus:
    project = await publishing.publish(session, provisioner, project_id, auth.account_id)
    return publishing.publication_status(project)


@router.post(
    "/{project_id}/republish",
    response_model=PublicationStatusResponse,
    summary="Push the current document live",
)
async def republish(project_id: uuid.UUID, session: DbSession, auth: Auth) -> PublicationStatus:
    project = await publishing.republish(session, project_id, auth.account_id)
    return publishing.publication_status(project)


@router.post(
    "/{project_id}/unpublish",
    response_model=PublicationStatusResponse,
    summary="Take the site offline",
)
async def unpublish(
    project_id: uuid.UUID, session: DbSession, auth: Auth, provisioner: Provisioner,
) -> PublicationStatus:
    project = await publishing.unpublish(session, provisioner, project_id, auth.account_id)
    return publishing.publication_status(project)


@router.post(
    "/{project_id}/domain",
    response_model=PublicationStatusResponse,
    summary="Attach a custom domain",
)
async def add_domain(
    project_id: uuid.UUID,
    payload: CustomDomainRequest,
    session: DbSession,
    auth: Auth,
    provisioner: Provisioner,
) -> PublicationStatus:
    project = await publishing.add_custom_domain(
        session, provisioner, project_id, payload.domain, auth.account_id,
    )
    return publishing.publication_status(project)


@router.post(
    "/{project_id}/domain/verify",
    response_model=PublicationStatusResponse,
    summary="Check DNS for the custom domain",
)
async def verify_domain(
    project_id: uuid.UUID, session: DbSession, auth: Auth, provisioner: Provisioner,
) -> PublicationStatus:
    project = await publishing.verify_custom_domain(session, provisioner, project_id, auth.account_id)
    return publishing.publication_status(project)


@router.delete(
    "/{project_id}/domain",
    response_model=PublicationStatusResponse,
    summary="Detach the custom domain",
)
async def remove_domain(
    project_id: uuid.UUID, session: DbSession, auth: Auth, provisioner: Provisioner,
) -> PublicationStatus:
    project = await publishing.remove_custom_domain(session, provisioner, project_id, auth.account_id)
    return publishing.publication_status(project)
