"""
Shared router dependencies and type aliases.

Every external collaborator reaches a route through a dependency
function, so tests swap them with app.dependency_overrides.
"""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from pagesmith.auth.dependencies import AuthContext, get_current_account
from pagesmith.core.config import settings
from pagesmith.core.database import get_db_session
from pagesmith.services.domains import DomainProvisioner, get_domain_provisioner
from pagesmith.services.generation import GenerationOrchestrator
from pagesmith.services.images import ImageChain, default_chain
from pagesmith.services.llm_client import ContentModel, get_content_model
from pagesmith.services.notifications import Mailer, get_mailer
from pagesmith.services.storage import Storage, get_storage

DbSession = Annotated[AsyncSession, Depends(get_db_session)]
Auth = Annotated[AuthContext, Depends(get_current_account)]
StorageDep = Annotated[Storage, Depends(get_storage)]
MailerDep = Annotated[Mailer, Depends(get_mailer)]
Provisioner = Annotated[DomainProvisioner, Depends(get_domain_provisioner)]


def get_image_chain(storage: StorageDep) -> ImageChain:
    return default_chain(storage)


def get_orchestrator(
    session: DbSession,
    model: Annotated[ContentModel, Depends(get_content_model)],
    images: Annotated[ImageChain, Depends(get_image_chain)],
) -> GenerationOrchestrator:
    return GenerationOrchestrator(session, model, images=images, locale=settings.LOCALE)


def get_trial_orchestrator(
    model: Annotated[ContentModel, Depends(get_content_model)],
) -> GenerationOrchestrator:
    """Trial flows have no project, no session and no images."""
    return GenerationOrchestrator(None, model, locale=settings.LOCALE)


Orchestrator = Annotated[GenerationOrchestrator, Depends(get_orchestrator)]
TrialOrchestrator = Annotated[GenerationOrchestrator, Depends(get_trial_orchestrator)]
