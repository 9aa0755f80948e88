"""
Media router — owner image uploads into object storage.

  GET    /projects/{id}/media              — list stored media
  POST   /projects/{id}/media              — multipart upload (images only)
  DELETE /projects/{id}/media/{media_id}   — delete object + row

Uploads are content-addressed per project (see services/storage.py).
Cancelled projects are read-only.
"""

import logging
import uuid

from fastapi import APIRouter, File, UploadFile, status
from sqlalchemy import delete, select

from pagesmith.core.errors import ConfigurationError, ContentValidationError, ProjectNotFound
from pagesmith.models.media import MediaAsset
from pagesmith.routers.deps import Auth, DbSession, StorageDep
from pagesmith.schemas.project import MediaResponse
from pagesmith.services import lifecycle

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Media"])

MAX_UPLOAD_BYTES = 5 * 1024 * 1024
ALLOWED_CONTENT_TYPES = frozenset({"image/jpeg", "image/png", "image/webp", "image/gif", "image/svg+xml"})


@router.get(
    "/{project_id}/media",
    response_model=list[MediaResponse],
    summary="List a project's media",
)
async def list_media(project_id: uuid.UUID, session: DbSession, auth: Auth) -> list[MediaAsset]:
    await lifecycle.load_project(session, project_id, auth.account_id)
    stmt = (
        select(MediaAsset)
        .where(MediaAsset.project_id == project_id)
        .order_by(MediaAsset.created_at.desc())
    )
    return list((await session.execute(stmt)).scalars().all())


@router.post(
    "/{project_id}/media",
    response_model=MediaResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload an image",
)
async def upload_media(
    project_id: uuid.UUID,
    session: DbSession,
    auth: Auth,
    storage: StorageDep,
    file: UploadFile = File(...),
) -> MediaAsset:
    project = await lifecycle.load_project(session, project_id, auth.account_id)
    lifecycle.ensure_not_cancelled(project)
    if not storage.configured:
        raise ConfigurationError("object storage is not configured")

    content_type = (file.content_type or "").lower()
    if content_type not in ALLOWED_CONTENT_TYPES:
        raise ContentValidationError(f"unsupported content type {content_type!r}")

    data = await file.read(MAX_UPLOAD_BYTES + 1)
    if not data or len(data) > MAX_UPLOAD_BYTES:
        raise ContentValidationError(f"upload size {len(data)} outside 1..{MAX_UPLOAD_BYTES}")

    key = storage.build_key(project_id=str(project_id), kind="uploads", data=data, content_type=content_type)
    url = await storage.put(key=key, data=data, content_type=content_type)

    asset = MediaAsset(
        project_id=project_id,
        storage_key=key,
        url=url,
        content_type=content_type,
        source="upload",
    )
    session.add(asset)
    await session.commit()
    await session.refresh(asset)

    logger.info("Media %s uploaded to project %s (%d bytes)", asset.id, project_id, len(data))
    return asset


@router.delete(
    "/{project_id}/media/{media_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an image",
)
async def delete_media(
    project_id: uuid.UUID,
    media_id: uuid.UUID,
    session: DbSession,
    auth: Auth,
    storage: StorageDep,
) -> None:
    project = await lifecycle.load_project(session, project_id, auth.account_id)
    lifecycle.ensure_not_cancelled(project)

    stmt = select(MediaAsset).where(MediaAsset.id == media_id, MediaAsset.project_id == project_id)
    asset = (await session.execute(stmt)).scalar_one_or_none()
    if asset is None:
        raise ProjectNotFound(f"media {media_id} not found in project {project_id}", message_key="media_not_found")

    if storage.configured:
        await storage.delete(asset.storage_key)
    await session.execute(delete(MediaAsset).where(MediaAsset.id == media_id))
    await session.commit()
    logger.info("Media %s deleted from project %s", media_id, project_id)
