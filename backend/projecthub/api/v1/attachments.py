"""Attachment upload, listing and download endpoints."""

from datetime import datetime
from pathlib import Path
from typing import Annotated
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from projecthub.api.v1.auth import CurrentUser, require
from projecthub.api.v1.common import AppSettings, CamelModel, Envelope, ok
from projecthub.config import Settings
from projecthub.db.session import get_db_session
from projecthub.exceptions import NotFoundError
from projecthub.models.attachment import Attachment, ProjectParent, make_parent
from projecthub.models.project import Project
from projecthub.models.user import User
from projecthub.services.attachment import AttachmentService
from projecthub.services.lookup import get_or_404
from projecthub.services.permissions import Capability

router = APIRouter()
project_router = APIRouter()
logger = structlog.get_logger()

Uploader = Annotated[User, Depends(require(Capability.UPLOAD_ATTACHMENT))]


class AttachmentResponse(CamelModel):
    id: UUID
    parent_type: str | None
    parent_id: UUID | None
    uploaded_by_id: UUID | None
    file_name: str
    original_name: str
    file_size: int
    file_type: str | None
    description: str | None
    is_public: bool
    created_at: datetime


def _service(db: AsyncSession, settings: Settings) -> AttachmentService:
    return AttachmentService(db, settings.upload_dir, settings.max_upload_size_mb)


@project_router.get("/{project_id}/attachments", response_model=Envelope[list[AttachmentResponse]])
async def list_project_attachments(
    project_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Files attached directly to the project."""
    await get_or_404(db, Project, project_id)
    result = await db.execute(
        select(Attachment)
        .where(Attachment.project_id == project_id)
        .order_by(Attachment.created_at.desc())
    )
    return ok(result.scalars().all())


@project_router.post(
    "/{project_id}/attachments",
    response_model=Envelope[AttachmentResponse],
    status_code=status.HTTP_201_CREATED,
)
async def upload_project_attachment(
    project_id: UUID,
    current_user: Uploader,
    settings: AppSettings,
    file: UploadFile = File(...),
    description: str | None = Form(None),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    attachment = await _service(db, settings).upload(
        ProjectParent(project_id), file, current_user, description=description
    )
    await db.commit()
    return ok(attachment, "File uploaded")


@router.post("", response_model=Envelope[AttachmentResponse], status_code=status.HTTP_201_CREATED)
async def upload_attachment(
    current_user: Uploader,
    settings: AppSettings,
    parent_type: str = Form(..., alias="parentType"),
    parent_id: UUID = Form(..., alias="parentId"),
    file: UploadFile = File(...),
    description: str | None = Form(None),
    is_public: bool = Form(False, alias="isPublic"),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Upload a file to a project, epic, story or task."""
    parent = make_parent(parent_type, parent_id)
    attachment = await _service(db, settings).upload(
        parent, file, current_user, description=description, is_public=is_public
    )
    await db.commit()
    return ok(attachment, "File uploaded")


@router.get("/{attachment_id}", response_model=Envelope[AttachmentResponse])
async def get_attachment(
    attachment_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    return ok(await get_or_404(db, Attachment, attachment_id))


@router.get("/{attachment_id}/download", response_class=FileResponse)
async def download_attachment(
    attachment_id: UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db_session),
) -> FileResponse:
    attachment = await get_or_404(db, Attachment, attachment_id)
    path = Path(attachment.file_path)
    if not path.is_file():
        logger.warning("Attachment file missing", attachment_id=str(attachment.id), path=str(path))
        raise NotFoundError("File")

    return FileResponse(
        path,
        media_type=attachment.file_type or "application/octet-stream",
        filename=attachment.original_name,
    )


@router.delete("/{attachment_id}", response_model=Envelope[None])
async def delete_attachment(
    attachment_id: UUID,
    current_user: Uploader,
    settings: AppSettings,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Delete the attachment record and its stored file."""
    attachment = await get_or_404(db, Attachment, attachment_id)
    await _service(db, settings).delete(attachment)
    await db.commit()
    return ok(None, "Attachment deleted")
