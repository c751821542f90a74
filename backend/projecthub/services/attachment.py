"""Attachment storage on the local filesystem."""

import uuid
from collections.abc import Sequence
from pathlib import Path

import structlog
from fastapi import UploadFile
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from projecthub.exceptions import ValidationError
from projecthub.models.agile import Epic, Story
from projecthub.models.attachment import (
    PARENT_COLUMNS,
    Attachment,
    EpicParent,
    ParentRef,
    ProjectParent,
    StoryParent,
    TaskParent,
)
from projecthub.models.project import Project
from projecthub.models.task import Task
from projecthub.models.user import User
from projecthub.services.lookup import get_or_404

logger = structlog.get_logger()

CHUNK_SIZE = 1024 * 1024

_PARENT_MODELS = {
    ProjectParent: (Project, "Project"),
    EpicParent: (Epic, "Epic"),
    StoryParent: (Story, "Story"),
    TaskParent: (Task, "Task"),
}


class AttachmentService:
    """Stores uploads under ``upload_dir`` and tracks them as Attachment rows."""

    def __init__(self, db: AsyncSession, upload_dir: Path, max_size_mb: int):
        self.db = db
        self.upload_dir = upload_dir
        self.max_size = max_size_mb * 1024 * 1024

    async def check_parent(self, parent: ParentRef) -> None:
        model, label = _PARENT_MODELS[type(parent)]
        await get_or_404(self.db, model, parent.id, label=label)

    async def upload(
        self,
        parent: ParentRef,
        upload: UploadFile,
        uploaded_by: User,
        description: str | None = None,
        is_public: bool = False,
    ) -> Attachment:
        """Persist ``upload`` and record it against ``parent``."""
        await self.check_parent(parent)

        original_name = Path(upload.filename or "upload").name
        suffix = Path(original_name).suffix.lower()
        file_name = f"{uuid.uuid4().hex}{suffix}"
        target = self.upload_dir / parent.kind / file_name

        size = await self._write(upload, target)

        attachment = Attachment(
            parent=parent,
            uploaded_by_id=uploaded_by.id,
            file_name=file_name,
            original_name=original_name,
            file_size=size,
            file_type=upload.content_type,
            file_path=str(target),
            description=description,
            is_public=is_public,
        )
        self.db.add(attachment)
        try:
            await self.db.flush()
        except Exception:
            await run_in_threadpool(target.unlink, missing_ok=True)
            raise

        logger.info(
            "attachment_uploaded",
            attachment_id=str(attachment.id),
            parent_type=parent.kind,
            parent_id=str(parent.id),
            size=size,
        )
        return attachment

    async def delete(self, attachment: Attachment) -> None:
        """Delete the record and the stored file."""
        path = Path(attachment.file_path)
        await self.db.delete(attachment)
        await self.db.flush()
        await run_in_threadpool(path.unlink, missing_ok=True)
        logger.info("attachment_deleted", attachment_id=str(attachment.id), path=str(path))

    async def stored_paths(self, parents: Sequence[ParentRef]) -> list[Path]:
        """Paths of the files attached to any of ``parents``.

        Call before deleting a parent row: the database cascade drops the
        attachment rows but leaves their files behind.
        """
        if not parents:
            return []
        conditions = [
            getattr(Attachment, PARENT_COLUMNS[parent.kind]) == parent.id for parent in parents
        ]
        result = await self.db.execute(select(Attachment.file_path).where(or_(*conditions)))
        return [Path(file_path) for file_path in result.scalars().all()]

    async def remove_files(self, paths: Sequence[Path]) -> None:
        for path in paths:
            await run_in_threadpool(path.unlink, missing_ok=True)
        if paths:
            logger.info("attachment_files_removed", count=len(paths))

    async def _write(self, upload: UploadFile, target: Path) -> int:
        await run_in_threadpool(target.parent.mkdir, parents=True, exist_ok=True)
        size = 0
        with target.open("wb") as out:
            while chunk := await upload.read(CHUNK_SIZE):
                size += len(chunk)
                if size > self.max_size:
                    break
                await run_in_threadpool(out.write, chunk)

        if size > self.max_size:
            await run_in_threadpool(target.unlink, missing_ok=True)
            raise ValidationError(
                f"File exceeds the maximum upload size of {self.max_size // (1024 * 1024)} MB",
                field="file",
            )
        if size == 0:
            await run_in_threadpool(target.unlink, missing_ok=True)
            raise ValidationError("Uploaded file is empty", field="file")
        return size
