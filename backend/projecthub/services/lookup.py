"""Primary-key lookups that raise NotFoundError."""

from typing import Any, Sequence, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.interfaces import LoaderOption

from projecthub.db.base import BaseModel
from projecthub.exceptions import NotFoundError

ModelT = TypeVar("ModelT", bound=BaseModel)


async def get_or_404(
    db: AsyncSession,
    model: type[ModelT],
    entity_id: UUID,
    *,
    label: str | None = None,
    options: Sequence[LoaderOption] = (),
    for_update: bool = False,
    include_deleted: bool = False,
) -> ModelT:
    """Load ``model`` by id, refreshing any copy already in the session.

    Soft-deleted rows are treated as missing unless ``include_deleted``.
    """
    stmt: Any = (
        select(model)
        .where(model.id == entity_id)
        .options(*options)
        .execution_options(populate_existing=True)
    )
    deleted_at = getattr(model, "deleted_at", None)
    if deleted_at is not None and not include_deleted:
        stmt = stmt.where(deleted_at.is_(None))
    if for_update:
        stmt = stmt.with_for_update()

    obj = await db.scalar(stmt)
    if obj is None:
        raise NotFoundError(label or model.__name__, entity_id)
    return obj
