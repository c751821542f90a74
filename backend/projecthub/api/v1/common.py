"""Shared request/response plumbing for the v1 routers."""

from typing import Annotated, Any, Generic, Iterable, TypeVar

from fastapi import Depends, Request
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from projecthub.config import Settings

T = TypeVar("T")


class CamelModel(BaseModel):
    """Base schema exchanged as camelCase JSON; snake_case is accepted on input."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Envelope(BaseModel, Generic[T]):
    """Success envelope wrapped around every payload."""

    success: bool = True
    data: T
    message: str | None = None


class ListMeta(CamelModel):
    total: int
    limit: int
    offset: int


class PagedEnvelope(Envelope[T], Generic[T]):
    meta: ListMeta


def ok(data: Any, message: str | None = None) -> dict[str, Any]:
    """Wrap a payload in the success envelope."""
    return {"success": True, "data": data, "message": message}


def get_app_settings(request: Request) -> Settings:
    """Settings owned by the running application instance."""
    return request.app.state.settings


AppSettings = Annotated[Settings, Depends(get_app_settings)]


def changes_from(body: BaseModel, nullable: Iterable[str] = ()) -> dict[str, Any]:
    """Fields the client sent; explicit nulls are kept only for clearable fields."""
    clearable = set(nullable)
    return {
        field: value
        for field, value in body.model_dump(exclude_unset=True).items()
        if value is not None or field in clearable
    }
