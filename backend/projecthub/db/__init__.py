"""Database package."""

from projecthub.db.base import Base, BaseModel, SoftDeleteMixin
from projecthub.db.session import DBSession, get_db_session

__all__ = ["Base", "BaseModel", "DBSession", "SoftDeleteMixin", "get_db_session"]
