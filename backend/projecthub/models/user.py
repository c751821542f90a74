"""User model."""

from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from projecthub.db.base import BaseModel, enum_type
from projecthub.models.enums import UserRole, UserStatus


class User(BaseModel):
    """Application user with a single role."""

    __tablename__ = "users"

    # Basic info
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)

    # Access
    role: Mapped[UserRole] = mapped_column(
        enum_type(UserRole), nullable=False, default=UserRole.DEVELOPER
    )
    status: Mapped[UserStatus] = mapped_column(
        enum_type(UserStatus), nullable=False, default=UserStatus.ACTIVE
    )

    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        try:
            return f"<User {self.email}>"
        except Exception:
            return f"<User id={self.id}>"
