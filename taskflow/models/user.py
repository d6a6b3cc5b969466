"""
User model.
Maps to the users table in PostgreSQL.
"""

from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from taskflow.database import Base

if TYPE_CHECKING:
    from taskflow.models.project import ProjectMember


class User(Base):
    """User model - a board user who can be a member of many projects."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password: Mapped[str] = mapped_column(String(255), nullable=False)  # bcrypt hash
    initials: Mapped[Optional[str]] = mapped_column(String(5), nullable=True)
    avatar_color: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    memberships: Mapped[List["ProjectMember"]] = relationship(
        "ProjectMember",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    def to_presence_dict(self) -> dict:
        """Public profile shown to other project members."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "initials": self.initials,
            "avatarColor": self.avatar_color,
        }

    def __repr__(self) -> str:
        return f"<User {self.email}>"
