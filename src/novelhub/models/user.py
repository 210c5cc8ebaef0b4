"""User model.

SQLAlchemy model for user accounts, credentials and password reset state.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base, utcnow

if TYPE_CHECKING:
    from .story import Story, StoryComment, StoryLike


class User(Base):
    """User account model.

    Owned stories are derived from ``Story.author_id`` rather than stored
    as a duplicated list on the user row.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    username: Mapped[str] = mapped_column(String(20), unique=True, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255))
    profile_picture: Mapped[str | None] = mapped_column(String(500), nullable=True)
    profile_picture_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    reset_password_token: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        index=True,
    )
    reset_password_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
    )

    # Relationships
    stories: Mapped[list[Story]] = relationship(
        "Story",
        back_populates="author",
        order_by="desc(Story.created_at)",
        cascade="all, delete-orphan",
    )
    likes: Mapped[list[StoryLike]] = relationship(
        "StoryLike",
        back_populates="user",
        cascade="all, delete-orphan",
    )
    # Comments outlive their author; deleting the user nulls user_id
    comments: Mapped[list[StoryComment]] = relationship(
        "StoryComment",
        back_populates="user",
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username='{self.username}')>"
