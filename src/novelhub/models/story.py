"""Story, like and comment models.

SQLAlchemy models for published stories and the interactions on them.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from .database import Base, utcnow

if TYPE_CHECKING:
    from .user import User


class Genre(str, Enum):
    """Supported story genres."""

    FANTASY = "fantasy"
    ROMANCE = "romance"
    MYSTERY = "mystery"
    SCIENCE_FICTION = "science-fiction"
    HORROR = "horror"
    THRILLER = "thriller"
    HISTORICAL_FICTION = "historical-fiction"
    ADVENTURE = "adventure"
    YOUNG_ADULT = "young-adult"
    LITERARY_FICTION = "literary-fiction"
    DYSTOPIAN = "dystopian"
    PARANORMAL = "paranormal"
    CONTEMPORARY = "contemporary"
    CRIME = "crime"
    DRAMA = "drama"
    COMEDY = "comedy"
    ACTION = "action"
    SLICE_OF_LIFE = "slice-of-life"
    SUPERNATURAL = "supernatural"
    PSYCHOLOGICAL = "psychological"


class StoryStatus(str, Enum):
    """Publication status of a story."""

    DRAFT = "draft"
    PUBLISHED = "published"


GENRES: tuple[str, ...] = tuple(genre.value for genre in Genre)


def _enum_values(enum_cls: type[Enum]) -> list[str]:
    return [member.value for member in enum_cls]


def count_words(content: str) -> int:
    """Count whitespace-delimited tokens in story content.

    Splits on Unicode whitespace as ``str.split`` defines it, which includes
    the information separators U+001C to U+001F and U+0085.
    """
    return len(content.split())


class Story(Base):
    """Story model - the main published entity."""

    __tablename__ = "stories"

    id: Mapped[int] = mapped_column(primary_key=True)
    author_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
    )

    title: Mapped[str] = mapped_column(String(100))
    content: Mapped[str] = mapped_column(Text)
    genre: Mapped[Genre] = mapped_column(
        SQLEnum(Genre, name="story_genre", values_callable=_enum_values),
        index=True,
    )
    is_ai_generated: Mapped[bool] = mapped_column(Boolean, default=False)
    word_count: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[StoryStatus] = mapped_column(
        SQLEnum(StoryStatus, name="story_status", values_callable=_enum_values),
        default=StoryStatus.PUBLISHED,
    )

    image: Mapped[str | None] = mapped_column(String(500), nullable=True)
    image_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
    )

    # Relationships
    author: Mapped[User] = relationship(
        "User",
        back_populates="stories",
        lazy="selectin",
    )
    likes: Mapped[list[StoryLike]] = relationship(
        "StoryLike",
        back_populates="story",
        lazy="selectin",
        cascade="all, delete-orphan",
    )
    comments: Mapped[list[StoryComment]] = relationship(
        "StoryComment",
        back_populates="story",
        order_by="StoryComment.id",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    @validates("content")
    def _recount_words(self, key: str, content: str) -> str:
        self.word_count = count_words(content)
        return content

    @property
    def like_count(self) -> int:
        return len(self.likes)

    @property
    def url(self) -> str:
        return f"/stories/{self.id}"

    def is_liked_by(self, user_id: int) -> bool:
        """Check whether the user is in the story's like membership."""
        return any(like.user_id == user_id for like in self.likes)

    def __repr__(self) -> str:
        return f"<Story(id={self.id}, title='{self.title}', genre={self.genre})>"


class StoryLike(Base):
    """Like membership: one row per (story, user) pair."""

    __tablename__ = "story_likes"

    story_id: Mapped[int] = mapped_column(
        ForeignKey("stories.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
    )

    # Relationships
    story: Mapped[Story] = relationship("Story", back_populates="likes")
    user: Mapped[User] = relationship("User", back_populates="likes")

    def __repr__(self) -> str:
        return f"<StoryLike(story_id={self.story_id}, user_id={self.user_id})>"


class StoryComment(Base):
    """Comment appended to a story."""

    __tablename__ = "story_comments"

    id: Mapped[int] = mapped_column(primary_key=True)
    story_id: Mapped[int] = mapped_column(
        ForeignKey("stories.id", ondelete="CASCADE"),
        index=True,
    )
    user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    content: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
    )

    # Relationships
    story: Mapped[Story] = relationship("Story", back_populates="comments")
    user: Mapped[User | None] = relationship(
        "User",
        back_populates="comments",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<StoryComment(id={self.id}, story_id={self.story_id})>"
