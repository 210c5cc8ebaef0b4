"""Database models for Novel Hub.

SQLAlchemy models for:
- Users
- Stories, likes and comments

All models use async SQLAlchemy (asyncpg for PostgreSQL in production).
"""

from .database import Base, Database, utcnow
from .story import (
    GENRES,
    Genre,
    Story,
    StoryComment,
    StoryLike,
    StoryStatus,
    count_words,
)
from .user import User

__all__ = [
    # Database
    "Base",
    "Database",
    "utcnow",
    # User models
    "User",
    # Story models
    "Story",
    "StoryLike",
    "StoryComment",
    "StoryStatus",
    "Genre",
    "GENRES",
    "count_words",
]
