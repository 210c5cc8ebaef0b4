"""Story service: publishing, listing, likes and comments.

Provides business logic for story operations:
- Story CRUD with author-only mutation
- Paginated listing with genre, author and free-text filters
- Like membership toggling and comment appending
"""

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from novelhub.api.exceptions import AuthzError, NotFoundError, ValidationError
from novelhub.models.story import (
    GENRES,
    Genre,
    Story,
    StoryComment,
    StoryLike,
    StoryStatus,
)
from novelhub.models.user import User
from novelhub.services.media import STORY_IMAGE_FOLDER, EncodedImage, MediaPipeline

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 100
CONTENT_MIN_LENGTH = 100

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100
POPULAR_LIMIT = 10


@dataclass
class StoryPage:
    """One page of a story listing."""

    stories: list[Story]
    page: int
    pages: int
    total: int

    @property
    def is_empty(self) -> bool:
        return self.total == 0


def parse_positive_int(value: Any, default: int, maximum: int | None = None) -> int:
    """Parse a query value, falling back to the default when invalid."""
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    if number < 1:
        return default
    if maximum is not None:
        number = min(number, maximum)
    return number


def validate_title(title: Any) -> str:
    title = title.strip() if isinstance(title, str) else ""
    if not title:
        raise ValidationError("Title is required")
    if len(title) > TITLE_MAX_LENGTH:
        raise ValidationError(f"Title cannot be more than {TITLE_MAX_LENGTH} characters")
    return title


def validate_content(content: Any) -> str:
    """Return the content unchanged or raise ValidationError.

    Length is measured in code points, so characters outside the Basic
    Multilingual Plane count once each.
    """
    if not isinstance(content, str) or not content.strip():
        raise ValidationError("Content is required")
    if len(content) < CONTENT_MIN_LENGTH:
        raise ValidationError(f"Content must be at least {CONTENT_MIN_LENGTH} characters long")
    return content


def validate_genre(genre: Any) -> Genre:
    if genre not in GENRES:
        raise ValidationError(
            f"{genre} is not a supported genre. Valid genres are: {', '.join(GENRES)}"
        )
    return Genre(genre)


def validate_status(status: Any) -> StoryStatus:
    try:
        return StoryStatus(status)
    except ValueError:
        raise ValidationError(f"{status} is not a valid status")


class StoryService:
    """Service for story publishing and interactions."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get(self, story_id: int) -> Story:
        result = await self.db.execute(
            select(Story)
            .where(Story.id == story_id)
            .execution_options(populate_existing=True)
        )
        story = result.scalar_one_or_none()
        if story is None:
            raise NotFoundError("Story")
        return story

    async def _get_owned(self, story_id: int, requester: User, action: str) -> Story:
        story = await self._get(story_id)
        if story.author_id != requester.id:
            raise AuthzError(f"Not authorized to {action} this story")
        return story

    async def _paginate(self, conditions: list[Any], page: int, limit: int) -> StoryPage:
        count_result = await self.db.execute(
            select(func.count()).select_from(Story).where(*conditions)
        )
        total = count_result.scalar() or 0

        result = await self.db.execute(
            select(Story)
            .where(*conditions)
            .order_by(Story.created_at.desc(), Story.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        stories = list(result.scalars().all())
        pages = (total + limit - 1) // limit
        return StoryPage(stories=stories, page=page, pages=pages, total=total)

    # =========================================================================
    # Story CRUD
    # =========================================================================

    async def create(
        self,
        author: User,
        title: Any,
        content: Any,
        genre: Any,
        is_ai_generated: bool = False,
        image: EncodedImage | None = None,
        media: MediaPipeline | None = None,
    ) -> Story:
        """Validate and publish a new story.

        The optional image is published to the asset host before the story
        row is written.

        Raises:
            ValidationError: If a required field is missing or out of range
            UpstreamError: If the image upload fails
        """
        if not title or not content or not genre:
            raise ValidationError("Title, content, and genre are required")
        content = validate_content(content)
        title = validate_title(title)
        genre = validate_genre(genre)

        story = Story(
            author=author,
            title=title,
            content=content,
            genre=genre,
            is_ai_generated=bool(is_ai_generated),
            status=StoryStatus.PUBLISHED,
            likes=[],
            comments=[],
        )

        if image is not None and media is not None:
            published = await media.publish(image, STORY_IMAGE_FOLDER)
            story.image = published.url
            story.image_id = published.asset_id

        self.db.add(story)
        await self.db.commit()

        logger.info("User %s published story id=%s", author.id, story.id)
        return story

    async def list_stories(
        self,
        page: Any = None,
        limit: Any = None,
        genre: str | None = None,
        search: str | None = None,
        author_id: int | None = None,
    ) -> StoryPage:
        """List stories newest first with optional filters."""
        page = parse_positive_int(page, DEFAULT_PAGE)
        limit = parse_positive_int(limit, DEFAULT_LIMIT, MAX_LIMIT)

        conditions: list[Any] = []
        if genre:
            if genre not in GENRES:
                return StoryPage(stories=[], page=page, pages=0, total=0)
            conditions.append(Story.genre == Genre(genre))
        if search:
            terms = search.split()
            if terms:
                conditions.append(
                    or_(
                        *(
                            column.icontains(term, autoescape=True)
                            for term in terms
                            for column in (Story.title, Story.content)
                        )
                    )
                )
        if author_id is not None:
            conditions.append(Story.author_id == author_id)

        return await self._paginate(conditions, page, limit)

    async def get_by_id(self, story_id: int) -> Story:
        """Get a story with author and comment authors resolved.

        Raises:
            NotFoundError: If the story doesn't exist
        """
        return await self._get(story_id)

    async def update(self, story_id: int, requester: User, fields: dict[str, Any]) -> Story:
        """Apply a partial update; only supplied fields change.

        Raises:
            NotFoundError: If the story doesn't exist
            AuthzError: If the requester is not the author
            ValidationError: If a supplied field is invalid
        """
        story = await self._get_owned(story_id, requester, "update")

        if fields.get("title") is not None:
            story.title = validate_title(fields["title"])
        if fields.get("content") is not None:
            # Assigning content recomputes word_count
            story.content = validate_content(fields["content"])
        if fields.get("genre") is not None:
            story.genre = validate_genre(fields["genre"])
        if fields.get("status") is not None:
            story.status = validate_status(fields["status"])

        await self.db.commit()
        return story

    async def delete(self, story_id: int, requester: User, media: MediaPipeline | None = None) -> None:
        """Delete a story owned by the requester.

        Raises:
            NotFoundError: If the story doesn't exist
            AuthzError: If the requester is not the author
        """
        story = await self._get_owned(story_id, requester, "delete")
        image_id = story.image_id

        await self.db.delete(story)
        await self.db.commit()
        logger.info("User %s deleted story id=%s", requester.id, story_id)

        if media is not None:
            await media.retire(image_id)

    # =========================================================================
    # Interactions
    # =========================================================================

    async def toggle_like(self, story_id: int, requester: User) -> tuple[int, bool]:
        """Flip the requester's like membership.

        Returns:
            The new like count and whether the requester now likes the story
        """
        story = await self._get(story_id)

        if story.is_liked_by(requester.id):
            story.likes = [like for like in story.likes if like.user_id != requester.id]
        else:
            story.likes.append(StoryLike(user_id=requester.id))

        await self.db.commit()
        return story.like_count, story.is_liked_by(requester.id)

    async def add_comment(self, story_id: int, requester: User, content: Any) -> list[StoryComment]:
        """Append a comment and return the full comment list.

        Raises:
            NotFoundError: If the story doesn't exist
            ValidationError: If the comment is empty
        """
        content = content.strip() if isinstance(content, str) else ""
        if not content:
            raise ValidationError("Comment content is required")

        story = await self._get(story_id)
        story.comments.append(StoryComment(user=requester, content=content))
        await self.db.commit()
        return list(story.comments)

    async def list_by_user(
        self,
        user_id: int,
        requester: User,
        page: Any = None,
        limit: Any = None,
    ) -> StoryPage:
        """List the requester's own stories.

        Raises:
            AuthzError: If ``user_id`` is not the requester
        """
        if user_id != requester.id:
            raise AuthzError("Not authorized to view these stories")

        result = await self.list_stories(page=page, limit=limit, author_id=user_id)
        if result.is_empty:
            return StoryPage(stories=[], page=1, pages=0, total=0)
        return result

    async def popular(self, limit: int = POPULAR_LIMIT) -> list[Story]:
        """Most-liked stories, newest first among ties."""
        like_count = func.count(StoryLike.user_id)
        result = await self.db.execute(
            select(Story)
            .outerjoin(StoryLike, StoryLike.story_id == Story.id)
            .group_by(Story.id)
            .order_by(like_count.desc(), Story.created_at.desc(), Story.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
