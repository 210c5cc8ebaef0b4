"""Response schemas shared by the routers.

Every JSON response is wrapped in ``Envelope``: ``{success, data?, message?}``.
Routes pass ``response_model_exclude_unset=True`` so that ``data`` and
``message`` only appear when a handler sets them.
"""

from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from novelhub.models.story import Story, StoryComment, StoryStatus
from novelhub.models.user import User

T = TypeVar("T")


class CamelModel(BaseModel):
    """Base schema serialized with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Envelope(BaseModel, Generic[T]):
    """Success envelope."""

    success: bool = True
    data: T | None = None
    message: str | None = None


def ok(data: Any = None, message: str | None = None) -> Envelope:
    """Build a success envelope carrying only the supplied fields."""
    fields: dict[str, Any] = {"success": True}
    if data is not None:
        fields["data"] = data
    if message is not None:
        fields["message"] = message
    return Envelope(**fields)


# =============================================================================
# Users
# =============================================================================


class AuthorOut(CamelModel):
    """Public view of a user: id and username only."""

    id: int
    username: str


class IdentityOut(CamelModel):
    """Identity returned by register, login and profile update."""

    id: int
    username: str
    email: str
    profile_picture: str | None
    token: str

    @classmethod
    def from_user(cls, user: User, token: str) -> "IdentityOut":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            profile_picture=user.profile_picture,
            token=token,
        )


class PictureOut(CamelModel):
    profile_picture: str


class ResetTokenOut(CamelModel):
    reset_token: str


# =============================================================================
# Stories
# =============================================================================


class CommentOut(CamelModel):
    id: int
    user: AuthorOut | None
    content: str
    created_at: datetime

    @classmethod
    def from_comment(cls, comment: StoryComment) -> "CommentOut":
        return cls(
            id=comment.id,
            user=AuthorOut.model_validate(comment.user) if comment.user else None,
            content=comment.content,
            created_at=comment.created_at,
        )


class StoryOut(CamelModel):
    """Serialized story with author and comment authors resolved."""

    id: int
    title: str
    content: str
    genre: str
    author: AuthorOut | None
    is_ai_generated: bool = Field(alias="isAIGenerated")
    likes: list[int]
    like_count: int
    comments: list[CommentOut]
    word_count: int
    status: StoryStatus
    image: str | None
    url: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_story(cls, story: Story) -> "StoryOut":
        return cls(
            id=story.id,
            title=story.title,
            content=story.content,
            genre=story.genre.value,
            author=AuthorOut.model_validate(story.author) if story.author else None,
            is_ai_generated=story.is_ai_generated,
            likes=[like.user_id for like in story.likes],
            like_count=story.like_count,
            comments=[CommentOut.from_comment(comment) for comment in story.comments],
            word_count=story.word_count,
            status=story.status,
            image=story.image,
            url=story.url,
            created_at=story.created_at,
            updated_at=story.updated_at,
        )


class StoryPageOut(CamelModel):
    """One page of a story listing."""

    stories: list[StoryOut]
    page: int
    pages: int
    total: int


class LikeOut(CamelModel):
    likes: int
    is_liked: bool


class GeneratedStoryOut(CamelModel):
    """Generated draft; never persisted by the generate route."""

    title: str
    content: str
    genre: str
    is_ai_generated: bool = Field(default=True, alias="isAIGenerated")


class ProfileOut(CamelModel):
    """A user's own profile with the stories they have written."""

    id: int
    username: str
    email: str
    profile_picture: str | None
    stories: list[StoryOut]
    created_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "ProfileOut":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            profile_picture=user.profile_picture,
            stories=[StoryOut.from_story(story) for story in user.stories],
            created_at=user.created_at,
        )
