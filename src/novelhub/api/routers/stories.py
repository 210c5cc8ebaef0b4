"""Stories router for publishing, browsing and interacting with stories.

Reads are public. Writes require a session token, and only a story's author
may update or delete it.
"""

import json
from typing import Any

from fastapi import APIRouter, Query, Request, status
from pydantic import Field
from starlette.datastructures import UploadFile

from novelhub.api.deps import CurrentUser, Generator, Media, Stories
from novelhub.api.exceptions import ValidationError
from novelhub.api.schemas import (
    CamelModel,
    CommentOut,
    Envelope,
    GeneratedStoryOut,
    LikeOut,
    StoryOut,
    StoryPageOut,
    ok,
)
from novelhub.services.media import EncodedImage, MediaPipeline
from novelhub.services.story_service import StoryPage

router = APIRouter()


# =============================================================================
# Schemas
# =============================================================================


class StoryCreateRequest(CamelModel):
    """Request to publish a new story (JSON or multipart form)."""

    title: str | None = None
    content: str | None = None
    genre: str | None = None
    is_ai_generated: bool = Field(default=False, alias="isAIGenerated")


class StoryUpdateRequest(CamelModel):
    """Partial story update; only supplied fields change."""

    title: str | None = None
    content: str | None = None
    genre: str | None = None
    status: str | None = None


class CommentCreateRequest(CamelModel):
    content: str | None = None


class GenerateRequest(CamelModel):
    prompt: str | None = None


def page_out(result: StoryPage) -> StoryPageOut:
    return StoryPageOut(
        stories=[StoryOut.from_story(story) for story in result.stories],
        page=result.page,
        pages=result.pages,
        total=result.total,
    )


async def read_story_form(
    request: Request, media: MediaPipeline
) -> tuple[StoryCreateRequest, EncodedImage | None]:
    """Parse a story body sent either as JSON or as a multipart form.

    A multipart body may carry an ``image`` file, which is validated here
    before anything is written.
    """
    content_type = request.headers.get("content-type", "")

    if content_type.startswith(("multipart/form-data", "application/x-www-form-urlencoded")):
        form = await request.form()
        fields = {key: value for key, value in form.items() if key != "image"}
        payload = StoryCreateRequest.model_validate(fields)

        upload = form.get("image")
        if isinstance(upload, UploadFile) and upload.filename:
            image = await media.ingest_upload(upload)
            return payload, image
        return payload, None

    body: Any = {}
    raw = await request.body()
    if raw:
        try:
            body = json.loads(raw)
        except ValueError:
            raise ValidationError("Request body must be valid JSON")
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return StoryCreateRequest.model_validate(body), None


# =============================================================================
# Listing Endpoints
# =============================================================================


@router.get("", response_model=Envelope[StoryPageOut], response_model_exclude_unset=True)
async def list_stories(
    stories: Stories,
    page: str | None = None,
    limit: str | None = None,
    genre: str | None = None,
    search: str | None = None,
    author: int | None = None,
) -> Envelope:
    """List published stories, newest first.

    Invalid ``page``/``limit`` values fall back to 1 and 10.
    """
    result = await stories.list_stories(
        page=page,
        limit=limit,
        genre=genre,
        search=search,
        author_id=author,
    )
    return ok(page_out(result))


@router.get("/popular", response_model=Envelope[list[StoryOut]], response_model_exclude_unset=True)
async def popular_stories(
    stories: Stories,
    limit: int = Query(10, ge=1, le=50),
) -> Envelope:
    """Most-liked stories."""
    result = await stories.popular(limit)
    return ok([StoryOut.from_story(story) for story in result])


@router.get(
    "/user/{user_id}",
    response_model=Envelope[StoryPageOut],
    response_model_exclude_unset=True,
)
async def list_user_stories(
    user_id: int,
    user: CurrentUser,
    stories: Stories,
    page: str | None = None,
    limit: str | None = None,
) -> Envelope:
    """List the signed-in user's own stories."""
    result = await stories.list_by_user(user_id, user, page=page, limit=limit)
    if result.is_empty:
        return ok(page_out(result), message="No stories have been written yet")
    return ok(page_out(result))


# =============================================================================
# Story Endpoints
# =============================================================================


@router.post(
    "",
    response_model=Envelope[StoryOut],
    response_model_exclude_unset=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_story(
    request: Request,
    user: CurrentUser,
    stories: Stories,
    media: Media,
) -> Envelope:
    """Publish a story, optionally with a cover image."""
    payload, image = await read_story_form(request, media)
    story = await stories.create(
        user,
        title=payload.title,
        content=payload.content,
        genre=payload.genre,
        is_ai_generated=payload.is_ai_generated,
        image=image,
        media=media,
    )
    return ok(StoryOut.from_story(story))


@router.post(
    "/generate",
    response_model=Envelope[GeneratedStoryOut],
    response_model_exclude_unset=True,
)
async def generate_story(
    payload: GenerateRequest,
    user: CurrentUser,
    generator: Generator,
) -> Envelope:
    """Draft a story from a prompt; nothing is saved."""
    draft = await generator.generate(payload.prompt)
    return ok(GeneratedStoryOut.model_validate(draft))


@router.get("/{story_id}", response_model=Envelope[StoryOut], response_model_exclude_unset=True)
async def get_story(story_id: int, stories: Stories) -> Envelope:
    story = await stories.get_by_id(story_id)
    return ok(StoryOut.from_story(story))


@router.put("/{story_id}", response_model=Envelope[StoryOut], response_model_exclude_unset=True)
async def update_story(
    story_id: int,
    payload: StoryUpdateRequest,
    user: CurrentUser,
    stories: Stories,
) -> Envelope:
    """Update a story's title, content, genre or status."""
    story = await stories.update(story_id, user, payload.model_dump(exclude_unset=True))
    return ok(StoryOut.from_story(story))


@router.delete("/{story_id}", response_model=Envelope[None], response_model_exclude_unset=True)
async def delete_story(
    story_id: int,
    user: CurrentUser,
    stories: Stories,
    media: Media,
) -> Envelope:
    await stories.delete(story_id, user, media=media)
    return ok(message="Story deleted successfully")


# =============================================================================
# Interaction Endpoints
# =============================================================================


@router.post("/{story_id}/like", response_model=Envelope[LikeOut], response_model_exclude_unset=True)
async def toggle_like(story_id: int, user: CurrentUser, stories: Stories) -> Envelope:
    """Like the story, or unlike it if already liked."""
    likes, is_liked = await stories.toggle_like(story_id, user)
    return ok(LikeOut(likes=likes, is_liked=is_liked))


@router.post(
    "/{story_id}/comments",
    response_model=Envelope[list[CommentOut]],
    response_model_exclude_unset=True,
    status_code=status.HTTP_201_CREATED,
)
async def add_comment(
    story_id: int,
    payload: CommentCreateRequest,
    user: CurrentUser,
    stories: Stories,
) -> Envelope:
    """Add a comment and return the story's full comment list."""
    comments = await stories.add_comment(story_id, user, payload.content)
    return ok([CommentOut.from_comment(comment) for comment in comments])
