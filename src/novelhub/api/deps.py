"""FastAPI dependencies for dependency injection.

Provides reusable dependencies for authentication, database sessions,
and the long-lived collaborators the app factory places on ``app.state``.
"""

from collections.abc import AsyncIterator
from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from novelhub.api.exceptions import AuthError
from novelhub.core.config import Settings
from novelhub.models.database import Database
from novelhub.models.user import User
from novelhub.services.auth_service import AuthService
from novelhub.services.generation import GenerationProxy
from novelhub.services.media import MediaPipeline
from novelhub.services.notifications import ResetTokenDelivery
from novelhub.services.story_service import StoryService

# Security scheme
security = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_database(request: Request) -> Database:
    return request.app.state.database


async def get_session(
    database: Annotated[Database, Depends(get_database)],
) -> AsyncIterator[AsyncSession]:
    """Yield a request-scoped session.

    Raises:
        DatabaseUnavailableError: If the service is running degraded
    """
    async with database.session() as session:
        yield session


AppSettings = Annotated[Settings, Depends(get_settings)]

# Database session dependency
DBSession = Annotated[AsyncSession, Depends(get_session)]


async def require_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> str:
    """Extract the bearer token without touching the database."""
    if credentials is None or not credentials.credentials:
        raise AuthError("Not authorized, no token")
    return credentials.credentials


async def get_auth_service(db: DBSession, settings: AppSettings) -> AuthService:
    return AuthService(db, settings)


async def get_story_service(db: DBSession) -> StoryService:
    return StoryService(db)


Auth = Annotated[AuthService, Depends(get_auth_service)]
Stories = Annotated[StoryService, Depends(get_story_service)]


async def get_current_user(
    token: Annotated[str, Depends(require_token)],
    auth: Auth,
) -> User:
    """Resolve the bearer token to its user.

    The token is checked first, so an unauthenticated request is rejected
    before a database session is opened.

    Raises:
        AuthError: If the token is missing, invalid, expired or orphaned
    """
    return await auth.resolve_token(token)


def get_media(request: Request) -> MediaPipeline:
    return request.app.state.media


def get_generator(request: Request) -> GenerationProxy:
    return request.app.state.generator


def get_reset_delivery(request: Request) -> ResetTokenDelivery:
    return request.app.state.reset_delivery


# Type aliases for dependency injection
CurrentUser = Annotated[User, Depends(get_current_user)]
Media = Annotated[MediaPipeline, Depends(get_media)]
Generator = Annotated[GenerationProxy, Depends(get_generator)]
ResetDelivery = Annotated[ResetTokenDelivery, Depends(get_reset_delivery)]
