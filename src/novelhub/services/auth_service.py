"""Account service: registration, login, profile and password reset.

Validation rules:
- username: 3-20 characters, letters, numbers, underscores and hyphens
- email: ``something@domain.tld``, stored lowercased
- password: 6-128 characters
"""

import logging
import re
from datetime import timedelta
from functools import lru_cache

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from novelhub.api.exceptions import AuthError, NotFoundError, ValidationError
from novelhub.core.config import Settings
from novelhub.core.security import (
    create_access_token,
    decode_access_token,
    generate_reset_token,
    hash_password,
    hash_reset_token,
    verify_password,
)
from novelhub.models.database import utcnow
from novelhub.models.story import Story
from novelhub.models.user import User
from novelhub.services.media import PROFILE_PICTURE_FOLDER, EncodedImage, MediaPipeline

logger = logging.getLogger(__name__)

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 20
PASSWORD_MIN_LENGTH = 6
PASSWORD_MAX_LENGTH = 128

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")
EMAIL_PATTERN = re.compile(r"^\S+@\S+\.\S+$")

INVALID_CREDENTIALS = "Invalid email or password"


def validate_username(username: str | None) -> str:
    """Return the trimmed username or raise ValidationError."""
    if not username or not isinstance(username, str):
        raise ValidationError("Username is required")
    username = username.strip()
    if len(username) < USERNAME_MIN_LENGTH:
        raise ValidationError(f"Username must be at least {USERNAME_MIN_LENGTH} characters long")
    if len(username) > USERNAME_MAX_LENGTH:
        raise ValidationError(f"Username must be at most {USERNAME_MAX_LENGTH} characters long")
    if not USERNAME_PATTERN.match(username):
        raise ValidationError(
            "Username can only contain letters, numbers, underscores, and hyphens"
        )
    return username


def validate_email(email: str | None) -> str:
    """Return the normalized (trimmed, lowercased) email or raise ValidationError."""
    if not email or not isinstance(email, str):
        raise ValidationError("Email is required")
    email = email.strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("Please enter a valid email address")
    return email


def validate_password(password: str | None) -> str:
    """Return the password unchanged or raise ValidationError."""
    if not password or not isinstance(password, str):
        raise ValidationError("Password is required")
    if len(password) < PASSWORD_MIN_LENGTH:
        raise ValidationError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long")
    if len(password) > PASSWORD_MAX_LENGTH:
        raise ValidationError(f"Password must be at most {PASSWORD_MAX_LENGTH} characters long")
    return password


@lru_cache(maxsize=1)
def _unknown_user_hash() -> str:
    """bcrypt hash checked against when the login email has no account."""
    return hash_password(generate_reset_token())


class AuthService:
    """Business logic for user accounts and sessions."""

    def __init__(self, db: AsyncSession, settings: Settings):
        self.db = db
        self.settings = settings

    def issue_token(self, user: User) -> str:
        return create_access_token(user.id, settings=self.settings)

    async def _find_by_email(self, email: str) -> User | None:
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def _find_by_username(self, username: str) -> User | None:
        result = await self.db.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except IntegrityError as e:
            # Lost a race against a concurrent registration or rename
            await self.db.rollback()
            raise ValidationError("Email or username is already in use") from e

    # =========================================================================
    # Registration & login
    # =========================================================================

    async def register(self, username: str | None, email: str | None, password: str | None) -> tuple[User, str]:
        """Create a new account.

        Returns:
            The new user and a session token

        Raises:
            ValidationError: If input is malformed or the email/username is taken
        """
        username = validate_username(username)
        email = validate_email(email)
        password = validate_password(password)

        if await self._find_by_email(email):
            raise ValidationError("Email is already registered")
        if await self._find_by_username(username):
            raise ValidationError("Username is already taken")

        user = User(
            username=username,
            email=email,
            hashed_password=hash_password(password),
        )
        self.db.add(user)
        await self._commit()

        logger.info("Registered user %s (id=%s)", user.username, user.id)
        return user, self.issue_token(user)

    async def login(self, email: str | None, password: str | None) -> tuple[User, str]:
        """Authenticate with email and password.

        Raises:
            ValidationError: If the email is malformed or password missing
            AuthError: If no such user exists or the password does not match
        """
        email = validate_email(email)
        if not password:
            raise ValidationError("Password is required")

        user = await self._find_by_email(email)
        if user is None:
            # Unknown accounts still pay for one bcrypt check
            verify_password(password, _unknown_user_hash())
            raise AuthError(INVALID_CREDENTIALS)
        if not verify_password(password, user.hashed_password):
            raise AuthError(INVALID_CREDENTIALS)

        return user, self.issue_token(user)

    async def resolve_token(self, token: str | None) -> User:
        """Resolve a session token to its user.

        Raises:
            AuthError: If the token is missing, invalid, expired or orphaned
        """
        if not token:
            raise AuthError("Not authorized, no token")

        payload = decode_access_token(token, settings=self.settings)
        if payload is None:
            raise AuthError("Not authorized, token failed")

        try:
            user_id = int(payload["sub"])
        except (KeyError, TypeError, ValueError):
            raise AuthError("Not authorized, token failed")

        user = await self.db.get(User, user_id)
        if user is None:
            raise AuthError("Not authorized, token failed")
        return user

    # =========================================================================
    # Password reset
    # =========================================================================

    async def issue_reset_token(self, email: str | None) -> str:
        """Generate a one-hour password reset token.

        Only a digest of the token is stored.

        Raises:
            ValidationError: If the email is malformed
            NotFoundError: If no user has this email
        """
        email = validate_email(email)
        user = await self._find_by_email(email)
        if user is None:
            raise NotFoundError("User")

        token = generate_reset_token()
        user.reset_password_token = hash_reset_token(token)
        user.reset_password_expires_at = utcnow() + timedelta(
            minutes=self.settings.password_reset_expire_minutes
        )
        await self.db.commit()

        logger.info("Issued password reset token for user id=%s", user.id)
        return token

    async def reset_password(self, token: str | None, new_password: str | None) -> None:
        """Replace the password and clear the reset token in one commit.

        Raises:
            ValidationError: If the token is missing, unknown or expired, or
                the new password fails validation
        """
        if not token:
            raise ValidationError("Reset token is required")
        new_password = validate_password(new_password)

        result = await self.db.execute(
            select(User).where(
                User.reset_password_token == hash_reset_token(token),
                User.reset_password_expires_at > utcnow(),
            )
        )
        user = result.scalar_one_or_none()
        if user is None:
            raise ValidationError("Invalid or expired reset token")

        user.hashed_password = hash_password(new_password)
        user.reset_password_token = None
        user.reset_password_expires_at = None
        await self.db.commit()
        logger.info("Password reset for user id=%s", user.id)

    # =========================================================================
    # Profile
    # =========================================================================

    async def get_profile(self, user_id: int) -> User:
        """Load a user with their stories.

        Raises:
            NotFoundError: If the user no longer exists
        """
        result = await self.db.execute(
            select(User)
            .options(selectinload(User.stories))
            .where(User.id == user_id)
            .execution_options(populate_existing=True)
        )
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError("User")
        return user

    async def update_profile(
        self,
        user: User,
        username: str | None = None,
        email: str | None = None,
        current_password: str | None = None,
        new_password: str | None = None,
    ) -> tuple[User, str]:
        """Update only the supplied profile fields.

        Raises:
            ValidationError: On malformed fields, taken username/email, or a
                password change without the current password
            AuthError: If the current password is wrong
        """
        if username:
            username = validate_username(username)
            if username != user.username and await self._find_by_username(username):
                raise ValidationError("Username is already taken")

        if email:
            email = validate_email(email)
            if email != user.email and await self._find_by_email(email):
                raise ValidationError("Email is already registered")

        if new_password:
            if not current_password:
                raise ValidationError("Current password is required to change password")
            new_password = validate_password(new_password)
            if not verify_password(current_password, user.hashed_password):
                raise AuthError("Current password is incorrect")
            user.hashed_password = hash_password(new_password)

        if username:
            user.username = username
        if email:
            user.email = email

        await self._commit()
        return user, self.issue_token(user)

    async def update_profile_picture(
        self,
        user: User,
        image: EncodedImage,
        media: MediaPipeline,
    ) -> str:
        """Publish a new profile picture, then retire the old one.

        Not transactional: if retiring fails the new URL is still kept.

        Raises:
            UpstreamError: If the asset host rejects the upload
        """
        old_asset_id = user.profile_picture_id
        published = await media.publish(image, PROFILE_PICTURE_FOLDER)

        user.profile_picture = published.url
        user.profile_picture_id = published.asset_id
        await self.db.commit()

        await media.retire(old_asset_id)
        return published.url

    async def delete_account(self, user: User, media: MediaPipeline) -> None:
        """Delete the account along with its stories and likes.

        Comments on other users' stories remain with no author.
        """
        result = await self.db.execute(
            select(Story.image_id).where(
                Story.author_id == user.id,
                Story.image_id.is_not(None),
            )
        )
        asset_ids = [user.profile_picture_id, *result.scalars().all()]

        await self.db.delete(user)
        await self.db.commit()
        logger.info("Deleted user id=%s", user.id)

        for asset_id in asset_ids:
            await media.retire(asset_id)
