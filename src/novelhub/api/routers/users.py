"""Users router for accounts, sessions and profiles.

Endpoints for registration, login, password reset and profile management.
"""

import logging

from fastapi import APIRouter, BackgroundTasks, File, UploadFile, status

from novelhub.api.deps import AppSettings, Auth, CurrentUser, Media, ResetDelivery
from novelhub.api.exceptions import NotFoundError, ValidationError
from novelhub.api.schemas import (
    CamelModel,
    Envelope,
    IdentityOut,
    PictureOut,
    ProfileOut,
    ResetTokenOut,
    ok,
)

logger = logging.getLogger(__name__)

router = APIRouter()

RESET_ACKNOWLEDGEMENT = "If an account exists for that email, a password reset link has been sent"


# =============================================================================
# Schemas
# =============================================================================


class RegisterRequest(CamelModel):
    """Request to create an account."""

    username: str | None = None
    email: str | None = None
    password: str | None = None


class LoginRequest(CamelModel):
    email: str | None = None
    password: str | None = None


class ForgotPasswordRequest(CamelModel):
    email: str | None = None


class ResetPasswordRequest(CamelModel):
    token: str | None = None
    new_password: str | None = None


class UpdateProfileRequest(CamelModel):
    """Fields to change; omitted fields are left as they are."""

    username: str | None = None
    email: str | None = None
    current_password: str | None = None
    new_password: str | None = None


# =============================================================================
# Account Endpoints
# =============================================================================


@router.post(
    "/register",
    response_model=Envelope[IdentityOut],
    response_model_exclude_unset=True,
    status_code=status.HTTP_201_CREATED,
)
async def register(payload: RegisterRequest, auth: Auth) -> Envelope:
    """Create an account and sign it in."""
    user, token = await auth.register(payload.username, payload.email, payload.password)
    return ok(IdentityOut.from_user(user, token))


@router.post("/login", response_model=Envelope[IdentityOut], response_model_exclude_unset=True)
async def login(payload: LoginRequest, auth: Auth) -> Envelope:
    """Exchange email and password for a session token."""
    user, token = await auth.login(payload.email, payload.password)
    return ok(IdentityOut.from_user(user, token))


@router.post(
    "/forgot-password",
    response_model=Envelope[ResetTokenOut],
    response_model_exclude_unset=True,
)
async def forgot_password(
    payload: ForgotPasswordRequest,
    auth: Auth,
    delivery: ResetDelivery,
    settings: AppSettings,
    background_tasks: BackgroundTasks,
) -> Envelope:
    """Start a password reset.

    The response is the same whether or not the email belongs to an
    account. The token goes out through the reset delivery channel and is
    echoed back only when ``EXPOSE_RESET_TOKEN`` is enabled. Delivery runs
    after the response is sent.
    """
    try:
        token = await auth.issue_reset_token(payload.email)
    except NotFoundError:
        logger.info("Password reset requested for unknown email")
        return ok(message=RESET_ACKNOWLEDGEMENT)

    background_tasks.add_task(delivery.deliver, payload.email.strip().lower(), token)

    if settings.expose_reset_token:
        return ok(ResetTokenOut(reset_token=token), message=RESET_ACKNOWLEDGEMENT)
    return ok(message=RESET_ACKNOWLEDGEMENT)


@router.post("/reset-password", response_model=Envelope[None], response_model_exclude_unset=True)
async def reset_password(payload: ResetPasswordRequest, auth: Auth) -> Envelope:
    await auth.reset_password(payload.token, payload.new_password)
    return ok(message="Password reset successful")


# =============================================================================
# Profile Endpoints
# =============================================================================


@router.get("/profile", response_model=Envelope[ProfileOut], response_model_exclude_unset=True)
async def get_profile(user: CurrentUser, auth: Auth) -> Envelope:
    """Get the signed-in user's profile and stories."""
    profile = await auth.get_profile(user.id)
    return ok(ProfileOut.from_user(profile))


@router.put("/profile", response_model=Envelope[IdentityOut], response_model_exclude_unset=True)
async def update_profile(payload: UpdateProfileRequest, user: CurrentUser, auth: Auth) -> Envelope:
    """Update username, email or password.

    Returns a fresh session token.
    """
    user, token = await auth.update_profile(
        user,
        username=payload.username,
        email=payload.email,
        current_password=payload.current_password,
        new_password=payload.new_password,
    )
    return ok(IdentityOut.from_user(user, token))


@router.delete("/profile", response_model=Envelope[None], response_model_exclude_unset=True)
async def delete_account(user: CurrentUser, auth: Auth, media: Media) -> Envelope:
    """Delete the account, its stories and its likes."""
    await auth.delete_account(user, media)
    return ok(message="User account deleted successfully")


@router.post(
    "/profile/picture",
    response_model=Envelope[PictureOut],
    response_model_exclude_unset=True,
)
async def upload_profile_picture(
    user: CurrentUser,
    auth: Auth,
    media: Media,
    image: UploadFile | None = File(None),
) -> Envelope:
    """Replace the profile picture; the previous image is retired."""
    if image is None:
        raise ValidationError("Please upload an image file")

    encoded = await media.ingest_upload(image)
    url = await auth.update_profile_picture(user, encoded, media)
    return ok(PictureOut(profile_picture=url))
