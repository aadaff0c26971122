"""User account endpoints: registration, session lifecycle, profile queries."""

from typing import Any, Optional

import structlog
from fastapi import APIRouter, Body, Depends, File, Form, Request, UploadFile, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from account_service.api.dependencies import (
    ACCESS_TOKEN_COOKIE,
    REFRESH_TOKEN_COOKIE,
    get_credential_store,
    get_current_user,
    get_media_storage,
    get_profile_aggregator,
    get_session_service,
)
from account_service.config import Settings, get_settings
from account_service.errors import NotFoundError, ValidationError
from account_service.models.auth import (
    ChangePasswordRequest,
    LoginRequest,
    RefreshRequest,
    UpdateAccountRequest,
)
from account_service.models.response import ApiResponse
from account_service.models.user import User
from account_service.services.credential_store import (
    CredentialStore,
    check_password_length,
    require_fields,
)
from account_service.services.media_storage import MediaStorage
from account_service.services.profile_service import ProfileAggregator
from account_service.services.session_service import SessionService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


def _dump(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(by_alias=True, mode="json")
    if isinstance(data, list):
        return [_dump(item) for item in data]
    return data


def _respond(status_code: int, data: Any, message: str) -> JSONResponse:
    """Wrap a payload in the success envelope."""
    body = ApiResponse.of(status_code, _dump(data), message)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def _set_session_cookies(
    response: JSONResponse, access_token: str, refresh_token: str, settings: Settings
) -> None:
    for name, value in ((ACCESS_TOKEN_COOKIE, access_token), (REFRESH_TOKEN_COOKIE, refresh_token)):
        response.set_cookie(name, value, httponly=True, secure=settings.cookie_secure)


def _clear_session_cookies(response: JSONResponse, settings: Settings) -> None:
    for name in (ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE):
        response.delete_cookie(name, httponly=True, secure=settings.cookie_secure)


async def _read_upload(
    upload: Optional[UploadFile], missing_message: str, max_bytes: int
) -> tuple[str, bytes]:
    """Read at most ``max_bytes + 1`` bytes so oversize files are never buffered whole."""
    if upload is None or not upload.filename:
        raise ValidationError(missing_message)
    content = await upload.read(max_bytes + 1)
    if not content:
        raise ValidationError(f"Uploaded file '{upload.filename}' is empty")
    if len(content) > max_bytes:
        raise ValidationError(f"Uploaded file '{upload.filename}' exceeds {max_bytes} bytes")
    return upload.filename, content


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    full_name: str = Form("", alias="fullName"),
    email: str = Form(""),
    username: str = Form(""),
    password: str = Form(""),
    avatar: Optional[UploadFile] = File(None),
    cover_image: Optional[UploadFile] = File(None, alias="coverImage"),
    store: CredentialStore = Depends(get_credential_store),
    media: MediaStorage = Depends(get_media_storage),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    """Register a user from a multipart form with avatar and optional cover image.

    Fields and uniqueness are checked before anything is uploaded.

    Raises:
        ValidationError 400: Blank field, password over 72 bytes, missing or
            oversize file
        ConflictError 409: Username or email taken
    """
    require_fields(full_name=full_name, email=email, username=username, password=password)
    check_password_length(password=password)
    limit = settings.max_upload_bytes
    avatar_file = await _read_upload(avatar, "Avatar file is required", limit)
    cover_file = None
    if cover_image is not None and cover_image.filename:
        cover_file = await _read_upload(cover_image, "Cover image file is missing", limit)

    await store.ensure_available(username, email)

    avatar_url = await media.upload(*avatar_file)
    cover_image_url = await media.upload(*cover_file) if cover_file else None

    user = await store.register(
        full_name=full_name,
        email=email,
        username=username,
        password=password,
        avatar_url=avatar_url,
        cover_image_url=cover_image_url,
    )
    return _respond(status.HTTP_201_CREATED, user, "User registered successfully")


@router.post("/login")
async def login(
    request: LoginRequest,
    sessions: SessionService = Depends(get_session_service),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    """Login with username or email and password.

    Tokens are delivered both as HTTP-only cookies and in the body.
    """
    result = await sessions.login(request.resolved_identifier, request.password)

    response = _respond(status.HTTP_200_OK, result, "User logged in successfully")
    _set_session_cookies(response, result.access_token, result.refresh_token, settings)
    return response


@router.post("/logout")
async def logout(
    current_user: User = Depends(get_current_user),
    sessions: SessionService = Depends(get_session_service),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    """End the caller's session and clear both cookies."""
    await sessions.logout(current_user.id)

    response = _respond(status.HTTP_200_OK, {}, "User logged out")
    _clear_session_cookies(response, settings)
    return response


@router.post("/refresh-token")
async def refresh_token(
    request: Request,
    body: Optional[RefreshRequest] = Body(default=None),
    sessions: SessionService = Depends(get_session_service),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    """Rotate the refresh token; the cookie takes precedence over the body.

    Raises:
        UnauthorizedError 401: Missing, invalid, expired or already-rotated token
    """
    token = request.cookies.get(REFRESH_TOKEN_COOKIE)
    if not token and body is not None:
        token = body.refresh_token

    pair = await sessions.refresh(token)

    response = _respond(status.HTTP_200_OK, pair, "Access token refreshed")
    _set_session_cookies(response, pair.access_token, pair.refresh_token, settings)
    return response


@router.post("/change-password")
async def change_password(
    request: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    store: CredentialStore = Depends(get_credential_store),
) -> JSONResponse:
    await store.change_password(current_user.id, request.old_password, request.new_password)
    return _respond(status.HTTP_200_OK, {}, "Password changed successfully")


@router.get("/current-user")
async def current_user(current_user: User = Depends(get_current_user)) -> JSONResponse:
    return _respond(status.HTTP_200_OK, current_user, "Current user fetched successfully")


@router.patch("/update-account")
async def update_account(
    request: UpdateAccountRequest,
    current_user: User = Depends(get_current_user),
    store: CredentialStore = Depends(get_credential_store),
) -> JSONResponse:
    user = await store.update_account(current_user.id, request.full_name, request.email)
    return _respond(status.HTTP_200_OK, user, "Account details updated successfully")


@router.patch("/avatar")
async def update_avatar(
    avatar: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
    store: CredentialStore = Depends(get_credential_store),
    media: MediaStorage = Depends(get_media_storage),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    avatar_file = await _read_upload(avatar, "Avatar file is missing", settings.max_upload_bytes)
    avatar_url = await media.upload(*avatar_file)
    user = await store.update_avatar(current_user.id, avatar_url)
    return _respond(status.HTTP_200_OK, user, "Avatar updated successfully")


@router.patch("/cover-image")
async def update_cover_image(
    cover_image: Optional[UploadFile] = File(None, alias="coverImage"),
    current_user: User = Depends(get_current_user),
    store: CredentialStore = Depends(get_credential_store),
    media: MediaStorage = Depends(get_media_storage),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    cover_file = await _read_upload(
        cover_image, "Cover image file is missing", settings.max_upload_bytes
    )
    cover_image_url = await media.upload(*cover_file)
    user = await store.update_cover_image(current_user.id, cover_image_url)
    return _respond(status.HTTP_200_OK, user, "Cover image updated successfully")


@router.get("/channel/{username}")
async def channel_profile(
    username: str,
    current_user: User = Depends(get_current_user),
    profiles: ProfileAggregator = Depends(get_profile_aggregator),
) -> JSONResponse:
    """Public channel page with subscriber counts.

    Raises:
        ValidationError 400: Blank username
        NotFoundError 404: No such channel
    """
    profile = await profiles.get_channel_profile(current_user.id, username)
    if profile is None:
        raise NotFoundError("Channel does not exist")
    return _respond(status.HTTP_200_OK, profile, "User channel fetched successfully")


@router.get("/watch-history")
async def watch_history(
    current_user: User = Depends(get_current_user),
    profiles: ProfileAggregator = Depends(get_profile_aggregator),
) -> JSONResponse:
    videos = await profiles.get_watch_history(current_user.id)
    return _respond(status.HTTP_200_OK, videos, "Watch history fetched successfully")
