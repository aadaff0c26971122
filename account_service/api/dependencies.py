"""FastAPI dependencies wiring settings into services, and the auth gate."""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from account_service.config import Settings, get_settings
from account_service.models.user import User
from account_service.services.credential_store import CredentialStore
from account_service.services.media_storage import LocalMediaStorage, MediaStorage
from account_service.services.profile_service import ProfileAggregator
from account_service.services.session_guard import SessionGuard
from account_service.services.session_service import SessionService
from account_service.services.token_service import TokenService

ACCESS_TOKEN_COOKIE = "accessToken"
REFRESH_TOKEN_COOKIE = "refreshToken"

bearer_scheme = HTTPBearer(auto_error=False)


def get_token_service(settings: Settings = Depends(get_settings)) -> TokenService:
    return TokenService(settings)


def get_credential_store() -> CredentialStore:
    return CredentialStore()


def get_profile_aggregator() -> ProfileAggregator:
    return ProfileAggregator()


def get_media_storage(settings: Settings = Depends(get_settings)) -> MediaStorage:
    return LocalMediaStorage(settings)


def get_session_guard(
    tokens: TokenService = Depends(get_token_service),
    store: CredentialStore = Depends(get_credential_store),
) -> SessionGuard:
    return SessionGuard(tokens, store)


def get_session_service(
    store: CredentialStore = Depends(get_credential_store),
    tokens: TokenService = Depends(get_token_service),
) -> SessionService:
    return SessionService(store, tokens)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    guard: SessionGuard = Depends(get_session_guard),
) -> User:
    """Resolve the caller from the access-token cookie or Bearer header.

    The cookie wins when both are present.

    Raises:
        UnauthorizedError: Via SessionGuard when the token is absent or invalid
    """
    token = request.cookies.get(ACCESS_TOKEN_COOKIE)
    if not token and credentials is not None:
        token = credentials.credentials
    return await guard.authenticate(token)
