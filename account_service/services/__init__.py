"""Services package exports."""

from account_service.services.credential_store import CredentialStore, RotationResult
from account_service.services.logging_service import configure_logging, get_logger
from account_service.services.media_storage import LocalMediaStorage, MediaStorage
from account_service.services.profile_service import ProfileAggregator
from account_service.services.session_guard import SessionGuard
from account_service.services.session_service import SessionService
from account_service.services.token_service import TokenService

__all__ = [
    "CredentialStore",
    "LocalMediaStorage",
    "MediaStorage",
    "ProfileAggregator",
    "RotationResult",
    "SessionGuard",
    "SessionService",
    "TokenService",
    "configure_logging",
    "get_logger",
]
