"""Models package exports."""

from account_service.models.auth import (
    ChangePasswordRequest,
    LoginRequest,
    LoginResult,
    RefreshRequest,
    TokenPair,
    UpdateAccountRequest,
)
from account_service.models.response import ApiResponse, ErrorResponse
from account_service.models.user import ChannelProfile, User, VideoOwner, WatchHistoryVideo

__all__ = [
    "ApiResponse",
    "ChangePasswordRequest",
    "ChannelProfile",
    "ErrorResponse",
    "LoginRequest",
    "LoginResult",
    "RefreshRequest",
    "TokenPair",
    "UpdateAccountRequest",
    "User",
    "VideoOwner",
    "WatchHistoryVideo",
]
