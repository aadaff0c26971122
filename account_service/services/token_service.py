"""Signing and verification of access/refresh JWT pairs."""

import hashlib
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum, auto
from typing import Any, Optional
from uuid import UUID, uuid4

import jwt
import structlog

from account_service.config import Settings
from account_service.errors import UnauthorizedError
from account_service.models.auth import TokenPair

logger = structlog.get_logger(__name__)

JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"
REQUIRED_CLAIMS = ["sub", "iat", "exp", "jti", "type"]


class TokenFailure(Enum):
    """Why a presented token was rejected."""

    SIGNATURE_INVALID = auto()
    EXPIRED = auto()
    MALFORMED = auto()
    WRONG_TYPE = auto()


@dataclass(frozen=True)
class TokenClaims:
    """Decoded, verified claims of a token."""

    user_id: UUID
    token_type: str
    jti: str
    issued_at: datetime
    expires_at: datetime
    username: Optional[str] = None


@dataclass(frozen=True)
class RefreshVerification:
    """Outcome of verifying a refresh token: either claims or a failure."""

    claims: Optional[TokenClaims] = None
    failure: Optional[TokenFailure] = None

    @property
    def ok(self) -> bool:
        return self.claims is not None


def hash_token(token: str) -> str:
    """SHA-256 hex digest stored in the refresh-token slot instead of the raw token."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class TokenService:
    """Mints and verifies signed access/refresh tokens.

    Access and refresh tokens are signed with different secrets and tagged
    with a ``type`` claim, so neither can be replayed as the other. The
    service is stateless: checking a refresh token against the user's stored
    slot is the caller's job.
    """

    def __init__(self, settings: Settings):
        self._access_secret = settings.access_token_secret
        self._refresh_secret = settings.refresh_token_secret
        self.access_expires = timedelta(minutes=settings.access_token_expire_minutes)
        self.refresh_expires = timedelta(days=settings.refresh_token_expire_days)

    def _encode(
        self,
        user_id: UUID,
        token_type: str,
        secret: str,
        expires: timedelta,
        extra: Optional[dict[str, Any]] = None,
    ) -> str:
        now = datetime.now(timezone.utc)
        payload: dict[str, Any] = {
            "sub": str(user_id),
            "type": token_type,
            "jti": uuid4().hex,
            "iat": now,
            "exp": now + expires,
        }
        if extra:
            payload.update(extra)
        return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)

    def mint_pair(self, user_id: UUID, username: Optional[str] = None) -> TokenPair:
        """Create a fresh access/refresh pair for a user.

        Args:
            user_id: Subject of both tokens
            username: Optional username embedded in both tokens, so a
                rotated pair carries the same claims as the login pair

        Returns:
            TokenPair with a short-lived access token and long-lived refresh token
        """
        extra = {"username": username} if username else None
        access_token = self._encode(
            user_id, ACCESS_TOKEN_TYPE, self._access_secret, self.access_expires, extra
        )
        refresh_token = self._encode(
            user_id, REFRESH_TOKEN_TYPE, self._refresh_secret, self.refresh_expires, extra
        )
        logger.debug(
            "token_pair_minted",
            user_id=str(user_id),
            access_expires_seconds=int(self.access_expires.total_seconds()),
            refresh_expires_seconds=int(self.refresh_expires.total_seconds()),
        )
        return TokenPair(access_token=access_token, refresh_token=refresh_token)

    def _decode(
        self, token: str, secret: str, expected_type: str
    ) -> tuple[Optional[TokenClaims], Optional[TokenFailure]]:
        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[JWT_ALGORITHM],
                options={"require": REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError:
            return None, TokenFailure.EXPIRED
        except jwt.InvalidSignatureError:
            return None, TokenFailure.SIGNATURE_INVALID
        except jwt.InvalidTokenError:
            return None, TokenFailure.MALFORMED

        if payload["type"] != expected_type:
            return None, TokenFailure.WRONG_TYPE

        try:
            user_id = UUID(str(payload["sub"]))
        except ValueError:
            return None, TokenFailure.MALFORMED

        return (
            TokenClaims(
                user_id=user_id,
                token_type=payload["type"],
                jti=str(payload["jti"]),
                issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
                username=payload.get("username"),
            ),
            None,
        )

    def verify_access(self, token: str) -> UUID:
        """Verify an access token without touching storage.

        Returns:
            The user id from the ``sub`` claim

        Raises:
            UnauthorizedError: On bad signature, expiry, wrong type or malformed input
        """
        claims, failure = self._decode(token, self._access_secret, ACCESS_TOKEN_TYPE)
        if claims is None:
            logger.info("access_token_rejected", reason=failure.name)
            if failure is TokenFailure.EXPIRED:
                raise UnauthorizedError("Access token has expired")
            raise UnauthorizedError("Invalid access token")
        return claims.user_id

    def verify_refresh(self, token: str) -> RefreshVerification:
        """Verify a refresh token's signature, expiry and type.

        A passing result only means the token is authentic; it is still dead
        if it no longer matches the user's stored slot.
        """
        claims, failure = self._decode(token, self._refresh_secret, REFRESH_TOKEN_TYPE)
        return RefreshVerification(claims=claims, failure=failure)
