"""Session lifecycle: login, refresh-token rotation and logout.

States are ``Anonymous -> Authenticated`` (login), ``Authenticated ->
Authenticated`` (refresh, new pair, old refresh token dead) and
``Authenticated -> Anonymous`` (logout, slot emptied).
"""

from typing import Optional
from uuid import UUID

import structlog

from account_service.errors import InternalError, UnauthorizedError
from account_service.models.auth import LoginResult, TokenPair
from account_service.services.credential_store import CredentialStore, RotationResult
from account_service.services.token_service import TokenService

logger = structlog.get_logger(__name__)

REFRESH_REJECTED_MESSAGE = "Refresh token is expired or used"
TOKEN_GENERATION_FAILED_MESSAGE = "Something went wrong while generating refresh and access token"


class SessionService:
    """Orchestrates CredentialStore and TokenService for the session lifecycle."""

    def __init__(self, credential_store: CredentialStore, token_service: TokenService):
        self.store = credential_store
        self.tokens = token_service

    async def _issue_pair(self, user_id: UUID, username: Optional[str] = None) -> TokenPair:
        """Mint a pair and store its refresh token in the user's slot.

        Raises:
            InternalError: On any failure; the cause is logged, not returned
        """
        try:
            pair = self.tokens.mint_pair(user_id, username=username)
            await self.store.set_refresh_token(user_id, pair.refresh_token)
        except Exception:
            logger.exception("token_generation_failed", user_id=str(user_id))
            raise InternalError(TOKEN_GENERATION_FAILED_MESSAGE)
        return pair

    async def login(self, identifier: str, password: str) -> LoginResult:
        """Verify credentials and open a session.

        Raises:
            NotFoundError: If no user matches the identifier
            UnauthorizedError: If the password is wrong
            InternalError: If tokens cannot be minted or persisted
        """
        user = await self.store.verify_credentials(identifier, password)
        pair = await self._issue_pair(user.id, username=user.username)

        logger.info("user_logged_in", user_id=str(user.id), username=user.username)
        return LoginResult(
            user=user,
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
        )

    def _reject(self, reason: str, user_id: Optional[UUID] = None) -> UnauthorizedError:
        logger.warning(
            "refresh_rejected",
            reason=reason,
            user_id=str(user_id) if user_id else None,
        )
        return UnauthorizedError(REFRESH_REJECTED_MESSAGE)

    async def refresh(self, refresh_token: Optional[str]) -> TokenPair:
        """Exchange a live refresh token for a new pair, killing the old one.

        Signature, expiry, type, slot-mismatch and storage failures all
        surface as the same UnauthorizedError; only the log says which.

        Raises:
            UnauthorizedError: If the token is absent or not the live slot value
        """
        if not refresh_token or not refresh_token.strip():
            raise UnauthorizedError("Unauthorized request")
        refresh_token = refresh_token.strip()

        verification = self.tokens.verify_refresh(refresh_token)
        if not verification.ok:
            raise self._reject(verification.failure.name)

        user_id = verification.claims.user_id
        new_pair = self.tokens.mint_pair(user_id, username=verification.claims.username)

        result = await self.store.rotate_refresh_token(user_id, refresh_token, new_pair.refresh_token)
        if result == RotationResult.SLOT_MISMATCH:
            raise self._reject("SLOT_MISMATCH", user_id)
        if result == RotationResult.STORAGE_ERROR:
            raise self._reject("STORAGE_ERROR", user_id)

        logger.info("refresh_token_rotated", user_id=str(user_id))
        return new_pair

    async def logout(self, user_id: UUID) -> None:
        """Empty the session slot. Safe to call when it is already empty."""
        await self.store.set_refresh_token(user_id, None)
        logger.info("user_logged_out", user_id=str(user_id))
