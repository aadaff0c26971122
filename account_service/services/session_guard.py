"""Single gate for protected operations: access token in, user out."""

from typing import Optional

import structlog

from account_service.errors import UnauthorizedError
from account_service.models.user import User
from account_service.services.credential_store import CredentialStore
from account_service.services.token_service import TokenService

logger = structlog.get_logger(__name__)


class SessionGuard:
    """Resolves an access token to the safe view of a live user.

    Read-only: it never touches the session slot or any other column.
    """

    def __init__(self, token_service: TokenService, credential_store: CredentialStore):
        self.tokens = token_service
        self.store = credential_store

    async def authenticate(self, access_token: Optional[str]) -> User:
        """Verify the token and load its user.

        Raises:
            UnauthorizedError: If the token is missing, malformed, expired,
                forged, or names a user that no longer exists
        """
        if not access_token or not access_token.strip():
            raise UnauthorizedError("Unauthorized request")

        user_id = self.tokens.verify_access(access_token.strip())

        user = await self.store.get_by_id(user_id)
        if user is None:
            logger.info("access_token_user_missing", user_id=str(user_id))
            raise UnauthorizedError("Invalid access token")

        return user
