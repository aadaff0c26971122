"""User records, password hashing and the per-user refresh-token slot."""

from datetime import datetime, timezone
from enum import Enum, auto
from typing import Optional
from uuid import UUID, uuid4

import asyncpg
import bcrypt
import structlog

from account_service.database import get_pool
from account_service.errors import (
    ConflictError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from account_service.models.auth import PASSWORD_TOO_LONG_MESSAGE, password_too_long
from account_service.models.user import User
from account_service.services.token_service import hash_token

logger = structlog.get_logger(__name__)

# Columns that make up the safe view; password_hash and refresh_token_hash
# are deliberately absent.
SAFE_USER_COLUMNS = (
    "id, username, email, full_name, avatar_url, cover_image_url, "
    "watch_history, created_at, updated_at"
)


class RotationResult(Enum):
    """Outcome of a conditional refresh-slot swap."""

    OK = auto()
    SLOT_MISMATCH = auto()
    STORAGE_ERROR = auto()


def hash_password(password: str) -> str:
    """Hash a password using bcrypt with a fresh salt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a bcrypt hash (constant-time comparison)."""
    if password_too_long(password):
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Corrupt or non-bcrypt hash in storage
        logger.error("password_hash_unreadable")
        return False


def normalize_identifier(value: str) -> str:
    """Usernames and emails are stored and matched trimmed and lower-cased."""
    return value.strip().lower()


def require_fields(message: str = "All fields are required", **fields: Optional[str]) -> None:
    """Raise ValidationError if any of the given fields is missing or blank.

    Raises:
        ValidationError: Listing the offending field names in ``errors``
    """
    missing = [name for name, value in fields.items() if value is None or not value.strip()]
    if missing:
        raise ValidationError(message, errors=[{"field": name} for name in missing])


def check_password_length(**passwords: str) -> None:
    """Raise ValidationError for any password bcrypt cannot hash."""
    too_long = [name for name, value in passwords.items() if password_too_long(value)]
    if too_long:
        raise ValidationError(
            PASSWORD_TOO_LONG_MESSAGE, errors=[{"field": name} for name in too_long]
        )


def _row_to_user(row) -> User:
    return User(
        id=row["id"],
        username=row["username"],
        email=row["email"],
        full_name=row["full_name"],
        avatar_url=row["avatar_url"],
        cover_image_url=row["cover_image_url"] or None,
        watch_history=list(row["watch_history"] or []),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class CredentialStore:
    """Sole writer of user credential and session-slot columns."""

    async def ensure_available(self, username: str, email: str) -> None:
        """Fail if the username or email is already taken.

        Raises:
            ConflictError: If either value belongs to an existing user
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            existing = await conn.fetchval(
                "SELECT id FROM users WHERE username = $1 OR email = $2 LIMIT 1",
                normalize_identifier(username),
                normalize_identifier(email),
            )

        if existing is not None:
            raise ConflictError("User with email or username already exists")

    async def register(
        self,
        full_name: str,
        email: str,
        username: str,
        password: str,
        avatar_url: str,
        cover_image_url: Optional[str] = None,
    ) -> User:
        """Create a new user with a hashed password.

        Args:
            full_name: Display name
            email: Unique email (normalized to lowercase)
            username: Unique username (normalized to lowercase)
            password: Plain-text password (only its bcrypt hash is stored)
            avatar_url: URL of the uploaded avatar
            cover_image_url: URL of the uploaded cover image, if any

        Returns:
            Safe view of the created user

        Raises:
            ValidationError: If a required field is blank
            ConflictError: If the username or email is taken
        """
        require_fields(
            full_name=full_name,
            email=email,
            username=username,
            password=password,
        )
        check_password_length(password=password)
        require_fields("Avatar file is required", avatar=avatar_url)

        username = normalize_identifier(username)
        email = normalize_identifier(email)
        await self.ensure_available(username, email)

        user_id = uuid4()
        now = datetime.now(timezone.utc)
        password_hash = hash_password(password)

        pool = await get_pool()

        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    INSERT INTO users (id, username, email, full_name, password_hash,
                                       avatar_url, cover_image_url, created_at, updated_at)
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                    RETURNING {SAFE_USER_COLUMNS}
                    """,
                    user_id,
                    username,
                    email,
                    full_name.strip(),
                    password_hash,
                    avatar_url,
                    cover_image_url or None,
                    now,
                    now,
                )
        except asyncpg.UniqueViolationError:
            # Lost a race with a concurrent registration
            raise ConflictError("User with email or username already exists")

        logger.info("user_registered", user_id=str(user_id), username=username)
        return _row_to_user(row)

    async def verify_credentials(self, identifier: str, password: str) -> User:
        """Look a user up by username or email and check the password.

        Raises:
            NotFoundError: If no user matches the identifier
            UnauthorizedError: If the password does not verify
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {SAFE_USER_COLUMNS}, password_hash
                FROM users
                WHERE username = $1 OR email = $1
                ORDER BY created_at ASC
                LIMIT 1
                """,
                normalize_identifier(identifier),
            )

        if row is None:
            raise NotFoundError("User does not exist")

        if not verify_password(password, row["password_hash"]):
            logger.info("login_password_mismatch", user_id=str(row["id"]))
            raise UnauthorizedError("Invalid user credentials")

        return _row_to_user(row)

    async def get_by_id(self, user_id: UUID) -> Optional[User]:
        """Get the safe view of a user by id, or None if absent."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {SAFE_USER_COLUMNS} FROM users WHERE id = $1",
                user_id,
            )

        if row is None:
            return None
        return _row_to_user(row)

    async def set_refresh_token(self, user_id: UUID, token: Optional[str]) -> None:
        """Overwrite the session slot unconditionally (login, logout).

        Passing None empties the slot, ending the session server-side.
        """
        token_hash = hash_token(token) if token else None

        pool = await get_pool()

        async with pool.acquire() as conn:
            await conn.execute(
                "UPDATE users SET refresh_token_hash = $1 WHERE id = $2",
                token_hash,
                user_id,
            )

        logger.debug("refresh_slot_set", user_id=str(user_id), cleared=token_hash is None)

    async def rotate_refresh_token(
        self, user_id: UUID, current_token: str, new_token: str
    ) -> RotationResult:
        """Swap the session slot only if it still holds ``current_token``.

        The check and the write are a single UPDATE, so of two requests
        racing on the same token at most one sees ``OK``. An unreachable
        database, including a pool that was never opened, is ``STORAGE_ERROR``.
        """
        try:
            pool = await get_pool()
            async with pool.acquire() as conn:
                updated = await conn.fetchval(
                    """
                    UPDATE users
                    SET refresh_token_hash = $1
                    WHERE id = $2 AND refresh_token_hash = $3
                    RETURNING id
                    """,
                    hash_token(new_token),
                    user_id,
                    hash_token(current_token),
                )
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, RuntimeError) as e:
            logger.error("refresh_rotation_storage_failed", user_id=str(user_id), error=str(e))
            return RotationResult.STORAGE_ERROR

        if updated is None:
            return RotationResult.SLOT_MISMATCH
        return RotationResult.OK

    async def change_password(self, user_id: UUID, old_password: str, new_password: str) -> None:
        """Replace the password after verifying the current one.

        Raises:
            ValidationError: If either password is blank
            NotFoundError: If the user no longer exists
            UnauthorizedError: If ``old_password`` does not verify
        """
        require_fields(old_password=old_password, new_password=new_password)
        check_password_length(new_password=new_password)

        pool = await get_pool()

        async with pool.acquire() as conn:
            current_hash = await conn.fetchval(
                "SELECT password_hash FROM users WHERE id = $1",
                user_id,
            )
            if current_hash is None:
                raise NotFoundError("User does not exist")

            if not verify_password(old_password, current_hash):
                raise UnauthorizedError("Invalid old password")

            await conn.execute(
                "UPDATE users SET password_hash = $1, updated_at = $2 WHERE id = $3",
                hash_password(new_password),
                datetime.now(timezone.utc),
                user_id,
            )

        logger.info("password_changed", user_id=str(user_id))

    async def _update_returning(self, user_id: UUID, set_clause: str, *params) -> User:
        pool = await get_pool()
        placeholder = len(params) + 1

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE users
                SET {set_clause}, updated_at = NOW()
                WHERE id = ${placeholder}
                RETURNING {SAFE_USER_COLUMNS}
                """,
                *params,
                user_id,
            )

        if row is None:
            raise NotFoundError("User does not exist")
        return _row_to_user(row)

    async def update_account(self, user_id: UUID, full_name: str, email: str) -> User:
        """Update the user's own name and email.

        Raises:
            ValidationError: If either field is blank
            ConflictError: If the email belongs to another user
        """
        require_fields(full_name=full_name, email=email)

        try:
            user = await self._update_returning(
                user_id,
                "full_name = $1, email = $2",
                full_name.strip(),
                normalize_identifier(email),
            )
        except asyncpg.UniqueViolationError:
            raise ConflictError("Email is already in use")

        logger.info("account_updated", user_id=str(user_id))
        return user

    async def update_avatar(self, user_id: UUID, avatar_url: str) -> User:
        """Point the user's avatar at a newly uploaded file."""
        require_fields("Avatar file is missing", avatar=avatar_url)
        user = await self._update_returning(user_id, "avatar_url = $1", avatar_url)
        logger.info("avatar_updated", user_id=str(user_id))
        return user

    async def update_cover_image(self, user_id: UUID, cover_image_url: str) -> User:
        """Point the user's cover image at a newly uploaded file."""
        require_fields("Cover image file is missing", cover_image=cover_image_url)
        user = await self._update_returning(user_id, "cover_image_url = $1", cover_image_url)
        logger.info("cover_image_updated", user_id=str(user_id))
        return user
