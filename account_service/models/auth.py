"""Auth request and response models with validation."""

from typing import Optional

from pydantic import Field, field_validator, model_validator

from account_service.models.user import CamelModel, User

# bcrypt only accepts this many bytes of input
MAX_PASSWORD_BYTES = 72
PASSWORD_TOO_LONG_MESSAGE = f"Password must be at most {MAX_PASSWORD_BYTES} bytes"


def password_too_long(password: str) -> bool:
    return len(password.encode("utf-8")) > MAX_PASSWORD_BYTES


class LoginRequest(CamelModel):
    """Login credentials.

    Any one of ``identifier``, ``username`` or ``email`` names the account;
    the first non-blank one is matched against both usernames and emails.

    Attributes:
        identifier: Username or email
        username: Username (alternative to identifier)
        email: Email (alternative to identifier)
        password: User's password
    """

    identifier: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None
    password: str = Field(..., min_length=1)

    @field_validator("password")
    @classmethod
    def password_not_empty(cls, v: str) -> str:
        """Ensure password is non-blank and within bcrypt's input limit."""
        if not v.strip():
            raise ValueError("Password cannot be empty or whitespace only")
        if password_too_long(v):
            raise ValueError(PASSWORD_TOO_LONG_MESSAGE)
        return v

    @model_validator(mode="after")
    def identifier_required(self) -> "LoginRequest":
        """Require at least one of identifier, username or email."""
        if self.resolved_identifier is None:
            raise ValueError("username or email is required")
        return self

    @property
    def resolved_identifier(self) -> Optional[str]:
        """Return the first non-blank of identifier, username, email."""
        for candidate in (self.identifier, self.username, self.email):
            if candidate and candidate.strip():
                return candidate.strip()
        return None


class RefreshRequest(CamelModel):
    """Body of a refresh call; the cookie takes precedence when present."""

    refresh_token: Optional[str] = None


class ChangePasswordRequest(CamelModel):
    """Request to replace the current password.

    Attributes:
        old_password: Current password, verified before the change
        new_password: Replacement password
    """

    old_password: str
    new_password: str

    @field_validator("new_password")
    @classmethod
    def new_password_fits_bcrypt(cls, v: str) -> str:
        if password_too_long(v):
            raise ValueError(PASSWORD_TOO_LONG_MESSAGE)
        return v


class UpdateAccountRequest(CamelModel):
    """Request to update the authenticated user's name and email."""

    full_name: str = ""
    email: str = ""


class TokenPair(CamelModel):
    """Access/refresh token pair issued on login and on every refresh."""

    access_token: str
    refresh_token: str


class LoginResult(CamelModel):
    """Successful login: the safe user view plus the session tokens."""

    user: User
    access_token: str
    refresh_token: str
