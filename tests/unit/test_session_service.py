"""Unit tests for SessionService: login, refresh rotation and logout."""

import asyncio
from unittest.mock import AsyncMock, patch

import jwt
import pytest

from account_service.errors import (
    InternalError,
    NotFoundError,
    UnauthorizedError,
)
from account_service.services.credential_store import RotationResult
from account_service.services.session_service import (
    REFRESH_REJECTED_MESSAGE,
    SessionService,
)
from account_service.services.token_service import hash_token


@pytest.fixture
def sessions(fake_store, token_service):
    return SessionService(fake_store, token_service)


@pytest.fixture
async def alice(fake_store):
    return await fake_store.register(
        full_name="Alice A",
        email="a@x.com",
        username="alice",
        password="Secret1!",
        avatar_url="https://media.test/avatar.png",
    )


class TestLogin:
    """Tests for SessionService.login."""

    async def test_issues_pair_and_fills_slot(self, sessions, fake_store, token_service, alice):
        result = await sessions.login("alice", "Secret1!")

        assert result.user.id == alice.id
        assert token_service.verify_access(result.access_token) == alice.id
        assert fake_store.slot_of(alice.id) == hash_token(result.refresh_token)

    async def test_login_by_email(self, sessions, alice):
        result = await sessions.login("A@X.com", "Secret1!")
        assert result.user.username == "alice"

    async def test_user_view_has_no_secrets(self, sessions, alice):
        result = await sessions.login("alice", "Secret1!")
        dumped = result.model_dump(by_alias=True)
        assert "password" not in dumped["user"]
        assert "passwordHash" not in dumped["user"]
        assert "refreshToken" not in dumped["user"]

    async def test_unknown_user(self, sessions):
        with pytest.raises(NotFoundError):
            await sessions.login("ghost", "Secret1!")

    async def test_wrong_password(self, sessions, fake_store, alice):
        with pytest.raises(UnauthorizedError):
            await sessions.login("alice", "wrong")
        assert fake_store.slot_of(alice.id) is None

    async def test_minting_failure_is_masked_as_internal(self, sessions, token_service, alice):
        with patch.object(token_service, "mint_pair", side_effect=RuntimeError("hsm offline")):
            with pytest.raises(InternalError) as exc_info:
                await sessions.login("alice", "Secret1!")

        assert "hsm" not in exc_info.value.message
        assert exc_info.value.status_code == 500

    async def test_slot_write_failure_is_masked_as_internal(self, sessions, fake_store, alice):
        with patch.object(fake_store, "set_refresh_token", AsyncMock(side_effect=OSError("db down"))):
            with pytest.raises(InternalError):
                await sessions.login("alice", "Secret1!")

    async def test_second_login_supersedes_first_session(self, sessions, alice):
        first = await sessions.login("alice", "Secret1!")
        await sessions.login("alice", "Secret1!")

        with pytest.raises(UnauthorizedError):
            await sessions.refresh(first.refresh_token)


class TestRefresh:
    """Tests for SessionService.refresh."""

    async def test_rotates_to_new_pair(self, sessions, fake_store, token_service, alice):
        login = await sessions.login("alice", "Secret1!")

        pair = await sessions.refresh(login.refresh_token)

        assert pair.refresh_token != login.refresh_token
        assert token_service.verify_access(pair.access_token) == alice.id
        assert fake_store.slot_of(alice.id) == hash_token(pair.refresh_token)

    async def test_rotated_access_token_keeps_login_claims(self, sessions, alice):
        login = await sessions.login("alice", "Secret1!")
        pair = await sessions.refresh(login.refresh_token)

        before = jwt.decode(login.access_token, options={"verify_signature": False})
        after = jwt.decode(pair.access_token, options={"verify_signature": False})

        assert set(after) == set(before)
        assert after["username"] == "alice"

    async def test_previous_token_is_dead_after_rotation(self, sessions, token_service, alice):
        login = await sessions.login("alice", "Secret1!")
        await sessions.refresh(login.refresh_token)

        # Still cryptographically valid...
        assert token_service.verify_refresh(login.refresh_token).ok
        # ...but no longer the live slot value.
        with pytest.raises(UnauthorizedError, match=REFRESH_REJECTED_MESSAGE):
            await sessions.refresh(login.refresh_token)

    async def test_chain_of_rotations(self, sessions, alice):
        token = (await sessions.login("alice", "Secret1!")).refresh_token
        for _ in range(3):
            token = (await sessions.refresh(token)).refresh_token
        assert (await sessions.refresh(token)).refresh_token != token

    async def test_concurrent_refresh_on_same_token_only_one_wins(self, sessions, alice):
        login = await sessions.login("alice", "Secret1!")

        results = await asyncio.gather(
            sessions.refresh(login.refresh_token),
            sessions.refresh(login.refresh_token),
            return_exceptions=True,
        )

        successes = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, UnauthorizedError)]
        assert len(successes) == 1
        assert len(failures) == 1

    @pytest.mark.parametrize("token", [None, "", "   "])
    async def test_missing_token(self, sessions, token):
        with pytest.raises(UnauthorizedError, match="Unauthorized request"):
            await sessions.refresh(token)

    async def test_forged_token_same_message(self, sessions):
        with pytest.raises(UnauthorizedError) as exc_info:
            await sessions.refresh("forged.token.value")
        assert exc_info.value.message == REFRESH_REJECTED_MESSAGE

    async def test_access_token_cannot_refresh(self, sessions, alice):
        login = await sessions.login("alice", "Secret1!")
        with pytest.raises(UnauthorizedError, match=REFRESH_REJECTED_MESSAGE):
            await sessions.refresh(login.access_token)

    async def test_storage_error_collapses_to_unauthorized(self, sessions, fake_store, alice):
        login = await sessions.login("alice", "Secret1!")
        with patch.object(
            fake_store,
            "rotate_refresh_token",
            AsyncMock(return_value=RotationResult.STORAGE_ERROR),
        ):
            with pytest.raises(UnauthorizedError, match=REFRESH_REJECTED_MESSAGE):
                await sessions.refresh(login.refresh_token)

    async def test_refresh_after_logout_fails(self, sessions, alice):
        login = await sessions.login("alice", "Secret1!")
        await sessions.logout(alice.id)
        with pytest.raises(UnauthorizedError):
            await sessions.refresh(login.refresh_token)


class TestLogout:
    """Tests for SessionService.logout."""

    async def test_clears_slot(self, sessions, fake_store, alice):
        await sessions.login("alice", "Secret1!")
        await sessions.logout(alice.id)
        assert fake_store.slot_of(alice.id) is None

    async def test_idempotent(self, sessions, fake_store, alice):
        await sessions.login("alice", "Secret1!")
        await sessions.logout(alice.id)
        await sessions.logout(alice.id)
        assert fake_store.slot_of(alice.id) is None
