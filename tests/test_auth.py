"""Tests for the authentication service."""

import pytest

from tamerun.services.auth import AuthChangeEvent, AuthError, AuthService


REDIRECT = "http://localhost:8501/auth/callback"


@pytest.fixture
def auth(user_storage) -> AuthService:
    return AuthService(user_storage, redirect_url=REDIRECT, min_password_length=6)


async def signed_up_and_confirmed(auth: AuthService, email="a@example.com", password="secret1"):
    pending = await auth.sign_up(email, password)
    await auth.confirm(pending.confirmation_token)
    return pending


class TestSignUp:
    """Tests for registration and confirmation."""

    async def test_sign_up_is_pending_confirmation(self, auth):
        """Test that sign-up returns a pending result with the redirect."""
        pending = await auth.sign_up("A@Example.com", "secret1")
        assert pending.pending_confirmation
        assert pending.email == "a@example.com"
        assert pending.redirect_to == REDIRECT
        assert pending.confirmation_token

    async def test_password_is_hashed(self, auth, user_storage):
        """Test that the plain password is never stored."""
        await auth.sign_up("a@example.com", "secret1")
        user = await user_storage.get_user_by_email("a@example.com")
        assert user.password_hash != "secret1"

    async def test_duplicate_email(self, auth):
        """Test that one email can only register once."""
        await auth.sign_up("a@example.com", "secret1")
        with pytest.raises(AuthError):
            await auth.sign_up("a@example.com", "secret2")

    async def test_short_password_rejected(self, auth):
        """Test the minimum password length."""
        with pytest.raises(AuthError, match="at least 6"):
            await auth.sign_up("a@example.com", "123")

    async def test_confirmation_token_is_single_use(self, auth):
        """Test that a token can't be reused."""
        pending = await auth.sign_up("a@example.com", "secret1")
        user = await auth.confirm(pending.confirmation_token)
        assert user.confirmed
        with pytest.raises(AuthError):
            await auth.confirm(pending.confirmation_token)


class TestSignIn:
    """Tests for sign-in, sign-out and the session observer."""

    async def test_unconfirmed_account_cannot_sign_in(self, auth):
        """Test that confirmation is required first."""
        await auth.sign_up("a@example.com", "secret1")
        with pytest.raises(AuthError, match="confirm"):
            await auth.sign_in("a@example.com", "secret1")

    async def test_sign_in_issues_session(self, auth):
        """Test that the session carries the owner id."""
        pending = await signed_up_and_confirmed(auth)
        session = await auth.sign_in("a@example.com", "secret1")
        assert session.user_id == pending.user_id
        assert auth.current_session() == session

    async def test_wrong_password_and_unknown_email_look_the_same(self, auth):
        """Test that sign-in failures don't reveal which part was wrong."""
        await signed_up_and_confirmed(auth)
        with pytest.raises(AuthError) as wrong_password:
            await auth.sign_in("a@example.com", "nope123")
        with pytest.raises(AuthError) as unknown_email:
            await auth.sign_in("b@example.com", "secret1")
        assert str(wrong_password.value) == str(unknown_email.value)

    async def test_subscribe_sees_sign_in_and_out(self, auth):
        """Test the session observer."""
        await signed_up_and_confirmed(auth)
        seen = []
        unsubscribe = auth.subscribe(lambda event, session: seen.append((event, session)))

        await auth.sign_in("a@example.com", "secret1")
        await auth.sign_out()
        assert [event for event, _ in seen] == [AuthChangeEvent.SIGNED_IN, AuthChangeEvent.SIGNED_OUT]
        assert seen[1][1] is None
        assert auth.current_session() is None

        unsubscribe()
        await auth.sign_in("a@example.com", "secret1")
        assert len(seen) == 2

    async def test_broken_listener_does_not_block_sign_in(self, auth):
        """Test that a failing callback is logged, not raised."""
        await signed_up_and_confirmed(auth)

        def broken(event, session):
            raise RuntimeError("screen gone")

        auth.subscribe(broken)
        session = await auth.sign_in("a@example.com", "secret1")
        assert session is not None
