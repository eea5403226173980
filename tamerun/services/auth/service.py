"""
Email/Password Authentication Service

Issues the session principal whose user_id scopes every store call.

Sign-up is two-step: ``sign_up`` stores an unconfirmed account and
returns a confirmation token (to be mailed as a link to the redirect
URL), and ``confirm`` activates it. Unconfirmed accounts cannot sign in.

DESIGN DECISION: Passwords are stored only as werkzeug salted hashes.
Session state lives on the service instance (one per app session), and
screens observe it through ``subscribe`` instead of polling.
"""

import secrets
from enum import Enum
from typing import Callable, Optional

import structlog
from werkzeug.security import check_password_hash, generate_password_hash

from tamerun.config import get_settings
from tamerun.models.auth import Session, SignUpResult, User
from tamerun.services.storage.interface import DuplicateError, UserStorageInterface
from tamerun.validation.validator import CredentialsValidator


logger = structlog.get_logger(__name__)


class AuthError(Exception):
    """Sign-up, confirmation or sign-in was refused. The message is user-facing."""
    pass


class AuthChangeEvent(str, Enum):
    SIGNED_IN = "signed_in"
    SIGNED_OUT = "signed_out"


AuthListener = Callable[[AuthChangeEvent, Optional[Session]], None]


class AuthService:
    """
    Authentication against a user store.

    Usage:
        auth = AuthService(InMemoryUserStorage())
        pending = await auth.sign_up("a@example.com", "secret1")
        await auth.confirm(pending.confirmation_token)
        session = await auth.sign_in("a@example.com", "secret1")
    """

    def __init__(
        self,
        users: UserStorageInterface,
        redirect_url: Optional[str] = None,
        min_password_length: Optional[int] = None,
    ):
        self._users = users
        self._redirect_url = redirect_url or get_settings().app.email_redirect_url
        self._validator = CredentialsValidator(min_password_length)
        self._session: Optional[Session] = None
        self._listeners: list[AuthListener] = []

    def _checked_credentials(self, email: str, password: str) -> tuple[str, str]:
        form = self._validator.validate(email, password)
        if not form.is_valid:
            raise AuthError(form.first_message)
        return form.values["email"], form.values["password"]

    async def sign_up(
        self,
        email: str,
        password: str,
        redirect_to: Optional[str] = None,
    ) -> SignUpResult:
        """
        Register an account pending email confirmation.

        Raises:
            AuthError: Invalid credentials or email already registered
            StorageError: The user store failed
        """
        email, password = self._checked_credentials(email, password)
        if await self._users.get_user_by_email(email) is not None:
            raise AuthError("This email address is already registered")

        user = User(
            email=email,
            password_hash=generate_password_hash(password),
            confirmation_token=secrets.token_urlsafe(32),
        )
        try:
            await self._users.save_user(user)
        except DuplicateError:
            raise AuthError("This email address is already registered")

        logger.info("sign_up_pending", user_id=str(user.user_id))
        return SignUpResult(
            user_id=user.user_id,
            email=user.email,
            redirect_to=redirect_to or self._redirect_url,
            confirmation_token=user.confirmation_token,
        )

    async def confirm(self, confirmation_token: str) -> User:
        """Activate the account the token was issued for. Tokens are single-use."""
        user = await self._users.get_user_by_token(confirmation_token) if confirmation_token else None
        if user is None:
            raise AuthError("This confirmation link is invalid or has already been used")

        confirmed = user.model_copy(update={"confirmed": True, "confirmation_token": None})
        await self._users.save_user(confirmed)
        return confirmed

    async def sign_in(self, email: str, password: str) -> Session:
        """
        Start a session.

        The same message is used for an unknown email and a wrong password.
        """
        email = str(email or "").strip().lower()
        user = await self._users.get_user_by_email(email) if email else None
        if user is None or not check_password_hash(user.password_hash, password or ""):
            raise AuthError("Invalid email or password")
        if not user.confirmed:
            raise AuthError("Please confirm your email address before signing in")

        self._session = Session(
            user_id=user.user_id,
            email=user.email,
            access_token=secrets.token_urlsafe(32),
        )
        self._notify(AuthChangeEvent.SIGNED_IN)
        return self._session

    async def sign_out(self) -> None:
        if self._session is None:
            return
        self._session = None
        self._notify(AuthChangeEvent.SIGNED_OUT)

    def current_session(self) -> Optional[Session]:
        return self._session

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        """
        Call ``listener(event, session)`` on every sign-in and sign-out.

        Returns a function that removes the listener again.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, event: AuthChangeEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, self._session)
            except Exception as e:
                # A broken screen callback must not undo the sign-in itself
                logger.error("auth_listener_failed", auth_event=event.value, error=str(e))
