"""Authentication services package."""

from tamerun.services.auth.service import (
    AuthChangeEvent,
    AuthError,
    AuthListener,
    AuthService,
)

__all__ = [
    "AuthChangeEvent",
    "AuthError",
    "AuthListener",
    "AuthService",
]
