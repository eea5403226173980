"""Services package."""

from tamerun.services.auth import (
    AuthError,
    AuthService,
)
from tamerun.services.storage import (
    AuditStorageInterface,
    CategoryStorageInterface,
    DuplicateError,
    GoalStorageInterface,
    GoogleSheetsClient,
    NotFoundError,
    StorageConnectionError,
    StorageError,
    TransactionStorageInterface,
    UserStorageInterface,
)

__all__ = [
    # Auth service
    "AuthError",
    "AuthService",
    # Storage services
    "AuditStorageInterface",
    "CategoryStorageInterface",
    "DuplicateError",
    "GoalStorageInterface",
    "GoogleSheetsClient",
    "NotFoundError",
    "StorageConnectionError",
    "StorageError",
    "TransactionStorageInterface",
    "UserStorageInterface",
]
