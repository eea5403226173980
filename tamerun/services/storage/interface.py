"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Run against Google Sheets in production
2. Use in-memory storage for testing and local demo mode
3. Keep business logic decoupled from storage implementation

The interface is intentionally simple - select with filter and order,
insert one, update by id with an explicit partial payload, delete by id.

Every operation takes the owner's user_id. A row that belongs to someone
else behaves exactly like a row that doesn't exist.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Optional
from uuid import UUID

from tamerun.models.audit import AuditEvent
from tamerun.models.auth import User
from tamerun.models.finance import (
    Category,
    NewSavingsGoal,
    NewTransaction,
    SavingsGoal,
    SavingsGoalUpdate,
    Transaction,
    TransactionType,
    TransactionUpdate,
)


class TransactionStorageInterface(ABC):
    """Storage operations for the transactions table."""

    @abstractmethod
    async def list_transactions(
        self,
        user_id: UUID,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        transaction_type: Optional[TransactionType] = None,
    ) -> list[Transaction]:
        """
        List the owner's transactions.

        Args:
            user_id: Owner
            date_from: Only transactions on or after this date
            date_to: Only transactions on or before this date
            transaction_type: Only income or only expense

        Returns:
            Transactions ordered by date descending, then created_at descending
        """

    @abstractmethod
    async def get_transaction(self, user_id: UUID, transaction_id: int) -> Optional[Transaction]:
        """Fetch one transaction, or None if missing or not the owner's."""

    @abstractmethod
    async def insert_transaction(self, new: NewTransaction) -> Transaction:
        """
        Insert one transaction.

        Returns:
            The stored row, with the server-assigned id and created_at

        Raises:
            StorageError: If the insert fails
        """

    @abstractmethod
    async def update_transaction(
        self,
        user_id: UUID,
        transaction_id: int,
        update: TransactionUpdate,
    ) -> Transaction:
        """
        Apply a partial update.

        Raises:
            NotFoundError: If the row doesn't exist for this owner
            StorageError: If the update fails
        """

    @abstractmethod
    async def delete_transaction(self, user_id: UUID, transaction_id: int) -> bool:
        """
        Delete one transaction.

        Returns:
            True if a row was deleted, False if there was nothing to delete
        """


class CategoryStorageInterface(ABC):
    """Read-only access to the pre-seeded categories table."""

    @abstractmethod
    async def list_categories(
        self,
        transaction_type: Optional[TransactionType] = None,
    ) -> list[Category]:
        """Categories ordered by display_order, then name."""


class GoalStorageInterface(ABC):
    """Storage operations for the savings_goals table."""

    @abstractmethod
    async def list_goals(self, user_id: UUID) -> list[SavingsGoal]:
        """The owner's goals, newest first."""

    @abstractmethod
    async def get_goal(self, user_id: UUID, goal_id: int) -> Optional[SavingsGoal]:
        """Fetch one goal, or None if missing or not the owner's."""

    @abstractmethod
    async def insert_goal(self, new: NewSavingsGoal) -> SavingsGoal:
        """Insert one goal and return the stored row."""

    @abstractmethod
    async def update_goal(
        self,
        user_id: UUID,
        goal_id: int,
        update: SavingsGoalUpdate,
    ) -> SavingsGoal:
        """
        Apply a partial update.

        Raises:
            NotFoundError: If the goal doesn't exist for this owner
        """

    @abstractmethod
    async def delete_goal(self, user_id: UUID, goal_id: int) -> bool:
        """Delete one goal. False if there was nothing to delete."""


class UserStorageInterface(ABC):
    """Account records for the authentication service."""

    @abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[User]:
        """Look up an account by (lower-cased) email."""

    @abstractmethod
    async def get_user_by_token(self, confirmation_token: str) -> Optional[User]:
        """Look up a pending account by its confirmation token."""

    @abstractmethod
    async def save_user(self, user: User) -> User:
        """
        Insert or replace an account, keyed by user_id.

        Raises:
            DuplicateError: If another account already uses the email
        """


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Most recent events, newest first."""


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage (or owned by someone else)."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class StorageConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
