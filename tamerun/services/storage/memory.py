"""
In-Memory Storage Implementation

Implements every storage interface with plain lists. Used by the test
suite and by the app's demo mode when no spreadsheet is configured.

Rows are copied on the way in and on the way out, so callers can never
mutate stored state by holding on to a returned model.
"""

from datetime import date, datetime
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
from tamerun.services.storage.defaults import DEFAULT_CATEGORIES
from tamerun.services.storage.query import (
    matches_filters,
    sort_categories,
    sort_goals,
    sort_transactions,
)
from tamerun.services.storage.interface import (
    AuditStorageInterface,
    CategoryStorageInterface,
    DuplicateError,
    GoalStorageInterface,
    NotFoundError,
    TransactionStorageInterface,
    UserStorageInterface,
)


class InMemoryTransactionStorage(TransactionStorageInterface):
    """Transactions kept in a list; ids count up from 1."""

    def __init__(self):
        self._rows: list[Transaction] = []
        self._next_id = 1

    async def list_transactions(
        self,
        user_id: UUID,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        transaction_type: Optional[TransactionType] = None,
    ) -> list[Transaction]:
        rows = [
            row.model_copy()
            for row in self._rows
            if row.user_id == user_id
            and matches_filters(row, date_from, date_to, transaction_type)
        ]
        return sort_transactions(rows)

    async def get_transaction(self, user_id: UUID, transaction_id: int) -> Optional[Transaction]:
        for row in self._rows:
            if row.transaction_id == transaction_id and row.user_id == user_id:
                return row.model_copy()
        return None

    async def insert_transaction(self, new: NewTransaction) -> Transaction:
        transaction = Transaction(
            transaction_id=self._next_id,
            created_at=datetime.utcnow(),
            **new.model_dump(),
        )
        self._next_id += 1
        self._rows.append(transaction)
        return transaction.model_copy()

    async def update_transaction(
        self,
        user_id: UUID,
        transaction_id: int,
        update: TransactionUpdate,
    ) -> Transaction:
        for index, row in enumerate(self._rows):
            if row.transaction_id == transaction_id and row.user_id == user_id:
                self._rows[index] = row.model_copy(update=update.changes())
                return self._rows[index].model_copy()
        raise NotFoundError(f"Transaction not found: {transaction_id}")

    async def delete_transaction(self, user_id: UUID, transaction_id: int) -> bool:
        for index, row in enumerate(self._rows):
            if row.transaction_id == transaction_id and row.user_id == user_id:
                del self._rows[index]
                return True
        return False


class InMemoryCategoryStorage(CategoryStorageInterface):
    """Read-only categories, seeded with the defaults unless given others."""

    def __init__(self, categories: Optional[list[Category]] = None):
        self._categories = list(categories if categories is not None else DEFAULT_CATEGORIES)

    async def list_categories(
        self,
        transaction_type: Optional[TransactionType] = None,
    ) -> list[Category]:
        categories = [
            category for category in self._categories
            if transaction_type is None or category.type is transaction_type
        ]
        return sort_categories(categories)


class InMemoryGoalStorage(GoalStorageInterface):
    def __init__(self):
        self._goals: list[SavingsGoal] = []
        self._next_id = 1

    async def list_goals(self, user_id: UUID) -> list[SavingsGoal]:
        return sort_goals([goal.model_copy() for goal in self._goals if goal.user_id == user_id])

    async def get_goal(self, user_id: UUID, goal_id: int) -> Optional[SavingsGoal]:
        for goal in self._goals:
            if goal.goal_id == goal_id and goal.user_id == user_id:
                return goal.model_copy()
        return None

    async def insert_goal(self, new: NewSavingsGoal) -> SavingsGoal:
        values = new.model_dump()
        values["deadline"] = new.deadline.isoformat() if new.deadline else None
        goal = SavingsGoal(goal_id=self._next_id, created_at=datetime.utcnow(), **values)
        self._next_id += 1
        self._goals.append(goal)
        return goal.model_copy()

    async def update_goal(
        self,
        user_id: UUID,
        goal_id: int,
        update: SavingsGoalUpdate,
    ) -> SavingsGoal:
        for index, goal in enumerate(self._goals):
            if goal.goal_id == goal_id and goal.user_id == user_id:
                self._goals[index] = goal.model_copy(update=update.changes())
                return self._goals[index].model_copy()
        raise NotFoundError(f"Goal not found: {goal_id}")

    async def delete_goal(self, user_id: UUID, goal_id: int) -> bool:
        for index, goal in enumerate(self._goals):
            if goal.goal_id == goal_id and goal.user_id == user_id:
                del self._goals[index]
                return True
        return False


class InMemoryUserStorage(UserStorageInterface):
    def __init__(self):
        self._users: dict[UUID, User] = {}

    async def get_user_by_email(self, email: str) -> Optional[User]:
        email = email.strip().lower()
        for user in self._users.values():
            if user.email == email:
                return user.model_copy()
        return None

    async def get_user_by_token(self, confirmation_token: str) -> Optional[User]:
        for user in self._users.values():
            if user.confirmation_token and user.confirmation_token == confirmation_token:
                return user.model_copy()
        return None

    async def save_user(self, user: User) -> User:
        for existing in self._users.values():
            if existing.email == user.email and existing.user_id != user.user_id:
                raise DuplicateError(f"Email already registered: {user.email}")
        self._users[user.user_id] = user.model_copy()
        return user


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only event list."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return sorted(self.events, key=lambda e: e.timestamp, reverse=True)[:limit]
