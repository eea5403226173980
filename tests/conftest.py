"""Shared fixtures: in-memory storages and flows wired to them."""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from tamerun.audit import AuditLogger
from tamerun.models.finance import Transaction, TransactionType
from tamerun.orchestrator import GoalFlow, TransactionFlow
from tamerun.services.storage import (
    InMemoryAuditStorage,
    InMemoryCategoryStorage,
    InMemoryGoalStorage,
    InMemoryTransactionStorage,
    InMemoryUserStorage,
)


FOOD = 1        # expense
TRANSPORT = 2   # expense
SALARY = 11     # income


@pytest.fixture
def user_id() -> UUID:
    return uuid4()


@pytest.fixture
def other_user_id() -> UUID:
    return uuid4()


@pytest.fixture
def transaction_storage() -> InMemoryTransactionStorage:
    return InMemoryTransactionStorage()


@pytest.fixture
def category_storage() -> InMemoryCategoryStorage:
    return InMemoryCategoryStorage()


@pytest.fixture
def goal_storage() -> InMemoryGoalStorage:
    return InMemoryGoalStorage()


@pytest.fixture
def user_storage() -> InMemoryUserStorage:
    return InMemoryUserStorage()


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage) -> AuditLogger:
    return AuditLogger(audit_storage)


@pytest.fixture
def transaction_flow(transaction_storage, category_storage, audit_logger) -> TransactionFlow:
    return TransactionFlow(transaction_storage, category_storage, audit_logger)


@pytest.fixture
def goal_flow(goal_storage, audit_logger) -> GoalFlow:
    return GoalFlow(goal_storage, audit_logger)


def make_transaction(
    transaction_type: TransactionType,
    amount: str,
    on_date: date,
    transaction_id: int = 1,
    user_id: UUID = None,
    category_id: int = FOOD,
) -> Transaction:
    """Build a stored transaction without going through a storage."""
    return Transaction(
        transaction_id=transaction_id,
        user_id=user_id or uuid4(),
        type=transaction_type,
        amount=Decimal(amount),
        category_id=category_id,
        date=on_date,
        created_at=datetime(2024, 6, 1, 12, 0, 0),
    )
