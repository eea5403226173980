"""
Core Data Models for Tamerun

These models define the strict schemas for all data flowing between
the store, the calculators and the screens. They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Give every store operation its own explicit request type

DESIGN DECISION: Request models (NewTransaction, TransactionUpdate, ...)
forbid unknown fields. A payload that does not match the table is
rejected at the boundary instead of being passed through untyped.
"""

import calendar
import datetime as dt
from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """
    Transaction kind.

    DESIGN DECISION: This is a closed two-member set. Category filtering
    and the sign shown next to an amount both rely on it being exhaustive.
    """
    INCOME = "income"
    EXPENSE = "expense"

    @property
    def sign(self) -> str:
        return "+" if self is TransactionType.INCOME else "-"


# =============================================================================
# STORED ROWS
# =============================================================================

class Category(BaseModel):
    """A classification bucket, scoped to one transaction type."""

    category_id: int
    name: str = Field(..., min_length=1, max_length=50)
    icon: str = Field(default="💰", max_length=8)
    type: TransactionType
    display_order: int = 0


class Transaction(BaseModel):
    """
    A single ledger entry as stored.

    Only created by the entry flow, only changed by an explicit edit,
    only deleted after user confirmation.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    transaction_id: int
    user_id: UUID
    type: TransactionType
    amount: Decimal = Field(..., ge=0)
    category_id: Optional[int] = None
    date: dt.date
    memo: Optional[str] = Field(default=None, max_length=200)
    created_at: datetime

    @property
    def date_key(self) -> str:
        """ISO date string used to bucket daily totals."""
        return self.date.isoformat()

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.type is TransactionType.INCOME else -self.amount


class SavingsGoal(BaseModel):
    """
    A savings target as stored.

    Amounts and deadline are kept as read from the store. The deadline is
    the raw string because rows written by other clients may not hold a
    valid date; the progress calculator decides what to do with it.
    """

    goal_id: int
    user_id: UUID
    goal_name: str
    target_amount: Decimal = Decimal("0")
    current_amount: Decimal = Decimal("0")
    deadline: Optional[str] = None
    is_active: bool = True
    created_at: datetime


# =============================================================================
# REQUEST MODELS - one per store operation
# =============================================================================

class NewTransaction(BaseModel):
    """Insert payload for the transactions table."""
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    user_id: UUID
    type: TransactionType
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    category_id: int
    date: dt.date
    memo: Optional[str] = Field(default=None, max_length=200)


class TransactionUpdate(BaseModel):
    """
    Partial update payload for one transaction.

    Only amount, category and date are editable. Fields left unset
    are not sent to the store.
    """
    model_config = ConfigDict(extra="forbid")

    amount: Optional[Decimal] = Field(default=None, gt=0, decimal_places=2)
    category_id: Optional[int] = None
    # Field named like the type; annotate through the module
    date: Optional[dt.date] = None

    @model_validator(mode='after')
    def require_a_change(self) -> 'TransactionUpdate':
        if not self.changes():
            raise ValueError("Update must change at least one field")
        return self

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True, exclude_none=True)


class NewSavingsGoal(BaseModel):
    """Insert payload for the savings_goals table."""
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    user_id: UUID
    goal_name: str = Field(..., min_length=1, max_length=100)
    target_amount: Decimal = Field(..., gt=0, decimal_places=2)
    current_amount: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    deadline: Optional[date] = None
    is_active: bool = True


class SavingsGoalUpdate(BaseModel):
    """
    Partial update payload for one goal.

    Unlike TransactionUpdate, an explicitly passed ``deadline=None``
    clears the deadline, so changes() keeps explicit Nones.
    """
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    goal_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    target_amount: Optional[Decimal] = Field(default=None, gt=0, decimal_places=2)
    current_amount: Optional[Decimal] = Field(default=None, ge=0, decimal_places=2)
    deadline: Optional[date] = None
    is_active: Optional[bool] = None

    @model_validator(mode='after')
    def require_a_change(self) -> 'SavingsGoalUpdate':
        if not self.model_fields_set:
            raise ValueError("Update must change at least one field")
        for name in ("goal_name", "target_amount", "current_amount", "is_active"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be cleared")
        return self

    def changes(self) -> dict:
        """Changed fields in stored form (deadline as ISO text)."""
        changes = self.model_dump(exclude_unset=True)
        if changes.get("deadline") is not None:
            changes["deadline"] = changes["deadline"].isoformat()
        return changes


# =============================================================================
# DERIVED VALUES - computed on read, never persisted
# =============================================================================

class GoalProgress(BaseModel):
    """Derived progress figures for one goal."""

    progress_percentage: float = Field(..., ge=0.0, le=100.0)
    monthly_required_amount: Decimal = Field(..., ge=0)
    days_remaining: Optional[int] = None
    months_remaining: Optional[int] = None

    @property
    def is_achieved(self) -> bool:
        """Terminal display state. Does not touch the goal's active flag."""
        return self.progress_percentage >= 100


class GoalWithProgress(BaseModel):
    """A stored goal together with its freshly computed progress."""

    goal: SavingsGoal
    progress: GoalProgress
    deadline: str = Field(
        default="",
        description="Cleaned ISO date if the deadline parsed, otherwise the stored text"
    )

    @property
    def show_days_remaining(self) -> bool:
        return self.progress.days_remaining is not None and self.progress.days_remaining >= 0

    @property
    def show_monthly_required(self) -> bool:
        months = self.progress.months_remaining
        return self.goal.is_active and bool(self.deadline) and months is not None and months > 0


class DailyTotal(BaseModel):
    """Summed income and expense for one calendar date."""

    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")
    net: Decimal = Decimal("0")

    def add(self, transaction_type: TransactionType, amount: Decimal) -> None:
        if transaction_type is TransactionType.INCOME:
            self.income += amount
        else:
            self.expense += amount
        # Recomputed from the running sums, never accumulated separately
        self.net = self.income - self.expense


class MonthWindow(BaseModel):
    """A calendar month used to filter transactions for history."""
    model_config = ConfigDict(frozen=True)

    year: int = Field(..., ge=1, le=9999)
    month: int = Field(..., ge=1, le=12)

    @classmethod
    def containing(cls, day: date) -> 'MonthWindow':
        return cls(year=day.year, month=day.month)

    @property
    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def last_day(self) -> date:
        return date(self.year, self.month, calendar.monthrange(self.year, self.month)[1])

    def contains(self, day: date) -> bool:
        return self.first_day <= day <= self.last_day

    def previous(self) -> 'MonthWindow':
        return MonthWindow.containing(self.first_day - timedelta(days=1))

    def next(self) -> 'MonthWindow':
        return MonthWindow.containing(self.last_day + timedelta(days=1))

    def days(self) -> list[date]:
        return [
            self.first_day + timedelta(days=offset)
            for offset in range(self.last_day.day)
        ]

    def calendar_cells(self) -> list[Optional[date]]:
        """
        Days of the month for a Sunday-first calendar grid.

        Leading None entries pad the first week so the 1st lands
        under its weekday.
        """
        # date.weekday(): Monday == 0, so Sunday-first offset is (weekday + 1) % 7
        blanks = (self.first_day.weekday() + 1) % 7
        return [None] * blanks + self.days()


class MonthSummary(BaseModel):
    """Totals for one window, used by the dashboard and stats screens."""

    window: MonthWindow
    income_total: Decimal = Decimal("0")
    expense_total: Decimal = Decimal("0")
    transaction_count: int = 0
    income_by_category: dict[Optional[int], Decimal] = Field(default_factory=dict)
    expense_by_category: dict[Optional[int], Decimal] = Field(default_factory=dict)

    @property
    def net(self) -> Decimal:
        return self.income_total - self.expense_total
