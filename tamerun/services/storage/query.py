"""
Filtering and ordering shared by the storage backends.

Neither backend can sort or filter server-side, so both run the same
helpers over the rows they hold.
"""

from datetime import date
from typing import Optional

from tamerun.models.finance import Category, SavingsGoal, Transaction, TransactionType


def sort_categories(categories: list[Category]) -> list[Category]:
    return sorted(categories, key=lambda c: (c.display_order, c.name, c.category_id))


def sort_transactions(transactions: list[Transaction]) -> list[Transaction]:
    """Newest date first, then newest created first (id breaks ties)."""
    return sorted(
        transactions,
        key=lambda t: (t.date, t.created_at, t.transaction_id),
        reverse=True,
    )


def sort_goals(goals: list[SavingsGoal]) -> list[SavingsGoal]:
    """Newest goal first."""
    return sorted(goals, key=lambda g: (g.created_at, g.goal_id), reverse=True)


def matches_filters(
    transaction: Transaction,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    transaction_type: Optional[TransactionType] = None,
) -> bool:
    if date_from and transaction.date < date_from:
        return False
    if date_to and transaction.date > date_to:
        return False
    if transaction_type and transaction.type is not transaction_type:
        return False
    return True
