"""
Daily Aggregation Engine

Turns one window of transactions into per-day totals for the calendar
and into date-grouped lists for the history screen.

DESIGN DECISION: A date with no transactions has NO entry in the totals
mapping (absence, not a zero-valued entry). The calendar simply shows
nothing for that day.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from tamerun.models.finance import (
    DailyTotal,
    MonthSummary,
    MonthWindow,
    Transaction,
    TransactionType,
)


def aggregate_daily_totals(transactions: Iterable[Transaction]) -> dict[str, DailyTotal]:
    """
    Sum income and expense per date in a single pass.

    Keys are ISO date strings. Each transaction lands in exactly one
    bucket, and the result doesn't depend on input order.
    """
    totals: dict[str, DailyTotal] = {}
    for transaction in transactions:
        bucket = totals.setdefault(transaction.date_key, DailyTotal())
        bucket.add(transaction.type, transaction.amount)
    return totals


def transactions_for_date(
    transactions: Iterable[Transaction],
    day: date,
) -> list[Transaction]:
    return [transaction for transaction in transactions if transaction.date == day]


def select_transactions(
    transactions: Iterable[Transaction],
    selected_date: Optional[date] = None,
) -> list[Transaction]:
    """
    The history list's filter: one day's transactions when a date is
    selected, otherwise the whole window. Never both.
    """
    if selected_date is not None:
        return transactions_for_date(transactions, selected_date)
    return list(transactions)


def group_by_date(transactions: Iterable[Transaction]) -> list[tuple[date, list[Transaction]]]:
    """
    Group transactions for display, newest date first.

    Within a day the incoming order is kept (the store returns newest
    created first).
    """
    groups: dict[date, list[Transaction]] = defaultdict(list)
    for transaction in transactions:
        groups[transaction.date].append(transaction)
    return sorted(groups.items(), key=lambda item: item[0], reverse=True)


def filter_to_window(
    transactions: Iterable[Transaction],
    window: MonthWindow,
) -> list[Transaction]:
    return [transaction for transaction in transactions if window.contains(transaction.date)]


def summarize_month(
    transactions: Iterable[Transaction],
    window: MonthWindow,
) -> MonthSummary:
    """Totals for the dashboard and stats screens, with per-category breakdown."""
    summary = MonthSummary(window=window)
    for transaction in filter_to_window(transactions, window):
        summary.transaction_count += 1
        if transaction.type is TransactionType.INCOME:
            summary.income_total += transaction.amount
            by_category = summary.income_by_category
        else:
            summary.expense_total += transaction.amount
            by_category = summary.expense_by_category
        by_category[transaction.category_id] = (
            by_category.get(transaction.category_id, Decimal("0")) + transaction.amount
        )
    return summary
