"""Pure calculations over fetched rows: goal progress and daily totals."""

from tamerun.calculators.daily_totals import (
    aggregate_daily_totals,
    filter_to_window,
    group_by_date,
    select_transactions,
    summarize_month,
    transactions_for_date,
)
from tamerun.calculators.goal_progress import (
    calculate_goal_progress,
    clean_deadline,
    days_between,
    goal_with_progress,
    round_up_to_unit,
    whole_months_between,
)

__all__ = [
    "aggregate_daily_totals",
    "filter_to_window",
    "group_by_date",
    "select_transactions",
    "summarize_month",
    "transactions_for_date",
    "calculate_goal_progress",
    "clean_deadline",
    "days_between",
    "goal_with_progress",
    "round_up_to_unit",
    "whole_months_between",
]
