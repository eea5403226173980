"""
Goal Progress Calculator

Derives the figures shown on a savings goal card from the stored goal:
progress percentage, monthly amount still required, and time left.

Edge cases handled on purpose:
- target of zero gives 0% progress (no division by zero)
- progress is clamped to 0..100, so over-achievement just reads "complete"
- a deadline in the past, or in the current month, asks for 0 per month
- a deadline that doesn't parse is treated as "no deadline", but the
  stored text is still reported back rather than dropped
"""

from datetime import date, datetime
from decimal import ROUND_CEILING, Decimal
from typing import Any, Optional, Union

from tamerun.models.finance import GoalProgress, GoalWithProgress, SavingsGoal
from tamerun.validation.coercion import coerce_amount, parse_calendar_date


ZERO = Decimal("0")
HUNDRED = Decimal("100")


def whole_months_between(later: date, earlier: date) -> int:
    """
    Number of full calendar months from ``earlier`` to ``later``.

    Negative when ``later`` is before ``earlier``. Partial months are
    truncated toward zero: a month only counts once its day-of-month
    has been reached.
    """
    months = (later.year - earlier.year) * 12 + (later.month - earlier.month)
    if months > 0 and later.day < earlier.day:
        months -= 1
    elif months < 0 and later.day > earlier.day:
        months += 1
    return months


def days_between(later: date, earlier: date) -> int:
    return (later - earlier).days


def _as_date(now: Union[date, datetime, None]) -> date:
    if now is None:
        return date.today()
    if isinstance(now, datetime):
        return now.date()
    return now


def clean_deadline(raw: Any) -> str:
    """
    The deadline as it should be shown back to the user.

    Parsed deadlines come back in ISO form; unparseable ones come back
    as the stored text (stripped); missing ones as "".
    """
    parsed = parse_calendar_date(raw)
    if parsed is not None:
        return parsed.isoformat()
    if raw is None:
        return ""
    return str(raw).strip()


def calculate_goal_progress(
    target_amount: Any,
    current_amount: Any,
    deadline: Any = None,
    now: Union[date, datetime, None] = None,
) -> GoalProgress:
    """
    Compute the derived figures for one goal.

    Args:
        target_amount: Stored target; non-numeric counts as zero
        current_amount: Stored current amount; non-numeric counts as zero
        deadline: Optional deadline (date or string)
        now: Reference instant, defaults to today

    Returns:
        GoalProgress. months/days remaining are None when there is no
        usable deadline.
    """
    target = coerce_amount(target_amount)
    current = coerce_amount(current_amount)

    if target > 0:
        ratio = current / target * HUNDRED
        progress = float(min(max(ratio, ZERO), HUNDRED))
    else:
        progress = 0.0

    months_remaining: Optional[int] = None
    days_remaining: Optional[int] = None
    monthly_required = ZERO

    deadline_date = parse_calendar_date(deadline)
    if deadline_date is not None:
        today = _as_date(now)
        months_remaining = whole_months_between(deadline_date, today)
        days_remaining = days_between(deadline_date, today)
        # Only divide by a positive number of months
        if months_remaining > 0:
            monthly_required = max((target - current) / months_remaining, ZERO)

    return GoalProgress(
        progress_percentage=progress,
        monthly_required_amount=monthly_required,
        days_remaining=days_remaining,
        months_remaining=months_remaining,
    )


def goal_with_progress(
    goal: SavingsGoal,
    now: Union[date, datetime, None] = None,
) -> GoalWithProgress:
    """Attach freshly computed progress to a stored goal."""
    return GoalWithProgress(
        goal=goal,
        progress=calculate_goal_progress(
            goal.target_amount,
            goal.current_amount,
            goal.deadline,
            now=now,
        ),
        deadline=clean_deadline(goal.deadline),
    )


def round_up_to_unit(amount: Decimal) -> Decimal:
    """Monthly required amounts are shown rounded up to a whole unit."""
    return amount.quantize(Decimal("1"), rounding=ROUND_CEILING)
