"""
Validation Rules

Pure predicates, run before anything is sent to the store.
Each returns a RuleResult: pass/fail, a human-readable reason, and the
parsed value on success. Expected failures are never raised.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from tamerun.models.finance import Category, TransactionType
from tamerun.models.results import RuleResult
from tamerun.validation.coercion import parse_amount, parse_calendar_date, parse_int


MAX_GOAL_NAME_LENGTH = 100
MAX_MEMO_LENGTH = 200
CENT = Decimal("0.01")

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _has_sub_cent_digits(value: Decimal) -> bool:
    return value.normalize().as_tuple().exponent < -2


def _to_cents(value: Decimal) -> Optional[Decimal]:
    """Two-place form of the value, or None if it is too large to represent."""
    try:
        return value.quantize(CENT)
    except InvalidOperation:
        return None


def is_valid_amount(raw: Any, max_amount: Optional[Decimal] = None) -> RuleResult:
    """
    Transaction amount: numeric and strictly positive.

    The same rule applies when creating and when editing a transaction.
    """
    value = parse_amount(raw)
    if value is None:
        return RuleResult.failed("Please enter the amount as a number")
    if value <= 0:
        return RuleResult.failed("Amount must be greater than zero")
    if _has_sub_cent_digits(value):
        return RuleResult.failed("Amount can have at most 2 decimal places")
    if max_amount is not None and value > max_amount:
        return RuleResult.failed(f"Amount must not exceed {max_amount:,}")
    cents = _to_cents(value)
    if cents is None:
        return RuleResult.failed("Amount is too large")
    return RuleResult.passed(cents)


def is_valid_category_selection(category_id: Any) -> RuleResult:
    if category_id is None or category_id == "":
        return RuleResult.failed("Please select a category")
    value = parse_int(category_id)
    if value is None:
        return RuleResult.failed("Please select a category")
    return RuleResult.passed(value)


def is_valid_category_for_type(
    category: Optional[Category],
    transaction_type: TransactionType,
) -> RuleResult:
    """A transaction's category must be one of that transaction type's categories."""
    if category is None:
        return RuleResult.failed("The selected category does not exist")
    if category.type is not transaction_type:
        return RuleResult.failed(
            f"Category '{category.name}' is for {category.type.value}, "
            f"not {transaction_type.value}"
        )
    return RuleResult.passed(category)


def is_valid_transaction_type(raw: Any) -> RuleResult:
    try:
        return RuleResult.passed(TransactionType(raw))
    except ValueError:
        return RuleResult.failed("Type must be income or expense")


def is_valid_goal_target(raw: Any) -> RuleResult:
    value = parse_amount(raw)
    if value is None or value <= 0:
        return RuleResult.failed("Please enter a target amount greater than zero")
    if _has_sub_cent_digits(value):
        return RuleResult.failed("Target amount can have at most 2 decimal places")
    cents = _to_cents(value)
    if cents is None:
        return RuleResult.failed("Target amount is too large")
    return RuleResult.passed(cents)


def is_valid_goal_current(raw: Any) -> RuleResult:
    value = parse_amount(raw)
    if value is None or value < 0:
        return RuleResult.failed("Please enter a current amount of zero or more")
    if _has_sub_cent_digits(value):
        return RuleResult.failed("Current amount can have at most 2 decimal places")
    cents = _to_cents(value)
    if cents is None:
        return RuleResult.failed("Current amount is too large")
    return RuleResult.passed(cents)


def is_valid_date_string(raw: Any) -> RuleResult:
    value = parse_calendar_date(raw)
    if value is None:
        return RuleResult.failed("Please enter a valid date (YYYY-MM-DD)")
    return RuleResult.passed(value)


def is_valid_goal_name(raw: Any) -> RuleResult:
    name = str(raw or "").strip()
    if not name:
        return RuleResult.failed("Please enter a goal name")
    if len(name) > MAX_GOAL_NAME_LENGTH:
        return RuleResult.failed(
            f"Goal name must be {MAX_GOAL_NAME_LENGTH} characters or fewer"
        )
    return RuleResult.passed(name)


def is_valid_memo(raw: Any) -> RuleResult:
    """Memo is optional; blank means no memo."""
    memo = str(raw or "").strip()
    if len(memo) > MAX_MEMO_LENGTH:
        return RuleResult.failed(f"Memo must be {MAX_MEMO_LENGTH} characters or fewer")
    return RuleResult.passed(memo or None)


def is_valid_email(raw: Any) -> RuleResult:
    email = str(raw or "").strip().lower()
    if not _EMAIL_PATTERN.match(email):
        return RuleResult.failed("Please enter a valid email address")
    return RuleResult.passed(email)


def is_valid_password(raw: Any, min_length: int = 6) -> RuleResult:
    password = raw if isinstance(raw, str) else ""
    if len(password) < min_length:
        return RuleResult.failed(f"Password must be at least {min_length} characters")
    return RuleResult.passed(password)
