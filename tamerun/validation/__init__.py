"""Input validation package."""

from tamerun.validation import rules
from tamerun.validation.coercion import (
    coerce_amount,
    parse_amount,
    parse_bool,
    parse_calendar_date,
    parse_int,
)
from tamerun.validation.validator import (
    CredentialsValidator,
    FormValidation,
    GoalFormValidator,
    TransactionFormValidator,
    get_user_friendly_summary,
)

__all__ = [
    "rules",
    "coerce_amount",
    "parse_amount",
    "parse_bool",
    "parse_calendar_date",
    "parse_int",
    "CredentialsValidator",
    "FormValidation",
    "GoalFormValidator",
    "TransactionFormValidator",
    "get_user_friendly_summary",
]
