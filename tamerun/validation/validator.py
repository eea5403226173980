"""
Form Validation

Runs the validation rules over a whole form submission and collects
every issue at once, so the user sees all problems in one go.

IMPORTANT: Validation NEVER silently fixes issues, and NEVER talks to
the store. Categories are passed in by the caller (they were already
fetched for the form's dropdown).
"""

from decimal import Decimal
from typing import Any, Iterable, Optional

from pydantic import Field

from tamerun.config import get_settings
from tamerun.models.finance import Category
from tamerun.models.results import RuleResult, ValidationIssue, ValidationResult
from tamerun.validation import rules


class FormValidation(ValidationResult):
    """ValidationResult plus the parsed values of the fields that passed."""

    values: dict[str, Any] = Field(default_factory=dict)

    def check(self, field: str, result: RuleResult, issue_type: str = "invalid_value") -> bool:
        if result.ok:
            self.values[field] = result.value
            return True
        self.issues.append(ValidationIssue(
            field=field,
            issue_type=issue_type,
            message=result.reason or "Invalid value",
        ))
        return False


class TransactionFormValidator:
    """Validates the entry form and the edit form for transactions."""

    def __init__(self, max_amount: Optional[Decimal] = None):
        if max_amount is None:
            max_amount = Decimal(str(get_settings().app.max_transaction_amount))
        self._max_amount = max_amount

    def _check_category(
        self,
        form: FormValidation,
        category_id: Any,
        categories: Iterable[Category],
    ) -> None:
        if not form.check("category_id", rules.is_valid_category_selection(category_id), "missing"):
            return
        transaction_type = form.values.get("type")
        if transaction_type is None:
            return
        by_id = {category.category_id: category for category in categories}
        category = by_id.get(form.values["category_id"])
        form.check(
            "category",
            rules.is_valid_category_for_type(category, transaction_type),
            "mismatch",
        )

    def validate_new(
        self,
        transaction_type: Any,
        amount: Any,
        category_id: Any,
        on_date: Any,
        categories: Iterable[Category],
        memo: Any = None,
    ) -> FormValidation:
        form = FormValidation()
        form.check("type", rules.is_valid_transaction_type(transaction_type))
        form.check("amount", rules.is_valid_amount(amount, self._max_amount))
        self._check_category(form, category_id, categories)
        form.check("date", rules.is_valid_date_string(on_date))
        form.check("memo", rules.is_valid_memo(memo))
        return form

    def validate_edit(
        self,
        transaction_type: Any,
        amount: Any,
        category_id: Any,
        on_date: Any,
        categories: Iterable[Category],
    ) -> FormValidation:
        """
        Edit form: amount, category and date are all required.

        ``transaction_type`` is the stored transaction's type; it cannot
        be changed by an edit but decides which categories are allowed.
        """
        form = FormValidation()
        form.check("type", rules.is_valid_transaction_type(transaction_type))
        form.check("amount", rules.is_valid_amount(amount, self._max_amount))
        self._check_category(form, category_id, categories)
        form.check("date", rules.is_valid_date_string(on_date))
        return form


class GoalFormValidator:
    """Validates the create and edit forms for savings goals."""

    @staticmethod
    def _check_deadline(form: FormValidation, deadline: Any) -> None:
        # Blank means "no deadline"
        if deadline is None or str(deadline).strip() == "":
            form.values["deadline"] = None
            return
        form.check("deadline", rules.is_valid_date_string(deadline))

    def validate_new(self, goal_name: Any, target_amount: Any, deadline: Any = None) -> FormValidation:
        form = FormValidation()
        form.check("goal_name", rules.is_valid_goal_name(goal_name))
        form.check("target_amount", rules.is_valid_goal_target(target_amount))
        self._check_deadline(form, deadline)
        return form

    def validate_edit(
        self,
        goal_name: Any,
        target_amount: Any,
        current_amount: Any,
        deadline: Any = None,
    ) -> FormValidation:
        form = FormValidation()
        form.check("goal_name", rules.is_valid_goal_name(goal_name))
        form.check("target_amount", rules.is_valid_goal_target(target_amount))
        form.check("current_amount", rules.is_valid_goal_current(current_amount))
        self._check_deadline(form, deadline)
        return form


class CredentialsValidator:
    """Validates sign-in and sign-up forms."""

    def __init__(self, min_password_length: Optional[int] = None):
        if min_password_length is None:
            min_password_length = get_settings().app.min_password_length
        self._min_password_length = min_password_length

    def validate(self, email: Any, password: Any) -> FormValidation:
        form = FormValidation()
        form.check("email", rules.is_valid_email(email))
        form.check("password", rules.is_valid_password(password, self._min_password_length))
        return form


def get_user_friendly_summary(result: ValidationResult) -> str:
    """One line per problem, for showing under a form."""
    if result.is_valid:
        return ""
    return "\n".join(f"• {message}" for message in result.messages)
