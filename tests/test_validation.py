"""Tests for validation rules and form validators."""

from datetime import date
from decimal import Decimal

import pytest

from tamerun.models.finance import Category, TransactionType
from tamerun.services.storage import DEFAULT_CATEGORIES
from tamerun.validation import (
    CredentialsValidator,
    GoalFormValidator,
    TransactionFormValidator,
    coerce_amount,
    get_user_friendly_summary,
    parse_amount,
    parse_calendar_date,
    rules,
)


FOOD = Category(category_id=1, name="Food", type=TransactionType.EXPENSE)
SALARY = Category(category_id=11, name="Salary", type=TransactionType.INCOME)


class TestAmountRules:
    """Tests for amount predicates."""

    @pytest.mark.parametrize("raw", ["100", 100, "1,500", Decimal("0.01"), " 42.50 "])
    def test_valid_amounts(self, raw):
        """Test that positive numbers pass."""
        assert rules.is_valid_amount(raw).ok

    @pytest.mark.parametrize("raw", [None, "", "abc", "0", 0, "-5", "NaN", "Infinity", True])
    def test_invalid_amounts(self, raw):
        """Test that zero, negatives and garbage fail with a reason."""
        result = rules.is_valid_amount(raw)
        assert not result.ok
        assert result.reason

    def test_amount_parsed_value(self):
        """Test that the parsed value is returned."""
        assert rules.is_valid_amount("1,500").value == Decimal("1500")

    def test_amount_sub_cent_rejected(self):
        """Test that more than two decimal places fail."""
        assert not rules.is_valid_amount("1.005").ok
        assert rules.is_valid_amount("1.500").ok

    def test_amount_upper_bound(self):
        """Test the configured sanity maximum."""
        assert not rules.is_valid_amount("1001", max_amount=Decimal("1000")).ok

    def test_goal_target_and_current(self):
        """Test goal amount predicates."""
        assert not rules.is_valid_goal_target("0").ok
        assert rules.is_valid_goal_target("1").ok
        assert rules.is_valid_goal_current("0").ok
        assert not rules.is_valid_goal_current("-1").ok

    def test_huge_goal_target_does_not_raise(self):
        """Test that rules return a failure instead of raising."""
        assert not rules.is_valid_goal_target("1e40").ok


class TestOtherRules:
    """Tests for category, date, text and credential predicates."""

    def test_category_selection_required(self):
        """Test that a missing category fails."""
        assert not rules.is_valid_category_selection(None).ok
        assert not rules.is_valid_category_selection("").ok
        assert rules.is_valid_category_selection("3").value == 3

    def test_category_must_match_type(self):
        """Test that expense categories can't be used for income."""
        assert rules.is_valid_category_for_type(FOOD, TransactionType.EXPENSE).ok
        result = rules.is_valid_category_for_type(FOOD, TransactionType.INCOME)
        assert not result.ok
        assert "Food" in result.reason

    def test_unknown_category(self):
        """Test that a category that doesn't exist fails."""
        assert not rules.is_valid_category_for_type(None, TransactionType.EXPENSE).ok

    @pytest.mark.parametrize("raw", ["2024-02-29", date(2024, 6, 1), "2024-06-01T10:00:00Z"])
    def test_valid_dates(self, raw):
        """Test that real dates pass."""
        assert rules.is_valid_date_string(raw).ok

    @pytest.mark.parametrize("raw", ["2023-02-29", "2024-13-01", "tomorrow", "", None])
    def test_invalid_dates(self, raw):
        """Test that impossible or missing dates fail."""
        assert not rules.is_valid_date_string(raw).ok

    def test_goal_name(self):
        """Test goal name bounds."""
        assert not rules.is_valid_goal_name("   ").ok
        assert not rules.is_valid_goal_name("x" * 101).ok
        assert rules.is_valid_goal_name(" Trip ").value == "Trip"

    def test_memo(self):
        """Test that the memo is optional."""
        assert rules.is_valid_memo("").value is None
        assert not rules.is_valid_memo("x" * 201).ok

    def test_email_and_password(self):
        """Test credential predicates."""
        assert rules.is_valid_email(" A@Example.com ").value == "a@example.com"
        assert not rules.is_valid_email("not-an-email").ok
        assert not rules.is_valid_password("12345", min_length=6).ok
        assert rules.is_valid_password("123456", min_length=6).ok


class TestCoercion:
    """Tests for defensive parsing."""

    def test_coerce_amount(self):
        """Test that non-numeric input becomes zero."""
        assert coerce_amount("oops") == Decimal("0")
        assert coerce_amount("12.5") == Decimal("12.5")

    def test_thousands_separators(self):
        """Test that only well-placed group commas are accepted."""
        assert coerce_amount("12,345.67") == Decimal("12345.67")
        assert parse_amount("1,500") == Decimal("1500")
        assert parse_amount("1,0,0") is None
        assert parse_amount("1,50") is None
        assert parse_amount(",500") is None
        assert not rules.is_valid_amount("1,0,0").ok

    def test_parse_calendar_date(self):
        """Test that impossible dates become None."""
        assert parse_calendar_date("2024-02-30") is None


class TestTransactionFormValidator:
    """Tests for the entry and edit forms."""

    def setup_method(self):
        self.validator = TransactionFormValidator(max_amount=Decimal("100000000"))

    def test_valid_new_transaction(self):
        """Test that a complete form passes with parsed values."""
        form = self.validator.validate_new("expense", "300", 1, "2024-06-01", DEFAULT_CATEGORIES)
        assert form.is_valid
        assert form.values["type"] is TransactionType.EXPENSE
        assert form.values["amount"] == Decimal("300")
        assert form.values["category_id"] == 1
        assert form.values["date"] == date(2024, 6, 1)
        assert form.values["memo"] is None

    def test_all_problems_reported_at_once(self):
        """Test that every failing field is listed."""
        form = self.validator.validate_new("expense", "0", None, "bad", DEFAULT_CATEGORIES)
        assert {issue.field for issue in form.issues} == {"amount", "category_id", "date"}

    def test_category_type_mismatch(self):
        """Test that an income category is rejected for an expense."""
        form = self.validator.validate_new("expense", "300", 11, "2024-06-01", DEFAULT_CATEGORIES)
        assert not form.is_valid
        assert form.issues[0].field == "category"
        assert form.issues[0].issue_type == "mismatch"

    def test_unknown_category_id(self):
        """Test that a category id that doesn't exist fails."""
        form = self.validator.validate_new("income", "300", 999, "2024-06-01", DEFAULT_CATEGORIES)
        assert not form.is_valid

    def test_edit_uses_same_amount_rule(self):
        """Test that edits reject a zero amount just like creation."""
        form = self.validator.validate_edit("expense", "0", 1, "2024-06-01", DEFAULT_CATEGORIES)
        assert [issue.field for issue in form.issues] == ["amount"]

    def test_summary_lists_messages(self):
        """Test the bullet summary."""
        form = self.validator.validate_new("expense", "", 1, "2024-06-01", DEFAULT_CATEGORIES)
        summary = get_user_friendly_summary(form)
        assert summary.startswith("• ")


class TestGoalFormValidator:
    """Tests for the goal forms."""

    def test_blank_deadline_means_none(self):
        """Test that an empty deadline is accepted as no deadline."""
        form = GoalFormValidator().validate_new("Trip", "1000", "  ")
        assert form.is_valid
        assert form.values["deadline"] is None

    def test_invalid_deadline(self):
        """Test that a bad deadline is reported."""
        form = GoalFormValidator().validate_new("Trip", "1000", "2024-02-30")
        assert [issue.field for issue in form.issues] == ["deadline"]

    def test_edit_requires_non_negative_current(self):
        """Test the current amount rule on edit."""
        form = GoalFormValidator().validate_edit("Trip", "1000", "-1")
        assert [issue.field for issue in form.issues] == ["current_amount"]


class TestCredentialsValidator:
    """Tests for sign-in and sign-up forms."""

    def test_minimum_length_from_argument(self):
        """Test that the minimum password length is configurable."""
        form = CredentialsValidator(min_password_length=8).validate("a@example.com", "1234567")
        assert not form.is_valid
