"""
Integration tests for the flows, against in-memory storages.

External services are never called.
"""

import asyncio
from datetime import date
from decimal import Decimal
from urllib.parse import parse_qs, urlsplit
from uuid import uuid4

import pytest

from conftest import FOOD, SALARY, TRANSPORT
from tamerun.models.audit import AuditEventType
from tamerun.models.finance import MonthWindow, TransactionType
from tamerun.orchestrator import (
    BUSY_MESSAGE,
    STALE_MESSAGE,
    AuthFlow,
    HistoryView,
    TransactionFlow,
    create_app_components,
    create_storages,
)
from tamerun.services.auth import AuthService
from tamerun.services.storage import (
    InMemoryCategoryStorage,
    InMemoryTransactionStorage,
    StorageError,
)


class GatedTransactionStorage(InMemoryTransactionStorage):
    """Holds inserts and listings until the gate opens."""

    def __init__(self):
        super().__init__()
        self.gate = asyncio.Event()

    async def insert_transaction(self, new):
        await self.gate.wait()
        return await super().insert_transaction(new)

    async def list_transactions(self, *args, **kwargs):
        await self.gate.wait()
        return await super().list_transactions(*args, **kwargs)


class FailingTransactionStorage(InMemoryTransactionStorage):
    async def insert_transaction(self, new):
        raise StorageError("sheet unavailable")

    async def list_transactions(self, *args, **kwargs):
        raise StorageError("sheet unavailable")


class CountingCategoryStorage(InMemoryCategoryStorage):
    def __init__(self):
        super().__init__()
        self.reads = 0

    async def list_categories(self, transaction_type=None):
        self.reads += 1
        return await super().list_categories(transaction_type)


REDIRECT = "http://localhost:8501/auth/callback"


def event_types(audit_storage):
    return [event.event_type for event in audit_storage.events]


class TestTransactionFlow:
    """Tests for recording, editing and deleting transactions."""

    async def test_create_then_fetch(self, transaction_flow, transaction_storage, user_id):
        """Test that a new transaction is listed exactly once with the same fields."""
        result = await transaction_flow.create(user_id, "expense", "300", FOOD, "2024-06-01", "lunch")
        assert result.success, result.message

        rows = await transaction_storage.list_transactions(
            user_id, date_from=date(2024, 6, 1), date_to=date(2024, 6, 1),
        )
        assert rows == [result.data]
        assert rows[0].amount == Decimal("300")
        assert rows[0].category_id == FOOD
        assert rows[0].memo == "lunch"

    async def test_selected_category_is_persisted(self, transaction_flow, user_id):
        """Test that the user's category choice is what gets stored."""
        result = await transaction_flow.create(user_id, "expense", "300", TRANSPORT, "2024-06-01")
        assert result.data.category_id == TRANSPORT

    async def test_create_is_audited(self, transaction_flow, audit_storage, user_id):
        """Test that a successful create writes an audit event."""
        await transaction_flow.create(user_id, "income", "1000", SALARY, "2024-06-01")
        assert event_types(audit_storage) == [AuditEventType.TRANSACTION_CREATED]

    async def test_validation_failure_makes_no_call(
        self, transaction_flow, transaction_storage, audit_storage, user_id,
    ):
        """Test that invalid input never reaches the store."""
        result = await transaction_flow.create(user_id, "expense", "0", FOOD, "2024-06-01")
        assert not result.success
        assert result.issues[0].field == "amount"
        assert await transaction_storage.list_transactions(user_id) == []
        assert event_types(audit_storage) == [AuditEventType.VALIDATION_FAILED]

    async def test_category_type_mismatch_rejected(self, transaction_flow, user_id):
        """Test that an expense can't be filed under an income category."""
        result = await transaction_flow.create(user_id, "expense", "300", SALARY, "2024-06-01")
        assert not result.success
        assert any(issue.issue_type == "mismatch" for issue in result.issues)

    async def test_store_error_becomes_message(self, category_storage, audit_logger, audit_storage, user_id):
        """Test that a store failure is reported, not raised."""
        flow = TransactionFlow(FailingTransactionStorage(), category_storage, audit_logger)
        result = await flow.create(user_id, "expense", "300", FOOD, "2024-06-01")
        assert not result.success
        assert "sheet unavailable" in result.message
        assert AuditEventType.STORE_ERROR in event_types(audit_storage)
        assert not flow.is_busy

    async def test_second_submit_while_pending_is_refused(self, category_storage, audit_logger, user_id):
        """Test the busy guard against double submission."""
        storage = GatedTransactionStorage()
        flow = TransactionFlow(storage, category_storage, audit_logger)

        first = asyncio.create_task(flow.create(user_id, "expense", "300", FOOD, "2024-06-01"))
        await asyncio.sleep(0)
        assert flow.is_busy

        second = await flow.create(user_id, "expense", "300", FOOD, "2024-06-01")
        assert not second.success
        assert second.message == BUSY_MESSAGE

        storage.gate.set()
        assert (await first).success
        assert not flow.is_busy
        assert len(await storage.list_transactions(user_id)) == 1

    async def test_update(self, transaction_flow, audit_storage, user_id):
        """Test editing amount, category and date."""
        created = (await transaction_flow.create(user_id, "expense", "300", FOOD, "2024-06-01")).data
        result = await transaction_flow.update(
            user_id, created.transaction_id, "450", TRANSPORT, "2024-06-03",
        )
        assert result.success, result.message
        assert result.data.amount == Decimal("450")
        assert result.data.category_id == TRANSPORT
        assert result.data.date == date(2024, 6, 3)
        assert result.data.type is TransactionType.EXPENSE
        updated_event = audit_storage.events[-1]
        assert updated_event.event_type == AuditEventType.TRANSACTION_UPDATED
        assert set(updated_event.details["changed_fields"]) == {"amount", "category_id", "date"}

    async def test_update_rejects_zero_amount(self, transaction_flow, user_id):
        """Test that edits can't set a zero amount."""
        created = (await transaction_flow.create(user_id, "expense", "300", FOOD, "2024-06-01")).data
        result = await transaction_flow.update(user_id, created.transaction_id, "0", FOOD, "2024-06-01")
        assert not result.success

    async def test_update_keeps_type_for_category_check(self, transaction_flow, user_id):
        """Test that the stored type decides which categories are allowed."""
        created = (await transaction_flow.create(user_id, "expense", "300", FOOD, "2024-06-01")).data
        result = await transaction_flow.update(user_id, created.transaction_id, "300", SALARY, "2024-06-01")
        assert not result.success

    async def test_other_users_transaction_is_not_found(self, transaction_flow, user_id, other_user_id):
        """Test owner scoping through the flow."""
        created = (await transaction_flow.create(user_id, "expense", "300", FOOD, "2024-06-01")).data
        result = await transaction_flow.update(other_user_id, created.transaction_id, "1", FOOD, "2024-06-01")
        assert result.message == "Transaction not found"
        deleted = await transaction_flow.delete(other_user_id, created.transaction_id)
        assert not deleted.success

    async def test_delete(self, transaction_flow, transaction_storage, user_id):
        """Test delete and its audit record."""
        created = (await transaction_flow.create(user_id, "expense", "300", FOOD, "2024-06-01")).data
        result = await transaction_flow.delete(user_id, created.transaction_id)
        assert result.success
        assert await transaction_storage.list_transactions(user_id) == []

    async def test_categories_for_type(self, transaction_flow):
        """Test the category list offered by the form."""
        result = await transaction_flow.categories_for(TransactionType.INCOME)
        assert result.success
        assert {c.type for c in result.data} == {TransactionType.INCOME}

    async def test_categories_by_type_reads_once(self, audit_logger):
        """Test that both category lists come from one store read."""
        categories = CountingCategoryStorage()
        flow = TransactionFlow(InMemoryTransactionStorage(), categories, audit_logger)

        result = await flow.categories_by_type()
        assert categories.reads == 1
        assert [c.category_id for c in result.data[TransactionType.INCOME]][0] == SALARY
        assert {c.type for c in result.data[TransactionType.EXPENSE]} == {TransactionType.EXPENSE}
        assert len(result.data[TransactionType.EXPENSE]) + len(result.data[TransactionType.INCOME]) == 15


class TestHistoryView:
    """Tests for the history screen state."""

    async def test_refresh_builds_daily_totals(self, transaction_flow, transaction_storage, user_id):
        """Test the June scenario through the view."""
        await transaction_flow.create(user_id, "income", "1000", SALARY, "2024-06-01")
        await transaction_flow.create(user_id, "expense", "300", FOOD, "2024-06-01")
        await transaction_flow.create(user_id, "expense", "200", TRANSPORT, "2024-06-02")
        await transaction_flow.create(user_id, "expense", "999", FOOD, "2024-07-01")

        view = HistoryView(transaction_storage, user_id, today=date(2024, 6, 20))
        result = await view.refresh()
        assert result.success
        assert len(view.rows) == 3
        assert view.total_for(date(2024, 6, 1)).net == Decimal("700")
        assert view.total_for(date(2024, 6, 2)).net == Decimal("-200")
        assert view.total_for(date(2024, 6, 3)) is None
        assert [day for day, _ in view.grouped_transactions] == [date(2024, 6, 2), date(2024, 6, 1)]

    async def test_refresh_shows_entries_added_elsewhere(self, transaction_flow, transaction_storage, user_id):
        """Test that a view loaded before a new entry shows it on the next refresh."""
        view = HistoryView(transaction_storage, user_id, today=date(2024, 6, 20))
        await view.refresh()
        assert view.rows == []

        created = await transaction_flow.create(user_id, "expense", "300", FOOD, "2024-06-05")
        await view.refresh()
        assert view.rows == [created.data]
        assert view.total_for(date(2024, 6, 5)).expense == Decimal("300")

    async def test_selected_date_filters_list(self, transaction_flow, transaction_storage, user_id):
        """Test that selecting a day narrows the list, and clearing widens it."""
        await transaction_flow.create(user_id, "expense", "300", FOOD, "2024-06-01")
        await transaction_flow.create(user_id, "expense", "200", FOOD, "2024-06-02")
        view = HistoryView(transaction_storage, user_id, today=date(2024, 6, 20))
        await view.refresh()

        view.select_date(date(2024, 6, 2))
        assert [t.date for t in view.visible_transactions] == [date(2024, 6, 2)]
        view.select_date(None)
        assert len(view.visible_transactions) == 2

    async def test_select_date_outside_month(self, transaction_storage, user_id):
        """Test that only days of the shown month can be selected."""
        view = HistoryView(transaction_storage, user_id, today=date(2024, 6, 20))
        with pytest.raises(ValueError):
            view.select_date(date(2024, 7, 1))

    async def test_month_navigation(self, transaction_flow, transaction_storage, user_id):
        """Test previous/next month fetches."""
        await transaction_flow.create(user_id, "expense", "300", FOOD, "2024-05-10")
        view = HistoryView(transaction_storage, user_id, today=date(2024, 6, 20))
        await view.show_previous_month()
        assert view.window == MonthWindow(year=2024, month=5)
        assert len(view.rows) == 1
        await view.show_next_month()
        assert view.rows == []

    async def test_stale_fetch_is_discarded(self, user_id):
        """Test that a fetch for a month no longer shown doesn't overwrite state."""
        storage = GatedTransactionStorage()
        view = HistoryView(storage, user_id, today=date(2024, 6, 20))

        pending = asyncio.create_task(view.refresh())
        await asyncio.sleep(0)
        view.set_window(view.window.next())
        storage.gate.set()

        result = await pending
        assert not result.success
        assert result.message == STALE_MESSAGE
        assert view.window == MonthWindow(year=2024, month=7)

    async def test_refresh_store_error(self, user_id):
        """Test that a failed fetch leaves an error message."""
        view = HistoryView(FailingTransactionStorage(), user_id, today=date(2024, 6, 20))
        result = await view.refresh()
        assert not result.success
        assert "sheet unavailable" in view.error


class TestGoalFlow:
    """Tests for savings goal flows."""

    async def test_create_and_list_with_progress(self, goal_flow, user_id):
        """Test that listed goals carry computed progress."""
        created = await goal_flow.create(user_id, "Trip", "120000", "2024-07-15")
        assert created.success, created.message
        await goal_flow.update(
            user_id, created.data.goal_id, "Trip", "120000", "30000", "2024-07-15",
        )

        result = await goal_flow.list_goals(user_id, now=date(2024, 1, 15))
        item = result.data[0]
        assert item.progress.months_remaining == 6
        assert item.progress.monthly_required_amount == Decimal("15000")
        assert item.progress.progress_percentage == 25.0

    async def test_goals_listed_newest_first(self, goal_flow, user_id):
        """Test list order."""
        await goal_flow.create(user_id, "First", "100")
        await goal_flow.create(user_id, "Second", "100")
        result = await goal_flow.list_goals(user_id)
        assert [item.goal.goal_name for item in result.data] == ["Second", "First"]

    async def test_create_rejects_zero_target(self, goal_flow, audit_storage, user_id):
        """Test that the target must be positive."""
        result = await goal_flow.create(user_id, "Trip", "0")
        assert not result.success
        assert event_types(audit_storage) == [AuditEventType.VALIDATION_FAILED]

    async def test_blank_deadline_clears_it(self, goal_flow, user_id):
        """Test that editing with an empty deadline removes it."""
        goal = (await goal_flow.create(user_id, "Trip", "1000", "2024-12-31")).data
        result = await goal_flow.update(user_id, goal.goal_id, "Trip", "1000", "0", "")
        assert result.data.deadline is None

    async def test_toggle_active(self, goal_flow, audit_storage, user_id):
        """Test pausing and resuming a goal."""
        goal = (await goal_flow.create(user_id, "Trip", "1000")).data
        paused = await goal_flow.toggle_active(user_id, goal.goal_id)
        assert paused.data.is_active is False
        resumed = await goal_flow.toggle_active(user_id, goal.goal_id)
        assert resumed.data.is_active is True
        assert event_types(audit_storage).count(AuditEventType.GOAL_TOGGLED) == 2

    async def test_reaching_target_keeps_goal_active(self, goal_flow, user_id):
        """Test that achievement is a display state only."""
        goal = (await goal_flow.create(user_id, "Trip", "1000")).data
        await goal_flow.update(user_id, goal.goal_id, "Trip", "1000", "1500")
        item = (await goal_flow.list_goals(user_id)).data[0]
        assert item.progress.is_achieved
        assert item.goal.is_active is True

    async def test_delete_and_scoping(self, goal_flow, user_id, other_user_id):
        """Test delete, including another user's attempt."""
        goal = (await goal_flow.create(user_id, "Trip", "1000")).data
        assert not (await goal_flow.delete(other_user_id, goal.goal_id)).success
        assert not (await goal_flow.toggle_active(other_user_id, goal.goal_id)).success
        assert (await goal_flow.delete(user_id, goal.goal_id)).success
        assert (await goal_flow.list_goals(user_id)).data == []


class TestAuthFlow:
    """Tests for the authentication flow."""

    async def test_full_cycle(self, user_storage, audit_logger, audit_storage):
        """Test sign up, confirm, sign in and sign out."""
        flow = AuthFlow(AuthService(user_storage, redirect_url="http://x", min_password_length=6), audit_logger)

        pending = await flow.sign_up("a@example.com", "secret1")
        assert pending.success
        assert (await flow.confirm(pending.data.confirmation_token)).success

        signed_in = await flow.sign_in("a@example.com", "secret1")
        assert signed_in.success
        assert flow.current_session().user_id == pending.data.user_id

        await flow.sign_out()
        assert flow.current_session() is None
        assert event_types(audit_storage) == [
            AuditEventType.USER_SIGNED_UP,
            AuditEventType.USER_CONFIRMED,
            AuditEventType.USER_SIGNED_IN,
            AuditEventType.USER_SIGNED_OUT,
        ]

    async def test_failed_sign_in_is_audited(self, user_storage, audit_logger, audit_storage):
        """Test that bad credentials are reported and logged."""
        flow = AuthFlow(AuthService(user_storage, redirect_url="http://x", min_password_length=6), audit_logger)
        result = await flow.sign_in("nobody@example.com", "secret1")
        assert not result.success
        assert event_types(audit_storage) == [AuditEventType.SIGN_IN_FAILED]


class TestSignUpDelivery:
    """Tests for how a new account gets activated."""

    def make_flow(self, user_storage, audit_logger, auto_confirm=False):
        auth = AuthService(user_storage, redirect_url=REDIRECT, min_password_length=6)
        return AuthFlow(auth, audit_logger, auto_confirm=auto_confirm)

    async def test_link_carries_token(self, user_storage, audit_logger):
        """Test that the confirmation link opens the redirect page with the token."""
        flow = self.make_flow(user_storage, audit_logger)
        result = await flow.sign_up("a@example.com", "secret1")
        assert result.data.pending_confirmation

        link = urlsplit(result.data.confirmation_link)
        assert f"{link.scheme}://{link.netloc}{link.path}" == REDIRECT
        token = parse_qs(link.query)["token"][0]
        assert token == result.data.confirmation_token

        assert (await flow.confirm(token)).success
        assert (await flow.sign_in("a@example.com", "secret1")).success

    async def test_redirect_target_is_forwarded(self, user_storage, audit_logger):
        """Test that a caller-chosen redirect replaces the configured one."""
        flow = self.make_flow(user_storage, audit_logger)
        result = await flow.sign_up("a@example.com", "secret1", redirect_to="https://app.example.com/welcome?lang=en")
        assert result.data.redirect_to == "https://app.example.com/welcome?lang=en"
        query = parse_qs(urlsplit(result.data.confirmation_link).query)
        assert query["lang"] == ["en"]
        assert query["token"] == [result.data.confirmation_token]

    async def test_link_is_consumed_once(self, user_storage, audit_logger):
        """Test that handling a confirmation page twice confirms once and stays quiet."""
        flow = self.make_flow(user_storage, audit_logger)
        pending = (await flow.sign_up("a@example.com", "secret1")).data
        params = {"token": pending.confirmation_token, "lang": "en"}

        first = await flow.confirm_from_link(params)
        assert first.success
        assert params == {"lang": "en"}
        assert await flow.confirm_from_link(params) is None

    async def test_page_without_token(self, user_storage, audit_logger):
        """Test that an ordinary visit does nothing."""
        flow = self.make_flow(user_storage, audit_logger)
        assert await flow.confirm_from_link({}) is None

    async def test_auto_confirm_allows_immediate_sign_in(self, user_storage, audit_logger, audit_storage):
        """Test that an auto-confirmed account can sign in straight away."""
        flow = self.make_flow(user_storage, audit_logger, auto_confirm=True)
        result = await flow.sign_up("a@example.com", "secret1")
        assert result.success
        assert not result.data.pending_confirmation
        assert (await flow.sign_in("a@example.com", "secret1")).success
        assert event_types(audit_storage)[:2] == [
            AuditEventType.USER_SIGNED_UP,
            AuditEventType.USER_CONFIRMED,
        ]


class TestAppComponents:
    """Tests for the component factory."""

    async def test_in_memory_components(self):
        """Test that the factory wires flows to shared storages."""
        components = create_app_components(use_storage=False)
        assert components.sheets_client is None

        pending = await components.auth_flow.sign_up("a@example.com", "secret1")
        assert not pending.data.pending_confirmation
        session = (await components.auth_flow.sign_in("a@example.com", "secret1")).data

        today = date.today()
        created = await components.transaction_flow.create(
            session.user_id, "expense", "300", FOOD, today,
        )
        assert created.success, created.message

        view = components.history_view(session.user_id, today=today)
        await view.refresh()
        assert view.rows == [created.data]

        summary = await components.dashboard_flow.month_summary(session.user_id)
        assert summary.data.expense_total == Decimal("300")

    async def test_sessions_share_data_not_state(self):
        """Test that two sessions see the same rows but sign in separately."""
        storages = create_storages(use_storage=False)
        first = create_app_components(storages=storages)
        second = create_app_components(storages=storages)

        await first.auth_flow.sign_up("a@example.com", "secret1")
        await second.auth_flow.sign_up("b@example.com", "secret1")
        alice = (await first.auth_flow.sign_in("a@example.com", "secret1")).data
        bob = (await second.auth_flow.sign_in("b@example.com", "secret1")).data

        await first.auth_flow.sign_out()
        assert first.auth_flow.current_session() is None
        assert second.auth_flow.current_session() == bob

        created = await first.transaction_flow.create(alice.user_id, "expense", "300", FOOD, date.today())
        assert created.success
        assert await second.transactions.get_transaction(alice.user_id, created.data.transaction_id) is not None

    async def test_busy_guard_is_per_session(self):
        """Test that a pending save in one session doesn't refuse another's."""
        storages = create_storages(use_storage=False)
        gated = GatedTransactionStorage()
        storages = storages._replace(transactions=gated)
        first = create_app_components(storages=storages)
        second = create_app_components(storages=storages)
        user = uuid4()

        pending = asyncio.create_task(first.transaction_flow.create(user, "expense", "300", FOOD, date.today()))
        await asyncio.sleep(0)
        assert first.transaction_flow.is_busy
        assert not second.transaction_flow.is_busy

        gated.gate.set()
        assert (await second.transaction_flow.create(user, "expense", "200", FOOD, date.today())).success
        assert (await pending).success

    def test_link_mode_when_asked(self):
        """Test that auto-confirm can be switched off explicitly."""
        components = create_app_components(use_storage=False, auto_confirm=False)
        assert not components.auth_flow.auto_confirm
