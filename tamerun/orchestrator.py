"""
Main Orchestrator for Tamerun

This module ties together all the components and defines the
end-to-end flows behind each screen:
1. Transaction entry and edit (validate → mutate → audit)
2. History (month window → fetch → daily totals → grouped list)
3. Savings goals (fetch → progress → create/edit/toggle/delete)
4. Authentication (sign up → confirm → sign in → sign out)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing reaches the store without passing validation first
- No store error escapes a flow; it becomes a message the screen can show
- A second submit while a mutation is pending is refused, not queued
- A history fetch that resolves after the month changed is discarded
- Every mutation and every failure is audited

Screens never touch storages directly. After a successful mutation they
call the relevant refresh, which only runs once the mutation resolved,
so it always observes the change.
"""

from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Iterator, MutableMapping, NamedTuple, Optional, Union
from uuid import UUID

import structlog

from tamerun.audit import AuditLogger, create_correlation_id
from tamerun.calculators import (
    aggregate_daily_totals,
    goal_with_progress,
    group_by_date,
    select_transactions,
    summarize_month,
)
from tamerun.config import get_settings
from tamerun.models.audit import AuditEventType
from tamerun.models.auth import Session, SignUpResult, User
from tamerun.models.finance import (
    Category,
    DailyTotal,
    GoalWithProgress,
    MonthSummary,
    MonthWindow,
    NewSavingsGoal,
    NewTransaction,
    SavingsGoal,
    SavingsGoalUpdate,
    Transaction,
    TransactionType,
    TransactionUpdate,
)
from tamerun.models.results import ActionResult
from tamerun.services.auth import AuthError, AuthService
from tamerun.services.storage import (
    AuditStorageInterface,
    CategoryStorageInterface,
    GoalStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsCategoryStorage,
    GoogleSheetsClient,
    GoogleSheetsGoalStorage,
    GoogleSheetsTransactionStorage,
    GoogleSheetsUserStorage,
    InMemoryAuditStorage,
    InMemoryCategoryStorage,
    InMemoryGoalStorage,
    InMemoryTransactionStorage,
    InMemoryUserStorage,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
    UserStorageInterface,
)
from tamerun.validation import (
    GoalFormValidator,
    TransactionFormValidator,
    get_user_friendly_summary,
)
from tamerun.validation.validator import FormValidation


logger = structlog.get_logger(__name__)


BUSY_MESSAGE = "The previous request is still being processed. Please wait."
STALE_MESSAGE = "The month changed while loading; this result was discarded."


class MutationGuard:
    """
    Single-flight flag for one flow.

    While a mutation is pending, ``is_busy`` is True and the flow refuses
    further submissions instead of sending a duplicate call.
    """

    def __init__(self):
        self._pending = False

    @property
    def is_busy(self) -> bool:
        return self._pending

    @contextmanager
    def pending(self) -> Iterator[None]:
        self._pending = True
        try:
            yield
        finally:
            self._pending = False


class TransactionFlow:
    """
    Orchestrates recording, editing and deleting transactions.

    Flow:
    1. Validate → every rule, including category/type match
    2. Mutate → one explicit request type per operation
    3. Audit → success or failure, with a correlation id

    The category the user picked is the one persisted; it is never
    replaced by a default.
    """

    def __init__(
        self,
        transactions: TransactionStorageInterface,
        categories: CategoryStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[TransactionFormValidator] = None,
    ):
        self._transactions = transactions
        self._categories = categories
        self._audit_logger = audit_logger or AuditLogger()
        self._validator = validator or TransactionFormValidator()
        self._guard = MutationGuard()

    @property
    def is_busy(self) -> bool:
        return self._guard.is_busy

    async def categories_for(
        self,
        transaction_type: TransactionType,
    ) -> ActionResult[list[Category]]:
        """Categories offered in the form for one type, in display order."""
        try:
            categories = await self._categories.list_categories(transaction_type)
        except StorageError as e:
            await self._audit_logger.log_store_error("list_categories", str(e))
            return ActionResult.fail(f"Could not load categories: {e}")
        return ActionResult.ok(categories)

    async def categories_by_type(self) -> ActionResult[dict[TransactionType, list[Category]]]:
        """Both category lists from a single read, for screens that show many rows."""
        try:
            categories = await self._categories.list_categories()
        except StorageError as e:
            await self._audit_logger.log_store_error("list_categories", str(e))
            return ActionResult.fail(f"Could not load categories: {e}")
        by_type: dict[TransactionType, list[Category]] = {t: [] for t in TransactionType}
        for category in categories:
            by_type[category.type].append(category)
        return ActionResult.ok(by_type)

    async def _failed_validation(
        self,
        user_id: UUID,
        form_name: str,
        form: FormValidation,
        correlation_id: UUID,
    ) -> ActionResult:
        await self._audit_logger.log_validation_failed(
            user_id=user_id,
            form=form_name,
            issues=form.issues,
            correlation_id=correlation_id,
        )
        return ActionResult.fail(get_user_friendly_summary(form), form.issues)

    async def create(
        self,
        user_id: UUID,
        transaction_type: Any,
        amount: Any,
        category_id: Any,
        on_date: Any,
        memo: Any = None,
    ) -> ActionResult[Transaction]:
        """
        Record a new transaction from the entry form.

        Returns:
            ActionResult with the stored transaction on success
        """
        if self._guard.is_busy:
            return ActionResult.fail(BUSY_MESSAGE)

        correlation_id = create_correlation_id()
        with self._guard.pending():
            try:
                categories = await self._categories.list_categories()
            except StorageError as e:
                await self._audit_logger.log_store_error(
                    "list_categories", str(e), user_id, correlation_id,
                )
                return ActionResult.fail(f"Could not load categories: {e}")

            form = self._validator.validate_new(
                transaction_type, amount, category_id, on_date, categories, memo,
            )
            if not form.is_valid:
                return await self._failed_validation(user_id, "transaction", form, correlation_id)

            new = NewTransaction(
                user_id=user_id,
                type=form.values["type"],
                amount=form.values["amount"],
                category_id=form.values["category_id"],
                date=form.values["date"],
                memo=form.values["memo"],
            )
            try:
                transaction = await self._transactions.insert_transaction(new)
            except StorageError as e:
                await self._audit_logger.log_store_error(
                    "insert_transaction", str(e), user_id, correlation_id,
                )
                return ActionResult.fail(f"Could not save the transaction: {e}")

            await self._audit_logger.log_transaction_created(
                user_id=user_id,
                transaction_id=transaction.transaction_id,
                transaction_type=transaction.type.value,
                amount=transaction.amount,
                correlation_id=correlation_id,
            )
            return ActionResult.ok(transaction, "Transaction saved")

    async def update(
        self,
        user_id: UUID,
        transaction_id: int,
        amount: Any,
        category_id: Any,
        on_date: Any,
    ) -> ActionResult[Transaction]:
        """
        Apply the edit form to one stored transaction.

        Only amount, category and date can change. The stored type
        decides which categories are allowed.
        """
        if self._guard.is_busy:
            return ActionResult.fail(BUSY_MESSAGE)

        correlation_id = create_correlation_id()
        with self._guard.pending():
            try:
                stored = await self._transactions.get_transaction(user_id, transaction_id)
                categories = await self._categories.list_categories()
            except StorageError as e:
                await self._audit_logger.log_store_error(
                    "get_transaction", str(e), user_id, correlation_id,
                )
                return ActionResult.fail(f"Could not load the transaction: {e}")
            if stored is None:
                return ActionResult.fail("Transaction not found")

            form = self._validator.validate_edit(
                stored.type, amount, category_id, on_date, categories,
            )
            if not form.is_valid:
                return await self._failed_validation(user_id, "transaction", form, correlation_id)

            update = TransactionUpdate(
                amount=form.values["amount"],
                category_id=form.values["category_id"],
                date=form.values["date"],
            )
            try:
                updated = await self._transactions.update_transaction(user_id, transaction_id, update)
            except NotFoundError:
                return ActionResult.fail("Transaction not found")
            except StorageError as e:
                await self._audit_logger.log_store_error(
                    "update_transaction", str(e), user_id, correlation_id,
                )
                return ActionResult.fail(f"Could not update the transaction: {e}")

            changed_fields = [
                name for name, value in update.changes().items()
                if getattr(stored, name) != value
            ]
            await self._audit_logger.log_transaction_updated(
                user_id=user_id,
                transaction_id=transaction_id,
                changed_fields=changed_fields,
                correlation_id=correlation_id,
            )
            return ActionResult.ok(updated, "Transaction updated")

    async def delete(self, user_id: UUID, transaction_id: int) -> ActionResult[int]:
        """
        Delete one transaction.

        CRITICAL: Call this only after the user confirmed the deletion.
        """
        if self._guard.is_busy:
            return ActionResult.fail(BUSY_MESSAGE)

        correlation_id = create_correlation_id()
        with self._guard.pending():
            try:
                deleted = await self._transactions.delete_transaction(user_id, transaction_id)
            except StorageError as e:
                await self._audit_logger.log_store_error(
                    "delete_transaction", str(e), user_id, correlation_id,
                )
                return ActionResult.fail(f"Could not delete the transaction: {e}")
            if not deleted:
                return ActionResult.fail("Transaction not found")

            await self._audit_logger.log_transaction_deleted(
                user_id=user_id,
                transaction_id=transaction_id,
                correlation_id=correlation_id,
            )
            return ActionResult.ok(transaction_id, "Transaction deleted")


class HistoryView:
    """
    State behind the history screen for one signed-in user.

    Holds the month being shown, the fetched transactions, their daily
    totals and the optionally selected date. Every change of month bumps
    a generation counter; a fetch that resolves under an older
    generation is dropped instead of overwriting the newer month.
    """

    def __init__(
        self,
        transactions: TransactionStorageInterface,
        user_id: UUID,
        today: Optional[date] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._transactions = transactions
        self._user_id = user_id
        self._audit_logger = audit_logger or AuditLogger()
        self._generation = 0
        self.window = MonthWindow.containing(today or date.today())
        self.selected_date: Optional[date] = None
        self.rows: list[Transaction] = []
        self.daily_totals: dict[str, DailyTotal] = {}
        self.error: Optional[str] = None

    @property
    def generation(self) -> int:
        return self._generation

    def set_window(self, window: MonthWindow) -> None:
        """Switch months. Clears the date selection and invalidates pending fetches."""
        self.window = window
        self.selected_date = None
        self._generation += 1

    async def show_previous_month(self) -> ActionResult[list[Transaction]]:
        self.set_window(self.window.previous())
        return await self.refresh()

    async def show_next_month(self) -> ActionResult[list[Transaction]]:
        self.set_window(self.window.next())
        return await self.refresh()

    def select_date(self, day: Optional[date]) -> None:
        """Select a day of the shown month, or None for the whole month."""
        if day is not None and not self.window.contains(day):
            raise ValueError(f"{day.isoformat()} is not in {self.window.year}-{self.window.month:02d}")
        self.selected_date = day

    async def refresh(self) -> ActionResult[list[Transaction]]:
        """Fetch the shown month and recompute its daily totals."""
        generation = self._generation
        window = self.window
        try:
            rows = await self._transactions.list_transactions(
                self._user_id,
                date_from=window.first_day,
                date_to=window.last_day,
            )
        except StorageError as e:
            if generation != self._generation:
                return ActionResult.fail(STALE_MESSAGE)
            await self._audit_logger.log_store_error("list_transactions", str(e), self._user_id)
            self.error = f"Could not load transactions: {e}"
            return ActionResult.fail(self.error)

        if generation != self._generation:
            logger.info("stale_fetch_discarded", generation=generation, current=self._generation)
            return ActionResult.fail(STALE_MESSAGE)

        self.rows = rows
        self.daily_totals = aggregate_daily_totals(rows)
        self.error = None
        return ActionResult.ok(rows)

    @property
    def visible_transactions(self) -> list[Transaction]:
        return select_transactions(self.rows, self.selected_date)

    @property
    def grouped_transactions(self) -> list[tuple[date, list[Transaction]]]:
        return group_by_date(self.visible_transactions)

    @property
    def calendar_cells(self) -> list[Optional[date]]:
        return self.window.calendar_cells()

    def total_for(self, day: date) -> Optional[DailyTotal]:
        """Totals for one day, or None when nothing was recorded that day."""
        return self.daily_totals.get(day.isoformat())

    @property
    def summary(self) -> MonthSummary:
        return summarize_month(self.rows, self.window)


class DashboardFlow:
    """Month totals for the dashboard."""

    def __init__(
        self,
        transactions: TransactionStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._transactions = transactions
        self._audit_logger = audit_logger or AuditLogger()

    async def month_summary(
        self,
        user_id: UUID,
        window: Optional[MonthWindow] = None,
    ) -> ActionResult[MonthSummary]:
        window = window or MonthWindow.containing(date.today())
        try:
            rows = await self._transactions.list_transactions(
                user_id,
                date_from=window.first_day,
                date_to=window.last_day,
            )
        except StorageError as e:
            await self._audit_logger.log_store_error("list_transactions", str(e), user_id)
            return ActionResult.fail(f"Could not load transactions: {e}")
        return ActionResult.ok(summarize_month(rows, window))


class GoalFlow:
    """
    Orchestrates savings goals.

    Progress is always recomputed from the stored amounts when goals
    are listed; nothing derived is written back. Reaching 100% never
    deactivates a goal - only toggle_active does.
    """

    def __init__(
        self,
        goals: GoalStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[GoalFormValidator] = None,
    ):
        self._goals = goals
        self._audit_logger = audit_logger or AuditLogger()
        self._validator = validator or GoalFormValidator()
        self._guard = MutationGuard()

    @property
    def is_busy(self) -> bool:
        return self._guard.is_busy

    async def list_goals(
        self,
        user_id: UUID,
        now: Union[date, datetime, None] = None,
    ) -> ActionResult[list[GoalWithProgress]]:
        """The user's goals, newest first, each with its progress."""
        try:
            goals = await self._goals.list_goals(user_id)
        except StorageError as e:
            await self._audit_logger.log_store_error("list_goals", str(e), user_id)
            return ActionResult.fail(f"Could not load savings goals: {e}")
        return ActionResult.ok([goal_with_progress(goal, now=now) for goal in goals])

    async def _failed_validation(
        self,
        user_id: UUID,
        form: FormValidation,
        correlation_id: UUID,
    ) -> ActionResult:
        await self._audit_logger.log_validation_failed(
            user_id=user_id,
            form="goal",
            issues=form.issues,
            correlation_id=correlation_id,
        )
        return ActionResult.fail(get_user_friendly_summary(form), form.issues)

    async def create(
        self,
        user_id: UUID,
        goal_name: Any,
        target_amount: Any,
        deadline: Any = None,
    ) -> ActionResult[SavingsGoal]:
        """New goals start at a current amount of zero and active."""
        if self._guard.is_busy:
            return ActionResult.fail(BUSY_MESSAGE)

        correlation_id = create_correlation_id()
        with self._guard.pending():
            form = self._validator.validate_new(goal_name, target_amount, deadline)
            if not form.is_valid:
                return await self._failed_validation(user_id, form, correlation_id)

            new = NewSavingsGoal(
                user_id=user_id,
                goal_name=form.values["goal_name"],
                target_amount=form.values["target_amount"],
                deadline=form.values["deadline"],
            )
            try:
                goal = await self._goals.insert_goal(new)
            except StorageError as e:
                await self._audit_logger.log_store_error("insert_goal", str(e), user_id, correlation_id)
                return ActionResult.fail(f"Could not save the goal: {e}")

            await self._audit_logger.log_goal_changed(
                AuditEventType.GOAL_CREATED,
                user_id=user_id,
                goal_id=goal.goal_id,
                description=f"Savings goal created: {goal.goal_name}",
                details={"target_amount": str(goal.target_amount), "deadline": goal.deadline},
                correlation_id=correlation_id,
            )
            return ActionResult.ok(goal, "Goal created")

    async def update(
        self,
        user_id: UUID,
        goal_id: int,
        goal_name: Any,
        target_amount: Any,
        current_amount: Any,
        deadline: Any = None,
    ) -> ActionResult[SavingsGoal]:
        """Apply the edit form. A blank deadline clears the stored one."""
        if self._guard.is_busy:
            return ActionResult.fail(BUSY_MESSAGE)

        correlation_id = create_correlation_id()
        with self._guard.pending():
            form = self._validator.validate_edit(goal_name, target_amount, current_amount, deadline)
            if not form.is_valid:
                return await self._failed_validation(user_id, form, correlation_id)

            update = SavingsGoalUpdate(
                goal_name=form.values["goal_name"],
                target_amount=form.values["target_amount"],
                current_amount=form.values["current_amount"],
                deadline=form.values["deadline"],
            )
            return await self._apply_update(
                user_id,
                goal_id,
                update,
                AuditEventType.GOAL_UPDATED,
                "Savings goal edited",
                correlation_id,
            )

    async def toggle_active(self, user_id: UUID, goal_id: int) -> ActionResult[SavingsGoal]:
        """Flip a goal between active and inactive."""
        if self._guard.is_busy:
            return ActionResult.fail(BUSY_MESSAGE)

        correlation_id = create_correlation_id()
        with self._guard.pending():
            try:
                goal = await self._goals.get_goal(user_id, goal_id)
            except StorageError as e:
                await self._audit_logger.log_store_error("get_goal", str(e), user_id, correlation_id)
                return ActionResult.fail(f"Could not load the goal: {e}")
            if goal is None:
                return ActionResult.fail("Goal not found")

            is_active = not goal.is_active
            return await self._apply_update(
                user_id,
                goal_id,
                SavingsGoalUpdate(is_active=is_active),
                AuditEventType.GOAL_TOGGLED,
                "Savings goal activated" if is_active else "Savings goal deactivated",
                correlation_id,
            )

    async def _apply_update(
        self,
        user_id: UUID,
        goal_id: int,
        update: SavingsGoalUpdate,
        event_type: AuditEventType,
        description: str,
        correlation_id: UUID,
    ) -> ActionResult[SavingsGoal]:
        try:
            goal = await self._goals.update_goal(user_id, goal_id, update)
        except NotFoundError:
            return ActionResult.fail("Goal not found")
        except StorageError as e:
            await self._audit_logger.log_store_error("update_goal", str(e), user_id, correlation_id)
            return ActionResult.fail(f"Could not update the goal: {e}")

        await self._audit_logger.log_goal_changed(
            event_type,
            user_id=user_id,
            goal_id=goal_id,
            description=description,
            details={"changed_fields": sorted(update.changes())},
            correlation_id=correlation_id,
        )
        return ActionResult.ok(goal, description)

    async def delete(self, user_id: UUID, goal_id: int) -> ActionResult[int]:
        """
        Delete one goal.

        CRITICAL: Call this only after the user confirmed the deletion.
        """
        if self._guard.is_busy:
            return ActionResult.fail(BUSY_MESSAGE)

        correlation_id = create_correlation_id()
        with self._guard.pending():
            try:
                deleted = await self._goals.delete_goal(user_id, goal_id)
            except StorageError as e:
                await self._audit_logger.log_store_error("delete_goal", str(e), user_id, correlation_id)
                return ActionResult.fail(f"Could not delete the goal: {e}")
            if not deleted:
                return ActionResult.fail("Goal not found")

            await self._audit_logger.log_goal_changed(
                AuditEventType.GOAL_DELETED,
                user_id=user_id,
                goal_id=goal_id,
                description="Savings goal deleted",
                correlation_id=correlation_id,
            )
            return ActionResult.ok(goal_id, "Goal deleted")


class AuthFlow:
    """
    Sign-up, confirmation, sign-in and sign-out with audit records.

    No mail is sent from here. With ``auto_confirm`` a new account is
    activated right away; otherwise the screen hands the user
    ``SignUpResult.confirmation_link`` and the account waits for it.
    """

    def __init__(
        self,
        auth: AuthService,
        audit_logger: Optional[AuditLogger] = None,
        auto_confirm: bool = False,
    ):
        self._auth = auth
        self._audit_logger = audit_logger or AuditLogger()
        self._auto_confirm = auto_confirm

    @property
    def auth(self) -> AuthService:
        return self._auth

    @property
    def auto_confirm(self) -> bool:
        return self._auto_confirm

    def current_session(self) -> Optional[Session]:
        return self._auth.current_session()

    async def sign_up(
        self,
        email: str,
        password: str,
        redirect_to: Optional[str] = None,
    ) -> ActionResult[SignUpResult]:
        try:
            pending = await self._auth.sign_up(email, password, redirect_to=redirect_to)
        except AuthError as e:
            return ActionResult.fail(str(e))
        except StorageError as e:
            await self._audit_logger.log_store_error("sign_up", str(e))
            return ActionResult.fail(f"Could not create the account: {e}")

        await self._audit_logger.log_auth_event(
            AuditEventType.USER_SIGNED_UP, pending.email, pending.user_id,
        )
        if not self._auto_confirm:
            return ActionResult.ok(
                pending,
                "Account created. Open the confirmation link to activate it.",
            )

        confirmed = await self.confirm(pending.confirmation_token)
        if not confirmed.success:
            return ActionResult.fail(confirmed.message)
        return ActionResult.ok(
            pending.model_copy(update={"pending_confirmation": False}),
            "Account created. You can now sign in.",
        )

    async def confirm(self, confirmation_token: str) -> ActionResult[User]:
        try:
            user = await self._auth.confirm(confirmation_token)
        except AuthError as e:
            return ActionResult.fail(str(e))
        except StorageError as e:
            await self._audit_logger.log_store_error("confirm", str(e))
            return ActionResult.fail(f"Could not confirm the account: {e}")

        await self._audit_logger.log_auth_event(
            AuditEventType.USER_CONFIRMED, user.email, user.user_id,
        )
        return ActionResult.ok(user, "Email address confirmed. You can now sign in.")

    async def confirm_from_link(self, params: MutableMapping[str, str]) -> Optional[ActionResult[User]]:
        """
        Confirm using the ``token`` query parameter of an opened link.

        The token is removed from ``params`` before confirming, so handling
        the same page again does not resubmit it. Returns None when the
        page was not opened from a confirmation link.
        """
        token = params.pop("token", None)
        if not token:
            return None
        return await self.confirm(token)

    async def sign_in(self, email: str, password: str) -> ActionResult[Session]:
        try:
            session = await self._auth.sign_in(email, password)
        except AuthError as e:
            await self._audit_logger.log_auth_event(
                AuditEventType.SIGN_IN_FAILED, str(email or ""), error_message=str(e),
            )
            return ActionResult.fail(str(e))
        except StorageError as e:
            await self._audit_logger.log_store_error("sign_in", str(e))
            return ActionResult.fail(f"Could not sign in: {e}")

        await self._audit_logger.log_auth_event(
            AuditEventType.USER_SIGNED_IN, session.email, session.user_id,
        )
        return ActionResult.ok(session, "Signed in")

    async def sign_out(self) -> ActionResult[None]:
        session = self._auth.current_session()
        await self._auth.sign_out()
        if session is not None:
            await self._audit_logger.log_auth_event(
                AuditEventType.USER_SIGNED_OUT, session.email, session.user_id,
            )
        return ActionResult.ok(None, "Signed out")


class AppStorages(NamedTuple):
    """One set of storages, shared by every session of the process."""

    transactions: TransactionStorageInterface
    categories: CategoryStorageInterface
    goals: GoalStorageInterface
    users: UserStorageInterface
    audit: AuditStorageInterface
    sheets_client: Optional[GoogleSheetsClient]


class AppComponents(NamedTuple):
    """
    Flows for one user session, wired to shared storages.

    Session state (the signed-in principal, the busy guards) lives on
    these objects, so each browser session needs its own set.
    """

    transaction_flow: TransactionFlow
    goal_flow: GoalFlow
    auth_flow: AuthFlow
    dashboard_flow: DashboardFlow
    transactions: TransactionStorageInterface
    audit_logger: AuditLogger
    sheets_client: Optional[GoogleSheetsClient]

    def history_view(self, user_id: UUID, today: Optional[date] = None) -> HistoryView:
        return HistoryView(self.transactions, user_id, today=today, audit_logger=self.audit_logger)


def create_storages(use_storage: bool = True) -> AppStorages:
    """
    Build the storages once per process.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False (or leave Sheets unconfigured) to run
                    on in-memory storage.
    """
    sheets_client: Optional[GoogleSheetsClient] = None
    if use_storage:
        try:
            sheets_client = GoogleSheetsClient(get_settings().google_sheets)
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))

    if sheets_client is not None:
        return AppStorages(
            transactions=GoogleSheetsTransactionStorage(sheets_client),
            categories=GoogleSheetsCategoryStorage(sheets_client),
            goals=GoogleSheetsGoalStorage(sheets_client),
            users=GoogleSheetsUserStorage(sheets_client),
            audit=GoogleSheetsAuditStorage(sheets_client),
            sheets_client=sheets_client,
        )
    return AppStorages(
        transactions=InMemoryTransactionStorage(),
        categories=InMemoryCategoryStorage(),
        goals=InMemoryGoalStorage(),
        users=InMemoryUserStorage(),
        audit=InMemoryAuditStorage(),
        sheets_client=None,
    )


def create_app_components(
    use_storage: bool = True,
    storages: Optional[AppStorages] = None,
    auto_confirm: Optional[bool] = None,
) -> AppComponents:
    """
    Factory function to create the flows for one session.

    Args:
        use_storage: Passed to create_storages when no storages are given
        storages: Storages shared with other sessions
        auto_confirm: Activate accounts on sign-up. Defaults to True
                      when running in memory.

    Returns:
        AppComponents with fresh session state
    """
    if storages is None:
        storages = create_storages(use_storage)
    if auto_confirm is None:
        auto_confirm = storages.sheets_client is None

    audit_logger = AuditLogger(storages.audit)

    return AppComponents(
        transaction_flow=TransactionFlow(storages.transactions, storages.categories, audit_logger),
        goal_flow=GoalFlow(storages.goals, audit_logger),
        auth_flow=AuthFlow(AuthService(storages.users), audit_logger, auto_confirm=auto_confirm),
        dashboard_flow=DashboardFlow(storages.transactions, audit_logger),
        transactions=storages.transactions,
        audit_logger=audit_logger,
        sheets_client=storages.sheets_client,
    )
