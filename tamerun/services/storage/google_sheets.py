"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the storage backend because:
1. A household can look at its own ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for one household)
- No server-side filtering, ordering or id sequences (we do these in Python)
- Other people can edit the sheet by hand, so every row is read defensively

Only connecting is retried. A failed read or write surfaces once as a
StorageError; the flow turns it into a message and the user retries.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from pydantic import ValidationError
from tenacity import retry, stop_after_attempt, wait_exponential

from tamerun.config import GoogleSheetsSettings, get_settings
from tamerun.models.audit import AuditEvent, AuditEventType, AuditSeverity
from tamerun.models.auth import User
from tamerun.models.finance import (
    Category,
    NewSavingsGoal,
    NewTransaction,
    SavingsGoal,
    SavingsGoalUpdate,
    Transaction,
    TransactionType,
    TransactionUpdate,
)
from tamerun.services.storage.defaults import DEFAULT_CATEGORIES
from tamerun.services.storage.interface import (
    AuditStorageInterface,
    CategoryStorageInterface,
    DuplicateError,
    GoalStorageInterface,
    NotFoundError,
    StorageConnectionError,
    StorageError,
    TransactionStorageInterface,
    UserStorageInterface,
)
from tamerun.services.storage.query import (
    matches_filters,
    sort_categories,
    sort_goals,
    sort_transactions,
)
from tamerun.validation.coercion import (
    coerce_amount,
    parse_bool,
    parse_calendar_date,
    parse_int,
)


logger = structlog.get_logger(__name__)


TRANSACTION_COLUMNS = [
    "transaction_id",
    "user_id",
    "type",
    "amount",
    "category_id",
    "date",
    "memo",
    "created_at",
]

CATEGORY_COLUMNS = [
    "category_id",
    "name",
    "icon",
    "type",
    "display_order",
]

GOAL_COLUMNS = [
    "goal_id",
    "user_id",
    "goal_name",
    "target_amount",
    "current_amount",
    "deadline",
    "is_active",
    "created_at",
]

USER_COLUMNS = [
    "user_id",
    "email",
    "password_hash",
    "confirmed",
    "confirmation_token",
    "created_at",
]

# Matches AuditEvent.to_sheets_row()
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "user_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

_EPOCH = datetime(1970, 1, 1)


def safe_get(row: list, index: int, default: str = "") -> str:
    """Cell text, or default when the row is short or the cell empty."""
    try:
        return row[index] if row[index] != "" else default
    except IndexError:
        return default


def parse_timestamp(raw: str) -> datetime:
    """Stored timestamps; unreadable ones sort as oldest."""
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00")).replace(tzinfo=None)
    except (AttributeError, ValueError):
        return _EPOCH


def next_id(rows: list[list]) -> int:
    """max(existing id) + 1, ignoring rows whose id isn't an integer."""
    ids = [parse_int(safe_get(row, 0)) for row in rows]
    return max((value for value in ids if value is not None), default=0) + 1


def _data_rows(sheet: gspread.Worksheet) -> list[tuple[int, list]]:
    """(sheet row number, cells) for every non-empty row below the header."""
    return [
        (number, row)
        for number, row in enumerate(sheet.get_all_values()[1:], start=2)
        if row and row[0]
    ]


def _write_row(sheet: gspread.Worksheet, number: int, row: list) -> None:
    sheet.update(range_name=f"A{number}", values=[row], value_input_option="RAW")


class GoogleSheetsClient:
    """
    Shared spreadsheet handle for every Sheets storage.

    Handles authentication and hands out worksheets, creating any
    that are missing (with their header row) on first use.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._worksheets: dict[str, gspread.Worksheet] = {}
        self._settings = settings or get_settings().google_sheets

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Authorize the service account and return a gspread client.

        Worksheets are opened lazily and created with a header row when missing.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise StorageConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StorageConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Open the configured spreadsheet once and keep it."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(self._settings.spreadsheet_id)
            except gspread.SpreadsheetNotFound:
                raise StorageConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(
        self,
        title: str,
        columns: list[str],
        seed_rows: Optional[list[list]] = None,
        rows: int = 1000,
    ) -> gspread.Worksheet:
        """Get or create a worksheet; a new one gets headers and seed rows."""
        if title in self._worksheets:
            return self._worksheets[title]

        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(title=title, rows=rows, cols=len(columns))
            sheet.append_row(columns)
            if seed_rows:
                sheet.append_rows(seed_rows, value_input_option="RAW")
            logger.info("worksheet_created", title=title, seeded=len(seed_rows or []))

        self._worksheets[title] = sheet
        return sheet

    def get_transactions_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.transactions_sheet_name, TRANSACTION_COLUMNS)

    def get_categories_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(
            self._settings.categories_sheet_name,
            CATEGORY_COLUMNS,
            seed_rows=[category_to_row(category) for category in DEFAULT_CATEGORIES],
        )

    def get_goals_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.goals_sheet_name, GOAL_COLUMNS)

    def get_users_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.users_sheet_name, USER_COLUMNS)

    def get_audit_sheet(self) -> gspread.Worksheet:
        # More rows for audit log
        return self.get_worksheet(self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000)


# =============================================================================
# ROW CONVERTERS
# =============================================================================

def transaction_to_row(transaction: Transaction) -> list:
    return [
        str(transaction.transaction_id),
        str(transaction.user_id),
        transaction.type.value,
        str(transaction.amount),
        str(transaction.category_id) if transaction.category_id is not None else "",
        transaction.date.isoformat(),
        transaction.memo or "",
        transaction.created_at.isoformat(),
    ]


def row_to_transaction(row: list) -> Optional[Transaction]:
    """
    Convert a spreadsheet row to a Transaction.

    Unparseable amounts read as zero. A row without a usable date or
    type can't be placed on the calendar, so it is skipped (None).
    """
    on_date = parse_calendar_date(safe_get(row, 5))
    if on_date is None:
        logger.warning("transaction_row_skipped", reason="bad date", row_id=safe_get(row, 0))
        return None

    try:
        return Transaction(
            transaction_id=parse_int(safe_get(row, 0)),
            user_id=UUID(safe_get(row, 1)),
            type=TransactionType(safe_get(row, 2)),
            amount=max(coerce_amount(safe_get(row, 3)), Decimal("0")),
            category_id=parse_int(safe_get(row, 4)),
            date=on_date,
            memo=safe_get(row, 6) or None,
            created_at=parse_timestamp(safe_get(row, 7)),
        )
    except (ValueError, ValidationError) as e:
        logger.warning("transaction_row_skipped", reason=str(e), row_id=safe_get(row, 0))
        return None


def category_to_row(category: Category) -> list:
    return [
        str(category.category_id),
        category.name,
        category.icon,
        category.type.value,
        str(category.display_order),
    ]


def row_to_category(row: list) -> Optional[Category]:
    try:
        return Category(
            category_id=parse_int(safe_get(row, 0)),
            name=safe_get(row, 1),
            icon=safe_get(row, 2, "💰"),
            type=TransactionType(safe_get(row, 3)),
            display_order=parse_int(safe_get(row, 4)) or 0,
        )
    except (ValueError, ValidationError) as e:
        logger.warning("category_row_skipped", reason=str(e), row_id=safe_get(row, 0))
        return None


def goal_to_row(goal: SavingsGoal) -> list:
    return [
        str(goal.goal_id),
        str(goal.user_id),
        goal.goal_name,
        str(goal.target_amount),
        str(goal.current_amount),
        goal.deadline or "",
        str(goal.is_active),
        goal.created_at.isoformat(),
    ]


def row_to_goal(row: list) -> Optional[SavingsGoal]:
    """
    Convert a spreadsheet row to a SavingsGoal.

    Amounts that don't parse read as zero and the deadline is kept as
    the stored text; the progress calculator copes with both.
    """
    try:
        return SavingsGoal(
            goal_id=parse_int(safe_get(row, 0)),
            user_id=UUID(safe_get(row, 1)),
            goal_name=safe_get(row, 2),
            target_amount=coerce_amount(safe_get(row, 3)),
            current_amount=coerce_amount(safe_get(row, 4)),
            deadline=safe_get(row, 5) or None,
            is_active=parse_bool(safe_get(row, 6), default=True),
            created_at=parse_timestamp(safe_get(row, 7)),
        )
    except (ValueError, ValidationError) as e:
        logger.warning("goal_row_skipped", reason=str(e), row_id=safe_get(row, 0))
        return None


def user_to_row(user: User) -> list:
    return [
        str(user.user_id),
        user.email,
        user.password_hash,
        str(user.confirmed),
        user.confirmation_token or "",
        user.created_at.isoformat(),
    ]


def row_to_user(row: list) -> Optional[User]:
    try:
        return User(
            user_id=UUID(safe_get(row, 0)),
            email=safe_get(row, 1),
            password_hash=safe_get(row, 2),
            confirmed=parse_bool(safe_get(row, 3)),
            confirmation_token=safe_get(row, 4) or None,
            created_at=parse_timestamp(safe_get(row, 5)),
        )
    except (ValueError, ValidationError) as e:
        logger.warning("user_row_skipped", reason=str(e))
        return None


def row_to_event(row: list) -> AuditEvent:
    """Read one audit row back; the details column holds JSON."""
    return AuditEvent(
        event_id=UUID(safe_get(row, 0)),
        timestamp=parse_timestamp(safe_get(row, 1)),
        event_type=AuditEventType(safe_get(row, 2)),
        severity=AuditSeverity(safe_get(row, 3)),
        user_id=UUID(safe_get(row, 4)) if safe_get(row, 4) else None,
        entity_type=safe_get(row, 5) or None,
        entity_id=safe_get(row, 6) or None,
        correlation_id=UUID(safe_get(row, 7)) if safe_get(row, 7) else None,
        description=safe_get(row, 8),
        details=json.loads(safe_get(row, 9)) if safe_get(row, 9) else {},
        error_message=safe_get(row, 10) or None,
        is_user_action=safe_get(row, 11).lower() == "true",
    )


# =============================================================================
# STORAGES
# =============================================================================

class GoogleSheetsTransactionStorage(TransactionStorageInterface):
    """
    Transactions stored one per row.

    Owner scoping happens here: rows of other users are never returned
    and never touched.
    """

    def __init__(self, client: GoogleSheetsClient):
        self._client = client

    def _owned(self, user_id: UUID) -> list[tuple[int, Transaction]]:
        sheet = self._client.get_transactions_sheet()
        owned = []
        for number, row in _data_rows(sheet):
            if safe_get(row, 1) != str(user_id):
                continue
            transaction = row_to_transaction(row)
            if transaction is not None:
                owned.append((number, transaction))
        return owned

    async def list_transactions(
        self,
        user_id: UUID,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        transaction_type: Optional[TransactionType] = None,
    ) -> list[Transaction]:
        try:
            transactions = [
                transaction
                for _, transaction in self._owned(user_id)
                if matches_filters(transaction, date_from, date_to, transaction_type)
            ]
            return sort_transactions(transactions)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}")

    async def get_transaction(self, user_id: UUID, transaction_id: int) -> Optional[Transaction]:
        try:
            for _, transaction in self._owned(user_id):
                if transaction.transaction_id == transaction_id:
                    return transaction
            return None
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get transaction: {e}")

    async def insert_transaction(self, new: NewTransaction) -> Transaction:
        try:
            sheet = self._client.get_transactions_sheet()
            transaction = Transaction(
                transaction_id=next_id([row for _, row in _data_rows(sheet)]),
                created_at=datetime.utcnow(),
                **new.model_dump(),
            )
            sheet.append_row(transaction_to_row(transaction), value_input_option="RAW")
            return transaction
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save transaction: {e}")

    async def update_transaction(
        self,
        user_id: UUID,
        transaction_id: int,
        update: TransactionUpdate,
    ) -> Transaction:
        try:
            for number, transaction in self._owned(user_id):
                if transaction.transaction_id == transaction_id:
                    updated = transaction.model_copy(update=update.changes())
                    _write_row(self._client.get_transactions_sheet(), number, transaction_to_row(updated))
                    return updated
            raise NotFoundError(f"Transaction not found: {transaction_id}")
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update transaction: {e}")

    async def delete_transaction(self, user_id: UUID, transaction_id: int) -> bool:
        try:
            for number, transaction in self._owned(user_id):
                if transaction.transaction_id == transaction_id:
                    self._client.get_transactions_sheet().delete_rows(number)
                    return True
            return False
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete transaction: {e}")


class GoogleSheetsCategoryStorage(CategoryStorageInterface):
    """Categories worksheet, seeded with the defaults when first created."""

    def __init__(self, client: GoogleSheetsClient):
        self._client = client

    async def list_categories(
        self,
        transaction_type: Optional[TransactionType] = None,
    ) -> list[Category]:
        try:
            sheet = self._client.get_categories_sheet()
            categories = []
            for _, row in _data_rows(sheet):
                category = row_to_category(row)
                if category is None:
                    continue
                if transaction_type is None or category.type is transaction_type:
                    categories.append(category)
            return sort_categories(categories)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list categories: {e}")


class GoogleSheetsGoalStorage(GoalStorageInterface):
    def __init__(self, client: GoogleSheetsClient):
        self._client = client

    def _owned(self, user_id: UUID) -> list[tuple[int, SavingsGoal]]:
        sheet = self._client.get_goals_sheet()
        owned = []
        for number, row in _data_rows(sheet):
            if safe_get(row, 1) != str(user_id):
                continue
            goal = row_to_goal(row)
            if goal is not None:
                owned.append((number, goal))
        return owned

    async def list_goals(self, user_id: UUID) -> list[SavingsGoal]:
        try:
            return sort_goals([goal for _, goal in self._owned(user_id)])
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list goals: {e}")

    async def get_goal(self, user_id: UUID, goal_id: int) -> Optional[SavingsGoal]:
        try:
            for _, goal in self._owned(user_id):
                if goal.goal_id == goal_id:
                    return goal
            return None
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get goal: {e}")

    async def insert_goal(self, new: NewSavingsGoal) -> SavingsGoal:
        try:
            sheet = self._client.get_goals_sheet()
            values = new.model_dump()
            values["deadline"] = new.deadline.isoformat() if new.deadline else None
            goal = SavingsGoal(
                goal_id=next_id([row for _, row in _data_rows(sheet)]),
                created_at=datetime.utcnow(),
                **values,
            )
            sheet.append_row(goal_to_row(goal), value_input_option="RAW")
            return goal
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save goal: {e}")

    async def update_goal(
        self,
        user_id: UUID,
        goal_id: int,
        update: SavingsGoalUpdate,
    ) -> SavingsGoal:
        try:
            for number, goal in self._owned(user_id):
                if goal.goal_id == goal_id:
                    updated = goal.model_copy(update=update.changes())
                    _write_row(self._client.get_goals_sheet(), number, goal_to_row(updated))
                    return updated
            raise NotFoundError(f"Goal not found: {goal_id}")
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update goal: {e}")

    async def delete_goal(self, user_id: UUID, goal_id: int) -> bool:
        try:
            for number, goal in self._owned(user_id):
                if goal.goal_id == goal_id:
                    self._client.get_goals_sheet().delete_rows(number)
                    return True
            return False
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete goal: {e}")


class GoogleSheetsUserStorage(UserStorageInterface):
    def __init__(self, client: GoogleSheetsClient):
        self._client = client

    def _users(self) -> list[tuple[int, User]]:
        sheet = self._client.get_users_sheet()
        users = []
        for number, row in _data_rows(sheet):
            user = row_to_user(row)
            if user is not None:
                users.append((number, user))
        return users

    async def get_user_by_email(self, email: str) -> Optional[User]:
        email = email.strip().lower()
        try:
            for _, user in self._users():
                if user.email.lower() == email:
                    return user
            return None
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to look up user: {e}")

    async def get_user_by_token(self, confirmation_token: str) -> Optional[User]:
        try:
            for _, user in self._users():
                if user.confirmation_token and user.confirmation_token == confirmation_token:
                    return user
            return None
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to look up user: {e}")

    async def save_user(self, user: User) -> User:
        try:
            existing_number = None
            for number, existing in self._users():
                if existing.user_id == user.user_id:
                    existing_number = number
                elif existing.email.lower() == user.email.lower():
                    raise DuplicateError(f"Email already registered: {user.email}")

            sheet = self._client.get_users_sheet()
            if existing_number is None:
                sheet.append_row(user_to_row(user), value_input_option="RAW")
            else:
                _write_row(sheet, existing_number, user_to_row(user))
            return user
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save user: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Audit events appended to their own worksheet.

    Audit events are append-only.
    """

    def __init__(self, client: GoogleSheetsClient):
        self._client = client

    async def append_event(self, event: AuditEvent) -> bool:
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.warning("audit_write_failed", error=str(e), event_id=str(event.event_id))
            return False

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        try:
            sheet = self._client.get_audit_sheet()
            events = []
            for _, row in _data_rows(sheet):
                try:
                    events.append(row_to_event(row))
                except (ValueError, ValidationError):
                    continue

            # Sort newest first
            events.sort(key=lambda e: e.timestamp, reverse=True)
            return events[:limit]
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
