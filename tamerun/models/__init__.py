"""
Data Models Package

This package contains all Pydantic models used in Tamerun.
All data flowing between the store, the calculators and the screens
must conform to these schemas.
"""

from tamerun.models.finance import (
    Category,
    DailyTotal,
    GoalProgress,
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
from tamerun.models.auth import Session, SignUpResult, User
from tamerun.models.results import (
    ActionResult,
    RuleResult,
    ValidationIssue,
    ValidationResult,
)
from tamerun.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Finance models
    "Category",
    "DailyTotal",
    "GoalProgress",
    "GoalWithProgress",
    "MonthSummary",
    "MonthWindow",
    "NewSavingsGoal",
    "NewTransaction",
    "SavingsGoal",
    "SavingsGoalUpdate",
    "Transaction",
    "TransactionType",
    "TransactionUpdate",
    # Auth models
    "Session",
    "SignUpResult",
    "User",
    # Results
    "ActionResult",
    "RuleResult",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
