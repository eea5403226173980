"""
Audit Logger

DESIGN DECISION: Every mutation and every failure in the system is logged.
This provides:
1. Traceability of who changed which row
2. Debugging capability when the store misbehaves
3. A machine-readable event type next to each user-facing message

The audit logger:
- Always logs locally through structlog
- Appends to an audit store when one is configured
- Gracefully handles failures (a failed audit write never breaks a flow)
- Events of one user action share a correlation id
"""

import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from tamerun.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from tamerun.models.results import ValidationIssue
from tamerun.services.storage.interface import AuditStorageInterface


def configure_logging(log_level: str = "INFO") -> None:
    """
    Configure structlog for local JSON logging.

    Safe to call more than once; the app calls it at startup with the
    configured level.
    """
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level, logging.INFO),
        force=True,
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


class AuditLogger:
    """
    Records what users did and what went wrong.

    Logs events both to:
    1. structlog line (stdout, JSON)
    2. The audit store (for persistence), when configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Audit store to append to.
                    Without one, events only reach the local log.
        """
        self._storage = storage
        self._logger = structlog.get_logger("tamerun.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Logs locally first, then appends to the audit store when there is one.

        Returns False when the store rejected the event; the caller carries on.
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_transaction_created(
        self,
        user_id: UUID,
        transaction_id: int,
        transaction_type: str,
        amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_created(
            user_id=user_id,
            transaction_id=transaction_id,
            transaction_type=transaction_type,
            amount=str(amount),
            correlation_id=correlation_id,
        ))

    async def log_transaction_updated(
        self,
        user_id: UUID,
        transaction_id: int,
        changed_fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_updated(
            user_id=user_id,
            transaction_id=transaction_id,
            changed_fields=changed_fields,
            correlation_id=correlation_id,
        ))

    async def log_transaction_deleted(
        self,
        user_id: UUID,
        transaction_id: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_deleted(
            user_id=user_id,
            transaction_id=transaction_id,
            correlation_id=correlation_id,
        ))

    async def log_goal_changed(
        self,
        event_type: AuditEventType,
        user_id: UUID,
        goal_id: int,
        description: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Goal created, updated, toggled or deleted."""
        await self.log(AuditEventBuilder.goal_changed(
            event_type=event_type,
            user_id=user_id,
            goal_id=goal_id,
            description=description,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_validation_failed(
        self,
        user_id: Optional[UUID],
        form: str,
        issues: list[ValidationIssue],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.validation_failed(
            user_id=user_id,
            form=form,
            issues=[issue.model_dump() for issue in issues],
            correlation_id=correlation_id,
        ))

    async def log_auth_event(
        self,
        event_type: AuditEventType,
        email: str,
        user_id: Optional[UUID] = None,
        error_message: Optional[str] = None,
    ) -> None:
        await self.log(AuditEventBuilder.auth_event(
            event_type=event_type,
            email=email,
            user_id=user_id,
            error_message=error_message,
        ))

    async def log_store_error(
        self,
        operation: str,
        error_message: str,
        user_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.store_error(
            operation=operation,
            error_message=error_message,
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an unexpected error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    New id shared by every event of one user action.

    Use this at the start of a new user action (e.g., submitting a form).
    Flows create one per submit and pass it to each audit call.
    """
    return uuid4()
