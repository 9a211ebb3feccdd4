"""
Audit Logger

DESIGN DECISION: Every security-relevant action is logged.
This provides:
1. Traceability of logins, denials and data changes
2. Debugging capability when access is unexpectedly refused
3. A durable record of what a cascading deletion removed

The audit logger:
- Is async so it composes with the storage calls around it
- Gracefully handles failures (a broken audit sink never fails a request)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from expense_tracker.models.audit import AuditEvent, AuditEventBuilder
from expense_tracker.services.storage import AuditStorageInterface


# Configure structlog for local logging
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


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit store (for persistence), when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("expense_tracker.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
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
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_account_registered(
        self,
        account_id: UUID,
        email: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.account_registered(
            account_id=account_id,
            email=email,
            correlation_id=correlation_id,
        ))

    async def log_login_succeeded(
        self,
        account_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.login_succeeded(
            account_id=account_id,
            correlation_id=correlation_id,
        ))

    async def log_login_failed(
        self,
        email: str,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.login_failed(
            email=email,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_logout(
        self,
        account_id: Optional[UUID],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.logout(
            account_id=account_id,
            correlation_id=correlation_id,
        ))

    async def log_authentication_rejected(
        self,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.authentication_rejected(
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_access_denied(
        self,
        actor_id: UUID,
        action: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.access_denied(
            actor_id=actor_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            correlation_id=correlation_id,
        ))

    async def log_profile_updated(
        self,
        account_id: UUID,
        fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.profile_updated(
            account_id=account_id,
            fields=fields,
            correlation_id=correlation_id,
        ))

    async def log_account_deleted(
        self,
        account_id: UUID,
        expenses_deleted: int,
        categories_deleted: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.account_deleted(
            account_id=account_id,
            expenses_deleted=expenses_deleted,
            categories_deleted=categories_deleted,
            correlation_id=correlation_id,
        ))

    async def log_category_created(
        self,
        actor_id: UUID,
        category_id: UUID,
        name: str,
        owner_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.category_created(
            actor_id=actor_id,
            category_id=category_id,
            name=name,
            owner_id=owner_id,
            correlation_id=correlation_id,
        ))

    async def log_category_updated(
        self,
        actor_id: UUID,
        category_id: UUID,
        name: str,
        owner_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.category_updated(
            actor_id=actor_id,
            category_id=category_id,
            name=name,
            owner_id=owner_id,
            correlation_id=correlation_id,
        ))

    async def log_category_deleted(
        self,
        actor_id: UUID,
        category_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.category_deleted(
            actor_id=actor_id,
            category_id=category_id,
            correlation_id=correlation_id,
        ))

    async def log_category_delete_blocked(
        self,
        actor_id: UUID,
        category_id: UUID,
        expense_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.category_delete_blocked(
            actor_id=actor_id,
            category_id=category_id,
            expense_count=expense_count,
            correlation_id=correlation_id,
        ))

    async def log_expense_created(
        self,
        actor_id: UUID,
        expense_id: UUID,
        owner_id: UUID,
        amount: str,
        currency: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.expense_created(
            actor_id=actor_id,
            expense_id=expense_id,
            owner_id=owner_id,
            amount=amount,
            currency=currency,
            correlation_id=correlation_id,
        ))

    async def log_expense_updated(
        self,
        actor_id: UUID,
        expense_id: UUID,
        owner_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.expense_updated(
            actor_id=actor_id,
            expense_id=expense_id,
            owner_id=owner_id,
            correlation_id=correlation_id,
        ))

    async def log_expense_deleted(
        self,
        actor_id: UUID,
        expense_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.expense_deleted(
            actor_id=actor_id,
            expense_id=expense_id,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., account deletion).
    Pass it through all subsequent operations.
    """
    return uuid4()
