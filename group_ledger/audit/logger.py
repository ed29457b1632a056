"""
Audit Logger

DESIGN DECISION: Every ledger mutation and every rejected attempt is logged.
This provides:
1. Complete traceability of balance changes
2. Debugging capability when a request is rejected
3. A record of forgiveness events, which erase balances but not history

The audit logger:
- Is async to match the storage interfaces
- Gracefully handles failures (doesn't break a ledger operation if logging fails)
- Supports correlation IDs to trace related events
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import structlog

from group_ledger.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from group_ledger.models.group import ValidationIssue
from group_ledger.services.storage import AuditStorageInterface


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


def _issue_dicts(issues: list[ValidationIssue]) -> list[dict]:
    return [
        {"field": i.field, "type": i.issue_type, "message": i.message}
        for i in issues
    ]


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence), when configured
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
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity == AuditSeverity.CRITICAL:
            self._logger.critical("audit_event", **log_dict)
        elif event.severity == AuditSeverity.ERROR:
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
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

    async def log_group_created(
        self,
        group_id: UUID,
        name: str,
        member_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log group creation."""
        await self.log(AuditEventBuilder.group_created(
            group_id=group_id,
            name=name,
            member_count=member_count,
            correlation_id=correlation_id,
        ))

    async def log_group_rejected(
        self,
        name: str,
        error_code: str,
        error_message: str,
        issues: list[ValidationIssue],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a rejected group creation."""
        await self.log(AuditEventBuilder.group_rejected(
            name=name,
            error_code=error_code,
            error_message=error_message,
            issues=_issue_dicts(issues),
            correlation_id=correlation_id,
        ))

    async def log_expense_added(
        self,
        expense_id: UUID,
        group_id: UUID,
        amount: str,
        paid_by: UUID,
        shares: dict[UUID, Decimal],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an accepted expense with the shares charged."""
        await self.log(AuditEventBuilder.expense_added(
            expense_id=expense_id,
            group_id=group_id,
            amount=amount,
            paid_by=paid_by,
            shares=shares,
            correlation_id=correlation_id,
        ))

    async def log_expense_rejected(
        self,
        group_id: UUID,
        error_code: str,
        error_message: str,
        issues: list[ValidationIssue],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a rejected expense."""
        await self.log(AuditEventBuilder.expense_rejected(
            group_id=group_id,
            error_code=error_code,
            error_message=error_message,
            issues=_issue_dicts(issues),
            correlation_id=correlation_id,
        ))

    async def log_balances_forgiven(
        self,
        settlement_id: UUID,
        group_id: UUID,
        balances_before: dict[UUID, Decimal],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a forgive-all settlement."""
        await self.log(AuditEventBuilder.balances_forgiven(
            settlement_id=settlement_id,
            group_id=group_id,
            balances_before=balances_before,
            correlation_id=correlation_id,
        ))

    async def log_settlement_proposed(
        self,
        proposal_id: UUID,
        group_id: UUID,
        transfer_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a settlement proposal."""
        await self.log(AuditEventBuilder.settlement_proposed(
            proposal_id=proposal_id,
            group_id=group_id,
            transfer_count=transfer_count,
            correlation_id=correlation_id,
        ))

    async def log_settlement_confirmed(
        self,
        settlement_id: UUID,
        proposal_id: UUID,
        group_id: UUID,
        transfers: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a confirmed payment settlement."""
        await self.log(AuditEventBuilder.settlement_confirmed(
            settlement_id=settlement_id,
            proposal_id=proposal_id,
            group_id=group_id,
            transfers=transfers,
            correlation_id=correlation_id,
        ))

    async def log_settlement_rejected(
        self,
        group_id: UUID,
        proposal_id: UUID,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a rejected settlement confirmation."""
        await self.log(AuditEventBuilder.settlement_rejected(
            group_id=group_id,
            proposal_id=proposal_id,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_invariant_violated(
        self,
        group_id: UUID,
        imbalance: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log balances that fail to sum to zero."""
        await self.log(AuditEventBuilder.invariant_violated(
            group_id=group_id,
            imbalance=imbalance,
            correlation_id=correlation_id,
        ))

    async def log_save_failed(
        self,
        group_id: UUID,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a failed group save."""
        await self.log(AuditEventBuilder.save_failed(
            group_id=group_id,
            error_message=error_message,
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

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new request (e.g., add expense).
    Pass it through all subsequent operations.
    """
    return uuid4()
