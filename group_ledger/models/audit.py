"""
Audit Models for Group Ledger

Every ledger mutation, and every rejected attempt at one, is logged for
audit purposes. This provides:
1. Traceability of who changed which balances and when
2. Debugging information when an operation is rejected
3. A second record of settlements besides the group's own history

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Each ledger operation has a success event and a rejection event.
    """
    # Groups
    GROUP_CREATED = "group_created"
    GROUP_REJECTED = "group_rejected"

    # Expenses
    EXPENSE_ADDED = "expense_added"
    EXPENSE_REJECTED = "expense_rejected"

    # Settlement
    BALANCES_FORGIVEN = "balances_forgiven"
    SETTLEMENT_PROPOSED = "settlement_proposed"
    SETTLEMENT_CONFIRMED = "settlement_confirmed"
    SETTLEMENT_REJECTED = "settlement_rejected"

    # Integrity
    LEDGER_INVARIANT_VIOLATED = "ledger_invariant_violated"

    # Persistence
    SAVE_FAILED = "save_failed"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


def _money(balances: dict[UUID, Decimal]) -> dict[str, str]:
    """Balances in a JSON-safe shape."""
    return {str(member_id): str(amount) for member_id, amount in balances.items()}


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'group', 'expense', 'settlement')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )
    group_id: Optional[UUID] = Field(
        default=None,
        description="Group the entity belongs to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., everything one request did)"
    )

    # Event details
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "group_id": str(self.group_id) if self.group_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         group_id, correlation_id, description, details_json, error_code,
         error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.group_id) if self.group_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details) if self.details else "",
            self.error_code or "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.group_created(group_id, name, 3, correlation_id)
        event = AuditEventBuilder.expense_added(expense_id, group_id, "40.00", ...)
    """

    @staticmethod
    def group_created(
        group_id: UUID,
        name: str,
        member_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GROUP_CREATED,
            entity_type="group",
            entity_id=group_id,
            group_id=group_id,
            correlation_id=correlation_id,
            description=f"Group created: {name} with {member_count} members",
            details={
                "name": name,
                "member_count": member_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def group_rejected(
        name: str,
        error_code: str,
        error_message: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GROUP_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="group",
            correlation_id=correlation_id,
            description=f"Group creation rejected with {len(issues)} issues",
            details={
                "name": name,
                "issues": issues,
            },
            error_code=error_code,
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def expense_added(
        expense_id: UUID,
        group_id: UUID,
        amount: str,
        paid_by: UUID,
        shares: dict[UUID, Decimal],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_ADDED,
            entity_type="expense",
            entity_id=expense_id,
            group_id=group_id,
            correlation_id=correlation_id,
            description=f"Expense added: {amount} split {len(shares)} ways",
            details={
                "amount": amount,
                "paid_by": str(paid_by),
                "shares": _money(shares),
            },
            is_user_action=True,
        )

    @staticmethod
    def expense_rejected(
        group_id: UUID,
        error_code: str,
        error_message: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="expense",
            group_id=group_id,
            correlation_id=correlation_id,
            description=f"Expense rejected: {error_code}",
            details={
                "issues": issues,
            },
            error_code=error_code,
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def balances_forgiven(
        settlement_id: UUID,
        group_id: UUID,
        balances_before: dict[UUID, Decimal],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BALANCES_FORGIVEN,
            severity=AuditSeverity.WARNING,
            entity_type="settlement",
            entity_id=settlement_id,
            group_id=group_id,
            correlation_id=correlation_id,
            description="All outstanding balances forgiven",
            details={
                "balances_before": _money(balances_before),
            },
            is_user_action=True,
        )

    @staticmethod
    def settlement_proposed(
        proposal_id: UUID,
        group_id: UUID,
        transfer_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTLEMENT_PROPOSED,
            entity_type="settlement",
            entity_id=proposal_id,
            group_id=group_id,
            correlation_id=correlation_id,
            description=f"Settlement proposed with {transfer_count} transfers",
            details={
                "transfer_count": transfer_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def settlement_confirmed(
        settlement_id: UUID,
        proposal_id: UUID,
        group_id: UUID,
        transfers: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTLEMENT_CONFIRMED,
            entity_type="settlement",
            entity_id=settlement_id,
            group_id=group_id,
            correlation_id=correlation_id,
            description=f"Settlement confirmed: {len(transfers)} transfers recorded",
            details={
                "proposal_id": str(proposal_id),
                "transfers": transfers,
            },
            is_user_action=True,
        )

    @staticmethod
    def settlement_rejected(
        group_id: UUID,
        proposal_id: UUID,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SETTLEMENT_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="settlement",
            entity_id=proposal_id,
            group_id=group_id,
            correlation_id=correlation_id,
            description="Settlement confirmation rejected",
            details={
                "reason": reason,
            },
            is_user_action=True,
        )

    @staticmethod
    def invariant_violated(
        group_id: UUID,
        imbalance: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEDGER_INVARIANT_VIOLATED,
            severity=AuditSeverity.CRITICAL,
            entity_type="group",
            entity_id=group_id,
            group_id=group_id,
            correlation_id=correlation_id,
            description=f"Balances do not sum to zero (off by {imbalance})",
            details={
                "imbalance": imbalance,
            },
        )

    @staticmethod
    def save_failed(
        group_id: UUID,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="group",
            entity_id=group_id,
            group_id=group_id,
            correlation_id=correlation_id,
            description="Failed to save group",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
