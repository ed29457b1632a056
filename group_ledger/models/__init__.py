"""
Data Models Package

This package contains all Pydantic models used in the Group Ledger system.
All data flowing through the system must conform to these schemas.
"""

from group_ledger.models.group import (
    BalanceDirection,
    Expense,
    Group,
    GroupMember,
    MemberKind,
    PendingMember,
    RegisteredMember,
    SettlementPolicy,
    SettlementProposal,
    SettlementRecord,
    SettlementResult,
    SettlementStatus,
    Transfer,
    UserIdentity,
    ValidationIssue,
    ValidationResult,
    utc_now,
)
from group_ledger.models.responses import (
    ActivityItem,
    ApiResponse,
    MemberBalance,
    MemberOverview,
)
from group_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "BalanceDirection",
    "Expense",
    "Group",
    "GroupMember",
    "MemberKind",
    "PendingMember",
    "RegisteredMember",
    "SettlementPolicy",
    "SettlementProposal",
    "SettlementRecord",
    "SettlementResult",
    "SettlementStatus",
    "Transfer",
    "UserIdentity",
    "ValidationIssue",
    "ValidationResult",
    "utc_now",
    # Reporting models
    "ActivityItem",
    "ApiResponse",
    "MemberBalance",
    "MemberOverview",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
