"""
Ledger Errors

Every error the ledger raises is recoverable at the caller boundary.
Each carries a stable error_code for the request layer and the list of
validation issues that caused it, when there were any.
"""

from typing import Optional

from group_ledger.models.group import ValidationIssue


class LedgerError(Exception):
    """Base exception for ledger operations."""

    error_code = "ledger_error"

    def __init__(self, message: str, issues: Optional[list[ValidationIssue]] = None):
        super().__init__(message)
        self.message = message
        self.issues = issues or []


class ValidationError(LedgerError):
    """Malformed input (group creation, blank expense title)."""
    error_code = "validation_error"


class InvalidPayerError(LedgerError):
    """Expense payer is not a member of the group."""
    error_code = "invalid_payer"


class InvalidSplitError(LedgerError):
    """Expense split is empty or names a non-member."""
    error_code = "invalid_split"


class InvalidAmountError(LedgerError):
    """Expense amount is not a positive amount of whole currency units."""
    error_code = "invalid_amount"


class GroupNotFoundError(LedgerError):
    """No group with the requested id."""
    error_code = "group_not_found"


class MemberNotFoundError(LedgerError):
    """No member with the requested id."""
    error_code = "member_not_found"


class StaleSettlementError(LedgerError):
    """Settlement proposal is missing or no longer matches the ledger."""
    error_code = "stale_settlement"


class LedgerInvariantError(LedgerError):
    """Balances of a group do not sum to zero."""
    error_code = "ledger_invariant_violated"
