"""Input validation package."""

from group_ledger.validation.validator import (
    LedgerValidator,
    is_valid_email,
    normalize_email,
    unique_invites,
)

__all__ = ["LedgerValidator", "is_valid_email", "normalize_email", "unique_invites"]
