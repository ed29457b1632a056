"""
Ledger math package.

Pure functions over groups: the equal split, balance projection and
settlement computation, plus the errors the ledger raises.
No I/O happens in this package.
"""

from group_ledger.ledger.balances import (
    assert_closed_ledger,
    compute_balance_units,
    compute_balances,
    expense_effect,
    is_settled,
)
from group_ledger.ledger.errors import (
    GroupNotFoundError,
    InvalidAmountError,
    InvalidPayerError,
    InvalidSplitError,
    LedgerError,
    LedgerInvariantError,
    MemberNotFoundError,
    StaleSettlementError,
    ValidationError,
)
from group_ledger.ledger.money import (
    MAX_AMOUNT_DIGITS,
    check_amount_range,
    compute_shares,
    from_minor_units,
    minor_unit,
    parse_amount,
    split_units,
    to_minor_units,
)
from group_ledger.ledger.settlement import (
    apply_adjustments,
    forgiveness_adjustments,
    minimize_transfers,
    payment_adjustments,
)

__all__ = [
    # Balances
    "assert_closed_ledger",
    "compute_balance_units",
    "compute_balances",
    "expense_effect",
    "is_settled",
    # Errors
    "GroupNotFoundError",
    "InvalidAmountError",
    "InvalidPayerError",
    "InvalidSplitError",
    "LedgerError",
    "LedgerInvariantError",
    "MemberNotFoundError",
    "StaleSettlementError",
    "ValidationError",
    # Money
    "MAX_AMOUNT_DIGITS",
    "check_amount_range",
    "compute_shares",
    "from_minor_units",
    "minor_unit",
    "parse_amount",
    "split_units",
    "to_minor_units",
    # Settlement
    "apply_adjustments",
    "forgiveness_adjustments",
    "minimize_transfers",
    "payment_adjustments",
]
