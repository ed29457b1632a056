"""
Balance projection.

A group's balances are a pure function of its roster, its expense log and
its settlement log. Nothing else is consulted, so a full recomputation is
always the authoritative answer.
"""

from decimal import Decimal
from uuid import UUID

from group_ledger.ledger.errors import LedgerInvariantError
from group_ledger.ledger.money import (
    from_minor_units,
    split_units,
    to_minor_units,
)
from group_ledger.models.group import Expense, Group


def expense_effect(expense: Expense, places: int = 2) -> dict[UUID, int]:
    """
    Balance change caused by one expense, in minor units.

    Two unconditional steps: the payer is credited the full amount, then
    every participant (the payer included, if listed) is debited their share.
    """
    total = to_minor_units(expense.amount, places)
    effect: dict[UUID, int] = {expense.paid_by: total}
    for member_id, share in split_units(total, expense.split_among, expense.paid_by).items():
        effect[member_id] = effect.get(member_id, 0) - share
    return effect


def compute_balance_units(group: Group, places: int = 2) -> dict[UUID, int]:
    """Balances in minor units, every member present, in roster order."""
    balances = {member_id: 0 for member_id in group.member_ids}

    for expense in group.expenses:
        for member_id, delta in expense_effect(expense, places).items():
            balances[member_id] += delta

    for record in group.settlements:
        for member_id, delta in record.adjustments.items():
            balances[member_id] += to_minor_units(delta, places)

    return balances


def compute_balances(group: Group, places: int = 2) -> dict[UUID, Decimal]:
    """
    Net balance per member.

    Positive means the group owes the member; negative means the member
    owes the group.
    """
    return {
        member_id: from_minor_units(units, places)
        for member_id, units in compute_balance_units(group, places).items()
    }


def assert_closed_ledger(balances: dict[UUID, Decimal]) -> None:
    """Raise LedgerInvariantError unless the balances sum to exactly zero."""
    total = sum(balances.values(), Decimal(0))
    if total != 0:
        raise LedgerInvariantError(f"Balances sum to {total}, expected 0")


def is_settled(balances: dict[UUID, Decimal]) -> bool:
    return all(amount == 0 for amount in balances.values())
