"""
Settlement math.

Greedy debt simplification: repeatedly match the member who is owed the
most against the member who owes the most and move the smaller of the two
amounts between them. Each step zeroes at least one of the pair, so n
members with a nonzero balance settle in at most n - 1 transfers.
"""

import heapq
from decimal import Decimal
from uuid import UUID

from group_ledger.models.group import Transfer


def minimize_transfers(balances: dict[UUID, Decimal]) -> list[Transfer]:
    """
    Compute a small set of transfers that brings every balance to zero.

    Ties between equal amounts are broken by the order of the balances
    mapping (the group's roster order), so the result is deterministic.
    Amounts are exact Decimals; no tolerance is needed.
    """
    # Max-heaps keyed on the outstanding amount, then roster position
    creditors: list[tuple[Decimal, int, UUID]] = []
    debtors: list[tuple[Decimal, int, UUID]] = []
    for position, (member_id, amount) in enumerate(balances.items()):
        if amount > 0:
            heapq.heappush(creditors, (-amount, position, member_id))
        elif amount < 0:
            heapq.heappush(debtors, (amount, position, member_id))

    transfers = []
    while creditors and debtors:
        credit, c_pos, creditor = heapq.heappop(creditors)
        debt, d_pos, debtor = heapq.heappop(debtors)
        credit, debt = -credit, -debt

        amount = min(credit, debt)
        transfers.append(Transfer(from_member=debtor, to_member=creditor, amount=amount))

        if credit > amount:
            heapq.heappush(creditors, (-(credit - amount), c_pos, creditor))
        if debt > amount:
            heapq.heappush(debtors, (-(debt - amount), d_pos, debtor))

    return transfers


def forgiveness_adjustments(balances: dict[UUID, Decimal]) -> dict[UUID, Decimal]:
    """Adjustments that cancel every outstanding balance."""
    return {member_id: -amount for member_id, amount in balances.items() if amount != 0}


def payment_adjustments(transfers: list[Transfer]) -> dict[UUID, Decimal]:
    """
    Adjustments recorded when transfers are paid.

    Paying reduces what the debtor owes and what the creditor is owed.
    """
    adjustments: dict[UUID, Decimal] = {}
    for transfer in transfers:
        adjustments[transfer.from_member] = (
            adjustments.get(transfer.from_member, Decimal(0)) + transfer.amount
        )
        adjustments[transfer.to_member] = (
            adjustments.get(transfer.to_member, Decimal(0)) - transfer.amount
        )
    return adjustments


def apply_adjustments(
    balances: dict[UUID, Decimal],
    adjustments: dict[UUID, Decimal],
) -> dict[UUID, Decimal]:
    """Balances after adjustments, without mutating the input."""
    result = dict(balances)
    for member_id, delta in adjustments.items():
        result[member_id] = result.get(member_id, Decimal(0)) + delta
    return result
