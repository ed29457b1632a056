"""
Ledger Reports

DESIGN DECISION: Reports are read-only and DETERMINISTIC.
They read groups from storage and derive every number from the same
balance projection the ledger uses, so a report can never show a balance
the ledger would not.

GUARANTEES:
- Only returns real data from storage
- Never stores or caches balances
- Every member of a group appears in its balance summary, zero included
- A member id no group lists is reported as MemberNotFoundError
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from group_ledger.config import LedgerSettings, get_settings
from group_ledger.ledger import (
    GroupNotFoundError,
    MemberNotFoundError,
    compute_balances,
    from_minor_units,
    minor_unit,
)
from group_ledger.models.group import BalanceDirection, Group
from group_ledger.models.responses import ActivityItem, MemberBalance, MemberOverview
from group_ledger.services.storage import GroupStorageInterface


def direction_of(balance: Decimal) -> BalanceDirection:
    if balance > 0:
        return BalanceDirection.GETS_BACK
    if balance < 0:
        return BalanceDirection.OWES
    return BalanceDirection.SETTLED


class LedgerQueries:
    """Read-only reporting over stored groups."""

    def __init__(
        self,
        storage: GroupStorageInterface,
        settings: Optional[LedgerSettings] = None,
    ):
        self._storage = storage
        self._settings = settings or get_settings().ledger

    @property
    def places(self) -> int:
        return self._settings.currency_decimal_places

    async def _load(self, group_id: UUID) -> Group:
        group = await self._storage.load_group(group_id)
        if group is None:
            raise GroupNotFoundError(f"Group not found: {group_id}")
        return group

    async def _groups_for(self, member_id: UUID) -> list[Group]:
        # Member ids only exist through group rosters
        groups = await self._storage.list_groups_for_member(member_id)
        if not groups:
            raise MemberNotFoundError(f"Member not found in any group: {member_id}")
        return groups

    async def balance_summary(self, group_id: UUID) -> list[MemberBalance]:
        """The group's balance sheet in roster order."""
        group = await self._load(group_id)
        balances = compute_balances(group, self.places)
        return [
            MemberBalance(
                member_id=member.id,
                name=member.name,
                kind=member.kind,
                balance=balances[member.id],
                direction=direction_of(balances[member.id]),
            )
            for member in group.members
        ]

    async def group_total_spent(self, group_id: UUID) -> Decimal:
        """Sum of every expense ever recorded in the group."""
        group = await self._load(group_id)
        total = sum((expense.amount for expense in group.expenses), Decimal(0))
        return total.quantize(minor_unit(self.places))

    async def member_overview(self, member_id: UUID) -> MemberOverview:
        """
        A member's position across all their groups.

        net_balance is what the dashboard shows as the member's total.
        Raises MemberNotFoundError when no group lists the member.
        """
        groups = await self._groups_for(member_id)
        zero = from_minor_units(0, self.places)

        owed_to_member = zero
        member_owes = zero
        for group in groups:
            balance = compute_balances(group, self.places)[member_id]
            if balance > 0:
                owed_to_member += balance
            else:
                member_owes -= balance

        return MemberOverview(
            member_id=member_id,
            group_count=len(groups),
            net_balance=owed_to_member - member_owes,
            total_owed_to_member=owed_to_member,
            total_member_owes=member_owes,
        )

    async def recent_activity(
        self,
        member_id: UUID,
        limit: Optional[int] = None,
    ) -> list[ActivityItem]:
        """Newest expenses across the member's groups."""
        limit = limit or self._settings.recent_activity_limit
        groups = await self._groups_for(member_id)

        items = [
            ActivityItem(
                group_id=group.id,
                group_name=group.name,
                expense_id=expense.id,
                title=expense.title,
                amount=expense.amount,
                paid_by=expense.paid_by,
                paid_by_name=expense.paid_by_name,
                expense_date=expense.expense_date,
                created_at=expense.created_at,
            )
            for group in groups
            for expense in group.expenses
        ]
        # Equal timestamps keep log order, so within a group the later entry wins
        ranked = sorted(
            enumerate(items),
            key=lambda pair: (pair[1].created_at, pair[0]),
            reverse=True,
        )
        return [item for _, item in ranked[:limit]]
