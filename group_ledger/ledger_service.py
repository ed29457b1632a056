"""
Group Ledger Service

The ledger owns each group's roster and history and is the only component
that changes either. Callers ask it to create groups, record expenses and
settle up; it validates, computes, verifies and saves.

DESIGN DECISION: Every mutation follows the same path:
1. Take the group's lock (one writer per group)
2. Load the group from storage
3. Validate the request against the loaded roster
4. Build the new group state on a copy
5. Recompute all balances and check they sum to zero
6. Save the copy - only now does the change become visible

If any step fails, storage still holds the previous state, so a partially
applied expense or settlement can never be observed.

Balances are never stored. They are recomputed from the expense and
settlement logs on every read (see group_ledger.ledger.balances).
"""

import asyncio
import weakref
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog
from pydantic import ValidationError as SchemaValidationError

from group_ledger.audit import AuditLogger
from group_ledger.config import LedgerSettings, get_settings
from group_ledger.ledger import (
    GroupNotFoundError,
    InvalidAmountError,
    InvalidPayerError,
    InvalidSplitError,
    LedgerError,
    LedgerInvariantError,
    StaleSettlementError,
    ValidationError,
    assert_closed_ledger,
    compute_balances,
    compute_shares,
    forgiveness_adjustments,
    is_settled,
    minimize_transfers,
    minor_unit,
    parse_amount,
    payment_adjustments,
)
from group_ledger.models.group import (
    Expense,
    Group,
    PendingMember,
    RegisteredMember,
    SettlementPolicy,
    SettlementProposal,
    SettlementRecord,
    SettlementResult,
    SettlementStatus,
    UserIdentity,
    ValidationResult,
    utc_now,
)
from group_ledger.services.storage import (
    GroupStorageInterface,
    StorageError,
    UserDirectoryInterface,
)
from group_ledger.validation import LedgerValidator, unique_invites


# Which error an invalid expense raises, by the first field with an issue
EXPENSE_ERROR_PRIORITY: list[tuple[str, type[LedgerError]]] = [
    ("paid_by", InvalidPayerError),
    ("split_among", InvalidSplitError),
    ("amount", InvalidAmountError),
    ("title", ValidationError),
]


def _schema_message(error: SchemaValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg')}" if location else str(first.get("msg"))


class GroupLedger:
    """
    The balance ledger for all groups in one storage backend.

    Mutations on one group are serialized with an asyncio.Lock per group id.
    Different groups never wait on each other.
    """

    def __init__(
        self,
        group_storage: GroupStorageInterface,
        user_directory: Optional[UserDirectoryInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[LedgerValidator] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._storage = group_storage
        self._users = user_directory
        self._audit_logger = audit_logger
        self._settings = settings or get_settings().ledger
        self._validator = validator or LedgerValidator(self._settings)
        # Entries vanish once no coroutine holds or waits on the lock
        self._locks: weakref.WeakValueDictionary[UUID, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._logger = structlog.get_logger(__name__)

    @property
    def settings(self) -> LedgerSettings:
        return self._settings

    @property
    def places(self) -> int:
        return self._settings.currency_decimal_places

    def _lock_for(self, group_id: UUID) -> asyncio.Lock:
        lock = self._locks.get(group_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[group_id] = lock
        return lock

    # =========================================================================
    # Internal steps shared by every mutation
    # =========================================================================

    async def _load(self, group_id: UUID) -> Group:
        group = await self._storage.load_group(group_id)
        if group is None:
            raise GroupNotFoundError(f"Group not found: {group_id}")
        return group

    async def _verify(
        self,
        group: Group,
        correlation_id: Optional[UUID],
    ) -> dict[UUID, Decimal]:
        """Recompute balances from the full history and check the sum."""
        balances = compute_balances(group, self.places)
        try:
            assert_closed_ledger(balances)
        except LedgerInvariantError:
            imbalance = str(sum(balances.values(), Decimal(0)))
            self._logger.critical(
                "ledger_invariant_violated",
                group_id=str(group.id),
                imbalance=imbalance,
            )
            if self._audit_logger:
                await self._audit_logger.log_invariant_violated(
                    group_id=group.id,
                    imbalance=imbalance,
                    correlation_id=correlation_id,
                )
            raise
        return balances

    async def _save(self, group: Group, correlation_id: Optional[UUID]) -> None:
        try:
            await self._storage.save_group(group)
        except StorageError as e:
            self._logger.error("group_save_failed", group_id=str(group.id), error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_save_failed(
                    group_id=group.id,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

    def _expense_error(self, result: ValidationResult) -> LedgerError:
        message = self._validator.get_user_friendly_summary(result)
        for field, error_class in EXPENSE_ERROR_PRIORITY:
            if result.issues_for(field):
                return error_class(message, result.issues)
        return ValidationError(message, result.issues)

    # =========================================================================
    # Groups
    # =========================================================================

    async def create_group(
        self,
        name: str,
        description: str,
        founder: UserIdentity,
        invited_emails: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> Group:
        """
        Create a group with the founder and every invited address as members.

        Invited addresses that belong to registered users become registered
        members; the rest become pending members named after the address.

        Raises:
            ValidationError: blank name/description, malformed address,
                or nobody invited while solo groups are disabled
        """
        result = self._validator.validate_group_creation(
            name, description, founder, invited_emails
        )
        if not result.is_valid:
            error = ValidationError(
                self._validator.get_user_friendly_summary(result), result.issues
            )
            if self._audit_logger:
                await self._audit_logger.log_group_rejected(
                    name=name or "",
                    error_code=error.error_code,
                    error_message=error.message,
                    issues=result.issues,
                    correlation_id=correlation_id,
                )
            raise error

        members: list = [RegisteredMember.from_identity(founder)]
        for email in unique_invites(founder, invited_emails):
            user = await self._users.find_user_by_email(email) if self._users else None
            if user is not None and user.id != founder.id:
                members.append(RegisteredMember.from_identity(user))
            elif user is None:
                members.append(PendingMember.from_email(email))

        try:
            group = Group(
                name=name,
                description=description,
                created_by=founder.id,
                members=members,
            )
        except SchemaValidationError as e:
            raise ValidationError(f"Invalid group: {_schema_message(e)}")

        await self._verify(group, correlation_id)
        await self._save(group, correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_group_created(
                group_id=group.id,
                name=group.name,
                member_count=len(group.members),
                correlation_id=correlation_id,
            )

        return group

    async def get_group(self, group_id: UUID) -> Group:
        """
        Raises:
            GroupNotFoundError: no such group
        """
        return await self._load(group_id)

    async def list_groups_for_member(self, member_id: UUID) -> list[Group]:
        """Every group the member belongs to, oldest first."""
        return await self._storage.list_groups_for_member(member_id)

    # =========================================================================
    # Expenses
    # =========================================================================

    async def add_expense(
        self,
        group_id: UUID,
        title: str,
        amount,
        paid_by: UUID,
        split_among: list[UUID],
        expense_date: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """
        Record an expense split equally among split_among.

        The payer is credited the full amount and every participant is
        debited their share; leftover minor units from the division go to
        the payer when they participate. expense_date defaults to the UTC
        date the expense is recorded.

        Raises:
            GroupNotFoundError: no such group
            InvalidPayerError: payer is not a member
            InvalidSplitError: empty split or non-member participant
            InvalidAmountError: amount not positive, too precise or too large
            ValidationError: blank title
        """
        split_among = list(split_among)

        async with self._lock_for(group_id):
            group = await self._load(group_id)

            result = self._validator.validate_expense(
                group, title, amount, paid_by, split_among
            )
            if not result.is_valid:
                error = self._expense_error(result)
                if self._audit_logger:
                    await self._audit_logger.log_expense_rejected(
                        group_id=group_id,
                        error_code=error.error_code,
                        error_message=error.message,
                        issues=result.issues,
                        correlation_id=correlation_id,
                    )
                raise error

            value = parse_amount(amount).quantize(minor_unit(self.places))
            payer = group.get_member(paid_by)

            # created_at never goes backwards within a group
            created_at = utc_now()
            if group.expenses:
                created_at = max(created_at, group.expenses[-1].created_at)

            try:
                expense = Expense(
                    title=title,
                    amount=value,
                    paid_by=paid_by,
                    paid_by_name=payer.name,
                    split_among=tuple(split_among),
                    expense_date=expense_date or created_at.date(),
                    created_at=created_at,
                )
            except SchemaValidationError as e:
                raise ValidationError(f"Invalid expense: {_schema_message(e)}")

            updated = group.model_copy(update={
                "expenses": [*group.expenses, expense],
                "pending_proposal": None,
            })
            await self._verify(updated, correlation_id)
            await self._save(updated, correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_expense_added(
                expense_id=expense.id,
                group_id=group_id,
                amount=str(expense.amount),
                paid_by=paid_by,
                shares=compute_shares(expense.amount, expense.split_among, paid_by, self.places),
                correlation_id=correlation_id,
            )

        return expense

    # =========================================================================
    # Balances
    # =========================================================================

    async def get_balances(self, group_id: UUID) -> dict[UUID, Decimal]:
        """
        Net balance of every member, in roster order.

        Positive: the group owes the member. Negative: the member owes.
        The values always sum to zero.

        Raises:
            GroupNotFoundError: no such group
        """
        group = await self._load(group_id)
        balances = compute_balances(group, self.places)
        assert_closed_ledger(balances)
        return balances

    # =========================================================================
    # Settlement
    # =========================================================================

    async def settle_up(
        self,
        group_id: UUID,
        policy: Optional[SettlementPolicy] = None,
        correlation_id: Optional[UUID] = None,
    ) -> SettlementResult:
        """
        Settle the group's outstanding balances.

        FORGIVE ("forgive all outstanding balances") records an adjustment
        that zeroes every balance; expense history is kept. PAYMENT only
        proposes transfers; see propose_settlement / confirm_settlement.

        Calling this again on a settled group changes nothing.

        Raises:
            GroupNotFoundError: no such group
        """
        policy = policy or self._settings.default_settlement_policy
        if policy == SettlementPolicy.PAYMENT:
            return await self.propose_settlement(group_id, correlation_id)

        async with self._lock_for(group_id):
            group = await self._load(group_id)
            balances = await self._verify(group, correlation_id)

            if is_settled(balances):
                return SettlementResult(
                    group_id=group_id,
                    policy=policy,
                    status=SettlementStatus.ALREADY_SETTLED,
                    balances_before=balances,
                    balances_after=balances,
                )

            record = SettlementRecord(
                policy=SettlementPolicy.FORGIVE,
                adjustments=forgiveness_adjustments(balances),
                balances_before=balances,
            )
            updated = group.model_copy(update={
                "settlements": [*group.settlements, record],
                "pending_proposal": None,
            })
            after = await self._verify(updated, correlation_id)
            await self._save(updated, correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_balances_forgiven(
                settlement_id=record.id,
                group_id=group_id,
                balances_before=balances,
                correlation_id=correlation_id,
            )

        return SettlementResult(
            group_id=group_id,
            policy=policy,
            status=SettlementStatus.FORGIVEN,
            balances_before=balances,
            balances_after=after,
            settlement_id=record.id,
        )

    async def propose_settlement(
        self,
        group_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> SettlementResult:
        """
        First phase of a payment settlement.

        Computes the minimal transfers that would zero every balance and
        stores them as the group's pending proposal. Balances are unchanged
        until confirm_settlement is called with the returned proposal_id.

        Raises:
            GroupNotFoundError: no such group
        """
        async with self._lock_for(group_id):
            group = await self._load(group_id)
            balances = await self._verify(group, correlation_id)

            if is_settled(balances):
                return SettlementResult(
                    group_id=group_id,
                    policy=SettlementPolicy.PAYMENT,
                    status=SettlementStatus.ALREADY_SETTLED,
                    balances_before=balances,
                    balances_after=balances,
                )

            proposal = SettlementProposal(
                transfers=minimize_transfers(balances),
                balances_before=balances,
                ledger_version=group.ledger_version,
            )
            updated = group.model_copy(update={"pending_proposal": proposal})
            await self._save(updated, correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_settlement_proposed(
                proposal_id=proposal.id,
                group_id=group_id,
                transfer_count=len(proposal.transfers),
                correlation_id=correlation_id,
            )

        return SettlementResult(
            group_id=group_id,
            policy=SettlementPolicy.PAYMENT,
            status=SettlementStatus.PROPOSED,
            transfers=proposal.transfers,
            balances_before=balances,
            balances_after=balances,
            proposal_id=proposal.id,
        )

    async def confirm_settlement(
        self,
        group_id: UUID,
        proposal_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> SettlementResult:
        """
        Second phase of a payment settlement: the transfers happened.

        Records the proposal's transfers as a payment, which zeroes every
        balance.

        Raises:
            GroupNotFoundError: no such group
            StaleSettlementError: no pending proposal with this id, or the
                ledger changed since it was proposed
        """
        async with self._lock_for(group_id):
            group = await self._load(group_id)
            proposal = group.pending_proposal

            reason = None
            if proposal is None or proposal.id != proposal_id:
                reason = "No pending settlement proposal with this id"
            elif proposal.ledger_version != group.ledger_version:
                reason = "Ledger changed since the settlement was proposed"

            if reason is None:
                balances = await self._verify(group, correlation_id)
                adjustments = payment_adjustments(proposal.transfers)
                record = SettlementRecord(
                    policy=SettlementPolicy.PAYMENT,
                    transfers=proposal.transfers,
                    adjustments=adjustments,
                    balances_before=balances,
                )
                updated = group.model_copy(update={
                    "settlements": [*group.settlements, record],
                    "pending_proposal": None,
                })
                after = await self._verify(updated, correlation_id)
                if not is_settled(after):
                    reason = "Proposed transfers no longer settle the group"

            if reason is not None:
                if self._audit_logger:
                    await self._audit_logger.log_settlement_rejected(
                        group_id=group_id,
                        proposal_id=proposal_id,
                        reason=reason,
                        correlation_id=correlation_id,
                    )
                raise StaleSettlementError(reason)

            await self._save(updated, correlation_id)

        if self._audit_logger:
            await self._audit_logger.log_settlement_confirmed(
                settlement_id=record.id,
                proposal_id=proposal_id,
                group_id=group_id,
                transfers=[t.model_dump(mode="json") for t in record.transfers],
                correlation_id=correlation_id,
            )

        return SettlementResult(
            group_id=group_id,
            policy=SettlementPolicy.PAYMENT,
            status=SettlementStatus.CONFIRMED,
            transfers=record.transfers,
            balances_before=balances,
            balances_after=after,
            settlement_id=record.id,
        )
