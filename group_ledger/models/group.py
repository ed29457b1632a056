"""
Core Data Models for Group Ledger

These models define the strict schemas for groups, members, expenses and
settlements. They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging
4. Keep balances derivable from the recorded history alone

DESIGN DECISION: No model stores a member balance. Balances are a pure
function of the expense log and the settlement log (see
group_ledger.ledger.balances), so display state can never drift from the
history that produced it.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Optional, Union
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    field_validator,
    model_validator,
)


def utc_now() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class MemberKind(str, Enum):
    """
    How a member joined the group.

    A pending member is an invited address with no registered user behind it.
    The ledger math treats both kinds identically.
    """
    REGISTERED = "registered"
    PENDING = "pending"


class SettlementPolicy(str, Enum):
    """
    What "settle up" means for a group.

    FORGIVE zeroes every balance without recording who paid whom.
    PAYMENT proposes the minimal set of transfers and zeroes balances only
    once the caller confirms they happened.
    """
    FORGIVE = "forgive"
    PAYMENT = "payment"


class SettlementStatus(str, Enum):
    """Outcome of a settle-up request."""
    FORGIVEN = "forgiven"
    PROPOSED = "proposed"
    CONFIRMED = "confirmed"
    ALREADY_SETTLED = "already_settled"  # Nothing outstanding, nothing recorded


class BalanceDirection(str, Enum):
    """Which way money flows for a member."""
    GETS_BACK = "gets_back"
    OWES = "owes"
    SETTLED = "settled"


# =============================================================================
# IDENTITIES AND MEMBERS
# =============================================================================

class UserIdentity(BaseModel):
    """A registered user of the application."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique user ID"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name"
    )
    email: EmailStr = Field(
        ...,
        description="Contact address, unique per user"
    )
    created_at: datetime = Field(default_factory=utc_now)


class RegisteredMember(BaseModel):
    """
    A group member backed by a registered user.

    The member id is the user's id, so the same person has the same id in
    every group they belong to.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    kind: Literal["registered"] = "registered"
    id: UUID
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr

    @classmethod
    def from_identity(cls, user: UserIdentity) -> "RegisteredMember":
        return cls(id=user.id, name=user.name, email=user.email)


class PendingMember(BaseModel):
    """
    A group member invited by address who has not registered yet.

    The display name is the local part of the address until the person
    registers.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    kind: Literal["pending"] = "pending"
    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr

    @classmethod
    def from_email(cls, email: str) -> "PendingMember":
        return cls(name=email.split("@")[0], email=email)


GroupMember = Annotated[
    Union[RegisteredMember, PendingMember],
    Field(discriminator="kind"),
]


# =============================================================================
# EXPENSES
# =============================================================================

class Expense(BaseModel):
    """
    Money paid by one member on behalf of a subset of members.

    CRITICAL: Expenses are immutable and append-only. The equal split is
    recomputed from (amount, paid_by, split_among) whenever balances are
    derived, so nothing here can disagree with the shares actually charged.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: UUID = Field(default_factory=uuid4)
    title: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="What the money was spent on"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Amount paid, in currency units"
    )
    paid_by: UUID = Field(
        ...,
        description="Member who paid"
    )
    paid_by_name: str = Field(
        ...,
        description="Payer's display name when the expense was recorded"
    )
    split_among: tuple[UUID, ...] = Field(
        ...,
        min_length=1,
        description="Members sharing the cost, in the order given"
    )
    expense_date: date = Field(
        ...,
        description="Date the expense happened"
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        description="When the ledger recorded the expense"
    )

    @field_validator('split_among')
    @classmethod
    def collapse_duplicates(cls, v: tuple[UUID, ...]) -> tuple[UUID, ...]:
        """Keep the first occurrence of each participant."""
        return tuple(dict.fromkeys(v))


# =============================================================================
# SETTLEMENT MODELS
# =============================================================================

class Transfer(BaseModel):
    """One payment from a debtor to a creditor."""
    model_config = ConfigDict(frozen=True)

    from_member: UUID
    to_member: UUID
    amount: Decimal = Field(..., gt=0)

    @model_validator(mode='after')
    def validate_parties(self) -> 'Transfer':
        if self.from_member == self.to_member:
            raise ValueError("A transfer needs two different members")
        return self


class SettlementRecord(BaseModel):
    """
    A settle-up event in the group's history.

    The adjustments are what the event does to each balance. For a
    forgiveness they negate every outstanding balance; for a payment they
    credit each debtor and debit each creditor by the transferred amounts.
    """
    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    policy: SettlementPolicy
    transfers: list[Transfer] = Field(default_factory=list)
    adjustments: dict[UUID, Decimal] = Field(default_factory=dict)
    balances_before: dict[UUID, Decimal] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode='after')
    def validate_closed(self) -> 'SettlementRecord':
        """A settlement moves money between members, never in or out."""
        if sum(self.adjustments.values(), Decimal(0)) != 0:
            raise ValueError("Settlement adjustments must sum to zero")
        return self


class SettlementProposal(BaseModel):
    """
    Pending first phase of a payment settlement.

    Only valid while the ledger is at the same version it was proposed at.
    """
    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    transfers: list[Transfer] = Field(default_factory=list)
    balances_before: dict[UUID, Decimal] = Field(default_factory=dict)
    ledger_version: int = Field(..., ge=0)
    created_at: datetime = Field(default_factory=utc_now)


class SettlementResult(BaseModel):
    """What a settle-up call did, returned to the caller."""

    group_id: UUID
    policy: SettlementPolicy
    status: SettlementStatus
    transfers: list[Transfer] = Field(default_factory=list)
    balances_before: dict[UUID, Decimal] = Field(default_factory=dict)
    balances_after: dict[UUID, Decimal] = Field(default_factory=dict)
    settlement_id: Optional[UUID] = None
    proposal_id: Optional[UUID] = None


# =============================================================================
# GROUP
# =============================================================================

class Group(BaseModel):
    """
    A named collection of members sharing expenses.

    Members, expenses and settlements are append-only lists.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=500)
    created_by: UUID = Field(
        ...,
        description="Member id of the founder"
    )
    created_at: datetime = Field(default_factory=utc_now)

    members: list[GroupMember] = Field(..., min_length=1)
    expenses: list[Expense] = Field(default_factory=list)
    settlements: list[SettlementRecord] = Field(default_factory=list)
    pending_proposal: Optional[SettlementProposal] = None

    @model_validator(mode='after')
    def validate_references(self) -> 'Group':
        """Every id the history refers to must be a member."""
        ids = [m.id for m in self.members]
        if len(ids) != len(set(ids)):
            raise ValueError("Member ids must be unique within a group")

        known = set(ids)
        if self.created_by not in known:
            raise ValueError("Group creator must be a member")

        for expense in self.expenses:
            if expense.paid_by not in known:
                raise ValueError(f"Expense {expense.id} payer is not a member")
            if not set(expense.split_among) <= known:
                raise ValueError(f"Expense {expense.id} splits with a non-member")

        for record in self.settlements:
            if not set(record.adjustments) <= known:
                raise ValueError(f"Settlement {record.id} adjusts a non-member")

        return self

    @property
    def member_ids(self) -> list[UUID]:
        return [m.id for m in self.members]

    @property
    def ledger_version(self) -> int:
        """Number of balance-changing events recorded so far."""
        return len(self.expenses) + len(self.settlements)

    def get_member(self, member_id: UUID) -> Optional[Union[RegisteredMember, PendingMember]]:
        for member in self.members:
            if member.id == member_id:
                return member
        return None

    def has_member(self, member_id: UUID) -> bool:
        return self.get_member(member_id) is not None


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'not_a_member', 'invalid_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """Result of checking one ledger operation's input."""

    operation: str = Field(
        ...,
        description="Operation being validated (e.g., 'create_group')"
    )
    validated_at: datetime = Field(default_factory=utc_now)
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    def issues_for(self, field: str) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.field == field]
