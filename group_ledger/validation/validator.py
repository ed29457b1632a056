"""
Ledger Input Validation

DESIGN DECISION: Validation is separate from the ledger arithmetic.
The validator inspects a request and reports EVERY issue it finds; the
ledger decides which typed error to raise from that report.

Checks are limited to what protects the ledger's invariants:
- Group creation: non-blank name and description, well-formed invite
  addresses, at least one invitee unless solo groups are allowed
- Expenses: non-blank title, payer is a member, split is non-empty and
  only names members, amount is positive and fits the currency's precision

IMPORTANT: Validation NEVER silently fixes issues.
A malformed invite address rejects the whole request; it is not dropped.
"""

from collections.abc import Iterable, Sequence
from typing import Optional
from uuid import UUID

from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as SchemaValidationError

from group_ledger.config import LedgerSettings, get_settings
from group_ledger.ledger.errors import InvalidAmountError
from group_ledger.ledger.money import check_amount_range, parse_amount, to_minor_units
from group_ledger.models.group import (
    Group,
    UserIdentity,
    ValidationIssue,
    ValidationResult,
)


EMAIL_ADAPTER = TypeAdapter(EmailStr)


def is_valid_email(email) -> bool:
    if not isinstance(email, str):
        return False
    try:
        EMAIL_ADAPTER.validate_python(email.strip())
    except SchemaValidationError:
        return False
    return True


def normalize_email(email: str) -> str:
    """Canonical form used to compare addresses: the bare address, lower-cased."""
    return EMAIL_ADAPTER.validate_python(email.strip()).lower()


def unique_invites(founder: UserIdentity, invited_emails: Iterable[str]) -> list[str]:
    """
    Invite addresses that become new members.

    Repeated addresses collapse and the founder's own address is skipped.
    Comparison is case-insensitive.
    """
    founder_email = normalize_email(founder.email)
    seen = []
    for email in invited_emails:
        normalized = normalize_email(email)
        if normalized != founder_email and normalized not in seen:
            seen.append(normalized)
    return seen


class LedgerValidator:
    """Validates group-creation and expense requests."""

    def __init__(self, settings: Optional[LedgerSettings] = None):
        self._settings = settings or get_settings().ledger

    def validate_group_creation(
        self,
        name: str,
        description: str,
        founder: UserIdentity,
        invited_emails: Sequence[str],
    ) -> ValidationResult:
        """
        Check a create-group request.

        Returns a ValidationResult with every issue found.
        """
        issues = []

        if not name or not name.strip():
            issues.append(ValidationIssue(
                field="name",
                issue_type="missing",
                message="Group name is required",
            ))

        if not description or not description.strip():
            issues.append(ValidationIssue(
                field="description",
                issue_type="missing",
                message="Group description is required",
            ))

        malformed = [
            email for email in invited_emails
            if not is_valid_email(email)
        ]
        for email in malformed:
            issues.append(ValidationIssue(
                field="invited_emails",
                issue_type="invalid_format",
                message=f"Not a valid email address: {email!r}",
                suggested_fix="Remove or correct the address",
            ))

        if not malformed and not self._settings.allow_solo_groups:
            if not unique_invites(founder, invited_emails):
                issues.append(ValidationIssue(
                    field="invited_emails",
                    issue_type="missing",
                    message="At least one valid member email is required",
                    suggested_fix="Invite someone other than yourself",
                ))

        return ValidationResult(operation="create_group", issues=issues)

    def validate_expense(
        self,
        group: Group,
        title: str,
        amount,
        paid_by: UUID,
        split_among: Sequence[UUID],
    ) -> ValidationResult:
        """
        Check an add-expense request against the group's current roster.

        Returns a ValidationResult with every issue found.
        """
        issues = []

        if not title or not title.strip():
            issues.append(ValidationIssue(
                field="title",
                issue_type="missing",
                message="Expense title is required",
            ))

        if not group.has_member(paid_by):
            issues.append(ValidationIssue(
                field="paid_by",
                issue_type="not_a_member",
                message=f"Payer {paid_by} is not a member of this group",
            ))

        if not split_among:
            issues.append(ValidationIssue(
                field="split_among",
                issue_type="missing",
                message="Select at least one member to split with",
            ))
        for member_id in dict.fromkeys(split_among):
            if not group.has_member(member_id):
                issues.append(ValidationIssue(
                    field="split_among",
                    issue_type="not_a_member",
                    message=f"Split participant {member_id} is not a member of this group",
                ))

        issues.extend(self._check_amount(amount))

        return ValidationResult(operation="add_expense", issues=issues)

    def _check_amount(self, amount) -> list[ValidationIssue]:
        places = self._settings.currency_decimal_places
        try:
            value = parse_amount(amount)
            if value <= 0:
                raise InvalidAmountError(f"Amount must be greater than zero, got {value}")
            check_amount_range(value)
            to_minor_units(value, places)
        except InvalidAmountError as e:
            return [ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message=e.message,
            )]
        return []

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """One message listing every error, for the request layer."""
        if result.is_valid:
            return "All checks passed"
        return "; ".join(
            issue.message for issue in result.issues if issue.severity == "error"
        )
