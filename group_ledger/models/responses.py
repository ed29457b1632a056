"""
Reporting and Response Models

Read-only views over the ledger and the envelope returned to the request
layer. Nothing here is persisted.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Generic, Optional, TypeVar
from uuid import UUID

from pydantic import BaseModel, Field

from group_ledger.models.group import BalanceDirection, MemberKind


T = TypeVar("T")


class MemberBalance(BaseModel):
    """One row of a group's balance sheet."""

    member_id: UUID
    name: str
    kind: MemberKind
    balance: Decimal
    direction: BalanceDirection


class MemberOverview(BaseModel):
    """A member's position across every group they belong to."""

    member_id: UUID
    group_count: int = Field(ge=0)
    net_balance: Decimal = Field(
        ...,
        description="Sum of the member's balances over all groups"
    )
    total_owed_to_member: Decimal = Field(
        ...,
        ge=0,
        description="Sum of positive group balances"
    )
    total_member_owes: Decimal = Field(
        ...,
        ge=0,
        description="Sum of negative group balances, as a positive number"
    )


class ActivityItem(BaseModel):
    """An expense shown in a member's recent activity feed."""

    group_id: UUID
    group_name: str
    expense_id: UUID
    title: str
    amount: Decimal
    paid_by: UUID
    paid_by_name: str
    expense_date: date
    created_at: datetime


class ApiResponse(BaseModel, Generic[T]):
    """
    Envelope returned by every request-layer call.

    Mirrors {success, data?, message}; error_code is set on failure so
    callers can branch without parsing the message.
    """

    success: bool
    data: Optional[T] = None
    message: str
    error_code: Optional[str] = None

    @classmethod
    def ok(cls, data: Optional[T], message: str) -> "ApiResponse[T]":
        return cls(success=True, data=data, message=message)

    @classmethod
    def fail(cls, message: str, error_code: str) -> "ApiResponse[T]":
        return cls(success=False, message=message, error_code=error_code)
