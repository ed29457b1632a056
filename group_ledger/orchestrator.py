"""
Main Orchestrator for Group Ledger

This module ties together all the components and exposes the calls the
request layer makes:
1. Groups (create, fetch, list for a member)
2. Expenses (add)
3. Balances and reports
4. Settle up (forgive, or propose then confirm payment)

DESIGN DECISION: Every call returns an ApiResponse envelope
{success, data, message, error_code} and never raises for an expected
failure. Ledger errors carry their own code and message; storage errors
are reported generically. An unreachable backend is audited as an external
service error, any other storage failure as a system error. Anything else is a
bug and propagates.

Every call gets its own correlation id so its audit events can be traced
together.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from group_ledger.audit import AuditLogger, create_correlation_id
from group_ledger.config import AppSettings, get_settings
from group_ledger.ledger import LedgerError
from group_ledger.ledger_service import GroupLedger
from group_ledger.models.group import (
    Expense,
    Group,
    SettlementPolicy,
    SettlementResult,
    UserIdentity,
)
from group_ledger.models.responses import (
    ActivityItem,
    ApiResponse,
    MemberBalance,
    MemberOverview,
)
from group_ledger.queries import LedgerQueries
from group_ledger.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsGroupStorage,
    GoogleSheetsUserDirectory,
    InMemoryAuditStorage,
    InMemoryGroupStorage,
    InMemoryUserDirectory,
    StorageError,
)
from group_ledger.services.storage import ConnectionError as StorageConnectionError


logger = structlog.get_logger(__name__)

# Service name recorded when the spreadsheet backend cannot be reached
STORAGE_SERVICE = "google_sheets"


class ExpenseSharingApi:
    """
    Request-layer facade over the ledger and reports.

    Success messages match what the front end already shows.
    """

    def __init__(
        self,
        ledger: GroupLedger,
        queries: LedgerQueries,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._ledger = ledger
        self._queries = queries
        self._audit_logger = audit_logger

    async def _failure(
        self,
        error: Exception,
        operation: str,
        correlation_id: UUID,
    ) -> ApiResponse:
        if isinstance(error, LedgerError):
            return ApiResponse.fail(error.message, error.error_code)

        # StorageError
        if isinstance(error, StorageConnectionError):
            logger.error("storage_unreachable", operation=operation, error=str(error))
            if self._audit_logger:
                await self._audit_logger.log_external_service_error(
                    service=STORAGE_SERVICE,
                    error_message=str(error),
                    correlation_id=correlation_id,
                )
        elif self._audit_logger:
            await self._audit_logger.log_error(
                error_type="storage_error",
                error_message=str(error),
                details={"operation": operation},
                correlation_id=correlation_id,
            )
        return ApiResponse.fail(
            "Storage is unavailable, please try again",
            "storage_error",
        )

    async def create_group(
        self,
        name: str,
        description: str,
        founder: UserIdentity,
        invited_emails: list[str],
    ) -> ApiResponse[Group]:
        correlation_id = create_correlation_id()
        try:
            group = await self._ledger.create_group(
                name, description, founder, invited_emails,
                correlation_id=correlation_id,
            )
        except (LedgerError, StorageError) as e:
            return await self._failure(e, "create_group", correlation_id)
        return ApiResponse[Group].ok(group, "Group created successfully")

    async def get_group(self, group_id: UUID) -> ApiResponse[Group]:
        correlation_id = create_correlation_id()
        try:
            group = await self._ledger.get_group(group_id)
        except (LedgerError, StorageError) as e:
            return await self._failure(e, "get_group", correlation_id)
        return ApiResponse[Group].ok(group, "Group fetched")

    async def get_groups(self, member_id: UUID) -> ApiResponse[list[Group]]:
        correlation_id = create_correlation_id()
        try:
            groups = await self._ledger.list_groups_for_member(member_id)
        except (LedgerError, StorageError) as e:
            return await self._failure(e, "get_groups", correlation_id)
        return ApiResponse[list[Group]].ok(groups, "Groups fetched")

    async def add_expense(
        self,
        group_id: UUID,
        title: str,
        amount,
        paid_by: UUID,
        split_among: list[UUID],
        expense_date: Optional[date] = None,
    ) -> ApiResponse[Expense]:
        correlation_id = create_correlation_id()
        try:
            expense = await self._ledger.add_expense(
                group_id, title, amount, paid_by, split_among, expense_date,
                correlation_id=correlation_id,
            )
        except (LedgerError, StorageError) as e:
            return await self._failure(e, "add_expense", correlation_id)
        return ApiResponse[Expense].ok(expense, "Expense added successfully")

    async def get_balances(self, group_id: UUID) -> ApiResponse[dict[UUID, Decimal]]:
        correlation_id = create_correlation_id()
        try:
            balances = await self._ledger.get_balances(group_id)
        except (LedgerError, StorageError) as e:
            return await self._failure(e, "get_balances", correlation_id)
        return ApiResponse[dict[UUID, Decimal]].ok(balances, "Balances fetched")

    async def get_balance_summary(self, group_id: UUID) -> ApiResponse[list[MemberBalance]]:
        correlation_id = create_correlation_id()
        try:
            summary = await self._queries.balance_summary(group_id)
        except (LedgerError, StorageError) as e:
            return await self._failure(e, "get_balance_summary", correlation_id)
        return ApiResponse[list[MemberBalance]].ok(summary, "Balances fetched")

    async def get_member_overview(self, member_id: UUID) -> ApiResponse[MemberOverview]:
        correlation_id = create_correlation_id()
        try:
            overview = await self._queries.member_overview(member_id)
        except (LedgerError, StorageError) as e:
            return await self._failure(e, "get_member_overview", correlation_id)
        return ApiResponse[MemberOverview].ok(overview, "Overview fetched")

    async def get_recent_activity(
        self,
        member_id: UUID,
        limit: Optional[int] = None,
    ) -> ApiResponse[list[ActivityItem]]:
        correlation_id = create_correlation_id()
        try:
            items = await self._queries.recent_activity(member_id, limit)
        except (LedgerError, StorageError) as e:
            return await self._failure(e, "get_recent_activity", correlation_id)
        return ApiResponse[list[ActivityItem]].ok(items, "Activity fetched")

    async def settle_up(
        self,
        group_id: UUID,
        policy: Optional[SettlementPolicy] = None,
    ) -> ApiResponse[SettlementResult]:
        correlation_id = create_correlation_id()
        try:
            result = await self._ledger.settle_up(
                group_id, policy, correlation_id=correlation_id
            )
        except (LedgerError, StorageError) as e:
            return await self._failure(e, "settle_up", correlation_id)

        message = (
            "Settlement proposed"
            if result.policy == SettlementPolicy.PAYMENT
            else "Balances settled successfully"
        )
        return ApiResponse[SettlementResult].ok(result, message)

    async def confirm_settlement(
        self,
        group_id: UUID,
        proposal_id: UUID,
    ) -> ApiResponse[SettlementResult]:
        correlation_id = create_correlation_id()
        try:
            result = await self._ledger.confirm_settlement(
                group_id, proposal_id, correlation_id=correlation_id
            )
        except (LedgerError, StorageError) as e:
            return await self._failure(e, "confirm_settlement", correlation_id)
        return ApiResponse[SettlementResult].ok(result, "Balances settled successfully")


def resolve_log_level(app: AppSettings) -> str:
    """debug_mode forces DEBUG regardless of log_level."""
    return "DEBUG" if app.debug_mode else app.log_level


def create_app_components(
    use_storage: bool = True,
) -> tuple[ExpenseSharingApi, GroupLedger, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False for in-memory storage (tests, demos).

    Returns:
        (api, ledger, sheets_client)
    """
    settings = get_settings()
    app = settings.app
    logging.basicConfig(level=resolve_log_level(app), format="%(message)s")
    logger.info("starting", environment=app.app_environment, debug=app.debug_mode)

    sheets_client = None
    group_storage = None
    user_directory = None
    audit_storage = None

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            group_storage = GoogleSheetsGroupStorage(sheets_client)
            user_directory = GoogleSheetsUserDirectory(sheets_client)
            audit_storage = GoogleSheetsAuditStorage(sheets_client)
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            group_storage = None

    if group_storage is None:
        group_storage = InMemoryGroupStorage()
        user_directory = InMemoryUserDirectory()
        audit_storage = InMemoryAuditStorage()

    audit_logger = AuditLogger(audit_storage)
    ledger = GroupLedger(
        group_storage,
        user_directory=user_directory,
        audit_logger=audit_logger,
        settings=settings.ledger,
    )
    queries = LedgerQueries(group_storage, settings=settings.ledger)
    api = ExpenseSharingApi(ledger, queries, audit_logger)

    return api, ledger, sheets_client
