"""
Tests for the request-layer facade.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from group_ledger.audit import AuditLogger
from group_ledger.config import AppSettings
from group_ledger.ledger_service import GroupLedger
from group_ledger.models.audit import AuditEventType, AuditSeverity
from group_ledger.models.group import SettlementPolicy, SettlementStatus
from group_ledger.orchestrator import (
    STORAGE_SERVICE,
    ExpenseSharingApi,
    create_app_components,
    resolve_log_level,
)
from group_ledger.queries import LedgerQueries
from group_ledger.services.storage import ConnectionError as StorageConnectionError
from group_ledger.services.storage import InMemoryGroupStorage, StorageError


class BrokenStorage(InMemoryGroupStorage):
    """Storage whose backend is down."""

    async def load_group(self, group_id):
        raise StorageError("connection reset")


class UnreachableStorage(InMemoryGroupStorage):
    """Storage that cannot reach its backend at all."""

    async def load_group(self, group_id):
        raise StorageConnectionError("Spreadsheet not found: sheet-id")


@pytest.fixture
def api(ledger, queries, audit_storage):
    return ExpenseSharingApi(ledger, queries, AuditLogger(audit_storage))


class TestEnvelope:
    """Every call returns {success, data, message, error_code}."""

    @pytest.mark.asyncio
    async def test_create_group_success(self, api, alice):
        """Success carries the group and the front end's message."""
        response = await api.create_group("Flat", "Bills", alice, ["bob@example.com"])

        assert response.success is True
        assert response.message == "Group created successfully"
        assert response.error_code is None
        assert response.data.name == "Flat"

    @pytest.mark.asyncio
    async def test_create_group_failure(self, api, alice):
        """Validation failures come back as data-less envelopes."""
        response = await api.create_group("Flat", "Bills", alice, ["nope"])

        assert response.success is False
        assert response.data is None
        assert response.error_code == "validation_error"
        assert "nope" in response.message

    @pytest.mark.asyncio
    async def test_add_expense_and_balances(self, api, alice):
        """The happy path through the facade."""
        group = (await api.create_group("Flat", "Bills", alice, ["bob@example.com"])).data
        a, b = group.member_ids

        added = await api.add_expense(group.id, "Groceries", "40.00", a, [a, b])
        balances = await api.get_balances(group.id)

        assert added.message == "Expense added successfully"
        assert added.data.paid_by_name == "Alice"
        assert balances.data == {a: Decimal("20.00"), b: Decimal("-20.00")}

    @pytest.mark.asyncio
    async def test_invalid_payer_code(self, api, alice):
        """Ledger errors keep their error code."""
        group = (await api.create_group("Flat", "Bills", alice, ["bob@example.com"])).data

        response = await api.add_expense(group.id, "Dinner", "10.00", uuid4(), group.member_ids)

        assert response.success is False
        assert response.error_code == "invalid_payer"

    @pytest.mark.asyncio
    async def test_group_not_found_code(self, api):
        """Unknown groups are reported, not raised."""
        response = await api.get_group(uuid4())
        assert response.error_code == "group_not_found"

    @pytest.mark.asyncio
    async def test_oversized_amount_code(self, api, alice):
        """An amount too large to record is an invalid_amount, not a crash."""
        group = (await api.create_group("Flat", "Bills", alice, ["bob@example.com"])).data
        a, b = group.member_ids

        response = await api.add_expense(
            group.id, "Everything", "100000000000000000000000000", a, [a, b]
        )

        assert response.success is False
        assert response.error_code == "invalid_amount"
        assert (await api.get_balances(group.id)).data == {a: Decimal("0.00"), b: Decimal("0.00")}

    @pytest.mark.asyncio
    async def test_member_not_found_code(self, api, alice):
        """Reports for a member in no group say so."""
        await api.create_group("Flat", "Bills", alice, ["bob@example.com"])

        overview = await api.get_member_overview(uuid4())
        activity = await api.get_recent_activity(uuid4())

        assert overview.success is False
        assert overview.error_code == "member_not_found"
        assert activity.error_code == "member_not_found"

    @pytest.mark.asyncio
    async def test_reports(self, api, alice):
        """Summary, overview and activity are available through the facade."""
        group = (await api.create_group("Flat", "Bills", alice, ["bob@example.com"])).data
        a, b = group.member_ids
        await api.add_expense(group.id, "Groceries", "40.00", a, [a, b])

        summary = await api.get_balance_summary(group.id)
        overview = await api.get_member_overview(alice.id)
        activity = await api.get_recent_activity(alice.id)
        groups = await api.get_groups(alice.id)

        assert [row.balance for row in summary.data] == [Decimal("20.00"), Decimal("-20.00")]
        assert overview.data.net_balance == Decimal("20.00")
        assert [item.title for item in activity.data] == ["Groceries"]
        assert [g.id for g in groups.data] == [group.id]


class TestSettleUpFacade:
    """Tests for settle-up through the facade."""

    @pytest.mark.asyncio
    async def test_forgive_message(self, api, alice):
        """Forgiveness uses the front end's success message."""
        group = (await api.create_group("Flat", "Bills", alice, ["bob@example.com"])).data
        a, b = group.member_ids
        await api.add_expense(group.id, "Groceries", "40.00", a, [a, b])

        response = await api.settle_up(group.id)

        assert response.message == "Balances settled successfully"
        assert response.data.status == SettlementStatus.FORGIVEN

    @pytest.mark.asyncio
    async def test_payment_round_trip(self, api, alice):
        """Propose then confirm; a second confirm is stale."""
        group = (await api.create_group("Flat", "Bills", alice, ["bob@example.com"])).data
        a, b = group.member_ids
        await api.add_expense(group.id, "Groceries", "40.00", a, [a, b])

        proposed = await api.settle_up(group.id, SettlementPolicy.PAYMENT)
        confirmed = await api.confirm_settlement(group.id, proposed.data.proposal_id)
        again = await api.confirm_settlement(group.id, proposed.data.proposal_id)

        assert proposed.message == "Settlement proposed"
        assert confirmed.success is True
        assert confirmed.data.status == SettlementStatus.CONFIRMED
        assert again.error_code == "stale_settlement"


class TestStorageFailures:
    """Storage errors are reported generically and audited."""

    @pytest.mark.asyncio
    async def test_storage_error_envelope(self, directory, audit_storage, settings):
        """The caller sees storage_error; the audit log keeps the detail."""
        storage = BrokenStorage()
        audit_logger = AuditLogger(audit_storage)
        ledger = GroupLedger(
            storage, user_directory=directory, audit_logger=audit_logger, settings=settings
        )
        api = ExpenseSharingApi(ledger, LedgerQueries(storage, settings), audit_logger)

        response = await api.get_balances(uuid4())

        assert response.success is False
        assert response.error_code == "storage_error"
        event = audit_storage.events[-1]
        assert event.event_type == AuditEventType.SYSTEM_ERROR
        assert event.error_message == "connection reset"
        assert event.details["operation"] == "get_balances"

    @pytest.mark.asyncio
    async def test_unreachable_backend_audited_as_external(self, directory, audit_storage, settings):
        """Losing the spreadsheet is recorded against the external service."""
        storage = UnreachableStorage()
        audit_logger = AuditLogger(audit_storage)
        ledger = GroupLedger(
            storage, user_directory=directory, audit_logger=audit_logger, settings=settings
        )
        api = ExpenseSharingApi(ledger, LedgerQueries(storage, settings), audit_logger)

        response = await api.get_group(uuid4())

        assert response.error_code == "storage_error"
        event = audit_storage.events[-1]
        assert event.event_type == AuditEventType.EXTERNAL_SERVICE_ERROR
        assert event.severity == AuditSeverity.ERROR
        assert event.details["service"] == STORAGE_SERVICE
        assert event.error_message == "Spreadsheet not found: sheet-id"


class TestFactory:
    """Tests for component wiring."""

    @pytest.mark.asyncio
    async def test_in_memory_components(self, alice):
        """Without storage the factory wires in-memory backends."""
        api, ledger, sheets_client = create_app_components(use_storage=False)

        assert sheets_client is None
        response = await api.create_group("Flat", "Bills", alice, ["bob@example.com"])
        assert response.success is True
        assert (await ledger.get_group(response.data.id)).name == "Flat"

    def test_debug_mode_forces_debug_logging(self):
        """debug_mode overrides the configured level."""
        assert resolve_log_level(AppSettings(debug_mode=True, log_level="WARNING")) == "DEBUG"
        assert resolve_log_level(AppSettings(debug_mode=False, log_level="WARNING")) == "WARNING"
