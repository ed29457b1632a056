"""
Tests for the storage backends.

Google Sheets is replaced by MagicMock worksheets; no API calls are made.
"""

from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock
from uuid import uuid4

import pytest

from group_ledger.models.audit import AuditEventBuilder
from group_ledger.models.group import (
    Expense,
    Group,
    PendingMember,
    RegisteredMember,
    UserIdentity,
)
from group_ledger.services.storage import (
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsGroupStorage,
    GoogleSheetsUserDirectory,
    InMemoryAuditStorage,
    InMemoryGroupStorage,
    InMemoryUserDirectory,
    StorageError,
)
from group_ledger.services.storage import ConnectionError as StorageConnectionError
from group_ledger.services.storage import google_sheets
from group_ledger.services.storage.google_sheets import (
    AUDIT_COLUMNS,
    GROUP_COLUMNS,
    USER_COLUMNS,
)


def _group():
    founder = RegisteredMember(id=uuid4(), name="Alice", email="alice@example.com")
    pending = PendingMember.from_email("carol@example.com")
    return Group(
        name="Flat",
        description="Bills",
        created_by=founder.id,
        members=[founder, pending],
        expenses=[Expense(
            title="Rent",
            amount=Decimal("900.00"),
            paid_by=founder.id,
            paid_by_name="Alice",
            split_among=(founder.id, pending.id),
            expense_date=date(2024, 5, 1),
        )],
    )


def _sheet_client(sheet_name, rows):
    """A client whose worksheet returns the given rows."""
    sheet = MagicMock()
    sheet.get_all_values.return_value = rows
    sheet.col_count = max((len(row) for row in rows), default=0)
    client = MagicMock()
    getattr(client, sheet_name).return_value = sheet
    return client, sheet


class TestInMemoryGroupStorage:
    """Tests for the in-memory group store."""

    @pytest.mark.asyncio
    async def test_load_returns_copy(self):
        """Mutating a loaded group does not touch the stored one."""
        storage = InMemoryGroupStorage()
        group = _group()
        await storage.save_group(group)

        loaded = await storage.load_group(group.id)
        loaded.expenses.clear()

        assert len((await storage.load_group(group.id)).expenses) == 1

    @pytest.mark.asyncio
    async def test_missing_group(self):
        """Unknown ids load as None."""
        assert await InMemoryGroupStorage().load_group(uuid4()) is None

    @pytest.mark.asyncio
    async def test_list_for_member(self):
        """Only groups containing the member are listed."""
        storage = InMemoryGroupStorage()
        group = _group()
        await storage.save_group(group)

        assert [g.id for g in await storage.list_groups_for_member(group.created_by)] == [group.id]
        assert await storage.list_groups_for_member(uuid4()) == []


class TestInMemoryUserDirectory:
    """Tests for the in-memory user directory."""

    @pytest.mark.asyncio
    async def test_lookup_is_case_insensitive(self):
        """Addresses match regardless of case."""
        user = UserIdentity(name="Bob", email="Bob@Example.com")
        directory = InMemoryUserDirectory([user])
        assert await directory.find_user_by_email("bob@example.com") == user

    @pytest.mark.asyncio
    async def test_duplicate_registration(self):
        """One user per address."""
        directory = InMemoryUserDirectory()
        await directory.register_user(UserIdentity(name="Bob", email="bob@example.com"))
        with pytest.raises(DuplicateError):
            await directory.register_user(UserIdentity(name="Robert", email="BOB@example.com"))


class TestGoogleSheetsGroupStorage:
    """Tests for the Google Sheets group store."""

    @pytest.mark.asyncio
    async def test_save_new_group_appends_row(self):
        """A group not yet in the sheet is appended as one row."""
        client, sheet = _sheet_client("get_groups_sheet", [GROUP_COLUMNS])
        storage = GoogleSheetsGroupStorage(client)
        group = _group()

        assert await storage.save_group(group) is True

        sheet.append_row.assert_called_once()
        row = sheet.append_row.call_args[0][0]
        assert len(row) == len(GROUP_COLUMNS)
        assert row[0] == str(group.id)
        assert row[3] == ",".join(str(m) for m in group.member_ids)
        assert sheet.append_row.call_args[1]["value_input_option"] == "RAW"

    @pytest.mark.asyncio
    async def test_save_existing_group_overwrites_row(self):
        """An existing row is replaced by a single update call."""
        group = _group()
        client, sheet = _sheet_client(
            "get_groups_sheet",
            [GROUP_COLUMNS, [str(group.id), "old", "", "", "", "{}"]],
        )

        await GoogleSheetsGroupStorage(client).save_group(group)

        sheet.append_row.assert_not_called()
        sheet.update_cell.assert_not_called()
        sheet.update.assert_called_once()
        kwargs = sheet.update.call_args[1]
        assert kwargs["range_name"] == "A2"
        assert kwargs["value_input_option"] == "RAW"
        assert len(kwargs["values"]) == 1
        assert kwargs["values"][0][0] == str(group.id)

    @pytest.mark.asyncio
    async def test_load_round_trips_history(self):
        """The JSON column carries the full roster and history."""
        group = _group()
        storage = GoogleSheetsGroupStorage(MagicMock())
        row = storage._group_to_row(group)
        client, _ = _sheet_client("get_groups_sheet", [GROUP_COLUMNS, row])

        loaded = await GoogleSheetsGroupStorage(client).load_group(group.id)

        assert loaded.id == group.id
        assert isinstance(loaded.members[1], PendingMember)
        assert loaded.expenses[0].amount == Decimal("900.00")
        assert loaded.expenses[0].split_among == group.expenses[0].split_among

    @pytest.mark.asyncio
    async def test_load_wraps_backend_errors(self):
        """Backend failures surface as StorageError."""
        client = MagicMock()
        client.get_groups_sheet.side_effect = RuntimeError("quota exceeded")

        with pytest.raises(StorageError, match="quota exceeded"):
            await GoogleSheetsGroupStorage(client).load_group(uuid4())

    @pytest.mark.asyncio
    async def test_list_filters_on_member_column(self):
        """Only rows whose member list contains the member are parsed."""
        group = _group()
        row = GoogleSheetsGroupStorage(MagicMock())._group_to_row(group)
        client, _ = _sheet_client(
            "get_groups_sheet",
            [GROUP_COLUMNS, row, [], [str(uuid4()), "Other", "", str(uuid4()), "", "{}"]],
        )
        storage = GoogleSheetsGroupStorage(client)

        groups = await storage.list_groups_for_member(group.members[1].id)

        assert [g.id for g in groups] == [group.id]

    @pytest.mark.asyncio
    async def test_long_history_spills_into_extra_cells(self, monkeypatch):
        """No cell exceeds the size limit; the pieces load back as one group."""
        monkeypatch.setattr(google_sheets, "MAX_CELL_CHARS", 200)
        group = _group()
        client, sheet = _sheet_client("get_groups_sheet", [GROUP_COLUMNS])

        await GoogleSheetsGroupStorage(client).save_group(group)

        row = sheet.append_row.call_args[0][0]
        assert len(row) > len(GROUP_COLUMNS)
        assert all(len(cell) <= 200 for cell in row)
        sheet.add_cols.assert_called_once_with(len(row) - len(GROUP_COLUMNS))

        client, _ = _sheet_client("get_groups_sheet", [GROUP_COLUMNS, row])
        loaded = await GoogleSheetsGroupStorage(client).load_group(group.id)
        assert loaded.expenses == group.expenses

    @pytest.mark.asyncio
    async def test_shorter_save_blanks_stale_chunks(self):
        """Cells from a previous, longer version of the row are cleared."""
        group = _group()
        stale = [str(group.id), "old", "", "", "", "{", "stale", "stale"]
        client, sheet = _sheet_client("get_groups_sheet", [GROUP_COLUMNS, stale])

        await GoogleSheetsGroupStorage(client).save_group(group)

        written = sheet.update.call_args[1]["values"][0]
        assert len(written) == len(stale)
        assert written[-2:] == ["", ""]
        assert Group.model_validate_json("".join(written[5:])).id == group.id


class TestGoogleSheetsUserDirectory:
    """Tests for the Google Sheets user directory."""

    @pytest.mark.asyncio
    async def test_find_user(self):
        """Rows are matched on the email column."""
        user = UserIdentity(name="Bob", email="bob@example.com")
        client, _ = _sheet_client("get_users_sheet", [
            USER_COLUMNS,
            [str(user.id), user.name, user.email, user.created_at.isoformat()],
        ])

        found = await GoogleSheetsUserDirectory(client).find_user_by_email(" BOB@example.com ")

        assert found.id == user.id
        assert found.name == "Bob"

    @pytest.mark.asyncio
    async def test_register_appends_row(self):
        """New users are appended."""
        client, sheet = _sheet_client("get_users_sheet", [USER_COLUMNS])
        user = UserIdentity(name="Bob", email="bob@example.com")

        await GoogleSheetsUserDirectory(client).register_user(user)

        row = sheet.append_row.call_args[0][0]
        assert row[:3] == [str(user.id), "Bob", "bob@example.com"]

    @pytest.mark.asyncio
    async def test_connection_failure_not_rewrapped(self):
        """An unreachable spreadsheet keeps its ConnectionError type."""
        client = MagicMock()
        client.get_users_sheet.side_effect = StorageConnectionError("Spreadsheet not found: x")

        with pytest.raises(StorageConnectionError, match="Spreadsheet not found"):
            await GoogleSheetsUserDirectory(client).find_user_by_email("bob@example.com")



class TestGoogleSheetsAuditStorage:
    """Tests for the Google Sheets audit log."""

    @pytest.mark.asyncio
    async def test_append_writes_sheets_row(self):
        """Events are appended in column order."""
        client, sheet = _sheet_client("get_audit_sheet", [AUDIT_COLUMNS])
        event = AuditEventBuilder.group_created(group_id=uuid4(), name="Flat", member_count=2)

        await GoogleSheetsAuditStorage(client).append_event(event)

        sheet.append_row.assert_called_once_with(event.to_sheets_row(), value_input_option="RAW")

    @pytest.mark.asyncio
    async def test_read_back_by_correlation(self):
        """Rows parse back into events."""
        correlation_id = uuid4()
        mine = AuditEventBuilder.group_created(
            group_id=uuid4(), name="Flat", member_count=2, correlation_id=correlation_id
        )
        other = AuditEventBuilder.group_created(group_id=uuid4(), name="Other", member_count=3)
        client, _ = _sheet_client(
            "get_audit_sheet",
            [AUDIT_COLUMNS, mine.to_sheets_row(), other.to_sheets_row()],
        )

        events = await GoogleSheetsAuditStorage(client).get_events_by_correlation_id(correlation_id)

        assert [e.event_id for e in events] == [mine.event_id]
        assert events[0].group_id == mine.group_id
        assert events[0].details == mine.details

    @pytest.mark.asyncio
    async def test_append_failure(self):
        """Write failures surface as StorageError."""
        client = MagicMock()
        client.get_audit_sheet.return_value.append_row.side_effect = RuntimeError("boom")
        event = AuditEventBuilder.system_error(error_type="x", error_message="y")

        with pytest.raises(StorageError):
            await GoogleSheetsAuditStorage(client).append_event(event)


class TestInMemoryAuditStorage:
    """Tests for the in-memory audit log."""

    @pytest.mark.asyncio
    async def test_recent_events_newest_first(self):
        """Recent events are limited and newest first."""
        storage = InMemoryAuditStorage()
        for i in range(3):
            await storage.append_event(
                AuditEventBuilder.system_error(error_type=f"e{i}", error_message="m")
            )

        recent = await storage.get_recent_events(limit=2)

        assert len(recent) == 2
        assert recent[0].timestamp >= recent[1].timestamp
