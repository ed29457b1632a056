"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the shared backend because:
1. Group members can look at the raw ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (fine for household groups)
- No transactions: a group is one row, written with a single update call,
  so a save either lands completely or not at all
- A cell holds at most 50,000 characters, so the group JSON is split
  across as many trailing cells of the row as it needs
- Limited query capabilities (we filter in Python)

The implementation follows the abstract interface, so we can swap
to PostgreSQL/SQLite later without changing ledger logic.
"""

import json
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from group_ledger.config import GoogleSheetsSettings, get_settings
from group_ledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from group_ledger.models.group import Group, UserIdentity
from group_ledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    GroupStorageInterface,
    StorageError,
    UserDirectoryInterface,
)


# Column mappings for Groups sheet
GROUP_COLUMNS = [
    "id",
    "name",
    "created_by",
    "member_ids",
    "updated_at",
    "group_json",
]

# Chunk size for group JSON, kept under the 50,000 character cell limit
MAX_CELL_CHARS = 45000

# Column mappings for Users sheet
USER_COLUMNS = [
    "id",
    "name",
    "email",
    "created_at",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "group_id",
    "correlation_id",
    "description",
    "details_json",
    "error_code",
    "error_message",
    "is_user_action",
]


def _chunks(data: str) -> list[str]:
    return [data[i:i + MAX_CELL_CHARS] for i in range(0, len(data), MAX_CELL_CHARS)] or [""]


def _ensure_width(sheet: gspread.Worksheet, width: int) -> None:
    if width > sheet.col_count:
        sheet.add_cols(width - sheet.col_count)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        columns: list[str],
        rows: int,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_groups_sheet(self) -> gspread.Worksheet:
        """Get or create the Groups worksheet."""
        return self._get_or_create_sheet(
            self._settings.groups_sheet_name, GROUP_COLUMNS, rows=1000
        )

    def get_users_sheet(self) -> gspread.Worksheet:
        """Get or create the Users worksheet."""
        return self._get_or_create_sheet(
            self._settings.users_sheet_name, USER_COLUMNS, rows=1000
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        # More rows for audit log
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


class GoogleSheetsGroupStorage(GroupStorageInterface):
    """
    Google Sheets implementation of group storage.

    One row per group. The full group (roster and history) is stored as
    JSON starting in the group_json column and continuing in the cells to
    its right; the leading columns are there for humans browsing the sheet
    and for cheap member filtering.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _group_to_row(self, group: Group) -> list:
        """Convert a Group to a spreadsheet row."""
        return [
            str(group.id),
            group.name,
            str(group.created_by),
            ",".join(str(member_id) for member_id in group.member_ids),
            datetime.now(timezone.utc).isoformat(),
            *_chunks(group.model_dump_json()),
        ]

    def _row_to_group(self, row: list) -> Group:
        """Convert a spreadsheet row to a Group."""
        data = "".join(row[5:])
        if not data:
            raise StorageError(f"Group row {row[0] if row else '?'} has no data column")
        return Group.model_validate_json(data)

    async def load_group(self, group_id: UUID) -> Optional[Group]:
        """Retrieve a group by its ID."""
        try:
            sheet = self._client.get_groups_sheet()
            # Get all data (excluding header)
            all_rows = sheet.get_all_values()[1:]

            for row in all_rows:
                if row and row[0] == str(group_id):
                    return self._row_to_group(row)

            return None
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to load group: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def save_group(self, group: Group) -> bool:
        """Insert the group's row, or overwrite it if it already exists."""
        try:
            sheet = self._client.get_groups_sheet()
            all_rows = sheet.get_all_values()
            new_row = self._group_to_row(group)

            for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is header
                if row and row[0] == str(group.id):
                    # Blank any chunk cells left over from a longer version
                    new_row += [""] * (len(row) - len(new_row))
                    _ensure_width(sheet, len(new_row))
                    sheet.update(
                        range_name=f"A{idx}",
                        values=[new_row],
                        value_input_option="RAW",
                    )
                    return True

            _ensure_width(sheet, len(new_row))
            sheet.append_row(new_row, value_input_option="RAW")
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save group: {e}")

    async def list_groups_for_member(self, member_id: UUID) -> list[Group]:
        """List groups whose roster includes the member."""
        try:
            sheet = self._client.get_groups_sheet()
            all_rows = sheet.get_all_values()[1:]  # Skip header

            groups = []
            for row in all_rows:
                if not row or not row[0]:  # Skip empty rows
                    continue
                if len(row) > 3 and str(member_id) in row[3].split(","):
                    groups.append(self._row_to_group(row))

            groups.sort(key=lambda g: g.created_at)
            return groups
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list groups: {e}")


class GoogleSheetsUserDirectory(UserDirectoryInterface):
    """Google Sheets implementation of the registered-user directory."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_user(self, row: list) -> UserIdentity:
        return UserIdentity(
            id=UUID(row[0]),
            name=row[1],
            email=row[2],
            created_at=datetime.fromisoformat(row[3]),
        )

    async def find_user_by_email(self, email: str) -> Optional[UserIdentity]:
        """Find a registered user by email."""
        wanted = email.strip().lower()
        try:
            sheet = self._client.get_users_sheet()
            for row in sheet.get_all_values()[1:]:
                if len(row) > 3 and row[2].strip().lower() == wanted:
                    return self._row_to_user(row)
            return None
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to look up user: {e}")

    async def register_user(self, user: UserIdentity) -> bool:
        """Append a user unless the email is taken."""
        if await self.find_user_by_email(user.email):
            raise DuplicateError(f"User with this email already exists: {user.email}")
        try:
            sheet = self._client.get_users_sheet()
            sheet.append_row(
                [str(user.id), user.name, user.email, user.created_at.isoformat()],
                value_input_option="RAW",
            )
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to register user: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=UUID(safe_get(5)) if safe_get(5) else None,
            group_id=UUID(safe_get(6)) if safe_get(6) else None,
            correlation_id=UUID(safe_get(7)) if safe_get(7) else None,
            description=safe_get(8),
            details=json.loads(safe_get(9)) if safe_get(9) else {},
            error_code=safe_get(10) or None,
            error_message=safe_get(11) or None,
            is_user_action=safe_get(12).lower() == "true",
        )

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def _read_events(self) -> list[AuditEvent]:
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        return [self._row_to_event(row) for row in all_rows if row and row[0]]

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        events = [
            e for e in await self._read_events()
            if e.correlation_id == correlation_id
        ]
        # Sort chronologically
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by entity."""
        events = [
            e for e in await self._read_events()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        events = await self._read_events()
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
