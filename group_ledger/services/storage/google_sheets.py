"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as a shared backend because:
1. The group's treasurer can see every saved snapshot directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Each snapshot is one row holding the full JSON document, split over
  several cells once it outgrows one; fine for a group of a few dozen
  members, not for thousands
- Only the newest snapshots are kept (GOOGLE_SHEETS_SNAPSHOT_RETENTION)
- No transactions (a snapshot row is appended in one call)
- Limited query capabilities (we filter in Python)

The implementation follows the abstract interface, so we can swap
to the JSON file store or a database without changing business logic.
"""

import json
from datetime import datetime
from typing import Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from group_ledger.config import GoogleSheetsSettings, get_settings
from group_ledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from group_ledger.models.group import GroupData, utc_now
from group_ledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    CorruptDataError,
    GroupDataStorageInterface,
    StorageError,
)
from group_ledger.services.storage.migrations import (
    MigrationError,
    migrate_group_data,
)


# Column mappings for Snapshots sheet; data_json continues into as many
# further cells as the document needs
SNAPSHOT_COLUMNS = [
    "saved_at",
    "schema_version",
    "member_count",
    "chunk_count",
    "data_json",
]

# Sheets rejects cells over 50,000 characters
CELL_CHUNK_SIZE = 45_000

DEFAULT_KEEP_SNAPSHOTS = 20

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "actor_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

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

    def _get_or_create(self, title: str, columns: list[str], rows: int) -> gspread.Worksheet:
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

    def get_snapshots_sheet(self) -> gspread.Worksheet:
        """Get or create the Snapshots worksheet."""
        return self._get_or_create(
            self._settings.snapshots_sheet_name, SNAPSHOT_COLUMNS, rows=1000
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


class GoogleSheetsGroupStore(GroupDataStorageInterface):
    """
    Google Sheets implementation of group data storage.

    Every save appends one snapshot row; load reads the newest row.
    A cell holds at most 50,000 characters, so the JSON document is split
    across as many data cells as it needs. Only the newest
    `keep_snapshots` rows are kept as history.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        migration_defaults: Optional[dict] = None,
        keep_snapshots: int = DEFAULT_KEEP_SNAPSHOTS,
    ):
        if keep_snapshots < 1:
            raise ValueError("keep_snapshots must be at least 1")
        self._client = client or GoogleSheetsClient()
        self._migration_defaults = migration_defaults or {}
        self._keep_snapshots = keep_snapshots

    def _data_to_row(self, data: GroupData) -> list:
        """Convert a GroupData snapshot to a spreadsheet row."""
        document = json.dumps(data.to_json_dict(), ensure_ascii=False)
        chunks = [
            document[start:start + CELL_CHUNK_SIZE]
            for start in range(0, len(document), CELL_CHUNK_SIZE)
        ] or [""]
        return [
            utc_now().isoformat(),
            str(data.schema_version),
            str(len(data.members)),
            str(len(chunks)),
            *chunks,
        ]

    @staticmethod
    def _row_to_document(row: list) -> str:
        """Reassemble the JSON document from a snapshot row."""
        # Rows written before chunking hold the whole document in column 4
        if not row[3].isdigit():
            return row[3]

        chunk_count = int(row[3])
        chunks = row[4:4 + chunk_count]
        if len(chunks) != chunk_count:
            raise CorruptDataError(
                f"Snapshot has {len(chunks)} of {chunk_count} data cells"
            )
        return "".join(chunks)

    def _trim(self, sheet: gspread.Worksheet) -> None:
        """Delete the oldest snapshot rows beyond the retention limit."""
        snapshot_rows = len(sheet.col_values(1)) - 1  # Skip header
        excess = snapshot_rows - self._keep_snapshots
        if excess > 0:
            sheet.delete_rows(2, 1 + excess)

    async def load(self) -> Optional[GroupData]:
        """Load the newest snapshot."""
        try:
            sheet = self._client.get_snapshots_sheet()
            all_rows = sheet.get_all_values()[1:]  # Skip header
        except Exception as e:
            raise StorageError(f"Failed to read snapshots: {e}")

        rows = [row for row in all_rows if len(row) > 3 and row[3]]
        if not rows:
            return None

        try:
            document = self._row_to_document(rows[-1])
            return migrate_group_data(json.loads(document), **self._migration_defaults)
        except (json.JSONDecodeError, MigrationError) as e:
            raise CorruptDataError(f"Latest snapshot is unreadable: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def save(self, data: GroupData) -> bool:
        """Append a snapshot row, then drop the oldest rows past retention."""
        row = self._data_to_row(data)
        try:
            sheet = self._client.get_snapshots_sheet()
            if sheet.col_count < len(row):
                sheet.add_cols(len(row) - sheet.col_count)
            sheet.append_row(row, value_input_option="RAW")
            self._trim(sheet)
            return True
        except Exception as e:
            raise StorageError(f"Failed to save group data: {e}")


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
            entity_id=safe_get(5) or None,
            actor_id=safe_get(6) or None,
            correlation_id=UUID(safe_get(7)) if safe_get(7) else None,
            description=safe_get(8),
            details=json.loads(safe_get(9)) if safe_get(9) else {},
            error_message=safe_get(10) or None,
            is_user_action=safe_get(11).lower() == "true",
        )

    def _all_events(self) -> list[AuditEvent]:
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except (ValueError, json.JSONDecodeError):
                continue  # Skip malformed rows
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        sheet = self._client.get_audit_sheet()
        sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        events = [e for e in self._all_events() if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Get events by entity."""
        events = [
            e for e in self._all_events()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        events = self._all_events()
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
