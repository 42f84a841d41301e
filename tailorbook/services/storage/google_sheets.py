"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the shared backend store because:
1. The shop owner can look at the data directly
2. No database server to run
3. Built-in backup (Google's infrastructure)

LAYOUT:
- One worksheet per collection, two columns: id | data (the record as JSON)
- One key/value worksheet for the business settings

TRADEOFFS:
- A save rewrites every collection regardless of how little changed: one
  read for the current row counts, then one batch write
- Rows left over from a longer previous save are blanked by padding the
  write, so a failed write leaves the previous data in place
"""

import asyncio
import json
from typing import Optional

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from tailorbook.config import get_settings
from tailorbook.config.settings import GoogleSheetsSettings
from tailorbook.models.entities import (
    COLLECTION_KEYS,
    BusinessSettings,
    StateSnapshot,
)
from tailorbook.services.storage.interface import (
    BusinessSettingsStorageInterface,
    StateStorageInterface,
    StorageConnectionError,
    StorageError,
    preserve_password_hashes,
    snapshot_from_documents,
)


logger = structlog.get_logger(__name__)

# Column layout shared by every collection worksheet
RECORD_COLUMNS = ["id", "data"]

SETTINGS_COLUMNS = ["key", "value"]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for connecting.
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
                raise StorageConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise StorageConnectionError(f"Failed to connect to Google Sheets: {e}")

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
                raise StorageConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_or_create_sheet(self, title: str, headers: list[str], rows: int = 1000) -> gspread.Worksheet:
        """Get a worksheet by title, creating it with a header row if missing."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(headers),
            )
            sheet.append_row(headers)
        return sheet

    def collection_sheet(self, collection: str) -> gspread.Worksheet:
        return self.get_or_create_sheet(
            self._settings.sheet_name_for(collection),
            RECORD_COLUMNS,
        )

    def settings_sheet(self) -> gspread.Worksheet:
        return self.get_or_create_sheet(
            self._settings.settings_sheet_name,
            SETTINGS_COLUMNS,
            rows=50,
        )


def _data_range(title: str) -> str:
    # Everything below the header row
    return f"'{title}'!A2:B"


def _row_to_document(row: list) -> Optional[dict]:
    """Decode an id | data row. Returns None for blank or unreadable rows."""
    if not row or not row[0]:
        return None
    record_id = row[0]
    raw = row[1] if len(row) > 1 else ""
    try:
        document = json.loads(raw) if raw else {}
    except json.JSONDecodeError:
        logger.warning("sheet_row_unreadable", record_id=record_id)
        return None
    if not isinstance(document, dict):
        document = {}
    document.setdefault("id", record_id)
    return document


def _document_to_row(document: dict) -> Optional[list]:
    record_id = document.get("id")
    if record_id is None or record_id == "":
        return None
    return [str(record_id), json.dumps(document, ensure_ascii=False)]


class GoogleSheetsStateStorage(StateStorageInterface):
    """
    Google Sheets implementation of whole-state storage.

    Each save rewrites every collection worksheet in a single batch
    update, padded with blank rows over whatever the last save left.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _titles(self) -> dict[str, str]:
        settings = self._client.settings
        return {name: settings.sheet_name_for(name) for name in COLLECTION_KEYS}

    def _read_rows(self) -> dict[str, list[list]]:
        titles = self._titles()
        for name in titles:
            self._client.collection_sheet(name)

        spreadsheet = self._client.get_spreadsheet()
        response = spreadsheet.values_batch_get(
            [_data_range(title) for title in titles.values()]
        )
        value_ranges = response.get("valueRanges", [])

        rows = {name: [] for name in titles}
        for name, value_range in zip(titles, value_ranges):
            rows[name] = value_range.get("values", [])
        return rows

    def _read_all(self) -> dict[str, list[dict]]:
        payload = {}
        for name, rows in self._read_rows().items():
            documents = []
            for row in rows:
                document = _row_to_document(row)
                if document is not None:
                    documents.append(document)
            payload[COLLECTION_KEYS[name]] = documents
        return payload

    def _write_all(self, snapshot: StateSnapshot) -> None:
        titles = self._titles()
        existing = self._read_rows()

        hashes = {}
        for row in existing["users"]:
            document = _row_to_document(row)
            if document and document.get("passwordHash"):
                hashes[str(document["id"])] = document["passwordHash"]

        payload = snapshot.to_payload()
        payload["users"] = preserve_password_hashes(payload["users"], hashes)

        data = []
        for name, title in titles.items():
            rows = []
            for document in payload[COLLECTION_KEYS[name]]:
                row = _document_to_row(document)
                if row is None:
                    logger.warning("record_without_id_not_saved", collection=name)
                    continue
                rows.append(row)
            # Blank out rows a longer previous save left behind
            rows.extend([["", ""]] * (len(existing[name]) - len(rows)))
            if rows:
                data.append({"range": _data_range(title), "values": rows})

        if data:
            self._client.get_spreadsheet().values_batch_update({
                "valueInputOption": "RAW",
                "data": data,
            })

    async def load_all(self) -> StateSnapshot:
        """Load every collection worksheet."""
        try:
            payload = await asyncio.to_thread(self._read_all)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to load state: {e}")
        return snapshot_from_documents(payload)

    async def save_all(self, snapshot: StateSnapshot) -> bool:
        """Rewrite every collection worksheet from the snapshot."""
        try:
            await asyncio.to_thread(self._write_all, snapshot)
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save state: {e}")


class GoogleSheetsBusinessSettingsStorage(BusinessSettingsStorageInterface):
    """Business settings as key/value rows in their own worksheet."""

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        default_business_name: Optional[str] = None,
    ):
        self._client = client or GoogleSheetsClient()
        self._default_name = default_business_name or get_settings().app.default_business_name

    def _read(self) -> dict:
        sheet = self._client.settings_sheet()
        values = {}
        for row in sheet.get_all_values()[1:]:
            if row and row[0]:
                values[row[0]] = row[1] if len(row) > 1 else ""
        return values

    def _write(self, settings: BusinessSettings) -> None:
        sheet = self._client.settings_sheet()
        rows = [
            [key, "" if value is None else str(value)]
            for key, value in settings.to_document().items()
        ]
        stored = len(sheet.get_all_values()[1:])
        rows.extend([["", ""]] * (stored - len(rows)))
        sheet.update(range_name=f"A2:B{len(rows) + 1}", values=rows)

    async def get(self) -> BusinessSettings:
        try:
            values = await asyncio.to_thread(self._read)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read business settings: {e}")
        values = {k: v for k, v in values.items() if v != ""}
        values.setdefault("businessName", self._default_name)
        return BusinessSettings.model_validate(values)

    async def set(self, settings: BusinessSettings) -> bool:
        try:
            await asyncio.to_thread(self._write, settings)
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save business settings: {e}")
