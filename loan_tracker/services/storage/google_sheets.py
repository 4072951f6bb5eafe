"""
Google Sheets Key-Value Backend

DESIGN DECISION: Google Sheets is offered as the networked backend because:
1. The owner can look at (and back up) the raw data in Sheets
2. No database setup required
3. The same store can be opened from more than one device

The worksheet holds one row per key:

    key | value (JSON document) | updated_at

TRADEOFFS:
- A cell holds at most 50,000 characters, so a single very long
  transaction list will not fit
- No transactions; the last write wins
- Every read fetches the whole worksheet (we filter in Python)
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import gspread
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from loan_tracker.config import GoogleSheetsSettings, get_settings
from loan_tracker.services.storage.interface import (
    KeyValueBackend,
    StorageConnectionError,
    StorageError,
)


STORE_COLUMNS = ["key", "value", "updated_at"]

# Google Sheets hard limit per cell
MAX_CELL_CHARS = 50_000


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication. A missing
        credentials file fails at once; other failures are retried.
        """
        if self._client is None:
            if not Path(self._settings.credentials_path).exists():
                raise StorageConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            self._client = self._authorize()

        return self._client

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _authorize(self) -> gspread.Client:
        try:
            scopes = [
                "https://www.googleapis.com/auth/spreadsheets",
                "https://www.googleapis.com/auth/drive",
            ]
            credentials = Credentials.from_service_account_file(
                self._settings.credentials_path,
                scopes=scopes,
            )
            return gspread.authorize(credentials)
        except FileNotFoundError:
            raise StorageConnectionError(
                f"Google credentials file not found: {self._settings.credentials_path}"
            )
        except Exception as e:
            raise StorageConnectionError(f"Failed to connect to Google Sheets: {e}")

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

    def get_store_sheet(self) -> gspread.Worksheet:
        """Get or create the key-value worksheet."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(self._settings.worksheet_name)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=self._settings.worksheet_name,
                rows=1000,
                cols=len(STORE_COLUMNS),
            )
            sheet.append_row(STORE_COLUMNS)
        return sheet


class GoogleSheetsBackend(KeyValueBackend):
    """
    Google Sheets implementation of the key-value backend.

    Accepts any object with a get_store_sheet() method, so tests can
    pass a fake client instead of talking to Google.
    """

    max_value_length = MAX_CELL_CHARS

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    # Transient API errors are retried; a failed connection is not,
    # because connect() has already retried it.

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_not_exception_type(StorageConnectionError),
        reraise=True,
    )
    def _fetch_rows(self) -> list[list[str]]:
        sheet = self._client.get_store_sheet()
        return sheet.get_all_values()[1:]

    def _rows(self) -> list[list[str]]:
        """All data rows (header excluded)."""
        try:
            return self._fetch_rows()
        except StorageConnectionError:
            raise
        except Exception as e:
            raise StorageConnectionError(f"Failed to read worksheet: {e}")

    @staticmethod
    def _find_row(rows: list[list[str]], key: str) -> Optional[int]:
        """1-based sheet row index of a key, header included."""
        for idx, row in enumerate(rows, start=2):  # Row 1 is the header
            if row and row[0] == key:
                return idx
        return None

    def get(self, key: str) -> Optional[str]:
        for row in self._rows():
            if row and row[0] == key:
                return row[1] if len(row) > 1 else ""
        return None

    def set(self, key: str, value: str) -> None:
        if len(value) > MAX_CELL_CHARS:
            raise StorageError(
                f"Value for {key} is {len(value)} characters; "
                f"a sheet cell holds at most {MAX_CELL_CHARS}"
            )
        try:
            self._write_row(key, value)
        except StorageConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to write {key}: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_not_exception_type(StorageConnectionError),
        reraise=True,
    )
    def _write_row(self, key: str, value: str) -> None:
        updated_at = datetime.now(timezone.utc).isoformat()
        sheet = self._client.get_store_sheet()
        idx = self._find_row(sheet.get_all_values()[1:], key)
        if idx is None:
            sheet.append_row([key, value, updated_at], value_input_option="RAW")
        else:
            sheet.update_cell(idx, 2, value)
            sheet.update_cell(idx, 3, updated_at)

    def delete(self, key: str) -> bool:
        try:
            return self._delete_row(key)
        except StorageConnectionError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete {key}: {e}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_not_exception_type(StorageConnectionError),
        reraise=True,
    )
    def _delete_row(self, key: str) -> bool:
        sheet = self._client.get_store_sheet()
        idx = self._find_row(sheet.get_all_values()[1:], key)
        if idx is None:
            return False
        sheet.delete_rows(idx)
        return True

    def keys(self) -> list[str]:
        return [row[0] for row in self._rows() if row and row[0]]
