"""Google Sheets backed tables (service-account based).

All network calls for the recipients table and the folder reference table
live here. Every request is a single bounded call with `num_retries=2`.
"""

import json
import os
from typing import Any, Dict, List, Optional, Sequence

from .config import GOOGLE_HTTP_TIMEOUT_SECONDS, GOOGLE_SA_FILE, SPREADSHEET_ID, TABLE_HEADERS
from .table import ExternalTable, ReferenceTable, TableAccessError

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]


def _col_to_a1(col_index_zero_based: int) -> str:
    """Convert 0-based column index to A1 column letters (0->A, 25->Z, 26->AA)."""

    if col_index_zero_based < 0:
        raise ValueError("col_index_zero_based must be >= 0")

    result = ""
    n = col_index_zero_based
    while True:
        n, rem = divmod(n, 26)
        result = chr(ord("A") + rem) + result
        if n == 0:
            break
        n -= 1

    return result


class SheetsClient:
    """Lazily built Sheets v4 service bound to one spreadsheet."""

    def __init__(self, *, spreadsheet_id: str, service_account_path: str,
                 timeout_seconds: int = 30, service: Any = None) -> None:
        self._spreadsheet_id = spreadsheet_id
        self._service_account_path = os.path.expanduser(service_account_path)
        self._timeout_seconds = timeout_seconds
        self._service = service

    @classmethod
    def from_env(cls) -> "SheetsClient":
        if not SPREADSHEET_ID:
            raise ValueError("Missing SPREADSHEET_ID")
        return cls(
            spreadsheet_id=SPREADSHEET_ID,
            service_account_path=GOOGLE_SA_FILE,
            timeout_seconds=GOOGLE_HTTP_TIMEOUT_SECONDS,
        )

    @property
    def spreadsheet_id(self) -> str:
        return self._spreadsheet_id

    def service(self) -> Any:
        if self._service is None:
            self._service = self._build_sheets_service()
        return self._service

    def _build_sheets_service(self) -> Any:
        # Lazy import so the in-memory backends do not need Google client libs.
        import google_auth_httplib2
        import httplib2
        from google.oauth2 import service_account
        from googleapiclient.discovery import build

        if not os.path.exists(self._service_account_path):
            raise FileNotFoundError(
                f"Service account file not found: {self._service_account_path}"
            )

        with open(self._service_account_path, "r", encoding="utf-8") as f:
            sa = json.load(f)
        creds = service_account.Credentials.from_service_account_info(sa, scopes=SCOPES)
        http = google_auth_httplib2.AuthorizedHttp(
            creds, http=httplib2.Http(timeout=self._timeout_seconds)
        )

        return build("sheets", "v4", http=http, cache_discovery=False)

    def execute(self, request: Any, action: str) -> Dict[str, Any]:
        try:
            return request.execute(num_retries=2)
        except Exception as e:
            raise TableAccessError(f"Sheets {action} failed: {e}") from e

    def sheet_id(self, title: str) -> Optional[int]:
        meta = self.execute(
            self.service().spreadsheets().get(
                spreadsheetId=self._spreadsheet_id,
                fields="sheets(properties(sheetId,title))",
            ),
            "metadata read",
        )
        for sheet in meta.get("sheets", []):
            props = sheet.get("properties", {})
            if props.get("title") == title:
                return props.get("sheetId")
        return None

    def fetch_rows(self, a1_range: str) -> List[List[str]]:
        resp = self.execute(
            self.service().spreadsheets().values().get(
                spreadsheetId=self._spreadsheet_id, range=a1_range
            ),
            "values read",
        )
        rows = resp.get("values", [])
        return rows if isinstance(rows, list) else []

    def update_values(self, a1_range: str, values: List[List[Any]]) -> Dict[str, Any]:
        return self.execute(
            self.service().spreadsheets().values().update(
                spreadsheetId=self._spreadsheet_id,
                range=a1_range,
                valueInputOption="RAW",
                body={"values": values},
            ),
            "values update",
        )

    def batch_update(self, requests: List[Dict[str, Any]]) -> Dict[str, Any]:
        return self.execute(
            self.service().spreadsheets().batchUpdate(
                spreadsheetId=self._spreadsheet_id, body={"requests": requests}
            ),
            "batch update",
        )


class GoogleSheetsTable(ExternalTable):
    """Recipients table stored as one sheet of a spreadsheet."""

    def __init__(self, client: SheetsClient, sheet_name: str = "Recipients") -> None:
        self.client = client
        self.name = sheet_name

    @classmethod
    def from_env(cls, sheet_name: str = "Recipients") -> "GoogleSheetsTable":
        return cls(SheetsClient.from_env(), sheet_name=sheet_name)

    def _range(self, a1: str) -> str:
        return f"'{self.name}'!{a1}"

    def exists(self) -> bool:
        return self.client.sheet_id(self.name) is not None

    def read_all(self) -> List[List[Any]]:
        return self.client.fetch_rows(self._range("A:B"))

    def create(self, rows: Sequence[Sequence[str]], note: Optional[str] = None) -> None:
        reply = self.client.batch_update([
            {"addSheet": {"properties": {"title": self.name, "gridProperties": {"frozenRowCount": 1}}}}
        ])
        sheet_id = reply["replies"][0]["addSheet"]["properties"]["sheetId"]

        values = [list(TABLE_HEADERS)] + [list(r) for r in rows]
        self.client.update_values(self._range(f"A1:B{len(values)}"), values)

        formatting = [{
            "repeatCell": {
                "range": {"sheetId": sheet_id, "startRowIndex": 0, "endRowIndex": 1,
                          "startColumnIndex": 0, "endColumnIndex": len(TABLE_HEADERS)},
                "cell": {"userEnteredFormat": {
                    "textFormat": {"bold": True},
                    "backgroundColor": {"red": 0.91, "green": 0.94, "blue": 1.0},
                }},
                "fields": "userEnteredFormat(textFormat,backgroundColor)",
            }
        }, {
            "autoResizeDimensions": {
                "dimensions": {"sheetId": sheet_id, "dimension": "COLUMNS",
                               "startIndex": 0, "endIndex": len(TABLE_HEADERS)}
            }
        }]
        if note:
            formatting.append({
                "updateCells": {
                    "range": {"sheetId": sheet_id, "startRowIndex": 0, "endRowIndex": 1,
                              "startColumnIndex": 0, "endColumnIndex": 1},
                    "rows": [{"values": [{"note": note}]}],
                    "fields": "note",
                }
            })
        self.client.batch_update(formatting)

    def delete(self) -> None:
        sheet_id = self.client.sheet_id(self.name)
        if sheet_id is None:
            return
        self.client.batch_update([{"deleteSheet": {"sheetId": sheet_id}}])

    def write_cell(self, row: int, column: int, value: str) -> None:
        self.client.update_values(self._range(f"{_col_to_a1(column - 1)}{row}"), [[value]])


class GoogleSheetsReferenceTable(ReferenceTable):
    """Two-column [campus, folderId] sheet, read-only."""

    def __init__(self, client: SheetsClient, sheet_name: str = "CampusReferenceInfo") -> None:
        self.client = client
        self.name = sheet_name

    @classmethod
    def from_env(cls, sheet_name: str = "CampusReferenceInfo") -> "GoogleSheetsReferenceTable":
        return cls(SheetsClient.from_env(), sheet_name=sheet_name)

    def read_folder_references(self) -> Dict[str, str]:
        if self.client.sheet_id(self.name) is None:
            raise TableAccessError(f"Sheet '{self.name}' does not exist")

        references: Dict[str, str] = {}
        for row in self.client.fetch_rows(f"'{self.name}'!A:B")[1:]:
            campus = str(row[0]).strip().lower() if len(row) > 0 and row[0] is not None else ""
            folder_id = str(row[1]).strip() if len(row) > 1 and row[1] is not None else ""
            if campus and folder_id:
                references[campus] = folder_id
        return references
