# catalog/sources.py
"""
Row sources: the packaged workbook (openpyxl) or a Google Sheets range
(values API over requests). Both yield header-keyed dicts; any read failure
surfaces as ``SourceUnavailable``.
"""
from __future__ import annotations

import os
import zipfile
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote

import requests
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from catalog.config import Settings
from catalog.errors import SourceUnavailable
from catalog.logging_config import get_logger
from catalog.normalizer import norm_key, rows_from_grid

log = get_logger("sources")

SHEETS_VALUES_URL = "https://sheets.googleapis.com/v4/spreadsheets/{sheet_id}/values/{range}"
HEADER_SCAN_ROWS = 50


def find_header_row(grid: Sequence[Sequence[Any]]) -> int:
    """Index of the first row (within the first 50) holding a "name" header, else 0."""
    for i, row in enumerate(grid[:HEADER_SCAN_ROWS]):
        if any(norm_key(c) == "name" for c in (row or [])):
            return i
    return 0


def grid_to_rows(grid: Sequence[Sequence[Any]]) -> List[Dict[str, Any]]:
    return rows_from_grid(list(grid[find_header_row(grid):]))


class WorkbookRowSource:
    """Rows from a local .xlsx; the "Products" sheet when present, else the first one.

    Formulas are read as written so =IMAGE(...) cells keep their URL.
    """

    def __init__(self, path: str, sheet: Optional[str] = None):
        self.path = path
        self.sheet = sheet

    def __repr__(self) -> str:
        return f"WorkbookRowSource({self.path!r})"

    def _pick_sheet(self, wb, name: Optional[str]):
        if name:
            for ws in wb.worksheets:
                if ws.title.lower() == name.lower():
                    return ws
            raise SourceUnavailable(f'Sheet "{name}" not found in {os.path.basename(self.path)}')
        for ws in wb.worksheets:
            if ws.title.lower() == "products":
                return ws
        return wb.worksheets[0]

    def fetch_rows(self) -> List[Dict[str, Any]]:
        if not os.path.exists(self.path):
            raise SourceUnavailable(f"Workbook not found: {self.path}")
        try:
            wb = load_workbook(self.path, read_only=True, data_only=False)
        except (InvalidFileException, zipfile.BadZipFile, OSError, KeyError, ValueError) as e:
            raise SourceUnavailable(f"Could not open workbook {self.path}: {e}") from e
        try:
            ws = self._pick_sheet(wb, self.sheet)
            grid = [list(r) for r in ws.iter_rows(values_only=True)]
        finally:
            wb.close()
        rows = grid_to_rows(grid)
        log.info("workbook %s: %d rows", os.path.basename(self.path), len(rows))
        return rows


class SheetsRowSource:
    """Rows from the Google Sheets values API (API-key access to a shared sheet)."""

    def __init__(
        self,
        sheet_id: str,
        api_key: str,
        sheet_range: str = "Products!A1:ZZ",
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
    ):
        self.sheet_id = sheet_id
        self.api_key = api_key
        self.sheet_range = sheet_range
        self.session = session or requests.Session()
        self.timeout = timeout

    def __repr__(self) -> str:
        return f"SheetsRowSource({self.sheet_id!r}, {self.sheet_range!r})"

    def fetch_rows(self) -> List[Dict[str, Any]]:
        url = SHEETS_VALUES_URL.format(sheet_id=self.sheet_id, range=quote(self.sheet_range, safe=""))
        params = {"key": self.api_key, "valueRenderOption": "FORMULA"}
        try:
            resp = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise SourceUnavailable(f"Sheets request failed: {e}") from e
        if resp.status_code != 200:
            raise SourceUnavailable(f"Sheets API answered {resp.status_code}: {resp.text[:200]}")
        try:
            values = resp.json().get("values") or []
        except ValueError as e:
            raise SourceUnavailable(f"Sheets API returned invalid JSON: {e}") from e
        rows = grid_to_rows(values)
        log.info("sheet %s: %d rows", self.sheet_id, len(rows))
        return rows


def make_row_source(settings: Settings):
    if settings.source == "sheets":
        if not settings.sheet_id or not settings.sheets_api_key:
            raise SourceUnavailable("CATALOG_SOURCE=sheets requires SHEET_ID and SHEETS_API_KEY")
        return SheetsRowSource(
            settings.sheet_id,
            settings.sheets_api_key,
            settings.sheet_range,
            timeout=settings.fetch_timeout,
        )
    return WorkbookRowSource(settings.workbook_path)
