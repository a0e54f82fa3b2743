# catalog/errors.py
"""Exceptions raised across the catalog and export pipeline."""

from __future__ import annotations

from typing import List, Optional


class CatalogError(Exception):
    """Base class for catalog/export failures that callers are expected to handle."""


class SourceUnavailable(CatalogError):
    """The row source (workbook or spreadsheet service) could not be read."""


class ExportError(CatalogError):
    """Fatal export failure; no file is produced."""

    def __init__(self, message: str, issues: Optional[List[str]] = None):
        self.issues = [str(i).strip() for i in (issues or []) if str(i).strip()]
        super().__init__(self._format(message))

    def _format(self, message: str) -> str:
        if not self.issues:
            return message
        lines = [message]
        for issue in self.issues:
            lines.append(f"- {issue}")
        return "\n".join(lines)


class NoProductsSelected(ExportError):
    """Raised when an export is requested with an empty selection."""

    def __init__(self):
        super().__init__("No products selected for export")
