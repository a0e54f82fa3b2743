# catalog/config.py
"""Runtime settings (environment / .env) and the deck theme (YAML)."""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()

BASE = os.path.dirname(os.path.dirname(__file__))


def _env_float(name: str) -> Optional[float]:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


class Settings(BaseModel):
    source: str = "workbook"                      # "workbook" | "sheets"
    workbook_path: str = os.path.join(BASE, "assets", "products.xlsx")
    sheet_id: Optional[str] = None
    sheets_api_key: Optional[str] = None
    sheet_range: str = "Products!A1:ZZ"
    asset_proxy_url: Optional[str] = None
    fetch_timeout: Optional[float] = None         # None = transport default
    export_max_concurrency: int = Field(1, ge=1, le=16)
    pdf_preview_max_width: int = Field(1200, ge=64, le=4000)
    theme_path: str = os.path.join(BASE, "config", "deck.yaml")
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        return cls(
            source=(os.getenv("CATALOG_SOURCE") or defaults.source).strip().lower(),
            workbook_path=os.getenv("CATALOG_WORKBOOK_PATH") or defaults.workbook_path,
            sheet_id=os.getenv("SHEET_ID") or None,
            sheets_api_key=os.getenv("SHEETS_API_KEY") or None,
            sheet_range=os.getenv("SHEET_RANGE") or defaults.sheet_range,
            asset_proxy_url=os.getenv("ASSET_PROXY_URL") or None,
            fetch_timeout=_env_float("FETCH_TIMEOUT"),
            export_max_concurrency=max(1, min(16, _env_int("EXPORT_MAX_CONCURRENCY", 1))),
            pdf_preview_max_width=max(64, min(4000, _env_int("PDF_PREVIEW_MAX_WIDTH", 1200))),
            theme_path=os.getenv("DECK_THEME_PATH") or defaults.theme_path,
            log_level=os.getenv("LOG_LEVEL") or defaults.log_level,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()


# --------------------------------------------------------------------
# Deck theme
# --------------------------------------------------------------------
class BrandColors(BaseModel):
    bg: str = "FFFFFF"
    text: str = "0F172A"
    muted: str = "666666"
    body: str = "344054"
    accent: str = "1E6BD7"
    faint: str = "F1F5F9"
    outline: str = "D0D7E2"
    bar: str = "24D3EE"
    bar_text: str = "0B3A33"


class DeckTheme(BaseModel):
    """Brand colours, fonts, labels and text budgets used by both backends."""

    colors: BrandColors = Field(default_factory=BrandColors)
    font_face: str = "Arial"                     # metric-compatible with Helvetica
    pdf_font: str = "Helvetica"
    pdf_font_bold: str = "Helvetica-Bold"
    # optional TrueType files registered under pdf_font / pdf_font_bold (needed for non-Latin names)
    pdf_font_file: Optional[str] = None
    pdf_font_bold_file: Optional[str] = None
    pdf_page_size: str = "A4-landscape"          # "A4-landscape" | "letter-landscape" | "16x9"
    default_title: str = "Project Selection"
    untitled_product: str = "Untitled Product"
    closing_title: str = "Thank you"
    image_unavailable: str = "Image unavailable"
    title_max_pt: float = 22
    title_min_pt: float = 12
    description_max_pt: float = 13
    description_min_pt: float = 8
    description_max_chars: int = 600
    bullet_pt: float = 11
    bullet_limit: int = 12
    code_pt: float = 14
    footer_pt: float = 11
    pdf_preview_fallback: bool = True


def _read_yaml(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_theme(path: Optional[str] = None) -> DeckTheme:
    """Load ``deck:`` from a theme YAML; missing file or keys fall back to defaults."""
    path = path or get_settings().theme_path
    if not path or not os.path.exists(path):
        return DeckTheme()
    data = _read_yaml(path).get("deck", {}) or {}
    return DeckTheme(**data)
