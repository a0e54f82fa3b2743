# deck/routes_export.py
# -*- coding: utf-8 -*-
"""
Deck export routes for FastAPI.

- StreamingResponse for binary download (no response_model).
- Visual fetches and python-pptx/reportlab work stay off the event loop.
- Filenames come from the project name (``derive_filename``).
"""

from __future__ import annotations

import io
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from starlette.responses import StreamingResponse

from catalog.assets import AssetResolver
from catalog.config import Settings, get_settings, load_theme
from catalog.errors import ExportError, NoProductsSelected
from catalog.logging_config import get_logger
from deck.exporter import FORMATS, DeckExporter
from deck.schemas import ExportRequest

log = get_logger("routes.export")

router = APIRouter(prefix="/api/export", tags=["export"])

MAX_PAYLOAD_BYTES = 5 * 1024 * 1024


def _error(status: int, message: str, issues: Optional[list] = None) -> JSONResponse:
    body = {"error": message}
    if issues:
        body["issues"] = issues
    return JSONResponse(status_code=status, content=body)


def get_exporter(request: Request, settings: Settings = Depends(get_settings)) -> DeckExporter:
    """Exporter wired to the configured proxy, or to this app's own /api/file-proxy."""
    proxy = settings.asset_proxy_url or str(request.url_for("file_proxy"))
    resolver = AssetResolver(
        proxy_url=proxy,
        timeout=settings.fetch_timeout,
        pdf_max_width=settings.pdf_preview_max_width,
    )
    return DeckExporter(
        resolver,
        theme=load_theme(settings.theme_path),
        max_concurrency=settings.export_max_concurrency,
    )


@router.post(
    "/{fmt}",
    response_class=StreamingResponse,
    summary="Export the selected products as a PPTX or PDF deck",
    description=(
        "Builds cover, one slide per product and a closing slide. Products that "
        "fail to render are skipped and listed in the X-Skipped-Products header."
    ),
)
async def export_deck(fmt: str, req: ExportRequest, exporter: DeckExporter = Depends(get_exporter)):
    fmt = fmt.lower()
    if fmt not in FORMATS:
        return _error(404, f"Unknown export format '{fmt}'")
    if req.approx_size_bytes and req.approx_size_bytes > MAX_PAYLOAD_BYTES:
        return _error(413, "Payload too large for export")
    if not req.has_selection():
        return _error(400, str(NoProductsSelected()))

    try:
        if req.sections:
            result = await exporter.export_sections(req.sections, req.client, fmt)
        else:
            result = await exporter.export(req.products, req.client, fmt)
    except NoProductsSelected as e:
        return _error(400, str(e))
    except ExportError as e:
        log.error("export failed: %s", e)
        return _error(500, "Export failed", e.issues or [str(e)])

    headers = {
        "Content-Disposition": f'attachment; filename="{result.filename}"',
        "Cache-Control": "no-store",
        "X-Slide-Count": str(result.slide_count),
    }
    if result.skipped:
        headers["X-Skipped-Products"] = ",".join(quote(pid, safe="") for pid in result.skipped)
    return StreamingResponse(io.BytesIO(result.data), media_type=result.media_type, headers=headers)
