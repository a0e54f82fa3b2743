# web/routes_scrape.py
"""Product page import; the record has the same shape as a sheet row."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from catalog.assets import is_http_url
from catalog.config import Settings, get_settings
from catalog.logging_config import get_logger
from catalog.scraper import ScrapeError, scrape_page

log = get_logger("routes.scrape")

router = APIRouter(prefix="/api", tags=["scrape"])


@router.get("/scrape", summary="Scrape a product page into a catalog record")
async def scrape(
    url: Optional[str] = Query(None, description="Product page URL"),
    settings: Settings = Depends(get_settings),
):
    target = (url or "").strip()
    if not target:
        return JSONResponse(status_code=400, content={"error": "Missing url"})
    if not is_http_url(target):
        return JSONResponse(status_code=400, content={"error": "Invalid url"})

    try:
        record = await run_in_threadpool(scrape_page, target, None, settings.fetch_timeout)
    except ScrapeError as e:
        log.warning("scrape failed for %s: %s", target, e)
        return JSONResponse(status_code=502, content={"error": str(e)})
    except Exception:
        log.exception("scrape crashed for %s", target)
        return JSONResponse(status_code=502, content={"error": "Scrape failed"})

    return record
