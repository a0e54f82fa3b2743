# web/routes_proxy.py
# -*- coding: utf-8 -*-
"""
Same-origin file proxy for images/PDFs.

Usage: GET /api/file-proxy?url=https://example.com/whatever.jpg
The body is the upstream payload base64-encoded, marked with
``Content-Transfer-Encoding: base64``; the original Content-Type is kept.
"""

from __future__ import annotations

import base64
from typing import Optional

import requests
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool

from catalog.assets import fetch_upstream, is_http_url
from catalog.config import Settings, get_settings
from catalog.logging_config import get_logger

log = get_logger("routes.proxy")

router = APIRouter(prefix="/api", tags=["proxy"])

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, HEAD, OPTIONS",
    "Access-Control-Allow-Headers": "*",
}
CACHE_HEADER = "public, max-age=86400"


def _error(status: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status, content={"error": message}, headers=CORS_HEADERS)


@router.options("/file-proxy", include_in_schema=False)
def file_proxy_preflight() -> Response:
    return Response(status_code=204, headers={**CORS_HEADERS, "Access-Control-Max-Age": "86400"})


@router.api_route("/file-proxy", methods=["GET", "HEAD"], name="file_proxy", summary="Fetch a remote file")
async def file_proxy(
    url: Optional[str] = Query(None, description="Absolute http(s) URL to fetch"),
    settings: Settings = Depends(get_settings),
):
    target = (url or "").strip()
    if not target:
        return _error(400, "Missing ?url=")
    if not is_http_url(target):
        return _error(400, "Invalid URL")

    try:
        res = await run_in_threadpool(fetch_upstream, target, None, settings.fetch_timeout)
    except requests.RequestException as e:
        log.warning("proxy transport failure for %s: %s", target, e)
        return _error(502, f"Proxy error: {e}")

    if not res.ok:
        log.warning("proxy upstream %s for %s", res.status, target)
        return _error(res.status, f"Upstream error {res.status}")

    headers = {
        **CORS_HEADERS,
        "Cache-Control": CACHE_HEADER,
        "Content-Transfer-Encoding": "base64",
    }
    # the ASGI server drops the body for HEAD
    return Response(
        content=base64.b64encode(res.content),
        media_type=res.content_type,
        headers=headers,
    )
