# catalog/assets.py
# -*- coding: utf-8 -*-
"""
Asset resolution for slide visuals.

- URLs are cleaned (quotes, protocol-relative, whitespace) and made absolute
  against the product's source page
- Fetches go through the same-origin file proxy (or straight upstream when the
  exporter runs server-side without one)
- Every payload is re-encoded to PNG so renderers only ever see one encoding
- PDFs are rasterised (first page only, bounded width) through the same path
- Nothing here raises for a bad asset: callers get ``None`` and draw a placeholder
"""
from __future__ import annotations

import base64
import io
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode, urljoin, urlparse

import fitz  # PyMuPDF
import requests
from PIL import Image, UnidentifiedImageError
from starlette.concurrency import run_in_threadpool

from catalog.logging_config import get_logger

log = get_logger("assets")

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120 Safari/537.36"
    ),
    "Accept": "image/avif,image/webp,image/apng,image/*,application/pdf,*/*;q=0.8",
}


# --------------------------------------------------------------------
# URL helpers
# --------------------------------------------------------------------
def normalize_url(raw: Optional[str]) -> Optional[str]:
    """Strip wrapping quotes, upgrade ``//host`` to https, percent-encode whitespace."""
    if raw is None:
        return None
    s = str(raw).strip().strip("\"'").strip()
    if not s:
        return None
    if s.startswith("//"):
        s = "https:" + s
    return "".join("%20" if ch.isspace() else ch for ch in s)


def absolutize(url: Optional[str], base: Optional[str] = None) -> Optional[str]:
    if not url:
        return None
    if urlparse(url).scheme:
        return url
    if base:
        try:
            return urljoin(base, url)
        except ValueError:
            return url
    return url


def is_http_url(url: Optional[str]) -> bool:
    try:
        return urlparse(url or "").scheme in ("http", "https")
    except ValueError:
        return False


# --------------------------------------------------------------------
# Upstream fetch (shared by the proxy route and direct resolution)
# --------------------------------------------------------------------
@dataclass
class FetchResult:
    status: int
    content: bytes = b""
    content_type: str = "application/octet-stream"
    reason: str = ""
    transfer_encoding: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def fetch_upstream(
    url: str,
    session: Optional[requests.Session] = None,
    timeout: Optional[float] = None,
) -> FetchResult:
    """GET ``url`` following redirects with browser-like headers. Transport errors propagate."""
    getter = session.get if session is not None else requests.get
    resp = getter(url, headers=BROWSER_HEADERS, allow_redirects=True, timeout=timeout)
    return FetchResult(
        status=resp.status_code,
        content=resp.content if 200 <= resp.status_code < 300 else b"",
        content_type=resp.headers.get("content-type") or "application/octet-stream",
        reason=getattr(resp, "reason", "") or "",
        transfer_encoding=resp.headers.get("content-transfer-encoding") or "",
    )


# --------------------------------------------------------------------
# Decoding
# --------------------------------------------------------------------
@dataclass(frozen=True)
class ResolvedImage:
    """PNG bytes plus pixel size; the only visual shape renderers accept."""
    data: bytes
    width: int
    height: int

    @property
    def data_url(self) -> str:
        return "data:image/png;base64," + base64.b64encode(self.data).decode("ascii")


def to_png(payload: bytes, max_width: Optional[int] = None) -> Optional[ResolvedImage]:
    """Decode any raster Pillow understands and re-encode it as PNG, optionally capped in width."""
    try:
        with Image.open(io.BytesIO(payload)) as img:
            img.load()
            has_alpha = img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info)
            frame = img.convert("RGBA" if has_alpha else "RGB")
            if max_width and frame.width > max_width:
                frame = frame.resize((max_width, max(1, round(frame.height * max_width / frame.width))))
            out = io.BytesIO()
            frame.save(out, format="PNG")
            return ResolvedImage(out.getvalue(), frame.width, frame.height)
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
        log.warning("image decode failed: %s", e)
        return None


def pdf_first_page_png(payload: bytes, max_width: int = 1200) -> Optional[ResolvedImage]:
    """Rasterise page 1 of a PDF no wider than ``max_width`` px."""
    try:
        with fitz.open(stream=payload, filetype="pdf") as doc:
            if doc.page_count < 1:
                return None
            page = doc.load_page(0)
            width_pt = page.rect.width or 1
            zoom = min(2.0, max_width / width_pt)
            pix = page.get_pixmap(matrix=fitz.Matrix(zoom, zoom), alpha=False)
            raster = pix.tobytes("png")
    except Exception as e:  # PyMuPDF raises several unrelated types for bad input
        log.warning("pdf render failed: %s", e)
        return None
    return to_png(raster, max_width)


def looks_like_pdf(payload: bytes, content_type: str = "") -> bool:
    return payload[:5] == b"%PDF-" or "pdf" in (content_type or "").lower()


# --------------------------------------------------------------------
# Resolver
# --------------------------------------------------------------------
class AssetResolver:
    """
    Resolve a product visual to PNG. ``proxy_url`` is the file-proxy endpoint
    (``GET <proxy>?url=<abs>``); without it, assets are fetched upstream directly.
    """

    def __init__(
        self,
        proxy_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
        pdf_max_width: int = 1200,
    ):
        self.proxy_url = proxy_url
        self.session = session or requests.Session()
        self.timeout = timeout
        self.pdf_max_width = pdf_max_width

    def proxied(self, url: str) -> str:
        if not self.proxy_url:
            return url
        sep = "&" if "?" in self.proxy_url else "?"
        return f"{self.proxy_url}{sep}{urlencode({'url': url})}"

    def prepare(self, raw_url: Optional[str], base_url: Optional[str] = None) -> Optional[str]:
        url = absolutize(normalize_url(raw_url), normalize_url(base_url))
        return url if is_http_url(url) else None

    # ---------------- blocking parts (run in the threadpool) ----------------
    def _fetch_sync(self, url: str) -> Optional[FetchResult]:
        target = self.proxied(url)
        try:
            res = fetch_upstream(target, session=self.session, timeout=self.timeout)
        except requests.RequestException as e:
            log.warning("asset fetch failed for %s: %s", url, e)
            return None
        if not res.ok:
            log.warning("asset unavailable (%s) for %s", res.status, url)
            return None
        if self.proxy_url and self._is_base64(res):
            try:
                res.content = base64.b64decode(res.content, validate=False)
            except (ValueError, TypeError) as e:
                log.warning("proxy returned a malformed base64 body for %s: %s", url, e)
                return None
        return res

    def _is_base64(self, res: FetchResult) -> bool:
        # the proxy marks its body; anything else is treated as raw bytes
        return res.transfer_encoding.strip().lower() == "base64"

    def _decode_sync(self, res: FetchResult, as_pdf: bool = False) -> Optional[ResolvedImage]:
        if as_pdf or looks_like_pdf(res.content, res.content_type):
            return pdf_first_page_png(res.content, self.pdf_max_width)
        return to_png(res.content)

    # ---------------- public coroutine API ----------------
    async def resolve_image(self, raw_url: Optional[str], base_url: Optional[str] = None) -> Optional[ResolvedImage]:
        url = self.prepare(raw_url, base_url)
        if not url:
            return None
        res = await run_in_threadpool(self._fetch_sync, url)
        if res is None:
            return None
        return await run_in_threadpool(self._decode_sync, res)

    async def resolve_pdf_preview(
        self, raw_url: Optional[str], base_url: Optional[str] = None
    ) -> Optional[ResolvedImage]:
        url = self.prepare(raw_url, base_url)
        if not url:
            return None
        res = await run_in_threadpool(self._fetch_sync, url)
        if res is None:
            return None
        return await run_in_threadpool(self._decode_sync, res, True)

    async def resolve(self, raw_url: Optional[str], base_url: Optional[str] = None) -> Optional[str]:
        """Data URL (``data:image/png;base64,...``) for the asset, or None when unavailable."""
        img = await self.resolve_image(raw_url, base_url)
        return img.data_url if img else None
