# deck/exporter.py
# -*- coding: utf-8 -*-
"""
Export state machine: Init -> Cover -> Per-product -> Closing -> Finalize.

- Visuals for every product are resolved first (bounded concurrency, input order kept)
- Slides are then planned and drawn in order in the worker thread pool
- A product that fails is logged and skipped; the rest of the deck still builds
- No products, or a failure while serialising, is fatal (no file is produced)
"""
from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union

from starlette.concurrency import run_in_threadpool

from catalog.assets import AssetResolver, ResolvedImage
from catalog.config import DeckTheme, load_theme
from catalog.errors import ExportError, NoProductsSelected
from catalog.layout import register_theme_fonts, text_measure
from catalog.logging_config import get_logger
from catalog.models import ClientInfo, Product, Section
from catalog.normalizer import normalize
from deck.pdf_backend import PdfBackend
from deck.pptx_backend import PptxBackend
from deck.slides import plan_closing, plan_cover, plan_product

log = get_logger("export")

FORMATS = ("pptx", "pdf")

ProductLike = Union[Product, Mapping[str, Any]]


@dataclass
class ExportResult:
    filename: str
    media_type: str
    data: bytes
    slide_count: int
    skipped: List[str] = field(default_factory=list)


# ----------------------------- Helpers -----------------------------
_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def derive_filename(project_name: Optional[str], ext: str) -> str:
    """"Smith & Co. (2024)" -> "smith-co-2024.<ext>"; empty names become "selection"."""
    base = _NON_ALNUM.sub("-", (project_name or "").lower()).strip("-") or "selection"
    return f"{base}.{ext.lstrip('.')}"


def make_backend(fmt: str, theme: DeckTheme, title: Optional[str] = None):
    fmt = (fmt or "").lower()
    if fmt == "pptx":
        return PptxBackend(theme, title=title)
    if fmt == "pdf":
        return PdfBackend(theme, title=title)
    raise ValueError(f"Unsupported export format: {fmt!r}")


def _as_product(item: ProductLike, index: int) -> Product:
    if isinstance(item, Product):
        return item
    return normalize(item or {}, row_index=index)


# ----------------------------- Exporter -----------------------------
class DeckExporter:
    def __init__(
        self,
        resolver: AssetResolver,
        theme: Optional[DeckTheme] = None,
        max_concurrency: int = 1,
        include_pdf_preview: bool = True,
    ):
        self.resolver = resolver
        self.theme = register_theme_fonts(theme or load_theme())
        self.max_concurrency = max(1, int(max_concurrency or 1))
        self.include_pdf_preview = include_pdf_preview and self.theme.pdf_preview_fallback

    # ---------------- visuals ----------------
    async def resolve_visual(self, product: Product) -> Optional[ResolvedImage]:
        """Product image, then the first gallery image, then page 1 of the spec PDF."""
        base = product.source_url
        candidates = [product.image] + [g for g in product.gallery[:1] if g != product.image]
        for url in candidates:
            if not url:
                continue
            img = await self.resolver.resolve_image(url, base)
            if img is not None:
                return img
        if self.include_pdf_preview and product.document_url:
            return await self.resolver.resolve_pdf_preview(product.document_url, base)
        return None

    async def _resolve_all(self, products: Sequence[Product]) -> List[Optional[ResolvedImage]]:
        sem = asyncio.Semaphore(self.max_concurrency)

        async def one(p: Product) -> Optional[ResolvedImage]:
            async with sem:
                try:
                    return await self.resolve_visual(p)
                except Exception:
                    log.exception("visual resolution crashed for %s", p.id)
                    return None

        # gather keeps input order regardless of completion order
        return list(await asyncio.gather(*(one(p) for p in products)))

    # ---------------- rendering (blocking) ----------------
    def _render(
        self,
        fmt: str,
        client: ClientInfo,
        items: Sequence[Tuple[Product, Optional[ResolvedImage], Optional[str]]],
    ) -> ExportResult:
        theme = self.theme
        title = (client.project_name or "").strip() or theme.default_title
        backend = make_backend(fmt, theme, title=title)
        measure = text_measure(theme.pdf_font)
        bold = text_measure(theme.pdf_font_bold)
        w, h = backend.width, backend.height

        backend.add_slide(plan_cover(client, theme, w, h, measure, bold))

        skipped: List[str] = []
        for product, image, heading in items:
            try:
                plan = plan_product(product, image, theme, w, h, measure, heading=heading, bold_measure=bold)
                backend.add_slide(plan)
            except Exception:
                log.exception("skipping product %s: slide could not be built", product.id)
                skipped.append(product.id)

        backend.add_slide(plan_closing(client, theme, w, h, measure, bold))

        try:
            data = backend.save()
        except Exception as e:
            raise ExportError(f"Could not write the {fmt.upper()} file", [str(e)]) from e

        log.info("exported %s: %d slides, %d skipped", fmt, backend.slide_count, len(skipped))
        return ExportResult(
            filename=derive_filename(client.project_name, backend.extension),
            media_type=backend.media_type,
            data=data,
            slide_count=backend.slide_count,
            skipped=skipped,
        )

    # ---------------- public API ----------------
    async def export(
        self,
        products: Sequence[ProductLike],
        client: Optional[ClientInfo] = None,
        fmt: str = "pptx",
        section_titles: Optional[Sequence[Optional[str]]] = None,
    ) -> ExportResult:
        fmt = (fmt or "").lower()
        if fmt not in FORMATS:
            raise ValueError(f"Unsupported export format: {fmt!r}")
        if not products:
            raise NoProductsSelected()

        client = client or ClientInfo()
        normalized = [_as_product(p, i) for i, p in enumerate(products)]
        headings = list(section_titles or [])
        headings += [None] * (len(normalized) - len(headings))

        images = await self._resolve_all(normalized)
        items = list(zip(normalized, images, headings))
        return await run_in_threadpool(self._render, fmt, client, items)

    async def export_sections(
        self,
        sections: Sequence[Section],
        client: Optional[ClientInfo] = None,
        fmt: str = "pptx",
    ) -> ExportResult:
        """Flatten sections in order; each product title is prefixed with its section title."""
        products: List[ProductLike] = []
        titles: List[Optional[str]] = []
        for section in sections:
            for item in section.all_items():
                products.append(item)
                titles.append(section.title)
        return await self.export(products, client, fmt, section_titles=titles)
