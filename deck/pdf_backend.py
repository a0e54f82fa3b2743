# deck/pdf_backend.py
"""reportlab backend: one fixed-size page per SlidePlan."""
from __future__ import annotations

import io
from typing import Optional, Tuple

from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import A4, landscape, letter
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from catalog.config import DeckTheme
from catalog.layout import Box, line_height, text_measure
from deck.slides import ImageElement, ShapeElement, SlidePlan, TextElement

PDF_MEDIA_TYPE = "application/pdf"

PAGE_SIZES = {
    "a4-landscape": landscape(A4),
    "letter-landscape": landscape(letter),
    "16x9": (10 * 72.0, 5.625 * 72.0),
}


def page_size(name: str) -> Tuple[float, float]:
    return PAGE_SIZES.get((name or "").lower(), PAGE_SIZES["a4-landscape"])


def _color(hex_color: str):
    return HexColor("#" + hex_color.lstrip("#"))


class PdfBackend:
    extension = "pdf"
    media_type = PDF_MEDIA_TYPE

    def __init__(self, theme: DeckTheme, title: Optional[str] = None):
        self.theme = theme
        self.page_w, self.page_h = page_size(theme.pdf_page_size)
        self.width = self.page_w / 72.0
        self.height = self.page_h / 72.0
        self._buf = io.BytesIO()
        self._canvas = canvas.Canvas(self._buf, pagesize=(self.page_w, self.page_h))
        if title:
            self._canvas.setTitle(title)
        self._pages = 0

    @property
    def slide_count(self) -> int:
        return self._pages

    # layout boxes are top-left based, in inches
    def _rect(self, b: Box) -> Tuple[float, float, float, float]:
        return b.x * 72, self.page_h - (b.y + b.h) * 72, b.w * 72, b.h * 72

    # ---------------- drawing ----------------
    def add_slide(self, plan: SlidePlan) -> None:
        # a reportlab page cannot be taken back, so each slide is drawn on a
        # scratch canvas first; only a slide that draws cleanly reaches the deck
        self._draw(canvas.Canvas(io.BytesIO(), pagesize=(self.page_w, self.page_h)), plan)
        self._draw(self._canvas, plan)
        self._canvas.showPage()
        self._pages += 1

    def _draw(self, c: canvas.Canvas, plan: SlidePlan) -> None:
        c.setFillColor(_color(plan.background))
        c.rect(0, 0, self.page_w, self.page_h, stroke=0, fill=1)
        for el in plan.elements:
            if isinstance(el, ShapeElement):
                self._shape(c, el)
            elif isinstance(el, ImageElement):
                x, y, w, h = self._rect(el.box)
                c.drawImage(ImageReader(io.BytesIO(el.image.data)), x, y, width=w, height=h, mask="auto")
            elif isinstance(el, TextElement):
                self._text(c, el)

    def _shape(self, c: canvas.Canvas, el: ShapeElement) -> None:
        x, y, w, h = self._rect(el.box)
        c.setFillColor(_color(el.fill))
        stroke = 0
        if el.line:
            c.setStrokeColor(_color(el.line))
            c.setLineWidth(1)
            stroke = 1
        if el.rounded:
            c.roundRect(x, y, w, h, radius=8, stroke=stroke, fill=1)
        else:
            c.rect(x, y, w, h, stroke=stroke, fill=1)

    def _text(self, c: canvas.Canvas, el: TextElement) -> None:
        if not el.lines:
            return
        font = self.theme.pdf_font_bold if el.bold else self.theme.pdf_font
        measure = text_measure(font)
        lh = line_height(el.font_size)
        block_h = lh * len(el.lines)
        top = el.box.y
        if el.align == "center" and block_h < el.box.h:
            top += (el.box.h - block_h) / 2

        c.setFont(font, el.font_size)
        c.setFillColor(_color(el.color))
        for i, line in enumerate(el.lines):
            # baseline sits ~80% down the line box
            baseline = self.page_h - (top + i * lh + el.font_size * 0.95 / 72) * 72
            width_in = measure(line, el.font_size)
            x_in = el.box.x + (el.box.w - width_in) / 2 if el.align == "center" else el.box.x
            c.drawString(x_in * 72, baseline, line)
            if el.underline:
                c.setStrokeColor(_color(el.color))
                c.setLineWidth(0.6)
                c.line(x_in * 72, baseline - 1.5, (x_in + width_in) * 72, baseline - 1.5)
            if el.link:
                c.linkURL(el.link, (x_in * 72, baseline - 2, (x_in + width_in) * 72, baseline + el.font_size),
                          relative=0)

    # ---------------- output ----------------
    def save(self) -> bytes:
        self._canvas.save()
        return self._buf.getvalue()
