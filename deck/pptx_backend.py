# deck/pptx_backend.py
# -*- coding: utf-8 -*-
"""
python-pptx backend: draws SlidePlans onto a 16:9 (10 x 5.625 in) deck.

All geometry and text fitting is already done by ``deck.slides``; this module
only maps elements to shapes.
"""
from __future__ import annotations

import io
from typing import Optional

from pptx import Presentation
from pptx.dml.color import RGBColor
from pptx.enum.shapes import MSO_SHAPE
from pptx.enum.text import MSO_ANCHOR, MSO_AUTO_SIZE, PP_ALIGN
from pptx.util import Emu, Inches, Pt

from catalog.config import DeckTheme
from deck.slides import ImageElement, ShapeElement, SlidePlan, TextElement

PPTX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.presentationml.presentation"
BLANK_LAYOUT = 6


def _rgb(hex_color: str) -> RGBColor:
    return RGBColor.from_string(hex_color.lstrip("#").upper())


def _style_run(run, size_pt: float, font: str, color: str, bold: bool = False, underline: bool = False):
    run.font.size = Pt(size_pt)
    run.font.name = font
    run.font.bold = bold
    run.font.underline = underline
    run.font.color.rgb = _rgb(color)


class PptxBackend:
    extension = "pptx"
    media_type = PPTX_MEDIA_TYPE

    def __init__(self, theme: DeckTheme, title: Optional[str] = None):
        self.theme = theme
        self.width = 10.0
        self.height = 5.625
        self.prs = Presentation()
        self.prs.slide_width = Inches(self.width)
        self.prs.slide_height = Inches(self.height)
        if title:
            self.prs.core_properties.title = title

    @property
    def slide_count(self) -> int:
        return len(self.prs.slides)

    # ---------------- drawing ----------------
    def add_slide(self, plan: SlidePlan) -> None:
        slide = self.prs.slides.add_slide(self.prs.slide_layouts[BLANK_LAYOUT])
        try:
            fill = slide.background.fill
            fill.solid()
            fill.fore_color.rgb = _rgb(plan.background)
            for el in plan.elements:
                if isinstance(el, ShapeElement):
                    self._shape(slide, el)
                elif isinstance(el, ImageElement):
                    self._image(slide, el)
                elif isinstance(el, TextElement):
                    self._text(slide, el)
        except Exception:
            self.discard_last_slide()
            raise

    def _shape(self, slide, el: ShapeElement) -> None:
        kind = MSO_SHAPE.ROUNDED_RECTANGLE if el.rounded else MSO_SHAPE.RECTANGLE
        b = el.box
        shape = slide.shapes.add_shape(kind, Inches(b.x), Inches(b.y), Inches(b.w), Inches(b.h))
        shape.fill.solid()
        shape.fill.fore_color.rgb = _rgb(el.fill)
        if el.line:
            shape.line.color.rgb = _rgb(el.line)
            shape.line.width = Pt(1)
        else:
            shape.line.fill.background()
        shape.shadow.inherit = False

    def _image(self, slide, el: ImageElement) -> None:
        b = el.box
        slide.shapes.add_picture(
            io.BytesIO(el.image.data), Inches(b.x), Inches(b.y), Inches(b.w), Inches(b.h)
        )

    def _text(self, slide, el: TextElement) -> None:
        if not el.lines:
            return
        b = el.box
        tb = slide.shapes.add_textbox(Inches(b.x), Inches(b.y), Inches(b.w), Inches(b.h))
        tf = tb.text_frame
        tf.word_wrap = True
        tf.auto_size = MSO_AUTO_SIZE.NONE
        tf.margin_left = tf.margin_right = tf.margin_top = tf.margin_bottom = Emu(0)
        tf.vertical_anchor = MSO_ANCHOR.MIDDLE if el.align == "center" else MSO_ANCHOR.TOP
        for i, line in enumerate(el.lines):
            p = tf.paragraphs[0] if i == 0 else tf.add_paragraph()
            p.alignment = PP_ALIGN.CENTER if el.align == "center" else PP_ALIGN.LEFT
            run = p.add_run()
            run.text = line
            _style_run(run, el.font_size, self.theme.font_face, el.color, el.bold, el.underline)
            if el.link:
                run.hyperlink.address = el.link

    def discard_last_slide(self) -> None:
        """Drop the most recently added slide (used when a slide fails half-way)."""
        sld_ids = self.prs.slides._sldIdLst
        if not len(sld_ids):
            return
        last = sld_ids[-1]
        self.prs.part.drop_rel(last.rId)
        sld_ids.remove(last)

    # ---------------- output ----------------
    def save(self) -> bytes:
        out = io.BytesIO()
        self.prs.save(out)
        return out.getvalue()
