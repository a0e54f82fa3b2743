# deck/slides.py
"""
Renderer-neutral slide plans.

Both backends draw exactly these elements, so the PPTX and the PDF come out
the same; all field extraction, bullet selection and text fitting happens
here, once.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Union

from catalog.assets import ResolvedImage
from catalog.bullets import extract_bullets
from catalog.config import DeckTheme
from catalog.layout import (
    Box,
    Measure,
    closing_geometry,
    contain,
    cover_geometry,
    fit_bullets,
    fit_text,
    line_height,
    product_geometry,
    text_measure,
)
from catalog.models import ClientInfo, Product
from catalog.normalizer import clean_text


# --------------------------------------------------------------------
# Elements
# --------------------------------------------------------------------
@dataclass
class TextElement:
    box: Box
    lines: List[str]
    font_size: float
    color: str
    bold: bool = False
    align: str = "left"             # left | center
    link: Optional[str] = None
    underline: bool = False
    role: str = ""


@dataclass
class ImageElement:
    box: Box
    image: ResolvedImage
    role: str = "image"


@dataclass
class ShapeElement:
    box: Box
    fill: str
    line: Optional[str] = None
    rounded: bool = False
    role: str = ""


Element = Union[TextElement, ImageElement, ShapeElement]


@dataclass
class SlidePlan:
    kind: str                        # cover | product | closing
    background: str
    elements: List[Element] = field(default_factory=list)
    key: str = ""

    def texts(self) -> List[str]:
        return [ln for e in self.elements if isinstance(e, TextElement) for ln in e.lines]

    def by_role(self, role: str) -> List[Element]:
        return [e for e in self.elements if e.role == role]


def _fitted(text: str, box: Box, max_pt: float, min_pt: float, measure: Measure,
            bold_measure: Optional[Measure] = None, **kw) -> TextElement:
    # bold runs are wider; fit them with the metrics they are drawn with
    if kw.get("bold") and bold_measure is not None:
        measure = bold_measure
    fitted = fit_text(text, box, max_pt, min_pt, measure=measure)
    return TextElement(box=box, lines=fitted.lines, font_size=fitted.font_size, **kw)


def _format_date(date_iso: Optional[str]) -> Optional[str]:
    if not date_iso:
        return None
    try:
        return date.fromisoformat(date_iso.strip()[:10]).strftime("%d %B %Y").lstrip("0")
    except ValueError:
        return date_iso.strip() or None


# --------------------------------------------------------------------
# Planners
# --------------------------------------------------------------------
def plan_cover(client: ClientInfo, theme: DeckTheme, width: float, height: float, measure: Measure,
               bold_measure: Optional[Measure] = None) -> SlidePlan:
    bold_measure = bold_measure or text_measure(theme.pdf_font_bold)
    g = cover_geometry(width, height)
    c = theme.colors
    plan = SlidePlan(kind="cover", background=c.bg, key="cover")

    title = (client.project_name or "").strip() or theme.default_title
    plan.elements.append(_fitted(title, g.title, 40, 20, measure, bold_measure, color=c.text, bold=True,
                                 align="center", role="title"))

    sub = []
    if client.client_name:
        sub.append(f"Client: {client.client_name.strip()}")
    when = _format_date(client.date_iso)
    if when:
        sub.append(when)
    if sub:
        plan.elements.append(_fitted("  ·  ".join(sub), g.subtitle, 16, 10, measure, color=c.muted,
                                     align="center", role="subtitle"))

    contact = client.contact_lines()
    if contact:
        plan.elements.append(_contact_block(contact, g.contact, 13, measure, c.body))

    plan.elements.append(ShapeElement(box=g.footer_bar, fill=c.bar, line=c.bar, role="footer_bar"))
    return plan


def _contact_block(lines: List[str], box: Box, size: float, measure: Measure, color: str) -> TextElement:
    budget = max(1, int(box.h // line_height(size)))
    kept = [fit_text(ln, Box(box.x, box.y, box.w, line_height(size)), size, size, measure=measure).lines
            for ln in lines[:budget]]
    return TextElement(box=box, lines=[ln[0] for ln in kept if ln], font_size=size, color=color,
                       align="center", role="contact")


def plan_product(
    product: Product,
    image: Optional[ResolvedImage],
    theme: DeckTheme,
    width: float,
    height: float,
    measure: Measure,
    heading: Optional[str] = None,
    bold_measure: Optional[Measure] = None,
) -> SlidePlan:
    bold_measure = bold_measure or text_measure(theme.pdf_font_bold)
    g = product_geometry(width, height)
    c = theme.colors
    plan = SlidePlan(kind="product", background=c.bg, key=product.id)

    name = (product.name or "").strip() or theme.untitled_product
    title = f"{heading.strip()}  –  {name}" if heading and heading.strip() else name
    plan.elements.append(_fitted(title, g.title, theme.title_max_pt, theme.title_min_pt, measure, bold_measure,
                                 color=c.text, bold=True, align="center", role="title"))

    # image or placeholder
    if image is not None:
        plan.elements.append(ImageElement(box=contain(image.width, image.height, g.image), image=image))
    else:
        plan.elements.append(ShapeElement(box=g.image, fill=c.faint, line=c.outline, rounded=True,
                                          role="placeholder"))
        label_box = Box(g.image.x, g.image.y + g.image.h / 2 - 0.2, g.image.w, 0.4)
        plan.elements.append(TextElement(box=label_box, lines=[theme.image_unavailable], font_size=14,
                                         color=c.muted, align="center", role="placeholder_label"))

    code = product.label
    doc_url = product.document_url
    if code:
        plan.elements.append(_fitted(code, g.code, theme.code_pt, 9, measure, color=c.accent,
                                     link=doc_url, underline=bool(doc_url), role="code"))

    bullets = extract_bullets(product, limit=theme.bullet_limit)
    if bullets:
        fitted = fit_bullets(bullets, g.bullets, theme.bullet_pt, measure)
        lines: List[str] = []
        for wrapped in fitted.items:
            lines.append("• " + wrapped[0])
            lines.extend("   " + more for more in wrapped[1:])
        plan.elements.append(TextElement(box=g.bullets, lines=lines, font_size=fitted.font_size,
                                         color=c.body, role="bullets"))
    elif doc_url:
        plan.elements.append(TextElement(box=Box(g.bullets.x, g.bullets.y, g.bullets.w, 0.4),
                                         lines=["View specs"], font_size=theme.code_pt, color=c.accent,
                                         link=doc_url, underline=True, role="bullets"))

    desc = clean_text(product.description, max_len=0)
    if desc:
        fitted = fit_text(desc, g.description, theme.description_max_pt, theme.description_min_pt,
                          max_chars=theme.description_max_chars, measure=measure)
        plan.elements.append(TextElement(box=g.description, lines=fitted.lines, font_size=fitted.font_size,
                                         color=c.body, align="center", role="description"))

    plan.elements.append(ShapeElement(box=g.footer_bar, fill=c.bar, line=c.bar, role="footer_bar"))
    if code:
        plan.elements.append(_fitted(code, g.footer_code, theme.footer_pt, 8, measure, color=c.bar_text,
                                     role="footer_code"))
    return plan


def plan_closing(client: ClientInfo, theme: DeckTheme, width: float, height: float, measure: Measure,
                 bold_measure: Optional[Measure] = None) -> SlidePlan:
    bold_measure = bold_measure or text_measure(theme.pdf_font_bold)
    g = closing_geometry(width, height)
    c = theme.colors
    plan = SlidePlan(kind="closing", background=c.bg, key="closing")
    plan.elements.append(_fitted(theme.closing_title, g.title, 40, 20, measure, bold_measure, color=c.text, bold=True,
                                 align="center", role="title"))
    contact = client.contact_lines()
    if contact:
        plan.elements.append(_contact_block(contact, g.contact, 14, measure, c.body))
    plan.elements.append(ShapeElement(box=g.footer_bar, fill=c.bar, line=c.bar, role="footer_bar"))
    return plan
