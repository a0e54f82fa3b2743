# catalog/layout.py
"""
Slide geometry and text fitting, in inches, independent of any document API.

Regions are fractions of the 10 x 5.625 reference canvas, so any canvas size
(16:9 slide, A4 landscape page) gets the same arrangement and nothing ever
leaves the canvas.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfbase.ttfonts import TTFError, TTFont

from catalog.config import DeckTheme
from catalog.logging_config import get_logger
from catalog.normalizer import truncate

log = get_logger("layout")

REF_W = 10.0
REF_H = 5.625
LINE_SPACING = 1.2
ELLIPSIS = "…"

# text, font size in pt -> width in inches
Measure = Callable[[str, float], float]


@dataclass(frozen=True)
class Box:
    x: float
    y: float
    w: float
    h: float

    @property
    def right(self) -> float:
        return self.x + self.w

    @property
    def bottom(self) -> float:
        return self.y + self.h

    def overlaps(self, other: "Box") -> bool:
        return not (
            self.right <= other.x or other.right <= self.x
            or self.bottom <= other.y or other.bottom <= self.y
        )

    def within(self, width: float, height: float, eps: float = 1e-9) -> bool:
        return self.x >= -eps and self.y >= -eps and self.right <= width + eps and self.bottom <= height + eps


def _region(width: float, height: float, x: float, y: float, w: float, h: float) -> Box:
    sx, sy = width / REF_W, height / REF_H
    return Box(x * sx, y * sy, w * sx, h * sy)


@dataclass(frozen=True)
class ProductGeometry:
    width: float
    height: float
    title: Box
    image: Box
    code: Box
    bullets: Box
    description: Box
    footer_bar: Box
    footer_code: Box

    def regions(self) -> List[Tuple[str, Box]]:
        return [
            ("title", self.title), ("image", self.image), ("code", self.code),
            ("bullets", self.bullets), ("description", self.description),
            ("footer_bar", self.footer_bar),
        ]


@dataclass(frozen=True)
class CoverGeometry:
    width: float
    height: float
    title: Box
    subtitle: Box
    contact: Box
    footer_bar: Box


@dataclass(frozen=True)
class ClosingGeometry:
    width: float
    height: float
    title: Box
    contact: Box
    footer_bar: Box


def product_geometry(width: float = REF_W, height: float = REF_H) -> ProductGeometry:
    r = lambda *a: _region(width, height, *a)  # noqa: E731
    return ProductGeometry(
        width=width,
        height=height,
        title=r(0.5, 0.2, 9.0, 0.7),
        image=r(0.5, 1.0, 5.2, 3.4),
        code=r(6.0, 1.0, 3.5, 0.4),
        bullets=r(6.0, 1.5, 3.5, 2.9),
        description=r(0.6, 4.5, 8.8, 0.7),
        footer_bar=r(0.0, 5.325, 10.0, 0.3),
        # sits on top of the bar
        footer_code=r(0.6, 5.325, 8.8, 0.3),
    )


def cover_geometry(width: float = REF_W, height: float = REF_H) -> CoverGeometry:
    r = lambda *a: _region(width, height, *a)  # noqa: E731
    return CoverGeometry(
        width=width,
        height=height,
        title=r(0.4, 1.0, 9.2, 1.1),
        subtitle=r(0.4, 2.2, 9.2, 0.6),
        contact=r(0.4, 3.2, 9.2, 1.2),
        footer_bar=r(0.0, 5.325, 10.0, 0.3),
    )


def closing_geometry(width: float = REF_W, height: float = REF_H) -> ClosingGeometry:
    r = lambda *a: _region(width, height, *a)  # noqa: E731
    return ClosingGeometry(
        width=width,
        height=height,
        title=r(0.4, 1.4, 9.2, 1.1),
        contact=r(0.4, 2.7, 9.2, 1.4),
        footer_bar=r(0.0, 5.325, 10.0, 0.3),
    )


# --------------------------------------------------------------------
# Images
# --------------------------------------------------------------------
def contain(img_w: float, img_h: float, box: Box) -> Box:
    """Largest box with the image's aspect ratio that fits ``box``, centred."""
    if img_w <= 0 or img_h <= 0:
        return box
    scale = min(box.w / img_w, box.h / img_h)
    w, h = img_w * scale, img_h * scale
    return Box(box.x + (box.w - w) / 2, box.y + (box.h - h) / 2, w, h)


# --------------------------------------------------------------------
# Text
# --------------------------------------------------------------------
def text_measure(font_name: str = "Helvetica") -> Measure:
    """Width in inches using reportlab font metrics (built-in or registered TrueType)."""
    def measure(text: str, font_pt: float) -> float:
        return stringWidth(text, font_name, font_pt) / 72.0
    return measure


FONT_FALLBACKS = (
    ("pdf_font", "pdf_font_file", "Helvetica"),
    ("pdf_font_bold", "pdf_font_bold_file", "Helvetica-Bold"),
)


def register_theme_fonts(theme: DeckTheme) -> DeckTheme:
    """
    Register the TrueType files named by the theme under its font names so
    both the metrics and the PDF use them. A file that cannot be loaded falls
    back to the matching standard font.
    """
    update = {}
    for attr, file_attr, fallback in FONT_FALLBACKS:
        path = getattr(theme, file_attr)
        name = getattr(theme, attr)
        if not path or name in pdfmetrics.getRegisteredFontNames():
            continue
        if name in pdfmetrics.standardFonts:
            log.warning("font file %s ignored: %s is a built-in font name", path, name)
            continue
        try:
            pdfmetrics.registerFont(TTFont(name, path))
        except (TTFError, OSError) as e:
            log.warning("could not load font %s from %s: %s", name, path, e)
            update[attr] = fallback
    return theme.model_copy(update=update) if update else theme


def line_height(font_pt: float, spacing: float = LINE_SPACING) -> float:
    return font_pt * spacing / 72.0


def _break_word(word: str, width: float, font_pt: float, measure: Measure) -> List[str]:
    parts: List[str] = []
    cur = ""
    for ch in word:
        if cur and measure(cur + ch, font_pt) > width:
            parts.append(cur)
            cur = ch
        else:
            cur += ch
    if cur:
        parts.append(cur)
    return parts


def wrap_text(text: str, width: float, font_pt: float, measure: Measure) -> List[str]:
    """Greedy word wrap; words wider than the box are broken by character."""
    lines: List[str] = []
    for para in (text or "").split("\n"):
        cur = ""
        for word in para.split():
            trial = f"{cur} {word}" if cur else word
            if measure(trial, font_pt) <= width:
                cur = trial
                continue
            if cur:
                lines.append(cur)
            if measure(word, font_pt) <= width:
                cur = word
            else:
                *head, cur = _break_word(word, width, font_pt, measure)
                lines.extend(head)
        if cur:
            lines.append(cur)
    return lines


def _with_ellipsis(line: str, width: float, font_pt: float, measure: Measure) -> str:
    s = line.rstrip(" " + ELLIPSIS)
    while s and measure(s + ELLIPSIS, font_pt) > width:
        s = s[:-1].rstrip()
    return s + ELLIPSIS


@dataclass
class FittedText:
    lines: List[str]
    font_size: float
    height: float
    truncated: bool = False

    @property
    def text(self) -> str:
        return "\n".join(self.lines)


def fit_text(
    text: str,
    box: Box,
    max_pt: float,
    min_pt: float,
    max_chars: Optional[int] = None,
    measure: Optional[Measure] = None,
    step: float = 1.0,
) -> FittedText:
    """
    Shrink-to-fit: cap at ``max_chars`` (ellipsis), then reduce the font size
    until the wrapped text fits ``box``. At ``min_pt`` overflowing lines are
    dropped and the last kept line ends with an ellipsis; a box too short for
    one line yields no lines. ``height`` never exceeds ``box.h``.
    """
    measure = measure or text_measure()
    src = (text or "").strip()
    truncated = False
    if max_chars and len(src) > max_chars:
        src = truncate(src, max_chars)
        truncated = True
    if not src:
        return FittedText([], max_pt, 0.0, truncated)

    size = max_pt
    while True:
        lines = wrap_text(src, box.w, size, measure)
        lh = line_height(size)
        if len(lines) * lh <= box.h + 1e-9:
            return FittedText(lines, size, len(lines) * lh, truncated)
        if size - step < min_pt:
            break
        size -= step

    size = min_pt
    lh = line_height(size)
    keep = int((box.h + 1e-9) // lh)
    if keep < 1:
        # not even one line fits at the smallest size
        return FittedText([], size, 0.0, True)
    lines = wrap_text(src, box.w, size, measure)
    if keep < len(lines):
        lines = lines[:keep]
        lines[-1] = _with_ellipsis(lines[-1], box.w, size, measure)
        truncated = True
    return FittedText(lines, size, len(lines) * lh, truncated)


@dataclass
class FittedList:
    items: List[List[str]] = field(default_factory=list)  # wrapped lines per kept item
    font_size: float = 11
    height: float = 0.0
    dropped: int = 0


def fit_bullets(
    items: Sequence[str],
    box: Box,
    font_pt: float,
    measure: Optional[Measure] = None,
    bullet: str = "• ",
    gap: float = 0.04,
) -> FittedList:
    """Keep whole bullets while they fit the column; the rest are dropped."""
    measure = measure or text_measure()
    lh = line_height(font_pt)
    indent = measure(bullet, font_pt)
    out = FittedList(font_size=font_pt)
    used = 0.0
    for i, item in enumerate(items):
        wrapped = wrap_text(item, max(box.w - indent, 0.1), font_pt, measure)
        if not wrapped:
            continue
        need = len(wrapped) * lh + (gap if out.items else 0.0)
        if used + need > box.h + 1e-9:
            out.dropped = len(items) - i
            break
        out.items.append(wrapped)
        used += need
    out.height = used
    return out
