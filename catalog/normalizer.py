# catalog/normalizer.py
# -*- coding: utf-8 -*-
"""
normalizer.py: turns loosely-typed sheet rows / scraped records into Products

- Header matching ignores case, whitespace and punctuation ("Product Name",
  "product_name" and "PRODUCT-NAME" are the same key)
- Unwraps Google Sheets =IMAGE("...") cells
- Resolves the polymorphic ``specs`` field to one ordered [SpecItem] shape
- Never raises: each field degrades to "absent" on its own
"""
from __future__ import annotations

import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from catalog.logging_config import get_logger
from catalog.models import AssetLink, Product, SpecItem

log = get_logger("normalizer")


# --------------------------------------------------------------------
# Small coercion helpers
# --------------------------------------------------------------------
def norm_key(s: Any) -> str:
    return re.sub(r"[^a-z0-9]", "", str(s or "").lower())


def _strip(x: Any) -> str:
    """Robust strip that safely handles non-strings (int, float, None)."""
    if x is None:
        return ""
    if isinstance(x, float) and x.is_integer():
        x = int(x)
    return str(x).strip()


def _opt(x: Any) -> Optional[str]:
    s = _strip(x)
    return s or None


def _coerce_list(x: Any) -> List[Any]:
    if x is None or x == "":
        return []
    if isinstance(x, (list, tuple)):
        return list(x)
    return [x]


# --------------------------------------------------------------------
# Alias table: canonical field -> accepted header spellings (normalised)
# --------------------------------------------------------------------
FIELD_ALIASES: Dict[str, List[str]] = {
    "id": ["id"],
    "name": ["name", "product", "productname", "title", "producttitle"],
    "code": ["code", "productcode", "model", "modelnumber", "item", "itemcode"],
    "sku": ["sku"],
    "category": ["category", "type", "productcategory"],
    "image": ["image", "imageurl", "photo", "thumbnail", "picture", "img", "mainimage"],
    "gallery": ["gallery", "images", "galleryimages"],
    "description": ["description", "desc", "summary", "overview", "shortdescription"],
    "details": ["details", "productdetails", "productinformation", "notes", "longdescription",
                "descriptionlong"],
    "features": ["features", "featurelist"],
    "specs": ["specs", "specifications", "specsbullets", "specbullets"],
    "compliance": ["compliance", "standards", "certifications"],
    "pdf_url": ["pdfurl", "pdf", "pdflink", "brochure", "datasheet"],
    "spec_pdf_url": ["specpdfurl", "specpdf", "specsheet", "specificationsheet"],
    "price": ["price", "cost", "rrp", "unitprice"],
    "source_url": ["sourceurl", "url", "link", "producturl", "page"],
    "assets": ["assets", "downloads", "documents"],
}

_ALIAS_INDEX: Dict[str, str] = {
    alias: field for field, aliases in FIELD_ALIASES.items() for alias in aliases
}


# --------------------------------------------------------------------
# Cell parsers
# --------------------------------------------------------------------
_IMAGE_FORMULA = re.compile(
    r"""^=*\s*image\s*\(\s*(?:"([^"]*)"|'([^']*)')\s*(?:,.*)?\)\s*$""",
    flags=re.I | re.S,
)


def extract_image_formula(value: Any) -> Optional[str]:
    """Return X for ``=IMAGE("X", ...)`` (any case, optional leading '='), else None."""
    if not isinstance(value, str):
        return None
    m = _IMAGE_FORMULA.match(value.strip())
    if not m:
        return None
    return m.group(1) if m.group(1) is not None else m.group(2)


def _cell(value: Any) -> Any:
    url = extract_image_formula(value)
    return url if url is not None else value


_LINE_SPLIT = re.compile(r"\r?\n|[•–]|(?:^|\s)-\s+")


def split_lines(text: Any) -> List[str]:
    """Split spec-like text on newlines, bullet characters or '- ' into trimmed lines."""
    if text is None:
        return []
    if isinstance(text, (list, tuple)):
        out: List[str] = []
        for item in text:
            out.extend(split_lines(item))
        return out
    return [p.strip() for p in _LINE_SPLIT.split(_strip(text)) if p and p.strip()]


_NON_NUMERIC = re.compile(r"[^0-9.\-]")


def parse_price(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    s = _strip(value)
    if not s:
        return None
    s = re.sub(r"[,\s ']", "", s)   # thousands separators / spaces
    s = _NON_NUMERIC.sub("", s)          # currency symbols, units
    try:
        return float(s)
    except ValueError:
        return None


def _split_label_value(line: str) -> SpecItem:
    label, sep, value = line.partition(":")
    if sep and label.strip() and value.strip():
        return SpecItem(label=label.strip(), value=value.strip())
    return SpecItem(label="", value=line.strip())


def normalize_specs(specs: Any) -> List[SpecItem]:
    """
    Resolve the polymorphic specs field once, at the boundary:
      - [{label, value}, ...]  -> as-is (empty pairs dropped)
      - ["Label: Value", ...]  -> split on the first colon
      - {"Label": "Value"}     -> mapping order
      - "free text"            -> split_lines, then as strings
    """
    if not specs:
        return []
    if isinstance(specs, SpecItem):
        specs = [specs]
    if isinstance(specs, Mapping) and not ({"label", "value"} & {str(k).lower() for k in specs}):
        items = [SpecItem(label=_strip(k), value=_strip(v)) for k, v in specs.items()]
        return [i for i in items if i.label or i.value]
    if isinstance(specs, str):
        specs = split_lines(specs)

    out: List[SpecItem] = []
    for it in _coerce_list(specs):
        if isinstance(it, SpecItem):
            item = it
        elif isinstance(it, Mapping):
            item = SpecItem(label=_strip(it.get("label")), value=_strip(it.get("value")))
        else:
            line = _strip(it)
            if not line:
                continue
            item = _split_label_value(line)
        if item.label or item.value:
            out.append(item)
    return out


def _normalize_assets(value: Any) -> List[AssetLink]:
    out: List[AssetLink] = []
    for it in _coerce_list(value):
        if isinstance(it, AssetLink):
            out.append(it)
        elif isinstance(it, Mapping):
            url = _opt(it.get("url") or it.get("href"))
            if url:
                out.append(AssetLink(label=_strip(it.get("label") or it.get("name")), url=url))
        else:
            for line in split_lines(it):
                out.append(AssetLink(label="", url=line))
    return out


def _url_list(value: Any) -> List[str]:
    out: List[str] = []
    for it in _coerce_list(value):
        if isinstance(it, str) and not isinstance(value, (list, tuple)):
            parts = re.split(r"\r?\n|\|", it)
        else:
            parts = [it]
        for part in parts:
            u = _opt(_cell(part))
            if u and u not in out:
                out.append(u)
    return out


# --------------------------------------------------------------------
# Text sanitising (descriptions scraped from WordPress pages carry noise)
# --------------------------------------------------------------------
_NOISE = [
    re.compile(r"window\._wpemojiSettings[\s\S]*?\};?", re.I),
    re.compile(r"/\*![\s\S]*?\*/"),
    re.compile(r"<script[\s\S]*?</script>", re.I),
    re.compile(r"<style[\s\S]*?</style>", re.I),
    re.compile(r"<[^>]+>"),
    re.compile(r"\S{120,}"),
]


def truncate(text: str, max_len: int) -> str:
    if max_len <= 0 or len(text) <= max_len:
        return text
    return text[:max_len].rstrip() + "…"


def clean_text(s: Any, max_len: int = 1600, keep_lines: bool = False) -> Optional[str]:
    """Strip page noise and collapse whitespace; ``keep_lines`` preserves line breaks."""
    if s is None:
        return None
    t = str(s)
    for rx in _NOISE:
        t = rx.sub(" ", t)
    if keep_lines:
        lines = (re.sub(r"\s+", " ", ln).strip() for ln in t.replace("\r\n", "\n").split("\n"))
        t = "\n".join(ln for ln in lines if ln)
    else:
        t = re.sub(r"\s+", " ", t).strip()
    t = truncate(t, max_len)
    return t or None


# --------------------------------------------------------------------
# Field builders: each one may fail independently
# --------------------------------------------------------------------
_FIELD_PARSERS = {
    "id": _opt,
    "name": _opt,
    "code": _opt,
    "sku": _opt,
    "category": _opt,
    "image": lambda v: _opt(_cell(v)),
    "gallery": _url_list,
    "description": clean_text,
    "details": lambda v: clean_text(v, max_len=4000, keep_lines=True),
    "features": split_lines,
    "specs": normalize_specs,
    "compliance": split_lines,
    "pdf_url": lambda v: _opt(_cell(v)),
    "spec_pdf_url": lambda v: _opt(_cell(v)),
    "price": parse_price,
    "source_url": lambda v: _opt(_cell(v)),
    "assets": _normalize_assets,
}


def _is_empty(v: Any) -> bool:
    return v is None or v == "" or v == [] or v == {}


def normalize(row: Mapping[str, Any], row_index: int = 0) -> Product:
    """
    Map one raw row (any header spelling) to a Product. Never raises; the id
    is always non-empty: code, sku, url, name, else "row-<index+2>".
    """
    fields: Dict[str, Any] = {}
    extra: Dict[str, Any] = {}

    try:
        items = list(row.items()) if isinstance(row, Mapping) else []
    except Exception:
        log.debug("row %s is not iterable; using empty record", row_index)
        items = []

    for raw_key, raw_value in items:
        field = _ALIAS_INDEX.get(norm_key(raw_key))
        if field is None:
            if norm_key(raw_key) and isinstance(raw_value, (str, int, float)) and not isinstance(raw_value, bool):
                extra[_strip(raw_key)] = raw_value
            continue
        if field in fields and not _is_empty(fields[field]):
            continue  # first non-empty alias wins
        try:
            fields[field] = _FIELD_PARSERS[field](raw_value)
        except Exception as e:
            log.debug("row %s: field %s degraded to absent (%s)", row_index, field, e)
            fields[field] = None

    clean = {k: v for k, v in fields.items() if not _is_empty(v)}
    clean["id"] = (
        clean.get("id")
        or clean.get("code")
        or clean.get("sku")
        or clean.get("source_url")
        or clean.get("name")
        or f"row-{row_index + 2}"
    )
    if not clean.get("image") and clean.get("gallery"):
        clean["image"] = clean["gallery"][0]

    try:
        return Product(**clean, extra=extra)
    except Exception as e:
        # a value that survived parsing but not validation: keep identity only
        log.debug("row %s failed validation (%s); keeping identity fields", row_index, e)
        return Product(id=str(clean["id"]), name=_strip(clean.get("name")) or "Untitled Product")


def normalize_rows(rows: Iterable[Mapping[str, Any]]) -> List[Product]:
    return [normalize(r, i) for i, r in enumerate(rows)]


def rows_from_grid(grid: Sequence[Sequence[Any]]) -> List[Dict[str, Any]]:
    """Header row 0 -> list of dicts. Blank rows are skipped; short rows are padded."""
    if not grid:
        return []
    headers = [_strip(h) for h in grid[0]]
    out: List[Dict[str, Any]] = []
    for raw in grid[1:]:
        cells = list(raw or [])
        if not any(_strip(c) for c in cells):
            continue
        cells += [""] * (len(headers) - len(cells))
        out.append({h: ("" if c is None else c) for h, c in zip(headers, cells) if h})
    return out


# --------------------------------------------------------------------
# Search / filtering over normalised products
# --------------------------------------------------------------------
def _haystack(p: Product) -> str:
    parts = [p.name, p.code, p.sku, p.description, p.category, p.source_url]
    parts.extend(_strip(v) for v in p.extra.values())
    return " ".join(_strip(x) for x in parts if x).lower()


def filter_products(
    products: Sequence[Product],
    q: Optional[str] = None,
    category: Optional[str] = None,
) -> List[Product]:
    out = list(products)
    cat = _strip(category).lower()
    if cat:
        out = [p for p in out if _strip(p.category).lower() == cat]
    needle = _strip(q).lower()
    if needle:
        out = [p for p in out if needle in _haystack(p)]
    return out
