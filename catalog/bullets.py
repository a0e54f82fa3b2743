# catalog/bullets.py
"""Short fact lines for the right-hand column of a product slide."""
from __future__ import annotations

import re
from typing import List

from catalog.models import Product
from catalog.normalizer import norm_key

MAX_BULLETS = 12
MAX_FALLBACK_VALUE = 120

# identity / media fields never dumped into the K/V fallback
_BLOCKED = {
    norm_key(k) for k in (
        "id", "name", "product", "title", "code", "sku", "image", "imageurl", "photo",
        "thumbnail", "picture", "gallery", "url", "link", "sourceurl", "pdf", "pdfurl",
        "specpdfurl", "description", "desc", "shortdescription", "longdescription",
        "specsbullets", "details", "qty", "quantity",
    )
}


def _drop_bullet(s: str) -> str:
    # -, *, •, "1.", "1)"
    return re.sub(r"^(-|\*|•|\d+[.)])\s+", "", s).strip()


def _from_specs(product: Product) -> List[str]:
    return [line for line in (s.as_line() for s in product.specs) if line]


def _from_features(product: Product) -> List[str]:
    return [f.strip() for f in product.features if f and f.strip()]


def _from_details(product: Product) -> List[str]:
    if not product.details:
        return []
    parts = re.split(r"\r?\n|[|•]", product.details)
    return [p for p in (_drop_bullet(x) for x in parts) if p]


def _from_fields(product: Product) -> List[str]:
    pairs = []
    if product.category:
        pairs.append(("Category", product.category))
    if product.price is not None:
        pairs.append(("Price", f"{product.price:,.2f}"))
    pairs.extend(product.extra.items())

    out: List[str] = []
    for key, value in pairs:
        if norm_key(key) in _BLOCKED:
            continue
        val = str(value if value is not None else "").strip()
        if not val or len(val) > MAX_FALLBACK_VALUE:
            continue
        label = re.sub(r"\s+", " ", str(key)).strip()
        out.append(f"{label}: {val}")
    return out


def extract_bullets(product: Product, limit: int = MAX_BULLETS) -> List[str]:
    """
    First non-empty source wins: structured specs, then the feature list,
    then the long details text, then short leftover fields as "Key: value".
    Never returns more than ``limit`` (and never more than 12) lines.
    """
    limit = max(0, min(limit, MAX_BULLETS))
    for source in (_from_specs, _from_features, _from_details, _from_fields):
        lines = source(product)
        if lines:
            return lines[:limit]
    return []
