# catalog/scraper.py
# -*- coding: utf-8 -*-
"""
Best-effort product page scraper (requests + BeautifulSoup).

Returns a loose record in the same camelCase shape the sheet rows use, so it
goes through ``catalog.normalizer.normalize`` like any other row.
"""
from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

import requests
from bs4 import BeautifulSoup

from catalog.assets import BROWSER_HEADERS, absolutize, is_http_url
from catalog.logging_config import get_logger
from catalog.normalizer import clean_text

log = get_logger("scraper")

PAGE_HEADERS = {**BROWSER_HEADERS, "Accept": "text/html,application/xhtml+xml"}

_SKU_IN_HTML = re.compile(r"\bSKU[:\s]*([A-Z0-9\-._]+)", re.I)
_COMPLIANCE = re.compile(r"code|standard|wels|as/nz", re.I)
MAX_FEATURES = 12
MAX_COMPLIANCE = 12


class ScrapeError(Exception):
    """The page could not be fetched; ``status`` is the upstream status when there was one."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


# ----------------------------- PDF scoring -----------------------------
def score_pdf(href: str, text: Optional[str] = None) -> int:
    """Rank a PDF link: spec/datasheet/technical up, credit/application/warranty down."""
    s = f"{href} {text or ''}".lower()
    score = 0
    if re.search(r"\bspec", s):
        score += 5
    if re.search(r"datasheet|technical|tech\s*sheet", s):
        score += 4
    if re.search(r"install|installation", s):
        score += 1
    if re.search(r"product-sheet|cut\s*sheet", s):
        score += 2
    if re.search(r"credit|application|returns|account", s):
        score -= 10
    if re.search(r"warranty|privacy|terms", s):
        score -= 2
    return score


def pick_spec_pdf(anchors: List[Dict[str, str]]) -> Optional[str]:
    best, best_score = None, None
    for a in anchors:
        sc = score_pdf(a["url"], a.get("label"))
        if best_score is None or sc > best_score:
            best, best_score = a, sc
    if best is not None and best_score >= 0:
        return best["url"]
    return None


# ----------------------------- Extractors -----------------------------
def _text(el) -> Optional[str]:
    return clean_text(el.get_text(" ", strip=True)) if el is not None else None


def _meta(soup: BeautifulSoup, **attrs) -> Optional[str]:
    tag = soup.find("meta", attrs=attrs)
    return clean_text(tag.get("content")) if tag is not None else None


def extract_images(soup: BeautifulSoup, base: str) -> List[str]:
    seen: List[str] = []
    for img in soup.select(".woocommerce-product-gallery img, .product-gallery img, .gallery img, figure img, .product img"):
        srcset = (img.get("srcset") or "").split(" ")[0]
        src = img.get("data-large_image") or img.get("data-src") or img.get("src") or srcset
        url = absolutize(src, base) if src else None
        if url and url not in seen:
            seen.append(url)
    og = _meta(soup, property="og:image")
    og = absolutize(og, base) if og else None
    if og and og not in seen:
        seen.insert(0, og)
    return seen


def extract_features(soup: BeautifulSoup) -> List[str]:
    out: List[str] = []
    for marker in soup.select(".features, .product-features, .key-features, .fa-check, .icon-check"):
        lst = marker if marker.name in ("ul", "ol") else marker.find_parent(["ul", "ol"]) or marker.find(["ul", "ol"])
        if lst is None:
            continue
        for li in lst.find_all("li"):
            t = _text(li)
            if t and len(t) > 2 and t not in out:
                out.append(t)
    if not out:
        for ul in soup.select("article ul, .summary ul, .entry-content ul, .product-summary ul"):
            for li in ul.find_all("li"):
                t = _text(li)
                if t and len(t) > 2:
                    out.append(t)
            if len(out) >= 4:
                break
    return out[:MAX_FEATURES]


def extract_spec_table(soup: BeautifulSoup) -> List[Dict[str, str]]:
    out: List[Dict[str, str]] = []
    for tbl in soup.select("table.woocommerce-product-attributes, table.shop_attributes"):
        for tr in tbl.find_all("tr"):
            k = _text(tr.find(["th"]) or tr.select_one(".label"))
            v = _text(tr.find("td") or tr.select_one(".value"))
            if k or v:
                out.append({"label": k or "", "value": v or ""})
    if out:
        return out

    # first table that looks like label/value pairs
    for tbl in soup.find_all("table"):
        rows = []
        for tr in tbl.find_all("tr"):
            th, td = _text(tr.find("th")), _text(tr.find("td"))
            if (th or td) and len(th or "") < 64:
                rows.append({"label": th or "", "value": td or ""})
        if len(rows) >= 3:
            return rows
    return out


def extract_spec_list(soup: BeautifulSoup) -> List[Dict[str, str]]:
    for dl in soup.find_all("dl"):
        dts, dds = dl.find_all("dt"), dl.find_all("dd")
        if not dts or len(dts) != len(dds):
            continue
        rows = []
        for dt, dd in zip(dts, dds):
            k, v = _text(dt), _text(dd)
            if k or v:
                rows.append({"label": k or "", "value": v or ""})
        if len(rows) >= 3:
            return rows

    rows = []
    for li in soup.select("ul li, ol li"):
        t = _text(li)
        if not t or ":" not in t:
            continue
        label, _, value = t.partition(":")
        if len(label) < 64:
            rows.append({"label": label.strip(), "value": value.strip()})
    return rows if len(rows) >= 3 else []


def extract_compliance(soup: BeautifulSoup) -> List[str]:
    out: List[str] = []
    for el in soup.find_all(["li", "span", "p", "td"]):
        t = _text(el)
        if t and len(t) < 120 and _COMPLIANCE.search(t) and t not in out:
            out.append(t)
        if len(out) >= MAX_COMPLIANCE:
            break
    return out


def extract_pdf_links(soup: BeautifulSoup, base: str) -> List[Dict[str, str]]:
    out = []
    for a in soup.find_all("a", href=True):
        href = a["href"]
        low = href.lower()
        if not (low.endswith(".pdf") or ".pdf?" in low):
            continue
        url = absolutize(href.strip(), base)
        if url:
            out.append({"url": url, "label": _text(a) or "PDF"})
    return out


# ----------------------------- Page -----------------------------
def parse_product_page(html: str, url: str) -> Dict[str, Any]:
    soup = BeautifulSoup(html, "html.parser")
    for junk in soup(["script", "style", "noscript"]):
        junk.decompose()

    title = _text(soup.find("h1")) or _meta(soup, property="og:title") or _text(soup.find("title"))
    description = _meta(soup, name="description") or _meta(soup, property="og:description")
    if not description:
        description = _text(soup.select_one(".summary, .entry-content, .product-short-description, article"))
        description = clean_text(description, max_len=1200)

    sku_match = _SKU_IN_HTML.search(html)
    code = (
        _text(soup.select_one('[itemprop="sku"]'))
        or _meta(soup, itemprop="sku")
        or _text(soup.select_one(".sku"))
        or (sku_match.group(1) if sku_match else None)
    )
    brand = _text(soup.select_one('[itemprop="brand"]')) or _meta(soup, property="og:site_name")
    category = _text(soup.select_one(".posted_in a")) or _meta(soup, property="article:section")

    gallery = extract_images(soup, url)
    features = extract_features(soup)
    specs = extract_spec_table(soup) or extract_spec_list(soup)
    compliance = extract_compliance(soup)
    pdfs = extract_pdf_links(soup, url)

    assets = [{"url": a["url"], "label": a["label"]} for a in pdfs]
    assets += [{"url": g, "label": "Image"} for g in gallery]

    record: Dict[str, Any] = {
        "id": code or title or url,
        "code": code,
        "name": title or "Imported Product",
        "brand": brand,
        "category": category,
        "image": gallery[0] if gallery else None,
        "gallery": gallery,
        "description": description,
        "features": features,
        "specs": specs,
        "compliance": compliance,
        "sourceUrl": url,
        "specPdfUrl": pick_spec_pdf(pdfs),
        "assets": assets,
    }
    return {k: v for k, v in record.items() if v not in (None, "", [])}


def scrape_page(url: str, session: Optional[requests.Session] = None, timeout: Optional[float] = None) -> Dict[str, Any]:
    """Fetch and parse a product page. Raises ``ScrapeError`` when it cannot be fetched."""
    if not is_http_url(url):
        raise ScrapeError("Invalid url", status=400)
    getter = session.get if session is not None else requests.get
    try:
        resp = getter(url, headers=PAGE_HEADERS, allow_redirects=True, timeout=timeout)
    except requests.RequestException as e:
        raise ScrapeError(f"Failed to fetch page: {e}") from e
    if resp.status_code >= 400:
        raise ScrapeError(f"Failed to fetch page ({resp.status_code})", status=resp.status_code)
    log.info("scraped %s (%d bytes)", url, len(resp.text or ""))
    return parse_product_page(resp.text or "", url)
