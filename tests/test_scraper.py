"""Tests for product page scraping and spec PDF selection."""

from unittest.mock import MagicMock

import pytest
import requests

from catalog.normalizer import normalize
from catalog.scraper import ScrapeError, parse_product_page, pick_spec_pdf, scrape_page, score_pdf

PAGE_URL = "https://shop.example.com/products/wall-hung-basin-600/"

PRODUCT_PAGE = """
<html>
<head>
  <title>Wall-hung basin 600 | Example Bathrooms</title>
  <meta name="description" content="Compact vitreous china basin for small ensuites.">
  <meta property="og:image" content="/media/wb-600-hero.jpg">
  <meta property="og:site_name" content="Example Bathrooms">
  <script>window._wpemojiSettings = {"baseUrl": "x"};</script>
</head>
<body>
  <h1>Wall-hung basin 600</h1>
  <span itemprop="sku">WB-600</span>
  <div class="woocommerce-product-gallery">
    <img src="/media/wb-600-front.jpg">
    <img data-src="https://cdn.example.com/wb-600-side.jpg" src="data:image/gif;base64,R0lGOD">
  </div>
  <ul class="features">
    <li>Concealed fixings</li>
    <li>Overflow included</li>
  </ul>
  <table class="woocommerce-product-attributes">
    <tr><th>Width</th><td>600 mm</td></tr>
    <tr><th>Depth</th><td>420 mm</td></tr>
  </table>
  <div class="product_meta"><span class="posted_in"><a href="/c/basins">Basins</a></span></div>
  <a href="/docs/credit-application.pdf">Credit application</a>
  <a href="/docs/warranty.pdf">Warranty</a>
  <a href="/docs/wb-600-specification.pdf?v=2">Specification sheet</a>
</body>
</html>
"""


class TestPdfScoring:
    def test_spec_beats_warranty_and_credit(self):
        assert score_pdf("/docs/wb-600-specification.pdf", "Spec sheet") > score_pdf("/docs/warranty.pdf", "Warranty")
        assert score_pdf("/docs/credit-application.pdf", "Apply") < 0

    def test_only_negative_links_give_none(self):
        anchors = [{"url": "https://x.com/credit-application.pdf", "label": "Credit application"}]
        assert pick_spec_pdf(anchors) is None

    def test_neutral_link_is_kept(self):
        anchors = [{"url": "https://x.com/brochure.pdf", "label": "Brochure"}]
        assert pick_spec_pdf(anchors) == "https://x.com/brochure.pdf"


class TestParsePage:
    @pytest.fixture
    def record(self):
        return parse_product_page(PRODUCT_PAGE, PAGE_URL)

    def test_identity_fields(self, record):
        assert record["name"] == "Wall-hung basin 600"
        assert record["code"] == "WB-600"
        assert record["id"] == "WB-600"
        assert record["category"] == "Basins"
        assert record["description"] == "Compact vitreous china basin for small ensuites."
        assert record["sourceUrl"] == PAGE_URL

    def test_images_are_absolute_and_hero_first(self, record):
        assert record["image"] == "https://shop.example.com/media/wb-600-hero.jpg"
        assert record["gallery"] == [
            "https://shop.example.com/media/wb-600-hero.jpg",
            "https://shop.example.com/media/wb-600-front.jpg",
            "https://cdn.example.com/wb-600-side.jpg",
        ]

    def test_specs_and_features(self, record):
        assert record["specs"] == [
            {"label": "Width", "value": "600 mm"},
            {"label": "Depth", "value": "420 mm"},
        ]
        assert record["features"] == ["Concealed fixings", "Overflow included"]

    def test_spec_pdf_is_chosen_by_score(self, record):
        assert record["specPdfUrl"] == "https://shop.example.com/docs/wb-600-specification.pdf?v=2"
        pdf_assets = [a for a in record["assets"] if a["url"].split("?")[0].endswith(".pdf")]
        assert len(pdf_assets) == 3

    def test_record_normalises_like_a_row(self, record):
        product = normalize(record)
        assert product.id == "WB-600"
        assert product.spec_pdf_url.endswith("wb-600-specification.pdf?v=2")
        assert [s.as_line() for s in product.specs] == ["Width: 600 mm", "Depth: 420 mm"]
        assert product.extra["brand"] == "Example Bathrooms"

    def test_bare_page(self):
        record = parse_product_page("<html><body><p>Nothing here</p></body></html>", PAGE_URL)
        assert record["name"] == "Imported Product"
        assert record["id"] == PAGE_URL
        assert "specPdfUrl" not in record


class TestScrapePage:
    def _session(self, status=200, text=PRODUCT_PAGE, exc=None):
        session = MagicMock()
        if exc is not None:
            session.get.side_effect = exc
        else:
            resp = MagicMock()
            resp.status_code = status
            resp.text = text
            session.get.return_value = resp
        return session

    def test_fetches_and_parses(self):
        record = scrape_page(PAGE_URL, session=self._session())
        assert record["code"] == "WB-600"

    def test_http_error(self):
        with pytest.raises(ScrapeError) as exc:
            scrape_page(PAGE_URL, session=self._session(status=404))
        assert exc.value.status == 404

    def test_transport_error(self):
        with pytest.raises(ScrapeError):
            scrape_page(PAGE_URL, session=self._session(exc=requests.ConnectionError("dns")))

    def test_invalid_url(self):
        with pytest.raises(ScrapeError) as exc:
            scrape_page("mailto:sales@example.com")
        assert exc.value.status == 400
