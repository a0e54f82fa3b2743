"""Tests for slide planning, both backends and the export state machine."""

import asyncio
import io
import os

import fitz
import pytest
import reportlab
from pptx import Presentation

import deck.exporter as exporter_mod
from catalog.assets import ResolvedImage
from catalog.errors import ExportError, NoProductsSelected
from catalog.layout import product_geometry, text_measure
from catalog.models import ClientInfo, Product, Section, SpecItem
from deck.exporter import DeckExporter, derive_filename
from deck.pdf_backend import PdfBackend
from deck.pptx_backend import PptxBackend
from deck.slides import ImageElement, SlidePlan, TextElement, plan_closing, plan_cover, plan_product

PPTX = "application/vnd.openxmlformats-officedocument.presentationml.presentation"
REPORTLAB_FONTS = os.path.join(os.path.dirname(reportlab.__file__), "fonts")


def _slide_texts(data: bytes):
    prs = Presentation(io.BytesIO(data))
    return [
        "\n".join(shape.text_frame.text for shape in slide.shapes if shape.has_text_frame)
        for slide in prs.slides
    ]


def _products(n: int):
    return [
        Product(
            id=f"P-{i}",
            name=f"Product {i}",
            code=f"P-{i}",
            image=f"https://cdn.example.com/{i}.jpg",
            specs=[SpecItem(label="Width", value=f"{600 + i} mm")],
        )
        for i in range(n)
    ]


@pytest.fixture
def client():
    return ClientInfo(projectName="Smith & Co. (2024)", clientName="Smith & Co.", contactEmail="pm@smith.example")


@pytest.fixture
def measure():
    return text_measure()


# ----------------------------- filename -----------------------------
@pytest.mark.parametrize(
    "name, expected",
    [
        ("Smith & Co. (2024)", "smith-co-2024.pptx"),
        ("  Ensuite -- Level 2 ", "ensuite-level-2.pptx"),
        ("", "selection.pptx"),
        (None, "selection.pptx"),
        ("!!!", "selection.pptx"),
    ],
)
def test_derive_filename(name, expected):
    assert derive_filename(name, "pptx") == expected


# ----------------------------- planning -----------------------------
class TestPlanProduct:
    def test_missing_image_gets_labelled_placeholder(self, theme, measure):
        plan = plan_product(_products(1)[0], None, theme, 10, 5.625, measure)
        assert plan.by_role("placeholder")
        assert not [e for e in plan.elements if isinstance(e, ImageElement)]
        assert "Image unavailable" in plan.texts()

    def test_image_is_contained_in_its_region(self, theme, measure, resolved_image):
        plan = plan_product(_products(1)[0], resolved_image, theme, 10, 5.625, measure)
        (img,) = [e for e in plan.elements if isinstance(e, ImageElement)]
        region = product_geometry().image
        assert img.box.w / img.box.h == pytest.approx(resolved_image.width / resolved_image.height)
        assert img.box.x >= region.x - 1e-9 and img.box.right <= region.right + 1e-9

    def test_long_description_is_truncated(self, theme, measure):
        p = Product(id="d", name="Vanity", description="Solid timber vanity with soft-close drawers. " * 40)
        plan = plan_product(p, None, theme, 10, 5.625, measure)
        (desc,) = plan.by_role("description")
        assert desc.lines[-1].endswith("…")
        assert len(desc.lines) * desc.font_size * 1.2 / 72 <= product_geometry().description.h + 1e-9

    def test_bullets_are_capped_and_prefixed(self, theme, measure):
        p = Product(id="b", name="Basin", specs=[SpecItem(label=f"S{i}", value="v") for i in range(20)])
        plan = plan_product(p, None, theme, 10, 5.625, measure)
        (bullets,) = plan.by_role("bullets")
        starts = [ln for ln in bullets.lines if ln.startswith("• ")]
        assert 0 < len(starts) <= 12
        assert starts[0] == "• S0: v"

    def test_code_links_to_spec_pdf(self, theme, measure):
        p = Product(id="c", name="Tap", code="TP-1", specPdfUrl="https://example.com/tp-1.pdf")
        plan = plan_product(p, None, theme, 10, 5.625, measure)
        (code,) = plan.by_role("code")
        assert code.lines == ["TP-1"]
        assert code.link == "https://example.com/tp-1.pdf"
        assert plan.by_role("footer_code")[0].lines == ["TP-1"]

    def test_view_specs_link_when_no_bullets(self, theme, measure):
        p = Product(id="v", name="Tap", pdfUrl="https://example.com/tp.pdf")
        (bullets,) = plan_product(p, None, theme, 10, 5.625, measure).by_role("bullets")
        assert bullets.lines == ["View specs"]
        assert bullets.link == "https://example.com/tp.pdf"

    def test_untitled_and_section_heading(self, theme, measure):
        p = Product(id="u", name="  ")
        (title,) = plan_product(p, None, theme, 10, 5.625, measure, heading="Ensuite").by_role("title")
        text = " ".join(title.lines)
        assert "Ensuite" in text and "Untitled Product" in text

    def test_bold_lines_fit_with_bold_metrics(self, theme, measure):
        p = Product(id="t", name="Wall hung vanity basin with integrated overflow and tap landing " * 3)
        bold = text_measure(theme.pdf_font_bold)
        plans = [
            plan_product(p, None, theme, 10, 5.625, measure),
            plan_cover(ClientInfo(projectName="Harbourside Residences Stage Two " * 4), theme, 10, 5.625, measure),
        ]
        for plan in plans:
            for el in plan.elements:
                if isinstance(el, TextElement) and el.bold:
                    assert el.lines
                    for line in el.lines:
                        assert bold(line, el.font_size) <= el.box.w + 1e-9

    def test_everything_stays_on_the_canvas(self, theme, measure, resolved_image):
        width, height = 841.89 / 72, 595.28 / 72
        p = Product(id="a", name="X" * 300, code="C", description="word " * 400, features=["f " * 80] * 12)
        plan = plan_product(p, resolved_image, theme, width, height, measure)
        for el in plan.elements:
            assert el.box.within(width, height)


def test_cover_and_closing(theme, measure, client):
    cover = plan_cover(client, theme, 10, 5.625, measure)
    assert cover.by_role("title")[0].lines == ["Smith & Co. (2024)"]
    assert "pm@smith.example" in cover.texts()

    closing = plan_closing(ClientInfo(), theme, 10, 5.625, measure)
    assert closing.by_role("title")[0].lines == ["Thank you"]
    assert not closing.by_role("contact")

    untitled = plan_cover(ClientInfo(), theme, 10, 5.625, measure)
    assert untitled.by_role("title")[0].lines == ["Project Selection"]


# ----------------------------- backends -----------------------------
def test_pptx_backend_discards_a_half_built_slide(theme):
    backend = PptxBackend(theme)
    broken = SlidePlan(
        kind="product",
        background="FFFFFF",
        elements=[ImageElement(box=product_geometry().image, image=ResolvedImage(b"not a png", 10, 10))],
    )
    with pytest.raises(Exception):
        backend.add_slide(broken)
    assert backend.slide_count == 0
    assert len(Presentation(io.BytesIO(backend.save())).slides) == 0


def test_pdf_backend_keeps_a_failed_slide_off_the_deck(theme, monkeypatch):
    def broken_text(self, c, el):
        raise RuntimeError("glyph lookup failed")

    backend = PdfBackend(theme)
    monkeypatch.setattr(PdfBackend, "_text", broken_text)
    with pytest.raises(RuntimeError):
        backend.add_slide(plan_closing(ClientInfo(), theme, backend.width, backend.height, text_measure()))
    assert backend.slide_count == 0


def test_pdf_backend_page_size(theme):
    backend = PdfBackend(theme)
    assert backend.width == pytest.approx(11.69, abs=0.01)
    assert backend.height == pytest.approx(8.27, abs=0.01)
    wide = PdfBackend(theme.model_copy(update={"pdf_page_size": "16x9"}))
    assert (wide.width, wide.height) == (10, 5.625)


# ----------------------------- exporter -----------------------------
class TestExport:
    def test_pptx_has_cover_products_and_closing(self, theme, client, make_resolver, resolved_image):
        products = _products(3)
        resolver = make_resolver(images={p.image: resolved_image for p in products})
        result = asyncio.run(DeckExporter(resolver, theme=theme).export(products, client, "pptx"))

        assert result.filename == "smith-co-2024.pptx"
        assert result.media_type == PPTX
        assert result.slide_count == 5
        assert result.skipped == []
        texts = _slide_texts(result.data)
        assert len(texts) == 5
        assert "Smith & Co. (2024)" in texts[0]
        assert ["Product 0" in texts[1], "Product 1" in texts[2], "Product 2" in texts[3]] == [True] * 3
        assert "Thank you" in texts[4]

    def test_pdf_page_count(self, theme, client, make_resolver, resolved_image):
        products = _products(2)
        resolver = make_resolver(images={products[0].image: resolved_image})
        result = asyncio.run(DeckExporter(resolver, theme=theme).export(products, client, "pdf"))

        assert result.filename == "smith-co-2024.pdf"
        assert result.media_type == "application/pdf"
        with fitz.open(stream=result.data, filetype="pdf") as doc:
            assert doc.page_count == 4
            assert "Image unavailable" in doc.load_page(2).get_text()
            assert "Product 0" in doc.load_page(1).get_text()

    def test_unreachable_image_still_renders_a_slide(self, theme, client, make_resolver):
        result = asyncio.run(DeckExporter(make_resolver(), theme=theme).export(_products(1), client))
        texts = _slide_texts(result.data)
        assert len(texts) == 3
        assert "Image unavailable" in texts[1]

    def test_raw_rows_are_normalised(self, theme, client, make_resolver, sample_rows):
        result = asyncio.run(DeckExporter(make_resolver(), theme=theme).export(sample_rows, client))
        texts = _slide_texts(result.data)
        assert result.slide_count == len(sample_rows) + 2
        assert "Width: 600 mm" in texts[1]
        assert "Brushed nickel" in texts[3]

    def test_no_products_is_fatal(self, theme, make_resolver):
        with pytest.raises(NoProductsSelected):
            asyncio.run(DeckExporter(make_resolver(), theme=theme).export([], ClientInfo()))

    def test_failed_product_is_skipped(self, theme, client, make_resolver, monkeypatch, caplog):
        real_plan = exporter_mod.plan_product

        def flaky_plan(product, *args, **kwargs):
            if product.id == "P-1":
                raise RuntimeError("boom")
            return real_plan(product, *args, **kwargs)

        monkeypatch.setattr(exporter_mod, "plan_product", flaky_plan)
        with caplog.at_level("ERROR", logger="catalog"):
            result = asyncio.run(DeckExporter(make_resolver(), theme=theme).export(_products(3), client))

        assert result.skipped == ["P-1"]
        assert result.slide_count == 4
        texts = _slide_texts(result.data)
        assert not any("Product 1" in t for t in texts)
        assert "P-1" in caplog.text

    def test_pdf_skipped_product_leaves_nothing_on_the_next_page(self, theme, client, make_resolver, monkeypatch):
        real_text = PdfBackend._text

        def flaky_text(self, c, el):
            if el.role == "description" and "broken" in " ".join(el.lines):
                raise RuntimeError("font exploded")
            return real_text(self, c, el)

        monkeypatch.setattr(PdfBackend, "_text", flaky_text)
        products = [
            Product(id="bad", name="Bad Basin", description="broken text"),
            Product(id="ok", name="Good Tap"),
        ]
        result = asyncio.run(DeckExporter(make_resolver(), theme=theme).export(products, client, "pdf"))

        assert result.skipped == ["bad"]
        assert result.slide_count == 3
        with fitz.open(stream=result.data, filetype="pdf") as doc:
            assert doc.page_count == 3
            text = doc.load_page(1).get_text()
        assert "Good Tap" in text
        assert "Bad Basin" not in text

    def test_pdf_embeds_truetype_theme_fonts(self, theme, client, make_resolver):
        regular = os.path.join(REPORTLAB_FONTS, "Vera.ttf")
        bold = os.path.join(REPORTLAB_FONTS, "VeraBd.ttf")
        if not (os.path.exists(regular) and os.path.exists(bold)):
            pytest.skip("reportlab installed without its bundled TrueType fonts")
        themed = theme.model_copy(update={
            "pdf_font": "Vera", "pdf_font_file": regular,
            "pdf_font_bold": "VeraBd", "pdf_font_bold_file": bold,
        })
        products = [Product(id="c", name="Café Basin", description="Crème matte finish")]
        result = asyncio.run(DeckExporter(make_resolver(), theme=themed).export(products, client, "pdf"))

        with fitz.open(stream=result.data, filetype="pdf") as doc:
            page = doc.load_page(1)
            fonts = [f[3] for f in page.get_fonts()]
            text = page.get_text()
        assert any("Vera" in name for name in fonts)
        assert "Café Basin" in text

    def test_serialisation_failure_is_fatal(self, theme, client, make_resolver, monkeypatch):
        def broken_save(self):
            raise OSError("disk full")

        monkeypatch.setattr(exporter_mod.PptxBackend, "save", broken_save)
        with pytest.raises(ExportError) as exc:
            asyncio.run(DeckExporter(make_resolver(), theme=theme).export(_products(1), client))
        assert "disk full" in str(exc.value)

    def test_unknown_format(self, theme, make_resolver):
        with pytest.raises(ValueError):
            asyncio.run(DeckExporter(make_resolver(), theme=theme).export(_products(1), None, "docx"))

    def test_order_is_kept_with_concurrent_fetches(self, theme, client, make_resolver, resolved_image):
        products = _products(4)
        delays = {p.image: 0.04 * (4 - i) for i, p in enumerate(products)}
        resolver = make_resolver(images={p.image: resolved_image for p in products}, delays=delays)
        exporter = DeckExporter(resolver, theme=theme, max_concurrency=4)

        result = asyncio.run(exporter.export(products, client))

        texts = _slide_texts(result.data)[1:-1]
        assert [f"Product {i}" in t for i, t in enumerate(texts)] == [True] * 4

    def test_sections_prefix_titles(self, theme, client, make_resolver):
        sections = [
            Section(title="Ensuite", products=[{"Name": "Basin A", "Code": "BA"}]),
            Section(title="Kitchen", product={"Name": "Sink B", "Code": "SB"}),
        ]
        result = asyncio.run(DeckExporter(make_resolver(), theme=theme).export_sections(sections, client))
        texts = _slide_texts(result.data)
        assert result.slide_count == 4
        assert "Ensuite" in texts[1] and "Basin A" in texts[1]
        assert "Kitchen" in texts[2] and "Sink B" in texts[2]


class TestVisualFallback:
    def test_gallery_then_pdf_preview(self, theme, make_resolver, resolved_image):
        p = Product(
            id="g",
            name="Shower",
            gallery=["https://cdn.example.com/g1.jpg"],
            specPdfUrl="https://example.com/spec.pdf",
        )
        resolver = make_resolver(previews={"https://example.com/spec.pdf": resolved_image})
        img = asyncio.run(DeckExporter(resolver, theme=theme).resolve_visual(p))
        assert img is resolved_image
        assert resolver.calls == [("image", "https://cdn.example.com/g1.jpg"), ("pdf", "https://example.com/spec.pdf")]

    def test_preview_can_be_disabled(self, theme, make_resolver, resolved_image):
        p = Product(id="g", name="Shower", specPdfUrl="https://example.com/spec.pdf")
        resolver = make_resolver(previews={"https://example.com/spec.pdf": resolved_image})
        exporter = DeckExporter(resolver, theme=theme, include_pdf_preview=False)
        assert asyncio.run(exporter.resolve_visual(p)) is None
        assert resolver.calls == []
