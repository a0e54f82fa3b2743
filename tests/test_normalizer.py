"""Tests for row normalisation: header aliases, cell parsers and filtering."""

import pytest

from catalog.models import Product, SpecItem
from catalog.normalizer import (
    clean_text,
    extract_image_formula,
    filter_products,
    normalize,
    normalize_rows,
    normalize_specs,
    parse_price,
    rows_from_grid,
    split_lines,
)


class TestImageFormula:
    @pytest.mark.parametrize(
        "cell",
        [
            '=IMAGE("https://x.com/a.png")',
            "=image('https://x.com/a.png')",
            '==Image( "https://x.com/a.png" , 4, 100, 100)',
            'IMAGE("https://x.com/a.png")',
        ],
    )
    def test_extracts_url(self, cell):
        assert extract_image_formula(cell) == "https://x.com/a.png"

    @pytest.mark.parametrize("cell", ["https://x.com/a.png", "=HYPERLINK(\"x\")", "", None, 42])
    def test_non_formula_is_none(self, cell):
        assert extract_image_formula(cell) is None


class TestNormalize:
    def test_maps_aliases_and_parses_cells(self, sample_rows):
        p = normalize(sample_rows[0])
        assert p.name == "Wall-hung basin 600"
        assert p.code == "WB-600"
        assert p.id == "WB-600"
        assert p.image == "https://cdn.example.com/wb-600.jpg"
        assert p.spec_pdf_url == "https://example.com/docs/wb-600.pdf"
        assert [s.as_line() for s in p.specs] == [
            "Width: 600 mm",
            "Depth: 420 mm",
            "Material: Vitreous china",
        ]

    def test_price_features_and_extra(self, sample_rows):
        toilet = normalize(sample_rows[1])
        assert toilet.price == 1299.0
        assert toilet.features == ["Rimless pan", "Soft-close seat"]

        mixer = normalize(sample_rows[2])
        assert mixer.sku == "BM-7"
        assert mixer.id == "BM-7"
        assert mixer.extra == {"Finish": "Brushed nickel"}

    def test_id_falls_back_to_row_position(self):
        assert normalize({}, row_index=3).id == "row-5"

    def test_first_non_empty_alias_wins(self):
        p = normalize({"Name": "", "Title": "Freestanding bath", "Product": "ignored"})
        assert p.name == "Freestanding bath"

    @pytest.mark.parametrize(
        "row",
        [
            None,
            "not a row",
            {"price": object(), "specs": 5, "gallery": {"a": 1}},
            {"Specs": [None, {"label": None}], "Assets": [{"href": None}], "Image": 3.5},
            {"Name": float("nan"), "Compliance": ["WELS", None]},
        ],
    )
    def test_never_raises(self, row):
        assert isinstance(normalize(row), Product)

    def test_gallery_backs_image(self):
        p = normalize({"Name": "Shower", "Gallery": "https://x.com/1.jpg|https://x.com/2.jpg"})
        assert p.gallery == ["https://x.com/1.jpg", "https://x.com/2.jpg"]
        assert p.image == "https://x.com/1.jpg"

    def test_details_keep_their_lines(self):
        p = normalize({"Name": "Vanity", "Details": "Soft-close drawers\r\n  Solid surface top  "})
        assert p.details == "Soft-close drawers\nSolid surface top"

    def test_normalize_rows_uses_row_positions(self):
        products = normalize_rows([{"Category": "Basins"}, {"Category": "Baths"}])
        assert [p.id for p in products] == ["row-2", "row-3"]


class TestSpecs:
    def test_list_of_strings_splits_on_first_colon(self):
        assert normalize_specs(["Flow: 6 L/min: rated", "Rimless"]) == [
            SpecItem(label="Flow", value="6 L/min: rated"),
            SpecItem(label="", value="Rimless"),
        ]

    def test_mapping_keeps_order(self):
        items = normalize_specs({"Width": "600 mm", "Depth": "420 mm"})
        assert [(i.label, i.value) for i in items] == [("Width", "600 mm"), ("Depth", "420 mm")]

    def test_list_of_pairs(self):
        items = normalize_specs([{"label": "Finish", "value": "Chrome"}, {"label": "", "value": ""}])
        assert items == [SpecItem(label="Finish", value="Chrome")]

    def test_free_text(self):
        items = normalize_specs("• Width: 600 mm • Depth: 420 mm")
        assert [i.as_line() for i in items] == ["Width: 600 mm", "Depth: 420 mm"]


def test_split_lines_on_all_separators():
    assert split_lines("a\nb • c – d - e") == ["a", "b", "c", "d", "e"]


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("$1,299.50", 1299.5),
        ("EUR 2 400", 2400.0),
        (850, 850.0),
        ("n/a", None),
        ("", None),
        (None, None),
    ],
)
def test_parse_price(raw, expected):
    assert parse_price(raw) == expected


class TestCleanText:
    def test_strips_markup_and_scripts(self):
        html = "<p>Hello <b>world</b></p><script>var x = 1;</script><style>p{}</style>"
        assert clean_text(html) == "Hello world"

    def test_strips_wordpress_noise(self):
        noisy = "Intro window._wpemojiSettings = {a: 1}; /*! banner */ text " + "x" * 150
        assert clean_text(noisy) == "Intro text"

    def test_truncates_with_ellipsis(self):
        assert clean_text("abcdefghij", max_len=5) == "abcde…"

    def test_empty_is_none(self):
        assert clean_text("   ") is None


def test_rows_from_grid_pads_and_skips_blank_rows():
    grid = [["Name", "Code"], ["Basin", "B-1"], [], ["", None], ["Bath"]]
    assert rows_from_grid(grid) == [
        {"Name": "Basin", "Code": "B-1"},
        {"Name": "Bath", "Code": ""},
    ]


class TestFilter:
    def test_query_and_category(self, sample_rows):
        products = normalize_rows(sample_rows)
        assert [p.id for p in filter_products(products, q="BASIN")] == ["WB-600", "BM-7"]
        assert [p.id for p in filter_products(products, category="tapware")] == ["BM-7"]
        assert filter_products(products, q="basin", category="Toilets") == []

    def test_query_searches_extra_values(self, sample_rows):
        products = normalize_rows(sample_rows)
        assert [p.id for p in filter_products(products, q="nickel")] == ["BM-7"]

    def test_no_filters_returns_everything(self, sample_rows):
        products = normalize_rows(sample_rows)
        assert len(filter_products(products)) == 3
