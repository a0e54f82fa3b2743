"""Shared fixtures: generated images/PDFs, sample rows and a network-free resolver."""

import asyncio
import io
from typing import Dict, Optional

import pytest
from PIL import Image
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from catalog.assets import ResolvedImage, to_png
from catalog.config import DeckTheme


def _image_bytes(fmt: str, size=(320, 200), color=(30, 107, 215)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def jpeg_bytes():
    return _image_bytes("JPEG")


@pytest.fixture
def png_bytes():
    return _image_bytes("PNG", size=(120, 240))


@pytest.fixture
def pdf_bytes():
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    c.drawString(72, 720, "Wall-hung basin 600 - specification sheet")
    c.showPage()
    c.drawString(72, 720, "Page two")
    c.showPage()
    c.save()
    return buf.getvalue()


@pytest.fixture
def resolved_image(jpeg_bytes) -> ResolvedImage:
    return to_png(jpeg_bytes)


@pytest.fixture
def theme():
    return DeckTheme()


@pytest.fixture
def sample_rows():
    return [
        {
            "Product Name": "Wall-hung basin 600",
            "Code": "WB-600",
            "Category": "Basins",
            "Image": '=IMAGE("https://cdn.example.com/wb-600.jpg")',
            "Specs": "Width: 600 mm\nDepth: 420 mm\nMaterial: Vitreous china",
            "Description": "Compact wall-hung basin with overflow.",
            "Spec PDF": "https://example.com/docs/wb-600.pdf",
        },
        {
            "Product Name": "Rimless toilet suite",
            "Code": "TS-100",
            "Category": "Toilets",
            "Image": "https://cdn.example.com/ts-100.jpg",
            "Features": "Rimless pan\n• Soft-close seat",
            "Price": "$1,299.00",
        },
        {
            "Product Name": "Basin mixer",
            "SKU": "BM-7",
            "Category": "Tapware",
            "Finish": "Brushed nickel",
        },
    ]


class StubResolver:
    """Stands in for AssetResolver: answers from dicts, never touches the network."""

    def __init__(
        self,
        images: Optional[Dict[str, ResolvedImage]] = None,
        previews: Optional[Dict[str, ResolvedImage]] = None,
        delays: Optional[Dict[str, float]] = None,
    ):
        self.images = images or {}
        self.previews = previews or {}
        self.delays = delays or {}
        self.calls = []

    async def resolve_image(self, raw_url, base_url=None):
        self.calls.append(("image", raw_url))
        if raw_url in self.delays:
            await asyncio.sleep(self.delays[raw_url])
        return self.images.get(raw_url)

    async def resolve_pdf_preview(self, raw_url, base_url=None):
        self.calls.append(("pdf", raw_url))
        return self.previews.get(raw_url)


@pytest.fixture
def make_resolver():
    return StubResolver
