# catalog/models.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# -------------------------------
# Catalog records (Pydantic v2)
# -------------------------------
class SpecItem(BaseModel):
    label: str = ""
    value: str = ""

    def as_line(self) -> str:
        label, value = self.label.strip(), self.value.strip()
        if label and value:
            return f"{label}: {value}"
        return value or label


class AssetLink(BaseModel):
    label: str = ""
    url: str


class Product(BaseModel):
    """
    Canonical catalog entry. Built by ``catalog.normalizer.normalize`` from a
    spreadsheet row or a scraped page record; every downstream component reads
    this shape only.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str = "Untitled Product"
    code: Optional[str] = None
    sku: Optional[str] = None
    category: Optional[str] = None
    image: Optional[str] = None
    gallery: List[str] = Field(default_factory=list)
    description: Optional[str] = None
    details: Optional[str] = None
    features: List[str] = Field(default_factory=list)
    specs: List[SpecItem] = Field(default_factory=list)
    compliance: List[str] = Field(default_factory=list)
    pdf_url: Optional[str] = Field(None, alias="pdfUrl")
    spec_pdf_url: Optional[str] = Field(None, alias="specPdfUrl")
    price: Optional[float] = None
    assets: List[AssetLink] = Field(default_factory=list)
    source_url: Optional[str] = Field(None, alias="sourceUrl")
    # unrecognised source columns; only the bullet fallback and search read these
    extra: Dict[str, Any] = Field(default_factory=dict)

    @property
    def label(self) -> Optional[str]:
        return self.code or self.sku

    @property
    def document_url(self) -> Optional[str]:
        return self.spec_pdf_url or self.pdf_url


class ClientInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    project_name: Optional[str] = Field(None, alias="projectName")
    client_name: Optional[str] = Field(None, alias="clientName")
    contact_name: Optional[str] = Field(None, alias="contactName")
    contact_email: Optional[str] = Field(None, alias="contactEmail")
    contact_phone: Optional[str] = Field(None, alias="contactPhone")
    date_iso: Optional[str] = Field(None, alias="dateISO")

    def contact_lines(self) -> List[str]:
        return [s.strip() for s in (self.contact_name, self.contact_email, self.contact_phone) if s and s.strip()]


class Section(BaseModel):
    """Named bucket of products; older callers send ``product`` instead of ``products``."""
    id: Optional[str] = None
    title: Optional[str] = None
    product: Optional[Any] = None
    products: List[Any] = Field(default_factory=list)

    def all_items(self) -> List[Any]:
        items = list(self.products)
        if not items and self.product is not None:
            items.append(self.product)
        return items
