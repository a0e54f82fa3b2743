# deck/schemas.py
import json
from typing import Any, Dict, List

from pydantic import BaseModel, Field

from catalog.models import ClientInfo, Section


class ExportRequest(BaseModel):
    # Raw rows as listed by /api/products (or scraped records); normalised server-side.
    products: List[Dict[str, Any]] = Field(
        default_factory=list,
        examples=[[{
            "name": "Wall-hung basin 600",
            "code": "WB-600",
            "image": "https://example.com/img/wb-600.jpg",
            "specs": "Width: 600 mm\nDepth: 420 mm\nMaterial: Vitreous china",
            "specPdfUrl": "https://example.com/docs/wb-600-spec.pdf",
        }]],
    )
    sections: List[Section] = Field(default_factory=list)
    client: ClientInfo = Field(default_factory=ClientInfo)

    @property
    def approx_size_bytes(self) -> int:
        try:
            return len(json.dumps(self.model_dump(mode="json", by_alias=True), default=str))
        except (TypeError, ValueError):
            return 0

    def has_selection(self) -> bool:
        return bool(self.products) or any(s.all_items() for s in self.sections)

