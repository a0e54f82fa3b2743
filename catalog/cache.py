# catalog/cache.py
"""Process-wide product list: loaded once, rebuilt wholesale on refresh."""
from __future__ import annotations

import threading
from typing import List, Optional

from catalog.logging_config import get_logger
from catalog.models import Product
from catalog.normalizer import normalize_rows

log = get_logger("cache")


class ProductCache:
    def __init__(self, source):
        self.source = source
        self._lock = threading.Lock()
        self._products: Optional[List[Product]] = None

    @property
    def loaded(self) -> bool:
        return self._products is not None

    def get(self) -> List[Product]:
        with self._lock:
            if self._products is None:
                self._products = self._load()
            return list(self._products)

    def refresh(self) -> List[Product]:
        # a failed refresh leaves the previous list in place
        with self._lock:
            self._products = self._load()
            return list(self._products)

    def _load(self) -> List[Product]:
        rows = self.source.fetch_rows()
        products = normalize_rows(rows)
        log.info("loaded %d products from %r", len(products), self.source)
        return products
