# web/routes_products.py
"""Product listing backed by the process-wide ProductCache."""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from catalog.cache import ProductCache
from catalog.config import get_settings
from catalog.errors import SourceUnavailable
from catalog.logging_config import get_logger
from catalog.normalizer import filter_products
from catalog.sources import make_row_source

log = get_logger("routes.products")

router = APIRouter(prefix="/api", tags=["products"])


@lru_cache(maxsize=1)
def get_product_cache() -> ProductCache:
    """Built on first use from the configured row source."""
    return ProductCache(make_row_source(get_settings()))


@router.get("/products", summary="List catalog products")
async def list_products(
    q: Optional[str] = Query(None, description="Case-insensitive search text"),
    category: Optional[str] = Query(None),
    refresh: bool = Query(False, description="Re-read the row source before answering"),
    cache: ProductCache = Depends(get_product_cache),
):
    try:
        products = await run_in_threadpool(cache.refresh if refresh else cache.get)
    except SourceUnavailable as e:
        log.error("product source unavailable: %s", e)
        return JSONResponse(status_code=502, content={"error": str(e)})

    matches = filter_products(products, q=q, category=category)
    return {
        "count": len(matches),
        "total": len(products),
        "products": [p.model_dump(mode="json", by_alias=True) for p in matches],
    }
