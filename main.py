# main.py
# Product Catalog – Browser & Deck Export API

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from dotenv import load_dotenv

# Load environment variables (.env locally; overridden by App Settings in production)
load_dotenv(override=True)

from catalog.config import get_settings  # noqa: E402
from catalog.errors import CatalogError, NoProductsSelected, SourceUnavailable  # noqa: E402
from catalog.logging_config import get_logger, setup_logging  # noqa: E402
from deck.routes_export import router as export_router  # noqa: E402
from web.routes_products import router as products_router  # noqa: E402
from web.routes_proxy import router as proxy_router  # noqa: E402
from web.routes_scrape import router as scrape_router  # noqa: E402

setup_logging(get_settings().log_level)
log = get_logger("app")

app = FastAPI(title="Product Catalog – Browser & Deck Export API")

# CORS (open: the browser UI and the proxy are used cross-origin)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_headers=["*"],
    allow_methods=["*"],
    expose_headers=["Content-Disposition", "X-Slide-Count", "X-Skipped-Products"],
)

app.include_router(proxy_router)
app.include_router(products_router)
app.include_router(scrape_router)
app.include_router(export_router)


# ---------- Errors that escape a route ----------
@app.exception_handler(CatalogError)
async def catalog_error_handler(request: Request, exc: CatalogError):
    if isinstance(exc, NoProductsSelected):
        status = 400
    elif isinstance(exc, SourceUnavailable):
        status = 502
    else:
        status = 500
    log.error("%s on %s: %s", type(exc).__name__, request.url.path, exc)
    return JSONResponse(status_code=status, content={"error": str(exc)})


# ---------- Health ----------
@app.get("/healthz")
def healthz():
    return {"ok": True}


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/api/ping")
def ping():
    return {"ok": True, "message": "API is deployed and reachable."}


# ---------- Endpoints ----------
@app.get("/")
def root():
    return {
        "status": "ok",
        "message": "Product Catalog – Browser & Deck Export API",
        "endpoints": [
            "/api/products (GET)",
            "/api/scrape (GET)",
            "/api/file-proxy (GET, HEAD, OPTIONS)",
            "/api/export/pptx (POST)",
            "/api/export/pdf (POST)",
            "/api/ping (GET)",
            "/healthz (GET)",
        ],
    }
