#=================================================================
# catalog_sync/main_app.py
# FastAPI application entry-point.
#   uvicorn catalog_sync.main_app:app
#=================================================================

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from catalog_sync.config import settings
from catalog_sync.errors import CatalogSyncError
from catalog_sync.logging_filters import install_log_filters
from catalog_sync.routes import router as api_router

# --- FastAPI instance ---
app = FastAPI(
    title="Britpart WooCommerce Catalog Sync",
    description="Mirrors the Britpart category tree into WooCommerce and reconciles product prices.",
)

# --- Logging setup (console, INFO level) ---
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s | %(message)s"
)
logger = logging.getLogger("uvicorn.error")
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
install_log_filters()

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------- Include routers ----------------
app.include_router(api_router)  # /api/*

# --- Root endpoint ---
@app.get("/")
async def home():
    return {"status": "running", "service": "Britpart WooCommerce Catalog Sync"}

# --- Error handlers ---
@app.exception_handler(CatalogSyncError)
async def catalog_sync_error_handler(request: Request, exc: CatalogSyncError):
    logger.warning("Request failed: %s", exc)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

# Keeps the full stack trace in logs
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled error", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"ok": False, "error": f"Sync failed: {str(exc)}"},
    )
