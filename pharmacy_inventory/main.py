import json

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from pharmacy_inventory.core.config import settings
from pharmacy_inventory.core.observability import (
    http_exception_handler,
    inventory_exception_handler,
    logger,
    request_logging_middleware,
    setup_observability,
    unhandled_exception_handler,
    validation_exception_handler,
)
from pharmacy_inventory.db.session import engine
from pharmacy_inventory.routers import catalog, inventory, movements, reports
from pharmacy_inventory.services.errors import InventoryError

app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    description=(
        "Backend API for the hospital pharmacy inventory.\n\n"
        "Quick test flow:\n"
        "1. Seed the catalog with `POST /api/inventory/medications` and `POST /api/inventory/staff`.\n"
        "2. Register receipts with `POST /api/inventory/movements/entries`.\n"
        "3. Dispense with `POST /api/inventory/movements/exits` (lots are consumed FEFO).\n"
        "4. Check `/api/inventory/reports/expiry` and `/api/inventory/reports/history`."
    ),
    swagger_ui_parameters={
        "displayRequestDuration": True,
        "defaultModelsExpandDepth": 1,
    },
    openapi_tags=[
        {"name": "health", "description": "Service status and quick links."},
        {"name": "catalog", "description": "Medication and staff catalogs."},
        {"name": "inventory", "description": "Global stock and FEFO lot suggestions."},
        {"name": "movements", "description": "Receipts, FEFO exits and receipt edits."},
        {"name": "reports", "description": "Expiry semaphore, movement history and PDF export."},
    ],
)

setup_observability()
app.middleware("http")(request_logging_middleware)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(InventoryError, inventory_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

_DEV_ENVS = {"dev", "development", "test", "staging"}
_LOCALHOST_ORIGIN_REGEX = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"


def _cors_options() -> dict:
    origins = settings.cors_origins or ["http://localhost:5173"]
    wildcard = "*" in origins
    origin_regex = settings.cors_origin_regex
    if origin_regex is None and settings.env.lower().strip() in _DEV_ENVS:
        # Ward dashboards run on dev servers with changing localhost ports.
        origin_regex = _LOCALHOST_ORIGIN_REGEX
    return {
        "allow_origins": ["*"] if wildcard else origins,
        "allow_origin_regex": origin_regex,
        "allow_credentials": not wildcard,
        "allow_methods": ["GET", "POST", "PUT", "OPTIONS"],
        "allow_headers": ["*"],
        "expose_headers": ["X-Request-ID", "Content-Disposition"],
    }


app.add_middleware(CORSMiddleware, **_cors_options())

app.include_router(catalog.router)
app.include_router(inventory.router)
app.include_router(movements.router)
app.include_router(reports.router)


@app.get("/", tags=["health"])
def root():
    return {
        "app": settings.app_name,
        "docs": "/docs",
        "redoc": "/redoc",
        "health": "/health",
        "ready": "/ready",
    }


@app.get("/health", tags=["health"])
def health():
    return {"ok": True}


@app.get("/ready", tags=["health"])
def ready():
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.warning(json.dumps({"event": "readiness_failed", "error": str(exc)}))
        return {"ok": False, "database": "unavailable"}
    return {"ok": True, "database": "ok"}
