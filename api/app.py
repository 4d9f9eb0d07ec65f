"""
FastAPI application factory.

Usage:
    python -m api.app                                  # Dev server on port 8000
    APP_WORKBOOK_PATH=/data/fit_market.xlsx python -m api.app

OpenAPI docs available at http://localhost:8000/docs after starting.

Logging: text by default, newline-delimited JSON when APP_LOG_FORMAT=json.
CORS origins are configurable via APP_CORS_ORIGINS.
"""

import json
import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api import dependencies
from api.routes import cache, columns, entities, reports, schemas
from extraction.errors import UnknownSchemaError
from pipeline.data_manager import EntityDataManager
from pipeline.sources import SourceUnavailableError
from utils.config import AppConfig

# ── Configuration ─────────────────────────────────────────────────────────────
_cfg = AppConfig.from_env()

# ── Structured JSON logging ──────────────────────────────────────────────────


class _JsonFormatter(logging.Formatter):
    """Emit log records as newline-delimited JSON."""

    def format(self, record: logging.LogRecord) -> str:
        data: dict = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        # Merge extra fields added via logger.info("...", extra={...})
        for key in ("method", "path", "status", "duration_ms", "request_id"):
            if hasattr(record, key):
                data[key] = getattr(record, key)
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(data)


_logger = logging.getLogger("onegov_fit_api")
_handler = logging.StreamHandler()
if _cfg.log_format == "json":
    _handler.setFormatter(_JsonFormatter())
else:
    _handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
    )
logging.basicConfig(handlers=[_handler], level=logging.INFO, force=True)

_SLOW_REQUEST_MS = 500


def _error(status_code: int, error: str, detail: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "detail": detail, "status_code": status_code},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log where entity data will come from; loading itself is lazy."""
    manager = dependencies.get_data_manager()
    _logger.info("API starting (entity cache ttl=%ss, state=%s)",
                 manager.ttl_seconds, manager.state.value)
    yield


def create_app(manager: EntityDataManager | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        manager: Use this data manager instead of one built from the
            environment (useful for testing).

    Returns:
        Configured FastAPI application instance.
    """
    if manager is not None:
        dependencies.configure(manager=manager)

    app = FastAPI(
        title="OneGov FIT Market API",
        summary="Schema-driven extraction and reporting over the FIT Market entity sheets.",
        description=(
            "## OneGov FIT Market API\n\n"
            "Serves agency, OEM and vendor rows from the FIT Market spreadsheet. "
            "Each row carries ~22 JSON columns of varying shape; a schema registry "
            "maps every column to one of six structural patterns and the extraction "
            "engine turns each value into a uniform view.\n\n"
            "### Key concepts\n"
            "- **Amounts** are in dollars.\n"
            "- **Fiscal year** keys are four-digit strings (e.g. `\"2024\"`).\n"
            "- **Patterns**: simple totals, summary with map, summary with array, "
            "nested by year, nested by entity, flat profile.\n\n"
            "### Data freshness\n"
            "Entity data is cached for `APP_CACHE_TTL_SECONDS` (default 120s). "
            "`POST /api/v1/cache/refresh` reloads immediately."
        ),
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_tags=[
            {"name": "schemas", "description": "The JSON column schema registry."},
            {"name": "columns", "description": "Extract, detect and validate posted column values."},
            {"name": "entities", "description": "Agencies, OEMs and vendors with their columns."},
            {"name": "reports", "description": "Dashboard, table, top-N and trend views."},
            {"name": "cache", "description": "Entity cache status and refresh."},
            {"name": "meta", "description": "Health check."},
        ],
    )

    # ── CORS middleware ───────────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cfg.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "HEAD", "OPTIONS"],
        allow_headers=["*"],
    )

    # ── Request logging middleware ───────────────────────────────────────────

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log each request with a short request id."""
        request_id = str(uuid.uuid4())[:8]
        start = time.monotonic()
        path = request.url.path

        response = await call_next(request)
        duration_ms = (time.monotonic() - start) * 1000
        response.headers["X-Request-ID"] = request_id

        if _cfg.log_format == "json":
            _logger.info(
                "request",
                extra={
                    "method": request.method,
                    "path": path,
                    "status": response.status_code,
                    "duration_ms": round(duration_ms, 1),
                    "request_id": request_id,
                },
            )
        else:
            _logger.info(
                "method=%s path=%s status=%d duration_ms=%.1f rid=%s",
                request.method, path, response.status_code, duration_ms, request_id,
            )
        if duration_ms > _SLOW_REQUEST_MS:
            _logger.warning(
                "slow_request method=%s path=%s duration_ms=%.1f",
                request.method, path, duration_ms,
            )
        return response

    # ── Error handlers ────────────────────────────────────────────────────────

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Catch unhandled exceptions and return JSON instead of HTML traceback."""
        _logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(500, "Internal server error", str(exc))

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return _error(400, "Bad request", str(exc))

    @app.exception_handler(UnknownSchemaError)
    async def unknown_schema_handler(request: Request, exc: UnknownSchemaError):
        return _error(404, "Not found", str(exc))

    @app.exception_handler(SourceUnavailableError)
    async def source_unavailable_handler(request: Request, exc: SourceUnavailableError):
        _logger.error("Entity data unavailable: %s", exc)
        return _error(503, "Entity data unavailable", str(exc))

    # ── Health check ──────────────────────────────────────────────────────────

    @app.get("/health", tags=["meta"], summary="Health check")
    def health():
        """Return 200 with the entity cache state.

        An empty cache is still healthy; a cache whose last load failed with
        nothing to fall back on answers 503.
        """
        status = dependencies.get_data_manager().status()
        body = {
            "status": "ok",
            "cache_state": status["state"],
            "entity_counts": status["entity_counts"],
            "loaded_at": status["loaded_at"],
        }
        if status["last_error"] and not status["has_data"]:
            body.update(status="degraded", error=status["last_error"])
            return JSONResponse(status_code=503, content=body)
        return body

    # ── Register routers ──────────────────────────────────────────────────────

    prefix = "/api/v1"
    app.include_router(schemas.router,  prefix=prefix)
    app.include_router(columns.router,  prefix=prefix)
    app.include_router(entities.router, prefix=prefix)
    app.include_router(reports.router,  prefix=prefix)
    app.include_router(cache.router,    prefix=prefix)

    return app


# Singleton instance for uvicorn
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.app:app",
        host=_cfg.api_host,
        port=_cfg.api_port,
        reload=True,
        log_level="info",
    )
