"""Blog CMS API

Reader-facing post feed plus the admin authoring API, backed by Azure Blob
Storage.
"""

import logging
import time
from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from blog_api.config import get_settings
from blog_api.middleware import (
    RequestIDMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from blog_api.routers import posts, uploads
from blog_api.services.post_storage import check_storage_connectivity

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)

# Health check cache: (result_dict, timestamp)
_health_cache: tuple[dict[str, Any], float] | None = None
_HEALTH_CACHE_TTL = 30  # seconds


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown."""
    logger.info("Starting blog API (%s)", settings.environment)
    yield


app = FastAPI(
    title="Blog CMS API",
    description="Public blog feed and admin post authoring",
    version="0.1.0",
    lifespan=lifespan,
)

# Added innermost-first: the request ID is set before logging reads it
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestIDMiddleware)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "X-Request-ID"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report malformed requests as 400 with a per-field error list."""
    errors = [
        {
            "field": ".".join(str(part) for part in err["loc"] if part != "body")
            or "body",
            "message": err["msg"],
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400, content={"message": "Validation error", "errors": errors}
    )


# Routers
app.include_router(posts.router, prefix="/api")
app.include_router(uploads.router, prefix="/api")
app.include_router(uploads.media_router)


def _check_config() -> str:
    """Verify required configuration is loaded. Returns 'ok' or 'fail'."""
    s = get_settings()
    has_account = s.azure_storage_account or s.azure_storage_connection_string
    if has_account and s.azure_posts_container and s.azure_media_container:
        return "ok"
    return "fail"


def _run_health_checks() -> dict[str, Any]:
    """Run all health checks, returning the full response body."""
    global _health_cache
    now = time.time()
    if _health_cache is not None:
        cached_result, cached_at = _health_cache
        if now - cached_at < _HEALTH_CACHE_TTL:
            return cached_result

    config_status = _check_config()
    storage_status = "ok" if check_storage_connectivity() else "fail"

    checks = {"config": config_status, "storage": storage_status}
    failed = [k for k, v in checks.items() if v != "ok"]

    if failed:
        overall = "degraded"
        logger.warning("Health check degraded — failed: %s", ", ".join(failed))
    else:
        overall = "ok"

    result: dict[str, Any] = {
        "status": overall,
        "service": "blog-cms-api",
        "version": "0.1.0",
        "checks": checks,
    }
    _health_cache = (result, now)
    return result


@app.get("/api/health")
async def health_check() -> JSONResponse:
    """Health check verifying service dependencies."""
    result = _run_health_checks()
    status_code = 200 if result["status"] == "ok" else 503
    return JSONResponse(content=result, status_code=status_code)
