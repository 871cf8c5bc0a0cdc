"""
api/main.py -- FastAPI application for the remediation engine.

Serves the pure core operations (scan differencing, fix planning) to CI
systems that would rather POST two scan documents than install the CLI.
Nothing here touches a working tree; applying fixes stays a CLI command.

Run with:      uvicorn api.main:app --reload

Request path, first to last:
  TrustedHostMiddleware  Host header must name this server
  CORSMiddleware         browser origins allowed to call the API
  SlowAPIMiddleware      per-route limits declared with @limiter.limit()
  log_requests           one access log line per request
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.remediation import router as remediation_router
from core.config import get_settings
from core.errors import SnapshotError

VERSION = "0.1.0"

logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("remediator.api")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Load settings once at startup.

    A JF_BRANCH_NAME_TEMPLATE without ${BRANCH_NAME_HASH} fails here, before
    the server accepts its first fix-plan request.
    """
    settings = get_settings()
    app.state.settings = settings
    logger.info(
        "Remediation API ready (allowed licenses: %s, branch template: %s)",
        ", ".join(settings.allowed_licenses) or "none",
        settings.branch_name_template or "default",
    )
    yield
    logger.info("Remediation API stopped")


app = FastAPI(
    title="Vulnerability Remediation API",
    description="Finds newly introduced vulnerabilities between two scans and plans minimal fix versions.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware (add_middleware order is the order a request meets them)
# ---------------------------------------------------------------------------

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=["localhost", "127.0.0.1", "*.localhost", "testserver"],
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost", "http://localhost:3000", "http://127.0.0.1"],
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type"],
    max_age=3600,
)
app.add_middleware(SlowAPIMiddleware)
app.state.limiter = limiter


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    logger.info(
        "%s %s -> %d in %.1fms (%s)",
        request.method,
        request.url.path,
        response.status_code,
        (time.perf_counter() - start) * 1000,
        request.client.host if request.client else "unknown",
    )
    return response


app.include_router(remediation_router, prefix="/api/v1", tags=["Remediation"])


# ---------------------------------------------------------------------------
# Errors -- every failure leaves as {"error": {"code", "message", "detail"}}
# ---------------------------------------------------------------------------


def _error_response(status_code: int, code: str, message: str, detail: Optional[str] = None) -> JSONResponse:
    body = ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail))
    return JSONResponse(status_code=status_code, content=body.model_dump())


@app.exception_handler(SnapshotError)
async def snapshot_error_handler(request: Request, exc: SnapshotError) -> JSONResponse:
    """A posted scan document that cannot be decoded is the client's fault: 400."""
    return _error_response(
        400,
        "invalid_snapshot",
        f"The '{exc.source}' snapshot could not be decoded.",
        exc.reason,
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    response = _error_response(429, "rate_limited", "Too many requests.", str(exc))
    response.headers["Retry-After"] = str(int(getattr(exc, "retry_after", 60)))
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error_response(422, "validation_error", "Request validation failed.", str(exc.errors()))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Unknown routes and wrong methods get the same envelope as every other error."""
    return _error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log the traceback; the client only learns that something broke."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(500, "internal_error", "An unexpected error occurred.")


@app.get("/api/v1/health", tags=["Health"])
async def health() -> HealthResponse:
    """Liveness check. Not rate limited."""
    return HealthResponse(version=VERSION)
