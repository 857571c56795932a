from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from logging.config import dictConfig
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from governance_backend.app.auth.session import USER_ADDRESS_HEADER
from governance_backend.app.cache.refresher import CacheRefresher
from governance_backend.app.cache.scheduler import RefreshScheduler
from governance_backend.app.cache.store import ProposalCacheStore
from governance_backend.app.config import get_settings, safe_error_detail, validate_for_env
from governance_backend.app.db import check_db_connection, ensure_schema
from governance_backend.app.middleware.request_id import RequestIdMiddleware
from governance_backend.app.observability.request_id import get_request_id
from governance_backend.app.reliability.errors import ApiError
from governance_backend.app.routers import auth as auth_router
from governance_backend.app.routers import cache as cache_router
from governance_backend.app.security.headers import apply_security_headers, is_local_host
from governance_backend.app.utils.request_helpers import is_https_request

_settings = get_settings()

LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        }
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "default",
        }
    },
    "root": {
        "level": _settings.log_level.upper(),
        "handlers": ["console"],
    },
}


dictConfig(LOGGING_CONFIG)
logger = logging.getLogger(__name__)

APP_VERSION = "2026.10.0"
_start_time = time.monotonic()

_settings_summary = validate_for_env(_settings)
logger.info(
    "[CFG] loaded",
    extra={
        "env": _settings_summary.get("env"),
        "ledger_configured": _settings_summary.get("ledger_configured"),
        "session_duration_hours": _settings_summary.get("session_duration_hours"),
        "cache_refresh_interval_seconds": _settings_summary.get("cache_refresh_interval_seconds"),
        "issues": _settings_summary.get("issues"),
    },
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if _settings.ledger_database_url:
        ensure_schema()
    scheduler = RefreshScheduler(
        CacheRefresher(cache_router.store_dependency()),
        interval_seconds=_settings.cache_refresh_interval_seconds,
        timeout_seconds=_settings.cache_refresh_timeout_seconds,
    )
    app.state.refresh_scheduler = scheduler
    scheduler.start()
    try:
        yield
    finally:
        await scheduler.stop()


app = FastAPI(title="Governance Wallet Auth & Proposal Cache", version=APP_VERSION, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins_list(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", USER_ADDRESS_HEADER, "X-Request-ID"],
)
app.add_middleware(RequestIdMiddleware)


@app.middleware("http")
async def security_headers_middleware(request: Request, call_next):
    response = await call_next(request)
    apply_security_headers(
        response,
        is_https=is_https_request(request),
        is_non_local=not is_local_host(request.headers.get("host")),
    )
    return response


app.include_router(auth_router.router)
app.include_router(cache_router.router)


@app.get("/health")
async def health() -> Dict[str, Any]:
    return {
        "status": "ok",
        "version": APP_VERSION,
        "uptime_seconds": int(time.monotonic() - _start_time),
    }


def _redis_status() -> Dict[str, Any]:
    try:
        return {"ok": cache_router.store_dependency().ping()}
    except Exception:
        return {"ok": False, "reason": "redis_unreachable"}


@app.get("/ready")
async def ready() -> JSONResponse:
    summary = validate_for_env(_settings)
    db_status: Dict[str, Any] = {"configured": bool(_settings.ledger_database_url), "ok": False}
    if db_status["configured"]:
        db_ok, db_reason = check_db_connection()
        db_status["ok"] = db_ok
        if db_reason:
            db_status["reason"] = db_reason
    redis_status = _redis_status()
    is_ready = db_status["ok"] and redis_status["ok"] and not summary["issues"]
    return JSONResponse(
        status_code=200 if is_ready else 503,
        content={
            "status": "ready" if is_ready else "not_ready",
            "env": summary["env"],
            "issues": summary["issues"],
            "db": db_status,
            "redis": redis_status,
            "version": APP_VERSION,
        },
    )


@app.exception_handler(ApiError)
async def handle_api_error(request: Request, exc: ApiError) -> JSONResponse:  # noqa: D401
    return JSONResponse(status_code=exc.status_code, content=exc.to_body(), headers=exc.to_headers())


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    content = {"ok": False, "error_code": "invalid_request", "message": "Request validation failed"}
    return JSONResponse(status_code=400, content=content)


@app.exception_handler(Exception)
async def handle_unhandled_exception(request: Request, exc: Exception) -> JSONResponse:  # noqa: BLE001
    request_id = get_request_id(request)
    logger.exception("Unhandled error in request", extra={"request_id": request_id})
    content = {"ok": False, "error_code": "internal_error", "message": "Internal server error"}
    if _settings.debug_errors == 1:
        content["detail"] = safe_error_detail(exc)
    return JSONResponse(status_code=500, content=content, headers={"X-Request-ID": request_id})
