"""Proposal cache maintenance endpoints."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from governance_backend.app.auth.session import AuthenticatedIdentity
from governance_backend.app.cache.invalidation import CacheInvalidator, InvalidationResult, InvalidationTarget
from governance_backend.app.cache.refresher import CacheRefresher
from governance_backend.app.cache.store import ProposalCacheStore
from governance_backend.app.config import get_settings
from governance_backend.app.deps.identity import identity_dependency, require_identity
from governance_backend.app.reliability.circuit import OPEN, CircuitBreaker, CircuitPolicy
from governance_backend.app.reliability.errors import ApiError, not_authenticated
from governance_backend.app.utils.request_helpers import read_json_object

router = APIRouter(prefix="/api", tags=["cache"])
logger = logging.getLogger(__name__)

SERVICE_NAME = "invalidate-cache"
NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}
SLOW_REQUEST_MS = 1000

_store: Optional[ProposalCacheStore] = None
_breaker: Optional[CircuitBreaker] = None


class InvalidateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: InvalidationTarget
    target_index: Optional[int] = Field(None, alias="targetIndex", ge=0)
    action: Optional[str] = None
    new_index: Optional[int] = Field(None, alias="newIndex", ge=0)


def store_dependency() -> ProposalCacheStore:
    global _store
    if _store is None:
        _store = ProposalCacheStore()
    return _store


def get_breaker() -> CircuitBreaker:
    global _breaker
    if _breaker is None:
        s = get_settings()
        _breaker = CircuitBreaker(
            CircuitPolicy(
                failure_threshold=s.invalidate_circuit_failures,
                window_seconds=s.invalidate_circuit_window_seconds,
                open_seconds=s.invalidate_circuit_open_seconds,
            )
        )
    return _breaker


def invalidation_guard(
    identity: Optional[AuthenticatedIdentity] = Depends(identity_dependency),
) -> Optional[AuthenticatedIdentity]:
    if identity is None and get_settings().invalidation_requires_auth:
        raise not_authenticated()
    return identity


def _parse_request(body: Dict[str, Any]) -> InvalidateRequest:
    if body.get("type") not in {t.value for t in InvalidationTarget}:
        raise ApiError(
            400,
            "invalid_type",
            'Invalid type parameter. Must be "operations", "research", or "all"',
            headers=NO_CACHE_HEADERS,
        )
    try:
        return InvalidateRequest.model_validate(body)
    except ValidationError:
        raise ApiError(400, "invalid_request", "Invalid invalidation request", headers=NO_CACHE_HEADERS) from None


def _ok(result: InvalidationResult) -> JSONResponse:
    return JSONResponse(
        status_code=200,
        content={
            "success": True,
            "message": result.message,
            "deleted": result.deleted,
            "timestamp": int(time.time() * 1000),
        },
        headers=NO_CACHE_HEADERS,
    )


@router.post("/invalidate-cache")
async def invalidate_cache(
    request: Request,
    _identity: Optional[AuthenticatedIdentity] = Depends(invalidation_guard),
    store: ProposalCacheStore = Depends(store_dependency),
) -> JSONResponse:
    breaker = get_breaker()
    is_open, retry_after = breaker.is_open(SERVICE_NAME)
    if is_open:
        raise ApiError(
            503,
            "circuit_open",
            "Service temporarily unavailable",
            retry_after_seconds=retry_after,
            headers={**NO_CACHE_HEADERS, "X-Circuit-State": OPEN},
        )

    payload = _parse_request(await read_json_object(request, get_settings().max_body_bytes))
    invalidator = CacheInvalidator(store)
    target = payload.type
    started = time.monotonic()
    success = False
    try:
        if payload.action == "newProposal" and payload.new_index is not None:
            try:
                result = await asyncio.to_thread(invalidator.register_new_proposal, target, payload.new_index)
                success = True
                return _ok(result)
            except Exception:
                logger.exception("[CACHE] new proposal handling failed; falling back to standard invalidation")

        if payload.target_index is not None:
            result = await asyncio.to_thread(invalidator.invalidate_proposal, target, payload.target_index)
        else:
            result = await asyncio.to_thread(invalidator.invalidate_all, target)
        success = True
        return _ok(result)
    except Exception:
        logger.exception("[CACHE] invalidation failed", extra={"target": target.value})
        raise ApiError(500, "invalidation_failed", "Failed to invalidate cache", headers=NO_CACHE_HEADERS) from None
    finally:
        if success:
            breaker.record_success(SERVICE_NAME)
        else:
            breaker.record_failure(SERVICE_NAME)
        duration_ms = int((time.monotonic() - started) * 1000)
        if duration_ms > SLOW_REQUEST_MS:
            logger.warning("[CACHE] slow invalidation", extra={"duration_ms": duration_ms})


@router.post("/cache/refresh")
async def refresh_cache(
    _identity: AuthenticatedIdentity = Depends(require_identity),
    store: ProposalCacheStore = Depends(store_dependency),
) -> Dict[str, Any]:
    report = await asyncio.to_thread(CacheRefresher(store).refresh)
    return report.to_dict()
