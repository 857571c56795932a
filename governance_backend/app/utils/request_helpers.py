"""Request helper utilities for body parsing and proxy-aware scheme detection."""

from __future__ import annotations

import json
from typing import Any, Dict

from fastapi import Request

from governance_backend.app.reliability.errors import ApiError


def get_request_scheme(request: Request) -> str:
    """
    Get the actual request scheme, respecting proxy headers.

    Behind a reverse proxy the backend sees http while the client connection
    is https, so X-Forwarded-Proto wins when present.
    """
    forwarded_proto = request.headers.get("x-forwarded-proto")
    if forwarded_proto:
        return forwarded_proto.split(",")[0].lower().strip()
    return request.url.scheme


def is_https_request(request: Request) -> bool:
    return get_request_scheme(request) == "https"


async def read_json_object(request: Request, max_bytes: int) -> Dict[str, Any]:
    """
    Parse the request body as a JSON object.

    Raises ApiError 413 when the body exceeds ``max_bytes`` and 400 when it is
    not valid JSON or not an object.
    """
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > max_bytes:
        raise ApiError(413, "payload_too_large", "Request body too large")
    raw = await request.body()
    if len(raw) > max_bytes:
        raise ApiError(413, "payload_too_large", "Request body too large")
    try:
        data = json.loads(raw or b"null")
    except (ValueError, UnicodeDecodeError):
        raise ApiError(400, "invalid_json", "Malformed JSON body") from None
    if not isinstance(data, dict):
        raise ApiError(400, "invalid_json", "Request body must be a JSON object")
    return data


__all__ = ["get_request_scheme", "is_https_request", "read_json_object"]
