"""
Request ID middleware for observability.

Generates and propagates X-Request-ID headers for all requests.
Logs one line per request with method, path, status, duration_ms, request_id.
Never logs request bodies or the X-User-Address header.
"""

import logging
import re
import time
import uuid
from typing import Optional

logger = logging.getLogger(__name__)

# Safe pattern for incoming X-Request-ID: hex/uuid-ish, max 64 chars
_SAFE_REQUEST_ID_PATTERN = re.compile(r"^[a-fA-F0-9\-]{1,64}$")


class RequestIdMiddleware:
    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        start_time = time.monotonic()
        request_id = self._request_id_from(scope)
        scope.setdefault("state", {})
        scope["state"]["request_id"] = request_id

        status_code: Optional[int] = None

        async def send_wrapper(message):
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 0)
                headers = [h for h in message.get("headers", []) if h[0].lower() != b"x-request-id"]
                headers.append((b"x-request-id", request_id.encode("utf-8")))
                message = {**message, "headers": headers}
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            logger.info(
                "[HTTP] request",
                extra={
                    "method": scope.get("method", "?"),
                    "path": scope.get("path", "?"),
                    "status": status_code,
                    "duration_ms": int((time.monotonic() - start_time) * 1000),
                    "request_id": request_id,
                },
            )

    @staticmethod
    def _request_id_from(scope) -> str:
        """Reuse an inbound X-Request-ID only if it matches the safe pattern."""
        for name, value in scope.get("headers", []):
            if name.lower() == b"x-request-id":
                existing = value.decode("utf-8", errors="replace").strip()
                if existing and _SAFE_REQUEST_ID_PATTERN.match(existing):
                    return existing
        return str(uuid.uuid4())
