from __future__ import annotations

from typing import Any, Dict, Optional


class ApiError(Exception):
    """Client-visible failure with a machine-readable ``error_code``."""

    def __init__(
        self,
        status_code: int,
        error_code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        retry_after_seconds: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self.status_code = status_code
        self.error_code = error_code
        self.message = message
        self.details = details
        self.retry_after_seconds = retry_after_seconds
        self.extra_headers = dict(headers or {})
        super().__init__(message)

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "ok": False,
            "error_code": self.error_code,
            "message": self.message,
        }
        if self.details:
            body["details"] = self.details
        if self.retry_after_seconds is not None:
            body["retry_after_seconds"] = self.retry_after_seconds
        return body

    def to_headers(self) -> Dict[str, str]:
        headers: Dict[str, str] = dict(self.extra_headers)
        if self.retry_after_seconds is not None:
            headers["Retry-After"] = str(self.retry_after_seconds)
        return headers


def not_authenticated() -> ApiError:
    # One body for every denial reason.
    return ApiError(401, "not_authenticated", "Not authenticated")


__all__ = ["ApiError", "not_authenticated"]
