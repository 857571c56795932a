from __future__ import annotations

from typing import Dict

_LOCAL_HOSTS = {"localhost", "127.0.0.1", "::1", "testserver"}


def security_headers(*, is_https: bool, is_non_local: bool) -> Dict[str, str]:
    """Headers every API response carries."""
    headers: Dict[str, str] = {
        "X-Content-Type-Options": "nosniff",
        "Referrer-Policy": "strict-origin-when-cross-origin",
        "X-Frame-Options": "DENY",
        "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
    }
    if is_https and is_non_local:
        headers["Strict-Transport-Security"] = "max-age=15552000; includeSubDomains"
    return headers


def is_local_host(host: str | None) -> bool:
    return (host or "").split(":")[0].lower() in _LOCAL_HOSTS


def apply_security_headers(response, *, is_https: bool, is_non_local: bool) -> None:
    """Set security headers; an explicit Cache-Control from the route is kept."""
    for key, value in security_headers(is_https=is_https, is_non_local=is_non_local).items():
        response.headers[key] = value
    if "cache-control" not in response.headers:
        response.headers["Cache-Control"] = "no-store"


__all__ = ["security_headers", "apply_security_headers", "is_local_host"]
