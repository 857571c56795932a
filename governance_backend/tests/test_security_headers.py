from fastapi import Response

from governance_backend.app.security.headers import apply_security_headers, is_local_host, security_headers


def test_security_headers_required_keys_present():
    hdrs = security_headers(is_https=False, is_non_local=False)
    for key in ["X-Content-Type-Options", "Referrer-Policy", "X-Frame-Options", "Permissions-Policy"]:
        assert key in hdrs
    assert hdrs["X-Content-Type-Options"] == "nosniff"


def test_hsts_only_https_and_non_local():
    assert "Strict-Transport-Security" not in security_headers(is_https=False, is_non_local=True)
    assert "Strict-Transport-Security" not in security_headers(is_https=True, is_non_local=False)
    hdrs_prod = security_headers(is_https=True, is_non_local=True)
    assert hdrs_prod.get("Strict-Transport-Security") == "max-age=15552000; includeSubDomains"


def test_apply_keeps_route_cache_control():
    resp = Response()
    resp.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
    apply_security_headers(resp, is_https=False, is_non_local=False)
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert resp.headers["Cache-Control"] == "no-cache, no-store, must-revalidate"


def test_apply_defaults_cache_control():
    resp = Response()
    apply_security_headers(resp, is_https=False, is_non_local=False)
    assert resp.headers["Cache-Control"] == "no-store"


def test_local_hosts():
    assert is_local_host("localhost:8000")
    assert is_local_host("127.0.0.1")
    assert not is_local_host("gov.example.org")
    assert is_local_host(None) is False
