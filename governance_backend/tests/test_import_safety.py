def test_config_imports():
    import governance_backend.app.config  # noqa: F401


def test_main_imports():
    from governance_backend.app.main import app  # noqa: F401


def test_routes_registered():
    from governance_backend.app.main import app

    paths = {route.path for route in app.routes}
    for path in ("/api/verify", "/api/auth/session", "/api/invalidate-cache", "/api/cache/refresh", "/health", "/ready"):
        assert path in paths


def test_imports_without_database_or_redis(monkeypatch):
    monkeypatch.delenv("SIGNATURE_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    from governance_backend.app.config import get_settings

    get_settings.cache_clear()
    assert get_settings().ledger_database_url is None
