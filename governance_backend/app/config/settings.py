from __future__ import annotations

import functools
import json
from typing import Annotated, Any, Dict, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    # App / env
    app_env: str = Field("dev", alias="APP_ENV")
    debug_errors: int = Field(0, alias="DEBUG_ERRORS")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    cors_origins: Annotated[List[str], NoDecode] = Field(default_factory=list, alias="CORS_ORIGINS")
    identity_hash_salt: str = Field("dev-salt", alias="IDENTITY_HASH_SALT")
    max_body_bytes: int = Field(64000, alias="MAX_BODY_BYTES")

    # Signature ledger (Postgres)
    signature_database_url: Optional[str] = Field(None, alias="SIGNATURE_DATABASE_URL")
    database_url: Optional[str] = Field(None, alias="DATABASE_URL")
    db_connect_timeout_seconds: int = Field(2, alias="DB_CONNECT_TIMEOUT_SECONDS")

    # Sign-in sessions
    auth_session_duration_hours: int = Field(24, alias="AUTH_SESSION_DURATION_HOURS")
    sign_in_primary_type: str = Field("SignIn", alias="SIGN_IN_PRIMARY_TYPE")

    # Proposal cache (Redis)
    redis_url: str = Field("redis://localhost:6379/0", alias="REDIS_URL")
    redis_socket_timeout_seconds: int = Field(5, alias="REDIS_SOCKET_TIMEOUT_SECONDS")
    cache_refresh_interval_seconds: int = Field(0, alias="CACHE_REFRESH_INTERVAL_SECONDS")
    cache_refresh_timeout_seconds: int = Field(30, alias="CACHE_REFRESH_TIMEOUT_SECONDS")

    # Manual invalidation endpoint
    invalidate_require_auth: int = Field(1, alias="INVALIDATE_REQUIRE_AUTH")
    invalidate_circuit_failures: int = Field(5, alias="INVALIDATE_CIRCUIT_FAILURES")
    invalidate_circuit_window_seconds: int = Field(60, alias="INVALIDATE_CIRCUIT_WINDOW_SECONDS")
    invalidate_circuit_open_seconds: int = Field(30, alias="INVALIDATE_CIRCUIT_OPEN_SECONDS")

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors(cls, v: Any) -> List[str]:
        if v is None:
            return []
        if isinstance(v, list):
            return [str(item).strip() for item in v if str(item).strip()]
        if isinstance(v, str):
            text = v.strip()
            if not text:
                return []
            if text == "*":
                return ["*"]
            try:
                parsed = json.loads(text)
                if isinstance(parsed, list):
                    return [str(item).strip() for item in parsed if str(item).strip()]
            except Exception:
                pass
            return [item.strip() for item in text.split(",") if item.strip()]
        return []

    @field_validator(
        "debug_errors",
        "db_connect_timeout_seconds",
        "redis_socket_timeout_seconds",
        "cache_refresh_interval_seconds",
        "cache_refresh_timeout_seconds",
        "invalidate_require_auth",
        "invalidate_circuit_failures",
        "invalidate_circuit_window_seconds",
        "invalidate_circuit_open_seconds",
    )
    @classmethod
    def clamp_non_negative(cls, v: int) -> int:
        return max(0, v)

    @field_validator("auth_session_duration_hours", "max_body_bytes")
    @classmethod
    def clamp_positive(cls, v: int) -> int:
        return max(1, v)

    @field_validator("app_env")
    @classmethod
    def normalize_env(cls, v: str) -> str:
        val = (v or "dev").lower()
        return val

    def is_production(self) -> bool:
        return self.app_env in ("prod", "production")

    @property
    def ledger_database_url(self) -> Optional[str]:
        return self.signature_database_url or self.database_url

    @property
    def invalidation_requires_auth(self) -> bool:
        return self.is_production() or self.invalidate_require_auth == 1

    def cors_origins_list(self) -> List[str]:
        return list(self.cors_origins)


@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def validate_for_env(settings: Settings) -> Dict[str, Any]:
    issues: list[str] = []
    if settings.is_production():
        if settings.debug_errors != 0:
            issues.append("DEBUG_ERRORS must be 0 in prod")
        if not settings.ledger_database_url:
            issues.append("SIGNATURE_DATABASE_URL required in prod")
        if settings.invalidate_require_auth != 1:
            issues.append("INVALIDATE_REQUIRE_AUTH is forced on in prod")
        if "*" in settings.cors_origins:
            issues.append("CORS_ORIGINS must not be * in prod")
    summary = settings_public_summary(settings)
    summary["issues"] = issues
    return summary


def settings_public_summary(settings: Optional[Settings] = None) -> Dict[str, Any]:
    s = settings or get_settings()
    return {
        "env": s.app_env,
        "ledger_configured": bool(s.ledger_database_url),
        "redis_configured": bool(s.redis_url),
        "session_duration_hours": s.auth_session_duration_hours,
        "sign_in_primary_type": s.sign_in_primary_type,
        "cache_refresh_interval_seconds": s.cache_refresh_interval_seconds,
        "invalidation_requires_auth": s.invalidation_requires_auth,
    }


__all__ = ["Settings", "get_settings", "settings_public_summary", "validate_for_env"]
