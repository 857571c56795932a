from __future__ import annotations

import logging
from typing import Optional

import psycopg

from governance_backend.app.config import get_settings

logger = logging.getLogger(__name__)


SIGNATURES_DDL = (
    """
    CREATE TABLE IF NOT EXISTS signatures (
        id BIGSERIAL PRIMARY KEY,
        address VARCHAR(42) NOT NULL,
        chain_id TEXT NOT NULL,
        nonce TEXT NOT NULL,
        issued_at TEXT NOT NULL,
        message JSONB NOT NULL,
        signature TEXT NOT NULL,
        is_valid BOOLEAN NOT NULL DEFAULT FALSE,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    );
    """,
    """
    CREATE INDEX IF NOT EXISTS signatures_address_created_idx
        ON signatures (LOWER(address), created_at DESC);
    """,
)


def _database_url() -> Optional[str]:
    return get_settings().ledger_database_url


def get_db_connection() -> psycopg.Connection:
    """
    Return a psycopg connection to the signature ledger.
    Raises RuntimeError if no database URL is configured.
    Raises psycopg.Error on connection errors.
    """
    url = _database_url()
    if not url:
        raise RuntimeError("SIGNATURE_DATABASE_URL not configured")
    return psycopg.connect(url, connect_timeout=get_settings().db_connect_timeout_seconds)


def check_db_connection() -> tuple[bool, str | None]:
    """
    Deterministic, fail-closed database connectivity check.
    Does not leak connection details; returns (ok, sanitized_reason_or_None).
    """
    url = _database_url()
    if not url:
        return False, "database_url_missing"
    try:
        with get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                _ = cur.fetchone()
        return True, None
    except Exception:
        return False, "db_unreachable"


def ensure_schema(connect=get_db_connection) -> bool:
    """Best-effort creation of the signatures table; returns True when applied."""
    try:
        with connect() as conn:
            with conn.cursor() as cur:
                for statement in SIGNATURES_DDL:
                    cur.execute(statement)
            conn.commit()
        return True
    except Exception as exc:
        logger.warning("[DB] schema bootstrap skipped", extra={"error_type": type(exc).__name__})
        return False


__all__ = ["SIGNATURES_DDL", "check_db_connection", "ensure_schema", "get_db_connection"]
