# Signature ledger database utilities (Postgres via psycopg)
from .database import (
    SIGNATURES_DDL,
    check_db_connection,
    ensure_schema,
    get_db_connection,
)

__all__ = [
    "SIGNATURES_DDL",
    "check_db_connection",
    "ensure_schema",
    "get_db_connection",
]
