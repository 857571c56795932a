from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from governance_backend.app.db.database import get_db_connection

INSERT_SIGNATURE_SQL = """
    INSERT INTO signatures (
        address,
        chain_id,
        nonce,
        issued_at,
        message,
        signature,
        is_valid
    ) VALUES (%s, %s, %s, %s, %s::jsonb, %s, %s)
"""

SELECT_RECENT_VALID_SQL = """
    SELECT address, created_at
    FROM signatures
    WHERE LOWER(address) = %s
      AND is_valid = TRUE
      AND created_at >= %s
    ORDER BY created_at DESC
    LIMIT 1
"""


@dataclass(frozen=True)
class SignatureRecord:
    """One ledger row. ``created_at`` is assigned by the database."""

    address: str
    chain_id: str
    nonce: str
    issued_at: str
    message: Dict[str, Any]
    signature: str
    is_valid: bool
    created_at: Optional[datetime] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "address", self.address.lower())


class SignatureLedger:
    """Append-only store of verified sign-in signatures.

    ``connect`` returns a context-managed DB-API connection; it defaults to the
    psycopg connector for the signature database.
    """

    def __init__(self, connect: Callable[[], Any] = get_db_connection) -> None:
        self._connect = connect

    def insert(self, record: SignatureRecord) -> None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    INSERT_SIGNATURE_SQL,
                    (
                        record.address,
                        record.chain_id,
                        record.nonce,
                        record.issued_at,
                        json.dumps(record.message, separators=(",", ":")),
                        record.signature,
                        record.is_valid,
                    ),
                )
            conn.commit()

    def find_recent_valid(self, address: str, since: datetime) -> Optional[str]:
        """Address (as stored) of the newest valid record created at or after ``since``."""
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(SELECT_RECENT_VALID_SQL, (address.lower(), since))
                row = cur.fetchone()
        if not row or not row[0]:
            return None
        return str(row[0])


__all__ = ["INSERT_SIGNATURE_SQL", "SELECT_RECENT_VALID_SQL", "SignatureLedger", "SignatureRecord"]
