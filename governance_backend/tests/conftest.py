import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import fakeredis
import pytest

# Ensure the package is importable for tests
REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from governance_backend.app.auth.ledger import SignatureLedger  # noqa: E402
from governance_backend.app.cache.store import ProposalCacheStore  # noqa: E402
from governance_backend.app.config import get_settings  # noqa: E402


class FakeSignatureDB:
    """In-memory stand-in for the signatures table.

    Understands the two statements the ledger issues and records every query
    so tests can assert on round trips.
    """

    def __init__(self) -> None:
        self.rows: List[Dict[str, Any]] = []
        self.queries: List[tuple] = []
        self.now = datetime(2026, 10, 17, 12, 0, 0, tzinfo=timezone.utc)
        self.fail_with: Optional[Exception] = None
        self.commits = 0

    def add_row(self, address: str, created_at: datetime, is_valid: bool = True) -> None:
        self.rows.append({"address": address, "is_valid": is_valid, "created_at": created_at})

    def connect(self) -> "FakeConnection":
        if self.fail_with is not None:
            raise self.fail_with
        return FakeConnection(self)


class FakeCursor:
    def __init__(self, db: FakeSignatureDB) -> None:
        self.db = db
        self._result: Optional[tuple] = None

    def __enter__(self) -> "FakeCursor":
        return self

    def __exit__(self, *exc: Any) -> None:
        return None

    def execute(self, sql: str, params: tuple = ()) -> None:
        self.db.queries.append((" ".join(sql.split()), params))
        statement = sql.strip().upper()
        if statement.startswith("INSERT INTO SIGNATURES"):
            address, chain_id, nonce, issued_at, message, signature, is_valid = params
            self.db.rows.append(
                {
                    "address": address,
                    "chain_id": chain_id,
                    "nonce": nonce,
                    "issued_at": issued_at,
                    "message": message,
                    "signature": signature,
                    "is_valid": is_valid,
                    "created_at": self.db.now,
                }
            )
        elif statement.startswith("SELECT ADDRESS"):
            address, since = params
            matches = [
                r
                for r in self.db.rows
                if r["address"].lower() == address and r["is_valid"] and r["created_at"] >= since
            ]
            matches.sort(key=lambda r: r["created_at"], reverse=True)
            self._result = (matches[0]["address"], matches[0]["created_at"]) if matches else None

    def fetchone(self) -> Optional[tuple]:
        return self._result


class FakeConnection:
    def __init__(self, db: FakeSignatureDB) -> None:
        self.db = db

    def __enter__(self) -> "FakeConnection":
        return self

    def __exit__(self, *exc: Any) -> None:
        return None

    def cursor(self) -> FakeCursor:
        return FakeCursor(self.db)

    def commit(self) -> None:
        self.db.commits += 1


@pytest.fixture(autouse=True)
def _fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def signature_db() -> FakeSignatureDB:
    return FakeSignatureDB()


@pytest.fixture
def ledger(signature_db: FakeSignatureDB) -> SignatureLedger:
    return SignatureLedger(connect=signature_db.connect)


@pytest.fixture
def redis_client() -> fakeredis.FakeRedis:
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def cache_store(redis_client: fakeredis.FakeRedis) -> ProposalCacheStore:
    return ProposalCacheStore(client=redis_client)
