from __future__ import annotations

import json
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence

import redis

from governance_backend.app.config import get_settings

TERMINAL_STATUSES = frozenset({"completed", "executed", "canceled"})

_redis_client: Optional[redis.Redis] = None


class ProposalCategory(str, Enum):
    OPERATIONS = "operations"
    RESEARCH = "research"

    @property
    def short(self) -> str:
        return "ops" if self is ProposalCategory.OPERATIONS else "res"


class CacheDecodeError(ValueError):
    """A cached value exists but is not in the expected shape."""


def get_redis() -> redis.Redis:
    global _redis_client
    if _redis_client is None:
        s = get_settings()
        _redis_client = redis.Redis.from_url(
            s.redis_url,
            decode_responses=True,
            socket_timeout=s.redis_socket_timeout_seconds,
            socket_connect_timeout=s.redis_socket_timeout_seconds,
        )
    return _redis_client


def index_list_key(category: ProposalCategory) -> str:
    return f"{category.value}_sc_indices"


def snapshot_key(category: ProposalCategory, index: int) -> str:
    return f"proposal_{category.short}_{index}"


def listing_pattern(category: ProposalCategory) -> str:
    return f"proposals:{category.short}:*"


def is_terminal(snapshot: Dict[str, Any]) -> bool:
    status = snapshot.get("status")
    return isinstance(status, str) and status in TERMINAL_STATUSES


def decode_indices(raw: Optional[str]) -> List[int]:
    if raw is None or raw == "":
        return []
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise CacheDecodeError("index list is not JSON") from exc
    if not isinstance(data, list):
        raise CacheDecodeError("index list is not an array")
    indices: List[int] = []
    for item in data:
        if isinstance(item, bool) or not isinstance(item, (int, str)):
            raise CacheDecodeError(f"index list holds a non-integer: {item!r}")
        try:
            value = int(item)
        except ValueError as exc:
            raise CacheDecodeError(f"index list holds a non-integer: {item!r}") from exc
        if value < 0:
            raise CacheDecodeError(f"negative proposal index: {value}")
        indices.append(value)
    return indices


def decode_snapshot(raw: Optional[str]) -> Optional[Dict[str, Any]]:
    if raw is None:
        return None
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise CacheDecodeError("snapshot is not JSON") from exc
    if data is None:
        return None
    if not isinstance(data, dict):
        raise CacheDecodeError("snapshot is not an object")
    return data


class ProposalCacheStore:
    """Proposal snapshots and index lists in Redis, stored as JSON strings."""

    def __init__(self, client: Optional[redis.Redis] = None) -> None:
        self._client = client

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = get_redis()
        return self._client

    def get_indices(self, category: ProposalCategory) -> List[int]:
        return decode_indices(self.client.get(index_list_key(category)))

    def set_indices(self, category: ProposalCategory, indices: Sequence[int]) -> None:
        self.client.set(index_list_key(category), json.dumps([int(i) for i in indices]))

    def get_snapshot_payloads(self, category: ProposalCategory, indices: Sequence[int]) -> List[Optional[str]]:
        """Raw snapshot payloads for ``indices`` in one round trip."""
        if not indices:
            return []
        return list(self.client.mget([snapshot_key(category, i) for i in indices]))

    def get_snapshot_payload(self, category: ProposalCategory, index: int) -> Optional[str]:
        return self.client.get(snapshot_key(category, index))

    def set_snapshot(
        self,
        category: ProposalCategory,
        index: int,
        snapshot: Dict[str, Any],
        ttl_seconds: Optional[int] = None,
    ) -> None:
        self.client.set(snapshot_key(category, index), json.dumps(snapshot, default=str), ex=ttl_seconds)

    def delete_keys(self, keys: Iterable[str]) -> int:
        batch = list(keys)
        if not batch:
            return 0
        return int(self.client.delete(*batch) or 0)

    def scan_keys(self, pattern: str) -> List[str]:
        return sorted(set(self.client.scan_iter(match=pattern, count=500)))

    def ping(self) -> bool:
        return bool(self.client.ping())


__all__ = [
    "CacheDecodeError",
    "ProposalCacheStore",
    "ProposalCategory",
    "TERMINAL_STATUSES",
    "decode_indices",
    "decode_snapshot",
    "get_redis",
    "index_list_key",
    "is_terminal",
    "listing_pattern",
    "snapshot_key",
]
