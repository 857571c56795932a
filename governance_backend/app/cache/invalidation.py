from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from governance_backend.app.cache.store import (
    ProposalCacheStore,
    ProposalCategory,
    index_list_key,
    listing_pattern,
    snapshot_key,
)

logger = logging.getLogger(__name__)

DELETE_BATCH_SIZE = 50

_RANGE_PATTERN = re.compile(r"startIndex=(\d+):endIndex=(\d+)")


class InvalidationTarget(str, Enum):
    OPERATIONS = "operations"
    RESEARCH = "research"
    ALL = "all"

    @property
    def categories(self) -> Tuple[ProposalCategory, ...]:
        if self is InvalidationTarget.ALL:
            return tuple(ProposalCategory)
        return (ProposalCategory(self.value),)


@dataclass
class InvalidationResult:
    deleted: int
    message: str


def first_page_pattern(category: ProposalCategory) -> str:
    return f"proposals:{category.short}:startIndex=*:endIndex=*"


def _listing_mentions(key: str, index: int) -> bool:
    match = _RANGE_PATTERN.search(key)
    if match:
        low, high = sorted((int(match.group(1)), int(match.group(2))))
        return low <= index <= high
    return str(index) in re.findall(r"\d+", key)


class CacheInvalidator:
    """Explicit invalidation of cached proposal data, on top of the scheduled sweep."""

    def __init__(self, store: Optional[ProposalCacheStore] = None) -> None:
        self.store = store or ProposalCacheStore()

    def register_new_proposal(self, target: InvalidationTarget, new_index: int) -> InvalidationResult:
        """Add ``new_index`` to the index list(s) and drop only the first-page listings."""
        deleted = 0
        for category in target.categories:
            indices = self.store.get_indices(category)
            if new_index not in indices:
                indices.append(new_index)
                indices.sort(reverse=True)
                self.store.set_indices(category, indices)
                logger.info(
                    "[CACHE] index list extended",
                    extra={"category": category.value, "index": new_index},
                )
            deleted += self._delete(self.store.scan_keys(first_page_pattern(category)))
        return InvalidationResult(
            deleted=deleted,
            message=f"Successfully handled new proposal {new_index} for {target.value}",
        )

    def invalidate_proposal(self, target: InvalidationTarget, index: int) -> InvalidationResult:
        keys: List[str] = []
        for category in target.categories:
            keys.append(snapshot_key(category, index))
            keys.extend(k for k in self.store.scan_keys(listing_pattern(category)) if _listing_mentions(k, index))
        deleted = self._delete(keys)
        logger.info(
            "[CACHE] targeted invalidation",
            extra={"target": target.value, "index": index, "deleted": deleted},
        )
        return InvalidationResult(
            deleted=deleted,
            message=f"Successfully invalidated cache for {target.value} proposal with index {index}",
        )

    def invalidate_all(self, target: InvalidationTarget) -> InvalidationResult:
        keys: List[str] = []
        for category in target.categories:
            keys.extend(snapshot_key(category, i) for i in self.store.get_indices(category))
            keys.append(index_list_key(category))
            keys.extend(self.store.scan_keys(listing_pattern(category)))
        deleted = self._delete(keys)
        logger.info("[CACHE] full invalidation", extra={"target": target.value, "deleted": deleted})
        return InvalidationResult(
            deleted=deleted,
            message=f"Successfully invalidated {deleted} cache entries for {target.value} proposals",
        )

    def _delete(self, keys: Iterable[str]) -> int:
        unique = list(dict.fromkeys(keys))
        deleted = 0
        for start in range(0, len(unique), DELETE_BATCH_SIZE):
            deleted += self.store.delete_keys(unique[start : start + DELETE_BATCH_SIZE])
        return deleted


__all__ = [
    "CacheInvalidator",
    "DELETE_BATCH_SIZE",
    "InvalidationResult",
    "InvalidationTarget",
    "first_page_pattern",
]
