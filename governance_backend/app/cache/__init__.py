from .store import (
    TERMINAL_STATUSES,
    ProposalCacheStore,
    ProposalCategory,
    get_redis,
    index_list_key,
    snapshot_key,
)
from .refresher import CacheRefresher, CategoryReport, RefreshReport, refresh_active_proposals
from .invalidation import CacheInvalidator, InvalidationResult, InvalidationTarget
from .scheduler import RefreshScheduler

__all__ = [
    "TERMINAL_STATUSES",
    "ProposalCacheStore",
    "ProposalCategory",
    "get_redis",
    "index_list_key",
    "snapshot_key",
    "CacheRefresher",
    "CategoryReport",
    "RefreshReport",
    "refresh_active_proposals",
    "CacheInvalidator",
    "InvalidationResult",
    "InvalidationTarget",
    "RefreshScheduler",
]
