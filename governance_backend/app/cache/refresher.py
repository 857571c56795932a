"""Scheduled sweep that evicts cached proposals which can still change.

Terminal proposals (completed, executed, canceled) never change again, so
their snapshots stay cached. Every other cached snapshot is deleted so the
next read recomputes it from the authoritative source. Staleness is bounded
by the sweep interval.

The sweep is best-effort: a failure on one category or one entry is logged
and skipped, never raised.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional, Sequence

from governance_backend.app.cache.store import (
    ProposalCacheStore,
    ProposalCategory,
    decode_snapshot,
    is_terminal,
    snapshot_key,
)

logger = logging.getLogger(__name__)

# Placeholder for a snapshot whose read failed.
_UNREADABLE = object()


@dataclass
class CategoryReport:
    category: str
    scanned: int = 0
    kept: List[int] = field(default_factory=list)
    missing: List[int] = field(default_factory=list)
    evicted: List[int] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


@dataclass
class RefreshReport:
    categories: Dict[str, CategoryReport] = field(default_factory=dict)

    @property
    def evicted_keys(self) -> List[str]:
        keys: List[str] = []
        for name, report in self.categories.items():
            category = ProposalCategory(name)
            keys.extend(snapshot_key(category, i) for i in report.evicted)
        return keys

    @property
    def error_count(self) -> int:
        return sum(len(r.errors) for r in self.categories.values())

    def to_dict(self) -> Dict[str, object]:
        return {
            "categories": {name: asdict(r) for name, r in self.categories.items()},
            "evicted": len(self.evicted_keys),
            "errors": self.error_count,
        }


class CacheRefresher:
    def __init__(
        self,
        store: Optional[ProposalCacheStore] = None,
        categories: Sequence[ProposalCategory] = tuple(ProposalCategory),
    ) -> None:
        self.store = store or ProposalCacheStore()
        self.categories = tuple(categories)

    def refresh(self) -> RefreshReport:
        """Sweep every category in parallel and return what was done."""
        report = RefreshReport()
        if not self.categories:
            return report
        with ThreadPoolExecutor(max_workers=len(self.categories), thread_name_prefix="cache-refresh") as pool:
            results = list(pool.map(self.refresh_category, self.categories))
        for result in results:
            report.categories[result.category] = result
        evicted = len(report.evicted_keys)
        if evicted:
            logger.info("[CACHE] refreshed active proposals", extra={"evicted": evicted})
        return report

    def refresh_category(self, category: ProposalCategory) -> CategoryReport:
        report = CategoryReport(category=category.value)
        try:
            indices = self.store.get_indices(category)
        except Exception as exc:
            report.errors.append(f"indices:{type(exc).__name__}")
            logger.warning(
                "[CACHE] index list unreadable; skipping category",
                extra={"category": category.value, "error_type": type(exc).__name__},
            )
            return report
        if not indices:
            return report

        payloads = self._read_payloads(category, indices, report)
        to_evict: List[int] = []
        for index, raw in zip(indices, payloads):
            report.scanned += 1
            if raw is _UNREADABLE:
                continue
            try:
                snapshot = decode_snapshot(raw)
                terminal = snapshot is not None and is_terminal(snapshot)
            except Exception as exc:
                report.errors.append(f"{index}:{type(exc).__name__}")
                logger.warning(
                    "[CACHE] snapshot undecodable; leaving in place",
                    extra={"category": category.value, "index": index},
                )
                continue
            if snapshot is None:
                report.missing.append(index)
            elif terminal:
                report.kept.append(index)
            else:
                to_evict.append(index)

        self._evict(category, to_evict, report)
        return report

    def _read_payloads(self, category: ProposalCategory, indices: List[int], report: CategoryReport) -> List[object]:
        try:
            return list(self.store.get_snapshot_payloads(category, indices))
        except Exception as exc:
            logger.warning(
                "[CACHE] bulk snapshot read failed; reading one by one",
                extra={"category": category.value, "error_type": type(exc).__name__},
            )
        payloads: List[object] = []
        for index in indices:
            try:
                payloads.append(self.store.get_snapshot_payload(category, index))
            except Exception as exc:
                report.errors.append(f"{index}:{type(exc).__name__}")
                payloads.append(_UNREADABLE)
        return payloads

    def _evict(self, category: ProposalCategory, indices: List[int], report: CategoryReport) -> None:
        if not indices:
            return
        try:
            self.store.delete_keys(snapshot_key(category, i) for i in indices)
            report.evicted.extend(indices)
            return
        except Exception as exc:
            logger.warning(
                "[CACHE] bulk eviction failed; deleting one by one",
                extra={"category": category.value, "error_type": type(exc).__name__},
            )
        for index in indices:
            try:
                self.store.delete_keys([snapshot_key(category, index)])
                report.evicted.append(index)
            except Exception as exc:
                report.errors.append(f"{index}:{type(exc).__name__}")


def refresh_active_proposals(store: Optional[ProposalCacheStore] = None) -> RefreshReport:
    return CacheRefresher(store=store).refresh()


__all__ = ["CacheRefresher", "CategoryReport", "RefreshReport", "refresh_active_proposals"]
