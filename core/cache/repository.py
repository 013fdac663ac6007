"""
Listing Cache - Persistent Freshness Store

Two tables keyed by listing_id:
- listings: CacheEntry rows (one per listing, never duplicated)
- results: latest ResultRecord per listing

In-memory storage with optional JSON file persistence. Every write goes
through a keyed upsert, and each write method only touches its own field
group.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timedelta
from pathlib import Path
from typing import Iterable, List, Optional

from core.models import SearchHit
from .models import (
    CacheEntry,
    CacheLookup,
    MarketStatus,
    ResultRecord,
    ResultStatus,
    utc_now,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Repository
# =============================================================================


class ListingCache:
    """
    Repository for cached listings and their latest valuation results.

    Uses in-memory storage with optional file persistence.
    """

    def __init__(self, persist_path: Optional[str] = None):
        """
        Initialise repository.

        Args:
            persist_path: Optional path to persist data to JSON file
        """
        self._listings: dict[str, CacheEntry] = {}
        self._results: dict[str, ResultRecord] = {}
        self._persist_path = Path(persist_path) if persist_path else None

        # Load existing data if persist path exists
        if self._persist_path and self._persist_path.exists():
            self._load_from_file()

    def _save_to_file(self) -> None:
        """Persist data to file."""
        if not self._persist_path:
            return

        data = {
            "listings": {
                lid: entry.to_dict()
                for lid, entry in self._listings.items()
            },
            "results": {
                lid: record.to_dict()
                for lid, record in self._results.items()
            },
            "saved_at": utc_now().isoformat(),
        }

        self._persist_path.parent.mkdir(parents=True, exist_ok=True)

        # Write beside the target and swap, so an interrupted save never
        # leaves a truncated cache file
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self._persist_path.parent),
            prefix=self._persist_path.name + ".",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self._persist_path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def _load_from_file(self) -> None:
        """Load data from file."""
        if not self._persist_path or not self._persist_path.exists():
            return

        try:
            data = json.loads(self._persist_path.read_text())
            for lid, entry_data in data.get("listings", {}).items():
                self._listings[lid] = CacheEntry.from_dict(entry_data)
            for lid, record_data in data.get("results", {}).items():
                self._results[lid] = ResultRecord.from_dict(record_data)
        except (json.JSONDecodeError, KeyError, ValueError, TypeError, AttributeError) as e:
            # Start fresh rather than fail the run; the unreadable file is kept aside
            corrupt_path = self._persist_path.with_name(self._persist_path.name + ".corrupt")
            os.replace(self._persist_path, corrupt_path)
            logger.warning(
                "Could not load listing cache from %s (moved to %s): %s",
                self._persist_path, corrupt_path, e,
            )
            self._listings.clear()
            self._results.clear()

    # =========================================================================
    # Lookup
    # =========================================================================

    def lookup(self, listing_ids: Iterable[str]) -> CacheLookup:
        """
        Partition ids by cache state.

        Read-only. Input order is kept and duplicate ids are reported once.

        Args:
            listing_ids: Ids from a search snapshot

        Returns:
            CacheLookup(complete, incomplete, unseen)
        """
        result = CacheLookup()
        seen = set()
        for listing_id in listing_ids:
            if listing_id in seen:
                continue
            seen.add(listing_id)

            entry = self._listings.get(listing_id)
            if entry is None:
                result.unseen.append(listing_id)
            elif entry.is_complete:
                result.complete.append(listing_id)
            else:
                result.incomplete.append(listing_id)
        return result

    def get(self, listing_id: str) -> Optional[CacheEntry]:
        """Get a cache entry by listing ID."""
        return self._listings.get(listing_id)

    def listings_for_neighborhood(
        self,
        neighborhood: str,
        complete_only: bool = False,
    ) -> list[CacheEntry]:
        """Entries last observed in a neighborhood."""
        key = _neighborhood_key(neighborhood)
        return [
            entry for entry in self._listings.values()
            if _neighborhood_key(entry.neighborhood) == key
            and (entry.is_complete or not complete_only)
        ]

    # =========================================================================
    # Writes
    # =========================================================================

    def upsert(self, entry: CacheEntry) -> CacheEntry:
        """
        Insert or replace the core field group of an entry.

        last_analyzed and the times_seen count survive a replacement.

        Args:
            entry: Entry built from a fresh detail fetch

        Returns:
            The stored entry
        """
        existing = self._listings.get(entry.listing_id)
        if existing is not None:
            if entry.last_analyzed is None:
                entry.last_analyzed = existing.last_analyzed
            entry.times_seen = max(existing.times_seen, entry.times_seen)

        self._listings[entry.listing_id] = entry
        self._save_to_file()
        return entry

    def mark_price_only(
        self,
        listing_id: str,
        new_price: int,
        checked_at: Optional[datetime] = None,
    ) -> bool:
        """
        Fast-path price update without a detail fetch.

        Sets price, last_checked and status pending; nothing else changes.

        Returns:
            True if updated, False if not found
        """
        entry = self._listings.get(listing_id)
        if entry is None:
            return False

        logger.debug("Price drift on %s: %s -> %s", listing_id, entry.price, new_price)
        entry.price = int(new_price)
        entry.last_checked = checked_at or utc_now()
        entry.market_status = MarketStatus.PENDING
        self._save_to_file()
        return True

    def mark_analysis_result(
        self,
        listing_id: str,
        status: MarketStatus,
        analyzed_at: Optional[datetime] = None,
    ) -> bool:
        """
        Record the outcome of a valuation on the cache entry.

        Returns:
            True if updated, False if not found
        """
        entry = self._listings.get(listing_id)
        if entry is None:
            return False

        analyzed_at = analyzed_at or utc_now()
        entry.market_status = status
        entry.last_analyzed = analyzed_at
        entry.last_checked = analyzed_at
        self._save_to_file()
        return True

    def touch_seen(
        self,
        listing_ids: Iterable[str],
        seen_at: Optional[datetime] = None,
        neighborhood: Optional[str] = None,
    ) -> int:
        """
        Record that ids appeared in a search snapshot.

        Unknown ids are ignored. When neighborhood is given, entries move to
        it so sold detection follows the latest observation.

        Returns:
            Number of entries updated
        """
        seen_at = seen_at or utc_now()
        updated = 0
        for listing_id in set(listing_ids):
            entry = self._listings.get(listing_id)
            if entry is None:
                continue
            entry.last_seen_in_search = seen_at
            entry.times_seen += 1
            if neighborhood:
                entry.neighborhood = neighborhood
            updated += 1

        if updated:
            self._save_to_file()
        return updated

    def record_fetch_failure(
        self,
        hit: SearchHit,
        reason: str = "",
        failed_at: Optional[datetime] = None,
    ) -> CacheEntry:
        """
        Store a fetch_failed entry so the listing is retried on a later run.

        An existing entry keeps its details and only changes status.
        """
        failed_at = failed_at or utc_now()
        entry = self._listings.get(hit.listing_id)

        if entry is None:
            entry = CacheEntry(
                listing_id=hit.listing_id,
                price=hit.price,
                neighborhood=hit.neighborhood,
                last_checked=failed_at,
                last_seen_in_search=failed_at,
            )
            self._listings[hit.listing_id] = entry

        entry.market_status = MarketStatus.FETCH_FAILED
        entry.fetch_error = reason
        entry.last_checked = failed_at
        self._save_to_file()
        return entry

    def mark_likely_sold(self, listing_ids: Iterable[str]) -> int:
        """
        Flag entries and their result rows as likely sold.

        Returns:
            Number of cache entries changed
        """
        changed = 0
        for listing_id in set(listing_ids):
            entry = self._listings.get(listing_id)
            if entry is None or entry.market_status == MarketStatus.LIKELY_SOLD:
                continue
            entry.market_status = MarketStatus.LIKELY_SOLD
            changed += 1

            record = self._results.get(listing_id)
            if record is not None:
                record.status = ResultStatus.LIKELY_SOLD

        if changed:
            self._save_to_file()
        return changed

    def purge_older_than(self, max_age: timedelta, now: Optional[datetime] = None) -> int:
        """
        Age-based purge.

        Removes entries not seen in a search (nor checked) within max_age,
        and results older than max_age or whose entry was purged.

        Returns:
            Number of cache entries removed
        """
        cutoff = (now or utc_now()) - max_age

        stale_ids = [
            lid for lid, entry in self._listings.items()
            if max(entry.last_seen_in_search, entry.last_checked) < cutoff
        ]
        for lid in stale_ids:
            del self._listings[lid]

        stale_results = [
            lid for lid, record in self._results.items()
            if record.analysis_date < cutoff or lid not in self._listings
        ]
        for lid in stale_results:
            del self._results[lid]

        if stale_ids or stale_results:
            logger.info(
                "Purged %s cache entries and %s results older than %s days",
                len(stale_ids), len(stale_results), max_age.days,
            )
            self._save_to_file()
        return len(stale_ids)

    # =========================================================================
    # Results
    # =========================================================================

    def save_result(self, record: ResultRecord) -> ResultRecord:
        """Replace the latest result for a listing."""
        self._results[record.listing_id] = record
        self._save_to_file()
        return record

    def get_result(self, listing_id: str) -> Optional[ResultRecord]:
        return self._results.get(listing_id)

    def list_results(
        self,
        classification: Optional[str] = None,
        neighborhood: Optional[str] = None,
        min_discount: Optional[float] = None,
        status: Optional[ResultStatus] = None,
        limit: Optional[int] = None,
    ) -> List[ResultRecord]:
        """
        Query result rows.

        Returns:
            Matching records, best score first then highest discount
        """
        records = list(self._results.values())

        if classification:
            records = [r for r in records if r.classification == classification]
        if neighborhood:
            key = _neighborhood_key(neighborhood)
            records = [r for r in records if _neighborhood_key(r.neighborhood) == key]
        if min_discount is not None:
            records = [r for r in records if r.discount_percent >= min_discount]
        if status is not None:
            records = [r for r in records if r.status == status]

        records.sort(key=lambda r: (r.score, r.discount_percent), reverse=True)

        if limit is not None:
            records = records[:limit]
        return records

    # =========================================================================
    # Statistics
    # =========================================================================

    def count(self) -> int:
        """Get total number of cached listings."""
        return len(self._listings)

    def count_by_status(self) -> dict[str, int]:
        """Get count of cached listings by market status."""
        counts: dict[str, int] = {}
        for entry in self._listings.values():
            status = entry.market_status.value
            counts[status] = counts.get(status, 0) + 1
        return counts

    def stats(self) -> dict:
        """Summary statistics for the API."""
        complete = sum(1 for e in self._listings.values() if e.is_complete)

        classifications: dict[str, int] = {}
        for record in self._results.values():
            classifications[record.classification] = classifications.get(record.classification, 0) + 1

        return {
            "total_listings": self.count(),
            "complete": complete,
            "incomplete": self.count() - complete,
            "status_counts": self.count_by_status(),
            "total_results": len(self._results),
            "classification_counts": classifications,
        }


def _neighborhood_key(value: str) -> str:
    return (value or "").strip().lower().replace("_", "-").replace(" ", "-")


# =============================================================================
# Singleton Instance
# =============================================================================

_cache_instance: Optional[ListingCache] = None


def get_listing_cache(persist_path: Optional[str] = None) -> ListingCache:
    """
    Get the listing cache singleton.

    Args:
        persist_path: Optional path for persistence (only used on first call)

    Returns:
        ListingCache instance
    """
    global _cache_instance
    if _cache_instance is None:
        _cache_instance = ListingCache(persist_path or "data/listing_cache.json")
    return _cache_instance


def reset_listing_cache() -> None:
    """Drop the singleton so the next call builds a new cache."""
    global _cache_instance
    _cache_instance = None
