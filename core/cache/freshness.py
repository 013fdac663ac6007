"""
Freshness planner.

Splits a search snapshot into skip / price-update / re-analyse / fetch
groups from cache state alone, before any external call is made.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from core.models import SearchHit
from .models import CacheEntry, MarketStatus, utc_now
from .repository import ListingCache

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Constants
# =============================================================================

DEFAULT_FRESHNESS_WINDOW_DAYS = 7
DEFAULT_PRICE_DRIFT_ABSOLUTE = 25_000
DEFAULT_PRICE_DRIFT_PERCENT = 2.0

# Complete entries in these states are re-analysed even when fresh
NEEDS_ANALYSIS = (MarketStatus.PENDING, MarketStatus.LIKELY_SOLD)


@dataclass
class SearchPlan:
    """
    Work plan for one search snapshot.

    skip: complete, fresh, unchanged ids
    price_updates: complete ids whose price drifted (id -> new price)
    reanalyze: complete ids that are stale or pending, valued from cache
    fetch: new or incomplete hits that need a detail fetch
    """
    skip: List[str] = field(default_factory=list)
    price_updates: Dict[str, int] = field(default_factory=dict)
    reanalyze: List[str] = field(default_factory=list)
    fetch: List[SearchHit] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.skip) + len(self.price_updates) + len(self.reanalyze) + len(self.fetch)

    def to_dict(self) -> dict:
        return {
            "skip": len(self.skip),
            "price_updates": len(self.price_updates),
            "reanalyze": len(self.reanalyze),
            "fetch": len(self.fetch),
        }


def has_price_drift(
    cached_price: int,
    new_price: int,
    absolute_threshold: float = DEFAULT_PRICE_DRIFT_ABSOLUTE,
    percent_threshold: float = DEFAULT_PRICE_DRIFT_PERCENT,
) -> bool:
    """
    Whether a price change is large enough for the fast-path update.

    Drift is |delta| >= absolute_threshold or |delta| / cached >= percent.
    """
    delta = abs(new_price - cached_price)
    if delta == 0:
        return False
    if delta >= absolute_threshold:
        return True
    if cached_price <= 0:
        return True
    return delta / cached_price * 100 >= percent_threshold


class FreshnessPlanner:
    """
    Partitions search hits by cache state.
    """

    def __init__(
        self,
        cache: ListingCache,
        freshness_window_days: int = DEFAULT_FRESHNESS_WINDOW_DAYS,
        price_drift_absolute: float = DEFAULT_PRICE_DRIFT_ABSOLUTE,
        price_drift_percent: float = DEFAULT_PRICE_DRIFT_PERCENT,
        reference_time: Optional[datetime] = None,
    ):
        """
        Args:
            cache: Listing cache to consult (read-only here)
            freshness_window_days: Age after which a complete entry is stale
            price_drift_absolute: Absolute USD drift threshold
            price_drift_percent: Relative drift threshold in percent
            reference_time: "Now" for freshness checks (default: current UTC)
        """
        self._cache = cache
        self._window = timedelta(days=freshness_window_days)
        self._drift_absolute = price_drift_absolute
        self._drift_percent = price_drift_percent
        self._reference_time = reference_time

    @classmethod
    def from_config(cls, cache: ListingCache, config, reference_time: Optional[datetime] = None) -> "FreshnessPlanner":
        return cls(
            cache,
            freshness_window_days=config.freshness_window_days,
            price_drift_absolute=config.price_drift_absolute,
            price_drift_percent=config.price_drift_percent,
            reference_time=reference_time,
        )

    def plan(self, hits: List[SearchHit]) -> SearchPlan:
        """
        Build the work plan for a search snapshot.

        Args:
            hits: Search rows (id, price, neighborhood)

        Returns:
            SearchPlan; duplicate ids are planned once
        """
        now = self._reference_time or utc_now()
        by_id = {}
        for hit in hits:
            by_id.setdefault(hit.listing_id, hit)

        lookup = self._cache.lookup(by_id.keys())
        plan = SearchPlan()

        for listing_id in lookup.unseen + lookup.incomplete:
            plan.fetch.append(by_id[listing_id])

        for listing_id in lookup.complete:
            entry = self._cache.get(listing_id)
            hit = by_id[listing_id]

            if self.has_price_drift(entry, hit.price):
                plan.price_updates[listing_id] = hit.price
            elif self._is_fresh(entry, now) and entry.market_status not in NEEDS_ANALYSIS:
                plan.skip.append(listing_id)
            else:
                plan.reanalyze.append(listing_id)

        logger.debug(
            "Plan for %s hits: %s skip, %s price updates, %s reanalyze, %s fetch",
            len(by_id), len(plan.skip), len(plan.price_updates),
            len(plan.reanalyze), len(plan.fetch),
        )
        return plan

    def has_price_drift(self, entry: CacheEntry, new_price: int) -> bool:
        return has_price_drift(entry.price, new_price, self._drift_absolute, self._drift_percent)

    def _is_fresh(self, entry: CacheEntry, now: datetime) -> bool:
        return now - entry.last_checked <= self._window
