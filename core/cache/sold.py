"""
Sold/Stale Detector

Flags cached listings that vanished from their own neighborhood's search.
"""

import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from .models import MarketStatus, utc_now
from .repository import ListingCache

logger = logging.getLogger(__name__)


DEFAULT_STALE_SEARCH_WINDOW_DAYS = 3


class SoldDetector:
    """
    Reconciles one neighborhood's cache entries against a search snapshot.

    An entry becomes likely_sold only when all hold:
    - it was last observed in the neighborhood being reconciled
    - it is not already likely_sold
    - last_seen_in_search is older than the staleness window
    - its id is absent from the current snapshot
    """

    def __init__(
        self,
        cache: ListingCache,
        stale_search_window_days: int = DEFAULT_STALE_SEARCH_WINDOW_DAYS,
        reference_time: Optional[datetime] = None,
    ):
        self._cache = cache
        self._window = timedelta(days=stale_search_window_days)
        self._reference_time = reference_time

    def find_stale(self, neighborhood: str, current_ids: Iterable[str]) -> List[str]:
        """Ids that reconcile() would mark, without writing."""
        now = self._reference_time or utc_now()
        current = set(current_ids)
        cutoff = now - self._window

        return [
            entry.listing_id
            for entry in self._cache.listings_for_neighborhood(neighborhood)
            if entry.market_status != MarketStatus.LIKELY_SOLD
            and entry.listing_id not in current
            and entry.last_seen_in_search < cutoff
        ]

    def reconcile(self, neighborhood: str, current_ids: Iterable[str]) -> int:
        """
        Mark vanished listings of one neighborhood as likely sold.

        Args:
            neighborhood: Neighborhood the snapshot was taken from
            current_ids: Ids present in that snapshot

        Returns:
            Number of entries marked likely_sold
        """
        stale = self.find_stale(neighborhood, current_ids)
        if not stale:
            return 0

        marked = self._cache.mark_likely_sold(stale)
        logger.info("%s: marked %s listings as likely sold", neighborhood, marked)
        return marked
