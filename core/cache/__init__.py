"""
Listing Freshness Cache

Persistent store of observed listings, the search-batch planner that
decides what needs an expensive detail fetch, and the sold/stale detector.
"""

from .models import (
    MarketStatus,
    ResultStatus,
    CacheEntry,
    CacheLookup,
    ResultRecord,
)
from .repository import ListingCache, get_listing_cache, reset_listing_cache
from .freshness import FreshnessPlanner, SearchPlan, has_price_drift
from .sold import SoldDetector

__all__ = [
    # Models
    "MarketStatus",
    "ResultStatus",
    "CacheEntry",
    "CacheLookup",
    "ResultRecord",
    # Repository
    "ListingCache",
    "get_listing_cache",
    "reset_listing_cache",
    # Planning
    "FreshnessPlanner",
    "SearchPlan",
    "has_price_drift",
    "SoldDetector",
]
