"""
Undervalued Listing Engine - Core Business Logic

This module provides the valuation and freshness-cache pipeline:
1. Freshness planning (skip / price update / re-analyse / fetch)
2. Comparable selection (strict precision hierarchy)
3. Adjustment model (amenities, size, condition, micro-location)
4. Confidence scoring and two-tier classification
5. Deal scoring and grades
6. Sold/stale reconciliation per neighborhood
"""

from .models import Listing, SearchHit, NeighborhoodSearch, validate_listing
from .errors import (
    EngineError,
    DetailFetchFailed,
    ListingNotFound,
    InvalidListing,
    MalformedStrategyOutput,
    RateLimited,
    FatalSourceError,
)
from .scoring import DealScorer, DealScore, grade_for
from .rate_limit import RateLimiterState, next_delay, record_rate_limit

# Valuation Engine
from .valuation import (
    ValuationMethod,
    Classification,
    Valuation,
    AnalysisOptions,
    ValuationStrategy,
    RulesBasedStrategy,
    LLMValuationStrategy,
    create_strategy,
)

# Freshness Cache
from .cache import (
    MarketStatus,
    CacheEntry,
    ResultRecord,
    ListingCache,
    get_listing_cache,
    FreshnessPlanner,
    SoldDetector,
)

# Run Pipeline
from .pipeline import DealFinder, RunSummary, NeighborhoodSummary, RunError

__all__ = [
    # Models
    "Listing",
    "SearchHit",
    "NeighborhoodSearch",
    "validate_listing",
    # Errors
    "EngineError",
    "DetailFetchFailed",
    "ListingNotFound",
    "InvalidListing",
    "MalformedStrategyOutput",
    "RateLimited",
    "FatalSourceError",
    # Scoring
    "DealScorer",
    "DealScore",
    "grade_for",
    # Rate limiting
    "RateLimiterState",
    "next_delay",
    "record_rate_limit",
    # Valuation Engine
    "ValuationMethod",
    "Classification",
    "Valuation",
    "AnalysisOptions",
    "ValuationStrategy",
    "RulesBasedStrategy",
    "LLMValuationStrategy",
    "create_strategy",
    # Freshness Cache
    "MarketStatus",
    "CacheEntry",
    "ResultRecord",
    "ListingCache",
    "get_listing_cache",
    "FreshnessPlanner",
    "SoldDetector",
    # Run Pipeline
    "DealFinder",
    "RunSummary",
    "NeighborhoodSummary",
    "RunError",
]
