"""
Deal Finder - Per-Neighborhood Run Pipeline

Drives one batch pass over a list of neighborhoods:
1. PLAN - Split the search snapshot by cache state (before any fetch)
2. UPDATE - Fast-path price updates for drifted listings
3. FETCH - Detail fetches for new or incomplete listings (rate limited)
4. VALUE - Strategy valuation for fetched and re-analysed listings
5. PERSIST - Result rows and cache status
6. RECONCILE - Sold/stale detection for the neighborhood

Failures for one listing or one neighborhood are recorded and the run
continues. Only FatalSourceError stops the run.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional

from .cache import (
    CacheEntry,
    FreshnessPlanner,
    ListingCache,
    MarketStatus,
    ResultRecord,
    SoldDetector,
)
from .cache.models import utc_now
from .errors import DetailFetchFailed, EngineError, FatalSourceError, RateLimited
from .models import Listing, NeighborhoodSearch, SearchHit, validate_listing
from .rate_limit import RateLimiterState, next_delay, record_rate_limit
from .scoring import DealScorer
from .valuation import Valuation, ValuationStrategy, extract_signals

logger = logging.getLogger(__name__)


@dataclass
class RunError:
    """One recorded failure: a listing id or a neighborhood, and what went wrong."""
    scope: str
    error: str
    timestamp: datetime = field(default_factory=utc_now)
    error_type: str = ""

    @classmethod
    def from_exception(cls, scope: str, exc: Exception) -> "RunError":
        return cls(scope=scope, error=str(exc), error_type=type(exc).__name__)

    def to_dict(self) -> dict:
        return {
            "scope": self.scope,
            "error": self.error,
            "error_type": self.error_type,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class NeighborhoodSummary:
    """Counts for one neighborhood pass."""
    neighborhood: str
    hits: int = 0
    skipped: int = 0
    price_updated: int = 0
    fetched: int = 0
    fetch_failed: int = 0
    deferred: int = 0
    reanalyzed: int = 0
    analyzed: int = 0
    failed: int = 0
    undervalued: int = 0
    marked_sold: int = 0
    errors: List[RunError] = field(default_factory=list)

    @property
    def detail_calls_saved(self) -> int:
        return self.skipped + self.price_updated + self.reanalyzed

    def to_dict(self) -> dict:
        return {
            "neighborhood": self.neighborhood,
            "hits": self.hits,
            "skipped": self.skipped,
            "price_updated": self.price_updated,
            "fetched": self.fetched,
            "fetch_failed": self.fetch_failed,
            "deferred": self.deferred,
            "reanalyzed": self.reanalyzed,
            "analyzed": self.analyzed,
            "failed": self.failed,
            "undervalued": self.undervalued,
            "marked_sold": self.marked_sold,
            "detail_calls_saved": self.detail_calls_saved,
            "errors": [e.to_dict() for e in self.errors],
        }


@dataclass
class RunSummary:
    """Outcome of a whole run; partial when aborted."""
    started_at: datetime = field(default_factory=utc_now)
    finished_at: Optional[datetime] = None
    neighborhoods: List[NeighborhoodSummary] = field(default_factory=list)
    errors: List[RunError] = field(default_factory=list)
    aborted: bool = False
    purged: int = 0

    def _total(self, name: str) -> int:
        return sum(getattr(n, name) for n in self.neighborhoods)

    @property
    def all_errors(self) -> List[RunError]:
        errors = list(self.errors)
        for n in self.neighborhoods:
            errors.extend(n.errors)
        return errors

    def to_dict(self) -> dict:
        totals = {
            name: self._total(name)
            for name in (
                "hits", "skipped", "price_updated", "fetched", "fetch_failed",
                "deferred", "reanalyzed", "analyzed", "failed", "undervalued",
                "marked_sold",
            )
        }
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "aborted": self.aborted,
            "purged": self.purged,
            "neighborhoods_processed": len(self.neighborhoods),
            "totals": totals,
            "error_count": len(self.all_errors),
            "errors": [e.to_dict() for e in self.errors],
            "neighborhoods": [n.to_dict() for n in self.neighborhoods],
        }


class DealFinder:
    """
    Batch pipeline over neighborhoods.

    Single sequential worker. The rate limiter is an explicit value owned
    here and advanced on every detail fetch.
    """

    def __init__(
        self,
        cache: ListingCache,
        fetcher,
        strategy: ValuationStrategy,
        config,
        reference_time: Optional[datetime] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the pipeline.

        Args:
            cache: Listing cache
            fetcher: DetailFetcher for new or incomplete listings
            strategy: Valuation strategy
            config: Config instance
            reference_time: "Now" for freshness and staleness (default: current UTC)
            sleep: Called with the delay before each detail fetch
            clock: Seconds source for the rate limiter
        """
        self._cache = cache
        self._fetcher = fetcher
        self._strategy = strategy
        self._config = config
        self._reference_time = reference_time
        self._sleep = sleep
        self._clock = clock
        self._options = config.analysis_options()
        self._scorer = DealScorer()
        self.rate_limiter = RateLimiterState.from_config(config)

    def _now(self) -> datetime:
        return self._reference_time or utc_now()

    # =========================================================================
    # Run
    # =========================================================================

    def run(
        self,
        neighborhoods: Iterable[str],
        source,
        purge: bool = True,
    ) -> RunSummary:
        """
        Process neighborhoods in order.

        Args:
            neighborhoods: Neighborhood slugs
            source: SearchSource for snapshots
            purge: Run the age-based purge first

        Returns:
            RunSummary (aborted=True if a fatal source error stopped the run)
        """
        summary = RunSummary(started_at=self._now())

        if purge:
            summary.purged = self._cache.purge_older_than(
                timedelta(days=self._config.purge_after_days), now=self._now()
            )

        for neighborhood in neighborhoods:
            logger.info("Processing %s", neighborhood)
            try:
                search = source.search(neighborhood)
                result = self.process_neighborhood(search)
            except FatalSourceError as e:
                logger.error("Fatal source error in %s, stopping run: %s", neighborhood, e)
                summary.errors.append(RunError.from_exception(neighborhood, e))
                summary.aborted = True
                break
            except Exception as e:
                logger.error("Neighborhood %s failed: %s", neighborhood, e)
                summary.errors.append(RunError.from_exception(neighborhood, e))
                continue

            summary.neighborhoods.append(result)

        summary.finished_at = utc_now()
        logger.info(
            "Run finished: %s neighborhoods, %s analyzed, %s undervalued, %s errors%s",
            len(summary.neighborhoods), summary._total("analyzed"),
            summary._total("undervalued"), len(summary.all_errors),
            " (aborted)" if summary.aborted else "",
        )
        return summary

    # =========================================================================
    # Neighborhood
    # =========================================================================

    def process_neighborhood(self, search: NeighborhoodSearch) -> NeighborhoodSummary:
        """
        Run the full pipeline for one search snapshot.

        Args:
            search: Snapshot of the neighborhood's active listings

        Returns:
            NeighborhoodSummary with explicit counts

        Raises:
            FatalSourceError: From the detail fetcher; the cache stays consistent
        """
        now = self._now()
        neighborhood = search.neighborhood
        summary = NeighborhoodSummary(neighborhood=neighborhood)

        # Step 1: Plan before any external call
        planner = FreshnessPlanner.from_config(self._cache, self._config, reference_time=now)
        plan = planner.plan(search.hits)
        summary.hits = plan.total
        summary.skipped = len(plan.skip)

        self._cache.touch_seen(search.listing_ids, seen_at=now, neighborhood=neighborhood)

        # Step 2: Fast-path price updates
        for listing_id, new_price in plan.price_updates.items():
            if self._cache.mark_price_only(listing_id, new_price, checked_at=now):
                summary.price_updated += 1

        # Step 3: Detail fetches
        fetched = self._fetch_all(plan.fetch, neighborhood, now, summary)

        # Step 4-5: Value and persist
        subjects = list(fetched)
        for listing_id in plan.reanalyze:
            entry = self._cache.get(listing_id)
            if entry is not None:
                subjects.append(entry.to_listing())
        summary.reanalyzed = len(plan.reanalyze)

        pool = self.build_pool(search, fetched)
        for subject in subjects:
            self._value_subject(subject, pool, neighborhood, now, summary)

        # Step 6: Sold/stale reconciliation
        detector = SoldDetector(
            self._cache,
            stale_search_window_days=self._config.stale_search_window_days,
            reference_time=now,
        )
        summary.marked_sold = detector.reconcile(neighborhood, search.listing_ids)

        logger.info(
            "%s: %s hits, %s skipped, %s price updates, %s fetched, %s failed, "
            "%s analyzed, %s undervalued, %s likely sold",
            neighborhood, summary.hits, summary.skipped, summary.price_updated,
            summary.fetched, summary.fetch_failed, summary.analyzed,
            summary.undervalued, summary.marked_sold,
        )
        return summary

    def build_pool(self, search: NeighborhoodSearch, fetched: List[Listing]) -> List[Listing]:
        """
        Comparable pool for a neighborhood.

        Union of the search's comparables, complete cached listings and newly
        fetched listings, keyed by id with the newest data winning.
        """
        pool: Dict[str, Listing] = {}
        for listing in search.comparables:
            pool[listing.id] = listing
        for entry in self._cache.listings_for_neighborhood(search.neighborhood, complete_only=True):
            if entry.market_status != MarketStatus.LIKELY_SOLD:
                pool[entry.listing_id] = entry.to_listing()
        for listing in fetched:
            pool[listing.id] = listing
        return list(pool.values())

    # =========================================================================
    # Steps
    # =========================================================================

    def _fetch_all(
        self,
        hits: List[SearchHit],
        neighborhood: str,
        now: datetime,
        summary: NeighborhoodSummary,
    ) -> List[Listing]:
        fetched = []
        for hit in hits:
            self._wait_for_rate_limit()
            try:
                listing = validate_listing(
                    self._fetcher.get_listing_details(hit.listing_id), hit.listing_id
                )
            except DetailFetchFailed as e:
                logger.warning("Fetch failed for %s: %s", hit.listing_id, e)
                self._cache.record_fetch_failure(hit, reason=str(e), failed_at=now)
                summary.fetch_failed += 1
                summary.errors.append(RunError.from_exception(hit.listing_id, e))
                continue
            except RateLimited as e:
                logger.warning("Rate limited fetching %s, deferring", hit.listing_id)
                self.rate_limiter = record_rate_limit(self.rate_limiter, e.retry_after)
                summary.deferred += 1
                summary.errors.append(RunError.from_exception(hit.listing_id, e))
                continue
            except FatalSourceError:
                raise
            except Exception as e:
                # Unparseable payload; stored as fetch_failed like any bad listing
                logger.warning("Unexpected error fetching %s: %s", hit.listing_id, e)
                self._cache.record_fetch_failure(hit, reason=f"{type(e).__name__}: {e}", failed_at=now)
                summary.fetch_failed += 1
                summary.errors.append(RunError.from_exception(hit.listing_id, e))
                continue

            if not listing.neighborhood:
                listing.neighborhood = neighborhood

            # Sold detection is scoped to the search that observed the listing
            self._cache.upsert(CacheEntry.from_listing(listing, now=now, neighborhood=neighborhood))
            fetched.append(listing)
            summary.fetched += 1

        return fetched

    def _wait_for_rate_limit(self) -> None:
        delay, self.rate_limiter = next_delay(self.rate_limiter, self._clock())
        if delay > 0:
            self._sleep(delay)

    def _value_subject(
        self,
        subject: Listing,
        pool: List[Listing],
        neighborhood: str,
        now: datetime,
        summary: NeighborhoodSummary,
    ) -> Optional[Valuation]:
        try:
            valuation = self._strategy.analyze(subject, pool, neighborhood, self._options)
        except RateLimited as e:
            # Entry keeps its status and is picked up on a later cycle
            logger.warning("Valuation rate limited for %s, deferring", subject.id)
            self.rate_limiter = record_rate_limit(self.rate_limiter, e.retry_after)
            summary.deferred += 1
            summary.errors.append(RunError.from_exception(subject.id, e))
            return None
        except FatalSourceError:
            raise
        except EngineError as e:
            logger.warning("Valuation failed for %s: %s", subject.id, e)
            summary.failed += 1
            summary.errors.append(RunError.from_exception(subject.id, e))
            return None
        except Exception as e:
            logger.warning("Unexpected valuation error for %s: %s", subject.id, e)
            summary.failed += 1
            summary.errors.append(RunError.from_exception(subject.id, e))
            return None

        signals = extract_signals(subject.description)
        deal = self._scorer.score(subject, valuation, signals)

        self._cache.save_result(ResultRecord.from_valuation(
            subject,
            valuation,
            score=deal.score,
            grade=deal.grade,
            distress_signals=sorted(signals.distress),
            warning_signals=sorted(signals.warnings),
        ))
        self._cache.mark_analysis_result(
            subject.id,
            MarketStatus.from_classification(valuation.classification),
            analyzed_at=now,
        )

        summary.analyzed += 1
        if valuation.is_undervalued:
            summary.undervalued += 1
        return valuation
