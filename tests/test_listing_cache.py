"""
Tests for the listing cache repository.

Verifies:
- lookup is read-only, order preserving and idempotent
- upsert never duplicates and keeps last_analyzed / times_seen
- price-only updates leave every other field alone
- fetch failures are recorded for retry
- age-based purge of entries and results
- JSON persistence survives a reload
"""

import sys
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.cache import (
    CacheEntry,
    ListingCache,
    MarketStatus,
    ResultRecord,
    ResultStatus,
)
from core.models import Listing, SearchHit
from core.valuation import Classification


NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def cache():
    return ListingCache()


@pytest.fixture
def persist_path():
    with tempfile.TemporaryDirectory() as tmpdir:
        yield str(Path(tmpdir) / "cache.json")


def make_entry(listing_id="L1", price=900_000, neighborhood="astoria", **overrides):
    fields = dict(
        listing_id=listing_id,
        price=price,
        neighborhood=neighborhood,
        address="1 Main St",
        bedrooms=2,
        bathrooms=1.0,
        sqft=900,
        amenities=["elevator"],
        description="Sunny unit",
        last_checked=NOW,
        last_seen_in_search=NOW,
    )
    fields.update(overrides)
    return CacheEntry(**fields)


def make_record(listing_id="L1", neighborhood="astoria", score=50, discount=10.0,
                classification="moderately_undervalued", analysis_date=NOW):
    return ResultRecord(
        listing_id=listing_id,
        neighborhood=neighborhood,
        price=900_000,
        estimated_market_price=1_000_000,
        discount_percent=discount,
        confidence=80,
        method="bed_bath_specific",
        classification=classification,
        score=score,
        analysis_date=analysis_date,
    )


# =============================================================================
# Lookup
# =============================================================================

class TestLookup:

    def test_partitions_ids(self, cache):
        cache.upsert(make_entry("complete"))
        cache.upsert(make_entry("no-area", sqft=None))

        result = cache.lookup(["new", "complete", "no-area"])

        assert result.complete == ["complete"]
        assert result.incomplete == ["no-area"]
        assert result.unseen == ["new"]

    def test_idempotent_and_deduplicated(self, cache):
        cache.upsert(make_entry("a"))
        first = cache.lookup(["b", "a", "b"])
        second = cache.lookup(["b", "a", "b"])

        assert first == second
        assert first.unseen == ["b"]
        assert cache.count() == 1

    def test_fetch_failed_is_incomplete(self, cache):
        cache.upsert(make_entry("a", market_status=MarketStatus.FETCH_FAILED))
        assert cache.lookup(["a"]).incomplete == ["a"]


# =============================================================================
# Writes
# =============================================================================

class TestWrites:

    def test_upsert_no_duplicates(self, cache):
        cache.upsert(make_entry("a", price=900_000))
        cache.upsert(make_entry("a", price=950_000))

        assert cache.count() == 1
        assert cache.get("a").price == 950_000

    def test_upsert_keeps_history(self, cache):
        cache.upsert(make_entry("a"))
        cache.mark_analysis_result("a", MarketStatus.MARKET_RATE, analyzed_at=NOW)
        cache.touch_seen(["a"], seen_at=NOW)

        cache.upsert(make_entry("a"))

        entry = cache.get("a")
        assert entry.last_analyzed == NOW
        assert entry.times_seen == 2

    def test_price_only_update(self, cache):
        cache.upsert(make_entry("a", market_status=MarketStatus.UNDERVALUED))
        later = NOW + timedelta(days=1)

        assert cache.mark_price_only("a", 850_000, checked_at=later)

        entry = cache.get("a")
        assert entry.price == 850_000
        assert entry.last_checked == later
        assert entry.market_status == MarketStatus.PENDING
        assert entry.address == "1 Main St"
        assert entry.sqft == 900
        assert entry.amenities == ["elevator"]
        assert entry.description == "Sunny unit"

    def test_price_only_unknown_id(self, cache):
        assert not cache.mark_price_only("missing", 1)

    def test_touch_seen_ignores_unknown(self, cache):
        cache.upsert(make_entry("a"))
        assert cache.touch_seen(["a", "ghost"], seen_at=NOW) == 1

    def test_touch_seen_moves_neighborhood(self, cache):
        cache.upsert(make_entry("a", neighborhood="greenwich-village"))

        cache.touch_seen(["a"], seen_at=NOW, neighborhood="west-village")

        assert cache.get("a").neighborhood == "west-village"
        assert cache.listings_for_neighborhood("greenwich-village") == []

    def test_entry_from_listing_prefers_search_neighborhood(self):
        listing = Listing(id="a", price=900_000, bedrooms=2, bathrooms=1.0, neighborhood="Greenwich Village")

        entry = CacheEntry.from_listing(listing, now=NOW, neighborhood="west-village")

        assert entry.neighborhood == "west-village"

    def test_record_fetch_failure_new(self, cache):
        entry = cache.record_fetch_failure(SearchHit("x", 700_000, "astoria"), "404", failed_at=NOW)

        assert entry.market_status == MarketStatus.FETCH_FAILED
        assert entry.fetch_error == "404"
        assert not entry.is_complete

    def test_record_fetch_failure_keeps_details(self, cache):
        cache.upsert(make_entry("a"))
        cache.record_fetch_failure(SearchHit("a", 900_000, "astoria"), "timeout", failed_at=NOW)

        assert cache.get("a").address == "1 Main St"

    def test_mark_likely_sold_updates_result(self, cache):
        cache.upsert(make_entry("a"))
        cache.save_result(make_record("a"))

        assert cache.mark_likely_sold(["a", "a"]) == 1
        assert cache.mark_likely_sold(["a"]) == 0
        assert cache.get_result("a").status == ResultStatus.LIKELY_SOLD


# =============================================================================
# Purge
# =============================================================================

class TestPurge:

    def test_removes_old_entries_and_results(self, cache):
        old = NOW - timedelta(days=120)
        cache.upsert(make_entry("old", last_checked=old, last_seen_in_search=old))
        cache.upsert(make_entry("new"))
        cache.save_result(make_record("old", analysis_date=old))
        cache.save_result(make_record("new"))

        removed = cache.purge_older_than(timedelta(days=100), now=NOW)

        assert removed == 1
        assert cache.get("old") is None
        assert cache.get_result("old") is None
        assert cache.get_result("new") is not None

    def test_recent_sighting_protects_entry(self, cache):
        old = NOW - timedelta(days=120)
        cache.upsert(make_entry("a", last_checked=old, last_seen_in_search=NOW))

        assert cache.purge_older_than(timedelta(days=100), now=NOW) == 0

    def test_orphaned_results_removed(self, cache):
        cache.save_result(make_record("orphan"))
        cache.purge_older_than(timedelta(days=100), now=NOW)
        assert cache.get_result("orphan") is None


# =============================================================================
# Results
# =============================================================================

class TestResults:

    def test_filters_and_order(self, cache):
        cache.save_result(make_record("a", score=40, discount=8.0))
        cache.save_result(make_record("b", score=70, discount=20.0, classification="undervalued"))
        cache.save_result(make_record("c", neighborhood="park-slope", score=55))

        assert [r.listing_id for r in cache.list_results()] == ["b", "c", "a"]
        assert [r.listing_id for r in cache.list_results(classification="undervalued")] == ["b"]
        assert [r.listing_id for r in cache.list_results(neighborhood="Park Slope")] == ["c"]
        assert [r.listing_id for r in cache.list_results(min_discount=15)] == ["b"]
        assert len(cache.list_results(limit=2)) == 2

    def test_stats(self, cache):
        cache.upsert(make_entry("a"))
        cache.upsert(make_entry("b", sqft=None))
        cache.save_result(make_record("a"))

        stats = cache.stats()

        assert stats["total_listings"] == 2
        assert stats["complete"] == 1
        assert stats["incomplete"] == 1
        assert stats["total_results"] == 1
        assert stats["classification_counts"] == {"moderately_undervalued": 1}


# =============================================================================
# Persistence
# =============================================================================

class TestPersistence:

    def test_reload(self, persist_path):
        cache = ListingCache(persist_path=persist_path)
        listing = Listing(
            id="a", price=1_200_000, bedrooms=2, bathrooms=2.0, neighborhood="dumbo",
            sqft=1100, address="2 Water St", amenities=["doorman"],
        )
        cache.upsert(CacheEntry.from_listing(listing, now=NOW))
        cache.mark_analysis_result("a", MarketStatus.UNDERVALUED, analyzed_at=NOW)
        cache.save_result(make_record("a", classification=Classification.UNDERVALUED.value))

        reloaded = ListingCache(persist_path=persist_path)

        entry = reloaded.get("a")
        assert entry.price == 1_200_000
        assert entry.market_status == MarketStatus.UNDERVALUED
        assert entry.last_analyzed == NOW
        assert entry.to_listing().amenities == ["doorman"]
        assert reloaded.get_result("a").classification == "undervalued"

    def test_corrupt_file_starts_empty(self, persist_path):
        Path(persist_path).write_text("{not json")

        cache = ListingCache(persist_path=persist_path)

        assert cache.count() == 0

    def test_truncated_file_kept_aside(self, persist_path):
        cache = ListingCache(persist_path=persist_path)
        cache.upsert(make_entry("a"))
        truncated = Path(persist_path).read_text()[:40]
        Path(persist_path).write_text(truncated)

        cache = ListingCache(persist_path=persist_path)
        cache.upsert(make_entry("b"))

        corrupt = Path(persist_path + ".corrupt")
        assert corrupt.read_text() == truncated
        assert [e.listing_id for e in ListingCache(persist_path=persist_path).listings_for_neighborhood("astoria")] == ["b"]

    def test_save_leaves_no_temp_files(self, persist_path):
        cache = ListingCache(persist_path=persist_path)
        cache.upsert(make_entry("a"))
        cache.upsert(make_entry("b"))

        assert sorted(p.name for p in Path(persist_path).parent.iterdir()) == ["cache.json"]
