"""
Tests for the adjustment model.

Verifies:
- Median (not mean) base value
- Bathroom correction on the bedroom-only tier
- Price-per-sqft base for the fallback tier
- Location-aware amenity values, net of the pool average
- Asymmetric size rates, skipped for the fallback tier
- Condition and micro-location phrases
- Tables are exposed in one serializable structure
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.models import Listing
from core.valuation import (
    ADJUSTMENT_TABLES_VERSION,
    AdjustmentModel,
    ComparablePool,
    ValuationMethod,
    adjustment_tables,
    is_manhattan,
)
from core.valuation.adjustments import size_bracket_for


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def model():
    return AdjustmentModel()


@pytest.fixture
def create_listing():
    counter = {"n": 0}

    def _create(price=1_000_000, bedrooms=2, bathrooms=2.0, sqft=1000, amenities=None,
                description="", neighborhood="park-slope", borough="Brooklyn"):
        counter["n"] += 1
        return Listing(
            id=f"L{counter['n']}",
            price=price,
            bedrooms=bedrooms,
            bathrooms=bathrooms,
            neighborhood=neighborhood,
            sqft=sqft,
            borough=borough,
            amenities=list(amenities or []),
            description=description,
        )
    return _create


def pool_of(method, listings):
    return ComparablePool(method=method, comparables=listings)


# =============================================================================
# Base Value
# =============================================================================

class TestBaseValue:

    def test_median_not_mean(self, model, create_listing):
        subject = create_listing()
        comps = [create_listing(price=p) for p in (900_000, 1_000_000, 3_000_000)]

        base = model.base_value(subject, pool_of(ValuationMethod.BED_BATH_SPECIFIC, comps))

        assert base == 1_000_000

    def test_bedroom_tier_bathroom_correction(self, model, create_listing):
        subject = create_listing(bathrooms=2.0)
        comps = [create_listing(bathrooms=1.0) for _ in range(12)]

        base = model.base_value(subject, pool_of(ValuationMethod.BEDROOM_SPECIFIC, comps))

        # Two half baths above the pool median
        assert base == 1_050_000

    def test_bathroom_correction_can_be_negative(self, model, create_listing):
        subject = create_listing(bathrooms=1.0)
        comps = [create_listing(bathrooms=1.5) for _ in range(12)]

        base = model.base_value(subject, pool_of(ValuationMethod.BEDROOM_SPECIFIC, comps))

        assert base == 975_000

    def test_fallback_uses_price_per_sqft(self, model, create_listing):
        subject = create_listing(sqft=800)
        comps = [create_listing(price=1_000_000, sqft=1000) for _ in range(20)]

        base = model.base_value(subject, pool_of(ValuationMethod.PRICE_PER_SQFT_FALLBACK, comps))

        assert base == pytest.approx(800_000)

    def test_empty_pool(self, model, create_listing):
        assert model.base_value(create_listing(), pool_of(ValuationMethod.EXACT_MATCH, [])) == 0.0


# =============================================================================
# Amenities
# =============================================================================

class TestAmenityAdjustment:

    def test_manhattan_values_higher(self, model, create_listing):
        manhattan = create_listing(amenities=["gym"], neighborhood="west-village", borough="")
        outer = create_listing(amenities=["gym"])
        comps = [create_listing() for _ in range(8)]
        pool = pool_of(ValuationMethod.BED_BATH_SPECIFIC, comps)

        m = model.adjust(manhattan, 1_000_000, pool).amount_for("amenities")
        o = model.adjust(outer, 1_000_000, pool).amount_for("amenities")

        assert m == 25_000
        assert o == 15_000

    def test_percent_amenity(self, model, create_listing):
        subject = create_listing(amenities=["full time doorman"], borough="Manhattan")
        pool = pool_of(ValuationMethod.BED_BATH_SPECIFIC, [create_listing() for _ in range(8)])

        breakdown = model.adjust(subject, 2_000_000, pool)

        assert breakdown.amount_for("amenities") == pytest.approx(100_000)

    def test_net_of_pool_average(self, model, create_listing):
        subject = create_listing(amenities=["gym"])
        comps = [create_listing(amenities=["gym"]) for _ in range(4)]
        comps += [create_listing() for _ in range(4)]
        pool = pool_of(ValuationMethod.BED_BATH_SPECIFIC, comps)

        breakdown = model.adjust(subject, 1_000_000, pool)

        # 15k subject vs 7.5k pool average
        assert breakdown.amount_for("amenities") == pytest.approx(7_500)

    def test_unvalued_tags_ignored(self, model, create_listing):
        subject = create_listing(amenities=["bike_room"])
        pool = pool_of(ValuationMethod.BED_BATH_SPECIFIC, [create_listing() for _ in range(8)])

        breakdown = model.adjust(subject, 1_000_000, pool)

        assert breakdown.entries == []


# =============================================================================
# Size
# =============================================================================

class TestSizeAdjustment:

    def test_above_pool_average(self, model, create_listing):
        subject = create_listing(sqft=1100)
        pool = pool_of(ValuationMethod.BED_BATH_SPECIFIC, [create_listing(sqft=1000) for _ in range(8)])

        assert model.adjust(subject, 1_000_000, pool).amount_for("square_footage") == 50_000

    def test_below_uses_higher_rate(self, model, create_listing):
        subject = create_listing(sqft=900)
        pool = pool_of(ValuationMethod.BED_BATH_SPECIFIC, [create_listing(sqft=1000) for _ in range(8)])

        assert model.adjust(subject, 1_000_000, pool).amount_for("square_footage") == -65_000

    def test_baseline_when_pool_has_no_area(self, model, create_listing):
        subject = create_listing(bedrooms=0, bathrooms=1.0, sqft=500)
        comps = [create_listing(bedrooms=0, bathrooms=1.0, sqft=None) for _ in range(8)]

        breakdown = model.adjust(subject, 600_000, pool_of(ValuationMethod.BED_BATH_SPECIFIC, comps))

        # Studio baseline 450 sqft at $600/sqft above
        assert breakdown.amount_for("square_footage") == 30_000

    def test_subject_without_area_skipped(self, model, create_listing):
        subject = create_listing(sqft=None)
        pool = pool_of(ValuationMethod.BED_BATH_SPECIFIC, [create_listing(sqft=1000) for _ in range(8)])

        assert model.adjust(subject, 1_000_000, pool).amount_for("square_footage") == 0

    def test_not_applied_to_fallback(self, model, create_listing):
        subject = create_listing(sqft=1500)
        pool = pool_of(
            ValuationMethod.PRICE_PER_SQFT_FALLBACK,
            [create_listing(bedrooms=1, sqft=700) for _ in range(20)],
        )

        breakdown = model.adjust(subject, 1_000_000, pool)

        assert all(e.category != "square_footage" for e in breakdown.entries)

    def test_bracket_lookup(self):
        assert size_bracket_for(0).name == "studio"
        assert size_bracket_for(1).name == "one_bedroom"
        assert size_bracket_for(2).name == "two_bedroom"
        assert size_bracket_for(5).name == "three_plus"


# =============================================================================
# Condition / Micro-location
# =============================================================================

class TestPhraseAdjustments:

    def test_condition_phrases(self, model, create_listing):
        subject = create_listing(description="Gut renovated and move-in ready.")
        pool = pool_of(ValuationMethod.BED_BATH_SPECIFIC, [create_listing() for _ in range(8)])

        assert model.adjust(subject, 1_000_000, pool).amount_for("condition") == 95_000

    def test_negative_condition(self, model, create_listing):
        subject = create_listing(description="Fixer-upper, sold as-is.")
        pool = pool_of(ValuationMethod.BED_BATH_SPECIFIC, [create_listing() for _ in range(8)])

        assert model.adjust(subject, 1_000_000, pool).amount_for("condition") == -125_000

    def test_micro_location(self, model, create_listing):
        subject = create_listing(description="Ground floor unit on a busy street.")
        pool = pool_of(ValuationMethod.BED_BATH_SPECIFIC, [create_listing() for _ in range(8)])

        assert model.adjust(subject, 1_000_000, pool).amount_for("micro_location") == -40_000

    def test_estimate_sums_breakdown(self, model, create_listing):
        subject = create_listing(sqft=1100, description="Tree-lined block.")
        pool = pool_of(ValuationMethod.BED_BATH_SPECIFIC, [create_listing(sqft=1000) for _ in range(8)])

        breakdown = model.adjust(subject, 1_000_000, pool)

        assert model.estimate(1_000_000, breakdown) == 1_070_000


# =============================================================================
# Tables
# =============================================================================

class TestTables:

    def test_manhattan_detection(self, create_listing):
        assert is_manhattan(create_listing(borough="Manhattan"))
        assert is_manhattan(create_listing(neighborhood="upper-west-side", borough=""))
        assert not is_manhattan(create_listing(neighborhood="astoria", borough="Queens"))

    def test_tables_serializable(self):
        tables = adjustment_tables()

        assert tables["version"] == ADJUSTMENT_TABLES_VERSION
        assert tables["amenities"]["gym"]["manhattan"] == {"type": "fixed", "value": 25_000}
        assert tables["size_brackets"]["studio"]["baseline_sqft"] == 450
        assert any(rule["amount"] == -75_000 for rule in tables["condition"])
