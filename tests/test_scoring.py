"""
Tests for deal scoring and grades.
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.models import Listing
from core.scoring import DealScorer, grade_for
from core.valuation import Classification, Valuation, ValuationMethod
from core.valuation.keywords import KeywordSignals, extract_signals


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def scorer():
    return DealScorer()


@pytest.fixture
def listing():
    return Listing(
        id="a",
        price=800_000,
        bedrooms=2,
        bathrooms=2.0,
        neighborhood="park-slope",
        sqft=1000,
        days_on_market=3,
    )


def make_valuation(discount=20.0, classification=Classification.UNDERVALUED, confidence=90):
    return Valuation(
        listing_id="a",
        estimated_market_price=1_000_000,
        actual_price=800_000,
        discount_percent=discount,
        confidence=confidence,
        method=ValuationMethod.BED_BATH_SPECIFIC,
        classification=classification,
    )


# =============================================================================
# Grades
# =============================================================================

class TestGrades:

    @pytest.mark.parametrize("score,grade", [
        (100, "A+"), (85, "A+"), (84, "A"), (65, "A-"), (55, "B+"),
        (45, "B"), (35, "B-"), (25, "C+"), (15, "C"), (14, "C-"), (0, "C-"),
    ])
    def test_bands(self, score, grade):
        assert grade_for(score) == grade


# =============================================================================
# Scorer
# =============================================================================

class TestDealScorer:

    def test_components(self, scorer, listing):
        result = scorer.score(listing, make_valuation(), KeywordSignals())

        assert result.components["discount"] == 40
        assert result.components["freshness"] == 15
        assert result.components["confidence"] == 9
        assert result.components["quality"] == 16
        assert result.score == 80
        assert result.grade == "A"

    def test_discount_capped(self, scorer, listing):
        result = scorer.score(listing, make_valuation(discount=45.0), KeywordSignals())
        assert result.components["discount"] == 50

    def test_insufficient_data_earns_no_discount_points(self, scorer, listing):
        valuation = make_valuation(discount=0.0, classification=Classification.INSUFFICIENT_DATA, confidence=0)

        result = scorer.score(listing, valuation, KeywordSignals())

        assert result.components["discount"] == 0
        assert "Not enough comparables for a valuation" in result.notes

    def test_overvalued_discount_not_negative(self, scorer, listing):
        result = scorer.score(listing, make_valuation(discount=-12.0, classification=Classification.OVERVALUED), KeywordSignals())
        assert result.components["discount"] == 0
        assert "Priced 12.0% above market" in result.notes

    def test_distress_and_warning_caps(self, scorer, listing):
        signals = KeywordSignals(
            distress={"estate sale", "as-is", "must sell", "probate"},
            warnings={"mold", "asbestos", "liens", "flood"},
        )

        result = scorer.score(listing, make_valuation(), signals)

        assert result.components["distress"] == 9
        assert result.components["warnings"] == -15

    def test_score_clamped(self, scorer, listing):
        listing.days_on_market = 200
        listing.bedrooms = 0
        listing.bathrooms = 1.0
        listing.sqft = 400
        signals = KeywordSignals(warnings={"mold", "asbestos", "liens"})
        valuation = make_valuation(discount=-20.0, classification=Classification.OVERVALUED, confidence=0)

        result = scorer.score(listing, valuation, signals)

        assert result.score == 0
        assert result.grade == "C-"

    def test_premium_neighborhood(self, scorer, listing):
        base = scorer.score(listing, make_valuation(), KeywordSignals()).components["quality"]
        listing.neighborhood = "West Village"
        premium = scorer.score(listing, make_valuation(), KeywordSignals()).components["quality"]
        assert premium - base == 10

    def test_notes_include_signals(self, scorer, listing):
        signals = extract_signals("Motivated seller. Some water damage.")

        result = scorer.score(listing, make_valuation(), signals)

        assert "20.0% below market (bed_bath_specific)" in result.notes
        assert "Distress signals: motivated seller" in result.notes
        assert "Warnings: water damage" in result.notes

    def test_to_dict(self, scorer, listing):
        data = scorer.score(listing, make_valuation(), KeywordSignals()).to_dict()
        assert set(data) == {"score", "grade", "components", "notes"}
