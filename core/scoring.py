"""
Deal scoring and letter grades for valued listings.
"""

from dataclasses import dataclass, field
from typing import Dict, List

from .models import Listing
from .valuation.keywords import KeywordSignals, listing_amenities
from .valuation.models import Classification, Valuation


# Grade bands, highest first
GRADE_BANDS = (
    (85, "A+"),
    (75, "A"),
    (65, "A-"),
    (55, "B+"),
    (45, "B"),
    (35, "B-"),
    (25, "C+"),
    (15, "C"),
)
LOWEST_GRADE = "C-"


def grade_for(score: float) -> str:
    """Letter grade for a 0-100 score."""
    for floor, grade in GRADE_BANDS:
        if score >= floor:
            return grade
    return LOWEST_GRADE


@dataclass
class DealScore:
    """Composite score for one valued listing."""
    score: int
    grade: str
    components: Dict[str, float] = field(default_factory=dict)
    notes: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "grade": self.grade,
            "components": dict(self.components),
            "notes": list(self.notes),
        }


class DealScorer:
    """
    Scores valued listings for ranking.

    Scoring methodology (0-100):
    - Discount (0-50): twice the discount percent
    - Freshness (0-15): recently listed properties score higher
    - Confidence (0-10): one point per ten confidence points
    - Distress (0-9): +3 per distress signal
    - Warnings (0 to -15): -5 per warning signal
    - Quality (0-36): size, layout, amenities and premium neighborhoods
    """

    MAX_DISCOUNT_POINTS = 50
    DISTRESS_POINTS = 3
    MAX_DISTRESS_POINTS = 9
    WARNING_POINTS = -5
    MAX_WARNING_PENALTY = -15

    FRESH_DAYS = 7
    RECENT_DAYS = 30
    AGING_DAYS = 60

    PREMIUM_NEIGHBORHOODS = (
        "west-village", "soho", "tribeca", "dumbo", "williamsburg", "carroll-gardens",
    )

    def score(
        self,
        listing: Listing,
        valuation: Valuation,
        signals: KeywordSignals,
    ) -> DealScore:
        """
        Score a single valued listing.

        Args:
            listing: The subject listing
            valuation: Its valuation
            signals: Keyword signals from its description

        Returns:
            DealScore with grade and per-component points
        """
        components = {
            "discount": self._discount_points(valuation),
            "freshness": self._freshness_points(listing.days_on_market),
            "confidence": valuation.confidence / 10,
            "distress": min(len(signals.distress) * self.DISTRESS_POINTS, self.MAX_DISTRESS_POINTS),
            "warnings": max(len(signals.warnings) * self.WARNING_POINTS, self.MAX_WARNING_PENALTY),
            "quality": self._quality_points(listing),
        }

        total = max(0, min(100, round(sum(components.values()))))

        return DealScore(
            score=total,
            grade=grade_for(total),
            components={k: round(v, 1) for k, v in components.items()},
            notes=self._generate_notes(listing, valuation, signals),
        )

    def _discount_points(self, valuation: Valuation) -> float:
        if valuation.classification == Classification.INSUFFICIENT_DATA:
            return 0.0
        return max(0.0, min(valuation.discount_percent * 2, self.MAX_DISCOUNT_POINTS))

    def _freshness_points(self, days_on_market: int) -> float:
        if days_on_market <= self.FRESH_DAYS:
            return 15
        if days_on_market <= self.RECENT_DAYS:
            return 10
        if days_on_market <= self.AGING_DAYS:
            return 5
        return 0

    def _quality_points(self, listing: Listing) -> float:
        points = 0
        if (listing.bedrooms or 0) >= 2:
            points += 5
        if (listing.bathrooms or 0) >= 2:
            points += 3
        if (listing.sqft or 0) >= 1000:
            points += 8
        if len(listing_amenities(listing)) >= 5:
            points += 5
        neighborhood = (listing.neighborhood or "").strip().lower().replace(" ", "-")
        if neighborhood in self.PREMIUM_NEIGHBORHOODS:
            points += 10
        return points

    def _generate_notes(
        self,
        listing: Listing,
        valuation: Valuation,
        signals: KeywordSignals,
    ) -> List[str]:
        """Generate analysis notes for the listing."""
        notes = []

        if valuation.classification == Classification.INSUFFICIENT_DATA:
            notes.append("Not enough comparables for a valuation")
        elif valuation.discount_percent > 0:
            method = valuation.method.value if valuation.method else "unknown"
            notes.append(f"{valuation.discount_percent:.1f}% below market ({method})")
        elif valuation.discount_percent < 0:
            notes.append(f"Priced {abs(valuation.discount_percent):.1f}% above market")

        if listing.days_on_market <= self.FRESH_DAYS:
            notes.append(f"Fresh listing ({listing.days_on_market} days)")
        elif listing.days_on_market > self.AGING_DAYS:
            notes.append(f"Longer on market ({listing.days_on_market} days)")

        if signals.distress:
            notes.append("Distress signals: " + ", ".join(sorted(signals.distress)))
        if signals.warnings:
            notes.append("Warnings: " + ", ".join(sorted(signals.warnings)))

        return notes
