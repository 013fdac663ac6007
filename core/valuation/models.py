"""
Data models for the valuation engine.

Defines the comparable-selection tiers, the adjustment breakdown and the
immutable Valuation result.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from core.models import Listing


class ValuationMethod(Enum):
    """
    How the market estimate was produced.

    The first four members are the comparable tiers, most precise first.
    """
    EXACT_MATCH = "exact_match"
    BED_BATH_SPECIFIC = "bed_bath_specific"
    BEDROOM_SPECIFIC = "bedroom_specific"
    PRICE_PER_SQFT_FALLBACK = "price_per_sqft_fallback"
    LLM_ANALYSIS = "llm_comparative_analysis"

    @classmethod
    def from_string(cls, value: str) -> Optional["ValuationMethod"]:
        """Convert string to ValuationMethod, case-insensitive."""
        normalised = value.lower().strip().replace("-", "_")
        for member in cls:
            if member.value == normalised or member.name.lower() == normalised:
                return member
        return None


# Comparable tiers in precision order
COMPARABLE_TIERS = (
    ValuationMethod.EXACT_MATCH,
    ValuationMethod.BED_BATH_SPECIFIC,
    ValuationMethod.BEDROOM_SPECIFIC,
    ValuationMethod.PRICE_PER_SQFT_FALLBACK,
)

# Minimum sample size per tier
MIN_SAMPLES: Dict[ValuationMethod, int] = {
    ValuationMethod.EXACT_MATCH: 3,
    ValuationMethod.BED_BATH_SPECIFIC: 8,
    ValuationMethod.BEDROOM_SPECIFIC: 12,
    ValuationMethod.PRICE_PER_SQFT_FALLBACK: 20,
}


class Classification(Enum):
    """
    Market position of a listing.

    undervalued: discount >= threshold and confidence floor met
    moderately_undervalued: discount >= moderate threshold and floor met
    market_rate: everything down to -5%
    overvalued: discount <= -5%
    insufficient_data: no tier had enough comparables
    """
    UNDERVALUED = "undervalued"
    MODERATELY_UNDERVALUED = "moderately_undervalued"
    MARKET_RATE = "market_rate"
    OVERVALUED = "overvalued"
    INSUFFICIENT_DATA = "insufficient_data"

    @classmethod
    def from_string(cls, value: str) -> Optional["Classification"]:
        """Convert string to Classification, case-insensitive."""
        normalised = value.lower().strip().replace("-", "_")
        for member in cls:
            if member.value == normalised:
                return member
        return None


@dataclass
class ComparablePool:
    """Peers selected for one subject, tagged with the tier used."""
    method: ValuationMethod
    comparables: List[Listing]

    @property
    def count(self) -> int:
        return len(self.comparables)

    @property
    def prices(self) -> List[int]:
        return [c.price for c in self.comparables]


@dataclass
class InsufficientComparables:
    """
    No tier met its minimum sample size.

    Recoverable: the subject is classified insufficient_data.
    """
    tier_counts: Dict[ValuationMethod, int]

    @property
    def reason(self) -> str:
        parts = [
            f"{method.value}={self.tier_counts.get(method, 0)}/{MIN_SAMPLES[method]}"
            for method in COMPARABLE_TIERS
        ]
        return "Insufficient comparables (" + ", ".join(parts) + ")"


@dataclass
class AdjustmentEntry:
    """One line of an adjustment breakdown."""
    category: str
    amount: float
    rationale: str

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "amount": round(self.amount, 2),
            "rationale": self.rationale,
        }


@dataclass
class AdjustmentBreakdown:
    """Ordered adjustment entries applied on top of the base value."""
    entries: List[AdjustmentEntry] = field(default_factory=list)

    @property
    def total_adjustment(self) -> float:
        return sum(entry.amount for entry in self.entries)

    def amount_for(self, category: str) -> float:
        """Total amount recorded under a category."""
        return sum(e.amount for e in self.entries if e.category == category)

    def to_list(self) -> List[dict]:
        return [entry.to_dict() for entry in self.entries]


def calculate_discount_percent(estimated_market_price: float, actual_price: float) -> float:
    """
    Discount of the actual price against the estimate.

    discount = (estimated - actual) / estimated * 100

    Returns 0 when there is no positive estimate.
    """
    if not estimated_market_price or estimated_market_price <= 0:
        return 0.0
    return (estimated_market_price - actual_price) / estimated_market_price * 100


@dataclass(frozen=True)
class Valuation:
    """
    Result of one analysis pass for one subject.

    Never mutated; a re-analysis produces a new Valuation.
    """
    listing_id: str
    estimated_market_price: int
    actual_price: int
    discount_percent: float
    confidence: int
    method: Optional[ValuationMethod]
    classification: Classification
    base_value: float = 0.0
    adjustments: AdjustmentBreakdown = field(default_factory=AdjustmentBreakdown)
    comparables_used: int = 0
    reasoning: str = ""
    strategy: str = "rules"
    analyzed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_undervalued(self) -> bool:
        return self.classification in (
            Classification.UNDERVALUED,
            Classification.MODERATELY_UNDERVALUED,
        )

    @property
    def potential_savings(self) -> int:
        return self.estimated_market_price - self.actual_price

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON output."""
        return {
            "listing_id": self.listing_id,
            "estimated_market_price": self.estimated_market_price,
            "actual_price": self.actual_price,
            "discount_percent": self.discount_percent,
            "confidence": self.confidence,
            "method": self.method.value if self.method else None,
            "classification": self.classification.value,
            "base_value": round(self.base_value, 2),
            "adjustments": self.adjustments.to_list(),
            "total_adjustment": round(self.adjustments.total_adjustment, 2),
            "comparables_used": self.comparables_used,
            "reasoning": self.reasoning,
            "strategy": self.strategy,
            "analyzed_at": self.analyzed_at.isoformat(),
        }
