"""
Valuation Decision

Classifies a listing from its estimate, actual price and confidence on a
two-tier scale:

- undervalued: discount >= undervalued threshold, confidence floor met
- moderately_undervalued: discount >= moderate threshold, floor met
- market_rate: discount above -5% (includes discounts that missed the floor)
- overvalued: discount <= -5%
- insufficient_data: no comparable tier qualified
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from .models import (
    AdjustmentBreakdown,
    Classification,
    Valuation,
    ValuationMethod,
    calculate_discount_percent,
)


# =============================================================================
# Configuration Constants
# =============================================================================

DEFAULT_UNDERVALUED_THRESHOLD = 15.0
DEFAULT_MODERATE_THRESHOLD = 5.0
OVERVALUED_THRESHOLD = -5.0

DEFAULT_MIN_CONFIDENCE: Dict[ValuationMethod, int] = {
    ValuationMethod.EXACT_MATCH: 70,
    ValuationMethod.BED_BATH_SPECIFIC: 70,
    ValuationMethod.BEDROOM_SPECIFIC: 60,
    ValuationMethod.PRICE_PER_SQFT_FALLBACK: 50,
    ValuationMethod.LLM_ANALYSIS: 60,
}


@dataclass
class AnalysisOptions:
    """Thresholds shared by every valuation strategy."""
    undervalued_threshold_percent: float = DEFAULT_UNDERVALUED_THRESHOLD
    moderate_threshold_percent: float = DEFAULT_MODERATE_THRESHOLD
    min_confidence_by_method: Dict[ValuationMethod, int] = field(
        default_factory=lambda: dict(DEFAULT_MIN_CONFIDENCE)
    )

    def min_confidence_for(self, method: ValuationMethod) -> int:
        return self.min_confidence_by_method.get(
            method, DEFAULT_MIN_CONFIDENCE.get(method, 100)
        )

    def to_dict(self) -> dict:
        return {
            "undervalued_threshold_percent": self.undervalued_threshold_percent,
            "moderate_threshold_percent": self.moderate_threshold_percent,
            "min_confidence_by_method": {
                method.value: floor
                for method, floor in self.min_confidence_by_method.items()
            },
        }


def classify(
    discount_percent: float,
    confidence: int,
    min_confidence: int,
    options: AnalysisOptions,
) -> Classification:
    """Place a discount on the two-tier scale."""
    floor_passed = confidence >= min_confidence

    if floor_passed and discount_percent >= options.undervalued_threshold_percent:
        return Classification.UNDERVALUED
    if floor_passed and discount_percent >= options.moderate_threshold_percent:
        return Classification.MODERATELY_UNDERVALUED
    if discount_percent > OVERVALUED_THRESHOLD:
        return Classification.MARKET_RATE
    return Classification.OVERVALUED


def decide(
    method: Optional[ValuationMethod],
    estimated_market_price: float,
    actual_price: float,
    confidence: int,
    options: AnalysisOptions,
) -> Tuple[float, Classification]:
    """
    Compute the discount and classification for one subject.

    Args:
        method: Tier used, or None when no tier qualified
        estimated_market_price: Adjusted estimate
        actual_price: Asking price
        confidence: Confidence score
        options: Thresholds and confidence floors

    Returns:
        Tuple of (discount_percent, classification)
    """
    if method is None or estimated_market_price <= 0:
        return 0.0, Classification.INSUFFICIENT_DATA

    discount = round(calculate_discount_percent(estimated_market_price, actual_price), 2)
    classification = classify(
        discount, confidence, options.min_confidence_for(method), options
    )
    return discount, classification


def build_valuation(
    listing_id: str,
    method: Optional[ValuationMethod],
    estimated_market_price: int,
    actual_price: int,
    confidence: int,
    options: AnalysisOptions,
    base_value: float = 0.0,
    adjustments: Optional[AdjustmentBreakdown] = None,
    comparables_used: int = 0,
    reasoning: str = "",
    strategy: str = "rules",
) -> Valuation:
    """
    Build an immutable Valuation from decision inputs.

    An insufficient outcome always carries confidence 0.
    """
    discount, classification = decide(
        method, estimated_market_price, actual_price, confidence, options
    )

    if classification == Classification.INSUFFICIENT_DATA:
        confidence = 0

    return Valuation(
        listing_id=listing_id,
        estimated_market_price=int(estimated_market_price),
        actual_price=int(actual_price),
        discount_percent=discount,
        confidence=confidence,
        method=method,
        classification=classification,
        base_value=base_value,
        adjustments=adjustments or AdjustmentBreakdown(),
        comparables_used=comparables_used,
        reasoning=reasoning,
        strategy=strategy,
    )


def insufficient_valuation(
    listing_id: str,
    actual_price: int,
    reason: str,
    strategy: str = "rules",
) -> Valuation:
    """Valuation for a subject with no qualifying comparable tier."""
    return Valuation(
        listing_id=listing_id,
        estimated_market_price=0,
        actual_price=int(actual_price),
        discount_percent=0.0,
        confidence=0,
        method=None,
        classification=Classification.INSUFFICIENT_DATA,
        reasoning=reason,
        strategy=strategy,
    )
