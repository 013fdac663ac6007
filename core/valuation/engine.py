"""
Rules-based Valuation Engine

Implements:
- Comparable selection (strict precision hierarchy)
- Base value from the pool median
- Amenity, size, condition and micro-location adjustments
- Confidence scoring
- Two-tier classification
"""

import logging
from typing import List, Optional

from core.models import Listing
from .adjustments import AdjustmentModel
from .confidence import score_confidence
from .decision import AnalysisOptions, build_valuation, insufficient_valuation
from .keywords import listing_amenities
from .models import InsufficientComparables, Valuation
from .selector import ComparableSelector
from .strategy import ValuationStrategy

logger = logging.getLogger(__name__)


class RulesBasedStrategy(ValuationStrategy):
    """
    Complete rules-based valuation pipeline.

    Pipeline order:
    1. SELECT - Most precise comparable tier meeting its minimum
    2. BASE - Median (tier-specific) base value
    3. ADJUST - Amenities, size, condition, micro-location
    4. SCORE - Confidence from method, sample and completeness
    5. DECIDE - Discount and classification
    """

    name = "rules"

    def __init__(
        self,
        selector: Optional[ComparableSelector] = None,
        adjustment_model: Optional[AdjustmentModel] = None,
    ):
        self._selector = selector or ComparableSelector()
        self._adjustments = adjustment_model or AdjustmentModel()

    def analyze(
        self,
        subject: Listing,
        pool: List[Listing],
        neighborhood: str,
        options: AnalysisOptions,
    ) -> Valuation:
        # Step 1: Select comparables
        selection = self._selector.select(subject, pool)
        if isinstance(selection, InsufficientComparables):
            logger.debug("%s in %s: %s", subject.id, neighborhood, selection.reason)
            return insufficient_valuation(subject.id, subject.price, selection.reason, self.name)

        # Step 2: Base value
        base_value = self._adjustments.base_value(subject, selection)

        # Step 3: Adjustments
        breakdown = self._adjustments.adjust(subject, base_value, selection)
        estimate = self._adjustments.estimate(base_value, breakdown)

        # Step 4: Confidence
        confidence = score_confidence(
            method=selection.method,
            sample_size=selection.count,
            subject_has_area=subject.has_area,
            subject_has_amenities=bool(listing_amenities(subject)),
        )

        # Step 5: Decide
        valuation = build_valuation(
            listing_id=subject.id,
            method=selection.method,
            estimated_market_price=estimate,
            actual_price=subject.price,
            confidence=confidence,
            options=options,
            base_value=base_value,
            adjustments=breakdown,
            comparables_used=selection.count,
            reasoning=self._reasoning(selection.method.value, selection.count, base_value, estimate),
            strategy=self.name,
        )

        logger.debug(
            "%s in %s: %s via %s (%s comps), estimate %s, discount %s%%, confidence %s",
            subject.id, neighborhood, valuation.classification.value,
            selection.method.value, selection.count, estimate,
            valuation.discount_percent, valuation.confidence,
        )
        return valuation

    @staticmethod
    def _reasoning(method: str, count: int, base_value: float, estimate: int) -> str:
        return (
            f"{method} valuation from {count} comparables: "
            f"base ${base_value:,.0f}, adjusted estimate ${estimate:,.0f}"
        )
