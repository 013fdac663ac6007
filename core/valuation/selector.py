"""
Comparable Selector

Picks the most precise usable peer group for a subject:
1. Exact match (beds, baths +/-0.5, amenity overlap >= 50%) - min 3
2. Bed+bath specific (beds, baths +/-0.5) - min 8
3. Bedroom specific (beds only) - min 12
4. Price-per-sqft fallback (any comp with price and area) - min 20

The first tier that meets its minimum wins. Tiers are never blended.
"""

from typing import Callable, Dict, FrozenSet, List, Optional, Union

from core.models import Listing
from .keywords import listing_amenities
from .models import (
    COMPARABLE_TIERS,
    MIN_SAMPLES,
    ComparablePool,
    InsufficientComparables,
    ValuationMethod,
)


# =============================================================================
# Configuration Constants
# =============================================================================

# Bathroom tolerance for tiers 1-2
BATHROOM_TOLERANCE = 0.5

# Minimum amenity overlap for the exact tier
MIN_AMENITY_OVERLAP = 0.5


def amenity_overlap(a: FrozenSet[str], b: FrozenSet[str]) -> float:
    """
    Jaccard overlap of two amenity sets.

    Two empty sets are treated as identical.
    """
    if not a and not b:
        return 1.0
    union = a | b
    return len(a & b) / len(union)


class ComparableSelector:
    """
    Applies the strict precision hierarchy to a candidate pool.
    """

    def __init__(self, min_samples: Optional[Dict[ValuationMethod, int]] = None):
        """
        Args:
            min_samples: Per-tier minimum sample sizes (default: MIN_SAMPLES)
        """
        self._min_samples = dict(MIN_SAMPLES)
        if min_samples:
            self._min_samples.update(min_samples)

    def select(
        self,
        subject: Listing,
        pool: List[Listing],
    ) -> Union[ComparablePool, InsufficientComparables]:
        """
        Select the most precise tier that meets its minimum sample size.

        Args:
            subject: The listing being valued
            pool: Candidate comparables

        Returns:
            ComparablePool for the winning tier, or InsufficientComparables
            with per-tier counts when no tier qualifies
        """
        candidates = self.eligible_candidates(subject, pool)
        tier_counts: Dict[ValuationMethod, int] = {}

        for method in COMPARABLE_TIERS:
            matcher = self._matcher_for(method, subject)
            selected = [c for c in candidates if matcher(c)]
            tier_counts[method] = len(selected)

            if len(selected) >= self._min_samples[method]:
                return ComparablePool(method=method, comparables=selected)

        return InsufficientComparables(tier_counts=tier_counts)

    def eligible_candidates(self, subject: Listing, pool: List[Listing]) -> List[Listing]:
        """Drop the subject itself, duplicates and unusable comparables."""
        seen = {subject.id}
        result = []
        for comp in pool:
            if comp.id in seen:
                continue
            if not comp.is_usable_comparable:
                continue
            seen.add(comp.id)
            result.append(comp)
        return result

    def _matcher_for(
        self,
        method: ValuationMethod,
        subject: Listing,
    ) -> Callable[[Listing], bool]:
        if method == ValuationMethod.EXACT_MATCH:
            subject_amenities = listing_amenities(subject)
            return lambda c: (
                self._same_bedrooms(subject, c)
                and self._bathrooms_within_tolerance(subject, c)
                and amenity_overlap(subject_amenities, listing_amenities(c)) >= MIN_AMENITY_OVERLAP
            )

        if method == ValuationMethod.BED_BATH_SPECIFIC:
            return lambda c: (
                self._same_bedrooms(subject, c)
                and self._bathrooms_within_tolerance(subject, c)
            )

        if method == ValuationMethod.BEDROOM_SPECIFIC:
            return lambda c: self._same_bedrooms(subject, c)

        if method == ValuationMethod.PRICE_PER_SQFT_FALLBACK:
            # The fallback prices the subject's own area, so it needs one
            if not subject.has_area:
                return lambda c: False
            return lambda c: c.price > 0 and c.has_area

        raise ValueError(f"Not a comparable tier: {method}")

    @staticmethod
    def _same_bedrooms(subject: Listing, comp: Listing) -> bool:
        return subject.bedrooms is not None and comp.bedrooms == subject.bedrooms

    @staticmethod
    def _bathrooms_within_tolerance(subject: Listing, comp: Listing) -> bool:
        if subject.bathrooms is None or comp.bathrooms is None:
            return False
        return abs(subject.bathrooms - comp.bathrooms) <= BATHROOM_TOLERANCE
