"""
Confidence Scorer

Rates the reliability of an estimate from method precision, sample size
and subject data completeness.
"""

from typing import Dict, Tuple

from .models import ValuationMethod


# =============================================================================
# Configuration Constants
# =============================================================================

# Method -> (high end, low end) of the base score
BASE_CONFIDENCE: Dict[ValuationMethod, Tuple[int, int]] = {
    ValuationMethod.EXACT_MATCH: (95, 90),
    ValuationMethod.BED_BATH_SPECIFIC: (85, 75),
    ValuationMethod.BEDROOM_SPECIFIC: (75, 65),
    ValuationMethod.PRICE_PER_SQFT_FALLBACK: (60, 45),
    ValuationMethod.LLM_ANALYSIS: (70, 55),
}

LARGE_SAMPLE = 25
MEDIUM_SAMPLE = 15
SMALL_SAMPLE = 5

LARGE_SAMPLE_BONUS = 10
MEDIUM_SAMPLE_BONUS = 5
SMALL_SAMPLE_PENALTY = -10

KNOWN_AREA_BONUS = 5
KNOWN_AMENITIES_BONUS = 5


def sample_size_adjustment(sample_size: int) -> int:
    """
    Points for the number of comparables used.

    >= 25: +10
    15-24: +5
    5-14: 0
    < 5: -10
    """
    if sample_size >= LARGE_SAMPLE:
        return LARGE_SAMPLE_BONUS
    if sample_size >= MEDIUM_SAMPLE:
        return MEDIUM_SAMPLE_BONUS
    if sample_size >= SMALL_SAMPLE:
        return 0
    return SMALL_SAMPLE_PENALTY


def score_confidence(
    method: ValuationMethod,
    sample_size: int,
    subject_has_area: bool,
    subject_has_amenities: bool,
) -> int:
    """
    Score the confidence of a valuation.

    The low end of the method's base range is used when the small-sample
    penalty applies, so the score never rises as the sample shrinks.

    Args:
        method: Comparable tier (or strategy) that produced the estimate
        sample_size: Number of comparables used
        subject_has_area: Subject has a positive square footage
        subject_has_amenities: Subject has at least one known amenity

    Returns:
        Integer confidence in [0, 100]
    """
    high, low = BASE_CONFIDENCE[method]
    sample_points = sample_size_adjustment(sample_size)

    score = (low if sample_points < 0 else high) + sample_points

    if subject_has_area:
        score += KNOWN_AREA_BONUS
    if subject_has_amenities:
        score += KNOWN_AMENITIES_BONUS

    return max(0, min(100, score))
