"""
Adjustment Model

Turns a comparable pool into a base value, then applies:
- Amenity adjustment (location-aware, net of the pool's average)
- Square footage adjustment (tiers 1-3 only)
- Condition adjustment (description phrases)
- Micro-location adjustment (street-level phrases)

All tables live in a single versioned structure shared with the API.
"""

import statistics
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, List, Tuple

from core.models import Listing
from .keywords import contains_phrase, listing_amenities
from .models import (
    AdjustmentBreakdown,
    AdjustmentEntry,
    ComparablePool,
    ValuationMethod,
)


# =============================================================================
# Adjustment Tables
# =============================================================================

ADJUSTMENT_TABLES_VERSION = "2024.2"

MANHATTAN = "manhattan"
OUTER_BOROUGH = "outer_borough"

# Neighborhood substrings that place a subject in Manhattan
MANHATTAN_NEIGHBORHOODS: Tuple[str, ...] = (
    "west village", "east village", "greenwich village", "soho", "noho",
    "nolita", "tribeca", "chelsea", "flatiron", "nomad", "gramercy",
    "murray hill", "kips bay", "midtown", "hells kitchen", "hell's kitchen",
    "upper east side", "upper west side", "lower east side",
    "financial district", "battery park", "chinatown", "little italy",
    "two bridges", "harlem", "morningside heights", "washington heights",
    "hudson heights", "inwood", "roosevelt island", "stuyvesant town",
    "lenox hill", "yorkville", "carnegie hill", "lincoln square",
    "manhattan valley", "hudson yards", "sutton place", "turtle bay",
)

# Fixed USD amount per half bath, bedroom-specific tier only
BATH_ADJUSTMENT_PER_HALF_BATH = 25_000


class AmenityValueType(Enum):
    """How an amenity's value is expressed."""
    FIXED = "fixed"
    PERCENT = "percent"


@dataclass(frozen=True)
class AmenityValue:
    """Value of one amenity in one region."""
    value_type: AmenityValueType
    value: float

    def dollars(self, base_price: float) -> float:
        if self.value_type == AmenityValueType.PERCENT:
            return base_price * self.value / 100
        return self.value

    def to_dict(self) -> dict:
        return {"type": self.value_type.value, "value": self.value}


def _fixed(value: float) -> AmenityValue:
    return AmenityValue(AmenityValueType.FIXED, value)


def _percent(value: float) -> AmenityValue:
    return AmenityValue(AmenityValueType.PERCENT, value)


# amenity -> region -> value
AMENITY_VALUES: Dict[str, Dict[str, AmenityValue]] = {
    "doorman_full_time": {MANHATTAN: _percent(5.0), OUTER_BOROUGH: _percent(3.0)},
    "doorman": {MANHATTAN: _percent(4.0), OUTER_BOROUGH: _percent(2.5)},
    "doorman_part_time": {MANHATTAN: _percent(2.5), OUTER_BOROUGH: _percent(1.5)},
    "virtual_doorman": {MANHATTAN: _fixed(15_000), OUTER_BOROUGH: _fixed(10_000)},
    "concierge": {MANHATTAN: _fixed(20_000), OUTER_BOROUGH: _fixed(10_000)},
    "elevator": {MANHATTAN: _percent(3.0), OUTER_BOROUGH: _percent(2.0)},
    "gym": {MANHATTAN: _fixed(25_000), OUTER_BOROUGH: _fixed(15_000)},
    "roof_deck": {MANHATTAN: _fixed(40_000), OUTER_BOROUGH: _fixed(25_000)},
    "parking": {MANHATTAN: _fixed(150_000), OUTER_BOROUGH: _fixed(60_000)},
    "washer_dryer_in_unit": {MANHATTAN: _fixed(40_000), OUTER_BOROUGH: _fixed(25_000)},
    "laundry_in_building": {MANHATTAN: _fixed(10_000), OUTER_BOROUGH: _fixed(7_500)},
    "balcony": {MANHATTAN: _percent(3.0), OUTER_BOROUGH: _percent(2.0)},
    "terrace": {MANHATTAN: _percent(5.0), OUTER_BOROUGH: _percent(3.0)},
    "private_outdoor_space": {MANHATTAN: _percent(5.0), OUTER_BOROUGH: _percent(3.5)},
    "central_air": {MANHATTAN: _fixed(15_000), OUTER_BOROUGH: _fixed(10_000)},
    "dishwasher": {MANHATTAN: _fixed(5_000), OUTER_BOROUGH: _fixed(4_000)},
    "fireplace": {MANHATTAN: _fixed(15_000), OUTER_BOROUGH: _fixed(10_000)},
    "pool": {MANHATTAN: _fixed(30_000), OUTER_BOROUGH: _fixed(20_000)},
    "storage": {MANHATTAN: _fixed(10_000), OUTER_BOROUGH: _fixed(7_500)},
    "pets_allowed": {MANHATTAN: _fixed(5_000), OUTER_BOROUGH: _fixed(5_000)},
}


@dataclass(frozen=True)
class SizeBracket:
    """
    Per-sqft rates for one bedroom bracket.

    baseline_sqft is the expected area when no comparable reports one.
    Area above the pool average is worth less than area missing below it.
    """
    name: str
    baseline_sqft: int
    rate_above: float
    rate_below: float


SIZE_BRACKETS: Dict[str, SizeBracket] = {
    "studio": SizeBracket("studio", 450, 600, 750),
    "one_bedroom": SizeBracket("one_bedroom", 700, 550, 700),
    "two_bedroom": SizeBracket("two_bedroom", 1000, 500, 650),
    "three_plus": SizeBracket("three_plus", 1400, 450, 600),
}

# (phrases, amount, rationale); each rule applies once
CONDITION_ADJUSTMENTS: Tuple[Tuple[Tuple[str, ...], int, str], ...] = (
    (("gut renovated", "gut renovation"), 75_000, "Gut renovation"),
    (("newly renovated", "brand new renovation"), 50_000, "Newly renovated"),
    (("recently renovated", "renovated kitchen", "renovated bath"), 30_000, "Recent renovation"),
    (("move-in ready", "move in ready", "turnkey"), 20_000, "Move-in ready"),
    (("needs work", "needs updating", "tlc"), -60_000, "Needs work"),
    (("as-is", "as is"), -50_000, "Sold as-is"),
    (("fixer-upper", "fixer upper", "handyman special"), -75_000, "Fixer-upper"),
    (("original condition",), -30_000, "Original condition"),
)

MICRO_LOCATION_ADJUSTMENTS: Tuple[Tuple[Tuple[str, ...], int, str], ...] = (
    (("quiet block", "quiet street", "quiet tree"), 15_000, "Quiet block"),
    (("tree-lined", "tree lined"), 20_000, "Tree-lined street"),
    (("busy street", "busy avenue", "busy intersection"), -15_000, "Busy street"),
    (("noisy", "street noise"), -15_000, "Noise exposure"),
    (("ground floor", "ground-floor"), -25_000, "Ground floor unit"),
)

# Tiers whose comparables share the subject's bedroom count
SIZE_ADJUSTED_METHODS = (
    ValuationMethod.EXACT_MATCH,
    ValuationMethod.BED_BATH_SPECIFIC,
    ValuationMethod.BEDROOM_SPECIFIC,
)


def is_manhattan(listing: Listing) -> bool:
    """Manhattan by borough string or by a known neighborhood name."""
    if listing.borough and listing.borough.strip().lower() == MANHATTAN:
        return True
    neighborhood = (listing.neighborhood or "").lower().replace("-", " ").replace("_", " ")
    return any(name in neighborhood for name in MANHATTAN_NEIGHBORHOODS)


def region_for(listing: Listing) -> str:
    return MANHATTAN if is_manhattan(listing) else OUTER_BOROUGH


def size_bracket_for(bedrooms: int) -> SizeBracket:
    if not bedrooms:
        return SIZE_BRACKETS["studio"]
    if bedrooms == 1:
        return SIZE_BRACKETS["one_bedroom"]
    if bedrooms == 2:
        return SIZE_BRACKETS["two_bedroom"]
    return SIZE_BRACKETS["three_plus"]


def adjustment_tables() -> dict:
    """Serializable view of every table, for reporting."""
    return {
        "version": ADJUSTMENT_TABLES_VERSION,
        "bath_adjustment_per_half_bath": BATH_ADJUSTMENT_PER_HALF_BATH,
        "amenities": {
            tag: {region: value.to_dict() for region, value in regions.items()}
            for tag, regions in AMENITY_VALUES.items()
        },
        "size_brackets": {
            name: {
                "baseline_sqft": b.baseline_sqft,
                "rate_above": b.rate_above,
                "rate_below": b.rate_below,
            }
            for name, b in SIZE_BRACKETS.items()
        },
        "condition": [
            {"phrases": list(p), "amount": a, "rationale": r}
            for p, a, r in CONDITION_ADJUSTMENTS
        ],
        "micro_location": [
            {"phrases": list(p), "amount": a, "rationale": r}
            for p, a, r in MICRO_LOCATION_ADJUSTMENTS
        ],
        "manhattan_neighborhoods": list(MANHATTAN_NEIGHBORHOODS),
    }


# =============================================================================
# Adjustment Model
# =============================================================================

class AdjustmentModel:
    """
    Base value and adjustment pipeline.

    Pipeline order:
    1. BASE - median price (or price-per-sqft) of the pool
    2. AMENITIES - subject value minus pool average value
    3. SIZE - area difference against the pool (tiers 1-3)
    4. CONDITION - description phrases
    5. MICRO-LOCATION - street-level phrases
    """

    def base_value(self, subject: Listing, pool: ComparablePool) -> float:
        """
        Calculate the pool's base value for the subject.

        Uses median, not mean.

        Args:
            subject: Listing being valued
            pool: Selected comparable pool

        Returns:
            Base value in USD (0 if the pool is empty)
        """
        if not pool.comparables:
            return 0.0

        if pool.method == ValuationMethod.PRICE_PER_SQFT_FALLBACK:
            ppsf = [c.price_per_sqft for c in pool.comparables if c.price_per_sqft]
            if not ppsf or not subject.has_area:
                return 0.0
            return statistics.median(ppsf) * subject.sqft

        median_price = float(statistics.median(pool.prices))

        if pool.method == ValuationMethod.BEDROOM_SPECIFIC:
            return median_price + self.bathroom_correction(subject, pool)

        return median_price

    def bathroom_correction(self, subject: Listing, pool: ComparablePool) -> float:
        """Fixed amount per half bath relative to the pool's median bath count."""
        baths = [c.bathrooms for c in pool.comparables if c.bathrooms is not None]
        if subject.bathrooms is None or not baths:
            return 0.0
        half_baths = (subject.bathrooms - statistics.median(baths)) / 0.5
        return half_baths * BATH_ADJUSTMENT_PER_HALF_BATH

    def adjust(
        self,
        subject: Listing,
        base_value: float,
        pool: ComparablePool,
    ) -> AdjustmentBreakdown:
        """
        Build the adjustment breakdown for a subject.

        Args:
            subject: Listing being valued
            base_value: Output of base_value()
            pool: Selected comparable pool

        Returns:
            AdjustmentBreakdown in category order
        """
        entries: List[AdjustmentEntry] = []

        amenity = self._amenity_adjustment(subject, base_value, pool)
        if amenity is not None:
            entries.append(amenity)

        if pool.method in SIZE_ADJUSTED_METHODS:
            size = self._size_adjustment(subject, pool)
            if size is not None:
                entries.append(size)

        entries.extend(
            self._phrase_adjustments(subject.description, CONDITION_ADJUSTMENTS, "condition")
        )
        entries.extend(
            self._phrase_adjustments(subject.description, MICRO_LOCATION_ADJUSTMENTS, "micro_location")
        )

        return AdjustmentBreakdown(entries=entries)

    def estimate(self, base_value: float, breakdown: AdjustmentBreakdown) -> int:
        return int(round(base_value + breakdown.total_adjustment))

    # =========================================================================
    # Category helpers
    # =========================================================================

    def amenity_value(self, amenities: FrozenSet[str], region: str, base_price: float) -> float:
        """Dollar value of an amenity set in a region."""
        total = 0.0
        for tag in amenities:
            regions = AMENITY_VALUES.get(tag)
            if regions is None:
                continue
            total += regions[region].dollars(base_price)
        return total

    def _amenity_adjustment(
        self,
        subject: Listing,
        base_value: float,
        pool: ComparablePool,
    ):
        region = region_for(subject)
        subject_amenities = listing_amenities(subject)
        subject_value = self.amenity_value(subject_amenities, region, base_value)

        if pool.comparables:
            pool_average = statistics.fmean(
                self.amenity_value(listing_amenities(c), region, base_value)
                for c in pool.comparables
            )
        else:
            pool_average = 0.0

        net = subject_value - pool_average
        if net == 0:
            return None

        valued = sorted(tag for tag in subject_amenities if tag in AMENITY_VALUES)
        rationale = (
            f"Subject amenities worth ${subject_value:,.0f} ({region.replace('_', ' ')}"
            f"{': ' + ', '.join(valued) if valued else ''}) vs pool average ${pool_average:,.0f}"
        )
        return AdjustmentEntry("amenities", net, rationale)

    def _size_adjustment(self, subject: Listing, pool: ComparablePool):
        if not subject.has_area:
            return None

        bracket = size_bracket_for(subject.bedrooms)
        areas = [c.sqft for c in pool.comparables if c.has_area]
        average_area = statistics.fmean(areas) if areas else float(bracket.baseline_sqft)

        difference = subject.sqft - average_area
        if difference == 0:
            return None

        rate = bracket.rate_above if difference > 0 else bracket.rate_below
        direction = "above" if difference > 0 else "below"
        rationale = (
            f"{abs(difference):,.0f} sqft {direction} pool average of {average_area:,.0f} "
            f"at ${rate:,.0f}/sqft ({bracket.name})"
        )
        return AdjustmentEntry("square_footage", difference * rate, rationale)

    @staticmethod
    def _phrase_adjustments(text: str, table, category: str) -> List[AdjustmentEntry]:
        entries = []
        for phrases, amount, rationale in table:
            matched = [p for p in phrases if contains_phrase(text, p)]
            if matched:
                entries.append(
                    AdjustmentEntry(category, float(amount), f"{rationale} (\"{matched[0]}\")")
                )
        return entries
