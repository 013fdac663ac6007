"""
Keyword Signal Extractor

Table-driven phrase matching over free-text listing descriptions:
- Distress signals (seller motivation, fixer-upper, legal status)
- Warning signals (structural, legal, regulatory risk)
- Amenity tags, since structured amenity data is often missing
"""

import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, FrozenSet, Iterable, Set, Tuple

from core.models import Listing


# =============================================================================
# Keyword Dictionaries
# =============================================================================

DISTRESS_KEYWORDS: Tuple[str, ...] = (
    "motivated seller", "must sell", "as-is", "as is", "fixer-upper",
    "fixer upper", "handyman special", "tlc", "needs work", "needs updating",
    "estate sale", "inherited", "probate", "divorce", "foreclosure",
    "short sale", "bank owned", "reo", "price reduced", "reduced price",
    "bring offers", "all offers considered", "make offer", "obo",
    "cash only", "investor special", "diamond in the rough",
    "priced to sell", "quick sale",
    # NYC-specific
    "prewar", "pre-war", "walk up", "walk-up", "no elevator",
    "gut renovation needed", "tenant occupied", "rent stabilized",
    "co-op conversion", "sponsor unit",
)

WARNING_KEYWORDS: Tuple[str, ...] = (
    "flood", "water damage", "foundation issues", "structural",
    "fire damage", "mold", "asbestos", "lead paint", "septic",
    "well water", "no permits", "unpermitted", "easement",
    "hoa issues", "back taxes", "liens", "title issues",
    # NYC-specific
    "no board approval", "flip tax", "assessment pending", "rent controlled",
    "certificate of occupancy", "housing court", "basement apartment",
    "illegal conversion", "landmark building",
)

# Tag -> phrases that imply it
AMENITY_KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "doorman_full_time": (
        "full-time doorman", "full time doorman", "24-hour doorman",
        "24 hour doorman", "24/7 doorman",
    ),
    "doorman_part_time": ("part-time doorman", "part time doorman"),
    "doorman": ("doorman",),
    "virtual_doorman": ("virtual doorman",),
    "concierge": ("concierge",),
    "elevator": ("elevator building", "elevator"),
    "gym": ("gym", "fitness center", "fitness room"),
    "roof_deck": ("roof deck", "roofdeck", "rooftop", "roof terrace"),
    "parking": ("parking", "garage"),
    "washer_dryer_in_unit": (
        "washer/dryer", "washer dryer", "w/d in unit", "in-unit laundry",
        "in unit laundry",
    ),
    "laundry_in_building": ("laundry in building", "laundry room", "common laundry"),
    "balcony": ("balcony",),
    "terrace": ("private terrace", "terrace"),
    "private_outdoor_space": ("private outdoor space", "private garden", "backyard"),
    "dishwasher": ("dishwasher",),
    "central_air": ("central air", "central a/c", "central ac"),
    "fireplace": ("fireplace",),
    "pool": ("pool",),
    "storage": ("storage",),
    "pets_allowed": ("pets allowed", "pet friendly", "pet-friendly"),
}

# A specific tag suppresses the generic ones listed here
AMENITY_SUPERSEDES: Dict[str, Tuple[str, ...]] = {
    "doorman_full_time": ("doorman",),
    "doorman_part_time": ("doorman",),
    "virtual_doorman": ("doorman",),
}

# Structured-amenity aliases from listing sources
AMENITY_ALIASES: Dict[str, str] = {
    "full_time_doorman": "doorman_full_time",
    "fulltime_doorman": "doorman_full_time",
    "part_time_doorman": "doorman_part_time",
    "roofdeck": "roof_deck",
    "rooftop": "roof_deck",
    "fitness": "gym",
    "fitness_center": "gym",
    "garage": "parking",
    "garage_parking": "parking",
    "washer_dryer": "washer_dryer_in_unit",
    "in_unit_laundry": "washer_dryer_in_unit",
    "laundry": "laundry_in_building",
    "pets": "pets_allowed",
    "pet_friendly": "pets_allowed",
    "dogs": "pets_allowed",
    "cats": "pets_allowed",
    "garden": "private_outdoor_space",
    "outdoor_space": "private_outdoor_space",
    "central_ac": "central_air",
}


@dataclass
class KeywordSignals:
    """Distress and warning phrases found in a description."""
    distress: Set[str] = field(default_factory=set)
    warnings: Set[str] = field(default_factory=set)

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)


# =============================================================================
# Matching
# =============================================================================

@lru_cache(maxsize=512)
def _phrase_pattern(phrase: str) -> "re.Pattern[str]":
    # Bounded by non-word characters so "tlc" or "as is" never match mid-word
    return re.compile(r"(?<!\w)" + re.escape(phrase.lower()) + r"(?!\w)")


def contains_phrase(text: str, phrase: str) -> bool:
    """Case-insensitive phrase search."""
    if not text:
        return False
    return _phrase_pattern(phrase).search(text.lower()) is not None


_NEGATIONS = ("no ", "non-", "without ", "not ")


def _contains_affirmed_phrase(text: str, phrase: str) -> bool:
    # "no elevator" must not yield an elevator tag
    lowered = text.lower()
    for match in _phrase_pattern(phrase).finditer(lowered):
        if not lowered[:match.start()].endswith(_NEGATIONS):
            return True
    return False


def match_phrases(text: str, phrases: Iterable[str]) -> Set[str]:
    """Return every phrase found in text."""
    if not text:
        return set()
    return {phrase for phrase in phrases if contains_phrase(text, phrase)}


def extract_signals(text: str) -> KeywordSignals:
    """
    Scan a description for distress and warning phrases.

    Args:
        text: Free-text listing description

    Returns:
        KeywordSignals with the matched phrases of each dictionary
    """
    return KeywordSignals(
        distress=match_phrases(text, DISTRESS_KEYWORDS),
        warnings=match_phrases(text, WARNING_KEYWORDS),
    )


def extract_amenities(text: str) -> Set[str]:
    """Derive coarse amenity tags from description phrasing."""
    if not text:
        return set()

    tags = {
        tag
        for tag, phrases in AMENITY_KEYWORDS.items()
        if any(_contains_affirmed_phrase(text, phrase) for phrase in phrases)
    }
    return _apply_supersedes(tags)


def normalize_amenity(value: str) -> str:
    """Normalise a structured amenity label to a tag."""
    tag = re.sub(r"[^a-z0-9]+", "_", value.lower()).strip("_")
    return AMENITY_ALIASES.get(tag, tag)


def normalize_amenities(values: Iterable[str]) -> Set[str]:
    tags = {normalize_amenity(v) for v in values if v and v.strip()}
    tags.discard("")
    return _apply_supersedes(tags)


def listing_amenities(listing: Listing) -> FrozenSet[str]:
    """Structured amenities merged with those implied by the description."""
    tags = normalize_amenities(listing.amenities or [])
    tags |= extract_amenities(listing.description)
    return frozenset(_apply_supersedes(tags))


def _apply_supersedes(tags: Set[str]) -> Set[str]:
    result = set(tags)
    for specific, generics in AMENITY_SUPERSEDES.items():
        if specific in result:
            result.difference_update(generics)
    return result
