"""
Valuation Engine

Comparable selection, adjustment and classification of residential
listings, behind one interchangeable strategy interface.
"""

from .models import (
    ValuationMethod,
    Classification,
    ComparablePool,
    InsufficientComparables,
    AdjustmentEntry,
    AdjustmentBreakdown,
    Valuation,
    COMPARABLE_TIERS,
    MIN_SAMPLES,
    calculate_discount_percent,
)
from .keywords import (
    KeywordSignals,
    extract_signals,
    extract_amenities,
    normalize_amenity,
    normalize_amenities,
    listing_amenities,
)
from .selector import ComparableSelector, amenity_overlap
from .adjustments import (
    AdjustmentModel,
    ADJUSTMENT_TABLES_VERSION,
    adjustment_tables,
    is_manhattan,
)
from .confidence import score_confidence
from .decision import AnalysisOptions, decide, build_valuation
from .strategy import ValuationStrategy, create_strategy
from .engine import RulesBasedStrategy
from .llm import LLMValuationStrategy

__all__ = [
    # Models
    "ValuationMethod",
    "Classification",
    "ComparablePool",
    "InsufficientComparables",
    "AdjustmentEntry",
    "AdjustmentBreakdown",
    "Valuation",
    "COMPARABLE_TIERS",
    "MIN_SAMPLES",
    "calculate_discount_percent",
    # Keyword signals
    "KeywordSignals",
    "extract_signals",
    "extract_amenities",
    "normalize_amenity",
    "normalize_amenities",
    "listing_amenities",
    # Pipeline stages
    "ComparableSelector",
    "amenity_overlap",
    "AdjustmentModel",
    "ADJUSTMENT_TABLES_VERSION",
    "adjustment_tables",
    "is_manhattan",
    "score_confidence",
    "AnalysisOptions",
    "decide",
    "build_valuation",
    # Strategies
    "ValuationStrategy",
    "create_strategy",
    "RulesBasedStrategy",
    "LLMValuationStrategy",
]

__version__ = "2.0"
