"""
Configuration management.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from core.valuation.decision import (
    DEFAULT_MIN_CONFIDENCE,
    AnalysisOptions,
)
from core.valuation.models import ValuationMethod


def parse_min_confidence(raw: Optional[str]) -> Dict[ValuationMethod, int]:
    """
    Parse a per-method confidence floor map.

    Format: "exact_match=70,bed_bath_specific=70,bedroom_specific=60".
    Methods not named keep their defaults.

    Raises:
        ValueError: Unknown method or non-integer floor
    """
    floors = dict(DEFAULT_MIN_CONFIDENCE)
    if not raw:
        return floors

    for part in raw.split(","):
        if not part.strip():
            continue
        name, _, value = part.partition("=")
        method = ValuationMethod.from_string(name)
        if method is None:
            raise ValueError(f"Unknown valuation method in MIN_CONFIDENCE_BY_METHOD: {name}")
        floors[method] = int(value)
    return floors


@dataclass
class Config:
    """
    Application configuration.

    Loads from environment variables with sensible defaults.
    """

    # Server
    host: str = field(default_factory=lambda: os.getenv("HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "8000")))
    debug: bool = field(default_factory=lambda: os.getenv("DEBUG", "false").lower() == "true")

    # Data
    data_dir: str = field(default_factory=lambda: os.getenv("DATA_DIR", "./data"))
    cache_path: str = field(default_factory=lambda: os.getenv("CACHE_PATH", ""))

    # Valuation
    undervalued_threshold_percent: float = field(
        default_factory=lambda: float(os.getenv("UNDERVALUED_THRESHOLD_PERCENT", "15"))
    )
    moderate_threshold_percent: float = field(
        default_factory=lambda: float(os.getenv("MODERATE_THRESHOLD_PERCENT", "5"))
    )
    min_confidence_by_method: Dict[ValuationMethod, int] = field(
        default_factory=lambda: parse_min_confidence(os.getenv("MIN_CONFIDENCE_BY_METHOD"))
    )
    valuation_strategy: str = field(
        default_factory=lambda: os.getenv("VALUATION_STRATEGY", "rules")
    )

    # Freshness cache
    freshness_window_days: int = field(
        default_factory=lambda: int(os.getenv("FRESHNESS_WINDOW_DAYS", "7"))
    )
    stale_search_window_days: int = field(
        default_factory=lambda: int(os.getenv("STALE_SEARCH_WINDOW_DAYS", "3"))
    )
    price_drift_absolute: float = field(
        default_factory=lambda: float(os.getenv("PRICE_DRIFT_ABSOLUTE", "25000"))
    )
    price_drift_percent: float = field(
        default_factory=lambda: float(os.getenv("PRICE_DRIFT_PERCENT", "2.0"))
    )
    purge_after_days: int = field(
        default_factory=lambda: int(os.getenv("PURGE_AFTER_DAYS", "100"))
    )

    # LLM strategy
    claude_api_key: Optional[str] = field(default_factory=lambda: os.getenv("CLAUDE_API_KEY"))
    claude_model: str = field(
        default_factory=lambda: os.getenv("CLAUDE_MODEL", "claude-3-haiku-20240307")
    )

    # Scraping
    scraper_type: str = field(default_factory=lambda: os.getenv("SCRAPER_TYPE", "mock"))
    rapidapi_key: Optional[str] = field(default_factory=lambda: os.getenv("RAPIDAPI_KEY"))
    neighborhoods: str = field(
        default_factory=lambda: os.getenv("NEIGHBORHOODS", "west-village,park-slope,astoria")
    )
    request_timeout: int = field(default_factory=lambda: int(os.getenv("REQUEST_TIMEOUT", "30")))
    base_request_delay: float = field(
        default_factory=lambda: float(os.getenv("BASE_REQUEST_DELAY", "6.0"))
    )
    max_calls_per_hour: int = field(
        default_factory=lambda: int(os.getenv("MAX_CALLS_PER_HOUR", "200"))
    )

    def __post_init__(self):
        if not self.cache_path:
            self.cache_path = os.path.join(self.data_dir, "listing_cache.json")

    @property
    def neighborhood_list(self) -> List[str]:
        """Configured neighborhoods, in run order."""
        return [n.strip() for n in self.neighborhoods.split(",") if n.strip()]

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from environment."""
        return cls()

    def analysis_options(self) -> AnalysisOptions:
        """Thresholds and floors handed to valuation strategies."""
        return AnalysisOptions(
            undervalued_threshold_percent=self.undervalued_threshold_percent,
            moderate_threshold_percent=self.moderate_threshold_percent,
            min_confidence_by_method=dict(self.min_confidence_by_method),
        )

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        return {
            "host": self.host,
            "port": self.port,
            "debug": self.debug,
            "data_dir": self.data_dir,
            "cache_path": self.cache_path,
            "undervalued_threshold_percent": self.undervalued_threshold_percent,
            "moderate_threshold_percent": self.moderate_threshold_percent,
            "min_confidence_by_method": {
                method.value: floor for method, floor in self.min_confidence_by_method.items()
            },
            "valuation_strategy": self.valuation_strategy,
            "freshness_window_days": self.freshness_window_days,
            "stale_search_window_days": self.stale_search_window_days,
            "price_drift_absolute": self.price_drift_absolute,
            "price_drift_percent": self.price_drift_percent,
            "purge_after_days": self.purge_after_days,
            "claude_api_key_set": bool(self.claude_api_key),
            "claude_model": self.claude_model,
            "scraper_type": self.scraper_type,
            "rapidapi_key_set": bool(self.rapidapi_key),
            "neighborhoods": self.neighborhood_list,
            "request_timeout": self.request_timeout,
            "base_request_delay": self.base_request_delay,
            "max_calls_per_hour": self.max_calls_per_hour,
        }
