"""
Valuation strategy interface.

Every strategy takes a subject and its candidate pool and returns an
immutable Valuation. Callers never special-case the variant in use.
"""

from abc import ABC, abstractmethod
from typing import List

from core.models import Listing
from .decision import AnalysisOptions
from .models import Valuation


class ValuationStrategy(ABC):
    """Abstract base class for valuation strategies."""

    name: str = "abstract"

    @abstractmethod
    def analyze(
        self,
        subject: Listing,
        pool: List[Listing],
        neighborhood: str,
        options: AnalysisOptions,
    ) -> Valuation:
        """
        Value one subject against a candidate pool.

        Args:
            subject: Listing being valued
            pool: Candidate comparables (may include the subject)
            neighborhood: Neighborhood the pool was gathered from
            options: Thresholds and confidence floors

        Returns:
            Valuation (insufficient_data when no tier qualifies)

        Raises:
            RateLimited: The strategy's external service asked us to back off
        """
        pass


def create_strategy(config) -> ValuationStrategy:
    """
    Build the strategy named by config.valuation_strategy.

    Args:
        config: Config instance

    Returns:
        RulesBasedStrategy ("rules") or LLMValuationStrategy ("llm")

    Raises:
        ValueError: Unknown strategy name, or "llm" without an API key
    """
    from .engine import RulesBasedStrategy
    from .llm import LLMValuationStrategy

    name = (config.valuation_strategy or "rules").strip().lower()

    if name == RulesBasedStrategy.name:
        return RulesBasedStrategy()

    if name == LLMValuationStrategy.name:
        if not config.claude_api_key:
            raise ValueError("VALUATION_STRATEGY=llm requires CLAUDE_API_KEY")
        return LLMValuationStrategy(
            api_key=config.claude_api_key,
            model=config.claude_model,
            timeout=config.request_timeout,
        )

    raise ValueError(f"Unknown valuation strategy: {config.valuation_strategy}")
