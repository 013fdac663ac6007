"""
LLM-backed valuation strategy.

Uses the comparable selector to pick context, asks the Anthropic Messages
API for a market estimate, then recomputes the discount and classification
locally. Malformed model output yields a conservative fallback Valuation.
"""

import json
import logging
import math
import re
import statistics
from typing import List, Optional

import requests
from tenacity import retry, wait_exponential, stop_after_attempt, retry_if_exception_type

from core.errors import MalformedStrategyOutput, RateLimited
from core.models import Listing
from .decision import AnalysisOptions, build_valuation, insufficient_valuation
from .keywords import listing_amenities
from .models import (
    AdjustmentBreakdown,
    AdjustmentEntry,
    Classification,
    ComparablePool,
    InsufficientComparables,
    Valuation,
    ValuationMethod,
)
from .selector import ComparableSelector
from .strategy import ValuationStrategy

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Constants
# =============================================================================

ANTHROPIC_MESSAGES_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
DEFAULT_MODEL = "claude-3-haiku-20240307"
MAX_TOKENS = 2000
TEMPERATURE = 0.1

# Comparables included in the prompt
MAX_PROMPT_COMPARABLES = 15

# Confidence attached to a fallback result
FALLBACK_CONFIDENCE = 10

REQUIRED_FIELDS = ("estimatedMarketPrice", "discountPercent", "confidence", "reasoning")

SYSTEM_PROMPT = """You are an expert New York City residential appraiser.
Estimate the true market value of the target property from the comparable
sales provided. Adjust for amenities, size, condition and street-level
location. Be conservative when the comparables are a weak match.

RESPONSE FORMAT (JSON only):
{
  "estimatedMarketPrice": number,
  "discountPercent": number,
  "confidence": number (0-100),
  "baseMarketPrice": number,
  "adjustmentBreakdown": {
    "amenities": number,
    "square_footage": number,
    "condition": number,
    "micro_location": number
  },
  "reasoning": "Brief 2-3 sentence explanation"
}"""

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


class LLMValuationStrategy(ValuationStrategy):
    """
    Valuation strategy backed by a hosted language model.

    Only one request is sent per subject. Connection errors and timeouts
    are retried; HTTP 429 is surfaced as RateLimited.
    """

    name = "llm"

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        timeout: int = 30,
        selector: Optional[ComparableSelector] = None,
    ):
        self.api_key = api_key
        self.model = model or DEFAULT_MODEL
        self.timeout = timeout
        self._selector = selector or ComparableSelector()
        self.api_calls = 0

    def analyze(
        self,
        subject: Listing,
        pool: List[Listing],
        neighborhood: str,
        options: AnalysisOptions,
    ) -> Valuation:
        selection = self._selector.select(subject, pool)
        if isinstance(selection, InsufficientComparables):
            return insufficient_valuation(subject.id, subject.price, selection.reason, self.name)

        prompt = self.build_prompt(subject, selection, neighborhood, options)

        try:
            text = self._send(prompt)
            analysis = self.parse_response(text)
        except MalformedStrategyOutput as e:
            logger.warning("Malformed model output for %s: %s", subject.id, e)
            return self.fallback_valuation(subject, f"Model output unusable: {e}")
        except requests.exceptions.RequestException as e:
            logger.warning("Model request failed for %s: %s", subject.id, e)
            return self.fallback_valuation(subject, f"Model request failed: {e}")

        estimate = int(round(float(analysis["estimatedMarketPrice"])))
        confidence = max(0, min(100, int(round(float(analysis["confidence"])))))
        base_value = _as_number(analysis.get("baseMarketPrice")) or float(estimate)

        # Discount is always recomputed from the estimate
        return build_valuation(
            listing_id=subject.id,
            method=ValuationMethod.LLM_ANALYSIS,
            estimated_market_price=estimate,
            actual_price=subject.price,
            confidence=confidence,
            options=options,
            base_value=base_value,
            adjustments=self._breakdown(analysis.get("adjustmentBreakdown")),
            comparables_used=min(selection.count, MAX_PROMPT_COMPARABLES),
            reasoning=str(analysis["reasoning"]),
            strategy=self.name,
        )

    # =========================================================================
    # Request
    # =========================================================================

    def build_prompt(
        self,
        subject: Listing,
        selection: ComparablePool,
        neighborhood: str,
        options: AnalysisOptions,
    ) -> str:
        """Render the user prompt for one subject."""
        comps = selection.comparables[:MAX_PROMPT_COMPARABLES]
        prices = [c.price for c in comps]

        lines = [
            "Analyze this NYC property for undervaluation:",
            "",
            "TARGET PROPERTY:",
            f"Address: {subject.address or 'Unknown'}",
            f"Current Price: ${subject.price:,}",
            f"Bedrooms: {subject.bedrooms}",
            f"Bathrooms: {subject.bathrooms}",
            f"Square Feet: {subject.sqft or 'Not listed'}",
            f"Neighborhood: {neighborhood}",
            f"Borough: {subject.borough or 'Unknown'}",
            f"Amenities: {', '.join(sorted(listing_amenities(subject))) or 'None listed'}",
            f"Description: {subject.description or 'None'}",
            "",
            f"COMPARABLE SALES ({selection.method.value}):",
        ]
        for i, comp in enumerate(comps, start=1):
            lines.append(
                f"{i}. {comp.address or comp.id} - ${comp.price:,} | "
                f"{comp.bedrooms}BR/{comp.bathrooms}BA | {comp.sqft or 'N/A'} sqft | "
                f"Amenities: {', '.join(sorted(listing_amenities(comp))) or 'None'}"
            )
        lines.extend([
            "",
            "MARKET STATISTICS:",
            f"Median Price: ${statistics.median(prices):,.0f}",
            f"Price Range: ${min(prices):,} - ${max(prices):,}",
            f"Total Comparables: {len(comps)}",
            "",
            f"Determine whether the property is {options.undervalued_threshold_percent:g}%+ "
            "below true market value.",
            "Return analysis as JSON only.",
        ])
        return "\n".join(lines)

    def _send(self, prompt: str) -> str:
        headers = {
            "Content-Type": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }
        payload = {
            "model": self.model,
            "max_tokens": MAX_TOKENS,
            "temperature": TEMPERATURE,
            "system": SYSTEM_PROMPT,
            "messages": [{"role": "user", "content": prompt}],
        }

        @retry(
            wait=wait_exponential(multiplier=1, min=2, max=10),
            stop=stop_after_attempt(3),
            retry=retry_if_exception_type((requests.exceptions.ConnectionError, requests.exceptions.Timeout)),
            reraise=True,
        )
        def _make_request():
            self.api_calls += 1
            return requests.post(
                ANTHROPIC_MESSAGES_URL, headers=headers, json=payload, timeout=self.timeout
            )

        response = _make_request()

        if response.status_code == 429:
            raise RateLimited(
                retry_after=_as_number(response.headers.get("retry-after")),
                message="Model API rate limit reached",
            )
        response.raise_for_status()

        try:
            return response.json()["content"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise MalformedStrategyOutput(f"Unexpected response envelope: {e}")

    # =========================================================================
    # Response
    # =========================================================================

    @staticmethod
    def parse_response(text: str) -> dict:
        """
        Extract and validate the JSON analysis from model text.

        Raises:
            MalformedStrategyOutput: No JSON object, missing fields, a
                non-finite number or a non-positive estimate
        """
        try:
            analysis = json.loads(text)
        except (TypeError, ValueError):
            match = _JSON_OBJECT.search(text or "")
            if not match:
                raise MalformedStrategyOutput("No JSON object in response")
            try:
                analysis = json.loads(match.group(0))
            except ValueError as e:
                raise MalformedStrategyOutput(f"Invalid JSON: {e}")

        if not isinstance(analysis, dict):
            raise MalformedStrategyOutput("Response is not a JSON object")

        missing = [f for f in REQUIRED_FIELDS if f not in analysis]
        if missing:
            raise MalformedStrategyOutput(f"Missing fields: {', '.join(missing)}")

        for name in ("estimatedMarketPrice", "discountPercent", "confidence"):
            if _as_number(analysis[name]) is None:
                raise MalformedStrategyOutput(f"{name} is not a finite number")

        if float(analysis["estimatedMarketPrice"]) <= 0:
            raise MalformedStrategyOutput("estimatedMarketPrice must be positive")

        return analysis

    def fallback_valuation(self, subject: Listing, reason: str) -> Valuation:
        """Conservative result used when the model cannot be trusted."""
        return Valuation(
            listing_id=subject.id,
            estimated_market_price=int(subject.price),
            actual_price=int(subject.price),
            discount_percent=0.0,
            confidence=FALLBACK_CONFIDENCE,
            method=ValuationMethod.LLM_ANALYSIS,
            classification=Classification.INSUFFICIENT_DATA,
            reasoning=reason,
            strategy=self.name,
        )

    @staticmethod
    def _breakdown(raw) -> AdjustmentBreakdown:
        if not isinstance(raw, dict):
            return AdjustmentBreakdown()
        entries = []
        for category, amount in raw.items():
            value = _as_number(amount)
            if value:
                entries.append(AdjustmentEntry(str(category), value, "Model-reported adjustment"))
        return AdjustmentBreakdown(entries=entries)


def _as_number(value) -> Optional[float]:
    """Float value, or None for booleans, non-numbers, NaN and infinities."""
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None
