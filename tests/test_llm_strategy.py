"""
Tests for the LLM valuation strategy and strategy selection.

The Messages API is never called: requests.post is replaced with a fake.
"""

import json
import sys
from pathlib import Path

import pytest
import requests

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.errors import MalformedStrategyOutput, RateLimited
from core.models import Listing
from core.valuation import (
    AnalysisOptions,
    Classification,
    LLMValuationStrategy,
    RulesBasedStrategy,
    ValuationMethod,
    create_strategy,
)
from utils.config import Config


# =============================================================================
# Test Fixtures
# =============================================================================

class FakeResponse:
    def __init__(self, status_code=200, body=None, headers=None):
        self.status_code = status_code
        self._body = body
        self.headers = headers or {}

    def json(self):
        if self._body is None:
            raise ValueError("no body")
        return self._body

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} error")


def message(text):
    return FakeResponse(body={"content": [{"type": "text", "text": text}]})


@pytest.fixture
def fake_post(monkeypatch):
    """Install a fake requests.post returning queued responses."""
    calls = []
    responses = []

    def _post(url, headers=None, json=None, timeout=None):
        calls.append({"url": url, "headers": headers, "json": json})
        return responses.pop(0)

    monkeypatch.setattr(requests, "post", _post)
    return calls, responses


@pytest.fixture
def subject():
    return Listing(
        id="subject", price=800_000, bedrooms=2, bathrooms=2.0,
        neighborhood="park-slope", sqft=1000, borough="Brooklyn",
    )


@pytest.fixture
def pool():
    return [
        Listing(
            id=f"comp-{i}", price=1_000_000, bedrooms=2, bathrooms=2.0,
            neighborhood="park-slope", sqft=1000, borough="Brooklyn",
        )
        for i in range(10)
    ]


@pytest.fixture
def strategy():
    return LLMValuationStrategy(api_key="test-key", model="test-model")


GOOD_ANALYSIS = {
    "estimatedMarketPrice": 1_000_000,
    "discountPercent": 55,
    "confidence": 80,
    "baseMarketPrice": 980_000,
    "adjustmentBreakdown": {"amenities": 20_000, "square_footage": 0},
    "reasoning": "Priced well under recent two-bedroom sales.",
}


# =============================================================================
# Analysis
# =============================================================================

class TestLLMStrategy:

    def test_discount_recomputed_locally(self, strategy, fake_post, subject, pool):
        calls, responses = fake_post
        responses.append(message(json.dumps(GOOD_ANALYSIS)))

        valuation = strategy.analyze(subject, pool, "park-slope", AnalysisOptions())

        assert valuation.method == ValuationMethod.LLM_ANALYSIS
        assert valuation.strategy == "llm"
        assert valuation.estimated_market_price == 1_000_000
        assert valuation.discount_percent == pytest.approx(20.0)
        assert valuation.classification == Classification.UNDERVALUED
        assert valuation.adjustments.amount_for("amenities") == 20_000
        assert len(calls) == 1
        assert calls[0]["headers"]["x-api-key"] == "test-key"
        assert calls[0]["json"]["model"] == "test-model"

    def test_json_wrapped_in_prose(self, strategy, fake_post, subject, pool):
        _, responses = fake_post
        responses.append(message("Here is my analysis:\n" + json.dumps(GOOD_ANALYSIS) + "\nThanks."))

        valuation = strategy.analyze(subject, pool, "park-slope", AnalysisOptions())

        assert valuation.estimated_market_price == 1_000_000

    def test_malformed_output_falls_back(self, strategy, fake_post, subject, pool):
        _, responses = fake_post
        responses.append(message("I cannot value this property."))

        valuation = strategy.analyze(subject, pool, "park-slope", AnalysisOptions())

        assert valuation.classification == Classification.INSUFFICIENT_DATA
        assert valuation.confidence == 10
        assert valuation.estimated_market_price == subject.price
        assert valuation.discount_percent == 0.0

    def test_non_finite_confidence_falls_back(self, strategy, fake_post, subject, pool):
        _, responses = fake_post
        text = json.dumps(GOOD_ANALYSIS).replace(
            f'"confidence": {GOOD_ANALYSIS["confidence"]}', '"confidence": NaN'
        )
        assert "NaN" in text
        responses.append(message(text))

        valuation = strategy.analyze(subject, pool, "park-slope", AnalysisOptions())

        assert valuation.classification == Classification.INSUFFICIENT_DATA
        assert valuation.confidence == 10

    def test_http_error_falls_back(self, strategy, fake_post, subject, pool):
        _, responses = fake_post
        responses.append(FakeResponse(status_code=500))

        valuation = strategy.analyze(subject, pool, "park-slope", AnalysisOptions())

        assert valuation.classification == Classification.INSUFFICIENT_DATA
        assert "request failed" in valuation.reasoning

    def test_rate_limit_raises(self, strategy, fake_post, subject, pool):
        _, responses = fake_post
        responses.append(FakeResponse(status_code=429, headers={"retry-after": "30"}))

        with pytest.raises(RateLimited) as exc_info:
            strategy.analyze(subject, pool, "park-slope", AnalysisOptions())

        assert exc_info.value.retry_after == 30.0

    def test_insufficient_pool_skips_api(self, strategy, fake_post, subject, pool):
        calls, _ = fake_post

        valuation = strategy.analyze(subject, pool[:2], "park-slope", AnalysisOptions())

        assert valuation.classification == Classification.INSUFFICIENT_DATA
        assert calls == []

    def test_prompt_mentions_subject_and_comps(self, strategy, subject, pool):
        selection = strategy._selector.select(subject, pool)
        prompt = strategy.build_prompt(subject, selection, "park-slope", AnalysisOptions())

        assert "$800,000" in prompt
        assert "COMPARABLE SALES (exact_match)" in prompt
        assert "Total Comparables: 10" in prompt


# =============================================================================
# Response Parsing
# =============================================================================

class TestParseResponse:

    def test_missing_fields(self):
        with pytest.raises(MalformedStrategyOutput):
            LLMValuationStrategy.parse_response('{"estimatedMarketPrice": 100}')

    def test_non_numeric(self):
        bad = dict(GOOD_ANALYSIS, confidence="high")
        with pytest.raises(MalformedStrategyOutput):
            LLMValuationStrategy.parse_response(json.dumps(bad))

    def test_non_positive_estimate(self):
        bad = dict(GOOD_ANALYSIS, estimatedMarketPrice=0)
        with pytest.raises(MalformedStrategyOutput):
            LLMValuationStrategy.parse_response(json.dumps(bad))

    def test_array_rejected(self):
        with pytest.raises(MalformedStrategyOutput):
            LLMValuationStrategy.parse_response("[1, 2, 3]")

    @pytest.mark.parametrize("field,literal", [
        ("confidence", "NaN"),
        ("estimatedMarketPrice", "Infinity"),
        ("discountPercent", "-Infinity"),
    ])
    def test_non_finite_rejected(self, field, literal):
        text = json.dumps(dict(GOOD_ANALYSIS, **{field: 0})).replace(
            f'"{field}": 0', f'"{field}": {literal}'
        )
        with pytest.raises(MalformedStrategyOutput):
            LLMValuationStrategy.parse_response(text)


# =============================================================================
# Strategy Selection
# =============================================================================

class TestCreateStrategy:

    def test_rules_default(self):
        assert isinstance(create_strategy(Config(valuation_strategy="rules")), RulesBasedStrategy)

    def test_llm_requires_key(self):
        with pytest.raises(ValueError):
            create_strategy(Config(valuation_strategy="llm", claude_api_key=None))

    def test_llm_with_key(self):
        strategy = create_strategy(Config(valuation_strategy="LLM", claude_api_key="k"))
        assert isinstance(strategy, LLMValuationStrategy)

    def test_unknown(self):
        with pytest.raises(ValueError):
            create_strategy(Config(valuation_strategy="oracle"))
