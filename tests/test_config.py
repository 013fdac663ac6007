"""
Tests for configuration loading.
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.valuation import ValuationMethod
from core.valuation.decision import DEFAULT_MIN_CONFIDENCE
from utils.config import Config, parse_min_confidence


class TestParseMinConfidence:

    def test_defaults(self):
        assert parse_min_confidence(None) == DEFAULT_MIN_CONFIDENCE

    def test_overrides(self):
        floors = parse_min_confidence("exact_match=80, bedroom_specific=55")
        assert floors[ValuationMethod.EXACT_MATCH] == 80
        assert floors[ValuationMethod.BEDROOM_SPECIFIC] == 55
        assert floors[ValuationMethod.BED_BATH_SPECIFIC] == 70

    def test_unknown_method(self):
        with pytest.raises(ValueError):
            parse_min_confidence("nearest_neighbour=50")


class TestConfig:

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("UNDERVALUED_THRESHOLD_PERCENT", "20")
        monkeypatch.setenv("FRESHNESS_WINDOW_DAYS", "3")
        monkeypatch.setenv("NEIGHBORHOODS", "soho, tribeca,,")
        monkeypatch.setenv("DATA_DIR", "/tmp/engine")
        monkeypatch.delenv("CACHE_PATH", raising=False)

        config = Config.load()

        assert config.undervalued_threshold_percent == 20.0
        assert config.freshness_window_days == 3
        assert config.neighborhood_list == ["soho", "tribeca"]
        assert config.cache_path == str(Path("/tmp/engine") / "listing_cache.json")

    def test_analysis_options(self):
        config = Config(undervalued_threshold_percent=12.5, moderate_threshold_percent=4.0)

        options = config.analysis_options()

        assert options.undervalued_threshold_percent == 12.5
        assert options.moderate_threshold_percent == 4.0
        assert options.min_confidence_for(ValuationMethod.LLM_ANALYSIS) == 60

    def test_to_dict_hides_secrets(self):
        data = Config(claude_api_key="secret", rapidapi_key="other").to_dict()

        assert data["claude_api_key_set"] is True
        assert data["rapidapi_key_set"] is True
        assert "secret" not in str(data)
        assert "other" not in str(data)
