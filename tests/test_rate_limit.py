"""
Tests for the adaptive rate limiter.

The limiter is a value: every call returns a new state and the input
state is never changed.
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.rate_limit import (
    HOURLY_LIMIT_WAIT,
    MAX_DELAY,
    RateLimiterState,
    next_delay,
    record_rate_limit,
)


class NoJitter:
    def random(self):
        return 0.0


@pytest.fixture
def rng():
    return NoJitter()


class TestNextDelay:

    def test_healthy_source_speeds_up(self, rng):
        delay, state = next_delay(RateLimiterState(base_delay=6.0), now=100.0, rng=rng)

        assert delay == pytest.approx(5.5)
        assert state.base_delay == pytest.approx(5.5)
        assert state.session_calls == 1
        assert state.call_times == (100.0,)

    def test_never_below_minimum(self, rng):
        delay, _ = next_delay(RateLimiterState(base_delay=4.0), now=0.0, rng=rng)
        assert delay == pytest.approx(4.0)

    def test_input_state_unchanged(self, rng):
        state = RateLimiterState()
        next_delay(state, now=0.0, rng=rng)
        assert state.session_calls == 0
        assert state.call_times == ()

    def test_hourly_cap(self, rng):
        state = RateLimiterState(max_calls_per_hour=2, call_times=(0.0, 1.0), session_calls=2)

        delay, new_state = next_delay(state, now=10.0, rng=rng)

        assert delay == HOURLY_LIMIT_WAIT
        assert new_state.session_calls == 2

    def test_old_calls_expire(self, rng):
        state = RateLimiterState(max_calls_per_hour=1, call_times=(0.0,))

        delay, new_state = next_delay(state, now=3700.0, rng=rng)

        assert delay < HOURLY_LIMIT_WAIT
        assert new_state.call_times == (3700.0,)

    def test_progressive_slowdown(self, rng):
        delay, _ = next_delay(RateLimiterState(base_delay=4.0, session_calls=100), now=0.0, rng=rng)
        assert delay == pytest.approx(6.0)

    def test_repeated_rate_limits_slow_down(self, rng):
        state = RateLimiterState(base_delay=10.0, rate_limit_hits=3)
        delay, new_state = next_delay(state, now=0.0, rng=rng)

        assert new_state.base_delay == pytest.approx(12.0)
        assert delay == pytest.approx(12.0)

    def test_jitter_bounded(self):
        delays = {next_delay(RateLimiterState(base_delay=4.0), now=0.0)[0] for _ in range(20)}
        assert all(4.0 <= d <= 6.0 for d in delays)


class TestRecordRateLimit:

    def test_backoff_without_retry_after(self):
        state = record_rate_limit(RateLimiterState(base_delay=6.0))

        assert state.base_delay == pytest.approx(9.0)
        assert state.rate_limit_hits == 1
        assert state.pending_backoff == pytest.approx(18.0)

    def test_retry_after_honoured(self):
        state = record_rate_limit(RateLimiterState(), retry_after=30)
        assert state.pending_backoff == 30

    def test_base_delay_capped(self):
        state = record_rate_limit(RateLimiterState(base_delay=18.0))
        assert state.base_delay == MAX_DELAY

    def test_backoff_paid_once(self, rng):
        state = record_rate_limit(RateLimiterState(base_delay=6.0))

        first, state = next_delay(state, now=0.0, rng=rng)
        second, state = next_delay(state, now=1.0, rng=rng)

        # Moderate band: base 9 plus the 18s backoff, then base 9 alone
        assert first == pytest.approx(27.0)
        assert second == pytest.approx(9.0)
