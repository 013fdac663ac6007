"""
Adaptive rate limiting for detail fetches.

The limiter is an immutable value. Callers pass the current state in and
keep the state returned, so no module holds global scheduler state.
"""

import random
from dataclasses import dataclass, replace
from typing import Optional, Tuple


# =============================================================================
# Configuration Constants
# =============================================================================

DEFAULT_BASE_DELAY = 6.0
MIN_DELAY = 4.0
MAX_DELAY = 20.0
MODERATE_DELAY = 8.0

DEFAULT_MAX_CALLS_PER_HOUR = 200
HOUR_SECONDS = 3600
HOURLY_LIMIT_WAIT = 30 * 60

# Delay shrinks by this much per call while the source is healthy
SPEEDUP_STEP = 0.5
# Delay grows by this much per call after repeated rate limits
SLOWDOWN_STEP = 2.0
# Healthy means below this share of the hourly cap
HEALTHY_USAGE_RATIO = 0.7

# +1s for every 50 calls in the session
PROGRESSIVE_CALLS = 50
PROGRESSIVE_STEP = 1.0

MAX_JITTER = 2.0


@dataclass(frozen=True)
class RateLimiterState:
    """
    Snapshot of the limiter.

    call_times holds the timestamps (seconds) of calls in the last hour.
    pending_backoff is extra wait owed after a rate-limit signal.
    """
    base_delay: float = DEFAULT_BASE_DELAY
    max_calls_per_hour: int = DEFAULT_MAX_CALLS_PER_HOUR
    rate_limit_hits: int = 0
    session_calls: int = 0
    call_times: Tuple[float, ...] = ()
    pending_backoff: float = 0.0

    @classmethod
    def from_config(cls, config) -> "RateLimiterState":
        return cls(
            base_delay=config.base_request_delay,
            max_calls_per_hour=config.max_calls_per_hour,
        )

    def calls_in_last_hour(self, now: float) -> int:
        return sum(1 for t in self.call_times if now - t < HOUR_SECONDS)


def next_delay(
    state: RateLimiterState,
    now: float,
    rng: Optional[random.Random] = None,
) -> Tuple[float, RateLimiterState]:
    """
    Seconds to wait before the next external call, and the updated state.

    Args:
        state: Current limiter state
        now: Current time in seconds (any monotonic clock)
        rng: Random source for jitter (default: module random)

    Returns:
        Tuple of (delay_seconds, new_state); the call is recorded in new_state
    """
    recent = tuple(t for t in state.call_times if now - t < HOUR_SECONDS)
    calls_this_hour = len(recent)

    if calls_this_hour >= state.max_calls_per_hour:
        # Hourly cap reached: wait it out without recording a call
        return float(HOURLY_LIMIT_WAIT), replace(state, call_times=recent)

    if state.rate_limit_hits == 0 and calls_this_hour < state.max_calls_per_hour * HEALTHY_USAGE_RATIO:
        base_delay = max(MIN_DELAY, state.base_delay - SPEEDUP_STEP)
    elif state.rate_limit_hits <= 2:
        base_delay = max(state.base_delay, MODERATE_DELAY)
    else:
        base_delay = min(MAX_DELAY, state.base_delay + SLOWDOWN_STEP)

    progressive = (state.session_calls // PROGRESSIVE_CALLS) * PROGRESSIVE_STEP
    jitter = (rng or random).random() * MAX_JITTER
    delay = base_delay + progressive + jitter + state.pending_backoff

    new_state = replace(
        state,
        base_delay=base_delay,
        session_calls=state.session_calls + 1,
        call_times=recent + (now,),
        pending_backoff=0.0,
    )
    return delay, new_state


def record_rate_limit(
    state: RateLimiterState,
    retry_after: Optional[float] = None,
) -> RateLimiterState:
    """
    Register a rate-limit signal from the source.

    The base delay grows by half (capped) and the next delay carries a
    backoff of retry_after, or twice the new base delay when absent.
    """
    base_delay = min(MAX_DELAY, state.base_delay * 1.5)
    backoff = retry_after if retry_after is not None else base_delay * 2
    return replace(
        state,
        base_delay=base_delay,
        rate_limit_hits=state.rate_limit_hits + 1,
        pending_backoff=state.pending_backoff + backoff,
    )
