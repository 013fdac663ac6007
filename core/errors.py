"""
Error taxonomy for the valuation and cache engine.

Per-listing and per-neighborhood failures are caught at the pipeline
boundary and recorded on the run summary. Only FatalSourceError stops a run.

Not enough comparables is a normal outcome, not an error: see
InsufficientComparables in core.valuation.models.
"""

from typing import Optional


class EngineError(Exception):
    """Base class for engine errors."""


class DetailFetchFailed(EngineError):
    """
    The detail-fetch collaborator could not produce a usable listing.

    The listing is cached as fetch_failed and retried on a later run.
    """

    def __init__(self, listing_id: str, reason: str = ""):
        self.listing_id = listing_id
        self.reason = reason
        message = f"Detail fetch failed for {listing_id}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ListingNotFound(DetailFetchFailed):
    """The source no longer knows the listing."""


class InvalidListing(DetailFetchFailed):
    """The source returned a malformed or incomplete payload."""


class MalformedStrategyOutput(EngineError):
    """A valuation strategy produced output that cannot be used."""


class RateLimited(EngineError):
    """
    External rate-limit signal.

    Not fatal. The caller should back off before the next external call.
    """

    def __init__(self, retry_after: Optional[float] = None, message: str = "Rate limited"):
        self.retry_after = retry_after
        super().__init__(message)


class FatalSourceError(EngineError):
    """An external failure that makes continuing the run pointless."""
