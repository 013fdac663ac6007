"""
StreetEasy listings via the RapidAPI gateway.

Two endpoints are used:
- GET /sales/search?areas=<neighborhood>  (ids and prices only)
- GET /sale/<id>                          (full listing)

Pacing between detail calls is owned by the pipeline's rate limiter;
this client only maps HTTP outcomes onto the engine's error taxonomy.
"""

import logging
import math
from datetime import datetime, timezone
from typing import List, Optional

import requests
from tenacity import retry, wait_exponential, stop_after_attempt, retry_if_exception_type

from core.errors import (
    FatalSourceError,
    InvalidListing,
    ListingNotFound,
    RateLimited,
)
from core.models import Listing, NeighborhoodSearch, SearchHit
from .base import DetailFetcher, SearchSource

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================

API_HOST = "streeteasy-api.p.rapidapi.com"
BASE_URL = f"https://{API_HOST}"

SEARCH_LIMIT = 500
SEARCH_MIN_PRICE = 200_000
SEARCH_MAX_PRICE = 10_000_000

REQUEST_TIMEOUT_SECONDS = 30


# =============================================================================
# Normaliser
# =============================================================================

class StreetEasyNormaliser:
    """Maps StreetEasy payloads onto engine models."""

    @staticmethod
    def search_rows(payload) -> List[dict]:
        """The result array, whichever envelope the API used."""
        if isinstance(payload, list):
            return payload
        if isinstance(payload, dict):
            for key in ("results", "listings"):
                rows = payload.get(key)
                if isinstance(rows, list):
                    return rows
        return []

    @classmethod
    def to_hit(cls, row: dict, neighborhood: str) -> Optional[SearchHit]:
        listing_id = row.get("id")
        price = _as_int(row.get("price"))
        if not listing_id or not price:
            return None
        return SearchHit(listing_id=str(listing_id), price=price, neighborhood=neighborhood)

    @classmethod
    def to_listing(cls, listing_id: str, data: dict, neighborhood: str = "") -> Listing:
        """
        Build a Listing from a /sale/<id> payload.

        Raises:
            InvalidListing: Payload is not an object
        """
        if not isinstance(data, dict):
            raise InvalidListing(listing_id, "payload is not an object")

        sqft = _as_int(data.get("sqft"))
        price = _as_int(data.get("price")) or 0
        price_per_sqft = _as_float(data.get("ppsqft"))
        if not sqft and price and price_per_sqft and price_per_sqft > 0:
            # Some payloads only carry price per sqft
            sqft = int(round(price / price_per_sqft))

        return Listing(
            id=str(data.get("id") or listing_id),
            price=price,
            bedrooms=_as_int(data.get("bedrooms")),
            bathrooms=_as_float(data.get("bathrooms")),
            neighborhood=data.get("neighborhood") or neighborhood,
            sqft=sqft,
            borough=data.get("borough") or "",
            address=data.get("address") or "",
            amenities=[str(a) for a in data.get("amenities") or []],
            description=data.get("description") or "",
            days_on_market=_as_int(data.get("daysOnMarket")) or 0,
            listed_at=_parse_date(data.get("listedAt")),
        )


# =============================================================================
# Client
# =============================================================================

class StreetEasyClient(SearchSource, DetailFetcher):
    """
    Search source and detail fetcher backed by the StreetEasy API.

    - 404 on a detail call: ListingNotFound
    - 429 on any call: RateLimited
    - 401/403: FatalSourceError (bad or exhausted key)
    - Connection errors and timeouts are retried
    """

    def __init__(
        self,
        api_key: str,
        timeout: int = REQUEST_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({
            "X-RapidAPI-Key": api_key,
            "X-RapidAPI-Host": API_HOST,
            "Accept": "application/json",
        })
        self.api_calls = 0

    def search(self, neighborhood: str) -> NeighborhoodSearch:
        """
        Fetch all active sales in a neighborhood.

        Raises:
            RateLimited: On HTTP 429
            FatalSourceError: On authentication failures
            requests.HTTPError: Any other HTTP failure
        """
        response = self._get(
            "/sales/search",
            params={
                "areas": neighborhood,
                "limit": SEARCH_LIMIT,
                "minPrice": SEARCH_MIN_PRICE,
                "maxPrice": SEARCH_MAX_PRICE,
                "offset": 0,
            },
        )
        self._raise_for_status(response)

        hits = []
        for row in StreetEasyNormaliser.search_rows(response.json()):
            hit = StreetEasyNormaliser.to_hit(row, neighborhood)
            if hit is not None:
                hits.append(hit)

        logger.info("%s: %s active sales", neighborhood, len(hits))
        return NeighborhoodSearch(neighborhood=neighborhood, hits=hits)

    def get_listing_details(self, listing_id: str) -> Listing:
        try:
            response = self._get(f"/sale/{listing_id}")
        except requests.exceptions.RequestException as e:
            raise InvalidListing(listing_id, f"request failed: {e}")

        if response.status_code == 404:
            raise ListingNotFound(listing_id, "404 from source")
        self._raise_for_status(response, listing_id)

        try:
            data = response.json()
        except ValueError:
            raise InvalidListing(listing_id, "response is not JSON")
        return StreetEasyNormaliser.to_listing(listing_id, data)

    def _get(self, path: str, params: Optional[dict] = None) -> requests.Response:
        @retry(
            wait=wait_exponential(multiplier=1, min=2, max=10),
            stop=stop_after_attempt(3),
            retry=retry_if_exception_type((requests.exceptions.ConnectionError, requests.exceptions.Timeout)),
            reraise=True,
        )
        def _make_request():
            self.api_calls += 1
            return self._session.get(f"{BASE_URL}{path}", params=params, timeout=self._timeout)

        return _make_request()

    @staticmethod
    def _raise_for_status(response: requests.Response, listing_id: Optional[str] = None) -> None:
        if response.status_code == 429:
            retry_after = _as_float(response.headers.get("Retry-After"))
            raise RateLimited(retry_after=retry_after, message="StreetEasy rate limit reached")
        if response.status_code in (401, 403):
            raise FatalSourceError(f"StreetEasy rejected the API key ({response.status_code})")
        if listing_id is not None and response.status_code >= 400:
            raise InvalidListing(listing_id, f"HTTP {response.status_code}")
        response.raise_for_status()


def _as_int(value) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return None


def _as_float(value) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _parse_date(value) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
