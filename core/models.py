"""
Data models for the deal engine.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from .errors import InvalidListing


@dataclass
class Listing:
    """
    A residential listing, used both as a subject and as a comparable.

    Bedrooms of 0 denote a studio. Bathrooms come in 0.5 steps.
    """

    id: str
    price: int
    bedrooms: Optional[int]
    bathrooms: Optional[float]
    neighborhood: str
    sqft: Optional[int] = None
    borough: str = ""
    address: str = ""
    amenities: List[str] = field(default_factory=list)
    description: str = ""
    days_on_market: int = 0
    listed_at: Optional[datetime] = None

    @property
    def has_area(self) -> bool:
        """Whether a positive square footage is known."""
        return self.sqft is not None and self.sqft > 0

    @property
    def is_usable_comparable(self) -> bool:
        """Price and bed/bath counts are required to serve as a peer."""
        return (
            self.price is not None
            and self.price > 0
            and self.bedrooms is not None
            and self.bathrooms is not None
        )

    @property
    def price_per_sqft(self) -> Optional[float]:
        """Price per square foot, if area is known."""
        if not self.has_area or not self.price:
            return None
        return self.price / self.sqft


@dataclass
class SearchHit:
    """One row of a neighborhood search snapshot."""

    listing_id: str
    price: int
    neighborhood: str


@dataclass
class NeighborhoodSearch:
    """
    Search snapshot for one neighborhood.

    hits are the listings currently active in the search. comparables is the
    optional peer batch supplied by the scraping layer.
    """

    neighborhood: str
    hits: List[SearchHit] = field(default_factory=list)
    comparables: List[Listing] = field(default_factory=list)

    @property
    def listing_ids(self) -> List[str]:
        return [hit.listing_id for hit in self.hits]


def validate_listing(listing: Optional[Listing], listing_id: str) -> Listing:
    """
    Reject detail payloads the engine cannot use.

    Raises:
        InvalidListing: Missing or inconsistent required fields
    """
    if listing is None:
        raise InvalidListing(listing_id, "empty payload")
    if listing.id != listing_id:
        raise InvalidListing(listing_id, f"payload is for {listing.id}")
    if not listing.price or listing.price <= 0:
        raise InvalidListing(listing_id, "missing price")
    if listing.bedrooms is None or listing.bathrooms is None:
        raise InvalidListing(listing_id, "missing bedroom or bathroom count")
    if listing.sqft is not None and listing.sqft <= 0:
        raise InvalidListing(listing_id, "non-positive area")
    return listing
