"""
Base scraper interfaces.

The engine talks to the scraping layer through two collaborators:
- SearchSource: a neighborhood search snapshot (ids, prices, peer batch)
- DetailFetcher: a fully populated listing for one id
"""

from abc import ABC, abstractmethod

from core.models import Listing, NeighborhoodSearch


class SearchSource(ABC):
    """Abstract base class for neighborhood search sources."""

    @abstractmethod
    def search(self, neighborhood: str) -> NeighborhoodSearch:
        """
        Run a search for one neighborhood.

        Args:
            neighborhood: Neighborhood slug, e.g. "west-village"

        Returns:
            NeighborhoodSearch with current hits and any comparables.

        Raises:
            FatalSourceError: The source is unusable for the rest of the run.
        """
        pass


class DetailFetcher(ABC):
    """Abstract base class for listing detail fetchers."""

    @abstractmethod
    def get_listing_details(self, listing_id: str) -> Listing:
        """
        Fetch detailed information for a specific listing.

        Args:
            listing_id: Unique identifier for the listing.

        Returns:
            Listing with full details.

        Raises:
            ListingNotFound: The listing no longer exists.
            InvalidListing: The payload is malformed or incomplete.
            RateLimited: The source asked us to back off.
        """
        pass
