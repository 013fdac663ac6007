"""
Scraper module for fetching property listings.

Available sources:
- MockScraper: Development/testing with generated NYC data
- StreetEasyClient: Live sales listings from the StreetEasy API
"""

from .base import SearchSource, DetailFetcher
from .mock import MockScraper
from .streeteasy import StreetEasyClient, StreetEasyNormaliser


def create_scraper(config):
    """
    Build the configured search source / detail fetcher.

    Raises:
        ValueError: Unknown scraper type, or streeteasy without RAPIDAPI_KEY
    """
    name = (config.scraper_type or "mock").strip().lower()
    if name == "mock":
        return MockScraper()
    if name == "streeteasy":
        if not config.rapidapi_key:
            raise ValueError("SCRAPER_TYPE=streeteasy requires RAPIDAPI_KEY")
        return StreetEasyClient(config.rapidapi_key, timeout=config.request_timeout)
    raise ValueError(f"Unknown scraper type: {config.scraper_type}")


__all__ = [
    "SearchSource",
    "DetailFetcher",
    "MockScraper",
    "StreetEasyClient",
    "StreetEasyNormaliser",
    "create_scraper",
]
