"""
Mock scraper for development and testing.
Generates realistic NYC placeholder data without external requests.
"""

import random
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional

from core.errors import ListingNotFound
from core.models import Listing, NeighborhoodSearch, SearchHit
from .base import DetailFetcher, SearchSource


class MockScraper(SearchSource, DetailFetcher):
    """
    Mock search source and detail fetcher.

    Each neighborhood gets a stable inventory of active listings and a batch
    of recent comparable sales, generated from the seed.
    """

    # Median sale price per neighborhood (rough NYC figures)
    NEIGHBORHOOD_PRICES = {
        "west-village": ("Manhattan", 1_650_000),
        "soho": ("Manhattan", 2_100_000),
        "tribeca": ("Manhattan", 2_600_000),
        "upper-west-side": ("Manhattan", 1_250_000),
        "east-village": ("Manhattan", 1_050_000),
        "harlem": ("Manhattan", 780_000),
        "williamsburg": ("Brooklyn", 1_150_000),
        "park-slope": ("Brooklyn", 1_350_000),
        "dumbo": ("Brooklyn", 1_700_000),
        "astoria": ("Queens", 720_000),
        "long-island-city": ("Queens", 950_000),
    }

    STREETS = ["Bleecker St", "Bedford Ave", "Hudson St", "Prospect Pl", "Ditmars Blvd", "Court St"]

    AMENITY_POOL = [
        "doorman", "elevator", "gym", "roof_deck", "washer_dryer", "laundry",
        "dishwasher", "storage", "pets_allowed", "balcony", "central_ac",
    ]

    DESCRIPTIONS = [
        "Sunny apartment on a quiet tree-lined block.",
        "Newly renovated kitchen with dishwasher. Elevator building.",
        "Prewar charm, needs work. Motivated seller, bring offers.",
        "Ground floor unit on a busy avenue.",
        "Move-in ready with full-time doorman and roof deck.",
        "Estate sale. Sold as-is.",
        "Bright corner unit with washer/dryer in unit.",
    ]

    def __init__(
        self,
        seed: Optional[int] = None,
        listings_per_neighborhood: int = 30,
        comparables_per_neighborhood: int = 40,
        missing_ids: Iterable[str] = (),
    ):
        """
        Initialize mock scraper.

        Args:
            seed: Optional random seed for reproducible results.
            listings_per_neighborhood: Active listings per search.
            comparables_per_neighborhood: Sold comparables per search.
            missing_ids: Ids that get_listing_details reports as not found.
        """
        self._seed = seed
        self._listings_per_neighborhood = listings_per_neighborhood
        self._comparables_per_neighborhood = comparables_per_neighborhood
        self._missing_ids = set(missing_ids)
        self._inventory: Dict[str, Listing] = {}
        self.detail_calls = 0

    def search(self, neighborhood: str) -> NeighborhoodSearch:
        """
        Generate a search snapshot for a neighborhood.

        Args:
            neighborhood: Neighborhood slug.

        Returns:
            NeighborhoodSearch with active hits and a comparable batch.
        """
        rng = self._rng_for(neighborhood)
        active = [
            self._generate_listing(rng, neighborhood, f"{neighborhood}-{i:04d}")
            for i in range(self._listings_per_neighborhood)
        ]
        comparables = [
            self._generate_listing(rng, neighborhood, f"{neighborhood}-sold-{i:04d}")
            for i in range(self._comparables_per_neighborhood)
        ]

        for listing in active:
            self._inventory[listing.id] = listing

        return NeighborhoodSearch(
            neighborhood=neighborhood,
            hits=[SearchHit(listing.id, listing.price, neighborhood) for listing in active],
            comparables=comparables,
        )

    def get_listing_details(self, listing_id: str) -> Listing:
        """
        Return the generated listing with the given ID.

        Raises:
            ListingNotFound: Unknown or deliberately missing id.
        """
        self.detail_calls += 1
        if listing_id in self._missing_ids or listing_id not in self._inventory:
            raise ListingNotFound(listing_id, "not in mock inventory")
        return self._inventory[listing_id]

    def _rng_for(self, neighborhood: str) -> random.Random:
        return random.Random(f"{self._seed}:{neighborhood}")

    def _generate_listing(self, rng: random.Random, neighborhood: str, listing_id: str) -> Listing:
        """Generate a single mock listing."""
        borough, median_price = self.NEIGHBORHOOD_PRICES.get(neighborhood, ("Brooklyn", 900_000))

        beds = rng.choice([0, 1, 1, 2, 2, 3])
        baths = rng.choice([1.0, 1.0, 1.5, 2.0]) if beds < 3 else rng.choice([2.0, 2.5, 3.0])
        sqft = {0: 480, 1: 720, 2: 1050, 3: 1450}[beds] + rng.randint(-120, 160)

        bedroom_factor = {0: 0.55, 1: 0.8, 2: 1.1, 3: 1.5}[beds]
        price_variance = rng.uniform(-0.22, 0.15)
        price = round(median_price * bedroom_factor * (1 + price_variance) / 5000) * 5000

        days_on_market = rng.randint(1, 120)

        return Listing(
            id=listing_id,
            price=price,
            bedrooms=beds,
            bathrooms=baths,
            neighborhood=neighborhood,
            sqft=sqft,
            borough=borough,
            address=f"{rng.randint(1, 400)} {rng.choice(self.STREETS)} #{rng.randint(1, 9)}{rng.choice('ABCDEF')}",
            amenities=rng.sample(self.AMENITY_POOL, rng.randint(0, 4)),
            description=rng.choice(self.DESCRIPTIONS),
            days_on_market=days_on_market,
            listed_at=datetime.now(timezone.utc) - timedelta(days=days_on_market),
        )
