"""
FastAPI application for the listing engine.

Read-only views over the result store and cache, plus a stateless
analysis endpoint for ad-hoc valuations.

Production deployment configuration via environment variables.
"""

import logging
import os
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from core import Listing, RulesBasedStrategy, DealScorer
from core.cache import ListingCache, ResultStatus, get_listing_cache
from core.valuation import Classification, adjustment_tables, extract_signals
from utils.config import Config

logger = logging.getLogger(__name__)

API_VERSION = "2.0.0"

# =============================================================================
# Environment Configuration
# =============================================================================

# Production mode detection
IS_PRODUCTION = os.getenv("RAILWAY_ENVIRONMENT") is not None or os.getenv("PRODUCTION", "").lower() == "true"

# CORS configuration - locked down for production
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "").split(",") if os.getenv("ALLOWED_ORIGINS") else []
if not ALLOWED_ORIGINS and not IS_PRODUCTION:
    # Development fallback only
    ALLOWED_ORIGINS = ["http://localhost:8000", "http://127.0.0.1:8000"]

# Debug mode - NEVER enabled in production
DEBUG_MODE = os.getenv("DEBUG", "false").lower() == "true" and not IS_PRODUCTION


# =============================================================================
# Request Models
# =============================================================================

class ListingInput(BaseModel):
    """A listing supplied in a request body."""
    id: str
    price: int = Field(gt=0)
    bedrooms: int = Field(ge=0)
    bathrooms: float = Field(ge=0)
    neighborhood: str = ""
    sqft: Optional[int] = Field(default=None, gt=0)
    borough: str = ""
    address: str = ""
    amenities: List[str] = []
    description: str = ""
    days_on_market: int = Field(default=0, ge=0)

    def to_listing(self) -> Listing:
        return Listing(
            id=self.id,
            price=self.price,
            bedrooms=self.bedrooms,
            bathrooms=self.bathrooms,
            neighborhood=self.neighborhood,
            sqft=self.sqft,
            borough=self.borough,
            address=self.address,
            amenities=list(self.amenities),
            description=self.description,
            days_on_market=self.days_on_market,
        )


class AnalyzeRequest(BaseModel):
    """Request body for an ad-hoc valuation."""
    subject: ListingInput
    comparables: List[ListingInput] = []


def create_app(cache: Optional[ListingCache] = None, config: Optional[Config] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        cache: Result store to serve (default: the shared cache at config.cache_path)
        config: Configuration (default: loaded from environment)
    """
    config = config or Config.load()

    app = FastAPI(
        title="Undervalued Listing Engine",
        description="Comparable-based valuation of NYC sale listings",
        version=API_VERSION,
        # Production settings: disable docs/redoc for private deployment
        docs_url=None if IS_PRODUCTION else "/docs",
        redoc_url=None if IS_PRODUCTION else "/redoc",
        openapi_url=None if IS_PRODUCTION else "/openapi.json",
        debug=DEBUG_MODE,
    )

    # ==========================================================================
    # Healthcheck endpoints are registered first. They perform no IO.
    # ==========================================================================
    @app.get("/", include_in_schema=False)
    def root():
        """Root healthcheck. No dependencies, no IO."""
        return {"status": "ok"}

    @app.get("/health", include_in_schema=False)
    def health():
        """Secondary health endpoint. No dependencies, no IO."""
        return {"status": "healthy"}

    # CORS middleware - locked down for production
    if ALLOWED_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=ALLOWED_ORIGINS,
            allow_credentials=True,
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        )

    store = cache if cache is not None else get_listing_cache(config.cache_path)
    options = config.analysis_options()
    strategy = RulesBasedStrategy()
    scorer = DealScorer()

    # ==========================================================================
    # Results
    # ==========================================================================

    @app.get("/api/results")
    def list_results(
        classification: Optional[str] = None,
        neighborhood: Optional[str] = None,
        min_discount: Optional[float] = None,
        include_sold: bool = False,
        limit: int = Query(default=50, ge=1, le=500),
    ):
        """Stored results, best score first."""
        wanted = None
        if classification:
            wanted = Classification.from_string(classification)
            if wanted is None:
                raise HTTPException(status_code=400, detail=f"Invalid classification: {classification}")

        records = store.list_results(
            classification=wanted.value if wanted else None,
            neighborhood=neighborhood,
            min_discount=min_discount,
            status=None if include_sold else ResultStatus.ACTIVE,
            limit=limit,
        )
        return {
            "count": len(records),
            "results": [r.to_dict() for r in records],
        }

    @app.get("/api/results/{listing_id}")
    def get_result(listing_id: str):
        """One stored result."""
        record = store.get_result(listing_id)
        if not record:
            raise HTTPException(status_code=404, detail="Result not found")
        return record.to_dict()

    # ==========================================================================
    # Cache and model introspection
    # ==========================================================================

    @app.get("/api/cache/stats")
    def cache_stats():
        """Listing and result counts."""
        return store.stats()

    @app.get("/api/adjustments")
    def adjustments():
        """The adjustment tables used by the rules-based strategy."""
        return adjustment_tables()

    # ==========================================================================
    # Ad-hoc analysis
    # ==========================================================================

    @app.post("/api/analyze")
    def analyze(request: AnalyzeRequest):
        """
        Value one listing against the supplied comparables.

        Uses the rules-based strategy. Nothing is persisted.
        """
        subject = request.subject.to_listing()
        pool = [c.to_listing() for c in request.comparables if c.id != subject.id]

        valuation = strategy.analyze(subject, pool, subject.neighborhood, options)
        signals = extract_signals(subject.description)
        deal = scorer.score(subject, valuation, signals)

        return {
            "valuation": valuation.to_dict(),
            "deal_score": deal.to_dict(),
            "signals": {
                "distress": sorted(signals.distress),
                "warnings": sorted(signals.warnings),
            },
        }

    @app.get("/api/health")
    def api_health():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": API_VERSION,
            "environment": "production" if IS_PRODUCTION else "development",
            "cached_listings": store.count(),
        }

    return app


# Create app instance for uvicorn
app = create_app()
