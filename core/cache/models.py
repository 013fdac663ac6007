"""
Data models for the listing freshness cache.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from core.models import Listing
from core.valuation.models import Classification, Valuation


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _format_datetime(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class MarketStatus(Enum):
    """Analysis state of a cached listing."""
    PENDING = "pending"
    UNDERVALUED = "undervalued"
    MARKET_RATE = "market_rate"
    FETCH_FAILED = "fetch_failed"
    LIKELY_SOLD = "likely_sold"

    @classmethod
    def from_string(cls, value: str) -> "MarketStatus":
        """Convert string to MarketStatus, defaulting to PENDING."""
        for member in cls:
            if member.value == (value or "").lower().strip():
                return member
        return cls.PENDING

    @classmethod
    def from_classification(cls, classification: Classification) -> "MarketStatus":
        """
        Cache status after a valuation.

        Only a full undervalued classification is cached as undervalued;
        every other outcome is cached as market_rate.
        """
        if classification == Classification.UNDERVALUED:
            return cls.UNDERVALUED
        return cls.MARKET_RATE


class ResultStatus(Enum):
    """Lifecycle of a result row."""
    ACTIVE = "active"
    LIKELY_SOLD = "likely_sold"


@dataclass
class CacheEntry:
    """
    One cached listing, keyed by listing_id.

    Holds enough of the listing to serve as a subject or comparable
    without a new detail fetch.
    """
    listing_id: str
    price: int
    neighborhood: str
    address: str = ""
    bedrooms: Optional[int] = None
    bathrooms: Optional[float] = None
    sqft: Optional[int] = None
    borough: str = ""
    amenities: List[str] = field(default_factory=list)
    description: str = ""
    days_on_market: int = 0
    listed_at: Optional[datetime] = None
    market_status: MarketStatus = MarketStatus.PENDING
    last_checked: datetime = field(default_factory=utc_now)
    last_seen_in_search: datetime = field(default_factory=utc_now)
    last_analyzed: Optional[datetime] = None
    times_seen: int = 1
    fetch_error: str = ""

    @property
    def is_complete(self) -> bool:
        """Address, bed/bath counts and a positive area, and not a failed fetch."""
        return (
            bool(self.address)
            and self.bedrooms is not None
            and self.bathrooms is not None
            and self.sqft is not None
            and self.sqft > 0
            and self.market_status != MarketStatus.FETCH_FAILED
        )

    @classmethod
    def from_listing(
        cls,
        listing: Listing,
        now: Optional[datetime] = None,
        market_status: MarketStatus = MarketStatus.PENDING,
        neighborhood: Optional[str] = None,
    ) -> "CacheEntry":
        """
        Entry for a freshly fetched listing.

        neighborhood, when given, is the search the listing was observed in
        and takes precedence over the payload's own label.
        """
        now = now or utc_now()
        return cls(
            listing_id=listing.id,
            price=listing.price,
            neighborhood=neighborhood or listing.neighborhood,
            address=listing.address,
            bedrooms=listing.bedrooms,
            bathrooms=listing.bathrooms,
            sqft=listing.sqft,
            borough=listing.borough,
            amenities=list(listing.amenities or []),
            description=listing.description,
            days_on_market=listing.days_on_market,
            listed_at=listing.listed_at,
            market_status=market_status,
            last_checked=now,
            last_seen_in_search=now,
        )

    def to_listing(self) -> Listing:
        return Listing(
            id=self.listing_id,
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
            listed_at=self.listed_at,
        )

    def to_dict(self) -> dict:
        return {
            "listing_id": self.listing_id,
            "price": self.price,
            "neighborhood": self.neighborhood,
            "address": self.address,
            "bedrooms": self.bedrooms,
            "bathrooms": self.bathrooms,
            "sqft": self.sqft,
            "borough": self.borough,
            "amenities": list(self.amenities),
            "description": self.description,
            "days_on_market": self.days_on_market,
            "listed_at": _format_datetime(self.listed_at),
            "market_status": self.market_status.value,
            "last_checked": _format_datetime(self.last_checked),
            "last_seen_in_search": _format_datetime(self.last_seen_in_search),
            "last_analyzed": _format_datetime(self.last_analyzed),
            "times_seen": self.times_seen,
            "fetch_error": self.fetch_error,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CacheEntry":
        return cls(
            listing_id=data["listing_id"],
            price=int(data.get("price") or 0),
            neighborhood=data.get("neighborhood", ""),
            address=data.get("address", ""),
            bedrooms=data.get("bedrooms"),
            bathrooms=data.get("bathrooms"),
            sqft=data.get("sqft"),
            borough=data.get("borough", ""),
            amenities=list(data.get("amenities") or []),
            description=data.get("description", ""),
            days_on_market=int(data.get("days_on_market") or 0),
            listed_at=_parse_datetime(data.get("listed_at")),
            market_status=MarketStatus.from_string(data.get("market_status", "pending")),
            last_checked=_parse_datetime(data.get("last_checked")) or utc_now(),
            last_seen_in_search=_parse_datetime(data.get("last_seen_in_search")) or utc_now(),
            last_analyzed=_parse_datetime(data.get("last_analyzed")),
            times_seen=int(data.get("times_seen") or 1),
            fetch_error=data.get("fetch_error", ""),
        )


@dataclass
class CacheLookup:
    """Partition of a set of listing ids by cache state."""
    complete: List[str] = field(default_factory=list)
    incomplete: List[str] = field(default_factory=list)
    unseen: List[str] = field(default_factory=list)


@dataclass
class ResultRecord:
    """Latest valuation for one listing, as stored in the results table."""
    listing_id: str
    neighborhood: str
    price: int
    estimated_market_price: int
    discount_percent: float
    confidence: int
    method: Optional[str]
    classification: str
    score: int = 0
    grade: str = ""
    address: str = ""
    bedrooms: Optional[int] = None
    bathrooms: Optional[float] = None
    sqft: Optional[int] = None
    distress_signals: List[str] = field(default_factory=list)
    warning_signals: List[str] = field(default_factory=list)
    adjustments: List[dict] = field(default_factory=list)
    reasoning: str = ""
    strategy: str = "rules"
    analysis_date: datetime = field(default_factory=utc_now)
    status: ResultStatus = ResultStatus.ACTIVE

    @property
    def potential_savings(self) -> int:
        return self.estimated_market_price - self.price

    @classmethod
    def from_valuation(
        cls,
        listing: Listing,
        valuation: Valuation,
        score: int = 0,
        grade: str = "",
        distress_signals: Optional[List[str]] = None,
        warning_signals: Optional[List[str]] = None,
    ) -> "ResultRecord":
        return cls(
            listing_id=listing.id,
            neighborhood=listing.neighborhood,
            price=valuation.actual_price,
            estimated_market_price=valuation.estimated_market_price,
            discount_percent=valuation.discount_percent,
            confidence=valuation.confidence,
            method=valuation.method.value if valuation.method else None,
            classification=valuation.classification.value,
            score=score,
            grade=grade,
            address=listing.address,
            bedrooms=listing.bedrooms,
            bathrooms=listing.bathrooms,
            sqft=listing.sqft,
            distress_signals=sorted(distress_signals or []),
            warning_signals=sorted(warning_signals or []),
            adjustments=valuation.adjustments.to_list(),
            reasoning=valuation.reasoning,
            strategy=valuation.strategy,
            analysis_date=valuation.analyzed_at,
        )

    def to_dict(self) -> dict:
        return {
            "listing_id": self.listing_id,
            "neighborhood": self.neighborhood,
            "price": self.price,
            "estimated_market_price": self.estimated_market_price,
            "potential_savings": self.potential_savings,
            "discount_percent": self.discount_percent,
            "confidence": self.confidence,
            "method": self.method,
            "classification": self.classification,
            "score": self.score,
            "grade": self.grade,
            "address": self.address,
            "bedrooms": self.bedrooms,
            "bathrooms": self.bathrooms,
            "sqft": self.sqft,
            "distress_signals": list(self.distress_signals),
            "warning_signals": list(self.warning_signals),
            "adjustments": list(self.adjustments),
            "reasoning": self.reasoning,
            "strategy": self.strategy,
            "analysis_date": _format_datetime(self.analysis_date),
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ResultRecord":
        return cls(
            listing_id=data["listing_id"],
            neighborhood=data.get("neighborhood", ""),
            price=int(data.get("price") or 0),
            estimated_market_price=int(data.get("estimated_market_price") or 0),
            discount_percent=float(data.get("discount_percent") or 0.0),
            confidence=int(data.get("confidence") or 0),
            method=data.get("method"),
            classification=data.get("classification", Classification.INSUFFICIENT_DATA.value),
            score=int(data.get("score") or 0),
            grade=data.get("grade", ""),
            address=data.get("address", ""),
            bedrooms=data.get("bedrooms"),
            bathrooms=data.get("bathrooms"),
            sqft=data.get("sqft"),
            distress_signals=list(data.get("distress_signals") or []),
            warning_signals=list(data.get("warning_signals") or []),
            adjustments=list(data.get("adjustments") or []),
            reasoning=data.get("reasoning", ""),
            strategy=data.get("strategy", "rules"),
            analysis_date=_parse_datetime(data.get("analysis_date")) or utc_now(),
            status=ResultStatus(data.get("status", ResultStatus.ACTIVE.value)),
        )
