"""Core data models shared by the import pipeline, the store and the HTTP layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

PRICE_TIERS = ("$", "$$", "$$$", "$$$$", "$$$$$")
DEFAULT_PRICE_TIER = "$$"
UNKNOWN_NEIGHBORHOOD = "Unknown"
DELETE_SENTINEL = "Delete"

# Pipeline outcomes
INSERTED = "inserted"
UPDATED = "updated"
SKIPPED_DUPLICATE = "skipped-duplicate"
FLAGGED_FOR_REVIEW = "flagged-for-review"
REJECTED = "rejected"
FAILED = "failed"
OUTCOMES = (INSERTED, UPDATED, SKIPPED_DUPLICATE, FLAGGED_FOR_REVIEW, REJECTED, FAILED)


@dataclass(slots=True)
class Candidate:
    """Normalized snapshot of a business returned by one catalog provider."""

    name: str
    source: str = "manual"
    external_ref: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None
    price_level: Any = None
    categories: List[str] = field(default_factory=list)
    description: Optional[str] = None
    neighborhood_hint: Optional[str] = None
    raw_snapshot: Optional[Dict[str, Any]] = field(default=None, repr=False)


@dataclass(slots=True)
class BusinessRecord:
    """Canonical persisted restaurant.

    Classification fields come in two tiers: the inferred value written by the
    pipeline and an optional override set during review. Readers should use the
    ``effective_*`` properties.
    """

    name: str
    primary_cuisine: str
    price_tier: str = DEFAULT_PRICE_TIER
    neighborhood: str = UNKNOWN_NEIGHBORHOOD
    id: Optional[str] = None
    secondary_cuisine: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    external_refs: Dict[str, str] = field(default_factory=dict)
    rating: Optional[float] = None
    review_count: Optional[int] = None
    source: Optional[str] = None
    needs_review: bool = False
    is_active: bool = True
    name_override: Optional[str] = None
    cuisine_override: Optional[str] = None
    secondary_cuisine_override: Optional[str] = None
    price_override: Optional[str] = None
    neighborhood_override: Optional[str] = None
    last_updated: Optional[datetime] = None

    @property
    def effective_name(self) -> str:
        return self.name_override or self.name

    @property
    def effective_cuisine(self) -> str:
        return self.cuisine_override or self.primary_cuisine

    @property
    def effective_secondary_cuisine(self) -> Optional[str]:
        if self.cuisine_override:
            return self.secondary_cuisine_override
        return self.secondary_cuisine

    @property
    def effective_price_tier(self) -> str:
        return self.price_override or self.price_tier

    @property
    def effective_neighborhood(self) -> str:
        return self.neighborhood_override or self.neighborhood

    def to_row(self) -> Dict[str, Any]:
        row = {
            "name": self.name,
            "primary_cuisine": self.primary_cuisine,
            "secondary_cuisine": self.secondary_cuisine,
            "price_tier": self.price_tier,
            "neighborhood": self.neighborhood,
            "address": self.address,
            "phone": self.phone,
            "website": self.website,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "external_refs": dict(self.external_refs),
            "rating": self.rating,
            "review_count": self.review_count,
            "source": self.source,
            "needs_review": self.needs_review,
            "is_active": self.is_active,
            "name_override": self.name_override,
            "cuisine_override": self.cuisine_override,
            "secondary_cuisine_override": self.secondary_cuisine_override,
            "price_override": self.price_override,
            "neighborhood_override": self.neighborhood_override,
            "last_updated": self.last_updated,
        }
        if self.id is not None:
            row["id"] = self.id
        return row

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "BusinessRecord":
        record_id = row.get("id")
        return cls(
            id=str(record_id) if record_id is not None else None,
            name=row.get("name") or "",
            primary_cuisine=row.get("primary_cuisine") or "",
            secondary_cuisine=row.get("secondary_cuisine"),
            price_tier=row.get("price_tier") or DEFAULT_PRICE_TIER,
            neighborhood=row.get("neighborhood") or UNKNOWN_NEIGHBORHOOD,
            address=row.get("address"),
            phone=row.get("phone"),
            website=row.get("website"),
            latitude=row.get("latitude"),
            longitude=row.get("longitude"),
            external_refs=dict(row.get("external_refs") or {}),
            rating=row.get("rating"),
            review_count=row.get("review_count"),
            source=row.get("source"),
            needs_review=bool(row.get("needs_review", False)),
            is_active=bool(row.get("is_active", True)),
            name_override=row.get("name_override"),
            cuisine_override=row.get("cuisine_override"),
            secondary_cuisine_override=row.get("secondary_cuisine_override"),
            price_override=row.get("price_override"),
            neighborhood_override=row.get("neighborhood_override"),
            last_updated=row.get("last_updated"),
        )

    def to_public_dict(self) -> Dict[str, Any]:
        """Shape returned by the HTTP layer, using reviewed values where present."""
        return {
            "id": self.id,
            "name": self.effective_name,
            "primary_cuisine": self.effective_cuisine,
            "secondary_cuisine": self.effective_secondary_cuisine,
            "price_tier": self.effective_price_tier,
            "neighborhood": self.effective_neighborhood,
            "address": self.address,
            "phone": self.phone,
            "website": self.website,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "rating": self.rating,
            "review_count": self.review_count,
        }


@dataclass(slots=True)
class ImportResult:
    name: str
    outcome: str
    record_id: Optional[str] = None
    reason: Optional[str] = None


@dataclass
class RunStats:
    """Counters accumulated over one pipeline run and returned to the caller."""

    counts: Dict[str, int] = field(default_factory=lambda: {outcome: 0 for outcome in OUTCOMES})
    results: List[ImportResult] = field(default_factory=list)
    api_calls: int = 0

    def record(self, result: ImportResult) -> None:
        self.counts[result.outcome] = self.counts.get(result.outcome, 0) + 1
        self.results.append(result)

    @property
    def processed(self) -> int:
        return len(self.results)

    @property
    def written(self) -> int:
        return self.counts[INSERTED] + self.counts[FLAGGED_FOR_REVIEW]

    def as_dict(self) -> Dict[str, int]:
        return {"processed": self.processed, "api_calls": self.api_calls, **self.counts}
