"""Per-candidate normalization and deduplication against the restaurant store.

Each candidate moves through: quality filter, external-ref check, name
canonicalization and neighborhood resolution, neighborhood-scoped fuzzy match,
classification, then a write. The outcome of every candidate is one of the
constants in :mod:`dinemap.models`.
"""

import logging
import time
from typing import Iterable, Optional, Tuple

from dinemap.core.repository import RestaurantRepository
from dinemap.core.store import DuplicateRecordError
from dinemap.etl.classify import DEFAULT_CUISINE, classify, infer_price_tier, known_name_cuisine
from dinemap.etl.geo import DEFAULT_MAX_MILES, NeighborhoodIndex, default_index
from dinemap.etl.names import canonicalize_name
from dinemap.etl.similarity import DEFAULT_THRESHOLD, find_similar
from dinemap.etl.transform import MIAMI_BEACH, YELP
from dinemap.models import (
    DELETE_SENTINEL,
    FAILED,
    FLAGGED_FOR_REVIEW,
    INSERTED,
    REJECTED,
    SKIPPED_DUPLICATE,
    UNKNOWN_NEIGHBORHOOD,
    UPDATED,
    BusinessRecord,
    Candidate,
    ImportResult,
    RunStats,
)

logger = logging.getLogger(__name__)

GROCERY_MARKERS = ("market", "grocery", "publix", "whole foods", "food store")
MIN_YELP_REVIEWS = 1

_MERGE_FIELDS = ("address", "phone", "website", "latitude", "longitude", "rating", "review_count")


def quality_reject_reason(candidate: Candidate) -> Optional[str]:
    """Why ``candidate`` should not be imported, or ``None`` when it passes."""
    name = (candidate.name or "").strip()
    if not name:
        return "missing name"
    if candidate.source == YELP and (candidate.review_count is None or candidate.review_count < MIN_YELP_REVIEWS):
        return "no Yelp reviews"
    if candidate.source == MIAMI_BEACH and any(marker in name.lower() for marker in GROCERY_MARKERS):
        return "grocery store"
    if known_name_cuisine(name) == DELETE_SENTINEL or known_name_cuisine(canonicalize_name(name)) == DELETE_SENTINEL:
        return "listed for deletion"
    return None


class NormalizationPipeline:
    def __init__(
        self,
        repository: RestaurantRepository,
        index: Optional[NeighborhoodIndex] = None,
        similarity_threshold: float = DEFAULT_THRESHOLD,
        max_miles: float = DEFAULT_MAX_MILES,
        delay_seconds: float = 0.0,
        default_cuisine: str = DEFAULT_CUISINE,
        limit: Optional[int] = None,
    ):
        self.repository = repository
        self.index = index or default_index()
        self.similarity_threshold = similarity_threshold
        self.max_miles = max_miles
        self.delay_seconds = delay_seconds
        self.default_cuisine = default_cuisine
        self.limit = limit

    def resolve_neighborhood(self, candidate: Candidate) -> Tuple[str, bool]:
        """Return ``(neighborhood, recognised)`` for ``candidate``.

        Coordinates win; free text (hint, address, name) is the fallback.
        """
        neighborhood = self.index.nearest(candidate.latitude, candidate.longitude, self.max_miles)
        if neighborhood != UNKNOWN_NEIGHBORHOOD:
            return neighborhood, True
        standardized = self.index.standardize(candidate.neighborhood_hint, candidate.address, candidate.name)
        if self.index.is_known(standardized):
            return standardized, True
        if standardized:
            logger.debug("Unrecognised neighborhood %r for %s", standardized, candidate.name)
        return UNKNOWN_NEIGHBORHOOD, False

    def _merge(self, record: BusinessRecord, candidate: Candidate) -> BusinessRecord:
        new_refs = {}
        if candidate.external_ref and candidate.source not in record.external_refs:
            new_refs[candidate.source] = candidate.external_ref
            record.external_refs[candidate.source] = candidate.external_ref
        for field_name in _MERGE_FIELDS:
            if getattr(record, field_name) is None:
                value = getattr(candidate, field_name)
                if value is not None:
                    setattr(record, field_name, value)
        return self.repository.update_record(record, new_refs=new_refs)

    def _build_record(self, candidate: Candidate, name: str, neighborhood: str, recognised: bool) -> BusinessRecord:
        classification = classify(name, candidate.description, candidate.categories, default=self.default_cuisine)
        price_tier = infer_price_tier(name, candidate.price_level, candidate.source, classification.price_hint)
        external_refs = {candidate.source: candidate.external_ref} if candidate.external_ref else {}
        return BusinessRecord(
            name=name,
            primary_cuisine=classification.primary,
            secondary_cuisine=classification.secondary,
            price_tier=price_tier,
            neighborhood=neighborhood,
            address=candidate.address,
            phone=candidate.phone,
            website=candidate.website,
            latitude=candidate.latitude,
            longitude=candidate.longitude,
            external_refs=external_refs,
            rating=candidate.rating,
            review_count=candidate.review_count,
            source=candidate.source,
            needs_review=not recognised or not classification.matched,
        )

    def _process(self, candidate: Candidate) -> ImportResult:
        reason = quality_reject_reason(candidate)
        if reason:
            logger.debug("Rejected %s: %s", candidate.name, reason)
            return ImportResult(candidate.name, REJECTED, reason=reason)

        if candidate.external_ref:
            claimed = self.repository.find_by_external_ref(candidate.source, candidate.external_ref)
            if claimed is not None:
                logger.debug("Skipping %s: %s ref %s already imported", candidate.name, candidate.source, candidate.external_ref)
                return ImportResult(candidate.name, SKIPPED_DUPLICATE, claimed.get("restaurant_id"), "external ref exists")

        name = canonicalize_name(candidate.name)
        neighborhood, recognised = self.resolve_neighborhood(candidate)

        if recognised:
            existing = find_similar(name, self.repository.records_in_neighborhood(neighborhood), self.similarity_threshold)
            if existing is not None:
                try:
                    self._merge(existing, candidate)
                except DuplicateRecordError:
                    return ImportResult(name, SKIPPED_DUPLICATE, existing.id, "external ref exists")
                logger.info("Merged %s into existing record %s (%s)", candidate.name, existing.name, existing.id)
                return ImportResult(name, UPDATED, existing.id, f"similar to {existing.name}")

        record = self._build_record(candidate, name, neighborhood, recognised)
        try:
            self.repository.insert_record(record)
        except DuplicateRecordError:
            logger.debug("Store rejected %s as a duplicate", name)
            return ImportResult(name, SKIPPED_DUPLICATE, reason="external ref exists")

        if record.needs_review:
            logger.info("Flagged %s for review (%s, %s)", name, record.neighborhood, record.primary_cuisine)
            return ImportResult(name, FLAGGED_FOR_REVIEW, record.id, "neighborhood or cuisine unresolved")
        logger.info("Inserted %s (%s, %s, %s)", name, record.primary_cuisine, record.neighborhood, record.price_tier)
        return ImportResult(name, INSERTED, record.id)

    def process(self, candidate: Candidate) -> ImportResult:
        """Run one candidate through the pipeline; never raises."""
        try:
            return self._process(candidate)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Failed to import %s from %s: %s", candidate.name, candidate.source, exc)
            return ImportResult(candidate.name, FAILED, reason=str(exc))

    def run(self, candidates: Iterable[Candidate]) -> RunStats:
        stats = RunStats()
        for index, candidate in enumerate(candidates):
            if self.limit is not None and stats.written >= self.limit:
                logger.info("Reached the limit of %s new records; stopping", self.limit)
                break
            if index and self.delay_seconds > 0:
                time.sleep(self.delay_seconds)
            stats.record(self.process(candidate))
        logger.info("Import run finished: %s", stats.as_dict())
        return stats
