"""HTTP entrypoint: read API over the normalized restaurants plus an import trigger."""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional

from flask import Flask, jsonify, request

from dinemap.core.config import get_settings
from dinemap.core.db import PostgresStore, init_pool
from dinemap.core.repository import RESTAURANTS, RestaurantRepository
from dinemap.core.store import InvalidValueError, StoreError, any_of, contains, eq, ilike
from dinemap.etl.geo import default_index
from dinemap.jobs.run_import import SEARCHABLE_SOURCES, SOURCES, run_import_job
from dinemap.models import DELETE_SENTINEL, BusinessRecord

# ---------- Logging ----------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ---------- App & executor ----------
app = Flask(__name__)
_executor = ThreadPoolExecutor(max_workers=4)
_store: Optional[Any] = None

# All stored data is Miami-area; other cities have no data yet.
SERVED_CITIES = {"miami", "miami-beach", "miami-beaches"}
SEARCH_LIMIT = 50

# Fallback query expansion when the search_mappings collection has no entry.
SEARCH_SYNONYMS: Dict[str, List[str]] = {
    "date night": ["French", "Italian", "Wine Bar", "Steakhouse"],
    "cheap eats": ["Fast Food", "Food Truck", "Mexican", "Pizza", "Cuban"],
    "sushi": ["Japanese", "sushi", "omakase"],
    "seafood": ["Seafood", "oyster", "stone crab", "ceviche"],
    "steak": ["Steakhouse", "Brazilian", "Argentinian"],
    "tacos": ["Mexican", "taco"],
    "pizza": ["Pizza", "pizzeria"],
    "cuban": ["Cuban", "Latin"],
    "latin": ["Latin", "Cuban", "Peruvian", "Colombian", "Venezuelan"],
    "brunch": ["Cafe", "brunch", "breakfast"],
    "coffee": ["Cafe", "coffee", "espresso"],
    "dessert": ["Desserts", "Ice Cream", "Bakery", "gelato"],
    "ice cream": ["Ice Cream", "gelato"],
    "healthy": ["Healthy", "Vegan", "Vegetarian", "Juice Bar"],
    "nightlife": ["Bar", "Nightclub", "Wine Bar", "Sports Bar", "lounge"],
    "drinks": ["Bar", "Wine Bar", "cocktail"],
    "asian": ["Asian", "Japanese", "Chinese", "Thai", "Vietnamese", "Korean"],
}


def _get_store() -> Any:
    global _store
    if _store is None:
        init_pool()
        _store = PostgresStore()
    return _store


def _error(message: str, status: int, **extra: Any) -> Any:
    return jsonify({"error": message, **extra}), status


def _city_is_served(city: Optional[str]) -> bool:
    return not city or city.lower() in SERVED_CITIES


def _active_records(repository: RestaurantRepository) -> List[BusinessRecord]:
    rows = repository.store.select(RESTAURANTS, [eq("is_active", True)], order_by="rating", descending=True)
    records = [BusinessRecord.from_row(row) for row in rows]
    return [record for record in records if record.effective_cuisine != DELETE_SENTINEL]


def _filter_records(
    records: List[BusinessRecord],
    cuisine: Optional[str],
    neighborhoods: Optional[List[str]],
    budget: Optional[str],
) -> List[BusinessRecord]:
    matched = []
    for record in records:
        if cuisine and cuisine.lower() not in {
            record.effective_cuisine.lower(),
            (record.effective_secondary_cuisine or "").lower(),
        }:
            continue
        if neighborhoods is not None and record.effective_neighborhood not in neighborhoods:
            continue
        if budget and record.effective_price_tier != budget:
            continue
        matched.append(record)
    return matched


def _selected(value: Optional[str]) -> Optional[str]:
    if not value or value == "all":
        return None
    return value


# ---------- Routes ----------


@app.get("/")
def root() -> Any:
    return "ok", 200


@app.get("/healthz")
def healthcheck() -> Any:
    """Reads settings only; no database round trip."""
    settings = get_settings()
    return (
        jsonify(
            {
                "status": "ok",
                "port": settings.port,
                "revision": os.getenv("K_REVISION", "unknown"),
            }
        ),
        200,
    )


@app.get("/api/restaurants")
def list_restaurants() -> Any:
    """
    Normalized restaurants ordered by rating.
    Query params: cuisine, neighborhood, budget, city, id, limit.
    An empty neighborhood result widens to the adjacent neighborhoods.
    """
    args = request.args
    if not _city_is_served(args.get("city")):
        return jsonify([]), 200

    limit = None
    if args.get("limit"):
        try:
            limit = int(args["limit"])
        except ValueError:
            return _error("limit must be numeric", 400)
        if limit <= 0:
            return _error("limit must be positive", 400)

    try:
        repository = RestaurantRepository(_get_store())
        record_id = args.get("id")
        if record_id:
            try:
                record = repository.get(record_id)
            except InvalidValueError:
                logger.info("Malformed restaurant id %r", record_id)
                record = None
            if record is None or not record.is_active:
                return _error("restaurant not found", 404)
            return jsonify(record.to_public_dict()), 200

        cuisine = _selected(args.get("cuisine"))
        neighborhood = _selected(args.get("neighborhood"))
        budget = _selected(args.get("budget"))
        records = _active_records(repository)
        matched = _filter_records(records, cuisine, [neighborhood] if neighborhood else None, budget)
        if neighborhood and not matched:
            nearby = default_index().nearby(neighborhood)
            if nearby:
                logger.info("No restaurants in %s; widening to %s", neighborhood, ", ".join(nearby))
                matched = _filter_records(records, cuisine, nearby, budget)
    except StoreError as exc:
        logger.exception("Restaurant query failed: %s", exc)
        return _error("failed to load restaurants", 500)

    if limit is not None:
        matched = matched[:limit]
    return jsonify([record.to_public_dict() for record in matched]), 200


def expand_terms(store: Any, query: Optional[str], tags: Optional[str]) -> List[str]:
    if query:
        rows = store.select("search_mappings", [eq("search_term", query.lower())], limit=1)
        if rows and rows[0].get("mapped_terms"):
            return list(rows[0]["mapped_terms"])
        return SEARCH_SYNONYMS.get(query.lower(), [query])
    return [tag.strip() for tag in (tags or "").split(",") if tag.strip()]


def _record_matches_terms(record: BusinessRecord, terms: List[str]) -> bool:
    haystacks = [
        record.effective_name.lower(),
        record.effective_cuisine.lower(),
        (record.effective_secondary_cuisine or "").lower(),
    ]
    return any(term.lower() in haystack for term in terms for haystack in haystacks)


def _search_activities(store: Any, terms: List[str], neighborhood: Optional[str]) -> List[Dict[str, Any]]:
    predicates = []
    for term in terms:
        pattern = f"%{term}%"
        predicates.extend(
            [
                ilike("name", pattern),
                ilike("description", pattern),
                ilike("activity_type", pattern),
                contains("tags", [term]),
            ]
        )
    filters: List[Any] = [eq("status", "active"), any_of(*predicates)]
    if neighborhood:
        filters.append(eq("neighborhood", neighborhood))
    return store.select("activities", filters, limit=SEARCH_LIMIT)


@app.get("/api/search")
def search() -> Any:
    """
    Free-text or tag search across restaurants and activities.
    Query params: query or tags (one required), neighborhood, city.
    """
    query = request.args.get("query")
    tags = request.args.get("tags")
    if not query and not tags:
        return _error("query or tags parameter required", 400)

    expanded_from = query or tags
    if not _city_is_served(request.args.get("city")):
        return jsonify({"restaurants": [], "activities": [], "expandedFrom": expanded_from, "usedTerms": [], "total": 0}), 200

    neighborhood = _selected(request.args.get("neighborhood"))
    try:
        store = _get_store()
        terms = expand_terms(store, query, tags)
        records = _active_records(RestaurantRepository(store))
        restaurants = [
            record.to_public_dict()
            for record in _filter_records(records, None, [neighborhood] if neighborhood else None, None)
            if _record_matches_terms(record, terms)
        ][:SEARCH_LIMIT]
        activities = _search_activities(store, terms, neighborhood)
    except StoreError as exc:
        logger.exception("Search failed: %s", exc)
        return _error("Search failed", 500, restaurants=[], activities=[], total=0)

    logger.info("Search %r matched %d restaurants, %d activities", expanded_from, len(restaurants), len(activities))
    return (
        jsonify(
            {
                "restaurants": restaurants,
                "activities": activities,
                "expandedFrom": expanded_from,
                "usedTerms": terms,
                "total": len(restaurants) + len(activities),
            }
        ),
        200,
    )


@app.post("/import")
def enqueue_import() -> Any:
    """
    Enqueue an import run.
    Required JSON fields: source
    Optional: term, neighborhood, max_pages (int), limit (int),
    all_neighborhoods (bool), terms (list of str), max_api_calls (int)
    """
    payload: Dict[str, Any] = request.get_json(silent=True) or {}

    source = str(payload.get("source") or "").strip()
    if not source:
        return _error("missing fields: source", 400)
    if source not in SOURCES:
        return _error(f"source must be one of: {', '.join(SOURCES)}", 400)

    job_args: Dict[str, Any] = {"source": source}
    for key in ("term", "neighborhood"):
        if payload.get(key):
            job_args[key] = str(payload[key]).strip()

    if payload.get("all_neighborhoods"):
        if source not in SEARCHABLE_SOURCES:
            return _error(f"all_neighborhoods needs one of: {', '.join(SEARCHABLE_SOURCES)}", 400)
        job_args["all_neighborhoods"] = True
    terms = payload.get("terms")
    if terms is not None:
        if not isinstance(terms, list) or not all(isinstance(term, str) and term.strip() for term in terms):
            return _error("terms must be a list of non-empty strings", 400)
        job_args["terms"] = [term.strip() for term in terms]

    for key in ("max_pages", "limit", "max_api_calls"):
        raw = payload.get(key)
        if raw is None:
            continue
        try:
            value = int(raw)
        except (TypeError, ValueError):
            return _error(f"{key} must be numeric", 400)
        if value <= 0:
            return _error(f"{key} must be positive", 400)
        job_args[key] = value

    logger.info("Queueing import job: %s", job_args)
    _executor.submit(_run_job_safe, job_args)
    return jsonify({"data": {"status": "queued"}}), 202


# ---------- Internals ----------


def _run_job_safe(job_args: Dict[str, Any]) -> None:
    try:
        stats = run_import_job(**job_args)
        logger.info("Import job finished: %s", stats.as_dict())
    except Exception as exc:  # noqa: BLE001
        logger.exception("Import job failed: %s", exc)


def main() -> None:
    port = get_settings().port
    logger.info("[BOOT] Binding on 0.0.0.0:%d", port)
    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
