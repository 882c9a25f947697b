"""CLI job to pull restaurants from one catalog and run them through the pipeline."""

import argparse
import logging
import time
from typing import Iterator, Optional, Sequence

from dinemap.core.config import ConfigError, Settings, get_settings
from dinemap.core.db import PostgresStore, init_pool
from dinemap.core.repository import RestaurantRepository
from dinemap.core.store import InMemoryStore
from dinemap.etl.geo import MIAMI_NEIGHBORHOODS
from dinemap.etl.pipeline import NormalizationPipeline
from dinemap.etl.transform import from_google_place, from_miami_beach_business, from_yelp_business
from dinemap.models import Candidate, RunStats
from dinemap.vendors import google_places, miami_beach, serpapi_maps, timeout_market, yelp

logger = logging.getLogger(__name__)

SOURCES = ("google", "yelp", "miami_beach", "serpapi", "timeout_market")
# Catalogs that take a search term and location; only these can be swept.
SEARCHABLE_SOURCES = ("google", "yelp", "serpapi")
DEFAULT_TERM = "restaurants"
GOOGLE_PAGE_DELAY_SECONDS = 2.0
DETAILS_DELAY_SECONDS = 0.15


class ApiBudget:
    """Counts provider requests and refuses new ones once ``max_calls`` is spent."""

    def __init__(self, max_calls: Optional[int] = None):
        self.max_calls = max_calls
        self.used = 0

    @property
    def exhausted(self) -> bool:
        return self.max_calls is not None and self.used >= self.max_calls

    def spend(self) -> bool:
        if self.exhausted:
            return False
        self.used += 1
        return True


def _location(neighborhood: Optional[str]) -> str:
    return f"{neighborhood}, Miami, FL" if neighborhood else "Miami, FL"


def _out_of_budget(budget: ApiBudget, what: str) -> bool:
    if budget.spend():
        return False
    logger.warning("API call budget of %d reached; skipping %s", budget.max_calls, what)
    return True


def iter_google(
    settings: Settings,
    term: str,
    neighborhood: Optional[str],
    max_pages: int,
    budget: Optional[ApiBudget] = None,
) -> Iterator[Candidate]:
    api_key = settings.require("google_api_key")
    budget = budget or ApiBudget()
    query = f"{term} in {_location(neighborhood)}"
    logger.info("Running Places text search for query=%s", query)

    page_token = None
    processed_pages = 0
    while processed_pages < max_pages:
        if _out_of_budget(budget, f"Places text search page {processed_pages + 1}"):
            return
        try:
            response = google_places.text_search(query=query, api_key=api_key, pagetoken=page_token)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Places text search failed on page %d: %s", processed_pages + 1, exc)
            break
        results = response.get("results", [])
        logger.info("Fetched %d results on page %d", len(results), processed_pages + 1)

        for result in results:
            place_id = result.get("place_id")
            if not place_id:
                logger.debug("Skipping result without place_id: %s", result.get("name"))
                continue
            if _out_of_budget(budget, f"details for {place_id}"):
                return
            try:
                details = google_places.place_details(place_id=place_id, api_key=api_key)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Failed to fetch details for %s: %s", place_id, exc)
                continue
            yield from_google_place(details or result, settings.default_phone_region or "US")
            time.sleep(DETAILS_DELAY_SECONDS)

        processed_pages += 1
        page_token = response.get("next_page_token")
        if not page_token:
            break
        # next_page_token only becomes valid after a short delay.
        time.sleep(GOOGLE_PAGE_DELAY_SECONDS)


def iter_yelp(
    settings: Settings,
    term: str,
    neighborhood: Optional[str],
    max_pages: int,
    budget: Optional[ApiBudget] = None,
) -> Iterator[Candidate]:
    api_key = settings.require("yelp_api_key")
    budget = budget or ApiBudget()
    location = _location(neighborhood)
    for page in range(max_pages):
        offset = page * yelp.MAX_PAGE_SIZE
        if _out_of_budget(budget, f"Yelp search at offset {offset}"):
            return
        try:
            payload = yelp.search_businesses(term, location, api_key, offset=offset)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Yelp search failed at offset %d: %s", offset, exc)
            break
        businesses = payload.get("businesses", [])
        logger.info("Fetched %d Yelp businesses at offset %d (total=%s)", len(businesses), offset, payload.get("total"))
        for business in businesses:
            yield from_yelp_business(business, settings.default_phone_region or "US")
        if len(businesses) < yelp.MAX_PAGE_SIZE:
            break


def iter_miami_beach(settings: Settings, budget: Optional[ApiBudget] = None) -> Iterator[Candidate]:
    if _out_of_budget(budget or ApiBudget(), "Miami Beach directory"):
        return
    try:
        businesses = miami_beach.search_businesses(settings.miami_beach_api_url)
    except miami_beach.MiamiBeachError as exc:
        logger.warning("Skipping Miami Beach import: %s", exc)
        return
    for business in businesses:
        yield from_miami_beach_business(business, settings.default_phone_region or "US")


def iter_serpapi(
    settings: Settings,
    term: str,
    neighborhood: Optional[str],
    budget: Optional[ApiBudget] = None,
) -> Iterator[Candidate]:
    settings.require("serpapi_api_key")
    query = f"{term} in {_location(neighborhood)}"
    if _out_of_budget(budget or ApiBudget(), f"SerpAPI search {query!r}"):
        return
    try:
        data = serpapi_maps.fetch_from_serpapi(query)
    except serpapi_maps.SerpApiError as exc:
        logger.warning("Skipping SerpAPI import: %s", exc)
        return
    yield from serpapi_maps.parse_serpapi_maps(data, settings.default_phone_region or "US")


def iter_timeout_market(budget: Optional[ApiBudget] = None) -> Iterator[Candidate]:
    if _out_of_budget(budget or ApiBudget(), "Time Out Market page"):
        return
    yield from timeout_market.market_candidates(timeout_market.fetch_market_page())


def collect_candidates(
    source: str,
    settings: Settings,
    term: str = DEFAULT_TERM,
    neighborhood: Optional[str] = None,
    max_pages: int = 3,
    budget: Optional[ApiBudget] = None,
) -> Iterator[Candidate]:
    if source == "google":
        return iter_google(settings, term, neighborhood, max_pages, budget)
    if source == "yelp":
        return iter_yelp(settings, term, neighborhood, max_pages, budget)
    if source == "miami_beach":
        return iter_miami_beach(settings, budget)
    if source == "serpapi":
        return iter_serpapi(settings, term, neighborhood, budget)
    if source == "timeout_market":
        return iter_timeout_market(budget)
    raise ValueError(f"Unknown source: {source}")


def sweep_candidates(
    source: str,
    settings: Settings,
    terms: Sequence[str],
    max_pages: int = 1,
    budget: Optional[ApiBudget] = None,
    neighborhoods: Optional[Sequence[str]] = None,
) -> Iterator[Candidate]:
    """Search every neighborhood for every term until the call budget runs out."""
    if source not in SEARCHABLE_SOURCES:
        raise ValueError(f"Source {source} cannot be swept; use one of: {', '.join(SEARCHABLE_SOURCES)}")
    budget = budget or ApiBudget()
    names = neighborhoods or [name for name, _, _ in MIAMI_NEIGHBORHOODS]
    for neighborhood in names:
        for term in terms:
            if budget.exhausted:
                logger.info("Stopping sweep before %r in %s: %d API calls used", term, neighborhood, budget.used)
                return
            logger.info("Sweeping %s for %r", neighborhood, term)
            yield from collect_candidates(source, settings, term, neighborhood, max_pages, budget)


def run_import_job(
    *,
    source: str,
    term: str = DEFAULT_TERM,
    neighborhood: Optional[str] = None,
    max_pages: Optional[int] = None,
    delay: Optional[float] = None,
    limit: Optional[int] = None,
    dry_run: bool = False,
    all_neighborhoods: bool = False,
    terms: Optional[Sequence[str]] = None,
    max_api_calls: Optional[int] = None,
) -> RunStats:
    settings = get_settings()
    if all_neighborhoods and source not in SEARCHABLE_SOURCES:
        raise ValueError(f"Source {source} cannot be swept; use one of: {', '.join(SEARCHABLE_SOURCES)}")
    if dry_run:
        store = InMemoryStore()
        logger.info("Dry run: results are kept in memory and discarded")
    else:
        settings.require("database_url")
        init_pool()
        store = PostgresStore()

    pipeline = NormalizationPipeline(
        RestaurantRepository(store),
        similarity_threshold=settings.similarity_threshold,
        max_miles=settings.neighborhood_max_miles,
        delay_seconds=settings.import_delay_seconds if delay is None else delay,
        default_cuisine=settings.default_cuisine,
        limit=limit,
    )
    budget = ApiBudget(max_api_calls)
    pages = settings.max_pages if max_pages is None else max_pages
    if all_neighborhoods:
        candidates = sweep_candidates(source, settings, list(terms or [term]), max_pages=pages, budget=budget)
    else:
        candidates = collect_candidates(
            source, settings, term=term, neighborhood=neighborhood, max_pages=pages, budget=budget
        )
    # Collectors are lazy: a missing API key surfaces as ConfigError on the first fetch.
    stats = pipeline.run(candidates)
    stats.api_calls = budget.used
    return stats


def _terms(value: str) -> list:
    return [term.strip() for term in value.split(",") if term.strip()]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Import Miami restaurants from an external catalog")
    parser.add_argument("--source", choices=SOURCES, required=True, help="Catalog to import from")
    parser.add_argument("--term", default=DEFAULT_TERM, help="Search term for searchable catalogs")
    parser.add_argument("--neighborhood", help="Restrict the search to one neighborhood")
    parser.add_argument(
        "--all-neighborhoods",
        dest="all_neighborhoods",
        action="store_true",
        help="Search every known Miami neighborhood instead of one location",
    )
    parser.add_argument("--terms", type=_terms, help="Comma-separated search terms for --all-neighborhoods")
    parser.add_argument("--max-api-calls", dest="max_api_calls", type=int, help="Stop after this many provider requests")
    parser.add_argument("--max-pages", dest="max_pages", type=int, help="Maximum number of result pages to process")
    parser.add_argument("--delay", type=float, help="Seconds to wait between candidates")
    parser.add_argument("--limit", type=int, help="Stop after this many new records")
    parser.add_argument("--dry-run", dest="dry_run", action="store_true", help="Use an in-memory store")
    return parser


def main(argv: Optional[list] = None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    args = build_parser().parse_args(argv)

    try:
        stats = run_import_job(
            source=args.source,
            term=args.term,
            neighborhood=args.neighborhood,
            max_pages=args.max_pages,
            delay=args.delay,
            limit=args.limit,
            dry_run=args.dry_run,
            all_neighborhoods=args.all_neighborhoods,
            terms=args.terms,
            max_api_calls=args.max_api_calls,
        )
    except ConfigError as exc:
        logger.error("%s", exc)
        raise SystemExit(2) from exc
    except Exception as exc:  # noqa: BLE001
        logger.exception("Import failed: %s", exc)
        raise SystemExit(1) from exc

    logger.info("Completed %s import: %s", args.source, stats.as_dict())


if __name__ == "__main__":
    main()
