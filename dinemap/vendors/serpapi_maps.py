"""SerpAPI Google Maps search as an additional restaurant catalog."""

from __future__ import annotations

import logging
import random
import time
from typing import Any, Dict, List, Optional

from serpapi import GoogleSearch

from dinemap.core.config import get_settings
from dinemap.etl.transform import SERPAPI, normalize_phone, safe_float, safe_int, sanitize_website, strip_or_none
from dinemap.models import Candidate

logger = logging.getLogger(__name__)

RETRY_LIMIT = 2
RETRY_DELAY_SECONDS = 1.2
MAX_JITTER_SECONDS = 0.8

# Keys under which a dict-shaped ``local_results`` may wrap the actual list.
_NESTED_RESULT_KEYS = ("places", "results", "local_results")


class SerpApiError(RuntimeError):
    """Raised when SerpAPI returns an error payload or retries are exhausted."""


def build_serpapi_params(query: str, ll: Optional[str] = None) -> Dict[str, Any]:
    search = (query or "").strip()
    if not search:
        raise ValueError("SerpAPI restaurant search needs a non-empty query.")
    params: Dict[str, Any] = {
        "engine": "google_maps",
        "q": search,
        "api_key": get_settings().serpapi_api_key,
        "type": "search",
    }
    if ll:
        params["ll"] = ll
    return params


def _search_once(params: Dict[str, Any]) -> Dict[str, Any]:
    data = GoogleSearch(params).get_dict()
    if not data:
        raise SerpApiError("empty SerpAPI payload")
    if "error" in data:
        raise SerpApiError(f"SerpAPI error: {data['error']}")
    return data


def fetch_from_serpapi(query: str, ll: Optional[str] = None) -> Dict[str, Any]:
    """Raw Google Maps results for ``query``.

    Up to ``RETRY_LIMIT`` retries with a jittered pause; the final failure is
    raised as :class:`SerpApiError`.
    """
    params = build_serpapi_params(query, ll)
    attempts = RETRY_LIMIT + 1
    for attempt in range(1, attempts + 1):
        logger.info("SerpAPI maps search %r (attempt %d/%d)", params["q"], attempt, attempts)
        try:
            return _search_once(params)
        except Exception as exc:  # noqa: BLE001
            if attempt == attempts:
                logger.error("Giving up on SerpAPI search %r: %s", params["q"], exc)
                if isinstance(exc, SerpApiError):
                    raise
                raise SerpApiError(str(exc)) from exc
            logger.warning("SerpAPI search %r failed, retrying: %s", params["q"], exc)
            time.sleep(RETRY_DELAY_SECONDS + random.uniform(0, MAX_JITTER_SECONDS))


def _result_items(data: Dict[str, Any]) -> List[Any]:
    local = data.get("local_results")
    if isinstance(local, dict):
        local = next((local[key] for key in _NESTED_RESULT_KEYS if isinstance(local.get(key), list)), None)
    if isinstance(local, list):
        return local

    place = data.get("place_results")
    if isinstance(place, dict):
        return [place]
    return place if isinstance(place, list) else []


def _categories(raw: Dict[str, Any]) -> List[str]:
    values = raw.get("types")
    if not isinstance(values, list):
        values = [raw["type"]] if raw.get("type") else []
    # "Italian restaurant" -> "italian_restaurant", as in the Places type names.
    return [str(value).strip().lower().replace(" ", "_") for value in values if value]


def _to_candidate(raw: Dict[str, Any], default_region: str) -> Optional[Candidate]:
    name = strip_or_none(raw.get("title") or raw.get("name"))
    if not name:
        return None
    coordinates = raw.get("gps_coordinates") or {}
    return Candidate(
        name=name,
        source=SERPAPI,
        external_ref=strip_or_none(raw.get("place_id") or raw.get("data_id")),
        address=strip_or_none(raw.get("address")),
        phone=normalize_phone(raw.get("phone"), default_region),
        website=sanitize_website(raw.get("website")),
        latitude=safe_float(coordinates.get("latitude")),
        longitude=safe_float(coordinates.get("longitude")),
        rating=safe_float(raw.get("rating")),
        review_count=safe_int(raw.get("reviews_count") or raw.get("reviews")),
        price_level=strip_or_none(raw.get("price")),
        categories=_categories(raw),
        description=strip_or_none(raw.get("description")),
        raw_snapshot=raw,
    )


def parse_serpapi_maps(data: Optional[Dict[str, Any]], default_region: str = "US") -> List[Candidate]:
    if not data:
        return []
    items = _result_items(data)
    if not items:
        logger.warning("No restaurant results in SerpAPI payload (keys: %s)", ", ".join(sorted(data)[:10]))

    candidates = [_to_candidate(raw, default_region) for raw in items if isinstance(raw, dict)]
    return [candidate for candidate in candidates if candidate is not None]
