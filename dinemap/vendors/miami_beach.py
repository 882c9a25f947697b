"""Client for the City of Miami Beach business directory API."""

import logging
from typing import Any, Dict, List

import requests

logger = logging.getLogger(__name__)
_SESSION = requests.Session()

# Category 361 is restaurants; the broader food categories pull in grocery stores.
RESTAURANT_CATEGORY = 361
DEFAULT_LIMIT = 341


class MiamiBeachError(RuntimeError):
    """Raised when the directory API fails or returns an unexpected payload."""


def search_businesses(base_url: str, category_filter: int = RESTAURANT_CATEGORY, limit: int = DEFAULT_LIMIT) -> List[Dict[str, Any]]:
    params = {"category_filter": category_filter, "limit": limit}
    try:
        response = _SESSION.get(base_url, params=params, timeout=10)
        response.raise_for_status()
        payload = response.json()
    except (requests.RequestException, ValueError) as exc:
        logger.error("Miami Beach directory request failed: %s", exc)
        raise MiamiBeachError(str(exc)) from exc

    businesses = payload.get("businesses")
    if not isinstance(businesses, list):
        raise MiamiBeachError("response is missing the businesses list")
    logger.info("Miami Beach directory returned %s businesses (total=%s)", len(businesses), payload.get("total"))
    return businesses
