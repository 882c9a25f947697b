"""Client for the Yelp Fusion business search API."""

import logging
from typing import Any, Dict

import requests

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
_SEARCH_URL = "https://api.yelp.com/v3/businesses/search"

# Yelp caps a page at 50 results.
MAX_PAGE_SIZE = 50
SEARCH_RADIUS_METERS = 8000


class YelpError(RuntimeError):
    """Raised when Yelp rejects a search request."""


def search_businesses(
    term: str,
    location: str,
    api_key: str,
    offset: int = 0,
    limit: int = MAX_PAGE_SIZE,
) -> Dict[str, Any]:
    params = {
        "term": term,
        "location": location,
        "categories": "restaurants,food",
        "limit": min(limit, MAX_PAGE_SIZE),
        "offset": offset,
        "radius": SEARCH_RADIUS_METERS,
    }
    headers = {"Authorization": f"Bearer {api_key}", "Accept": "application/json"}
    response = _SESSION.get(_SEARCH_URL, params=params, headers=headers, timeout=10)
    if response.status_code != 200:
        try:
            detail = response.json().get("error", {}).get("description")
        except ValueError:
            detail = None
        logger.error("Yelp search failed: status=%s, term=%s, location=%s", response.status_code, term, location)
        raise YelpError(detail or f"Yelp API error: {response.status_code}")
    return response.json()
