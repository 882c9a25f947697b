"""Client utilities for the Google Places API."""

import logging
from typing import Any, Dict, Optional, Tuple

import requests

logger = logging.getLogger(__name__)
_SESSION = requests.Session()
_BASE_URL = "https://maps.googleapis.com/maps/api/place"
_OK_STATUSES = {"OK", "ZERO_RESULTS"}

DETAIL_FIELDS = (
    "place_id,name,formatted_address,formatted_phone_number,international_phone_number,"
    "geometry,website,rating,user_ratings_total,price_level,types,editorial_summary"
)


class GooglePlacesError(RuntimeError):
    """Raised when the Places API returns a non-successful response."""


def _get(endpoint: str, params: Dict[str, Any], operation: str) -> Dict[str, Any]:
    response = _SESSION.get(f"{_BASE_URL}/{endpoint}/json", params=params, timeout=10)
    response.raise_for_status()
    payload = response.json()
    status = payload.get("status")
    if status not in _OK_STATUSES:
        logger.error("%s failed: status=%s, error_message=%s", operation, status, payload.get("error_message"))
        raise GooglePlacesError(payload.get("error_message") or status)
    return payload


def text_search(query: str, api_key: str, pagetoken: Optional[str] = None) -> Dict[str, Any]:
    params = {"query": query, "key": api_key}
    if pagetoken:
        params["pagetoken"] = pagetoken
    return _get("textsearch", params, "text_search")


def nearby_search(
    location: Tuple[float, float],
    api_key: str,
    radius: int = 1500,
    keyword: Optional[str] = None,
    min_price: Optional[int] = None,
    max_price: Optional[int] = None,
    pagetoken: Optional[str] = None,
) -> Dict[str, Any]:
    """Restaurants around ``location`` (lat, lng); ``radius`` in meters."""
    if pagetoken:
        params: Dict[str, Any] = {"pagetoken": pagetoken, "key": api_key}
    else:
        params = {
            "location": f"{location[0]},{location[1]}",
            "radius": radius,
            "type": "restaurant",
            "key": api_key,
        }
        if keyword:
            params["keyword"] = keyword
        if min_price is not None:
            params["minprice"] = min_price
        if max_price is not None:
            params["maxprice"] = max_price
    return _get("nearbysearch", params, "nearby_search")


def place_details(place_id: str, api_key: str) -> Dict[str, Any]:
    params = {"place_id": place_id, "key": api_key, "fields": DETAIL_FIELDS}
    return _get("details", params, "place_details").get("result", {})
