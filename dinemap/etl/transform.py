"""Utilities for transforming provider responses into pipeline candidates."""

import logging
import re
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urlparse, urlunparse

import phonenumbers
from bs4 import BeautifulSoup

from dinemap.models import Candidate

logger = logging.getLogger(__name__)

_IGNORE_TYPES = {"point_of_interest", "establishment", "political", "premise", "food", "store"}
_WHITESPACE = re.compile(r"\s+")
MAX_DESCRIPTION_LENGTH = 500

GOOGLE = "google"
YELP = "yelp"
MIAMI_BEACH = "miami_beach"
SERPAPI = "serpapi"
TIMEOUT_MARKET = "timeout_market"


def normalize_phone(raw: Optional[str], default_region: str = "US") -> Optional[str]:
    """Return ``raw`` as an E.164 string, or ``None`` when it cannot be parsed."""
    if not raw or not str(raw).strip():
        return None
    try:
        parsed = phonenumbers.parse(str(raw).strip(), default_region)
    except phonenumbers.NumberParseException:
        logger.debug("Unparseable phone number %r", raw)
        return None
    if not phonenumbers.is_possible_number(parsed):
        return None
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)


def sanitize_website(raw_url: Optional[str]) -> Optional[str]:
    """Normalise raw website strings into absolute URLs without query or fragment."""
    url = (raw_url or "").strip()
    if not url:
        return None
    parsed = urlparse(url, scheme="https")
    if not parsed.netloc:
        parsed = urlparse(f"https://{url}")
    if not parsed.netloc:
        return None
    return urlunparse(parsed._replace(path=parsed.path or "/", fragment="", query=""))


def strip_html(text: Optional[str], max_length: int = MAX_DESCRIPTION_LENGTH) -> Optional[str]:
    if not text:
        return None
    cleaned = _WHITESPACE.sub(" ", BeautifulSoup(text, "html.parser").get_text(" ")).strip()
    if not cleaned:
        return None
    if len(cleaned) > max_length:
        cleaned = cleaned[: max_length - 3].rstrip() + "..."
    return cleaned


def strip_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    value_str = str(value).strip()
    return value_str or None


def safe_float(value: Any) -> Optional[float]:
    try:
        if value is None or value == "":
            return None
        return float(value)
    except (TypeError, ValueError):
        return None


def safe_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        digits = "".join(ch for ch in value if ch.isdigit())
        if digits:
            return int(digits)
    return None


def _google_types(types: Iterable[str]) -> List[str]:
    return [type_name for type_name in types or [] if type_name not in _IGNORE_TYPES]


def from_google_place(result: Dict[str, Any], default_region: str = "US") -> Candidate:
    """Build a candidate from a Places text/nearby search result or a details payload."""
    location = result.get("geometry", {}).get("location", {})
    return Candidate(
        name=(result.get("name") or "").strip(),
        source=GOOGLE,
        external_ref=result.get("place_id"),
        address=strip_or_none(result.get("formatted_address") or result.get("vicinity")),
        phone=normalize_phone(
            result.get("international_phone_number") or result.get("formatted_phone_number"),
            default_region,
        ),
        website=sanitize_website(result.get("website")),
        latitude=safe_float(location.get("lat")),
        longitude=safe_float(location.get("lng")),
        rating=safe_float(result.get("rating")),
        review_count=safe_int(result.get("user_ratings_total")),
        price_level=result.get("price_level"),
        categories=_google_types(result.get("types", [])),
        description=strip_html((result.get("editorial_summary") or {}).get("overview")),
        raw_snapshot=result,
    )


def from_yelp_business(business: Dict[str, Any], default_region: str = "US") -> Candidate:
    location = business.get("location") or {}
    coordinates = business.get("coordinates") or {}
    display_address = location.get("display_address")
    if isinstance(display_address, list):
        address = ", ".join(part for part in display_address if part)
    else:
        address = location.get("address1")
    return Candidate(
        name=(business.get("name") or "").strip(),
        source=YELP,
        external_ref=business.get("id"),
        address=strip_or_none(address),
        phone=normalize_phone(business.get("phone") or business.get("display_phone"), default_region),
        # Yelp only exposes its own listing URL.
        website=None,
        latitude=safe_float(coordinates.get("latitude")),
        longitude=safe_float(coordinates.get("longitude")),
        rating=safe_float(business.get("rating")),
        review_count=safe_int(business.get("review_count")),
        price_level=business.get("price"),
        categories=[category.get("alias") for category in business.get("categories") or [] if category.get("alias")],
        neighborhood_hint=None,
        raw_snapshot=business,
    )


def from_miami_beach_business(business: Dict[str, Any], default_region: str = "US") -> Candidate:
    details = (business.get("datatables") or {}).get("restaurant-bars") or {}
    category = strip_or_none(business.get("datatable_category_name"))
    entry_id = business.get("datatable_entry_id")
    return Candidate(
        name=(business.get("bus_name") or business.get("name") or "").strip(),
        source=MIAMI_BEACH,
        external_ref=str(entry_id) if entry_id is not None else None,
        address=strip_or_none(business.get("prem_full_address")),
        phone=normalize_phone(details.get("telephone"), default_region),
        website=sanitize_website(business.get("website")),
        latitude=safe_float(business.get("lat")),
        longitude=safe_float(business.get("lng")),
        price_level=strip_or_none(details.get("price_range_restaurant")),
        categories=[category.lower()] if category else [],
        description=strip_html(business.get("description")),
        raw_snapshot=business,
    )
