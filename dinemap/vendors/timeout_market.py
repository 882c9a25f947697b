"""Vendor list scraped from the Time Out Market Miami food hall page."""

import json
import logging
import re
from typing import Any, Iterable, List, Optional

import requests
from bs4 import BeautifulSoup

from dinemap.etl.transform import TIMEOUT_MARKET
from dinemap.models import Candidate

logger = logging.getLogger(__name__)
_SESSION = requests.Session()

MARKET_URL = "https://www.timeoutmarket.com/miami/"
MARKET_ADDRESS = "1601 Drexel Avenue, Miami Beach, FL"
MARKET_NAME = "Time Out Market Miami"
MARKET_LATITUDE = 25.7906
MARKET_LONGITUDE = -80.1352
USER_AGENT = "DinemapBot/1.0"

_VENDOR_SELECTORS = (
    "[class*='vendor'] h2",
    "[class*='vendor'] h3",
    "[class*='vendor'] h4",
    "h2[class*='vendor']",
    "h3[class*='vendor']",
    "[class*='restaurant'] h2",
    "[class*='restaurant'] h3",
    "a[href*='/vendor']",
)
_WHITESPACE = re.compile(r"\s+")


def fetch_market_page(url: str = MARKET_URL) -> Optional[BeautifulSoup]:
    """Return the parsed page, or ``None`` when it is unreachable or not HTML."""
    try:
        response = _SESSION.get(url, timeout=10, headers={"User-Agent": USER_AGENT})
        response.raise_for_status()
    except requests.RequestException as exc:  # noqa: BLE001
        logger.warning("Failed to fetch %s: %s", url, exc)
        return None
    content_type = response.headers.get("Content-Type", "").lower()
    if "text/html" not in content_type:
        logger.debug("Skipping non-HTML content at %s (content-type=%s)", url, content_type)
        return None
    return BeautifulSoup(response.text, "html.parser")


def _json_ld_names(soup: BeautifulSoup) -> Iterable[str]:
    for script in soup.find_all("script", type="application/ld+json"):
        try:
            payload: Any = json.loads(script.string or "")
        except ValueError:
            continue
        entries = payload if isinstance(payload, list) else [payload]
        for entry in entries:
            if isinstance(entry, dict) and entry.get("@type") in {"Restaurant", "FoodEstablishment"}:
                name = entry.get("name")
                if isinstance(name, str):
                    yield name


def extract_vendor_names(soup: BeautifulSoup) -> List[str]:
    """Unique vendor names in page order (case-insensitive)."""
    found: List[str] = []
    seen = set()
    raw_names = [node.get_text(" ", strip=True) for selector in _VENDOR_SELECTORS for node in soup.select(selector)]
    raw_names.extend(_json_ld_names(soup))
    for raw in raw_names:
        name = _WHITESPACE.sub(" ", raw).strip()
        if not 2 < len(name) < 100 or name.lower() == MARKET_NAME.lower():
            continue
        if name.lower() in seen:
            continue
        seen.add(name.lower())
        found.append(name)
    return found


def market_candidates(soup: Optional[BeautifulSoup]) -> List[Candidate]:
    if soup is None:
        return []
    candidates = [
        Candidate(
            name=name,
            source=TIMEOUT_MARKET,
            external_ref=f"timeout-miami:{name.lower()}",
            address=MARKET_ADDRESS,
            latitude=MARKET_LATITUDE,
            longitude=MARKET_LONGITUDE,
            description=f"Vendor at {MARKET_NAME}",
            neighborhood_hint="South Beach",
        )
        for name in extract_vendor_names(soup)
    ]
    logger.info("Found %s vendors at %s", len(candidates), MARKET_NAME)
    return candidates
