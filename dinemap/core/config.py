"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


class ConfigError(RuntimeError):
    """Raised when mandatory configuration is missing."""


@dataclass(frozen=True)
class Settings:
    database_url: str
    google_api_key: str = ""
    yelp_api_key: str = ""
    serpapi_api_key: str = ""
    miami_beach_api_url: str = "https://www.miamibeachapi.com/rest/a.pi/businesses/search"
    max_pages: int = 3
    import_delay_seconds: float = 0.3
    similarity_threshold: float = 0.8
    neighborhood_max_miles: float = 5.0
    default_cuisine: str = "American"
    default_phone_region: Optional[str] = "US"
    port: int = 8080

    def require(self, field_name: str) -> str:
        """Return a credential field, raising ConfigError when it is empty."""
        value = getattr(self, field_name)
        if not value:
            raise ConfigError(f"{field_name.upper()} must be set in the environment for this run.")
        return value


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("%s=%r is not numeric; using default %s", name, raw, default)
        return default


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    database_url = os.getenv("DATABASE_URL", "")
    google_api_key = os.getenv("GOOGLE_API_KEY", "")
    yelp_api_key = os.getenv("YELP_API_KEY", "")
    serpapi_api_key = os.getenv("SERPAPI_API_KEY", "")
    miami_beach_api_url = os.getenv("MIAMI_BEACH_API_URL") or Settings.miami_beach_api_url
    max_pages = int(os.getenv("IMPORT_MAX_PAGES", "3"))
    import_delay_seconds = _float_env("IMPORT_DELAY_SECONDS", 0.3)
    similarity_threshold = _float_env("SIMILARITY_THRESHOLD", 0.8)
    neighborhood_max_miles = _float_env("NEIGHBORHOOD_MAX_MILES", 5.0)
    default_cuisine = os.getenv("DEFAULT_CUISINE", "").strip() or "American"
    default_phone_region_raw = os.getenv("DEFAULT_PHONE_REGION", "US")
    default_phone_region = default_phone_region_raw.strip().upper() if default_phone_region_raw.strip() else None
    port = int(os.getenv("PORT", "8080"))

    if not database_url:
        logger.warning("DATABASE_URL is not set; database operations will fail.")
    if not google_api_key:
        logger.warning("GOOGLE_API_KEY is not configured; Google Places imports will fail.")
    if not yelp_api_key:
        logger.warning("YELP_API_KEY is not configured; Yelp imports will fail.")

    return Settings(
        database_url=database_url,
        google_api_key=google_api_key,
        yelp_api_key=yelp_api_key,
        serpapi_api_key=serpapi_api_key,
        miami_beach_api_url=miami_beach_api_url,
        max_pages=max_pages,
        import_delay_seconds=import_delay_seconds,
        similarity_threshold=similarity_threshold,
        neighborhood_max_miles=neighborhood_max_miles,
        default_cuisine=default_cuisine,
        default_phone_region=default_phone_region,
        port=port,
    )
