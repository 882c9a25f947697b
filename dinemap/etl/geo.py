"""Neighborhood lookup for the Miami / Miami Beach area."""

import logging
import math
import re
from typing import Dict, List, Mapping, Optional, Pattern, Sequence, Tuple

from dinemap.models import UNKNOWN_NEIGHBORHOOD

logger = logging.getLogger(__name__)

EARTH_RADIUS_MILES = 3959.0
DEFAULT_MAX_MILES = 5.0

# Order matters: ties go to the first entry.
MIAMI_NEIGHBORHOODS: Tuple[Tuple[str, float, float], ...] = (
    ("South Beach", 25.7907, -80.1300),
    ("Mid-Beach", 25.8200, -80.1250),
    ("North Beach", 25.8550, -80.1210),
    ("Surfside", 25.8780, -80.1210),
    ("Bal Harbour", 25.8920, -80.1210),
    ("Bay Harbor Islands", 25.8870, -80.1330),
    ("Downtown Miami", 25.7751, -80.1900),
    ("Brickell", 25.7616, -80.1918),
    ("Wynwood", 25.8003, -80.1994),
    ("Little Havana", 25.7650, -80.2200),
    ("Little Haiti", 25.8300, -80.1950),
    ("Overtown", 25.7870, -80.2010),
    ("Edgewater", 25.8010, -80.1870),
    ("Midtown Miami", 25.8100, -80.1930),
    ("Miami Design District", 25.8128, -80.1918),
    ("Arts & Entertainment District", 25.7880, -80.1880),
    ("Upper East Side", 25.8200, -80.1700),
    ("Coral Gables", 25.7505, -80.2593),
    ("Coconut Grove", 25.7259, -80.2364),
    ("Key Biscayne", 25.6940, -80.1620),
    ("Virginia Key", 25.7360, -80.1600),
    ("Port of Miami", 25.7740, -80.1700),
)

MIAMI_ADJACENCY: Dict[str, Tuple[str, ...]] = {
    "South Beach": ("Mid-Beach", "Port of Miami"),
    "Mid-Beach": ("South Beach", "North Beach"),
    "North Beach": ("Mid-Beach", "Surfside"),
    "Surfside": ("North Beach", "Bal Harbour", "Bay Harbor Islands"),
    "Bal Harbour": ("Surfside", "Bay Harbor Islands"),
    "Bay Harbor Islands": ("Bal Harbour", "Surfside"),
    "Downtown Miami": ("Brickell", "Overtown", "Arts & Entertainment District", "Port of Miami"),
    "Brickell": ("Downtown Miami", "Little Havana", "Coconut Grove"),
    "Wynwood": ("Edgewater", "Midtown Miami", "Overtown"),
    "Little Havana": ("Brickell", "Coral Gables", "Overtown"),
    "Little Haiti": ("Miami Design District", "Upper East Side"),
    "Overtown": ("Downtown Miami", "Wynwood", "Little Havana"),
    "Edgewater": ("Wynwood", "Arts & Entertainment District", "Midtown Miami"),
    "Midtown Miami": ("Wynwood", "Edgewater", "Miami Design District"),
    "Miami Design District": ("Midtown Miami", "Little Haiti", "Upper East Side"),
    "Arts & Entertainment District": ("Downtown Miami", "Edgewater"),
    "Upper East Side": ("Miami Design District", "Little Haiti"),
    "Coral Gables": ("Coconut Grove", "Little Havana"),
    "Coconut Grove": ("Coral Gables", "Brickell"),
    "Key Biscayne": ("Virginia Key",),
    "Virginia Key": ("Key Biscayne", "Brickell"),
    "Port of Miami": ("Downtown Miami", "South Beach"),
}

NEIGHBORHOOD_ALIASES: Dict[str, str] = {
    "SoBe": "South Beach",
    "So Beach": "South Beach",
    "SouthBeach": "South Beach",
    "South Beach Miami": "South Beach",
    "Miami South Beach": "South Beach",
    "South Beach, Miami Beach": "South Beach",
    "Miami Beach - South Beach": "South Beach",
    "South of Fifth": "South Beach",
    "Mid Beach": "Mid-Beach",
    "Middle Beach": "Mid-Beach",
    "Central Miami Beach": "Mid-Beach",
    "Miami Beach - Mid Beach": "Mid-Beach",
    "North Beach Miami": "North Beach",
    "Miami Beach - North Beach": "North Beach",
    "Downtown": "Downtown Miami",
    "Miami Downtown": "Downtown Miami",
    "DT Miami": "Downtown Miami",
    "DTMIA": "Downtown Miami",
    "City of Miami": "Downtown Miami",
    "Brickell Avenue": "Brickell",
    "Brickell Key": "Brickell",
    "Brickell Miami": "Brickell",
    "Brickel": "Brickell",
    "Financial District": "Brickell",
    "Wynwood Arts District": "Wynwood",
    "Wynwood Walls": "Wynwood",
    "Wynwood Miami": "Wynwood",
    "Wynwod": "Wynwood",
    "Design District": "Miami Design District",
    "Miami Design": "Miami Design District",
    "MDD": "Miami Design District",
    "Midtown": "Midtown Miami",
    "Calle Ocho": "Little Havana",
    "Little Havana Miami": "Little Havana",
    "La Pequeña Habana": "Little Havana",
    "The Gables": "Coral Gables",
    "Coral Gables Miami": "Coral Gables",
    "Miracle Mile": "Coral Gables",
    "The Grove": "Coconut Grove",
    "CocoWalk": "Coconut Grove",
    "Coconut Grove Miami": "Coconut Grove",
    "Key Biscayne Miami": "Key Biscayne",
    "The Key": "Key Biscayne",
    "Crandon Park": "Key Biscayne",
    "Virginia Key Miami": "Virginia Key",
    "Marine Stadium": "Virginia Key",
    "Bear Cut": "Virginia Key",
    "Bal Harbor": "Bal Harbour",
    "Bal Harbour Miami": "Bal Harbour",
    "Bal Harbour Shops": "Bal Harbour",
    "Miami": "Downtown Miami",
    "Miami, FL": "Downtown Miami",
    "Miami Florida": "Downtown Miami",
    "MIA": "Downtown Miami",
}

_ADDRESS_PATTERNS: Sequence[Tuple[str, Sequence[str]]] = (
    ("South Beach", (r"south\s*beach", r"\bsobe\b", r"ocean\s*dr", r"lincoln\s*rd", r"espanola\s*way", r"collins\s*ave.*\b1[0-9]\b")),
    ("Mid-Beach", (r"mid\s*beach", r"collins\s*ave.*\b4[0-9]\b", r"\b41st\b", r"\b46th\b")),
    ("North Beach", (r"north\s*beach", r"harding\s*ave", r"collins\s*ave.*\b7[0-9]\b", r"\b79th\b")),
    ("Surfside", (r"surfside",)),
    ("Bal Harbour", (r"bal\s*harbou?r",)),
    ("Brickell", (r"brickell",)),
    ("Wynwood", (r"wynwood", r"nw\s*2nd\s*ave")),
    ("Little Havana", (r"little\s*havana", r"calle\s*ocho", r"sw\s*8th\s*st", r"8th\s*street")),
    ("Miami Design District", (r"design\s*district",)),
    ("Coral Gables", (r"coral\s*gables", r"miracle\s*mile", r"giralda")),
    ("Coconut Grove", (r"coconut\s*grove", r"cocowalk", r"main\s*hwy")),
    ("Key Biscayne", (r"key\s*biscayne", r"crandon\s*blvd")),
    ("Virginia Key", (r"virginia\s*key", r"marine\s*stadium", r"rusty\s*pelican")),
    ("Downtown Miami", (r"downtown", r"biscayne\s*blvd", r"flagler\s*st", r"government\s*center")),
)


def haversine_miles(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in miles."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_MILES * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


class NeighborhoodIndex:
    def __init__(
        self,
        centers: Sequence[Tuple[str, float, float]] = MIAMI_NEIGHBORHOODS,
        adjacency: Optional[Mapping[str, Sequence[str]]] = None,
        aliases: Optional[Mapping[str, str]] = None,
        address_patterns: Optional[Sequence[Tuple[str, Sequence[str]]]] = None,
    ):
        self.centers = tuple(centers)
        self.names = [name for name, _, _ in self.centers]
        self._known = {name.lower(): name for name in self.names}
        self.adjacency = dict(MIAMI_ADJACENCY if adjacency is None else adjacency)
        self.aliases = dict(NEIGHBORHOOD_ALIASES if aliases is None else aliases)
        self._aliases_ci = {alias.lower(): target for alias, target in self.aliases.items()}
        patterns = _ADDRESS_PATTERNS if address_patterns is None else address_patterns
        self._address_patterns: List[Tuple[str, List[Pattern[str]]]] = [
            (name, [re.compile(expr, re.IGNORECASE) for expr in exprs]) for name, exprs in patterns
        ]

    def is_known(self, name: Optional[str]) -> bool:
        return bool(name) and name in self.names

    def nearest_with_distance(self, lat: float, lng: float) -> Tuple[Optional[str], float]:
        best_name: Optional[str] = None
        best_distance = math.inf
        for name, center_lat, center_lng in self.centers:
            distance = haversine_miles(lat, lng, center_lat, center_lng)
            if distance < best_distance:
                best_name, best_distance = name, distance
        return best_name, best_distance

    def nearest(self, lat: Optional[float], lng: Optional[float], max_miles: float = DEFAULT_MAX_MILES) -> str:
        """Closest neighborhood within ``max_miles``, otherwise ``"Unknown"``."""
        if lat is None or lng is None:
            return UNKNOWN_NEIGHBORHOOD
        name, distance = self.nearest_with_distance(float(lat), float(lng))
        if name is None or distance > max_miles:
            logger.debug("No neighborhood within %.1f mi of (%s, %s); nearest %.1f mi", max_miles, lat, lng, distance)
            return UNKNOWN_NEIGHBORHOOD
        return name

    def nearby(self, name: str) -> List[str]:
        return list(self.adjacency.get(name, ()))

    def standardize(self, raw: Optional[str], address: Optional[str] = "", name: Optional[str] = "") -> Optional[str]:
        """Map free-text neighborhood/address text onto a known neighborhood.

        Alias table first (exact, then case-insensitive), then the canonical
        names, then address patterns. Unrecognised text is returned cleaned so
        the caller can flag it; ``None`` when there is nothing to go on.
        """
        cleaned = (raw or "").strip()
        if cleaned:
            if cleaned in self.aliases:
                return self.aliases[cleaned]
            lowered = cleaned.lower()
            if lowered in self._aliases_ci:
                return self._aliases_ci[lowered]
            if lowered in self._known:
                return self._known[lowered]

        search_text = " ".join(part for part in (address, name) if part)
        if search_text:
            for neighborhood, patterns in self._address_patterns:
                if any(pattern.search(search_text) for pattern in patterns):
                    return neighborhood

        return cleaned or None


_default_index: Optional[NeighborhoodIndex] = None


def default_index() -> NeighborhoodIndex:
    global _default_index
    if _default_index is None:
        _default_index = NeighborhoodIndex()
    return _default_index
