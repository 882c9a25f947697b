"""Rule-based cuisine and price classification.

Three layers are consulted in order and the first layer with a match wins:

1. ``KNOWN_NAMES`` - hand-curated venues, including ``Delete`` for rows that are
   not restaurants at all.
2. ``CATEGORY_TO_CUISINE`` - provider tags (Yelp aliases, Google Places types).
3. ``KEYWORD_RULES`` - ordered keyword rules over the name and description.

Layers are never merged, except that a Steakhouse result with a seafood keyword
in the text comes back as ``["Steakhouse", "Seafood"]``.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Sequence, Tuple

from dinemap.models import DEFAULT_PRICE_TIER, DELETE_SENTINEL, PRICE_TIERS

logger = logging.getLogger(__name__)

DEFAULT_CUISINE = "American"

CUISINES = frozenset(
    {
        "American", "Argentinian", "Asian", "BBQ", "Bagels", "Bakery", "Bar", "Brazilian",
        "British", "Burgers", "Cafe", "Caribbean", "Chinese", "Colombian", "Contemporary",
        "Creole", "Cuban", "Deli", "Desserts", "Dominican", "Ethiopian", "Fast Food",
        "Food Truck", "French", "German", "Greek", "Haitian", "Hawaiian", "Healthy",
        "Hungarian", "Ice Cream", "Indian", "Italian", "Japanese", "Juice Bar", "Korean",
        "Latin", "Lebanese", "Mediterranean", "Mexican", "Middle Eastern", "Nightclub",
        "Other", "Peruvian", "Pizza", "Portuguese", "Seafood", "Soul Food", "Southern",
        "Spanish", "Sports Bar", "Steakhouse", "Takeout", "Thai", "Turkish", "Vegan",
        "Vegetarian", "Venezuelan", "Vietnamese", "Wine Bar", DELETE_SENTINEL,
    }
)

KNOWN_NAMES = {
    "versailles": "Cuban",
    "la carreta": "Cuban",
    "joe's stone crab": "Seafood",
    "prime 112": "Steakhouse",
    "carbone": "Italian",
    "cipriani": "Italian",
    "nobu": "Japanese",
    "zuma": "Japanese",
    "hakkasan": "Chinese",
    "la petite maison": "French",
    "le jardinier": "French",
    "boia de": "Italian",
    "ariete": "Contemporary",
    "stubborn seed": "Contemporary",
    "itamae": "Peruvian",
    "coyo taco": "Mexican",
    "phuc yea": "Vietnamese",
    "boldva": "Hungarian",
    "musigny": "French",
    "winker's diner": "Deli",
    "snow at the beach": "Desserts",
    "the licking south beach": "Southern",
    "sabor playa restaurant": "Latin",
    "d'vine": "Wine Bar",
    "casa xabi": "Spanish",
    "elia": "Mediterranean",
    "petralunga": "Italian",
    "holy avocado": "Healthy",
    "balan's": "British",
    "orange blossom": "Mediterranean",
    "broken shaker": "Bar",
    "the sandbox": "Bar",
    "blu gin": "Bar",
    "kings dining & entertainment": "Sports Bar",
    "toothfairy": DELETE_SENTINEL,
    "go go fresh holding": DELETE_SENTINEL,
    "grna lc of fl": DELETE_SENTINEL,
    "m-3 of miami beach": DELETE_SENTINEL,
    "llam": DELETE_SENTINEL,
    "jnrl resturant": DELETE_SENTINEL,
    "it miami": DELETE_SENTINEL,
    "veterans of foreign wars": DELETE_SENTINEL,
    "1435 alton road": DELETE_SENTINEL,
    "culinary arts catering": DELETE_SENTINEL,
}

CATEGORY_TO_CUISINE = {
    # Yelp aliases
    "italian": "Italian",
    "pizza": "Pizza",
    "gelato": "Italian",
    "japanese": "Japanese",
    "sushi": "Japanese",
    "ramen": "Japanese",
    "chinese": "Chinese",
    "dimsum": "Chinese",
    "korean": "Korean",
    "thai": "Thai",
    "vietnamese": "Vietnamese",
    "asian": "Asian",
    "asianfusion": "Asian",
    "indpak": "Indian",
    "indian": "Indian",
    "mexican": "Mexican",
    "tex-mex": "Mexican",
    "tacos": "Mexican",
    "latin": "Latin",
    "cuban": "Cuban",
    "peruvian": "Peruvian",
    "brazilian": "Brazilian",
    "argentine": "Argentinian",
    "colombian": "Colombian",
    "venezuelan": "Venezuelan",
    "caribbean": "Caribbean",
    "haitian": "Haitian",
    "dominican": "Dominican",
    "french": "French",
    "mediterranean": "Mediterranean",
    "greek": "Greek",
    "spanish": "Spanish",
    "portuguese": "Portuguese",
    "german": "German",
    "british": "British",
    "mideastern": "Middle Eastern",
    "lebanese": "Lebanese",
    "turkish": "Turkish",
    "steak": "Steakhouse",
    "steakhouses": "Steakhouse",
    "seafood": "Seafood",
    "bbq": "BBQ",
    "burgers": "Burgers",
    "hotdogs": "American",
    "tradamerican": "American",
    "newamerican": "Contemporary",
    "sandwiches": "Deli",
    "delis": "Deli",
    "southern": "Southern",
    "cajun": "Creole",
    "soulfood": "Soul Food",
    "vegan": "Vegan",
    "vegetarian": "Vegetarian",
    "raw_food": "Healthy",
    "juicebars": "Juice Bar",
    "acaibowls": "Healthy",
    "breakfast_brunch": "Cafe",
    "cafes": "Cafe",
    "coffee": "Cafe",
    "bakeries": "Bakery",
    "donuts": "Bakery",
    "bagels": "Bagels",
    "icecream": "Ice Cream",
    "desserts": "Desserts",
    "bars": "Bar",
    "wine_bars": "Wine Bar",
    "cocktailbars": "Bar",
    "sports_bars": "Sports Bar",
    "irish_pubs": "Bar",
    "lounges": "Bar",
    "nightclubs": "Nightclub",
    "hotdog": "Fast Food",
    "fastfood": "Fast Food",
    "food_court": "Fast Food",
    "foodtrucks": "Food Truck",
    # Google Places types
    "american_restaurant": "American",
    "italian_restaurant": "Italian",
    "chinese_restaurant": "Chinese",
    "japanese_restaurant": "Japanese",
    "mexican_restaurant": "Mexican",
    "indian_restaurant": "Indian",
    "french_restaurant": "French",
    "thai_restaurant": "Thai",
    "korean_restaurant": "Korean",
    "greek_restaurant": "Greek",
    "spanish_restaurant": "Spanish",
    "turkish_restaurant": "Turkish",
    "vietnamese_restaurant": "Vietnamese",
    "lebanese_restaurant": "Lebanese",
    "brazilian_restaurant": "Brazilian",
    "ethiopian_restaurant": "Ethiopian",
    "mediterranean_restaurant": "Mediterranean",
    "middle_eastern_restaurant": "Middle Eastern",
    "pizza_restaurant": "Pizza",
    "seafood_restaurant": "Seafood",
    "steak_house": "Steakhouse",
    "barbecue_restaurant": "BBQ",
    "hamburger_restaurant": "Burgers",
    "sushi_restaurant": "Japanese",
    "ramen_restaurant": "Japanese",
    "vegetarian_restaurant": "Vegetarian",
    "vegan_restaurant": "Vegan",
    "fast_food_restaurant": "Fast Food",
    "ice_cream_shop": "Ice Cream",
    "coffee_shop": "Cafe",
    "cafe": "Cafe",
    "bakery": "Bakery",
    "bar": "Bar",
    "wine_bar": "Wine Bar",
    "night_club": "Nightclub",
}

SEAFOOD_KEYWORDS = ("seafood", "fish", "oyster", "crab", "lobster", "shrimp", "salmon", "tuna", "snapper")


@dataclass(frozen=True)
class ClassificationRule:
    """A cuisine assigned when any keyword starts a word in the text.

    With ``anywhere`` set, keywords also match inside longer words.
    """

    cuisine: str
    keywords: Tuple[str, ...]
    anywhere: bool = False
    pattern: "re.Pattern[str]" = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        alternatives = "|".join(re.escape(keyword) for keyword in self.keywords)
        prefix = "" if self.anywhere else r"(?<!\w)"
        object.__setattr__(self, "pattern", re.compile(rf"{prefix}(?:{alternatives})", re.IGNORECASE))

    def matches(self, text: str) -> bool:
        return bool(text) and bool(self.pattern.search(text))

    def apply(self) -> str:
        return self.cuisine


# Order matters: the first matching rule wins.
KEYWORD_RULES: Tuple[ClassificationRule, ...] = (
    ClassificationRule("Pizza", ("pizza",), anywhere=True),
    ClassificationRule("Steakhouse", ("steak", "chophouse", "chop house", "churrascaria", "stk")),
    ClassificationRule("Japanese", ("japanese", "sushi", "ramen", "izakaya", "hibachi", "omakase", "yakitori")),
    ClassificationRule("Mexican", ("mexican", "taco", "burrito", "cantina", "taqueria", "tex-mex")),
    ClassificationRule("Cuban", ("cuban", "cubano", "havana", "cafecito")),
    ClassificationRule("Peruvian", ("peruvian", "ceviche", "cevicheria", "pollo a la brasa")),
    ClassificationRule("Italian", ("italian", "italiano", "trattoria", "osteria", "ristorante", "pasta", "enoteca")),
    ClassificationRule("Chinese", ("chinese", "dim sum", "szechuan", "sichuan", "hunan", "dumpling")),
    ClassificationRule("Thai", ("thai", "pad thai", "tom yum")),
    ClassificationRule("Vietnamese", ("vietnamese", "pho ", "banh mi")),
    ClassificationRule("Korean", ("korean", "kimchi", "bibimbap")),
    ClassificationRule("Indian", ("indian", "curry", "tandoor", "biryani", "masala")),
    ClassificationRule("Greek", ("greek", "gyro", "souvlaki", "taverna")),
    ClassificationRule("Mediterranean", ("mediterranean", "lebanese", "turkish", "falafel", "shawarma")),
    ClassificationRule("French", ("french", "bistro", "brasserie", "boulangerie", "patisserie")),
    ClassificationRule("Seafood", SEAFOOD_KEYWORDS),
    ClassificationRule("BBQ", ("bbq", "barbecue", "smokehouse", "ribs")),
    ClassificationRule("Burgers", ("burger",)),
    ClassificationRule("Ice Cream", ("ice cream", "gelato", "gelateria", "creamery")),
    ClassificationRule("Bakery", ("bakery", "donut", "doughnut")),
    ClassificationRule("Cafe", ("cafe", "café", "coffee", "espresso")),
    ClassificationRule("Bar", ("bar ", "pub ", "tavern", "lounge", "brewery", "saloon")),
    ClassificationRule("American", ("diner", "grill", "american", "kitchen")),
)

_SEAFOOD_RULE = ClassificationRule("Seafood", SEAFOOD_KEYWORDS)

ULTRA_LUXURY_NAMES = (
    "carbone", "zz's club", "l'atelier", "joël robuchon", "nobu", "the bazaar", "prime 112",
    "dirty french", "cote miami", "gekko", "sexy fish", "casadonna", "forte dei marmi",
    "cipriani", "zuma", "la petite maison", "le jardinier", "stubborn seed", "ariete",
    "los fuegos", "quattro gastronomia", "makoto", "azabu", "hakkasan", "katsuya", "komodo",
    "papi steak", "meat market", "stk miami", "bourbon steak", "maestro's", "catch miami",
    "swan", "boia de", "elastika", "klaw miami", "lobster bar", "seaspice", "joia beach",
)
_ULTRA_LUXURY = ClassificationRule("$$$$$", ULTRA_LUXURY_NAMES)
_TOP_TIER_UPGRADE = ClassificationRule("$$$$$", ("private", "club", "omakase", "tasting"))

# Description-level price hints, most expensive first.
PRICE_HINT_RULES: Tuple[ClassificationRule, ...] = (
    ClassificationRule("$$$$$", ("ultra luxury", "private dining", "invitation only", "omakase")),
    ClassificationRule("$$$$", ("fine dining", "tasting menu", "prix fixe", "michelin", "sommelier", "wine pairing")),
    ClassificationRule("$", ("fast food", "food truck", "food court", "counter service", "quick service", "takeout")),
)

_GOOGLE_LEVELS = {0: "$", 1: "$", 2: "$$", 3: "$$$", 4: "$$$$"}
_MIAMI_BEACH_LEVELS: Sequence[Tuple[str, str]] = (
    ("very expensive", "$$$$"),
    ("inexpensive", "$"),
    ("moderate", "$$"),
    ("expensive", "$$$"),
)


@dataclass(frozen=True)
class Classification:
    cuisines: Tuple[str, ...]
    layer: str
    price_hint: Optional[str] = None

    @property
    def primary(self) -> str:
        return self.cuisines[0]

    @property
    def secondary(self) -> Optional[str]:
        return self.cuisines[1] if len(self.cuisines) > 1 else None

    @property
    def matched(self) -> bool:
        return self.layer != "default"

    @property
    def is_delete(self) -> bool:
        return self.primary == DELETE_SENTINEL


def known_name_cuisine(name: str) -> Optional[str]:
    return KNOWN_NAMES.get((name or "").strip().lower())


def category_cuisine(categories: Optional[Iterable[str]]) -> Optional[str]:
    for category in categories or ():
        cuisine = CATEGORY_TO_CUISINE.get(str(category).strip().lower())
        if cuisine:
            return cuisine
    return None


def keyword_cuisine(text: str, rules: Sequence[ClassificationRule] = KEYWORD_RULES) -> Optional[str]:
    # Trailing space lets "bar " / "pho " match at the end of a name too.
    padded = f"{text} "
    for rule in rules:
        if rule.matches(padded):
            return rule.apply()
    return None


def price_hint(text: Optional[str]) -> Optional[str]:
    for rule in PRICE_HINT_RULES:
        if rule.matches(text or ""):
            return rule.apply()
    return None


def classify(
    name: str,
    description: Optional[str] = None,
    categories: Optional[Iterable[str]] = None,
    default: str = DEFAULT_CUISINE,
) -> Classification:
    """Classify a business into one (or, for steak + seafood, two) cuisine tags."""
    text = " ".join(part for part in (name, description) if part).lower()
    hint = "$$$$$" if _ULTRA_LUXURY.matches(name or "") else price_hint(text)

    cuisine = known_name_cuisine(name)
    layer = "known_name"
    if cuisine is None:
        cuisine, layer = category_cuisine(categories), "category"
    if cuisine is None:
        cuisine, layer = keyword_cuisine(text), "keyword"
    if cuisine is None:
        logger.debug("No cuisine rule matched %r; defaulting to %s", name, default)
        return Classification((default,), "default", hint)

    if cuisine == "Steakhouse" and _SEAFOOD_RULE.matches(text):
        return Classification(("Steakhouse", "Seafood"), layer, hint)
    return Classification((cuisine,), layer, hint)


def normalize_price(level: Any, source: Optional[str] = None) -> Optional[str]:
    """Map a provider price signal onto the five-symbol scale.

    Google uses integers 0-4, Yelp ``"$"``-``"$$$$"``, the Miami Beach API
    words such as ``"Moderate"``. Returns ``None`` when there is no signal.
    """
    if level is None or level == "":
        return None
    if isinstance(level, bool):
        return None
    if isinstance(level, (int, float)):
        return _GOOGLE_LEVELS.get(int(level))
    text = str(level).strip()
    if text in PRICE_TIERS:
        return text
    if text.isdigit():
        return _GOOGLE_LEVELS.get(int(text))
    lowered = text.lower()
    for phrase, tier in _MIAMI_BEACH_LEVELS:
        if phrase in lowered:
            return tier
    logger.debug("Unrecognised price level %r from %s", level, source or "unknown source")
    return None


def infer_price_tier(name: str, level: Any = None, source: Optional[str] = None, hint: Optional[str] = None) -> str:
    """Final price tier for a venue.

    Ultra-luxury venues are always ``$$$$$`` because provider scales stop at
    four symbols. A Google level 4 with private/club/omakase/tasting in the
    name is upgraded too.
    """
    if _ULTRA_LUXURY.matches(name or ""):
        return "$$$$$"
    tier = normalize_price(level, source)
    if tier == "$$$$" and _TOP_TIER_UPGRADE.matches(name or ""):
        return "$$$$$"
    return tier or hint or DEFAULT_PRICE_TIER
