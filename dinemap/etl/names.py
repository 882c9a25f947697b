"""Customer-facing names from legal / registered business names."""

import re

_DBA = re.compile(r"^.*\s(?:d/b/a|dba|doing\s+business\s+as)\s+(.+)$", re.IGNORECASE)
_ENTITY_SUFFIX = re.compile(
    r"[\s,]+(?:llc|inc|corp|corporation|ltd|company|holdings|enterprises|partners|group|management|hospitality)\b\.?.*$",
    re.IGNORECASE,
)
_STORE_NUMBER = re.compile(r"\s*(?:/\s*store\s*)?#\s*\d+\s*$", re.IGNORECASE)
_PARENTHETICAL = re.compile(r"\s*\([^()]*\)\s*$")
_WHITESPACE = re.compile(r"\s+")
_NON_WORD = re.compile(r"[^\w\s]")

LOWERCASE_WORDS = frozenset({"the", "at", "by", "of", "and", "or", "for", "in", "on", "with"})

# Words ignored when names are compared for duplicates.
FILLER_WORDS = frozenset({"the", "restaurant", "restaurants", "restaurante", "ristorante", "miami"})


def _strip_trailing_annotations(name: str) -> str:
    previous = None
    while previous != name:
        previous = name
        name = _STORE_NUMBER.sub("", name)
        name = _PARENTHETICAL.sub("", name)
    return name


def _title_case(name: str) -> str:
    words = []
    for index, word in enumerate(name.lower().split(" ")):
        if index and word in LOWERCASE_WORDS:
            words.append(word)
        else:
            words.append(word[:1].upper() + word[1:])
    return " ".join(words)


def canonicalize_name(name: str) -> str:
    """Return the display name for ``name``.

    >>> canonicalize_name("SUNSHINE HOSPITALITY LLC d/b/a JOE'S PIZZA #12")
    "Joe's Pizza"
    """
    if not name:
        return name

    cleaned = name
    match = _DBA.match(cleaned)
    if match:
        cleaned = match.group(1)
    cleaned = _ENTITY_SUFFIX.sub("", cleaned)
    cleaned = _strip_trailing_annotations(cleaned)
    cleaned = _WHITESPACE.sub(" ", cleaned).strip()
    if not cleaned:
        return name
    return _title_case(cleaned)


def match_key(name: str) -> str:
    """Lowercased, punctuation-free name without filler words."""
    text = _WHITESPACE.sub(" ", _NON_WORD.sub(" ", (name or "").lower())).strip()
    words = [word for word in text.split(" ") if word and word not in FILLER_WORDS]
    return " ".join(words) or text
