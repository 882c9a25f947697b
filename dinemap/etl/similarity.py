"""Fuzzy duplicate detection between incoming candidates and stored records."""

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional

from rapidfuzz.distance import Levenshtein

from dinemap.etl.names import match_key
from dinemap.models import BusinessRecord

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.8


def levenshtein(a: str, b: str) -> int:
    return Levenshtein.distance(a, b)


def similarity(first: str, second: str) -> float:
    """Edit-distance similarity in [0, 1] between two business names."""
    a, b = match_key(first), match_key(second)
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return (longest - Levenshtein.distance(a, b)) / longest


def find_external_match(source: str, external_ref: Optional[str], records: Iterable[BusinessRecord]) -> Optional[BusinessRecord]:
    if not external_ref:
        return None
    for record in records:
        if record.external_refs.get(source) == external_ref:
            return record
    return None


def find_similar(name: str, records: Iterable[BusinessRecord], threshold: float = DEFAULT_THRESHOLD) -> Optional[BusinessRecord]:
    """First record whose name similarity exceeds ``threshold``."""
    for record in records:
        score = similarity(name, record.name)
        if score > threshold:
            logger.debug("'%s' matches '%s' (similarity %.2f)", name, record.name, score)
            return record
    return None


def duplicate_groups(records: Iterable[BusinessRecord]) -> Dict[str, Dict[str, List[BusinessRecord]]]:
    """Group records that look like duplicates for manual review.

    Returns three groupings keyed by the shared value: exact (case-insensitive)
    names, identical addresses, and shared match keys.
    """
    by_name: Dict[str, List[BusinessRecord]] = defaultdict(list)
    by_address: Dict[str, List[BusinessRecord]] = defaultdict(list)
    by_key: Dict[str, List[BusinessRecord]] = defaultdict(list)
    for record in records:
        by_name[record.name.lower()].append(record)
        if record.address:
            by_address[record.address.lower().strip()].append(record)
        key = match_key(record.name)
        if len(key) > 3:
            by_key[key].append(record)

    def _multi(groups: Dict[str, List[BusinessRecord]]) -> Dict[str, List[BusinessRecord]]:
        return {value: group for value, group in groups.items() if len(group) > 1}

    return {
        "exact_name": _multi(by_name),
        "same_address": _multi(by_address),
        "similar_name": _multi(by_key),
    }
