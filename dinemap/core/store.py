"""Collection-level store interface plus the in-memory implementation.

Both :class:`InMemoryStore` and :class:`dinemap.core.db.PostgresStore` expose the
same four operations (select / insert / update / delete) over named collections,
filtered by :class:`Predicate` objects. An :class:`AnyOf` groups predicates into a
disjunction; everything else in a filter list is AND-ed.
"""

from __future__ import annotations

import copy
import logging
import re
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

logger = logging.getLogger(__name__)

COLLECTIONS = frozenset(
    {
        "restaurants",
        "activities",
        "businesses",
        "cities",
        "categories",
        "external_refs",
        "search_mappings",
    }
)

UNIQUE_KEYS: Dict[str, Tuple[Tuple[str, ...], ...]] = {
    "external_refs": (("source", "external_ref"),),
}

OPERATORS = frozenset({"eq", "in", "ilike", "contains", "has_items", "is_null"})


class StoreError(RuntimeError):
    """Raised when the persistent store rejects or fails an operation."""


class DuplicateRecordError(StoreError):
    """Raised when an insert violates a unique key."""


class InvalidValueError(StoreError):
    """Raised when a filter or row value does not fit its column type."""


@dataclass(frozen=True)
class Predicate:
    column: str
    op: str
    value: Any = None

    def __post_init__(self) -> None:
        if self.op not in OPERATORS:
            raise ValueError(f"unsupported operator: {self.op}")


@dataclass(frozen=True)
class AnyOf:
    predicates: Tuple[Predicate, ...]


Filter = Union[Predicate, AnyOf]


def eq(column: str, value: Any) -> Predicate:
    return Predicate(column, "eq", value)


def in_(column: str, values: Iterable[Any]) -> Predicate:
    return Predicate(column, "in", tuple(values))


def ilike(column: str, pattern: str) -> Predicate:
    return Predicate(column, "ilike", pattern)


def contains(column: str, values: Iterable[Any]) -> Predicate:
    return Predicate(column, "contains", tuple(values))


def has_items(column: str, items: Dict[str, Any]) -> Predicate:
    """Mapping column holding at least every key/value pair of ``items``."""
    return Predicate(column, "has_items", tuple(sorted(items.items())))


def is_null(column: str, flag: bool = True) -> Predicate:
    return Predicate(column, "is_null", flag)


def any_of(*predicates: Predicate) -> AnyOf:
    return AnyOf(tuple(predicates))


def check_collection(name: str) -> str:
    if name not in COLLECTIONS:
        raise StoreError(f"unknown collection: {name}")
    return name


def _like_to_regex(pattern: str) -> "re.Pattern[str]":
    parts = []
    for char in pattern:
        if char == "%":
            parts.append(".*")
        elif char == "_":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("^" + "".join(parts) + "$", re.IGNORECASE | re.DOTALL)


def _matches(row: Dict[str, Any], predicate: Predicate) -> bool:
    value = row.get(predicate.column)
    if predicate.op == "eq":
        return value == predicate.value
    if predicate.op == "in":
        return value in predicate.value
    if predicate.op == "ilike":
        return value is not None and bool(_like_to_regex(predicate.value).match(str(value)))
    if predicate.op == "contains":
        return isinstance(value, (list, tuple, set)) and all(item in value for item in predicate.value)
    if predicate.op == "has_items":
        return isinstance(value, dict) and all(value.get(key) == item for key, item in predicate.value)
    if predicate.op == "is_null":
        return (value is None) == bool(predicate.value)
    return False


def row_matches(row: Dict[str, Any], filters: Optional[Sequence[Filter]]) -> bool:
    for item in filters or ():
        if isinstance(item, AnyOf):
            if not any(_matches(row, predicate) for predicate in item.predicates):
                return False
        elif not _matches(row, item):
            return False
    return True


def _as_rows(rows: Union[Dict[str, Any], Sequence[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    if isinstance(rows, dict):
        return [rows]
    return list(rows)


class InMemoryStore:
    """Dictionary-backed store used for dry runs and tests."""

    def __init__(self, seed: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self._collections: Dict[str, List[Dict[str, Any]]] = {}
        for collection, rows in (seed or {}).items():
            self.insert(collection, rows)

    def _rows(self, collection: str) -> List[Dict[str, Any]]:
        return self._collections.setdefault(check_collection(collection), [])

    def select(
        self,
        collection: str,
        filters: Optional[Sequence[Filter]] = None,
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        rows = [row for row in self._rows(collection) if row_matches(row, filters)]
        if order_by:
            present = [row for row in rows if row.get(order_by) is not None]
            missing = [row for row in rows if row.get(order_by) is None]
            present.sort(key=lambda row: row[order_by], reverse=descending)
            rows = present + missing
        end = offset + limit if limit is not None else None
        return copy.deepcopy(rows[offset:end])

    def insert(self, collection: str, rows: Union[Dict[str, Any], Sequence[Dict[str, Any]]]) -> List[Dict[str, Any]]:
        existing = self._rows(collection)
        new_rows = [dict(row) for row in _as_rows(rows)]
        for key in UNIQUE_KEYS.get(collection, ()):
            seen = {tuple(row.get(column) for column in key) for row in existing}
            for row in new_rows:
                value = tuple(row.get(column) for column in key)
                if value in seen:
                    raise DuplicateRecordError(f"duplicate key {key}={value} in {collection}")
                seen.add(value)
        for row in new_rows:
            row.setdefault("id", str(uuid.uuid4()))
        existing.extend(new_rows)
        logger.debug("Inserted %d rows into %s", len(new_rows), collection)
        return copy.deepcopy(new_rows)

    def update(self, collection: str, values: Dict[str, Any], filters: Sequence[Filter]) -> int:
        if not filters:
            raise StoreError("update requires at least one filter")
        updated = 0
        for row in self._rows(collection):
            if row_matches(row, filters):
                row.update(copy.deepcopy(values))
                updated += 1
        return updated

    def delete(self, collection: str, filters: Sequence[Filter]) -> int:
        if not filters:
            raise StoreError("delete requires at least one filter")
        rows = self._rows(collection)
        kept = [row for row in rows if not row_matches(row, filters)]
        removed = len(rows) - len(kept)
        self._collections[collection] = kept
        return removed
