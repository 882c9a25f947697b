"""Postgres-backed store for the pipeline and the HTTP layer."""

import logging
import re
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import psycopg2
from psycopg2 import extras, pool

from dinemap.core.config import get_settings
from dinemap.core.store import AnyOf, DuplicateRecordError, Filter, InvalidValueError, Predicate, StoreError, check_collection

logger = logging.getLogger(__name__)

_connection_pool: Optional[pool.SimpleConnectionPool] = None
_IDENTIFIER = re.compile(r"^[a-z_][a-z0-9_]*$")
_UNIQUE_VIOLATION = "23505"


def init_pool(minconn: int = 1, maxconn: int = 5) -> pool.SimpleConnectionPool:
    """Initialise and return the shared connection pool."""
    global _connection_pool
    if _connection_pool is None:
        settings = get_settings()
        if not settings.database_url:
            raise RuntimeError("DATABASE_URL is required for database connections")
        _connection_pool = pool.SimpleConnectionPool(
            minconn,
            maxconn,
            dsn=settings.database_url,
            connect_timeout=10,
        )
        logger.info("Database connection pool initialised")
    return _connection_pool


@contextmanager
def get_connection():
    """Context manager yielding a pooled connection."""
    pg_pool = init_pool()
    conn = pg_pool.getconn()
    try:
        yield conn
    finally:
        pg_pool.putconn(conn)


SCHEMA_SQL = """
CREATE EXTENSION IF NOT EXISTS pgcrypto;

CREATE TABLE IF NOT EXISTS restaurants (
    id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
    name text NOT NULL,
    primary_cuisine text NOT NULL,
    secondary_cuisine text,
    price_tier text NOT NULL DEFAULT '$$'
        CHECK (price_tier IN ('$', '$$', '$$$', '$$$$', '$$$$$')),
    neighborhood text NOT NULL DEFAULT 'Unknown',
    address text,
    phone text,
    website text,
    latitude double precision,
    longitude double precision,
    external_refs jsonb NOT NULL DEFAULT '{}'::jsonb,
    rating double precision,
    review_count integer,
    source text,
    needs_review boolean NOT NULL DEFAULT false,
    is_active boolean NOT NULL DEFAULT true,
    name_override text,
    cuisine_override text,
    secondary_cuisine_override text,
    price_override text,
    neighborhood_override text,
    last_updated timestamptz NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS restaurants_neighborhood_idx ON restaurants (neighborhood);

CREATE TABLE IF NOT EXISTS external_refs (
    id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
    source text NOT NULL,
    external_ref text NOT NULL,
    restaurant_id uuid REFERENCES restaurants (id) ON DELETE CASCADE,
    UNIQUE (source, external_ref)
);

CREATE TABLE IF NOT EXISTS activities (
    id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
    name text NOT NULL,
    activity_type text,
    primary_category text,
    neighborhood text,
    price_tier text,
    description text,
    address text,
    phone text,
    website text,
    tags text[] NOT NULL DEFAULT '{}',
    status text NOT NULL DEFAULT 'active'
);

CREATE TABLE IF NOT EXISTS search_mappings (
    search_term text PRIMARY KEY,
    mapped_terms text[] NOT NULL,
    category text
);
"""


def ensure_schema() -> None:
    """Create the tables owned by the import pipeline."""
    with get_connection() as conn:
        with conn.cursor() as cur:
            cur.execute(SCHEMA_SQL)
        conn.commit()
    logger.info("Schema ensured")


def _quote(identifier: str) -> str:
    if not _IDENTIFIER.match(identifier):
        raise StoreError(f"invalid identifier: {identifier!r}")
    return f'"{identifier}"'


def _adapt(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return extras.Json(value)
    return value


class _Params:
    """Collects named query parameters while SQL fragments are built."""

    def __init__(self) -> None:
        self.values: Dict[str, Any] = {}

    def add(self, value: Any) -> str:
        key = f"p{len(self.values)}"
        self.values[key] = value
        return f"%({key})s"


def _predicate_sql(predicate: Predicate, params: _Params) -> str:
    column = _quote(predicate.column)
    if predicate.op == "eq":
        if predicate.value is None:
            return f"{column} IS NULL"
        return f"{column} = {params.add(predicate.value)}"
    if predicate.op == "in":
        if not predicate.value:
            return "FALSE"
        return f"{column} IN {params.add(tuple(predicate.value))}"
    if predicate.op == "ilike":
        return f"{column} ILIKE {params.add(predicate.value)}"
    if predicate.op == "contains":
        return f"{column} @> {params.add(list(predicate.value))}"
    if predicate.op == "has_items":
        return f"{column} @> {params.add(extras.Json(dict(predicate.value)))}"
    if predicate.op == "is_null":
        return f"{column} IS NULL" if predicate.value else f"{column} IS NOT NULL"
    raise StoreError(f"unsupported operator: {predicate.op}")


def build_where(filters: Optional[Sequence[Filter]], params: _Params) -> str:
    clauses: List[str] = []
    for item in filters or ():
        if isinstance(item, AnyOf):
            parts = [_predicate_sql(predicate, params) for predicate in item.predicates]
            clauses.append("(" + " OR ".join(parts or ["FALSE"]) + ")")
        else:
            clauses.append(_predicate_sql(item, params))
    if not clauses:
        return ""
    return " WHERE " + " AND ".join(clauses)


def build_select(
    collection: str,
    filters: Optional[Sequence[Filter]] = None,
    *,
    order_by: Optional[str] = None,
    descending: bool = False,
    limit: Optional[int] = None,
    offset: int = 0,
) -> Tuple[str, Dict[str, Any]]:
    params = _Params()
    sql = f"SELECT * FROM {_quote(check_collection(collection))}" + build_where(filters, params)
    if order_by:
        direction = "DESC" if descending else "ASC"
        sql += f" ORDER BY {_quote(order_by)} {direction} NULLS LAST"
    if limit is not None:
        sql += f" LIMIT {params.add(int(limit))}"
    if offset:
        sql += f" OFFSET {params.add(int(offset))}"
    return sql, params.values


def build_insert(collection: str, row: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
    if not row:
        raise StoreError("cannot insert an empty row")
    params = _Params()
    columns = ", ".join(_quote(column) for column in row)
    values = ", ".join(params.add(_adapt(value)) for value in row.values())
    sql = f"INSERT INTO {_quote(check_collection(collection))} ({columns}) VALUES ({values}) RETURNING *"
    return sql, params.values


def build_update(collection: str, values: Dict[str, Any], filters: Sequence[Filter]) -> Tuple[str, Dict[str, Any]]:
    if not values:
        raise StoreError("update requires at least one value")
    if not filters:
        raise StoreError("update requires at least one filter")
    params = _Params()
    assignments = ", ".join(f"{_quote(column)} = {params.add(_adapt(value))}" for column, value in values.items())
    sql = f"UPDATE {_quote(check_collection(collection))} SET {assignments}" + build_where(filters, params)
    return sql, params.values


def build_delete(collection: str, filters: Sequence[Filter]) -> Tuple[str, Dict[str, Any]]:
    if not filters:
        raise StoreError("delete requires at least one filter")
    params = _Params()
    sql = f"DELETE FROM {_quote(check_collection(collection))}" + build_where(filters, params)
    return sql, params.values


class PostgresStore:
    """Store implementation over the shared psycopg2 connection pool."""

    def _execute(self, statements: List[Tuple[str, Dict[str, Any]]], fetch: bool) -> Tuple[List[Dict[str, Any]], int]:
        rows: List[Dict[str, Any]] = []
        affected = 0
        with get_connection() as conn:
            try:
                with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
                    for sql, params in statements:
                        cur.execute(sql, params)
                        affected += max(cur.rowcount, 0)
                        if fetch:
                            rows.extend(dict(row) for row in cur.fetchall())
                conn.commit()
            except psycopg2.IntegrityError as exc:
                conn.rollback()
                if getattr(exc, "pgcode", None) == _UNIQUE_VIOLATION:
                    raise DuplicateRecordError(str(exc)) from exc
                raise StoreError(str(exc)) from exc
            except psycopg2.DataError as exc:
                conn.rollback()
                raise InvalidValueError(str(exc)) from exc
            except psycopg2.Error as exc:
                conn.rollback()
                raise StoreError(str(exc)) from exc
        return rows, affected

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
        statement = build_select(
            collection, filters, order_by=order_by, descending=descending, limit=limit, offset=offset
        )
        rows, _ = self._execute([statement], fetch=True)
        return rows

    def insert(self, collection: str, rows: Union[Dict[str, Any], Sequence[Dict[str, Any]]]) -> List[Dict[str, Any]]:
        batch = [rows] if isinstance(rows, dict) else list(rows)
        statements = [build_insert(collection, row) for row in batch]
        inserted, _ = self._execute(statements, fetch=True)
        logger.debug("Inserted %d rows into %s", len(inserted), collection)
        return inserted

    def update(self, collection: str, values: Dict[str, Any], filters: Sequence[Filter]) -> int:
        _, affected = self._execute([build_update(collection, values, filters)], fetch=False)
        return affected

    def delete(self, collection: str, filters: Sequence[Filter]) -> int:
        _, affected = self._execute([build_delete(collection, filters)], fetch=False)
        return affected
