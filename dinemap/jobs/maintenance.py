"""Cleanup passes over the stored restaurants.

Subcommands::

    dinemap-maintain names                 re-canonicalize display names
    dinemap-maintain neighborhoods         re-resolve neighborhoods, flag the rest
    dinemap-maintain duplicates            log likely duplicate groups
    dinemap-maintain overrides FILE.json   apply a reviewed override table
    dinemap-maintain purge                 delete records overridden to "Delete"
    dinemap-maintain schema                create tables
"""

import argparse
import json
import logging
from typing import Any, Dict, Optional

from dinemap.core.config import ConfigError, get_settings
from dinemap.core.db import PostgresStore, ensure_schema, init_pool
from dinemap.core.repository import RestaurantRepository
from dinemap.core.store import StoreError
from dinemap.etl.classify import CUISINES
from dinemap.etl.geo import NeighborhoodIndex, default_index
from dinemap.etl.names import canonicalize_name
from dinemap.etl.similarity import duplicate_groups
from dinemap.models import DELETE_SENTINEL, PRICE_TIERS, UNKNOWN_NEIGHBORHOOD

logger = logging.getLogger(__name__)

# Override table keys mapped to record fields.
OVERRIDE_FIELDS = {
    "name": "name_override",
    "cuisine": "cuisine_override",
    "secondary_cuisine": "secondary_cuisine_override",
    "price": "price_override",
    "neighborhood": "neighborhood_override",
}


def _save(repository: RestaurantRepository, record, counts: Dict[str, int], key: str) -> None:
    """Write one record back; a store failure is counted and the pass continues."""
    try:
        repository.update_record(record)
    except StoreError as exc:
        logger.warning("Failed to update %s (%s): %s", record.name, record.id, exc)
        counts["failed"] += 1
        return
    counts[key] += 1


def recanonicalize_names(repository: RestaurantRepository) -> Dict[str, int]:
    counts = {"renamed": 0, "failed": 0}
    for record in repository.all_records():
        canonical = canonicalize_name(record.name)
        if canonical != record.name:
            logger.info("Renaming '%s' -> '%s'", record.name, canonical)
            record.name = canonical
            _save(repository, record, counts, "renamed")
    return counts


def reresolve_neighborhoods(
    repository: RestaurantRepository,
    index: Optional[NeighborhoodIndex] = None,
    max_miles: float = 5.0,
) -> Dict[str, int]:
    """Re-derive each record's neighborhood; unresolvable records are flagged."""
    index = index or default_index()
    counts = {"updated": 0, "flagged": 0, "unchanged": 0, "failed": 0}
    for record in repository.all_records():
        resolved = index.nearest(record.latitude, record.longitude, max_miles)
        if resolved == UNKNOWN_NEIGHBORHOOD:
            standardized = index.standardize(record.neighborhood, record.address, record.name)
            resolved = standardized if index.is_known(standardized) else UNKNOWN_NEIGHBORHOOD

        if resolved == UNKNOWN_NEIGHBORHOOD:
            if record.needs_review and record.neighborhood == UNKNOWN_NEIGHBORHOOD:
                counts["unchanged"] += 1
                continue
            logger.info("Flagging %s: neighborhood '%s' not recognised", record.name, record.neighborhood)
            record.neighborhood = UNKNOWN_NEIGHBORHOOD
            record.needs_review = True
            _save(repository, record, counts, "flagged")
        elif resolved != record.neighborhood:
            logger.info("Moving %s: '%s' -> '%s'", record.name, record.neighborhood, resolved)
            record.neighborhood = resolved
            _save(repository, record, counts, "updated")
        else:
            counts["unchanged"] += 1
    return counts


def report_duplicates(repository: RestaurantRepository) -> Dict[str, int]:
    groups = duplicate_groups(repository.all_records())
    for kind, by_value in groups.items():
        for value, records in by_value.items():
            logger.info("%s '%s': %s", kind, value, ", ".join(f"{r.name} ({r.id})" for r in records))
    return {kind: len(by_value) for kind, by_value in groups.items()}


def validate_overrides(overrides: Any, index: Optional[NeighborhoodIndex] = None) -> Dict[str, Dict[str, Any]]:
    """Reject override tables naming unknown fields, tiers, cuisines or neighborhoods."""
    if not isinstance(overrides, dict):
        raise ValueError("override file must contain a JSON object keyed by restaurant name")
    index = index or default_index()
    for name, fields in overrides.items():
        if not isinstance(fields, dict):
            raise ValueError(f"overrides for {name} must be an object")
        unknown = set(fields) - set(OVERRIDE_FIELDS)
        if unknown:
            raise ValueError(f"unknown override fields for {name}: {', '.join(sorted(unknown))}")
        price = fields.get("price")
        if price is not None and price not in PRICE_TIERS:
            raise ValueError(f"invalid price tier for {name}: {price}")
        for key in ("cuisine", "secondary_cuisine"):
            cuisine = fields.get(key)
            if cuisine is not None and cuisine not in CUISINES:
                raise ValueError(f"unknown {key} for {name}: {cuisine}")
        neighborhood = fields.get("neighborhood")
        if neighborhood is not None and not index.is_known(neighborhood):
            raise ValueError(f"unknown neighborhood for {name}: {neighborhood}")
    return overrides


def load_overrides(path: str, index: Optional[NeighborhoodIndex] = None) -> Dict[str, Dict[str, Any]]:
    """Read ``{"Record Name": {"cuisine": ..., "price": ...}, ...}`` from ``path``."""
    with open(path, encoding="utf-8") as handle:
        data = json.load(handle)
    return validate_overrides(data, index)


def apply_overrides(
    repository: RestaurantRepository,
    overrides: Dict[str, Dict[str, Any]],
    index: Optional[NeighborhoodIndex] = None,
) -> Dict[str, int]:
    """Write reviewed values into the override columns of matching records.

    Records are matched by name, case-insensitively. Inferred values are left
    in place. The whole table is validated before anything is written.
    """
    validate_overrides(overrides, index)
    by_name = {name.lower(): fields for name, fields in overrides.items()}
    counts = {"applied": 0, "missing": 0, "failed": 0}
    seen = set()
    for record in repository.all_records():
        fields = by_name.get(record.name.lower())
        if fields is None:
            continue
        seen.add(record.name.lower())
        for key, value in fields.items():
            setattr(record, OVERRIDE_FIELDS[key], value)
        if "cuisine" in fields or "neighborhood" in fields:
            record.needs_review = False
        _save(repository, record, counts, "applied")
    for name in by_name:
        if name not in seen:
            logger.warning("Override for '%s' matched no restaurant", name)
            counts["missing"] += 1
    return counts


def purge_deleted(repository: RestaurantRepository) -> Dict[str, int]:
    counts = {"deleted": 0, "failed": 0}
    for record in repository.all_records():
        if record.effective_cuisine != DELETE_SENTINEL:
            continue
        logger.info("Deleting %s (%s)", record.name, record.id)
        try:
            counts["deleted"] += repository.delete_record(record)
        except StoreError as exc:
            logger.warning("Failed to delete %s (%s): %s", record.name, record.id, exc)
            counts["failed"] += 1
    return counts


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Maintenance passes over stored restaurants")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("names", help="Re-canonicalize display names")
    sub.add_parser("neighborhoods", help="Re-resolve neighborhoods and flag unknown ones")
    sub.add_parser("duplicates", help="Report likely duplicate records")
    overrides = sub.add_parser("overrides", help="Apply a JSON override table")
    overrides.add_argument("file", help="Path to the override JSON file")
    sub.add_parser("purge", help="Delete records whose cuisine is overridden to Delete")
    sub.add_parser("schema", help="Create database tables")
    return parser


def run_command(args: argparse.Namespace, repository: Optional[RestaurantRepository] = None) -> Any:
    settings = get_settings()
    if args.command == "schema":
        settings.require("database_url")
        ensure_schema()
        return "schema ready"

    if repository is None:
        settings.require("database_url")
        init_pool()
        repository = RestaurantRepository(PostgresStore())

    if args.command == "names":
        return recanonicalize_names(repository)
    if args.command == "neighborhoods":
        return reresolve_neighborhoods(repository, max_miles=settings.neighborhood_max_miles)
    if args.command == "duplicates":
        return report_duplicates(repository)
    if args.command == "overrides":
        return apply_overrides(repository, load_overrides(args.file))
    if args.command == "purge":
        return purge_deleted(repository)
    raise ValueError(f"Unknown command: {args.command}")


def main(argv: Optional[list] = None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    args = build_parser().parse_args(argv)
    try:
        result = run_command(args)
    except ConfigError as exc:
        logger.error("%s", exc)
        raise SystemExit(2) from exc
    except Exception as exc:  # noqa: BLE001
        logger.exception("%s failed: %s", args.command, exc)
        raise SystemExit(1) from exc
    logger.info("%s: %s", args.command, result)


if __name__ == "__main__":
    main()
