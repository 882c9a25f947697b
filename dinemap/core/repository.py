"""Record-level access to the ``restaurants`` collection."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from dinemap.core.store import eq, has_items
from dinemap.models import BusinessRecord

logger = logging.getLogger(__name__)

RESTAURANTS = "restaurants"
EXTERNAL_REFS = "external_refs"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RestaurantRepository:
    """Maps store rows to :class:`BusinessRecord` objects.

    ``store`` is anything with the select/insert/update/delete interface of
    :class:`dinemap.core.store.InMemoryStore`.
    """

    def __init__(self, store: Any, clock=utcnow):
        self.store = store
        self._clock = clock

    def get(self, record_id: str) -> Optional[BusinessRecord]:
        rows = self.store.select(RESTAURANTS, [eq("id", record_id)], limit=1)
        return BusinessRecord.from_row(rows[0]) if rows else None

    def find_by_external_ref(self, source: str, external_ref: str) -> Optional[Dict[str, Any]]:
        """Return the claimed ref row for (source, external_ref), if any.

        A claim whose ``restaurant_id`` is still empty belongs to an insert in
        progress and still counts as a duplicate. Restaurant rows carrying the
        ref without a claim (seeded or migrated data) are found too.
        """
        rows = self.store.select(
            EXTERNAL_REFS,
            [eq("source", source), eq("external_ref", external_ref)],
            limit=1,
        )
        if rows:
            return rows[0]
        owners = self.store.select(RESTAURANTS, [has_items("external_refs", {source: external_ref})], limit=1)
        if owners:
            return {"source": source, "external_ref": external_ref, "restaurant_id": str(owners[0]["id"])}
        return None

    def records_in_neighborhood(self, neighborhood: str) -> List[BusinessRecord]:
        rows = self.store.select(RESTAURANTS, [eq("neighborhood", neighborhood)])
        return [BusinessRecord.from_row(row) for row in rows]

    def all_records(self) -> List[BusinessRecord]:
        return [BusinessRecord.from_row(row) for row in self.store.select(RESTAURANTS, order_by="name")]

    def _claim_refs(self, external_refs: Dict[str, str]) -> None:
        claims = [
            {"source": source, "external_ref": ref, "restaurant_id": None}
            for source, ref in external_refs.items()
            if ref
        ]
        if claims:
            self.store.insert(EXTERNAL_REFS, claims)

    def _release_refs(self, external_refs: Dict[str, str]) -> None:
        for source, ref in external_refs.items():
            self.store.delete(EXTERNAL_REFS, [eq("source", source), eq("external_ref", ref)])

    def _bind_refs(self, external_refs: Dict[str, str], record_id: str) -> None:
        for source, ref in external_refs.items():
            self.store.update(
                EXTERNAL_REFS,
                {"restaurant_id": record_id},
                [eq("source", source), eq("external_ref", ref)],
            )

    def insert_record(self, record: BusinessRecord) -> BusinessRecord:
        """Persist a new record; raises DuplicateRecordError when a ref is taken."""
        self._claim_refs(record.external_refs)
        record.last_updated = self._clock()
        row = record.to_row()
        row.pop("id", None)
        try:
            stored = self.store.insert(RESTAURANTS, row)[0]
        except Exception:
            self._release_refs(record.external_refs)
            raise
        record.id = str(stored["id"])
        self._bind_refs(record.external_refs, record.id)
        logger.debug("Inserted restaurant %s (%s)", record.name, record.id)
        return record

    def update_record(self, record: BusinessRecord, new_refs: Optional[Dict[str, str]] = None) -> BusinessRecord:
        """Write back a mutated record, claiming any newly attached refs first."""
        if record.id is None:
            raise ValueError("cannot update a record without an id")
        if new_refs:
            self._claim_refs(new_refs)
            self._bind_refs(new_refs, record.id)
        record.last_updated = self._clock()
        values = record.to_row()
        values.pop("id", None)
        self.store.update(RESTAURANTS, values, [eq("id", record.id)])
        return record

    def delete_record(self, record: BusinessRecord) -> int:
        if record.id is None:
            return 0
        self.store.delete(EXTERNAL_REFS, [eq("restaurant_id", record.id)])
        return self.store.delete(RESTAURANTS, [eq("id", record.id)])
