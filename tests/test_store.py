import pytest

from dinemap.core.store import (
    DuplicateRecordError,
    InMemoryStore,
    StoreError,
    any_of,
    contains,
    eq,
    has_items,
    ilike,
    in_,
    is_null,
    row_matches,
)


@pytest.fixture
def store():
    return InMemoryStore(
        {
            "restaurants": [
                {"id": "1", "name": "Versailles", "neighborhood": "Little Havana", "rating": 4.2},
                {"id": "2", "name": "Joe's Stone Crab", "neighborhood": "South Beach", "rating": 4.6},
                {"id": "3", "name": "La Carreta", "neighborhood": "Little Havana", "rating": None},
            ],
            "activities": [{"id": "a1", "name": "Vizcaya", "tags": ["museum", "gardens"]}],
        }
    )


def test_select_filters_and_orders_with_nulls_last(store):
    rows = store.select("restaurants", order_by="rating", descending=True)
    assert [row["id"] for row in rows] == ["2", "1", "3"]

    rows = store.select("restaurants", [eq("neighborhood", "Little Havana")], order_by="name")
    assert [row["name"] for row in rows] == ["La Carreta", "Versailles"]


def test_select_limit_offset(store):
    rows = store.select("restaurants", order_by="name", limit=1, offset=1)
    assert [row["name"] for row in rows] == ["La Carreta"]


def test_select_returns_copies(store):
    row = store.select("restaurants", [eq("id", "1")])[0]
    row["name"] = "Changed"
    assert store.select("restaurants", [eq("id", "1")])[0]["name"] == "Versailles"


def test_predicates():
    row = {"name": "Joe's Stone Crab", "tags": ["seafood", "classic"], "closed": None}
    assert row_matches(row, [ilike("name", "%stone%")])
    assert not row_matches(row, [ilike("name", "stone%")])
    assert row_matches(row, [contains("tags", ["seafood"])])
    assert not row_matches(row, [contains("tags", ["pizza"])])
    assert row_matches(row, [is_null("closed")])
    assert row_matches(row, [in_("name", ["Joe's Stone Crab", "Other"])])
    assert row_matches(row, [any_of(eq("name", "Nope"), ilike("name", "joe%"))])
    assert not row_matches(row, [any_of(eq("name", "Nope")), ilike("name", "joe%")])


def test_insert_assigns_ids_and_enforces_unique_keys():
    store = InMemoryStore()
    inserted = store.insert("external_refs", {"source": "yelp", "external_ref": "abc", "restaurant_id": None})
    assert inserted[0]["id"]

    with pytest.raises(DuplicateRecordError):
        store.insert("external_refs", {"source": "yelp", "external_ref": "abc"})

    # A different source with the same ref is allowed.
    store.insert("external_refs", {"source": "google", "external_ref": "abc"})
    assert len(store.select("external_refs")) == 2


def test_batch_insert_with_internal_duplicate_is_rejected():
    store = InMemoryStore()
    with pytest.raises(DuplicateRecordError):
        store.insert(
            "external_refs",
            [{"source": "yelp", "external_ref": "x"}, {"source": "yelp", "external_ref": "x"}],
        )
    assert store.select("external_refs") == []


def test_update_and_delete_require_filters(store):
    with pytest.raises(StoreError):
        store.update("restaurants", {"name": "x"}, [])
    with pytest.raises(StoreError):
        store.delete("restaurants", [])

    assert store.update("restaurants", {"rating": 4.0}, [eq("neighborhood", "Little Havana")]) == 2
    assert store.delete("restaurants", [eq("id", "2")]) == 1
    assert {row["rating"] for row in store.select("restaurants")} == {4.0}


def test_unknown_collection_is_rejected(store):
    with pytest.raises(StoreError):
        store.select("users")


def test_has_items_predicate():
    row = {"external_refs": {"yelp": "versailles-123", "google": "pid-1"}, "tags": ["cuban"]}
    assert row_matches(row, [has_items("external_refs", {"yelp": "versailles-123"})])
    assert not row_matches(row, [has_items("external_refs", {"yelp": "other"})])
    assert not row_matches(row, [has_items("external_refs", {"serpapi": "versailles-123"})])
    assert not row_matches(row, [has_items("tags", {"yelp": "versailles-123"})])
