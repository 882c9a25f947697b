import pytest

from dinemap.etl.geo import MIAMI_NEIGHBORHOODS, NeighborhoodIndex, haversine_miles


@pytest.fixture
def index():
    return NeighborhoodIndex()


def test_haversine_zero_and_known_distance():
    assert haversine_miles(25.7907, -80.13, 25.7907, -80.13) == 0
    # One degree of latitude is roughly 69 miles.
    assert haversine_miles(25.0, -80.0, 26.0, -80.0) == pytest.approx(69.1, abs=0.2)


@pytest.mark.parametrize("name,lat,lng", MIAMI_NEIGHBORHOODS)
def test_center_resolves_to_itself(index, name, lat, lng):
    assert index.nearest(lat, lng) == name


def test_far_coordinates_are_unknown(index):
    # Orlando
    assert index.nearest(28.5383, -81.3792) == "Unknown"


def test_cutoff_is_configurable(index):
    # ~3.5 miles west of Coral Gables
    lat, lng = 25.7505, -80.3150
    assert index.nearest(lat, lng) == "Coral Gables"
    assert index.nearest(lat, lng, max_miles=1.0) == "Unknown"


def test_missing_coordinates_are_unknown(index):
    assert index.nearest(None, -80.2) == "Unknown"
    assert index.nearest(25.7, None) == "Unknown"


def test_first_entry_wins_ties():
    index = NeighborhoodIndex(centers=(("A", 25.0, -80.0), ("B", 25.0, -80.0)), adjacency={})
    assert index.nearest(25.0, -80.0) == "A"


def test_little_havana_point(index):
    assert index.nearest(25.7668, -80.2198) == "Little Havana"


def test_nearby(index):
    assert "Brickell" in index.nearby("Little Havana")
    assert index.nearby("Atlantis") == []


def test_standardize_aliases_names_and_addresses(index):
    assert index.standardize("SoBe") == "South Beach"
    assert index.standardize("design district") == "Miami Design District"
    assert index.standardize("brickell") == "Brickell"
    assert index.standardize("", address="3555 SW 8th St, Miami, FL") == "Little Havana"
    assert index.standardize(None, address="1 Lincoln Rd, Miami Beach") == "South Beach"


def test_standardize_returns_unrecognised_text(index):
    assert index.standardize("  Kendall ") == "Kendall"
    assert index.standardize(None) is None
    assert not index.is_known("Kendall")
    assert index.is_known("Wynwood")
