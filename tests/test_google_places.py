import pytest

from dinemap.vendors import google_places


class DummyResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload or {}

    def raise_for_status(self):
        if self.status_code >= 400:
            raise RuntimeError("http error")

    def json(self):
        return self._payload


class DummySession:
    def __init__(self):
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params, timeout))
        return self.response


@pytest.fixture(autouse=True)
def patch_session(monkeypatch):
    session = DummySession()
    monkeypatch.setattr(google_places, "_SESSION", session)
    return session


def test_text_search_success(patch_session):
    patch_session.response = DummyResponse(payload={"status": "OK", "results": []})
    payload = google_places.text_search("cuban restaurants in Little Havana", "key")
    assert payload["status"] == "OK"
    url, params, timeout = patch_session.calls[0]
    assert "textsearch" in url
    assert params["query"] == "cuban restaurants in Little Havana"
    assert "pagetoken" not in params
    assert timeout == 10


def test_text_search_passes_page_token(patch_session):
    patch_session.response = DummyResponse(payload={"status": "ZERO_RESULTS", "results": []})
    google_places.text_search("pizza", "key", pagetoken="next")
    assert patch_session.calls[0][1]["pagetoken"] == "next"


def test_text_search_error_status(patch_session):
    patch_session.response = DummyResponse(payload={"status": "INVALID_REQUEST", "error_message": "bad"})
    with pytest.raises(google_places.GooglePlacesError):
        google_places.text_search("pizza", "key")


def test_nearby_search_builds_location_and_price_filters(patch_session):
    patch_session.response = DummyResponse(payload={"status": "OK", "results": [{"name": "Zuma"}]})
    payload = google_places.nearby_search((25.7616, -80.1918), "key", radius=800, keyword="sushi", min_price=3, max_price=4)

    assert payload["results"][0]["name"] == "Zuma"
    url, params, _ = patch_session.calls[0]
    assert "nearbysearch" in url
    assert params["location"] == "25.7616,-80.1918"
    assert params["radius"] == 800
    assert params["type"] == "restaurant"
    assert params["keyword"] == "sushi"
    assert params["minprice"] == 3
    assert params["maxprice"] == 4


def test_nearby_search_with_token_sends_only_token(patch_session):
    patch_session.response = DummyResponse(payload={"status": "OK", "results": []})
    google_places.nearby_search((25.0, -80.0), "key", pagetoken="tok")
    assert patch_session.calls[0][1] == {"pagetoken": "tok", "key": "key"}


def test_place_details_success(patch_session):
    patch_session.response = DummyResponse(payload={"status": "OK", "result": {"name": "Versailles"}})
    result = google_places.place_details("pid", "key")
    assert result["name"] == "Versailles"
    assert "price_level" in patch_session.calls[0][1]["fields"]


def test_place_details_error(patch_session):
    patch_session.response = DummyResponse(payload={"status": "OVER_QUERY_LIMIT", "error_message": "limit"})
    with pytest.raises(google_places.GooglePlacesError):
        google_places.place_details("pid", "key")
