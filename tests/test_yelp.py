import pytest

from dinemap.vendors import yelp


class DummyResponse:
    def __init__(self, status_code=200, payload=None, invalid_json=False):
        self.status_code = status_code
        self._payload = payload or {}
        self._invalid_json = invalid_json

    def json(self):
        if self._invalid_json:
            raise ValueError("not json")
        return self._payload


class DummySession:
    def __init__(self):
        self.calls = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append((url, params, headers, timeout))
        return self.response


@pytest.fixture(autouse=True)
def patch_session(monkeypatch):
    session = DummySession()
    monkeypatch.setattr(yelp, "_SESSION", session)
    return session


def test_search_businesses_sends_bearer_token(patch_session):
    patch_session.response = DummyResponse(payload={"businesses": [{"id": "v-1"}], "total": 1})

    payload = yelp.search_businesses("cuban", "Little Havana, Miami, FL", "secret", offset=50, limit=80)

    assert payload["businesses"][0]["id"] == "v-1"
    url, params, headers, timeout = patch_session.calls[0]
    assert url.endswith("/businesses/search")
    assert headers["Authorization"] == "Bearer secret"
    assert params["offset"] == 50
    assert params["limit"] == yelp.MAX_PAGE_SIZE
    assert params["categories"] == "restaurants,food"
    assert timeout == 10


def test_search_businesses_raises_with_api_description(patch_session):
    patch_session.response = DummyResponse(
        status_code=401, payload={"error": {"code": "TOKEN_INVALID", "description": "Invalid access token"}}
    )
    with pytest.raises(yelp.YelpError, match="Invalid access token"):
        yelp.search_businesses("pizza", "Miami, FL", "bad")


def test_search_businesses_raises_on_non_json_error(patch_session):
    patch_session.response = DummyResponse(status_code=500, invalid_json=True)
    with pytest.raises(yelp.YelpError, match="500"):
        yelp.search_businesses("pizza", "Miami, FL", "key")
