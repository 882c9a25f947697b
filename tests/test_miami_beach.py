import pytest
import requests

from dinemap.vendors import miami_beach


class DummyResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload if payload is not None else {}

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

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
    monkeypatch.setattr(miami_beach, "_SESSION", session)
    return session


def test_search_businesses_uses_restaurant_category(patch_session):
    patch_session.response = DummyResponse(payload={"businesses": [{"bus_name": "Joe's"}], "total": 1})

    businesses = miami_beach.search_businesses("https://api.example/search")

    assert businesses == [{"bus_name": "Joe's"}]
    url, params, timeout = patch_session.calls[0]
    assert url == "https://api.example/search"
    assert params == {"category_filter": 361, "limit": 341}
    assert timeout == 10


def test_search_businesses_wraps_http_errors(patch_session):
    patch_session.response = DummyResponse(status_code=503)
    with pytest.raises(miami_beach.MiamiBeachError):
        miami_beach.search_businesses("https://api.example/search")


def test_search_businesses_requires_business_list(patch_session):
    patch_session.response = DummyResponse(payload={"total": 0})
    with pytest.raises(miami_beach.MiamiBeachError):
        miami_beach.search_businesses("https://api.example/search")
