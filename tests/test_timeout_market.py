import requests
from bs4 import BeautifulSoup

from dinemap.vendors import timeout_market

PAGE = """
<html><body>
  <h1>Time Out Market Miami</h1>
  <div class="vendor-card"><h3>Pizza Bar by Michael Beltran</h3></div>
  <div class="vendor-card"><h3> Azucar   Ice Cream </h3></div>
  <div class="restaurant-tile"><h2>Pizza Bar by Michael Beltran</h2></div>
  <a href="/miami/vendors/coyo">Coyo Taco</a>
  <div class="vendor-card"><h3>Ok</h3></div>
  <script type="application/ld+json">{"@type": "Restaurant", "name": "Jose Mendin"}</script>
  <script type="application/ld+json">{"@type": "Organization", "name": "Time Out Group"}</script>
</body></html>
"""


class DummyResponse:
    def __init__(self, text="", content_type="text/html; charset=utf-8", status_code=200):
        self.text = text
        self.headers = {"Content-Type": content_type}
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class DummySession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def get(self, url, timeout=None, headers=None):
        self.calls.append((url, timeout))
        if self.error:
            raise self.error
        return self.response


def test_extract_vendor_names_dedupes_and_filters():
    names = timeout_market.extract_vendor_names(BeautifulSoup(PAGE, "html.parser"))

    assert names == ["Pizza Bar by Michael Beltran", "Azucar Ice Cream", "Coyo Taco", "Jose Mendin"]


def test_market_candidates_use_market_location():
    candidates = timeout_market.market_candidates(BeautifulSoup(PAGE, "html.parser"))

    assert len(candidates) == 4
    first = candidates[0]
    assert first.source == "timeout_market"
    assert first.address == "1601 Drexel Avenue, Miami Beach, FL"
    assert first.external_ref == "timeout-miami:pizza bar by michael beltran"
    assert first.neighborhood_hint == "South Beach"
    assert timeout_market.market_candidates(None) == []


def test_fetch_market_page(monkeypatch):
    session = DummySession(DummyResponse(PAGE))
    monkeypatch.setattr(timeout_market, "_SESSION", session)

    soup = timeout_market.fetch_market_page()

    assert soup.find("h1").get_text() == "Time Out Market Miami"
    assert session.calls == [(timeout_market.MARKET_URL, 10)]


def test_fetch_market_page_skips_non_html(monkeypatch):
    monkeypatch.setattr(timeout_market, "_SESSION", DummySession(DummyResponse("{}", content_type="application/json")))
    assert timeout_market.fetch_market_page() is None


def test_fetch_market_page_logs_request_errors(monkeypatch, caplog):
    monkeypatch.setattr(timeout_market, "_SESSION", DummySession(error=requests.ConnectionError("down")))

    with caplog.at_level("WARNING"):
        assert timeout_market.fetch_market_page() is None
    assert "Failed to fetch" in " ".join(caplog.messages)
