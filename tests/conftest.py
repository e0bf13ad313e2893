import pytest
import requests

from blog_digest.src import FetchError, Source, http_client
from blog_digest.src.scrapers import ScraperSettings, ScraperState


class FakeClient:
    """Async stand-in for ``HttpClient`` serving canned pages by URL."""

    def __init__(self, pages: dict[str, str | Exception] | None = None, default=None):
        self.pages = dict(pages or {})
        self.default = default
        self.requested: list[str] = []

    async def fetch_text(self, url: str, retries: int | None = None) -> str:
        self.requested.append(url)
        page = self.pages.get(url, self.default)
        if page is None:
            raise FetchError(url, "404 Not Found")
        if isinstance(page, Exception):
            raise page
        return page

    def count(self, url: str) -> int:
        return self.requested.count(url)


class FakeResponse:
    def __init__(self, text: str = "", status_code: int = 200):
        self.text = text
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")


@pytest.fixture
def fake_client():
    return FakeClient


@pytest.fixture
def fake_session(monkeypatch):
    """Patch ``requests.Session``; returns the list of recorded GET calls."""

    def install(*outcomes):
        calls: list[dict] = []
        remaining = list(outcomes)

        class FakeSession:
            def __enter__(self):
                return self

            def __exit__(self, *exc_info):
                return False

            def get(self, url, headers=None, timeout=None, allow_redirects=True):
                calls.append({"url": url, "headers": headers, "timeout": timeout})
                outcome = remaining.pop(0) if len(remaining) > 1 else remaining[0]
                if isinstance(outcome, BaseException):
                    raise outcome
                return outcome

        monkeypatch.setattr(http_client.requests, "Session", FakeSession)
        return calls

    return install


@pytest.fixture
def make_source():
    def factory(source_id: str = "example", **fields) -> Source:
        fields.setdefault("name", source_id.title())
        fields.setdefault("homepage", "https://example.com/")
        return Source(id=source_id, **fields)

    return factory


@pytest.fixture
def settings() -> ScraperSettings:
    return ScraperSettings(politeness_delay_seconds=0)


@pytest.fixture
def state() -> ScraperState:
    return ScraperState()


@pytest.fixture
def fake_response():
    return FakeResponse
