import pytest
import requests

from curtaincall.config import Settings
from curtaincall.store import PerformanceStore


class FakeResponse:
    def __init__(self, status_code=200, json_data=None, text=""):
        self.status_code = status_code
        self._json = json_data
        self.text = text

    def json(self):
        if self._json is None:
            raise ValueError("no json body")
        return self._json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)


class FakeSession:
    """Stands in for requests.Session; ``handler(url, params)`` builds each response."""

    def __init__(self, handler):
        self.handler = handler
        self.calls = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": dict(params or {}), "headers": dict(headers or {})})
        result = self.handler(url, dict(params or {}))
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def fake_session():
    return FakeSession


@pytest.fixture
def response():
    return FakeResponse


@pytest.fixture
def settings():
    return Settings(
        kopis_api_key="kopis-key",
        kakao_api_key="kakao-key",
        naver_client_id="naver-id",
        naver_client_secret="naver-secret",
        database_url="sqlite://",
        item_delay=0,
        page_delay=0,
    )


@pytest.fixture
def store():
    s = PerformanceStore("sqlite://")
    s.create_all()
    return s
