import threading
import time

import pytest
import requests

from curtaincall import api as api_module
from curtaincall.api import create_app
from curtaincall.collector import CrawlOrchestrator
from curtaincall.config import Settings
from curtaincall.content import ContentResolver
from curtaincall.errors import SourceConfigError
from curtaincall.models import NewsSnippet, RawDetail, RawListItem
from curtaincall.pacing import Pacer
from curtaincall.store import Reconciler


class StubSource:
    configured = True

    def __init__(self, raw=None, error=None):
        self.raw = raw
        self.error = error

    def fetch_list(self, category, page, date_from, date_to):
        return [RawListItem(id="PF1")] if page == 1 else []

    def fetch_detail(self, performance_id):
        return RawDetail(id=performance_id, title="테스트 공연", synopsis="재미있는 공연입니다.", status="공연중")

    def fetch_raw_detail(self, performance_id):
        if self.error:
            raise self.error
        return self.raw


class GatedSource(StubSource):
    def __init__(self):
        super().__init__()
        self.release = threading.Event()

    def fetch_list(self, category, page, date_from, date_to):
        self.release.wait(5)
        return super().fetch_list(category, page, date_from, date_to)


class StubContent:
    def __init__(self, description="", snippet=None, error=None):
        self.description = description
        self.snippet = snippet
        self.error = error

    def resolve_description(self, title, category):
        return self.description

    def find_best_news_snippet(self, keyword):
        if self.error:
            raise self.error
        return self.snippet


class StubPlaces:
    def resolve_coordinates(self, raw_address, raise_errors=False):
        return None


def _app(store, source=None, content=None):
    settings = Settings(kopis_api_key="k", database_url="sqlite://", categories=("AAAA",), max_limit=20)
    collector = CrawlOrchestrator(
        settings,
        source=source or StubSource(),
        content=content or StubContent(),
        places=StubPlaces(),
        reconciler=Reconciler(store),
        pacer=Pacer(0, 0),
    )
    app = create_app(settings=settings, store=store, collector=collector)
    app.config["TESTING"] = True
    return app, collector


def test_collect_rejected_while_running(store):
    app, collector = _app(store)
    client = app.test_client()

    collector._lock.acquire()
    try:
        resp = client.post("/performances/collect")
        assert resp.status_code == 409
    finally:
        collector._lock.release()


def test_back_to_back_collect_triggers_start_one_run(store):
    source = GatedSource()
    app, collector = _app(store, source=source)
    client = app.test_client()

    first = client.post("/performances/collect")
    second = client.post("/performances/collect")

    assert first.status_code == 202
    assert second.status_code == 409
    source.release.set()
    for _ in range(500):
        if not collector.is_running:
            break
        time.sleep(0.01)
    assert not collector.is_running
    assert store.get("PF1") is not None


def test_collect_unit_runs_sample_and_reports_count(store):
    app, _ = _app(store)
    resp = app.test_client().get("/performances/collect-unit?limit=500")
    body = resp.get_json()
    assert resp.status_code == 200
    assert body["status"] == "SUCCESS"
    assert body["count"] == 1
    assert store.get("PF1").title == "테스트 공연"


def test_naver_test_requires_query(store):
    app, _ = _app(store, content=StubContent(description="줄거리 요약"))
    client = app.test_client()
    assert client.get("/performances/naver-test").status_code == 400
    body = client.get("/performances/naver-test?query=햄릿").get_json()
    assert body == {"keyword": "햄릿", "result_length": 6, "clean_text": "줄거리 요약"}


@pytest.mark.parametrize(
    "error,status",
    [(SourceConfigError("KOPIS API key missing"), 503), (requests.ConnectionError("down"), 502)],
)
def test_kopis_raw_errors(store, error, status):
    app, _ = _app(store, source=StubSource(error=error))
    assert app.test_client().get("/performances/kopis-raw?id=PF1").status_code == status


def test_kopis_raw_passthrough(store):
    raw = {"dbs": {"db": {"mt20id": "PF1"}}}
    app, _ = _app(store, source=StubSource(raw=raw))
    assert app.test_client().get("/performances/kopis-raw?id=PF1").get_json() == raw


def test_crawl_test_statuses(store, monkeypatch):
    app, _ = _app(store)
    client = app.test_client()

    monkeypatch.setattr(api_module, "fetch_meta_description", lambda url, timeout: None)
    body = client.get("/performances/crawl-test?url=https://example.com").get_json()
    assert body["status"] == "NO_META"
    assert body["crawled_description"] == "메타 태그 없음"

    monkeypatch.setattr(api_module, "fetch_meta_description", lambda url, timeout: "소개글")
    body = client.get("/performances/crawl-test?url=https://example.com").get_json()
    assert body == {"target_url": "https://example.com", "status": "SUCCESS", "crawled_description": "소개글", "length": 3}

    def boom(url, timeout):
        raise requests.Timeout("slow")

    monkeypatch.setattr(api_module, "fetch_meta_description", boom)
    resp = client.get("/performances/crawl-test?url=https://example.com")
    assert resp.status_code == 502
    assert resp.get_json()["status"] == "ERROR"


def test_news_test_statuses(store):
    app, _ = _app(store, content=StubContent())
    body = app.test_client().get("/performances/news-test?query=햄릿").get_json()
    assert body["status"] == "FAIL"
    assert body["summary"] == "검색 결과 없음"

    snippet = NewsSnippet(type="NAVER_API_SNIPPET", source="기사 제목", result="덴마크 왕자의 이야기다.")
    app, _ = _app(store, content=StubContent(snippet=snippet))
    body = app.test_client().get("/performances/news-test?query=햄릿").get_json()
    assert body["status"] == "SUCCESS"
    assert body["source_title"] == "기사 제목"
    assert body["length"] == len(snippet.result)

    app, _ = _app(store, content=StubContent(error=requests.ConnectionError("down")))
    resp = app.test_client().get("/performances/news-test?query=햄릿")
    assert resp.status_code == 502


def test_search_endpoint_returns_iso_dates(store):
    app, collector = _app(store)
    collector.collect_sample(1)
    resp = app.test_client().get("/performances/search?limit=0")
    rows = resp.get_json()
    assert resp.status_code == 200
    assert len(rows) == 1
    assert rows[0]["id"] == "PF1"
    assert len(rows[0]["start_date"]) == 10


def test_real_content_resolver_type_is_used_by_default(store):
    settings = Settings(database_url="sqlite://")
    app = create_app(settings=settings, store=store)
    assert isinstance(app.config["COLLECTOR"].content, ContentResolver)
