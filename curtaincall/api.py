"""Flask operator surface: manual trigger, diagnostics and search."""

import logging
from typing import Optional

import requests
from flask import Flask, request, jsonify
from flask_cors import CORS

from .collector import CrawlOrchestrator, build_collector
from .config import Settings
from .errors import CrawlInProgressError, SourceConfigError
from .fetcher import fetch_meta_description
from .search import SearchFilters, search_unified
from .store import PerformanceStore

LOGGER = logging.getLogger(__name__)

DEFAULT_LIMIT = 6
MIN_LIMIT = 1
DEFAULT_SAMPLE_LIMIT = 10
NO_META_TEXT = "메타 태그 없음"
NO_NEWS_TEXT = "검색 결과 없음"


def _int_arg(name: str, default: int, lo: int, hi: int) -> int:
    raw = request.args.get(name, None)
    try:
        value = int(raw) if raw is not None else default
    except (ValueError, TypeError):
        value = default
    return max(lo, min(value, hi))


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[PerformanceStore] = None,
    collector: Optional[CrawlOrchestrator] = None,
):
    settings = settings or Settings.from_env()
    if store is None:
        store = PerformanceStore(settings.database_url)
        store.create_all()
    collector = collector or build_collector(settings, store)

    app = Flask(__name__)
    CORS(app)
    app.config["COLLECTOR"] = collector
    app.config["STORE"] = store

    @app.route("/performances/collect", methods=["POST"])
    def trigger_collection():
        try:
            collector.start_background()
        except CrawlInProgressError:
            return jsonify({"message": "이미 데이터 수집이 진행 중입니다."}), 409
        return jsonify({"message": "데이터 수집이 시작되었습니다. 로그를 확인하세요."}), 202

    @app.route("/performances/collect-unit")
    def collect_unit():
        limit = _int_arg("limit", DEFAULT_SAMPLE_LIMIT, MIN_LIMIT, settings.max_limit)
        try:
            count = collector.collect_sample(limit)
        except CrawlInProgressError:
            return jsonify({"status": "BUSY", "message": "이미 데이터 수집이 진행 중입니다."}), 409
        return jsonify({"status": "SUCCESS", "message": f"테스트 수집 완료: 총 {count}개", "count": count})

    @app.route("/performances/naver-test")
    def naver_test():
        query = request.args.get("query", "")
        if not query:
            return jsonify({"message": "검색어를 입력해주세요. (?query=공연명)"}), 400
        result = collector.content.resolve_description(query, "THEATER")
        return jsonify({"keyword": query, "result_length": len(result), "clean_text": result})

    @app.route("/performances/kopis-raw")
    def kopis_raw():
        performance_id = request.args.get("id", "")
        if not performance_id:
            return jsonify({"message": "KOPIS 공연 ID(mt20id)를 입력해주세요."}), 400
        try:
            return jsonify(collector.source.fetch_raw_detail(performance_id))
        except SourceConfigError as e:
            return jsonify({"error": str(e)}), 503
        except requests.RequestException as e:
            return jsonify({"error": str(e)}), 502

    @app.route("/performances/crawl-test")
    def crawl_test():
        url = request.args.get("url", "")
        if not url:
            return jsonify({"message": "테스트할 URL을 입력해주세요. (?url=주소)"}), 400
        try:
            result = fetch_meta_description(url, timeout=settings.meta_timeout)
        except requests.RequestException as e:
            return jsonify({"target_url": url, "status": "ERROR", "error": str(e)}), 502
        if result is None:
            return jsonify(
                {"target_url": url, "status": "NO_META", "crawled_description": NO_META_TEXT, "length": 0}
            )
        return jsonify(
            {"target_url": url, "status": "SUCCESS", "crawled_description": result, "length": len(result)}
        )

    @app.route("/performances/news-test")
    def news_test():
        query = request.args.get("query", "")
        if not query:
            return jsonify({"message": "검색어를 입력해주세요."}), 400
        try:
            data = collector.content.find_best_news_snippet(query)
        except (requests.RequestException, ValueError) as e:
            return jsonify({"status": "ERROR", "search_keyword": query, "error": str(e)}), 502

        if data is None:
            return jsonify(
                {
                    "status": "FAIL",
                    "search_keyword": query,
                    "method": "NONE",
                    "source_title": "",
                    "summary": NO_NEWS_TEXT,
                    "length": 0,
                }
            )
        return jsonify(
            {
                "status": "SUCCESS",
                "search_keyword": query,
                "method": data.type,
                "source_title": data.source,
                "summary": data.result,
                "length": len(data.result),
            }
        )

    @app.route("/performances/search")
    def search():
        limit = _int_arg("limit", DEFAULT_LIMIT, MIN_LIMIT, settings.max_limit)
        filters = SearchFilters(
            date=request.args.get("date") or None,
            day=request.args.get("day") or None,
            place=request.args.get("region") or None,
            genre=request.args.get("genre") or None,
            status=request.args.get("status") or None,
            price=request.args.get("price") or None,
            query=request.args.get("vibe") or None,
        )
        results = search_unified(store, filters, limit=limit)
        for r in results:
            for k in ("start_date", "end_date", "updated_at"):
                if r.get(k) is not None:
                    r[k] = r[k].isoformat()
        return jsonify(results)

    return app
