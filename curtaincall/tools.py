"""Command-dispatch tool surface for programmatic querying.

Each tool is a name, a description of its arguments and a handler taking
keyword arguments; ``dispatch`` looks the tool up by name and returns a
``{"content": [{"type": "text", "text": ...}]}`` payload.
"""

import re
import datetime
from typing import Any, Callable, Dict, List, Optional

from .search import SearchFilters, search_unified
from .store import PerformanceStore

NOT_FOUND_TEXT = "조건에 맞는 공연을 찾을 수 없습니다."
STATUSES = ("공연중", "공연예정")

_ACTORS_RE = re.compile(r"(출연|캐스팅|배우)[:\s]+([^.,\n]+)")

SEARCH_SCHEMA = {
    "date": "특정 날짜 (YYYY-MM-DD)",
    "day_of_week": "요일 (예: 월요일, 주말)",
    "region": "장소/지역명 (예: 서울, 강남, 대학로)",
    "genre": "장르 (예: 뮤지컬, 연극)",
    "status": "공연 상태 (공연중 | 공연예정, 기본값 공연중)",
    "vibe_and_content": "공연의 분위기, 내용, 줄거리 등 (예: \"슬프고 감동적인\")",
    "price_info": "가격 관련 정보 (예: 5만원 이하, 무료)",
}


def extract_actors(description: Optional[str]) -> str:
    if not description:
        return ""
    m = _ACTORS_RE.search(description)
    return m.group(2).strip() if m else ""


def _iso(value: Any) -> str:
    if isinstance(value, datetime.date):
        return value.isoformat()
    return str(value or "")


def format_result(p: Dict[str, Any]) -> str:
    description = p.get("description") or ""
    return "\n".join(
        [
            "---------",
            f"[{p.get('genre') or '장르미상'}] {p.get('title')}",
            f"- 요일/시간: {p.get('time_info') or '상세정보 확인'} ({_iso(p.get('start_date'))} ~ {_iso(p.get('end_date'))})",
            f"- 장소: {p.get('place_name')}",
            f"- 가격: {p.get('price') or '가격정보 없음'}",
            f"- 배우/캐스팅: {extract_actors(description) or '상세페이지 참조'}",
            f"- 내용/분위기: {description[:150]}...",
            f"- 비고: {p.get('status')}",
            "---------",
        ]
    )


def _text_payload(text: str) -> Dict[str, Any]:
    return {"content": [{"type": "text", "text": text}]}


def format_results(results: List[Dict[str, Any]]) -> Dict[str, Any]:
    if not results:
        return _text_payload(NOT_FOUND_TEXT)
    body = "\n".join(format_result(p) for p in results)
    return _text_payload(f"검색 결과입니다:\n{body}")


def search_culture_events(
    store: PerformanceStore,
    date: Optional[str] = None,
    day_of_week: Optional[str] = None,
    region: Optional[str] = None,
    genre: Optional[str] = None,
    status: Optional[str] = None,
    vibe_and_content: Optional[str] = None,
    price_info: Optional[str] = None,
    limit: int = 6,
) -> Dict[str, Any]:
    if status is not None and status not in STATUSES:
        raise ValueError(f"status must be one of {STATUSES}")
    filters = SearchFilters(
        date=date,
        day=day_of_week,
        place=region,
        genre=genre,
        status=status or STATUSES[0],
        price=price_info,
        query=vibe_and_content or None,
    )
    return format_results(search_unified(store, filters, limit=limit))


TOOLS: Dict[str, Dict[str, Any]] = {
    "search_culture_events": {
        "description": "공연 검색 (날짜, 요일, 지역, 장르, 상태, 가격, 분위기)",
        "schema": SEARCH_SCHEMA,
        "handler": search_culture_events,
    },
}


def dispatch(name: str, arguments: Optional[Dict[str, Any]], store: PerformanceStore) -> Dict[str, Any]:
    """Run tool ``name`` with ``arguments``; unknown names raise KeyError."""
    tool = TOOLS[name]
    handler: Callable[..., Dict[str, Any]] = tool["handler"]
    args = {k: v for k, v in (arguments or {}).items() if k in tool["schema"] or k == "limit"}
    return handler(store, **args)
