"""Filtered lookup of stored performances, optionally ranked by a free-text vibe."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, or_

from .fetcher import parse_source_date
from .indexer import PerformanceIndexer
from .store import Performance, PerformanceStore

LOGGER = logging.getLogger(__name__)

DEFAULT_STATUS = "공연중"
DEFAULT_LIMIT = 6
WEEKDAY_CHARS = ("월", "화", "수", "목", "금")
DAY_CHARS = ("월", "화", "수", "목", "금", "토", "일")


@dataclass
class SearchFilters:
    date: Optional[str] = None  # YYYY-MM-DD, must fall inside the run
    day: Optional[str] = None  # "토요일", "주말", "평일", ...
    place: Optional[str] = None
    genre: Optional[str] = None
    status: Optional[str] = None
    price: Optional[str] = None
    query: Optional[str] = None  # free-text vibe; switches to similarity ranking


def build_day_condition(day: str):
    """SQL condition on time_info for a day-of-week phrase, or None if unrecognized."""
    column = Performance.time_info
    if "주말" in day:
        return or_(column.like("%토%"), column.like("%일요일%"), column.like("%주말%"))
    if "평일" in day:
        return or_(*[column.like(f"%{c}%") for c in WEEKDAY_CHARS + ("평일",)])
    char = day.replace("요일", "").strip()[:1]
    if char == "일":
        # bare "일" would also hit every "요일"
        return column.like("%일요일%")
    if char in DAY_CHARS:
        return column.like(f"%{char}%")
    return None


def build_conditions(filters: SearchFilters) -> List[Any]:
    conditions = [Performance.status == (filters.status or DEFAULT_STATUS)]
    if filters.place:
        conditions.append(Performance.place_name.like(f"%{filters.place}%"))
    if filters.genre:
        conditions.append(Performance.genre.like(f"%{filters.genre}%"))
    if filters.date:
        on = parse_source_date(filters.date)
        conditions.append(and_(Performance.start_date <= on, Performance.end_date >= on))
    if filters.price:
        keyword = "무료" if "무료" in filters.price else filters.price
        conditions.append(Performance.price.like(f"%{keyword}%"))
    if filters.day:
        cond = build_day_condition(filters.day)
        if cond is not None:
            conditions.append(cond)
    return conditions


def search_unified(
    store: PerformanceStore, filters: SearchFilters, limit: int = DEFAULT_LIMIT
) -> List[Dict[str, Any]]:
    """Plain filtered query, or similarity-ranked query when ``filters.query`` is set."""
    conditions = build_conditions(filters)
    with store.session() as session:
        q = session.query(Performance).filter(*conditions)
        if not filters.query:
            rows = q.order_by(Performance.start_date.asc()).limit(limit).all()
            return [r.to_dict() for r in rows]
        candidates = [
            r.to_dict() for r in q.filter(Performance.description.isnot(None)).all()
        ]

    if not candidates:
        return []
    indexer = PerformanceIndexer()
    indexer.fit(candidates)
    results = indexer.search(filters.query, top_k=limit)
    LOGGER.debug("vibe search %r ranked %d of %d candidates", filters.query, len(results), len(candidates))
    return results
