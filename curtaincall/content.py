"""Find a narrative description for a performance title.

Three sources are tried in strict order and the first acceptable hit wins:

1. encyclopedia lookup, accepted only on a title containment match;
2. news snippets, scored for plot-like content and spam;
3. blog lookup, accepted only on a title containment match.

Every stage failure is a miss; ``resolve_description`` never raises.
"""

import logging
from typing import List, Optional, Sequence, Tuple

import requests

from .config import Settings
from .models import NewsSnippet, SearchItem
from .text import clean, is_title_matched, strip_qualifiers

LOGGER = logging.getLogger(__name__)

NAVER_SEARCH_URL = "https://openapi.naver.com/v1/search/{kind}.json"

GENRE_PREFIXES = {"THEATER": "연극", "MUSICAL": "뮤지컬"}

SPAM_KEYWORDS = ("랭키파이", "트렌드", "순위", "할인", "티켓오픈", "캐스팅", "독후감", "발매")
PLOT_KEYWORDS = ("줄거리", "시놉시스", "내용은", "사건", "배경", "그린", "다룬", "이야기")
DECLARATIVE_ENDING = "다."
MIN_SNIPPET_LENGTH = 30


def build_search_keyword(title: str, category: str) -> Tuple[str, str]:
    """Return (bare title, search keyword) for a title and category type."""
    bare = strip_qualifiers(title)
    prefix = GENRE_PREFIXES.get(category, GENRE_PREFIXES["MUSICAL"])
    return bare, f"{prefix} {bare}"


def score_news_item(item: SearchItem) -> int:
    text = item.description
    title = item.title
    score = 0
    if any(k in text or k in title for k in SPAM_KEYWORDS):
        score -= 100
    for k in PLOT_KEYWORDS:
        if k in text:
            score += 10
    if DECLARATIVE_ENDING in text:
        score += 20
    if len(text) < MIN_SNIPPET_LENGTH:
        score -= 20
    return score


def select_best_item(items: Sequence[SearchItem]) -> Optional[SearchItem]:
    """Highest scoring item if its score is positive; ties keep result order."""
    if not items:
        return None
    ranked = sorted(((score_news_item(it), it) for it in items), key=lambda p: -p[0])
    best_score, best = ranked[0]
    return best if best_score > 0 else None


class ContentResolver:
    def __init__(self, settings: Settings, session: Optional[requests.Session] = None):
        self.client_id = settings.naver_client_id
        self.client_secret = settings.naver_client_secret
        self.timeout = settings.http_timeout
        self.session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def search(self, kind: str, query: str, display: int = 1) -> List[SearchItem]:
        """Call one search endpoint (``encyc``, ``news`` or ``blog``)."""
        resp = self.session.get(
            NAVER_SEARCH_URL.format(kind=kind),
            params={"query": query, "display": display, "sort": "sim"},
            headers={
                "X-Naver-Client-Id": self.client_id or "",
                "X-Naver-Client-Secret": self.client_secret or "",
            },
            timeout=self.timeout,
        )
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, dict):
            LOGGER.warning("%s search for %r returned a non-object payload", kind, query)
            data = {}
        items = data.get("items")
        if not isinstance(items, list):
            items = []
        return [
            SearchItem(
                title=clean(str(it.get("title") or "")),
                description=clean(str(it.get("description") or "")),
                link=it.get("link"),
            )
            for it in items
            if isinstance(it, dict)
        ]

    def _first_matching(self, kind: str, query: str, bare_title: str) -> Optional[SearchItem]:
        items = self.search(kind, query, display=1)
        if items and is_title_matched(bare_title, items[0].title):
            return items[0]
        return None

    def find_best_news_snippet(self, keyword: str) -> Optional[NewsSnippet]:
        """Pick the most synopsis-like news snippet for a keyword.

        Transport errors propagate; callers that need a miss instead wrap it.
        """
        query = f'"{keyword}" (줄거리 | 시놉시스 | 내용)'
        items = self.search("news", query, display=10)
        best = select_best_item(items)
        if best is None:
            return None
        return NewsSnippet(type="NAVER_API_SNIPPET", source=best.title, result=best.description)

    def resolve_description(self, title: str, category: str) -> str:
        if not self.configured:
            LOGGER.warning("[%s] Naver credentials missing; description search skipped", title)
            return ""

        bare, keyword = build_search_keyword(title, category)

        try:
            hit = self._first_matching("encyc", keyword, bare)
            if hit:
                LOGGER.info("encyclopedia hit for %r: %s", title, hit.title)
                return hit.description
        except Exception as e:
            LOGGER.warning("[%s] encyclopedia search failed: %s", title, e)

        try:
            snippet = self.find_best_news_snippet(keyword)
            if snippet:
                LOGGER.info("news snippet hit for %r: %s...", title, snippet.result[:30])
                return snippet.result
        except Exception as e:
            LOGGER.warning("[%s] news search failed: %s", title, e)

        try:
            hit = self._first_matching("blog", f'"{keyword}" 줄거리 -후기 -리뷰', bare)
            if hit:
                LOGGER.info("blog hit for %r: %s", title, hit.title)
                return hit.description
        except Exception as e:
            LOGGER.warning("[%s] blog search failed: %s", title, e)

        LOGGER.warning("[%s] no description found in any source", title)
        return ""
