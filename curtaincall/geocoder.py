"""Resolve free-form venue names to coordinates via keyword-search geocoding.

Venue names coming from the primary source are noisy: duplicated
parentheticals, hall names in brackets, stray spacing. We normalize the
name, derive a list of progressively less specific candidate queries and
try them one at a time until the geocoder returns a document.
"""

import logging
import re
from typing import List, Optional

import requests

from .config import Settings
from .errors import GeocodingAuthError
from .models import Coordinates, GeoDocument

LOGGER = logging.getLogger(__name__)

KAKAO_KEYWORD_URL = "https://dapi.kakao.com/v2/local/search/keyword.json"

_DUP_PAREN_RE = re.compile(r"\(([^)]+)\)\s*\(\1\)")
_DUP_SQUARE_RE = re.compile(r"\[([^\]]+)\]\s*\[\1\]")
_PAREN_SPLIT_RE = re.compile(r"\s*\(\s*")
_PAREN_SEGMENT_RE = re.compile(r"\([^)]*\)")
_PAREN_INNER_RE = re.compile(r"\(([^)]+)\)")


def normalize_address(raw_address: str) -> str:
    """Collapse duplicated segments and tidy spacing of a venue name.

    >>> normalize_address("아트센터 (아트센터)")
    '아트센터'
    """
    text = (raw_address or "").strip()

    text = _DUP_PAREN_RE.sub(r"(\1)", text)
    text = _DUP_SQUARE_RE.sub(r"[\1]", text)

    # "X (X ...)" or "X ... (X)": keep the main segment only
    parts = _PAREN_SPLIT_RE.split(text)
    if len(parts) > 1:
        main = parts[0].strip()
        first = parts[1].replace(")", "").strip()
        if main and first and (main in first or first in main):
            text = main

    text = re.sub(r"\s+", " ", text).strip()
    text = re.sub(r"([(\[])\s+", r"\1", text)
    text = re.sub(r"\s+([)\]])", r"\1", text)
    return text


def build_candidate_queries(raw_address: str) -> List[str]:
    """Ordered candidate queries, most specific first, without duplicates."""
    normalized = normalize_address(raw_address)
    candidates = [
        normalized,
        normalized.replace("[", "").replace("]", ""),
        " ".join(_PAREN_SEGMENT_RE.sub(" ", normalized).split()),
    ]
    candidates.extend(m.strip() for m in _PAREN_INNER_RE.findall(normalized))
    candidates.extend(normalized.split())

    seen = set()
    out: List[str] = []
    for q in candidates:
        if q in seen:
            continue
        seen.add(q)
        out.append(q)
    return out


class PlaceResolver:
    """Keyword-search geocoder client (Kakao Local)."""

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None):
        self.api_key = settings.kakao_api_key
        self.timeout = settings.http_timeout
        self.session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def search_keyword(self, query: str) -> List[GeoDocument]:
        """Issue one keyword search asking for a single best match.

        Raises GeocodingAuthError on HTTP 403; other HTTP errors propagate
        as requests exceptions.
        """
        resp = self.session.get(
            KAKAO_KEYWORD_URL,
            params={"query": query, "size": 1},
            headers={"Authorization": f"KakaoAK {self.api_key}"},
            timeout=self.timeout,
        )
        if resp.status_code == 403:
            detail = None
            try:
                detail = resp.json()
            except ValueError:
                pass
            raise GeocodingAuthError("geocoding credential rejected (403)", detail=detail)
        resp.raise_for_status()
        data = resp.json() or {}
        total = (data.get("meta") or {}).get("total_count", 0)
        docs = [GeoDocument.from_json(d) for d in data.get("documents") or []]
        LOGGER.debug("geocode %r: total_count=%s documents=%d", query, total, len(docs))
        return docs

    def resolve_coordinates(
        self, raw_address: str, raise_errors: bool = False
    ) -> Optional[Coordinates]:
        """Resolve a venue name to coordinates, or None when nothing matches.

        An authentication failure aborts the whole resolution and is raised
        to the caller. Any other transport failure is logged and treated as
        unresolved, unless ``raise_errors`` is set, in which case it is
        re-raised so the caller can tell a failed lookup from a miss.
        """
        if not self.configured:
            LOGGER.warning("Kakao local API key missing; skipping coordinate lookup")
            return None

        queries = build_candidate_queries(raw_address)
        LOGGER.info(
            "geocoding %r with %d candidate queries: %s", raw_address, len(queries), queries
        )

        try:
            for i, query in enumerate(queries, start=1):
                if not query.strip():
                    LOGGER.debug("candidate %d is blank, skipped", i)
                    continue
                for doc in self.search_keyword(query):
                    coords = doc.coordinates()
                    if coords is not None:
                        LOGGER.info(
                            "geocoded %r via %r -> (%s, %s) %s",
                            raw_address,
                            query,
                            coords.latitude,
                            coords.longitude,
                            doc.place_name,
                        )
                        return coords
                LOGGER.debug("no result for candidate %d %r", i, query)
        except GeocodingAuthError as e:
            LOGGER.error("geocoding auth failed for %r: %s (%s)", raw_address, e, e.detail)
            raise
        except requests.RequestException as e:
            LOGGER.error("geocoding failed for %r: %s", raw_address, e)
            if raise_errors:
                raise
            return None

        LOGGER.warning("no coordinates found for %r", raw_address)
        return None
