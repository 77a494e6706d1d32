"""Client for the KOPIS performance listing/detail XML API.

Both endpoints answer with the same envelope::

    <dbs>
      <db> ... one record ... </db>
      ...
    </dbs>

The listing returns an empty ``<dbs/>`` past the last page; the detail
endpoint returns an empty envelope for unknown identifiers. Neither case is
an error.

Also hosts the single-URL meta description crawl used by the diagnostics.
"""

import logging
import re
import xml.etree.ElementTree as ET
from datetime import date, datetime
from typing import Any, Dict, List, Optional

import requests
from bs4 import BeautifulSoup

from .config import Settings
from .errors import SourceConfigError
from .models import (
    SOURCE_TAG,
    EnrichedRecord,
    RawDetail,
    RawListItem,
    RelatedLink,
    category_type,
)

LOGGER = logging.getLogger(__name__)

KOPIS_LIST_URL = "http://www.kopis.or.kr/openApi/restful/pblprfr"
KOPIS_DETAIL_URL = KOPIS_LIST_URL + "/{id}"
PAGE_SIZE = 100

HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
}

# storage defaults for fields the source left empty
DEFAULT_TITLE = "제목 없음"
DEFAULT_VENUE = "장소 정보 없음"
DEFAULT_PRICE = "가격 정보 없음"
DEFAULT_TIME_INFO = "시간 정보 없음"
DEFAULT_POSTER = "포스터 정보 없음"
DEFAULT_GENRE = "장르 정보 없음"
DEFAULT_STATUS = "정보 없음"


def _text(el: ET.Element, tag: str) -> Optional[str]:
    child = el.find(tag)
    if child is None or child.text is None:
        return None
    return child.text


def _parse_envelope(payload: str) -> List[ET.Element]:
    # tolerate leading junk (BOM, whitespace, notices) before the XML root
    first_lt = payload.find("<")
    if first_lt > 0:
        payload = payload[first_lt:]
    root = ET.fromstring(payload.encode("utf-8"))
    if root.tag == "db":
        return [root]
    return root.findall("db")


def _element_to_dict(el: ET.Element) -> Any:
    children = list(el)
    if not children:
        return (el.text or "").strip()
    out: Dict[str, Any] = {}
    for child in children:
        value = _element_to_dict(child)
        if child.tag in out:
            if not isinstance(out[child.tag], list):
                out[child.tag] = [out[child.tag]]
            out[child.tag].append(value)
        else:
            out[child.tag] = value
    return out


def parse_list_item(el: ET.Element) -> Optional[RawListItem]:
    item_id = (_text(el, "mt20id") or "").strip()
    if not item_id:
        return None
    return RawListItem(
        id=item_id,
        title=_text(el, "prfnm") or "",
        genre=_text(el, "genrenm") or "",
        start_date=_text(el, "prfpdfrom") or "",
        end_date=_text(el, "prfpdto") or "",
        poster=_text(el, "poster") or "",
        venue=_text(el, "fcltynm") or "",
        open_run=(_text(el, "openrun") or "").strip().upper() == "Y",
    )


def parse_detail(el: ET.Element) -> RawDetail:
    relates = []
    for rel in el.findall("relates/relate"):
        relates.append(
            RelatedLink(name=_text(rel, "relatenm") or "", url=_text(rel, "relateurl") or "")
        )
    return RawDetail(
        id=(_text(el, "mt20id") or "").strip(),
        title=_text(el, "prfnm"),
        start_date=_text(el, "prfpdfrom"),
        end_date=_text(el, "prfpdto"),
        venue=_text(el, "fcltynm"),
        cast=_text(el, "prfcast"),
        price=_text(el, "pcseguidance"),
        schedule=_text(el, "dtguidance"),
        poster=_text(el, "poster"),
        genre=_text(el, "genrenm"),
        status=_text(el, "prfstate"),
        synopsis=_text(el, "sty"),
        relates=relates,
    )


def parse_source_date(value: Optional[str], default: Optional[date] = None) -> date:
    """Parse ``YYYY.MM.DD`` (also accepts ``-`` and ``/``); fall back to default or today."""
    if value:
        s = re.sub(r"[-/]", ".", value.strip())
        try:
            return datetime.strptime(s, "%Y.%m.%d").date()
        except ValueError:
            LOGGER.debug("unparseable source date %r", value)
    return default or date.today()


def clean_title(raw_title: str) -> str:
    title = re.sub(r"\[.*?\]", "", raw_title)
    title = re.sub(r"\(.*?\)", "", title)
    return title.strip()


def to_enriched(detail: RawDetail, category: str, today: Optional[date] = None) -> EnrichedRecord:
    """Map a detail record to the storage shape; enrichment fields left unset."""
    ticket_link = None
    if detail.relates:
        ticket_link = (detail.relates[0].url or "").strip() or None

    return EnrichedRecord(
        id=detail.id,
        source=SOURCE_TAG,
        type=category_type(category),
        title=clean_title(detail.title or DEFAULT_TITLE),
        start_date=parse_source_date(detail.start_date, today),
        end_date=parse_source_date(detail.end_date, today),
        time_info=detail.schedule or DEFAULT_TIME_INFO,
        place_name=detail.venue or DEFAULT_VENUE,
        price=detail.price or DEFAULT_PRICE,
        poster_url=detail.poster or DEFAULT_POSTER,
        genre=detail.genre or DEFAULT_GENRE,
        status=detail.status or DEFAULT_STATUS,
        description=(detail.synopsis or "").strip(),
        ticket_link=ticket_link,
    )


class SourceClient:
    """Paginated fetch/parse of the KOPIS listing and detail endpoints."""

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None):
        self.api_key = settings.kopis_api_key
        self.timeout = settings.http_timeout
        self.session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _get(self, url: str, params: Dict[str, Any]) -> str:
        if not self.configured:
            raise SourceConfigError("KOPIS API key missing")
        params = dict(params, service=self.api_key)
        resp = self.session.get(url, params=params, timeout=self.timeout)
        resp.raise_for_status()
        return resp.text

    def fetch_list(
        self, category: str, page: int, date_from: str, date_to: str
    ) -> List[RawListItem]:
        """Fetch one listing page; an empty list means there are no more pages.

        Args:
            category: genre code (``shcate``), e.g. ``AAAA``.
            page: 1-based page number.
            date_from, date_to: ``YYYYMMDD`` bounds of the run window.
        """
        payload = self._get(
            KOPIS_LIST_URL,
            {
                "stdate": date_from,
                "eddate": date_to,
                "cpage": page,
                "rows": PAGE_SIZE,
                "shcate": category,
            },
        )
        items = []
        for el in _parse_envelope(payload):
            item = parse_list_item(el)
            if item is not None:
                items.append(item)
        return items

    def fetch_detail(self, performance_id: str) -> Optional[RawDetail]:
        payload = self._get(KOPIS_DETAIL_URL.format(id=performance_id), {})
        records = _parse_envelope(payload)
        if not records:
            return None
        return parse_detail(records[0])

    def fetch_raw_detail(self, performance_id: str) -> Dict[str, Any]:
        """Detail payload as a nested dict, for inspecting what the source sends."""
        payload = self._get(KOPIS_DETAIL_URL.format(id=performance_id), {})
        first_lt = payload.find("<")
        root = ET.fromstring(payload[max(first_lt, 0):].encode("utf-8"))
        return {root.tag: _element_to_dict(root)}


def fetch_meta_description(
    url: str, session: Optional[requests.Session] = None, timeout: float = 3.0
) -> Optional[str]:
    """Return the page's og:description / description / twitter:description.

    None when the page has none of them; network errors propagate.
    """
    session = session or requests.Session()
    r = session.get(url, headers=HEADERS, timeout=timeout)
    r.raise_for_status()
    soup = BeautifulSoup(r.text, "lxml")

    for attrs in (
        {"property": "og:description"},
        {"name": "description"},
        {"name": "twitter:description"},
    ):
        tag = soup.find("meta", attrs=attrs)
        if tag and tag.get("content"):
            return tag["content"].strip()
    return None
