from datetime import date

import pytest
import requests

from curtaincall.config import Settings
from curtaincall.errors import SourceConfigError
from curtaincall.fetcher import (
    DEFAULT_PRICE,
    DEFAULT_TIME_INFO,
    DEFAULT_VENUE,
    KOPIS_LIST_URL,
    SourceClient,
    clean_title,
    fetch_meta_description,
    parse_source_date,
    to_enriched,
)
from curtaincall.models import RawDetail, RelatedLink

LIST_XML = """<?xml version="1.0" encoding="UTF-8"?>
<dbs>
  <db>
    <mt20id>PF123456</mt20id>
    <prfnm>테스트 공연</prfnm>
    <prfpdfrom>2024.01.01</prfpdfrom>
    <prfpdto>2024.12.31</prfpdto>
    <fcltynm>예술의전당</fcltynm>
    <poster>http://example.com/p.gif</poster>
    <genrenm>뮤지컬</genrenm>
    <openrun>N</openrun>
  </db>
  <db>
    <mt20id>PF654321</mt20id>
    <prfnm>두번째</prfnm>
    <openrun>Y</openrun>
  </db>
  <db><prfnm>아이디 없음</prfnm></db>
</dbs>"""

DETAIL_XML = """<?xml version="1.0" encoding="UTF-8"?>
<dbs>
  <db>
    <mt20id>PF123456</mt20id>
    <prfnm>[서울] 테스트 공연 (앙코르)</prfnm>
    <prfpdfrom>2024.01.01</prfpdfrom>
    <prfpdto>2024.12.31</prfpdto>
    <fcltynm>예술의전당</fcltynm>
    <prfcast>홍길동, 김철수</prfcast>
    <pcseguidance>전석 50,000원</pcseguidance>
    <dtguidance>화요일 ~ 금요일(20:00)</dtguidance>
    <poster>http://example.com/p.gif</poster>
    <genrenm>뮤지컬</genrenm>
    <prfstate>공연중</prfstate>
    <sty>재미있는 공연입니다.</sty>
    <relates>
      <relate><relatenm>인터파크</relatenm><relateurl> https://tickets.example.com/1 </relateurl></relate>
      <relate><relatenm>예스24</relatenm><relateurl>https://tickets.example.com/2</relateurl></relate>
    </relates>
  </db>
</dbs>"""


def _client(settings, fake_session, response, text):
    session = fake_session(lambda url, params: response(text=text))
    return SourceClient(settings, session=session), session


def test_fetch_list_parses_items_and_sends_params(settings, fake_session, response):
    client, session = _client(settings, fake_session, response, LIST_XML)

    items = client.fetch_list("GGGA", 2, "20240101", "20240131")

    assert [i.id for i in items] == ["PF123456", "PF654321"]
    assert items[0].title == "테스트 공연"
    assert items[0].venue == "예술의전당"
    assert items[0].open_run is False
    assert items[1].open_run is True
    assert session.calls[0]["url"] == KOPIS_LIST_URL
    assert session.calls[0]["params"] == {
        "stdate": "20240101",
        "eddate": "20240131",
        "cpage": 2,
        "rows": 100,
        "shcate": "GGGA",
        "service": "kopis-key",
    }


def test_empty_listing_ends_pagination(settings, fake_session, response):
    client, _ = _client(settings, fake_session, response, "<dbs/>")
    assert client.fetch_list("AAAA", 9, "20240101", "20240131") == []


def test_fetch_detail(settings, fake_session, response):
    client, session = _client(settings, fake_session, response, DETAIL_XML)

    detail = client.fetch_detail("PF123456")

    assert session.calls[0]["url"] == KOPIS_LIST_URL + "/PF123456"
    assert detail.cast == "홍길동, 김철수"
    assert detail.synopsis == "재미있는 공연입니다."
    assert [r.name for r in detail.relates] == ["인터파크", "예스24"]


def test_fetch_detail_empty_envelope(settings, fake_session, response):
    client, _ = _client(settings, fake_session, response, "\ufeff <dbs></dbs>")
    assert client.fetch_detail("PF000000") is None


def test_fetch_raw_detail_returns_nested_dict(settings, fake_session, response):
    client, _ = _client(settings, fake_session, response, DETAIL_XML)
    raw = client.fetch_raw_detail("PF123456")
    db = raw["dbs"]["db"]
    assert db["mt20id"] == "PF123456"
    assert len(db["relates"]["relate"]) == 2


def test_missing_key_raises_before_any_call(fake_session, response):
    session = fake_session(lambda url, params: response(text=LIST_XML))
    client = SourceClient(Settings(), session=session)
    with pytest.raises(SourceConfigError):
        client.fetch_list("AAAA", 1, "20240101", "20240131")
    assert session.calls == []


def test_http_error_propagates(settings, fake_session, response):
    client = SourceClient(settings, session=fake_session(lambda url, params: response(500)))
    with pytest.raises(requests.HTTPError):
        client.fetch_detail("PF123456")


def test_to_enriched_maps_fields():
    detail = RawDetail(
        id="PF123456",
        title="[서울] 테스트 공연 (앙코르)",
        start_date="2024.01.01",
        end_date="2024.12.31",
        venue="예술의전당",
        poster="http://example.com/p.gif",
        genre="뮤지컬",
        status="공연중",
        synopsis="  재미있는 공연입니다. ",
        relates=[RelatedLink("인터파크", " https://tickets.example.com/1 ")],
    )

    rec = to_enriched(detail, "GGGA")

    assert rec.source == "KOPIS"
    assert rec.type == "MUSICAL"
    assert rec.title == "테스트 공연"
    assert rec.start_date == date(2024, 1, 1)
    assert rec.end_date == date(2024, 12, 31)
    assert rec.description == "재미있는 공연입니다."
    assert rec.ticket_link == "https://tickets.example.com/1"
    assert rec.price == DEFAULT_PRICE
    assert rec.time_info == DEFAULT_TIME_INFO
    assert rec.latitude is None


def test_to_enriched_defaults_for_sparse_detail():
    rec = to_enriched(RawDetail(id="PF1"), "AAAA", today=date(2024, 5, 5))
    assert rec.type == "THEATER"
    assert rec.title == "제목 없음"
    assert rec.place_name == DEFAULT_VENUE
    assert rec.start_date == date(2024, 5, 5)
    assert rec.ticket_link is None
    assert rec.description == ""


def test_parse_source_date_variants():
    assert parse_source_date("2024.03.09") == date(2024, 3, 9)
    assert parse_source_date("2024-03-09") == date(2024, 3, 9)
    assert parse_source_date("garbage", date(2000, 1, 1)) == date(2000, 1, 1)


def test_clean_title():
    assert clean_title("[대학로] 햄릿 (재공연)") == "햄릿"


@pytest.mark.parametrize(
    "html,expected",
    [
        ('<html><head><meta property="og:description" content=" og text "></head></html>', "og text"),
        (
            '<html><head><meta name="description" content="plain">'
            '<meta name="twitter:description" content="tw"></head></html>',
            "plain",
        ),
        ('<html><head><meta name="twitter:description" content="tw"></head></html>', "tw"),
        ("<html><head><title>none</title></head></html>", None),
    ],
)
def test_fetch_meta_description(fake_session, response, html, expected):
    session = fake_session(lambda url, params: response(text=html))
    assert fetch_meta_description("https://example.com", session=session) == expected
