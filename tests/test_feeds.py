"""RSS source fetcher tests."""

import time
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from firenews.config import FeedConfig
from firenews.services.feeds import (
    _entries_to_records,
    _parse_published_date,
    fetch_feed,
    is_relevant,
    strip_html,
)

KEYWORDS = ["altadena", "eaton fire"]
FETCHED_AT = datetime(2026, 2, 20, 14, 0, tzinfo=UTC)

RSS_XML = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Local News</title>
    <item>
      <title>Altadena rebuild permits surge</title>
      <link>https://example.com/1</link>
      <description><![CDATA[<p>County issues <b>new</b> permits.</p>]]></description>
      <pubDate>Mon, 16 Feb 2026 12:00:00 GMT</pubDate>
    </item>
    <item>
      <title>City council approves budget</title>
      <link>https://example.com/2</link>
      <description>Unrelated municipal news.</description>
      <pubDate>Mon, 16 Feb 2026 13:00:00 GMT</pubDate>
    </item>
    <item>
      <title>Air quality update</title>
      <link>https://example.com/3</link>
      <description>Smoke from the Eaton Fire area has cleared.</description>
    </item>
  </channel>
</rss>"""


def _make_http_client(text: str = RSS_XML) -> AsyncMock:
    response = MagicMock()
    response.text = text
    response.raise_for_status = MagicMock()
    http = AsyncMock()
    http.get.return_value = response
    return http


def _make_entry(
    title: str | None = "Altadena news",
    link: str | None = "https://example.com/a",
    summary: str | None = "Summary",
    published_parsed: time.struct_time | None = None,
) -> dict:
    entry: dict = {"title": title, "link": link, "summary": summary}
    if published_parsed is not None:
        entry["published_parsed"] = published_parsed
    return entry


# --- strip_html ---


def test_strip_html_removes_tags_and_collapses_whitespace() -> None:
    raw = "<p>Fire&nbsp;crews &amp; residents</p>\n\n<br/>return"
    assert strip_html(raw) == "Fire crews & residents return"


def test_strip_html_handles_empty() -> None:
    assert strip_html(None) == ""
    assert strip_html("") == ""


# --- is_relevant ---


def test_is_relevant_matches_title_case_insensitively() -> None:
    assert is_relevant({"title": "ALTADENA Town Hall"}, KEYWORDS)


def test_is_relevant_matches_content_and_summary() -> None:
    entry = {"title": "Update", "content": [{"value": "After the Eaton Fire"}]}
    assert is_relevant(entry, KEYWORDS)
    assert is_relevant({"title": "Update", "summary": "altadena schools"}, KEYWORDS)


def test_is_relevant_rejects_unrelated_entry() -> None:
    assert not is_relevant({"title": "Stock market", "summary": "Shares rose"}, KEYWORDS)


# --- _parse_published_date ---


def test_parse_published_date_valid() -> None:
    st = time.strptime("2026-02-15 10:30:00", "%Y-%m-%d %H:%M:%S")
    result = _parse_published_date({"published_parsed": st})
    assert result == datetime(2026, 2, 15, 10, 30, tzinfo=UTC)


def test_parse_published_date_falls_back_to_updated() -> None:
    st = time.strptime("2026-02-14 08:00:00", "%Y-%m-%d %H:%M:%S")
    result = _parse_published_date({"updated_parsed": st})
    assert result == datetime(2026, 2, 14, 8, 0, tzinfo=UTC)


def test_parse_published_date_invalid() -> None:
    assert _parse_published_date({}) is None
    assert _parse_published_date({"published_parsed": "not-a-struct-time"}) is None


# --- _entries_to_records ---


def test_entries_to_records_maps_fields() -> None:
    st = time.strptime("2026-02-15 10:30:00", "%Y-%m-%d %H:%M:%S")
    entry = _make_entry(summary="<p>Crews <i>reopened</i> roads</p>", published_parsed=st)

    records = _entries_to_records([entry], "My Feed", None, FETCHED_AT)

    assert len(records) == 1
    record = records[0]
    assert record.title == "Altadena news"
    assert record.link == "https://example.com/a"
    assert record.summary == "Crews reopened roads"
    assert record.source_name == "My Feed"
    assert record.published_at == datetime(2026, 2, 15, 10, 30, tzinfo=UTC)


def test_entries_to_records_skips_missing_title_or_link() -> None:
    entries = [_make_entry(title=None), _make_entry(link=None), _make_entry(title="  ")]
    assert _entries_to_records(entries, "Feed", None, FETCHED_AT) == []


def test_entries_to_records_uses_fetch_time_without_date() -> None:
    records = _entries_to_records([_make_entry()], "Feed", None, FETCHED_AT)
    assert records[0].published_at == FETCHED_AT


def test_entries_to_records_uses_description_fallback() -> None:
    entry = _make_entry(summary=None)
    entry["description"] = "fallback content"
    records = _entries_to_records([entry], "Feed", None, FETCHED_AT)
    assert records[0].summary == "fallback content"


def test_entries_to_records_filters_by_keywords() -> None:
    entries = [
        _make_entry(title="Altadena library reopens"),
        _make_entry(title="Dodgers win", summary="Baseball"),
    ]
    records = _entries_to_records(entries, "Feed", KEYWORDS, FETCHED_AT)
    assert [r.title for r in records] == ["Altadena library reopens"]


# --- fetch_feed ---


@pytest.mark.asyncio
async def test_fetch_feed_general_feed_applies_keyword_filter() -> None:
    feed = FeedConfig(name="Pasadena Star-News", url="https://feed.example/rss")
    http = _make_http_client()

    records = await fetch_feed(http, feed, KEYWORDS)

    assert [r.title for r in records] == [
        "Altadena rebuild permits surge",
        "Air quality update",
    ]
    assert records[0].summary == "County issues new permits."
    assert records[0].published_at == datetime(2026, 2, 16, 12, 0, tzinfo=UTC)
    assert all(r.source_name == "Pasadena Star-News" for r in records)
    http.get.assert_awaited_once_with("https://feed.example/rss")


@pytest.mark.asyncio
async def test_fetch_feed_strict_feed_keeps_all_entries() -> None:
    feed = FeedConfig(name="Google News", url="https://news.example/rss", strict=True)

    records = await fetch_feed(_make_http_client(), feed, KEYWORDS)

    assert len(records) == 3


@pytest.mark.asyncio
async def test_fetch_feed_timeout_returns_empty() -> None:
    feed = FeedConfig(name="Slow", url="https://slow.example/rss")
    http = AsyncMock()
    http.get.side_effect = httpx.ReadTimeout("timeout")

    assert await fetch_feed(http, feed, KEYWORDS) == []


@pytest.mark.asyncio
async def test_fetch_feed_http_error_returns_empty() -> None:
    feed = FeedConfig(name="Broken", url="https://broken.example/rss")
    response = MagicMock()
    response.status_code = 503
    response.raise_for_status.side_effect = httpx.HTTPStatusError(
        "Service Unavailable", request=MagicMock(), response=response
    )
    http = AsyncMock()
    http.get.return_value = response

    assert await fetch_feed(http, feed, KEYWORDS) == []


@pytest.mark.asyncio
async def test_fetch_feed_network_error_returns_empty() -> None:
    feed = FeedConfig(name="Offline", url="https://offline.example/rss")
    http = AsyncMock()
    http.get.side_effect = httpx.ConnectError("refused")

    assert await fetch_feed(http, feed, KEYWORDS) == []


@pytest.mark.asyncio
async def test_fetch_feed_malformed_document_returns_empty() -> None:
    feed = FeedConfig(name="Garbage", url="https://garbage.example/rss")
    http = _make_http_client(text="this is <<< not a feed")

    assert await fetch_feed(http, feed, KEYWORDS) == []
