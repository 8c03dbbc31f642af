"""RSS source fetcher.

Fetches a single syndication feed with httpx, parses it with feedparser and
turns its entries into SourceRecords. Feed-level failures are logged and
reported as an empty result so one bad feed never sinks the aggregate.
"""

import html
import logging
import re
from calendar import timegm
from datetime import UTC, datetime
from typing import Any

import feedparser
import httpx

from firenews.config import FeedConfig
from firenews.schemas.records import SourceRecord

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")


async def fetch_feed(
    http_client: httpx.AsyncClient,
    feed: FeedConfig,
    keywords: list[str],
) -> list[SourceRecord]:
    """Fetch one feed and return its relevant entries as records.

    Args:
        http_client: httpx async client carrying the fetch timeout.
        feed: Feed name, URL and strictness.
        keywords: Topic keywords applied to non-strict feeds.

    Returns:
        Parsed records, or an empty list if the feed could not be fetched
        or parsed.
    """
    try:
        entries = await _fetch_and_parse_feed(http_client, feed.url)
    except httpx.TimeoutException:
        logger.warning("Timeout fetching feed '%s' (%s)", feed.name, feed.url)
        return []
    except httpx.HTTPStatusError as exc:
        logger.warning(
            "HTTP %d from feed '%s' (%s)",
            exc.response.status_code,
            feed.name,
            feed.url,
        )
        return []
    except httpx.HTTPError as exc:
        logger.warning(
            "Network error fetching feed '%s' (%s): %s", feed.name, feed.url, exc
        )
        return []
    except Exception as exc:
        logger.warning("Failed to parse feed '%s' (%s): %s", feed.name, feed.url, exc)
        return []

    records = _entries_to_records(
        entries,
        feed.name,
        keywords=None if feed.strict else keywords,
        fetched_at=datetime.now(tz=UTC),
    )
    logger.info(
        "Feed '%s' yielded %d record(s) from %d entries",
        feed.name,
        len(records),
        len(entries),
    )
    return records


async def _fetch_and_parse_feed(
    http_client: httpx.AsyncClient, url: str
) -> list[feedparser.FeedParserDict]:
    """Fetch and parse a single RSS feed.

    Raises:
        ValueError: If the document is malformed and yielded no entries.
    """
    resp = await http_client.get(url)
    resp.raise_for_status()
    parsed = feedparser.parse(resp.text)
    if parsed.bozo and not parsed.entries:
        raise ValueError(f"malformed feed: {parsed.get('bozo_exception')}")
    return parsed.entries


def strip_html(text: str | None) -> str:
    """Remove markup and collapse whitespace into single spaces."""
    if not text:
        return ""
    without_tags = _TAG_RE.sub(" ", text)
    return _WHITESPACE_RE.sub(" ", html.unescape(without_tags)).strip()


def _content_text(entry: Any) -> str:
    """Join the values of an entry's ``content`` list."""
    content = entry.get("content") or []
    parts = [c.get("value", "") for c in content if isinstance(c, dict)]
    return " ".join(p for p in parts if p)


def is_relevant(entry: Any, keywords: list[str]) -> bool:
    """Return True if any keyword occurs in the entry's title, content or summary."""
    text = " ".join(
        [
            entry.get("title") or "",
            _content_text(entry),
            entry.get("summary") or "",
        ]
    ).lower()
    return any(kw.lower() in text for kw in keywords)


def _parse_published_date(entry: Any) -> datetime | None:
    """Extract the published (or updated) date from a feedparser entry."""
    struct = entry.get("published_parsed") or entry.get("updated_parsed")
    if struct is None:
        return None
    try:
        timestamp = timegm(struct)
        return datetime.fromtimestamp(timestamp, tz=UTC)
    except (ValueError, OverflowError, OSError, TypeError, AttributeError):
        return None


def _entries_to_records(
    entries: list[Any],
    feed_name: str,
    keywords: list[str] | None,
    fetched_at: datetime,
) -> list[SourceRecord]:
    """Convert feedparser entries to records.

    Entries without a title or link are skipped. When ``keywords`` is given,
    entries matching none of them are skipped too.
    """
    records: list[SourceRecord] = []
    for entry in entries:
        link = entry.get("link")
        title = entry.get("title")
        if not link or not title or not title.strip():
            continue
        if keywords is not None and not is_relevant(entry, keywords):
            continue

        raw_summary = (
            entry.get("summary") or entry.get("description") or _content_text(entry)
        )
        records.append(
            SourceRecord(
                title=title.strip(),
                link=link,
                published_at=_parse_published_date(entry) or fetched_at,
                summary=strip_html(raw_summary),
                source_name=feed_name,
            )
        )
    return records
