"""Multi-source aggregation.

Fans out to every configured source in parallel, concatenates their records
in priority order, drops duplicate titles (first occurrence wins), sorts
newest first and truncates to a bounded set.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from functools import partial

import httpx

from firenews.config import Settings, get_settings
from firenews.schemas.records import SourceRecord
from firenews.services.feeds import fetch_feed
from firenews.services.research import RESEARCH_SOURCE_LABEL, fetch_research_records

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Source:
    """A named record source.

    Primary sources are concatenated ahead of secondary ones, so their
    records shadow duplicates from secondary sources.
    """

    name: str
    fetch: Callable[[], Awaitable[list[SourceRecord]]]
    primary: bool = True


async def aggregate(sources: Sequence[Source], max_records: int) -> list[SourceRecord]:
    """Fetch all sources concurrently and merge their records.

    A source that raises is logged and counted as empty.

    Args:
        sources: Sources to fetch.
        max_records: Upper bound on the returned list.

    Returns:
        Deduplicated records, newest first, at most ``max_records`` long.
    """
    ordered = sorted(sources, key=lambda s: not s.primary)
    results = await asyncio.gather(
        *(source.fetch() for source in ordered), return_exceptions=True
    )

    batches: list[list[SourceRecord]] = []
    for source, result in zip(ordered, results):
        if isinstance(result, BaseException):
            logger.warning(
                "Source '%s' failed, continuing without it: %s",
                source.name,
                type(result).__name__,
            )
            batches.append([])
            continue
        batches.append(result)

    merged = merge_records(batches, max_records)
    logger.info(
        "Aggregated %d record(s) from %d source(s) (%d before dedup)",
        len(merged),
        len(ordered),
        sum(len(b) for b in batches),
    )
    return merged


def merge_records(
    batches: Sequence[Sequence[SourceRecord]], max_records: int
) -> list[SourceRecord]:
    """Concatenate, deduplicate by normalized title, sort and truncate."""
    seen: set[str] = set()
    unique: list[SourceRecord] = []
    for batch in batches:
        for record in batch:
            key = record.title_key
            if not key or key in seen:
                continue
            seen.add(key)
            unique.append(record)

    unique.sort(key=lambda r: r.published_at, reverse=True)
    return unique[: max(0, max_records)]


def build_default_sources(
    settings: Settings, http_client: httpx.AsyncClient
) -> list[Source]:
    """Build one primary source per configured feed plus the research source."""
    keywords = settings.topic.keywords
    sources = [
        Source(
            name=feed.name,
            fetch=partial(fetch_feed, http_client, feed, keywords),
            primary=True,
        )
        for feed in settings.feeds
    ]
    sources.append(
        Source(
            name=RESEARCH_SOURCE_LABEL,
            fetch=partial(fetch_research_records, settings, http_client),
            primary=False,
        )
    )
    return sources


async def collect_records(settings: Settings | None = None) -> list[SourceRecord]:
    """Aggregate records from every configured source."""
    if settings is None:
        settings = get_settings()

    headers = {"User-Agent": settings.aggregator.user_agent}
    async with httpx.AsyncClient(
        timeout=settings.aggregator.fetch_timeout_seconds,
        headers=headers,
        follow_redirects=True,
    ) as http_client:
        sources = build_default_sources(settings, http_client)
        logger.info("Fetching %d source(s)", len(sources))
        return await aggregate(sources, settings.aggregator.max_records)
