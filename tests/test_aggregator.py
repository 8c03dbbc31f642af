"""Aggregator tests."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from firenews.config import FeedConfig, Settings
from firenews.schemas.records import SourceRecord
from firenews.services.aggregator import (
    Source,
    aggregate,
    build_default_sources,
    collect_records,
    merge_records,
)

BASE_TIME = datetime(2026, 2, 20, 12, 0, tzinfo=UTC)


def _make_record(
    title: str, hours_ago: int = 0, source_name: str = "Feed"
) -> SourceRecord:
    return SourceRecord(
        title=title,
        link=f"https://example.com/{title.strip().lower().replace(' ', '-')}",
        published_at=BASE_TIME - timedelta(hours=hours_ago),
        summary="",
        source_name=source_name,
    )


def _source(name: str, records: list[SourceRecord], primary: bool = True) -> Source:
    return Source(name=name, fetch=AsyncMock(return_value=records), primary=primary)


# --- merge_records ---


def test_merge_keeps_first_occurrence_of_normalized_title() -> None:
    primary = [_make_record("Road Closed", source_name="LAist")]
    secondary = [_make_record("  road closed ", hours_ago=-1, source_name="Perplexity")]

    merged = merge_records([primary, secondary], max_records=10)

    assert len(merged) == 1
    assert merged[0].source_name == "LAist"


def test_merge_sorts_newest_first_and_truncates() -> None:
    records = [_make_record(f"Story {i}", hours_ago=i) for i in range(30)]
    shuffled = records[::2] + records[1::2]

    merged = merge_records([shuffled], max_records=5)

    assert [r.title for r in merged] == [f"Story {i}" for i in range(5)]


def test_merge_empty_input() -> None:
    assert merge_records([[], []], max_records=25) == []


# --- aggregate ---


@pytest.mark.asyncio
async def test_aggregate_prefers_primary_sources_regardless_of_order() -> None:
    secondary = _source(
        "Perplexity",
        [_make_record("Debris Removal Ends", source_name="Perplexity")],
        primary=False,
    )
    primary = _source(
        "LAist",
        [_make_record("debris removal ends", hours_ago=3, source_name="LAist")],
    )

    result = await aggregate([secondary, primary], max_records=25)

    assert len(result) == 1
    assert result[0].source_name == "LAist"


@pytest.mark.asyncio
async def test_aggregate_isolates_failing_source() -> None:
    failing = Source(
        name="Broken", fetch=AsyncMock(side_effect=RuntimeError("boom")), primary=True
    )
    healthy = _source("LAist", [_make_record("Altadena update")])

    result = await aggregate([failing, healthy], max_records=25)

    assert [r.title for r in result] == ["Altadena update"]


@pytest.mark.asyncio
async def test_aggregate_bounds_output() -> None:
    sources = [
        _source(
            f"Feed {n}",
            [_make_record(f"Feed {n} story {i}", hours_ago=i) for i in range(10)],
        )
        for n in range(4)
    ]

    result = await aggregate(sources, max_records=25)

    assert len(result) == 25
    times = [r.published_at for r in result]
    assert times == sorted(times, reverse=True)


@pytest.mark.asyncio
async def test_aggregate_all_sources_empty() -> None:
    result = await aggregate([_source("A", []), _source("B", [], primary=False)], 25)
    assert result == []


# --- build_default_sources / collect_records ---


def test_build_default_sources_orders_feeds_before_research() -> None:
    settings = Settings(
        feeds=[
            FeedConfig(name="Google News", url="https://news.example/rss", strict=True),
            FeedConfig(name="LAist", url="https://laist.example/rss"),
        ]
    )

    sources = build_default_sources(settings, AsyncMock(spec=httpx.AsyncClient))

    assert [s.name for s in sources] == ["Google News", "LAist", "Perplexity"]
    assert [s.primary for s in sources] == [True, True, False]


@pytest.mark.asyncio
@patch("firenews.services.aggregator.fetch_research_records", new_callable=AsyncMock)
@patch("firenews.services.aggregator.fetch_feed", new_callable=AsyncMock)
async def test_collect_records_merges_feeds_and_research(
    mock_fetch_feed: AsyncMock,
    mock_fetch_research: AsyncMock,
) -> None:
    settings = Settings(
        feeds=[FeedConfig(name="LAist", url="https://laist.example/rss")]
    )
    settings.aggregator.max_records = 2
    mock_fetch_feed.return_value = [
        _make_record("Altadena update", hours_ago=5, source_name="LAist")
    ]
    mock_fetch_research.return_value = [
        _make_record("ALTADENA UPDATE", source_name="latimes.com"),
        _make_record("Eaton Fire anniversary", hours_ago=1, source_name="latimes.com"),
        _make_record("Older story", hours_ago=9, source_name="latimes.com"),
    ]

    result = await collect_records(settings)

    assert [r.title for r in result] == ["Eaton Fire anniversary", "Altadena update"]
    assert result[1].source_name == "LAist"
    mock_fetch_feed.assert_awaited_once()
    mock_fetch_research.assert_awaited_once()
