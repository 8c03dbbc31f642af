"""Research source: Perplexity Sonar search plus a lenient prose parser.

The research API answers with a numbered prose listing such as::

    1. **Road closed** [1] — Crews reopened Lincoln Ave.

and a parallel ``citations`` array of URLs. The parser recovers records from
that text on a best-effort basis and never raises on malformed lines.

Headline and summary split on the first em or en dash, or on a run of one or
two hyphens with whitespace on both sides. Unspaced hyphens such as
"Lake-Ave" or "re-opened" stay part of the headline.
"""

from __future__ import annotations

import logging
import re
from datetime import UTC, datetime
from typing import Any
from urllib.parse import urlparse

import httpx

from firenews.config import Settings, get_settings
from firenews.schemas.records import SourceRecord

logger = logging.getLogger(__name__)

RESEARCH_SOURCE_LABEL = "Perplexity"

_SYSTEM_PROMPT = (
    "You are a news researcher. Find factual recent news only. "
    "Do not editorialize. Return a plain numbered list of news items."
)

_ENUMERATOR_RE = re.compile(r"^\d+[.)]\s*")
_CITATION_RE = re.compile(r"\[(\d+)\]")
_BOLD_RE = re.compile(r"\*\*")
_SEPARATOR_RE = re.compile(r"\s*[—–]\s*|\s+-{1,2}\s+")
_WHITESPACE_RE = re.compile(r"\s+")


def parse_research_listing(
    content: str,
    citations: list[str],
    parsed_at: datetime | None = None,
) -> list[SourceRecord]:
    """Recover records from a numbered prose listing.

    Args:
        content: Prose text, one item per numbered line.
        citations: Reference URLs; ``[k]`` in a line points at ``citations[k-1]``.
        parsed_at: Timestamp given to every record. Defaults to now.

    Returns:
        Records for lines that resolved to a URL and a non-empty headline.
    """
    if parsed_at is None:
        parsed_at = datetime.now(tz=UTC)

    records: list[SourceRecord] = []
    for raw_line in (content or "").splitlines():
        line = raw_line.strip()
        if not _ENUMERATOR_RE.match(line):
            continue

        url = _resolve_citation(line, citations)
        if not url:
            continue

        headline, summary = _split_headline(_clean_line(line))
        if not headline:
            continue

        records.append(
            SourceRecord(
                title=headline,
                link=url,
                published_at=parsed_at,
                summary=summary,
                source_name=_source_from_url(url),
            )
        )
    return records


def _resolve_citation(line: str, citations: list[str]) -> str | None:
    """Return the URL referenced by the first ``[k]`` marker, if any."""
    match = _CITATION_RE.search(line)
    if match is None:
        return None
    index = int(match.group(1)) - 1
    if 0 <= index < len(citations):
        url = citations[index]
        return url if isinstance(url, str) and url.strip() else None
    return None


def _clean_line(line: str) -> str:
    """Strip the enumerator, citation markers and bold markup."""
    text = _ENUMERATOR_RE.sub("", line, count=1)
    text = _CITATION_RE.sub("", text)
    text = _BOLD_RE.sub("", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def _split_headline(text: str) -> tuple[str, str]:
    """Split on the first dash-like separator into (headline, summary)."""
    parts = _SEPARATOR_RE.split(text, maxsplit=1)
    if len(parts) == 1:
        return text.strip(), ""
    return parts[0].strip(), parts[1].strip()


def _source_from_url(url: str) -> str:
    """Hostname without a leading ``www.``, or the research label."""
    try:
        hostname = urlparse(url).hostname
    except ValueError:
        return RESEARCH_SOURCE_LABEL
    if not hostname:
        return RESEARCH_SOURCE_LABEL
    return hostname.removeprefix("www.")


async def fetch_research_records(
    settings: Settings | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> list[SourceRecord]:
    """Ask the research API for recent topic news and parse the answer.

    Returns an empty list when no API key is configured or the call fails
    for any reason.
    """
    if settings is None:
        settings = get_settings()
    if not settings.perplexity_api_key:
        logger.debug("Perplexity API key not set, skipping research source")
        return []

    research = settings.research
    payload: dict[str, Any] = {
        "model": research.model,
        "search_recency_filter": research.recency_filter,
        "messages": [
            {"role": "system", "content": _SYSTEM_PROMPT},
            {"role": "user", "content": research.prompt},
        ],
    }
    headers = {"Authorization": f"Bearer {settings.perplexity_api_key}"}

    try:
        if http_client is None:
            async with httpx.AsyncClient(timeout=research.timeout_seconds) as client:
                resp = await client.post(research.api_url, json=payload, headers=headers)
        else:
            resp = await http_client.post(
                research.api_url,
                json=payload,
                headers=headers,
                timeout=research.timeout_seconds,
            )
        resp.raise_for_status()
        data = resp.json()
    except httpx.TimeoutException:
        logger.warning("Timeout calling research API")
        return []
    except httpx.HTTPStatusError as exc:
        logger.warning("Research API error: HTTP %d", exc.response.status_code)
        return []
    except httpx.HTTPError as exc:
        logger.warning("Network error calling research API: %s", exc)
        return []
    except ValueError:
        logger.warning("Research API returned invalid JSON")
        return []

    content, citations = _extract_answer(data)
    records = parse_research_listing(content, citations)
    logger.info("Research source returned %d record(s)", len(records))
    return records


def _extract_answer(data: Any) -> tuple[str, list[str]]:
    """Pull the message text and citation URLs out of a chat completion."""
    if not isinstance(data, dict):
        return "", []
    content = ""
    choices = data.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        message = choices[0].get("message")
        if isinstance(message, dict) and isinstance(message.get("content"), str):
            content = message["content"]
    raw_citations = data.get("citations")
    citations = (
        [c if isinstance(c, str) else "" for c in raw_citations]
        if isinstance(raw_citations, list)
        else []
    )
    return content, citations
