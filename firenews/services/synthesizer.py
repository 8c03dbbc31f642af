"""Digest synthesis using the Gemini API.

Turns a bounded, ordered list of records into headline, intro, thematic
sections and citations. Synthesis fails closed: any problem with the model
call or its output raises SynthesisError.
"""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Sequence
from datetime import datetime
from typing import Any, TypedDict

from firenews.config import Settings, get_settings
from firenews.errors import SynthesisError
from firenews.schemas.digest import Citation, Digest, DigestSection
from firenews.schemas.records import SourceRecord
from firenews.services.gemini import create_gemini_client, generate_json

logger = logging.getLogger(__name__)

NO_NEWS_HEADLINE = "Altadena & Eaton Fire Morning Digest"
NO_NEWS_INTRO = (
    "No new articles were found in today's news feeds. Please check back later."
)


class SynthesisResult(TypedDict):
    """Structured digest content returned by the model."""

    headline: str
    intro: str
    sections: list[DigestSection]
    citations: list[Citation]


_DIGEST_PROMPT = """\
You are a compassionate journalist writing a morning news digest for Altadena, \
California residents affected by the Eaton Fire. Today is {date_label}.

Below are {record_count} numbered news articles. Write a CONCISE digest: keep \
each section to 2-3 sentences, total output must be brief.

CITATION RULES:
- Add [N] after specific facts, statistics, names, dollar amounts, or dates \
(e.g. "Roads reopened[3]").
- Only cite article numbers that actually support the statement. Do not cite \
things you made up.

ARTICLES:
{articles_section}

Output a JSON object with these fields:
- "headline": Short headline (e.g. "Altadena Morning Digest - {date_label}")
- "intro": 1-2 sentences summarizing today's biggest themes, with [N] citations \
for any specific facts
- "sections": 3-5 thematic sections, each an object with "heading" and "body" \
(2-3 sentences with [N] citations).
  Headings: "Fire & Safety Updates", "Recovery & Rebuilding", "Community \
Resources", "Insurance & Legal", "Environment & Air Quality", "Local \
Government", "Notable Stories".
  Surface deadlines, phone numbers, and resources when present.
- "citations": only articles you actually cited with [N], each an object with \
"index", "title", "url", "source".

Respond ONLY with the JSON object."""


def _build_digest_prompt(records: Sequence[SourceRecord], date_label: str) -> str:
    """Build the Gemini prompt for digest generation."""
    article_blocks = [
        f"[{i + 1}] Source: {record.source_name}\n"
        f"Title: {record.title}\n"
        f"Date: {record.published_at.isoformat()}\n"
        f"Summary: {record.summary or '(no summary)'}\n"
        f"URL: {record.link}"
        for i, record in enumerate(records)
    ]
    return _DIGEST_PROMPT.format(
        date_label=date_label,
        record_count=len(records),
        articles_section="\n\n---\n\n".join(article_blocks),
    )


def _parse_digest_response(
    text: str, records: Sequence[SourceRecord]
) -> SynthesisResult:
    """Parse Gemini response text into a SynthesisResult.

    Raises:
        SynthesisError: On invalid JSON or a missing headline.
    """
    try:
        data: Any = json.loads(text)
    except (json.JSONDecodeError, TypeError) as exc:
        raise SynthesisError("Digest response is not valid JSON") from exc
    if not isinstance(data, dict):
        raise SynthesisError("Digest response is not a JSON object")

    headline = data.get("headline")
    if not isinstance(headline, str) or not headline.strip():
        raise SynthesisError("Digest response has no headline")

    intro = data.get("intro")
    if not isinstance(intro, str):
        intro = ""

    sections: list[DigestSection] = []
    raw_sections = data.get("sections")
    if isinstance(raw_sections, list):
        for section in raw_sections:
            if not isinstance(section, dict):
                continue
            sections.append(
                DigestSection(
                    heading=str(section.get("heading", "")),
                    body=str(section.get("body", "")),
                )
            )

    return SynthesisResult(
        headline=headline.strip(),
        intro=intro.strip(),
        sections=sections,
        citations=_sanitize_citations(data.get("citations"), records),
    )


def _sanitize_citations(
    raw_citations: Any, records: Sequence[SourceRecord]
) -> list[Citation]:
    """Keep citations whose index refers to a synthesized record.

    Out-of-range and non-integer indices are dropped, later duplicates of an
    index are ignored, and blank fields are filled from the cited record.
    """
    if not isinstance(raw_citations, list):
        return []

    citations: list[Citation] = []
    seen: set[int] = set()
    for raw in raw_citations:
        if not isinstance(raw, dict):
            continue
        index = raw.get("index")
        if isinstance(index, bool) or not isinstance(index, int | float):
            continue
        if not math.isfinite(index) or index != int(index):
            continue
        index = int(index)
        if index in seen:
            continue
        if not 1 <= index <= len(records):
            logger.warning("Dropping out-of-range citation index %d", index)
            continue
        seen.add(index)

        record = records[index - 1]
        citations.append(
            Citation(
                index=index,
                title=_str_or(raw.get("title"), record.title),
                url=_str_or(raw.get("url"), record.link),
                source_name=_str_or(raw.get("source"), record.source_name),
            )
        )
    return citations


def _str_or(value: Any, default: str) -> str:
    return value.strip() if isinstance(value, str) and value.strip() else default


async def synthesize_digest(
    records: Sequence[SourceRecord],
    date_label: str,
    settings: Settings | None = None,
) -> SynthesisResult:
    """Synthesize digest content from a non-empty record list.

    Args:
        records: Records in citation order (``[1]`` is the first record).
        date_label: Human date label for the digest.
        settings: Application settings. Uses defaults if None.

    Raises:
        SynthesisError: If called with no records, or the model call or its
            output fails.
    """
    if not records:
        raise SynthesisError("Synthesis requires at least one record")
    if settings is None:
        settings = get_settings()

    logger.info("Synthesizing digest for %s from %d record(s)", date_label, len(records))
    prompt = _build_digest_prompt(records, date_label)
    gemini_client = create_gemini_client(settings)
    response_text = await generate_json(gemini_client, settings.gemini, prompt)

    return _parse_digest_response(response_text, records)


def build_no_news_digest(date_label: str, generated_at: datetime) -> Digest:
    """Return the fixed digest used when no records were found."""
    return Digest(
        date=date_label,
        headline=NO_NEWS_HEADLINE,
        intro=NO_NEWS_INTRO,
        sections=[],
        citations=[],
        record_count=0,
        generated_at=generated_at,
    )
