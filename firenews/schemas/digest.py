"""Digest schemas."""

from datetime import datetime

from pydantic import BaseModel


class Citation(BaseModel):
    """Reference from a ``[N]`` marker to the N-th synthesized record."""

    index: int
    title: str
    url: str
    source_name: str


class DigestSection(BaseModel):
    """Single thematic section within a digest."""

    heading: str
    body: str


class Digest(BaseModel):
    """The single cached digest artifact."""

    date: str
    headline: str
    intro: str
    sections: list[DigestSection] = []
    citations: list[Citation] = []
    record_count: int
    generated_at: datetime


class DigestResponse(Digest):
    """Digest as served to readers; ``stale`` is set only for outdated digests."""

    stale: bool | None = None


class PendingResponse(BaseModel):
    """Returned when no digest has been generated yet."""

    pending: bool = True


class RefreshResponse(BaseModel):
    """Summary returned by the refresh endpoint."""

    ok: bool = True
    record_count: int
    section_count: int
    generated_at: datetime
