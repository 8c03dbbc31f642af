"""Pydantic schemas for records and digests."""

from firenews.schemas.digest import (
    Citation,
    Digest,
    DigestResponse,
    DigestSection,
    PendingResponse,
    RefreshResponse,
)
from firenews.schemas.records import (
    SourceRecord,
)

__all__ = [
    "Citation",
    "Digest",
    "DigestResponse",
    "DigestSection",
    "PendingResponse",
    "RefreshResponse",
    "SourceRecord",
]
