"""Digest read/refresh orchestration.

Every read re-derives its state from the stored digest:

- Fresh: serve the stored digest, nothing else happens.
- Stale: serve the stored digest marked stale and hand back deferred work
  that regenerates it.
- Missing: report "pending" and hand back the same deferred work.

Deferred work is returned as a value rather than started here; the HTTP
layer schedules it to run after the response is sent. Refresh is the
synchronous fetch, aggregate, synthesize and store pipeline used by the
scheduler and the refresh endpoint.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from functools import lru_cache
from typing import TypedDict

from firenews.config import Settings, get_settings
from firenews.schemas.digest import Digest
from firenews.schemas.records import SourceRecord
from firenews.services.aggregator import collect_records
from firenews.services.freshness import FreshnessPolicy
from firenews.services.store import DigestStore, create_digest_store
from firenews.services.synthesizer import (
    SynthesisResult,
    build_no_news_digest,
    synthesize_digest,
)
from firenews.time_utils import civil_date, date_label, utc_now

logger = logging.getLogger(__name__)

CollectFn = Callable[[Settings], Awaitable[list[SourceRecord]]]
SynthesizeFn = Callable[[Sequence[SourceRecord], str, Settings], Awaitable[SynthesisResult]]


class DigestState(StrEnum):
    """Cache state observed by a read."""

    MISSING = "missing"
    STALE = "stale"
    FRESH = "fresh"


@dataclass(frozen=True)
class DeferredRefresh:
    """Background regeneration to run once the response has been sent."""

    reason: DigestState
    run: Callable[[], Awaitable[None]]


@dataclass(frozen=True)
class ReadOutcome:
    """What a read request should receive, plus any deferred work."""

    state: DigestState
    digest: Digest | None = None
    deferred: DeferredRefresh | None = None


class RefreshResult(TypedDict):
    """Summary of a completed refresh."""

    record_count: int
    section_count: int
    generated_at: datetime


class DigestOrchestrator:
    """Ties the store, freshness policy, aggregator and synthesizer together."""

    def __init__(
        self,
        store: DigestStore,
        settings: Settings | None = None,
        *,
        collect: CollectFn = collect_records,
        synthesize: SynthesizeFn = synthesize_digest,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.settings = settings if settings is not None else get_settings()
        self.freshness = FreshnessPolicy.from_timezone_name(
            self.settings.freshness.timezone
        )
        self._collect = collect
        self._synthesize = synthesize
        self._clock = clock

    def read(self) -> ReadOutcome:
        """Classify the stored digest and decide what to serve."""
        digest = self.store.read()
        if digest is None:
            logger.info("No digest stored, scheduling initial generation")
            return ReadOutcome(
                state=DigestState.MISSING,
                deferred=DeferredRefresh(DigestState.MISSING, self.run_deferred_refresh),
            )

        if self.freshness.is_fresh(digest.generated_at, self._clock()):
            return ReadOutcome(state=DigestState.FRESH, digest=digest)

        logger.info(
            "Digest from %s is stale, scheduling regeneration",
            digest.generated_at.isoformat(),
        )
        return ReadOutcome(
            state=DigestState.STALE,
            digest=digest,
            deferred=DeferredRefresh(DigestState.STALE, self.run_deferred_refresh),
        )

    async def refresh(self) -> RefreshResult:
        """Regenerate and overwrite the digest unconditionally.

        Raises:
            SynthesisError: If synthesis fails.
            StoreWriteError: If the new digest cannot be stored.
        """
        records = await self._collect(self.settings)
        label = date_label(self._clock(), self.freshness.tz)

        if not records:
            logger.info("No records found, storing the no-news digest")
            digest = build_no_news_digest(label, self._clock())
        else:
            content = await self._synthesize(records, label, self.settings)
            digest = Digest(
                date=label,
                headline=content["headline"],
                intro=content["intro"],
                sections=content["sections"],
                citations=content["citations"],
                record_count=len(records),
                generated_at=self._clock(),
            )

        self.store.write(digest)
        result = RefreshResult(
            record_count=digest.record_count,
            section_count=len(digest.sections),
            generated_at=digest.generated_at,
        )
        logger.info("Refresh complete: %s", result)
        return result

    async def run_deferred_refresh(self) -> None:
        """Refresh in the background under a per-day reservation.

        Skips the run if another refresh for the same day holds the
        reservation. Failures are logged, never raised.
        """
        key = f"refresh:{civil_date(self._clock(), self.freshness.tz).isoformat()}"
        ttl = self.settings.store.reservation_ttl_seconds
        if not self.store.acquire_refresh_lock(key, ttl):
            logger.info("Background refresh skipped, '%s' already in progress", key)
            return

        try:
            await self.refresh()
        except Exception:
            logger.exception("Background refresh failed")
        finally:
            self.store.release_refresh_lock(key)


@lru_cache
def get_orchestrator() -> DigestOrchestrator:
    """Return the process-wide orchestrator with its configured store."""
    settings = get_settings()
    return DigestOrchestrator(create_digest_store(settings), settings)
