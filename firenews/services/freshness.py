"""Same-civil-day freshness policy for the cached digest."""

from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo

from firenews.time_utils import PACIFIC, civil_date


class FreshnessPolicy:
    """Decide whether a digest counts as today's.

    A digest is fresh when it was generated on the same calendar date as
    ``now`` in one fixed civil zone, not UTC and not the reader's zone.
    """

    def __init__(self, tz: ZoneInfo = PACIFIC) -> None:
        self.tz = tz

    @classmethod
    def from_timezone_name(cls, name: str) -> FreshnessPolicy:
        return cls(ZoneInfo(name))

    def is_fresh(self, generated_at: datetime, now: datetime) -> bool:
        return civil_date(generated_at, self.tz) == civil_date(now, self.tz)
