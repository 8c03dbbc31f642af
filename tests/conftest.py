"""Shared test fixtures.

Clears cached settings and the process-wide orchestrator between tests and
provides an in-memory digest store.
"""

from collections.abc import Iterator

import pytest

from firenews.config import get_settings
from firenews.errors import StoreWriteError
from firenews.main import app
from firenews.schemas.digest import Digest
from firenews.services.orchestrator import get_orchestrator


class InMemoryDigestStore:
    """Store double that records writes and reservations."""

    def __init__(self) -> None:
        self.digest: Digest | None = None
        self.writes: list[Digest] = []
        self.locks: set[str] = set()
        self.released: list[str] = []
        self.fail_writes = False

    def read(self) -> Digest | None:
        return self.digest

    def write(self, digest: Digest) -> None:
        if self.fail_writes:
            raise StoreWriteError("write failed")
        self.digest = digest
        self.writes.append(digest)

    def acquire_refresh_lock(self, key: str, ttl_seconds: int) -> bool:
        if key in self.locks:
            return False
        self.locks.add(key)
        return True

    def release_refresh_lock(self, key: str) -> None:
        self.locks.discard(key)
        self.released.append(key)


@pytest.fixture
def memory_store() -> InMemoryDigestStore:
    return InMemoryDigestStore()


@pytest.fixture(autouse=True)
def reset_caches() -> Iterator[None]:
    """Drop cached settings, orchestrator and dependency overrides."""
    yield
    get_settings.cache_clear()
    get_orchestrator.cache_clear()
    app.dependency_overrides.clear()
