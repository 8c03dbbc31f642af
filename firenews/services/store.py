"""Single-slot digest store with interchangeable backends.

Exactly one digest artifact is kept. ``read`` degrades to ``None`` on any
backend or decoding failure; ``write`` raises StoreWriteError. Both backends
also hold short-lived refresh reservations so that concurrent readers do not
all trigger a regeneration for the same day.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Protocol, cast

from postgrest.exceptions import APIError
from pydantic import ValidationError
from supabase import Client

from firenews.config import Settings, StoreBackend, get_settings
from firenews.errors import StoreWriteError
from firenews.schemas.digest import Digest
from firenews.supabase_client import get_supabase_client
from firenews.time_utils import utc_now

logger = logging.getLogger(__name__)

_UNIQUE_VIOLATION = "23505"


class DigestStore(Protocol):
    """Read/write contract shared by all backends."""

    def read(self) -> Digest | None: ...

    def write(self, digest: Digest) -> None: ...

    def acquire_refresh_lock(self, key: str, ttl_seconds: int) -> bool: ...

    def release_refresh_lock(self, key: str) -> None: ...


class SupabaseDigestStore:
    """Shared store backed by a Supabase table, consistent across instances.

    The digest lives in one row of ``table`` keyed by ``name``; reservations
    are rows of ``lock_table`` with a unique ``key`` and an ``expires_at``.
    """

    def __init__(
        self,
        client: Client,
        artifact_name: str,
        table: str = "digest_cache",
        lock_table: str = "digest_refresh_locks",
    ) -> None:
        self._client = client
        self._name = artifact_name
        self._table = table
        self._lock_table = lock_table

    def read(self) -> Digest | None:
        try:
            result = (
                self._client.table(self._table)
                .select("payload")
                .eq("name", self._name)
                .limit(1)
                .execute()
            )
            rows = cast(list[dict[str, Any]], result.data)
            if not rows:
                return None
            return Digest.model_validate(rows[0]["payload"])
        except (ValidationError, KeyError, TypeError) as exc:
            logger.warning("Stored digest '%s' is unreadable: %s", self._name, exc)
            return None
        except Exception as exc:
            logger.warning("Failed to read digest '%s': %s", self._name, exc)
            return None

    def write(self, digest: Digest) -> None:
        row = {
            "name": self._name,
            "payload": digest.model_dump(mode="json"),
            "generated_at": digest.generated_at.isoformat(),
        }
        try:
            self._client.table(self._table).upsert(row, on_conflict="name").execute()
        except Exception as exc:
            raise StoreWriteError(
                f"Failed to write digest '{self._name}': {type(exc).__name__}"
            ) from exc
        logger.info("Persisted digest '%s' (%d records)", self._name, digest.record_count)

    def acquire_refresh_lock(self, key: str, ttl_seconds: int) -> bool:
        now = utc_now()
        try:
            (
                self._client.table(self._lock_table)
                .delete()
                .eq("key", key)
                .lt("expires_at", now.isoformat())
                .execute()
            )
            self._client.table(self._lock_table).insert(
                {
                    "key": key,
                    "expires_at": (now + timedelta(seconds=ttl_seconds)).isoformat(),
                }
            ).execute()
        except APIError as exc:
            if exc.code == _UNIQUE_VIOLATION:
                logger.info("Refresh reservation '%s' is already held", key)
                return False
            logger.warning("Refresh reservation '%s' unavailable: %s", key, exc)
            return True
        except Exception as exc:
            logger.warning("Refresh reservation '%s' unavailable: %s", key, exc)
            return True
        return True

    def release_refresh_lock(self, key: str) -> None:
        try:
            self._client.table(self._lock_table).delete().eq("key", key).execute()
        except Exception as exc:
            logger.warning("Failed to release refresh reservation '%s': %s", key, exc)


class LocalDigestStore:
    """Single-process store backed by a JSON file.

    Writes go through a temporary file in the same directory followed by an
    atomic rename. Reservations are held in memory.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._locks: dict[str, datetime] = {}

    def read(self) -> Digest | None:
        try:
            with self.path.open(encoding="utf-8") as f:
                data = json.load(f)
            return Digest.model_validate(data)
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError, json.JSONDecodeError, ValidationError) as exc:
            logger.warning("Failed to read digest from %s: %s", self.path, exc)
            return None

    def write(self, digest: Digest) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(digest.model_dump_json())
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise StoreWriteError(f"Failed to write digest to {self.path}") from exc
        logger.info("Persisted digest to %s (%d records)", self.path, digest.record_count)

    def acquire_refresh_lock(self, key: str, ttl_seconds: int) -> bool:
        now = utc_now()
        expires_at = self._locks.get(key)
        if expires_at is not None and expires_at > now:
            logger.info("Refresh reservation '%s' is already held", key)
            return False
        self._locks[key] = now + timedelta(seconds=ttl_seconds)
        return True

    def release_refresh_lock(self, key: str) -> None:
        self._locks.pop(key, None)


def create_digest_store(settings: Settings | None = None) -> DigestStore:
    """Build the store selected by ``store.backend``."""
    if settings is None:
        settings = get_settings()

    backend = settings.store.backend
    if backend == StoreBackend.SUPABASE:
        logger.info("Using Supabase digest store (%s)", settings.store.table)
        return SupabaseDigestStore(
            get_supabase_client(),
            settings.store.artifact_name,
            table=settings.store.table,
            lock_table=settings.store.lock_table,
        )

    logger.info("Using local digest store (%s)", settings.store.local_path)
    return LocalDigestStore(settings.store.local_path)
