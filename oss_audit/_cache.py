"""
Persistent, per-coordinate caching of vulnerability records for `oss-audit`.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from tempfile import NamedTemporaryFile

from cachecontrol.caches import FileCache
from platformdirs import user_cache_path

from oss_audit._service.interface import Coordinate, VulnerabilityRecord

logger = logging.getLogger(__name__)

_OSS_AUDIT_INTERNAL_CACHE = user_cache_path("oss-audit", appauthor=False)


def _get_cache_dir(custom_cache_dir: Path | None) -> Path:
    """
    Returns a directory path suitable for the record cache.

    The directory is **not** guaranteed to exist.
    """

    # If the user has explicitly requested a directory, pass it through unscathed.
    if custom_cache_dir is not None:
        return custom_cache_dir
    return _OSS_AUDIT_INTERNAL_CACHE


class CacheError(Exception):
    """
    Raised when the record cache can't be used, for any reason.
    """

    pass


class CacheReadError(CacheError):
    """
    Raised when a cache entry exists but can't be read or decoded.
    """

    pass


class CacheWriteError(CacheError):
    """
    Raised when a cache entry can't be persisted (or the cache can't be cleared).
    """

    pass


@dataclass(frozen=True)
class CacheEntry:
    """
    A cached `VulnerabilityRecord`, along with when it was stored.
    """

    record: VulnerabilityRecord
    stored_at: datetime


class _AtomicFileCache(FileCache):
    """
    A `FileCache` whose writes are atomic per key: readers (including other
    `oss-audit` processes) only ever see the previous entry or the new one.

    Unlike `FileCache`, errors are left for the caller to classify.
    """

    def set(self, key: str, value: bytes, expires: int | None = None) -> None:
        name: str = self._fn(key)
        directory = os.path.dirname(name)

        os.makedirs(directory, self.dirmode, exist_ok=True)

        # We create a temporary file in the same directory, then atomically replace
        # the cache key's filename with it, so a crash mid-write never leaves a
        # partial entry behind.
        with NamedTemporaryFile(delete=False, dir=directory) as io:
            try:
                io.write(value)
                io.flush()
                os.fsync(io.fileno())
            except OSError:
                io.close()
                os.unlink(io.name)
                raise

        # NOTE: Windows won't let us rename the temporary file until it's closed,
        # which is why we call `os.replace()` here rather than in the `with` block above.
        try:
            os.replace(io.name, name)
        except OSError:
            os.unlink(io.name)
            raise


class CacheStore:
    """
    A durable key-value store mapping each `Coordinate` to its last-known
    `VulnerabilityRecord`.

    Entries are never expired by the store itself; `clear` wipes everything.
    """

    def __init__(self, cache_dir: Path | None = None) -> None:
        """
        Create a new `CacheStore`.

        `cache_dir` is an optional directory to keep entries in. If `None`, `oss-audit`
        uses its own per-user cache directory.
        """
        self.directory = _get_cache_dir(cache_dir)
        self._cache = _AtomicFileCache(str(self.directory))

    def get_entry(self, coordinate: Coordinate) -> CacheEntry | None:
        """
        Return the `CacheEntry` for `coordinate`, or `None` if there isn't one.

        Raises `CacheReadError` if the entry exists but can't be read or decoded.
        """
        try:
            raw = self._cache.get(coordinate)
        except OSError as e:
            raise CacheReadError(f"failed to read cache entry for {coordinate}: {e}") from e

        if raw is None:
            return None

        try:
            entry = json.loads(raw)
            record = VulnerabilityRecord.from_json(entry["record"])
            stored_at = datetime.fromisoformat(entry["stored_at"])
        except (ValueError, KeyError, TypeError) as e:
            raise CacheReadError(f"malformed cache entry for {coordinate}: {e}") from e

        # Keys are hashed on disk, so check that we got back what we asked for.
        if record.coordinate != coordinate:
            raise CacheReadError(
                f"cache entry for {coordinate} actually describes {record.coordinate}"
            )

        return CacheEntry(record=record, stored_at=stored_at)

    def get(self, coordinate: Coordinate) -> VulnerabilityRecord | None:
        """
        Return the cached `VulnerabilityRecord` for `coordinate`, or `None` on a miss.

        Raises `CacheReadError` if the entry exists but can't be read or decoded;
        callers may choose to treat that as a miss.
        """
        entry = self.get_entry(coordinate)
        return entry.record if entry is not None else None

    def put(self, record: VulnerabilityRecord) -> None:
        """
        Store `record`, replacing any existing entry for its coordinate.

        Raises `CacheWriteError` if the entry can't be persisted. A failed write never
        corrupts any other entry, or the previous entry for the same coordinate.
        """
        value = json.dumps(
            {
                "stored_at": datetime.now(timezone.utc).isoformat(),
                "record": record.to_json(),
            }
        ).encode("utf-8")

        try:
            self._cache.set(record.coordinate, value)
        except OSError as e:
            raise CacheWriteError(
                f"failed to write cache entry for {record.coordinate}: {e}"
            ) from e

    def clear(self) -> None:
        """
        Remove every entry from the store.
        """
        if not self.directory.exists():
            return

        logger.debug(f"clearing cache directory {self.directory}")
        try:
            shutil.rmtree(self.directory)
        except OSError as e:
            raise CacheWriteError(f"failed to clear cache directory {self.directory}: {e}") from e
