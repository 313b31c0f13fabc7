"""
Core auditing APIs.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Iterator, Sequence

from oss_audit._cache import CacheReadError, CacheStore, CacheWriteError
from oss_audit._service import (
    MAX_BATCH_SIZE,
    Coordinate,
    ParseError,
    VulnerabilityRecord,
    VulnerabilityService,
    VulnerabilityServiceError,
)
from oss_audit._state import AuditState, BatchCompleted, BatchFailed, BatchStarted, CacheHits

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditOptions:
    """
    Settings that control the behavior of an `Auditor` instance.
    """

    batch_size: int = MAX_BATCH_SIZE
    dry_run: bool = False

    def __post_init__(self) -> None:
        if not 1 <= self.batch_size <= MAX_BATCH_SIZE:
            raise ValueError(f"batch size must be between 1 and {MAX_BATCH_SIZE}")


@enum.unique
class AuditOutcome(str, enum.Enum):
    """
    The terminal status of an audit.
    """

    Complete = "complete"
    """
    Every coordinate that needed a remote lookup got one.
    """

    Partial = "partial"
    """
    A batch failed; the result holds the cache hits and any earlier batches only.
    """

    NoRemoteData = "no-remote-data"
    """
    No remote lookup was needed, either because the input was empty or because
    every coordinate was already cached.
    """

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class AuditedRecord:
    """
    A `VulnerabilityRecord`, tagged with where it came from.
    """

    record: VulnerabilityRecord
    cached: bool


@dataclass(frozen=True)
class AuditResult:
    """
    The aggregate result of an audit.
    """

    records: list[AuditedRecord]
    """
    One record per audited coordinate, in input order. Coordinates in a failed batch
    (or any batch after it) are absent.
    """

    outcome: AuditOutcome

    error: VulnerabilityServiceError | None = None
    """
    The failure that ended the audit early, when `outcome` is `AuditOutcome.Partial`.
    """

    warnings: list[CacheWriteError] = field(default_factory=list)
    """
    Non-fatal cache failures. The affected records are still present in `records`.
    """

    def __iter__(self) -> Iterator[AuditedRecord]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    @property
    def ok(self) -> bool:
        """
        Whether every requested coordinate has a record.
        """
        return self.outcome is not AuditOutcome.Partial

    @property
    def vulnerable(self) -> list[VulnerabilityRecord]:
        """
        The records that have at least one vulnerability.
        """
        return [r.record for r in self.records if r.record.vulnerable]


@dataclass(frozen=True)
class BatchResult:
    """
    The outcome of a single remote lookup: either records or a classified error.
    """

    records: list[VulnerabilityRecord] = field(default_factory=list)
    error: VulnerabilityServiceError | None = None


def batched(items: Sequence[int], size: int) -> list[Sequence[int]]:
    """
    Split `items` into consecutive slices of at most `size` elements, preserving order.
    """
    return [items[i : i + size] for i in range(0, len(items), size)]


class Auditor:
    """
    The core class of the `oss-audit` API.

    For a given cache and vulnerability service, produce the vulnerability records for a
    sequence of coordinates, consulting the cache first and looking up the rest in batches.
    """

    def __init__(
        self,
        cache: CacheStore,
        service: VulnerabilityService,
        options: AuditOptions = AuditOptions(),
        state: AuditState = AuditState(),
    ):
        """
        Create a new auditor.

        The behavior of the auditor can be optionally tweaked with the `options`
        parameter, and its progress observed through `state`.
        """
        self._cache = cache
        self._service = service
        self._options = options
        self._state = state

    def audit(self, coordinates: Sequence[Coordinate]) -> AuditResult:
        """
        Perform the auditing step for `coordinates`.

        Cached records are used as-is. Everything else is looked up in consecutive
        batches; each batch's records are written back to the cache. The first failed
        batch ends the audit, and no further batches are attempted.

        Coordinates are neither deduplicated nor reordered.
        """
        if self._options.dry_run:
            logger.info(f"Dry run: would have audited {len(coordinates)} coordinates")
            return AuditResult(records=[], outcome=AuditOutcome.NoRemoteData)

        if not coordinates:
            return AuditResult(records=[], outcome=AuditOutcome.NoRemoteData)

        slots: list[AuditedRecord | None] = [None] * len(coordinates)
        uncached: list[int] = []
        for position, coordinate in enumerate(coordinates):
            record = self._cached(coordinate)
            if record is None:
                uncached.append(position)
            else:
                slots[position] = AuditedRecord(record=record, cached=True)

        hits = len(coordinates) - len(uncached)
        logger.debug(f"{hits} cache hits, {len(uncached)} misses")
        self._state.update_state(CacheHits(hits=hits, misses=len(uncached)))

        if not uncached:
            return AuditResult(records=_filled(slots), outcome=AuditOutcome.NoRemoteData)

        batches = batched(uncached, self._options.batch_size)
        warnings: list[CacheWriteError] = []
        error: VulnerabilityServiceError | None = None
        for index, positions in enumerate(batches):
            batch = [coordinates[p] for p in positions]
            self._state.update_state(BatchStarted(index=index, total=len(batches), size=len(batch)))

            result = self._lookup(batch)
            if result.error is not None:
                error = result.error
                logger.debug(f"batch {index + 1}/{len(batches)} failed: {error}")
                self._state.update_state(BatchFailed(index=index, total=len(batches), error=error))
                break

            for position, record in zip(positions, result.records):
                slots[position] = AuditedRecord(record=record, cached=False)
                try:
                    self._cache.put(record)
                except CacheWriteError as cwe:
                    logger.warning(f"Failed to cache result, performance may be degraded: {cwe}")
                    warnings.append(cwe)

            self._state.update_state(
                BatchCompleted(index=index, total=len(batches), size=len(batch))
            )

        return AuditResult(
            records=_filled(slots),
            outcome=AuditOutcome.Complete if error is None else AuditOutcome.Partial,
            error=error,
            warnings=warnings,
        )

    def _cached(self, coordinate: Coordinate) -> VulnerabilityRecord | None:
        try:
            return self._cache.get(coordinate)
        except CacheReadError as cre:
            # An unreadable entry is just a miss; the lookup will overwrite it.
            logger.debug(f"treating unreadable cache entry as a miss: {cre}")
            return None

    def _lookup(self, batch: list[Coordinate]) -> BatchResult:
        try:
            records = self._service.lookup(batch)
        except VulnerabilityServiceError as e:
            return BatchResult(error=e)

        if len(records) != len(batch):
            return BatchResult(
                error=ParseError(f"expected {len(batch)} records, got {len(records)}")
            )
        return BatchResult(records=records)


def _filled(slots: list[AuditedRecord | None]) -> list[AuditedRecord]:
    return [s for s in slots if s is not None]
