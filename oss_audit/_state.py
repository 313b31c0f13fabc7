"""
Interfaces for propagating audit lifecycle events from the API to interested
observers, as well as a progress spinner implementation for use with CLI applications.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from logging.handlers import MemoryHandler
from typing import Any, Sequence, Union

from rich.console import Console

from oss_audit._service.interface import VulnerabilityServiceError


@dataclass(frozen=True)
class Status:
    """
    A free-form status update, e.g. from a dependency source.
    """

    message: str

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class CacheHits:
    """
    Emitted once per audit, after the input has been partitioned against the cache.
    """

    hits: int
    misses: int

    def __str__(self) -> str:
        return f"Found {self.hits} cached results, {self.misses} to look up"


@dataclass(frozen=True)
class BatchStarted:
    """
    Emitted just before a batch is sent to the vulnerability service.
    """

    index: int
    total: int
    size: int

    def __str__(self) -> str:
        return f"Querying batch {self.index + 1}/{self.total} ({self.size} coordinates)"


@dataclass(frozen=True)
class BatchCompleted:
    """
    Emitted after a batch's results have been received and cached.
    """

    index: int
    total: int
    size: int

    def __str__(self) -> str:
        return f"Completed batch {self.index + 1}/{self.total}"


@dataclass(frozen=True)
class BatchFailed:
    """
    Emitted when a batch fails; no further batches are attempted afterwards.
    """

    index: int
    total: int
    error: VulnerabilityServiceError

    def __str__(self) -> str:
        return f"Batch {self.index + 1}/{self.total} failed: {self.error}"


AuditEvent = Union[Status, CacheHits, BatchStarted, BatchCompleted, BatchFailed]


class AuditState:
    """
    An object that fans out `AuditEvent`s to its members.

    Non-UI consumers of `oss_audit` can leave this as a default construction
    in whatever signatures it appears in. Its primary use is to give the CLI
    enough state for a responsive progress indicator, without the engine
    knowing anything about presentation.
    """

    def __init__(self, *, members: Sequence[_StateActor] = []):
        """
        Create a new `AuditState` with the given member list.
        """

        self._members = members

    def update_state(self, event: AuditEvent) -> None:
        """
        Called whenever the audit's state changes in a way that's meaningful to
        expose to an observer.
        """

        for member in self._members:
            member.update_state(event)

    def initialize(self) -> None:
        """
        Called when `oss-audit`'s state is initializing.
        """

        for member in self._members:
            member.initialize()

    def finalize(self) -> None:
        """
        Called when `oss-audit`'s state is "done" changing.
        """
        for member in self._members:
            member.finalize()

    def __enter__(self) -> AuditState:  # pragma: no cover
        self.initialize()
        return self

    def __exit__(
        self, _exc_type: Any, _exc_value: Any, _exc_traceback: Any
    ) -> None:  # pragma: no cover
        self.finalize()


class _StateActor(ABC):
    @abstractmethod
    def update_state(self, event: AuditEvent) -> None:
        raise NotImplementedError  # pragma: no cover

    @abstractmethod
    def initialize(self) -> None:
        """
        Called when `oss-audit`'s state is initializing. Implementors should
        override this to do nothing if their state management requires no
        initialization step.
        """
        raise NotImplementedError  # pragma: no cover

    @abstractmethod
    def finalize(self) -> None:
        """
        Called when the overlaying `AuditState` is "done," i.e. `oss-audit`'s
        state is done changing. Implementors should override this to do nothing
        if their state management requires no finalization step.
        """
        raise NotImplementedError  # pragma: no cover


class AuditSpinner(_StateActor):  # pragma: no cover
    """
    A progress spinner for `oss-audit`, using `rich.status`'s spinner support
    under the hood.
    """

    def __init__(self, message: str = "") -> None:
        """
        Initialize the `AuditSpinner`.
        """

        self._console = Console(stderr=True)
        # NOTE: audits can be quite fast, so we need a pretty high refresh rate here.
        self._spinner = self._console.status(message, spinner="line", refresh_per_second=30)

        # Keep the target set to `None` to ensure that the logs don't get written until the spinner
        # has finished writing output, regardless of the capacity argument
        self.log_handler = MemoryHandler(
            0, flushLevel=logging.ERROR, target=None, flushOnClose=False
        )
        self.prev_handlers: list[logging.Handler] = []

    def update_state(self, event: AuditEvent) -> None:
        """
        Update the spinner's message.
        """

        self._spinner.update(str(event))

    def initialize(self) -> None:
        """
        Redirect logging to an in-memory log handler so that it doesn't get mixed in with the
        spinner output.
        """

        root_logger = logging.root
        self.prev_handlers = list(root_logger.handlers)
        for handler in self.prev_handlers:
            root_logger.removeHandler(handler)

        root_logger.addHandler(self.log_handler)

        self._spinner.start()

    def finalize(self) -> None:
        """
        Stop the spinner and flush any logs that were recorded while it was active.
        """

        self._spinner.stop()

        root_logger = logging.root
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(logging.Formatter(logging.BASIC_FORMAT))
        self.log_handler.setTarget(stream_handler)
        self.log_handler.flush()

        root_logger.removeHandler(self.log_handler)
        for handler in self.prev_handlers:
            root_logger.addHandler(handler)
