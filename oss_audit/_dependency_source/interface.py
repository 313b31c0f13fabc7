"""
Interfaces for interacting with "dependency sources", i.e. sources
of fully resolved package coordinates.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterator

from oss_audit._service import Coordinate


class DependencySource(ABC):
    """
    Represents an abstract source of fully-resolved package coordinates.

    Individual concrete dependency sources (e.g. `Gemfile.lock`) are expected
    to subclass `DependencySource` and implement it in their terms.
    """

    @abstractmethod
    def collect(self) -> Iterator[Coordinate]:  # pragma: no cover
        """
        Yield the coordinates in this source.
        """
        raise NotImplementedError


class DependencySourceError(Exception):
    """
    Raised when a `DependencySource` fails to provide its dependencies.

    Concrete implementations are expected to subclass this exception to
    provide more context.
    """

    pass
