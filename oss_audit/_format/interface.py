"""
Interfaces for formatting audit results into a string representation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Mapping, Sequence

from oss_audit._audit import AuditResult
from oss_audit._service import Coordinate


class VulnerabilityFormat(ABC):
    """
    Represents an abstract string representation for audit results.
    """

    @property
    @abstractmethod
    def is_manifest(self) -> bool:  # pragma: no cover
        """
        Is this format a "manifest" format, i.e. one that prints a summary
        of all results?

        Manifest formats are always emitted unconditionally, even if the
        audit results contain no vulnerabilities.
        """
        raise NotImplementedError

    @abstractmethod
    def format(
        self,
        result: AuditResult,
        required_by: Mapping[Coordinate, Sequence[Coordinate]] | None = None,
    ) -> str:  # pragma: no cover
        """
        Convert an `AuditResult` into a string.

        `required_by` optionally maps each coordinate to the coordinates that depend
        on it. When supplied, formats show it alongside each record.
        """
        raise NotImplementedError
