"""
Interfaces for interacting with vulnerability services, i.e. sources
of vulnerability information for batches of package coordinates.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, NewType, Sequence

Coordinate = NewType("Coordinate", str)
"""
An opaque package URL-style identifier for a package and version, e.g. `pkg:gem/foo@1.2.3`.
"""

MAX_BATCH_SIZE = 128
"""
The largest number of coordinates that a single remote request may carry.
"""


@dataclass(frozen=True)
class Vulnerability:
    """
    Represents a single vulnerability entry reported for a coordinate.
    """

    id: str
    """
    A service-provided identifier for the vulnerability.
    """

    title: str
    """
    A short, human-readable title for the vulnerability.
    """

    cvss_score: float
    """
    The CVSS severity score for the vulnerability, in the range `[0.0, 10.0]`.
    """

    cve: str | None = None
    """
    The CVE identifier for the vulnerability, if one has been assigned.
    """

    description: str | None = None
    reference: str | None = None

    @classmethod
    def from_json(cls, obj: Any) -> Vulnerability:
        """
        Parse a single vulnerability object, as returned by OSS Index.

        Raises `ValueError` if `obj` is not well-formed.
        """
        if not isinstance(obj, dict):
            raise ValueError(f"expected a vulnerability object, got {type(obj).__name__}")

        id = obj.get("id")
        if not isinstance(id, str) or not id:
            raise ValueError(f"vulnerability is missing an 'id': {obj}")

        # The title is meant to be a single line, but nothing enforces it.
        title = obj.get("title") or obj.get("displayName") or "N/A"
        title = str(title).replace("\n", " ")

        try:
            cvss_score = float(obj.get("cvssScore", 0.0))
        except (TypeError, ValueError) as e:
            raise ValueError(f"vulnerability '{id}' has a malformed 'cvssScore'") from e

        return cls(
            id=id,
            title=title,
            cvss_score=cvss_score,
            cve=obj.get("cve") or None,
            description=obj.get("description") or None,
            reference=obj.get("reference") or None,
        )

    def to_json(self) -> dict[str, Any]:
        """
        Serialize this vulnerability into the same shape that `from_json` accepts.
        """
        obj: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "cvssScore": self.cvss_score,
        }
        if self.cve is not None:
            obj["cve"] = self.cve
        if self.description is not None:
            obj["description"] = self.description
        if self.reference is not None:
            obj["reference"] = self.reference
        return obj


@dataclass(frozen=True)
class VulnerabilityRecord:
    """
    Represents the complete vulnerability report for one coordinate.
    """

    coordinate: Coordinate
    """
    The coordinate that this record describes.
    """

    vulnerabilities: tuple[Vulnerability, ...] = ()
    """
    The vulnerabilities affecting `coordinate`, in the order the service reported them.
    """

    @property
    def vulnerable(self) -> bool:
        """
        Whether any vulnerabilities were reported for this coordinate.
        """
        return len(self.vulnerabilities) > 0

    @classmethod
    def from_json(cls, obj: Any) -> VulnerabilityRecord:
        """
        Parse a component report object, as returned by OSS Index and as stored in the cache.

        Only `coordinates` and `vulnerabilities` are required; any other keys are ignored.

        Raises `ValueError` if `obj` is not well-formed.
        """
        if not isinstance(obj, dict):
            raise ValueError(f"expected a component report object, got {type(obj).__name__}")

        coordinate = obj.get("coordinates")
        if not isinstance(coordinate, str):
            raise ValueError(f"component report is missing 'coordinates': {obj}")

        vulns = obj.get("vulnerabilities")
        if not isinstance(vulns, list):
            raise ValueError(f"component report for '{coordinate}' is missing 'vulnerabilities'")

        return cls(
            coordinate=Coordinate(coordinate),
            vulnerabilities=tuple(Vulnerability.from_json(v) for v in vulns),
        )

    def to_json(self) -> dict[str, Any]:
        """
        Serialize this record into the same shape that `from_json` accepts.
        """
        return {
            "coordinates": self.coordinate,
            "vulnerabilities": [v.to_json() for v in self.vulnerabilities],
        }


class VulnerabilityService(ABC):
    """
    Represents an abstract provider of vulnerability information for coordinates.

    Implementations are stateless between calls and make exactly one attempt per batch.
    """

    @abstractmethod
    def lookup(self, batch: Sequence[Coordinate]) -> list[VulnerabilityRecord]:  # pragma: no cover
        """
        Query the `VulnerabilityService` for a batch of at most `MAX_BATCH_SIZE` coordinates.

        The returned list has one `VulnerabilityRecord` per coordinate, in the same order
        as `batch`. Failures are raised as a subclass of `VulnerabilityServiceError`.
        """
        raise NotImplementedError


class VulnerabilityServiceError(Exception):
    """
    Raised when a `VulnerabilityService` fails, for any reason.

    Callers should catch one of the more specific subclasses when they need to
    distinguish between kinds of failure.
    """

    pass


class TransportError(VulnerabilityServiceError):
    """
    The vulnerability service is unreachable: the connection was refused, the name
    didn't resolve, the socket timed out, and so on.
    """

    pass


class ServiceError(VulnerabilityServiceError):
    """
    The vulnerability service answered with an unsuccessful status.
    """

    def __init__(self, msg: str, *, status_code: int | None = None, body: str | None = None):
        super().__init__(msg)
        self.status_code = status_code
        self.body = body


class AuthError(VulnerabilityServiceError):
    """
    The vulnerability service rejected the configured credentials.
    """

    pass


class ParseError(VulnerabilityServiceError):
    """
    The vulnerability service answered with a body that isn't a well-formed report.
    """

    pass


class InputError(VulnerabilityServiceError):
    """
    The request itself was rejected as malformed, e.g. because of a bad coordinate.
    """

    pass
