"""
Vulnerability service interfaces and implementations for `oss-audit`.
"""

from .interface import (
    MAX_BATCH_SIZE,
    AuthError,
    Coordinate,
    InputError,
    ParseError,
    ServiceError,
    TransportError,
    Vulnerability,
    VulnerabilityRecord,
    VulnerabilityService,
    VulnerabilityServiceError,
)
from .ossindex import OssIndexService

__all__ = [
    "MAX_BATCH_SIZE",
    "AuthError",
    "Coordinate",
    "InputError",
    "ParseError",
    "ServiceError",
    "TransportError",
    "Vulnerability",
    "VulnerabilityRecord",
    "VulnerabilityService",
    "VulnerabilityServiceError",
    "OssIndexService",
]
