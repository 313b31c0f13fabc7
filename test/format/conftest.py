import pytest

from oss_audit._audit import AuditedRecord, AuditOutcome, AuditResult
from oss_audit._service import Coordinate, TransportError, Vulnerability, VulnerabilityRecord

_RACK = VulnerabilityRecord(
    coordinate=Coordinate("pkg:gem/rack@2.0.8"),
    vulnerabilities=(
        Vulnerability(
            id="VULN-0",
            title="The first vulnerability",
            cvss_score=8.6,
            cve="CVE-2020-8161",
            description="A directory traversal",
        ),
        Vulnerability(
            id="VULN-1",
            title="The second vulnerability",
            cvss_score=5.0,
        ),
    ),
)
_RAKE = VulnerabilityRecord(coordinate=Coordinate("pkg:gem/rake@13.0.6"))


@pytest.fixture
def vuln_data():
    return AuditResult(
        records=[
            AuditedRecord(record=_RACK, cached=True),
            AuditedRecord(record=_RAKE, cached=False),
        ],
        outcome=AuditOutcome.Complete,
    )


@pytest.fixture
def no_vuln_data():
    return AuditResult(
        records=[AuditedRecord(record=_RAKE, cached=False)],
        outcome=AuditOutcome.Partial,
        error=TransportError("connection refused"),
    )


@pytest.fixture
def required_by():
    return {
        Coordinate("pkg:gem/rack@2.0.8"): [
            Coordinate("pkg:gem/actionpack@6.0.3"),
            Coordinate("pkg:gem/rack-test@1.1.0"),
        ],
        Coordinate("pkg:gem/rake@13.0.6"): [],
    }
