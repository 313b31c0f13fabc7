from pathlib import Path

import pytest

from oss_audit._service.interface import (
    Coordinate,
    Vulnerability,
    VulnerabilityRecord,
    VulnerabilityService,
)

_ASSETS = Path(__file__).parent / "assets"


def pytest_addoption(parser):
    parser.addoption(
        "--skip-online", action="store_true", help="skip tests that require network connectivity"
    )


def pytest_runtest_setup(item):
    if "online" in item.keywords and item.config.getoption("--skip-online"):
        pytest.skip("skipping test that requires network connectivity due to `--skip-online` flag")


def pytest_configure(config):
    config.addinivalue_line("markers", "online: mark test as requiring network connectivity")


@pytest.fixture
def coordinates():
    def _coordinates(n, *, prefix="gem"):
        return [Coordinate(f"pkg:gem/{prefix}{i}@1.0.{i}") for i in range(n)]

    return _coordinates


@pytest.fixture
def record():
    # Any coordinate whose name starts with "bad" is vulnerable.
    def _record(coordinate):
        vulns = ()
        if coordinate.startswith("pkg:gem/bad"):
            vulns = (
                Vulnerability(
                    id="fake-id",
                    title="this is not a real result",
                    cvss_score=7.5,
                    cve="CVE-0000-0000",
                ),
            )
        return VulnerabilityRecord(coordinate=coordinate, vulnerabilities=vulns)

    return _record


@pytest.fixture
def vuln_service(record):
    # A dummy service that records every batch it's asked about.
    class Service(VulnerabilityService):
        def __init__(self):
            self.batches = []

        def lookup(self, batch):
            self.batches.append(list(batch))
            return [record(c) for c in batch]

    return Service


@pytest.fixture
def cache_dir(tmp_path):
    return tmp_path / "cache"


@pytest.fixture
def asset():
    def _asset(name):
        return _ASSETS / name

    return _asset
