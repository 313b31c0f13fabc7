import json

import pretend  # type: ignore
import pytest
import requests

import oss_audit._service as service
from oss_audit._service import ossindex
from oss_audit._version import __version__


def _response(status_code=200, payload=None, text=None):
    def _json():
        if payload is None:
            raise ValueError("no JSON here")
        return payload

    return pretend.stub(
        status_code=status_code,
        json=_json,
        text=text if text is not None else json.dumps(payload),
    )


def _report(coordinate, *vulns):
    return {
        "coordinates": coordinate,
        "description": "A gem",
        "reference": f"https://ossindex.sonatype.org/component/{coordinate}",
        "vulnerabilities": list(vulns),
    }


_VULN = {
    "id": "c6d3ab8c-6a42-4c3a-9fd8-0a0a8a0a0a0a",
    "displayName": "CVE-2020-8161",
    "title": "[CVE-2020-8161] Directory traversal",
    "description": "A directory traversal vulnerability\nin rack.",
    "cvssScore": 8.6,
    "cvssVector": "CVSS:3.0/AV:N/AC:L/PR:N/UI:N/S:U/C:H/I:N/A:N",
    "cve": "CVE-2020-8161",
    "reference": "https://ossindex.sonatype.org/vulnerability/c6d3ab8c",
}


@pytest.fixture
def post(monkeypatch):
    # Installs a fake `session.post` on any `OssIndexService` created afterwards.
    def _post(response):
        recorder = pretend.call_recorder(lambda **kw: response)
        session = pretend.stub(post=recorder)
        monkeypatch.setattr(ossindex, "_session", lambda: session)
        return recorder

    return _post


@pytest.mark.online
def test_ossindex():
    oss = service.OssIndexService(timeout=30)
    batch = [service.Coordinate("pkg:gem/rack@2.0.8"), service.Coordinate("pkg:gem/rake@13.0.6")]

    records = oss.lookup(batch)

    assert [r.coordinate for r in records] == batch
    assert records[0].vulnerable


def test_ossindex_lookup(post):
    coordinates = [
        service.Coordinate("pkg:gem/rack@2.0.8"),
        service.Coordinate("pkg:gem/rake@13.0.6"),
    ]
    recorder = post(_response(payload=[_report(coordinates[0], _VULN), _report(coordinates[1])]))

    oss = service.OssIndexService(timeout=10)
    records = oss.lookup(coordinates)

    assert [r.coordinate for r in records] == coordinates
    assert records[0].vulnerable
    assert not records[1].vulnerable
    assert records[0].vulnerabilities == (
        service.Vulnerability(
            id=_VULN["id"],
            title="[CVE-2020-8161] Directory traversal",
            cvss_score=8.6,
            cve="CVE-2020-8161",
            description="A directory traversal vulnerability\nin rack.",
            reference="https://ossindex.sonatype.org/vulnerability/c6d3ab8c",
        ),
    )

    assert len(recorder.calls) == 1
    kwargs = recorder.calls[0].kwargs
    assert kwargs["url"] == service.OssIndexService.DEFAULT_URL
    assert json.loads(kwargs["data"]) == {"coordinates": coordinates}
    assert kwargs["headers"]["User-Agent"] == f"oss-audit/{__version__}"
    assert kwargs["headers"]["Content-Type"] == "application/json"
    assert kwargs["auth"] is None
    assert kwargs["timeout"] == 10


def test_ossindex_credentials(post):
    recorder = post(_response(payload=[_report("pkg:gem/rack@2.0.8")]))

    oss = service.OssIndexService(username="me@example.com", token="secret")
    oss.lookup([service.Coordinate("pkg:gem/rack@2.0.8")])

    assert oss.authenticated
    assert recorder.calls[0].kwargs["auth"] == ("me@example.com", "secret")


@pytest.mark.parametrize(("username", "token"), [("me@example.com", None), (None, "secret")])
def test_ossindex_partial_credentials(post, username, token):
    recorder = post(_response(payload=[_report("pkg:gem/rack@2.0.8")]))

    oss = service.OssIndexService(username=username, token=token)
    oss.lookup([service.Coordinate("pkg:gem/rack@2.0.8")])

    assert not oss.authenticated
    assert recorder.calls[0].kwargs["auth"] is None


def test_ossindex_empty_batch(post):
    recorder = post(_response(payload=[]))

    assert service.OssIndexService().lookup([]) == []
    assert recorder.calls == []


def test_ossindex_oversized_batch(post):
    recorder = post(_response(payload=[]))
    batch = [service.Coordinate(f"pkg:gem/g{i}@1.0.0") for i in range(129)]

    with pytest.raises(service.InputError, match="the limit is 128"):
        service.OssIndexService().lookup(batch)
    assert recorder.calls == []


def test_ossindex_rebinds_echoed_coordinate(post):
    post(_response(payload=[_report("pkg:gem/rack@2.0.8")]))

    records = service.OssIndexService().lookup([service.Coordinate("pkg:gem/Rack@2.0.8")])

    assert records[0].coordinate == "pkg:gem/Rack@2.0.8"


@pytest.mark.parametrize(
    "exc",
    [
        requests.ConnectionError,
        requests.ConnectTimeout,
        requests.ReadTimeout,
        requests.TooManyRedirects,
        requests.exceptions.ChunkedEncodingError,
        requests.exceptions.ContentDecodingError,
        requests.exceptions.InvalidURL,
    ],
)
def test_ossindex_transport_error(monkeypatch, exc):
    oss = service.OssIndexService()
    monkeypatch.setattr(oss.session, "post", pretend.raiser(exc))

    with pytest.raises(service.TransportError):
        oss.lookup([service.Coordinate("pkg:gem/rack@2.0.8")])


def test_ossindex_service_error(post):
    post(_response(status_code=500, text="Internal Server Error"))

    with pytest.raises(service.ServiceError, match="HTTP 500") as excinfo:
        service.OssIndexService().lookup([service.Coordinate("pkg:gem/rack@2.0.8")])

    assert excinfo.value.status_code == 500
    assert excinfo.value.body == "Internal Server Error"


@pytest.mark.parametrize("status_code", [401, 403])
def test_ossindex_auth_error(post, status_code):
    post(_response(status_code=status_code, text="Unauthorized"))

    oss = service.OssIndexService(username="me@example.com", token="wrong")
    with pytest.raises(service.AuthError):
        oss.lookup([service.Coordinate("pkg:gem/rack@2.0.8")])


def test_ossindex_unauthenticated_401_is_service_error(post):
    post(_response(status_code=401, text="Unauthorized"))

    with pytest.raises(service.ServiceError) as excinfo:
        service.OssIndexService().lookup([service.Coordinate("pkg:gem/rack@2.0.8")])
    assert not isinstance(excinfo.value, service.AuthError)


@pytest.mark.parametrize("status_code", [400, 422])
def test_ossindex_input_error(post, status_code):
    post(_response(status_code=status_code, text="bad coordinate: pkg:gem/"))

    with pytest.raises(service.InputError, match="bad coordinate"):
        service.OssIndexService().lookup([service.Coordinate("pkg:gem/")])


@pytest.mark.parametrize(
    "response",
    [
        _response(payload=None, text="<html>"),
        _response(payload={"coordinates": "pkg:gem/rack@2.0.8"}),
        _response(payload=[]),
        _response(payload=[{"coordinates": "pkg:gem/rack@2.0.8"}]),
        _response(payload=[{"coordinates": "pkg:gem/rack@2.0.8", "vulnerabilities": [{}]}]),
        _response(
            payload=[
                _report("pkg:gem/rack@2.0.8", {"id": "x", "title": "t", "cvssScore": "high"})
            ]
        ),
    ],
)
def test_ossindex_parse_error(post, response):
    post(response)

    with pytest.raises(service.ParseError):
        service.OssIndexService().lookup([service.Coordinate("pkg:gem/rack@2.0.8")])


def test_ossindex_error_hierarchy():
    for error in (
        service.TransportError,
        service.ServiceError,
        service.AuthError,
        service.ParseError,
        service.InputError,
    ):
        assert issubclass(error, service.VulnerabilityServiceError)


def test_ossindex_rejects_cookies():
    # A fresh `OssIndexService` never keeps a cookie from one lookup for the next.
    oss = service.OssIndexService()
    policy = oss.session.cookies.get_policy()

    assert policy.is_not_allowed("ossindex.sonatype.org")
    assert policy.is_not_allowed(".sonatype.org")
