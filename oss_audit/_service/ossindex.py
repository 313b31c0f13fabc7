"""
Functionality for using the [OSS Index](https://ossindex.sonatype.org/) API as a
`VulnerabilityService`.
"""

from __future__ import annotations

import json
import logging
from dataclasses import replace
from http.cookiejar import DefaultCookiePolicy
from typing import Sequence

import requests

from oss_audit._service.interface import (
    MAX_BATCH_SIZE,
    AuthError,
    Coordinate,
    InputError,
    ParseError,
    ServiceError,
    TransportError,
    VulnerabilityRecord,
    VulnerabilityService,
)
from oss_audit._version import __version__

logger = logging.getLogger(__name__)

USER_AGENT = f"oss-audit/{__version__}"


def _session() -> requests.Session:
    # We limit the number of redirects to 5, since OSS Index should really
    # never redirect more than once or twice.
    session = requests.Session()
    session.max_redirects = 5
    # Lookups are independent of each other, so no cookie is ever kept between them.
    session.cookies.set_policy(DefaultCookiePolicy(allowed_domains=[]))
    return session


class OssIndexService(VulnerabilityService):
    """
    An implementation of `VulnerabilityService` that uses OSS Index's component report
    API to provide vulnerability information.
    """

    DEFAULT_URL = "https://ossindex.sonatype.org/api/v3/component-report"

    def __init__(
        self,
        username: str | None = None,
        token: str | None = None,
        timeout: int | None = None,
        url: str = DEFAULT_URL,
    ) -> None:
        """
        Create a new `OssIndexService`.

        `username` and `token` are optional OSS Index credentials. They are only sent
        when both are supplied; otherwise, requests are made anonymously (and are
        subject to OSS Index's stricter anonymous rate limits).

        `timeout` is an optional argument to control how many seconds the component should wait for
        responses to network requests.
        """
        self.session = _session()
        self.timeout = timeout
        self.url = url
        self._auth = (username, token) if username and token else None

    @property
    def authenticated(self) -> bool:
        """
        Whether this service sends credentials with its requests.
        """
        return self._auth is not None

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
        }

    def lookup(self, batch: Sequence[Coordinate]) -> list[VulnerabilityRecord]:
        """
        Queries OSS Index for the given batch of coordinates.

        See `VulnerabilityService.lookup`.
        """
        if len(batch) > MAX_BATCH_SIZE:
            raise InputError(
                f"refusing to send {len(batch)} coordinates in one request "
                f"(the limit is {MAX_BATCH_SIZE})"
            )
        if not batch:
            return []

        try:
            response: requests.Response = self.session.post(
                url=self.url,
                data=json.dumps({"coordinates": list(batch)}),
                headers=self._headers(),
                auth=self._auth,
                timeout=self.timeout,
            )
        except requests.TooManyRedirects as e:
            raise TransportError("OSS Index is not redirecting properly") from e
        except (requests.ConnectionError, requests.Timeout) as e:
            # Apart from a normal network outage, this is usually a firewall or
            # corporate proxy that blocks OSS Index.
            raise TransportError("Could not connect to OSS Index's vulnerability feed") from e
        except requests.RequestException as e:
            raise TransportError(f"Request to OSS Index failed: {e}") from e

        status = response.status_code
        if status in (401, 403) and self.authenticated:
            raise AuthError(f"OSS Index rejected the supplied credentials (HTTP {status})")
        if status in (400, 422):
            raise InputError(f"OSS Index rejected the request (HTTP {status}): {response.text}")
        if not 200 <= status < 300:
            raise ServiceError(
                f"OSS Index returned an unexpected response (HTTP {status})",
                status_code=status,
                body=response.text,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise ParseError("OSS Index returned a response that isn't valid JSON") from e

        if not isinstance(payload, list):
            raise ParseError(f"expected a JSON array from OSS Index, got {type(payload).__name__}")
        if len(payload) != len(batch):
            raise ParseError(
                f"OSS Index returned {len(payload)} reports for {len(batch)} coordinates"
            )

        records: list[VulnerabilityRecord] = []
        for coordinate, obj in zip(batch, payload):
            try:
                record = VulnerabilityRecord.from_json(obj)
            except ValueError as e:
                raise ParseError(f"malformed component report for {coordinate}: {e}") from e

            # Reports come back in request order, but OSS Index is free to normalize
            # the coordinate it echoes. Records are always keyed by what we asked for.
            if record.coordinate != coordinate:
                logger.debug(f"OSS Index echoed '{record.coordinate}' for '{coordinate}'")
                record = replace(record, coordinate=coordinate)
            records.append(record)

        return records
