"""
Functionality for formatting audit results as a JSON object.
"""

from __future__ import annotations

import json
from typing import Any, Mapping, Sequence

from oss_audit._audit import AuditedRecord, AuditResult
from oss_audit._service import Coordinate, Vulnerability

from .interface import VulnerabilityFormat


class JsonFormat(VulnerabilityFormat):
    """
    An implementation of `VulnerabilityFormat` that formats audit results as a JSON object.
    """

    def __init__(self, output_desc: bool):
        """
        Create a new `JsonFormat`.

        `output_desc` is a flag to determine whether descriptions for each vulnerability should be
        included in the output as they can be quite long and make the output difficult to read.
        """
        self.output_desc = output_desc

    @property
    def is_manifest(self) -> bool:
        """
        See `VulnerabilityFormat.is_manifest`.
        """
        return True

    def format(
        self,
        result: AuditResult,
        required_by: Mapping[Coordinate, Sequence[Coordinate]] | None = None,
    ) -> str:
        """
        Returns a JSON formatted string for a given `AuditResult`.

        See `VulnerabilityFormat.format`.
        """
        output_json: dict[str, Any] = {
            "outcome": str(result.outcome),
            "dependencies": [self._format_record(r, required_by) for r in result],
        }
        if result.error is not None:
            output_json["error"] = str(result.error)
        return json.dumps(output_json)

    def _format_record(
        self,
        audited: AuditedRecord,
        required_by: Mapping[Coordinate, Sequence[Coordinate]] | None,
    ) -> dict[str, Any]:
        record_json: dict[str, Any] = {
            "coordinates": audited.record.coordinate,
            "cached": audited.cached,
            "vulns": [self._format_vuln(v) for v in audited.record.vulnerabilities],
        }
        if required_by is not None:
            record_json["required_by"] = list(required_by.get(audited.record.coordinate, []))
        return record_json

    def _format_vuln(self, vuln: Vulnerability) -> dict[str, Any]:
        vuln_json: dict[str, Any] = {
            "id": vuln.id,
            "title": vuln.title,
            "cvss_score": vuln.cvss_score,
            "cve": vuln.cve,
        }
        if self.output_desc:
            vuln_json["description"] = vuln.description
        return vuln_json
