"""
Functionality for formatting audit results as a set of human-readable columns.
"""

from __future__ import annotations

from itertools import zip_longest
from typing import Any, Iterable, Mapping, Sequence

from oss_audit._audit import AuditResult
from oss_audit._service import Coordinate, Vulnerability, VulnerabilityRecord

from .interface import VulnerabilityFormat


def tabulate(rows: Iterable[Iterable[Any]]) -> tuple[list[str], list[int]]:
    """Return a list of formatted rows and a list of column sizes.
    For example::
    >>> tabulate([['foobar', 2000], [0xdeadbeef]])
    (['foobar     2000', '3735928559'], [10, 4])
    """
    rows = [tuple(map(str, row)) for row in rows]
    sizes = [max(map(len, col)) for col in zip_longest(*rows, fillvalue="")]
    table = [" ".join(map(str.ljust, row, sizes)).rstrip() for row in rows]
    return table, sizes


class ColumnsFormat(VulnerabilityFormat):
    """
    An implementation of `VulnerabilityFormat` that formats audit results as a set of
    columns.
    """

    def __init__(self, output_desc: bool):
        """
        Create a new `ColumnFormat`.

        `output_desc` is a flag to determine whether descriptions for each vulnerability should be
        included in the output as they can be quite long and make the output difficult to read.
        """
        self.output_desc = output_desc

    @property
    def is_manifest(self) -> bool:
        """
        See `VulnerabilityFormat.is_manifest`.
        """
        return False

    def format(
        self,
        result: AuditResult,
        required_by: Mapping[Coordinate, Sequence[Coordinate]] | None = None,
    ) -> str:
        """
        Returns a column formatted string for the vulnerable records in an `AuditResult`.

        See `VulnerabilityFormat.format`.
        """
        vuln_data: list[list[Any]] = []
        header = ["Coordinates", "ID", "CVSS", "CVE", "Title"]
        if required_by is not None:
            header.append("Required By")
        if self.output_desc:
            header.append("Description")
        vuln_data.append(header)
        for record in result.vulnerable:
            for vuln in record.vulnerabilities:
                vuln_data.append(self._format_vuln(record, vuln, required_by))

        # If it's just a header, don't bother adding it to the output
        if len(vuln_data) <= 1:
            return ""

        vuln_strings, sizes = tabulate(vuln_data)

        # Create and add a separator.
        vuln_strings.insert(1, " ".join(map(lambda x: "-" * x, sizes)))

        return "\n".join(vuln_strings)

    def _format_vuln(
        self,
        record: VulnerabilityRecord,
        vuln: Vulnerability,
        required_by: Mapping[Coordinate, Sequence[Coordinate]] | None,
    ) -> list[Any]:
        vuln_data = [
            record.coordinate,
            vuln.id,
            f"{vuln.cvss_score:.1f}",
            vuln.cve or "",
            vuln.title,
        ]
        if required_by is not None:
            vuln_data.append(", ".join(required_by.get(record.coordinate, [])))
        if self.output_desc:
            vuln_data.append((vuln.description or "").replace("\n", " "))
        return vuln_data
