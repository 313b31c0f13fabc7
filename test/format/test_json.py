import json

import pytest

import oss_audit._format as format


@pytest.mark.parametrize("output_desc", [True, False])
def test_json_manifest(output_desc):
    fmt = format.JsonFormat(output_desc)

    assert fmt.is_manifest


def test_json(vuln_data):
    json_format = format.JsonFormat(True)
    expected_json = {
        "outcome": "complete",
        "dependencies": [
            {
                "coordinates": "pkg:gem/rack@2.0.8",
                "cached": True,
                "vulns": [
                    {
                        "id": "VULN-0",
                        "title": "The first vulnerability",
                        "cvss_score": 8.6,
                        "cve": "CVE-2020-8161",
                        "description": "A directory traversal",
                    },
                    {
                        "id": "VULN-1",
                        "title": "The second vulnerability",
                        "cvss_score": 5.0,
                        "cve": None,
                        "description": None,
                    },
                ],
            },
            {
                "coordinates": "pkg:gem/rake@13.0.6",
                "cached": False,
                "vulns": [],
            },
        ],
    }
    assert json_format.format(vuln_data) == json.dumps(expected_json)


def test_json_no_desc(vuln_data):
    output = json.loads(format.JsonFormat(False).format(vuln_data))

    for dep in output["dependencies"]:
        for vuln in dep["vulns"]:
            assert "description" not in vuln


def test_json_partial(no_vuln_data):
    output = json.loads(format.JsonFormat(False).format(no_vuln_data))

    assert output["outcome"] == "partial"
    assert output["error"] == "connection refused"
    assert output["dependencies"] == [
        {"coordinates": "pkg:gem/rake@13.0.6", "cached": False, "vulns": []}
    ]


def test_json_required_by(vuln_data, required_by):
    output = json.loads(format.JsonFormat(False).format(vuln_data, required_by))

    assert [dep["required_by"] for dep in output["dependencies"]] == [
        ["pkg:gem/actionpack@6.0.3", "pkg:gem/rack-test@1.1.0"],
        [],
    ]


def test_json_required_by_omitted(vuln_data):
    output = json.loads(format.JsonFormat(False).format(vuln_data))

    for dep in output["dependencies"]:
        assert "required_by" not in dep
