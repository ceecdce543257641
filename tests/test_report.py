"""Tests for SARIF report generation."""

import json

import pytest

from action.src.report import SarifReportGenerator, process_report
from shared.constants import IAC_TOOL_NAME, SARIF_REPORT_FILE_NAME, SARIF_SCHEMA, SARIF_VERSION
from shared.schemas import IaCValidationReport, Severity, Violation


@pytest.fixture
def report():
    """A report with two violations of the same policy and one bare violation."""
    return IaCValidationReport.model_validate(
        {
            "note": "Scan covers supported asset types only.",
            "violations": [
                {
                    "assetId": "//storage.googleapis.com/bucket-a",
                    "policyId": "policies/uniform-access",
                    "severity": "HIGH",
                    "nextSteps": "Enable uniform bucket-level access.",
                    "violatedPolicy": {
                        "constraint": "storage.uniformBucketLevelAccess",
                        "constraintType": "ORG_POLICY",
                        "complianceStandards": ["CIS 2.0 5.2"],
                        "description": "Buckets must use uniform access.",
                    },
                    "violatedPosture": {
                        "posture": "baseline",
                        "postureRevisionId": "rev-1",
                        "postureDeployment": "deployment-1",
                        "policySet": "storage",
                    },
                    "violatedAsset": {
                        "asset": "bucket-a",
                        "assetType": "storage.googleapis.com/Bucket",
                    },
                },
                {
                    "assetId": "//storage.googleapis.com/bucket-b",
                    "policyId": "policies/uniform-access",
                    "severity": "LOW",
                },
                {
                    "assetId": "//compute.googleapis.com/vm-1",
                    "policyId": "policies/no-public-ip",
                    "severity": "SEVERITY_UNSPECIFIED",
                },
            ],
        }
    )


class TestSarifReportGenerator:
    """Tests for SarifReportGenerator."""

    def test_document_header(self, report):
        """Should emit the SARIF version, schema and tool driver."""
        sarif = SarifReportGenerator("1.2.3").generate(report)

        assert sarif["version"] == SARIF_VERSION
        assert sarif["$schema"] == SARIF_SCHEMA
        driver = sarif["runs"][0]["tool"]["driver"]
        assert driver["name"] == IAC_TOOL_NAME
        assert driver["version"] == "1.2.3"
        assert "informationUri" in driver
        assert sarif["runs"][0]["note"] == "Scan covers supported asset types only."

    def test_one_rule_per_policy(self, report):
        """Should emit one rule per distinct policy, keeping the first violation."""
        rules = SarifReportGenerator("1.2.3").generate(report)["runs"][0]["tool"]["driver"]["rules"]

        assert [rule["id"] for rule in rules] == ["policies/uniform-access", "policies/no-public-ip"]
        assert rules[0]["fullDescription"] == {"text": "Buckets must use uniform access."}
        assert rules[0]["properties"] == {
            "severity": "HIGH",
            "policyType": "ORG_POLICY",
            "complianceStandard": ["CIS 2.0 5.2"],
            "policySet": "storage",
            "posture": "baseline",
            "postureRevisionId": "rev-1",
            "postureDeploymentId": "deployment-1",
            "constraints": "storage.uniformBucketLevelAccess",
            "nextSteps": "Enable uniform bucket-level access.",
        }

    def test_absent_fields_are_omitted(self, report):
        """Should not emit properties the service did not report."""
        rules = SarifReportGenerator("1.2.3").generate(report)["runs"][0]["tool"]["driver"]["rules"]

        assert rules[1]["properties"] == {"severity": "SEVERITY_UNSPECIFIED"}
        assert rules[1]["fullDescription"] == {"text": ""}

    def test_one_result_per_violation(self, report):
        """Should emit a result for every violation."""
        results = SarifReportGenerator("1.2.3").generate(report)["runs"][0]["results"]

        assert [r["ruleId"] for r in results] == [
            "policies/uniform-access",
            "policies/uniform-access",
            "policies/no-public-ip",
        ]
        first = results[0]
        assert first["message"]["text"] == (
            "Asset type: storage.googleapis.com/Bucket has a violation, "
            "next steps: Enable uniform bucket-level access."
        )
        assert first["locations"] == [
            {"logicalLocations": [{"fullyQualifiedName": "//storage.googleapis.com/bucket-a"}]}
        ]
        assert first["properties"] == {
            "assetId": "//storage.googleapis.com/bucket-a",
            "asset": "bucket-a",
            "assetType": "storage.googleapis.com/Bucket",
        }
        assert results[1]["properties"] == {"assetId": "//storage.googleapis.com/bucket-b"}

    def test_empty_report(self):
        """Should produce a valid document without rules or results."""
        sarif = SarifReportGenerator("1.2.3").generate(IaCValidationReport())

        run = sarif["runs"][0]
        assert run["results"] == []
        assert run["tool"]["driver"]["rules"] == []
        assert "note" not in run

    def test_unique_violations_keeps_first(self):
        """Should map each policy to its first violation."""
        first = Violation(asset_id="a1", policy_id="p1", severity=Severity.LOW)
        second = Violation(asset_id="a2", policy_id="p1", severity=Severity.CRITICAL)

        assert SarifReportGenerator.unique_violations([first, second]) == {"p1": first}


class TestProcessReport:
    """Tests for process_report function."""

    def test_writes_report(self, tmp_path, report):
        """Should write the SARIF report into the output directory."""
        path = process_report(report, SarifReportGenerator("1.2.3"), tmp_path)

        assert path == tmp_path / SARIF_REPORT_FILE_NAME
        written = json.loads(path.read_text())
        assert written == SarifReportGenerator("1.2.3").generate(report)

    def test_custom_report_name(self, tmp_path, report):
        """Should honour a custom file name and create missing directories."""
        path = process_report(report, SarifReportGenerator("1.2.3"), tmp_path / "out", "scan.sarif")

        assert path == tmp_path / "out" / "scan.sarif"
        assert path.exists()
