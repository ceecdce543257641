"""SARIF report generation for IaC scan results."""

import json
import logging
from pathlib import Path

from shared.constants import (
    IAC_TOOL_DOCUMENTATION_LINK,
    IAC_TOOL_NAME,
    SARIF_REPORT_FILE_NAME,
    SARIF_SCHEMA,
    SARIF_VERSION,
)
from shared.schemas import IaCValidationReport, Violation
from shared.schemas_sarif import (
    Driver,
    LogicalLocation,
    Location,
    Message,
    Result,
    ResultProperties,
    Rule,
    RuleProperties,
    Run,
    SarifReport,
    Tool,
)

logger = logging.getLogger(__name__)


class SarifReportGenerator:
    """Builds a SARIF document from a validation report.

    Fields absent from the service response are omitted from the report.
    """

    def __init__(self, tool_version: str):
        """Initialize the generator.

        Args:
            tool_version: Version reported for the scanning tool (the action version)
        """
        self.tool_version = tool_version

    def build(self, report: IaCValidationReport) -> SarifReport:
        violations = report.violations or []
        return SarifReport(
            version=SARIF_VERSION,
            schema_uri=SARIF_SCHEMA,
            runs=[
                Run(
                    note=report.note,
                    tool=Tool(
                        driver=Driver(
                            name=IAC_TOOL_NAME,
                            version=self.tool_version,
                            information_uri=IAC_TOOL_DOCUMENTATION_LINK,
                            rules=self.build_rules(violations),
                        )
                    ),
                    results=[self.build_result(v) for v in violations],
                )
            ],
        )

    def generate(self, report: IaCValidationReport) -> dict:
        """Generate the SARIF document as a JSON-ready dict."""
        return self.build(report).to_sarif()

    @staticmethod
    def unique_violations(violations: list[Violation]) -> dict[str, Violation]:
        """Map each policy to the first violation reported for it."""
        by_policy: dict[str, Violation] = {}
        for violation in violations:
            by_policy.setdefault(violation.policy_id, violation)
        return by_policy

    def build_rules(self, violations: list[Violation]) -> list[Rule]:
        rules = []
        for policy_id, violation in self.unique_violations(violations).items():
            policy = violation.violated_policy
            posture = violation.violated_posture
            rules.append(
                Rule(
                    id=policy_id,
                    full_description=Message(text=(policy.description if policy else None) or ""),
                    properties=RuleProperties(
                        severity=violation.severity.value if violation.severity else None,
                        policy_type=policy.constraint_type if policy else None,
                        compliance_standard=policy.compliance_standards if policy else None,
                        policy_set=posture.policy_set if posture else None,
                        posture=posture.posture if posture else None,
                        posture_revision_id=posture.posture_revision_id if posture else None,
                        posture_deployment_id=posture.posture_deployment if posture else None,
                        constraints=policy.constraint if policy else None,
                        next_steps=violation.next_steps,
                    ),
                )
            )
        return rules

    def build_result(self, violation: Violation) -> Result:
        asset = violation.violated_asset
        asset_type = asset.asset_type if asset else None
        return Result(
            rule_id=violation.policy_id,
            message=Message(
                text=f"Asset type: {asset_type or ''} has a violation, "
                f"next steps: {violation.next_steps or ''}"
            ),
            locations=[
                Location(
                    logical_locations=[LogicalLocation(fully_qualified_name=violation.asset_id)]
                )
            ],
            properties=ResultProperties(
                asset_id=violation.asset_id,
                asset=asset.asset if asset else None,
                asset_type=asset_type,
            ),
        )


def process_report(
    report: IaCValidationReport,
    generator: SarifReportGenerator,
    output_dir: str | Path = ".",
    report_name: str = SARIF_REPORT_FILE_NAME,
) -> Path:
    """Generate the SARIF report and write it to disk.

    Args:
        report: Validation report returned by the scan
        generator: Report generator
        output_dir: Directory to write the report into
        report_name: File name of the report

    Returns:
        Path to the written report
    """
    sarif = generator.generate(report)
    logger.debug("IaC scan report generated")

    path = Path(output_dir) / report_name
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(sarif, f, indent=2)
    logger.debug(f"IaC scan report written to {path}")
    return path
