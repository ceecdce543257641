#!/usr/bin/env python3
"""Main orchestrator for the IaC security scan GitHub Action.

Reads the action inputs, submits the plan file to the IaC validation
service, writes the SARIF report and decides the build status from the
configured failure criteria.
"""

import asyncio
import logging
import sys
import uuid
from pathlib import Path

import httpx

from scc.accessor import IaCAccessor, current_time_millis
from scc.config import Settings, get_settings
from scc.google_auth import GoogleAuth
from shared.constants import (
    ACTION_VERSION,
    FAIL_SILENTLY_CONFIG_KEY,
    FAILURE_CRITERIA_CONFIG_KEY,
    HTTP_TIMEOUT_SECONDS,
    IAC_SCAN_RESULT_OUTPUT_KEY,
    IAC_SCAN_RESULT_SARIF_PATH_OUTPUT_KEY,
    action_fail_error,
)
from shared.exceptions import ValidationError
from shared.schemas import IaCScanResult, IaCValidationReport, Severity

from action.src.criteria import (
    FailureCriteria,
    get_violation_count_by_severity,
    is_failure_criteria_satisfied,
)
from action.src.inputs import InputConfiguration, load_input_configuration
from action.src.report import SarifReportGenerator, process_report

logger = logging.getLogger(__name__)

STATUS_EMOJI = {
    IaCScanResult.PASSED: "✅",
    IaCScanResult.FAILED: "❌",
    IaCScanResult.ERROR: "⚠️",
}


def configure_logging(debug: bool = False) -> None:
    """Configure root logging for the action run."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    # Request lines from the transport would repeat our own debug output
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def set_output(name: str, value: str, output_file: str | None = None) -> None:
    """Set a GitHub Actions output.

    Args:
        name: Output name
        value: Output value
        output_file: Path of the runner's GITHUB_OUTPUT file
    """
    if output_file:
        with open(output_file, "a", encoding="utf-8") as f:
            # Handle multiline values
            if "\n" in value:
                delimiter = uuid.uuid4().hex
                f.write(f"{name}<<{delimiter}\n{value}\n{delimiter}\n")
            else:
                f.write(f"{name}={value}\n")
    else:
        # Fallback for local runs
        print(f"::set-output name={name}::{value}")


def log_group(title: str) -> None:
    """Start a GitHub Actions log group."""
    print(f"::group::{title}")


def log_group_end() -> None:
    """End a GitHub Actions log group."""
    print("::endgroup::")


def log_warning(message: str) -> None:
    """Log a warning annotation."""
    print(f"::warning::{message}")


def log_error(message: str) -> None:
    """Log an error annotation."""
    print(f"::error::{message}")


def set_failed(message: str) -> int:
    """Mark the step as failed and return the exit code."""
    log_error(message)
    return 1


def classify_scan_result(criteria_satisfied: bool, ignore_violations: bool) -> IaCScanResult:
    """Map the failure criteria evaluation to the action result."""
    if criteria_satisfied and not ignore_violations:
        return IaCScanResult.FAILED
    return IaCScanResult.PASSED


def build_summary(
    result: IaCScanResult,
    report: IaCValidationReport,
    criteria: FailureCriteria,
    sarif_path: Path | None = None,
) -> str:
    """Build the markdown step summary.

    Args:
        result: Action result
        report: Validation report returned by the scan
        criteria: Failure criteria the report was evaluated against
        sarif_path: Location of the SARIF report

    Returns:
        Markdown summary string
    """
    counts = get_violation_count_by_severity(report.violations or [])

    lines = [
        "## IaC Security Scan Results",
        "",
        f"**Result:** {STATUS_EMOJI[result]} `{result.value}`",
        f"**Failure criteria:** `{criteria.to_expression()}`",
        "",
        "| Severity | Violations | Threshold |",
        "|----------|------------|-----------|",
    ]
    for severity in Severity:
        threshold = criteria.threshold_by_severity.get(severity)
        if counts[severity] == 0 and threshold is None:
            continue
        lines.append(
            f"| {severity.value} | {counts[severity]} | {'-' if threshold is None else threshold} |"
        )
    lines.append("")

    if report.note:
        lines.extend([f"> {report.note}", ""])
    if sarif_path:
        lines.extend([f"**SARIF report:** `{sarif_path}`", ""])

    return "\n".join(lines)


def write_step_summary(summary: str, summary_file: str | None) -> None:
    if summary_file:
        with open(summary_file, "a", encoding="utf-8") as f:
            f.write(summary)


def read_plan_file(scan_file_ref: str, workspace: Path) -> bytes:
    """Read the plan file, resolving relative paths against the workspace."""
    path = Path(scan_file_ref)
    if not path.is_absolute():
        path = workspace / path
    return path.read_bytes()


async def run_scan(config: InputConfiguration, plan: bytes) -> IaCValidationReport:
    """Submit the plan to the validation service and wait for the report."""
    scan_start_time = current_time_millis()
    async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS) as client:
        accessor = IaCAccessor(
            base_url=config.validate_endpoint,
            organization_id=config.organization_id,
            scan_timeout=config.scan_timeout,
            scan_start_time=scan_start_time,
            http_client=client,
            auth=GoogleAuth(),
            version=ACTION_VERSION,
        )
        return await accessor.scan_report(plan)


def main(settings: Settings | None = None) -> int:
    """Main entry point for the action.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    settings = settings or get_settings()
    configure_logging(settings.runner_debug)
    logger.info("IaC Scanning Action invoked")

    try:
        config = load_input_configuration(settings)
    except ValidationError as e:
        # Misconfiguration is never suppressed by fail_silently
        set_output(IAC_SCAN_RESULT_OUTPUT_KEY, IaCScanResult.ERROR.value, settings.github_output)
        return set_failed(action_fail_error(f"failing build due to invalid configuration: {e}"))

    workspace = Path(settings.github_workspace)

    try:
        plan = read_plan_file(config.scan_file_ref, workspace)
        logger.info(
            f"Successfully read IaC file from: {config.scan_file_ref}, "
            f"IaC type: {config.iac_type}, IaC version: {config.iac_version or 'N/A'}"
        )

        log_group("Scan IaC file")
        logger.info("Fetching violations for IaC file")
        try:
            report = asyncio.run(run_scan(config, plan))
        finally:
            log_group_end()
        violations = report.violations or []
        logger.info(f"Violations found: {len(violations)}")

        logger.info("Processing report generation for violations fetched")
        sarif_path = process_report(report, SarifReportGenerator(ACTION_VERSION), workspace)
        set_output(IAC_SCAN_RESULT_SARIF_PATH_OUTPUT_KEY, str(sarif_path), settings.github_output)

        counts = get_violation_count_by_severity(violations)
        logger.debug(f"Violations count by severity: {dict(counts)}")
        satisfied = is_failure_criteria_satisfied(config.failure_criteria, violations)
        result = classify_scan_result(satisfied, config.ignore_violations)
        set_output(IAC_SCAN_RESULT_OUTPUT_KEY, result.value, settings.github_output)
        write_step_summary(
            build_summary(result, report, config.failure_criteria, sarif_path),
            settings.github_step_summary,
        )

        if satisfied and config.ignore_violations:
            log_warning(f"{FAILURE_CRITERIA_CONFIG_KEY} was satisfied, ignoring violations")

        logger.info("IaC Scanning completed")
        if result is IaCScanResult.FAILED:
            return set_failed(action_fail_error(f"{FAILURE_CRITERIA_CONFIG_KEY} was satisfied"))
        return 0

    except Exception as e:
        set_output(IAC_SCAN_RESULT_OUTPUT_KEY, IaCScanResult.ERROR.value, settings.github_output)
        if not config.fail_silently:
            return set_failed(action_fail_error(f"failing build due to internal error: {e}"))
        logger.error(
            f"Encountered internal error: {e}, suppressing error due to "
            f"{FAIL_SILENTLY_CONFIG_KEY} being true."
        )
        return 0


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
