"""Action input validation.

Turns the raw input strings from ``scc.config.Settings`` into a validated
InputConfiguration. Every error is a ValidationError prefixed with the name
of the offending input.
"""

import re
from dataclasses import dataclass

from scc.config import Settings
from shared.constants import (
    DEFAULT_FAIL_SILENTLY,
    DEFAULT_IGNORE_VIOLATIONS,
    DEFAULT_SCAN_TIMEOUT,
    FAIL_SILENTLY_CONFIG_KEY,
    FAILURE_CRITERIA_CONFIG_KEY,
    IAC_TYPE_CONFIG_KEY,
    IGNORE_VIOLATIONS_CONFIG_KEY,
    MAX_SCAN_TIMEOUT,
    MIN_SCAN_TIMEOUT,
    ORGANIZATION_ID_CONFIG_KEY,
    SCAN_FILE_REF_CONFIG_KEY,
    SCAN_TIMEOUT_CONFIG_KEY,
    SUPPORTED_IAC_TYPES,
)
from shared.exceptions import ValidationError

from action.src.criteria import FailureCriteria, parse_failure_criteria

_DURATION_UNITS = {"h": 3600, "m": 60, "s": 1}
_DURATION_PATTERN = re.compile(r"(?:\d+(?:\.\d+)?[hms])+")
_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)([hms])")
_SECONDS_PATTERN = re.compile(r"\d+(?:\.\d+)?")


@dataclass(frozen=True)
class InputConfiguration:
    """Validated action inputs."""

    organization_id: str
    scan_file_ref: str
    iac_type: str
    iac_version: str
    scan_timeout: int
    ignore_violations: bool
    failure_criteria: FailureCriteria
    fail_silently: bool
    validate_endpoint: str


def parse_duration(value: str) -> float:
    """Parse a duration such as ``3m``, ``1m30s`` or ``90`` into seconds.

    A bare number is interpreted as seconds.
    """
    value = value.strip().lower()
    if _SECONDS_PATTERN.fullmatch(value):
        return float(value)
    if not _DURATION_PATTERN.fullmatch(value):
        raise ValidationError(f"Invalid duration: {value}")
    return sum(float(amount) * _DURATION_UNITS[unit] for amount, unit in _DURATION_PART.findall(value))


def _parse_boolean(value: str) -> bool:
    upper = value.strip().upper()
    if upper == "TRUE":
        return True
    if upper == "FALSE":
        return False
    raise ValidationError(f"Expected true or false, found: {upper}")


def validate_and_parse_scan_timeout(scan_timeout: str | None) -> int:
    """Validate the scan timeout input.

    Args:
        scan_timeout: Duration string, empty for the default

    Returns:
        Timeout in milliseconds
    """
    if not scan_timeout:
        return DEFAULT_SCAN_TIMEOUT

    try:
        timeout_ms = int(parse_duration(scan_timeout) * 1000)
        if timeout_ms > MAX_SCAN_TIMEOUT or timeout_ms < MIN_SCAN_TIMEOUT:
            raise ValidationError(
                f"Expected {SCAN_TIMEOUT_CONFIG_KEY} to be less than or equal to "
                f"{MAX_SCAN_TIMEOUT} and greater than or equal to {MIN_SCAN_TIMEOUT}, "
                f"found: {timeout_ms}"
            )
        return timeout_ms
    except ValidationError as e:
        raise ValidationError(f"{SCAN_TIMEOUT_CONFIG_KEY} validation failed: {e}") from e


def validate_and_parse_ignore_violations(ignore_violations: str | None) -> bool:
    """Validate the ignore_violations input, defaulting to false."""
    if not ignore_violations:
        return DEFAULT_IGNORE_VIOLATIONS
    try:
        return _parse_boolean(ignore_violations)
    except ValidationError as e:
        raise ValidationError(f"{IGNORE_VIOLATIONS_CONFIG_KEY} validation failed: {e}") from e


def validate_and_parse_fail_silently(fail_silently: str | None) -> bool:
    """Validate the fail_silently input, defaulting to false."""
    if not fail_silently:
        return DEFAULT_FAIL_SILENTLY
    try:
        return _parse_boolean(fail_silently)
    except ValidationError as e:
        raise ValidationError(f"{FAIL_SILENTLY_CONFIG_KEY} validation failed: {e}") from e


def validate_and_parse_failure_criteria(failure_criteria: str | None) -> FailureCriteria:
    """Validate the failure_criteria input.

    Conditions for a valid expression:
    1. It contains an Operator exactly once.
    2. The Operator is either OR or AND.
    3. It contains at least one severity.
    4. It contains each severity at most once.

    Example: ``CRITICAL:2, HIGH:1, LOW:1, Operator:and``.
    """
    try:
        return parse_failure_criteria(failure_criteria)
    except ValidationError as e:
        raise ValidationError(f"{FAILURE_CRITERIA_CONFIG_KEY} validation failed : {e}") from e


def _require(value: str, name: str) -> str:
    value = value.strip()
    if not value:
        raise ValidationError(f"Input required and not supplied: {name}")
    return value


def load_input_configuration(settings: Settings) -> InputConfiguration:
    """Validate all action inputs.

    Args:
        settings: Raw settings read from the environment

    Returns:
        InputConfiguration with parsed values

    Raises:
        ValidationError: On the first invalid input
    """
    organization_id = _require(settings.organization_id, ORGANIZATION_ID_CONFIG_KEY)
    scan_file_ref = _require(settings.scan_file_ref, SCAN_FILE_REF_CONFIG_KEY)
    iac_type = _require(settings.iac_type, IAC_TYPE_CONFIG_KEY)
    scan_timeout = validate_and_parse_scan_timeout(settings.scan_timeout)
    ignore_violations = validate_and_parse_ignore_violations(settings.ignore_violations)
    failure_criteria = validate_and_parse_failure_criteria(settings.failure_criteria)
    fail_silently = validate_and_parse_fail_silently(settings.fail_silently)

    if iac_type.upper() not in SUPPORTED_IAC_TYPES:
        raise ValidationError(f"IAC type: {iac_type} not supported")

    return InputConfiguration(
        organization_id=organization_id,
        scan_file_ref=scan_file_ref,
        iac_type=iac_type,
        iac_version=settings.iac_version.strip(),
        scan_timeout=scan_timeout,
        ignore_violations=ignore_violations,
        failure_criteria=failure_criteria,
        fail_silently=fail_silently,
        validate_endpoint=settings.validate_endpoint.rstrip("/"),
    )
