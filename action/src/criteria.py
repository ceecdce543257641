"""Failure criteria: threshold expression parsing and evaluation.

A failure criteria expression such as ``"Critical:2, High:1, Operator:AND"``
sets a minimum violation count per severity and an aggregator. The build is
considered failing when the aggregated per-severity checks are satisfied.
"""

import math
import re
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from shared.constants import DEFAULT_FAILURE_CRITERIA
from shared.exceptions import ValidationError
from shared.schemas import Severity, Violation

OPERATOR_KEY = "OPERATOR"

NUMBER_PATTERN = re.compile(r"[+-]?(\d+\.?\d*|\.\d+)(E[+-]?\d+)?", re.IGNORECASE)

# Severities a user may set a threshold for
THRESHOLD_SEVERITIES = {
    severity.value: severity for severity in Severity if severity is not Severity.UNSPECIFIED
}


class Operator(str, Enum):
    """Aggregator combining the per-severity threshold checks."""

    AND = "AND"
    OR = "OR"


@dataclass(frozen=True)
class FailureCriteria:
    """Parsed failure criteria expression."""

    threshold_by_severity: dict[Severity, int | float]
    operator: Operator

    def to_expression(self) -> str:
        """Serialize back to canonical ``KEY:VALUE`` form."""
        pairs = [
            f"{severity.value}:{self.threshold_by_severity[severity]}"
            for severity in Severity
            if severity in self.threshold_by_severity
        ]
        pairs.append(f"{OPERATOR_KEY}:{self.operator.value}")
        return ",".join(pairs)


def _split_pairs(expression: str) -> list[tuple[str, str]]:
    pairs = []
    for criterion in expression.split(","):
        tokens = criterion.split(":")
        if len(tokens) != 2:
            raise ValidationError("string format invalid")
        key, value = tokens
        pairs.append((key.strip().upper(), value.strip().upper()))
    return pairs


def _parse_operator(value: str) -> Operator:
    try:
        return Operator(value)
    except ValueError:
        raise ValidationError(f"operator value: {value} not valid") from None


def _parse_threshold(value: str) -> int | float:
    if not value:
        raise ValidationError("Number is empty")
    if not NUMBER_PATTERN.fullmatch(value):
        raise ValidationError(f"Invalid number: {value}")
    number = float(value)
    if not math.isfinite(number):
        raise ValidationError(f"Invalid number: {value}")
    return int(number) if number.is_integer() else number


def parse_failure_criteria(expression: str | None) -> FailureCriteria:
    """Parse a failure criteria expression.

    Keys and values are case-insensitive. An empty or missing expression
    falls back to the default criteria (any violation of a known severity).

    Args:
        expression: Comma-separated ``KEY:VALUE`` pairs

    Returns:
        FailureCriteria with thresholds for the mentioned severities only

    Raises:
        ValidationError: If the expression is malformed
    """
    if not expression:
        expression = DEFAULT_FAILURE_CRITERIA

    operator: Operator | None = None
    thresholds: dict[Severity, int | float] = {}

    for key, value in _split_pairs(expression):
        if key == OPERATOR_KEY:
            if operator is not None:
                raise ValidationError("multiple operators found")
            operator = _parse_operator(value)
            continue

        severity = THRESHOLD_SEVERITIES.get(key)
        if severity is None:
            raise ValidationError(f"invalid key: {key}, value: {value} pair found")
        if severity in thresholds:
            raise ValidationError(f"multiple severities of type {key} found")
        try:
            thresholds[severity] = _parse_threshold(value)
        except ValidationError as e:
            raise ValidationError(f"invalid severity count, {e}") from e

    if operator is None:
        raise ValidationError("no operator found")
    if not thresholds:
        raise ValidationError("no severity mentioned")

    return FailureCriteria(threshold_by_severity=thresholds, operator=operator)


def get_violation_count_by_severity(violations: Iterable[Violation]) -> Counter[Severity]:
    """Count violations per severity.

    Violations without a severity are counted as UNSPECIFIED. Only
    severities that occur are present; lookups of others return 0.
    """
    return Counter(violation.severity or Severity.UNSPECIFIED for violation in violations)


def get_failure_criteria_violated(
    violation_count_by_severity: Counter[Severity],
    threshold_by_severity: dict[Severity, int | float],
) -> list[bool]:
    """Check each configured threshold against the actual counts.

    Only severities present in ``threshold_by_severity`` are checked. A
    threshold is met when the count is greater than or equal to it.

    Args:
        violation_count_by_severity: Counts from get_violation_count_by_severity
        threshold_by_severity: Thresholds from the failure criteria

    Returns:
        One boolean per configured severity
    """
    return [
        violation_count_by_severity.get(severity, 0) >= threshold
        for severity, threshold in threshold_by_severity.items()
    ]


def is_failure_criteria_satisfied(
    criteria: FailureCriteria,
    violations: Iterable[Violation],
) -> bool:
    """Decide whether the violations satisfy the failure criteria.

    Args:
        criteria: Parsed failure criteria
        violations: Violations reported by the scan

    Returns:
        True if the build should be considered failing
    """
    counts = get_violation_count_by_severity(violations)
    checks = get_failure_criteria_violated(counts, criteria.threshold_by_severity)

    if criteria.operator is Operator.AND:
        return all(checks)
    if criteria.operator is Operator.OR:
        return any(checks)
    raise ValueError(f"Unsupported operator: {criteria.operator}")
