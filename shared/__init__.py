"""Shared schemas, errors and constants for the IaC security scan action."""

from shared.exceptions import (
    AuthenticationError,
    ScanError,
    ScanTimeoutError,
    ValidationError,
)
from shared.schemas import (
    AssetDetails,
    IaCRequest,
    IaCScanResult,
    IaCValidationReport,
    Operation,
    OperationError,
    OperationResponse,
    PolicyDetails,
    PostureDetails,
    Severity,
    Violation,
)
from shared.constants import (
    ACTION_NAME,
    ACTION_VERSION,
    DEFAULT_FAILURE_CRITERIA,
    VALIDATE_ENDPOINT_DOMAIN,
)

__all__ = [
    "AuthenticationError",
    "ScanError",
    "ScanTimeoutError",
    "ValidationError",
    "AssetDetails",
    "IaCRequest",
    "IaCScanResult",
    "IaCValidationReport",
    "Operation",
    "OperationError",
    "OperationResponse",
    "PolicyDetails",
    "PostureDetails",
    "Severity",
    "Violation",
    "ACTION_NAME",
    "ACTION_VERSION",
    "DEFAULT_FAILURE_CRITERIA",
    "VALIDATE_ENDPOINT_DOMAIN",
]
