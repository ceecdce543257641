"""Locked constants for the IaC security scan action."""

# Action identity
ACTION_NAME = "scc-iac-scan-action"
ACTION_VERSION = "0.1.0"


def user_agent(version: str = ACTION_VERSION) -> str:
    """User agent sent with every validation service request."""
    return f"{ACTION_NAME}/{version}"


def action_fail_error(reason: str) -> str:
    """Build the message used when the action fails the build."""
    return f"{ACTION_NAME}, reason: {reason}."


# --- Validation service ---

VALIDATE_ENDPOINT_DOMAIN = "https://securityposture.googleapis.com/v1"


def validate_endpoint_path(organization_id: str) -> str:
    """Path of the createIaCValidationReport call for an organization."""
    return (
        f"/organizations/{organization_id}/locations/global/"
        "reports:createIaCValidationReport"
    )


# HTTP status codes that are retried with exponential backoff
RETRIABLE_ERROR_CODES = frozenset({408, 429, 500, 502, 503, 504})

# Plan files larger than this are rejected before any request is made
SCAN_FILE_MAX_SIZE_BYTES = 1_000_000

# Per-request transport timeout (seconds); the scan deadline does not cut requests short
HTTP_TIMEOUT_SECONDS = 60.0

# --- Scan timeout bounds (milliseconds) ---

MIN_SCAN_TIMEOUT = 60_000
MAX_SCAN_TIMEOUT = 600_000
DEFAULT_SCAN_TIMEOUT = 60_000

# --- Input defaults ---

DEFAULT_FAILURE_CRITERIA = "Critical:1,High:1,Medium:1,Low:1,Operator:OR"
DEFAULT_FAIL_SILENTLY = False
DEFAULT_IGNORE_VIOLATIONS = False

# Input names as declared in action.yml
ORGANIZATION_ID_CONFIG_KEY = "organization_id"
SCAN_FILE_REF_CONFIG_KEY = "scan_file_ref"
IAC_TYPE_CONFIG_KEY = "iac_type"
IAC_VERSION_CONFIG_KEY = "iac_version"
SCAN_TIMEOUT_CONFIG_KEY = "scan_timeout"
IGNORE_VIOLATIONS_CONFIG_KEY = "ignore_violations"
FAILURE_CRITERIA_CONFIG_KEY = "failure_criteria"
FAIL_SILENTLY_CONFIG_KEY = "fail_silently"

SUPPORTED_IAC_TYPES = {"TERRAFORM"}

# --- Outputs ---

IAC_SCAN_RESULT_OUTPUT_KEY = "iac_scan_result"
IAC_SCAN_RESULT_SARIF_PATH_OUTPUT_KEY = "iac_scan_result_sarif_path"

# --- SARIF report ---

SARIF_SCHEMA = (
    "https://raw.githubusercontent.com/oasis-tcs/sarif-spec/master/"
    "Schemata/sarif-schema-2.1.0.json"
)
SARIF_VERSION = "2.1.0"
SARIF_REPORT_FILE_NAME = "iac-scan-sarif.json"
IAC_TOOL_NAME = "analyze-code-security-scc"
IAC_TOOL_DOCUMENTATION_LINK = (
    "https://cloud.google.com/security-command-center/docs/validate-iac"
)

# --- Authentication ---

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"
