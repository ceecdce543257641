"""Pydantic schemas for the IaC validation service wire format.

Field names are snake_case in Python and camelCase on the wire; models are
immutable once parsed.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class Severity(str, Enum):
    """Severity of a reported policy violation."""

    UNSPECIFIED = "SEVERITY_UNSPECIFIED"
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class IaCScanResult(str, Enum):
    """Outcome of the action, published as the iac_scan_result output."""

    PASSED = "passed"
    FAILED = "failed"
    ERROR = "error"


class WireModel(BaseModel):
    """Base for models exchanged with the validation service."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


# --- Violation Schema ---


class PostureDetails(WireModel):
    """Posture the violated policy was deployed through."""

    posture_deployment: str | None = None
    posture_deployment_target_resource: str | None = None
    posture: str | None = None
    posture_revision_id: str | None = None
    policy_set: str | None = None


class PolicyDetails(WireModel):
    """Details of the violated policy."""

    constraint: str | None = None
    constraint_type: str | None = None
    compliance_standards: list[str] | None = None
    description: str | None = None


class AssetDetails(WireModel):
    """Details of the non-compliant asset."""

    asset: str | None = None
    asset_type: str | None = None


class Violation(WireModel):
    """One policy non-compliance finding.

    ``asset_id`` and ``policy_id`` are required by the service contract but
    default to empty here so the scan client can report which one is missing.
    """

    asset_id: str = Field(default="", description="Identifier of the non-compliant resource")
    policy_id: str = Field(default="", description="Identifier of the violated policy")
    severity: Severity | None = None
    violated_posture: PostureDetails | None = None
    violated_policy: PolicyDetails | None = None
    violated_asset: AssetDetails | None = None
    next_steps: str | None = None

    @field_validator("asset_id", "policy_id", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class IaCValidationReport(WireModel):
    """Report carried by a completed validation operation."""

    note: str | None = None
    violations: list[Violation] | None = None


# --- Long-running Operation Schema ---


class OperationError(WireModel):
    """Error status attached to a failed operation."""

    code: int | None = None
    message: str | None = None


class OperationResponse(WireModel):
    """Payload of a successfully completed operation."""

    name: str | None = None
    create_time: str | None = None
    update_time: str | None = None
    iac_validation_report: IaCValidationReport | None = None


class Operation(WireModel):
    """Snapshot of a remote long-running operation."""

    name: str = ""
    metadata: dict[str, Any] | None = None
    done: bool | None = None
    error: OperationError | None = None
    response: OperationResponse | None = None


# --- Request Schema ---


class IaC(BaseModel):
    """IaC payload; ``tf_plan`` is the base64-encoded plan file."""

    tf_plan: str


class IaCRequest(BaseModel):
    """Body of the createIaCValidationReport call."""

    parent: str
    iac: IaC
