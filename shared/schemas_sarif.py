"""Pydantic schemas for the SARIF 2.1.0 findings report.

Only the subset of SARIF written by the report renderer is modelled.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SarifModel(BaseModel):
    """Base for SARIF nodes; absent values are omitted on dump."""

    model_config = ConfigDict(populate_by_name=True)

    def to_sarif(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Message(SarifModel):
    text: str | None = None


class RuleProperties(SarifModel):
    severity: str | None = None
    policy_type: str | None = Field(default=None, alias="policyType")
    compliance_standard: list[str] | None = Field(default=None, alias="complianceStandard")
    policy_set: str | None = Field(default=None, alias="policySet")
    posture: str | None = None
    posture_revision_id: str | None = Field(default=None, alias="postureRevisionId")
    posture_deployment_id: str | None = Field(default=None, alias="postureDeploymentId")
    constraints: str | None = None
    next_steps: str | None = Field(default=None, alias="nextSteps")


class Rule(SarifModel):
    """A reporting descriptor, one per distinct policy."""

    id: str
    full_description: Message | None = Field(default=None, alias="fullDescription")
    properties: RuleProperties


class LogicalLocation(SarifModel):
    fully_qualified_name: str = Field(alias="fullyQualifiedName")


class Location(SarifModel):
    logical_locations: list[LogicalLocation] = Field(alias="logicalLocations")


class ResultProperties(SarifModel):
    asset_id: str = Field(alias="assetId")
    asset: str | None = None
    asset_type: str | None = Field(default=None, alias="assetType")


class Result(SarifModel):
    """A single finding, one per violation."""

    rule_id: str = Field(alias="ruleId")
    message: Message
    locations: list[Location]
    properties: ResultProperties


class Driver(SarifModel):
    name: str
    version: str
    information_uri: str = Field(alias="informationUri")
    rules: list[Rule] = Field(default_factory=list)


class Tool(SarifModel):
    driver: Driver


class Run(SarifModel):
    note: str | None = None
    tool: Tool
    results: list[Result] = Field(default_factory=list)


class SarifReport(SarifModel):
    """Top-level SARIF log."""

    version: str
    schema_uri: str = Field(alias="$schema")
    runs: list[Run]
