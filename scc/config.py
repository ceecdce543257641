"""Configuration for the IaC scan action.

GitHub Actions passes action inputs as ``INPUT_<NAME>`` environment
variables. Values are kept as raw strings here and validated by
``action.src.inputs`` so that errors carry the input name.
"""

from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.constants import VALIDATE_ENDPOINT_DOMAIN


class Settings(BaseSettings):
    """Action settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="INPUT_",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # Action inputs
    organization_id: str = Field(default="", description="Cloud organization ID")
    scan_file_ref: str = Field(default="", description="Path to the plan file to scan")
    iac_type: str = Field(default="terraform", description="IaC template type")
    iac_version: str = Field(default="", description="IaC tool version")
    scan_timeout: str = Field(default="", description="Maximum scan duration, e.g. 3m")
    ignore_violations: str = Field(default="", description="Ignore violations for build status")
    failure_criteria: str = Field(default="", description="Failure criteria expression")
    fail_silently: str = Field(default="", description="Do not fail the build on internal errors")

    # Validation service
    validate_endpoint: str = Field(
        default=VALIDATE_ENDPOINT_DOMAIN,
        description="Validation service base URL",
    )

    # Runner environment
    runner_debug: bool = Field(
        default=False,
        validation_alias=AliasChoices("RUNNER_DEBUG", "ACTIONS_STEP_DEBUG"),
        description="Enable debug logging",
    )
    github_output: str | None = Field(default=None, validation_alias="GITHUB_OUTPUT")
    github_step_summary: str | None = Field(default=None, validation_alias="GITHUB_STEP_SUMMARY")
    github_workspace: str = Field(default=".", validation_alias="GITHUB_WORKSPACE")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
