"""Shared fixtures for the IaC scan action tests."""

import pytest

from shared.schemas import Severity, Violation


@pytest.fixture
def make_violation():
    """Factory for violations with a given severity."""

    def _make(severity: Severity | None, asset_id: str = "asset-id", policy_id: str = "policy-id"):
        return Violation(asset_id=asset_id, policy_id=policy_id, severity=severity)

    return _make


@pytest.fixture(autouse=True)
def clean_auth_env(monkeypatch):
    """Keep runner credentials out of the tests."""
    for name in (
        "GOOGLE_OAUTH_ACCESS_TOKEN",
        "CLOUDSDK_AUTH_ACCESS_TOKEN",
        "GOOGLE_APPLICATION_CREDENTIALS",
    ):
        monkeypatch.delenv(name, raising=False)
