"""
Configuration and security settings tests.
"""

import pytest
from pydantic import ValidationError

from claimgate.api.deps import validate_auth_config
from claimgate.config import Environment, Settings, settings


def test_claim_defaults():
    fresh = Settings()

    assert fresh.max_claims_per_provider == 2
    assert fresh.claim_duration_seconds == 3600


def test_production_requires_api_key():
    with pytest.raises(ValidationError, match="api_key is required"):
        Settings(env=Environment.PRODUCTION, api_key=None)


def test_staging_requires_api_key():
    with pytest.raises(ValidationError, match="api_key is required"):
        Settings(env=Environment.STAGING, api_key=None)


def test_api_key_required_unless_insecure_dev():
    with pytest.raises(ValidationError, match="allow_insecure_dev"):
        Settings(allow_insecure_dev=False, api_key=None)

    assert Settings(allow_insecure_dev=True, api_key=None).api_key is None
    assert Settings(env=Environment.PRODUCTION, api_key="k").api_key == "k"


@pytest.mark.parametrize(
    "url",
    [
        "postgresql+asyncpg://u:p@db/claimgate",
        "postgresql://u:p@db/claimgate",
        "sqlite+aiosqlite:///./claimgate.db",
    ],
)
def test_supported_database_urls(url):
    assert Settings(database_url=url).database_url == url


def test_unsupported_database_url():
    with pytest.raises(ValidationError, match="database_url"):
        Settings(database_url="mysql://u:p@db/claimgate")


@pytest.mark.parametrize("field", ["max_claims_per_provider", "claim_duration_seconds"])
def test_claim_limits_must_be_positive(field):
    with pytest.raises(ValidationError):
        Settings(**{field: 0})


def test_invalid_port():
    with pytest.raises(ValidationError, match="Port"):
        Settings(port=70000)


def test_integration_urls_must_be_http():
    with pytest.raises(ValidationError):
        Settings(payment_endpoint="ftp://payments")


def test_cors_is_explicit():
    assert settings.cors_allowed_origins != ["*"]
    assert settings.cors_allowed_methods != ["*"]
    assert "POST" in settings.cors_allowed_methods
    assert "X-Caller-Id" in settings.cors_allowed_headers


def test_insecure_dev_rejected_outside_development(monkeypatch):
    monkeypatch.setattr(settings, "allow_insecure_dev", True)
    monkeypatch.setattr(settings, "env", Environment.PRODUCTION)

    with pytest.raises(RuntimeError, match="only permitted in development"):
        validate_auth_config()
