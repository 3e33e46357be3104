"""Startup security checks on Settings."""

import logging

import pytest

from storefront.config import Settings, validate_security_posture

STRONG = "a-long-random-secret-for-tests"


def test_production_rejects_default_jwt_secret():
    cfg = Settings(environment="production", protected_api_key="k")
    with pytest.raises(RuntimeError, match="JWT_SECRET_KEY"):
        validate_security_posture(cfg)


def test_production_requires_protected_key():
    cfg = Settings(environment="production", jwt_secret_key=STRONG)
    with pytest.raises(RuntimeError, match="PROTECTED_API_KEY"):
        validate_security_posture(cfg)


def test_production_rejects_wildcard_cors():
    cfg = Settings(
        environment="prod", jwt_secret_key=STRONG, protected_api_key="k", cors_origins="*"
    )
    with pytest.raises(RuntimeError, match="CORS_ORIGINS"):
        validate_security_posture(cfg)


def test_production_with_secure_settings():
    cfg = Settings(environment="production", jwt_secret_key=STRONG, protected_api_key="k")
    validate_security_posture(cfg)


def test_development_only_warns(caplog):
    cfg = Settings(environment="development", protected_api_key="")
    with pytest.warns(UserWarning, match="JWT_SECRET_KEY"):
        with caplog.at_level(logging.WARNING, logger="storefront.config"):
            validate_security_posture(cfg)
    assert "PROTECTED_API_KEY is empty" in caplog.text
