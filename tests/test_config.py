"""Unit tests for core/config.py -- Settings validation.

Covers:
- Defaults: issuer, TTL 3600, HS256, bcrypt cost 12, default role "user"
- DEBUG auto-generates SECRET_KEY; production refuses to start without one
- Short keys and out-of-range values are rejected
- Asymmetric algorithms require SIGNING_KEY_FILE
"""

import pytest
from pydantic import ValidationError

from core.config import Settings

GOOD_KEY = "k" * 32


def test_defaults(monkeypatch):
    monkeypatch.delenv("BCRYPT_ROUNDS", raising=False)
    settings = Settings(debug=False, secret_key=GOOD_KEY)
    assert settings.token_issuer == "matricula-auth"
    assert settings.token_expire_seconds == 3600
    assert settings.jwt_algorithm == "HS256"
    assert settings.bcrypt_rounds == 12
    assert settings.default_role == "user"
    assert settings.allowed_hosts == ["*"]


def test_debug_generates_secret_key():
    settings = Settings(debug=True, secret_key="")
    assert len(settings.secret_key) >= 32


def test_production_requires_secret_key():
    with pytest.raises(ValidationError, match="SECRET_KEY is required"):
        Settings(debug=False, secret_key="")


def test_short_secret_key_rejected():
    with pytest.raises(ValidationError, match="at least 32 characters"):
        Settings(debug=True, secret_key="short")


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("TOKEN_EXPIRE_SECONDS", "600")
    monkeypatch.setenv("DEFAULT_ROLE", "student")
    settings = Settings(debug=True)
    assert settings.token_expire_seconds == 600
    assert settings.default_role == "student"


@pytest.mark.parametrize("field, value", [("bcrypt_rounds", 3), ("bcrypt_rounds", 32), ("token_expire_seconds", 0)])
def test_out_of_range_rejected(field, value):
    with pytest.raises(ValidationError):
        Settings(debug=True, **{field: value})


def test_asymmetric_algorithm_requires_key_file():
    with pytest.raises(ValidationError, match="SIGNING_KEY_FILE"):
        Settings(debug=True, jwt_algorithm="RS256")
