"""Pytest configuration and fixtures for test isolation."""

from datetime import timedelta
from typing import List, Optional

import pytest

from runas.auth.credentials import CredentialValue
from runas.config import Settings

CONFIG_TEXT = """\
[default]
region = us-east-1

[profile alt_default]
region = us-west-1
mfa_serial = 12345678

[profile basic]
region = us-east-2

[profile has_role]
region = eu-west-1
role_arn = arn:aws:iam::012345678901:role/Admin
source_profile = default

[profile has_role_explicit_mfa]
role_arn = arn:aws:iam::012345678901:role/Admin
mfa_serial = arn:aws:iam::012345678901:mfa/alice
source_profile = alt_default

[profile has_role_bad_source]
role_arn = arn:aws:iam::012345678901:role/Admin
source_profile = not_a_profile

[profile has_role_no_source]
role_arn = arn:aws:iam::012345678901:role/Admin

[profile has_bad_role]
role_arn = aws:iam::012345678901:role/Admin

[profile has_s3_arn]
role_arn = arn:aws:s3:::bucket/object
"""


@pytest.fixture(scope="function", autouse=True)
def isolate_environment(monkeypatch):
    """Automatically isolate each test from the host environment.

    Clears AWS and runas variables that could leak from the developer's
    environment into tests, so tests run the same way in CI as they do locally.
    """
    env_vars_to_clear = [
        "AWS_CONFIG_FILE",
        "AWS_SHARED_CREDENTIALS_FILE",
        "AWS_DEFAULT_PROFILE",
        "AWS_PROFILE",
        "AWS_ACCESS_KEY_ID",
        "AWS_SECRET_ACCESS_KEY",
        "AWS_SESSION_TOKEN",
        "RUNAS_CACHE_DIR",
        "RUNAS_MAX_WORKERS",
        "LOG_LEVEL",
        "LOG_FORMAT",
        "BUILD_VERSION",
    ]

    for var in env_vars_to_clear:
        monkeypatch.delenv(var, raising=False)

    yield


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    """AWS config file with a representative set of profiles, selected via AWS_CONFIG_FILE."""
    path = tmp_path / "aws.cfg"
    path.write_text(CONFIG_TEXT)
    monkeypatch.setenv("AWS_CONFIG_FILE", str(path))
    return path


@pytest.fixture
def settings(tmp_path, monkeypatch):
    """Settings whose cache directory is a fresh temporary directory."""
    cache_dir = tmp_path / "cache"
    monkeypatch.setenv("RUNAS_CACHE_DIR", str(cache_dir))
    return Settings()


class FakeTokenService:
    """TokenService returning fixed credentials and recording every call."""

    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.session_token_calls: List[dict] = []
        self.assume_role_calls: List[dict] = []

    def get_session_token(self, duration: timedelta, mfa_serial=None, mfa_code=None) -> CredentialValue:
        self.session_token_calls.append({"duration": duration, "mfa_serial": mfa_serial, "mfa_code": mfa_code})
        if self.error is not None:
            raise self.error
        n = len(self.session_token_calls)
        return CredentialValue(f"ASIASESSION{n}", f"session-secret-{n}", f"session-token-{n}")

    def assume_role(
        self, role_arn, duration, session_name, mfa_serial=None, mfa_code=None, credentials=None
    ) -> CredentialValue:
        self.assume_role_calls.append(
            {
                "role_arn": role_arn,
                "duration": duration,
                "session_name": session_name,
                "credentials": credentials,
            }
        )
        if self.error is not None:
            raise self.error
        n = len(self.assume_role_calls)
        return CredentialValue(f"ASIAROLE{n}", f"role-secret-{n}", f"role-token-{n}")


@pytest.fixture
def token_service():
    return FakeTokenService()
