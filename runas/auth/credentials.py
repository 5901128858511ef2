"""Credential records and provider options."""

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional, Union

from dataclasses_json import dataclass_json

#: Sentinel expiration of a credential that was never loaded
ZERO_TIME = datetime.fromtimestamp(0, tz=timezone.utc)

SESSION_TOKEN_MIN_DURATION = timedelta(minutes=15)
SESSION_TOKEN_MAX_DURATION = timedelta(hours=36)
SESSION_TOKEN_DEFAULT_DURATION = timedelta(hours=12)

ASSUME_ROLE_MIN_DURATION = timedelta(minutes=15)
ASSUME_ROLE_MAX_DURATION = timedelta(hours=12)
ASSUME_ROLE_DEFAULT_DURATION = timedelta(hours=1)


def normalize_duration(
    duration: Optional[timedelta],
    minimum: timedelta,
    maximum: timedelta,
    default: timedelta,
) -> timedelta:
    """Clamp a duration into [minimum, maximum], replacing zero/unset with default."""
    if not duration:
        return default
    if duration < minimum:
        return minimum
    if duration > maximum:
        return maximum
    return duration


@dataclass_json
@dataclass(frozen=True)
class CredentialValue:
    access_key_id: str = ""
    secret_access_key: str = ""
    session_token: str = ""
    provider_name: str = ""

    def to_env(self) -> Dict[str, str]:
        """Environment variables understood by AWS SDKs and the AWS CLI."""
        env = {
            "AWS_ACCESS_KEY_ID": self.access_key_id,
            "AWS_SECRET_ACCESS_KEY": self.secret_access_key,
        }
        if self.session_token:
            env["AWS_SESSION_TOKEN"] = self.session_token
            env["AWS_SECURITY_TOKEN"] = self.session_token
        return env


@dataclass_json
@dataclass(frozen=True)
class CachedCredential:
    """Temporary credential plus its absolute expiration (unix seconds).

    An expiration of 0 marks the never-loaded sentinel, which is always expired.
    """

    value: CredentialValue = field(default_factory=CredentialValue)
    expiration: int = 0

    @property
    def expiration_time(self) -> datetime:
        return datetime.fromtimestamp(self.expiration, tz=timezone.utc)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expiration <= 0:
            return True
        now = now or datetime.now(timezone.utc)
        return now >= self.expiration_time

    def with_expiration(self, expiration: Union[datetime, int]) -> "CachedCredential":
        if isinstance(expiration, datetime):
            expiration = int(expiration.timestamp())
        return replace(self, expiration=expiration)


#: Never-loaded credential
UNSET_CREDENTIAL = CachedCredential()


@dataclass
class ProviderOptions:
    """Options shared by the session token and assume role providers.

    Attributes:
        session_token_duration: Requested session token lifetime (clamped, 0 = default)
        assume_role_duration: Requested assumed role lifetime (clamped, 0 = default)
        role_arn: Overrides the profile's role_arn
        mfa_serial: Overrides the profile's mfa_serial
        mfa_code: One-time MFA code to use on the next refresh
        mfa_prompt: Called with the MFA serial when a code is needed and mfa_code is unset
        role_session_name: Overrides the generated role session name
        log_level: Level for the provider loggers (name or number), unchanged when None
    """

    session_token_duration: Optional[timedelta] = None
    assume_role_duration: Optional[timedelta] = None
    role_arn: Optional[str] = None
    mfa_serial: Optional[str] = None
    mfa_code: Optional[str] = None
    mfa_prompt: Optional[Callable[[str], str]] = None
    role_session_name: Optional[str] = None
    log_level: Union[str, int, None] = None
