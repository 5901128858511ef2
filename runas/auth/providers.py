"""Cached session token and assume role credential providers.

Both providers share one lifecycle (see CachedCredentialsProvider.retrieve):
load the per-profile cache file, keep the loaded credential, and refresh it
through STS only once it has expired.

Usage:
    provider = AssumeRoleProvider(profile, ProviderOptions(mfa_prompt=input))
    creds = provider.retrieve()
    s3 = provider.get_session().client("s3")
"""

import logging
import socket
import threading
import time
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Optional

import boto3
import structlog
from botocore.credentials import RefreshableCredentials
from botocore.session import Session

from ..arn import validate_role_arn
from ..config import Settings
from ..exceptions import ConstructionContractViolation, InvalidInputError
from ..logging_config import to_level
from ..profiles import Profile
from .credentials import (
    ASSUME_ROLE_DEFAULT_DURATION,
    ASSUME_ROLE_MAX_DURATION,
    ASSUME_ROLE_MIN_DURATION,
    SESSION_TOKEN_DEFAULT_DURATION,
    SESSION_TOKEN_MAX_DURATION,
    SESSION_TOKEN_MIN_DURATION,
    UNSET_CREDENTIAL,
    CachedCredential,
    CredentialValue,
    ProviderOptions,
    normalize_duration,
)
from .store import ASSUME_ROLE_CACHE_PREFIX, SESSION_TOKEN_CACHE_PREFIX, CredentialStore, cache_file_name
from .sts import StsTokenService, TokenService

logger = structlog.get_logger(__name__)

_cache_locks: Dict[str, threading.Lock] = {}
_cache_locks_guard = threading.Lock()


def _cache_lock(path: Path) -> threading.Lock:
    """One lock per cache file, shared by every provider in the process."""
    key = str(path.absolute())
    with _cache_locks_guard:
        lock = _cache_locks.get(key)
        if lock is None:
            lock = _cache_locks[key] = threading.Lock()
        return lock


class CachedCredentialsProvider:
    """Shared load/check/refresh/persist lifecycle for STS credentials.

    Subclasses set provider_name and cache_prefix and implement _refresh().

    Attributes:
        profile: The profile credentials are issued for
        options: Provider options
        role_arn: Effective role ARN (options override the profile)
        mfa_serial: Effective MFA serial (options override the profile)
        session_token_duration: Normalized session token lifetime
        assume_role_duration: Normalized assumed role lifetime
        credentials: Current credential, UNSET_CREDENTIAL until loaded or refreshed
    """

    provider_name = "CachedCredentialsProvider"
    cache_prefix = SESSION_TOKEN_CACHE_PREFIX

    def __init__(
        self,
        profile: Profile,
        options: ProviderOptions,
        token_service: Optional[TokenService] = None,
        settings: Optional[Settings] = None,
    ):
        """Initialize the provider.

        Raises:
            ConstructionContractViolation: If profile or options is None
            InvalidRoleArnError: If the effective role ARN is not a valid IAM role ARN
        """
        if profile is None:
            raise ConstructionContractViolation(f"{type(self).__name__} requires a profile")
        if options is None:
            raise ConstructionContractViolation(f"{type(self).__name__} requires options")

        if options.log_level is not None:
            logging.getLogger(__package__).setLevel(to_level(options.log_level))

        self.profile = profile
        self.options = options
        self.settings = settings or Settings()

        self.role_arn = validate_role_arn(options.role_arn or profile.role_arn)
        self.mfa_serial = options.mfa_serial or profile.mfa_serial

        self.session_token_duration = normalize_duration(
            options.session_token_duration,
            SESSION_TOKEN_MIN_DURATION,
            SESSION_TOKEN_MAX_DURATION,
            SESSION_TOKEN_DEFAULT_DURATION,
        )
        self.assume_role_duration = normalize_duration(
            options.assume_role_duration,
            ASSUME_ROLE_MIN_DURATION,
            ASSUME_ROLE_MAX_DURATION,
            ASSUME_ROLE_DEFAULT_DURATION,
        )

        self._token_service = token_service
        self.credentials: CachedCredential = UNSET_CREDENTIAL
        self.store = CredentialStore(self.settings.cache_dir / cache_file_name(self.cache_prefix, self.cache_key))

    @property
    def cache_key(self) -> Optional[str]:
        return self.profile.name

    @property
    def duration(self) -> timedelta:
        raise NotImplementedError

    @property
    def token_service(self) -> TokenService:
        if self._token_service is None:
            self._token_service = StsTokenService(
                profile_name=self.profile.credentials_profile,
                region=self.profile.region,
            )
        return self._token_service

    def cache_file(self) -> Path:
        return self.store.path

    def expiration_time(self) -> datetime:
        """Expiration of the current credential; the unix epoch if none was loaded."""
        return self.credentials.expiration_time

    def is_expired(self) -> bool:
        """True if the current credential is expired or was never loaded. Never refreshes."""
        return self.credentials.is_expired()

    def retrieve(self) -> CredentialValue:
        """Return valid credentials, refreshing and persisting them when expired.

        Raises:
            RemoteServiceError: If the STS exchange fails
            InvalidInputError: If an MFA code is needed but unavailable
        """
        with _cache_lock(self.store.path):
            cached = self.store.load()
            if cached is not None:
                logger.debug("Found cached credentials", provider=self.provider_name, cache_file=str(self.store.path))
                self.credentials = cached

            if self.is_expired():
                logger.debug(
                    "Detected expired or unset credentials, refreshing",
                    provider=self.provider_name,
                    profile=self.profile.name,
                )
                self.credentials = self._refresh()
                self.store.save(self.credentials)

            return self.credentials.value

    def clear_cache(self) -> None:
        """Forget the current credential and remove its cache file."""
        with _cache_lock(self.store.path):
            self.store.delete()
            self.credentials = UNSET_CREDENTIAL

    def get_session(self) -> boto3.Session:
        """Create a boto3 session whose credentials refresh through retrieve()."""

        def refresh_credentials():
            value = self.retrieve()
            return {
                "access_key": value.access_key_id,
                "secret_key": value.secret_access_key,
                "token": value.session_token,
                "expiry_time": self.expiration_time().isoformat(),
            }

        session_credentials = RefreshableCredentials.create_from_metadata(
            metadata=refresh_credentials(),
            refresh_using=refresh_credentials,
            method=self.provider_name,
        )

        botocore_session = Session()
        botocore_session._credentials = session_credentials
        return boto3.Session(botocore_session=botocore_session, region_name=self.profile.region)

    def _mfa_code(self) -> Optional[str]:
        if not self.mfa_serial:
            return None
        if self.options.mfa_code:
            return self.options.mfa_code
        if self.options.mfa_prompt is not None:
            return self.options.mfa_prompt(self.mfa_serial)
        raise InvalidInputError(
            f"MFA code required for {self.mfa_serial}",
            "Provide mfa_code or mfa_prompt in the provider options",
        )

    def _issue(self, value: CredentialValue) -> CachedCredential:
        expiration = datetime.now(timezone.utc) + self.duration
        return CachedCredential(
            value=replace(value, provider_name=self.provider_name),
            expiration=int(expiration.timestamp()),
        )

    def _refresh(self) -> CachedCredential:
        raise NotImplementedError


class SessionTokenProvider(CachedCredentialsProvider):
    """Issues MFA-gated session tokens for a profile's base credentials.

    Role profiles share the session token of their source profile.
    """

    provider_name = "SessionTokenProvider"
    cache_prefix = SESSION_TOKEN_CACHE_PREFIX

    @property
    def cache_key(self) -> Optional[str]:
        return self.profile.credentials_profile

    @property
    def duration(self) -> timedelta:
        return self.session_token_duration

    def _refresh(self) -> CachedCredential:
        value = self.token_service.get_session_token(
            self.session_token_duration,
            mfa_serial=self.mfa_serial,
            mfa_code=self._mfa_code(),
        )
        credential = self._issue(value)
        logger.info(
            "Session token issued",
            profile=self.cache_key,
            expires_at=credential.expiration_time.isoformat(),
        )
        return credential


class AssumeRoleProvider(CachedCredentialsProvider):
    """Issues assumed role credentials, calling STS with the profile's session token."""

    provider_name = "AssumeRoleProvider"
    cache_prefix = ASSUME_ROLE_CACHE_PREFIX

    def __init__(
        self,
        profile: Profile,
        options: ProviderOptions,
        token_service: Optional[TokenService] = None,
        settings: Optional[Settings] = None,
    ):
        super().__init__(profile, options, token_service=token_service, settings=settings)
        if not self.role_arn:
            raise InvalidInputError(
                f"No role ARN for profile {profile.name or '(unnamed)'}",
                "Set role_arn in the profile or pass one in the provider options",
            )
        self.session_token_provider = SessionTokenProvider(
            profile,
            options,
            token_service=token_service,
            settings=self.settings,
        )

    @property
    def duration(self) -> timedelta:
        return self.assume_role_duration

    def _generate_session_name(self) -> str:
        """Generate a role session name for CloudTrail auditing.

        Returns:
            Session name in format: "runas-{hostname}-{timestamp}"
        """
        if self.options.role_session_name:
            return self.options.role_session_name

        try:
            hostname = socket.gethostname()
        except Exception:
            hostname = "unknown"

        # AWS limits session names to 64 chars; "runas-" plus a 10 digit timestamp leaves 47
        hostname = hostname[:47]

        timestamp = int(time.time())
        return f"runas-{hostname}-{timestamp}"

    def assume_role(self) -> CachedCredential:
        """Assume the role now, bypassing the assume role cache.

        The result is not persisted; retrieve() does that.
        """
        base = self.session_token_provider.retrieve()
        value = self.token_service.assume_role(
            self.role_arn,
            self.assume_role_duration,
            self._generate_session_name(),
            credentials=base,
        )
        credential = self._issue(value)
        logger.info(
            "Role credentials issued",
            role_arn=self.role_arn,
            expires_at=credential.expiration_time.isoformat(),
        )
        return credential

    def _refresh(self) -> CachedCredential:
        return self.assume_role()
