"""STS token service: the remote side of the credential providers.

Providers depend on the TokenService protocol only, so tests can substitute a
fake with fixed responses.
"""

from datetime import timedelta
from typing import Optional, Protocol

import boto3
import structlog
from botocore.config import Config as BotocoreConfig

from ..exceptions import REMOTE_ERRORS, RemoteServiceError
from .credentials import CredentialValue

logger = structlog.get_logger(__name__)

STS_CLIENT_CONFIG = BotocoreConfig(
    retries={"max_attempts": 3, "mode": "standard"},
    connect_timeout=5,
    read_timeout=10,
)


class TokenService(Protocol):
    """Remote token/role exchange."""

    def get_session_token(
        self,
        duration: timedelta,
        mfa_serial: Optional[str] = None,
        mfa_code: Optional[str] = None,
    ) -> CredentialValue: ...

    def assume_role(
        self,
        role_arn: str,
        duration: timedelta,
        session_name: str,
        mfa_serial: Optional[str] = None,
        mfa_code: Optional[str] = None,
        credentials: Optional[CredentialValue] = None,
    ) -> CredentialValue: ...


def _to_value(response: dict) -> CredentialValue:
    creds = response["Credentials"]
    return CredentialValue(
        access_key_id=creds["AccessKeyId"],
        secret_access_key=creds["SecretAccessKey"],
        session_token=creds["SessionToken"],
    )


class StsTokenService:
    """TokenService backed by boto3 STS clients.

    Args:
        profile_name: Profile whose stored credentials call GetSessionToken
        region: Region for the STS endpoint
        session: Pre-built boto3 session (overrides profile_name/region)
    """

    def __init__(
        self,
        profile_name: Optional[str] = None,
        region: Optional[str] = None,
        session: Optional[boto3.Session] = None,
    ):
        self.profile_name = profile_name
        self.region = region
        self._session = session

    @property
    def session(self) -> boto3.Session:
        if self._session is None:
            self._session = boto3.Session(profile_name=self.profile_name, region_name=self.region)
        return self._session

    def _client(self, credentials: Optional[CredentialValue] = None):
        if credentials is None:
            return self.session.client("sts", config=STS_CLIENT_CONFIG)

        session = boto3.Session(
            aws_access_key_id=credentials.access_key_id,
            aws_secret_access_key=credentials.secret_access_key,
            aws_session_token=credentials.session_token or None,
            region_name=self.region or self.session.region_name,
        )
        return session.client("sts", config=STS_CLIENT_CONFIG)

    def get_session_token(
        self,
        duration: timedelta,
        mfa_serial: Optional[str] = None,
        mfa_code: Optional[str] = None,
    ) -> CredentialValue:
        kwargs = {"DurationSeconds": int(duration.total_seconds())}
        if mfa_serial:
            kwargs["SerialNumber"] = mfa_serial
            kwargs["TokenCode"] = mfa_code

        logger.debug(
            "Requesting session token",
            profile=self.profile_name,
            duration_seconds=kwargs["DurationSeconds"],
            has_mfa=bool(mfa_serial),
        )
        try:
            response = self._client().get_session_token(**kwargs)
        except REMOTE_ERRORS as e:
            logger.error("Failed to get session token", profile=self.profile_name, error=str(e))
            raise RemoteServiceError("GetSessionToken", e) from e

        return _to_value(response)

    def assume_role(
        self,
        role_arn: str,
        duration: timedelta,
        session_name: str,
        mfa_serial: Optional[str] = None,
        mfa_code: Optional[str] = None,
        credentials: Optional[CredentialValue] = None,
    ) -> CredentialValue:
        kwargs = {
            "RoleArn": role_arn,
            "RoleSessionName": session_name,
            "DurationSeconds": int(duration.total_seconds()),
        }
        if mfa_serial:
            kwargs["SerialNumber"] = mfa_serial
            kwargs["TokenCode"] = mfa_code

        logger.debug(
            "Assuming IAM role",
            role_arn=role_arn,
            session_name=session_name,
            duration_seconds=kwargs["DurationSeconds"],
        )
        try:
            response = self._client(credentials).assume_role(**kwargs)
        except REMOTE_ERRORS as e:
            logger.error(
                "Failed to assume role",
                role_arn=role_arn,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise RemoteServiceError("AssumeRole", e) from e

        logger.info("Role assumed successfully", role_arn=role_arn)
        return _to_value(response)
