"""Temporary, MFA-gated, role-scoped AWS credentials for named profiles."""

from .auth import AssumeRoleProvider, CachedCredential, CredentialValue, ProviderOptions, SessionTokenProvider
from .config import Settings, get_settings
from .exceptions import (
    ConstructionContractViolation,
    InvalidInputError,
    InvalidRoleArnError,
    NoDefaultProfileError,
    ProfileNotFoundError,
    RemoteServiceError,
    RunasError,
)
from .identity import AwsIdentityProvider, Identity
from .profiles import Profile, ProfileResolver
from .version import __version__

__all__ = [
    "AssumeRoleProvider",
    "AwsIdentityProvider",
    "CachedCredential",
    "ConstructionContractViolation",
    "CredentialValue",
    "Identity",
    "InvalidInputError",
    "InvalidRoleArnError",
    "NoDefaultProfileError",
    "Profile",
    "ProfileNotFoundError",
    "ProfileResolver",
    "ProviderOptions",
    "RemoteServiceError",
    "RunasError",
    "SessionTokenProvider",
    "Settings",
    "__version__",
    "get_settings",
]
