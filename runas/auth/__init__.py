"""Cached STS credentials for profiles.

This module provides session token and assume role providers that persist
their credentials per profile and refresh them once expired.
"""

from .credentials import CachedCredential, CredentialValue, ProviderOptions
from .providers import AssumeRoleProvider, CachedCredentialsProvider, SessionTokenProvider
from .store import CredentialStore
from .sts import StsTokenService, TokenService

__all__ = [
    "AssumeRoleProvider",
    "CachedCredential",
    "CachedCredentialsProvider",
    "CredentialStore",
    "CredentialValue",
    "ProviderOptions",
    "SessionTokenProvider",
    "StsTokenService",
    "TokenService",
]
