"""Caller identity and assumable role discovery."""

from .iam import IamPolicyService, IdentityService, PolicyService, StsIdentityService
from .policy import PolicyDocument, PolicyStatement, parse_policy_document
from .provider import AwsIdentityProvider, Identity, RoleArnSet, identity_from_arn

__all__ = [
    "AwsIdentityProvider",
    "IamPolicyService",
    "Identity",
    "IdentityService",
    "PolicyDocument",
    "PolicyService",
    "PolicyStatement",
    "RoleArnSet",
    "StsIdentityService",
    "identity_from_arn",
    "parse_policy_document",
]
