"""Identity and policy lookups.

Role discovery depends on the IdentityService and PolicyService protocols only.
StsIdentityService and IamPolicyService bind them to boto3 clients.
"""

from typing import Any, Dict, Iterator, List, Protocol

import structlog

from ..exceptions import REMOTE_ERRORS, RemoteServiceError
from .policy import PolicyBody

logger = structlog.get_logger(__name__)


class IdentityService(Protocol):
    """Caller identity lookup."""

    def get_caller_identity(self) -> Dict[str, str]: ...


class PolicyService(Protocol):
    """Group membership and policy enumeration for IAM users."""

    def list_groups_for_user(self, user_name: str) -> List[str]: ...

    def list_user_policies(self, user_name: str) -> List[str]: ...

    def get_user_policy(self, user_name: str, policy_name: str) -> PolicyBody: ...

    def list_attached_user_policies(self, user_name: str) -> List[str]: ...

    def list_group_policies(self, group_name: str) -> List[str]: ...

    def get_group_policy(self, group_name: str, policy_name: str) -> PolicyBody: ...

    def list_attached_group_policies(self, group_name: str) -> List[str]: ...

    def get_policy_document(self, policy_arn: str) -> PolicyBody: ...


class StsIdentityService:
    """IdentityService backed by an STS client."""

    def __init__(self, client):
        self.client = client

    def get_caller_identity(self) -> Dict[str, str]:
        try:
            response = self.client.get_caller_identity()
        except REMOTE_ERRORS as e:
            raise RemoteServiceError("GetCallerIdentity", e) from e
        return {
            "Account": response["Account"],
            "Arn": response["Arn"],
            "UserId": response["UserId"],
        }


class IamPolicyService:
    """PolicyService backed by an IAM client, following every result page."""

    def __init__(self, client):
        self.client = client

    def _paginate(self, operation: str, result_key: str, **kwargs: Any) -> Iterator[Any]:
        try:
            for page in self.client.get_paginator(operation).paginate(**kwargs):
                yield from page.get(result_key, [])
        except REMOTE_ERRORS as e:
            raise RemoteServiceError(operation, e) from e

    def _call(self, operation: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            return getattr(self.client, operation)(**kwargs)
        except REMOTE_ERRORS as e:
            raise RemoteServiceError(operation, e) from e

    def list_groups_for_user(self, user_name: str) -> List[str]:
        return [g["GroupName"] for g in self._paginate("list_groups_for_user", "Groups", UserName=user_name)]

    def list_user_policies(self, user_name: str) -> List[str]:
        return list(self._paginate("list_user_policies", "PolicyNames", UserName=user_name))

    def get_user_policy(self, user_name: str, policy_name: str) -> PolicyBody:
        response = self._call("get_user_policy", UserName=user_name, PolicyName=policy_name)
        return response["PolicyDocument"]

    def list_attached_user_policies(self, user_name: str) -> List[str]:
        return [
            p["PolicyArn"]
            for p in self._paginate("list_attached_user_policies", "AttachedPolicies", UserName=user_name)
        ]

    def list_group_policies(self, group_name: str) -> List[str]:
        return list(self._paginate("list_group_policies", "PolicyNames", GroupName=group_name))

    def get_group_policy(self, group_name: str, policy_name: str) -> PolicyBody:
        response = self._call("get_group_policy", GroupName=group_name, PolicyName=policy_name)
        return response["PolicyDocument"]

    def list_attached_group_policies(self, group_name: str) -> List[str]:
        return [
            p["PolicyArn"]
            for p in self._paginate("list_attached_group_policies", "AttachedPolicies", GroupName=group_name)
        ]

    def get_policy_document(self, policy_arn: str) -> PolicyBody:
        """Fetch the default version document of a managed policy."""
        policy = self._call("get_policy", PolicyArn=policy_arn)["Policy"]
        version = self._call(
            "get_policy_version",
            PolicyArn=policy_arn,
            VersionId=policy["DefaultVersionId"],
        )["PolicyVersion"]
        logger.debug("Fetched managed policy", policy_arn=policy_arn, version_id=policy["DefaultVersionId"])
        return version["Document"]
