"""Caller identity and assumable role discovery.

Discovery fans out over the user's inline and attached policies and over every
group's inline and attached policies, then reports the role ARNs granted by
sts:AssumeRole Allow statements minus those named by Deny statements.

Usage:
    provider = AwsIdentityProvider(session=boto3.Session(profile_name="dev"))
    identity = provider.get_identity()
    for arn in provider.roles(identity):
        print(arn)
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Set

import boto3
import structlog
from botocore.utils import ArnParser, InvalidArnException

from ..exceptions import InvalidInputError
from .iam import IamPolicyService, IdentityService, PolicyService, StsIdentityService
from .policy import PolicyBody, PolicyDocument, parse_policy_document

logger = structlog.get_logger(__name__)

PROVIDER_NAME = "AwsIdentityProvider"
DEFAULT_MAX_WORKERS = 8


@dataclass(frozen=True)
class Identity:
    """
    The principal behind a set of credentials.

    Attributes:
        account: AWS account ID
        arn: Principal ARN as reported by GetCallerIdentity
        user_id: Unique principal ID
        username: IAM user name, or the session name for an assumed role
        identity_type: "user", "role" or "federated"
        provider: Name of the provider that produced this identity
    """

    account: str
    arn: str
    user_id: str
    username: str
    identity_type: str
    provider: str = PROVIDER_NAME


def identity_from_arn(arn: str, account: str = "", user_id: str = "") -> Identity:
    """Build an Identity from a caller ARN.

    Raises:
        InvalidInputError: If the ARN is malformed or not a user/role principal
    """
    try:
        resource = ArnParser().parse_arn(arn)["resource"]
    except (InvalidArnException, AttributeError):
        raise InvalidInputError(f"Invalid principal ARN: {arn}")

    kind, _, rest = resource.partition("/")
    if kind == "root" and not rest:
        return Identity(account, arn, user_id, "root", "user")
    if kind == "user" and rest:
        return Identity(account, arn, user_id, rest.rsplit("/", 1)[-1], "user")
    if kind == "federated-user" and rest:
        # GetFederationToken session; the caller name is not an IAM user
        return Identity(account, arn, user_id, rest, "federated")
    if kind == "assumed-role" and "/" in rest:
        return Identity(account, arn, user_id, rest.rsplit("/", 1)[-1], "role")

    raise InvalidInputError(f"Unsupported principal ARN: {arn}")


class RoleArnSet:
    """Allow and deny sets shared by concurrent discovery tasks."""

    def __init__(self):
        self._lock = threading.Lock()
        self.allow: Set[str] = set()
        self.deny: Set[str] = set()

    def add(self, document: PolicyDocument) -> None:
        allow, deny = document.assume_role_arns()
        with self._lock:
            self.allow |= allow
            self.deny |= deny

    def result(self) -> List[str]:
        with self._lock:
            return sorted(self.allow - self.deny)


class _TaskScope:
    """Tracks every task submitted to an executor, including tasks submitted by tasks."""

    def __init__(self, executor: ThreadPoolExecutor):
        self._executor = executor
        self._lock = threading.Lock()
        self._futures: List[Future] = []

    def submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        future = self._executor.submit(fn, *args)
        with self._lock:
            self._futures.append(future)
        return future

    def join(self) -> int:
        """Wait for all tasks, including late submissions. Returns the number of failed tasks."""
        failures = 0
        seen = 0
        while True:
            with self._lock:
                batch = self._futures[seen:]
            if not batch:
                return failures
            seen += len(batch)
            for future in batch:
                error = future.exception()
                if error is not None:
                    failures += 1
                    logger.debug("Discovery task failed", error=str(error), error_type=type(error).__name__)


class AwsIdentityProvider:
    """Looks up the caller identity and the IAM roles it may assume.

    Args:
        session: boto3 session used to build default STS/IAM services
        identity_service: Overrides the STS-backed identity lookup
        policy_service: Overrides the IAM-backed policy enumeration
        max_workers: Worker pool size for policy fetches
    """

    def __init__(
        self,
        session: Optional[boto3.Session] = None,
        identity_service: Optional[IdentityService] = None,
        policy_service: Optional[PolicyService] = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ):
        self._session = session
        self._identity_service = identity_service
        self._policy_service = policy_service
        self.max_workers = max(1, max_workers)

    @property
    def session(self) -> boto3.Session:
        if self._session is None:
            self._session = boto3.Session()
        return self._session

    @property
    def identity_service(self) -> IdentityService:
        if self._identity_service is None:
            self._identity_service = StsIdentityService(self.session.client("sts"))
        return self._identity_service

    @property
    def policy_service(self) -> PolicyService:
        if self._policy_service is None:
            self._policy_service = IamPolicyService(self.session.client("iam"))
        return self._policy_service

    def get_identity(self) -> Identity:
        """Look up the caller identity.

        Raises:
            RemoteServiceError: If GetCallerIdentity fails
            InvalidInputError: If the returned ARN is not a user or role principal
        """
        response = self.identity_service.get_caller_identity()
        identity = identity_from_arn(response["Arn"], response.get("Account", ""), response.get("UserId", ""))
        logger.debug(
            "Resolved caller identity",
            account=identity.account,
            username=identity.username,
            identity_type=identity.identity_type,
        )
        return identity

    def roles(self, identity: Optional[Identity] = None, username: Optional[str] = None) -> List[str]:
        """Find the role ARNs the principal may assume.

        Individual policy fetch or parse failures are skipped; the result may then
        be smaller than the true set.

        Args:
            identity: Caller identity (looked up when omitted and no username is given)
            username: IAM user name to inspect instead of the identity's own

        Returns:
            Sorted, de-duplicated role ARNs

        Raises:
            RemoteServiceError: If the identity lookup fails
            InvalidInputError: If no IAM user name can be determined
        """
        user = username or self._user_name(identity)

        role_set = RoleArnSet()
        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="runas-roles") as executor:
            scope = _TaskScope(executor)
            scope.submit(self._user_inline_policies, scope, role_set, user)
            scope.submit(self._user_attached_policies, scope, role_set, user)
            scope.submit(self._group_policies, scope, role_set, user)
            failures = scope.join()

        result = role_set.result()
        logger.info("Role discovery complete", user=user, role_count=len(result), failed_tasks=failures)
        return result

    def _user_name(self, identity: Optional[Identity]) -> str:
        if identity is None:
            identity = self.get_identity()
        if identity.identity_type != "user":
            raise InvalidInputError(
                f"Cannot discover roles for a {identity.identity_type} principal: {identity.arn}",
                "Pass the IAM user name explicitly",
            )
        return identity.username

    def _user_inline_policies(self, scope: _TaskScope, role_set: RoleArnSet, user: str) -> None:
        for name in self.policy_service.list_user_policies(user):
            scope.submit(self._apply, role_set, name, self.policy_service.get_user_policy, user, name)

    def _user_attached_policies(self, scope: _TaskScope, role_set: RoleArnSet, user: str) -> None:
        for arn in self.policy_service.list_attached_user_policies(user):
            scope.submit(self._apply, role_set, arn, self.policy_service.get_policy_document, arn)

    def _group_policies(self, scope: _TaskScope, role_set: RoleArnSet, user: str) -> None:
        for group in self.policy_service.list_groups_for_user(user):
            scope.submit(self._group_inline_policies, scope, role_set, group)
            scope.submit(self._group_attached_policies, scope, role_set, group)

    def _group_inline_policies(self, scope: _TaskScope, role_set: RoleArnSet, group: str) -> None:
        for name in self.policy_service.list_group_policies(group):
            scope.submit(self._apply, role_set, name, self.policy_service.get_group_policy, group, name)

    def _group_attached_policies(self, scope: _TaskScope, role_set: RoleArnSet, group: str) -> None:
        for arn in self.policy_service.list_attached_group_policies(group):
            scope.submit(self._apply, role_set, arn, self.policy_service.get_policy_document, arn)

    def _apply(
        self,
        role_set: RoleArnSet,
        policy: str,
        fetch: Callable[..., PolicyBody],
        *args: str,
    ) -> None:
        body = fetch(*args)
        try:
            document = parse_policy_document(body)
        except (ValueError, TypeError) as e:
            logger.debug("Skipping unparsable policy", policy=policy, error=str(e))
            return
        role_set.add(document)
