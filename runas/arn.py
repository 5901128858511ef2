"""IAM role ARN parsing and shape checks."""

from dataclasses import dataclass
from typing import Any, Optional

from botocore.utils import ArnParser, InvalidArnException

from .exceptions import InvalidRoleArnError

_parser = ArnParser()


@dataclass(frozen=True)
class ParsedRoleArn:
    """Components of an IAM role ARN."""

    partition: str
    account: str
    role_path: str
    role_name: str
    arn: str


def parse_role_arn(arn: str) -> ParsedRoleArn:
    """Parse an IAM role ARN into its components.

    Args:
        arn: ARN string, e.g. arn:aws:iam::123456789012:role/path/Name

    Returns:
        ParsedRoleArn

    Raises:
        InvalidRoleArnError: If the ARN is malformed or names something other than an IAM role
    """
    if not isinstance(arn, str) or not arn.startswith("arn:"):
        raise InvalidRoleArnError(str(arn), "Malformed ARN syntax")
    try:
        parts = _parser.parse_arn(arn)
    except InvalidArnException:
        raise InvalidRoleArnError(arn, "Malformed ARN syntax")

    if parts["service"] != "iam":
        raise InvalidRoleArnError(arn, f"Expected service 'iam', got '{parts['service']}'")

    resource = parts["resource"]
    if not resource.startswith("role/") or len(resource) <= len("role/"):
        raise InvalidRoleArnError(arn, f"Expected resource type 'role', got '{resource}'")

    path, _, name = resource[len("role/") :].rpartition("/")
    if not name:
        raise InvalidRoleArnError(arn, "Role name is empty")

    return ParsedRoleArn(
        partition=parts["partition"],
        account=parts["account"],
        role_path=f"/{path}/" if path else "/",
        role_name=name,
        arn=arn,
    )


def validate_role_arn(arn: Optional[str]) -> Optional[str]:
    """Return the ARN unchanged when empty or valid, raise InvalidRoleArnError otherwise."""
    if not arn:
        return None
    parse_role_arn(arn)
    return arn


def is_role_arn(value: Any) -> bool:
    """True if value has the shape of an IAM role ARN."""
    if not isinstance(value, str):
        return False
    try:
        parse_role_arn(value)
    except InvalidRoleArnError:
        return False
    return True
