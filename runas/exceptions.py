"""Error types raised by runas.

Recoverable failures (bad input, missing profiles, malformed ARNs, remote
service errors) derive from RunasError. Caller programming defects raise
ConstructionContractViolation, a TypeError outside that hierarchy.
"""

from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError


class RunasError(Exception):
    """Base class for recoverable runas errors."""

    def __init__(self, message: str, suggestion: Optional[str] = None, details: Optional[str] = None):
        full_message = message
        if suggestion:
            full_message += f"\n\n{suggestion}"
        if details:
            full_message += f"\n\n{details}"
        super().__init__(full_message)
        self.message = message
        self.suggestion = suggestion
        self.details = details

    def format(self) -> str:
        """Format error for console output with suggestions."""
        output = f"Error: {self.message}"
        if self.suggestion:
            output += f"\n   {self.suggestion}"
        if self.details:
            output += f"\n   {self.details}"
        return output


class InvalidInputError(RunasError):
    """Raised when a required argument is missing or empty."""


class ProfileNotFoundError(RunasError):
    """Raised when no configuration section matches the requested profile."""

    def __init__(self, name: str, details: Optional[str] = None):
        super().__init__(
            f"Profile not found: {name}",
            "Check the profile name against your AWS config file",
            details,
        )
        self.name = name


class NoDefaultProfileError(RunasError):
    """Raised when the default profile section is absent."""

    def __init__(self, name: str = "default", details: Optional[str] = None):
        super().__init__(
            f"Default profile not found: {name}",
            "Add a [default] section to your AWS config file or set AWS_DEFAULT_PROFILE",
            details,
        )
        self.name = name


class InvalidRoleArnError(RunasError):
    """Raised when a role ARN is malformed or does not name an IAM role."""

    def __init__(self, arn: str, reason: str):
        super().__init__(
            f"Invalid IAM role ARN: {arn}",
            "ARN must match: arn:aws:iam::account:role/name",
            reason,
        )
        self.arn = arn


class RemoteServiceError(RunasError):
    """Raised when a call to STS or IAM fails."""

    def __init__(self, operation: str, cause: Exception):
        code = None
        if isinstance(cause, ClientError):
            code = cause.response.get("Error", {}).get("Code")
        super().__init__(f"{operation} failed: {cause}", details=f"AWS error code: {code}" if code else None)
        self.operation = operation
        self.code = code
        self.cause = cause


class ConstructionContractViolation(TypeError):
    """Raised when a provider is constructed without its required profile or options.

    This is a programming defect in the caller, not a data problem, so it does not
    derive from RunasError.
    """


REMOTE_ERRORS = (ClientError, BotoCoreError)
