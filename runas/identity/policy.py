"""
IAM policy document models

Parses the subset of the IAM policy language needed to find assumable roles:
statements with Effect, Action and Resource, where Statement, Action and
Resource may each be a single value or a list.

Module: policy
"""

from typing import Any, Mapping, Optional, Set, Tuple, Union
from urllib.parse import unquote

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..arn import is_role_arn

ASSUME_ROLE_ACTION = "sts:AssumeRole"

PolicyBody = Union[str, Mapping[str, Any]]


def _as_list(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, (str, dict)):
        return [value]
    return value


class PolicyStatement(BaseModel):
    """One Allow/Deny statement"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    effect: Optional[str] = Field(None, alias="Effect")
    actions: list[str] = Field(default_factory=list, alias="Action")
    resources: list[str] = Field(default_factory=list, alias="Resource")

    @field_validator("actions", "resources", mode="before")
    @classmethod
    def _single_or_list(cls, value: Any) -> Any:
        return _as_list(value)

    def grants_assume_role(self) -> bool:
        return ASSUME_ROLE_ACTION in self.actions

    def role_arns(self) -> Set[str]:
        """Resources shaped like IAM role ARNs; everything else is dropped."""
        return {resource for resource in self.resources if is_role_arn(resource)}


class PolicyDocument(BaseModel):
    """A policy document holding one statement or a list of statements"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    version: Optional[str] = Field(None, alias="Version")
    statements: list[PolicyStatement] = Field(default_factory=list, alias="Statement")

    @field_validator("statements", mode="before")
    @classmethod
    def _single_or_list(cls, value: Any) -> Any:
        return _as_list(value)

    def assume_role_arns(self) -> Tuple[Set[str], Set[str]]:
        """
        Role ARNs this document allows and denies for sts:AssumeRole

        Returns:
            Tuple of (allowed role ARNs, denied role ARNs)
        """
        allow: Set[str] = set()
        deny: Set[str] = set()

        for statement in self.statements:
            if not statement.grants_assume_role():
                continue
            if statement.effect == "Allow":
                allow |= statement.role_arns()
            elif statement.effect == "Deny":
                deny |= statement.role_arns()

        return allow, deny


def parse_policy_document(body: PolicyBody) -> PolicyDocument:
    """
    Parse a policy document from JSON text or an already-decoded mapping

    URL-encoded JSON (as returned by the raw IAM API) is decoded first.

    Raises:
        ValueError: If the body is empty or not a valid policy document
            (pydantic.ValidationError is a ValueError)
    """
    if isinstance(body, Mapping):
        return PolicyDocument.model_validate(dict(body))

    if not isinstance(body, str):
        raise ValueError(f"Unsupported policy document type: {type(body).__name__}")

    text = body.strip()
    if text.startswith("%7B"):
        text = unquote(text)
    if not text:
        raise ValueError("Empty policy document")

    return PolicyDocument.model_validate_json(text)
