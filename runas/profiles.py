"""Profile resolution from the AWS config file.

Reads `[default]` and `[profile NAME]` sections through botocore's config loader
and turns them into immutable Profile records.

Usage:
    from runas.profiles import ProfileResolver

    resolver = ProfileResolver()
    profile = resolver.resolve("admin")
    print(profile.role_arn, profile.source_profile)
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import structlog
from botocore.configloader import load_config
from botocore.exceptions import ConfigNotFound, ConfigParseError

from .arn import validate_role_arn
from .config import DEFAULT_PROFILE_NAME, Settings
from .exceptions import InvalidInputError, NoDefaultProfileError, ProfileNotFoundError, RunasError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Profile:
    """A resolved configuration profile.

    Attributes:
        name: Profile name ("" for an anonymous profile built in code)
        region: AWS region, if configured
        role_arn: IAM role to assume, if configured
        source_profile: Profile holding the base credentials; "default" when a role is set without one
        mfa_serial: MFA device serial or ARN, read from this profile only
    """

    name: str = ""
    region: Optional[str] = None
    role_arn: Optional[str] = None
    source_profile: Optional[str] = None
    mfa_serial: Optional[str] = None

    @property
    def credentials_profile(self) -> Optional[str]:
        """Name of the profile whose credentials back this profile's session token."""
        if self.role_arn:
            return self.source_profile
        return self.name or None


def load_sections(config_file: Path) -> Dict[str, Dict[str, Any]]:
    """Load profile sections from an AWS config file.

    A missing file is treated as empty.

    Raises:
        RunasError: If the file cannot be parsed
    """
    try:
        return load_config(str(config_file)).get("profiles", {})
    except ConfigNotFound:
        logger.debug("Config file not found, using empty configuration", config_file=str(config_file))
        return {}
    except ConfigParseError as e:
        raise RunasError(f"Unable to parse config file: {config_file}", details=str(e))


class ProfileResolver:
    """Resolves named or default profiles from configuration sections."""

    def __init__(
        self,
        sections: Optional[Mapping[str, Mapping[str, Any]]] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Args:
            sections: Pre-loaded section mapping (name -> fields). Loaded from
                settings.config_file on first use when omitted.
            settings: Environment settings (defaults to Settings())
        """
        self.settings = settings or Settings()
        self._sections = sections

    @property
    def sections(self) -> Mapping[str, Mapping[str, Any]]:
        if self._sections is None:
            self._sections = load_sections(self.settings.config_file)
            logger.debug(
                "Loaded profile sections",
                config_file=str(self.settings.config_file),
                profile_count=len(self._sections),
            )
        return self._sections

    def list_profiles(self) -> list[str]:
        """Lists all configured profile names."""
        return sorted(self.sections.keys())

    def resolve_default(self) -> Profile:
        """Resolve the default profile.

        Uses AWS_DEFAULT_PROFILE when set, otherwise "default".

        Raises:
            NoDefaultProfileError: If the default section is absent
            InvalidRoleArnError: If the section carries an invalid role ARN
        """
        name = self.settings.default_profile or DEFAULT_PROFILE_NAME
        section = self.sections.get(name)
        if section is None:
            raise NoDefaultProfileError(name, f"Config file: {self.settings.config_file}")
        return self._build(name, section)

    def resolve(self, name: Optional[str]) -> Profile:
        """Resolve a profile by name.

        Raises:
            InvalidInputError: If name is None or empty
            ProfileNotFoundError: If no section matches
            InvalidRoleArnError: If the section carries an invalid role ARN
        """
        if not name:
            raise InvalidInputError("Profile name is required")

        section = self.sections.get(name)
        if section is None:
            raise ProfileNotFoundError(name, f"Config file: {self.settings.config_file}")
        return self._build(name, section)

    def _build(self, name: str, section: Mapping[str, Any]) -> Profile:
        role_arn = validate_role_arn(section.get("role_arn"))

        source_profile = section.get("source_profile") or None
        if role_arn and not source_profile:
            source_profile = DEFAULT_PROFILE_NAME

        # mfa_serial comes from this section only, never from source_profile
        profile = Profile(
            name=name,
            region=section.get("region") or None,
            role_arn=role_arn,
            source_profile=source_profile,
            mfa_serial=section.get("mfa_serial") or None,
        )
        logger.debug(
            "Resolved profile",
            profile=name,
            has_role=bool(role_arn),
            source_profile=source_profile,
            has_mfa=bool(profile.mfa_serial),
        )
        return profile
