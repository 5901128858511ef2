"""File-backed credential cache.

One JSON file per cache key. Read and write failures never raise: a failed read
is a cache miss, a failed write leaves the in-memory credential in use.
"""

import json
import os
from pathlib import Path
from typing import Optional

import structlog

from .credentials import CachedCredential, CredentialValue

logger = structlog.get_logger(__name__)

SESSION_TOKEN_CACHE_PREFIX = ".aws_session_token"
ASSUME_ROLE_CACHE_PREFIX = ".aws_assume_role"


def cache_file_name(prefix: str, profile_name: Optional[str]) -> str:
    """Build a cache file name, embedding the profile name unless it is unset or "default".

    Examples:
        >>> cache_file_name(".aws_session_token", "default")
        '.aws_session_token_'
        >>> cache_file_name(".aws_session_token", "dev")
        '.aws_session_token_dev'
    """
    if not profile_name or profile_name == "default":
        return f"{prefix}_"
    return f"{prefix}_{profile_name}"


def _check_entry(credential: CachedCredential) -> None:
    """Raise if a decoded entry does not hold usable field types."""
    if not isinstance(credential.value, CredentialValue):
        raise TypeError(f"value must be an object, got {type(credential.value).__name__}")
    if isinstance(credential.expiration, bool) or not isinstance(credential.expiration, int):
        raise TypeError(f"expiration must be an integer, got {type(credential.expiration).__name__}")
    # OverflowError, OSError or ValueError for timestamps the platform cannot represent
    credential.expiration_time


class CredentialStore:
    """Persists a single CachedCredential as JSON at a fixed path."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def __repr__(self) -> str:
        return f"CredentialStore({str(self.path)!r})"

    def load(self) -> Optional[CachedCredential]:
        """Load the stored credential.

        Returns:
            The credential, or None if the file is missing or unreadable
        """
        if not self.path.exists():
            logger.debug("No cached credentials", cache_file=str(self.path))
            return None

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            credential = CachedCredential.from_dict(data)
            _check_entry(credential)
            return credential
        except Exception as e:
            logger.warning(
                "Ignoring unreadable credential cache",
                cache_file=str(self.path),
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

    def save(self, credential: CachedCredential) -> bool:
        """Write the credential, replacing any previous entry.

        Returns:
            True if written, False if the write failed
        """
        tmp_path = self.path.with_name(f"{self.path.name}.tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(credential.to_dict(), f)
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.warning(
                "Failed to write credential cache",
                cache_file=str(self.path),
                error=str(e),
            )
            return False

        logger.debug("Wrote credential cache", cache_file=str(self.path), expiration=credential.expiration)
        return True

    def delete(self) -> None:
        """Remove the stored credential, if any."""
        try:
            self.path.unlink()
            logger.debug("Removed credential cache", cache_file=str(self.path))
        except FileNotFoundError:
            pass
