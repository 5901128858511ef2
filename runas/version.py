"""Version lookup for the installed distribution"""

import os
import tomllib
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as distribution_version
from pathlib import Path

DISTRIBUTION_NAME = "aws-runas-py"


def _source_tree_version() -> str:
    pyproject_path = Path(__file__).parent.parent / "pyproject.toml"
    try:
        with open(pyproject_path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError):
        return "unknown"
    return data.get("project", {}).get("version", "unknown")


def get_version() -> str:
    """
    Resolve the runas version.

    Priority:
    1. BUILD_VERSION environment variable (release builds stamp the git tag)
    2. Installed aws-runas-py distribution metadata
    3. pyproject.toml next to the package, for an uninstalled checkout
    4. "unknown"
    """
    if build_version := os.getenv("BUILD_VERSION"):
        return build_version

    try:
        return distribution_version(DISTRIBUTION_NAME)
    except PackageNotFoundError:
        return _source_tree_version()


__version__ = get_version()
