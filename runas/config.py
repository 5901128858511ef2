import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import structlog

logger = structlog.get_logger(__name__)

DEFAULT_PROFILE_NAME = "default"


@dataclass
class Settings:
    """Process-level settings read from environment variables.

    Environment variables:
        - AWS_CONFIG_FILE: Profile configuration file (default: ~/.aws/config)
        - AWS_DEFAULT_PROFILE: Name of the default profile (default: default)
        - RUNAS_CACHE_DIR: Credential cache directory (default: directory holding the config file)
        - LOG_LEVEL: Logging level (default: WARNING)
        - LOG_FORMAT: "json" for JSON logs, anything else for console output
        - RUNAS_MAX_WORKERS: Worker pool size for role discovery (default: 8)
    """

    config_file: Path = field(default_factory=lambda: Path.home() / ".aws" / "config")
    default_profile: str = DEFAULT_PROFILE_NAME
    cache_dir: Path = field(default_factory=lambda: Path.home() / ".aws")
    log_level: str = "WARNING"
    json_logs: bool = False
    max_workers: int = 8

    def __post_init__(self):
        env_config_file = os.getenv("AWS_CONFIG_FILE", "")
        if env_config_file:
            self.config_file = Path(env_config_file)
            self.cache_dir = self.config_file.parent

        self.default_profile = os.getenv("AWS_DEFAULT_PROFILE", "") or DEFAULT_PROFILE_NAME

        env_cache_dir = os.getenv("RUNAS_CACHE_DIR", "")
        if env_cache_dir:
            self.cache_dir = Path(env_cache_dir)

        self.log_level = os.getenv("LOG_LEVEL", self.log_level).upper()
        self.json_logs = os.getenv("LOG_FORMAT", "").lower() == "json"

        max_workers = os.getenv("RUNAS_MAX_WORKERS", "")
        if max_workers:
            try:
                self.max_workers = max(1, int(max_workers))
            except ValueError:
                logger.warning("Ignoring invalid RUNAS_MAX_WORKERS", value=max_workers)


def get_settings(config_file: Optional[str] = None) -> Settings:
    """Get settings from the environment, optionally pointing at a specific config file."""
    settings = Settings()
    if config_file:
        settings.config_file = Path(config_file)
        if not os.getenv("RUNAS_CACHE_DIR"):
            settings.cache_dir = settings.config_file.parent
    return settings
