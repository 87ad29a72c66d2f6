"""Runtime configuration for dcrps."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_PREFIX = "dcr"
DEFAULT_AGENT_HOST = "127.0.0.1"
DEFAULT_LOG_LEVEL = "WARNING"


def log_level_name(value: str | None) -> str:
    """Normalize a logging level name; unknown names fall back to the default."""
    name = (value or DEFAULT_LOG_LEVEL).strip().upper()
    if isinstance(logging.getLevelName(name), int):
        return name
    return DEFAULT_LOG_LEVEL


def default_gops_dir() -> Path:
    """Directory where gops agents write their port files."""
    env_dir = os.environ.get("GOPS_CONFIG_DIR")
    if env_dir:
        return Path(env_dir)
    config_home = os.environ.get("XDG_CONFIG_HOME")
    if config_home:
        return Path(config_home) / "gops"
    return Path.home() / ".config" / "gops"


@dataclass(slots=True, frozen=True)
class Settings:
    """
    Settings shared by the scanner, the agent client and the CLI.

    Attributes:
        prefix: Executable name prefix identifying the process family.
        gops_dir: Directory holding one port file per agent-enabled PID.
        agent_host: Host used to reach agents resolved by PID.
        log_level: Name of the logging level for the CLI.
    """

    prefix: str = DEFAULT_PREFIX
    gops_dir: Path = field(default_factory=default_gops_dir)
    agent_host: str = DEFAULT_AGENT_HOST
    log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from DCRPS_* environment variables."""
        level = os.environ.get("DCRPS_LOG_LEVEL") or os.environ.get("LOGLEVEL")
        return cls(
            prefix=os.environ.get("DCRPS_PREFIX", DEFAULT_PREFIX),
            gops_dir=default_gops_dir(),
            agent_host=os.environ.get("DCRPS_AGENT_HOST", DEFAULT_AGENT_HOST),
            log_level=log_level_name(level),
        )
