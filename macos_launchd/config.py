"""Configuration file management for macos-launchd."""

from dataclasses import dataclass, field
from pathlib import Path

import yaml

from macos_launchd.overrides import LAUNCHD_OVERRIDES_PATH
from macos_launchd.probe import LAUNCHCTL_PATH
from macos_launchd.scanners.launchd import DEFAULT_SEARCH_PATHS
from macos_launchd.util.host import SW_VERS_PATH


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class Config:
    """Locations and behaviour of one launchd management session."""

    # Job discovery, scanned in order (later directories win label ties)
    search_paths: list[str] = field(default_factory=lambda: list(DEFAULT_SEARCH_PATHS))
    overrides_path: str = LAUNCHD_OVERRIDES_PATH

    # External commands
    launchctl_path: str = LAUNCHCTL_PATH
    sw_vers_path: str = SW_VERS_PATH
    command_timeout: int | None = None

    # Pin the OS version instead of asking sw_vers (e.g., "10.5")
    os_version: str | None = None

    log_level: str = "WARNING"

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if not self.search_paths:
            raise ValueError("search_paths must name at least one directory")

        if self.command_timeout is not None and self.command_timeout <= 0:
            raise ValueError(f"command_timeout must be positive, got {self.command_timeout}")

        self.log_level = str(self.log_level).upper()
        if self.log_level not in LOG_LEVELS:
            raise ValueError(
                f"Invalid log_level '{self.log_level}'. Must be one of: {', '.join(LOG_LEVELS)}"
            )

        if self.os_version is not None:
            self.os_version = str(self.os_version)


def load_config(config_path: Path | str | None = None) -> Config:
    """
    Load configuration from file.

    Args:
        config_path: Path to config file. If None, checks default locations:
            1. ~/.macos-launchd.yaml
            2. ~/.macos-launchd.yml
            3. ~/.config/macos-launchd/config.yaml
            4. ~/.config/macos-launchd/config.yml

    Returns:
        Config object with loaded settings (or defaults if no config found)

    Raises:
        FileNotFoundError: If an explicit config_path does not exist
        ValueError: If the file cannot be parsed or holds invalid settings
    """
    if config_path:
        config_file = Path(config_path).expanduser()
        if not config_file.exists():
            raise FileNotFoundError(f"Config file not found: {config_file}")
    else:
        default_paths = [
            Path.home() / ".macos-launchd.yaml",
            Path.home() / ".macos-launchd.yml",
            Path.home() / ".config" / "macos-launchd" / "config.yaml",
            Path.home() / ".config" / "macos-launchd" / "config.yml",
        ]

        config_file = next((path for path in default_paths if path.exists()), None)
        if config_file is None:
            return Config()

    try:
        with open(config_file, 'r') as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError("top level must be a mapping")
        return Config(**data)
    except (OSError, yaml.YAMLError, TypeError, ValueError) as e:
        raise ValueError(f"Failed to load config from {config_file}: {e}") from e


def save_example_config(output_path: Path | str) -> None:
    """
    Save an example configuration file with all options documented.

    Args:
        output_path: Where to save the example config
    """
    example = """# macos-launchd configuration file
# Place at ~/.macos-launchd.yaml or ~/.config/macos-launchd/config.yaml

# Directories searched for job plists, in order.
# When two plists share a Label, the one in the later directory wins.
search_paths:
  - /Library/LaunchAgents
  - /Library/LaunchDaemons
  - /System/Library/LaunchAgents
  - /System/Library/LaunchDaemons
  # - ~/Library/LaunchAgents

# Global enable/disable overrides (Mac OS X 10.6 and later)
overrides_path: /var/db/launchd.db/com.apple.launchd/overrides.plist

launchctl_path: /bin/launchctl
sw_vers_path: /usr/bin/sw_vers

# Seconds to wait for launchctl; leave unset to wait indefinitely
# command_timeout: 30

# Use this OS version instead of asking sw_vers
# os_version: "10.15"

# DEBUG, INFO, WARNING, ERROR, CRITICAL
log_level: WARNING
"""

    path = Path(output_path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(example)
