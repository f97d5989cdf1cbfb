"""Configuration loader for sandbox-sync.

Merges configuration with a four-level priority hierarchy:
    CLI overrides > explicit config file > repository config file > defaults
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from ..errors import ConfigurationError
from .models import ReconcilerConfig

CONFIG_FILENAME = ".sandbox-sync.yaml"


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries.

    Values in override take precedence. Nested dicts are merged recursively.
    Lists are replaced entirely (not appended).

    Args:
        base: Base dictionary
        override: Override dictionary (values take precedence)

    Returns:
        Merged dictionary

    """
    result = base.copy()

    for key, value in override.items():
        if value is None:
            # Skip None values - don't override with None
            continue

        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


class ConfigLoader:
    """Load and merge configuration for one repository.

    Supports:
        1. <repo_root>/.sandbox-sync.yaml (optional)
        2. An explicit file passed to ``load`` (must exist)
        3. Keyword overrides, typically from the command line

    Example:
        loader = ConfigLoader(Path("/srv/team-repo"))
        config = loader.load(workspace="alice-machine", overrides={"max_attempts": 5})

    """

    def __init__(self, repo_root: str | Path) -> None:
        """Initialize the ConfigLoader.

        Args:
            repo_root: Root of the shared git repository

        """
        self.repo_root = Path(repo_root)

    def _load_yaml(self, path: Path) -> dict[str, Any]:
        """Load a YAML mapping.

        Args:
            path: Path to YAML file

        Returns:
            Parsed YAML content as dict

        Raises:
            ConfigurationError: If file cannot be read or parsed

        """
        try:
            with open(path) as f:
                content = yaml.safe_load(f)
        except FileNotFoundError:
            raise ConfigurationError(f"Configuration file not found: {path}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}")
        except PermissionError:
            raise ConfigurationError(f"Permission denied reading: {path}")

        if content is None:
            return {}
        if not isinstance(content, dict):
            raise ConfigurationError(f"Expected a mapping at the top of {path}")
        return content

    def _load_yaml_optional(self, path: Path) -> dict[str, Any]:
        """Load a YAML mapping, or an empty dict if the file does not exist."""
        if not path.exists():
            return {}
        return self._load_yaml(path)

    def load(
        self,
        workspace: str,
        config_file: Path | None = None,
        overrides: dict[str, Any] | None = None,
    ) -> ReconcilerConfig:
        """Build the reconciler configuration.

        Args:
            workspace: Workspace identifier for this machine
            config_file: Optional explicit YAML file
            overrides: Highest-priority values; ``None`` values are ignored

        Returns:
            Validated ReconcilerConfig

        Raises:
            ConfigurationError: If a file is missing/invalid or validation fails

        """
        data: dict[str, Any] = {}
        data = _deep_merge(data, self._load_yaml_optional(self.repo_root / CONFIG_FILENAME))
        if config_file is not None:
            data = _deep_merge(data, self._load_yaml(config_file))
        data = _deep_merge(data, overrides or {})

        # Identity always comes from the caller, never from a file
        data["repo_root"] = self.repo_root
        data["workspace"] = workspace

        try:
            return ReconcilerConfig(**data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid sandbox-sync configuration: {e}") from e
