"""Configuration for sandbox-sync.

Example:
    from sandbox_sync.config import ConfigLoader

    config = ConfigLoader(repo_root).load(workspace="alice-machine")

"""

from ..errors import ConfigurationError
from .loader import CONFIG_FILENAME, ConfigLoader
from .models import DEFAULT_COMMIT_MESSAGE, LoggingConfig, ReconcilerConfig

__all__ = [
    "CONFIG_FILENAME",
    "DEFAULT_COMMIT_MESSAGE",
    "ConfigLoader",
    "ConfigurationError",
    "LoggingConfig",
    "ReconcilerConfig",
]
