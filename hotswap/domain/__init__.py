
"""Domain package exports for configuration, run log and error types."""

from .classifier import is_executable
from .config import UpgradeConfig
from .errors import ConfigError, UpgradeError
from .permissions import resolve_mode
from .ports import ArchiveToolsPort, CommandResult, ServiceControlPort
from .run_log import UpgradeResult, UpgradeRun

__all__ = [
    "ArchiveToolsPort",
    "CommandResult",
    "ConfigError",
    "ServiceControlPort",
    "UpgradeConfig",
    "UpgradeError",
    "UpgradeResult",
    "UpgradeRun",
    "is_executable",
    "resolve_mode",
]
