"""Upgrade configuration model and its file/env/CLI merge helpers.

Resolution order matches the deployment convention: JSON file (created with
defaults when missing), then environment variables, then command-line flags.
The resulting :class:`UpgradeConfig` is frozen and handed explicitly to every
pipeline run.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from hotswap.domain.errors import ConfigError
from hotswap.domain.permissions import resolve_mode

LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "./config.json"
DEFAULT_ACCEPT_TYPES = [
    ".tar.gz",
    ".zip",
    ".gz",
    "application/x-executable",
    "application/octet-stream",
]


class UpgradeConfig(BaseModel):
    """Fully resolved settings for the upload server and upgrade pipeline."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    # directories
    upload_dir: str = "./uploads"
    target_dir: str = "/opt/myapp"
    backup_dir: str = "/opt/myapp/backup"

    # service / server
    service_name: str = "myapp"
    host: str = "0.0.0.0"
    port: int = 8080
    max_file_size: int = Field(default=100, ge=1, description="Upload limit in MB")

    # feature toggles
    enable_backup: bool = True
    enable_service: bool = True
    enable_cleanup: bool = True
    cleanup_interval: float = Field(default=1, gt=0, description="Hours between sweeps")
    file_max_age: float = Field(default=24, gt=0, description="Hours before staged uploads expire")

    # permissions
    dir_permission: str = "0755"
    file_permission: str = "0644"
    exec_permission: str = "0755"

    # external commands
    command_timeout_s: float = Field(default=300, gt=0)
    health_check_delay_s: float = Field(default=2, ge=0)
    archive_backend: str = "builtin"

    # presentation
    title: str = "Program Upgrade"
    description: str = "Upload a .tar.gz, .zip, .gz or executable build to install it"
    accept_types: List[str] = Field(default_factory=lambda: list(DEFAULT_ACCEPT_TYPES))

    @field_validator("port", mode="before")
    @classmethod
    def _coerce_port(cls, value: object) -> object:
        if isinstance(value, str):
            text = value.strip().lstrip(":")
            if not text.isdigit():
                raise ValueError(f"invalid port {value!r}")
            return int(text)
        return value

    @field_validator("archive_backend")
    @classmethod
    def _check_backend(cls, value: str) -> str:
        normalized = str(value or "").strip().lower()
        if normalized not in ("builtin", "external"):
            raise ValueError("archive_backend must be 'builtin' or 'external'")
        return normalized

    @property
    def dir_mode(self) -> int:
        return resolve_mode(self.dir_permission)

    @property
    def file_mode(self) -> int:
        return resolve_mode(self.file_permission)

    @property
    def exec_mode(self) -> int:
        return resolve_mode(self.exec_permission)

    @property
    def max_upload_bytes(self) -> int:
        return int(self.max_file_size) << 20


def save_config(path: str | Path, config: UpgradeConfig) -> None:
    """Write ``config`` as indented JSON with mode 0644."""
    target = Path(path)
    target.write_text(json.dumps(config.model_dump(), indent=2, ensure_ascii=False), encoding="utf-8")
    os.chmod(target, 0o644)


def load_config(path: str | Path) -> UpgradeConfig:
    """Load configuration from JSON, writing defaults when the file is missing."""
    config_path = Path(path)
    if not config_path.exists():
        LOGGER.info("Config file %s not found, using defaults", config_path)
        defaults = UpgradeConfig()
        try:
            save_config(config_path, defaults)
        except OSError as exc:
            LOGGER.warning("Could not write default config %s: %s", config_path, exc)
        return defaults

    try:
        payload = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ConfigError(f"Failed to read config {config_path}: {exc}") from exc
    if not isinstance(payload, Mapping):
        raise ConfigError(f"Config {config_path} must contain a JSON object")
    try:
        return UpgradeConfig.model_validate(dict(payload))
    except ValidationError as exc:
        raise ConfigError(f"Invalid config {config_path}: {exc}") from exc


def apply_env_overrides(config: UpgradeConfig, environ: Optional[Mapping[str, str]] = None) -> UpgradeConfig:
    """Return a copy of ``config`` with deployment environment variables applied."""
    env = os.environ if environ is None else environ
    updates = {}
    for var, field in (
        ("UPLOAD_DIR", "upload_dir"),
        ("TARGET_DIR", "target_dir"),
        ("BACKUP_DIR", "backup_dir"),
        ("SERVICE_NAME", "service_name"),
        ("TITLE", "title"),
    ):
        value = env.get(var)
        if value:
            updates[field] = value

    port = env.get("PORT")
    if port:
        updates["port"] = port

    max_size = env.get("MAX_FILE_SIZE")
    if max_size:
        try:
            updates["max_file_size"] = int(max_size)
        except ValueError:
            LOGGER.warning("Ignoring non-integer MAX_FILE_SIZE=%r", max_size)

    for var, field in (("ENABLE_BACKUP", "enable_backup"), ("ENABLE_SERVICE", "enable_service")):
        value = env.get(var)
        if value:
            updates[field] = value == "true"

    return _merged(config, updates)


def apply_cli_overrides(
    config: UpgradeConfig,
    *,
    port: Optional[str] = None,
    target_dir: Optional[str] = None,
    service_name: Optional[str] = None,
    host: Optional[str] = None,
) -> UpgradeConfig:
    """Return a copy of ``config`` with non-empty command-line values applied."""
    updates = {}
    if port:
        updates["port"] = port
    if target_dir:
        updates["target_dir"] = target_dir
    if service_name:
        updates["service_name"] = service_name
    if host:
        updates["host"] = host
    return _merged(config, updates)


def _merged(config: UpgradeConfig, updates: Mapping[str, object]) -> UpgradeConfig:
    if not updates:
        return config
    payload = config.model_dump()
    payload.update(updates)
    try:
        return UpgradeConfig.model_validate(payload)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration override: {exc}") from exc


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "UpgradeConfig",
    "apply_cli_overrides",
    "apply_env_overrides",
    "load_config",
    "save_config",
]
