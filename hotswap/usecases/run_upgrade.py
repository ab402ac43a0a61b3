"""Upgrade pipeline orchestration.

This module sequences service stop, directory preparation, backup, install,
permission setting and service start for one uploaded artifact, and assembles
the step-by-step log shown to the operator.

Step policy (numbers are fixed per operation; disabled steps are omitted):

1. stop service       warn-only, only with ``enable_service``
2. ensure directories fatal
3. backup             warn-only, only with ``enable_backup``
4. install artifact   fatal
5. set permissions    fatal
6. start + health     warn-only, only with ``enable_service``

There is no rollback: a run that fails at step 5 leaves the new files in the
target directory. The backup archive from step 3 is the manual recovery path.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Optional, Union

from hotswap.adapters.archive_tools import build_archive_tools
from hotswap.adapters.command_runner import CommandRunner
from hotswap.adapters.systemd import SystemctlServiceControl
from hotswap.domain.config import UpgradeConfig
from hotswap.domain.errors import UpgradeError
from hotswap.domain.permissions import format_mode
from hotswap.domain.ports import ArchiveToolsPort, ServiceControlPort
from hotswap.domain.run_log import UpgradeResult, UpgradeRun
from hotswap.usecases.backup_target import BackupTarget
from hotswap.usecases.install_artifact import InstallArtifact
from hotswap.usecases.manage_service import ServiceController
from hotswap.usecases.set_permissions import SetPermissions

STEP_STOP_SERVICE = 1
STEP_PREPARE_DIRS = 2
STEP_BACKUP = 3
STEP_INSTALL = 4
STEP_PERMISSIONS = 5
STEP_START_SERVICE = 6
LOG_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

_TARGET_LOCKS: Dict[str, threading.Lock] = {}
_TARGET_LOCKS_GUARD = threading.Lock()


def target_lock(target_dir: Union[str, Path]) -> threading.Lock:
    """Return the process-wide lock serializing upgrades of ``target_dir``."""
    key = os.path.realpath(os.path.expanduser(str(target_dir)))
    with _TARGET_LOCKS_GUARD:
        lock = _TARGET_LOCKS.get(key)
        if lock is None:
            lock = _TARGET_LOCKS[key] = threading.Lock()
        return lock


class RunUpgrade:
    """Run the upgrade pipeline for one configuration."""

    def __init__(
        self,
        config: UpgradeConfig,
        *,
        archive_tools: Optional[ArchiveToolsPort] = None,
        service_control: Optional[ServiceControlPort] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = datetime.now,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.config = config
        runner = CommandRunner(timeout_s=config.command_timeout_s)
        self._archive_tools = archive_tools or build_archive_tools(config.archive_backend, runner)
        self._service_control = service_control or SystemctlServiceControl(runner=runner)
        self._sleep = sleep
        self._clock = clock
        self._log = logger or logging.getLogger("hotswap.upgrade")

    def __call__(self, artifact_path: Union[str, Path], artifact_filename: str) -> UpgradeResult:
        """Install one artifact; concurrent calls for the same target queue up."""
        lock = target_lock(self.config.target_dir)
        if not lock.acquire(blocking=False):
            self._log.info("Upgrade of %s already running, waiting", self.config.target_dir)
            lock.acquire()
        try:
            return self._run(Path(artifact_path), artifact_filename)
        finally:
            lock.release()

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------
    def _run(self, artifact_path: Path, filename: str) -> UpgradeResult:
        cfg = self.config
        target_dir = Path(cfg.target_dir)
        backup_dir = Path(cfg.backup_dir)
        run = UpgradeRun()
        service = ServiceController(
            control=self._service_control,
            health_check_delay_s=cfg.health_check_delay_s,
            sleep=self._sleep,
        )

        self._log.info("Starting upgrade from %s into %s", filename, target_dir)
        run.line(f"Starting upgrade: {filename}")
        run.line(f"Time: {self._clock().strftime(LOG_TIME_FORMAT)}")
        run.line(f"Config: target={cfg.target_dir}, service={cfg.service_name}")

        try:
            if cfg.enable_service:
                run.step(STEP_STOP_SERVICE, f"Stopping current service ({cfg.service_name})...")
                service.stop(cfg.service_name, run)

            run.step(STEP_PREPARE_DIRS, "Creating required directories...")
            self._ensure_directories(run)

            if cfg.enable_backup:
                run.step(STEP_BACKUP, "Backing up existing program...")
                BackupTarget(archive_tools=self._archive_tools, clock=self._clock)(
                    target_dir=target_dir,
                    backup_dir=backup_dir,
                    run=run,
                )

            run.step(STEP_INSTALL, "Deploying new program...")
            InstallArtifact(archive_tools=self._archive_tools)(
                artifact_path=artifact_path,
                filename=filename,
                target_dir=target_dir,
                run=run,
            )

            run.step(STEP_PERMISSIONS, "Setting program permissions...")
            SetPermissions(
                dir_mode=cfg.dir_mode,
                file_mode=cfg.file_mode,
                exec_mode=cfg.exec_mode,
            )(target_dir, run)

            if cfg.enable_service:
                run.step(STEP_START_SERVICE, f"Starting service ({cfg.service_name})...")
                service.start(cfg.service_name, run)
        except UpgradeError as exc:
            return self._fail(run, exc)
        except Exception as exc:
            self._log.exception("Unexpected upgrade failure for %s", filename)
            wrapped = UpgradeError(
                "upgrade.unexpected_error",
                "Upgrade failed with unexpected error",
                str(exc) or type(exc).__name__,
            )
            return self._fail(run, wrapped)

        run.line()
        run.line(f"Upgrade finished: {self._clock().strftime(LOG_TIME_FORMAT)}")
        self._log.info("Upgrade from %s finished with %d warning(s)", filename, run.warnings)
        return UpgradeResult(log_text=run.text(), warnings=run.warnings)

    def _ensure_directories(self, run: UpgradeRun) -> None:
        cfg = self.config
        directories = [cfg.target_dir]
        if cfg.enable_backup:
            directories.append(cfg.backup_dir)
        for directory in directories:
            try:
                os.makedirs(directory, mode=cfg.dir_mode, exist_ok=True)
            except OSError as exc:
                raise UpgradeError(
                    "upgrade.directory_failed",
                    f"Failed to create directory {directory}",
                    str(exc),
                ) from exc
            run.ok(f"Directory {directory} ready (mode {format_mode(cfg.dir_mode)})")

    def _fail(self, run: UpgradeRun, error: UpgradeError) -> UpgradeResult:
        self._log.warning("Upgrade failed: %s (%s)", error, error.code)
        run.detail(f"ERROR: {error}")
        return UpgradeResult(log_text=run.text(), error=error, warnings=run.warnings)


def run_upgrade(
    artifact_path: Union[str, Path],
    artifact_filename: str,
    config: UpgradeConfig,
    *,
    archive_tools: Optional[ArchiveToolsPort] = None,
    service_control: Optional[ServiceControlPort] = None,
) -> UpgradeResult:
    """Install ``artifact_path`` (uploaded as ``artifact_filename``) per ``config``."""
    pipeline = RunUpgrade(config, archive_tools=archive_tools, service_control=service_control)
    return pipeline(artifact_path, artifact_filename)


__all__ = ["RunUpgrade", "run_upgrade", "target_lock"]
