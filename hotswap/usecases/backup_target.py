"""Best-effort snapshot of the target directory before it is overwritten."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from hotswap.domain.errors import UpgradeError
from hotswap.domain.ports import ArchiveToolsPort
from hotswap.domain.run_log import UpgradeRun

LOGGER = logging.getLogger(__name__)
BACKUP_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"


def backup_archive_name(moment: datetime, sequence: int = 0) -> str:
    """Return ``backup_YYYYmmdd_HHMMSS.tar.gz`` for ``moment``.

    A non-zero ``sequence`` yields ``backup_YYYYmmdd_HHMMSS_N.tar.gz``.
    """
    stamp = moment.strftime(BACKUP_TIMESTAMP_FORMAT)
    if sequence:
        return f"backup_{stamp}_{sequence}.tar.gz"
    return f"backup_{stamp}.tar.gz"


def unused_archive_path(backup_dir: Path, moment: datetime) -> Path:
    """Return the first backup name for ``moment`` not present in ``backup_dir``."""
    sequence = 0
    candidate = Path(backup_dir) / backup_archive_name(moment)
    while candidate.exists():
        sequence += 1
        candidate = Path(backup_dir) / backup_archive_name(moment, sequence)
    return candidate


@dataclass
class BackupTarget:
    """Archive ``target_dir`` into ``backup_dir``; failures only warn."""

    archive_tools: ArchiveToolsPort
    clock: Callable[[], datetime] = field(default=datetime.now)

    def __call__(self, *, target_dir: Path, backup_dir: Path, run: UpgradeRun) -> Optional[Path]:
        """Return the archive path, or ``None`` when the backup failed."""
        moment = self.clock()
        archive_path = unused_archive_path(Path(backup_dir), moment)
        try:
            if not Path(target_dir).is_dir():
                raise UpgradeError(
                    "upgrade.backup_failed",
                    "Nothing to back up",
                    f"{target_dir} does not exist",
                )
            self.archive_tools.create_tar_gz(Path(target_dir), archive_path, exclude=[Path(backup_dir)])
        except (UpgradeError, OSError) as exc:
            LOGGER.warning("Backup of %s failed: %s", target_dir, exc)
            run.warn(f"Backup failed (there may be no existing program): {exc}")
            return None
        run.ok(f"Backup saved to: {archive_path}")
        if archive_path.name != backup_archive_name(moment):
            run.detail(f"{backup_archive_name(moment)} already existed, numbered name used")
        return archive_path


__all__ = ["BackupTarget", "backup_archive_name", "unused_archive_path"]
