"""Apply directory/file/executable modes across the installed tree."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Union

from hotswap.domain.classifier import is_executable
from hotswap.domain.errors import UpgradeError
from hotswap.domain.permissions import format_mode
from hotswap.domain.run_log import UpgradeRun


def _raise(exc: OSError) -> None:
    raise exc


@dataclass
class SetPermissions:
    """Walk ``target_dir`` and chmod every entry according to its class.

    Executable assignments are logged one per file; plain-file assignments are
    not. Symlinks are left untouched because ``chmod`` would follow them.
    """

    dir_mode: int
    file_mode: int
    exec_mode: int
    classify: Callable[[Union[str, Path]], bool] = is_executable

    def __call__(self, target_dir: Path, run: UpgradeRun) -> int:
        """Return the number of files given the executable mode."""
        root = Path(target_dir)
        executables = 0
        try:
            os.chmod(root, self.dir_mode)
            for current, dirnames, filenames in os.walk(root, onerror=_raise):
                for dirname in dirnames:
                    path = os.path.join(current, dirname)
                    if not os.path.islink(path):
                        os.chmod(path, self.dir_mode)
                for filename in filenames:
                    path = os.path.join(current, filename)
                    if os.path.islink(path):
                        continue
                    if self.classify(path):
                        os.chmod(path, self.exec_mode)
                        run.ok(f"Executable mode ({format_mode(self.exec_mode)}): {path}")
                        executables += 1
                    else:
                        os.chmod(path, self.file_mode)
        except OSError as exc:
            raise UpgradeError(
                "upgrade.permissions_failed",
                "Failed to set permissions",
                str(exc),
            ) from exc
        return executables


__all__ = ["SetPermissions"]
