from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Protocol


# ---- External command outcome ----
@dataclass(frozen=True)
class CommandResult:
    """Outcome of one external program invocation.

    ``not_found`` and ``timed_out`` let callers tell "tool not installed" and
    "tool hung" apart from "tool ran and reported an error".
    """

    args: tuple
    returncode: int
    stdout: str = ""
    stderr: str = ""
    not_found: bool = False
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.not_found and not self.timed_out

    def describe(self) -> str:
        """Return a one-line failure description for run logs."""
        program = str(self.args[0]) if self.args else "<command>"
        if self.not_found:
            return f"tool not found: {program}"
        if self.timed_out:
            return f"{program} timed out"
        detail = (self.stderr or self.stdout).strip().splitlines()
        suffix = f": {detail[-1]}" if detail else ""
        return f"{program} exited with status {self.returncode}{suffix}"


# ---- Ports (Hexagonal boundaries) ----
class ServiceControlPort(Protocol):
    """Lifecycle operations on the managed OS service. Never raises."""

    def stop(self, service_name: str) -> CommandResult: ...
    def start(self, service_name: str) -> CommandResult: ...
    def is_active(self, service_name: str) -> CommandResult: ...


class ArchiveToolsPort(Protocol):
    """Archive operations used by install and backup.

    Implementations raise :class:`hotswap.domain.errors.UpgradeError` on
    failure, with the underlying tool or OS message in ``hint``.
    """

    def extract_tar_gz(self, archive_path: Path, target_dir: Path) -> None: ...
    def extract_zip(self, archive_path: Path, target_dir: Path) -> None: ...
    def decompress_gzip(self, archive_path: Path, output_path: Path) -> None: ...
    def create_tar_gz(
        self,
        source_dir: Path,
        archive_path: Path,
        exclude: Optional[Iterable[Path]] = None,
    ) -> None: ...
