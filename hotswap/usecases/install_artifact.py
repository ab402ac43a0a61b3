"""Place an uploaded artifact's contents under the target directory."""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path

from hotswap.adapters.archive_tools import CHUNK_SIZE, replace_file_atomically
from hotswap.domain.errors import UpgradeError
from hotswap.domain.ports import ArchiveToolsPort
from hotswap.domain.run_log import UpgradeRun

KIND_TAR_GZ = "tar.gz"
KIND_GZIP = "gz"
KIND_ZIP = "zip"
KIND_RAW = "raw"


def artifact_kind(filename: str) -> str:
    """Classify an artifact by its filename suffix, case-insensitively."""
    lowered = filename.lower()
    if lowered.endswith(".tar.gz"):
        return KIND_TAR_GZ
    if lowered.endswith(".gz"):
        return KIND_GZIP
    if lowered.endswith(".zip"):
        return KIND_ZIP
    return KIND_RAW


def normalize_artifact_name(filename: str) -> str:
    """Return the basename of an uploaded filename or raise for empty names."""
    name = Path(str(filename or "").replace("\\", "/")).name.strip()
    if not name or name in (".", ".."):
        raise UpgradeError(
            "upgrade.invalid_filename",
            "Invalid artifact filename",
            f"Got {filename!r}.",
        )
    return name


@dataclass
class InstallArtifact:
    """Dispatch on the artifact suffix and materialize it in ``target_dir``."""

    archive_tools: ArchiveToolsPort

    def __call__(self, *, artifact_path: Path, filename: str, target_dir: Path, run: UpgradeRun) -> Path:
        """Install one artifact and return the path that received its contents.

        Raises :class:`UpgradeError` on any failure; the step description is
        written to ``run`` before the work starts.
        """
        name = normalize_artifact_name(filename)
        kind = artifact_kind(name)
        source = Path(artifact_path)
        target = Path(target_dir)

        if kind == KIND_TAR_GZ:
            run.detail("Extracting tar.gz archive...")
            self.archive_tools.extract_tar_gz(source, target)
            destination = target
        elif kind == KIND_GZIP:
            run.detail("Decompressing gz file...")
            output_name = name[: -len(".gz")]
            if not output_name:
                raise UpgradeError(
                    "upgrade.invalid_filename",
                    "Cannot derive output name from gz filename",
                    f"Got {name!r}.",
                )
            destination = target / output_name
            self.archive_tools.decompress_gzip(source, destination)
        elif kind == KIND_ZIP:
            run.detail("Extracting zip archive...")
            self.archive_tools.extract_zip(source, target)
            destination = target
        else:
            run.detail("Copying file...")
            destination = target / name
            self._copy(source, destination)

        run.ok("Program deployed")
        return destination

    @staticmethod
    def _copy(source: Path, destination: Path) -> None:
        try:
            with source.open("rb") as handle:
                replace_file_atomically(
                    destination,
                    lambda out: shutil.copyfileobj(handle, out, CHUNK_SIZE),
                )
        except Exception as exc:
            raise UpgradeError(
                "upgrade.install_failed",
                "Failed to copy file",
                str(exc) or type(exc).__name__,
            ) from exc


__all__ = ["InstallArtifact", "artifact_kind", "normalize_artifact_name"]
