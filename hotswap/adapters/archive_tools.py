"""Archive operations used by the installer and the backup step.

Two interchangeable implementations of ``ArchiveToolsPort``:

- :class:`BuiltinArchiveTools` works in process with ``tarfile``/``zipfile``/
  ``gzip`` and rejects members that would escape the target directory.
- :class:`ExternalArchiveTools` shells out to ``tar``, ``unzip`` and ``gunzip``
  through :class:`CommandRunner`, so every call is bounded by a timeout.

Both raise :class:`UpgradeError` with the underlying message in ``hint``.
"""

from __future__ import annotations

import gzip
import logging
import os
import posixpath
import shutil
import tarfile
import tempfile
import zipfile
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Iterable, List, Optional

from hotswap.adapters.command_runner import CommandRunner
from hotswap.domain.errors import UpgradeError
from hotswap.domain.ports import CommandResult

LOGGER = logging.getLogger(__name__)
CHUNK_SIZE = 1024 * 1024


def _is_unsafe_member_path(name: str) -> bool:
    pure = PurePosixPath(name.replace("\\", "/"))
    return pure.is_absolute() or ".." in pure.parts


def _link_escapes(member_name: str, linkname: str, *, hard: bool = False) -> bool:
    """Return whether a link target resolves outside the extraction root.

    Symlink targets are relative to the member's directory; hard link targets
    are relative to the archive root.
    """
    link = linkname.replace("\\", "/")
    if not link or posixpath.isabs(link):
        return True
    base = "" if hard else posixpath.dirname(member_name.replace("\\", "/"))
    resolved = posixpath.normpath(posixpath.join(base, link))
    return resolved == ".." or resolved.startswith("../") or posixpath.isabs(resolved)


def _relative_excludes(source_dir: Path, exclude: Optional[Iterable[Path]]) -> List[str]:
    """Return ``exclude`` entries located under ``source_dir`` as POSIX relative paths."""
    root = source_dir.resolve()
    relative: List[str] = []
    for item in exclude or ():
        candidate = Path(item).resolve()
        if candidate == root:
            continue
        try:
            relative.append(candidate.relative_to(root).as_posix())
        except ValueError:
            continue
    return relative


def replace_file_atomically(target_path: Path, write) -> None:
    """Write through a sibling temp file and rename it over ``target_path``.

    A running binary keeps its old inode, and the final path never holds a
    half-written file.
    """
    target_path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{target_path.name}.", suffix=".tmp", dir=str(target_path.parent))
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as handle:
            write(handle)
        os.replace(tmp_path, target_path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


class BuiltinArchiveTools:
    """In-process archive handling built on the standard archive modules."""

    def extract_tar_gz(self, archive_path: Path, target_dir: Path) -> None:
        """Extract a tar+gzip archive with traversal/link safety checks."""
        try:
            with tarfile.open(archive_path, "r:gz") as tar:
                members = tar.getmembers()
                for member in members:
                    if _is_unsafe_member_path(member.name):
                        raise UpgradeError(
                            "upgrade.unsafe_archive_path",
                            "Archive contains unsafe path",
                            f"Unsafe member path: {member.name}",
                        )
                    if (member.issym() or member.islnk()) and _link_escapes(
                        member.name, member.linkname, hard=member.islnk()
                    ):
                        raise UpgradeError(
                            "upgrade.unsafe_archive_path",
                            "Archive contains link escaping the target directory",
                            f"{member.name} -> {member.linkname}",
                        )
                if hasattr(tarfile, "data_filter"):
                    tar.extractall(path=target_dir, members=members, filter="data")
                else:
                    tar.extractall(path=target_dir, members=members)
        except UpgradeError:
            raise
        except Exception as exc:
            raise UpgradeError(
                "upgrade.install_failed",
                "Failed to extract tar.gz archive",
                str(exc) or type(exc).__name__,
            ) from exc

    def extract_zip(self, archive_path: Path, target_dir: Path) -> None:
        """Extract every ZIP entry, overwriting existing files."""
        destination_root = target_dir.resolve()
        try:
            with zipfile.ZipFile(archive_path, "r") as archive:
                for entry in archive.infolist():
                    name = entry.filename.replace("\\", "/")
                    if not name:
                        continue
                    if _is_unsafe_member_path(name):
                        raise UpgradeError(
                            "upgrade.unsafe_archive_path",
                            "Unsafe ZIP entry path detected",
                            name,
                        )
                    mode = (entry.external_attr >> 16) & 0o170000
                    if mode == 0o120000:
                        self._extract_zip_symlink(archive, entry, name, destination_root)
                        continue
                    resolved_target = (destination_root / PurePosixPath(name).as_posix()).resolve()
                    if destination_root not in (resolved_target, *resolved_target.parents):
                        raise UpgradeError(
                            "upgrade.unsafe_archive_path",
                            "ZIP entry escaped extraction directory",
                            name,
                        )
                    if entry.is_dir():
                        resolved_target.mkdir(parents=True, exist_ok=True)
                        continue
                    resolved_target.parent.mkdir(parents=True, exist_ok=True)
                    with archive.open(entry, "r") as source:
                        replace_file_atomically(
                            resolved_target,
                            lambda handle: shutil.copyfileobj(source, handle, CHUNK_SIZE),
                        )
        except UpgradeError:
            raise
        except Exception as exc:
            raise UpgradeError(
                "upgrade.install_failed",
                "Failed to extract zip archive",
                str(exc) or type(exc).__name__,
            ) from exc

    @staticmethod
    def _extract_zip_symlink(archive: zipfile.ZipFile, entry: zipfile.ZipInfo, name: str, root: Path) -> None:
        """Recreate a ZIP symlink entry whose target stays inside ``root``."""
        linkname = archive.read(entry).decode("utf-8")
        if _link_escapes(name, linkname):
            raise UpgradeError(
                "upgrade.unsafe_archive_path",
                "ZIP archive contains link escaping the target directory",
                f"{name} -> {linkname}",
            )
        link_path = root / PurePosixPath(name.rstrip("/"))
        parent = link_path.parent
        parent.mkdir(parents=True, exist_ok=True)
        if root not in (parent.resolve(), *parent.resolve().parents):
            raise UpgradeError(
                "upgrade.unsafe_archive_path",
                "ZIP entry escaped extraction directory",
                name,
            )
        staging = parent / f".{link_path.name}.link"
        staging.unlink(missing_ok=True)
        os.symlink(linkname, staging)
        try:
            os.replace(staging, link_path)
        except OSError:
            staging.unlink(missing_ok=True)
            raise

    def decompress_gzip(self, archive_path: Path, output_path: Path) -> None:
        """Decompress a single gzip stream into ``output_path``."""
        try:
            with gzip.open(archive_path, "rb") as source:
                replace_file_atomically(
                    output_path,
                    lambda handle: shutil.copyfileobj(source, handle, CHUNK_SIZE),
                )
        except Exception as exc:
            raise UpgradeError(
                "upgrade.install_failed",
                "Failed to decompress gz file",
                str(exc) or type(exc).__name__,
            ) from exc

    def create_tar_gz(
        self,
        source_dir: Path,
        archive_path: Path,
        exclude: Optional[Iterable[Path]] = None,
    ) -> None:
        """Archive the contents of ``source_dir`` (not the directory itself)."""
        skipped = set(_relative_excludes(source_dir, [*(exclude or ()), archive_path]))

        def _filter(info: tarfile.TarInfo) -> Optional[tarfile.TarInfo]:
            if info.name in skipped:
                return None
            return info

        try:
            entries = sorted(Path(source_dir).iterdir(), key=lambda item: item.name)
            tar = tarfile.open(archive_path, "x:gz")
        except FileExistsError as exc:
            raise UpgradeError(
                "upgrade.backup_failed",
                "Backup archive already exists",
                str(archive_path),
            ) from exc
        except Exception as exc:
            raise UpgradeError(
                "upgrade.backup_failed",
                "Failed to create backup archive",
                str(exc) or type(exc).__name__,
            ) from exc

        try:
            with tar:
                for entry in entries:
                    tar.add(str(entry), arcname=entry.name, filter=_filter)
        except Exception as exc:
            Path(archive_path).unlink(missing_ok=True)
            raise UpgradeError(
                "upgrade.backup_failed",
                "Failed to create backup archive",
                str(exc) or type(exc).__name__,
            ) from exc


@dataclass
class ExternalArchiveTools:
    """Archive handling through the system ``tar``/``unzip``/``gunzip`` tools."""

    runner: CommandRunner = field(default_factory=CommandRunner)

    def _check(self, result: CommandResult, code: str, message: str) -> None:
        if not result.ok:
            raise UpgradeError(code, message, result.describe())

    def extract_tar_gz(self, archive_path: Path, target_dir: Path) -> None:
        result = self.runner.run(["tar", "-xzf", str(archive_path), "-C", str(target_dir)])
        self._check(result, "upgrade.install_failed", "Failed to extract tar.gz archive")

    def extract_zip(self, archive_path: Path, target_dir: Path) -> None:
        result = self.runner.run(["unzip", "-o", "-q", str(archive_path), "-d", str(target_dir)])
        self._check(result, "upgrade.install_failed", "Failed to extract zip archive")

    def decompress_gzip(self, archive_path: Path, output_path: Path) -> None:
        partial = output_path.with_name(f".{output_path.name}.partial")
        result = self.runner.run(["gunzip", "-c", str(archive_path)], stdout_path=str(partial))
        if not result.ok:
            partial.unlink(missing_ok=True)
        self._check(result, "upgrade.install_failed", "Failed to decompress gz file")
        try:
            os.replace(partial, output_path)
        except OSError as exc:
            partial.unlink(missing_ok=True)
            raise UpgradeError("upgrade.install_failed", "Failed to decompress gz file", str(exc)) from exc

    def create_tar_gz(
        self,
        source_dir: Path,
        archive_path: Path,
        exclude: Optional[Iterable[Path]] = None,
    ) -> None:
        args = ["tar", "-czf", str(archive_path)]
        for rel in _relative_excludes(source_dir, [*(exclude or ()), archive_path]):
            args.append(f"--exclude=./{rel}")
        args.extend(["-C", str(source_dir), "."])
        result = self.runner.run(args)
        if not result.ok:
            Path(archive_path).unlink(missing_ok=True)
        self._check(result, "upgrade.backup_failed", "Failed to create backup archive")


def build_archive_tools(backend: str, runner: Optional[CommandRunner] = None):
    """Return the archive-tools adapter named by the ``archive_backend`` setting."""
    if backend == "external":
        return ExternalArchiveTools(runner=runner or CommandRunner())
    return BuiltinArchiveTools()


__all__ = [
    "BuiltinArchiveTools",
    "ExternalArchiveTools",
    "build_archive_tools",
    "replace_file_atomically",
]
