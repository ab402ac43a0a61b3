"""Heuristic detection of native executables.

The classification only chooses between the executable and the plain-file
permission mode. It is not a binary-format parser: PE and Mach-O headers or
shell scripts with a shebang are not recognised unless their extension matches.
"""

from __future__ import annotations

from pathlib import Path
from typing import Union

ELF_MAGIC = b"\x7fELF"
EXECUTABLE_SUFFIXES = ("", ".bin", ".exe")


def _extension(name: str) -> str:
    """Return the text from the last dot of ``name``; ``".env"`` for a dotfile."""
    index = name.rfind(".")
    return name[index:] if index >= 0 else ""


def is_executable(path: Union[str, Path]) -> bool:
    """Return whether ``path`` looks like a native executable.

    ELF magic bytes win regardless of extension. Otherwise a missing extension,
    ``.bin`` or ``.exe`` counts as executable. Any open/read failure, including
    an empty file, yields ``False`` so the more restrictive mode is applied.
    """
    file_path = Path(path)
    try:
        with file_path.open("rb") as handle:
            header = handle.read(len(ELF_MAGIC))
    except OSError:
        return False

    # An empty file has no header to read.
    if not header:
        return False
    if header == ELF_MAGIC:
        return True
    return _extension(file_path.name).lower() in EXECUTABLE_SUFFIXES


__all__ = ["ELF_MAGIC", "is_executable"]
