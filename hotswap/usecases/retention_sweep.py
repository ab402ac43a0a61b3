"""Age-based cleanup of the upload staging directory."""

from __future__ import annotations

import logging
import os
import threading
import time
from pathlib import Path
from typing import Optional, Union

LOGGER = logging.getLogger(__name__)


def sweep_old_files(directory: Union[str, Path], max_age_s: float, now: Optional[float] = None) -> int:
    """Delete regular files under ``directory`` older than ``max_age_s`` seconds.

    Unreadable entries are skipped. Returns the number of files removed.
    """
    root = Path(directory)
    if not root.is_dir():
        return 0
    reference = time.time() if now is None else float(now)
    LOGGER.info("Sweeping %s for files older than %.0fs", root, max_age_s)
    removed = 0
    for current, _dirnames, filenames in os.walk(root):
        for filename in filenames:
            path = Path(current) / filename
            try:
                if reference - path.stat().st_mtime <= max_age_s:
                    continue
                path.unlink()
            except OSError as exc:
                LOGGER.debug("Skipping %s: %s", path, exc)
                continue
            removed += 1
            LOGGER.info("Removed expired upload %s", path)
    LOGGER.info("Sweep of %s removed %d file(s)", root, removed)
    return removed


class RetentionSweeper:
    """Run :func:`sweep_old_files` periodically on a daemon thread."""

    def __init__(self, directory: Union[str, Path], *, interval_s: float, max_age_s: float) -> None:
        self.directory = Path(directory)
        self.interval_s = float(interval_s)
        self.max_age_s = float(max_age_s)
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="upload-retention-sweep", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _loop(self) -> None:
        while not self._stop.wait(self.interval_s):
            try:
                sweep_old_files(self.directory, self.max_age_s)
            except Exception:
                LOGGER.exception("Retention sweep of %s failed", self.directory)


__all__ = ["RetentionSweeper", "sweep_old_files"]
