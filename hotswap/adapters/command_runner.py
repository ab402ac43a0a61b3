"""Blocking external-program execution with a hard timeout.

Adapters for service control and external archive tools share this runner so
that a hung program can never block an upgrade indefinitely, and so tests can
substitute a double with the same ``run`` signature.
"""

from __future__ import annotations

import logging
import subprocess
from typing import Optional, Sequence

from hotswap.domain.ports import CommandResult

LOGGER = logging.getLogger(__name__)
DEFAULT_TIMEOUT_S = 300.0


class CommandRunner:
    """Run one command and capture its output. Override for testing."""

    def __init__(self, timeout_s: float = DEFAULT_TIMEOUT_S) -> None:
        self.timeout_s = float(timeout_s)

    def run(
        self,
        args: Sequence[str],
        *,
        timeout: Optional[float] = None,
        stdout_path: Optional[str] = None,
    ) -> CommandResult:
        """Return a :class:`CommandResult`; never raises for process failures.

        When ``stdout_path`` is given the program's standard output is written
        to that file instead of being captured.
        """
        argv = tuple(str(arg) for arg in args)
        limit = self.timeout_s if timeout is None else float(timeout)
        LOGGER.debug("Running %s (timeout %.0fs)", " ".join(argv), limit)
        sink = None
        if stdout_path is not None:
            try:
                sink = open(stdout_path, "wb")
            except OSError as exc:
                return CommandResult(args=argv, returncode=126, stderr=f"Cannot open output {stdout_path}: {exc}")
        try:
            if sink is not None:
                with sink:
                    proc = subprocess.run(
                        argv,
                        stdout=sink,
                        stderr=subprocess.PIPE,
                        timeout=limit,
                        check=False,
                    )
                stdout_text = ""
            else:
                proc = subprocess.run(argv, capture_output=True, timeout=limit, check=False)
                stdout_text = proc.stdout.decode(errors="replace")
        except FileNotFoundError:
            return CommandResult(args=argv, returncode=127, stderr=f"Command not found: {argv[0]}", not_found=True)
        except subprocess.TimeoutExpired:
            return CommandResult(args=argv, returncode=124, stderr=f"Timed out after {limit:.0f}s", timed_out=True)
        except OSError as exc:
            return CommandResult(args=argv, returncode=126, stderr=str(exc))

        return CommandResult(
            args=argv,
            returncode=proc.returncode,
            stdout=stdout_text,
            stderr=proc.stderr.decode(errors="replace"),
        )


__all__ = ["CommandRunner", "DEFAULT_TIMEOUT_S"]
