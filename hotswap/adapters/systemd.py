"""``systemctl`` implementation of the service-control port."""

from __future__ import annotations

from dataclasses import dataclass, field

from hotswap.adapters.command_runner import CommandRunner
from hotswap.domain.ports import CommandResult


@dataclass
class SystemctlServiceControl:
    """Stop/start/query a systemd unit through the ``systemctl`` binary."""

    runner: CommandRunner = field(default_factory=CommandRunner)
    executable: str = "systemctl"

    def stop(self, service_name: str) -> CommandResult:
        return self.runner.run([self.executable, "stop", service_name])

    def start(self, service_name: str) -> CommandResult:
        return self.runner.run([self.executable, "start", service_name])

    def is_active(self, service_name: str) -> CommandResult:
        return self.runner.run([self.executable, "is-active", service_name])


__all__ = ["SystemctlServiceControl"]
