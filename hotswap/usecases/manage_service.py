"""Best-effort stop/start/health-check of the managed service.

No operation here raises or aborts the pipeline: every failure becomes a
warning line in the run log.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable

from hotswap.domain.ports import ServiceControlPort
from hotswap.domain.run_log import UpgradeRun

LOGGER = logging.getLogger(__name__)


@dataclass
class ServiceController:
    """Drive one service through stop → (install) → start → health check."""

    control: ServiceControlPort
    health_check_delay_s: float = 2.0
    sleep: Callable[[float], None] = field(default=time.sleep)

    def stop(self, service_name: str, run: UpgradeRun) -> bool:
        result = self.control.stop(service_name)
        if not result.ok:
            LOGGER.warning("Stopping %s failed: %s", service_name, result.describe())
            run.warn(f"Failed to stop service (it may not exist): {result.describe()}")
            return False
        run.ok("Service stopped")
        return True

    def start(self, service_name: str, run: UpgradeRun) -> bool:
        """Start the service and, on success, run the delayed health check."""
        result = self.control.start(service_name)
        if not result.ok:
            LOGGER.warning("Starting %s failed: %s", service_name, result.describe())
            run.warn(f"Failed to start service: {result.describe()}")
            run.detail("Start the program manually or check the service configuration")
            return False
        run.ok("Service started")

        if self.health_check_delay_s > 0:
            self.sleep(self.health_check_delay_s)
        status = self.control.is_active(service_name)
        if not status.ok:
            LOGGER.warning("Health check for %s failed: %s", service_name, status.describe())
            run.warn(f"Service status check failed, verify manually ({status.describe()})")
            return False
        run.ok("Service is running")
        return True


__all__ = ["ServiceController"]
