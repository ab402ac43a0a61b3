"""Value objects describing one upgrade run and its outcome."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from hotswap.domain.errors import UpgradeError

INDENT = "   "
OK_MARK = "✓"
WARNING_PREFIX = "WARNING:"


@dataclass
class UpgradeRun:
    """Accumulates the user-visible log for one pipeline invocation."""

    lines: List[str] = field(default_factory=list)
    steps: List[int] = field(default_factory=list)
    warnings: int = 0

    def line(self, text: str = "") -> None:
        self.lines.append(text)

    def step(self, number: int, title: str) -> None:
        """Open a numbered step section."""
        if self.lines:
            self.lines.append("")
        self.lines.append(f"{number}. {title}")
        self.steps.append(number)

    def detail(self, text: str) -> None:
        self.lines.append(f"{INDENT}{text}")

    def ok(self, text: str) -> None:
        self.lines.append(f"{INDENT}{OK_MARK} {text}")

    def warn(self, text: str) -> None:
        self.lines.append(f"{INDENT}{WARNING_PREFIX} {text}")
        self.warnings += 1

    def text(self) -> str:
        return "\n".join(self.lines) + "\n"


@dataclass(frozen=True)
class UpgradeResult:
    """Terminal outcome returned to the presentation layer."""

    log_text: str
    error: Optional[UpgradeError] = None
    warnings: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def message(self) -> str:
        """Short status line for rendering above the log."""
        if self.error is None:
            if self.warnings:
                return f"Upgrade succeeded with {self.warnings} warning(s)."
            return "Upgrade succeeded."
        return f"Upgrade failed: {self.error}"


__all__ = ["UpgradeRun", "UpgradeResult", "WARNING_PREFIX", "OK_MARK"]
