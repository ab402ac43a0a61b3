"""Typed errors shared by the upgrade pipeline and the HTTP layer.

Every fatal pipeline failure is surfaced as :class:`UpgradeError` so callers
can render a stable ``code``/``message``/``hint`` triple without inspecting
OS or subprocess exception types.
"""

from __future__ import annotations

from typing import Dict


class UpgradeError(RuntimeError):
    """Fatal pipeline error carrying a typed payload for logs and responses."""

    def __init__(self, code: str, message: str, hint: str = "") -> None:
        super().__init__(message)
        self.code = str(code)
        self.message = str(message)
        self.hint = str(hint or "")

    def to_dict(self) -> Dict[str, str]:
        """Return wire-format dictionary used by FastAPI responses."""
        return {"code": self.code, "message": self.message, "hint": self.hint}

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message}: {self.hint}"
        return self.message


class ConfigError(ValueError):
    """Raised when a configuration file cannot be read or parsed."""


__all__ = ["UpgradeError", "ConfigError"]
