from __future__ import annotations

import logging
import os
from typing import Mapping, Optional

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"
LEVEL_ENV = "HOTSWAP_LOG_LEVEL"
DEBUG_ENV = "HOTSWAP_DEBUG"
_UVICORN_LEVELS = ("critical", "error", "warning", "info", "debug")


def parse_level(value: Optional[str], fallback: int = logging.INFO) -> int:
    """Translate ``"debug"``/``"WARNING"``/``"10"`` into a numeric level."""
    text = (value or "").strip()
    if not text:
        return fallback
    if text.isdigit():
        return int(text)
    candidate = logging.getLevelName(text.upper())
    return candidate if isinstance(candidate, int) else fallback


def env_level(environ: Optional[Mapping[str, str]] = None) -> Optional[int]:
    """Return the level requested by the environment, if any."""
    env = os.environ if environ is None else environ
    explicit = env.get(LEVEL_ENV)
    if explicit:
        return parse_level(explicit)
    if (env.get(DEBUG_ENV) or "").strip().lower() in {"1", "true", "yes", "on"}:
        return logging.DEBUG
    return None


def configure_root(default_level: int | str = logging.INFO, environ: Optional[Mapping[str, str]] = None) -> int:
    """
    Configure the root logger for the upgrade server.

    Environment overrides:
      - HOTSWAP_LOG_LEVEL: explicit log level
      - HOTSWAP_DEBUG: truthy -> DEBUG
    """
    fallback = parse_level(default_level) if isinstance(default_level, str) else int(default_level)
    requested = env_level(environ)
    effective = fallback if requested is None else requested

    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=effective, format=_FORMAT, datefmt=_DATEFMT)
    root.setLevel(effective)
    return effective


def uvicorn_log_level(level: int) -> str:
    """Map a numeric level to the lowercase name uvicorn expects."""
    name = str(logging.getLevelName(level)).lower()
    return name if name in _UVICORN_LEVELS else "info"
