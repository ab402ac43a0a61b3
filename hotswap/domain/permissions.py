"""Permission string parsing."""

from __future__ import annotations

FALLBACK_MODE = 0o755


def resolve_mode(spec: object) -> int:
    """Return mode bits for an octal permission string such as ``"0644"``.

    Malformed or out-of-range values resolve to ``0o755`` instead of raising.
    """
    text = str(spec if spec is not None else "").strip()
    if not text:
        return FALLBACK_MODE
    try:
        mode = int(text, 8)
    except ValueError:
        return FALLBACK_MODE
    if mode < 0 or mode > 0o7777:
        return FALLBACK_MODE
    return mode


def format_mode(mode: int) -> str:
    """Render mode bits as a four-digit octal string."""
    return f"{mode:04o}"


__all__ = ["FALLBACK_MODE", "resolve_mode", "format_mode"]
