"""
Quire configuration: all environment variables in one place.

Read from environment at import time. Every setting has a default, so the
kernel works with no environment at all.
"""

from __future__ import annotations

import os

SERIALIZE_FORMATS: set[str] = {"auto", "text", "json"}


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from None


class Settings:
    """Engine and CLI settings from environment variables."""

    # History
    HISTORY_LIMIT: int = _int_env("QUIRE_HISTORY_LIMIT", 500)

    # Serialization used for change events and saves: "auto", "text" or "json".
    # "auto" writes the markdown-like text form when it round-trips exactly.
    SERIALIZE_FORMAT: str = os.environ.get("QUIRE_SERIALIZE_FORMAT", "auto").strip().lower()

    # Logging (only the CLI configures handlers)
    LOG_LEVEL: str = os.environ.get("QUIRE_LOG_LEVEL", "WARNING").strip().upper()


# Singleton instance
settings = Settings()

if settings.HISTORY_LIMIT < 1:
    raise RuntimeError("QUIRE_HISTORY_LIMIT must be at least 1")
if settings.SERIALIZE_FORMAT not in SERIALIZE_FORMATS:
    raise RuntimeError(f"QUIRE_SERIALIZE_FORMAT must be one of {sorted(SERIALIZE_FORMATS)}")
