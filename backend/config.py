"""
Markstyle configuration: all environment variables in one place.

Read from environment at runtime. Every setting has a working default:
without DATABASE_URL projects live in memory for the life of the process.
"""

from __future__ import annotations

import os


def _float_or_none(value: str) -> float | None:
    value = value.strip()
    return float(value) if value else None


class Settings:
    """Application settings from environment variables."""

    # Database (optional)
    DATABASE_URL: str = os.environ.get("DATABASE_URL", "")

    # Application
    ENVIRONMENT: str = os.environ.get("ENVIRONMENT", "development")
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO").upper()

    # Live preview
    AUTOSAVE_DEBOUNCE_MS: int = int(os.environ.get("AUTOSAVE_DEBOUNCE_MS", "2000"))
    SCROLL_SUPPRESS_MS: int = int(os.environ.get("SCROLL_SUPPRESS_MS", "100"))
    DEFAULT_REFERENCE_WIDTH: int = int(os.environ.get("DEFAULT_REFERENCE_WIDTH", "375"))
    # Empty means linear scroll mapping; 1.1 compensates for rendered density
    SCROLL_EASING_EXPONENT: float | None = _float_or_none(os.environ.get("SCROLL_EASING_EXPONENT", ""))

    @property
    def autosave_delay(self) -> float:
        return self.AUTOSAVE_DEBOUNCE_MS / 1000

    @property
    def scroll_suppress_window(self) -> float:
        return self.SCROLL_SUPPRESS_MS / 1000


# Singleton instance
settings = Settings()

if settings.AUTOSAVE_DEBOUNCE_MS < 0:
    raise RuntimeError("AUTOSAVE_DEBOUNCE_MS must not be negative")
if settings.SCROLL_SUPPRESS_MS < 0:
    raise RuntimeError("SCROLL_SUPPRESS_MS must not be negative")
if settings.SCROLL_EASING_EXPONENT is not None and settings.SCROLL_EASING_EXPONENT <= 0:
    raise RuntimeError("SCROLL_EASING_EXPONENT must be positive")
