"""
Nightscout Monitor - glucose trend, delta and severity for panel displays.

This package polls a Nightscout site, derives trend direction, delta,
severity and elapsed time from the two most recent readings, and composes
them into an immutable display state for any renderer.
"""

__version__ = "1.0.0"
__author__ = "Nightscout Monitor Contributors"

from .config import Settings, get_settings
from .display import compose
from .models import CompositionResult, DisplayConfig, DisplayState, Reading

__all__ = [
    "Settings",
    "get_settings",
    "compose",
    "CompositionResult",
    "DisplayConfig",
    "DisplayState",
    "Reading",
]
