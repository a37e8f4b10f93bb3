"""
Application constants and magic number definitions.

This module centralizes all hardcoded values for better maintainability.
"""


# =============================================================================
# Nightscout Feed
# =============================================================================

# Number of entries to request (current + previous for delta and trend)
GLUCOSE_READINGS_COUNT = 2

# Nightscout REST path for sensor glucose entries
ENTRIES_PATH = "/api/v1/entries.json"

# Plausible sensor glucose range (mg/dL)
MIN_GLUCOSE_VALUE = 0
MAX_GLUCOSE_VALUE = 1000

GLUCOSE_UNIT = "mg/dL"


# =============================================================================
# Trend Rate Thresholds (mg/dL per minute)
# =============================================================================

class RateThreshold:
    """Rate-of-change thresholds for trend classification."""
    VERY_FAST_RISE = 3
    FAST_RISE = 2
    MODERATE_RISE = 1
    MODERATE_FALL = -1
    FAST_FALL = -2
    VERY_FAST_FALL = -3


# =============================================================================
# Default Glucose Thresholds (mg/dL)
# =============================================================================

class GlucoseThreshold:
    """Default glucose threshold values in mg/dL."""
    URGENT_LOW = 55
    LOW = 70
    HIGH = 180
    URGENT_HIGH = 240


# Bounds accepted by the preferences for any threshold
THRESHOLD_MIN = 40
THRESHOLD_MAX = 400


# =============================================================================
# Default Colors
# =============================================================================

class SeverityColor:
    """Default severity colors as 'R,G,B' strings."""
    URGENT_LOW = "255,0,0"       # Red
    LOW = "255,165,0"            # Orange
    NORMAL = "0,255,0"           # Green
    HIGH = "255,255,0"           # Yellow
    URGENT_HIGH = "255,0,0"      # Red


# Text color used when the whole cycle failed
ALERT_COLOR = "#ff0000"


# =============================================================================
# Display Text
# =============================================================================

LOADING_TEXT = "---"
ERROR_TEXT = "⚠️ Error"
SETTINGS_TEXT = "⚠️ Settings"
UNKNOWN_ELAPSED_TEXT = "unknown"
UNKNOWN_GLYPH = "?"

# Marker printed by console renderers in place of the panel icon
ICON_MARKER = "🩸"


# =============================================================================
# Logging Constants
# =============================================================================

DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_LOG_LEVEL = "INFO"


# =============================================================================
# Monitor Constants
# =============================================================================

# Update interval in seconds
DEFAULT_UPDATE_INTERVAL = 60

# Default HTTP timeout in seconds
DEFAULT_HTTP_TIMEOUT = 10

# Consecutive failed cycles before logging a warning
MAX_CONSECUTIVE_FAILURES = 5
