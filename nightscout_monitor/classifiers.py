"""
Derivations over the two most recent glucose readings.

This module turns readings into the values shown on the panel: the
trend category and its glyph, the signed delta, the severity band and
color, and the elapsed-time sentence. Every function is pure; errors are
logged and degraded to a neutral result instead of propagating.
"""

import logging
import math
from datetime import datetime
from typing import Optional, Sequence, Tuple

from .constants import (
    UNKNOWN_ELAPSED_TEXT,
    UNKNOWN_GLYPH,
    RateThreshold,
)
from .exceptions import DegenerateTimeDeltaError, MalformedReadingError
from .models import (
    Reading,
    SeverityBand,
    SeverityColors,
    SeverityThresholds,
    TrendCategory,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Trend Functions
# =============================================================================

TREND_GLYPHS = {
    TrendCategory.NONE: "→",
    TrendCategory.DOUBLE_UP: "↑↑",
    TrendCategory.SINGLE_UP: "↑",
    TrendCategory.FORTY_FIVE_UP: "↗",
    TrendCategory.FLAT: "→",
    TrendCategory.FORTY_FIVE_DOWN: "↘",
    TrendCategory.SINGLE_DOWN: "↓",
    TrendCategory.DOUBLE_DOWN: "↓↓",
    TrendCategory.NOT_COMPUTABLE: UNKNOWN_GLYPH,
    TrendCategory.RATE_OUT_OF_RANGE: "⚠️",
}


def trend_glyph(category: object) -> str:
    """
    Get the display glyph for a trend category.

    Args:
        category: A TrendCategory, or its Nightscout direction name

    Returns:
        Arrow glyph, or "?" for anything unrecognized
    """
    try:
        return TREND_GLYPHS[TrendCategory(category)]
    except ValueError:
        return UNKNOWN_GLYPH


def rate_of_change(newer: Reading, older: Reading) -> float:
    """
    Calculate the rate of change between two readings in mg/dL per minute.

    Args:
        newer: Most recent reading
        older: Reading before it

    Returns:
        Rate of change; positive means rising

    Raises:
        MalformedReadingError: If either reading has no timestamp
        DegenerateTimeDeltaError: If the readings are not strictly
            ordered newest-first or the rate is not finite
    """
    if newer.timestamp is None or older.timestamp is None:
        raise MalformedReadingError("timestamp")

    minutes = (newer.timestamp - older.timestamp).total_seconds() / 60
    if minutes <= 0:
        raise DegenerateTimeDeltaError(minutes)

    rate = (newer.value - older.value) / minutes
    if not math.isfinite(rate):
        raise DegenerateTimeDeltaError(minutes)
    return rate


def categorize_rate(rate: float) -> TrendCategory:
    """Map a rate of change (mg/dL per minute) onto a trend category."""
    if rate >= RateThreshold.VERY_FAST_RISE:
        return TrendCategory.DOUBLE_UP
    if rate >= RateThreshold.FAST_RISE:
        return TrendCategory.SINGLE_UP
    if rate >= RateThreshold.MODERATE_RISE:
        return TrendCategory.FORTY_FIVE_UP
    if rate <= RateThreshold.VERY_FAST_FALL:
        return TrendCategory.DOUBLE_DOWN
    if rate <= RateThreshold.FAST_FALL:
        return TrendCategory.SINGLE_DOWN
    if rate <= RateThreshold.MODERATE_FALL:
        return TrendCategory.FORTY_FIVE_DOWN
    return TrendCategory.FLAT


def classify_trend(readings: Sequence[Reading]) -> TrendCategory:
    """
    Classify the trend from the two most recent readings.

    Args:
        readings: Readings ordered newest-first

    Returns:
        TrendCategory. NONE with fewer than two readings or when the
        time delta is degenerate, NOT_COMPUTABLE when a timestamp is missing.
    """
    if len(readings) < 2:
        return TrendCategory.NONE

    try:
        rate = rate_of_change(readings[0], readings[1])
    except DegenerateTimeDeltaError as e:
        logger.warning(
            "Cannot calculate trend",
            extra={"error_code": e.error_code.value, "details": e.details},
        )
        return TrendCategory.NONE
    except MalformedReadingError as e:
        logger.warning(
            "Cannot calculate trend",
            extra={"error_code": e.error_code.value, "details": e.details},
        )
        return TrendCategory.NOT_COMPUTABLE

    return categorize_rate(rate)


# =============================================================================
# Delta Functions
# =============================================================================

def compute_delta(readings: Sequence[Reading]) -> Optional[int]:
    """
    Calculate the signed change between the two most recent readings.

    Args:
        readings: Readings ordered newest-first

    Returns:
        value[0] - value[1], or None with fewer than two readings
    """
    if len(readings) < 2:
        return None

    try:
        return int(readings[0].value - readings[1].value)
    except (AttributeError, TypeError, ValueError) as e:
        logger.error(
            "Error calculating delta",
            extra={"error_type": type(e).__name__, "error_message": str(e)},
        )
        return None


def format_delta(delta: Optional[int]) -> str:
    """
    Format delta value with sign for display.

    Args:
        delta: Change from previous reading

    Returns:
        Formatted string (e.g., "+5", "-3", "0", or "" if None)
    """
    if delta is None:
        return ""
    return f"+{delta}" if delta > 0 else str(delta)


# =============================================================================
# Severity Functions
# =============================================================================

def classify_severity(
    value: int,
    thresholds: SeverityThresholds,
    colors: Optional[SeverityColors] = None,
) -> Tuple[SeverityBand, str]:
    """
    Classify a glucose value into a severity band.

    High-side checks run first, so with overlapping thresholds a value
    that is both >= high and <= low resolves to the high-side band.

    Args:
        value: Glucose value in mg/dL
        thresholds: Configured glucose thresholds
        colors: Configured band colors (defaults when omitted)

    Returns:
        Tuple of (SeverityBand, hex color)
    """
    if value >= thresholds.urgent_high:
        band = SeverityBand.URGENT_HIGH
    elif value >= thresholds.high:
        band = SeverityBand.HIGH
    elif value <= thresholds.urgent_low:
        band = SeverityBand.URGENT_LOW
    elif value <= thresholds.low:
        band = SeverityBand.LOW
    else:
        band = SeverityBand.NORMAL

    colors = colors if colors is not None else SeverityColors()
    return band, colors.for_band(band)


# =============================================================================
# Elapsed Time Functions
# =============================================================================

def format_elapsed(point_in_time: Optional[datetime], now: datetime) -> str:
    """
    Describe how long ago a reading was taken.

    Timestamps in the future (clock skew) are treated as "just now".

    Args:
        point_in_time: Reading timestamp
        now: Current time, same awareness as point_in_time

    Returns:
        Sentence such as "just now", "5 minutes ago" or "2 hours ago";
        "unknown" when the timestamp is missing or not comparable
    """
    if point_in_time is None:
        return UNKNOWN_ELAPSED_TEXT

    try:
        seconds = (now - point_in_time).total_seconds()
    except TypeError as e:
        logger.error("Error formatting time", extra={"error_message": str(e)})
        return UNKNOWN_ELAPSED_TEXT

    minutes = max(0, math.floor(seconds / 60))

    if minutes < 1:
        return "just now"
    if minutes == 1:
        return "1 minute ago"
    if minutes < 60:
        return f"{minutes} minutes ago"

    hours = minutes // 60
    if hours == 1:
        return "1 hour ago"
    return f"{hours} hours ago"
