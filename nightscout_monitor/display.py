"""
Display-state composition for glucose readings.

This module combines the trend, delta, severity and elapsed-time
derivations into one immutable DisplayState, honoring the visibility
toggles of the configuration snapshot passed into each call.
"""

import logging
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional, Sequence, Union

from .classifiers import (
    classify_severity,
    classify_trend,
    compute_delta,
    format_delta,
    format_elapsed,
    trend_glyph,
)
from .constants import (
    ALERT_COLOR,
    ERROR_TEXT,
    GLUCOSE_UNIT,
    LOADING_TEXT,
    SETTINGS_TEXT,
)
from .exceptions import ErrorCode, MalformedReadingError
from .models import (
    CompositionResult,
    DisplayConfig,
    DisplayState,
    ErrorDisplay,
    MenuRows,
    Reading,
    TrendCategory,
)

logger = logging.getLogger(__name__)

Entry = Union[Reading, Mapping[str, Any]]


# =============================================================================
# Text Formatting Functions
# =============================================================================

def format_panel_text(
    value: int,
    delta_text: Optional[str],
    glyph: Optional[str],
    elapsed_text: Optional[str],
) -> str:
    """
    Build the panel label, e.g. "149 (-11) ↘ [3 minutes ago]".

    Fragments that are None are left out.
    """
    text = str(value)
    if delta_text:
        text += f" ({delta_text})"
    if glyph:
        text += f" {glyph}"
    if elapsed_text:
        text += f" [{elapsed_text}]"
    return text


def format_menu_rows(
    value: int,
    delta: Optional[int],
    trend: TrendCategory,
    elapsed_text: str,
) -> MenuRows:
    """Build the four always-visible menu rows with unabbreviated values."""
    delta_row = f"Delta: {format_delta(delta)} {GLUCOSE_UNIT}" if delta is not None else f"Delta: {LOADING_TEXT}"
    return MenuRows(
        last_reading=f"Last reading: {value} {GLUCOSE_UNIT}",
        delta=delta_row,
        trend=f"Trend: {trend.value}",
        elapsed=f"Time: {elapsed_text}",
    )


def error_display(error_code: Optional[ErrorCode] = None) -> ErrorDisplay:
    """
    Get the degraded panel state for a failed cycle.

    Missing feed settings get their own hint; everything else shows the
    generic error text in the alert color.
    """
    text = SETTINGS_TEXT if error_code == ErrorCode.CONFIG_MISSING_REQUIRED else ERROR_TEXT
    return ErrorDisplay(text=text, color=ALERT_COLOR, error_code=error_code)


# =============================================================================
# Composition
# =============================================================================

def _to_reading(entry: Entry) -> Reading:
    if isinstance(entry, Reading):
        return entry
    return Reading.from_entry(entry)


def _retain(
    previous: Optional[DisplayState],
    error_code: ErrorCode,
    message: str,
) -> CompositionResult:
    return CompositionResult(
        state=previous,
        retained=True,
        error_code=error_code,
        message=message,
    )


def compose(
    entries: Sequence[Entry],
    config: DisplayConfig,
    previous: Optional[DisplayState] = None,
    now: Optional[datetime] = None,
) -> CompositionResult:
    """
    Compose the display state for the most recent readings.

    Composition never raises. With no entries, or when the newest entry
    has no usable glucose value, the result is a "retain previous" signal
    carrying ``previous`` unchanged. A malformed older entry only degrades
    the delta and trend.

    Args:
        entries: Readings or raw feed entries, newest-first
        config: Configuration snapshot for this cycle
        previous: State currently shown by the host
        now: Reference time for elapsed text (defaults to current UTC time)

    Returns:
        CompositionResult with a new DisplayState, or retained previous state
    """
    if not entries:
        logger.warning("No glucose data available, keeping previous display")
        return _retain(previous, ErrorCode.NIGHTSCOUT_NO_DATA, "No glucose data available")

    try:
        newest = _to_reading(entries[0])
    except MalformedReadingError as e:
        logger.error(
            "Newest reading is malformed, keeping previous display",
            extra={"error_code": e.error_code.value, "details": e.details},
        )
        return _retain(previous, e.error_code, e.message)

    readings: List[Reading] = [newest]
    trend = TrendCategory.NONE
    if len(entries) > 1:
        try:
            readings.append(_to_reading(entries[1]))
        except MalformedReadingError as e:
            logger.warning(
                "Previous reading is malformed, skipping delta and trend",
                extra={"error_code": e.error_code.value, "details": e.details},
            )
            trend = TrendCategory.NOT_COMPUTABLE

    if len(readings) > 1:
        trend = classify_trend(readings)
    delta = compute_delta(readings)

    now = now if now is not None else datetime.now(timezone.utc)
    elapsed_text = format_elapsed(newest.timestamp, now)
    severity, color = classify_severity(newest.value, config.thresholds, config.colors)

    delta_text = format_delta(delta) if config.show_delta and delta is not None else None
    glyph = trend_glyph(trend) if config.show_trend else None
    shown_elapsed = elapsed_text if config.show_time else None

    state = DisplayState(
        primary_value=newest.value,
        panel_text=format_panel_text(newest.value, delta_text, glyph, shown_elapsed),
        delta_text=delta_text,
        trend=trend,
        trend_glyph=glyph,
        elapsed_text=shown_elapsed,
        severity=severity,
        severity_color=color,
        menu=format_menu_rows(newest.value, delta, trend, elapsed_text),
        show_icon=config.show_icon,
        icon_position=config.icon_position,
        reading_timestamp=newest.timestamp,
    )

    logger.debug(
        "Composed display state",
        extra={
            "value": state.primary_value,
            "delta": delta,
            "trend": trend.value,
            "severity": severity.name,
        },
    )
    return CompositionResult(state=state)
