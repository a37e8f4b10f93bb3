"""
Pydantic models for glucose readings, classification results and
the composed display state.

All records are immutable; a new cycle produces new instances.
"""

import logging
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Annotated, Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from .colors import normalize_color
from .constants import (
    MAX_GLUCOSE_VALUE,
    MIN_GLUCOSE_VALUE,
    GlucoseThreshold,
    SeverityColor,
)
from .exceptions import ErrorCode, InvalidColorError, MalformedReadingError

logger = logging.getLogger(__name__)


# =============================================================================
# Enumerations
# =============================================================================

class TrendCategory(str, Enum):
    """Discretized trend direction, using Nightscout direction names."""

    NONE = "NONE"
    DOUBLE_UP = "DoubleUp"
    SINGLE_UP = "SingleUp"
    FORTY_FIVE_UP = "FortyFiveUp"
    FLAT = "Flat"
    FORTY_FIVE_DOWN = "FortyFiveDown"
    SINGLE_DOWN = "SingleDown"
    DOUBLE_DOWN = "DoubleDown"
    NOT_COMPUTABLE = "NOT COMPUTABLE"
    # Never produced by the rate thresholds
    RATE_OUT_OF_RANGE = "RATE OUT OF RANGE"


class SeverityBand(IntEnum):
    """Ordered glucose severity bands."""

    URGENT_LOW = 0
    LOW = 1
    NORMAL = 2
    HIGH = 3
    URGENT_HIGH = 4


class IconPosition(str, Enum):
    """Where the host places the indicator icon."""

    LEFT = "left"
    RIGHT = "right"


# =============================================================================
# Readings
# =============================================================================

GlucoseValue = Annotated[int, Field(ge=MIN_GLUCOSE_VALUE, le=MAX_GLUCOSE_VALUE)]

_VALUE_ADAPTER = TypeAdapter(GlucoseValue)
_TIMESTAMP_ADAPTER = TypeAdapter(datetime)


class Reading(BaseModel):
    """One sensor glucose value and its observation time."""

    model_config = ConfigDict(frozen=True)

    value: GlucoseValue
    timestamp: Optional[datetime] = None

    @field_validator("timestamp")
    @classmethod
    def assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Naive timestamps from the feed are UTC."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @classmethod
    def from_entry(cls, entry: Mapping[str, Any]) -> "Reading":
        """
        Build a reading from a raw Nightscout entry.

        The value comes from ``sgv``; the timestamp from ``dateString``,
        falling back to the epoch-milliseconds ``date`` field. An unusable
        timestamp is logged and left as None so only time-based
        derivations degrade.

        Raises:
            MalformedReadingError: If the entry has no usable glucose value
        """
        if not isinstance(entry, Mapping):
            raise MalformedReadingError("entry", entry)

        raw_value = entry.get("sgv")
        try:
            value = _VALUE_ADAPTER.validate_python(raw_value)
        except ValidationError:
            raise MalformedReadingError("sgv", raw_value)

        raw_timestamp = entry.get("dateString") or entry.get("date")
        timestamp = None
        if raw_timestamp is None:
            logger.warning("Entry has no timestamp", extra={"value": value})
        else:
            try:
                timestamp = _TIMESTAMP_ADAPTER.validate_python(raw_timestamp)
            except ValidationError:
                logger.warning(
                    "Unparseable entry timestamp",
                    extra={"value": value, "timestamp": raw_timestamp},
                )

        return cls(value=value, timestamp=timestamp)


# =============================================================================
# Configuration Snapshot
# =============================================================================

class SeverityThresholds(BaseModel):
    """Glucose thresholds in mg/dL. Ordering is assumed, not enforced."""

    model_config = ConfigDict(frozen=True)

    urgent_high: int = GlucoseThreshold.URGENT_HIGH
    high: int = GlucoseThreshold.HIGH
    low: int = GlucoseThreshold.LOW
    urgent_low: int = GlucoseThreshold.URGENT_LOW


class SeverityColors(BaseModel):
    """Color per severity band, normalized to '#rrggbb'."""

    model_config = ConfigDict(frozen=True, validate_default=True)

    urgent_high: str = SeverityColor.URGENT_HIGH
    high: str = SeverityColor.HIGH
    normal: str = SeverityColor.NORMAL
    low: str = SeverityColor.LOW
    urgent_low: str = SeverityColor.URGENT_LOW

    @field_validator("urgent_high", "high", "normal", "low", "urgent_low")
    @classmethod
    def validate_color(cls, v: str, info) -> str:
        try:
            return normalize_color(v, info.field_name)
        except InvalidColorError as e:
            raise ValueError(e.full_message)

    def for_band(self, band: SeverityBand) -> str:
        """Return the configured color for a severity band."""
        return {
            SeverityBand.URGENT_HIGH: self.urgent_high,
            SeverityBand.HIGH: self.high,
            SeverityBand.NORMAL: self.normal,
            SeverityBand.LOW: self.low,
            SeverityBand.URGENT_LOW: self.urgent_low,
        }[band]


class DisplayConfig(BaseModel):
    """Per-cycle snapshot of the display settings."""

    model_config = ConfigDict(frozen=True)

    show_delta: bool = True
    show_trend: bool = True
    show_time: bool = True
    show_icon: bool = True
    thresholds: SeverityThresholds = Field(default_factory=SeverityThresholds)
    colors: SeverityColors = Field(default_factory=SeverityColors)
    icon_position: IconPosition = IconPosition.RIGHT


# =============================================================================
# Display State
# =============================================================================

class MenuRows(BaseModel):
    """Menu row texts, always shown in full regardless of toggles."""

    model_config = ConfigDict(frozen=True)

    last_reading: str
    delta: str
    trend: str
    elapsed: str


class DisplayState(BaseModel):
    """Renderer-agnostic snapshot produced by one successful cycle."""

    model_config = ConfigDict(frozen=True)

    primary_value: int
    panel_text: str
    delta_text: Optional[str] = None
    trend: TrendCategory = TrendCategory.NONE
    trend_glyph: Optional[str] = None
    elapsed_text: Optional[str] = None
    severity: SeverityBand
    severity_color: str
    menu: MenuRows
    show_icon: bool = True
    icon_position: IconPosition = IconPosition.RIGHT
    reading_timestamp: Optional[datetime] = None


class CompositionResult(BaseModel):
    """
    Outcome of one composition.

    ``retained`` tells the host to keep showing what it already shows;
    ``state`` is then the previous state it passed in, untouched.
    """

    model_config = ConfigDict(frozen=True)

    state: Optional[DisplayState] = None
    retained: bool = False
    error_code: Optional[ErrorCode] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return not self.retained


class ErrorDisplay(BaseModel):
    """Degraded panel text shown when a cycle fails."""

    model_config = ConfigDict(frozen=True)

    text: str
    color: str
    error_code: Optional[ErrorCode] = None


class HealthResponse(BaseModel):
    """Service information returned by the root endpoint."""

    status: str
    service: str
