"""
Application configuration with Pydantic validation.

All settings are loaded from environment variables with sensible defaults.
The display-related subset is handed to the composer as an immutable
DisplayConfig snapshot, taken fresh for every cycle.
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .colors import parse_color
from .constants import (
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_LOG_LEVEL,
    DEFAULT_UPDATE_INTERVAL,
    THRESHOLD_MAX,
    THRESHOLD_MIN,
    GlucoseThreshold,
    SeverityColor,
)
from .exceptions import ConfigurationError, InvalidColorError
from .models import DisplayConfig, IconPosition, SeverityColors, SeverityThresholds

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Color values are comma-separated RGB strings (e.g., "255,0,0") or
    hex strings (e.g., "#ff0000"). Thresholds are bounded like the
    preferences dialog (40-400 mg/dL); their ordering is only checked
    with a warning.
    """

    # =========================================================================
    # Nightscout Feed
    # =========================================================================
    nightscout_url: Optional[str] = None
    nightscout_token: Optional[str] = None

    # =========================================================================
    # Polling
    # =========================================================================
    update_interval: int = DEFAULT_UPDATE_INTERVAL
    http_timeout: int = DEFAULT_HTTP_TIMEOUT

    # =========================================================================
    # Server Settings
    # =========================================================================
    port: int = 8080
    debug: bool = False
    log_level: str = DEFAULT_LOG_LEVEL

    # =========================================================================
    # Display Toggles
    # =========================================================================
    show_delta: bool = True
    show_trend: bool = True
    show_time: bool = True
    show_icon: bool = True
    icon_position: IconPosition = IconPosition.RIGHT

    # =========================================================================
    # Glucose Thresholds (mg/dL)
    # =========================================================================
    urgent_high_threshold: int = GlucoseThreshold.URGENT_HIGH
    high_threshold: int = GlucoseThreshold.HIGH
    low_threshold: int = GlucoseThreshold.LOW
    urgent_low_threshold: int = GlucoseThreshold.URGENT_LOW

    # =========================================================================
    # Severity Colors
    # =========================================================================
    urgent_high_color: str = SeverityColor.URGENT_HIGH
    high_color: str = SeverityColor.HIGH
    normal_color: str = SeverityColor.NORMAL
    low_color: str = SeverityColor.LOW
    urgent_low_color: str = SeverityColor.URGENT_LOW

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator(
        'urgent_high_color', 'high_color', 'normal_color', 'low_color', 'urgent_low_color'
    )
    @classmethod
    def validate_color_format(cls, v: str) -> str:
        """Validate color string is 'R,G,B' or '#rrggbb' with valid values."""
        try:
            parse_color(v)
        except InvalidColorError:
            raise ValueError(
                f"Invalid color format '{v}'. Expected 'R,G,B' with values 0-255 or '#rrggbb'"
            )
        return v

    @field_validator(
        'urgent_high_threshold', 'high_threshold', 'low_threshold', 'urgent_low_threshold'
    )
    @classmethod
    def validate_threshold_range(cls, v: int) -> int:
        """Validate threshold is within the range the preferences allow."""
        if not THRESHOLD_MIN <= v <= THRESHOLD_MAX:
            raise ValueError(f"Threshold must be {THRESHOLD_MIN}-{THRESHOLD_MAX} mg/dL, got {v}")
        return v

    @field_validator('update_interval', 'http_timeout')
    @classmethod
    def validate_positive_seconds(cls, v: int) -> int:
        """Validate intervals are at least one second."""
        if v < 1:
            raise ValueError(f"Value must be at least 1 second, got {v}")
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid Python logging level."""
        valid_levels = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level '{v}'. Must be one of: {', '.join(valid_levels)}")
        return v_upper

    @model_validator(mode='after')
    def check_threshold_order(self) -> 'Settings':
        """Warn when thresholds are not in ascending order."""
        ordered = (
            self.urgent_low_threshold
            < self.low_threshold
            < self.high_threshold
            < self.urgent_high_threshold
        )
        if not ordered:
            logger.warning(
                "Glucose thresholds are not in ascending order; high-side bands take priority",
                extra={
                    "urgent_low": self.urgent_low_threshold,
                    "low": self.low_threshold,
                    "high": self.high_threshold,
                    "urgent_high": self.urgent_high_threshold,
                },
            )
        return self

    # =========================================================================
    # Helper Methods
    # =========================================================================

    def thresholds(self) -> SeverityThresholds:
        return SeverityThresholds(
            urgent_high=self.urgent_high_threshold,
            high=self.high_threshold,
            low=self.low_threshold,
            urgent_low=self.urgent_low_threshold,
        )

    def colors(self) -> SeverityColors:
        return SeverityColors(
            urgent_high=self.urgent_high_color,
            high=self.high_color,
            normal=self.normal_color,
            low=self.low_color,
            urgent_low=self.urgent_low_color,
        )

    def display_config(self) -> DisplayConfig:
        """Snapshot the display-related settings for one cycle."""
        return DisplayConfig(
            show_delta=self.show_delta,
            show_trend=self.show_trend,
            show_time=self.show_time,
            show_icon=self.show_icon,
            thresholds=self.thresholds(),
            colors=self.colors(),
            icon_position=self.icon_position,
        )


def load_settings_file(config_path: Union[str, Path], **overrides: Any) -> Settings:
    """
    Load settings from a YAML file.

    Keys use the setting names (``nightscout_url``, ``show_delta``, ...);
    dashed names as used by the preferences schema (``show-delta``) are
    accepted too. Environment variables fill in anything the file omits.

    Args:
        config_path: Path to the YAML configuration file
        **overrides: Values that take priority over the file

    Returns:
        Settings instance

    Raises:
        ConfigurationError: If the file is missing or not a mapping
    """
    path = Path(config_path)
    if not path.exists():
        raise ConfigurationError(
            message="Config file not found",
            details=str(config_path),
        )

    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ConfigurationError(
            message="Config file must contain a mapping",
            details=str(config_path),
        )

    values: Dict[str, Any] = {key.replace("-", "_"): value for key, value in data.items()}
    values.update({key: value for key, value in overrides.items() if value is not None})
    return Settings(**values)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
