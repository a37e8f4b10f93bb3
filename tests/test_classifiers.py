"""Tests for nightscout_monitor/classifiers.py module."""

import logging
from datetime import datetime, timedelta

import pytest

from nightscout_monitor.classifiers import (
    categorize_rate,
    classify_severity,
    classify_trend,
    compute_delta,
    format_delta,
    format_elapsed,
    rate_of_change,
    trend_glyph,
)
from nightscout_monitor.exceptions import DegenerateTimeDeltaError, MalformedReadingError
from nightscout_monitor.models import (
    Reading,
    SeverityBand,
    SeverityColors,
    SeverityThresholds,
    TrendCategory,
)


class TestRateOfChange:
    """Tests for rate_of_change function."""

    def test_rising_rate(self, make_reading):
        """Test rising values give a positive rate."""
        rate = rate_of_change(make_reading(110, 0), make_reading(100, 5))
        assert rate == pytest.approx(2.0)

    def test_falling_rate(self, make_reading):
        """Test falling values give a negative rate."""
        rate = rate_of_change(make_reading(90, 0), make_reading(100, 10))
        assert rate == pytest.approx(-1.0)

    def test_identical_timestamps_raise(self, make_reading):
        """Test identical timestamps are a degenerate time delta."""
        with pytest.raises(DegenerateTimeDeltaError):
            rate_of_change(make_reading(110, 5), make_reading(100, 5))

    def test_inverted_timestamps_raise(self, make_reading):
        """Test older-first readings are a degenerate time delta."""
        with pytest.raises(DegenerateTimeDeltaError):
            rate_of_change(make_reading(110, 5), make_reading(100, 0))

    def test_missing_timestamp_raises(self, make_reading):
        """Test a reading without timestamp is malformed."""
        with pytest.raises(MalformedReadingError):
            rate_of_change(make_reading(110, 0), Reading(value=100))


class TestCategorizeRate:
    """Tests for categorize_rate function."""

    @pytest.mark.parametrize("rate, expected", [
        (5.0, TrendCategory.DOUBLE_UP),
        (3.0, TrendCategory.DOUBLE_UP),
        (2.99, TrendCategory.SINGLE_UP),
        (2.0, TrendCategory.SINGLE_UP),
        (1.0, TrendCategory.FORTY_FIVE_UP),
        (0.99, TrendCategory.FLAT),
        (0.0, TrendCategory.FLAT),
        (-0.99, TrendCategory.FLAT),
        (-1.0, TrendCategory.FORTY_FIVE_DOWN),
        (-2.0, TrendCategory.SINGLE_DOWN),
        (-3.0, TrendCategory.DOUBLE_DOWN),
        (-7.5, TrendCategory.DOUBLE_DOWN),
    ])
    def test_thresholds(self, rate, expected):
        """Test each threshold boundary is inclusive."""
        assert categorize_rate(rate) == expected


class TestClassifyTrend:
    """Tests for classify_trend function."""

    def test_empty_is_none(self):
        """Test no readings returns NONE."""
        assert classify_trend([]) == TrendCategory.NONE

    def test_single_reading_is_none(self, make_reading):
        """Test a single reading returns NONE."""
        assert classify_trend([make_reading(120)]) == TrendCategory.NONE

    def test_exactly_three_per_minute_is_double_up(self, make_reading):
        """Test 15 mg/dL over 5 minutes is DoubleUp, not SingleUp."""
        readings = [make_reading(120, 0), make_reading(105, 5)]
        assert classify_trend(readings) == TrendCategory.DOUBLE_UP

    def test_single_up(self, make_reading):
        """Test 2 mg/dL/min is SingleUp."""
        readings = [make_reading(110, 0), make_reading(100, 5)]
        assert classify_trend(readings) == TrendCategory.SINGLE_UP

    def test_forty_five_up(self, make_reading):
        """Test 1 mg/dL/min is FortyFiveUp."""
        readings = [make_reading(105, 0), make_reading(100, 5)]
        assert classify_trend(readings) == TrendCategory.FORTY_FIVE_UP

    def test_flat(self, make_reading):
        """Test small change is Flat."""
        readings = [make_reading(102, 0), make_reading(100, 5)]
        assert classify_trend(readings) == TrendCategory.FLAT

    def test_forty_five_down(self, make_reading):
        """Test -1 mg/dL/min is FortyFiveDown."""
        readings = [make_reading(95, 0), make_reading(100, 5)]
        assert classify_trend(readings) == TrendCategory.FORTY_FIVE_DOWN

    def test_single_down(self, make_reading):
        """Test -2 mg/dL/min is SingleDown."""
        readings = [make_reading(90, 0), make_reading(100, 5)]
        assert classify_trend(readings) == TrendCategory.SINGLE_DOWN

    def test_double_down(self, make_reading):
        """Test -3 mg/dL/min is DoubleDown."""
        readings = [make_reading(85, 0), make_reading(100, 5)]
        assert classify_trend(readings) == TrendCategory.DOUBLE_DOWN

    def test_rate_uses_elapsed_minutes(self, make_reading):
        """Test the same delta over a longer gap gives a flatter trend."""
        readings = [make_reading(115, 0), make_reading(100, 15)]
        assert classify_trend(readings) == TrendCategory.FORTY_FIVE_UP

    def test_only_two_newest_used(self, make_reading):
        """Test readings beyond the second are ignored."""
        readings = [make_reading(110, 0), make_reading(100, 5), make_reading(300, 10)]
        assert classify_trend(readings) == TrendCategory.SINGLE_UP

    def test_identical_timestamps_are_none(self, make_reading):
        """Test identical timestamps classify as NONE without raising."""
        readings = [make_reading(150, 5), make_reading(100, 5)]
        assert classify_trend(readings) == TrendCategory.NONE

    def test_identical_timestamps_are_logged(self, make_reading, caplog):
        """Test the degenerate time delta is logged as a warning."""
        readings = [make_reading(150, 5), make_reading(100, 5)]
        with caplog.at_level(logging.WARNING, logger="nightscout_monitor.classifiers"):
            classify_trend(readings)
        assert "Cannot calculate trend" in caplog.text

    def test_inverted_timestamps_are_none(self, make_reading):
        """Test older-first readings classify as NONE."""
        readings = [make_reading(100, 10), make_reading(150, 0)]
        assert classify_trend(readings) == TrendCategory.NONE

    def test_missing_timestamp_is_not_computable(self, make_reading):
        """Test a reading without timestamp gives NOT_COMPUTABLE."""
        readings = [Reading(value=120), make_reading(100, 5)]
        assert classify_trend(readings) == TrendCategory.NOT_COMPUTABLE


class TestTrendGlyph:
    """Tests for trend_glyph function."""

    @pytest.mark.parametrize("category, glyph", [
        (TrendCategory.DOUBLE_UP, "↑↑"),
        (TrendCategory.SINGLE_UP, "↑"),
        (TrendCategory.FORTY_FIVE_UP, "↗"),
        (TrendCategory.FLAT, "→"),
        (TrendCategory.NONE, "→"),
        (TrendCategory.FORTY_FIVE_DOWN, "↘"),
        (TrendCategory.SINGLE_DOWN, "↓"),
        (TrendCategory.DOUBLE_DOWN, "↓↓"),
        (TrendCategory.NOT_COMPUTABLE, "?"),
        (TrendCategory.RATE_OUT_OF_RANGE, "⚠️"),
    ])
    def test_known_categories(self, category, glyph):
        """Test every category maps to its glyph."""
        assert trend_glyph(category) == glyph

    def test_direction_name(self):
        """Test Nightscout direction names are accepted."""
        assert trend_glyph("FortyFiveDown") == "↘"

    def test_unknown_is_question_mark(self):
        """Test unknown categories fall back to '?'."""
        assert trend_glyph("TripleUp") == "?"
        assert trend_glyph(None) == "?"


class TestComputeDelta:
    """Tests for compute_delta function."""

    def test_rising(self, make_reading):
        """Test rising delta is positive."""
        assert compute_delta([make_reading(120, 0), make_reading(100, 5)]) == 20

    def test_falling(self, make_reading):
        """Test falling delta is negative."""
        assert compute_delta([make_reading(100, 0), make_reading(120, 5)]) == -20

    def test_unchanged(self, make_reading):
        """Test unchanged delta is zero."""
        assert compute_delta([make_reading(100, 0), make_reading(100, 5)]) == 0

    def test_single_reading_is_absent(self, make_reading):
        """Test fewer than two readings gives None."""
        assert compute_delta([make_reading(100)]) is None
        assert compute_delta([]) is None

    def test_does_not_need_timestamps(self):
        """Test delta only depends on values."""
        assert compute_delta([Reading(value=130), Reading(value=125)]) == 5

    def test_bad_input_is_absent(self):
        """Test unusable input yields None instead of raising."""
        assert compute_delta([object(), object()]) is None


class TestFormatDelta:
    """Tests for format_delta function."""

    def test_none_returns_empty(self):
        """Test None returns empty string."""
        assert format_delta(None) == ""

    def test_positive_has_plus(self):
        """Test positive values have plus sign."""
        assert format_delta(20) == "+20"

    def test_negative_has_minus(self):
        """Test negative values have minus sign."""
        assert format_delta(-20) == "-20"

    def test_zero_has_no_sign(self):
        """Test zero is not decorated."""
        assert format_delta(0) == "0"


class TestClassifySeverity:
    """Tests for classify_severity function."""

    def test_urgent_high(self, thresholds):
        """Test value above urgent high."""
        band, _ = classify_severity(250, thresholds)
        assert band == SeverityBand.URGENT_HIGH

    def test_urgent_high_boundary_inclusive(self, thresholds):
        """Test value exactly at urgent high."""
        band, _ = classify_severity(220, thresholds)
        assert band == SeverityBand.URGENT_HIGH

    def test_high(self, thresholds):
        """Test values from high up to urgent high."""
        assert classify_severity(219, thresholds)[0] == SeverityBand.HIGH
        assert classify_severity(180, thresholds)[0] == SeverityBand.HIGH

    def test_normal(self, thresholds):
        """Test values strictly between low and high."""
        assert classify_severity(71, thresholds)[0] == SeverityBand.NORMAL
        assert classify_severity(179, thresholds)[0] == SeverityBand.NORMAL

    def test_low(self, thresholds):
        """Test values down to just above urgent low."""
        assert classify_severity(70, thresholds)[0] == SeverityBand.LOW
        assert classify_severity(55, thresholds)[0] == SeverityBand.LOW

    def test_urgent_low(self, thresholds):
        """Test values at or below urgent low."""
        assert classify_severity(54, thresholds)[0] == SeverityBand.URGENT_LOW
        assert classify_severity(40, thresholds)[0] == SeverityBand.URGENT_LOW

    def test_overlapping_thresholds_resolve_high(self):
        """Test high side wins when a value is both >= high and <= urgent low."""
        overlapping = SeverityThresholds(urgent_high=300, high=100, low=180, urgent_low=200)
        band, _ = classify_severity(150, overlapping)
        assert band == SeverityBand.HIGH

    def test_default_colors(self, thresholds):
        """Test default colors are returned as hex."""
        assert classify_severity(120, thresholds)[1] == "#00ff00"
        assert classify_severity(250, thresholds)[1] == "#ff0000"

    def test_custom_colors(self, thresholds):
        """Test configured colors are used."""
        colors = SeverityColors(high="#123456", normal="10,20,30")
        assert classify_severity(200, thresholds, colors) == (SeverityBand.HIGH, "#123456")
        assert classify_severity(100, thresholds, colors) == (SeverityBand.NORMAL, "#0a141e")

    def test_bands_are_ordered(self):
        """Test severity bands compare in ascending order."""
        assert SeverityBand.URGENT_LOW < SeverityBand.LOW < SeverityBand.NORMAL
        assert SeverityBand.NORMAL < SeverityBand.HIGH < SeverityBand.URGENT_HIGH


class TestFormatElapsed:
    """Tests for format_elapsed function."""

    def test_seconds_ago_is_just_now(self, now):
        """Test under a minute is 'just now'."""
        assert format_elapsed(now - timedelta(seconds=45), now) == "just now"

    def test_one_minute(self, now):
        """Test 90 seconds is one minute."""
        assert format_elapsed(now - timedelta(seconds=90), now) == "1 minute ago"

    def test_minutes(self, now):
        """Test minutes are pluralized."""
        assert format_elapsed(now - timedelta(minutes=5), now) == "5 minutes ago"
        assert format_elapsed(now - timedelta(minutes=59, seconds=59), now) == "59 minutes ago"

    def test_one_hour(self, now):
        """Test 3700 seconds is one hour."""
        assert format_elapsed(now - timedelta(seconds=3700), now) == "1 hour ago"

    def test_hours(self, now):
        """Test hours are pluralized and floored."""
        assert format_elapsed(now - timedelta(hours=2, minutes=59), now) == "2 hours ago"

    def test_future_is_just_now(self, now):
        """Test timestamps ahead of now are clamped to 'just now'."""
        assert format_elapsed(now + timedelta(minutes=3), now) == "just now"

    def test_missing_timestamp_is_unknown(self, now):
        """Test None gives 'unknown'."""
        assert format_elapsed(None, now) == "unknown"

    def test_naive_and_aware_mix_is_unknown(self, now):
        """Test timestamps that cannot be compared give 'unknown'."""
        assert format_elapsed(datetime(2024, 1, 15, 10, 0), now) == "unknown"
