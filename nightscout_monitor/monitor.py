"""
Update-cycle driver for the glucose display.

The monitor owns the "previous display state" and funnels every trigger,
timer-driven or manual, through one run_cycle() entry point. It exposes
no timers itself; the host schedules run_cycle().
"""

import logging
import threading
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Tuple

from pydantic import ValidationError

from .config import Settings
from .constants import MAX_CONSECUTIVE_FAILURES
from .display import compose, error_display
from .exceptions import ErrorCode, NightscoutMonitorError
from .models import CompositionResult, DisplayState
from .nightscout_client import NightscoutClient
from .renderers import Renderer

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class MonitorStatistics:
    """Statistics for monitor operation."""
    total_cycles: int = 0
    successful_cycles: int = 0
    failed_cycles: int = 0
    skipped_cycles: int = 0
    consecutive_failures: int = 0
    last_success_time: Optional[str] = None
    last_error: Optional[str] = None


class GlucoseMonitor:
    """
    Runs fetch, compose and render cycles against a Nightscout feed.

    Settings are read through ``settings_provider`` at the start of every
    cycle, so changes take effect on the next cycle. On any failure the
    previously composed state is kept and the renderer is given an error
    display instead.
    """

    def __init__(
        self,
        settings_provider: Callable[[], Settings],
        renderer: Optional[Renderer] = None,
        clock: Callable[[], datetime] = utc_now,
        client_factory: Callable[[Settings], NightscoutClient] = NightscoutClient.from_settings,
    ):
        """
        Initialize the monitor.

        Args:
            settings_provider: Returns the current settings snapshot
            renderer: Receives each new state or error display
            clock: Returns the current time for elapsed text
            client_factory: Builds a feed client from settings
        """
        self._settings_provider = settings_provider
        self.renderer = renderer
        self._clock = clock
        self._client_factory = client_factory

        self._client: Optional[NightscoutClient] = None
        self._client_key: Optional[Tuple] = None
        self._state: Optional[DisplayState] = None
        self._closed = False
        self._cycle_lock = threading.Lock()
        # Guards _state and _closed; reentrant so close() may run from a callback
        self._state_lock = threading.RLock()
        self.stats = MonitorStatistics()

    @property
    def current_state(self) -> Optional[DisplayState]:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    def run_cycle(self) -> CompositionResult:
        """
        Execute a single fetch, compose and render cycle.

        Only one cycle runs at a time; a trigger arriving while a cycle is
        in flight is skipped and reports the current state as retained.

        Returns:
            CompositionResult; ``retained`` is True when the cycle failed
        """
        if self._closed:
            logger.debug("Monitor closed, skipping cycle")
            return _closed_result()

        if not self._cycle_lock.acquire(blocking=False):
            self.stats.skipped_cycles += 1
            logger.debug("Cycle already in progress, skipping trigger")
            return CompositionResult(
                state=self._state,
                retained=True,
                message="Cycle already in progress",
            )

        try:
            return self._run_cycle_locked()
        finally:
            self._cycle_lock.release()

    def refresh_now(self) -> CompositionResult:
        """Manual refresh; identical to a timer-driven cycle."""
        logger.info("Manual refresh requested")
        return self.run_cycle()

    def close(self) -> None:
        """Tear down; later cycles do nothing and the held state is dropped."""
        with self._state_lock:
            self._closed = True
            self._state = None
        logger.info("Monitor closed", extra={"statistics": self.get_statistics()})

    def get_statistics(self) -> dict:
        """
        Get monitor statistics.

        Returns:
            Dictionary with cycle statistics and, once a client exists,
            its request statistics
        """
        stats = asdict(self.stats)
        stats["has_state"] = self._state is not None
        if self._client is not None:
            stats["client"] = self._client.get_statistics()
        return stats

    def _client_for(self, settings: Settings) -> NightscoutClient:
        """Reuse the client until the feed settings change."""
        key = (settings.nightscout_url, settings.nightscout_token, settings.http_timeout)
        if self._client is None or key != self._client_key:
            self._client = self._client_factory(settings)
            self._client_key = key
        return self._client

    def _run_cycle_locked(self) -> CompositionResult:
        self.stats.total_cycles += 1

        try:
            settings = self._settings_provider()
            config = settings.display_config()
            client = self._client_for(settings)
            entries = client.fetch_entries()
        except NightscoutMonitorError as e:
            return self._fail(e.error_code, e.full_message)
        except ValidationError as e:
            return self._fail(ErrorCode.CONFIG_INVALID, str(e))

        if self._closed:
            logger.debug("Monitor closed during fetch, discarding entries")
            return _closed_result()

        result = compose(entries, config, previous=self._state, now=self._clock())
        if result.retained:
            return self._fail(result.error_code, result.message)

        with self._state_lock:
            if self._closed:
                logger.debug("Monitor closed during composition, discarding state")
                return _closed_result()

            self._state = result.state
            self.stats.successful_cycles += 1
            self.stats.consecutive_failures = 0
            self.stats.last_success_time = datetime.now().isoformat()

            if self.renderer is not None:
                self._render(self.renderer.render, result.state)
        return result

    def _fail(self, error_code: Optional[ErrorCode], message: Optional[str]) -> CompositionResult:
        """Record a failed cycle, show the error display and keep the previous state."""
        self.stats.failed_cycles += 1
        self.stats.consecutive_failures += 1
        self.stats.last_error = message

        logger.error(
            "Update cycle failed, keeping previous display",
            extra={
                "error_code": error_code.value if error_code else None,
                "error_message": message,
            },
        )
        if self.stats.consecutive_failures >= MAX_CONSECUTIVE_FAILURES:
            logger.warning(
                f"{self.stats.consecutive_failures} consecutive failures. "
                f"Last error: {self.stats.last_error}"
            )

        with self._state_lock:
            if self._closed:
                return _closed_result()

            if self.renderer is not None:
                self._render(self.renderer.render_error, error_display(error_code))

            return CompositionResult(
                state=self._state,
                retained=True,
                error_code=error_code,
                message=message,
            )

    def _render(self, render: Callable[[Any], None], payload: Any) -> None:
        """Hand a state or error display to the renderer; renderer failures are logged."""
        try:
            render(payload)
        except Exception as e:
            logger.error(f"Renderer failed: {e}", exc_info=True)


def _closed_result() -> CompositionResult:
    return CompositionResult(retained=True, message="Monitor closed")


# =============================================================================
# Dependency Injection
# =============================================================================

_monitor: Optional[GlucoseMonitor] = None


def get_monitor() -> GlucoseMonitor:
    """
    Get the singleton GlucoseMonitor used by the HTTP service.

    Returns:
        GlucoseMonitor reading settings from the environment each cycle
    """
    global _monitor
    if _monitor is None:
        # Settings() re-reads the environment on every cycle
        _monitor = GlucoseMonitor(settings_provider=Settings)
    return _monitor


def reset_monitor() -> None:
    """Close and drop the singleton monitor (useful for testing)."""
    global _monitor
    if _monitor is not None:
        _monitor.close()
    _monitor = None
