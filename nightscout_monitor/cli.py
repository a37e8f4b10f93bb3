"""
Command line host that polls Nightscout and prints the panel text.

Usage:
    nightscout-monitor --config config.yaml
    nightscout-monitor --url https://my-site.herokuapp.com --token abc123 --menu
"""

import argparse
import logging
import sys
import time
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from .config import Settings, load_settings_file
from .constants import DEFAULT_HTTP_TIMEOUT, DEFAULT_LOG_FORMAT, DEFAULT_UPDATE_INTERVAL
from .exceptions import ConfigurationError
from .monitor import GlucoseMonitor
from .renderers import ConsoleRenderer

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================

def build_settings_provider(args: argparse.Namespace) -> Callable[[], Settings]:
    """
    Create a provider that reads settings fresh for every cycle.

    Priority (highest to lowest):
    1. Command line arguments
    2. Config file (if --config specified)
    3. Environment variables and .env

    Args:
        args: Parsed command line arguments

    Returns:
        Zero-argument callable returning Settings
    """
    overrides: Dict[str, Any] = {
        "nightscout_url": args.url,
        "nightscout_token": args.token,
        "update_interval": args.interval,
        "http_timeout": args.timeout,
    }

    if args.config:
        config_path = args.config

        def provider() -> Settings:
            return load_settings_file(config_path, **overrides)
    else:
        values = {key: value for key, value in overrides.items() if value is not None}

        def provider() -> Settings:
            return Settings(**values)

    return provider


# =============================================================================
# Scheduling
# =============================================================================

def interval_provider(
    provider: Callable[[], Settings],
    fallback: int,
) -> Callable[[], int]:
    """
    Create a callable returning the current update interval.

    The interval is read through the settings provider, so an edited
    config file takes effect after the next cycle. While the settings
    cannot be loaded, the last good interval is used.

    Args:
        provider: Settings provider
        fallback: Interval used until a read succeeds

    Returns:
        Zero-argument callable returning seconds
    """
    last_good = {"interval": fallback}

    def interval() -> int:
        try:
            last_good["interval"] = provider().update_interval
        except (ConfigurationError, ValidationError) as e:
            logger.warning(f"Cannot read update interval, keeping {last_good['interval']}s: {e}")
        return last_good["interval"]

    return interval


def run_forever(
    monitor: GlucoseMonitor,
    interval: Callable[[], int],
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """
    Run update cycles until interrupted.

    Args:
        monitor: Monitor to drive
        interval: Returns the seconds to wait before the next cycle
        sleep: Sleep function
    """
    logger.info(f"Update interval: {interval()} seconds")

    while True:
        try:
            monitor.run_cycle()
            sleep(interval())

        except KeyboardInterrupt:
            logger.info("Shutting down monitor...")
            monitor.close()
            break

        except Exception as e:
            logger.error(f"Unexpected error in update loop: {e}", exc_info=True)
            sleep(interval())


# =============================================================================
# CLI
# =============================================================================

def create_parser() -> argparse.ArgumentParser:
    """Create command line argument parser."""
    parser = argparse.ArgumentParser(
        prog="nightscout-monitor",
        description="Show Nightscout glucose, trend and delta in the terminal",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Using config file:
  nightscout-monitor --config config.yaml

  # Using command line arguments:
  nightscout-monitor --url https://my-site.herokuapp.com --token abc123

  # Run once and exit (useful for status bars):
  nightscout-monitor --config config.yaml --once --no-color

Configuration priority (highest to lowest):
  1. Command line arguments
  2. Config file (if --config specified)
  3. Environment variables (NIGHTSCOUT_URL, NIGHTSCOUT_TOKEN, SHOW_DELTA, ...)
        """,
    )

    parser.add_argument(
        "--config", "-c",
        help="Path to YAML config file",
    )
    parser.add_argument(
        "--url",
        help="Nightscout site URL",
    )
    parser.add_argument(
        "--token",
        help="Nightscout API secret or access token",
    )
    parser.add_argument(
        "--interval",
        type=int,
        default=None,
        help=f"Update interval in seconds (default: {DEFAULT_UPDATE_INTERVAL})",
    )
    parser.add_argument(
        "--timeout",
        type=int,
        default=None,
        help=f"HTTP timeout in seconds (default: {DEFAULT_HTTP_TIMEOUT})",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run one cycle and exit",
    )
    parser.add_argument(
        "--menu",
        action="store_true",
        help="Also print the menu rows (last reading, delta, trend, time)",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Print plain text without ANSI colors",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format=DEFAULT_LOG_FORMAT,
    )

    provider = build_settings_provider(args)
    try:
        settings = provider()
    except (ConfigurationError, ValidationError) as e:
        logger.error(f"Configuration error: {e}")
        return 1

    logging.getLogger().setLevel(logging.DEBUG if args.verbose else settings.log_level)

    renderer = ConsoleRenderer(show_menu=args.menu, use_color=not args.no_color)
    monitor = GlucoseMonitor(settings_provider=provider, renderer=renderer)

    if args.once:
        result = monitor.run_cycle()
        monitor.close()
        return 0 if result.ok else 1

    run_forever(monitor, interval_provider(provider, settings.update_interval))
    return 0


if __name__ == "__main__":
    sys.exit(main())
