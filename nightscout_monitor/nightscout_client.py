"""
Nightscout API client with structured error handling.

This module fetches the most recent sensor glucose entries from a
Nightscout site. It performs exactly one request per call; deciding
when to call again is the scheduler's job.
"""

import logging
import re
import threading
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import requests

from .config import Settings
from .constants import DEFAULT_HTTP_TIMEOUT, ENTRIES_PATH, GLUCOSE_READINGS_COUNT
from .exceptions import (
    ConfigurationError,
    ErrorCode,
    NightscoutAPIError,
    NightscoutAuthError,
    NightscoutConnectionError,
    NightscoutNoDataError,
)

logger = logging.getLogger(__name__)

_TOKEN_PREFIX = re.compile(r"^/?\?token=")


def normalize_base_url(url: str) -> str:
    """Strip whitespace and trailing slashes from a site URL."""
    return url.strip().rstrip("/")


def normalize_token(token: str) -> str:
    """Accept tokens pasted as '?token=...' or '/?token=...'."""
    return _TOKEN_PREFIX.sub("", token.strip())


class NightscoutClient:
    """
    Nightscout REST client for sensor glucose entries.

    Features:
    - Token normalization for values copied from a Nightscout URL
    - Typed exceptions for auth, transport and payload failures
    - Request statistics for monitoring
    """

    def __init__(
        self,
        base_url: Optional[str],
        token: Optional[str],
        timeout: int = DEFAULT_HTTP_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the Nightscout client.

        Args:
            base_url: Nightscout site URL
            token: API secret or access token
            timeout: HTTP timeout in seconds
            session: Optional requests session to reuse connections

        Raises:
            ConfigurationError: If the URL or token is missing
        """
        if not base_url or not base_url.strip() or not token or not token.strip():
            raise ConfigurationError(
                message="Nightscout URL and token are required",
                error_code=ErrorCode.CONFIG_MISSING_REQUIRED,
                details="Set nightscout_url and nightscout_token",
            )

        self.base_url = normalize_base_url(base_url)
        self.token = normalize_token(token)
        self.timeout = timeout
        self._session = session or requests.Session()
        self._lock = threading.Lock()

        # Statistics for monitoring
        self._total_requests: int = 0
        self._failed_requests: int = 0
        self._last_error: Optional[str] = None
        self._last_error_time: Optional[datetime] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "NightscoutClient":
        """Create a client from application settings."""
        return cls(
            base_url=settings.nightscout_url,
            token=settings.nightscout_token,
            timeout=settings.http_timeout,
        )

    @property
    def entries_url(self) -> str:
        return f"{self.base_url}{ENTRIES_PATH}"

    def get_statistics(self) -> dict:
        """
        Get client statistics for monitoring.

        Returns:
            Dictionary with request statistics
        """
        with self._lock:
            return {
                "total_requests": self._total_requests,
                "failed_requests": self._failed_requests,
                "last_error": self._last_error,
                "last_error_time": self._last_error_time.isoformat() if self._last_error_time else None,
            }

    def fetch_entries(self, count: int = GLUCOSE_READINGS_COUNT) -> List[Dict[str, Any]]:
        """
        Fetch the most recent sensor glucose entries, newest first.

        Args:
            count: Number of entries to request

        Returns:
            List of raw entry dictionaries (``sgv``, ``dateString``, ...)

        Raises:
            NightscoutConnectionError: On timeout or connection failure
            NightscoutAuthError: If the site rejects the token
            NightscoutAPIError: On other HTTP errors or an unusable body
            NightscoutNoDataError: If the feed returned no entries
        """
        with self._lock:
            self._total_requests += 1

        try:
            response = self._session.get(
                self.entries_url,
                params={"count": count},
                headers={
                    "api-secret": self.token,
                    "Accept": "application/json",
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()

        except requests.exceptions.Timeout as e:
            raise self._record(NightscoutConnectionError(
                message="Timeout fetching glucose entries",
                details=f"URL: {self.entries_url}",
                original_error=e,
            ))

        except requests.exceptions.ConnectionError as e:
            raise self._record(NightscoutConnectionError(
                details=f"URL: {self.entries_url}",
                original_error=e,
            ))

        except requests.exceptions.HTTPError as e:
            status_code = e.response.status_code if e.response is not None else None
            if status_code in (401, 403):
                raise self._record(NightscoutAuthError(
                    details=f"HTTP {status_code}",
                    original_error=e,
                ))
            raise self._record(NightscoutAPIError(
                details=f"HTTP {status_code}",
                original_error=e,
            ))

        except requests.exceptions.JSONDecodeError as e:
            raise self._record(NightscoutAPIError(
                message="Nightscout returned invalid JSON",
                original_error=e,
            ))

        except requests.exceptions.RequestException as e:
            raise self._record(NightscoutAPIError(original_error=e))

        except ValueError as e:
            raise self._record(NightscoutAPIError(
                message="Nightscout returned invalid JSON",
                original_error=e,
            ))

        if not isinstance(data, list):
            raise self._record(NightscoutAPIError(
                message="Unexpected Nightscout response",
                details=f"Expected a list of entries, got {type(data).__name__}",
            ))

        if not data:
            raise self._record(NightscoutNoDataError(
                details="The entries endpoint returned an empty list",
            ))

        logger.info(
            "Fetched glucose entries",
            extra={"count": len(data), "value": data[0].get("sgv") if isinstance(data[0], dict) else None},
        )
        return data

    def _record(self, error: Exception) -> Exception:
        """Record a failed request and hand the error back for raising."""
        with self._lock:
            self._failed_requests += 1
            self._last_error = str(error)
            self._last_error_time = datetime.now()

        logger.error(
            "Error fetching from Nightscout",
            extra={
                "error_type": type(error).__name__,
                "error_message": str(error),
            },
        )
        return error


# =============================================================================
# Dependency Injection
# =============================================================================

_client: Optional[NightscoutClient] = None
_client_key: Optional[Tuple[Optional[str], Optional[str], int]] = None


def get_nightscout_client() -> NightscoutClient:
    """
    Get the shared NightscoutClient instance.

    Settings are read on every call; the client is rebuilt when the URL,
    token or timeout changed since the last call.

    Returns:
        Configured NightscoutClient instance

    Raises:
        ConfigurationError: If the feed is not configured
    """
    global _client, _client_key
    settings = Settings()
    key = (settings.nightscout_url, settings.nightscout_token, settings.http_timeout)
    if _client is None or key != _client_key:
        _client = NightscoutClient.from_settings(settings)
        _client_key = key
    return _client


def reset_nightscout_client() -> None:
    """Reset the singleton client (useful for testing)."""
    global _client, _client_key
    _client = None
    _client_key = None
