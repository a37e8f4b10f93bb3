"""
FastAPI application for the Nightscout monitor.

This module exposes the composed display state over HTTP so that any
panel, widget or dashboard can render it.
"""

import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List

from fastapi import Depends, FastAPI, Request, Response
from fastapi.responses import JSONResponse

from .config import get_settings
from .constants import DEFAULT_LOG_FORMAT
from .exceptions import (
    ErrorCode,
    MalformedReadingError,
    NightscoutAuthError,
    NightscoutConnectionError,
    NightscoutMonitorError,
    NightscoutNoDataError,
)
from .models import DisplayState, HealthResponse, MenuRows, Reading
from .monitor import GlucoseMonitor, get_monitor, reset_monitor
from .nightscout_client import NightscoutClient, get_nightscout_client

# =============================================================================
# Logging Configuration
# =============================================================================

logging.basicConfig(
    level=logging.INFO,
    format=DEFAULT_LOG_FORMAT,
)
logger = logging.getLogger(__name__)


# =============================================================================
# Application Lifecycle
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown."""
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level)
    logger.info("Nightscout monitor starting up", extra={"log_level": settings.log_level})
    yield
    reset_monitor()
    logger.info("Nightscout monitor shutting down")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="Nightscout Monitor",
    description="Derives trend, delta and severity from a Nightscout feed for panel displays",
    version="1.0.0",
    lifespan=lifespan,
)


# =============================================================================
# Exception Handlers
# =============================================================================

def _status_code_for(exc: NightscoutMonitorError) -> int:
    if isinstance(exc, NightscoutAuthError):
        return 401
    if isinstance(exc, (NightscoutNoDataError, NightscoutConnectionError)):
        return 503
    if exc.error_code == ErrorCode.CONFIG_MISSING_REQUIRED:
        return 503
    return 500


@app.exception_handler(NightscoutMonitorError)
async def nightscout_monitor_error_handler(
    request: Request,
    exc: NightscoutMonitorError,
) -> JSONResponse:
    """Handle custom application exceptions with structured error responses."""
    logger.error(
        "Application error",
        extra={
            "error_code": exc.error_code.value,
            "error_message": exc.message,
            "details": exc.details,
            "path": request.url.path,
        }
    )

    return JSONResponse(
        status_code=_status_code_for(exc),
        content=exc.to_dict(),
    )


# =============================================================================
# Middleware
# =============================================================================

@app.middleware("http")
async def add_request_context(request: Request, call_next):
    """Add request ID and timing to all requests."""
    request_id = str(uuid.uuid4())[:8]
    start_time = datetime.now()

    request.state.request_id = request_id

    response = await call_next(request)

    duration_ms = (datetime.now() - start_time).total_seconds() * 1000

    response.headers["X-Request-ID"] = request_id
    response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"

    logger.info(
        "Request completed",
        extra={
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": round(duration_ms, 2),
        }
    )

    return response


# =============================================================================
# Endpoints
# =============================================================================

@app.get("/", response_model=HealthResponse)
async def root():
    """
    Root endpoint - service information.

    Returns service name and status for quick verification.
    """
    return HealthResponse(
        status="healthy",
        service="nightscout-monitor",
    )


@app.get("/health")
async def health_check():
    """
    Health check endpoint for container orchestration.

    Returns a simple status for liveness probes.
    """
    return {
        "status": "ok",
        "timestamp": datetime.now().isoformat(),
    }


@app.get("/display", response_model=DisplayState)
def get_display(
    response: Response,
    monitor: GlucoseMonitor = Depends(get_monitor),
):
    """
    Run one update cycle and return the composed display state.

    When the cycle fails but an earlier state exists, that state is
    returned with ``X-Display-Retained: true``. Without any state yet,
    the error is returned as a structured 503 body.

    **Example panel text**: "149 (-11) ↘ [3 minutes ago]"
    """
    result = monitor.refresh_now()

    if result.state is None:
        raise NightscoutNoDataError(
            message="No glucose reading available",
            details=result.message,
        )

    response.headers["X-Display-Retained"] = "true" if result.retained else "false"
    return result.state


@app.get("/display/menu", response_model=MenuRows)
def get_display_menu(
    monitor: GlucoseMonitor = Depends(get_monitor),
):
    """
    Get the menu rows of the current display state without fetching.

    **Response Fields**: `last_reading`, `delta`, `trend`, `elapsed`
    """
    state = monitor.current_state
    if state is None:
        raise NightscoutNoDataError(
            message="No glucose reading available",
            details="No update cycle has succeeded yet",
        )
    return state.menu


@app.get("/glucose/raw", response_model=List[Reading])
def get_glucose_raw(
    client: NightscoutClient = Depends(get_nightscout_client),
):
    """
    Get the parsed readings for debugging and custom integrations.

    Entries without a usable glucose value are left out.
    """
    readings = []
    for entry in client.fetch_entries():
        try:
            readings.append(Reading.from_entry(entry))
        except MalformedReadingError as e:
            logger.warning("Skipping malformed entry", extra={"details": e.details})
    return readings


@app.get("/status")
def get_status(
    monitor: GlucoseMonitor = Depends(get_monitor),
):
    """
    Get monitor and client statistics.

    **Response Fields**:
    - `total_cycles`, `successful_cycles`, `failed_cycles`
    - `consecutive_failures`, `last_success_time`, `last_error`
    - `client`: request statistics once a feed client exists
    """
    return monitor.get_statistics()
