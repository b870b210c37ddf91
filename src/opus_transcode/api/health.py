"""Health check endpoints."""

from datetime import datetime, timezone
from typing import Dict, Any

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel

from .. import __version__
from ..config.settings import Settings
from ..dependencies import get_settings
from ..process.executables import is_available
from ..utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


class HealthStatus(BaseModel):
    """Health check response model."""
    status: str
    timestamp: datetime
    version: str
    checks: Dict[str, Any]


def run_checks(settings: Settings) -> Dict[str, str]:
    """Check that the external programs can be found."""
    return {
        "api": "healthy",
        "encoder": "healthy" if is_available(settings.encoder.executable) else "unhealthy",
        "mp3_decoder": "healthy" if is_available(settings.decoder.mp3_executable) else "not_found",
    }


@router.get(
    "/health",
    response_model=HealthStatus,
    status_code=status.HTTP_200_OK,
    summary="Health check endpoint",
    description="Check if the service is healthy and ready to accept requests"
)
async def health_check(settings: Settings = Depends(get_settings)) -> HealthStatus:
    """Perform health check and return service status."""
    checks = run_checks(settings)

    # Without the MP3 decoder every other input still works
    overall_status = "healthy"
    if any(check == "unhealthy" for check in checks.values()):
        overall_status = "unhealthy"
    elif any(check == "not_found" for check in checks.values()):
        overall_status = "degraded"

    return HealthStatus(
        status=overall_status,
        timestamp=datetime.now(timezone.utc),
        version=__version__,
        checks=checks
    )


@router.get(
    "/health/live",
    status_code=status.HTTP_200_OK,
    summary="Liveness probe",
    description="Simple liveness check for Kubernetes"
)
async def liveness():
    """Simple liveness probe."""
    return {"status": "alive"}


@router.get(
    "/health/ready",
    summary="Readiness probe",
    description="Check if service is ready to accept traffic"
)
async def readiness(response: Response, settings: Settings = Depends(get_settings)):
    """Readiness probe: the encoder must be installed."""
    if not is_available(settings.encoder.executable):
        logger.warning(f"Encoder {settings.encoder.executable} not found on PATH")
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "not_ready", "reason": "encoder not found"}
    return {"status": "ready"}
