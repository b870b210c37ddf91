"""Prometheus metrics endpoint."""

import time
from typing import Optional

from fastapi import APIRouter, Response
from prometheus_client import (
    Counter, Histogram, Gauge,
    generate_latest, CONTENT_TYPE_LATEST,
    CollectorRegistry
)

from ..utils.logging import get_logger

logger = get_logger(__name__)

# Create a custom registry to avoid conflicts
registry = CollectorRegistry()

request_count = Counter(
    'opus_transcode_requests_total',
    'Total number of HTTP requests',
    ['method', 'endpoint', 'status'],
    registry=registry
)

request_duration = Histogram(
    'opus_transcode_request_duration_seconds',
    'Request duration in seconds',
    ['method', 'endpoint'],
    registry=registry
)

active_requests = Gauge(
    'opus_transcode_active_requests',
    'Number of active requests',
    registry=registry
)

transcode_count = Counter(
    'opus_transcode_transcodes_total',
    'Total number of transcodes by input format and outcome',
    ['format', 'status'],
    registry=registry
)

transcode_duration = Histogram(
    'opus_transcode_transcode_duration_seconds',
    'Time spent decoding and encoding one file',
    ['format'],
    buckets=(0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30, 60, 120, 300),
    registry=registry
)

active_transcodes = Gauge(
    'opus_transcode_active_transcodes',
    'Number of transcodes currently running',
    registry=registry
)

partial_input_count = Counter(
    'opus_transcode_partial_input_total',
    'Transcodes where the encoder stopped reading input early',
    registry=registry
)

error_count = Counter(
    'opus_transcode_errors_total',
    'Total number of errors',
    ['error_type'],
    registry=registry
)

router = APIRouter()


@router.get(
    "/metrics",
    response_class=Response,
    summary="Prometheus metrics",
    description="Expose metrics in Prometheus format"
)
async def metrics():
    """Return metrics in Prometheus format."""
    return Response(
        content=generate_latest(registry),
        media_type=CONTENT_TYPE_LATEST
    )


def record_transcode(
    audio_format: str,
    ok: bool,
    duration: float,
    partial_input: bool = False,
    error_type: Optional[str] = None,
) -> None:
    """Record the outcome of one transcode."""
    transcode_count.labels(format=audio_format, status="success" if ok else "failure").inc()
    transcode_duration.labels(format=audio_format).observe(duration)
    if partial_input:
        partial_input_count.inc()
    if error_type:
        error_count.labels(error_type=error_type).inc()


class MetricsMiddleware:
    """Middleware to collect request metrics."""

    async def __call__(self, request, call_next):
        """Process request and collect metrics."""
        active_requests.inc()
        start_time = time.time()

        try:
            response = await call_next(request)

            duration = time.time() - start_time
            request_duration.labels(
                method=request.method,
                endpoint=request.url.path
            ).observe(duration)

            request_count.labels(
                method=request.method,
                endpoint=request.url.path,
                status=response.status_code
            ).inc()

            return response

        except Exception as e:
            error_count.labels(error_type=type(e).__name__).inc()
            raise

        finally:
            active_requests.dec()
