"""Firestore Batcher Metrics Configuration.

Local metrics collection using OpenTelemetry with a Prometheus reader.
Counts committed batches, committed operations, oversize retries and fatal
commit errors, and records the size of every attempted chunk.
"""

from __future__ import annotations

import logging
import os
import socket
import time
from typing import Any

from opentelemetry import metrics
from opentelemetry.exporter.prometheus import PrometheusMetricReader
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.resources import Resource
from prometheus_client import CONTENT_TYPE_LATEST
from prometheus_client import generate_latest

logger = logging.getLogger(__name__)

# =============================================================================
# SERVICE CONFIGURATION
# =============================================================================

SERVICE_NAME = os.getenv("OTEL_SERVICE_NAME", "firestore-batcher")
SERVICE_VERSION = os.getenv("OTEL_SERVICE_VERSION", "1.0.0")
DEPLOYMENT_ENVIRONMENT = os.getenv("DEPLOYMENT_ENVIRONMENT", "local")


def is_test_environment() -> bool:
    """Detect if running in test environment."""
    return (
        "PYTEST_CURRENT_TEST" in os.environ
        or "CI" in os.environ
        or "GITHUB_ACTIONS" in os.environ
    )


# Disable metrics in test/CI environments by default
default_metrics_enabled = "false" if is_test_environment() else "true"
METRICS_ENABLED = os.getenv("BATCHER_METRICS_ENABLED", default_metrics_enabled).lower() == "true"

# Metrics instances
meter = None
batches_committed_counter = None
operations_committed_counter = None
oversize_retries_counter = None
commit_errors_counter = None
batch_size_histogram = None
call_duration_histogram = None
prometheus_reader = None

# Global state
_active_calls: dict[str, float] = {}
_metrics_initialized = False


def get_resource() -> Resource:
    """Create OpenTelemetry resource with service information."""
    return Resource.create(
        {
            "service.name": SERVICE_NAME,
            "service.version": SERVICE_VERSION,
            "deployment.environment": DEPLOYMENT_ENVIRONMENT,
            "host.name": socket.gethostname(),
        }
    )


def initialize_metrics():
    """Initialize local metrics collection with a Prometheus reader."""
    global meter, prometheus_reader
    global batches_committed_counter, operations_committed_counter
    global oversize_retries_counter, commit_errors_counter, batch_size_histogram, call_duration_histogram

    if not METRICS_ENABLED:
        logger.debug("Metrics disabled")
        return

    try:
        prometheus_reader = PrometheusMetricReader()
        meter_provider = MeterProvider(
            resource=get_resource(),
            metric_readers=[prometheus_reader],
        )
        metrics.set_meter_provider(meter_provider)
        meter = metrics.get_meter(__name__)

        batches_committed_counter = meter.create_counter(
            name="batcher_batches_committed_total",
            description="Atomic batches committed successfully",
            unit="1",
        )
        operations_committed_counter = meter.create_counter(
            name="batcher_operations_committed_total",
            description="Operations committed successfully",
            unit="1",
        )
        oversize_retries_counter = meter.create_counter(
            name="batcher_oversize_retries_total",
            description="Commits rejected as too large and retried with a smaller batch",
            unit="1",
        )
        commit_errors_counter = meter.create_counter(
            name="batcher_commit_errors_total",
            description="Commits that failed with a non-retryable error",
            unit="1",
        )
        batch_size_histogram = meter.create_histogram(
            name="batcher_batch_size",
            description="Number of operations per attempted commit",
            unit="1",
        )
        call_duration_histogram = meter.create_histogram(
            name="batcher_call_duration_seconds",
            description="Duration of batcher commit/all calls",
            unit="s",
        )
        logger.debug("Metrics initialized: %s v%s (%s)", SERVICE_NAME, SERVICE_VERSION, DEPLOYMENT_ENVIRONMENT)
    except Exception as e:
        logger.warning("Metrics initialization failed: %s", e)


def is_metrics_enabled() -> bool:
    """Check if metrics collection is enabled."""
    return METRICS_ENABLED and meter is not None


def _attributes(**extra: Any) -> dict[str, Any]:
    return {"environment": DEPLOYMENT_ENVIRONMENT, **extra}


def record_commit_attempt(chunk_size: int):
    """Record the size of a chunk about to be committed."""
    if not is_metrics_enabled():
        return

    try:
        if batch_size_histogram:
            batch_size_histogram.record(chunk_size, _attributes())
    except Exception as e:
        logger.debug("Record commit attempt failed: %s", e)


def record_commit_success(chunk_size: int):
    """Record a successfully committed chunk."""
    if not is_metrics_enabled():
        return

    try:
        if batches_committed_counter:
            batches_committed_counter.add(1, _attributes())
        if operations_committed_counter:
            operations_committed_counter.add(chunk_size, _attributes())
    except Exception as e:
        logger.debug("Record commit success failed: %s", e)


def record_oversize_retry(new_batch_size: int):
    """Record an oversize failure that will be retried."""
    if not is_metrics_enabled():
        return

    try:
        if oversize_retries_counter:
            oversize_retries_counter.add(1, _attributes(new_batch_size=new_batch_size))
    except Exception as e:
        logger.debug("Record oversize retry failed: %s", e)


def record_commit_error(error: BaseException):
    """Record a non-retryable commit failure."""
    if not is_metrics_enabled():
        return

    try:
        if commit_errors_counter:
            commit_errors_counter.add(1, _attributes(error_type=type(error).__name__))
    except Exception as e:
        logger.debug("Record commit error failed: %s", e)


def record_call_start(call_name: str) -> float | None:
    """Record the start of a batcher call, return the start time."""
    if not is_metrics_enabled():
        return None

    start_time = time.time()
    _active_calls[f"{call_name}_{start_time}"] = start_time
    return start_time


def record_call_end(call_name: str, start_time: float | None):
    """Record the duration of a batcher call started with ``record_call_start``."""
    if not start_time:
        return

    _active_calls.pop(f"{call_name}_{start_time}", None)
    if not is_metrics_enabled():
        return

    try:
        if call_duration_histogram:
            call_duration_histogram.record(time.time() - start_time, _attributes(call=call_name))
    except Exception as e:
        logger.debug("Record call duration failed: %s", e)


def get_metrics_export() -> tuple[str, str]:
    """Export metrics in Prometheus format."""
    if not is_metrics_enabled() or not prometheus_reader:
        return "# Metrics not available\n", "text/plain"

    try:
        metrics_data = generate_latest()
        return metrics_data.decode("utf-8"), CONTENT_TYPE_LATEST
    except Exception as e:
        return f"# Error: {e}\n", "text/plain"


def get_metrics_summary() -> dict[str, Any]:
    """Get metrics summary for debugging."""
    if not is_metrics_enabled():
        return {"status": "disabled"}

    return {
        "status": "active",
        "service_name": SERVICE_NAME,
        "service_version": SERVICE_VERSION,
        "environment": DEPLOYMENT_ENVIRONMENT,
        "active_calls": len(_active_calls),
        "prometheus_enabled": prometheus_reader is not None,
    }


def ensure_metrics_initialized():
    """Initialize metrics once per process."""
    global _metrics_initialized
    if _metrics_initialized:
        return

    if METRICS_ENABLED and not is_test_environment():
        initialize_metrics()
    _metrics_initialized = True

