"""
Prometheus metrics module for the quinielas backend.

Service timings come from the @measure_operation decorator; admission
outcomes and denial reasons are counted by the registration flow and the
access gate.
"""

from threading import Lock
from time import monotonic
from typing import Optional, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

from ..core.config import settings

# Create a custom registry to avoid conflicts with default metrics
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "quinielas_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "quinielas_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "quinielas_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

admission_attempts_total = Counter(
    "quinielas_admission_attempts_total",
    "Registration attempts by access type and outcome",
    ["access_type", "outcome"],  # outcome: admitted | rejected | conflict
    registry=REGISTRY,
)

access_denials_total = Counter(
    "quinielas_access_denials_total",
    "Access denials by stable reason code",
    ["reason"],
    registry=REGISTRY,
)

audit_writes_total = Counter(
    "quinielas_audit_writes_total",
    "Audit entries by outcome",
    ["action", "status"],  # status: written | failed
    registry=REGISTRY,
)

_METRICS_TTL_SECONDS = 1.0


class PrometheusMetrics:
    """Manages Prometheus metrics collection and exposure."""

    _cache_lock: Lock = Lock()
    _cache_payload: Optional[bytes] = None
    _cache_ts: Optional[float] = None

    @staticmethod
    def enabled() -> bool:
        return bool(settings.metrics_enabled)

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """
        Record service operation metrics from @measure_operation decorator.

        Args:
            service: Service name (e.g., 'RegistrationService')
            operation: Operation name (e.g., 'register_with_code')
            duration: Operation duration in seconds
            status: Operation status ('success' or 'error')
            error_type: Type of error if status is 'error'
        """
        if not PrometheusMetrics.enabled():
            return
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_admission(access_type: str, outcome: str) -> None:
        if not PrometheusMetrics.enabled():
            return
        admission_attempts_total.labels(access_type=access_type, outcome=outcome).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_access_denial(reason: str) -> None:
        if not PrometheusMetrics.enabled():
            return
        access_denials_total.labels(reason=reason).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_audit_write(action: str, status: str = "written") -> None:
        if not PrometheusMetrics.enabled():
            return
        audit_writes_total.labels(action=action, status=status).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def get_metrics() -> bytes:
        """Generate Prometheus metrics in exposition format (cached briefly)."""
        now = monotonic()
        with PrometheusMetrics._cache_lock:
            payload = PrometheusMetrics._cache_payload
            ts = PrometheusMetrics._cache_ts
            if payload is None or ts is None or (now - ts) > _METRICS_TTL_SECONDS:
                payload = cast(bytes, generate_latest(REGISTRY))
                PrometheusMetrics._cache_payload = payload
                PrometheusMetrics._cache_ts = now
        return payload

    @staticmethod
    def get_content_type() -> str:
        return cast(str, CONTENT_TYPE_LATEST)

    @staticmethod
    def _invalidate_cache() -> None:
        with PrometheusMetrics._cache_lock:
            PrometheusMetrics._cache_ts = None
            PrometheusMetrics._cache_payload = None


# Singleton instance
prometheus_metrics = PrometheusMetrics()
