"""
Prometheus metrics for the rating engine.

Service operation timings are fed by @BaseService.measure_operation; the
prior refresher reports refresh outcomes and the current global mean.
"""

from threading import Lock
from time import monotonic
from typing import Optional, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# Custom registry to avoid conflicts with default process metrics
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "cinerate_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "cinerate_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "cinerate_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

prior_refresh_total = Counter(
    "cinerate_prior_refresh_total",
    "Global prior refresh attempts by trigger and outcome",
    ["trigger", "status"],  # trigger: startup | mutation | periodic | manual
    registry=REGISTRY,
)

prior_refresh_duration_seconds = Histogram(
    "cinerate_prior_refresh_duration_seconds",
    "Time spent recomputing the global prior",
    registry=REGISTRY,
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

prior_global_mean = Gauge(
    "cinerate_prior_global_mean",
    "Current global mean used as the Bayesian prior",
    registry=REGISTRY,
)

cache_operations_total = Counter(
    "cinerate_cache_operations_total",
    "Cache-aside lookups by view and result",
    ["view", "result"],  # result: hit | miss
    registry=REGISTRY,
)

_METRICS_CACHE_TTL_SECONDS = 1.0


class PrometheusMetrics:
    """Manages Prometheus metrics collection and exposure."""

    _cache_lock: Lock = Lock()
    _cache_payload: Optional[bytes] = None
    _cache_ts: Optional[float] = None

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
            service: Service name (e.g., 'RatingService')
            operation: Operation/method name (e.g., 'create_vote')
            duration: Operation duration in seconds
            status: Operation status ('success' or 'error')
            error_type: Type of error if status is 'error'
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_prior_refresh(
        trigger: str, status: str, duration: float, global_mean: Optional[float] = None
    ) -> None:
        prior_refresh_total.labels(trigger=trigger, status=status).inc()
        prior_refresh_duration_seconds.observe(max(duration, 0.0))
        if global_mean is not None:
            prior_global_mean.set(global_mean)
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def set_global_mean(global_mean: float) -> None:
        prior_global_mean.set(global_mean)
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_cache_lookup(view: str, hit: bool) -> None:
        cache_operations_total.labels(view=view, result="hit" if hit else "miss").inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def get_metrics() -> bytes:
        """Generate Prometheus metrics in exposition format."""
        now = monotonic()
        payload = PrometheusMetrics._cache_payload
        ts = PrometheusMetrics._cache_ts
        if payload is not None and ts is not None and (now - ts) <= _METRICS_CACHE_TTL_SECONDS:
            return payload

        with PrometheusMetrics._cache_lock:
            payload = PrometheusMetrics._cache_payload
            ts = PrometheusMetrics._cache_ts
            if payload is None or ts is None or (now - ts) > _METRICS_CACHE_TTL_SECONDS:
                PrometheusMetrics._cache_payload = cast(bytes, generate_latest(REGISTRY))
                PrometheusMetrics._cache_ts = monotonic()
                payload = PrometheusMetrics._cache_payload

        return cast(bytes, payload)

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
