from collections.abc import Callable
import time
from typing import Any

from fastapi import Request, Response
from prometheus_client import Counter, Gauge, Histogram, generate_latest
import psutil
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response as StarletteResponse

from service.__version__ import __version__
from service.constants import APP_NAME


class PrometheusMiddleware(BaseHTTPMiddleware):
    """
    Prometheus middleware for FastAPI with scoring-specific metrics
    """

    _instance: "PrometheusMiddleware | None" = None
    _metrics_initialized = False

    def __init__(self, app: Any, app_name: str = APP_NAME) -> None:
        super().__init__(app)
        self.app_name = app_name

        # Use singleton pattern to avoid duplicate metrics registration
        if not PrometheusMiddleware._metrics_initialized:
            self._initialize_metrics()
            PrometheusMiddleware._metrics_initialized = True
            PrometheusMiddleware._instance = self

    def _initialize_metrics(self) -> None:
        """Initialize Prometheus metrics (called once)"""
        self.REQUEST_COUNT = Counter(
            "image_similarity_requests_total",
            "Total requests processed",
            ["method", "path", "app_name"],
        )

        self.RESPONSE_COUNT = Counter(
            "image_similarity_responses_total",
            "Total responses sent",
            ["method", "path", "status_code", "app_name"],
        )

        self.REQUEST_DURATION = Histogram(
            "image_similarity_requests_duration_seconds",
            "Request processing time",
            ["method", "path", "app_name"],
            buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 7.5, 10.0, 15.0, 20.0, 30.0],
        )

        self.REQUESTS_IN_PROGRESS = Gauge(
            "image_similarity_requests_in_progress",
            "Active requests being processed",
            ["method", "path", "app_name"],
        )

        self.EXCEPTION_COUNT = Counter(
            "image_similarity_exceptions_total",
            "Total exceptions raised during request processing",
            ["exception_type", "method", "path", "app_name"],
        )

        # Remote prediction jobs, submit to terminal or budget exhaustion
        self.PREDICTION_DURATION = Histogram(
            "image_similarity_prediction_seconds",
            "Remote prediction job wall time",
            ["capability", "status", "app_name"],
            buckets=[0.25, 0.5, 1.0, 2.0, 3.0, 5.0, 10.0, 15.0, 30.0, 60.0],
        )

        self.METRIC_SCORE_DISTRIBUTION = Histogram(
            "image_similarity_metric_scores",
            "Distribution of per-metric similarity values",
            ["metric", "outcome", "app_name"],  # outcome: success, fallback
            buckets=[0.0, 0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1.0],
        )

        self.METRIC_DURATION = Histogram(
            "image_similarity_metric_seconds",
            "Per-metric evaluation time",
            ["metric", "app_name"],
            buckets=[0.001, 0.01, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 15.0, 30.0],
        )

        self.EVALUATOR_ERRORS = Counter(
            "image_similarity_evaluator_errors_total",
            "Metric evaluator failures replaced by the neutral score",
            ["metric", "error_type", "app_name"],
        )

        self.FINAL_SCORE_DISTRIBUTION = Histogram(
            "image_similarity_final_scores",
            "Distribution of final 0-100 scores",
            ["confidence", "app_name"],  # full, low
            buckets=[0, 10, 20, 30, 40, 50, 60, 70, 80, 90, 100],
        )

        self.PIPELINE_TIMEOUTS = Counter(
            "image_similarity_pipeline_timeouts_total",
            "Scoring calls answered by the total-failure fallback",
            ["app_name"],
        )

        self.BATCH_SIZE_DISTRIBUTION = Histogram(
            "image_similarity_batch_sizes",
            "Distribution of batch sizes processed",
            ["app_name"],
            buckets=[1, 2, 4, 8, 16, 32, 64, 128],
        )

        self.SYSTEM_CPU_USAGE = Gauge(
            "image_similarity_cpu_usage_percent",
            "CPU usage percentage",
            ["app_name"],
        )

        self.SYSTEM_MEMORY_USAGE = Gauge(
            "image_similarity_memory_usage_bytes",
            "Memory usage in bytes",
            ["memory_type", "app_name"],  # rss, vms
        )

        self.APP_INFO = Gauge(
            "image_similarity_app_info",
            "Application information",
            ["app_name", "version"],
        )
        self.APP_INFO.labels(app_name=self.app_name, version=__version__).set(1)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process HTTP request with metrics collection"""
        method = request.method
        path = self._resolve_path(request)

        start_time = time.time()
        self.REQUEST_COUNT.labels(method=method, path=path, app_name=self.app_name).inc()
        self.REQUESTS_IN_PROGRESS.labels(method=method, path=path, app_name=self.app_name).inc()

        response = None
        try:
            response = await call_next(request)
            status_code = response.status_code

        except Exception as e:
            self.EXCEPTION_COUNT.labels(
                exception_type=type(e).__name__,
                method=method,
                path=path,
                app_name=self.app_name,
            ).inc()
            raise

        finally:
            # Always decrement in-progress counter
            self.REQUESTS_IN_PROGRESS.labels(method=method, path=path, app_name=self.app_name).dec()

            if response is not None:
                duration = time.time() - start_time
                self.REQUEST_DURATION.labels(method=method, path=path, app_name=self.app_name).observe(duration)
                self.RESPONSE_COUNT.labels(
                    method=method,
                    path=path,
                    status_code=status_code,
                    app_name=self.app_name,
                ).inc()

        return response

    def _resolve_path(self, request: Request) -> str:
        """Resolve FastAPI route path, handling path parameters"""
        if hasattr(request, "scope") and "route" in request.scope:
            route = request.scope["route"]
            if hasattr(route, "path"):
                return route.path

        return request.url.path

    def record_prediction_time(self, duration: float, capability: str, status: str) -> None:
        """Record remote prediction job timing"""
        self.PREDICTION_DURATION.labels(capability=capability, status=status, app_name=self.app_name).observe(duration)

    def record_metric_score(self, score: float, metric: str, success: bool) -> None:
        """Record a per-metric similarity value"""
        outcome = "success" if success else "fallback"
        self.METRIC_SCORE_DISTRIBUTION.labels(metric=metric, outcome=outcome, app_name=self.app_name).observe(score)

    def record_metric_time(self, duration: float, metric: str) -> None:
        """Record per-metric evaluation timing"""
        self.METRIC_DURATION.labels(metric=metric, app_name=self.app_name).observe(duration)

    def record_evaluator_error(self, metric: str, error_type: str) -> None:
        """Record an evaluator failure"""
        self.EVALUATOR_ERRORS.labels(metric=metric, error_type=error_type, app_name=self.app_name).inc()

    def record_final_score(self, final: int, low_confidence: bool) -> None:
        """Record a final 0-100 score"""
        confidence = "low" if low_confidence else "full"
        self.FINAL_SCORE_DISTRIBUTION.labels(confidence=confidence, app_name=self.app_name).observe(final)

    def record_pipeline_timeout(self) -> None:
        """Record a scoring call that hit the pipeline deadline"""
        self.PIPELINE_TIMEOUTS.labels(app_name=self.app_name).inc()

    def record_batch_size(self, batch_size: int) -> None:
        """Record batch processing size"""
        self.BATCH_SIZE_DISTRIBUTION.labels(app_name=self.app_name).observe(batch_size)

    def update_system_metrics(self) -> None:
        """Update system resource metrics - called periodically"""
        try:
            cpu_percent = psutil.cpu_percent()
            self.SYSTEM_CPU_USAGE.labels(app_name=self.app_name).set(cpu_percent)

            memory_info = psutil.Process().memory_info()
            self.SYSTEM_MEMORY_USAGE.labels(memory_type="rss", app_name=self.app_name).set(memory_info.rss)
            self.SYSTEM_MEMORY_USAGE.labels(memory_type="vms", app_name=self.app_name).set(memory_info.vms)

        except psutil.Error:
            # Process metrics are best-effort
            pass


def get_metrics_middleware() -> PrometheusMiddleware:
    """Get the global metrics middleware instance"""
    if PrometheusMiddleware._instance is None:
        raise RuntimeError("Metrics middleware not initialized. Add middleware to FastAPI app first.")
    return PrometheusMiddleware._instance


def metrics_endpoint(request: Request) -> StarletteResponse:
    """Prometheus metrics endpoint"""
    return StarletteResponse(generate_latest(), media_type="text/plain")
