from service.core.exceptions import ServiceError
from service.core.observability import get_metrics_middleware
from service.log import get_logger

logger = get_logger(__name__)


class MetricsRecorder:
    """
    Handles metrics recording and observability concerns for scoring.

    Responsibilities:
    - Record remote prediction timings
    - Record per-metric values, timings and failures
    - Record final scores and pipeline timeouts
    - Extract error types from exceptions
    """

    def __init__(self, enabled: bool = True):
        """
        Initialize metrics recorder.

        Args:
            enabled: Whether metrics recording is enabled
        """
        self.enabled = enabled

    def record_prediction(self, capability: str, status: str, duration_ms: float) -> None:
        """Record the wall time of one remote prediction job"""
        if not self.enabled:
            return

        try:
            get_metrics_middleware().record_prediction_time(duration_ms / 1000, capability, status)
        except Exception as e:
            logger.debug(f"Metrics recording failed: {e}")

    def record_metric_score(self, metric: str, value: float, success: bool, duration_ms: float) -> None:
        """
        Record the outcome of one metric evaluation.

        Args:
            metric: Evaluator name
            value: Similarity returned (fallback value on failure)
            success: Whether the value was actually computed
            duration_ms: Evaluation time in milliseconds
        """
        if not self.enabled:
            return

        try:
            metrics = get_metrics_middleware()
            metrics.record_metric_score(value, metric, success)
            metrics.record_metric_time(duration_ms / 1000, metric)
        except Exception as e:
            logger.debug(f"Metrics recording failed: {e}")

    def record_error_metrics(self, metric: str, exception: Exception, error_type: str | None = None) -> None:
        """Record an evaluator failure"""
        if not self.enabled:
            return

        try:
            get_metrics_middleware().record_evaluator_error(metric, error_type or type(exception).__name__)
        except Exception as metrics_exception:
            logger.debug(f"Metrics recording failed: {metrics_exception}")

    def record_final_score(self, final: int, low_confidence: bool) -> None:
        if not self.enabled:
            return

        try:
            get_metrics_middleware().record_final_score(final, low_confidence)
        except Exception as e:
            logger.debug(f"Metrics recording failed: {e}")

    def record_pipeline_timeout(self) -> None:
        if not self.enabled:
            return

        try:
            get_metrics_middleware().record_pipeline_timeout()
        except Exception as e:
            logger.debug(f"Metrics recording failed: {e}")

    def extract_error_type(self, exception: Exception) -> str:
        """
        Extract error type from exception for consistent metrics.

        Args:
            exception: The exception to analyze

        Returns:
            The service error type, or the exception class name
        """
        if isinstance(exception, ServiceError):
            return exception.error_type
        return type(exception).__name__
