from abc import ABC, abstractmethod
import time
from typing import Any

from service.core.exceptions import InconclusiveError, RejectedError, ServiceUnavailableError
from service.core.ml.utils.config import CapabilityRegistry, capability_registry
from service.core.ml.utils.metrics_recorder import MetricsRecorder
from service.core.ml.utils.result_builder import ResultBuilder
from service.core.ml.utils.result_extractor import ResultExtractor
from service.core.ml.utils.types import ImageRef, JobRequest, JobStatus, MetricScore
from service.log import get_logger

logger = get_logger(__name__)


class AbstractMetricEvaluator(ABC):
    """
    Base class for all metric evaluators.

    evaluate() never raises: any failure inside compute() becomes the
    neutral fallback score, so the ensemble only ever sees MetricScore values.

    Extension pattern:
    1. Inherit from AbstractMetricEvaluator (or RemoteMetricEvaluator)
    2. Set a unique ``name``
    3. Implement compute() returning a similarity in [0, 1]
    """

    name: str = "metric"

    def __init__(self, result_builder: ResultBuilder | None = None, metrics_recorder: MetricsRecorder | None = None):
        self.result_builder = result_builder or ResultBuilder()
        self.metrics_recorder = metrics_recorder or MetricsRecorder()

    @abstractmethod
    async def compute(self, target: ImageRef, generated: ImageRef) -> float:
        """
        Compute the raw similarity of two images.

        Raises:
            Any exception; evaluate() converts it into a fallback score
        """
        pass

    async def evaluate(self, target: ImageRef, generated: ImageRef) -> MetricScore:
        """
        Evaluate the similarity of a generated image to its target.

        Args:
            target: Target image locator
            generated: Generated image locator

        Returns:
            MetricScore in [0, 1]; value is the neutral score and success is False on failure
        """
        start_time = time.time()

        try:
            value = await self.compute(target, generated)
            elapsed_ms = (time.time() - start_time) * 1000
            result = self.result_builder.create_success_score(self.name, value, elapsed_ms)

        except Exception as error:
            elapsed_ms = (time.time() - start_time) * 1000
            error_type = self.metrics_recorder.extract_error_type(error)
            logger.warning(f"{self.name} evaluation failed ({error_type}): {error}")

            self.metrics_recorder.record_error_metrics(self.name, error, error_type)
            result = self.result_builder.create_failed_score(self.name, str(error), error_type, elapsed_ms)

        self.metrics_recorder.record_metric_score(self.name, result.value, result.success, elapsed_ms)
        return result


class RemoteMetricEvaluator(AbstractMetricEvaluator):
    """Metric evaluator backed by jobs on the remote prediction service"""

    def __init__(
        self,
        prediction_client: Any,
        result_extractor: ResultExtractor | None = None,
        registry: CapabilityRegistry | None = None,
        **kwargs: Any,
    ):
        """
        Args:
            prediction_client: Object exposing ``async run(JobRequest, max_attempts, capability)``
            result_extractor: Optional result extractor (creates default if None)
            registry: Capability registry (global registry if None)
            **kwargs: Passed to AbstractMetricEvaluator
        """
        super().__init__(**kwargs)
        self.prediction_client = prediction_client
        self.result_extractor = result_extractor or ResultExtractor()
        self.registry = registry or capability_registry

    async def run_job(self, capability: str, payload: dict[str, Any]) -> Any:
        """
        Run one job of the named capability and return its raw output.

        Raises:
            ServiceUnavailableError: Capability is unknown or disabled
            RejectedError: Job ended in the failed state
            InconclusiveError: Polling budget ran out before a terminal state
        """
        try:
            spec = self.registry.get_capability(capability)
        except (KeyError, ValueError) as e:
            raise ServiceUnavailableError(f"{capability} capability unavailable: {e}") from e

        handle = await self.prediction_client.run(
            JobRequest(version=spec.version, input=payload),
            max_attempts=spec.max_attempts,
            capability=capability,
        )

        if handle.status is JobStatus.FAILED:
            raise RejectedError(f"{capability} job {handle.id} failed: {handle.error or 'no error detail'}")
        if handle.status is not JobStatus.SUCCEEDED:
            raise InconclusiveError(f"{capability} job {handle.id} still {handle.status.value} after {handle.attempts} polls")

        return handle.output
