import asyncio
from collections.abc import Callable
import logging
import time

from service.config import AppSettings, settings
from service.core import EvaluatorFactory, PredictionClient, ScoreBreakdown, capability_registry
from service.core.ml.utils.config import CapabilityRegistry
from service.core.ml.utils.metrics_recorder import MetricsRecorder
from service.core.ml.utils.result_builder import ResultBuilder
from service.core.observability import get_metrics_middleware

from .schema import (
    BatchScoreRequest,
    BatchScoreResponse,
    HealthResponse,
    ScoreRequest,
    ScoreResponse,
    SemanticRequest,
    SemanticResponse,
)

logger = logging.getLogger(__name__)


class ScoringHandler:
    """Async handler for scoring requests"""

    def __init__(
        self,
        app_settings: AppSettings | None = None,
        registry: CapabilityRegistry | None = None,
        client_factory: Callable[[], PredictionClient] | None = None,
    ):
        self.settings = app_settings or settings
        self.registry = registry or capability_registry
        self.metrics_recorder = MetricsRecorder(enabled=self.settings.observability.enable_metrics)
        self._client_factory = client_factory or self._create_client
        self._job_limiter: asyncio.Semaphore | None = None

    def _create_client(self) -> PredictionClient:
        """Create a prediction client sharing the process-wide job limiter"""
        if self._job_limiter is None:
            self._job_limiter = asyncio.Semaphore(self.settings.prediction.max_concurrent_jobs)
        return PredictionClient.from_config(
            self.settings.prediction, job_limiter=self._job_limiter, metrics_recorder=self.metrics_recorder
        )

    @staticmethod
    def _breakdown_to_response(
        request: ScoreRequest, breakdown: ScoreBreakdown, processing_time_ms: float, error: str | None = None
    ) -> ScoreResponse:
        return ScoreResponse(
            target_image=request.target_image,
            generated_image=request.generated_image,
            similarity=breakdown.similarity,
            final=breakdown.final,
            components=breakdown.components,
            processing_time_ms=processing_time_ms,
            error=error,
        )

    async def score(self, request: ScoreRequest) -> ScoreResponse:
        """Handle single scoring request"""
        start_time = time.time()

        async with self._client_factory() as client:
            scorer = EvaluatorFactory.create_ensemble(
                self.settings.scoring, client, self.registry, metrics_recorder=self.metrics_recorder
            )
            breakdown = await scorer.score(request.target_image, request.generated_image)

        return self._breakdown_to_response(request, breakdown, (time.time() - start_time) * 1000)

    async def score_batch(self, request: BatchScoreRequest) -> BatchScoreResponse:
        """Handle batch scoring request; pairs share one client and run concurrently"""
        start_time = time.time()

        async with self._client_factory() as client:
            scorer = EvaluatorFactory.create_ensemble(
                self.settings.scoring, client, self.registry, metrics_recorder=self.metrics_recorder
            )
            outcomes = await asyncio.gather(
                *(scorer.score(item.target_image, item.generated_image) for item in request.scorings),
                return_exceptions=True,
            )

        total_processing_time = (time.time() - start_time) * 1000
        results = []
        for item, outcome in zip(request.scorings, outcomes):
            if isinstance(outcome, Exception):
                logger.error(f"Batch scoring failed for {item.generated_image}: {outcome}")
                fallback = scorer.result_builder.create_fallback_breakdown()
                results.append(self._breakdown_to_response(item, fallback, total_processing_time, error=str(outcome)))
            else:
                results.append(self._breakdown_to_response(item, outcome, total_processing_time))

        try:
            get_metrics_middleware().record_batch_size(len(request.scorings))
        except RuntimeError:
            logger.debug("Metrics middleware not available")

        low_confidence = [r for r in results if r.components is None]
        return BatchScoreResponse(
            results=results,
            total_processed=len(results),
            total_successful=len(results) - len(low_confidence),
            total_low_confidence=len(low_confidence),
            total_processing_time_ms=total_processing_time,
        )

    async def compare_semantic(self, request: SemanticRequest) -> SemanticResponse:
        """Handle a direct pairwise semantic comparison; falls back to the neutral score"""
        pairwise_config = self.settings.scoring.model_copy(update={"semantic_mode": "pairwise"})
        result_builder = ResultBuilder(neutral_score=pairwise_config.neutral_score)

        async with self._client_factory() as client:
            evaluator = EvaluatorFactory.create_evaluator(
                "semantic", pairwise_config, client, self.registry, result_builder, self.metrics_recorder
            )
            result = await evaluator.evaluate(request.target_url, request.generated_url)

        return SemanticResponse(similarity=result.value, success=result.success)

    async def health_check(self) -> HealthResponse:
        """Health check for prediction service configuration"""
        prediction_configured = bool(self.settings.prediction.api_token)
        return HealthResponse(
            status="healthy" if prediction_configured else "degraded",
            prediction_configured=prediction_configured,
            available_capabilities=list(self.registry.list_available().keys()),
            weights=self.settings.scoring.weights,
        )


_handler: ScoringHandler | None = None


def get_handler() -> ScoringHandler:
    global _handler  # noqa: PLW0603
    if _handler is None:
        _handler = ScoringHandler()
    return _handler
