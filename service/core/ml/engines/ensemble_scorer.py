import asyncio
from collections.abc import Mapping, Sequence
import math

from service.core.exceptions import PipelineTimeoutError, ValidationError
from service.core.ml.utils.metrics_recorder import MetricsRecorder
from service.core.ml.utils.result_builder import ResultBuilder
from service.core.ml.utils.types import ImageRef, MetricScore, ScoreBreakdown
from service.log import get_logger

from .base_evaluator import AbstractMetricEvaluator
from .timeout_guard import TimeoutGuard

logger = get_logger(__name__)


class EnsembleScorer:
    """
    Combines independent metric evaluators into one weighted score.

    Evaluators run concurrently and never raise; a failed metric contributes
    the neutral score. The whole combination is raced against the pipeline
    timeout, and on expiry a low-confidence breakdown without components is
    returned instead.
    """

    def __init__(
        self,
        evaluators: Sequence[AbstractMetricEvaluator],
        weights: Mapping[str, float],
        pipeline_timeout: float = 15.0,
        result_builder: ResultBuilder | None = None,
        metrics_recorder: MetricsRecorder | None = None,
    ):
        """
        Args:
            evaluators: Metric evaluators with unique names
            weights: Weight per evaluator name; non-negative, summing to 1.0
            pipeline_timeout: Wall-clock budget in seconds for one score() call
            result_builder: Optional result builder (creates default if None)
            metrics_recorder: Optional metrics recorder (creates default if None)

        Raises:
            ValidationError: If evaluators and weights do not line up
        """
        self.evaluators = list(evaluators)
        self.weights = dict(weights)
        self.result_builder = result_builder or ResultBuilder()
        self.metrics_recorder = metrics_recorder or MetricsRecorder()
        self._validate()

        self.timeout_guard = TimeoutGuard(
            pipeline_timeout,
            fallback=self.result_builder.create_fallback_breakdown,
            on_timeout=self._record_timeout,
        )

    def _validate(self) -> None:
        names = [evaluator.name for evaluator in self.evaluators]
        if not names:
            raise ValidationError("At least one metric evaluator is required")
        if len(set(names)) != len(names):
            raise ValidationError(f"Duplicate metric evaluator names: {names}")
        if set(names) != set(self.weights):
            raise ValidationError(f"Weights {sorted(self.weights)} do not match evaluators {sorted(names)}")
        if any(weight < 0 for weight in self.weights.values()):
            raise ValidationError(f"Metric weights must be non-negative: {self.weights}")
        if not math.isclose(sum(self.weights.values()), 1.0, abs_tol=1e-6):
            raise ValidationError(f"Metric weights must sum to 1.0, got {sum(self.weights.values()):.6f}")

    def _record_timeout(self, error: PipelineTimeoutError) -> None:
        self.metrics_recorder.record_pipeline_timeout()
        self.metrics_recorder.record_error_metrics("pipeline", error, self.metrics_recorder.extract_error_type(error))

    @property
    def pipeline_timeout(self) -> float:
        return self.timeout_guard.timeout_seconds

    async def score(self, target: ImageRef, generated: ImageRef) -> ScoreBreakdown:
        """
        Score a generated image against its target within the pipeline timeout.

        Never fails for non-empty locators; degrades to a breakdown without
        components when the deadline is hit.

        Raises:
            ValidationError: If either locator is empty
        """
        if not target or not generated:
            raise ValidationError("Both target and generated image locators are required")

        breakdown = await self.timeout_guard.run(self.combine(target, generated))
        self.metrics_recorder.record_final_score(breakdown.final, breakdown.is_low_confidence)
        return breakdown

    async def combine(self, target: ImageRef, generated: ImageRef) -> ScoreBreakdown:
        """Run every evaluator concurrently and aggregate their weighted scores"""
        outcomes = await asyncio.gather(
            *(evaluator.evaluate(target, generated) for evaluator in self.evaluators),
            return_exceptions=True,
        )

        scores: dict[str, MetricScore] = {}
        for evaluator, outcome in zip(self.evaluators, outcomes):
            if isinstance(outcome, BaseException):
                # Contract violation by a custom evaluator; contain it all the same
                logger.error(f"{evaluator.name} evaluator raised: {outcome}")
                outcome = self.result_builder.create_failed_score(evaluator.name, str(outcome), type(outcome).__name__)
            scores[evaluator.name] = outcome

        weighted_sum = sum(self.weights[name] * score.value for name, score in scores.items())
        failed = [name for name, score in scores.items() if not score.success]
        if failed:
            logger.info(f"Scored with neutral fallback for: {', '.join(failed)}")

        return self.result_builder.create_breakdown(weighted_sum, {name: score.value for name, score in scores.items()})
