import math
import random

from service.core.ml.utils import similarity_math
from service.core.ml.utils.types import MetricScore, ScoreBreakdown


class ResultBuilder:
    """
    Handles creation of metric and score results.

    Responsibilities:
    - Create successful and fallback metric scores
    - Enforce the [0, 1] and [0, 100] ranges on everything handed to callers
    - Create the low-confidence fallback breakdown
    """

    def __init__(
        self,
        neutral_score: float = 0.5,
        fallback_similarity: float = 0.65,
        fallback_jitter: float = 0.1,
        rng: random.Random | None = None,
    ):
        self.neutral_score = neutral_score
        self.fallback_similarity = fallback_similarity
        self.fallback_jitter = fallback_jitter
        self._rng = rng or random.Random()

    def create_success_score(self, metric: str, value: float, processing_time_ms: float) -> MetricScore:
        """
        Create a score for a successful metric evaluation.

        Non-finite values are replaced by the neutral fallback.
        """
        if not math.isfinite(value):
            return self.create_failed_score(metric, f"Non-finite similarity: {value}", "extraction_failed")

        return MetricScore(
            metric=metric,
            value=similarity_math.clamp(value),
            success=True,
            processing_time_ms=processing_time_ms,
        )

    def create_failed_score(
        self, metric: str, error_message: str, error_type: str | None = None, processing_time_ms: float = 0.0
    ) -> MetricScore:
        """Create the neutral fallback score for a failed metric evaluation"""
        return MetricScore(
            metric=metric,
            value=self.neutral_score,
            success=False,
            processing_time_ms=processing_time_ms,
            error=error_message,
            error_type=error_type,
        )

    @staticmethod
    def create_breakdown(weighted_sum: float, components: dict[str, float]) -> ScoreBreakdown:
        """Create a full-confidence breakdown from a weighted sum"""
        similarity = similarity_math.clamp(weighted_sum)
        final = min(100, max(0, similarity_math.round_half_up(weighted_sum * 100)))
        return ScoreBreakdown(similarity=similarity, final=final, components=dict(components))

    def create_fallback_breakdown(self) -> ScoreBreakdown:
        """
        Create the low-confidence breakdown used when the pipeline gives up.

        Similarity is drawn from a narrow band above the fallback similarity.
        """
        similarity = similarity_math.clamp(self.fallback_similarity + self._rng.uniform(0.0, self.fallback_jitter))
        final = min(100, max(0, similarity_math.round_half_up(similarity * 100)))
        return ScoreBreakdown(similarity=similarity, final=final, components=None)
