from functools import partial
import random
from typing import Any

from service.config import ScoringConfig
from service.core.ml.utils.config import CapabilityRegistry
from service.core.ml.utils.image_loader import ImageLoader
from service.core.ml.utils.metrics_recorder import MetricsRecorder
from service.core.ml.utils.result_builder import ResultBuilder
from service.core.ml.utils.result_extractor import ResultExtractor

from .base_evaluator import AbstractMetricEvaluator
from .ensemble_scorer import EnsembleScorer
from .perceptual_evaluator import PerceptualEvaluator
from .semantic_evaluator import SemanticEvaluator
from .structural_evaluator import HashStructuralEvaluator, HistogramStructuralEvaluator


class EvaluatorFactory:
    """Factory for creating metric evaluators and the ensemble built from them"""

    # Strategy registry: metric name -> strategy name -> evaluator class
    _EVALUATOR_REGISTRY: dict[str, dict[str, type[AbstractMetricEvaluator]]] = {
        "semantic": {"embedding": SemanticEvaluator, "pairwise": SemanticEvaluator},
        "perceptual": {"dreamsim": PerceptualEvaluator},
        "structural": {"hash": HashStructuralEvaluator, "histogram": HistogramStructuralEvaluator},
    }

    @classmethod
    def register(cls, metric: str, strategy: str, evaluator_class: type[AbstractMetricEvaluator]) -> None:
        """Register an additional evaluator strategy"""
        cls._EVALUATOR_REGISTRY.setdefault(metric, {})[strategy] = evaluator_class

    @classmethod
    def available_strategies(cls) -> dict[str, list[str]]:
        return {metric: list(strategies) for metric, strategies in cls._EVALUATOR_REGISTRY.items()}

    @classmethod
    def _strategy_for(cls, metric: str, config: ScoringConfig) -> str:
        if metric == "semantic":
            return config.semantic_mode
        if metric == "structural":
            return config.structural_strategy
        return next(iter(cls._EVALUATOR_REGISTRY[metric]))

    @classmethod
    def create_evaluator(
        cls,
        metric: str,
        config: ScoringConfig,
        prediction_client: Any = None,
        registry: CapabilityRegistry | None = None,
        result_builder: ResultBuilder | None = None,
        metrics_recorder: MetricsRecorder | None = None,
    ) -> AbstractMetricEvaluator:
        """
        Create the configured evaluator for one metric.

        Raises:
            ValueError: If the metric or its configured strategy is not registered
        """
        if metric not in cls._EVALUATOR_REGISTRY:
            raise ValueError(f"Unknown metric: {metric}. Available: {list(cls._EVALUATOR_REGISTRY.keys())}")

        strategy = cls._strategy_for(metric, config)
        strategies = cls._EVALUATOR_REGISTRY[metric]
        if strategy not in strategies:
            raise ValueError(f"Unknown {metric} strategy: {strategy}. Available: {list(strategies.keys())}")

        evaluator_class = strategies[strategy]
        common = {"result_builder": result_builder, "metrics_recorder": metrics_recorder}

        if evaluator_class is SemanticEvaluator:
            return SemanticEvaluator(
                prediction_client,
                mode=strategy,
                cosine_floor=config.cosine_floor,
                cosine_ceiling=config.cosine_ceiling,
                result_extractor=cls._create_extractor(config),
                registry=registry,
                **common,
            )
        if evaluator_class is PerceptualEvaluator:
            return PerceptualEvaluator(
                prediction_client, result_extractor=cls._create_extractor(config), registry=registry, **common
            )
        if evaluator_class is HistogramStructuralEvaluator:
            return HistogramStructuralEvaluator(
                image_loader_factory=partial(
                    ImageLoader,
                    timeout=config.image_fetch_timeout,
                    max_bytes=config.image_max_bytes,
                    thumbnail_size=config.histogram_thumbnail_size,
                ),
                **common,
            )
        return evaluator_class(**common)

    @classmethod
    def create_ensemble(
        cls,
        config: ScoringConfig,
        prediction_client: Any = None,
        registry: CapabilityRegistry | None = None,
        metrics_recorder: MetricsRecorder | None = None,
        rng: random.Random | None = None,
    ) -> EnsembleScorer:
        """Create an ensemble scorer with one evaluator per weighted metric"""
        result_builder = ResultBuilder(
            neutral_score=config.neutral_score,
            fallback_similarity=config.fallback_similarity,
            fallback_jitter=config.fallback_jitter,
            rng=rng,
        )
        metrics_recorder = metrics_recorder or MetricsRecorder()

        evaluators = [
            cls.create_evaluator(metric, config, prediction_client, registry, result_builder, metrics_recorder)
            for metric in config.weights
        ]
        return EnsembleScorer(
            evaluators,
            config.weights,
            pipeline_timeout=config.pipeline_timeout,
            result_builder=result_builder,
            metrics_recorder=metrics_recorder,
        )

    @staticmethod
    def _create_extractor(config: ScoringConfig) -> ResultExtractor:
        return ResultExtractor(
            distance_scale=config.distance_scale,
            distance_floor=config.distance_floor,
            distance_ceiling=config.distance_ceiling,
        )
