"""ML Engines module - Metric evaluators and ensemble scoring."""

from .base_evaluator import AbstractMetricEvaluator, RemoteMetricEvaluator
from .ensemble_scorer import EnsembleScorer
from .factory import EvaluatorFactory
from .perceptual_evaluator import PerceptualEvaluator
from .semantic_evaluator import SemanticEvaluator
from .structural_evaluator import HashStructuralEvaluator, HistogramStructuralEvaluator
from .timeout_guard import TimeoutGuard

__all__ = [
    "AbstractMetricEvaluator",
    "RemoteMetricEvaluator",
    "SemanticEvaluator",
    "PerceptualEvaluator",
    "HashStructuralEvaluator",
    "HistogramStructuralEvaluator",
    "EnsembleScorer",
    "EvaluatorFactory",
    "TimeoutGuard",
]
