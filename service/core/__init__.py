from .ml.clients import PredictionClient
from .ml.engines import EnsembleScorer, EvaluatorFactory
from .ml.utils.config import capability_registry
from .ml.utils.types import MetricScore, ScoreBreakdown
from .observability import get_metrics_middleware

__all__ = [
    "MetricScore",
    "ScoreBreakdown",
    "PredictionClient",
    "EnsembleScorer",
    "EvaluatorFactory",
    "capability_registry",
    "get_metrics_middleware",
]
