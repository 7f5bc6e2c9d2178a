"""ML module - Remote inference clients and scoring engines."""

from .clients import PredictionClient
from .engines import EnsembleScorer, EvaluatorFactory
from .utils.metrics_recorder import MetricsRecorder
from .utils.result_builder import ResultBuilder
from .utils.result_extractor import ResultExtractor

__all__ = [
    "PredictionClient",
    "EnsembleScorer",
    "EvaluatorFactory",
    "MetricsRecorder",
    "ResultBuilder",
    "ResultExtractor",
]
