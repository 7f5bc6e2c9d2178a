"""ML Utils module - Utility components for scoring."""

from .image_loader import ImageLoader
from .metrics_recorder import MetricsRecorder
from .result_builder import ResultBuilder
from .result_extractor import ResultExtractor

__all__ = [
    "ImageLoader",
    "MetricsRecorder",
    "ResultBuilder",
    "ResultExtractor",
]
