"""Clients for remote inference services."""

from .prediction_client import PredictionClient

__all__ = ["PredictionClient"]
