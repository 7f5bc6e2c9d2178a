import logging
from typing import Any

from service.__version__ import __version__
from service.config import settings
from service.core.ml.engines import EvaluatorFactory
from service.core.ml.utils.config import capability_registry

logger = logging.getLogger(__name__)


def get_capability_info(name: str) -> dict[str, Any]:
    """
    Get detailed information for a remote capability.

    Args:
        name: Capability name

    Returns:
        Dictionary containing the capability specification and its effective poll budget
    """
    spec = capability_registry.get_capability(name)
    poll_budget = spec.max_attempts or settings.prediction.max_poll_attempts

    return {
        "name": name,
        "spec": {
            "version": spec.version,
            "description": spec.description,
            "enabled": spec.enabled,
            "max_attempts": spec.max_attempts,
        },
        "poll_budget": {
            "max_attempts": poll_budget,
            "poll_interval_s": settings.prediction.poll_interval,
            "max_wait_s": poll_budget * settings.prediction.poll_interval,
        },
    }


def get_system_status() -> dict[str, Any]:
    """
    Get overall scoring configuration status.

    Returns:
        Dictionary with version, prediction configuration and scoring policy
    """
    scoring = settings.scoring
    return {
        "version": __version__,
        "prediction_configured": bool(settings.prediction.api_token),
        "available_capabilities": list(capability_registry.list_available().keys()),
        "weights": scoring.weights,
        "pipeline_timeout_s": scoring.pipeline_timeout,
        "semantic_mode": scoring.semantic_mode,
        "structural_strategy": scoring.structural_strategy,
        "strategies": EvaluatorFactory.available_strategies(),
        "max_concurrent_jobs": settings.prediction.max_concurrent_jobs,
    }
