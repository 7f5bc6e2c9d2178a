from collections.abc import Mapping
from typing import Any

from service.core.ml.utils import similarity_math
from service.core.ml.utils.types import MetricFamily
from service.log import get_logger

logger = get_logger(__name__)

SIMILARITY_KEYS = ("similarity", "score")


class ResultExtractor:
    """
    Normalizes the heterogeneous output of a succeeded prediction job.

    Responsibilities:
    - Recognize the output shapes the remote models are known to return
    - Convert distances to similarities using the conservative band
    - Report unrecognized shapes as None instead of raising
    """

    def __init__(
        self,
        distance_scale: float = similarity_math.DISTANCE_SCALE,
        distance_floor: float = similarity_math.DISTANCE_FLOOR,
        distance_ceiling: float = similarity_math.DISTANCE_CEILING,
    ):
        self.distance_scale = distance_scale
        self.distance_floor = distance_floor
        self.distance_ceiling = distance_ceiling

    def extract(self, raw_output: Any, family: MetricFamily) -> float | None:
        """
        Extract a single similarity in [0, 1] from a job output.

        Accepted shapes:
        - a bare number (a similarity or a distance depending on family)
        - {"similarity": x} or {"score": x}
        - {"distance": x}
        - {"distances": {reference: x, ...}} (first value is used)
        - a list whose first element is any of the above

        Args:
            raw_output: Output payload of a succeeded job
            family: Whether a bare number is a similarity or a distance

        Returns:
            Clamped similarity, or None when no recognized shape matches
        """
        candidate = raw_output
        if isinstance(candidate, list):
            if not candidate:
                return self._failed(raw_output, family)
            candidate = candidate[0]

        if similarity_math.is_number(candidate):
            if family is MetricFamily.DISTANCE:
                return self._from_distance(candidate)
            return similarity_math.clamp(float(candidate))

        if isinstance(candidate, Mapping):
            for key in SIMILARITY_KEYS:
                if similarity_math.is_number(candidate.get(key)):
                    return similarity_math.clamp(float(candidate[key]))

            if similarity_math.is_number(candidate.get("distance")):
                return self._from_distance(candidate["distance"])

            distances = candidate.get("distances")
            if isinstance(distances, Mapping) and distances:
                first = next(iter(distances.values()))
                if similarity_math.is_number(first):
                    return self._from_distance(first)

        return self._failed(raw_output, family)

    @staticmethod
    def extract_embedding(raw_output: Any) -> list[float] | None:
        """
        Extract an embedding vector from a job output.

        Accepts a bare numeric list, {"embedding": [...]}, or a list whose
        first element is one of those.
        """
        candidate = raw_output
        if isinstance(candidate, Mapping):
            candidate = candidate.get("embedding")
        elif isinstance(candidate, list) and candidate and not similarity_math.is_number(candidate[0]):
            first = candidate[0]
            candidate = first.get("embedding") if isinstance(first, Mapping) else first

        if isinstance(candidate, list) and candidate and all(similarity_math.is_number(v) for v in candidate):
            return [float(v) for v in candidate]

        logger.debug(f"Unrecognized embedding output: {type(raw_output).__name__}")
        return None

    def _from_distance(self, distance: float) -> float:
        return similarity_math.distance_to_similarity(
            float(distance), self.distance_scale, self.distance_floor, self.distance_ceiling
        )

    @staticmethod
    def _failed(raw_output: Any, family: MetricFamily) -> None:
        logger.debug(f"Unrecognized {family.value} output shape: {type(raw_output).__name__}")
        return None
