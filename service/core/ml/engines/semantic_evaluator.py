import asyncio
from typing import Any

from service.core.exceptions import ExtractionFailedError
from service.core.ml.utils import similarity_math
from service.core.ml.utils.types import ImageRef, MetricFamily

from .base_evaluator import RemoteMetricEvaluator

EMBEDDING_CAPABILITY = "clip-embedding"
COMPARE_CAPABILITY = "clip-compare"


class SemanticEvaluator(RemoteMetricEvaluator):
    """
    Semantic similarity (what the image shows) from CLIP.

    Modes:
    - "embedding": embed both images in concurrent jobs, then compare by cosine
      similarity remapped from the observed [cosine_floor, cosine_ceiling] range
    - "pairwise": a single comparison job whose similarity is used as-is
    """

    name = "semantic"

    def __init__(
        self,
        prediction_client: Any,
        mode: str = "embedding",
        cosine_floor: float = similarity_math.COSINE_FLOOR,
        cosine_ceiling: float = similarity_math.COSINE_CEILING,
        **kwargs: Any,
    ):
        super().__init__(prediction_client, **kwargs)
        if mode not in ("embedding", "pairwise"):
            raise ValueError(f"Unknown semantic mode: {mode}")
        if not cosine_floor < cosine_ceiling:
            raise ValueError(f"cosine_floor {cosine_floor} must be below cosine_ceiling {cosine_ceiling}")
        self.mode = mode
        self.cosine_floor = cosine_floor
        self.cosine_ceiling = cosine_ceiling

    async def compute(self, target: ImageRef, generated: ImageRef) -> float:
        if self.mode == "pairwise":
            return await self._compute_pairwise(target, generated)
        return await self._compute_from_embeddings(target, generated)

    async def _compute_from_embeddings(self, target: ImageRef, generated: ImageRef) -> float:
        target_output, generated_output = await asyncio.gather(
            self.run_job(EMBEDDING_CAPABILITY, {"image": target}),
            self.run_job(EMBEDDING_CAPABILITY, {"image": generated}),
        )

        target_embedding = self.result_extractor.extract_embedding(target_output)
        generated_embedding = self.result_extractor.extract_embedding(generated_output)
        if target_embedding is None or generated_embedding is None:
            raise ExtractionFailedError("CLIP embedding output has no recognized shape")

        try:
            cosine = similarity_math.cosine_similarity(target_embedding, generated_embedding)
            return similarity_math.remap_cosine(cosine, self.cosine_floor, self.cosine_ceiling)
        except ValueError as e:
            raise ExtractionFailedError(str(e)) from e

    async def _compute_pairwise(self, target: ImageRef, generated: ImageRef) -> float:
        output = await self.run_job(COMPARE_CAPABILITY, {"image_a": target, "image_b": generated})

        similarity = self.result_extractor.extract(output, MetricFamily.SIMILARITY)
        if similarity is None:
            raise ExtractionFailedError("CLIP comparison output has no recognized shape")
        return similarity
