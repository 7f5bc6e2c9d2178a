from service.core.exceptions import ExtractionFailedError
from service.core.ml.utils.types import ImageRef, MetricFamily

from .base_evaluator import RemoteMetricEvaluator

PERCEPTUAL_CAPABILITY = "dreamsim"


class PerceptualEvaluator(RemoteMetricEvaluator):
    """Perceptual similarity (how the image looks) from a DreamSim distance job"""

    name = "perceptual"

    async def compute(self, target: ImageRef, generated: ImageRef) -> float:
        # DreamSim takes a comma-separated batch; the first image is the reference
        output = await self.run_job(PERCEPTUAL_CAPABILITY, {"images": f"{target},{generated}"})

        similarity = self.result_extractor.extract(output, MetricFamily.DISTANCE)
        if similarity is None:
            raise ExtractionFailedError("DreamSim output has no recognized shape")
        return similarity
