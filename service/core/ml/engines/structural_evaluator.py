import asyncio
from typing import Any

from PIL import Image

from service.core.ml.utils.image_loader import ImageLoader
from service.core.ml.utils.types import ImageRef

from .base_evaluator import AbstractMetricEvaluator

HISTOGRAM_BINS = 256


def stable_string_hash(text: str) -> int:
    """
    32-bit signed rolling hash (h * 31 + c) over UTF-16 code units.

    Stable across processes unlike hash(). Characters outside the BMP count
    as their two surrogate units, so values match String.hashCode in Java
    and the equivalent charCodeAt loop in JavaScript.
    """
    encoded = text.encode("utf-16-le", "surrogatepass")
    value = 0
    for offset in range(0, len(encoded), 2):
        unit = encoded[offset] | (encoded[offset + 1] << 8)
        value = ((value << 5) - value + unit) & 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


class HashStructuralEvaluator(AbstractMetricEvaluator):
    """
    Placeholder structural score derived from the two locators only.

    Not perceptual: it never looks at pixels. The same pair always yields the
    same value in [base, base + spread). Swap in HistogramStructuralEvaluator
    (or any evaluator named "structural") for real composition analysis.
    """

    name = "structural"

    def __init__(self, base: float = 0.4, spread: int = 30, ceiling: float = 0.8, **kwargs: Any):
        super().__init__(**kwargs)
        self.base = base
        self.spread = spread
        self.ceiling = ceiling

    async def compute(self, target: ImageRef, generated: ImageRef) -> float:
        digest = stable_string_hash(f"{target}{generated}")
        return min(self.ceiling, self.base + (abs(digest) % self.spread) / 100)


class HistogramStructuralEvaluator(AbstractMetricEvaluator):
    """
    Structural similarity as the RGB colour-histogram intersection of both images.

    Both images are reduced to thumbnails by the loader before counting.
    """

    name = "structural"

    def __init__(self, image_loader_factory: Any = ImageLoader, **kwargs: Any):
        super().__init__(**kwargs)
        self.image_loader_factory = image_loader_factory

    async def compute(self, target: ImageRef, generated: ImageRef) -> float:
        async with self.image_loader_factory() as loader:
            target_image, generated_image = await asyncio.gather(
                loader.load_image(target), loader.load_image(generated)
            )
        return await asyncio.to_thread(self.histogram_intersection, target_image, generated_image)

    @staticmethod
    def histogram_intersection(first: Image.Image, second: Image.Image) -> float:
        """Mean per-channel intersection of normalized histograms, in [0, 1]"""
        first_hist = _normalized_histograms(first)
        second_hist = _normalized_histograms(second)
        overlaps = [
            sum(min(p, q) for p, q in zip(first_channel, second_channel))
            for first_channel, second_channel in zip(first_hist, second_hist)
        ]
        return sum(overlaps) / len(overlaps)


def _normalized_histograms(image: Image.Image) -> list[list[float]]:
    histogram = image.convert("RGB").histogram()

    channels = []
    for offset in range(0, len(histogram), HISTOGRAM_BINS):
        counts = histogram[offset : offset + HISTOGRAM_BINS]
        total = sum(counts) or 1
        channels.append([count / total for count in counts])
    return channels
