"""Pure numeric helpers shared by the metric evaluators and the ensemble scorer."""

import math
from collections.abc import Sequence

COSINE_FLOOR = -0.3
COSINE_CEILING = 0.9
DISTANCE_SCALE = 2.0
DISTANCE_FLOOR = 0.05
DISTANCE_CEILING = 0.95


def is_number(value: object) -> bool:
    """True for finite int/float values, excluding bools"""
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def clamp(value: float, lower: float = 0.0, upper: float = 1.0) -> float:
    """
    Clamp a value into [lower, upper].

    Raises:
        ValueError: If the value is NaN, which min/max would silently pin to a bound
    """
    if math.isnan(value):
        raise ValueError("Cannot clamp NaN")
    return max(lower, min(upper, value))


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two equal-length vectors.

    Returns 0.0 when either vector has zero norm. Each vector is scaled by
    its largest magnitude first so very large components cannot overflow.

    Raises:
        ValueError: If the vectors differ in length or hold non-finite values
    """
    if len(a) != len(b):
        raise ValueError(f"Vectors must have the same length: {len(a)} vs {len(b)}")

    scale_a = max((abs(x) for x in a), default=0.0)
    scale_b = max((abs(y) for y in b), default=0.0)
    if not (math.isfinite(scale_a) and math.isfinite(scale_b)):
        raise ValueError("Vectors must hold finite values")
    if scale_a == 0 or scale_b == 0:
        return 0.0

    unit_a = [x / scale_a for x in a]
    unit_b = [y / scale_b for y in b]
    norm_a = math.hypot(*unit_a)
    norm_b = math.hypot(*unit_b)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    cosine = math.fsum(x * y for x, y in zip(unit_a, unit_b)) / (norm_a * norm_b)
    if not math.isfinite(cosine):
        raise ValueError("Cosine similarity is not finite")
    return cosine


def remap_cosine(cosine: float, floor: float = COSINE_FLOOR, ceiling: float = COSINE_CEILING) -> float:
    """Affine-map a raw cosine from its observed [floor, ceiling] range onto [0, 1], clamped"""
    return clamp((cosine - floor) / (ceiling - floor))


def distance_to_similarity(
    distance: float,
    scale: float = DISTANCE_SCALE,
    floor: float = DISTANCE_FLOOR,
    ceiling: float = DISTANCE_CEILING,
) -> float:
    """
    Convert a perceptual distance into a similarity inside the conservative band.

    A single noisy sample never reports absolute 0 or 1.
    """
    similarity = max(0.0, 1.0 - distance / scale)
    return clamp(similarity, floor, ceiling)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))
