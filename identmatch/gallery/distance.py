"""
Fingerprint Distance

Hamming distance with a length-mismatch penalty, and the distance to
confidence calibration used by the gallery matcher.
"""

import math
from typing import Union

from identmatch.schemas import Fingerprint


BitsLike = Union[Fingerprint, str]


def _bits(value: BitsLike) -> str:
    return value.bits if isinstance(value, Fingerprint) else value


def hamming_distance(a: BitsLike, b: BitsLike) -> int:
    """
    Count differing bits over the common prefix plus the length difference.

    Fingerprints from different grid sizes are penalized rather than
    silently truncated.

    Args:
        a: First fingerprint (or bit string)
        b: Second fingerprint (or bit string)

    Returns:
        Non-negative distance; 0 iff a == b
    """
    bits_a = _bits(a)
    bits_b = _bits(b)

    common = min(len(bits_a), len(bits_b))
    differing = sum(1 for x, y in zip(bits_a[:common], bits_b[:common]) if x != y)

    return differing + abs(len(bits_a) - len(bits_b))


def distance_to_confidence(distance: int, slope: float = 2.5) -> int:
    """
    Convert a distance to a 0-100 confidence score.

    confidence = clamp(round(100 - distance * slope), 0, 100)

    Halves round up, so 97.5 -> 98.
    """
    rounded = math.floor(100 - distance * slope + 0.5)
    return max(0, min(100, rounded))
