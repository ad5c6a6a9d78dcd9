"""
IdentMatch - Fingerprint and Plate Matching Core

Perceptual-hash face matching against a reference gallery and multi-pass
OCR plate recognition with hotlist lookup.
"""

from identmatch.config import MatchConfig, DEFAULT_CONFIG
from identmatch.errors import IdentMatchError, DecodeError, OcrInvocationError, OcrUnavailableError
from identmatch.schemas import (
    Fingerprint,
    GalleryEntry,
    MatchCandidate,
    MatchResult,
    PageSegmentationMode,
    OcrOptions,
    RecognitionPass,
    OcrWord,
    OcrOutput,
    PlateCandidate,
    PassResult,
    FusionResult,
    PlateCheck,
)
from identmatch.engine import (
    identify_face,
    recognize_plate,
    check_plate,
    recognize_and_check,
)

__version__ = "1.0.0"

__all__ = [
    "MatchConfig",
    "DEFAULT_CONFIG",
    "IdentMatchError",
    "DecodeError",
    "OcrInvocationError",
    "OcrUnavailableError",
    "Fingerprint",
    "GalleryEntry",
    "MatchCandidate",
    "MatchResult",
    "PageSegmentationMode",
    "OcrOptions",
    "RecognitionPass",
    "OcrWord",
    "OcrOutput",
    "PlateCandidate",
    "PassResult",
    "FusionResult",
    "PlateCheck",
    "identify_face",
    "recognize_plate",
    "check_plate",
    "recognize_and_check",
]
