"""
IdentMatch Engine

Request-level entry points for the face (fingerprint) path and the
plate (OCR) path. Each call works only on the data passed in.
"""

import logging
from typing import Optional, Sequence, Union

from identmatch.config import DEFAULT_CONFIG, MatchConfig
from identmatch.gallery.fingerprint import FingerprintEngine, ImageSource
from identmatch.gallery.gallery_store import GalleryStore
from identmatch.gallery.matcher import GalleryMatcher
from identmatch.plates.fusion import MultiPassFuser
from identmatch.plates.hotlist import Hotlist
from identmatch.plates.normalize import normalize_plate
from identmatch.plates.plate_ocr import OcrEngine
from identmatch.schemas import FusionResult, GalleryEntry, MatchResult, PlateCheck


logger = logging.getLogger(__name__)

Gallery = Union[GalleryStore, Sequence[GalleryEntry]]

# Confidence assigned to an operator-typed plate
MANUAL_CONFIDENCE = 100


def _entries(gallery: Gallery) -> Sequence[GalleryEntry]:
    return gallery.entries() if isinstance(gallery, GalleryStore) else gallery


def identify_face(
    image: ImageSource,
    gallery: Gallery,
    config: MatchConfig = DEFAULT_CONFIG,
    engine: Optional[FingerprintEngine] = None,
    matcher: Optional[GalleryMatcher] = None
) -> MatchResult:
    """
    Fingerprint a query image and match it against a gallery.

    Args:
        image: Query image (bytes, path or decoded array)
        gallery: GalleryStore or sequence of GalleryEntry
        config: Thresholds and fingerprint settings
        engine: Fingerprint engine (built from config if None)
        matcher: Gallery matcher (built from config if None)

    Returns:
        MatchResult

    Raises:
        DecodeError: If the query image cannot be decoded
    """
    engine = engine or FingerprintEngine.from_config(config)
    matcher = matcher or GalleryMatcher.from_config(config)

    query = engine.fingerprint(image)
    return matcher.match(query, _entries(gallery))


def recognize_plate(
    image: ImageSource,
    ocr_engine: OcrEngine,
    config: MatchConfig = DEFAULT_CONFIG,
    concurrent: bool = False
) -> FusionResult:
    """
    Multi-pass plate recognition.

    Raises:
        DecodeError: If the input image cannot be decoded
    """
    fuser = MultiPassFuser.from_config(ocr_engine, config, concurrent=concurrent)
    return fuser.recognize_plate(image)


def check_plate(
    plate_text: str,
    hotlist: Optional[Hotlist] = None,
    confidence: int = MANUAL_CONFIDENCE,
    source: str = "manual"
) -> PlateCheck:
    """
    Normalize a plate and look it up in the hotlist.

    Args:
        plate_text: Plate as read or typed
        hotlist: Flagged plates (nothing is flagged if None)
        confidence: Confidence to report for the plate
        source: "manual" or "ocr"

    Returns:
        PlateCheck (plate None if the text holds no usable characters)
    """
    plate = normalize_plate(plate_text)
    if not plate:
        return PlateCheck(plate=None, confidence=0, flagged=False, source=source)

    reason = hotlist.lookup(plate) if hotlist is not None else None
    if reason is not None:
        logger.warning("Flagged plate %s: %s", plate, reason)

    return PlateCheck(
        plate=plate,
        confidence=confidence,
        flagged=reason is not None,
        reason=reason,
        source=source,
    )


def recognize_and_check(
    image: ImageSource,
    ocr_engine: OcrEngine,
    hotlist: Optional[Hotlist] = None,
    config: MatchConfig = DEFAULT_CONFIG,
    concurrent: bool = False
) -> PlateCheck:
    """
    Recognize a plate and check it against the hotlist.

    No plate is ever invented: when OCR finds nothing the check reports
    plate None, confidence 0, not flagged.
    """
    fusion = recognize_plate(image, ocr_engine, config=config, concurrent=concurrent)

    if not fusion.has_candidate:
        return PlateCheck(plate=None, confidence=0, flagged=False, source="ocr")

    return check_plate(fusion.plate, hotlist, confidence=fusion.confidence, source="ocr")
