"""
Multi-Pass Plate Fusion

Runs OCR over every (image variant, page segmentation mode) combination
and fuses the per-pass plate candidates into a single result.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from identmatch.config import DEFAULT_CONFIG, MatchConfig
from identmatch.errors import DecodeError, OcrInvocationError
from identmatch.gallery.fingerprint import ImageSource, load_image
from identmatch.plates.normalize import PlateCandidateExtractor, normalize_plate, plate_blocks
from identmatch.plates.plate_ocr import OcrEngine
from identmatch.plates.preprocess import build_variant, validate_variant_names
from identmatch.schemas import (
    FusionResult,
    OcrOutput,
    PageSegmentationMode,
    PassResult,
    PlateCandidate,
    RecognitionPass,
)


logger = logging.getLogger(__name__)

DEFAULT_MODES = (PageSegmentationMode.SINGLE_LINE, PageSegmentationMode.BLOCK)


def _round_half_up(value: float) -> int:
    return int(np.floor(value + 0.5))


def pass_confidence(
    plate: str,
    output: OcrOutput,
    default_confidence: int = 80,
    lower: int = 50,
    upper: int = 100
) -> int:
    """
    Confidence for a plate read in one pass.

    Mean confidence of the OCR words containing any block of the plate;
    the engine's overall confidence when no word overlaps. Clamped to
    [lower, upper].
    """
    blocks = plate_blocks(plate)
    overlapping = [
        w.confidence for w in output.words
        if any(block in (w.text or "").upper() for block in blocks)
    ]

    if overlapping:
        confidence = _round_half_up(sum(overlapping) / len(overlapping))
    elif output.confidence is not None:
        confidence = _round_half_up(output.confidence)
    else:
        confidence = default_confidence

    return max(lower, min(upper, confidence))


class MultiPassFuser:
    """
    Multi-pass plate recognizer.

    Every combination is self-contained: a failed OCR call skips that
    combination only, and results are ranked by combination index so
    tie-breaks do not depend on completion order.
    """

    def __init__(
        self,
        engine: OcrEngine,
        variants: Sequence[str] = ("original", "contrast", "binary"),
        modes: Sequence[PageSegmentationMode] = DEFAULT_MODES,
        language: str = "eng",
        whitelist: str = DEFAULT_CONFIG.ocr_whitelist,
        timeout: Optional[float] = 10.0,
        extractor: Optional[PlateCandidateExtractor] = None,
        default_confidence: int = 80,
        min_confidence: int = 50,
        max_confidence: int = 100,
        max_workers: int = 1
    ):
        """
        Initialize fuser.

        Args:
            engine: OCR engine
            variants: Preprocessing variant names, in order
            modes: Page segmentation modes run on each variant
            language: OCR language
            whitelist: Character whitelist for every pass
            timeout: Per-invocation timeout in seconds (None = no limit)
            extractor: Candidate extractor (default patterns if None)
            default_confidence: Used when the engine reports no confidence
            min_confidence: Lower clamp for pass confidence
            max_confidence: Upper clamp for pass confidence
            max_workers: >1 runs combinations concurrently
        """
        validate_variant_names(variants)
        if not modes:
            raise ValueError("at least one page segmentation mode is required")

        self.engine = engine
        self.variants = tuple(variants)
        self.modes = tuple(modes)
        self.language = language
        self.whitelist = whitelist
        self.timeout = timeout
        self.extractor = extractor or PlateCandidateExtractor()
        self.default_confidence = default_confidence
        self.min_confidence = min_confidence
        self.max_confidence = max_confidence
        self.max_workers = max_workers

    @classmethod
    def from_config(
        cls,
        engine: OcrEngine,
        config: MatchConfig = DEFAULT_CONFIG,
        concurrent: bool = False
    ) -> "MultiPassFuser":
        return cls(
            engine=engine,
            variants=config.variants,
            language=config.ocr_language,
            whitelist=config.ocr_whitelist,
            timeout=config.ocr_timeout_seconds,
            default_confidence=config.default_ocr_confidence,
            min_confidence=config.min_pass_confidence,
            max_confidence=config.max_pass_confidence,
            max_workers=config.max_workers if concurrent else 1,
        )

    def recognition_passes(self) -> List[RecognitionPass]:
        """All combinations in canonical (variant-major) order"""
        return [
            RecognitionPass(
                variant=variant,
                page_segmentation_mode=mode,
                character_whitelist=self.whitelist,
            )
            for variant in self.variants
            for mode in self.modes
        ]

    def _read(self, variant_image: np.ndarray, recognition_pass: RecognitionPass) -> Optional[PlateCandidate]:
        """
        Run one pass; None when the text holds no plate candidate.

        Raises:
            OcrInvocationError: Tagged with the pass that failed
        """
        try:
            output = self.engine.recognize(
                variant_image,
                self.language,
                recognition_pass.options,
                timeout=self.timeout,
            )
        except OcrInvocationError as e:
            raise OcrInvocationError(
                str(e),
                variant=recognition_pass.variant,
                pass_name=recognition_pass.name,
            ) from e

        candidates = self.extractor.extract(output.text or "")
        if not candidates:
            return None

        plate = normalize_plate(candidates[0])
        if not plate:
            return None

        return PlateCandidate(
            text=plate,
            confidence=pass_confidence(
                plate,
                output,
                default_confidence=self.default_confidence,
                lower=self.min_confidence,
                upper=self.max_confidence,
            ),
        )

    def _build_variants(self, image: np.ndarray) -> Dict[str, np.ndarray]:
        images = {}
        for name in self.variants:
            try:
                images[name] = build_variant(name, image)
            except DecodeError as e:
                logger.warning("Variant %s unavailable: %s", name, e)
        return images

    def _run_sequential(
        self,
        images: Dict[str, np.ndarray],
        passes: List[RecognitionPass]
    ) -> List[Tuple[Optional[PlateCandidate], bool]]:
        outcomes = []
        for recognition_pass in passes:
            variant_image = images.get(recognition_pass.variant)
            if variant_image is None:
                outcomes.append((None, False))
                continue
            try:
                outcomes.append((self._read(variant_image, recognition_pass), True))
            except OcrInvocationError as e:
                logger.warning("OCR pass %s failed: %s", e.pass_name, e)
                outcomes.append((None, False))
        return outcomes

    def _run_concurrent(
        self,
        images: Dict[str, np.ndarray],
        passes: List[RecognitionPass]
    ) -> List[Tuple[Optional[PlateCandidate], bool]]:
        executor = ThreadPoolExecutor(max_workers=self.max_workers)
        try:
            futures = [
                executor.submit(self._read, images[p.variant], p) if p.variant in images else None
                for p in passes
            ]

            # Gathered by combination index, not completion order
            outcomes = []
            for recognition_pass, future in zip(passes, futures):
                if future is None:
                    outcomes.append((None, False))
                    continue
                try:
                    outcomes.append((future.result(timeout=self.timeout), True))
                except FutureTimeoutError:
                    future.cancel()
                    logger.warning("OCR pass %s timed out", recognition_pass.name)
                    outcomes.append((None, False))
                except OcrInvocationError as e:
                    logger.warning("OCR pass %s failed: %s", e.pass_name, e)
                    outcomes.append((None, False))
            return outcomes
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def recognize_plate(self, image: ImageSource) -> FusionResult:
        """
        Recognize the most confident plate in an image.

        Args:
            image: Encoded bytes, a file path, or a decoded pixel array

        Returns:
            FusionResult; plate is None when no pass produced a candidate

        Raises:
            DecodeError: If the input image cannot be decoded
        """
        pixels = load_image(image)
        passes = self.recognition_passes()
        logger.debug("Analyzing %d OCR combinations", len(passes))

        images = self._build_variants(pixels)
        if self.max_workers > 1:
            outcomes = self._run_concurrent(images, passes)
        else:
            outcomes = self._run_sequential(images, passes)

        results = tuple(
            PassResult(index=index, recognition_pass=recognition_pass, candidate=candidate)
            for index, (recognition_pass, (candidate, _)) in enumerate(zip(passes, outcomes))
            if candidate is not None
        )
        failed = sum(1 for _, ok in outcomes if not ok)

        if not results:
            logger.info("No plate candidate from %d combinations (%d failed)", len(passes), failed)
            return FusionResult(plate=None, confidence=0, results=(), attempted=len(passes), failed=failed)

        # Highest confidence wins; the earliest combination wins ties
        best = min(results, key=lambda r: (-r.candidate.confidence, r.index))
        logger.info(
            "Resolved plate %s at %d%% from %s",
            best.candidate.text, best.candidate.confidence, best.recognition_pass.name
        )

        return FusionResult(
            plate=best.candidate.text,
            confidence=best.candidate.confidence,
            results=results,
            attempted=len(passes),
            failed=failed,
        )
