"""
License Plate OCR

OCR engine interface and adapters for Tesseract (pytesseract) and EasyOCR.
"""

import logging
import shlex
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pytesseract

from identmatch.errors import OcrInvocationError, OcrUnavailableError
from identmatch.schemas import OcrOptions, OcrOutput, OcrWord, PageSegmentationMode


logger = logging.getLogger(__name__)


class OcrEngine(ABC):
    """
    Black-box OCR engine.

    Implementations raise OcrInvocationError for any per-call failure and
    OcrUnavailableError when the backend itself is missing.
    """

    @abstractmethod
    def recognize(
        self,
        image: np.ndarray,
        language: str,
        options: OcrOptions,
        timeout: Optional[float] = None
    ) -> OcrOutput:
        """
        Recognize text in an image.

        Args:
            image: Preprocessed image variant
            language: OCR language code (e.g. "eng")
            options: Whitelist, page segmentation and spacing options
            timeout: Seconds before the call is abandoned

        Returns:
            OcrOutput with text, overall confidence and word confidences
        """


def _mean(values: List[float]) -> Optional[float]:
    return sum(values) / len(values) if values else None


class TesseractEngine(OcrEngine):
    """
    Tesseract via pytesseract.

    Uses word-level output (image_to_data) so passes can score the words
    that make up a plate.
    """

    def __init__(self, oem: int = 3, tesseract_cmd: Optional[str] = None):
        """
        Args:
            oem: Tesseract OCR engine mode (3 = legacy + LSTM)
            tesseract_cmd: Path to the tesseract binary if not on PATH
        """
        self.oem = oem
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd

    def build_config(self, options: OcrOptions) -> str:
        """
        Tesseract CLI config string.

        --psm 7: single text line, --psm 6: uniform block of text
        """
        parts = [
            f"--oem {self.oem}",
            f"--psm {options.page_segmentation_mode.tesseract_psm}",
        ]
        if options.character_whitelist:
            parts.append("-c " + shlex.quote(f"tessedit_char_whitelist={options.character_whitelist}"))
        parts.append(f"-c preserve_interword_spaces={1 if options.preserve_interword_spaces else 0}")
        return " ".join(parts)

    @staticmethod
    def parse_data(data: Dict[str, List[Any]]) -> OcrOutput:
        """Convert image_to_data(output_type=DICT) into an OcrOutput"""
        lines: "OrderedDict[Tuple[int, ...], List[str]]" = OrderedDict()
        words = []

        for i, text in enumerate(data.get("text", [])):
            text = (text or "").strip()
            try:
                conf = float(data["conf"][i])
            except (KeyError, IndexError, TypeError, ValueError):
                conf = -1.0

            # Non-word layout rows carry conf -1
            if not text or conf < 0:
                continue

            key = tuple(
                int(data[name][i]) if name in data else 0
                for name in ("block_num", "par_num", "line_num")
            )
            lines.setdefault(key, []).append(text)
            words.append(OcrWord(text=text, confidence=conf))

        return OcrOutput(
            text="\n".join(" ".join(line) for line in lines.values()),
            confidence=_mean([w.confidence for w in words]),
            words=tuple(words),
        )

    def recognize(
        self,
        image: np.ndarray,
        language: str,
        options: OcrOptions,
        timeout: Optional[float] = None
    ) -> OcrOutput:
        try:
            data = pytesseract.image_to_data(
                image,
                lang=language,
                config=self.build_config(options),
                timeout=timeout or 0,
                output_type=pytesseract.Output.DICT,
            )
        except pytesseract.TesseractNotFoundError as e:
            raise OcrUnavailableError(
                "tesseract binary not found; install tesseract-ocr or set tesseract_cmd"
            ) from e
        except (pytesseract.TesseractError, RuntimeError, OSError) as e:
            # pytesseract reports timeouts as RuntimeError
            raise OcrInvocationError(f"tesseract failed: {e}") from e

        return self.parse_data(data)


class EasyOcrEngine(OcrEngine):
    """
    EasyOCR adapter (optional dependency: pip install identmatch[easyocr]).

    EasyOCR has no page segmentation modes: single-line passes join
    detections with spaces, block passes with newlines.
    """

    LANGUAGE_CODES = {"eng": "en"}

    def __init__(self, language: str = "eng", gpu: bool = False):
        try:
            import easyocr
        except ImportError as e:
            raise OcrUnavailableError("easyocr is not installed; pip install easyocr") from e

        self.language = language
        self.reader = easyocr.Reader([self.LANGUAGE_CODES.get(language, language)], gpu=gpu)
        logger.info("Using EasyOCR (%s)", language)

    def recognize(
        self,
        image: np.ndarray,
        language: str,
        options: OcrOptions,
        timeout: Optional[float] = None
    ) -> OcrOutput:
        if language != self.language:
            raise OcrInvocationError(
                f"reader was built for {self.language!r}, not {language!r}"
            )

        try:
            results = self.reader.readtext(
                image,
                allowlist=options.character_whitelist or None,
                detail=1,
            )
        except (RuntimeError, ValueError, TypeError) as e:
            raise OcrInvocationError(f"easyocr failed: {e}") from e

        words = tuple(
            OcrWord(text=str(text).strip(), confidence=float(conf) * 100)
            for _, text, conf in results
            if str(text).strip()
        )
        separator = " " if options.page_segmentation_mode is PageSegmentationMode.SINGLE_LINE else "\n"

        return OcrOutput(
            text=separator.join(w.text for w in words),
            confidence=_mean([w.confidence for w in words]),
            words=words,
        )
