"""
IdentMatch Schema Definitions

Value types shared by the face (fingerprint) path and the plate (OCR) path.
All results are created per request and never mutated after return.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple


@dataclass(frozen=True)
class Fingerprint:
    """Perceptual fingerprint as an ordered bit string ('0'/'1')"""
    bits: str

    def __post_init__(self):
        if not isinstance(self.bits, str):
            raise TypeError(f"bits must be a str, got {type(self.bits).__name__}")
        if self.bits.strip("01"):
            raise ValueError("fingerprint bits may only contain '0' and '1'")

    def __len__(self) -> int:
        return len(self.bits)

    def __str__(self) -> str:
        return self.bits

    @classmethod
    def from_bits(cls, bits: Iterable[Any]) -> "Fingerprint":
        """Create from an iterable of truthy/falsy values"""
        return cls("".join("1" if b else "0" for b in bits))

    @classmethod
    def from_hex(cls, value: str, length: Optional[int] = None) -> "Fingerprint":
        """
        Create from a hex string.

        Args:
            value: Hex digits (no prefix)
            length: Bit length; defaults to 4 bits per hex digit

        Returns:
            Fingerprint
        """
        value = value.strip().lower()
        if not value:
            return cls("")
        bit_length = length if length is not None else len(value) * 4
        number = int(value, 16)
        if number.bit_length() > bit_length:
            raise ValueError(f"hex value does not fit in {bit_length} bits")
        return cls(format(number, f"0{bit_length}b") if bit_length else "")

    def to_hex(self) -> str:
        """Hex encoding, one digit per started nibble"""
        if not self.bits:
            return ""
        width = (len(self.bits) + 3) // 4
        return format(int(self.bits, 2), f"0{width}x")


@dataclass(frozen=True)
class GalleryEntry:
    """Reference identity with its fingerprint (owned by the record store)"""
    identity: Any
    fingerprint: Fingerprint
    label: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON storage"""
        return {
            "identity": self.identity,
            "fingerprint": self.fingerprint.to_hex(),
            "bits": len(self.fingerprint),
            "label": self.label,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GalleryEntry":
        """
        Create from dictionary.

        The fingerprint may be given as a bit string, or as hex with a
        "bits" length. Hex without "bits" is read as 4 bits per digit,
        which is only accepted when that is a square grid (e.g. 16 digits
        for 8x8); odd grids such as 7x7 need "bits".
        """
        raw = str(data["fingerprint"])
        if raw and not raw.strip("01") and "bits" not in data:
            fingerprint = Fingerprint(raw)
        elif "bits" in data:
            fingerprint = Fingerprint.from_hex(raw, int(data["bits"]))
        else:
            bit_length = len(raw.strip()) * 4
            if math.isqrt(bit_length) ** 2 != bit_length:
                raise ValueError(
                    f"hex fingerprint of {bit_length} bits is not a square grid; "
                    "give its 'bits' length"
                )
            fingerprint = Fingerprint.from_hex(raw)
        return cls(
            identity=data["identity"],
            fingerprint=fingerprint,
            label=data.get("label"),
            metadata=data.get("metadata") or {},
        )


@dataclass(frozen=True)
class MatchCandidate:
    """A nearby gallery entry"""
    identity: Any
    label: Optional[str]
    distance: int
    confidence: int
    index: int  # Position in the gallery sequence

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "identity": self.identity,
            "label": self.label,
            "distance": self.distance,
            "confidence": self.confidence,
            "index": self.index,
        }


@dataclass(frozen=True)
class MatchResult:
    """Outcome of matching one query fingerprint against a gallery"""
    identity: Any  # None when no match was declared
    confidence: int  # 0-100, reported even without a match
    distance: Optional[int]  # None only for an empty gallery
    candidates: Tuple[MatchCandidate, ...] = ()

    @property
    def matched(self) -> bool:
        return self.identity is not None

    @property
    def nearest(self) -> Optional[MatchCandidate]:
        """Closest entry, whether or not it passed the decision rule"""
        return self.candidates[0] if self.candidates else None

    @classmethod
    def empty(cls) -> "MatchResult":
        return cls(identity=None, confidence=0, distance=None, candidates=())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "matched": self.matched,
            "identity": self.identity,
            "confidence": self.confidence,
            "distance": self.distance,
            "candidates": [c.to_dict() for c in self.candidates],
        }


class PageSegmentationMode(str, Enum):
    """Expected text layout for an OCR pass"""
    SINGLE_LINE = "single_line"
    BLOCK = "block"

    @property
    def tesseract_psm(self) -> int:
        """Tesseract --psm value"""
        return 7 if self is PageSegmentationMode.SINGLE_LINE else 6


@dataclass(frozen=True)
class OcrOptions:
    """Recognized OCR options (no free-form option bags)"""
    character_whitelist: str
    page_segmentation_mode: PageSegmentationMode
    preserve_interword_spaces: bool = True


@dataclass(frozen=True)
class RecognitionPass:
    """One (image variant, OCR configuration) combination"""
    variant: str
    page_segmentation_mode: PageSegmentationMode
    character_whitelist: str
    preserve_interword_spaces: bool = True

    @property
    def name(self) -> str:
        return f"{self.variant}/{self.page_segmentation_mode.value}"

    @property
    def options(self) -> OcrOptions:
        return OcrOptions(
            character_whitelist=self.character_whitelist,
            page_segmentation_mode=self.page_segmentation_mode,
            preserve_interword_spaces=self.preserve_interword_spaces,
        )


@dataclass(frozen=True)
class OcrWord:
    """Recognized word with engine confidence (0-100)"""
    text: str
    confidence: float


@dataclass(frozen=True)
class OcrOutput:
    """Raw OCR engine output for one image"""
    text: str
    confidence: Optional[float] = None  # Overall confidence (0-100) if reported
    words: Tuple[OcrWord, ...] = ()


@dataclass(frozen=True)
class PlateCandidate:
    """Normalized plate text with its source confidence (0-100)"""
    text: str
    confidence: int

    def to_dict(self) -> Dict[str, Any]:
        return {"text": self.text, "confidence": self.confidence}


@dataclass(frozen=True)
class PassResult:
    """Candidate produced by one recognition pass"""
    index: int  # Combination index, used for stable tie-breaks
    recognition_pass: RecognitionPass
    candidate: PlateCandidate

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "pass": self.recognition_pass.name,
            **self.candidate.to_dict(),
        }


@dataclass(frozen=True)
class FusionResult:
    """Terminal output of the plate path"""
    plate: Optional[str]
    confidence: int
    results: Tuple[PassResult, ...] = ()
    attempted: int = 0
    failed: int = 0

    @property
    def has_candidate(self) -> bool:
        return self.plate is not None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "plate": self.plate,
            "confidence": self.confidence,
            "attempted": self.attempted,
            "failed": self.failed,
            "results": [r.to_dict() for r in self.results],
        }


@dataclass(frozen=True)
class PlateCheck:
    """Plate lookup outcome against the flagged-plate list"""
    plate: Optional[str]
    confidence: int
    flagged: bool
    reason: Optional[str] = None
    source: str = "ocr"  # "ocr" or "manual"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "plate": self.plate,
            "confidence": self.confidence,
            "flagged": self.flagged,
            "reason": self.reason,
            "source": self.source,
        }

    def to_report(self) -> Dict[str, Any]:
        """JSON-ready report with generation timestamp"""
        report = self.to_dict()
        report["generated_at"] = datetime.now(timezone.utc).isoformat()
        return report
