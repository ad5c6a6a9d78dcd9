"""
IdentMatch Configuration

Matching thresholds, fingerprint settings and OCR tunables.
"""

import json
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Tuple


RESAMPLE_METHODS = ("nearest", "linear", "area")

# Preprocessing variants known to identmatch.plates.preprocess
VARIANT_NAMES = ("original", "grayscale", "upscaled", "contrast", "binary", "adaptive")

DEFAULT_WHITELIST = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789- "


@dataclass(frozen=True)
class MatchConfig:
    """Configuration for fingerprint matching and plate recognition"""

    # Fingerprint
    grid_size: int = 8
    resample: str = "area"

    # Gallery decision rule (8x8 calibration)
    confidence_slope: float = 2.5
    max_distance: int = 10
    min_confidence: int = 70
    top_k: int = 3

    # Parallel reduction
    parallel_threshold: int = 2048
    max_workers: int = 4

    # OCR
    ocr_language: str = "eng"
    ocr_whitelist: str = DEFAULT_WHITELIST
    ocr_timeout_seconds: float = 10.0
    variants: Tuple[str, ...] = ("original", "contrast", "binary")

    # Pass confidence clamp
    min_pass_confidence: int = 50
    max_pass_confidence: int = 100
    default_ocr_confidence: int = 80

    def __post_init__(self):
        if self.grid_size < 2:
            raise ValueError(f"grid_size must be >= 2, got {self.grid_size}")
        if self.resample not in RESAMPLE_METHODS:
            raise ValueError(
                f"resample must be one of {RESAMPLE_METHODS}, got {self.resample!r}"
            )
        if self.confidence_slope < 0:
            raise ValueError(f"confidence_slope must be >= 0, got {self.confidence_slope}")
        if self.max_distance < 0:
            raise ValueError(f"max_distance must be >= 0, got {self.max_distance}")
        if not 0 <= self.min_confidence <= 100:
            raise ValueError(f"min_confidence must be 0-100, got {self.min_confidence}")
        if self.top_k < 1:
            raise ValueError(f"top_k must be >= 1, got {self.top_k}")
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")
        if self.ocr_timeout_seconds <= 0:
            raise ValueError(
                f"ocr_timeout_seconds must be positive, got {self.ocr_timeout_seconds}"
            )
        if not self.variants:
            raise ValueError("at least one preprocessing variant is required")
        unknown = [v for v in self.variants if v not in VARIANT_NAMES]
        if unknown:
            raise ValueError(f"unknown preprocessing variants: {', '.join(unknown)}")
        if not 0 <= self.min_pass_confidence <= self.max_pass_confidence <= 100:
            raise ValueError(
                "pass confidence clamp must satisfy 0 <= min <= max <= 100, got "
                f"{self.min_pass_confidence}..{self.max_pass_confidence}"
            )

    @classmethod
    def from_env(cls) -> "MatchConfig":
        """Create config from environment variables"""
        defaults = cls()
        variants = os.getenv("IDENTMATCH_VARIANTS")
        return cls(
            grid_size=int(os.getenv("IDENTMATCH_GRID_SIZE", defaults.grid_size)),
            resample=os.getenv("IDENTMATCH_RESAMPLE", defaults.resample),
            confidence_slope=float(
                os.getenv("IDENTMATCH_CONFIDENCE_SLOPE", defaults.confidence_slope)
            ),
            max_distance=int(os.getenv("IDENTMATCH_MAX_DISTANCE", defaults.max_distance)),
            min_confidence=int(
                os.getenv("IDENTMATCH_MIN_CONFIDENCE", defaults.min_confidence)
            ),
            top_k=int(os.getenv("IDENTMATCH_TOP_K", defaults.top_k)),
            parallel_threshold=int(
                os.getenv("IDENTMATCH_PARALLEL_THRESHOLD", defaults.parallel_threshold)
            ),
            max_workers=int(os.getenv("IDENTMATCH_MAX_WORKERS", defaults.max_workers)),
            ocr_language=os.getenv("IDENTMATCH_OCR_LANGUAGE", defaults.ocr_language),
            ocr_whitelist=os.getenv("IDENTMATCH_OCR_WHITELIST", defaults.ocr_whitelist),
            ocr_timeout_seconds=float(
                os.getenv("IDENTMATCH_OCR_TIMEOUT", defaults.ocr_timeout_seconds)
            ),
            variants=(
                tuple(v.strip() for v in variants.split(",") if v.strip())
                if variants
                else defaults.variants
            ),
            min_pass_confidence=int(
                os.getenv("IDENTMATCH_MIN_PASS_CONFIDENCE", defaults.min_pass_confidence)
            ),
            max_pass_confidence=int(
                os.getenv("IDENTMATCH_MAX_PASS_CONFIDENCE", defaults.max_pass_confidence)
            ),
            default_ocr_confidence=int(
                os.getenv("IDENTMATCH_DEFAULT_OCR_CONFIDENCE", defaults.default_ocr_confidence)
            ),
        )

    @classmethod
    def from_file(cls, path: str) -> "MatchConfig":
        """
        Load config from a JSON file.

        Missing keys keep their defaults; unknown keys are rejected.

        Args:
            path: Path to a JSON object of field overrides

        Returns:
            MatchConfig
        """
        with open(Path(path), "r") as f:
            data = json.load(f)

        if not isinstance(data, dict):
            raise ValueError(f"config file {path} must contain a JSON object")

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MatchConfig":
        """Create config from a dictionary of overrides"""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"unknown config keys: {', '.join(unknown)}")

        values = dict(data)
        if "variants" in values:
            values["variants"] = tuple(values["variants"])
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["variants"] = list(self.variants)
        return data


# Global default config
DEFAULT_CONFIG = MatchConfig()
