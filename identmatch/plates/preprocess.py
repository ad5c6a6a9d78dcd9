"""
Plate Image Preprocessing

Named image variants fed to the OCR passes. Which variants run is a
configuration list; this module only maps names to transforms.
"""

from typing import Callable, Dict, Sequence

import cv2
import numpy as np

from identmatch.errors import DecodeError


# Standard plate height for OCR (pixels)
TARGET_HEIGHT = 100


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """BGR/BGRA/grayscale -> single-channel grayscale"""
    if image.ndim == 2:
        return image
    if image.ndim == 3 and image.shape[2] == 1:
        return image[:, :, 0]
    if image.ndim == 3 and image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    if image.ndim == 3 and image.shape[2] == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    raise DecodeError(f"unsupported image shape: {image.shape}")


def original(image: np.ndarray) -> np.ndarray:
    return image


def upscaled(image: np.ndarray) -> np.ndarray:
    """Grayscale resized to the standard plate height (helps OCR)"""
    gray = to_grayscale(image)
    if gray.shape[0] == TARGET_HEIGHT:
        return gray
    aspect_ratio = gray.shape[1] / gray.shape[0]
    target_width = max(1, int(TARGET_HEIGHT * aspect_ratio))
    return cv2.resize(gray, (target_width, TARGET_HEIGHT), interpolation=cv2.INTER_CUBIC)


def contrast(image: np.ndarray) -> np.ndarray:
    """Local contrast enhancement (CLAHE)"""
    gray = to_grayscale(image)
    clahe = cv2.createCLAHE(clipLimit=2.0, tileGridSize=(8, 8))
    return clahe.apply(gray)


def binary(image: np.ndarray) -> np.ndarray:
    """Global Otsu binarization after a light blur"""
    gray = to_grayscale(image)
    blurred = cv2.GaussianBlur(gray, (3, 3), 0)
    _, thresh = cv2.threshold(blurred, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)
    return thresh


def adaptive(image: np.ndarray) -> np.ndarray:
    """Adaptive Gaussian thresholding, robust to uneven lighting"""
    gray = upscaled(image)
    return cv2.adaptiveThreshold(
        gray,
        255,
        cv2.ADAPTIVE_THRESH_GAUSSIAN_C,
        cv2.THRESH_BINARY,
        11,
        2
    )


VARIANTS: Dict[str, Callable[[np.ndarray], np.ndarray]] = {
    "original": original,
    "grayscale": to_grayscale,
    "upscaled": upscaled,
    "contrast": contrast,
    "binary": binary,
    "adaptive": adaptive,
}


def validate_variant_names(names: Sequence[str]) -> None:
    unknown = [n for n in names if n not in VARIANTS]
    if unknown:
        raise ValueError(
            f"unknown preprocessing variants: {', '.join(unknown)} "
            f"(known: {', '.join(sorted(VARIANTS))})"
        )


def build_variant(name: str, image: np.ndarray) -> np.ndarray:
    """
    Apply one named transform.

    Raises:
        DecodeError: If OpenCV cannot process the image
    """
    try:
        return VARIANTS[name](image)
    except cv2.error as e:
        raise DecodeError(f"variant {name!r} failed: {e}") from e

