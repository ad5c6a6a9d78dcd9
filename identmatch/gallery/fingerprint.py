"""
Perceptual Fingerprints

Average-hash ("aHash") fingerprints for coarse image similarity.
"""

import logging
from pathlib import Path
from typing import Union

import cv2
import numpy as np

from identmatch.config import DEFAULT_CONFIG, MatchConfig
from identmatch.errors import DecodeError
from identmatch.schemas import Fingerprint


logger = logging.getLogger(__name__)

ImageSource = Union[bytes, bytearray, memoryview, str, Path, np.ndarray]

_INTERPOLATION = {
    "nearest": cv2.INTER_NEAREST,
    "linear": cv2.INTER_LINEAR,
    "area": cv2.INTER_AREA,
}

# ITU-R BT.601 luma weights scaled by 1000 so the hash is computed in integers
_LUMA_R = 299
_LUMA_G = 587
_LUMA_B = 114


def decode_image(data: Union[bytes, bytearray, memoryview]) -> np.ndarray:
    """
    Decode encoded image bytes (JPEG, PNG, ...) to a BGR pixel grid.

    Raises:
        DecodeError: If the bytes are empty or not a decodable image
    """
    if not data:
        raise DecodeError("empty image data")

    buffer = np.frombuffer(bytes(data), dtype=np.uint8)
    image = cv2.imdecode(buffer, cv2.IMREAD_COLOR)

    if image is None:
        raise DecodeError(f"could not decode {len(buffer)} bytes as an image")

    return image


def load_image(source: ImageSource) -> np.ndarray:
    """
    Load an image from bytes, a file path or an existing array.

    Arrays are passed through unchanged (BGR, BGRA or grayscale).
    """
    if isinstance(source, np.ndarray):
        if source.size == 0:
            raise DecodeError("empty image array")
        return source

    if isinstance(source, (bytes, bytearray, memoryview)):
        return decode_image(source)

    path = Path(source)
    if not path.is_file():
        raise DecodeError(f"image file not found: {path}")

    return decode_image(path.read_bytes())


def resample(image: np.ndarray, width: int, height: int, method: str = "area") -> np.ndarray:
    """Resize a pixel grid to width x height"""
    try:
        interpolation = _INTERPOLATION[method]
    except KeyError:
        raise ValueError(f"unknown resample method: {method!r}") from None

    if image.shape[1] == width and image.shape[0] == height:
        return image

    return cv2.resize(image, (width, height), interpolation=interpolation)


def luminance(image: np.ndarray) -> np.ndarray:
    """
    Per-pixel luminance scaled by 1000, as int64.

    Integer arithmetic keeps the hash independent of float summation order.
    """
    if not np.issubdtype(image.dtype, np.integer):
        raise DecodeError(f"unsupported pixel type: {image.dtype}")

    pixels = image.astype(np.int64)

    if pixels.ndim == 2:
        return pixels * (_LUMA_R + _LUMA_G + _LUMA_B)

    if pixels.ndim == 3 and pixels.shape[2] == 1:
        return pixels[:, :, 0] * (_LUMA_R + _LUMA_G + _LUMA_B)

    if pixels.ndim == 3 and pixels.shape[2] in (3, 4):
        # OpenCV channel order is BGR(A); alpha is ignored
        blue = pixels[:, :, 0]
        green = pixels[:, :, 1]
        red = pixels[:, :, 2]
        return _LUMA_R * red + _LUMA_G * green + _LUMA_B * blue

    raise DecodeError(f"unsupported image shape: {image.shape}")


class FingerprintEngine:
    """
    Average-hash fingerprint generator.

    Steps:
    - Resample to grid_size x grid_size
    - Convert each pixel to luminance
    - Emit 1 for pixels at or above the mean luminance, else 0 (row-major)
    """

    def __init__(self, grid_size: int = 8, resample_method: str = "area"):
        """
        Initialize engine.

        Args:
            grid_size: Edge of the sampling grid; fingerprints have grid_size**2 bits
            resample_method: One of "nearest", "linear", "area"
        """
        if grid_size < 2:
            raise ValueError(f"grid_size must be >= 2, got {grid_size}")
        if resample_method not in _INTERPOLATION:
            raise ValueError(f"unknown resample method: {resample_method!r}")

        self.grid_size = grid_size
        self.resample_method = resample_method

    @classmethod
    def from_config(cls, config: MatchConfig = DEFAULT_CONFIG) -> "FingerprintEngine":
        return cls(grid_size=config.grid_size, resample_method=config.resample)

    @property
    def length(self) -> int:
        """Fingerprint length in bits"""
        return self.grid_size * self.grid_size

    def fingerprint(self, image: ImageSource) -> Fingerprint:
        """
        Compute the fingerprint of an image.

        Args:
            image: Encoded bytes, a file path, or a decoded pixel array

        Returns:
            Fingerprint of exactly grid_size**2 bits

        Raises:
            DecodeError: If the image cannot be decoded
        """
        pixels = load_image(image)
        small = resample(pixels, self.grid_size, self.grid_size, self.resample_method)
        luma = luminance(small).ravel()

        # Compare luma >= mean as luma * n >= sum to stay in integers
        total = int(luma.sum())
        bits = luma * luma.size >= total

        fingerprint = Fingerprint.from_bits(bits.tolist())
        logger.debug("Computed %d-bit fingerprint %s", len(fingerprint), fingerprint.to_hex())
        return fingerprint


def average_hash(image: ImageSource, grid_size: int = 8) -> Fingerprint:
    """Fingerprint an image with a default-configured engine"""
    return FingerprintEngine(grid_size=grid_size).fingerprint(image)
