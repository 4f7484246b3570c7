"""
Image loading for the text extraction pipeline.

Handles:
- Reading and decoding raster files (anything OpenCV can decode)
- Normalizing every decoded layout to interleaved 8-bit RGB
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import numpy as np

from ..errors import ImageDecodeError, ImageNotFound

logger = logging.getLogger(__name__)


# ============================================================================
# Data Classes
# ============================================================================

@dataclass(frozen=True)
class Image:
    """Decoded image: ``(height, width, 3)`` uint8 array in RGB order."""
    pixels: np.ndarray
    source: Optional[Path] = None

    def __post_init__(self):
        if self.pixels.ndim != 3 or self.pixels.shape[2] != 3:
            raise ValueError(f"Expected (H, W, 3) pixels, got {self.pixels.shape}")
        if self.pixels.dtype != np.uint8:
            raise ValueError(f"Expected uint8 pixels, got {self.pixels.dtype}")
        self.pixels.flags.writeable = False

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def dimensions(self):
        return (self.width, self.height)


# ============================================================================
# Pixel Layout Normalization
# ============================================================================

def _to_uint8(array: np.ndarray) -> np.ndarray:
    """Scale 16-bit and floating point data down to 8 bits."""
    if array.dtype == np.uint8:
        return array
    if array.dtype == np.uint16:
        return (array >> 8).astype(np.uint8)
    if np.issubdtype(array.dtype, np.floating):
        return (np.clip(array, 0.0, 1.0) * 255.0 + 0.5).astype(np.uint8)
    return np.clip(array, 0, 255).astype(np.uint8)


def to_rgb8(array: np.ndarray) -> np.ndarray:
    """
    Convert an OpenCV-decoded array to 3-channel 8-bit RGB.

    Args:
        array: Greyscale (H, W) / (H, W, 1), BGR (H, W, 3) or BGRA (H, W, 4)

    Returns:
        Contiguous (H, W, 3) uint8 array in RGB order. Alpha is dropped and
        single-channel data is replicated across channels.

    Raises:
        ImageDecodeError: If the channel layout is not supported
    """
    import cv2

    array = _to_uint8(array)

    if array.ndim == 3 and array.shape[2] == 1:
        array = array[:, :, 0]

    if array.ndim == 2:
        rgb = cv2.cvtColor(array, cv2.COLOR_GRAY2RGB)
    elif array.ndim == 3 and array.shape[2] == 3:
        rgb = cv2.cvtColor(array, cv2.COLOR_BGR2RGB)
    elif array.ndim == 3 and array.shape[2] == 4:
        rgb = cv2.cvtColor(array, cv2.COLOR_BGRA2RGB)
    else:
        raise ImageDecodeError(f"Unsupported pixel layout: {array.shape}")

    return np.ascontiguousarray(rgb)


# ============================================================================
# Image Loading
# ============================================================================

def load_image(image_path: Union[str, Path]) -> Image:
    """
    Load an image from file and normalize it to RGB.

    Args:
        image_path: Path to the image file

    Returns:
        Image with RGB pixels

    Raises:
        ImageNotFound: If the image file doesn't exist or can't be read
        ImageDecodeError: If the image cannot be decoded
    """
    import cv2

    image_path = Path(image_path)
    if not image_path.is_file():
        raise ImageNotFound(f"Image not found at {image_path}", path=image_path)

    try:
        data = np.fromfile(str(image_path), dtype=np.uint8)
    except OSError as e:
        raise ImageNotFound(f"Cannot read image {image_path}: {e}", path=image_path) from e

    img = cv2.imdecode(data, cv2.IMREAD_UNCHANGED) if data.size else None

    if img is None:
        raise ImageDecodeError(f"Could not decode image: {image_path}", path=image_path)

    try:
        pixels = to_rgb8(img)
    except ImageDecodeError as e:
        raise ImageDecodeError(f"{e} in {image_path}", path=image_path) from e

    logger.debug(f"Loaded image: {image_path}, shape: {img.shape} -> {pixels.shape}")
    return Image(pixels=pixels, source=image_path)
