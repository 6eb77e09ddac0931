"""
Image Preprocessor - Prepares rasters for mask building and recognition
"""
from typing import Optional, Tuple
from dataclasses import dataclass, field
import logging

import cv2
import numpy as np

from ..errors import InvalidImageError

logger = logging.getLogger(__name__)

# ITU-R BT.601 luma weights
LUMA_WEIGHTS = (0.299, 0.587, 0.114)


@dataclass
class PreprocessingConfig:
    """Configuration for image preprocessing"""
    contrast_gain: float = 1.2
    max_width: int = 4096
    max_height: int = 4096


@dataclass(frozen=True)
class RasterImage:
    """Single-channel intensity raster (uint8, shape H x W)"""
    pixels: np.ndarray
    width: int
    height: int

    def __post_init__(self):
        self.pixels.setflags(write=False)


@dataclass
class PreprocessedImage:
    """Container for preprocessed image data"""
    raster: RasterImage
    original_size: Tuple[int, int]
    processed_size: Tuple[int, int]
    scale_factor: float
    source: np.ndarray  # size-clamped input, for the semantic classifier
    applied_transforms: list = field(default_factory=list)


def validate_image(image) -> np.ndarray:
    """Coerce input to an H x W (x C) numeric array or raise InvalidImageError"""
    if image is None:
        raise InvalidImageError("No image supplied")

    try:
        array = np.asarray(image)
    except Exception as e:
        raise InvalidImageError(f"Unreadable image buffer: {e}") from e

    if array.dtype == object or not np.issubdtype(array.dtype, np.number):
        raise InvalidImageError(f"Unsupported pixel type: {array.dtype}")
    if array.ndim not in (2, 3):
        raise InvalidImageError(f"Expected 2D or 3D pixel array, got {array.ndim}D")
    if array.ndim == 3 and array.shape[2] not in (1, 3, 4):
        raise InvalidImageError(f"Unsupported channel count: {array.shape[2]}")
    if array.shape[0] <= 0 or array.shape[1] <= 0:
        raise InvalidImageError(f"Image has zero size: {array.shape[1]}x{array.shape[0]}")

    return array


class ImagePreprocessor:
    """
    Turns a decoded RGB/RGBA raster into a contrast-stretched intensity raster.

    Operations:
    - Resolution clamping (aspect ratio preserved)
    - Grayscale conversion (BT.601 luma)
    - Linear contrast stretch around mid-gray
    """

    def __init__(self, config: Optional[PreprocessingConfig] = None):
        self.config = config or PreprocessingConfig()

    def process(self, image, config: Optional[PreprocessingConfig] = None) -> PreprocessedImage:
        """Apply preprocessing pipeline to image"""
        cfg = config or self.config
        array = validate_image(image)
        transforms = []

        original_size = (array.shape[1], array.shape[0])
        array, scale = self.clamp_size(array, cfg.max_width, cfg.max_height)
        if scale != 1.0:
            transforms.append("resize")

        gray = self.to_grayscale(array)
        transforms.append("grayscale")

        enhanced = self.enhance_contrast(gray, cfg.contrast_gain)
        transforms.append("contrast")

        height, width = enhanced.shape
        logger.debug(f"Preprocessed {original_size[0]}x{original_size[1]} -> {width}x{height}")

        return PreprocessedImage(
            raster=RasterImage(pixels=enhanced, width=width, height=height),
            original_size=original_size,
            processed_size=(width, height),
            scale_factor=scale,
            source=array,
            applied_transforms=transforms,
        )

    def clamp_size(self, array: np.ndarray, max_width: int, max_height: int) -> Tuple[np.ndarray, float]:
        """Scale down rasters larger than the bounds, keeping aspect ratio"""
        height, width = array.shape[:2]
        if width <= max_width and height <= max_height:
            return array, 1.0

        scale = min(max_width / width, max_height / height)
        new_size = (max(1, int(round(width * scale))), max(1, int(round(height * scale))))
        resized = cv2.resize(array, new_size, interpolation=cv2.INTER_AREA)
        if array.ndim == 3 and resized.ndim == 2:
            # cv2 drops a trailing single channel
            resized = resized[:, :, np.newaxis]
        return resized, scale

    def to_grayscale(self, array: np.ndarray) -> np.ndarray:
        """Luma of an RGB(A) array as float64; alpha is ignored"""
        if array.ndim == 2:
            return array.astype(np.float64)
        if array.shape[2] == 1:
            return array[:, :, 0].astype(np.float64)

        rgb = array[:, :, :3].astype(np.float64)
        r_w, g_w, b_w = LUMA_WEIGHTS
        return r_w * rgb[:, :, 0] + g_w * rgb[:, :, 1] + b_w * rgb[:, :, 2]

    def enhance_contrast(self, gray: np.ndarray, gain: float) -> np.ndarray:
        """enhanced = clamp(0, 255, (luma - 128) * gain + 128)"""
        enhanced = np.clip((gray - 128.0) * gain + 128.0, 0, 255)
        return np.rint(enhanced).astype(np.uint8)
