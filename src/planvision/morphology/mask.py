"""
Binary Mask Builder - Thresholds an intensity raster into ink/background
"""
from dataclasses import dataclass
import logging

import numpy as np

from ..errors import DimensionMismatchError
from ..ingestion.preprocessor import RasterImage

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class BinaryMask:
    """Same-size bitmap, 1 = foreground (ink), 0 = background"""
    data: np.ndarray  # uint8, shape H x W, values 0/1
    width: int
    height: int

    def __post_init__(self):
        if self.data.shape != (self.height, self.width):
            raise DimensionMismatchError(
                f"Mask buffer {self.data.shape[::-1]} does not match {self.width}x{self.height}"
            )

    @classmethod
    def from_array(cls, array) -> "BinaryMask":
        """Build a mask from any 2D array; non-zero entries become 1"""
        data = (np.asarray(array) != 0).astype(np.uint8)
        height, width = data.shape
        return cls(data=data, width=width, height=height)

    @property
    def foreground_count(self) -> int:
        return int(self.data.sum())

    def __eq__(self, other) -> bool:
        if not isinstance(other, BinaryMask):
            return NotImplemented
        return self.data.shape == other.data.shape and np.array_equal(self.data, other.data)


def build_binary_mask(raster: RasterImage, threshold: int = 180) -> BinaryMask:
    """Pixel = 1 iff intensity < threshold (dark pixels are structure)"""
    pixels = raster.pixels
    if pixels.shape != (raster.height, raster.width):
        raise DimensionMismatchError(
            f"Raster buffer {pixels.shape[::-1]} does not match {raster.width}x{raster.height}"
        )

    data = (pixels < threshold).astype(np.uint8)
    logger.debug(f"Binary mask: {int(data.sum())} foreground pixels at threshold {threshold}")
    return BinaryMask(data=data, width=raster.width, height=raster.height)
