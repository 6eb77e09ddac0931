"""
Confidence Map Generator - Paints detections as a category-coloured overlay
"""
from typing import Dict, Iterable, Tuple
import io
import logging

import numpy as np
from PIL import Image

from ..recognition.element_detector import DetectedElement, ElementCategory

logger = logging.getLogger(__name__)

RGB = Tuple[int, int, int]

CATEGORY_COLORS: Dict[ElementCategory, RGB] = {
    ElementCategory.STRUCTURAL: (0x00, 0xFF, 0x88),
    ElementCategory.OPENING: (0xFF, 0xB8, 0x00),
    ElementCategory.MECHANICAL: (0xFF, 0x6B, 0x35),
}
DEFAULT_COLOR: RGB = (0x00, 0xD9, 0xFF)


def category_color(category: ElementCategory) -> RGB:
    return CATEGORY_COLORS.get(category, DEFAULT_COLOR)


class ConfidenceMapGenerator:
    """
    Renders an RGBA raster the size of the analysed image.

    Each element's bbox is filled with its category colour, alpha =
    confidence. Elements are painted in list order and later ones replace
    earlier ones where they overlap.
    """

    def generate(self, elements: Iterable[DetectedElement], width: int, height: int) -> np.ndarray:
        """
        Args:
            elements: Final element list, in result order
            width: Raster width in pixels
            height: Raster height in pixels

        Returns:
            uint8 array of shape (height, width, 4)
        """
        canvas = np.zeros((height, width, 4), dtype=np.uint8)

        for element in elements:
            box = element.bbox.clip(width, height)
            if box is None:
                continue
            r, g, b = category_color(element.category)
            alpha = int(np.floor(min(1.0, max(0.0, element.confidence)) * 255))
            canvas[box.y:box.y2, box.x:box.x2] = (r, g, b, alpha)

        return canvas

    @staticmethod
    def to_png(confidence_map: np.ndarray) -> bytes:
        """Encode a generated map as PNG bytes"""
        buffer = io.BytesIO()
        Image.fromarray(confidence_map).save(buffer, format="PNG")
        return buffer.getvalue()
