# Morphology module
# Pixel-level structure extraction:
# - Binary masks from intensity rasters
# - Dilation / erosion / opening / closing
# - 8-connected component labeling

from .mask import BinaryMask, build_binary_mask
from .operations import MorphologicalProcessor, dilate, erode, opening, closing
from .components import (
    ConnectedComponent,
    ComponentLabeler,
    LabelingResult,
    find_connected_components,
)

__all__ = [
    "BinaryMask",
    "build_binary_mask",
    "MorphologicalProcessor",
    "dilate",
    "erode",
    "opening",
    "closing",
    "ConnectedComponent",
    "ComponentLabeler",
    "LabelingResult",
    "find_connected_components",
]
