"""
Connected-Component Labeler - 8-connected flood fill over a binary mask
"""
from typing import List, Tuple
from dataclasses import dataclass
import logging

import numpy as np

from .mask import BinaryMask

logger = logging.getLogger(__name__)

NEIGHBORS_8 = (
    (1, 0), (-1, 0), (0, 1), (0, -1),
    (1, 1), (1, -1), (-1, 1), (-1, -1),
)


@dataclass(frozen=True, eq=False)
class ConnectedComponent:
    """Maximal 8-connected set of foreground pixels"""
    pixels: np.ndarray  # (N, 2) int array of (x, y), discovery order
    bbox: Tuple[int, int, int, int]  # x, y, width, height
    area: int

    def __post_init__(self):
        self.pixels.setflags(write=False)

    @property
    def aspect_ratio(self) -> float:
        return self.bbox[2] / self.bbox[3]


@dataclass
class LabelingResult:
    """Components kept after size filtering plus what was discarded"""
    components: List[ConnectedComponent]
    total_found: int
    filtered_small: int = 0
    filtered_large: int = 0

    @property
    def filtered_count(self) -> int:
        return self.filtered_small + self.filtered_large


def flood_fill(foreground: list, visited: bytearray, width: int, height: int,
               seed_x: int, seed_y: int) -> ConnectedComponent:
    """
    Collect every foreground pixel reachable from the seed.

    Iterative with an explicit stack so memory is bounded by the component
    size rather than recursion depth. Pixels are marked visited when pushed.
    """
    stack = [(seed_x, seed_y)]
    visited[seed_y * width + seed_x] = 1
    pixels = []
    min_x = max_x = seed_x
    min_y = max_y = seed_y

    while stack:
        x, y = stack.pop()
        pixels.append((x, y))

        if x < min_x:
            min_x = x
        elif x > max_x:
            max_x = x
        if y < min_y:
            min_y = y
        elif y > max_y:
            max_y = y

        for dx, dy in NEIGHBORS_8:
            nx = x + dx
            ny = y + dy
            if nx < 0 or nx >= width or ny < 0 or ny >= height:
                continue
            idx = ny * width + nx
            if foreground[idx] and not visited[idx]:
                visited[idx] = 1
                stack.append((nx, ny))

    return ConnectedComponent(
        pixels=np.array(pixels, dtype=np.int64).reshape(-1, 2),
        bbox=(min_x, min_y, max_x - min_x + 1, max_y - min_y + 1),
        area=len(pixels),
    )


def find_connected_components(mask: BinaryMask) -> List[ConnectedComponent]:
    """All components in raster-scan order of their first pixel, unfiltered"""
    width, height = mask.width, mask.height
    flat = mask.data.ravel()
    foreground = flat.tolist()
    visited = bytearray(width * height)
    components = []

    for idx in np.flatnonzero(flat).tolist():
        if visited[idx]:
            continue
        y, x = divmod(idx, width)
        components.append(flood_fill(foreground, visited, width, height, x, y))

    return components


class ComponentLabeler:
    """Labels a processed mask and drops components outside the size bounds"""

    def __init__(self, min_element_size: int = 50, max_element_size: int = 100000):
        self.min_element_size = min_element_size
        self.max_element_size = max_element_size

    def label(self, mask: BinaryMask) -> LabelingResult:
        found = find_connected_components(mask)
        kept = []
        small = large = 0

        for component in found:
            if component.area < self.min_element_size:
                small += 1
            elif component.area > self.max_element_size:
                large += 1
            else:
                kept.append(component)

        logger.info(
            f"Labeled {len(found)} components, kept {len(kept)} "
            f"({small} too small, {large} too large)"
        )
        return LabelingResult(
            components=kept,
            total_found=len(found),
            filtered_small=small,
            filtered_large=large,
        )
