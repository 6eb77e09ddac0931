"""
Element Detector - Geometry-based detection of architectural elements
"""
from typing import List, Optional, Dict, Any, Sequence, Tuple
from dataclasses import dataclass, field, replace
from enum import Enum
import logging

import numpy as np

from ..morphology.components import ConnectedComponent

logger = logging.getLogger(__name__)


class ElementCategory(str, Enum):
    STRUCTURAL = "structural"
    OPENING = "opening"
    MECHANICAL = "mechanical"
    ARCHITECTURAL = "architectural"
    ANNOTATION = "annotation"
    UNKNOWN = "unknown"


# Element types recognised per category, used to infer a missing category
CATEGORY_VOCABULARY: Dict[ElementCategory, Tuple[str, ...]] = {
    ElementCategory.STRUCTURAL: ("wall", "column", "beam", "slab", "foundation"),
    ElementCategory.OPENING: ("window", "door", "skylight", "opening"),
    ElementCategory.MECHANICAL: ("hvac", "duct", "pipe", "electrical", "fixture"),
    ElementCategory.ARCHITECTURAL: ("stairs", "elevator", "ramp", "balcony"),
    ElementCategory.ANNOTATION: ("dimension", "text", "symbol", "hatch", "leader"),
}


def categorize_type(element_type: str) -> ElementCategory:
    """First category whose vocabulary occurs in the type name"""
    lowered = (element_type or "").lower()
    for category, names in CATEGORY_VOCABULARY.items():
        if any(name in lowered for name in names):
            return category
    return ElementCategory.UNKNOWN


def parse_category(value: Optional[str], element_type: str) -> ElementCategory:
    """Explicit category if it is part of the vocabulary, otherwise inferred from the type"""
    if value:
        try:
            return ElementCategory(value.strip().lower())
        except ValueError:
            pass
    return categorize_type(element_type)


def unique_id(base: str, taken: set) -> str:
    """First of base, base_1, base_2, ... not in taken; the result is added to taken"""
    candidate = base
    suffix = 1
    while candidate in taken:
        candidate = f"{base}_{suffix}"
        suffix += 1
    taken.add(candidate)
    return candidate


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned box in pixel coordinates"""
    x: int
    y: int
    width: int
    height: int

    @classmethod
    def from_sequence(cls, values: Sequence[float]) -> "BoundingBox":
        x, y, w, h = (int(round(float(v))) for v in values)
        return cls(x, y, w, h)

    @property
    def x2(self) -> int:
        return self.x + self.width

    @property
    def y2(self) -> int:
        return self.y + self.height

    @property
    def area(self) -> int:
        return max(0, self.width) * max(0, self.height)

    def overlaps(self, other: "BoundingBox") -> bool:
        """Touching edges count as overlap"""
        return not (
            self.x2 < other.x
            or other.x2 < self.x
            or self.y2 < other.y
            or other.y2 < self.y
        )

    def clip(self, width: int, height: int) -> Optional["BoundingBox"]:
        """Intersection with the image rectangle, None when empty"""
        x1 = min(max(self.x, 0), width)
        y1 = min(max(self.y, 0), height)
        x2 = min(max(self.x2, 0), width)
        y2 = min(max(self.y2, 0), height)
        if x2 <= x1 or y2 <= y1:
            return None
        return BoundingBox(x1, y1, x2 - x1, y2 - y1)

    def to_list(self) -> List[int]:
        return [self.x, self.y, self.width, self.height]


@dataclass
class DetectedElement:
    """Represents a detected architectural element"""
    id: str
    element_type: str
    category: ElementCategory
    bbox: BoundingBox
    confidence: float
    properties: Dict[str, Any] = field(default_factory=dict)
    has_semantic_support: bool = False
    has_morphological_support: bool = False
    morphological_matches: int = 0
    # Shared references to the source components' pixel arrays, never copied
    pixel_boundaries: Optional[Tuple[np.ndarray, ...]] = field(default=None, repr=False)

    @property
    def pixel_count(self) -> int:
        if not self.pixel_boundaries:
            return 0
        return sum(len(p) for p in self.pixel_boundaries)

    def updated(self, **changes) -> "DetectedElement":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.element_type,
            "category": self.category.value,
            "bbox": self.bbox.to_list(),
            "confidence": self.confidence,
            "properties": dict(self.properties),
            "hasSemanticSupport": self.has_semantic_support,
            "hasMorphologicalSupport": self.has_morphological_support,
        }


@dataclass
class GeometricRules:
    """Heuristic thresholds for geometry-only classification"""
    wall_aspect_ratio: float = 5.0
    wall_confidence: float = 0.8
    column_aspect_ratio: float = 0.2
    column_confidence: float = 0.8
    square_aspect_min: float = 0.8
    square_aspect_max: float = 1.2
    square_column_max_area: int = 1000
    square_column_confidence: float = 0.7
    slab_min_area: int = 5000
    slab_confidence: float = 0.6
    default_confidence: float = 0.7


class ElementDetector:
    """
    Assigns a provisional type to connected components from their geometry.

    Rules, first match wins:
    - very wide (aspect > 5): wall
    - very tall (aspect < 0.2): column
    - roughly square and small: column
    - large area: slab
    - anything else: unknown

    Geometry alone cannot tell openings or fixtures apart, so every
    detection is filed under the structural category.
    """

    def __init__(self, rules: Optional[GeometricRules] = None):
        self.rules = rules or GeometricRules()

    def classify(self, component: ConnectedComponent) -> Tuple[str, float]:
        """(type, confidence) for one component"""
        r = self.rules
        aspect_ratio = component.aspect_ratio
        area = component.area

        if aspect_ratio > r.wall_aspect_ratio:
            return "wall", r.wall_confidence
        if aspect_ratio < r.column_aspect_ratio:
            return "column", r.column_confidence
        if r.square_aspect_min <= aspect_ratio <= r.square_aspect_max and area < r.square_column_max_area:
            return "column", r.square_column_confidence
        if area > r.slab_min_area:
            return "slab", r.slab_confidence
        return "unknown", r.default_confidence

    def detect(self, components: List[ConnectedComponent]) -> List[DetectedElement]:
        """
        Classify every component.

        Args:
            components: Size-filtered components from the labeler

        Returns:
            One element per component, in component order
        """
        elements = []
        for index, component in enumerate(components):
            element_type, confidence = self.classify(component)
            elements.append(DetectedElement(
                id=f"morph_{index}",
                element_type=element_type,
                category=ElementCategory.STRUCTURAL,
                bbox=BoundingBox(*component.bbox),
                confidence=confidence,
                properties={
                    "area": component.area,
                    "aspect_ratio": round(component.aspect_ratio, 2),
                    "pixel_count": component.area,
                },
                has_semantic_support=False,
                has_morphological_support=True,
                pixel_boundaries=(component.pixels,),
            ))

        logger.info(f"Geometric classification produced {len(elements)} elements")
        return elements
