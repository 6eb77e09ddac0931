"""
Pytest configuration and fixtures for plan analysis tests
"""
import io
import pytest
import sys
from pathlib import Path

import numpy as np
from PIL import Image

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

# Geometry of the synthetic plan, (x, y, w, h)
WALL_BOX = (10, 10, 60, 4)
COLUMN_BOX = (80, 30, 8, 8)


def _paint(image, box, value=0):
    x, y, w, h = box
    image[y:y + h, x:x + w] = value


@pytest.fixture
def plan_image():
    """100x60 white RGB drawing with one wall and one square column in black"""
    image = np.full((60, 100, 3), 255, dtype=np.uint8)
    _paint(image, WALL_BOX)
    _paint(image, COLUMN_BOX)
    return image


@pytest.fixture
def wall_only_image():
    """Same canvas with only the wall"""
    image = np.full((60, 100, 3), 255, dtype=np.uint8)
    _paint(image, WALL_BOX)
    return image


@pytest.fixture
def plan_png_bytes(plan_image):
    buffer = io.BytesIO()
    Image.fromarray(plan_image).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def output_dir(tmp_path):
    """Temporary output directory for tests"""
    output = tmp_path / "output"
    output.mkdir()
    return output


@pytest.fixture
def make_semantic_element():
    """Factory for classifier-sourced elements"""
    from planvision.recognition.element_detector import (
        BoundingBox, DetectedElement, ElementCategory,
    )

    def factory(id="sem_0", bbox=(0, 0, 20, 20), confidence=0.5, element_type="wall",
                category=ElementCategory.STRUCTURAL, properties=None):
        return DetectedElement(
            id=id,
            element_type=element_type,
            category=category,
            bbox=BoundingBox(*bbox),
            confidence=confidence,
            properties=properties or {},
            has_semantic_support=True,
            has_morphological_support=False,
        )

    return factory


@pytest.fixture
def make_classifier():
    """Factory for in-process classifiers returning fixed elements or raising"""
    from planvision.recognition.semantic import SemanticClassifier, SemanticClassification

    class StaticClassifier(SemanticClassifier):
        def __init__(self, elements=None, error=None, available=True):
            self.elements = elements or []
            self.error = error
            self.available = available
            self.calls = []

        @property
        def name(self):
            return "Static"

        def is_available(self):
            return self.available

        async def classify(self, image, prompt_context=None):
            self.calls.append((image.shape, prompt_context))
            if self.error is not None:
                raise self.error
            return SemanticClassification(
                elements=list(self.elements),
                analysis_confidence=0.8,
                legend_items=[{"symbol_type": "wall_symbol"}],
            )

    return StaticClassifier
