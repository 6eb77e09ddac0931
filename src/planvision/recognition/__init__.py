# Recognition module
# Detection of architectural elements:
# - Geometric classification of connected components
# - Semantic classification via a vision-language model
# - Merging both sources

from .element_detector import (
    BoundingBox,
    DetectedElement,
    ElementCategory,
    ElementDetector,
    GeometricRules,
)
from .integrator import DetectionIntegrator, IntegrationRules, IntegrationResult
from .semantic import SemanticClassifier, SemanticClassification, OllamaVisionClassifier

__all__ = [
    "BoundingBox",
    "DetectedElement",
    "ElementCategory",
    "ElementDetector",
    "GeometricRules",
    "DetectionIntegrator",
    "IntegrationRules",
    "IntegrationResult",
    "SemanticClassifier",
    "SemanticClassification",
    "OllamaVisionClassifier",
]
