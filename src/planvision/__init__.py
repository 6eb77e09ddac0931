"""
planvision - hybrid raster element detection for technical drawings
"""
from .errors import (
    PlanVisionError,
    InvalidImageError,
    ClassifierError,
    ConfigurationError,
    MorphologicalConfigError,
)
from .pipeline import AnalysisConfig, AnalysisEngine, AnalysisResult, ProcessingMetadata
from .cache import ResultCache

__version__ = "0.1.0"

__all__ = [
    "PlanVisionError",
    "InvalidImageError",
    "ClassifierError",
    "ConfigurationError",
    "MorphologicalConfigError",
    "AnalysisConfig",
    "AnalysisEngine",
    "AnalysisResult",
    "ProcessingMetadata",
    "ResultCache",
]
