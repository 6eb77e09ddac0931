"""
Exception taxonomy for the analysis pipeline
"""


class PlanVisionError(Exception):
    """Base class for all planvision errors"""


class InvalidImageError(PlanVisionError):
    """Raster has zero/negative dimensions or an unreadable buffer"""


class DimensionMismatchError(PlanVisionError):
    """Two rasters that must share a size do not"""


class ConfigurationError(PlanVisionError):
    """Analysis configuration failed validation"""


class MorphologicalConfigError(ConfigurationError):
    """Even kernel size or non-positive iteration count"""


class ClassifierError(PlanVisionError):
    """Semantic classifier failed: timeout, transport error or bad response"""


class ClassifierTimeoutError(ClassifierError):
    """Semantic classifier did not answer within the configured timeout"""


class ClassifierResponseError(ClassifierError):
    """Semantic classifier answered with something that is not a valid element list"""
