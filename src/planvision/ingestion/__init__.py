# Ingestion module
# Loads raster drawings and prepares them for analysis:
# - Images (PNG, JPG, TIFF, BMP)
# - Grayscale conversion and contrast stretch

from .loader import DocumentLoader, LoadedDocument
from .preprocessor import ImagePreprocessor, PreprocessingConfig, PreprocessedImage, RasterImage

__all__ = [
    "DocumentLoader",
    "LoadedDocument",
    "ImagePreprocessor",
    "PreprocessingConfig",
    "PreprocessedImage",
    "RasterImage",
]
