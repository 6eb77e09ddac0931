"""
Document Loader - Reads raster drawings from disk
"""
from pathlib import Path
from typing import Union
from dataclasses import dataclass
from enum import Enum
import io
import logging

import numpy as np
from PIL import Image, UnidentifiedImageError

from ..errors import InvalidImageError

logger = logging.getLogger(__name__)


class InputFormat(Enum):
    PNG = "png"
    JPG = "jpg"
    JPEG = "jpeg"
    TIFF = "tiff"
    BMP = "bmp"
    UNKNOWN = "unknown"


@dataclass
class LoadedDocument:
    """Container for loaded document data"""
    filepath: Path
    format: InputFormat
    image: np.ndarray  # H x W x 3 (RGB) or H x W x 4 (RGBA)
    metadata: dict


class DocumentLoader:
    """
    Loader for raster drawings.

    Supported formats: PNG, JPG, TIFF, BMP via Pillow. PDF rasterization
    is left to an upstream converter.
    """

    SUPPORTED_EXTENSIONS = {'.png', '.jpg', '.jpeg', '.tiff', '.tif', '.bmp'}

    def load(self, filepath: Union[str, Path]) -> LoadedDocument:
        """Load a document from file path"""
        filepath = Path(filepath)

        if not filepath.exists():
            raise FileNotFoundError(f"File not found: {filepath}")

        ext = filepath.suffix.lower()
        if ext not in self.SUPPORTED_EXTENSIONS:
            raise ValueError(f"Unsupported format: {ext}")

        logger.info(f"Loading image: {filepath}")
        return self.load_bytes(filepath.read_bytes(), filepath=filepath)

    def load_bytes(self, data: bytes, filepath: Union[str, Path, None] = None) -> LoadedDocument:
        """Decode an in-memory image"""
        try:
            with Image.open(io.BytesIO(data)) as img:
                img.load()
                source_mode = img.mode
                converted = img.convert("RGBA" if "A" in img.getbands() else "RGB")
        except (UnidentifiedImageError, OSError) as e:
            raise InvalidImageError(f"Cannot decode image: {e}") from e

        path = Path(filepath) if filepath else Path("upload")
        image = np.array(converted)

        return LoadedDocument(
            filepath=path,
            format=self._detect_format(path),
            image=image,
            metadata={
                "mode": source_mode,
                "width": image.shape[1],
                "height": image.shape[0],
            },
        )

    def _detect_format(self, filepath: Path) -> InputFormat:
        """Detect file format from extension"""
        ext = filepath.suffix.lower().lstrip('.')
        try:
            return InputFormat(ext)
        except ValueError:
            if ext == 'tif':
                return InputFormat.TIFF
            return InputFormat.UNKNOWN
