"""
Result Exporter - Writes analysis results to disk
"""
from pathlib import Path
from typing import Union, Optional, Dict
from enum import Enum
import json
import logging

from .confidence_map import ConfidenceMapGenerator

logger = logging.getLogger(__name__)


class ExportFormat(Enum):
    JSON = "json"         # Element list + metadata
    PNG = "png"           # Confidence map overlay


class ResultExporter:
    """
    Exports AnalysisResult to files.

    Supported formats:
    - JSON: wire format consumed by report/annotation renderers
    - PNG: RGBA confidence map
    """

    SUPPORTED_FORMATS = {f.value for f in ExportFormat}

    def __init__(self, output_dir: Union[str, Path] = None):
        self.output_dir = Path(output_dir) if output_dir else Path("./output")
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def export(self, result, filename: str, format: Union[ExportFormat, str]) -> Path:
        """
        Export result to specified format.

        Args:
            result: AnalysisResult to export
            filename: Output filename (without extension)
            format: Target format

        Returns:
            Path to exported file
        """
        if isinstance(format, str):
            try:
                format = ExportFormat(format.lower())
            except ValueError:
                raise ValueError(f"Unsupported format: {format}") from None

        if format == ExportFormat.JSON:
            output_path = self.output_dir / f"{filename}.json"
            output_path.write_text(json.dumps(result.to_dict(), indent=2))
        else:
            output_path = self.output_dir / f"{filename}_confidence.png"
            output_path.write_bytes(ConfidenceMapGenerator.to_png(result.confidence_map))

        logger.info(f"Exported {format.value}: {output_path}")
        return output_path

    def export_all(self, result, filename: str, formats: Optional[list] = None) -> Dict[str, Path]:
        formats = formats or [f.value for f in ExportFormat]
        return {fmt: self.export(result, filename, fmt) for fmt in formats}
