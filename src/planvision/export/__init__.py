# Export module
# Output of analysis results:
# - JSON element list
# - Confidence map overlay (PNG)

from .confidence_map import ConfidenceMapGenerator, CATEGORY_COLORS
from .exporter import ResultExporter, ExportFormat

__all__ = ["ConfidenceMapGenerator", "CATEGORY_COLORS", "ResultExporter", "ExportFormat"]
