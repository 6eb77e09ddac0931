"""
Tests for confidence maps and result export
"""
import io
import json

import numpy as np
import pytest
from PIL import Image


def _element(make_semantic_element, category, bbox, confidence, id="e"):
    return make_semantic_element(id=id, bbox=bbox, confidence=confidence, category=category)


class TestConfidenceMapGenerator:
    """Test overlay rendering"""

    def test_colors_and_alpha(self, make_semantic_element):
        from planvision.export import ConfidenceMapGenerator
        from planvision.recognition.element_detector import ElementCategory

        elements = [
            _element(make_semantic_element, ElementCategory.STRUCTURAL, (0, 0, 2, 2), 0.5),
            _element(make_semantic_element, ElementCategory.OPENING, (4, 0, 2, 2), 1.0),
            _element(make_semantic_element, ElementCategory.MECHANICAL, (0, 4, 2, 2), 0.8),
            _element(make_semantic_element, ElementCategory.ANNOTATION, (4, 4, 2, 2), 0.3),
        ]
        canvas = ConfidenceMapGenerator().generate(elements, 8, 6)

        assert canvas.shape == (6, 8, 4)
        assert canvas.dtype == np.uint8
        assert tuple(canvas[0, 0]) == (0x00, 0xFF, 0x88, 127)
        assert tuple(canvas[1, 5]) == (0xFF, 0xB8, 0x00, 255)
        assert tuple(canvas[5, 1]) == (0xFF, 0x6B, 0x35, 204)
        assert tuple(canvas[4, 4]) == (0x00, 0xD9, 0xFF, 76)
        assert tuple(canvas[3, 3]) == (0, 0, 0, 0)

    def test_later_elements_overwrite(self, make_semantic_element):
        from planvision.export import ConfidenceMapGenerator
        from planvision.recognition.element_detector import ElementCategory

        elements = [
            _element(make_semantic_element, ElementCategory.STRUCTURAL, (0, 0, 4, 4), 0.9),
            _element(make_semantic_element, ElementCategory.OPENING, (2, 2, 4, 4), 0.4),
        ]
        canvas = ConfidenceMapGenerator().generate(elements, 6, 6)

        assert tuple(canvas[0, 0]) == (0x00, 0xFF, 0x88, 229)
        assert tuple(canvas[3, 3]) == (0xFF, 0xB8, 0x00, 102)

    def test_boxes_clipped(self, make_semantic_element):
        from planvision.export import ConfidenceMapGenerator
        from planvision.recognition.element_detector import ElementCategory

        elements = [
            _element(make_semantic_element, ElementCategory.STRUCTURAL, (3, 3, 10, 10), 1.0),
            _element(make_semantic_element, ElementCategory.STRUCTURAL, (50, 50, 5, 5), 1.0),
        ]
        canvas = ConfidenceMapGenerator().generate(elements, 5, 5)

        assert canvas[3:, 3:, 3].min() == 255
        assert canvas[:3, :, 3].max() == 0

    def test_to_png(self, make_semantic_element):
        from planvision.export import ConfidenceMapGenerator
        from planvision.recognition.element_detector import ElementCategory

        generator = ConfidenceMapGenerator()
        canvas = generator.generate(
            [_element(make_semantic_element, ElementCategory.STRUCTURAL, (1, 1, 2, 2), 0.5)], 4, 4
        )
        decoded = Image.open(io.BytesIO(generator.to_png(canvas)))

        assert decoded.mode == "RGBA"
        assert np.array_equal(np.asarray(decoded), canvas)


class TestResultExporter:
    """Test writing results to disk"""

    @pytest.fixture
    def result(self, plan_image):
        from planvision.pipeline import AnalysisEngine

        return AnalysisEngine().analyze_sync(plan_image)

    def test_export_json(self, result, output_dir):
        from planvision.export import ResultExporter, ExportFormat

        path = ResultExporter(output_dir).export(result, "plan", ExportFormat.JSON)

        assert path == output_dir / "plan.json"
        data = json.loads(path.read_text())
        assert len(data["elements"]) == 2
        assert data["processingMetadata"]["degraded"] is True

    def test_export_png(self, result, output_dir):
        from planvision.export import ResultExporter

        path = ResultExporter(output_dir).export(result, "plan", "PNG")

        assert path.name == "plan_confidence.png"
        with Image.open(path) as image:
            assert image.size == (100, 60)

    def test_export_all(self, result, output_dir):
        from planvision.export import ResultExporter

        paths = ResultExporter(output_dir).export_all(result, "plan")
        assert set(paths) == {"json", "png"}
        assert all(p.exists() for p in paths.values())

    def test_unsupported_format(self, result, output_dir):
        from planvision.export import ResultExporter

        with pytest.raises(ValueError, match="Unsupported format"):
            ResultExporter(output_dir).export(result, "plan", "dxf")
