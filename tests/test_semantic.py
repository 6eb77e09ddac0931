"""
Tests for the semantic classifier adapter
"""
import asyncio
import base64
import json

import httpx
import numpy as np
import pytest


RESPONSE = {
    "elements": [
        {
            "id": "w1",
            "type": "Wall",
            "category": "structural",
            "bbox": [10, 10, 60, 4],
            "confidence": 0.9,
            "properties": {"material": "concrete", "thickness": "200"},
            "semantic_description": "exterior wall",
        },
        {"type": "door", "bbox": [30.4, 20.6, 10, 12], "confidence": 1.7},
        {"id": "w1", "type": "duct", "category": "plumbing", "bbox": [0, 0, 5, 5], "confidence": None},
    ],
    "legend_items": [{"symbol_type": "wall_symbol", "bbox": [0, 0, 5, 5], "represents": "wall"}],
    "analysis_confidence": 0.87,
}


def _ollama_handler(text, status=200, calls=None, delay=0.0):
    async def handler(request):
        if calls is not None:
            calls.append(json.loads(request.content))
        if delay:
            await asyncio.sleep(delay)
        if status != 200:
            return httpx.Response(status, text="server error")
        return httpx.Response(200, json={"model": "llava:34b", "response": text, "done": True})
    return handler


class TestResponseParsing:
    """Test conversion of model output to elements"""

    def test_parse_embedded_json(self):
        from planvision.recognition.semantic import parse_response
        from planvision.recognition.element_detector import ElementCategory

        text = "Here is the analysis:\n" + json.dumps(RESPONSE) + "\nLet me know if you need more."
        result = parse_response(text)

        assert len(result.elements) == 3
        wall, door, duct = result.elements

        assert wall.id == "w1"
        assert wall.element_type == "wall"
        assert wall.category == ElementCategory.STRUCTURAL
        assert wall.bbox.to_list() == [10, 10, 60, 4]
        assert wall.properties["material"] == "concrete"
        assert wall.properties["semantic_description"] == "exterior wall"
        assert wall.has_semantic_support is True
        assert wall.has_morphological_support is False

        assert door.id == "sem_1"
        assert door.category == ElementCategory.OPENING
        assert door.confidence == 1.0
        assert door.bbox.to_list() == [30, 21, 10, 12]

        assert duct.id == "w1_1"
        assert duct.category == ElementCategory.MECHANICAL
        assert duct.confidence == 0.5

        assert result.analysis_confidence == 0.87
        assert result.legend_items[0]["symbol_type"] == "wall_symbol"

    def test_duplicate_ids_made_unique(self):
        from planvision.recognition.semantic import parse_response

        elements = [{"id": i, "type": "wall", "bbox": [0, 0, 5, 5]} for i in ("a_1", "a", "a")]
        result = parse_response(json.dumps({"elements": elements}))

        assert [e.id for e in result.elements] == ["a_1", "a", "a_2"]

    @pytest.mark.parametrize("bbox", ["[NaN, 0, 10, 10]", "[0, 0, Infinity, 10]", "[0, -Infinity, 10, 10]"])
    def test_non_finite_bbox(self, bbox):
        from planvision.recognition.semantic import parse_response
        from planvision.errors import ClassifierResponseError

        with pytest.raises(ClassifierResponseError):
            parse_response('{"elements": [{"type": "wall", "bbox": %s, "confidence": 0.9}]}' % bbox)

    def test_empty_element_list(self):
        from planvision.recognition.semantic import parse_response

        result = parse_response('{"elements": []}')
        assert result.elements == []
        assert result.analysis_confidence == 0.5

    @pytest.mark.parametrize("text", [
        "I could not find any building elements.",
        "{not json}",
        '{"elements": [{"type": "wall", "bbox": [1, 2, 3]}]}',
        '{"elements": [{"type": "wall", "bbox": [1, 2, -3, 4]}]}',
        '{"elements": [{"bbox": [1, 2, 3, 4]}]}',
        '{"elements": [{"type": "wall", "bbox": [1, 2, 3, 4], "confidence": "high"}]}',
    ])
    def test_malformed_response(self, text):
        from planvision.recognition.semantic import parse_response
        from planvision.errors import ClassifierResponseError

        with pytest.raises(ClassifierResponseError):
            parse_response(text)

    def test_prompt_focus(self):
        from planvision.recognition.semantic import build_prompt

        assert "SPECIAL FOCUS" not in build_prompt()
        assert "Pay extra attention to opening elements" in build_prompt("opening")


class TestOllamaVisionClassifier:
    """Test the HTTP adapter with a mocked transport"""

    async def test_classify(self, plan_image):
        from planvision.recognition.semantic import OllamaVisionClassifier

        calls = []
        classifier = OllamaVisionClassifier(
            host="http://ollama.test/",
            transport=httpx.MockTransport(_ollama_handler(json.dumps(RESPONSE), calls=calls)),
        )
        result = await classifier.classify(plan_image, "structural")

        assert len(result.elements) == 3
        assert len(calls) == 1
        payload = calls[0]
        assert payload["model"] == "llava:34b"
        assert payload["stream"] is False
        assert "SPECIAL FOCUS" in payload["prompt"]
        assert base64.b64decode(payload["images"][0]).startswith(b"\x89PNG")

    def test_availability(self):
        from planvision.recognition.semantic import OllamaVisionClassifier

        assert OllamaVisionClassifier().is_available() is True
        assert OllamaVisionClassifier(model="").is_available() is False
        assert OllamaVisionClassifier(model="llava:13b").name == "Ollama (llava:13b)"

    async def test_timeout_retries_once(self, plan_image):
        from planvision.recognition.semantic import OllamaVisionClassifier
        from planvision.errors import ClassifierTimeoutError

        calls = []
        classifier = OllamaVisionClassifier(
            timeout_ms=50,
            retries=1,
            backoff_s=0,
            transport=httpx.MockTransport(_ollama_handler("{}", calls=calls, delay=1.0)),
        )
        with pytest.raises(ClassifierTimeoutError):
            await classifier.classify(plan_image)
        assert len(calls) == 2

    async def test_http_error_then_success(self, plan_image):
        from planvision.recognition.semantic import OllamaVisionClassifier

        calls = []
        good = _ollama_handler(json.dumps(RESPONSE))
        bad = _ollama_handler("", status=503)

        async def handler(request):
            calls.append(request)
            return await (bad if len(calls) == 1 else good)(request)

        classifier = OllamaVisionClassifier(backoff_s=0, transport=httpx.MockTransport(handler))
        result = await classifier.classify(plan_image)

        assert len(calls) == 2
        assert len(result.elements) == 3

    async def test_http_error_exhausts_retries(self, plan_image):
        from planvision.recognition.semantic import OllamaVisionClassifier
        from planvision.errors import ClassifierError, ClassifierTimeoutError

        calls = []
        classifier = OllamaVisionClassifier(
            retries=2,
            backoff_s=0,
            transport=httpx.MockTransport(_ollama_handler("", status=500, calls=calls)),
        )
        with pytest.raises(ClassifierError) as exc_info:
            await classifier.classify(plan_image)
        assert not isinstance(exc_info.value, ClassifierTimeoutError)
        assert len(calls) == 3

    async def test_bad_response_not_retried(self, plan_image):
        from planvision.recognition.semantic import OllamaVisionClassifier
        from planvision.errors import ClassifierResponseError

        calls = []
        classifier = OllamaVisionClassifier(
            backoff_s=0,
            transport=httpx.MockTransport(_ollama_handler("no json here", calls=calls)),
        )
        with pytest.raises(ClassifierResponseError):
            await classifier.classify(plan_image)
        assert len(calls) == 1

    async def test_body_without_response_text(self, plan_image):
        from planvision.recognition.semantic import OllamaVisionClassifier
        from planvision.errors import ClassifierResponseError

        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"error": "model not found"}))
        classifier = OllamaVisionClassifier(transport=transport)

        with pytest.raises(ClassifierResponseError):
            await classifier.classify(plan_image)

    def test_encode_grayscale(self):
        from planvision.recognition.semantic import encode_png_base64

        encoded = encode_png_base64(np.zeros((4, 4), dtype=np.float64))
        assert base64.b64decode(encoded).startswith(b"\x89PNG")
