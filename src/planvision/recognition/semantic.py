"""
Semantic Classifier Adapter - Labels plan regions with a vision-language model

The engine consumes any SemanticClassifier. OllamaVisionClassifier talks to
an Ollama server hosting a multimodal model (llava by default).
"""
from abc import ABC, abstractmethod
from typing import Optional, List, Dict, Any
from dataclasses import dataclass, field
import asyncio
import base64
import io
import json
import logging
import math
import re

import httpx
import numpy as np
from PIL import Image
from pydantic import BaseModel, Field, ValidationError, field_validator

from ..errors import ClassifierError, ClassifierResponseError, ClassifierTimeoutError
from .element_detector import BoundingBox, DetectedElement, parse_category, unique_id

logger = logging.getLogger(__name__)

JSON_BLOCK = re.compile(r"\{[\s\S]*\}")

BASE_PROMPT = """
You are an expert construction plan analyst.

TASK: Analyze this architectural/construction drawing and identify ALL building elements.

REQUIREMENTS:
1. Identify every visible building element regardless of size
2. Classify elements by what they are, not by how they look
3. A wall may span the whole drawing - report its full extent
4. Provide a bounding box in pixel coordinates for each element
5. Include a confidence score (0.0-1.0) for each detection
6. Assign each element one category

ELEMENT CATEGORIES:
- structural: walls, columns, beams, slabs, foundations
- opening: windows, doors, skylights, openings
- mechanical: HVAC ducts, pipes, electrical conduits, fixtures
- architectural: stairs, elevators, ramps, balconies
- annotation: dimensions, text, symbols, hatching, leaders

RESPONSE FORMAT (JSON only):
{
  "elements": [
    {
      "id": "unique_id",
      "type": "wall|window|door|column|beam|etc",
      "category": "structural|opening|mechanical|architectural|annotation",
      "bbox": [x, y, width, height],
      "confidence": 0.95,
      "properties": {"material": "concrete|steel|wood|glass|etc", "thickness": "mm"},
      "semantic_description": "what this element represents"
    }
  ],
  "legend_items": [
    {"symbol_type": "wall_symbol|window_symbol|etc", "bbox": [x, y, width, height], "represents": "meaning"}
  ],
  "analysis_confidence": 0.87
}
"""


def build_prompt(prompt_context: Optional[str] = None) -> str:
    """Base prompt plus an optional focus instruction"""
    if prompt_context:
        return BASE_PROMPT + f"\n\nSPECIAL FOCUS: Pay extra attention to {prompt_context} elements."
    return BASE_PROMPT


class SemanticElementPayload(BaseModel):
    """One element as returned by the model"""
    id: Optional[str] = None
    type: str
    category: Optional[str] = None
    bbox: List[float]
    confidence: float = 0.5
    properties: Dict[str, Any] = Field(default_factory=dict)
    semantic_description: Optional[str] = None

    @field_validator("bbox")
    @classmethod
    def check_bbox(cls, v):
        if len(v) != 4:
            raise ValueError(f"bbox needs 4 values, got {len(v)}")
        if not all(math.isfinite(value) for value in v):
            raise ValueError(f"bbox values must be finite, got {v}")
        if v[2] < 0 or v[3] < 0:
            raise ValueError("bbox width/height must be non-negative")
        return v

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp_confidence(cls, v):
        if v is None:
            return 0.5
        return min(1.0, max(0.0, float(v)))

    @field_validator("properties", mode="before")
    @classmethod
    def default_properties(cls, v):
        return v if v is not None else {}


class SemanticResponsePayload(BaseModel):
    """Top-level model response"""
    elements: List[SemanticElementPayload] = Field(default_factory=list)
    legend_items: List[Dict[str, Any]] = Field(default_factory=list)
    analysis_confidence: float = 0.5

    @field_validator("analysis_confidence", mode="before")
    @classmethod
    def clamp_analysis_confidence(cls, v):
        if v is None:
            return 0.5
        return min(1.0, max(0.0, float(v)))


@dataclass
class SemanticClassification:
    """Classifier output converted to engine elements"""
    elements: List[DetectedElement]
    analysis_confidence: float
    legend_items: List[Dict[str, Any]] = field(default_factory=list)
    raw_response: Optional[str] = None


def parse_response(text: str) -> SemanticClassification:
    """
    Extract the JSON element list from model output.

    Raises:
        ClassifierResponseError: no JSON object, invalid JSON, or schema violation
    """
    if not isinstance(text, str):
        raise ClassifierResponseError(f"Expected text response, got {type(text).__name__}")

    match = JSON_BLOCK.search(text)
    if not match:
        raise ClassifierResponseError("No JSON object in classifier response")

    try:
        payload = SemanticResponsePayload.model_validate(json.loads(match.group(0)))
    except json.JSONDecodeError as e:
        raise ClassifierResponseError(f"Invalid JSON in classifier response: {e}") from e
    except ValidationError as e:
        raise ClassifierResponseError(f"Classifier response failed validation: {e}") from e

    elements = []
    taken_ids = set()
    for index, item in enumerate(payload.elements):
        element_id = unique_id(item.id or f"sem_{index}", taken_ids)

        properties = dict(item.properties)
        if item.semantic_description:
            properties["semantic_description"] = item.semantic_description

        elements.append(DetectedElement(
            id=element_id,
            element_type=item.type.strip().lower(),
            category=parse_category(item.category, item.type),
            bbox=BoundingBox.from_sequence(item.bbox),
            confidence=item.confidence,
            properties=properties,
            has_semantic_support=True,
            has_morphological_support=False,
        ))

    return SemanticClassification(
        elements=elements,
        analysis_confidence=payload.analysis_confidence,
        legend_items=payload.legend_items,
        raw_response=text,
    )


def encode_png_base64(image: np.ndarray) -> str:
    """PNG-encode an RGB(A) or grayscale array for transport"""
    array = np.asarray(image)
    if array.dtype != np.uint8:
        array = np.clip(array, 0, 255).astype(np.uint8)
    if array.ndim == 3 and array.shape[2] == 1:
        array = array[:, :, 0]

    buffer = io.BytesIO()
    Image.fromarray(array).save(buffer, format="PNG")
    return base64.b64encode(buffer.getvalue()).decode("ascii")


class SemanticClassifier(ABC):
    """Base class for semantic classifiers"""

    @property
    @abstractmethod
    def name(self) -> str:
        """Classifier name"""
        pass

    @abstractmethod
    async def classify(self, image: np.ndarray, prompt_context: Optional[str] = None) -> SemanticClassification:
        """
        Label regions of the image.

        Raises:
            ClassifierError: on timeout, transport failure or malformed response
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check if classifier is usable (endpoint configured, model set, etc.)"""
        pass


class OllamaVisionClassifier(SemanticClassifier):
    """
    Semantic classifier backed by an Ollama multimodal model.

    Each request is bounded by ``timeout_ms``; timeouts and transport/HTTP
    errors are retried ``retries`` times with exponential backoff. A response
    that cannot be parsed is not retried.
    """

    def __init__(
        self,
        host: str = "http://localhost:11434",
        model: str = "llava:34b",
        timeout_ms: int = 30000,
        retries: int = 1,
        backoff_s: float = 0.5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.host = host.rstrip("/")
        self.model = model
        self.timeout_s = timeout_ms / 1000.0
        self.retries = max(0, retries)
        self.backoff_s = backoff_s
        self._transport = transport

    @property
    def name(self) -> str:
        return f"Ollama ({self.model})"

    def is_available(self) -> bool:
        return bool(self.host and self.model)

    async def classify(self, image: np.ndarray, prompt_context: Optional[str] = None) -> SemanticClassification:
        payload = {
            "model": self.model,
            "prompt": build_prompt(prompt_context),
            "images": [encode_png_base64(image)],
            "stream": False,
            "options": {
                "temperature": 0.1,
                "top_p": 0.9,
                "num_predict": 4096,
            },
        }

        text = await self._generate_with_retry(payload)
        result = parse_response(text)
        logger.info(f"{self.name} identified {len(result.elements)} semantic elements")
        return result

    async def _generate_with_retry(self, payload: Dict[str, Any]) -> str:
        attempts = self.retries + 1
        last_error: Optional[ClassifierError] = None

        for attempt in range(attempts):
            try:
                return await asyncio.wait_for(self._generate(payload), timeout=self.timeout_s)
            except (asyncio.TimeoutError, httpx.TimeoutException):
                last_error = ClassifierTimeoutError(
                    f"{self.name} did not respond within {self.timeout_s:.1f}s"
                )
            except httpx.HTTPError as e:
                last_error = ClassifierError(f"{self.name} request failed: {e}")

            if attempt < attempts - 1:
                delay = self.backoff_s * (2 ** attempt)
                logger.warning(f"{last_error}. Retrying in {delay:.1f}s...")
                await asyncio.sleep(delay)

        logger.error(f"{self.name} failed after {attempts} attempts: {last_error}")
        raise last_error

    async def _generate(self, payload: Dict[str, Any]) -> str:
        async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout_s) as client:
            response = await client.post(f"{self.host}/api/generate", json=payload)
            response.raise_for_status()

            try:
                data = response.json()
            except ValueError as e:
                raise ClassifierResponseError(f"Classifier returned non-JSON body: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("response"), str):
            raise ClassifierResponseError("Classifier body has no 'response' text")
        return data["response"]
