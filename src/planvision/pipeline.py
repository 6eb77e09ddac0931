"""
Pipeline Orchestrator - Runs one drawing through the hybrid detection workflow
"""
from typing import Optional, Callable, List, Dict, Any
from dataclasses import dataclass, field
from enum import Enum
import asyncio
import base64
import copy
import logging
import time

import numpy as np

from .cache import ResultCache, content_key
from .errors import ClassifierError, ConfigurationError
from .export.confidence_map import ConfidenceMapGenerator
from .ingestion.preprocessor import ImagePreprocessor, PreprocessingConfig, validate_image
from .morphology.components import ComponentLabeler
from .morphology.mask import build_binary_mask
from .morphology.operations import MorphologicalProcessor, validate_kernel_size
from .recognition.element_detector import DetectedElement, ElementDetector, GeometricRules
from .recognition.integrator import DetectionIntegrator, IntegrationRules, sort_by_relevance
from .recognition.semantic import SemanticClassifier, SemanticClassification

logger = logging.getLogger(__name__)

QUALITY_RANK = {"low": 0, "medium": 1, "high": 2}


class PipelineStage(Enum):
    PREPROCESSING = "preprocessing"
    MORPHOLOGY = "morphology"
    LABELING = "labeling"
    GEOMETRIC = "geometric"
    SEMANTIC = "semantic"
    INTEGRATION = "integration"
    ASSEMBLY = "assembly"


@dataclass
class AnalysisConfig:
    """Validated configuration for one engine; built once, reused per run"""
    # Preprocessing
    contrast_gain: float = 1.2
    max_width: int = 4096
    max_height: int = 4096

    # Mask + morphology
    threshold: int = 180
    kernel_size: int = 3
    closing_iterations: int = 2

    # Component filtering
    min_element_size: int = 50
    max_element_size: int = 100000

    # Semantic classifier
    classifier_timeout_ms: int = 30000
    classifier_retries: int = 1
    retry_backoff_s: float = 0.5

    # Downstream consumers only, not gating here
    confidence_threshold: float = 0.6

    # Heuristic tuning
    geometric: GeometricRules = field(default_factory=GeometricRules)
    integration: IntegrationRules = field(default_factory=IntegrationRules)

    def __post_init__(self):
        self.validate()

    def validate(self):
        """Raise ConfigurationError (MorphologicalConfigError for morphology) on bad values"""
        validate_kernel_size(self.kernel_size)
        # MorphologicalProcessor owns the iteration check
        MorphologicalProcessor(self.kernel_size, self.closing_iterations)

        if not 0 <= self.threshold <= 256:
            raise ConfigurationError(f"threshold must be within 0-256, got {self.threshold}")
        if self.contrast_gain <= 0:
            raise ConfigurationError(f"contrast_gain must be positive, got {self.contrast_gain}")
        if self.max_width <= 0 or self.max_height <= 0:
            raise ConfigurationError(f"max size must be positive, got {self.max_width}x{self.max_height}")
        if self.min_element_size < 0 or self.max_element_size < self.min_element_size:
            raise ConfigurationError(
                f"element size bounds invalid: min={self.min_element_size} max={self.max_element_size}"
            )
        if self.classifier_timeout_ms <= 0:
            raise ConfigurationError(f"classifier_timeout_ms must be positive, got {self.classifier_timeout_ms}")
        if self.classifier_retries < 0 or self.retry_backoff_s < 0:
            raise ConfigurationError("classifier retries and backoff must be non-negative")
        if not 0.0 <= self.confidence_threshold <= 1.0:
            raise ConfigurationError(f"confidence_threshold must be within 0-1, got {self.confidence_threshold}")

    @classmethod
    def from_settings(cls, settings=None, **overrides) -> "AnalysisConfig":
        """Build from process settings, with per-call overrides"""
        if settings is None:
            from .config import settings
        values = dict(
            contrast_gain=settings.contrast_gain,
            max_width=settings.max_image_size,
            max_height=settings.max_image_size,
            threshold=settings.threshold,
            kernel_size=settings.kernel_size,
            closing_iterations=settings.closing_iterations,
            min_element_size=settings.min_element_size,
            max_element_size=settings.max_element_size,
            classifier_timeout_ms=settings.classifier_timeout_ms,
            classifier_retries=settings.classifier_retries,
            confidence_threshold=settings.confidence_threshold,
        )
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def preprocessing(self) -> PreprocessingConfig:
        return PreprocessingConfig(
            contrast_gain=self.contrast_gain,
            max_width=self.max_width,
            max_height=self.max_height,
        )


@dataclass
class ProcessingMetadata:
    """Counts and diagnostics for one analysis run"""
    semantic_count: int = 0
    morphological_count: int = 0
    merged_count: int = 0
    quality_tier: str = "low"
    semantic_supported: int = 0
    components_found: int = 0
    components_filtered: int = 0
    orphans_dropped: int = 0
    semantic_discarded: int = 0
    analysis_confidence: Optional[float] = None
    legend_items: List[Dict[str, Any]] = field(default_factory=list)
    classifier: Optional[str] = None
    degraded: bool = False
    warnings: List[str] = field(default_factory=list)
    timing: Dict[str, float] = field(default_factory=dict)
    image_size: Optional[List[int]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "semanticCount": self.semantic_count,
            "morphologicalCount": self.morphological_count,
            "mergedCount": self.merged_count,
            "qualityTier": self.quality_tier,
            "semanticSupported": self.semantic_supported,
            "componentsFound": self.components_found,
            "componentsFiltered": self.components_filtered,
            "orphansDropped": self.orphans_dropped,
            "semanticDiscarded": self.semantic_discarded,
            "analysisConfidence": self.analysis_confidence,
            "legendItems": self.legend_items,
            "classifier": self.classifier,
            "degraded": self.degraded,
            "warnings": list(self.warnings),
            "timing": dict(self.timing),
            "imageSize": self.image_size,
        }


@dataclass
class AnalysisResult:
    """Result of analysing one drawing"""
    elements: List[DetectedElement]
    average_confidence: float  # 0-100
    confidence_map: np.ndarray  # H x W x 4, uint8
    processing_metadata: ProcessingMetadata

    def to_dict(self, include_map: bool = False) -> Dict[str, Any]:
        data = {
            "elements": [e.to_dict() for e in self.elements],
            "averageConfidence": self.average_confidence,
            "processingMetadata": self.processing_metadata.to_dict(),
        }
        if include_map:
            png = ConfidenceMapGenerator.to_png(self.confidence_map)
            data["confidenceMap"] = base64.b64encode(png).decode("ascii")
        return data


def quality_tier(average_confidence: float) -> str:
    if average_confidence > 70:
        return "high"
    if average_confidence > 50:
        return "medium"
    return "low"


def cap_tier(tier: str, ceiling: str) -> str:
    return tier if QUALITY_RANK[tier] <= QUALITY_RANK[ceiling] else ceiling


def assemble_result(
    elements: List[DetectedElement],
    width: int,
    height: int,
    metadata: ProcessingMetadata,
    map_generator: Optional[ConfidenceMapGenerator] = None,
) -> AnalysisResult:
    """Summary statistics and confidence map for an already ordered element list"""
    generator = map_generator or ConfidenceMapGenerator()

    average = float(np.mean([e.confidence for e in elements]) * 100) if elements else 0.0
    tier = quality_tier(average)
    if metadata.degraded:
        tier = cap_tier(tier, "medium")

    metadata.merged_count = len(elements)
    metadata.quality_tier = tier
    metadata.image_size = [width, height]

    return AnalysisResult(
        elements=elements,
        average_confidence=average,
        confidence_map=generator.generate(elements, width, height),
        processing_metadata=metadata,
    )


class AnalysisEngine:
    """
    Hybrid element detection for one raster drawing per call.

    Stages:
    1. Preprocessing: clamp size, grayscale, contrast stretch
    2. Morphology: binary mask, closing x N, opening
    3. Labeling: 8-connected components, size filtering
    4. Geometric: classify components by shape
    5. Semantic: external classifier (the only await point)
    6. Integration: merge, boost, demote orphans, order
    7. Assembly: averages, quality tier, confidence map

    A failing classifier does not fail the run: the result falls back to
    geometric detections and the failure is reported in the metadata.
    """

    def __init__(
        self,
        config: Optional[AnalysisConfig] = None,
        classifier: Optional[SemanticClassifier] = None,
        cache: Optional[ResultCache] = None,
    ):
        self.config = config or AnalysisConfig()
        self.classifier = classifier
        self.cache = cache
        self._progress_callback: Optional[Callable] = None

    def set_progress_callback(self, callback: Callable[[PipelineStage, float, str], None]):
        """
        Set callback for progress updates.

        Callback signature: (stage: PipelineStage, progress: float, message: str)
        """
        self._progress_callback = callback

    def _report_progress(self, stage: PipelineStage, progress: float, message: str):
        if self._progress_callback:
            self._progress_callback(stage, progress, message)

    async def analyze(self, image, prompt_context: Optional[str] = None) -> AnalysisResult:
        """
        Detect elements in a decoded RGB/RGBA raster.

        Args:
            image: H x W x 3/4 (or H x W grayscale) pixel array
            prompt_context: Optional focus hint forwarded to the classifier

        Returns:
            AnalysisResult

        Raises:
            InvalidImageError: empty or unreadable raster
        """
        array = validate_image(image)

        key = None
        if self.cache is not None:
            key = content_key(array, self.config, prompt_context)
            cached = self.cache.get(key)
            if cached is not None:
                logger.info("Returning cached analysis result")
                return copy.deepcopy(cached)

        cfg = self.config
        metadata = ProcessingMetadata()
        timing = metadata.timing
        start = time.perf_counter()

        # Stage 1: Preprocessing
        t0 = time.perf_counter()
        self._report_progress(PipelineStage.PREPROCESSING, 0.0, "Preprocessing image...")
        preprocessed = ImagePreprocessor(cfg.preprocessing()).process(array)
        raster = preprocessed.raster
        timing[PipelineStage.PREPROCESSING.value] = time.perf_counter() - t0

        # Stage 2: Morphology
        t0 = time.perf_counter()
        self._report_progress(PipelineStage.MORPHOLOGY, 0.0, "Cleaning binary mask...")
        mask = build_binary_mask(raster, cfg.threshold)
        processed = MorphologicalProcessor(cfg.kernel_size, cfg.closing_iterations).process(mask)
        timing[PipelineStage.MORPHOLOGY.value] = time.perf_counter() - t0

        # Stage 3: Labeling
        t0 = time.perf_counter()
        self._report_progress(PipelineStage.LABELING, 0.0, "Labeling components...")
        labeling = ComponentLabeler(cfg.min_element_size, cfg.max_element_size).label(processed)
        metadata.components_found = labeling.total_found
        metadata.components_filtered = labeling.filtered_count
        timing[PipelineStage.LABELING.value] = time.perf_counter() - t0

        # Stage 4: Geometric classification
        t0 = time.perf_counter()
        geometric = ElementDetector(cfg.geometric).detect(labeling.components)
        metadata.morphological_count = len(geometric)
        timing[PipelineStage.GEOMETRIC.value] = time.perf_counter() - t0

        # Stage 5: Semantic classification
        t0 = time.perf_counter()
        self._report_progress(PipelineStage.SEMANTIC, 0.0, "Querying semantic classifier...")
        semantic = await self._classify(preprocessed, prompt_context, metadata)
        timing[PipelineStage.SEMANTIC.value] = time.perf_counter() - t0

        # Stage 6: Integration
        t0 = time.perf_counter()
        if semantic is None:
            elements = sort_by_relevance(geometric, cfg.integration.support_bonus)
        else:
            candidates = self._clip_to_image(semantic.elements, raster.width, raster.height, metadata)
            metadata.semantic_count = len(candidates)
            merged = DetectionIntegrator(cfg.integration).integrate(candidates, geometric)
            metadata.semantic_supported = merged.semantic_supported
            metadata.orphans_dropped = merged.orphans_dropped
            elements = merged.elements
        timing[PipelineStage.INTEGRATION.value] = time.perf_counter() - t0

        # Stage 7: Assembly
        t0 = time.perf_counter()
        result = assemble_result(elements, raster.width, raster.height, metadata)
        timing[PipelineStage.ASSEMBLY.value] = time.perf_counter() - t0
        self._report_progress(PipelineStage.ASSEMBLY, 1.0, "Analysis complete")

        elapsed = time.perf_counter() - start
        logger.info(
            f"Analysis complete in {elapsed:.2f}s: {len(elements)} elements, "
            f"average confidence {result.average_confidence:.1f}%, tier {metadata.quality_tier}"
        )

        # Degraded runs are retried against the classifier next time
        if key is not None and not metadata.degraded:
            self.cache.put(key, copy.deepcopy(result))
        return result

    def analyze_sync(self, image, prompt_context: Optional[str] = None) -> AnalysisResult:
        """Blocking wrapper for callers without an event loop"""
        return asyncio.run(self.analyze(image, prompt_context))

    async def _classify(
        self,
        preprocessed,
        prompt_context: Optional[str],
        metadata: ProcessingMetadata,
    ) -> Optional[SemanticClassification]:
        """Classifier output, or None after recording why the run is degraded"""
        if self.classifier is None or not self.classifier.is_available():
            metadata.degraded = True
            metadata.warnings.append("Semantic classifier unavailable; using geometric detections only")
            logger.warning(metadata.warnings[-1])
            return None

        metadata.classifier = self.classifier.name
        try:
            semantic = await self.classifier.classify(preprocessed.source, prompt_context)
        except ClassifierError as e:
            metadata.degraded = True
            metadata.warnings.append(f"{type(e).__name__}: {e}")
            logger.warning(f"Semantic classification failed, falling back to geometry: {e}")
            return None

        metadata.analysis_confidence = semantic.analysis_confidence
        metadata.legend_items = list(semantic.legend_items)
        return semantic

    @staticmethod
    def _clip_to_image(
        elements: List[DetectedElement],
        width: int,
        height: int,
        metadata: ProcessingMetadata,
    ) -> List[DetectedElement]:
        """Keep classifier boxes inside the raster; drop boxes that fall entirely outside"""
        kept = []
        for element in elements:
            box = element.bbox.clip(width, height)
            if box is None:
                metadata.semantic_discarded += 1
                continue
            kept.append(element if box == element.bbox else element.updated(bbox=box))

        if metadata.semantic_discarded:
            logger.warning(f"Discarded {metadata.semantic_discarded} semantic elements outside the image")
        return kept
