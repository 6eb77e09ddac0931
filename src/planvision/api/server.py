"""
FastAPI Server - REST API for plan analysis
"""
from typing import Optional
import asyncio
import logging

from fastapi import FastAPI, File, UploadFile, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from ..cache import ResultCache
from ..config import settings
from ..errors import ConfigurationError, InvalidImageError
from ..ingestion.loader import DocumentLoader
from ..pipeline import AnalysisConfig, AnalysisEngine
from ..recognition.semantic import OllamaVisionClassifier, SemanticClassifier

logger = logging.getLogger(__name__)

_UNSET = object()


def default_classifier() -> Optional[SemanticClassifier]:
    """Classifier configured through settings, or None when disabled"""
    if not settings.classifier_enabled:
        return None
    return OllamaVisionClassifier(
        host=settings.ollama_host,
        model=settings.ollama_model,
        timeout_ms=settings.classifier_timeout_ms,
        retries=settings.classifier_retries,
    )


def create_app(classifier=_UNSET, cache: Optional[ResultCache] = None) -> FastAPI:
    """Create and configure FastAPI application"""

    app = FastAPI(
        title="Plan Vision API",
        description="Detect structural elements in rasterized technical drawings",
        version="0.1.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.classifier = default_classifier() if classifier is _UNSET else classifier
    app.state.cache = cache or ResultCache(max_entries=settings.cache_max_entries)
    app.state.loader = DocumentLoader()

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        classifier = app.state.classifier
        return {
            "status": "healthy",
            "version": "0.1.0",
            "classifier": classifier.name if classifier else None,
        }

    @app.post("/analyze")
    async def analyze(
        file: UploadFile = File(...),
        threshold: Optional[int] = None,
        kernel_size: Optional[int] = None,
        closing_iterations: Optional[int] = None,
        min_element_size: Optional[int] = None,
        max_element_size: Optional[int] = None,
        focus_area: Optional[str] = None,
        include_map: bool = False,
    ):
        """
        Upload a rasterized drawing and detect its elements.

        - **file**: PNG, JPG, TIFF or BMP image
        - **threshold** / **kernel_size** / **closing_iterations**: morphology overrides
        - **min_element_size** / **max_element_size**: component size bounds (pixels)
        - **focus_area**: hint forwarded to the semantic classifier
        - **include_map**: embed the confidence map as base64 PNG
        """
        try:
            config = AnalysisConfig.from_settings(
                settings,
                threshold=threshold,
                kernel_size=kernel_size,
                closing_iterations=closing_iterations,
                min_element_size=min_element_size,
                max_element_size=max_element_size,
            )
        except ConfigurationError as e:
            raise HTTPException(status_code=422, detail=str(e))

        data = await file.read()
        try:
            document = await asyncio.to_thread(app.state.loader.load_bytes, data, file.filename)
            engine = AnalysisEngine(config, classifier=app.state.classifier, cache=app.state.cache)
            # Morphology and labeling are CPU-bound; keep them off the event loop
            result = await asyncio.to_thread(engine.analyze_sync, document.image, focus_area)
        except InvalidImageError as e:
            raise HTTPException(status_code=400, detail=str(e))

        logger.info(f"Analyzed {file.filename}: {len(result.elements)} elements")
        return result.to_dict(include_map=include_map)

    return app


app = create_app()
