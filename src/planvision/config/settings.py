"""
Application settings and configuration
"""
from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Process-level defaults, overridable through PLANVISION_* env vars"""

    # Paths
    output_dir: Path = Field(default_factory=lambda: Path.cwd() / "output")

    # API Server
    api_host: str = "0.0.0.0"
    api_port: int = 7001

    # Preprocessing
    max_image_size: int = 4096  # Max dimension in pixels
    contrast_gain: float = 1.2

    # Morphology
    threshold: int = 180
    kernel_size: int = 3
    closing_iterations: int = 2
    min_element_size: int = 50
    max_element_size: int = 100000

    # Semantic classifier (Ollama vision model)
    ollama_host: str = "http://localhost:11434"
    ollama_model: str = "llava:34b"
    classifier_enabled: bool = True
    classifier_timeout_ms: int = 30000
    classifier_retries: int = 1

    # Downstream consumers only
    confidence_threshold: float = 0.6

    # Result cache
    cache_max_entries: int = 32

    # Logging
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    class Config:
        env_prefix = "PLANVISION_"
        env_file = ".env"


settings = Settings()
