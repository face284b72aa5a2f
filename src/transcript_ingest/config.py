"""
Configuration and constants for the transcript ingestion pipeline.

This module provides:
- Global logging setup
- Extraction, OCR and rendering parameters
- Language-completion service configuration
- Matching heuristics (flagged as tunable)
"""

import os
from dataclasses import dataclass, field
from typing import Optional, Dict
import logging

# ============================================================================
# Logging Configuration
# ============================================================================

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("transcript_ingest")


# ============================================================================
# Processing Configuration
# ============================================================================

@dataclass
class QualityGateConfig:
    """Text-layer quality gate configuration."""
    # Tunable: coarse trigger, not a correctness guarantee. Garbled text
    # layers tend to produce many very short line fragments.
    min_avg_line_length: float = 10.0


@dataclass
class RenderConfig:
    """PDF rasterization configuration."""
    # Cap on the long edge of the rendered page
    max_dimension_px: int = 3000
    # Base directory for temporary artifacts (None = system temp dir)
    temp_dir: Optional[str] = None
    temp_prefix: str = "transcript_ingest_"


@dataclass
class OCRConfig:
    """OCR configuration."""
    tesseract_lang: str = "eng"
    tesseract_config: str = "--oem 3 --psm 6"
    # Minimum glyph height before upscaling
    min_text_height: int = 30


@dataclass
class CompletionConfig:
    """Language-completion service configuration."""
    model: str = "gemini-2.5-flash-lite"
    api_key: Optional[str] = None
    timeout_ms: int = 120_000
    temperature: float = 0.0
    max_output_tokens: int = 32768


@dataclass
class ParserConfig:
    """Structured parser configuration."""
    # Pass 1 identifies semester headers/columns, pass 2 extracts courses
    two_pass: bool = True


@dataclass
class MatchingConfig:
    """Generic course matching configuration."""
    # Tunable: first digit of the transcript course number -> pattern bucket.
    bucket_by_first_digit: Dict[str, str] = field(default_factory=lambda: {
        "1": "001",
        "2": "001",
        "3": "003",
        "4": "003",
    })
    default_bucket: str = "001"


@dataclass
class PipelineConfig:
    """Main pipeline configuration."""
    quality_gate: QualityGateConfig = field(default_factory=QualityGateConfig)
    render: RenderConfig = field(default_factory=RenderConfig)
    ocr: OCRConfig = field(default_factory=OCRConfig)
    completion: CompletionConfig = field(default_factory=CompletionConfig)
    parser: ParserConfig = field(default_factory=ParserConfig)
    matching: MatchingConfig = field(default_factory=MatchingConfig)

    # Global settings
    debug_mode: bool = False


# ============================================================================
# Default Configuration Instance
# ============================================================================

def get_config() -> PipelineConfig:
    """Get the default pipeline configuration with environment overrides."""
    config = PipelineConfig()

    if os.environ.get("TRANSCRIPT_INGEST_DEBUG", "").lower() == "true":
        config.debug_mode = True

    # Completion service credentials from environment
    config.completion.api_key = os.environ.get("GEMINI_API_KEY")

    model = os.environ.get("TRANSCRIPT_INGEST_MODEL")
    if model:
        config.completion.model = model

    timeout_ms = os.environ.get("TRANSCRIPT_INGEST_TIMEOUT_MS")
    if timeout_ms:
        try:
            config.completion.timeout_ms = int(timeout_ms)
        except ValueError:
            logger.warning(f"Ignoring invalid TRANSCRIPT_INGEST_TIMEOUT_MS: {timeout_ms!r}")

    min_avg = os.environ.get("TRANSCRIPT_INGEST_MIN_AVG_LINE_LENGTH")
    if min_avg:
        try:
            config.quality_gate.min_avg_line_length = float(min_avg)
        except ValueError:
            logger.warning(f"Ignoring invalid TRANSCRIPT_INGEST_MIN_AVG_LINE_LENGTH: {min_avg!r}")

    max_dim = os.environ.get("TRANSCRIPT_INGEST_MAX_DIMENSION_PX")
    if max_dim:
        try:
            config.render.max_dimension_px = int(max_dim)
        except ValueError:
            logger.warning(f"Ignoring invalid TRANSCRIPT_INGEST_MAX_DIMENSION_PX: {max_dim!r}")

    return config


# ============================================================================
# JSON Schema Version
# ============================================================================

JSON_SCHEMA_VERSION = "1.0"


# ============================================================================
# Utility Functions
# ============================================================================

def check_tesseract_available() -> bool:
    """Check if the Tesseract binary is reachable."""
    try:
        import pytesseract
        pytesseract.get_tesseract_version()
        return True
    except Exception:
        return False


def check_poppler_available() -> bool:
    """Check if poppler (used by pdf2image) is installed."""
    import shutil
    return shutil.which("pdftoppm") is not None
