"""
Text-layer extraction and the extraction quality gate.

Provides:
- Text extraction from PDF bytes (pdfplumber)
- Heuristic quality gate deciding whether to fall back to OCR
"""

import io
import logging
from dataclasses import dataclass
from typing import List

from .errors import ExtractionFailed

logger = logging.getLogger(__name__)

# Tunable: see QualityGateConfig.min_avg_line_length
DEFAULT_MIN_AVG_LINE_LENGTH = 10.0


# ============================================================================
# Text Extraction
# ============================================================================

def extract_text(pdf_bytes: bytes) -> str:
    """
    Extract the text layer of every page of a PDF.

    Args:
        pdf_bytes: Raw PDF content

    Returns:
        Page texts joined by newlines (may be empty for image-only PDFs)

    Raises:
        ExtractionFailed: If the buffer cannot be parsed as a PDF
    """
    try:
        import pdfplumber
    except ImportError:
        raise ImportError(
            "pdfplumber is required. Install with: pip install pdfplumber"
        )

    try:
        with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
            pages = [page.extract_text() or "" for page in pdf.pages]
    except Exception as e:
        raise ExtractionFailed(f"Failed to parse PDF text layer: {e}") from e

    text = "\n".join(pages)
    logger.debug(f"Extracted {len(text)} characters from {len(pages)} page(s)")
    return text


# ============================================================================
# Quality Gate
# ============================================================================

@dataclass(frozen=True)
class TextQuality:
    """Line statistics of an extracted text layer."""
    total_chars: int
    non_empty_lines: int
    avg_line_length: float
    is_blank: bool


def non_empty_lines(text: str) -> List[str]:
    return [line for line in text.split("\n") if line.strip()]


def measure_text_quality(text: str) -> TextQuality:
    """Compute the statistics the quality gate decides on."""
    text = text or ""
    lines = non_empty_lines(text)
    return TextQuality(
        total_chars=len(text),
        non_empty_lines=len(lines),
        avg_line_length=len(text) / max(1, len(lines)),
        is_blank=not text.strip(),
    )


def needs_ocr_fallback(
    text: str,
    min_avg_line_length: float = DEFAULT_MIN_AVG_LINE_LENGTH
) -> bool:
    """
    Decide whether the text layer is too poor to use on its own.

    Broken text layers tend to come out as many very short fragments, so a
    low average line length triggers OCR. The comparison is strict: an
    average exactly at the threshold passes.
    """
    quality = measure_text_quality(text)
    return quality.is_blank or quality.avg_line_length < min_avg_line_length
