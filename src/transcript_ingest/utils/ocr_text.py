"""
Text OCR for rasterized transcript pages.

Provides:
- Tesseract recognition with line grouping and confidence scoring
- recognize_text(image_bytes) used as the OCR fallback of the pipeline
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Dict, Any
import numpy as np

from .errors import RecognitionFailed
from .images import decode_image, prepare_for_ocr

logger = logging.getLogger(__name__)


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class WordResult:
    """OCR result for a single word."""
    text: str
    confidence: float
    bbox: Optional[Tuple[int, int, int, int]] = None  # (x1, y1, x2, y2)


@dataclass
class LineResult:
    """OCR result for a line of text."""
    text: str
    confidence: float
    words: List[WordResult] = field(default_factory=list)


@dataclass
class OCRResult:
    """Complete OCR result for a page."""
    text: str
    confidence: float
    lines: List[LineResult] = field(default_factory=list)
    engine_used: str = ""

    @property
    def is_low_confidence(self) -> bool:
        return self.confidence < 0.65

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "confidence": self.confidence,
            "engine": self.engine_used,
            "lines": len(self.lines),
        }


# ============================================================================
# Tesseract Engine
# ============================================================================

class TesseractEngine:
    """OCR using Tesseract."""

    def __init__(
        self,
        language: str = "eng",
        config: str = "--oem 3 --psm 6",
        min_text_height: int = 30
    ):
        try:
            import pytesseract
            self.pytesseract = pytesseract

            # Test that tesseract is installed
            pytesseract.get_tesseract_version()

        except Exception as e:
            raise RecognitionFailed(
                f"Tesseract not available: {e}\n"
                "Install with: pip install pytesseract\n"
                "Also install Tesseract: https://github.com/tesseract-ocr/tesseract"
            ) from e

        self.language = language
        self.config = config
        self.min_text_height = min_text_height

    def recognize(self, image: np.ndarray) -> OCRResult:
        """
        Recognize text on a page image.

        Words are grouped into lines by Tesseract's (block, paragraph, line)
        numbering so table rows come back one per line.

        Raises:
            RecognitionFailed: If Tesseract errors out
        """
        processed = prepare_for_ocr(image, min_text_height=self.min_text_height)

        try:
            data = self.pytesseract.image_to_data(
                processed,
                lang=self.language,
                config=self.config,
                output_type=self.pytesseract.Output.DICT
            )
        except Exception as e:
            raise RecognitionFailed(f"Tesseract error: {e}") from e

        lines = group_words_into_lines(data)

        full_text = '\n'.join(line.text for line in lines)
        confidences = [w.confidence for line in lines for w in line.words]
        avg_confidence = float(np.mean(confidences)) if confidences else 0.0

        return OCRResult(
            text=full_text,
            confidence=avg_confidence,
            lines=lines,
            engine_used="tesseract"
        )


def group_words_into_lines(data: Dict[str, List[Any]]) -> List[LineResult]:
    """Turn pytesseract image_to_data output into ordered text lines."""
    lines = []
    current_line: List[WordResult] = []
    current_key = None

    for i in range(len(data['text'])):
        text = str(data['text'][i]).strip()
        conf = float(data['conf'][i])

        if conf < 0 or not text:  # -1 means no valid confidence
            continue

        key = (
            data.get('block_num', [0] * len(data['text']))[i],
            data.get('par_num', [0] * len(data['text']))[i],
            data['line_num'][i],
        )
        word = WordResult(
            text=text,
            confidence=conf / 100.0,
            bbox=(
                data['left'][i],
                data['top'][i],
                data['left'][i] + data['width'][i],
                data['top'][i] + data['height'][i]
            )
        )

        if key != current_key and current_line:
            lines.append(_make_line(current_line))
            current_line = []
        current_line.append(word)
        current_key = key

    # Don't forget the last line
    if current_line:
        lines.append(_make_line(current_line))

    return lines


def _make_line(words: List[WordResult]) -> LineResult:
    return LineResult(
        text=' '.join(w.text for w in words),
        confidence=float(np.mean([w.confidence for w in words])),
        words=words
    )


# ============================================================================
# Pipeline Entry Point
# ============================================================================

def recognize_text(
    image_bytes: bytes,
    language: str = "eng",
    config: str = "--oem 3 --psm 6",
    min_text_height: int = 30,
    engine: Optional[TesseractEngine] = None
) -> str:
    """
    Recognize the text of an encoded page image.

    Args:
        image_bytes: PNG/JPEG bytes from render_pdf_to_image
        language: Tesseract language code
        config: Tesseract command-line options
        min_text_height: Images shorter than this are upscaled first
        engine: Pre-built engine (created on demand when None)

    Returns:
        Recognized text, one line per OCR line

    Raises:
        RecognitionFailed: On undecodable images or Tesseract failure
    """
    try:
        image = decode_image(image_bytes)
    except ValueError as e:
        raise RecognitionFailed(str(e)) from e

    if engine is None:
        engine = TesseractEngine(language=language, config=config, min_text_height=min_text_height)

    result = engine.recognize(image)
    logger.info(
        f"OCR recognized {len(result.lines)} lines "
        f"(confidence {result.confidence:.2f})"
    )
    if result.is_low_confidence and result.lines:
        logger.warning("Low OCR confidence; extraction quality may suffer")

    return result.text
