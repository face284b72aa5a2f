"""
Transcript assembler: pipeline orchestration.

Provides:
- TranscriptRecord envelope (transcript + extraction details + metrics)
- TranscriptAssembler, composing text extraction, the quality gate, the
  OCR fallback, the structured parser and the normalizer
- extract_transcript_info(pdf_bytes) convenience function
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

from ..config import JSON_SCHEMA_VERSION, PipelineConfig, get_config
from .completion import CompletionClient, GeminiCompletionClient
from .errors import NoExtractableText, RecognitionFailed, RenderFailed
from .images import render_pdf_to_image
from .models import CandidateTranscript, ExtractionResult
from .normalizer import normalize_transcript
from .ocr_text import recognize_text
from .parser import StructuredParser
from .text_extract import extract_text, measure_text_quality, needs_ocr_fallback

logger = logging.getLogger(__name__)


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class ExtractionMetrics:
    """Metrics about one extraction run."""
    primary_chars: int = 0
    ocr_chars: int = 0
    avg_line_length: float = 0.0
    used_ocr_fallback: bool = False
    ocr_error: Optional[str] = None
    courses_parsed: int = 0
    courses_kept: int = 0
    processing_time_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "primary_chars": self.primary_chars,
            "ocr_chars": self.ocr_chars,
            "avg_line_length": round(self.avg_line_length, 2),
            "used_ocr_fallback": self.used_ocr_fallback,
            "ocr_error": self.ocr_error,
            "courses": {
                "parsed": self.courses_parsed,
                "kept": self.courses_kept,
            },
            "processing_time_seconds": round(self.processing_time_seconds, 2),
        }


@dataclass
class TranscriptRecord:
    """A processed transcript with provenance and metrics."""
    task_id: str
    source_file: str
    transcript: CandidateTranscript
    metrics: ExtractionMetrics = field(default_factory=ExtractionMetrics)
    created_at: str = ""
    schema_version: str = JSON_SCHEMA_VERSION

    def __post_init__(self):
        if not self.task_id:
            self.task_id = str(uuid.uuid4())
        if not self.created_at:
            self.created_at = datetime.now().isoformat()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_id": self.task_id,
            "schema_version": self.schema_version,
            "source_file": self.source_file,
            "created_at": self.created_at,
            "transcript": self.transcript.to_dict(),
            "metrics": self.metrics.to_dict(),
        }


# ============================================================================
# Transcript Assembler
# ============================================================================

class TranscriptAssembler:
    """
    Orchestrates the transcript ingestion pipeline.

    Coordinates:
    - Text-layer extraction and the quality gate
    - Page rendering and OCR when the text layer is poor
    - Two-pass structured parsing
    - Normalization and deduplication

    Every external step is injectable, so tests can swap in fakes.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        client: Optional[CompletionClient] = None,
        text_extractor: Optional[Callable[[bytes], str]] = None,
        renderer: Optional[Callable[[bytes], bytes]] = None,
        recognizer: Optional[Callable[[bytes], str]] = None,
        output_dir: Optional[Union[str, Path]] = None
    ):
        self.config = config or get_config()
        self.output_dir = Path(output_dir) if output_dir else None
        self.debug_mode = self.config.debug_mode

        self._client = client
        self._parser = None
        self._text_extractor = text_extractor or extract_text
        self._renderer = renderer or self._render_page
        self._recognizer = recognizer or self._recognize_page

    @property
    def client(self) -> CompletionClient:
        if self._client is None:
            completion = self.config.completion
            self._client = GeminiCompletionClient(
                api_key=completion.api_key,
                model=completion.model,
                temperature=completion.temperature,
                max_output_tokens=completion.max_output_tokens,
            )
        return self._client

    @property
    def parser(self) -> StructuredParser:
        if self._parser is None:
            self._parser = StructuredParser(
                self.client,
                timeout_ms=self.config.completion.timeout_ms,
                two_pass=self.config.parser.two_pass,
            )
        return self._parser

    def _render_page(self, pdf_bytes: bytes) -> bytes:
        render = self.config.render
        return render_pdf_to_image(
            pdf_bytes,
            max_dimension_px=render.max_dimension_px,
            temp_dir=render.temp_dir,
            temp_prefix=render.temp_prefix,
        )

    def _recognize_page(self, image_bytes: bytes) -> str:
        return recognize_text(
            image_bytes,
            language=self.config.ocr.tesseract_lang,
            config=self.config.ocr.tesseract_config,
            min_text_height=self.config.ocr.min_text_height,
        )

    # --- stages -------------------------------------------------------------

    def extract_text_layers(
        self,
        pdf_bytes: bytes,
        metrics: Optional[ExtractionMetrics] = None
    ) -> ExtractionResult:
        """
        Extract the text layer and, if the gate rejects it, OCR text.

        Raises:
            ExtractionFailed: If the PDF cannot be parsed
            NoExtractableText: If neither source produced any text
        """
        metrics = metrics or ExtractionMetrics()
        primary_text = self._text_extractor(pdf_bytes)
        quality = measure_text_quality(primary_text)
        metrics.primary_chars = quality.total_chars
        metrics.avg_line_length = quality.avg_line_length

        threshold = self.config.quality_gate.min_avg_line_length
        if not needs_ocr_fallback(primary_text, threshold):
            logger.info(
                f"Text layer accepted: {quality.total_chars} chars, "
                f"avg line length {quality.avg_line_length:.1f}"
            )
            return ExtractionResult(primary_text=primary_text, avg_line_length=quality.avg_line_length)

        logger.info(
            f"Text layer rejected (avg line length {quality.avg_line_length:.1f} "
            f"< {threshold}); falling back to OCR"
        )
        metrics.used_ocr_fallback = True

        ocr_text = None
        try:
            image_bytes = self._renderer(pdf_bytes)
            self._save_debug_bytes("page.png", image_bytes)
            ocr_text = self._recognizer(image_bytes)
            if not (ocr_text or "").strip():
                ocr_text = None
        except (RenderFailed, RecognitionFailed) as e:
            metrics.ocr_error = str(e)
            logger.warning(f"OCR fallback failed: {e}")

        result = ExtractionResult(
            primary_text=primary_text,
            ocr_text=ocr_text,
            used_ocr_fallback=True,
            avg_line_length=quality.avg_line_length,
        )
        if not result.has_text:
            raise NoExtractableText("No text layer and OCR produced no text")

        metrics.ocr_chars = len(ocr_text or "")
        return result

    def extract_transcript_info(self, pdf_bytes: bytes) -> CandidateTranscript:
        """Run the full pipeline and return the normalized transcript."""
        return self.process_document(pdf_bytes).transcript

    def process_document(self, pdf_bytes: bytes, source_file: str = "") -> TranscriptRecord:
        """
        Run the full pipeline and keep extraction details alongside the result.

        Raises:
            ExtractionFailed, NoExtractableText: The document has no usable text
            CompletionError: The completion service failed
            MalformedCompletionResponse: The extraction response was unusable
        """
        start_time = time.time()
        metrics = ExtractionMetrics()

        extraction = self.extract_text_layers(pdf_bytes, metrics)
        self._save_debug_text("primary_text.txt", extraction.primary_text)
        if extraction.ocr_text:
            self._save_debug_text("ocr_text.txt", extraction.ocr_text)

        parsed = self.parser.parse(extraction.primary_text, extraction.ocr_text)
        transcript = normalize_transcript(parsed)

        metrics.courses_parsed = len(parsed.courses)
        metrics.courses_kept = len(transcript.courses)
        metrics.processing_time_seconds = time.time() - start_time

        logger.info(
            f"Transcript assembled: {metrics.courses_kept} of {metrics.courses_parsed} "
            f"course rows kept in {metrics.processing_time_seconds:.2f}s"
        )
        return TranscriptRecord(
            task_id=str(uuid.uuid4()),
            source_file=source_file,
            transcript=transcript,
            metrics=metrics,
        )

    # --- debug output -------------------------------------------------------

    def _save_debug_text(self, name: str, text: str):
        if self.debug_mode and self.output_dir:
            debug_path = self.output_dir / "debug" / name
            debug_path.parent.mkdir(parents=True, exist_ok=True)
            debug_path.write_text(text, encoding="utf-8")
            logger.debug(f"Saved debug text: {debug_path}")

    def _save_debug_bytes(self, name: str, data: bytes):
        if self.debug_mode and self.output_dir:
            debug_path = self.output_dir / "debug" / name
            debug_path.parent.mkdir(parents=True, exist_ok=True)
            debug_path.write_bytes(data)
            logger.debug(f"Saved debug image: {debug_path}")


def extract_transcript_info(
    pdf_bytes: bytes,
    client: Optional[CompletionClient] = None,
    config: Optional[PipelineConfig] = None
) -> CandidateTranscript:
    """Extract a normalized transcript from PDF bytes with default components."""
    return TranscriptAssembler(config=config, client=client).extract_transcript_info(pdf_bytes)
