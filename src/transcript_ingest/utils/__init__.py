"""
Utility modules for the transcript ingestion pipeline.
"""

from .errors import (
    TranscriptIngestError, ExtractionFailed, NoExtractableText, RenderFailed,
    RecognitionFailed, CompletionError, CompletionUnavailable, CompletionOverloaded,
    CompletionRateLimited, MalformedCompletionResponse,
)
from .models import (
    CandidateCourseRecord, CandidateTranscript, ExtractionResult, PrefixKeywordEntry,
    GenericCourseCatalogEntry, TranscriptCourseRow, Confidence, MatchResult, MatchReport,
)
from .io import load_pdf_bytes, save_json, load_json, ensure_dir
from .text_extract import extract_text, needs_ocr_fallback
from .images import render_pdf_to_image
from .ocr_text import recognize_text, TesseractEngine, OCRResult
from .completion import CompletionClient, GeminiCompletionClient
from .parser import StructuredParser
from .normalizer import normalize_transcript
from .catalog import InMemoryRecordStore, build_prefix_keywords
from .matching import GenericCourseMatcher, apply_match_results
from .assembler import TranscriptAssembler, TranscriptRecord, extract_transcript_info
from .export import TranscriptExporter, MarkdownExporter, CsvExporter

__all__ = [
    # Errors
    "TranscriptIngestError", "ExtractionFailed", "NoExtractableText", "RenderFailed",
    "RecognitionFailed", "CompletionError", "CompletionUnavailable", "CompletionOverloaded",
    "CompletionRateLimited", "MalformedCompletionResponse",
    # Models
    "CandidateCourseRecord", "CandidateTranscript", "ExtractionResult", "PrefixKeywordEntry",
    "GenericCourseCatalogEntry", "TranscriptCourseRow", "Confidence", "MatchResult", "MatchReport",
    # IO
    "load_pdf_bytes", "save_json", "load_json", "ensure_dir",
    # Extraction
    "extract_text", "needs_ocr_fallback", "render_pdf_to_image",
    "recognize_text", "TesseractEngine", "OCRResult",
    # Parsing
    "CompletionClient", "GeminiCompletionClient", "StructuredParser", "normalize_transcript",
    # Matching
    "InMemoryRecordStore", "build_prefix_keywords", "GenericCourseMatcher", "apply_match_results",
    # Assembly
    "TranscriptAssembler", "TranscriptRecord", "extract_transcript_info",
    # Export
    "TranscriptExporter", "MarkdownExporter", "CsvExporter",
]
