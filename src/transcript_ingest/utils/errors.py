"""
Error taxonomy for the transcript ingestion pipeline.

Per-document errors (extraction, parsing) and per-row errors (matching) are
isolated by the callers; see assembler.py and matching.py.
"""

from typing import Optional


class TranscriptIngestError(Exception):
    """Base class for all pipeline errors."""


# ============================================================================
# Extraction
# ============================================================================

class ExtractionFailed(TranscriptIngestError):
    """The PDF text layer could not be parsed."""


class NoExtractableText(TranscriptIngestError):
    """Neither the text layer nor OCR produced any text."""


class RenderFailed(TranscriptIngestError):
    """The PDF page could not be rasterized."""


class RecognitionFailed(TranscriptIngestError):
    """Optical character recognition failed on the rendered page."""


# ============================================================================
# Completion Service
# ============================================================================

class CompletionError(TranscriptIngestError):
    """A call to the language-completion service failed."""

    status = "unavailable"
    http_status = 500

    def __init__(self, message: str, http_status: Optional[int] = None):
        super().__init__(message)
        if http_status is not None:
            self.http_status = http_status


class CompletionUnavailable(CompletionError):
    """The service is unreachable, misconfigured, or returned an error."""


class CompletionOverloaded(CompletionError):
    """The service reported it is overloaded (HTTP 503)."""

    status = "overloaded"
    http_status = 503


class CompletionRateLimited(CompletionError):
    """The service rejected the call for rate limiting (HTTP 429)."""

    status = "rate_limited"
    http_status = 429


class MalformedCompletionResponse(TranscriptIngestError):
    """The response could not be decoded into the expected structure."""

    def __init__(self, message: str, raw_response: Optional[str] = None):
        super().__init__(message)
        self.raw_response = raw_response
