"""
Transcript Ingestion Pipeline
=============================

Turns academic transcript PDFs into structured, deduplicated course records
and matches unrecognized courses to generic catalog courses.

Main components:
- Text-layer extraction with an OCR fallback for poor text layers
- Two-pass structured parsing through a language-completion service
- Deterministic normalization and deduplication of course rows
- Subject-prefix classification and generic course lookup
- Multi-format export
"""

__version__ = "1.0.0"
__author__ = "Transcript Ingestion Team"
