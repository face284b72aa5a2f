#!/usr/bin/env python
"""
Command-line interface for the Transcript Ingestion Pipeline.

Usage:
    transcript-ingest extract --input <pdf_or_folder> --output <output_dir> [options]
    transcript-ingest match --store <records.json> --transcript-id <id> [options]
    transcript-ingest keywords --store <records.json> --output <prefixes.csv>

Examples:
    # Extract a transcript to JSON and Markdown
    transcript-ingest extract --input transcript.pdf --output ./output --format json markdown

    # Extract and store the courses as transcript 7
    transcript-ingest extract --input transcript.pdf --output ./output --store records.json --transcript-id 7

    # Match the unmatched courses of transcript 7 and save the links
    transcript-ingest match --store records.json --transcript-id 7 --apply
"""

import sys
from pathlib import Path

# Add src directory to path for imports when running as script
_src_dir = Path(__file__).parent.parent
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

import argparse
import logging
import time
from typing import List

from transcript_ingest import __version__

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("transcript_ingest")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_NO_TEXT = 2
EXIT_SERVICE_BUSY = 3
EXIT_INTERRUPTED = 130


def setup_argparser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog="transcript-ingest",
        description="Transcript Ingestion Pipeline - Extract course records and match generic courses",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Extract a transcript and export all formats:
    transcript-ingest extract --input transcript.pdf --output ./output --format all

  Single-pass extraction (skip structure identification):
    transcript-ingest extract --input transcript.pdf --output ./output --single-pass

  Match unmatched courses and write the report:
    transcript-ingest match --store records.json --transcript-id 7 --output report.json

  Regenerate the prefix keyword table:
    transcript-ingest keywords --store records.json --output prefixes.csv
        """
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output"
    )
    common.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress non-error output"
    )
    common.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode (saves intermediate text, re-raises errors)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # extract
    extract = subparsers.add_parser(
        "extract", parents=[common],
        help="Extract structured course records from transcript PDFs"
    )
    extract.add_argument(
        "--input", "-i",
        required=True,
        help="Input transcript PDF or folder of PDFs"
    )
    extract.add_argument(
        "--output", "-o",
        required=True,
        help="Output directory for generated files"
    )
    extract.add_argument(
        "--format", "-f",
        nargs="+",
        default=["json"],
        choices=["json", "csv", "markdown", "all"],
        help="Output format(s) (default: json)"
    )
    extract.add_argument(
        "--single-pass",
        action="store_true",
        help="Skip the structure-identification pass"
    )
    extract.add_argument(
        "--store",
        default=None,
        help="Record store JSON file to add the extracted courses to (single PDF input only)"
    )
    extract.add_argument(
        "--transcript-id",
        type=int,
        default=None,
        help="Transcript id for stored courses (required with --store)"
    )

    # match
    match = subparsers.add_parser(
        "match", parents=[common],
        help="Match unmatched transcript courses to generic catalog courses"
    )
    match.add_argument(
        "--store",
        required=True,
        help="Record store JSON file (catalog, prefixKeywords, transcriptCourses)"
    )
    match.add_argument(
        "--transcript-id",
        type=int,
        required=True,
        help="Transcript whose courses are matched"
    )
    match.add_argument(
        "--apply",
        action="store_true",
        help="Write matched catalog ids back into the store"
    )
    match.add_argument(
        "--output", "-o",
        default=None,
        help="Path for the JSON match report"
    )

    # keywords
    keywords = subparsers.add_parser(
        "keywords", parents=[common],
        help="Build the prefix keyword table from the catalog"
    )
    keywords.add_argument(
        "--store",
        required=True,
        help="Record store JSON file with a catalog"
    )
    keywords.add_argument(
        "--output", "-o",
        required=True,
        help="Output CSV path (prefix,keywords)"
    )
    keywords.add_argument(
        "--update-store",
        action="store_true",
        help="Also replace the store's prefix keyword table"
    )

    return parser


def check_dependencies(command: str) -> bool:
    """Check if required dependencies are available."""
    missing = []
    optional_missing = []

    if command == "extract":
        try:
            import pdfplumber
        except ImportError:
            missing.append("pdfplumber")

        # OCR fallback
        try:
            import cv2
        except ImportError:
            optional_missing.append("opencv-python-headless (for the OCR fallback)")

        try:
            import pytesseract
            try:
                pytesseract.get_tesseract_version()
            except Exception:
                optional_missing.append("tesseract-ocr (system package, for the OCR fallback)")
        except ImportError:
            optional_missing.append("pytesseract (for the OCR fallback)")

        try:
            import pdf2image
        except ImportError:
            optional_missing.append("pdf2image (for the OCR fallback)")

        from transcript_ingest.config import check_poppler_available
        if not check_poppler_available():
            optional_missing.append("poppler-utils (system package, for the OCR fallback)")

    if command in ("extract", "match"):
        try:
            from google import genai
        except ImportError:
            missing.append("google-genai")

    # Report
    if missing:
        logger.error("Missing required dependencies:")
        for dep in missing:
            logger.error(f"  - {dep}")
        logger.error("\nInstall with: pip install -e .")
        return False

    if optional_missing:
        logger.warning("Missing optional dependencies (some features may be limited):")
        for dep in optional_missing:
            logger.warning(f"  - {dep}")

    return True


def collect_inputs(input_path: Path) -> List[Path]:
    from transcript_ingest.utils.io import detect_input_type

    input_type = detect_input_type(input_path)
    logger.info(f"Input type detected: {input_type}")

    if input_type == "pdf":
        return [input_path]
    if input_type == "pdf_folder":
        return sorted(p for p in input_path.iterdir() if p.suffix.lower() == ".pdf")
    return []


def run_extract(args) -> int:
    """Extract transcripts and export them."""
    from transcript_ingest.config import get_config
    from transcript_ingest.utils.assembler import TranscriptAssembler
    from transcript_ingest.utils.catalog import InMemoryRecordStore
    from transcript_ingest.utils.errors import ExtractionFailed, MalformedCompletionResponse, NoExtractableText
    from transcript_ingest.utils.export import TranscriptExporter
    from transcript_ingest.utils.io import ensure_dir, load_transcript_document

    if args.store and args.transcript_id is None:
        logger.error("--transcript-id is required with --store")
        return EXIT_FAILURE

    inputs = collect_inputs(Path(args.input))
    if not inputs:
        logger.error(f"Unsupported input: {args.input}")
        return EXIT_FAILURE
    if args.store and Path(args.input).is_dir():
        logger.error("--store takes a single PDF; one transcript id cannot cover a folder")
        return EXIT_FAILURE

    config = get_config()
    config.debug_mode = config.debug_mode or args.debug
    config.parser.two_pass = not args.single_pass

    output_dir = ensure_dir(args.output)
    assembler = TranscriptAssembler(config=config, output_dir=output_dir)
    store = InMemoryRecordStore.from_json(args.store) if args.store and Path(args.store).exists() else None
    if args.store and store is None:
        store = InMemoryRecordStore()

    start_time = time.time()
    exit_code = EXIT_OK
    processed = 0

    for pdf_path in inputs:
        logger.info(f"Processing {pdf_path}...")
        try:
            document = load_transcript_document(pdf_path)
            record = assembler.process_document(document.pdf_bytes, source_file=document.document_id)
        except NoExtractableText as e:
            logger.error(f"{pdf_path}: {e}")
            exit_code = EXIT_NO_TEXT
            continue
        except (ExtractionFailed, MalformedCompletionResponse, ValueError, OSError) as e:
            logger.error(f"{pdf_path}: {e}")
            if exit_code == EXIT_OK:
                exit_code = EXIT_FAILURE
            continue

        exporter = TranscriptExporter(output_dir, pdf_path.stem)
        for fmt, path in exporter.export(record, args.format).items():
            logger.info(f"Exported {fmt}: {path}")

        if store is not None:
            store.add_transcript(args.transcript_id, record.transcript)
        processed += 1

        if not args.quiet:
            transcript = record.transcript
            metrics = record.metrics
            print("\n" + "="*60)
            print("TRANSCRIPT EXTRACTION COMPLETE")
            print("="*60)
            print(f"Source: {pdf_path}")
            print(f"Student: {transcript.student_name or 'UNKNOWN'}")
            print(f"Institution: {transcript.university or 'UNKNOWN'}")
            print(f"Courses: {metrics.courses_kept} kept of {metrics.courses_parsed} parsed")
            print(f"OCR fallback: {'yes' if metrics.used_ocr_fallback else 'no'}"
                  f" (avg line length {metrics.avg_line_length:.1f})")
            print("="*60)

    if store is not None:
        store.save(args.store)
        logger.info(f"Saved store: {args.store}")

    logger.info(f"Processed {processed} of {len(inputs)} file(s) in {time.time() - start_time:.2f}s")
    return exit_code


def run_match(args) -> int:
    """Match the unmatched courses of one transcript."""
    from transcript_ingest.config import get_config
    from transcript_ingest.utils.catalog import InMemoryRecordStore
    from transcript_ingest.utils.completion import GeminiCompletionClient
    from transcript_ingest.utils.io import save_json
    from transcript_ingest.utils.matching import GenericCourseMatcher, apply_match_results

    config = get_config()
    store = InMemoryRecordStore.from_json(args.store)
    client = GeminiCompletionClient(
        api_key=config.completion.api_key,
        model=config.completion.model,
        temperature=config.completion.temperature,
        max_output_tokens=config.completion.max_output_tokens,
    )
    matcher = GenericCourseMatcher(
        client, store, store,
        timeout_ms=config.completion.timeout_ms,
        buckets=config.matching.bucket_by_first_digit,
        default_bucket=config.matching.default_bucket,
    )

    report = matcher.match_generic_courses(args.transcript_id)

    if args.apply and report.matches:
        apply_match_results(store, report)
        store.save(args.store)
        logger.info(f"Saved store: {args.store}")

    if args.output:
        save_json(report, args.output)
        logger.info(f"Saved match report: {args.output}")

    if not args.quiet:
        print("\n" + "="*60)
        print("GENERIC COURSE MATCHING COMPLETE")
        print("="*60)
        print(f"Transcript: {args.transcript_id}")
        print(f"Rows processed: {report.rows_processed}")
        for match in report.matches:
            print(f"  {match.transcript_course_id} -> {match.generic_course_number} "
                  f"[{match.confidence.value}]")
        print(f"Unmatched: {len(report.unmatched)}")
        print(f"Failed: {len(report.errors)}")
        print("="*60)

    return EXIT_FAILURE if report.errors and not report.matches and not report.unmatched else EXIT_OK


def run_keywords(args) -> int:
    """Build the prefix keyword table."""
    from transcript_ingest.utils.catalog import (
        InMemoryRecordStore, build_prefix_keywords, save_prefix_keywords_csv
    )

    store = InMemoryRecordStore.from_json(args.store)
    table = build_prefix_keywords(store.catalog.values())
    path = save_prefix_keywords_csv(table, args.output)
    logger.info(f"Saved {len(table)} prefixes to {path}")

    if args.update_store:
        store.prefix_keywords = table
        store.save(args.store)
        logger.info(f"Saved store: {args.store}")

    return EXIT_OK


COMMANDS = {
    "extract": run_extract,
    "match": run_match,
    "keywords": run_keywords,
}


def main():
    """Main entry point."""
    parser = setup_argparser()
    args = parser.parse_args()

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    elif args.quiet:
        logging.getLogger().setLevel(logging.ERROR)

    # Check dependencies
    if not check_dependencies(args.command):
        sys.exit(EXIT_FAILURE)

    from transcript_ingest.utils.errors import CompletionError, TranscriptIngestError

    # Run command
    try:
        exit_code = COMMANDS[args.command](args)
        sys.exit(exit_code)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(EXIT_INTERRUPTED)
    except CompletionError as e:
        logger.error(f"Completion service {e.status} (HTTP {e.http_status}): {e}")
        if args.debug:
            raise
        sys.exit(EXIT_SERVICE_BUSY if e.status in ("overloaded", "rate_limited") else EXIT_FAILURE)
    except TranscriptIngestError as e:
        logger.error(f"Processing failed: {e}")
        if args.debug:
            raise
        sys.exit(EXIT_FAILURE)
    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        if args.debug:
            raise
        sys.exit(EXIT_FAILURE)


if __name__ == "__main__":
    main()
