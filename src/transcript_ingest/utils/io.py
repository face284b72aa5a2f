"""
I/O utilities for the transcript ingestion pipeline.

Handles:
- PDF loading
- Scoped temporary workspaces for render artifacts
- JSON and CSV serialization
- Directory management
"""

import csv
import json
import logging
import shutil
import tempfile
from contextlib import contextmanager
from dataclasses import asdict
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Union

from .models import TranscriptDocument

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF"


# ============================================================================
# PDF Loading
# ============================================================================

def load_pdf_bytes(pdf_path: Union[str, Path]) -> bytes:
    """
    Read a transcript PDF into memory.

    Args:
        pdf_path: Path to the PDF file

    Returns:
        Raw PDF bytes

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file is not a PDF
    """
    pdf_path = Path(pdf_path)
    if not pdf_path.exists():
        raise FileNotFoundError(f"PDF file not found: {pdf_path}")

    data = pdf_path.read_bytes()
    if data.lstrip()[:4] != PDF_MAGIC:
        raise ValueError(f"Not a PDF file: {pdf_path}")

    logger.debug(f"Loaded PDF: {pdf_path} ({len(data)} bytes)")
    return data


def load_transcript_document(pdf_path: Union[str, Path]) -> TranscriptDocument:
    """Load a transcript PDF, identified by its path."""
    return TranscriptDocument(document_id=str(pdf_path), pdf_bytes=load_pdf_bytes(pdf_path))


def detect_input_type(input_path: Union[str, Path]) -> str:
    """
    Detect the type of input file or directory.

    Returns:
        One of: 'pdf', 'pdf_folder', 'unknown'
    """
    input_path = Path(input_path)

    if input_path.is_dir():
        has_pdfs = any(f.suffix.lower() == '.pdf' for f in input_path.iterdir())
        return 'pdf_folder' if has_pdfs else 'unknown'

    if input_path.exists() and input_path.suffix.lower() == '.pdf':
        return 'pdf'

    return 'unknown'


# ============================================================================
# Temporary Workspaces
# ============================================================================

def create_temp_dir(
    prefix: str = "transcript_ingest_",
    base_dir: Optional[Union[str, Path]] = None
) -> Path:
    """
    Create a uniquely named temporary directory.

    Args:
        prefix: Prefix for the directory name
        base_dir: Parent directory (None = system temp dir)

    Returns:
        Path to the temporary directory
    """
    temp_dir = Path(tempfile.mkdtemp(prefix=prefix, dir=base_dir))
    logger.debug(f"Created temp directory: {temp_dir}")
    return temp_dir


def cleanup_dir(path: Union[str, Path], prefix: str = "transcript_ingest_") -> bool:
    """
    Remove a temporary directory and its contents.

    Refuses to delete directories whose name doesn't carry the temp prefix.

    Returns:
        True if the directory no longer exists
    """
    path = Path(path)
    if not path.exists():
        return True

    if not path.name.startswith(prefix):
        logger.warning(f"Refusing to delete non-temp directory: {path}")
        return False

    try:
        shutil.rmtree(path)
        logger.debug(f"Removed directory: {path}")
        return True
    except OSError as e:
        logger.error(f"Failed to remove directory {path}: {e}")
        return False


@contextmanager
def temp_workspace(
    prefix: str = "transcript_ingest_",
    base_dir: Optional[Union[str, Path]] = None
) -> Iterator[Path]:
    """
    Yield a fresh temporary directory that is removed on every exit path.

    Example:
        with temp_workspace() as workdir:
            (workdir / "page.pdf").write_bytes(pdf_bytes)
    """
    workdir = create_temp_dir(prefix=prefix, base_dir=base_dir)
    try:
        yield workdir
    finally:
        cleanup_dir(workdir, prefix=prefix)


# ============================================================================
# JSON Serialization
# ============================================================================

class EnhancedJSONEncoder(json.JSONEncoder):
    """JSON encoder that handles dataclasses, enums and paths."""

    def default(self, obj):
        if hasattr(obj, 'to_dict'):
            return obj.to_dict()
        if hasattr(obj, '__dataclass_fields__'):
            return asdict(obj)
        if isinstance(obj, Enum):
            return obj.value
        if isinstance(obj, Path):
            return str(obj)
        if isinstance(obj, (set, frozenset, tuple)):
            return list(obj)
        return super().default(obj)


def save_json(
    data: Any,
    output_path: Union[str, Path],
    indent: int = 2,
    ensure_ascii: bool = False
) -> Path:
    """
    Save data to a JSON file.

    Args:
        data: Data to serialize (dict, list, dataclass, etc.)
        output_path: Path to save the JSON file
        indent: Indentation level for pretty printing
        ensure_ascii: If True, escape non-ASCII characters

    Returns:
        Path to the saved file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=indent, ensure_ascii=ensure_ascii, cls=EnhancedJSONEncoder)

    logger.debug(f"Saved JSON: {output_path}")
    return output_path


def load_json(json_path: Union[str, Path]) -> Any:
    """Load data from a JSON file."""
    json_path = Path(json_path)
    if not json_path.exists():
        raise FileNotFoundError(f"JSON file not found: {json_path}")

    with open(json_path, 'r', encoding='utf-8') as f:
        return json.load(f)


# ============================================================================
# CSV Serialization
# ============================================================================

def save_csv(
    rows: Sequence[Dict[str, Any]],
    output_path: Union[str, Path],
    fieldnames: Optional[List[str]] = None
) -> Path:
    """
    Save a list of dicts as CSV.

    Args:
        rows: Records to write
        output_path: Destination file
        fieldnames: Column order (default: keys of the first row)

    Returns:
        Path to the saved file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    if fieldnames is None:
        fieldnames = list(rows[0].keys()) if rows else []

    with open(output_path, 'w', encoding='utf-8', newline='') as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames, extrasaction='ignore')
        writer.writeheader()
        for row in rows:
            writer.writerow({k: ("" if v is None else v) for k, v in row.items()})

    logger.debug(f"Saved CSV: {output_path} ({len(rows)} rows)")
    return output_path


def ensure_dir(path: Union[str, Path]) -> Path:
    """Ensure a directory exists, creating it if necessary."""
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path
