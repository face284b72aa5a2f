"""
Export module for processed transcripts.

Provides:
- JSON export (full record with metrics)
- CSV export (one row per course)
- Markdown export (readable course table)
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .io import save_csv, save_json
from .models import CandidateTranscript

logger = logging.getLogger(__name__)

COURSE_COLUMNS = ["courseNumber", "courseName", "semester", "grade", "hours"]


def _transcript_of(record: Any) -> CandidateTranscript:
    return record.transcript if hasattr(record, "transcript") else record


# ============================================================================
# Markdown Exporter
# ============================================================================

class MarkdownExporter:
    """Export a transcript as a Markdown course table."""

    def __init__(self, missing: str = "-"):
        self.missing = missing

    def export(self, record: Any, output_path: Union[str, Path]) -> Path:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(self.render(record))

        logger.info(f"Exported Markdown to: {output_path}")
        return output_path

    def render(self, record: Any) -> str:
        """Generate Markdown for a transcript or transcript record."""
        transcript = _transcript_of(record)
        lines = [f"# {transcript.student_name or 'Unknown student'}", ""]

        if transcript.university:
            lines.append(f"**Institution:** {transcript.university}")
            lines.append("")

        lines.append("| Course | Title | Semester | Grade | Hours |")
        lines.append("|---|---|---|---|---|")
        for course in transcript.courses:
            cells = [
                course.course_number,
                course.course_name,
                course.semester,
                course.grade,
                course.hours,
            ]
            lines.append("| " + " | ".join(self._cell(c) for c in cells) + " |")

        lines.append("")
        lines.append(f"_{len(transcript.courses)} course(s)_")
        return "\n".join(lines) + "\n"

    def _cell(self, value: Any) -> str:
        if value is None or value == "":
            return self.missing
        return str(value).replace("|", "\\|")


# ============================================================================
# CSV Exporter
# ============================================================================

class CsvExporter:
    """Export transcript courses as CSV, one row per course."""

    def export(self, record: Any, output_path: Union[str, Path]) -> Path:
        transcript = _transcript_of(record)
        rows = [c.to_dict() for c in transcript.courses]
        path = save_csv(rows, output_path, fieldnames=COURSE_COLUMNS)
        logger.info(f"Exported CSV to: {path}")
        return path


# ============================================================================
# Multi-format Exporter
# ============================================================================

class TranscriptExporter:
    """Convenience class for exporting to multiple formats."""

    FORMATS = ("json", "csv", "markdown")

    def __init__(
        self,
        output_dir: Union[str, Path],
        base_name: str = "transcript"
    ):
        self.output_dir = Path(output_dir)
        self.base_name = base_name

        self.markdown_exporter = MarkdownExporter()
        self.csv_exporter = CsvExporter()

    def export(
        self,
        record: Any,
        formats: Optional[List[str]] = None
    ) -> Dict[str, Path]:
        """
        Export a transcript record to several formats.

        Args:
            record: TranscriptRecord or CandidateTranscript
            formats: Any of 'json', 'csv', 'markdown', 'all' (default: json)

        Returns:
            Dictionary mapping format to output path
        """
        if not formats:
            formats = ["json"]
        if "all" in formats:
            formats = list(self.FORMATS)

        self.output_dir.mkdir(parents=True, exist_ok=True)
        results = {}

        if "json" in formats:
            path = self.output_dir / f"{self.base_name}.json"
            results["json"] = save_json(record, path)
            logger.info(f"Exported JSON to: {path}")

        if "csv" in formats:
            path = self.output_dir / f"{self.base_name}.csv"
            results["csv"] = self.csv_exporter.export(record, path)

        if "markdown" in formats:
            path = self.output_dir / f"{self.base_name}.md"
            results["markdown"] = self.markdown_exporter.export(record, path)

        return results
