"""
Tests for the command-line interface.
"""

import json
import pytest
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


@pytest.fixture
def store_path(tmp_path):
    path = tmp_path / "records.json"
    path.write_text(json.dumps({
        "catalog": [
            {"id": 101, "code": "MATH", "number": "2414", "description": "Calculus sequences series", "hours": 4},
            {"id": 102, "code": "CMSC", "number": "2325", "description": "Data structures algorithms", "hours": 3},
        ],
        "prefixKeywords": [],
        "transcriptCourses": [
            {"id": 1, "universityTranscriptId": 7, "courseNumber": "MATH 1314",
             "courseDescription": "College Algebra", "courseHours": 3, "courseId": None, "grade": "A"},
        ],
    }))
    return path


class TestArgParser:
    """Test argument parsing."""

    def test_extract_defaults(self):
        from transcript_ingest.cli import setup_argparser

        args = setup_argparser().parse_args(["extract", "--input", "t.pdf", "--output", "out"])

        assert args.command == "extract"
        assert args.format == ["json"]
        assert args.single_pass is False
        assert args.store is None

    def test_match_arguments(self):
        from transcript_ingest.cli import setup_argparser

        args = setup_argparser().parse_args(
            ["match", "--store", "records.json", "--transcript-id", "7", "--apply", "-q"]
        )

        assert args.transcript_id == 7
        assert args.apply is True
        assert args.quiet is True

    def test_command_is_required(self):
        from transcript_ingest.cli import setup_argparser

        with pytest.raises(SystemExit):
            setup_argparser().parse_args([])


class TestCommands:
    """Test command handlers."""

    def test_keywords_command(self, store_path, tmp_path, monkeypatch):
        from transcript_ingest import cli

        output = tmp_path / "prefixes.csv"
        monkeypatch.setattr(sys, "argv", [
            "transcript-ingest", "keywords", "--store", str(store_path),
            "--output", str(output), "--update-store", "-q",
        ])

        with pytest.raises(SystemExit) as excinfo:
            cli.main()

        assert excinfo.value.code == cli.EXIT_OK
        lines = output.read_text(encoding="utf-8").splitlines()
        assert lines[0] == "prefix,keywords"
        assert lines[1].startswith("CMSC,")
        stored = json.loads(store_path.read_text(encoding="utf-8"))
        assert [k["prefix"] for k in stored["prefixKeywords"]] == ["CMSC", "MATH"]

    def test_match_without_credentials_records_row_errors(self, store_path, tmp_path, monkeypatch):
        from transcript_ingest import cli

        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        report_path = tmp_path / "report.json"
        args = cli.setup_argparser().parse_args([
            "match", "--store", str(store_path), "--transcript-id", "7",
            "--output", str(report_path), "-q",
        ])

        assert cli.run_match(args) == cli.EXIT_FAILURE

        report = json.loads(report_path.read_text(encoding="utf-8"))
        assert report["matches"] == []
        assert report["errors"][0]["errorType"] == "CompletionUnavailable"

    def test_extract_store_requires_transcript_id(self, tmp_path):
        from transcript_ingest import cli

        args = cli.setup_argparser().parse_args([
            "extract", "--input", str(tmp_path), "--output", str(tmp_path / "out"),
            "--store", str(tmp_path / "records.json"),
        ])

        assert cli.run_extract(args) == cli.EXIT_FAILURE

    def test_extract_unsupported_input(self, tmp_path):
        from transcript_ingest import cli

        args = cli.setup_argparser().parse_args([
            "extract", "--input", str(tmp_path / "missing.pdf"), "--output", str(tmp_path / "out"),
        ])

        assert cli.run_extract(args) == cli.EXIT_FAILURE

    def test_extract_store_rejects_folder_input(self, tmp_path):
        from transcript_ingest import cli

        (tmp_path / "one.pdf").write_bytes(b"%PDF-1.4\n")
        args = cli.setup_argparser().parse_args([
            "extract", "--input", str(tmp_path), "--output", str(tmp_path / "out"),
            "--store", str(tmp_path / "records.json"), "--transcript-id", "7",
        ])

        assert cli.run_extract(args) == cli.EXIT_FAILURE
        assert not (tmp_path / "records.json").exists()

    def test_extract_folder_continues_past_failed_documents(self, tmp_path, monkeypatch):
        """One bad PDF in a folder does not stop the remaining files."""
        from transcript_ingest import cli
        from transcript_ingest.utils.assembler import TranscriptAssembler, TranscriptRecord
        from transcript_ingest.utils.errors import MalformedCompletionResponse
        from transcript_ingest.utils.models import CandidateCourseRecord, CandidateTranscript

        folder = tmp_path / "batch"
        folder.mkdir()
        (folder / "a_first.pdf").write_bytes(b"%PDF-1.4 first\n")
        (folder / "b_bad.pdf").write_bytes(b"not a pdf at all")
        (folder / "c_good.pdf").write_bytes(b"%PDF-1.4 good\n")

        seen = []

        def process_document(self, pdf_bytes, source_file=""):
            seen.append(Path(source_file).name)
            if source_file.endswith("a_first.pdf"):
                raise MalformedCompletionResponse("not json", raw_response="oops")
            transcript = CandidateTranscript(
                student_name="Jordan Avery",
                courses=(CandidateCourseRecord("MATH 1314", "College Algebra", "Fall 2022", "A", 3),),
            )
            return TranscriptRecord(task_id="", source_file=source_file, transcript=transcript)

        monkeypatch.setattr(TranscriptAssembler, "process_document", process_document)
        output = tmp_path / "out"
        args = cli.setup_argparser().parse_args([
            "extract", "--input", str(folder), "--output", str(output), "-q",
        ])

        assert cli.run_extract(args) == cli.EXIT_FAILURE
        assert seen == ["a_first.pdf", "c_good.pdf"]
        assert (output / "c_good.json").exists()
        assert not (output / "a_first.json").exists()
