"""
End-to-end tests for the transcript assembler.
"""

import json
import pytest
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from transcript_ingest.config import PipelineConfig


POOR_TEXT = "\n".join(["MA", "TH", "13", "14", "Co", "ll"])
OCR_TEXT = "MATH 1314 College Algebra A 3.00"


def never_called(*args):
    raise AssertionError("OCR fallback should not run")


class TestExtractTextLayers:
    """Test the quality gate and OCR fallback wiring."""

    def test_good_text_skips_ocr(self, transcript_lines):
        from transcript_ingest.utils.assembler import TranscriptAssembler, ExtractionMetrics

        assembler = TranscriptAssembler(
            config=PipelineConfig(),
            client=object(),
            text_extractor=lambda pdf: transcript_lines,
            renderer=never_called,
            recognizer=never_called,
        )
        metrics = ExtractionMetrics()
        result = assembler.extract_text_layers(b"%PDF", metrics)

        assert result.primary_text == transcript_lines
        assert result.ocr_text is None
        assert result.used_ocr_fallback is False
        assert metrics.used_ocr_fallback is False

    def test_poor_text_uses_ocr(self):
        from transcript_ingest.utils.assembler import TranscriptAssembler, ExtractionMetrics

        rendered = []
        assembler = TranscriptAssembler(
            config=PipelineConfig(),
            client=object(),
            text_extractor=lambda pdf: POOR_TEXT,
            renderer=lambda pdf: rendered.append(pdf) or b"PNG",
            recognizer=lambda image: OCR_TEXT,
        )
        metrics = ExtractionMetrics()
        result = assembler.extract_text_layers(b"%PDF", metrics)

        assert rendered == [b"%PDF"]
        assert result.primary_text == POOR_TEXT
        assert result.ocr_text == OCR_TEXT
        assert result.used_ocr_fallback is True
        assert metrics.ocr_chars == len(OCR_TEXT)

    def test_threshold_comes_from_config(self, transcript_lines):
        from transcript_ingest.utils.assembler import TranscriptAssembler

        config = PipelineConfig()
        config.quality_gate.min_avg_line_length = 1000.0
        assembler = TranscriptAssembler(
            config=config,
            client=object(),
            text_extractor=lambda pdf: transcript_lines,
            renderer=lambda pdf: b"PNG",
            recognizer=lambda image: OCR_TEXT,
        )

        assert assembler.extract_text_layers(b"%PDF").ocr_text == OCR_TEXT

    def test_ocr_settings_come_from_config(self, monkeypatch):
        from transcript_ingest.utils import assembler as assembler_module
        from transcript_ingest.utils.assembler import TranscriptAssembler

        calls = []
        monkeypatch.setattr(
            assembler_module, "recognize_text",
            lambda image, **kwargs: calls.append(kwargs) or OCR_TEXT,
        )
        config = PipelineConfig()
        config.ocr.min_text_height = 48
        config.ocr.tesseract_lang = "deu"
        assembler = TranscriptAssembler(
            config=config,
            client=object(),
            text_extractor=lambda pdf: POOR_TEXT,
            renderer=lambda pdf: b"PNG",
        )

        assert assembler.extract_text_layers(b"%PDF").ocr_text == OCR_TEXT
        assert calls[0]["min_text_height"] == 48
        assert calls[0]["language"] == "deu"

    def test_ocr_failure_is_not_fatal(self):
        """A failed fallback still hands the poor text layer to the parser."""
        from transcript_ingest.utils.assembler import TranscriptAssembler, ExtractionMetrics
        from transcript_ingest.utils.errors import RenderFailed

        def failing_renderer(pdf):
            raise RenderFailed("poppler missing")

        assembler = TranscriptAssembler(
            config=PipelineConfig(),
            client=object(),
            text_extractor=lambda pdf: POOR_TEXT,
            renderer=failing_renderer,
            recognizer=never_called,
        )
        metrics = ExtractionMetrics()
        result = assembler.extract_text_layers(b"%PDF", metrics)

        assert result.primary_text == POOR_TEXT
        assert result.ocr_text is None
        assert metrics.ocr_error == "poppler missing"

    def test_no_text_anywhere_raises(self):
        from transcript_ingest.utils.assembler import TranscriptAssembler
        from transcript_ingest.utils.errors import NoExtractableText, RecognitionFailed

        def failing_recognizer(image):
            raise RecognitionFailed("tesseract missing")

        assembler = TranscriptAssembler(
            config=PipelineConfig(),
            client=object(),
            text_extractor=lambda pdf: "  \n ",
            renderer=lambda pdf: b"PNG",
            recognizer=failing_recognizer,
        )

        with pytest.raises(NoExtractableText):
            assembler.extract_text_layers(b"%PDF")

    def test_blank_ocr_counts_as_no_text(self):
        from transcript_ingest.utils.assembler import TranscriptAssembler
        from transcript_ingest.utils.errors import NoExtractableText

        assembler = TranscriptAssembler(
            config=PipelineConfig(),
            client=object(),
            text_extractor=lambda pdf: "",
            renderer=lambda pdf: b"PNG",
            recognizer=lambda image: " \n ",
        )

        with pytest.raises(NoExtractableText):
            assembler.extract_text_layers(b"%PDF")

    def test_scanned_document_uses_ocr_only(self, fake_client, extraction_response):
        from transcript_ingest.utils.assembler import TranscriptAssembler

        config = PipelineConfig()
        config.parser.two_pass = False
        client = fake_client([extraction_response])
        assembler = TranscriptAssembler(
            config=config,
            client=client,
            text_extractor=lambda pdf: "",
            renderer=lambda pdf: b"PNG",
            recognizer=lambda image: OCR_TEXT,
        )

        transcript = assembler.extract_transcript_info(b"%PDF")

        assert OCR_TEXT in client.prompts[0]
        assert len(transcript.courses) == 3


class TestProcessDocument:
    """Test the full pipeline with a scripted completion client."""

    def test_process_document(self, fake_client, structure_response, extraction_response, transcript_lines):
        from transcript_ingest.utils.assembler import TranscriptAssembler

        client = fake_client([structure_response, extraction_response])
        assembler = TranscriptAssembler(
            config=PipelineConfig(),
            client=client,
            text_extractor=lambda pdf: transcript_lines,
            renderer=never_called,
            recognizer=never_called,
        )

        record = assembler.process_document(b"%PDF", source_file="jordan.pdf")
        transcript = record.transcript

        assert client.calls == 2
        assert record.source_file == "jordan.pdf"
        assert record.task_id
        assert transcript.semester_headers == ("Fall 2022", "Spring 2023")
        assert [(c.course_number, c.semester) for c in transcript.courses] == [
            ("MATH 1314", "Fall 2022"),
            ("BIO 1314", "Fall 2022"),
            ("CMSC 1313", "Spring 2025"),
        ]
        assert record.metrics.courses_parsed == 4
        assert record.metrics.courses_kept == 3

        data = record.to_dict()
        assert data["schema_version"] == "1.0"
        assert data["transcript"]["courses"][1]["courseNumber"] == "BIO 1314"
        assert data["metrics"]["courses"] == {"parsed": 4, "kept": 3}

    def test_completion_errors_propagate(self, fake_client, transcript_lines):
        from transcript_ingest.utils.assembler import TranscriptAssembler
        from transcript_ingest.utils.errors import CompletionOverloaded

        assembler = TranscriptAssembler(
            config=PipelineConfig(),
            client=fake_client([CompletionOverloaded("busy")]),
            text_extractor=lambda pdf: transcript_lines,
        )

        with pytest.raises(CompletionOverloaded):
            assembler.process_document(b"%PDF")

    def test_debug_mode_saves_text(self, fake_client, extraction_response, tmp_path):
        from transcript_ingest.utils.assembler import TranscriptAssembler

        config = PipelineConfig(debug_mode=True)
        config.parser.two_pass = False
        assembler = TranscriptAssembler(
            config=config,
            client=fake_client([extraction_response]),
            text_extractor=lambda pdf: POOR_TEXT,
            renderer=lambda pdf: b"PNG",
            recognizer=lambda image: OCR_TEXT,
            output_dir=tmp_path,
        )

        assembler.process_document(b"%PDF")

        assert (tmp_path / "debug" / "primary_text.txt").read_text(encoding="utf-8") == POOR_TEXT
        assert (tmp_path / "debug" / "ocr_text.txt").read_text(encoding="utf-8") == OCR_TEXT
        assert (tmp_path / "debug" / "page.png").read_bytes() == b"PNG"

    def test_extract_transcript_info_from_pdf(self, fake_client, structure_response, transcript_pdf_bytes):
        """Real pdfplumber extraction feeding the scripted parser."""
        pytest.importorskip("pdfplumber")
        from transcript_ingest.utils.assembler import extract_transcript_info

        response = {
            "studentName": "Jordan Avery",
            "university": "Lakeside Community College",
            "courses": [
                {"courseNumber": "MATH 1314", "courseName": "College Algebra", "semester": "Fall 2022", "grade": "A", "hours": 3},
                {"courseNumber": "BIOL 1406", "courseName": "General Biology I", "semester": "Fall 2022", "grade": "B", "hours": 4},
            ],
        }
        client = fake_client([structure_response, response])

        transcript = extract_transcript_info(transcript_pdf_bytes, client=client, config=PipelineConfig())

        assert "College Algebra" in client.prompts[0]
        assert "OCR text:" not in client.prompts[1]
        assert json.loads(json.dumps(transcript.to_dict()))["courses"][1]["hours"] == 4
