"""
Tests for the two-pass structured parser.
"""

import pytest
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


class TestStructuredParser:
    """Test parsing through a scripted completion client."""

    def test_two_pass_flat_response(self, fake_client, structure_response, extraction_response, transcript_lines):
        from transcript_ingest.utils.parser import StructuredParser

        client = fake_client([structure_response, extraction_response])
        transcript = StructuredParser(client, timeout_ms=9000).parse(transcript_lines)

        assert client.calls == 2
        assert client.timeouts == [9000, 9000]
        assert transcript.student_name == "Jordan Avery"
        assert transcript.university == "Lakeside Community College"
        assert transcript.semester_headers == ("Fall 2022", "Spring 2023")
        assert len(transcript.courses) == 4
        assert transcript.courses[1].hours == 4

    def test_structure_is_passed_to_extraction(self, fake_client, structure_response, extraction_response, transcript_lines):
        from transcript_ingest.utils.parser import StructuredParser

        client = fake_client([structure_response, extraction_response])
        StructuredParser(client).parse(transcript_lines)

        assert "Do NOT extract courses" in client.prompts[0]
        assert '"semester": "Spring 2023"' in client.prompts[1]
        assert "one column" in client.prompts[1]
        assert transcript_lines in client.prompts[1]

    def test_single_pass(self, fake_client, extraction_response, transcript_lines):
        from transcript_ingest.utils.parser import StructuredParser

        client = fake_client([extraction_response])
        transcript = StructuredParser(client, two_pass=False).parse(transcript_lines)

        assert client.calls == 1
        assert transcript.semester_headers == ()
        assert len(transcript.courses) == 4

    def test_ocr_text_is_included(self, fake_client, extraction_response):
        from transcript_ingest.utils.parser import StructuredParser

        client = fake_client([extraction_response])
        StructuredParser(client, two_pass=False).parse("MA\nTH", ocr_text="MATH 1314 College Algebra")

        assert "Raw text layer:\nMA\nTH" in client.prompts[0]
        assert "OCR text:\nMATH 1314 College Algebra" in client.prompts[0]

    def test_malformed_structure_uses_default(self, fake_client, extraction_response, transcript_lines):
        """An unusable structure response doesn't stop extraction."""
        from transcript_ingest.utils.parser import StructuredParser

        client = fake_client(["I cannot help with that", extraction_response])
        transcript = StructuredParser(client).parse(transcript_lines)

        assert "two columns" in client.prompts[1]
        assert transcript.semester_headers == ()
        assert len(transcript.courses) == 4

    def test_malformed_extraction_raises(self, fake_client, structure_response, transcript_lines):
        from transcript_ingest.utils.parser import StructuredParser
        from transcript_ingest.utils.errors import MalformedCompletionResponse

        client = fake_client([structure_response, "{not json"])

        with pytest.raises(MalformedCompletionResponse):
            StructuredParser(client).parse(transcript_lines)

    def test_completion_errors_propagate(self, fake_client, transcript_lines):
        from transcript_ingest.utils.parser import StructuredParser
        from transcript_ingest.utils.errors import CompletionOverloaded

        client = fake_client([CompletionOverloaded("busy")])

        with pytest.raises(CompletionOverloaded):
            StructuredParser(client).parse(transcript_lines)
        assert client.calls == 1


class TestParseTranscriptResponse:
    """Test decoding of extraction responses."""

    def test_fenced_response(self):
        from transcript_ingest.utils.parser import parse_transcript_response

        raw = '```json\n{"studentName": " Jo ", "courses": [{"courseNumber": "MATH 1314", "hours": 3}]}\n```'
        transcript = parse_transcript_response(raw)

        assert transcript.student_name == "Jo"
        assert transcript.university is None
        assert transcript.courses[0].course_number == "MATH 1314"

    def test_semester_shape_is_flattened(self):
        """Courses without a semester come first; grouped courses inherit theirs."""
        from transcript_ingest.utils.parser import parse_transcript_response

        raw = """{
            "studentName": "Jo",
            "semesters": [
                {"semester": "Fall 2022", "courses": [
                    {"courseNumber": "MATH 1314", "courseName": "College Algebra"},
                    {"courseNumber": "ENGL 1301", "semester": "Fall 2022 Late Start"}
                ]},
                {"semester": "Spring 2023", "courses": [{"courseNumber": "CMSC 1313"}]}
            ],
            "coursesWithoutSemester": [{"courseNumber": "AP CALC", "courseName": "AP Calculus"}]
        }"""
        courses = parse_transcript_response(raw).courses

        assert [c.course_number for c in courses] == ["AP CALC", "MATH 1314", "ENGL 1301", "CMSC 1313"]
        assert [c.semester for c in courses] == [None, "Fall 2022", "Fall 2022 Late Start", "Spring 2023"]

    def test_key_aliases(self):
        from transcript_ingest.utils.parser import parse_transcript_response

        raw = '{"courses": [{"course_number": "HIST 1301", "title": "US History", "term": "SP23", "credits": "3.0"}]}'
        course = parse_transcript_response(raw).courses[0]

        assert course.course_number == "HIST 1301"
        assert course.course_name == "US History"
        assert course.semester == "SP23"
        assert course.hours == 3

    def test_null_courses_is_empty(self):
        from transcript_ingest.utils.parser import parse_transcript_response

        assert parse_transcript_response('{"courses": null}').courses == ()

    def test_non_object_entries_are_skipped(self):
        from transcript_ingest.utils.parser import parse_transcript_response

        courses = parse_transcript_response('{"courses": ["MATH 1314", {"courseNumber": "CMSC 1313"}]}').courses
        assert [c.course_number for c in courses] == ["CMSC 1313"]

    @pytest.mark.parametrize("raw", ['{"studentName": "Jo"}', '{"courses": "none"}', '{"semesters": "Fall 2022"}'])
    def test_missing_course_list_raises(self, raw):
        from transcript_ingest.utils.parser import parse_transcript_response
        from transcript_ingest.utils.errors import MalformedCompletionResponse

        with pytest.raises(MalformedCompletionResponse):
            parse_transcript_response(raw)


class TestStructureResponse:
    """Test decoding of structure responses."""

    def test_string_and_object_headers(self):
        from transcript_ingest.utils.parser import parse_structure_response

        structure = parse_structure_response(
            '{"hasTwoColumns": true, "semesterHeaders": ["Fall 2021", {"semester": "Spring 2022", "column": "Second"}, {"column": "First"}]}'
        )

        assert structure.has_two_columns is True
        assert structure.has_multiple_pages is False
        assert structure.header_names == ("Fall 2021", "Spring 2022")

    def test_reversed_headers_are_corrected(self):
        from transcript_ingest.utils.parser import parse_structure_response

        structure = parse_structure_response(
            '{"semesterHeaders": ["Fall 2023", "Spring 2023", "Fall 2022"]}'
        )

        assert structure.header_names == ("Fall 2022", "Spring 2023", "Fall 2023")

    def test_chronological_headers_are_kept(self):
        from transcript_ingest.utils.parser import correct_header_order

        headers = [{"semester": "FA21"}, {"semester": "SP22"}]
        assert correct_header_order(headers) == headers

    def test_header_year(self):
        from transcript_ingest.utils.parser import header_year

        assert header_year("Fall 2022") == 2022
        assert header_year("FA22") == 2022
        assert header_year("Summer") is None


class TestCoerceHours:
    """Test credit hour coercion."""

    @pytest.mark.parametrize("value,expected", [
        (3, 3),
        (3.0, 3),
        ("3.00", 3),
        ("1.5", 1.5),
        (" 4 ", 4),
        ("", None),
        ("three", None),
        (None, None),
        (True, None),
        ([3], None),
    ])
    def test_coerce_hours(self, value, expected):
        from transcript_ingest.utils.parser import coerce_hours

        assert coerce_hours(value) == expected
