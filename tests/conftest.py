"""
Shared fixtures for the transcript ingestion tests.
"""

import json
import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


class FakeCompletionClient:
    """
    Scripted completion client.

    Each call pops the next scripted item: strings are returned, dicts are
    returned as JSON, exceptions are raised.
    """

    def __init__(self, responses):
        self.responses = list(responses)
        self.prompts = []
        self.timeouts = []

    def complete_structured(self, prompt_text, timeout_ms=120_000):
        self.prompts.append(prompt_text)
        self.timeouts.append(timeout_ms)
        if not self.responses:
            raise AssertionError("Unexpected completion call")

        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        if isinstance(item, dict):
            return json.dumps(item)
        return item

    @property
    def calls(self):
        return len(self.prompts)


@pytest.fixture
def fake_client():
    """Factory for scripted completion clients."""
    return FakeCompletionClient


@pytest.fixture
def structure_response():
    return {
        "hasTwoColumns": False,
        "hasMultiplePages": False,
        "semesterHeaders": [
            {"semester": "Fall 2022", "column": "First"},
            {"semester": "Spring 2023", "column": "First"},
        ],
    }


@pytest.fixture
def extraction_response():
    return {
        "studentName": "Jordan Avery",
        "university": "Lakeside Community College",
        "courses": [
            {"courseNumber": "MATH 1314", "courseName": "College Algebra", "semester": "Fall 2022", "grade": "A", "hours": 3},
            {"courseNumber": "BIO1314", "courseName": "General Biology I", "semester": "FA22", "grade": "B", "hours": "4.00"},
            {"courseNumber": "CMSC 1313", "courseName": "Programming in C", "semester": "Spring D025", "grade": "A", "hours": 3},
            {"courseNumber": "EHRS", "courseName": "Cumulative GPA 3.67", "semester": None, "grade": None, "hours": None},
        ],
    }


@pytest.fixture
def transcript_lines():
    """Readable transcript text that passes the quality gate."""
    return "\n".join([
        "Lakeside Community College",
        "Official Academic Transcript for Jordan Avery",
        "Fall 2022",
        "MATH 1314   College Algebra          A   3.00",
        "BIOL 1406   General Biology I        B   4.00",
        "Spring 2023",
        "CMSC 1313   Programming in C         A   3.00",
    ])


@pytest.fixture
def transcript_pdf_bytes():
    """A one-page transcript PDF with a text layer."""
    fpdf = pytest.importorskip("fpdf")
    from fpdf.enums import XPos, YPos

    pdf = fpdf.FPDF()
    pdf.add_page()
    pdf.set_font('Helvetica', 'B', 14)
    pdf.multi_cell(0, 8, "Lakeside Community College", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.set_font('Helvetica', '', 10)
    for line in [
        "Official Academic Transcript for Jordan Avery",
        "Fall 2022",
        "MATH 1314   College Algebra   A   3.00",
        "BIOL 1406   General Biology I   B   4.00",
    ]:
        pdf.multi_cell(0, 6, line, new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    return bytes(pdf.output())
