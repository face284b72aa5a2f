"""
Structured parser: transcript text to a candidate transcript.

Runs the completion-backed extraction in two passes:
1. Structure pass identifies semester headers, columns and page span
2. Extraction pass pulls the course list with that structure as context

Response shapes accepted from the extraction pass:
- flat:      {"courses": [...]}
- semesters: {"semesters": [{"semester", "courses"}], "coursesWithoutSemester": [...]}
Both flatten to the same CandidateTranscript.
"""

import logging
import re
from typing import Any, Dict, List, Optional

from .completion import CompletionClient, parse_json_object, DEFAULT_TIMEOUT_MS
from .errors import MalformedCompletionResponse
from .models import CandidateCourseRecord, CandidateTranscript, Hours, TranscriptStructure
from .prompts import build_extraction_prompt, build_structure_prompt

logger = logging.getLogger(__name__)

DEFAULT_STRUCTURE = TranscriptStructure(has_two_columns=True, has_multiple_pages=False)

_NUMBER_KEYS = ("courseNumber", "course_number", "number", "code")
_NAME_KEYS = ("courseName", "courseDescription", "course_name", "name", "title")
_HOURS_KEYS = ("hours", "credits", "creditHours", "credit_hours")
_SEMESTER_KEYS = ("semester", "term")


class StructuredParser:
    """
    Turn extracted transcript text into a CandidateTranscript.

    Example:
        parser = StructuredParser(client)
        transcript = parser.parse(text)
    """

    def __init__(
        self,
        client: CompletionClient,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        two_pass: bool = True
    ):
        self.client = client
        self.timeout_ms = timeout_ms
        self.two_pass = two_pass

    def parse(self, primary_text: str, ocr_text: Optional[str] = None) -> CandidateTranscript:
        """
        Parse transcript text into structured course records.

        Raises:
            CompletionError: If the completion service fails in either pass
            MalformedCompletionResponse: If the extraction response is unusable
        """
        structure = None
        if self.two_pass:
            structure = self.identify_structure(primary_text, ocr_text)

        prompt = build_extraction_prompt(primary_text, ocr_text, structure)
        raw = self.client.complete_structured(prompt, self.timeout_ms)
        transcript = parse_transcript_response(raw)

        if structure is not None:
            transcript = CandidateTranscript(
                student_name=transcript.student_name,
                university=transcript.university,
                courses=transcript.courses,
                semester_headers=structure.header_names,
            )

        logger.info(f"Extraction pass complete: {len(transcript.courses)} course rows")
        return transcript

    def identify_structure(
        self,
        primary_text: str,
        ocr_text: Optional[str] = None
    ) -> TranscriptStructure:
        """
        Run the structure pass.

        A malformed response falls back to the default structure; completion
        service errors propagate.
        """
        raw = self.client.complete_structured(
            build_structure_prompt(primary_text, ocr_text), self.timeout_ms
        )

        try:
            structure = parse_structure_response(raw)
        except MalformedCompletionResponse as e:
            logger.warning(f"Structure pass unusable, using default structure: {e}")
            return DEFAULT_STRUCTURE

        logger.info(
            f"Structure pass complete: {len(structure.semester_headers)} headers, "
            f"{'2 columns' if structure.has_two_columns else '1 column'}, "
            f"{'multiple pages' if structure.has_multiple_pages else 'single page'}"
        )
        return structure


# ============================================================================
# Structure Response
# ============================================================================

def parse_structure_response(raw_response: str) -> TranscriptStructure:
    data = parse_json_object(raw_response)

    headers = data.get("semesterHeaders") or []
    if not isinstance(headers, list):
        raise MalformedCompletionResponse("semesterHeaders is not a list", raw_response)

    normalized = []
    for header in headers:
        if isinstance(header, str):
            header = {"semester": header}
        if isinstance(header, dict) and header.get("semester"):
            normalized.append(dict(header))

    normalized = correct_header_order(normalized)

    return TranscriptStructure(
        has_two_columns=bool(data.get("hasTwoColumns", False)),
        has_multiple_pages=bool(data.get("hasMultiplePages", False)),
        semester_headers=tuple(normalized),
    )


def header_year(semester: str) -> Optional[int]:
    """Year of a semester label ("Fall 2022" -> 2022, "FA22" -> 2022)."""
    match = re.search(r"(?<!\d)(\d{4})(?!\d)", semester)
    if match:
        return int(match.group(1))
    match = re.search(r"(?<!\d)(\d{2})(?!\d)", semester)
    if match:
        return 2000 + int(match.group(1))
    return None


def correct_header_order(headers: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Reverse headers listed newest first (first year later than last)."""
    if len(headers) < 2:
        return headers

    first = header_year(str(headers[0]["semester"]))
    last = header_year(str(headers[-1]["semester"]))
    if first and last and first > last:
        logger.warning(
            f"Semester headers appear reversed ({first} before {last}); reversing"
        )
        return list(reversed(headers))
    return headers


# ============================================================================
# Extraction Response
# ============================================================================

def parse_transcript_response(raw_response: str) -> CandidateTranscript:
    """
    Decode an extraction response into a CandidateTranscript.

    Raises:
        MalformedCompletionResponse: If no course list can be found
    """
    data = parse_json_object(raw_response)

    if "semesters" in data or "coursesWithoutSemester" in data:
        raw_courses = flatten_semester_groups(data, raw_response)
    elif "courses" in data:
        raw_courses = data["courses"]
        if raw_courses is None:
            raw_courses = []
        if not isinstance(raw_courses, list):
            raise MalformedCompletionResponse("courses is not a list", raw_response)
    else:
        raise MalformedCompletionResponse("Response has no course list", raw_response)

    courses = []
    for item in raw_courses:
        if not isinstance(item, dict):
            logger.debug(f"Skipping non-object course entry: {item!r}")
            continue
        courses.append(coerce_course(item))

    return CandidateTranscript(
        student_name=_clean_str(data.get("studentName") or data.get("student_name")),
        university=_clean_str(data.get("university") or data.get("institution")),
        courses=tuple(courses),
    )


def flatten_semester_groups(data: Dict[str, Any], raw_response: str) -> List[Dict[str, Any]]:
    """Flatten the semester-organized shape; group semester fills in a missing one."""
    flat: List[Dict[str, Any]] = []

    without = data.get("coursesWithoutSemester") or []
    if not isinstance(without, list):
        raise MalformedCompletionResponse("coursesWithoutSemester is not a list", raw_response)
    flat.extend(without)

    groups = data.get("semesters") or []
    if not isinstance(groups, list):
        raise MalformedCompletionResponse("semesters is not a list", raw_response)

    for group in groups:
        if not isinstance(group, dict):
            continue
        group_semester = group.get("semester")
        group_courses = group.get("courses") or []
        if not isinstance(group_courses, list):
            raise MalformedCompletionResponse("semester courses is not a list", raw_response)
        for course in group_courses:
            if isinstance(course, dict) and not _first(course, _SEMESTER_KEYS):
                course = dict(course, semester=group_semester)
            flat.append(course)

    return flat


def coerce_course(item: Dict[str, Any]) -> CandidateCourseRecord:
    return CandidateCourseRecord(
        course_number=_clean_str(_first(item, _NUMBER_KEYS)),
        course_name=_clean_str(_first(item, _NAME_KEYS)),
        semester=_clean_str(_first(item, _SEMESTER_KEYS)),
        grade=_clean_str(item.get("grade")),
        hours=coerce_hours(_first(item, _HOURS_KEYS)),
    )


def coerce_hours(value: Any) -> Optional[Hours]:
    """Credit hours from a number or numeric string ("3.00" -> 3)."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        try:
            value = float(value)
        except ValueError:
            return None
    if not isinstance(value, (int, float)):
        return None
    if float(value).is_integer():
        return int(value)
    return float(value)


def _first(item: Dict[str, Any], keys) -> Any:
    for key in keys:
        value = item.get(key)
        if value is not None and value != "":
            return value
    return None


def _clean_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
