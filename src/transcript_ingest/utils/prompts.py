"""
Prompt contracts for the completion-backed steps.

Three prompts are built here:
- structure pass: semester headers, column layout, page span
- extraction pass: student, institution and the course list
- classification: course description to subject prefix

The rules below are the contract the parser and matcher rely on; the
deterministic code downstream re-applies the ones it can check.
"""

import json
from typing import Iterable, Optional

from .models import PrefixKeywordEntry, TranscriptStructure


# ============================================================================
# Source Text Section
# ============================================================================

def build_source_section(primary_text: str, ocr_text: Optional[str] = None) -> str:
    """Wrap the extracted text (and OCR text when present) for a prompt."""
    if not ocr_text:
        return f"Transcript text:\n{primary_text}"

    return (
        "Two extractions of the same transcript follow. The raw text layer may "
        "have broken or run-together words; the OCR text may have character "
        "recognition errors. Use both to recover the correct values.\n\n"
        f"Raw text layer:\n{primary_text}\n\n"
        f"OCR text:\n{ocr_text}"
    )


# ============================================================================
# Pass 1: Structure
# ============================================================================

STRUCTURE_PROMPT = """You are a structure analysis assistant. Analyze the layout of the academic transcript below.

Identify:
1. Every semester header (a term such as Spring, Fall, Summer, Winter or the codes SP, FA, SU, WN, followed by a year in YYYY or YY form).
2. Whether the transcript is laid out in 1 or 2 columns (LEFT side = First column, RIGHT side = Second column).
3. Whether the transcript spans multiple pages.

Do NOT extract courses yet.

Rules:
- Read each header string to its end before deciding. A header containing "Transfer" anywhere (for example "2022 Fall - Transfer") is a transfer section, not a semester header. Exclude it.
- Section headers such as "Advanced Placement", "AP", "CLEP", "Transfer Credit" or "Institution Credit" are not semester headers. Exclude them.
- List semester headers in the exact order they appear in the document, top to bottom. For two columns, list every First column header first, then every Second column header. Do not reverse the order.

Return ONLY a JSON object:
{{
  "hasTwoColumns": true or false,
  "hasMultiplePages": true or false,
  "semesterHeaders": [
    {{"semester": "Fall 2022", "column": "First" or "Second", "location": "short description"}}
  ]
}}

{source}
"""


def build_structure_prompt(primary_text: str, ocr_text: Optional[str] = None) -> str:
    return STRUCTURE_PROMPT.format(source=build_source_section(primary_text, ocr_text))


# ============================================================================
# Pass 2: Course Extraction
# ============================================================================

EXTRACTION_RULES = """Extract from the academic transcript below:
- the student's full name
- the issuing institution (university or college) name
- every course, with: courseNumber, courseName, semester, grade, hours (credit hours as a number)

Course number:
- A valid course number is 2-5 letters followed by 2-5 digits, optionally with a lab suffix ("CMSC 1113L") or a decimal part ("CMSC 1083.2"). Keep every letter and every digit; never truncate.
- Blank or dash-only course numbers ("---") are null.
- Lines without this pattern are not courses. Never emit statistics labels such as "EHRS", "GPA", "HRSPOINTS", "Cumulative:" as courses.

Course name:
- The complete title, without the grade. If a grade letter (A, B, C, D, F, S, P, W, ...) is glued to the end of the title, move it to the grade field: "English Comp I A" is name "English Comp I", grade "A".
- A trailing Roman numeral (I, II, III, IV, V, ...) is part of the title, never a grade.

Semester assignment:
- A semester header applies to every course that follows it in the same column until the next semester header.
- Courses that appear before the first semester header of the whole document have no semester (null). This is common for AP and CLEP credit listed under an "Advanced Placement" section.
- In a two-column layout, a Second column course takes its semester from the most recent Second column header above it; if no Second column header has appeared yet, it takes the LAST First column header. A header on the same text row but in the other column never applies.
- If a course appears under a summary heading with no semester and also under a semester header, return only the semester-bearing occurrence.
- If only one course in the whole transcript lacks a semester, still return it.

Exclusions:
- Never return summary or statistics rows: Current, Retention, Cumulative, Totals, Points, GPA lines.
- Never return courses taken at another institution. Skip every course under a header containing "Transfer" until the next pure semester header.

Normalization:
- Write every semester as "<TermName> <FullYear>": "FA22" -> "Fall 2022", "2025SP" -> "Spring 2025", "SP 23" -> "Spring 2023", "2022 Fall" -> "Fall 2022".
- Repair OCR damage to years: a leading "D0" in a year is "20" ("Spring D025" -> "Spring 2025"), and "202S" is "2025".
"""

EXTRACTION_FORMAT = """Return ONLY a JSON object:
{
  "studentName": "string",
  "university": "string",
  "courses": [
    {"courseNumber": "BIO 1314", "courseName": "string", "semester": "Fall 2022" or null, "grade": "A", "hours": 3}
  ]
}
"""


def build_extraction_prompt(
    primary_text: str,
    ocr_text: Optional[str] = None,
    structure: Optional[TranscriptStructure] = None
) -> str:
    """
    Build the course-extraction prompt.

    When a structure from the first pass is given, its headers are listed so
    the model assigns semesters against a fixed header sequence.
    """
    parts = [EXTRACTION_RULES]

    if structure is not None:
        layout = "two columns" if structure.has_two_columns else "one column"
        pages = "multiple pages" if structure.has_multiple_pages else "a single page"
        parts.append(
            f"A previous analysis found the transcript uses {layout} on {pages}, "
            "with these semester headers in document order:\n"
            + json.dumps([dict(h) for h in structure.semester_headers], indent=2)
            + "\nAssign each course to one of these headers, or null."
        )

    parts.append(EXTRACTION_FORMAT)
    parts.append(build_source_section(primary_text, ocr_text))
    return "\n\n".join(parts)


# ============================================================================
# Subject Classification
# ============================================================================

CLASSIFICATION_PROMPT = """You classify college courses into subject prefixes.

Course description: {description}
Credit hours: {hours}

Available prefixes and the keywords that describe them:
{table}

Rules:
- Match subjects liberally by meaning, not only by exact keyword overlap. Any mathematics course (calculus, algebra, statistics, ...) maps to the mathematics prefix even if none of its keywords appear.
- Decide by the dominant subject of the description. Ignore generic qualifiers such as "introduction", "fundamentals", "principles", "survey" or "topics".
- Use only a prefix from the list above.
- confidence is one of "high", "medium", "low", "none". Use "none" with a null prefix when no prefix fits.

Return ONLY a JSON object:
{{"prefix": "MATH", "confidence": "high"}}
"""


def format_keyword_table(entries: Iterable[PrefixKeywordEntry]) -> str:
    return "\n".join(f"{e.prefix}: {e.keywords}" for e in entries)


def build_classification_prompt(
    description: str,
    hours,
    entries: Iterable[PrefixKeywordEntry]
) -> str:
    return CLASSIFICATION_PROMPT.format(
        description=description,
        hours=hours,
        table=format_keyword_table(entries),
    )
