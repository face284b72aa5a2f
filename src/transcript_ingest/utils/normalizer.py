"""
Deterministic post-processing of candidate transcripts.

Applied to every parser result, whatever model produced it:
- course-number cleanup and spacing repair ("BIO1314" -> "BIO 1314")
- semester OCR repair ("Spring D025" -> "Spring 2025") and term-code
  normalization ("FA22" -> "Fall 2022")
- course-name word-spacing repair, title casing, glued-grade split
- removal of summary rows, transfer rows and superseded duplicates

normalize_transcript is idempotent: a second run returns an equal value.
"""

import logging
import re
from dataclasses import replace
from typing import List, Optional

from .models import CandidateCourseRecord, CandidateTranscript

logger = logging.getLogger(__name__)

ROMAN_NUMERALS = ("VIII", "VII", "III", "IX", "IV", "VI", "II", "I", "X", "V")
_ROMAN = "|".join(ROMAN_NUMERALS)
_ROMAN_SET = frozenset(ROMAN_NUMERALS)

# Longest first so "within" wins over "with"
GLUED_CONNECTIVES = (
    "throughout", "without", "through", "within", "into", "upon",
    "from", "with", "the", "for", "and", "to", "of",
)

TERM_NAMES = {
    "FA": "Fall", "FAL": "Fall", "FALL": "Fall",
    "SP": "Spring", "SPR": "Spring", "SPRING": "Spring",
    "SU": "Summer", "SM": "Summer", "SUM": "Summer", "SUMMER": "Summer",
    "WI": "Winter", "WN": "Winter", "WT": "Winter", "WIN": "Winter", "WINTER": "Winter",
}
_TERM = "|".join(sorted(TERM_NAMES, key=len, reverse=True))
_TERM_FIRST_RE = re.compile(rf"^({_TERM})\s*[-']?\s*(\d{{4}}|\d{{2}})$", re.IGNORECASE)
_YEAR_FIRST_RE = re.compile(rf"^(\d{{4}}|\d{{2}})\s*-?\s*({_TERM})$", re.IGNORECASE)

STATISTICS_NUMBER_KEYWORDS = (
    "EHRS", "GPA", "HRSPOINTS", "CUMULATIVE", "TOTAL", "CURRENT", "RETENTION", "POINTS",
)
_STATISTICS_WORD = (
    r"(?:term|semester|overall|transfer|institution|current|retention|cumulative"
    r"|totals?|points|gpa|ehrs|hrspoints|hours|attempted|earned|quality)"
)
# Only statistics words and figures: "Cumulative GPA 3.45", "Term Totals"
_STATISTICS_NAME_RE = re.compile(
    rf"^(?:{_STATISTICS_WORD}\b[\s:.,/0-9-]*)+$",
    re.IGNORECASE,
)
_INSTITUTION_WORDS_RE = re.compile(r"\b(university|college|institute|school)\b", re.IGNORECASE)


# ============================================================================
# Course Numbers
# ============================================================================

def clean_course_number(number: Optional[str]) -> Optional[str]:
    """Blank or dash-only numbers become None; glued letter/digit runs get a space."""
    if number is None:
        return None
    number = str(number).strip()
    if not number or re.fullmatch(r"[\s\-_]+", number):
        return None

    has_letters = re.search(r"[A-Za-z]", number)
    has_digits = re.search(r"\d", number)
    has_separator = re.search(r"[A-Za-z]+\s+\d+", number) or re.search(r"[A-Za-z]+-\d+", number)

    if has_letters and has_digits and not has_separator:
        number = re.sub(r"\s+", "", number)
        number = re.sub(r"([A-Za-z]+)(\d+)", r"\1 \2", number)
        number = re.sub(r"\s+", " ", number).strip()

    return number


# ============================================================================
# Semesters
# ============================================================================

def repair_semester_ocr(semester: str) -> str:
    """Fix digit/letter confusions in years: D0xx -> 20xx, 202S -> 2025."""
    semester = re.sub(r"D0(\d{2})", r"20\1", semester)
    return semester.replace("202S", "2025")


def normalize_term(semester: str) -> str:
    """Rewrite term codes as "<TermName> <FullYear>"; anything else is returned as is."""
    text = semester.strip()

    match = _TERM_FIRST_RE.match(text)
    if match:
        term, year = match.group(1), match.group(2)
    else:
        match = _YEAR_FIRST_RE.match(text)
        if not match:
            return text
        year, term = match.group(1), match.group(2)

    if len(year) == 2:
        year = f"20{year}"
    return f"{TERM_NAMES[term.upper()]} {year}"


def clean_semester(semester: Optional[str]) -> Optional[str]:
    if semester is None:
        return None
    semester = re.sub(r"\s+", " ", str(semester)).strip()
    if not semester:
        return None
    return normalize_term(repair_semester_ocr(semester))


# ============================================================================
# Course Names
# ============================================================================

def repair_word_spacing(name: str) -> str:
    """
    Split words run together by a broken text layer.

    Only fires when the text has a lowercase-to-uppercase transition once
    whitespace is removed and no lowercase-space-lowercase pair, so names
    that are already spaced are left alone.
    """
    collapsed = re.sub(r"\s+", "", name)
    if not re.search(r"[a-z][A-Z]", collapsed):
        return name
    if re.search(r"[a-z]\s+[a-z]", name):
        return name

    fixed = name
    for word in GLUED_CONNECTIVES:
        # needs 4+ letters before the connective so "Photo" stays whole
        fixed = re.sub(rf"(?<=[A-Za-z][a-z]{{3}}){word}(?=[A-Z])", f" {word} ", fixed)
    fixed = re.sub(r"([a-z])([A-Z])", r"\1 \2", fixed)
    fixed = re.sub(rf"\b({_ROMAN})(?=[A-Z][a-z])", r"\1 ", fixed)
    return re.sub(r"\s+", " ", fixed).strip()


def title_case_if_shouting(name: str) -> str:
    """Title-case names written entirely in capitals; Roman numerals stay upper."""
    if re.search(r"[a-z]", name) or not re.search(r"[A-Z]{3,}", name):
        return name

    def recase(match):
        word = match.group(0)
        return word if word in _ROMAN_SET else word.capitalize()

    return re.sub(r"\s+", " ", re.sub(r"[A-Za-z]+", recase, name)).strip()


_ROMAN_THEN_GRADE_RE = re.compile(rf"\s+({_ROMAN})\s*([A-F][+-]?|[SPWU])\s*$")
_ROMAN_ONLY_RE = re.compile(rf"\s+({_ROMAN})\s*$")
_GRADE_ONLY_RE = re.compile(r"\s+([A-F][+-]?|[SPWU])\s*$")
# "Programming in C" ends in a language name, not a grade
_CONNECTIVE_END_RE = re.compile(r"\b(in|of|for|with|and|to)$", re.IGNORECASE)


def split_trailing_grade(name: str):
    """
    Split a grade glued to the end of a course name.

    Returns (name, grade); grade is None when nothing was split. A trailing
    Roman numeral belongs to the name and is never read as a grade.
    """
    match = _ROMAN_THEN_GRADE_RE.search(name)
    if match:
        return name[:match.start()] + " " + match.group(1), match.group(2)

    if _ROMAN_ONLY_RE.search(name):
        return name, None

    match = _GRADE_ONLY_RE.search(name)
    if match and not _CONNECTIVE_END_RE.search(name[:match.start()]):
        return name[:match.start()].strip(), match.group(1)

    return name, None


def is_exam_credit(record: CandidateCourseRecord) -> bool:
    """AP or CLEP credit rather than a course taken in a term."""
    number = (record.course_number or "").upper()
    name = (record.course_name or "").upper()
    return (
        number == "AP"
        or number.startswith(("AP ", "AP-"))
        or " CLEP" in number
        or "-CLEP" in number
        or name.startswith("AP ")
        or "ADVANCED PLACEMENT EXAM" in name
        or "CLEP EXAM" in name
        or (("ADVANCED PLACEMENT" in name or "CLEP" in name) and len(number) < 5)
    )


# ============================================================================
# Row Cleaning
# ============================================================================

def clean_course(record: CandidateCourseRecord) -> CandidateCourseRecord:
    """Apply every per-row repair; the result is stable under a second call."""
    name = record.course_name
    grade = (record.grade or "").strip() or None

    if name is not None:
        name = re.sub(r"\s+", " ", name).strip()
        name = title_case_if_shouting(repair_word_spacing(name))
        if grade is None:
            name, grade = split_trailing_grade(name)
        name = name or None

    cleaned = replace(
        record,
        course_number=clean_course_number(record.course_number),
        course_name=name,
        semester=clean_semester(record.semester),
        grade=grade,
    )

    if cleaned.grade is None and is_exam_credit(cleaned):
        logger.debug(f"Defaulting grade S for exam credit {cleaned.course_number}")
        cleaned = replace(cleaned, grade="S")

    return cleaned


def is_summary_row(record: CandidateCourseRecord) -> bool:
    """Rows that are not real courses: missing numbers and statistics labels."""
    number = (record.course_number or "").upper()
    if not number or not re.search(r"\d", number):
        return True
    if any(keyword in number for keyword in STATISTICS_NUMBER_KEYWORDS):
        return True
    return bool(record.course_name and _STATISTICS_NAME_RE.match(record.course_name))


def is_foreign_row(record: CandidateCourseRecord, university: Optional[str]) -> bool:
    """Rows from a transfer section or another institution."""
    if not record.semester:
        return False
    semester = record.semester.lower()
    if "transfer" in semester:
        return True
    if _INSTITUTION_WORDS_RE.search(semester):
        return not university or university.strip().lower() not in semester
    return False


# ============================================================================
# Deduplication
# ============================================================================

def deduplicate_courses(courses: List[CandidateCourseRecord]) -> List[CandidateCourseRecord]:
    """
    Drop null-semester rows superseded by a semester-bearing row.

    Every semester-bearing row is kept (retakes differ by semester). A
    null-semester row survives only if no semester-bearing row shares its
    course number, and only the first of several such rows. Order is kept.
    """
    with_semester = {c.course_number for c in courses if c.semester}
    seen_without = set()
    kept = []

    for course in courses:
        if course.semester:
            kept.append(course)
        elif course.course_number not in with_semester and course.course_number not in seen_without:
            seen_without.add(course.course_number)
            kept.append(course)
        else:
            logger.debug(f"Dropping superseded duplicate {course.course_number}")

    return kept


# ============================================================================
# Entry Point
# ============================================================================

def normalize_transcript(transcript: CandidateTranscript) -> CandidateTranscript:
    """Clean, filter and deduplicate a candidate transcript."""
    university = (transcript.university or "").strip() or None
    courses = [clean_course(c) for c in transcript.courses]

    valid = [c for c in courses if not is_summary_row(c)]
    own = [c for c in valid if not is_foreign_row(c, university)]
    unique = deduplicate_courses(own)

    dropped_summary = len(courses) - len(valid)
    dropped_foreign = len(valid) - len(own)
    dropped_dupes = len(own) - len(unique)
    if dropped_summary or dropped_foreign or dropped_dupes:
        logger.info(
            f"Normalization dropped {dropped_summary} summary, "
            f"{dropped_foreign} transfer and {dropped_dupes} duplicate row(s)"
        )

    return replace(
        transcript,
        student_name=(transcript.student_name or "").strip() or None,
        university=university,
        courses=tuple(unique),
    )
