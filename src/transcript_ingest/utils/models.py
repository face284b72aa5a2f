"""
Data model for transcript ingestion and generic course matching.

Provides:
- Extraction results and candidate transcripts (parser/normalizer output)
- Reference tables (prefix keywords, generic course catalog)
- Persisted transcript course rows and match reports

Every record is immutable; stages return new values with dataclasses.replace.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Dict, Any, Tuple, Union

Hours = Union[int, float]


# ============================================================================
# Extraction
# ============================================================================

@dataclass(frozen=True)
class TranscriptDocument:
    """A transcript PDF awaiting extraction."""
    document_id: str
    pdf_bytes: bytes


@dataclass(frozen=True)
class ExtractionResult:
    """Raw text pulled from a transcript PDF."""
    primary_text: str
    ocr_text: Optional[str] = None
    used_ocr_fallback: bool = False
    avg_line_length: float = 0.0

    @property
    def has_text(self) -> bool:
        return bool(self.primary_text.strip()) or bool(self.ocr_text)


# ============================================================================
# Candidate Transcript
# ============================================================================

@dataclass(frozen=True)
class CandidateCourseRecord:
    """One course row as extracted from a transcript."""
    course_number: Optional[str]
    course_name: Optional[str] = None
    semester: Optional[str] = None
    grade: Optional[str] = None
    hours: Optional[Hours] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "courseNumber": self.course_number,
            "courseName": self.course_name,
            "semester": self.semester,
            "grade": self.grade,
            "hours": self.hours,
        }


@dataclass(frozen=True)
class CandidateTranscript:
    """Structured transcript: student, institution and course list."""
    student_name: Optional[str] = None
    university: Optional[str] = None
    courses: Tuple[CandidateCourseRecord, ...] = ()
    semester_headers: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "studentName": self.student_name,
            "university": self.university,
            "semesterHeaders": list(self.semester_headers),
            "courses": [c.to_dict() for c in self.courses],
        }


@dataclass(frozen=True)
class TranscriptStructure:
    """Layout identified by the structure pass."""
    has_two_columns: bool = True
    has_multiple_pages: bool = False
    semester_headers: Tuple[Dict[str, Any], ...] = ()

    @property
    def header_names(self) -> Tuple[str, ...]:
        return tuple(
            str(h.get("semester")) for h in self.semester_headers if h.get("semester")
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hasTwoColumns": self.has_two_columns,
            "hasMultiplePages": self.has_multiple_pages,
            "semesterHeaders": [dict(h) for h in self.semester_headers],
        }


# ============================================================================
# Reference Tables
# ============================================================================

@dataclass(frozen=True)
class PrefixKeywordEntry:
    """Subject prefix and the free-text keywords that describe it."""
    prefix: str
    keywords: str
    id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "prefix": self.prefix, "keywords": self.keywords}


@dataclass(frozen=True)
class GenericCourseCatalogEntry:
    """Catalog course; generic courses encode pattern and hours in `number`."""
    id: int
    code: str
    number: str
    description: str = ""
    hours: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "code": self.code,
            "number": self.number,
            "description": self.description,
            "hours": self.hours,
        }


@dataclass(frozen=True)
class TranscriptCourseRow:
    """A persisted transcript course; course_id None means no catalog linkage."""
    id: int
    transcript_id: int
    course_number: str
    course_description: str = ""
    course_hours: Optional[Hours] = None
    course_id: Optional[int] = None
    grade: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "universityTranscriptId": self.transcript_id,
            "courseNumber": self.course_number,
            "courseDescription": self.course_description,
            "courseHours": self.course_hours,
            "courseId": self.course_id,
            "grade": self.grade,
        }


# ============================================================================
# Matching
# ============================================================================

class Confidence(str, Enum):
    """Coarse classification-quality label."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    NONE = "none"

    @classmethod
    def parse(cls, value: Any) -> "Confidence":
        """Lenient parse; unknown or missing labels read as NONE."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.NONE


@dataclass(frozen=True)
class MatchResult:
    """A transcript course linked to a generic catalog course."""
    transcript_course_id: int
    catalog_course_id: int
    prefix: str
    confidence: Confidence
    generic_course_number: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transcriptCourseId": self.transcript_course_id,
            "catalogCourseId": self.catalog_course_id,
            "prefix": self.prefix,
            "confidence": self.confidence.value,
            "genericCourseNumber": self.generic_course_number,
        }


@dataclass(frozen=True)
class UnmatchedCourse:
    """A transcript course left without a catalog match."""
    transcript_course_id: int
    reason: str
    prefix: Optional[str] = None
    generic_course_number: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transcriptCourseId": self.transcript_course_id,
            "reason": self.reason,
            "prefix": self.prefix,
            "genericCourseNumber": self.generic_course_number,
        }


@dataclass(frozen=True)
class RowError:
    """A failure isolated to a single transcript course."""
    transcript_course_id: int
    error_type: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transcriptCourseId": self.transcript_course_id,
            "errorType": self.error_type,
            "message": self.message,
        }


@dataclass
class MatchReport:
    """Outcome of one matching run over a transcript."""
    transcript_id: int
    matches: List[MatchResult] = field(default_factory=list)
    unmatched: List[UnmatchedCourse] = field(default_factory=list)
    errors: List[RowError] = field(default_factory=list)

    @property
    def rows_processed(self) -> int:
        return len(self.matches) + len(self.unmatched) + len(self.errors)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transcriptId": self.transcript_id,
            "matches": [m.to_dict() for m in self.matches],
            "unmatched": [u.to_dict() for u in self.unmatched],
            "errors": [e.to_dict() for e in self.errors],
        }
