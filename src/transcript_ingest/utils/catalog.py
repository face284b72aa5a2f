"""
Reference tables and record storage.

Provides:
- CatalogStore / TranscriptCourseStore protocols consumed by the matcher
- InMemoryRecordStore, a dict-backed store loadable from a JSON file
- Prefix keyword table generation from the course catalog
"""

import logging
import re
from collections import Counter, OrderedDict
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol, Union

from .io import load_json, save_csv, save_json
from .models import (
    CandidateTranscript,
    GenericCourseCatalogEntry,
    PrefixKeywordEntry,
    TranscriptCourseRow,
)

logger = logging.getLogger(__name__)


# ============================================================================
# Store Interfaces
# ============================================================================

class CatalogStore(Protocol):
    def lookup_catalog_course(self, **filters: Any) -> Optional[GenericCourseCatalogEntry]:
        ...

    def list_catalog_courses(self, code: str) -> List[GenericCourseCatalogEntry]:
        ...

    def lookup_prefix_keywords(self) -> List[PrefixKeywordEntry]:
        ...


class TranscriptCourseStore(Protocol):
    def list_transcript_courses(
        self, transcript_id: int, unmatched_only: bool = False
    ) -> List[TranscriptCourseRow]:
        ...

    def update_transcript_course(self, row_id: int, course_id: Optional[int]) -> TranscriptCourseRow:
        ...


# ============================================================================
# In-Memory Store
# ============================================================================

class InMemoryRecordStore:
    """
    Catalog, prefix keyword and transcript course records keyed by numeric id.

    JSON layout:
        {"catalog": [...], "prefixKeywords": [...], "transcriptCourses": [...]}
    """

    def __init__(
        self,
        catalog: Iterable[GenericCourseCatalogEntry] = (),
        prefix_keywords: Iterable[PrefixKeywordEntry] = (),
        transcript_courses: Iterable[TranscriptCourseRow] = ()
    ):
        self.catalog: Dict[int, GenericCourseCatalogEntry] = OrderedDict(
            (c.id, c) for c in catalog
        )
        self.prefix_keywords: List[PrefixKeywordEntry] = list(prefix_keywords)
        self.transcript_courses: Dict[int, TranscriptCourseRow] = OrderedDict(
            (r.id, r) for r in transcript_courses
        )

    # --- catalog ------------------------------------------------------------

    def lookup_catalog_course(self, **filters: Any) -> Optional[GenericCourseCatalogEntry]:
        """First catalog entry whose fields equal every filter value."""
        for entry in self.catalog.values():
            if all(getattr(entry, key) == value for key, value in filters.items()):
                return entry
        return None

    def list_catalog_courses(self, code: str) -> List[GenericCourseCatalogEntry]:
        return [c for c in self.catalog.values() if c.code == code]

    def lookup_prefix_keywords(self) -> List[PrefixKeywordEntry]:
        return list(self.prefix_keywords)

    # --- transcript courses -------------------------------------------------

    def list_transcript_courses(
        self, transcript_id: int, unmatched_only: bool = False
    ) -> List[TranscriptCourseRow]:
        rows = [r for r in self.transcript_courses.values() if r.transcript_id == transcript_id]
        if unmatched_only:
            rows = [r for r in rows if r.course_id is None]
        return rows

    def update_transcript_course(self, row_id: int, course_id: Optional[int]) -> TranscriptCourseRow:
        if row_id not in self.transcript_courses:
            raise KeyError(f"Unknown transcript course: {row_id}")
        row = replace(self.transcript_courses[row_id], course_id=course_id)
        self.transcript_courses[row_id] = row
        return row

    def add_transcript(self, transcript_id: int, transcript: CandidateTranscript) -> List[TranscriptCourseRow]:
        """Persist the courses of a normalized transcript as unmatched rows."""
        next_id = max(self.transcript_courses, default=0) + 1
        rows = []
        for offset, course in enumerate(transcript.courses):
            row = TranscriptCourseRow(
                id=next_id + offset,
                transcript_id=transcript_id,
                course_number=course.course_number or "",
                course_description=course.course_name or "",
                course_hours=course.hours,
                grade=course.grade,
            )
            self.transcript_courses[row.id] = row
            rows.append(row)
        logger.info(f"Stored {len(rows)} course rows for transcript {transcript_id}")
        return rows

    # --- serialization ------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InMemoryRecordStore":
        catalog = [
            GenericCourseCatalogEntry(
                id=int(c["id"]),
                code=str(c.get("code") or ""),
                number=str(c.get("number") or ""),
                description=c.get("description") or "",
                hours=c.get("hours"),
            )
            for c in data.get("catalog", [])
        ]
        keywords = [
            PrefixKeywordEntry(
                prefix=str(k["prefix"]).upper(),
                keywords=k.get("keywords") or "",
                id=k.get("id"),
            )
            for k in data.get("prefixKeywords", [])
        ]
        rows = [
            TranscriptCourseRow(
                id=int(r["id"]),
                transcript_id=int(r["universityTranscriptId"]),
                course_number=str(r.get("courseNumber") or ""),
                course_description=r.get("courseDescription") or "",
                course_hours=r.get("courseHours"),
                course_id=r.get("courseId"),
                grade=r.get("grade"),
            )
            for r in data.get("transcriptCourses", [])
        ]
        return cls(catalog, keywords, rows)

    @classmethod
    def from_json(cls, json_path: Union[str, Path]) -> "InMemoryRecordStore":
        store = cls.from_dict(load_json(json_path))
        logger.info(
            f"Loaded store: {len(store.catalog)} catalog courses, "
            f"{len(store.prefix_keywords)} prefixes, "
            f"{len(store.transcript_courses)} transcript courses"
        )
        return store

    def to_dict(self) -> Dict[str, Any]:
        return {
            "catalog": [c.to_dict() for c in self.catalog.values()],
            "prefixKeywords": [k.to_dict() for k in self.prefix_keywords],
            "transcriptCourses": [r.to_dict() for r in self.transcript_courses.values()],
        }

    def save(self, json_path: Union[str, Path]) -> Path:
        return save_json(self.to_dict(), json_path)


# ============================================================================
# Prefix Keyword Generation
# ============================================================================

KEYWORD_STOP_WORDS = frozenset([
    'a', 'an', 'and', 'are', 'as', 'at', 'be', 'by', 'for', 'from',
    'has', 'he', 'in', 'is', 'it', 'its', 'of', 'on', 'that', 'the',
    'to', 'was', 'will', 'with', 'this', 'these', 'those',
    'i', 'ii', 'iii', 'iv', 'v', 'vi', 'vii', 'viii', 'ix', 'x',
    'introduction', 'intro', 'introductions', 'fundamentals', 'fundamental',
    'principles', 'principle', 'basics', 'basic', 'overview', 'overviews',
])

MAX_KEYWORDS = 15
PREFIX_LENGTH = 4


def extract_keywords(description: str) -> List[str]:
    """Distinct content words of a description, most frequent first."""
    if not description:
        return []

    text = re.sub(r"[^\w\s-]", " ", description.lower())
    words = [
        w for w in text.split()
        if len(w) > 2 and w not in KEYWORD_STOP_WORDS and not w.isdigit()
    ]
    counts = Counter(words)
    return sorted(counts, key=lambda w: (-counts[w], w))


def combine_keywords(keyword_lists: Iterable[List[str]], limit: int = MAX_KEYWORDS) -> List[str]:
    """Merge per-description keyword lists; earlier positions weigh more."""
    weights: Dict[str, int] = {}
    for keywords in keyword_lists:
        for index, keyword in enumerate(keywords):
            weights[keyword] = weights.get(keyword, 0) + len(keywords) - index
    return sorted(weights, key=lambda w: (-weights[w], w))[:limit]


def catalog_prefix(entry: GenericCourseCatalogEntry) -> Optional[str]:
    """Grouping key: first four characters of the full course number."""
    number = entry.number or ""
    if number and ("-" in number or number[0].isalpha()):
        full = number
    else:
        full = f"{entry.code or ''}{number}"

    cleaned = re.sub(r"[-\s]", "", full).upper()
    if not cleaned:
        return None
    return cleaned[:PREFIX_LENGTH]


def build_prefix_keywords(
    catalog_entries: Iterable[GenericCourseCatalogEntry]
) -> List[PrefixKeywordEntry]:
    """
    Derive the prefix keyword table from catalog descriptions.

    Returns:
        Entries sorted by prefix, each with up to 15 comma-joined keywords
    """
    descriptions: Dict[str, List[str]] = {}
    for entry in catalog_entries:
        prefix = catalog_prefix(entry)
        if prefix is None:
            continue
        bucket = descriptions.setdefault(prefix, [])
        if entry.description:
            bucket.append(entry.description)

    table = []
    for prefix in sorted(descriptions):
        keywords = combine_keywords(extract_keywords(d) for d in descriptions[prefix])
        table.append(PrefixKeywordEntry(prefix=prefix, keywords=", ".join(keywords)))

    logger.info(f"Built keyword table for {len(table)} prefixes")
    return table


def save_prefix_keywords_csv(
    entries: Iterable[PrefixKeywordEntry],
    output_path: Union[str, Path]
) -> Path:
    rows = [{"prefix": e.prefix, "keywords": e.keywords} for e in entries]
    return save_csv(rows, output_path, fieldnames=["prefix", "keywords"])
