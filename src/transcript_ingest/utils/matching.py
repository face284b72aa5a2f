"""
Generic course matching.

Links transcript courses without a catalog match to generic catalog
courses. The subject prefix comes from the completion service; everything
after that (bucket, generic number, catalog lookup) is deterministic.

Generic course numbers look like "MATH-0014":
    prefix "MATH", bucket "001" (from the course level), hours "4"
"""

import logging
import re
from typing import Dict, List, Optional, Tuple

from .catalog import CatalogStore, TranscriptCourseStore
from .completion import CompletionClient, parse_json_object, DEFAULT_TIMEOUT_MS
from .errors import CompletionError, MalformedCompletionResponse
from .models import (
    Confidence,
    GenericCourseCatalogEntry,
    Hours,
    MatchReport,
    MatchResult,
    PrefixKeywordEntry,
    RowError,
    TranscriptCourseRow,
    UnmatchedCourse,
)
from .prompts import build_classification_prompt

logger = logging.getLogger(__name__)

# Tunable: see MatchingConfig
DEFAULT_BUCKETS = {"1": "001", "2": "001", "3": "003", "4": "003"}
DEFAULT_BUCKET = "001"


class MatchReason:
    """Why a transcript course was left unmatched."""
    EMPTY_DESCRIPTION = "empty_description"
    NO_PREFIX = "no_prefix"
    MISSING_HOURS = "missing_hours"
    CATALOG_MISS = "catalog_miss"


# ============================================================================
# Code Derivation
# ============================================================================

def derive_bucket(
    course_number: str,
    buckets: Optional[Dict[str, str]] = None,
    default: str = DEFAULT_BUCKET
) -> str:
    """Bucket from the first digit of the first digit run ("2114" -> "001")."""
    buckets = DEFAULT_BUCKETS if buckets is None else buckets
    match = re.search(r"\d+", course_number or "")
    if not match:
        return default
    return buckets.get(match.group(0)[0], default)


def format_hours(hours: Hours) -> str:
    """Hours as written in a generic number: 3 -> "3", 3.0 -> "3"."""
    if isinstance(hours, float) and hours.is_integer():
        hours = int(hours)
    return str(hours)


def derive_generic_course_number(
    prefix: str,
    course_number: str,
    hours: Hours,
    buckets: Optional[Dict[str, str]] = None,
    default: str = DEFAULT_BUCKET
) -> Tuple[str, str]:
    """
    Build the generic course number for a classified course.

    Returns:
        (generic_number, bucket_and_hours), e.g. ("CMSC-0013", "0013")
    """
    suffix = derive_bucket(course_number, buckets, default) + format_hours(hours)
    return f"{prefix}-{suffix}", suffix


def find_generic_course(
    catalog: CatalogStore,
    prefix: str,
    generic_number: str,
    suffix: str
) -> Optional[GenericCourseCatalogEntry]:
    """
    Look up a generic course, stopping at the first hit:
    1. number equals the full generic number
    2. code equals the prefix and number equals the bucket+hours suffix
    3. any course under the prefix whose number contains the suffix
    """
    entry = catalog.lookup_catalog_course(number=generic_number)
    if entry is not None:
        return entry

    entry = catalog.lookup_catalog_course(code=prefix, number=suffix)
    if entry is not None:
        return entry

    for candidate in catalog.list_catalog_courses(prefix):
        if suffix in (candidate.number or ""):
            return candidate
    return None


# ============================================================================
# Classification
# ============================================================================

def parse_classification(raw_response: str) -> Tuple[Optional[str], Confidence]:
    """Decode a {prefix, confidence} response."""
    data = parse_json_object(raw_response)
    prefix = data.get("prefix")
    if prefix is not None and not isinstance(prefix, str):
        raise MalformedCompletionResponse("prefix is not a string", raw_response)

    prefix = (prefix or "").strip().upper() or None
    if prefix in ("NONE", "NULL"):
        prefix = None
    return prefix, Confidence.parse(data.get("confidence"))


# ============================================================================
# Matcher
# ============================================================================

class GenericCourseMatcher:
    """
    Match the unmatched courses of a transcript to generic catalog courses.

    Rows are processed one at a time; a failure on one row is recorded in
    the report and the next row is processed.
    """

    def __init__(
        self,
        client: CompletionClient,
        catalog: CatalogStore,
        courses: TranscriptCourseStore,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        buckets: Optional[Dict[str, str]] = None,
        default_bucket: str = DEFAULT_BUCKET
    ):
        self.client = client
        self.catalog = catalog
        self.courses = courses
        self.timeout_ms = timeout_ms
        self.buckets = dict(DEFAULT_BUCKETS if buckets is None else buckets)
        self.default_bucket = default_bucket

    def match_generic_courses(self, transcript_id: int) -> MatchReport:
        """Classify and look up every unmatched course of a transcript."""
        rows = self.courses.list_transcript_courses(transcript_id, unmatched_only=True)
        keyword_table = self.catalog.lookup_prefix_keywords()
        report = MatchReport(transcript_id=transcript_id)

        logger.info(
            f"Matching {len(rows)} unmatched course(s) of transcript {transcript_id} "
            f"against {len(keyword_table)} prefixes"
        )

        for row in rows:
            try:
                outcome = self.match_row(row, keyword_table)
            except (CompletionError, MalformedCompletionResponse) as e:
                logger.error(f"Course {row.id} ({row.course_number}): {e}")
                report.errors.append(RowError(row.id, type(e).__name__, str(e)))
                continue
            except Exception as e:
                logger.exception(f"Course {row.id} ({row.course_number}) failed")
                report.errors.append(RowError(row.id, type(e).__name__, str(e)))
                continue

            if isinstance(outcome, MatchResult):
                report.matches.append(outcome)
            else:
                report.unmatched.append(outcome)

        logger.info(
            f"Transcript {transcript_id}: {len(report.matches)} matched, "
            f"{len(report.unmatched)} unmatched, {len(report.errors)} failed"
        )
        return report

    def match_row(self, row: TranscriptCourseRow, keyword_table: List[PrefixKeywordEntry]):
        """Match a single row; returns a MatchResult or an UnmatchedCourse."""
        description = (row.course_description or "").strip()
        if not description:
            return UnmatchedCourse(row.id, MatchReason.EMPTY_DESCRIPTION)

        raw = self.client.complete_structured(
            build_classification_prompt(description, row.course_hours, keyword_table),
            self.timeout_ms,
        )
        prefix, confidence = parse_classification(raw)

        if prefix is None or confidence is Confidence.NONE:
            logger.info(f"Course {row.id} ({description}): no prefix")
            return UnmatchedCourse(row.id, MatchReason.NO_PREFIX, prefix=prefix)

        if row.course_hours is None:
            logger.info(f"Course {row.id} ({description}): no credit hours")
            return UnmatchedCourse(row.id, MatchReason.MISSING_HOURS, prefix=prefix)

        generic_number, suffix = derive_generic_course_number(
            prefix, row.course_number, row.course_hours, self.buckets, self.default_bucket
        )
        entry = find_generic_course(self.catalog, prefix, generic_number, suffix)

        if entry is None:
            logger.info(f"Course {row.id}: {generic_number} not in catalog")
            return UnmatchedCourse(
                row.id, MatchReason.CATALOG_MISS,
                prefix=prefix, generic_course_number=generic_number,
            )

        logger.info(
            f"Course {row.id} ({description}) -> {generic_number} "
            f"[{confidence.value}] catalog id {entry.id}"
        )
        return MatchResult(
            transcript_course_id=row.id,
            catalog_course_id=entry.id,
            prefix=prefix,
            confidence=confidence,
            generic_course_number=generic_number,
        )


def apply_match_results(store: TranscriptCourseStore, report: MatchReport) -> List[TranscriptCourseRow]:
    """Write the catalog id of every match back to its transcript course."""
    updated = [
        store.update_transcript_course(m.transcript_course_id, m.catalog_course_id)
        for m in report.matches
    ]
    logger.info(f"Linked {len(updated)} transcript course(s) to catalog courses")
    return updated
