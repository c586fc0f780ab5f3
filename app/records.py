"""
Certificate record schema.

Stored documents have been written by several revisions of the issuance
process and do not agree on field names (``date`` vs ``dateofissue`` vs
``dateOfIssue``, ``username`` vs ``holderName``...). All of that is resolved
here, in ``normalize_record``, so the rest of the service only ever sees a
``CertificateRecord``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from app.courses import CoursePolicy


# revision -> canonical field -> stored key
SCHEMA_REVISIONS: Tuple[Tuple[int, Dict[str, str]], ...] = (
    (1, {
        "certificate_number": "certificateNumber",
        "holder_name": "username",
        "course_name": "courseName",
        "date_of_issue": "date",
    }),
    (2, {
        "certificate_number": "certificateNumber",
        "holder_name": "username",
        "course_name": "courseName",
        "date_of_issue": "dateofissue",
        "date_of_birth": "dateofbirth",
        "artifact_file_name": "pdfFileName",
    }),
    (3, {
        "certificate_number": "certificateNumber",
        "holder_name": "holderName",
        "course_name": "courseName",
        "date_of_issue": "dateOfIssue",
        "date_of_birth": "dateOfBirth",
        "artifact_file_name": "artifactFileName",
    }),
)

# Spreadsheet exports use human headers.
EXTRA_ALIASES: Dict[str, Tuple[str, ...]] = {
    "certificate_number": ("Certificate Number", "certificate_id"),
    "holder_name": ("Name", "Full Name", "Holder Name"),
    "course_name": ("Course", "Course Name"),
    "date_of_issue": ("Date of Issue", "Issue Date", "issuedOn"),
    "date_of_birth": ("Date of Birth", "DOB"),
    "artifact_file_name": ("pdfFilename", "pdf", "fileName"),
}

DATE_PATTERN = re.compile(r"^\d{2}/\d{2}/\d{4}$")
HOLDER_NAME_MIN = 2
HOLDER_NAME_MAX = 50


@dataclass(frozen=True)
class CertificateRecord:
    certificate_number: str
    holder_name: str
    course_name: Optional[str] = None
    date_of_issue: Optional[str] = None
    date_of_birth: Optional[str] = None
    artifact_file_name: Optional[str] = None
    schema_revision: int = 1


def _normalize_key(key: str) -> str:
    return "".join(ch for ch in (key or "").strip().lower() if ch.isalnum())


def detect_revision(document: Mapping[str, Any]) -> int:
    """Return the newest schema revision whose own field names appear in the document."""
    keys = set(document.keys())
    previous: Dict[str, str] = {}
    detected = SCHEMA_REVISIONS[0][0]
    for revision, fields in SCHEMA_REVISIONS:
        introduced = set(fields.values()) - set(previous.values())
        if keys & introduced:
            detected = revision
        previous = fields
    return detected


def _aliases(field: str) -> List[str]:
    names: List[str] = []
    for _, fields in reversed(SCHEMA_REVISIONS):
        key = fields.get(field)
        if key and key not in names:
            names.append(key)
    names.extend(EXTRA_ALIASES.get(field, ()))
    return names


def _first(normalized: Mapping[str, Any], field: str) -> Optional[str]:
    for alias in _aliases(field):
        value = normalized.get(_normalize_key(alias))
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return None


def normalize_record(document: Mapping[str, Any]) -> CertificateRecord:
    """Translate a stored document of any revision into a ``CertificateRecord``.

    Raises ``ValueError`` when the document has no certificate number.
    """
    normalized = {_normalize_key(k): v for k, v in document.items()}
    certificate_number = _first(normalized, "certificate_number")
    if not certificate_number:
        raise ValueError("record has no certificate number")

    return CertificateRecord(
        certificate_number=certificate_number,
        holder_name=_first(normalized, "holder_name") or "",
        course_name=_first(normalized, "course_name"),
        date_of_issue=_first(normalized, "date_of_issue"),
        date_of_birth=_first(normalized, "date_of_birth"),
        artifact_file_name=_first(normalized, "artifact_file_name"),
        schema_revision=detect_revision(document),
    )


def validate_record(record: CertificateRecord, courses: CoursePolicy, prefix: str = "OSHEQ") -> List[str]:
    """List the write-time constraints a stored record violates.

    Dates are only matched against DD/MM/YYYY, never checked against a calendar.
    """
    problems: List[str] = []

    if not re.fullmatch(rf"{re.escape(prefix)}-\d+", record.certificate_number):
        problems.append(f"certificate number {record.certificate_number!r} does not match {prefix}-<digits>")

    if not (HOLDER_NAME_MIN <= len(record.holder_name) <= HOLDER_NAME_MAX):
        problems.append(f"holder name must be {HOLDER_NAME_MIN}-{HOLDER_NAME_MAX} characters")

    course = courses.resolve(record.course_name)
    if not courses.is_valid(course):
        problems.append(f"course {course!r} is not an active course")

    for label, value in (("date of issue", record.date_of_issue), ("date of birth", record.date_of_birth)):
        if value and not DATE_PATTERN.match(value):
            problems.append(f"{label} {value!r} is not DD/MM/YYYY")

    return problems
