"""
Record lookup: resolve a certificate number to its record and check the
holder name claimed by the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from app.courses import CoursePolicy
from app.errors import IdentityMismatch, MissingParameters, NotFound, StoreUnavailable
from app.record_store import RecordStore


logger = logging.getLogger(__name__)

NAME_MATCH_INSENSITIVE = "insensitive"
NAME_MATCH_SENSITIVE = "sensitive"


@dataclass(frozen=True)
class VerifiedCertificate:
    holder_name: str
    certificate_number: str
    course_name: str
    date_of_issue: Optional[str]
    date_of_birth: Optional[str]
    artifact_file_name: Optional[str] = None

    @property
    def expected_file_name(self) -> str:
        return self.artifact_file_name or f"{self.certificate_number}.pdf"


def names_match(claimed: str, stored: str, policy: str = NAME_MATCH_INSENSITIVE) -> bool:
    claimed = (claimed or "").strip()
    stored = (stored or "").strip()
    if policy == NAME_MATCH_SENSITIVE:
        return claimed == stored
    return claimed.casefold() == stored.casefold()


class Verifier:
    """Verify (holder name, certificate number) claims against the record store."""

    def __init__(self, store: RecordStore, courses: Optional[CoursePolicy] = None,
                 name_match: str = NAME_MATCH_INSENSITIVE):
        if name_match not in (NAME_MATCH_INSENSITIVE, NAME_MATCH_SENSITIVE):
            raise ValueError(f"Unknown name match policy: {name_match}")
        self.store = store
        self.courses = courses or store.courses
        self.name_match = name_match

    def verify(self, holder_name: Optional[str], certificate_number: Optional[str]) -> VerifiedCertificate:
        if not (holder_name or "").strip() or not (certificate_number or "").strip():
            raise MissingParameters()

        try:
            record = self.store.find_by_certificate_number(certificate_number)
        except (OSError, ValueError) as e:
            logger.exception("Record store lookup failed for %s", certificate_number)
            raise StoreUnavailable(cause=e) from e

        if record is None:
            raise NotFound()

        if not names_match(holder_name, record.holder_name, self.name_match):
            logger.warning("Holder name mismatch for certificate %s", certificate_number)
            raise IdentityMismatch()

        return VerifiedCertificate(
            holder_name=record.holder_name,
            certificate_number=record.certificate_number,
            course_name=self.courses.resolve(record.course_name),
            date_of_issue=record.date_of_issue,
            date_of_birth=record.date_of_birth,
            artifact_file_name=record.artifact_file_name,
        )
