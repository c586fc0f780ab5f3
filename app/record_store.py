"""
Record Store Module
Read-only access to certificate records exported from the certificates collection
"""

import csv
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from app.courses import CoursePolicy
from app.records import CertificateRecord, normalize_record, validate_record


logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[1]


def resolve_path(path_str: str) -> Path:
    # Allow Windows-style env var paths (e.g., "data\\certificates.csv") even on Linux.
    candidate = Path((path_str or "").replace("\\", "/"))
    if not candidate.is_absolute():
        candidate = PROJECT_ROOT / candidate
    return candidate


class RecordStore:
    """Look up certificate records by their certificate number"""

    def __init__(self, path: str, courses: Optional[CoursePolicy] = None, prefix: str = "OSHEQ"):
        """
        Initialize the store

        Args:
            path: Path to the exported records
            courses: Course policy used to check records as they are loaded
            prefix: Expected certificate number prefix
        """
        self.path = resolve_path(path)
        self.courses = courses or CoursePolicy()
        self.prefix = prefix
        self._cache: Optional[Tuple[Tuple[int, int], List[CertificateRecord]]] = None

    @property
    def collection(self) -> str:
        return self.path.stem

    def _iter_documents(self) -> Iterator[Mapping[str, Any]]:
        raise NotImplementedError

    def get_all(self) -> List[CertificateRecord]:
        """
        Read every record from the export

        The parsed records are reused until the file's modification time or
        size changes, so stored-record warnings are logged once per load.

        Returns:
            List of normalized records

        Raises:
            FileNotFoundError: If the export doesn't exist
            ValueError: If the export cannot be parsed
        """
        try:
            stat = self.path.stat()
        except FileNotFoundError:
            raise FileNotFoundError(f"Record store not found: {self.path}") from None

        version = (stat.st_mtime_ns, stat.st_size)
        cached = self._cache
        if cached is not None and cached[0] == version:
            return cached[1]

        records = self._load()
        self._cache = (version, records)
        logger.info("Loaded %d certificate records from %s", len(records), self.path.name)
        return records

    def _load(self) -> List[CertificateRecord]:
        records: List[CertificateRecord] = []
        for index, document in enumerate(self._iter_documents()):
            try:
                record = normalize_record(document)
            except ValueError as e:
                logger.warning("Skipping record %d in %s: %s", index, self.path.name, e)
                continue
            for problem in validate_record(record, self.courses, self.prefix):
                logger.warning("Record %s: %s", record.certificate_number, problem)
            records.append(record)
        return records

    def find_by_certificate_number(self, certificate_number: str) -> Optional[CertificateRecord]:
        """
        Find the record whose certificate number equals the given value exactly

        Args:
            certificate_number: Certificate number, compared without normalization

        Returns:
            The record if found, None otherwise
        """
        matches = [r for r in self.get_all() if r.certificate_number == certificate_number]
        if len(matches) > 1:
            logger.warning("Certificate number %s is stored %d times; using the first", certificate_number, len(matches))
        return matches[0] if matches else None

    def ping(self) -> bool:
        return self.path.is_file() and os.access(self.path, os.R_OK)

    def list_collections(self) -> List[str]:
        if not self.ping():
            raise FileNotFoundError(f"Record store not found: {self.path}")
        return [self.collection]


class CSVRecordStore(RecordStore):
    """Records exported as CSV (one row per certificate)"""

    def _iter_documents(self) -> Iterator[Dict[str, str]]:
        # Use utf-8-sig to tolerate CSVs saved with a BOM (common with Excel exports)
        with open(self.path, "r", encoding="utf-8-sig", newline="") as file:
            try:
                for row in csv.DictReader(file):
                    yield row
            except csv.Error as e:
                raise ValueError(f"Malformed CSV in {self.path.name}: {e}") from e


class JSONRecordStore(RecordStore):
    """Records exported as a JSON array or as JSON lines (one document per line)"""

    def _iter_documents(self) -> Iterator[Mapping[str, Any]]:
        with open(self.path, "r", encoding="utf-8-sig") as file:
            text = file.read()

        stripped = text.lstrip()
        if stripped.startswith("["):
            documents = json.loads(stripped)
        else:
            documents = [json.loads(line) for line in text.splitlines() if line.strip()]

        for document in documents:
            if not isinstance(document, dict):
                raise ValueError(f"Expected a JSON object in {self.path.name}, got {type(document).__name__}")
            yield document


def open_record_store(path: str, courses: Optional[CoursePolicy] = None, prefix: str = "OSHEQ") -> RecordStore:
    """Pick the store backend from the file extension"""
    suffix = resolve_path(path).suffix.lower()
    if suffix == ".csv":
        return CSVRecordStore(path, courses=courses, prefix=prefix)
    if suffix in (".json", ".jsonl", ".ndjson"):
        return JSONRecordStore(path, courses=courses, prefix=prefix)
    raise ValueError(f"Unsupported record store format: {path}")
