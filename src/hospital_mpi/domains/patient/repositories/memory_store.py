"""
In-process patient store

Same contract and merge rule as the Mongo store, for local development
and tests. Unique keys are enforced per hospital exactly like the
partial unique indexes on the patients collection.
"""

import asyncio
import logging
from typing import Optional, Dict, List

from ..models.patient import PatientRecord, PatientFilter, SearchResult, IDENTIFIER_FIELDS
from .patient_store import PatientStore, UpsertStrategy, merge_fields
from ....core.database import utcnow
from ....core.errors import StorageError, DuplicatePatientError


logger = logging.getLogger(__name__)


def _contains(haystack: str, needle: str) -> bool:
    return needle.casefold() in (haystack or "").casefold()


def matches(record: PatientRecord, hospital_id: str, filters: PatientFilter) -> bool:
    if record.hospital_id != hospital_id:
        return False

    for name in PatientFilter.EXACT_FIELDS:
        value = getattr(filters, name)
        if not value:
            continue
        stored = getattr(record, name)
        if name == "date_of_birth":
            stored = stored.isoformat() if stored else ""
        if stored != value:
            return False

    for name in PatientFilter.NAME_FIELDS:
        value = getattr(filters, name)
        if value and not (
            _contains(getattr(record, f"{name}_en"), value)
            or _contains(getattr(record, f"{name}_th"), value)
        ):
            return False

    for name in PatientFilter.CONTAINS_FIELDS:
        value = getattr(filters, name)
        if value and not _contains(getattr(record, name), value):
            return False

    return True


class InMemoryPatientStore(PatientStore):
    """Patient store held in a dict keyed by internal id"""

    def __init__(self):
        self._rows: Dict[str, PatientRecord] = {}
        self._lock = asyncio.Lock()

    async def get_by_internal_id(self, internal_id: str) -> Optional[PatientRecord]:
        row = self._rows.get(internal_id)
        return row.copy() if row else None

    async def get_by_identifier(self, identifier: str) -> Optional[PatientRecord]:
        if not identifier:
            return None

        found = [
            row for row in self._rows.values()
            if row.national_id == identifier or row.passport_id == identifier
        ]
        if not found:
            return None

        found.sort(key=lambda row: (row.created_at, row.internal_id))
        if len(found) > 1:
            logger.warning(
                f"Identifier {identifier} matches more than one patient; "
                f"using {found[0].internal_id}"
            )
        return found[0].copy()

    async def insert(self, record: PatientRecord) -> PatientRecord:
        async with self._lock:
            return self._insert(record)

    async def upsert(self, record: PatientRecord) -> PatientRecord:
        strategy = UpsertStrategy.for_record(record)

        async with self._lock:
            if strategy is UpsertStrategy.PLAIN_INSERT:
                return self._insert(record)

            key = strategy.key_field
            existing = self._find_in_hospital(record.hospital_id, key, getattr(record, key))
            if existing is None:
                return self._insert(record)

            merged = existing.copy(**merge_fields(record, strategy))
            merged.date_of_birth = record.date_of_birth
            merged.updated_at = utcnow()
            self._check_unique(merged, ignore=existing.internal_id)
            self._rows[merged.internal_id] = merged
            return merged.copy()

    async def search(
        self,
        hospital_id: str,
        filters: PatientFilter,
        limit: int,
        offset: int
    ) -> SearchResult:
        if offset < 0:
            raise StorageError("search: offset must not be negative")

        found = [row for row in self._rows.values() if matches(row, hospital_id, filters)]
        found.sort(key=lambda row: (row.created_at, row.internal_id), reverse=True)

        page: List[PatientRecord] = found[offset:offset + limit] if limit > 0 else []
        return SearchResult(results=[row.copy() for row in page], total=len(found))

    def _insert(self, record: PatientRecord) -> PatientRecord:
        if not record.internal_id:
            raise StorageError("insert: internal_id is required")
        if record.internal_id in self._rows:
            raise DuplicatePatientError(f"insert: internal_id {record.internal_id} already exists")
        self._check_unique(record)

        now = utcnow()
        stored = record.copy(
            created_at=record.created_at or now,
            updated_at=record.updated_at or now
        )
        self._rows[stored.internal_id] = stored
        return stored.copy()

    def _find_in_hospital(self, hospital_id: str, key: str, value: str) -> Optional[PatientRecord]:
        for row in self._rows.values():
            if row.hospital_id == hospital_id and getattr(row, key) == value:
                return row
        return None

    def _check_unique(self, record: PatientRecord, ignore: Optional[str] = None) -> None:
        for key in IDENTIFIER_FIELDS:
            value = getattr(record, key)
            if not value:
                continue
            other = self._find_in_hospital(record.hospital_id, key, value)
            if other is not None and other.internal_id != ignore:
                raise DuplicatePatientError(
                    f"{key} {value} already held by {other.internal_id} in hospital {record.hospital_id}"
                )
