"""
Patient Store Interface

Defines the contract every patient record store implements, and the
upsert strategy shared by all of them.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional, Dict, Any

from ..models.patient import PatientRecord, PatientFilter, SearchResult, IMMUTABLE_FIELDS


class UpsertStrategy(str, Enum):
    """How a record is written, decided from which identifiers it carries"""
    BY_NATIONAL_ID = "national_id"
    BY_PASSPORT_ID = "passport_id"
    PLAIN_INSERT = "plain_insert"

    @classmethod
    def for_record(cls, record: PatientRecord) -> "UpsertStrategy":
        if record.national_id:
            return cls.BY_NATIONAL_ID
        if record.passport_id:
            return cls.BY_PASSPORT_ID
        return cls.PLAIN_INSERT

    @property
    def key_field(self) -> Optional[str]:
        """Unique identifier the write collides on"""
        if self is UpsertStrategy.PLAIN_INSERT:
            return None
        return self.value

    @property
    def preserved_field(self) -> Optional[str]:
        """Identifier kept from the existing row when the incoming one is empty"""
        if self is UpsertStrategy.BY_NATIONAL_ID:
            return "passport_id"
        if self is UpsertStrategy.BY_PASSPORT_ID:
            return "national_id"
        return None


def merge_fields(record: PatientRecord, strategy: UpsertStrategy) -> Dict[str, Any]:
    """
    Fields written onto an existing row when an upsert collides.

    Every field comes from the incoming record except the immutable ones,
    and the other identifier is only written when the incoming value is set.
    """
    doc = record.to_document()
    for name in IMMUTABLE_FIELDS + ("updated_at",):
        doc.pop(name, None)

    preserved = strategy.preserved_field
    if preserved and not doc.get(preserved):
        doc.pop(preserved)

    return doc


class PatientStore(ABC):
    """
    Abstract base class for patient record stores

    Absence is always reported as None. Any underlying storage fault
    is raised as StorageError.
    """

    async def initialize(self) -> None:
        """Prepare indexes or connections"""
        pass

    @abstractmethod
    async def get_by_internal_id(self, internal_id: str) -> Optional[PatientRecord]:
        pass

    @abstractmethod
    async def get_by_identifier(self, identifier: str) -> Optional[PatientRecord]:
        """
        Find a patient whose national_id or passport_id equals identifier

        Not scoped by hospital; callers enforce scope.
        """
        pass

    @abstractmethod
    async def insert(self, record: PatientRecord) -> PatientRecord:
        pass

    @abstractmethod
    async def upsert(self, record: PatientRecord) -> PatientRecord:
        """
        Insert a record or merge it into the row holding the same identifier

        Returns the persisted row.
        """
        pass

    @abstractmethod
    async def search(
        self,
        hospital_id: str,
        filters: PatientFilter,
        limit: int,
        offset: int
    ) -> SearchResult:
        pass

    async def cleanup(self) -> None:
        pass
