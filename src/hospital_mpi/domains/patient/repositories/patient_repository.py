"""
Patient repository - MongoDB persistence for patient records
"""

import re
import logging
from typing import Optional, Dict, Any, Tuple

from pymongo.errors import DuplicateKeyError, PyMongoError

from ..models.patient import PatientRecord, PatientFilter, SearchResult
from .patient_store import PatientStore, UpsertStrategy, merge_fields
from ....core.cache import CacheManager, patient_cache_key
from ....core.database import BaseRepository, DatabaseManager
from ....core.errors import StorageError, DuplicatePatientError


logger = logging.getLogger(__name__)

NO_ID = {"_id": 0}

# Identifier ties are broken by age, then by internal id
IDENTIFIER_TIE_BREAK = [("created_at", 1), ("internal_id", 1)]


def build_upsert(record: PatientRecord, strategy: UpsertStrategy) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Build the (filter, update) pair for a keyed upsert"""
    key = strategy.key_field
    filter_dict = {"hospital_id": record.hospital_id, key: getattr(record, key)}

    to_set = merge_fields(record, strategy)
    # Filter keys stay out of $set; the server copies them into new rows
    for name in filter_dict:
        to_set.pop(name, None)

    on_insert = {"internal_id": record.internal_id}

    # An empty incoming identifier must not clear the stored one
    preserved = strategy.preserved_field
    if preserved not in to_set:
        on_insert[preserved] = ""

    return filter_dict, {"$set": to_set, "$setOnInsert": on_insert}


def build_search_query(hospital_id: str, filters: PatientFilter) -> Dict[str, Any]:
    """Translate a sparse filter into a Mongo query scoped to one hospital"""
    query: Dict[str, Any] = {"hospital_id": hospital_id}
    clauses = []

    for name in PatientFilter.EXACT_FIELDS:
        value = getattr(filters, name)
        if value:
            query[name] = value

    for name in PatientFilter.NAME_FIELDS:
        value = getattr(filters, name)
        if value:
            pattern = _contains(value)
            clauses.append({"$or": [
                {f"{name}_en": pattern},
                {f"{name}_th": pattern},
            ]})

    for name in PatientFilter.CONTAINS_FIELDS:
        value = getattr(filters, name)
        if value:
            query[name] = _contains(value)

    if clauses:
        query["$and"] = clauses

    return query


def _contains(value: str) -> Dict[str, str]:
    return {"$regex": re.escape(value), "$options": "i"}


class MongoPatientStore(BaseRepository, PatientStore):
    """Patient store backed by MongoDB, with an optional Redis read cache"""

    def __init__(
        self,
        db_manager: DatabaseManager,
        cache_manager: Optional[CacheManager] = None,
        collection_name: str = "patients",
        cache_ttl_seconds: int = 3600
    ):
        super().__init__(db_manager, collection_name)
        self.cache_manager = cache_manager
        self.cache_ttl_seconds = cache_ttl_seconds

    async def get_by_internal_id(self, internal_id: str) -> Optional[PatientRecord]:
        """Find patient by internal id"""
        if self.cache_manager:
            cached = await self.cache_manager.get(patient_cache_key(internal_id))
            if cached:
                return PatientRecord.from_json_dict(cached)

        try:
            doc = await self.find_one({"internal_id": internal_id}, NO_ID)
        except PyMongoError as e:
            raise StorageError(f"get by internal id: {e}") from e

        if not doc:
            return None

        record = PatientRecord.from_document(doc)
        if self.cache_manager:
            await self.cache_manager.set(
                patient_cache_key(internal_id),
                record.to_json_dict(),
                self.cache_ttl_seconds
            )
        return record

    async def get_by_identifier(self, identifier: str) -> Optional[PatientRecord]:
        """Find patient whose national_id or passport_id equals identifier"""
        if not identifier:
            return None

        try:
            docs = await self.find_many(
                {"$or": [{"national_id": identifier}, {"passport_id": identifier}]},
                NO_ID,
                sort=IDENTIFIER_TIE_BREAK,
                limit=2
            )
        except PyMongoError as e:
            raise StorageError(f"get by identifier: {e}") from e

        if not docs:
            return None
        if len(docs) > 1:
            logger.warning(
                f"Identifier {identifier} matches more than one patient; "
                f"using {docs[0].get('internal_id')}"
            )
        return PatientRecord.from_document(docs[0])

    async def insert(self, record: PatientRecord) -> PatientRecord:
        """Plain insert"""
        doc = record.to_document()
        try:
            await self.insert_one(doc)
        except DuplicateKeyError as e:
            raise DuplicatePatientError(f"insert: {e}") from e
        except PyMongoError as e:
            raise StorageError(f"insert: {e}") from e

        doc.pop("_id", None)
        stored = PatientRecord.from_document(doc)
        await self._invalidate(stored.internal_id)
        return stored

    async def upsert(self, record: PatientRecord) -> PatientRecord:
        """Insert or merge on national_id, then passport_id, else plain insert"""
        strategy = UpsertStrategy.for_record(record)
        if strategy is UpsertStrategy.PLAIN_INSERT:
            return await self.insert(record)

        filter_dict, update = build_upsert(record, strategy)
        try:
            doc = await self.find_one_and_upsert(filter_dict, update, NO_ID)
        except DuplicateKeyError as e:
            raise DuplicatePatientError(f"upsert by {strategy.value}: {e}") from e
        except PyMongoError as e:
            raise StorageError(f"upsert by {strategy.value}: {e}") from e

        stored = PatientRecord.from_document(doc)
        logger.debug(f"Upserted patient {stored.internal_id} by {strategy.value}")
        await self._invalidate(stored.internal_id)
        return stored

    async def search(
        self,
        hospital_id: str,
        filters: PatientFilter,
        limit: int,
        offset: int
    ) -> SearchResult:
        """Search patients in one hospital; total ignores paging"""
        if offset < 0:
            raise StorageError("search: offset must not be negative")

        query = build_search_query(hospital_id, filters)

        try:
            total = await self.count_documents(query)
            if limit <= 0:
                return SearchResult(results=[], total=total)

            docs = await self.find_many(
                query,
                NO_ID,
                sort=[("created_at", -1), ("internal_id", -1)],
                limit=limit,
                skip=offset
            )
        except (PyMongoError, ValueError) as e:
            raise StorageError(f"search: {e}") from e

        return SearchResult(
            results=[PatientRecord.from_document(doc) for doc in docs],
            total=total
        )

    async def _invalidate(self, internal_id: str) -> None:
        if self.cache_manager:
            await self.cache_manager.delete(patient_cache_key(internal_id))
