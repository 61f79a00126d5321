"""
MongoDB access for the patient and audit collections
"""

import logging
from typing import Optional, Dict, Any, List, Tuple
from datetime import datetime, timezone

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase, AsyncIOMotorCollection
from pymongo import ASCENDING, DESCENDING, IndexModel, ReturnDocument
from pymongo.errors import PyMongoError

from .config import get_database_config, DatabaseConfig

logger = logging.getLogger(__name__)

# Unique only for non-empty string identifiers
NON_EMPTY_STRING = {"$type": "string", "$gt": ""}

PATIENT_INDEXES = [
    IndexModel([("internal_id", ASCENDING)], unique=True, name="uniq_internal_id"),
    IndexModel(
        [("hospital_id", ASCENDING), ("national_id", ASCENDING)],
        unique=True,
        partialFilterExpression={"national_id": NON_EMPTY_STRING},
        name="uniq_hospital_national_id"
    ),
    IndexModel(
        [("hospital_id", ASCENDING), ("passport_id", ASCENDING)],
        unique=True,
        partialFilterExpression={"passport_id": NON_EMPTY_STRING},
        name="uniq_hospital_passport_id"
    ),
    # Unscoped identifier lookups
    IndexModel([("national_id", ASCENDING)], name="national_id"),
    IndexModel([("passport_id", ASCENDING)], name="passport_id"),
    IndexModel([("hospital_id", ASCENDING), ("created_at", DESCENDING)], name="hospital_newest"),
]

SEARCH_EVENT_INDEXES = [
    IndexModel([("hospital_id", ASCENDING), ("created_at", DESCENDING)], name="hospital_newest"),
    IndexModel([("staff_id", ASCENDING)], name="staff_id"),
]

STAFF_INDEXES = [
    IndexModel([("staff_id", ASCENDING)], unique=True, name="uniq_staff_id"),
    IndexModel([("hospital_id", ASCENDING), ("username", ASCENDING)], unique=True, name="uniq_hospital_username"),
]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DatabaseManager:
    """
    Owns the Motor client and the collections the service writes to.

    initialize() connects, pings and ensures indexes; repositories get
    their collections through get_collection().
    """

    def __init__(self, config: Optional[DatabaseConfig] = None):
        self.config = config or get_database_config()
        self._client: Optional[AsyncIOMotorClient] = None
        self._database: Optional[AsyncIOMotorDatabase] = None
        self._collections: Dict[str, AsyncIOMotorCollection] = {}

    @property
    def initialized(self) -> bool:
        return self._database is not None

    async def initialize(self) -> None:
        if self.initialized:
            return

        cfg = self.config
        logger.info(f"Connecting to MongoDB database {cfg.name}")

        client = AsyncIOMotorClient(
            cfg.uri,
            maxPoolSize=cfg.max_pool_size,
            minPoolSize=cfg.min_pool_size,
            maxIdleTimeMS=cfg.max_idle_time_ms,
            serverSelectionTimeoutMS=cfg.server_selection_timeout_ms,
            tz_aware=True
        )

        try:
            await client.admin.command("ping")
            database = client[cfg.name]
            collections = {
                cfg.patients_collection: database[cfg.patients_collection],
                cfg.search_events_collection: database[cfg.search_events_collection],
                cfg.staff_collection: database[cfg.staff_collection],
            }
            await collections[cfg.patients_collection].create_indexes(PATIENT_INDEXES)
            await collections[cfg.search_events_collection].create_indexes(SEARCH_EVENT_INDEXES)
            await collections[cfg.staff_collection].create_indexes(STAFF_INDEXES)
        except PyMongoError as e:
            logger.error(f"MongoDB setup failed: {e}")
            client.close()
            raise

        self._client = client
        self._database = database
        self._collections = collections
        logger.info(f"MongoDB ready with collections {sorted(collections)}")

    async def cleanup(self) -> None:
        if self._client is not None:
            self._client.close()
            logger.info("MongoDB connection closed")
        self._client = None
        self._database = None
        self._collections = {}

    def get_collection(self, name: str) -> AsyncIOMotorCollection:
        if not self.initialized:
            raise RuntimeError("Database manager not initialized. Call initialize() first.")
        if name not in self._collections:
            self._collections[name] = self._database[name]
        return self._collections[name]

    async def health_check(self) -> Dict[str, Any]:
        if not self.initialized:
            return {"status": "error", "message": "Database not initialized"}

        try:
            await self._client.admin.command("ping")
            counts = {
                name: await collection.estimated_document_count()
                for name, collection in self._collections.items()
            }
        except PyMongoError as e:
            logger.error(f"Database health check failed: {e}")
            return {"status": "unhealthy", "error": str(e)}

        return {"status": "healthy", "database": self.config.name, "documents": counts}


class BaseRepository:
    """
    Thin async helpers over one collection.

    Driver exceptions propagate unchanged; subclasses translate them
    into the service's error types.
    """

    def __init__(self, db_manager: DatabaseManager, collection_name: str):
        self.db_manager = db_manager
        self.collection_name = collection_name

    @property
    def collection(self) -> AsyncIOMotorCollection:
        return self.db_manager.get_collection(self.collection_name)

    async def find_one(
        self,
        filter_dict: Dict[str, Any],
        projection: Optional[Dict[str, Any]] = None
    ) -> Optional[Dict[str, Any]]:
        return await self.collection.find_one(filter_dict, projection)

    async def find_many(
        self,
        filter_dict: Dict[str, Any],
        projection: Optional[Dict[str, Any]] = None,
        sort: Optional[List[Tuple[str, int]]] = None,
        limit: Optional[int] = None,
        skip: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        cursor = self.collection.find(filter_dict, projection)
        if sort:
            cursor = cursor.sort(sort)
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return await cursor.to_list(length=limit)

    async def insert_one(self, document: Dict[str, Any]) -> str:
        """Insert with created_at/updated_at stamped when absent"""
        now = utcnow()
        document["created_at"] = document.get("created_at") or now
        document["updated_at"] = document.get("updated_at") or now

        result = await self.collection.insert_one(document)
        logger.debug(f"Inserted into {self.collection_name}: {result.inserted_id}")
        return str(result.inserted_id)

    async def find_one_and_upsert(
        self,
        filter_dict: Dict[str, Any],
        update_dict: Dict[str, Any],
        projection: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Atomically update the matching document or insert a new one

        Stamps updated_at on every write and created_at on insert only.
        Returns the document as stored after the write.
        """
        now = utcnow()
        update_dict.setdefault("$set", {})["updated_at"] = now
        update_dict.setdefault("$setOnInsert", {})["created_at"] = now

        return await self.collection.find_one_and_update(
            filter_dict,
            update_dict,
            projection=projection,
            upsert=True,
            return_document=ReturnDocument.AFTER
        )

    async def count_documents(self, filter_dict: Optional[Dict[str, Any]] = None) -> int:
        return await self.collection.count_documents(filter_dict or {})
