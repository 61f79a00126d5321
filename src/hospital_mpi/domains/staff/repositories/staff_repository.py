"""
Staff repository - staff accounts keyed by (hospital_id, username)
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple
import asyncio
import logging

from pymongo.errors import DuplicateKeyError, PyMongoError

from ..models.staff import StaffMember
from ....core.database import BaseRepository, DatabaseManager, utcnow
from ....core.errors import DuplicateStaffError, StorageError

logger = logging.getLogger(__name__)


class StaffStore(ABC):
    """Staff account storage; usernames are unique within a hospital"""

    @abstractmethod
    async def get_by_username(self, hospital_id: str, username: str) -> Optional[StaffMember]:
        pass

    @abstractmethod
    async def create(self, staff: StaffMember) -> StaffMember:
        """
        Store a new account

        Raises:
            DuplicateStaffError: Username already taken in the hospital
            StorageError: Any other storage fault
        """
        pass


class MongoStaffStore(BaseRepository, StaffStore):
    """Staff accounts in the staff collection"""

    def __init__(self, db_manager: DatabaseManager, collection_name: str = "staff"):
        super().__init__(db_manager, collection_name)

    async def get_by_username(self, hospital_id: str, username: str) -> Optional[StaffMember]:
        try:
            doc = await self.find_one({"hospital_id": hospital_id, "username": username}, {"_id": 0})
        except PyMongoError as e:
            raise StorageError(f"get staff by username: {e}") from e
        return StaffMember.from_document(doc) if doc else None

    async def create(self, staff: StaffMember) -> StaffMember:
        doc = staff.to_document()
        try:
            await self.insert_one(doc)
        except DuplicateKeyError as e:
            raise DuplicateStaffError(
                f"username {staff.username} already exists in hospital {staff.hospital_id}"
            ) from e
        except PyMongoError as e:
            raise StorageError(f"create staff: {e}") from e

        doc.pop("_id", None)
        logger.info(f"Created staff {staff.staff_id} in hospital {staff.hospital_id}")
        return StaffMember.from_document(doc)


class InMemoryStaffStore(StaffStore):
    """Staff accounts in a dict, for local development and tests"""

    def __init__(self):
        self._rows: Dict[Tuple[str, str], StaffMember] = {}
        self._lock = asyncio.Lock()

    async def get_by_username(self, hospital_id: str, username: str) -> Optional[StaffMember]:
        row = self._rows.get((hospital_id, username))
        return row.copy() if row else None

    async def create(self, staff: StaffMember) -> StaffMember:
        key = (staff.hospital_id, staff.username)
        async with self._lock:
            if key in self._rows:
                raise DuplicateStaffError(
                    f"username {staff.username} already exists in hospital {staff.hospital_id}"
                )
            now = utcnow()
            stored = staff.copy(
                created_at=staff.created_at or now,
                updated_at=staff.updated_at or now
            )
            self._rows[key] = stored
        return stored.copy()
