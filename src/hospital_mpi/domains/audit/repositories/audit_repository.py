"""
Audit repository - persists search events
"""
from abc import ABC, abstractmethod
from typing import List
import logging

from ..models.audit import SearchEvent
from ...patient.models.patient import PatientFilter
from ....core.database import BaseRepository, DatabaseManager, utcnow

logger = logging.getLogger(__name__)


class AuditSink(ABC):
    """Destination for search audit events"""

    @abstractmethod
    async def log_search(
        self,
        staff_id: str,
        hospital_id: str,
        filters: PatientFilter,
        result_count: int
    ) -> None:
        """Record a search event; raises on failure"""
        pass


class MongoAuditSink(BaseRepository, AuditSink):
    """Writes search events to the search_events collection"""

    def __init__(self, db_manager: DatabaseManager, collection_name: str = "search_events"):
        super().__init__(db_manager, collection_name)

    async def log_search(
        self,
        staff_id: str,
        hospital_id: str,
        filters: PatientFilter,
        result_count: int
    ) -> None:
        event = SearchEvent(
            staff_id=staff_id,
            hospital_id=hospital_id,
            filters=filters.to_dict(),
            result_count=result_count,
            created_at=utcnow()
        )
        await self.insert_one(event.to_document())


class InMemoryAuditSink(AuditSink):
    """Keeps search events in a list"""

    def __init__(self):
        self.events: List[SearchEvent] = []

    async def log_search(
        self,
        staff_id: str,
        hospital_id: str,
        filters: PatientFilter,
        result_count: int
    ) -> None:
        self.events.append(SearchEvent(
            staff_id=staff_id,
            hospital_id=hospital_id,
            filters=filters.to_dict(),
            result_count=result_count,
            created_at=utcnow()
        ))
