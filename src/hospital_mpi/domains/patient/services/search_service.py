"""
Patient search service - scoped filter search and identifier fallback
"""

from typing import Optional
import logging

from ..models.patient import PatientRecord, PatientFilter, SearchResult
from ..repositories.patient_store import PatientStore
from ...audit.services.audit_dispatcher import AuditDispatcher


logger = logging.getLogger(__name__)


class PatientSearchService:
    """Service layer for patient search"""

    def __init__(self, store: PatientStore, audit: Optional[AuditDispatcher] = None):
        self.store = store
        self.audit = audit

    async def search(
        self,
        hospital_id: str,
        filters: PatientFilter,
        limit: int,
        offset: int,
        staff_id: Optional[str] = None
    ) -> SearchResult:
        """
        Search patients of one hospital

        limit and offset are passed through unchanged; callers bound them.
        A search attributed to a staff member is audited in the background.
        """
        result = await self.store.search(hospital_id, filters, limit, offset)
        self._audit(staff_id, hospital_id, filters, result.total)
        return result

    async def search_by_identifier(
        self,
        hospital_id: str,
        identifier: str,
        staff_id: Optional[str] = None
    ) -> Optional[PatientRecord]:
        """
        Find one patient by an identifier of unknown kind

        Tries the identifier as a national ID first and as a passport
        number only when that finds nothing.
        """
        for filters in (
            PatientFilter(national_id=identifier),
            PatientFilter(passport_id=identifier),
        ):
            if filters.is_empty():
                return None

            result = await self.store.search(hospital_id, filters, 1, 0)
            if result.total > 0 and result.results:
                self._audit(staff_id, hospital_id, filters, result.total)
                return result.results[0]

        return None

    def _audit(
        self,
        staff_id: Optional[str],
        hospital_id: str,
        filters: PatientFilter,
        total: int
    ) -> None:
        if staff_id and self.audit is not None:
            self.audit.dispatch(staff_id, hospital_id, filters, total)
