"""
Identity resolver - local store first, hospital source on a miss
"""

from typing import Optional
import logging
import uuid

from ..models.patient import PatientRecord
from ..repositories.patient_store import PatientStore
from ....core.errors import AdapterError, PatientValidationError
from ....providers.base_provider import BaseHospitalSource


logger = logging.getLogger(__name__)


class IdentityResolver:
    """
    Resolves a national ID or passport number to one patient record.

    The local store is a read-through cache in front of the hospital
    source. Once a patient is stored it is returned as-is without asking
    the hospital again. Patients fetched from the hospital are persisted
    through the store's upsert before being returned, so a resolved
    record is always durable.
    """

    def __init__(self, store: PatientStore, source: BaseHospitalSource):
        self.store = store
        self.source = source

    async def resolve(
        self,
        identifier: str,
        hospital_id: Optional[str] = None
    ) -> Optional[PatientRecord]:
        """
        Args:
            identifier: National ID or passport number
            hospital_id: Scope assigned to records fetched from the hospital

        Returns:
            The stored patient, or None if neither the store nor the
            hospital knows the identifier

        Raises:
            PatientValidationError: Empty identifier
            StorageError: Store read or write failed
            AdapterError: Hospital lookup failed, or returned a record
                without identifiers
        """
        identifier = (identifier or "").strip()
        if not identifier:
            raise PatientValidationError("identifier is required")

        # 1) Local store
        patient = await self.store.get_by_identifier(identifier)
        if patient is not None:
            return patient

        # 2) Hospital source
        patient = await self.source.lookup(identifier)
        if patient is None:
            logger.info(f"Identifier {identifier} unknown to hospital source")
            return None

        # 3) Persist
        if not patient.has_identifier():
            raise AdapterError(f"hospital record for {identifier} carries no national_id or passport_id")
        if not patient.internal_id:
            patient.internal_id = str(uuid.uuid4())
        if not patient.hospital_id and hospital_id:
            patient.hospital_id = hospital_id

        stored = await self.store.upsert(patient)
        logger.info(f"Stored patient {stored.internal_id} fetched from hospital source")
        return stored
