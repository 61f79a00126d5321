"""
Mock Hospital Source

Answers every lookup with the same demographic record, echoing the
requested identifier as the national ID. Used for local development
without a reachable hospital API.
"""

import logging
from typing import Dict, Any, Optional

import orjson

from .base_provider import BaseHospitalSource, ProviderConfig
from ..domains.patient.models.patient import PatientRecord

logger = logging.getLogger(__name__)


SAMPLE_PATIENT: Dict[str, Any] = {
    "first_name_th": "มานพ",
    "middle_name_th": "",
    "last_name_th": "สุขใจ",
    "first_name_en": "Manop",
    "middle_name_en": "",
    "last_name_en": "Sukjai",
    "date_of_birth": "1985-05-05",
    "patient_hn": "HN-999",
    "passport_id": "",
    "phone_number": "0811112222",
    "email": "manop@example.com",
    "gender": "M",
}


class MockHospitalSource(BaseHospitalSource):
    """Hospital source returning a canned patient"""

    def __init__(self, config: ProviderConfig = None, patient: Optional[Dict[str, Any]] = None, **kwargs):
        super().__init__(config)
        self.patient = dict(patient or SAMPLE_PATIENT)
        self.provider_name = "mock"

    async def initialize(self) -> None:
        self._initialized = True
        logger.info("Mock hospital source initialized")

    async def lookup(self, identifier: str) -> Optional[PatientRecord]:
        self.total_calls += 1
        data = dict(self.patient, national_id=identifier)
        self.found += 1
        return self._to_record(data, raw_payload=orjson.dumps(data))
