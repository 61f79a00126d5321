"""
Base Hospital Source Interface

Defines the standard interface that all external hospital sources must
implement. A source answers one question: given a national ID or passport
number, what does the hospital know about this patient?
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, Optional
from dataclasses import dataclass
import logging

from ..domains.patient.models.patient import PatientRecord, parse_date

logger = logging.getLogger(__name__)


# Hospital API field names that map one-to-one onto PatientRecord
HOSPITAL_FIELDS = (
    "patient_hn",
    "national_id",
    "passport_id",
    "first_name_th",
    "middle_name_th",
    "last_name_th",
    "first_name_en",
    "middle_name_en",
    "last_name_en",
    "phone_number",
    "email",
    "gender",
)


@dataclass
class ProviderConfig:
    """Base configuration for hospital sources"""
    timeout_seconds: float = 2.0

    def __post_init__(self):
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")


class BaseHospitalSource(ABC):
    """
    Abstract base class for all hospital sources

    lookup() returns None only when the hospital definitively reports the
    patient as unknown. Every other failure raises AdapterError.
    """

    def __init__(self, config: ProviderConfig = None):
        self.config = config or ProviderConfig()
        self.provider_name = self.__class__.__name__.replace('Source', '').lower()
        self._initialized = False

        # Statistics
        self.total_calls = 0
        self.found = 0
        self.not_found = 0
        self.failed_calls = 0

    @abstractmethod
    async def initialize(self) -> None:
        """
        Initialize the source

        Sets up connections or sessions needed for lookups.
        """
        pass

    @abstractmethod
    async def lookup(self, identifier: str) -> Optional[PatientRecord]:
        """
        Look up a patient by national ID or passport number

        Args:
            identifier: National ID or passport number

        Returns:
            PatientRecord without internal_id or hospital_id, or None if the
            hospital does not know the identifier

        Raises:
            AdapterError: On transport errors, timeouts and non-success responses
        """
        pass

    async def health_check(self) -> Dict[str, Any]:
        """
        Check source health status

        Returns:
            Dictionary with health status information
        """
        return {
            'status': 'healthy' if self._initialized else 'uninitialized',
            'provider': self.provider_name,
        }

    def get_stats(self) -> Dict[str, Any]:
        """
        Get source statistics

        Returns:
            Dictionary with lookup counters and rates
        """
        return {
            'provider': self.provider_name,
            'initialized': self._initialized,
            'total_calls': self.total_calls,
            'found': self.found,
            'not_found': self.not_found,
            'failed_calls': self.failed_calls,
            'error_rate': self.failed_calls / max(self.total_calls, 1),
            'config': {
                'timeout_seconds': self.config.timeout_seconds,
            }
        }

    async def cleanup(self) -> None:
        """
        Cleanup source resources

        Called when the service is shutting down.
        """
        self._initialized = False

    def _to_record(self, data: Dict[str, Any], raw_payload: Optional[bytes] = None) -> PatientRecord:
        """
        Map a hospital response body onto a PatientRecord

        Args:
            data: Decoded hospital response
            raw_payload: Original response bytes, kept for audit

        Returns:
            PatientRecord with no internal_id or hospital_id assigned
        """
        values = {}
        for name in HOSPITAL_FIELDS:
            value = data.get(name)
            values[name] = str(value).strip() if value is not None else ""

        return PatientRecord(
            date_of_birth=parse_date(data.get("date_of_birth")),
            raw_payload=raw_payload,
            **values
        )
