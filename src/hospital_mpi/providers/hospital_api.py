"""
Hospital API Source

Looks patients up in the hospital's HTTP API:
GET {base_url}/patient/search/{identifier}
"""

import asyncio
import logging
from typing import Dict, Any, Optional
from dataclasses import dataclass, field
from urllib.parse import quote

import aiohttp
import orjson

from .base_provider import BaseHospitalSource, ProviderConfig
from ..core.config import get_config
from ..core.errors import AdapterError
from ..domains.patient.models.patient import PatientRecord

logger = logging.getLogger(__name__)


@dataclass
class HospitalAPISourceConfig(ProviderConfig):
    """Configuration for the hospital HTTP API"""
    base_url: str = field(default_factory=lambda: get_config().hospital_source.base_url)
    timeout_seconds: float = field(default_factory=lambda: get_config().hospital_source.timeout_seconds)


class HospitalAPISource(BaseHospitalSource):
    """
    Hospital HTTP API source

    404 from the hospital means the patient is unknown. Any other
    non-200 status, a timeout or a transport failure is an AdapterError.
    """

    def __init__(
        self,
        config: HospitalAPISourceConfig = None,
        session: Optional[aiohttp.ClientSession] = None,
        base_url: str = None
    ):
        super().__init__(config or HospitalAPISourceConfig())
        self.config: HospitalAPISourceConfig = self.config

        if base_url:
            self.config.base_url = base_url

        self.session = session
        self._owns_session = session is None

    async def initialize(self) -> None:
        """Create an HTTP session unless one was shared with us"""
        if self.session is None:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.timeout_seconds)
            )
        self._initialized = True
        logger.info(f"Hospital API source initialized for {self.config.base_url}")

    def build_url(self, identifier: str) -> str:
        base = self.config.base_url.rstrip('/')
        return f"{base}/patient/search/{quote(identifier, safe='')}"

    async def lookup(self, identifier: str) -> Optional[PatientRecord]:
        """Query the hospital API by national ID or passport number"""
        if self.session is None:
            raise AdapterError("Hospital API source not initialized")

        self.total_calls += 1
        url = self.build_url(identifier)

        try:
            async with self.session.get(
                url,
                timeout=aiohttp.ClientTimeout(total=self.config.timeout_seconds)
            ) as response:
                if response.status == 404:
                    self.not_found += 1
                    return None

                body = await response.read()

                if response.status != 200:
                    self.failed_calls += 1
                    logger.error(f"Hospital API error: {response.status} - {body[:2048]!r}")
                    raise AdapterError(f"hospital api status {response.status}")

        except asyncio.TimeoutError as e:
            self.failed_calls += 1
            logger.error(f"Hospital API timeout for {url}")
            raise AdapterError("hospital api timeout") from e
        except aiohttp.ClientError as e:
            self.failed_calls += 1
            logger.error(f"Hospital API request failed: {e}")
            raise AdapterError(f"http request: {e}") from e

        try:
            data = orjson.loads(body)
            if not isinstance(data, dict):
                raise ValueError("expected a JSON object")
            record = self._to_record(data, raw_payload=body)
        except ValueError as e:
            self.failed_calls += 1
            logger.error(f"Hospital API returned an undecodable body: {e}")
            raise AdapterError(f"decode response: {e}") from e

        self.found += 1
        return record

    async def health_check(self) -> Dict[str, Any]:
        """Report configuration-level health; does not call the hospital"""
        status = await super().health_check()
        status['api_endpoint'] = self.config.base_url
        return status

    def get_stats(self) -> Dict[str, Any]:
        stats = super().get_stats()
        stats['api_endpoint'] = self.config.base_url
        return stats

    async def cleanup(self) -> None:
        """Close the HTTP session if this source created it"""
        if self._owns_session and self.session is not None:
            await self.session.close()
            self.session = None
        await super().cleanup()
