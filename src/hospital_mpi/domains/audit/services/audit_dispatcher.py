"""
Audit dispatcher - fire-and-forget search audit writes
"""

import asyncio
import logging
from typing import Optional, Set

from ..repositories.audit_repository import AuditSink
from ...patient.models.patient import PatientFilter


logger = logging.getLogger(__name__)


class AuditDispatcher:
    """
    Runs audit sink writes as detached tasks.

    dispatch() returns immediately. A failed write is logged and dropped;
    it never reaches the request that triggered it.
    """

    def __init__(self, sink: Optional[AuditSink]):
        self.sink = sink
        self._pending: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def dispatch(
        self,
        staff_id: str,
        hospital_id: str,
        filters: PatientFilter,
        result_count: int
    ) -> Optional[asyncio.Task]:
        """Schedule a search event write"""
        if self.sink is None:
            return None

        task = asyncio.create_task(
            self._write(staff_id, hospital_id, filters, result_count)
        )
        # The loop only keeps weak references to tasks
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _write(
        self,
        staff_id: str,
        hospital_id: str,
        filters: PatientFilter,
        result_count: int
    ) -> None:
        try:
            await self.sink.log_search(staff_id, hospital_id, filters, result_count)
        except Exception as e:
            logger.error(
                f"Search audit write failed (staff_id={staff_id}, hospital={hospital_id}): {e}"
            )

    async def drain(self) -> None:
        """Wait for outstanding writes"""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
