"""Tests for identity resolution."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from hospital_mpi.core.errors import AdapterError, PatientValidationError, StorageError
from hospital_mpi.domains.patient.models.patient import PatientFilter, PatientRecord
from hospital_mpi.domains.patient.repositories.memory_store import InMemoryPatientStore
from hospital_mpi.domains.patient.services.identity_resolver import IdentityResolver
from tests.conftest import HOSPITAL_A, HOSPITAL_B, make_patient


@pytest.fixture
def resolver(store: InMemoryPatientStore, hospital_source: AsyncMock) -> IdentityResolver:
    return IdentityResolver(store, hospital_source)


class TestResolve:
    """Store first, hospital source on a miss."""

    @pytest.mark.anyio
    async def test_fetches_and_persists_then_serves_from_store(
        self, resolver: IdentityResolver, hospital_source: AsyncMock
    ) -> None:
        hospital_source.lookup.return_value = PatientRecord(national_id="N-1", first_name_en="Ann")

        first = await resolver.resolve("N-1")
        second = await resolver.resolve("N-1")

        assert first.national_id == "N-1"
        assert first.first_name_en == "Ann"
        assert first.internal_id
        assert second == first
        hospital_source.lookup.assert_awaited_once_with("N-1")

    @pytest.mark.anyio
    async def test_store_hit_skips_hospital(
        self, resolver: IdentityResolver, store: InMemoryPatientStore, hospital_source: AsyncMock
    ) -> None:
        await store.upsert(make_patient(1, passport_id="P-1"))

        found = await resolver.resolve("P-1")

        assert found.internal_id == "p-1"
        hospital_source.lookup.assert_not_called()

    @pytest.mark.anyio
    async def test_unknown_everywhere_writes_nothing(
        self, resolver: IdentityResolver, store: InMemoryPatientStore
    ) -> None:
        assert await resolver.resolve("N-404", hospital_id=HOSPITAL_A) is None

        result = await store.search(HOSPITAL_A, PatientFilter(), 10, 0)
        assert result.total == 0

    @pytest.mark.anyio
    async def test_new_record_gets_scope_from_argument(
        self, resolver: IdentityResolver, hospital_source: AsyncMock
    ) -> None:
        hospital_source.lookup.return_value = PatientRecord(national_id="N-1")

        found = await resolver.resolve("N-1", hospital_id=HOSPITAL_B)

        assert found.hospital_id == HOSPITAL_B

    @pytest.mark.anyio
    async def test_existing_internal_id_is_kept(
        self, resolver: IdentityResolver, hospital_source: AsyncMock
    ) -> None:
        hospital_source.lookup.return_value = PatientRecord(internal_id="ext-1", national_id="N-1")

        found = await resolver.resolve("N-1", hospital_id=HOSPITAL_A)

        assert found.internal_id == "ext-1"

    @pytest.mark.anyio
    async def test_adapter_error_propagates(
        self, resolver: IdentityResolver, hospital_source: AsyncMock
    ) -> None:
        hospital_source.lookup.side_effect = AdapterError("hospital api timeout")

        with pytest.raises(AdapterError):
            await resolver.resolve("N-1")

    @pytest.mark.anyio
    async def test_storage_error_propagates(self, hospital_source: AsyncMock) -> None:
        store = AsyncMock(spec=InMemoryPatientStore)
        store.get_by_identifier.side_effect = StorageError("down")

        with pytest.raises(StorageError):
            await IdentityResolver(store, hospital_source).resolve("N-1")
        hospital_source.lookup.assert_not_called()

    @pytest.mark.anyio
    async def test_blank_identifier_is_rejected(self, resolver: IdentityResolver) -> None:
        with pytest.raises(PatientValidationError):
            await resolver.resolve("   ")

    @pytest.mark.anyio
    async def test_hospital_record_without_identifiers_is_not_stored(
        self, resolver: IdentityResolver, store: InMemoryPatientStore, hospital_source: AsyncMock
    ) -> None:
        hospital_source.lookup.return_value = PatientRecord(first_name_en="Ann")

        with pytest.raises(AdapterError):
            await resolver.resolve("N-1", hospital_id=HOSPITAL_A)

        result = await store.search(HOSPITAL_A, PatientFilter(), 10, 0)
        assert result.total == 0


class TestConcurrentResolve:
    """Two resolves of the same new identifier converge on one row."""

    @pytest.mark.anyio
    async def test_racing_resolves_store_one_patient(
        self, resolver: IdentityResolver, store: InMemoryPatientStore, hospital_source: AsyncMock
    ) -> None:
        both_missed = asyncio.Event()
        arrivals = []

        async def lookup(identifier: str) -> PatientRecord:
            arrivals.append(identifier)
            if len(arrivals) == 2:
                both_missed.set()
            await both_missed.wait()
            return PatientRecord(national_id=identifier, first_name_en="Ann")

        hospital_source.lookup.side_effect = lookup

        first, second = await asyncio.gather(
            resolver.resolve("N-1", hospital_id=HOSPITAL_A),
            resolver.resolve("N-1", hospital_id=HOSPITAL_A),
        )

        assert hospital_source.lookup.await_count == 2
        assert first.internal_id == second.internal_id
        result = await store.search(HOSPITAL_A, PatientFilter(), 10, 0)
        assert result.total == 1
