"""Tests for the in-process patient store."""

from datetime import timedelta

import pytest

from hospital_mpi.core.errors import DuplicatePatientError, StorageError
from hospital_mpi.domains.patient.models.patient import PatientFilter, PatientRecord
from hospital_mpi.domains.patient.repositories.memory_store import InMemoryPatientStore
from hospital_mpi.domains.patient.repositories.patient_store import UpsertStrategy, merge_fields
from tests.conftest import BASE_TIME, HOSPITAL_A, HOSPITAL_B, make_patient


class TestUpsertStrategy:
    """Strategy selection from the identifiers a record carries."""

    def test_national_id_takes_precedence(self) -> None:
        record = PatientRecord(national_id="N-1", passport_id="P-1")

        strategy = UpsertStrategy.for_record(record)

        assert strategy is UpsertStrategy.BY_NATIONAL_ID
        assert strategy.key_field == "national_id"
        assert strategy.preserved_field == "passport_id"

    def test_passport_only(self) -> None:
        strategy = UpsertStrategy.for_record(PatientRecord(passport_id="P-1"))

        assert strategy is UpsertStrategy.BY_PASSPORT_ID
        assert strategy.preserved_field == "national_id"

    def test_no_identifier_is_plain_insert(self) -> None:
        strategy = UpsertStrategy.for_record(PatientRecord(first_name_en="Ann"))

        assert strategy is UpsertStrategy.PLAIN_INSERT
        assert strategy.key_field is None

    def test_merge_fields_drops_immutable_and_empty_preserved_identifier(self) -> None:
        record = make_patient(1, passport_id="")

        fields = merge_fields(record, UpsertStrategy.BY_NATIONAL_ID)

        assert "internal_id" not in fields
        assert "created_at" not in fields
        assert "updated_at" not in fields
        assert "passport_id" not in fields
        assert fields["national_id"] == "N-1"


class TestUpsert:
    """Insert-or-merge behavior."""

    @pytest.mark.anyio
    async def test_insert_when_no_collision(self, store: InMemoryPatientStore) -> None:
        stored = await store.upsert(make_patient(1))

        assert stored.internal_id == "p-1"
        assert stored.created_at == BASE_TIME + timedelta(minutes=1)
        assert stored.updated_at is not None
        assert await store.get_by_internal_id("p-1") == stored

    @pytest.mark.anyio
    async def test_national_id_collision_overwrites_but_keeps_identity(
        self, store: InMemoryPatientStore
    ) -> None:
        original = await store.upsert(make_patient(1, passport_id="P-1"))

        incoming = make_patient(
            99,
            national_id="N-1",
            passport_id="",
            first_name_en="Somsak",
            phone_number="",
            created_at=None,
        )
        merged = await store.upsert(incoming)

        assert merged.internal_id == original.internal_id
        assert merged.created_at == original.created_at
        assert merged.first_name_en == "Somsak"
        # Non-identifier fields are overwritten even when empty
        assert merged.phone_number == ""
        # Empty incoming passport does not clear the stored one
        assert merged.passport_id == "P-1"

    @pytest.mark.anyio
    async def test_non_empty_other_identifier_is_written(self, store: InMemoryPatientStore) -> None:
        await store.upsert(make_patient(1, passport_id="P-1"))

        merged = await store.upsert(make_patient(2, national_id="N-1", passport_id="P-9"))

        assert merged.internal_id == "p-1"
        assert merged.passport_id == "P-9"

    @pytest.mark.anyio
    async def test_passport_collision_preserves_national_id(self, store: InMemoryPatientStore) -> None:
        await store.upsert(make_patient(1, national_id="N-1", passport_id="P-1"))

        merged = await store.upsert(
            make_patient(2, national_id="", passport_id="P-1", last_name_en="Updated")
        )

        assert merged.internal_id == "p-1"
        assert merged.national_id == "N-1"
        assert merged.last_name_en == "Updated"

    @pytest.mark.anyio
    async def test_same_identifiers_in_other_hospital_make_a_new_row(
        self, store: InMemoryPatientStore
    ) -> None:
        await store.upsert(make_patient(1))

        other = await store.upsert(make_patient(2, national_id="N-1", hospital_id=HOSPITAL_B))

        assert other.internal_id == "p-2"
        assert other.hospital_id == HOSPITAL_B

    @pytest.mark.anyio
    async def test_collision_on_other_key_is_duplicate(self, store: InMemoryPatientStore) -> None:
        await store.upsert(make_patient(1, passport_id="P-1"))

        with pytest.raises(DuplicatePatientError):
            await store.upsert(make_patient(2, national_id="N-2", passport_id="P-1"))

    @pytest.mark.anyio
    async def test_duplicate_is_a_storage_error(self, store: InMemoryPatientStore) -> None:
        await store.insert(make_patient(1))

        with pytest.raises(StorageError):
            await store.insert(make_patient(2, national_id="N-1"))

    @pytest.mark.anyio
    async def test_plain_insert_without_identifiers(self, store: InMemoryPatientStore) -> None:
        first = await store.upsert(make_patient(1, national_id=""))
        second = await store.upsert(make_patient(2, national_id=""))

        assert first.internal_id != second.internal_id
        result = await store.search(HOSPITAL_A, PatientFilter(), 10, 0)
        assert result.total == 2

    @pytest.mark.anyio
    async def test_insert_requires_internal_id(self, store: InMemoryPatientStore) -> None:
        with pytest.raises(StorageError):
            await store.insert(make_patient(1, internal_id=""))

    @pytest.mark.anyio
    async def test_returned_rows_are_copies(self, store: InMemoryPatientStore) -> None:
        stored = await store.upsert(make_patient(1))
        stored.first_name_en = "Changed"

        fetched = await store.get_by_internal_id("p-1")

        assert fetched.first_name_en == "Somchai"


class TestGetByIdentifier:
    """Unscoped identifier lookup."""

    @pytest.mark.anyio
    async def test_matches_national_or_passport(self, store: InMemoryPatientStore) -> None:
        await store.upsert(make_patient(1, passport_id="P-1"))

        assert (await store.get_by_identifier("N-1")).internal_id == "p-1"
        assert (await store.get_by_identifier("P-1")).internal_id == "p-1"
        assert await store.get_by_identifier("X-1") is None

    @pytest.mark.anyio
    async def test_empty_identifier_never_matches(self, store: InMemoryPatientStore) -> None:
        await store.upsert(make_patient(1, passport_id=""))

        assert await store.get_by_identifier("") is None

    @pytest.mark.anyio
    async def test_oldest_record_wins_across_hospitals(self, store: InMemoryPatientStore) -> None:
        await store.upsert(make_patient(5, national_id="N-1", hospital_id=HOSPITAL_B))
        await store.upsert(make_patient(1, national_id="N-1", hospital_id=HOSPITAL_A))

        found = await store.get_by_identifier("N-1")

        assert found.internal_id == "p-1"


class TestSearch:
    """Scoped filter search with paging."""

    @pytest.mark.anyio
    async def test_scoped_to_hospital(self, store: InMemoryPatientStore) -> None:
        await store.upsert(make_patient(1))
        await store.upsert(make_patient(2, hospital_id=HOSPITAL_B))

        result = await store.search(HOSPITAL_A, PatientFilter(), 10, 0)

        assert [p.internal_id for p in result.results] == ["p-1"]
        assert result.total == 1

    @pytest.mark.anyio
    async def test_name_matches_either_script(self, store: InMemoryPatientStore) -> None:
        await store.upsert(make_patient(1))
        await store.upsert(make_patient(2, first_name_en="Anong", first_name_th="อนงค์"))

        by_thai = await store.search(HOSPITAL_A, PatientFilter(first_name="สมชาย"), 10, 0)
        by_english = await store.search(HOSPITAL_A, PatientFilter(first_name="somCH"), 10, 0)

        assert [p.internal_id for p in by_thai.results] == ["p-1"]
        assert [p.internal_id for p in by_english.results] == ["p-1"]

    @pytest.mark.anyio
    async def test_all_criteria_must_match(self, store: InMemoryPatientStore) -> None:
        await store.upsert(make_patient(1))
        await store.upsert(make_patient(2, phone_number="0899999999"))

        result = await store.search(
            HOSPITAL_A,
            PatientFilter(last_name="jaidee", phone_number="9999"),
            10,
            0,
        )

        assert [p.internal_id for p in result.results] == ["p-2"]

    @pytest.mark.anyio
    async def test_exact_fields_do_not_match_substrings(self, store: InMemoryPatientStore) -> None:
        await store.upsert(make_patient(12))

        result = await store.search(HOSPITAL_A, PatientFilter(national_id="N-1"), 10, 0)

        assert result.total == 0

    @pytest.mark.anyio
    async def test_date_of_birth_exact(self, store: InMemoryPatientStore) -> None:
        await store.upsert(make_patient(1))

        hit = await store.search(HOSPITAL_A, PatientFilter(date_of_birth="1990-01-15"), 10, 0)
        miss = await store.search(HOSPITAL_A, PatientFilter(date_of_birth="1990-01-16"), 10, 0)

        assert hit.total == 1
        assert miss.total == 0

    @pytest.mark.anyio
    async def test_regex_characters_are_literal(self, store: InMemoryPatientStore) -> None:
        await store.upsert(make_patient(1, email="a.b@example.com"))
        await store.upsert(make_patient(2, email="axb@example.com"))

        result = await store.search(HOSPITAL_A, PatientFilter(email="a.b"), 10, 0)

        assert [p.internal_id for p in result.results] == ["p-1"]

    @pytest.mark.anyio
    async def test_total_ignores_paging_and_newest_first(self, store: InMemoryPatientStore) -> None:
        for n in range(5):
            await store.upsert(make_patient(n))

        result = await store.search(HOSPITAL_A, PatientFilter(), 2, 1)

        assert result.total == 5
        assert [p.internal_id for p in result.results] == ["p-3", "p-2"]

    @pytest.mark.anyio
    async def test_zero_limit_returns_empty_page(self, store: InMemoryPatientStore) -> None:
        await store.upsert(make_patient(1))

        result = await store.search(HOSPITAL_A, PatientFilter(), 0, 0)

        assert result.results == []
        assert result.total == 1

    @pytest.mark.anyio
    async def test_negative_offset_is_rejected(self, store: InMemoryPatientStore) -> None:
        with pytest.raises(StorageError):
            await store.search(HOSPITAL_A, PatientFilter(), 10, -1)
