"""
Patient controller - HTTP endpoint handlers
"""

from fastapi import APIRouter, HTTPException, Path, Depends, status
import logging
import uuid

from ..models.patient import (
    PatientRecord,
    PatientSearchRequest,
    PatientCreateRequest,
    PatientResponse,
    PatientSearchResponse
)
from ..repositories.patient_store import PatientStore
from ..services.identity_resolver import IdentityResolver
from ..services.search_service import PatientSearchService
from ....core.auth import StaffContext, get_current_staff
from ....core.config import SearchConfig
from ....core.dependencies import (
    get_identity_resolver,
    get_search_service,
    get_patient_store,
    get_search_settings
)
from ....core.errors import MPIServiceError, PatientValidationError, DuplicatePatientError


logger = logging.getLogger(__name__)

router = APIRouter(tags=["patients"])


def _not_found() -> HTTPException:
    return HTTPException(status_code=404, detail="not found")


def _internal_error() -> HTTPException:
    return HTTPException(status_code=500, detail="internal error")


@router.get("/v1/patient/search/{identifier}", response_model=PatientResponse)
async def search_patient_by_identifier(
    identifier: str = Path(..., description="National ID or passport number"),
    staff: StaffContext = Depends(get_current_staff),
    service: PatientSearchService = Depends(get_search_service)
) -> PatientResponse:
    """
    Find a patient of the caller's hospital by national ID, then passport

    Only the local store is searched; the hospital source is not asked.
    """
    try:
        patient = await service.search_by_identifier(
            staff.hospital_id,
            identifier,
            staff_id=staff.staff_id
        )
    except MPIServiceError as e:
        logger.error(
            f"Identifier search failed (hospital={staff.hospital_id}, identifier={identifier}): {e}"
        )
        raise _internal_error()

    if patient is None:
        raise _not_found()

    return PatientResponse.from_record(patient)


@router.get("/v1/patient/search", include_in_schema=False)
async def search_patient_without_identifier(
    staff: StaffContext = Depends(get_current_staff)
):
    """Keeps "search" from being resolved as an identifier"""
    raise HTTPException(status_code=400, detail="identifier is required")


@router.get("/v1/patient/{identifier}", response_model=PatientResponse)
async def resolve_patient(
    identifier: str = Path(..., description="National ID or passport number"),
    staff: StaffContext = Depends(get_current_staff),
    resolver: IdentityResolver = Depends(get_identity_resolver)
) -> PatientResponse:
    """
    Resolve an identifier to a patient

    Answers from the local store when possible, otherwise fetches the
    patient from the hospital source and stores it in the caller's
    hospital.
    """
    try:
        patient = await resolver.resolve(identifier, hospital_id=staff.hospital_id)
    except PatientValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except MPIServiceError as e:
        logger.error(f"Resolve failed (identifier={identifier}): {e}")
        raise _internal_error()

    if patient is None:
        raise _not_found()

    if patient.hospital_id and patient.hospital_id != staff.hospital_id:
        raise _not_found()

    return PatientResponse.from_record(patient)


@router.post("/patient/search", response_model=PatientSearchResponse)
async def legacy_search_patients(
    search_request: PatientSearchRequest,
    staff: StaffContext = Depends(get_current_staff),
    service: PatientSearchService = Depends(get_search_service),
    settings: SearchConfig = Depends(get_search_settings)
) -> PatientSearchResponse:
    """
    Search patients of the caller's hospital (original request contract)

    A missing or zero limit means the legacy default; any other limit is
    used as given.
    """
    limit = search_request.limit or settings.legacy_default_limit
    offset = max(search_request.offset or 0, 0)

    return await _run_search(service, staff, search_request, limit, offset)


@router.post("/v1/patient/search", response_model=PatientSearchResponse)
async def search_patients(
    search_request: PatientSearchRequest,
    staff: StaffContext = Depends(get_current_staff),
    service: PatientSearchService = Depends(get_search_service),
    settings: SearchConfig = Depends(get_search_settings)
) -> PatientSearchResponse:
    """
    Search patients of the caller's hospital

    Name criteria match the Thai or the English spelling. The page size
    is bounded to 1..max_limit.
    """
    limit = search_request.limit or settings.default_limit
    limit = min(max(limit, 1), settings.max_limit)
    offset = max(search_request.offset or 0, 0)

    return await _run_search(service, staff, search_request, limit, offset)


async def _run_search(
    service: PatientSearchService,
    staff: StaffContext,
    search_request: PatientSearchRequest,
    limit: int,
    offset: int
) -> PatientSearchResponse:
    filters = search_request.to_filter()

    try:
        result = await service.search(
            staff.hospital_id,
            filters,
            limit,
            offset,
            staff_id=staff.staff_id
        )
    except MPIServiceError as e:
        logger.error(
            f"Search failed (hospital={staff.hospital_id}, filters={filters.to_dict()}, "
            f"limit={limit}, offset={offset}): {e}"
        )
        raise _internal_error()

    return PatientSearchResponse(
        count=result.total,
        limit=limit,
        offset=offset,
        results=[PatientResponse.from_record(p) for p in result.results]
    )


@router.post(
    "/v1/patients",
    response_model=PatientResponse,
    status_code=status.HTTP_201_CREATED
)
async def create_patient(
    request: PatientCreateRequest,
    staff: StaffContext = Depends(get_current_staff),
    store: PatientStore = Depends(get_patient_store)
) -> PatientResponse:
    """
    Create a patient in the caller's hospital

    An existing patient with the same national ID (or passport number
    when no national ID is given) is updated in place instead.
    """
    record = PatientRecord(
        internal_id=str(uuid.uuid4()),
        patient_hn=request.patient_hn,
        national_id=request.national_id.strip(),
        passport_id=request.passport_id.strip(),
        first_name_th=request.first_name_th,
        middle_name_th=request.middle_name_th,
        last_name_th=request.last_name_th,
        first_name_en=request.first_name_en,
        middle_name_en=request.middle_name_en,
        last_name_en=request.last_name_en,
        date_of_birth=request.date_of_birth,
        phone_number=request.phone_number,
        email=request.email,
        gender=request.gender,
        hospital_id=staff.hospital_id
    )

    if not record.has_identifier():
        raise HTTPException(status_code=400, detail="national_id or passport_id is required")

    try:
        stored = await store.upsert(record)
    except DuplicatePatientError as e:
        logger.warning(
            f"Create conflict (hospital={staff.hospital_id}, national_id={record.national_id}, "
            f"passport_id={record.passport_id}): {e}"
        )
        raise HTTPException(
            status_code=409,
            detail="patient with same national_id or passport_id already exists"
        )
    except MPIServiceError as e:
        logger.error(f"Create failed (hospital={staff.hospital_id}): {e}")
        raise _internal_error()

    return PatientResponse.from_record(stored)


@router.get("/v1/patients/{internal_id}", response_model=PatientResponse)
async def get_patient(
    internal_id: str = Path(..., description="Internal patient ID"),
    staff: StaffContext = Depends(get_current_staff),
    store: PatientStore = Depends(get_patient_store)
) -> PatientResponse:
    """Fetch a patient of the caller's hospital by internal ID"""
    try:
        patient = await store.get_by_internal_id(internal_id)
    except MPIServiceError as e:
        logger.error(f"Error fetching patient {internal_id}: {e}")
        raise _internal_error()

    if patient is None or patient.hospital_id != staff.hospital_id:
        raise _not_found()

    return PatientResponse.from_record(patient)
