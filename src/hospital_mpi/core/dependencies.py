"""
Dependency injection for the application
"""

from fastapi import Request, Depends

from .config import get_search_config, SearchConfig
from ..domains.patient.repositories.patient_store import PatientStore
from ..domains.patient.services.identity_resolver import IdentityResolver
from ..domains.patient.services.search_service import PatientSearchService
from ..domains.audit.services.audit_dispatcher import AuditDispatcher
from ..domains.staff.repositories.staff_repository import StaffStore
from ..domains.staff.services.auth_service import StaffAuthService
from ..providers.base_provider import BaseHospitalSource


async def get_service_context(request: Request):
    """Get the service context created at startup"""
    return request.app.state.mpi_service


async def get_patient_store(context=Depends(get_service_context)) -> PatientStore:
    """Get the patient record store"""
    return context.store


async def get_hospital_source(context=Depends(get_service_context)) -> BaseHospitalSource:
    """Get the configured hospital source"""
    return context.source


async def get_audit_dispatcher(context=Depends(get_service_context)) -> AuditDispatcher:
    """Get the background audit dispatcher"""
    return context.audit


async def get_staff_store(context=Depends(get_service_context)) -> StaffStore:
    """Get the staff account store"""
    return context.staff_store


def get_search_settings() -> SearchConfig:
    """Get pagination bounds"""
    return get_search_config()


# Service dependencies
async def get_identity_resolver(
    store: PatientStore = Depends(get_patient_store),
    source: BaseHospitalSource = Depends(get_hospital_source)
) -> IdentityResolver:
    """Get identity resolver instance"""
    return IdentityResolver(store, source)


async def get_search_service(
    store: PatientStore = Depends(get_patient_store),
    audit: AuditDispatcher = Depends(get_audit_dispatcher)
) -> PatientSearchService:
    """Get patient search service instance"""
    return PatientSearchService(store, audit)


async def get_staff_auth_service(
    store: StaffStore = Depends(get_staff_store)
) -> StaffAuthService:
    """Get staff authentication service instance"""
    return StaffAuthService(store)
