"""
Error taxonomy for the MPI service
"""


class MPIServiceError(Exception):
    """Base exception for MPI service errors"""
    pass


class StorageError(MPIServiceError):
    """Failure reported by the patient record store"""
    pass


class DuplicatePatientError(StorageError):
    """Write rejected by one of the unique identifier indexes"""
    pass


class AdapterError(MPIServiceError):
    """Transport, timeout or non-success status from the hospital source"""
    pass


class PatientValidationError(MPIServiceError):
    """Malformed or under-specified input"""
    pass


class DuplicateStaffError(StorageError):
    """Username already registered in the hospital"""
    pass


class StaffValidationError(MPIServiceError):
    """Registration input rejected, e.g. a password that is too short"""
    pass


class InvalidCredentialsError(MPIServiceError):
    """Unknown username or wrong password"""
    pass
