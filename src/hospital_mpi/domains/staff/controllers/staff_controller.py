"""
Staff controller - account registration and login
"""

from fastapi import APIRouter, HTTPException, Depends, status
import logging

from ..models.staff import StaffCreateRequest, StaffLoginRequest, StaffResponse, TokenResponse
from ..services.auth_service import StaffAuthService
from ....core.dependencies import get_staff_auth_service
from ....core.errors import (
    MPIServiceError,
    DuplicateStaffError,
    InvalidCredentialsError,
    StaffValidationError
)


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/staff", tags=["staff"])


@router.post("/create", response_model=StaffResponse, status_code=status.HTTP_201_CREATED)
async def create_staff(
    request: StaffCreateRequest,
    service: StaffAuthService = Depends(get_staff_auth_service)
) -> StaffResponse:
    """Register a staff account in a hospital"""
    try:
        staff = await service.register(
            request.username,
            request.password,
            request.hospital_id,
            display_name=request.display_name
        )
    except StaffValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DuplicateStaffError:
        raise HTTPException(status_code=409, detail="username already exists for hospital")
    except MPIServiceError as e:
        logger.error(f"Staff registration failed (hospital={request.hospital_id}): {e}")
        raise HTTPException(status_code=500, detail="internal error")

    return StaffResponse.from_staff(staff)


@router.post("/login", response_model=TokenResponse)
async def login(
    request: StaffLoginRequest,
    service: StaffAuthService = Depends(get_staff_auth_service)
) -> TokenResponse:
    """
    Exchange username, password and hospital for a bearer token

    The token's hospital_id claim scopes all patient requests made
    with it.
    """
    if not service.config.jwt_secret_key:
        logger.error("JWT_SECRET is not configured")
        raise HTTPException(status_code=500, detail="server misconfigured")

    try:
        token = await service.authenticate(request.username, request.password, request.hospital_id)
    except InvalidCredentialsError:
        raise HTTPException(status_code=401, detail="invalid credentials")
    except MPIServiceError as e:
        logger.error(f"Staff login failed (hospital={request.hospital_id}): {e}")
        raise HTTPException(status_code=500, detail="internal error")

    return TokenResponse(access_token=token, expires_in=service.config.jwt_expiration_seconds)
