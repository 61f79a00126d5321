"""
Bearer token authentication for staff requests

Tokens are HMAC-signed JWTs carrying the staff member's id (sub) and
the hospital they act for (hospital_id). The hospital id scopes every
patient read and write made with the token.

Usage:
    from hospital_mpi.core.auth import get_current_staff, StaffContext

    @router.get("/endpoint")
    async def endpoint(staff: StaffContext = Depends(get_current_staff)):
        ...
"""

import time
import logging
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from .config import get_security_config, SecurityConfig

logger = logging.getLogger(__name__)

_bearer = HTTPBearer(auto_error=False)


class StaffContext(BaseModel):
    """Authenticated caller as seen by the patient endpoints"""
    hospital_id: str
    staff_id: Optional[str] = None
    username: Optional[str] = None
    role: Optional[str] = None


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def create_access_token(
    staff_id: str,
    hospital_id: str,
    username: Optional[str] = None,
    role: str = "staff",
    config: Optional[SecurityConfig] = None
) -> str:
    """Issue a signed token with the claims get_current_staff expects"""
    config = config or get_security_config()
    now = int(time.time())
    claims = {
        "sub": staff_id,
        "hospital_id": hospital_id,
        "role": role,
        "iat": now,
        "exp": now + config.jwt_expiration_seconds,
    }
    if username:
        claims["username"] = username
    return jwt.encode(claims, config.jwt_secret_key, algorithm=config.jwt_algorithm)


def decode_access_token(token: str, config: Optional[SecurityConfig] = None) -> StaffContext:
    """
    Verify a token and extract the staff context

    Raises:
        HTTPException: 401 for invalid tokens or tokens without a hospital
    """
    config = config or get_security_config()

    try:
        claims = jwt.decode(token, config.jwt_secret_key, algorithms=[config.jwt_algorithm])
    except jwt.PyJWTError as e:
        logger.info(f"Rejected bearer token: {e}")
        raise _unauthorized("invalid token") from e

    hospital_id = claims.get("hospital_id")
    if not isinstance(hospital_id, str) or not hospital_id:
        raise _unauthorized("missing hospital in token")

    def _text(name: str) -> Optional[str]:
        value = claims.get(name)
        return value if isinstance(value, str) else None

    return StaffContext(
        hospital_id=hospital_id,
        staff_id=_text("sub"),
        username=_text("username"),
        role=_text("role"),
    )


async def get_current_staff(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> StaffContext:
    """FastAPI dependency resolving the bearer token to a StaffContext"""
    config = get_security_config()
    if not config.jwt_secret_key:
        logger.error("JWT_SECRET is not configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="server misconfigured"
        )

    if credentials is None:
        raise _unauthorized("missing authorization header")

    return decode_access_token(credentials.credentials, config)
