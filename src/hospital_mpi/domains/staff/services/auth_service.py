"""
Staff authentication service - registration and login
"""

from typing import Optional
import asyncio
import logging
import uuid

import bcrypt

from ..models.staff import StaffMember
from ..repositories.staff_repository import StaffStore
from ....core.auth import create_access_token
from ....core.config import get_security_config, SecurityConfig
from ....core.errors import InvalidCredentialsError, StaffValidationError

logger = logging.getLogger(__name__)

# bcrypt only reads the first 72 bytes of a password
BCRYPT_MAX_BYTES = 72


class StaffAuthService:
    """
    Registers staff accounts and exchanges credentials for access tokens.

    Passwords are hashed with bcrypt on the default executor. Tokens
    carry the staff member's hospital, which scopes every patient
    request made with them.
    """

    def __init__(self, store: StaffStore, config: Optional[SecurityConfig] = None):
        self.store = store
        self.config = config or get_security_config()

    async def register(
        self,
        username: str,
        password: str,
        hospital_id: str,
        display_name: str = ""
    ) -> StaffMember:
        """
        Create a staff account in a hospital

        Raises:
            StaffValidationError: Password shorter than the configured minimum
                or longer than bcrypt accepts
            DuplicateStaffError: Username already taken in the hospital
        """
        if len(password) < self.config.password_min_length:
            raise StaffValidationError(
                f"password must be at least {self.config.password_min_length} characters"
            )
        if len(password.encode("utf-8")) > BCRYPT_MAX_BYTES:
            raise StaffValidationError(f"password must be at most {BCRYPT_MAX_BYTES} bytes")

        password_hash = await self._run(self._hash, password)
        staff = StaffMember(
            staff_id=str(uuid.uuid4()),
            username=username,
            password_hash=password_hash,
            hospital_id=hospital_id,
            display_name=display_name,
        )
        return await self.store.create(staff)

    async def authenticate(self, username: str, password: str, hospital_id: str) -> str:
        """
        Verify credentials and issue a signed access token

        Raises:
            InvalidCredentialsError: Unknown username in the hospital or wrong password
        """
        staff = await self.store.get_by_username(hospital_id, username)
        if staff is None:
            logger.info(f"Login for unknown staff {username} in hospital {hospital_id}")
            raise InvalidCredentialsError("invalid credentials")

        if not await self._run(self._verify, password, staff.password_hash):
            logger.info(f"Wrong password for staff {staff.staff_id}")
            raise InvalidCredentialsError("invalid credentials")

        return create_access_token(
            staff.staff_id,
            staff.hospital_id,
            username=staff.username,
            role=staff.role,
            config=self.config
        )

    def _hash(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self.config.bcrypt_rounds)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("ascii")

    @staticmethod
    def _verify(password: str, password_hash: str) -> bool:
        encoded = password.encode("utf-8")
        if len(encoded) > BCRYPT_MAX_BYTES:
            return False
        return bcrypt.checkpw(encoded, password_hash.encode("ascii"))

    @staticmethod
    async def _run(func, *args):
        return await asyncio.get_running_loop().run_in_executor(None, func, *args)
