"""
Staff domain models
"""

from typing import Optional, Dict, Any
from datetime import datetime
from dataclasses import dataclass, replace
from pydantic import BaseModel, Field


@dataclass
class StaffMember:
    """Hospital staff account; the password is only ever stored hashed"""
    staff_id: str
    username: str
    password_hash: str
    hospital_id: str
    display_name: str = ""
    role: str = "staff"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def copy(self, **changes) -> "StaffMember":
        return replace(self, **changes)

    def to_document(self) -> Dict[str, Any]:
        return {
            "staff_id": self.staff_id,
            "username": self.username,
            "password_hash": self.password_hash,
            "hospital_id": self.hospital_id,
            "display_name": self.display_name,
            "role": self.role,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "StaffMember":
        return cls(
            staff_id=doc["staff_id"],
            username=doc["username"],
            password_hash=doc["password_hash"],
            hospital_id=doc["hospital_id"],
            display_name=doc.get("display_name") or "",
            role=doc.get("role") or "staff",
            created_at=doc.get("created_at"),
            updated_at=doc.get("updated_at"),
        )


class StaffCreateRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    hospital_id: str = Field(..., min_length=1)
    display_name: str = ""


class StaffLoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    hospital_id: str = Field(..., min_length=1)


class StaffResponse(BaseModel):
    """Staff account as returned to clients, without the password hash"""
    id: str
    username: str
    display_name: str
    hospital_id: str
    role: str

    @classmethod
    def from_staff(cls, staff: StaffMember) -> "StaffResponse":
        return cls(
            id=staff.staff_id,
            username=staff.username,
            display_name=staff.display_name,
            hospital_id=staff.hospital_id,
            role=staff.role,
        )


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "Bearer"
    expires_in: int
