"""
Patient domain models
"""

import base64
from typing import Optional, List, Dict, Any, Union
from datetime import date, datetime
from dataclasses import dataclass, field, fields, replace
from pydantic import BaseModel, Field


IDENTIFIER_FIELDS = ("national_id", "passport_id")

# Fields that are never overwritten once a row exists
IMMUTABLE_FIELDS = ("internal_id", "created_at")


def parse_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    """Normalize a date of birth to a calendar date"""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def parse_datetime(value: Union[str, datetime, None]) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


@dataclass
class PatientRecord:
    """Internal patient entity shared by the store, resolver and search"""
    internal_id: str = ""
    patient_hn: str = ""
    national_id: str = ""
    passport_id: str = ""
    first_name_th: str = ""
    middle_name_th: str = ""
    last_name_th: str = ""
    first_name_en: str = ""
    middle_name_en: str = ""
    last_name_en: str = ""
    date_of_birth: Optional[date] = None
    phone_number: str = ""
    email: str = ""
    gender: str = ""
    raw_payload: Optional[bytes] = None
    hospital_id: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def has_identifier(self) -> bool:
        return bool(self.national_id or self.passport_id)

    def copy(self, **changes) -> "PatientRecord":
        return replace(self, **changes)

    def to_document(self) -> Dict[str, Any]:
        """Convert to a MongoDB document"""
        doc = {f.name: getattr(self, f.name) for f in fields(self)}
        doc["date_of_birth"] = self.date_of_birth.isoformat() if self.date_of_birth else None
        return doc

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "PatientRecord":
        """Convert a MongoDB document to an entity"""
        known = {f.name for f in fields(cls)}
        values = {key: value for key, value in doc.items() if key in known}
        values["date_of_birth"] = parse_date(values.get("date_of_birth"))
        raw = values.get("raw_payload")
        values["raw_payload"] = bytes(raw) if raw is not None else None
        # Stored text fields may be null in older documents
        for name in known - {"date_of_birth", "raw_payload", "created_at", "updated_at"}:
            if values.get(name) is None:
                values[name] = ""
        return cls(**values)

    def to_json_dict(self) -> Dict[str, Any]:
        """JSON-safe representation used for API responses and the Redis cache"""
        data = self.to_document()
        data["raw_payload"] = base64.b64encode(self.raw_payload).decode("ascii") if self.raw_payload else None
        data["created_at"] = self.created_at.isoformat() if self.created_at else None
        data["updated_at"] = self.updated_at.isoformat() if self.updated_at else None
        return data

    @classmethod
    def from_json_dict(cls, data: Dict[str, Any]) -> "PatientRecord":
        values = dict(data)
        raw = values.get("raw_payload")
        values["raw_payload"] = base64.b64decode(raw) if raw else None
        values["created_at"] = parse_datetime(values.get("created_at"))
        values["updated_at"] = parse_datetime(values.get("updated_at"))
        return cls.from_document(values)


@dataclass
class PatientFilter:
    """
    Sparse set of search criteria.

    national_id, passport_id, patient_hn and date_of_birth match exactly;
    the remaining fields are case-insensitive substring matches, and the
    name fields match either the Thai or the English script variant.
    """
    national_id: str = ""
    passport_id: str = ""
    patient_hn: str = ""
    date_of_birth: str = ""
    first_name: str = ""
    middle_name: str = ""
    last_name: str = ""
    phone_number: str = ""
    email: str = ""

    EXACT_FIELDS = ("national_id", "passport_id", "patient_hn", "date_of_birth")
    NAME_FIELDS = ("first_name", "middle_name", "last_name")
    CONTAINS_FIELDS = ("phone_number", "email")

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, (date, datetime)):
                value = parse_date(value).isoformat()
            setattr(self, f.name, (value or "").strip())

    def is_empty(self) -> bool:
        return not self.to_dict()

    def to_dict(self) -> Dict[str, str]:
        """Non-empty criteria only"""
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name)}


@dataclass
class SearchResult:
    """One page of matches plus the unpaged total"""
    results: List[PatientRecord] = field(default_factory=list)
    total: int = 0


class PatientSearchRequest(BaseModel):
    """Search request body shared by the legacy and scoped endpoints"""
    national_id: Optional[str] = None
    passport_id: Optional[str] = None
    patient_hn: Optional[str] = None
    first_name: Optional[str] = Field(None, description="Matches Thai or English first name")
    first_name_en: Optional[str] = Field(None, description="Used when first_name is not given")
    middle_name: Optional[str] = None
    last_name: Optional[str] = Field(None, description="Matches Thai or English last name")
    last_name_en: Optional[str] = Field(None, description="Used when last_name is not given")
    date_of_birth: Optional[str] = Field(None, description="yyyy-mm-dd")
    phone_number: Optional[str] = None
    email: Optional[str] = None
    limit: Optional[int] = None
    offset: Optional[int] = None

    def to_filter(self) -> PatientFilter:
        return PatientFilter(
            national_id=self.national_id or "",
            passport_id=self.passport_id or "",
            patient_hn=self.patient_hn or "",
            date_of_birth=self.date_of_birth or "",
            first_name=self.first_name or self.first_name_en or "",
            middle_name=self.middle_name or "",
            last_name=self.last_name or self.last_name_en or "",
            phone_number=self.phone_number or "",
            email=self.email or "",
        )


class PatientCreateRequest(BaseModel):
    """Create or upsert a patient in the caller's hospital"""
    patient_hn: str = ""
    national_id: str = ""
    passport_id: str = ""
    first_name_th: str = ""
    middle_name_th: str = ""
    last_name_th: str = ""
    first_name_en: str = ""
    middle_name_en: str = ""
    last_name_en: str = ""
    date_of_birth: Optional[date] = Field(None, description="yyyy-mm-dd")
    phone_number: str = ""
    email: str = ""
    gender: str = Field("", description="Gender code, e.g. M or F")


class PatientResponse(BaseModel):
    """Patient response model"""
    internal_id: str
    patient_hn: str = ""
    national_id: str = ""
    passport_id: str = ""
    first_name_th: str = ""
    middle_name_th: str = ""
    last_name_th: str = ""
    first_name_en: str = ""
    middle_name_en: str = ""
    last_name_en: str = ""
    date_of_birth: Optional[date] = None
    phone_number: str = ""
    email: str = ""
    gender: str = ""
    raw_payload: Optional[str] = Field(None, description="Base64 of the hospital response body")
    hospital_id: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: PatientRecord) -> "PatientResponse":
        data = record.to_json_dict()
        data["date_of_birth"] = record.date_of_birth
        data["created_at"] = record.created_at
        data["updated_at"] = record.updated_at
        return cls(**data)


class PatientSearchResponse(BaseModel):
    """Paged search response"""
    count: int
    limit: int
    offset: int
    results: List[PatientResponse]
