"""Pydantic schemas for Accreditations and Vehicles."""
from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def normalize_unloading(value: Any) -> list[str]:
    """Coerce a stored unloading value into a list of sides.

    Rows written by older releases hold a bare string (``"rear"``) instead of a
    JSON array, so every read goes through here exactly once.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return []
        if text.startswith("["):
            try:
                parsed = json.loads(text)
            except ValueError:
                return [value]
            if isinstance(parsed, list):
                return [str(v) for v in parsed]
            return [str(parsed)]
        return [value]
    return [str(value)]


def serialize_unloading(value: Any) -> str:
    """Storage form of a vehicle's unloading sides (JSON-encoded list)."""
    return json.dumps(normalize_unloading(value))


class VehicleCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    plate: str = Field(min_length=1)
    size: str = Field(min_length=1)
    phone_code: str = Field(min_length=1, alias="phoneCode")
    phone_number: str = Field(min_length=1, alias="phoneNumber")
    date: str = Field(min_length=1)
    time: str = ""
    city: str = Field(min_length=1)
    unloading: list[str] = Field(min_length=1)
    kms: str = ""
    vehicle_type: Optional[str] = Field(None, alias="vehicleType")
    trailer_plate: Optional[str] = Field(None, alias="trailerPlate")
    empty_weight: Optional[float] = Field(None, alias="emptyWeight")
    max_weight: Optional[float] = Field(None, alias="maxWeight")
    current_weight: Optional[float] = Field(None, alias="currentWeight")

    @field_validator("unloading", mode="before")
    @classmethod
    def _coerce_unloading(cls, v):
        return normalize_unloading(v)


class VehicleUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    plate: Optional[str] = None
    size: Optional[str] = None
    phone_code: Optional[str] = Field(None, alias="phoneCode")
    phone_number: Optional[str] = Field(None, alias="phoneNumber")
    date: Optional[str] = None
    time: Optional[str] = None
    city: Optional[str] = None
    unloading: Optional[list[str]] = None
    kms: Optional[str] = None
    vehicle_type: Optional[str] = Field(None, alias="vehicleType")
    trailer_plate: Optional[str] = Field(None, alias="trailerPlate")
    empty_weight: Optional[float] = Field(None, alias="emptyWeight")
    max_weight: Optional[float] = Field(None, alias="maxWeight")
    current_weight: Optional[float] = Field(None, alias="currentWeight")
    version: Optional[int] = None  # parent accreditation version


class VehicleOut(BaseModel):
    id: int
    accreditation_id: str
    plate: str
    size: str
    phone_code: str
    phone_number: str
    date: str
    time: str
    city: str
    unloading: list[str] = []
    kms: str
    vehicle_type: Optional[str] = None
    trailer_plate: Optional[str] = None
    empty_weight: Optional[float] = None
    max_weight: Optional[float] = None
    current_weight: Optional[float] = None

    model_config = {"from_attributes": True}

    @field_validator("unloading", mode="before")
    @classmethod
    def _normalize_unloading(cls, v):
        return normalize_unloading(v)


class AccreditationCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    company: str = Field(min_length=1)
    stand: str = Field(min_length=1)
    unloading: str = Field(min_length=1)
    event: str = Field(min_length=1)
    message: str = ""
    consent: bool = True
    status: Optional[str] = None
    current_zone: Optional[str] = Field(None, alias="currentZone")
    email: Optional[str] = None
    vehicles: list[VehicleCreate] = Field(min_length=1)


class AccreditationUpdate(BaseModel):
    company: Optional[str] = None
    stand: Optional[str] = None
    unloading: Optional[str] = None
    event: Optional[str] = None
    message: Optional[str] = None
    email: Optional[str] = None
    version: Optional[int] = None


class AccreditationOut(BaseModel):
    id: str
    created_at: datetime
    updated_at: datetime
    version: int
    company: str
    stand: str
    unloading: str
    event: str
    message: str
    consent: bool
    status: str
    current_zone: Optional[str] = None
    entry_at: Optional[datetime] = None
    exit_at: Optional[datetime] = None
    is_archived: bool
    email: Optional[str] = None
    sent_at: Optional[datetime] = None
    vehicles: list[VehicleOut] = []

    model_config = {"from_attributes": True}


# --- transition payloads ---

class StatusChangeRequest(BaseModel):
    status: str
    version: Optional[int] = None


class ZoneMovementRequest(BaseModel):
    action: str  # ENTRY or EXIT
    zone: str
    version: Optional[int] = None


class TransferRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    target_zone: str = Field(alias="targetZone")
    reason: Optional[str] = None
    version: Optional[int] = None


class ReturnRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    zone: str = Field(min_length=1)
    vehicle_id: Optional[int] = Field(None, alias="vehicleId")
    version: Optional[int] = None


class ArchiveRequest(BaseModel):
    archive: bool
    version: Optional[int] = None


class ArchiveResult(BaseModel):
    success: bool = True
    is_archived: bool
    version: int


class BulkRequest(BaseModel):
    ids: list[str] = Field(min_length=1)
    action: str


class BulkItemResult(BaseModel):
    id: str
    success: bool
    error: Optional[str] = None


class BulkResult(BaseModel):
    success: bool = True
    total: int
    succeeded: int
    failed: int
    results: list[BulkItemResult]


class SendRequest(BaseModel):
    email: Optional[str] = None


# --- duplicate detection ---

class DuplicateCheckRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    company: Optional[str] = None
    plate: Optional[str] = None
    trailer_plate: Optional[str] = Field(None, alias="trailerPlate")


class DuplicateVehicle(BaseModel):
    plate: str
    size: str
    trailer_plate: Optional[str] = None
    city: str

    model_config = {"from_attributes": True}


class DuplicateCandidate(BaseModel):
    id: str
    company: str
    stand: str
    event: str
    status: str
    created_at: datetime
    current_zone: Optional[str] = None
    vehicles: list[DuplicateVehicle]

    model_config = {"from_attributes": True}


class DuplicateCheckResult(BaseModel):
    duplicates: list[DuplicateCandidate]
