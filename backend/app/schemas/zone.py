"""Pydantic schemas for zones, movements and time slots."""
from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel


class ZoneConfigCreate(BaseModel):
    zone: str
    label: str
    address: str
    latitude: float
    longitude: float
    is_final_destination: bool = False
    color: str = "#3DAAA4"


class ZoneConfigUpdate(BaseModel):
    label: Optional[str] = None
    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    is_final_destination: Optional[bool] = None
    color: Optional[str] = None
    is_active: Optional[bool] = None


class ZoneConfigOut(BaseModel):
    id: int
    zone: str
    label: str
    address: str
    latitude: float
    longitude: float
    is_final_destination: bool
    color: str
    is_active: bool

    model_config = {"from_attributes": True}


class ZoneMovementOut(BaseModel):
    id: int
    accreditation_id: str
    from_zone: Optional[str] = None
    to_zone: str
    action: str
    timestamp: datetime
    user_id: Optional[str] = None

    model_config = {"from_attributes": True}


class TimeSlotOut(BaseModel):
    id: int
    accreditation_id: str
    vehicle_id: int
    date: date
    step_number: int
    zone: str
    entry_at: datetime
    exit_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ReturnResult(BaseModel):
    success: bool = True
    time_slot: TimeSlotOut
    step_number: int


class DaySlot(BaseModel):
    id: int
    step_number: int
    zone: str
    entry_at: datetime
    exit_at: Optional[datetime] = None
    duration: Optional[int] = None  # minutes
    vehicle_plate: str
    vehicle_size: str


class DayTransfer(BaseModel):
    from_zone: str
    to_zone: str
    departure_at: datetime
    arrival_at: datetime
    transit_minutes: int


class DayGroup(BaseModel):
    date: date
    slots: list[DaySlot] = []
    transfers: list[DayTransfer] = []
    total_minutes: int = 0


class DailyTimeSlots(BaseModel):
    days: list[DayGroup]
    grand_total_minutes: int
