"""Pydantic schemas for Events."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class EventCreate(BaseModel):
    name: str
    slug: str
    start_date: datetime
    end_date: datetime
    logo: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    color: str = "#3DAAA4"
    setup_start_date: Optional[datetime] = None
    setup_end_date: Optional[datetime] = None
    teardown_start_date: Optional[datetime] = None
    teardown_end_date: Optional[datetime] = None
    access_start_time: Optional[str] = None
    access_end_time: Optional[str] = None
    notes: Optional[str] = None
    activation_days: int = 7


class EventUpdate(BaseModel):
    name: Optional[str] = None
    slug: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    logo: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    color: Optional[str] = None
    setup_start_date: Optional[datetime] = None
    setup_end_date: Optional[datetime] = None
    teardown_start_date: Optional[datetime] = None
    teardown_end_date: Optional[datetime] = None
    access_start_time: Optional[str] = None
    access_end_time: Optional[str] = None
    notes: Optional[str] = None
    activation_days: Optional[int] = None
    is_archived: Optional[bool] = None


class EventOut(BaseModel):
    id: int
    name: str
    slug: str
    logo: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    color: str
    start_date: datetime
    end_date: datetime
    setup_start_date: Optional[datetime] = None
    setup_end_date: Optional[datetime] = None
    teardown_start_date: Optional[datetime] = None
    teardown_end_date: Optional[datetime] = None
    access_start_time: Optional[str] = None
    access_end_time: Optional[str] = None
    notes: Optional[str] = None
    activation_days: int
    is_archived: bool
    status: str = "upcoming"  # derived, see event_service.event_status

    model_config = {"from_attributes": True}
