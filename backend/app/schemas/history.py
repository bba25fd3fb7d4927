"""Pydantic schemas for the audit history, change polling and chat."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class HistoryEntryOut(BaseModel):
    id: int
    action: str
    field: Optional[str] = None
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    description: str
    user_id: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    is_archived: bool = False


class ChangeData(BaseModel):
    action: str
    field: Optional[str] = None
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    description: str
    zone: Optional[str] = None
    company: str
    status: str


class ChangeEvent(BaseModel):
    type: str
    accreditation_id: str
    data: ChangeData
    timestamp: datetime


class ChangesOut(BaseModel):
    events: list[ChangeEvent]
    server_time: datetime


class ArchiveReport(BaseModel):
    success: bool = True
    cutoff_date: datetime
    months_kept: int
    total_archived: int
    total_deleted: int
    timestamp: datetime


class ChatMessageCreate(BaseModel):
    message: str = Field(min_length=1)


class ChatMessageOut(BaseModel):
    id: int
    user_id: str
    user_name: str
    message: str
    created_at: datetime

    model_config = {"from_attributes": True}


class ChatPage(BaseModel):
    messages: list[ChatMessageOut]
    has_more: bool
    next_cursor: Optional[int] = None
