"""Pydantic schemas for Users, permissions and login."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class LoginRequest(BaseModel):
    email: str
    password: str


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"


class PermissionIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    feature: str
    can_read: bool = Field(False, alias="canRead")
    can_write: bool = Field(False, alias="canWrite")


class PermissionOut(BaseModel):
    feature: str
    can_read: bool
    can_write: bool

    model_config = {"from_attributes": True}


class PermissionsUpdate(BaseModel):
    permissions: list[PermissionIn]


class UserCreate(BaseModel):
    name: str
    email: str
    password: str = Field(min_length=8)
    role: str = "USER"


class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None
    is_active: Optional[bool] = None


class PasswordReset(BaseModel):
    password: str = Field(min_length=8)


class UserOut(BaseModel):
    id: str
    name: str
    email: str
    role: str
    is_active: bool
    created_at: Optional[datetime] = None
    permissions: list[PermissionOut] = []

    model_config = {"from_attributes": True}
