"""User and UserPermission ORM models — role + per-feature access control."""
import enum
import uuid

from sqlalchemy import Boolean, Column, DateTime, Enum as SAEnum, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base


class UserRole(str, enum.Enum):
    USER = "USER"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"


class Feature(str, enum.Enum):
    LISTE = "LISTE"
    CREER = "CREER"
    PLAQUE = "PLAQUE"
    QR_CODE = "QR_CODE"
    FLUX_VEHICULES = "FLUX_VEHICULES"
    BILAN_CARBONE = "BILAN_CARBONE"
    GESTION_ZONES = "GESTION_ZONES"
    GESTION_DATES = "GESTION_DATES"
    ARCHIVES = "ARCHIVES"


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False, default="")
    role = Column(SAEnum(UserRole), nullable=False, default=UserRole.USER)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    permissions = relationship("UserPermission", back_populates="user", cascade="all, delete-orphan")


class UserPermission(Base):
    __tablename__ = "user_permissions"
    __table_args__ = (UniqueConstraint("user_id", "feature", name="uq_user_feature"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    feature = Column(SAEnum(Feature), nullable=False)
    can_read = Column(Boolean, nullable=False, default=False)
    can_write = Column(Boolean, nullable=False, default=False)

    user = relationship("User", back_populates="permissions")
