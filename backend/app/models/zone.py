"""Zone reference data, movement log and vehicle time slots."""
import enum

from sqlalchemy import Boolean, Column, Date, DateTime, Enum as SAEnum, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from app.database import Base
from app.timeutils import utcnow


class ZoneAction(str, enum.Enum):
    ENTRY = "ENTRY"
    EXIT = "EXIT"
    TRANSFER = "TRANSFER"


class ZoneConfig(Base):
    __tablename__ = "zone_configs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    zone = Column(String(50), nullable=False, unique=True)
    label = Column(String(150), nullable=False)
    address = Column(String(500), nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    is_final_destination = Column(Boolean, nullable=False, default=False)
    color = Column(String(20), nullable=False, default="#3DAAA4")
    is_active = Column(Boolean, nullable=False, default=True)


class ZoneMovement(Base):
    """Append-only: rows are never updated or deleted."""

    __tablename__ = "zone_movements"

    id = Column(Integer, primary_key=True, autoincrement=True)
    accreditation_id = Column(String(36), ForeignKey("accreditations.id"), nullable=False, index=True)
    from_zone = Column(String(50), nullable=True)
    to_zone = Column(String(50), nullable=False)
    action = Column(SAEnum(ZoneAction), nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=True)


class VehicleTimeSlot(Base):
    __tablename__ = "vehicle_time_slots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    accreditation_id = Column(String(36), ForeignKey("accreditations.id"), nullable=False, index=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    step_number = Column(Integer, nullable=False)
    zone = Column(String(50), nullable=False)
    entry_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    exit_at = Column(DateTime(timezone=True), nullable=True)

    vehicle = relationship("Vehicle")
