"""Accreditation and Vehicle ORM models."""
import enum
import uuid

from sqlalchemy import Boolean, Column, DateTime, Enum as SAEnum, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from app.database import Base
from app.timeutils import utcnow


class AccreditationStatus(str, enum.Enum):
    ATTENTE = "ATTENTE"
    ENTREE = "ENTREE"
    SORTIE = "SORTIE"
    NOUVEAU = "NOUVEAU"
    REFUS = "REFUS"
    ABSENT = "ABSENT"


class VehicleType(str, enum.Enum):
    PORTEUR = "PORTEUR"
    PORTEUR_ARTICULE = "PORTEUR_ARTICULE"
    SEMI_REMORQUE = "SEMI_REMORQUE"


class Accreditation(Base):
    __tablename__ = "accreditations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    version = Column(Integer, nullable=False, default=1)
    company = Column(String(255), nullable=False)
    stand = Column(String(255), nullable=False)
    unloading = Column(String(255), nullable=False, default="")
    event = Column(String(255), nullable=False)
    message = Column(Text, nullable=False, default="")
    consent = Column(Boolean, nullable=False, default=True)
    status = Column(SAEnum(AccreditationStatus), nullable=False, default=AccreditationStatus.ATTENTE)
    current_zone = Column(String(50), nullable=True)
    entry_at = Column(DateTime(timezone=True), nullable=True)
    exit_at = Column(DateTime(timezone=True), nullable=True)
    is_archived = Column(Boolean, nullable=False, default=False, index=True)
    email = Column(String(255), nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)

    vehicles = relationship(
        "Vehicle", back_populates="accreditation", cascade="all, delete-orphan", order_by="Vehicle.id"
    )


class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    accreditation_id = Column(String(36), ForeignKey("accreditations.id"), nullable=False, index=True)
    plate = Column(String(50), nullable=False)
    size = Column(String(50), nullable=False)
    phone_code = Column(String(10), nullable=False)
    phone_number = Column(String(30), nullable=False)
    date = Column(String(20), nullable=False)
    time = Column(String(20), nullable=False, default="")
    city = Column(String(255), nullable=False)
    unloading = Column(Text, nullable=False, default="[]")  # JSON-encoded list
    kms = Column(String(20), nullable=False, default="")
    vehicle_type = Column(SAEnum(VehicleType), nullable=True)
    trailer_plate = Column(String(50), nullable=True)
    empty_weight = Column(Float, nullable=True)
    max_weight = Column(Float, nullable=True)
    current_weight = Column(Float, nullable=True)

    accreditation = relationship("Accreditation", back_populates="vehicles")
