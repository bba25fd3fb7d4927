"""AccreditationHistory ORM models — the audit ledger and its cold archive."""
import enum

from sqlalchemy import Column, DateTime, Enum as SAEnum, ForeignKey, Integer, String, Text

from app.database import Base
from app.timeutils import utcnow


class HistoryAction(str, enum.Enum):
    CREATED = "CREATED"
    STATUS_CHANGED = "STATUS_CHANGED"
    ZONE_CHANGED = "ZONE_CHANGED"
    ZONE_TRANSFER = "ZONE_TRANSFER"
    VEHICLE_ADDED = "VEHICLE_ADDED"
    VEHICLE_REMOVED = "VEHICLE_REMOVED"
    VEHICLE_UPDATED = "VEHICLE_UPDATED"
    VEHICLE_RETURN = "VEHICLE_RETURN"
    INFO_UPDATED = "INFO_UPDATED"
    ARCHIVED = "ARCHIVED"
    EMAIL_SENT = "EMAIL_SENT"
    CHAT_MESSAGE = "CHAT_MESSAGE"
    DELETED = "DELETED"


class AccreditationHistory(Base):
    __tablename__ = "accreditation_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    accreditation_id = Column(String(36), ForeignKey("accreditations.id"), nullable=False, index=True)
    action = Column(SAEnum(HistoryAction), nullable=False)
    field = Column(String(50), nullable=True)
    old_value = Column(Text, nullable=True)
    new_value = Column(Text, nullable=True)
    description = Column(Text, nullable=False)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    user_agent = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)


class AccreditationHistoryArchive(Base):
    """Compressed copy of history rows past the retention window.

    ``id`` and ``created_at`` are those of the original row; ``summary`` holds a
    compact JSON object keyed f/o/n/d/u/ua.
    """

    __tablename__ = "accreditation_history_archive"

    id = Column(Integer, primary_key=True, autoincrement=False)
    accreditation_id = Column(String(36), nullable=False, index=True)
    action = Column(SAEnum(HistoryAction), nullable=False)
    summary = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
