"""Event ORM model — the venue's event calendar."""
from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from app.database import Base


class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, unique=True)
    logo = Column(String(500), nullable=True)
    description = Column(Text, nullable=True)
    location = Column(String(255), nullable=True)
    color = Column(String(20), nullable=False, default="#3DAAA4")
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)
    setup_start_date = Column(DateTime(timezone=True), nullable=True)
    setup_end_date = Column(DateTime(timezone=True), nullable=True)
    teardown_start_date = Column(DateTime(timezone=True), nullable=True)
    teardown_end_date = Column(DateTime(timezone=True), nullable=True)
    access_start_time = Column(String(5), nullable=True)  # HH:MM
    access_end_time = Column(String(5), nullable=True)
    notes = Column(Text, nullable=True)
    activation_days = Column(Integer, nullable=False, default=7)
    is_archived = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
