"""Event service — the venue's calendar of events.

Responsibilities:
- Slug normalisation and uniqueness
- Derived lifecycle status (upcoming / active / ongoing / finished / archived)
- Public listing of events currently open for accreditation requests
- Soft delete (archive)
"""
import logging
import re
from datetime import datetime, timedelta
from typing import Any, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app.models.event import Event
from app.schemas.event import EventCreate, EventOut, EventUpdate
from app.timeutils import ensure_utc, utcnow

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")
_SLUG_INVALID = re.compile(r"[^a-z0-9-]")


def normalize_slug(value: str) -> str:
    """'Cannes Lions 2025!' -> 'cannes-lions-2025'."""
    return _SLUG_INVALID.sub("", _WHITESPACE.sub("-", value.strip().lower()))


def event_status(event: Event, now: Optional[datetime] = None) -> str:
    if event.is_archived:
        return "archived"
    now = ensure_utc(now or utcnow())
    start = ensure_utc(event.start_date)
    end = ensure_utc(event.end_date)
    if now > end:
        return "finished"
    if start <= now <= end:
        return "ongoing"
    if now >= start - timedelta(days=event.activation_days):
        return "active"
    return "upcoming"


def to_out(event: Event) -> EventOut:
    return EventOut.model_validate(event).model_copy(update={"status": event_status(event)})


def _check_dates(start: datetime, end: datetime) -> None:
    if ensure_utc(end) < ensure_utc(start):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="end_date must not be before start_date",
        )


def _check_slug_free(db: Session, slug: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(Event).filter(Event.slug == slug)
    if exclude_id is not None:
        query = query.filter(Event.id != exclude_id)
    if query.first():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"An event with slug '{slug}' already exists",
        )


def list_events(db: Session, active_only: bool = False) -> list[Event]:
    """Non-archived events by start date.

    With ``active_only`` only events whose accreditation window is open are
    returned: from ``activation_days`` before the start until the end.
    """
    events = (
        db.query(Event)
        .filter(Event.is_archived.is_(False))
        .order_by(Event.start_date.asc())
        .all()
    )
    if active_only:
        events = [e for e in events if event_status(e) in ("active", "ongoing")]
    return events


def get_event(db: Session, event_id: int) -> Event:
    event = db.query(Event).filter(Event.id == event_id).first()
    if not event:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Event not found")
    return event


def create_event(db: Session, payload: EventCreate) -> Event:
    slug = normalize_slug(payload.slug)
    if not slug or not payload.name.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="name and slug are required")
    _check_dates(payload.start_date, payload.end_date)
    _check_slug_free(db, slug)

    event = Event(**{**payload.model_dump(), "slug": slug})
    db.add(event)
    db.commit()
    db.refresh(event)
    logger.info("Created event %d '%s' (%s)", event.id, event.name, event.slug)
    return event


def update_event(db: Session, event_id: int, payload: EventUpdate) -> Event:
    event = get_event(db, event_id)
    updates: dict[str, Any] = payload.model_dump(exclude_unset=True)

    if updates.get("slug") is not None:
        updates["slug"] = normalize_slug(updates["slug"])
        if not updates["slug"]:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="slug cannot be empty")
        _check_slug_free(db, updates["slug"], exclude_id=event.id)
    for field in ("name", "start_date", "end_date", "color", "activation_days", "is_archived"):
        if field in updates and updates[field] is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{field} cannot be null")

    _check_dates(updates.get("start_date", event.start_date), updates.get("end_date", event.end_date))

    for field, value in updates.items():
        setattr(event, field, value)
    event.updated_at = utcnow()
    db.commit()
    db.refresh(event)
    logger.info("Updated event %d fields %s", event.id, sorted(updates))
    return event


def archive_event(db: Session, event_id: int) -> Event:
    event = get_event(db, event_id)
    event.is_archived = True
    event.updated_at = utcnow()
    db.commit()
    db.refresh(event)
    logger.info("Archived event %d (%s)", event.id, event.slug)
    return event
