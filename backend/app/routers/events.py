"""Event API routes — delegates to event_service for slug and status rules."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import Feature, User
from app.schemas.event import EventCreate, EventOut, EventUpdate
from app.security import get_optional_user, has_permission, require_permission
from app.services import event_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=list[EventOut])
def list_events(
    active: bool = Query(False),
    db: Session = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user),
):
    """List events by start date.

    ``?active=true`` is public: it feeds the submission form with the events
    currently open for requests. The full calendar needs GESTION_DATES read.
    """
    if not active:
        if user is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
        if not has_permission(db, user, Feature.GESTION_DATES, "read"):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied to feature GESTION_DATES")
    return [event_service.to_out(e) for e in event_service.list_events(db, active_only=active)]


@router.post("", response_model=EventOut, status_code=status.HTTP_201_CREATED)
def create_event(
    payload: EventCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission(Feature.GESTION_DATES, "write")),
):
    return event_service.to_out(event_service.create_event(db, payload))


@router.get("/{event_id}", response_model=EventOut)
def get_event(
    event_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission(Feature.GESTION_DATES, "read")),
):
    return event_service.to_out(event_service.get_event(db, event_id))


@router.patch("/{event_id}", response_model=EventOut)
def update_event(
    event_id: int,
    payload: EventUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission(Feature.GESTION_DATES, "write")),
):
    return event_service.to_out(event_service.update_event(db, event_id, payload))


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_event(
    event_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission(Feature.GESTION_DATES, "write")),
):
    """Archive the event; events are never hard-deleted."""
    event_service.archive_event(db, event_id)
