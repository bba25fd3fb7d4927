"""Accreditation API routes — delegates to the service layer for every rule.

Static paths (``/bulk``, ``/changes``, ``/check-duplicate``) are declared
before ``/{accreditation_id}`` so they are not captured as ids.
"""
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import Feature, User
from app.schemas.accreditation import (
    AccreditationCreate,
    AccreditationOut,
    AccreditationUpdate,
    ArchiveRequest,
    ArchiveResult,
    BulkRequest,
    BulkResult,
    DuplicateCheckRequest,
    DuplicateCheckResult,
    ReturnRequest,
    SendRequest,
    StatusChangeRequest,
    TransferRequest,
    VehicleCreate,
    VehicleOut,
    ZoneMovementRequest,
)
from app.schemas.history import ChangesOut, ChatMessageCreate, ChatMessageOut, ChatPage, HistoryEntryOut
from app.schemas.zone import DailyTimeSlots, ReturnResult, ZoneMovementOut
from app.security import actor_for, get_current_user, get_optional_user, has_permission, require_permission
from app.services import (
    accreditation_service,
    bulk_service,
    chat_service,
    history_service,
    vehicle_service,
    zone_service,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=list[AccreditationOut])
def list_accreditations(
    archived: bool = Query(False),
    db: Session = Depends(get_db),
    user: User = Depends(require_permission(Feature.LISTE, "read")),
):
    """List accreditations, newest first."""
    return accreditation_service.list_accreditations(db, archived=archived)


@router.post("", response_model=AccreditationOut, status_code=status.HTTP_201_CREATED)
def create_accreditation(
    payload: AccreditationCreate,
    request: Request,
    db: Session = Depends(get_db),
    user: Optional[User] = Depends(get_optional_user),
):
    """Public submission; the session user is recorded when there is one."""
    return accreditation_service.create_accreditation(db, payload, actor_for(request, user))


@router.post("/bulk", response_model=BulkResult)
def bulk_action(
    payload: BulkRequest,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission(Feature.LISTE, "write")),
):
    bulk_service.validate_action(payload.action)
    if bulk_service.is_archive_action(payload.action) and not has_permission(db, user, Feature.ARCHIVES, "write"):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="ARCHIVES write permission required")
    return bulk_service.run_bulk(db, payload.ids, payload.action, actor_for(request, user))


@router.get("/changes", response_model=ChangesOut)
def poll_changes(
    response: Response,
    since: Optional[datetime] = Query(None),
    zone: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Change events recorded after ``since`` (default: the last 30 seconds)."""
    response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate"
    return history_service.changes_since(db, since=since, zone=zone)


@router.post("/check-duplicate", response_model=DuplicateCheckResult)
def check_duplicate(payload: DuplicateCheckRequest, db: Session = Depends(get_db)):
    matches = accreditation_service.find_duplicates(db, payload.company, payload.plate, payload.trailer_plate)
    return {"duplicates": matches}


@router.get("/{accreditation_id}", response_model=AccreditationOut)
def get_accreditation(
    accreditation_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission(Feature.LISTE, "read")),
):
    return accreditation_service.get_accreditation(db, accreditation_id)


@router.patch("/{accreditation_id}", response_model=AccreditationOut)
def update_accreditation(
    accreditation_id: str,
    payload: AccreditationUpdate,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission(Feature.LISTE, "write")),
):
    return accreditation_service.update_info(db, accreditation_id, payload, actor_for(request, user))


@router.post("/{accreditation_id}/status", response_model=AccreditationOut)
def change_status(
    accreditation_id: str,
    payload: StatusChangeRequest,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission(Feature.LISTE, "write")),
):
    return accreditation_service.change_status(
        db, accreditation_id, payload.status, actor_for(request, user), version=payload.version
    )


@router.get("/{accreditation_id}/zones", response_model=list[ZoneMovementOut])
def list_movements(
    accreditation_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission(Feature.GESTION_ZONES, "read")),
):
    """Movement log ordered by timestamp."""
    return zone_service.list_movements(db, accreditation_id)


@router.post("/{accreditation_id}/zones", response_model=ZoneMovementOut, status_code=status.HTTP_201_CREATED)
def record_movement(
    accreditation_id: str,
    payload: ZoneMovementRequest,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission(Feature.GESTION_ZONES, "write")),
):
    return zone_service.record_movement(
        db, accreditation_id, payload.action, payload.zone, actor_for(request, user), version=payload.version
    )


@router.post("/{accreditation_id}/transfer", response_model=AccreditationOut)
def transfer(
    accreditation_id: str,
    payload: TransferRequest,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission(Feature.GESTION_ZONES, "write")),
):
    return zone_service.transfer(
        db,
        accreditation_id,
        payload.target_zone,
        actor_for(request, user),
        reason=payload.reason,
        version=payload.version,
    )


@router.post("/{accreditation_id}/return", response_model=ReturnResult)
def return_to_venue(
    accreditation_id: str,
    payload: ReturnRequest,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission(Feature.LISTE, "write")),
):
    return zone_service.return_to_venue(
        db,
        accreditation_id,
        payload.zone,
        actor_for(request, user),
        vehicle_id=payload.vehicle_id,
        version=payload.version,
    )


@router.post("/{accreditation_id}/archive", response_model=ArchiveResult)
def archive(
    accreditation_id: str,
    payload: ArchiveRequest,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission(Feature.ARCHIVES, "write")),
):
    acc = accreditation_service.set_archived(
        db, accreditation_id, payload.archive, actor_for(request, user), version=payload.version
    )
    return {"success": True, "is_archived": acc.is_archived, "version": acc.version}


@router.get("/{accreditation_id}/zone-time", response_model=dict[str, int])
def zone_time(
    accreditation_id: str,
    zone: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(require_permission(Feature.LISTE, "read")),
):
    """Cumulative milliseconds spent in each zone."""
    return zone_service.zone_time(db, accreditation_id, zone=zone)


@router.get("/{accreditation_id}/history", response_model=list[HistoryEntryOut])
def history(
    accreditation_id: str,
    limit: Optional[int] = Query(None, ge=1, le=1000),
    db: Session = Depends(get_db),
    user: User = Depends(require_permission(Feature.LISTE, "read")),
):
    accreditation_service.get_accreditation(db, accreditation_id)
    return history_service.list_history(db, accreditation_id, limit=limit)


@router.get("/{accreditation_id}/timeslots", response_model=DailyTimeSlots)
def timeslots(
    accreditation_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission(Feature.LISTE, "read")),
):
    accreditation_service.get_accreditation(db, accreditation_id)
    return zone_service.daily_timeslots(db, accreditation_id)


@router.get("/{accreditation_id}/chat", response_model=ChatPage)
def list_chat(
    accreditation_id: str,
    limit: int = Query(50, ge=1, le=200),
    cursor: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(require_permission(Feature.LISTE, "read")),
):
    return chat_service.list_messages(db, accreditation_id, limit=limit, cursor=cursor)


@router.post("/{accreditation_id}/chat", response_model=ChatMessageOut, status_code=status.HTTP_201_CREATED)
def post_chat(
    accreditation_id: str,
    payload: ChatMessageCreate,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission(Feature.LISTE, "read")),
):
    return chat_service.post_message(db, accreditation_id, user, payload.message, actor_for(request, user))


@router.post("/{accreditation_id}/send", response_model=AccreditationOut)
def send(
    accreditation_id: str,
    payload: SendRequest,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission(Feature.LISTE, "write")),
):
    """E-mail the accreditation to the given (or stored) address."""
    return accreditation_service.send_by_email(db, accreditation_id, payload.email, actor_for(request, user))


@router.post("/{accreditation_id}/vehicles", response_model=VehicleOut, status_code=status.HTTP_201_CREATED)
def add_vehicle(
    accreditation_id: str,
    payload: VehicleCreate,
    request: Request,
    version: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(require_permission(Feature.LISTE, "write")),
):
    return vehicle_service.add_vehicle(db, accreditation_id, payload, actor_for(request, user), version=version)
