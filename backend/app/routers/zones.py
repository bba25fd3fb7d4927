"""Zone configuration API routes."""
import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import Feature, User
from app.schemas.zone import ZoneConfigCreate, ZoneConfigOut, ZoneConfigUpdate
from app.security import get_current_user, require_permission
from app.services import zone_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=list[ZoneConfigOut])
def list_zones(
    include_inactive: bool = Query(False),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Active zones by label; any signed-in agent needs them to move vehicles."""
    return zone_service.list_zones(db, include_inactive=include_inactive)


@router.post("", response_model=ZoneConfigOut, status_code=status.HTTP_201_CREATED)
def create_zone(
    payload: ZoneConfigCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission(Feature.GESTION_ZONES, "write")),
):
    return zone_service.create_zone(db, payload.model_dump())


@router.get("/{zone_id}", response_model=ZoneConfigOut)
def get_zone(
    zone_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission(Feature.GESTION_ZONES, "read")),
):
    return zone_service.get_zone(db, zone_id)


@router.patch("/{zone_id}", response_model=ZoneConfigOut)
def update_zone(
    zone_id: int,
    payload: ZoneConfigUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission(Feature.GESTION_ZONES, "write")),
):
    return zone_service.update_zone(db, zone_id, payload.model_dump(exclude_unset=True))


@router.delete("/{zone_id}", response_model=ZoneConfigOut)
def delete_zone(
    zone_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission(Feature.GESTION_ZONES, "write")),
):
    """Deactivate the zone; it stays referenced by past movements."""
    return zone_service.deactivate_zone(db, zone_id)
