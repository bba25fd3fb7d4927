"""Vehicle API routes — edits to a single vehicle of an accreditation."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import Feature, User
from app.schemas.accreditation import VehicleOut, VehicleUpdate
from app.security import actor_for, require_permission
from app.services import vehicle_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.patch("/{vehicle_id}", response_model=VehicleOut)
def update_vehicle(
    vehicle_id: int,
    payload: VehicleUpdate,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(require_permission(Feature.LISTE, "write")),
):
    """Partial update; the parent accreditation's version is bumped."""
    return vehicle_service.update_vehicle(db, vehicle_id, payload, actor_for(request, user))


@router.delete("/{vehicle_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_vehicle(
    vehicle_id: int,
    request: Request,
    version: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(require_permission(Feature.LISTE, "write")),
):
    """Remove a vehicle; the last one of an accreditation cannot be removed."""
    vehicle_service.delete_vehicle(db, vehicle_id, actor_for(request, user), version=version)
