"""Vehicle service — edits to the vehicles of an existing accreditation.

Each write counts as a mutation of the parent accreditation: its version is
bumped and one history row is written in the same transaction.
"""
import logging
from typing import Any, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app.models.accreditation import Accreditation, Vehicle
from app.models.zone import VehicleTimeSlot
from app.schemas.accreditation import VehicleCreate, VehicleUpdate, normalize_unloading, serialize_unloading
from app.services import history_service
from app.services.accreditation_service import (
    build_vehicle,
    bump_version,
    check_version,
    get_accreditation,
    parse_vehicle_type,
)
from app.services.history_service import Actor

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("plate", "size", "phone_code", "phone_number", "date", "city")


def _vehicle_snapshot(vehicle: Vehicle) -> dict[str, Any]:
    return {
        "plate": vehicle.plate,
        "size": vehicle.size,
        "phone_code": vehicle.phone_code,
        "phone_number": vehicle.phone_number,
        "date": vehicle.date,
        "time": vehicle.time,
        "city": vehicle.city,
        "unloading": normalize_unloading(vehicle.unloading),
        "kms": vehicle.kms,
        "vehicle_type": vehicle.vehicle_type.value if vehicle.vehicle_type else None,
        "trailer_plate": vehicle.trailer_plate,
        "empty_weight": vehicle.empty_weight,
        "max_weight": vehicle.max_weight,
        "current_weight": vehicle.current_weight,
    }


def get_vehicle(db: Session, vehicle_id: int) -> Vehicle:
    vehicle = db.query(Vehicle).filter(Vehicle.id == vehicle_id).first()
    if not vehicle:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Vehicle not found")
    return vehicle


def add_vehicle(
    db: Session,
    accreditation_id: str,
    payload: VehicleCreate,
    actor: Actor,
    version: Optional[int] = None,
) -> Vehicle:
    acc = get_accreditation(db, accreditation_id)
    check_version(acc, version)
    vehicle = build_vehicle(payload.model_dump())
    acc.vehicles.append(vehicle)
    bump_version(acc)
    history_service.record_vehicle_added(db, acc.id, vehicle.plate, actor)
    db.commit()
    db.refresh(vehicle)
    logger.info("Added vehicle %d (%s) to accreditation %s (version %d)", vehicle.id, vehicle.plate, acc.id, acc.version)
    return vehicle


def update_vehicle(db: Session, vehicle_id: int, payload: VehicleUpdate, actor: Actor) -> Vehicle:
    vehicle = get_vehicle(db, vehicle_id)
    acc: Accreditation = get_accreditation(db, vehicle.accreditation_id)
    check_version(acc, payload.version)

    updates = payload.model_dump(exclude_unset=True, exclude={"version"})
    for field in REQUIRED_FIELDS:
        if field in updates and not updates[field]:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{field} cannot be empty")

    before = _vehicle_snapshot(vehicle)
    for field, value in updates.items():
        if field == "unloading":
            value = serialize_unloading(value)
        elif field == "vehicle_type":
            value = parse_vehicle_type(value)
        elif field in ("time", "kms"):
            value = value or ""
        setattr(vehicle, field, value)
    after = _vehicle_snapshot(vehicle)

    if before == after:
        return vehicle

    changed = {k: v for k, v in after.items() if before[k] != v}
    bump_version(acc)
    history_service.record_vehicle_updated(
        db, acc.id, vehicle.plate, {k: before[k] for k in changed}, changed, actor
    )
    db.commit()
    db.refresh(vehicle)
    logger.info("Updated vehicle %d fields %s (accreditation %s version %d)", vehicle.id, sorted(changed), acc.id, acc.version)
    return vehicle


def delete_vehicle(db: Session, vehicle_id: int, actor: Actor, version: Optional[int] = None) -> None:
    vehicle = get_vehicle(db, vehicle_id)
    acc = get_accreditation(db, vehicle.accreditation_id)
    check_version(acc, version)
    if len(acc.vehicles) <= 1:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="An accreditation must keep at least one vehicle",
        )

    plate = vehicle.plate
    db.query(VehicleTimeSlot).filter(VehicleTimeSlot.vehicle_id == vehicle.id).delete(synchronize_session=False)
    acc.vehicles.remove(vehicle)
    bump_version(acc)
    history_service.record_vehicle_removed(db, acc.id, plate, actor)
    db.commit()
    logger.info("Removed vehicle %d (%s) from accreditation %s (version %d)", vehicle_id, plate, acc.id, acc.version)
