"""Zone operations — movements, transfers, returns and time-slot reads.

A movement always records where the accreditation came from (its
``current_zone`` before the write) and where it went, so the log alone is
enough to rebuild dwell times.
"""
import logging
from datetime import datetime
from typing import Any, Optional

from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.accreditation import Accreditation, AccreditationStatus, Vehicle
from app.models.zone import VehicleTimeSlot, ZoneAction, ZoneConfig, ZoneMovement
from app.services import history_service
from app.services.accreditation_service import (
    bump_version,
    check_version,
    get_accreditation,
    get_active_zone,
)
from app.services.history_service import Actor
from app.services.zone_time import compute_time_by_zone
from app.timeutils import ensure_utc, utcnow, venue_today

logger = logging.getLogger(__name__)

MOVEMENT_ACTIONS = (ZoneAction.ENTRY.value, ZoneAction.EXIT.value)


def _next_step(db: Session, accreditation_id: str, vehicle_id: int, day) -> int:
    last = (
        db.query(func.max(VehicleTimeSlot.step_number))
        .filter(
            VehicleTimeSlot.accreditation_id == accreditation_id,
            VehicleTimeSlot.vehicle_id == vehicle_id,
            VehicleTimeSlot.date == day,
        )
        .scalar()
    )
    return (last or 0) + 1


def _open_slot(db: Session, acc: Accreditation, vehicle: Vehicle, zone: str, now: datetime) -> Optional[VehicleTimeSlot]:
    """Open today's slot for ``vehicle`` unless one is already open."""
    today = venue_today(now)
    already_open = (
        db.query(VehicleTimeSlot)
        .filter(
            VehicleTimeSlot.accreditation_id == acc.id,
            VehicleTimeSlot.vehicle_id == vehicle.id,
            VehicleTimeSlot.date == today,
            VehicleTimeSlot.exit_at.is_(None),
        )
        .first()
    )
    if already_open:
        return None
    slot = VehicleTimeSlot(
        accreditation_id=acc.id,
        vehicle_id=vehicle.id,
        date=today,
        step_number=_next_step(db, acc.id, vehicle.id, today),
        zone=zone,
        entry_at=now,
    )
    db.add(slot)
    return slot


def _close_slot(db: Session, acc: Accreditation, vehicle: Vehicle, now: datetime) -> Optional[VehicleTimeSlot]:
    slot = (
        db.query(VehicleTimeSlot)
        .filter(
            VehicleTimeSlot.accreditation_id == acc.id,
            VehicleTimeSlot.vehicle_id == vehicle.id,
            VehicleTimeSlot.exit_at.is_(None),
        )
        .order_by(VehicleTimeSlot.date.desc(), VehicleTimeSlot.step_number.desc())
        .first()
    )
    if slot:
        slot.exit_at = now
    return slot


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

def record_movement(
    db: Session,
    accreditation_id: str,
    action: str,
    zone: str,
    actor: Actor,
    version: Optional[int] = None,
) -> ZoneMovement:
    """ENTRY/EXIT of a zone; moves the first vehicle's time slot along."""
    acc = get_accreditation(db, accreditation_id)
    check_version(acc, version)
    if action not in MOVEMENT_ACTIONS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid action. Must be ENTRY or EXIT",
        )
    config = get_active_zone(db, zone)

    now = utcnow()
    old_zone = acc.current_zone
    movement = ZoneMovement(
        accreditation_id=acc.id,
        from_zone=old_zone,
        to_zone=zone,
        action=ZoneAction(action),
        user_id=actor.user_id,
        timestamp=now,
    )
    db.add(movement)

    acc.current_zone = zone
    if action == ZoneAction.ENTRY.value:
        acc.status = AccreditationStatus.ENTREE
        if not acc.entry_at:
            acc.entry_at = now
    else:
        acc.status = AccreditationStatus.SORTIE
        acc.exit_at = now

    if acc.vehicles:
        vehicle = acc.vehicles[0]
        if action == ZoneAction.ENTRY.value:
            _open_slot(db, acc, vehicle, zone, now)
        else:
            _close_slot(db, acc, vehicle, now)

    bump_version(acc)
    history_service.record_zone_change(db, acc.id, action, old_zone, zone, config.label or zone, actor)
    db.commit()
    db.refresh(movement)
    logger.info("Accreditation %s %s zone %s (version %d)", acc.id, action, zone, acc.version)
    return movement


def transfer(
    db: Session,
    accreditation_id: str,
    target_zone: str,
    actor: Actor,
    reason: Optional[str] = None,
    version: Optional[int] = None,
) -> Accreditation:
    """Send an exited vehicle on to another zone, where it waits for entry."""
    acc = get_accreditation(db, accreditation_id)
    check_version(acc, version)
    if acc.status != AccreditationStatus.SORTIE:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Vehicle must have exited (SORTIE) before it can be transferred",
        )
    if target_zone == acc.current_zone:
        logger.warning("Rejected transfer of %s to its current zone %s", acc.id, target_zone)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Vehicle is already in this zone",
        )
    get_active_zone(db, target_zone)

    from_zone = acc.current_zone
    db.add(ZoneMovement(
        accreditation_id=acc.id,
        from_zone=from_zone,
        to_zone=target_zone,
        action=ZoneAction.TRANSFER,
        user_id=actor.user_id,
        timestamp=utcnow(),
    ))
    acc.current_zone = target_zone
    acc.status = AccreditationStatus.ATTENTE
    bump_version(acc)
    history_service.record_transfer(db, acc.id, from_zone, target_zone, reason, actor)
    db.commit()
    db.refresh(acc)
    logger.info("Accreditation %s transferred %s -> %s (version %d)", acc.id, from_zone, target_zone, acc.version)
    return acc


def return_to_venue(
    db: Session,
    accreditation_id: str,
    zone: str,
    actor: Actor,
    vehicle_id: Optional[int] = None,
    version: Optional[int] = None,
) -> dict[str, Any]:
    """Re-admit an exited vehicle, opening the next time slot of the day."""
    acc = get_accreditation(db, accreditation_id)
    check_version(acc, version)
    if acc.status != AccreditationStatus.SORTIE:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Vehicle must have exited (SORTIE) before it can return",
        )
    get_active_zone(db, zone)

    if vehicle_id is not None:
        vehicle = next((v for v in acc.vehicles if v.id == vehicle_id), None)
    else:
        vehicle = acc.vehicles[0] if acc.vehicles else None
    if not vehicle:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Vehicle not found")

    now = utcnow()
    today = venue_today(now)
    step_number = _next_step(db, acc.id, vehicle.id, today)
    slot = VehicleTimeSlot(
        accreditation_id=acc.id,
        vehicle_id=vehicle.id,
        date=today,
        step_number=step_number,
        zone=zone,
        entry_at=now,
    )
    db.add(slot)

    db.add(ZoneMovement(
        accreditation_id=acc.id,
        from_zone=acc.current_zone,
        to_zone=zone,
        action=ZoneAction.ENTRY,
        user_id=actor.user_id,
        timestamp=now,
    ))
    acc.status = AccreditationStatus.ENTREE
    acc.entry_at = now
    acc.exit_at = None
    acc.current_zone = zone
    bump_version(acc)
    history_service.record_return(db, acc.id, zone, step_number, actor)
    db.commit()
    db.refresh(slot)
    logger.info(
        "Accreditation %s vehicle %d returned to %s, step %d (version %d)",
        acc.id, vehicle.id, zone, step_number, acc.version,
    )
    return {"success": True, "time_slot": slot, "step_number": step_number}


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def list_movements(db: Session, accreditation_id: str) -> list[ZoneMovement]:
    return (
        db.query(ZoneMovement)
        .filter(ZoneMovement.accreditation_id == accreditation_id)
        .order_by(ZoneMovement.timestamp.asc(), ZoneMovement.id.asc())
        .all()
    )


def zone_time(db: Session, accreditation_id: str, zone: Optional[str] = None) -> dict[str, int]:
    get_accreditation(db, accreditation_id)
    time_by_zone = compute_time_by_zone(list_movements(db, accreditation_id))
    if zone:
        return {zone: time_by_zone[zone]} if zone in time_by_zone else {}
    return time_by_zone


def _minutes_between(start: datetime, end: datetime) -> int:
    return round((ensure_utc(end) - ensure_utc(start)).total_seconds() / 60)


def daily_timeslots(db: Session, accreditation_id: str) -> dict[str, Any]:
    """Time slots grouped per venue day, newest day first.

    Within a day slots are ordered by step; a transfer is reported between
    each closed step and the step that follows it.
    """
    slots = (
        db.query(VehicleTimeSlot)
        .filter(VehicleTimeSlot.accreditation_id == accreditation_id)
        .order_by(VehicleTimeSlot.date.desc(), VehicleTimeSlot.step_number.asc())
        .all()
    )

    days: dict[Any, dict[str, Any]] = {}
    for slot in slots:
        day = days.setdefault(slot.date, {"date": slot.date, "slots": [], "transfers": [], "total_minutes": 0})
        duration = None
        if slot.exit_at:
            duration = _minutes_between(slot.entry_at, slot.exit_at)
            day["total_minutes"] += duration
        day["slots"].append({
            "id": slot.id,
            "step_number": slot.step_number,
            "zone": slot.zone,
            "entry_at": ensure_utc(slot.entry_at),
            "exit_at": ensure_utc(slot.exit_at),
            "duration": duration,
            "vehicle_plate": slot.vehicle.plate,
            "vehicle_size": slot.vehicle.size,
        })

    for day in days.values():
        for current, following in zip(day["slots"], day["slots"][1:]):
            if not current["exit_at"]:
                continue
            day["transfers"].append({
                "from_zone": current["zone"],
                "to_zone": following["zone"],
                "departure_at": current["exit_at"],
                "arrival_at": following["entry_at"],
                "transit_minutes": max(0, _minutes_between(current["exit_at"], following["entry_at"])),
            })

    ordered = sorted(days.values(), key=lambda d: d["date"], reverse=True)
    return {"days": ordered, "grand_total_minutes": sum(d["total_minutes"] for d in ordered)}


# ---------------------------------------------------------------------------
# Zone reference data
# ---------------------------------------------------------------------------

def list_zones(db: Session, include_inactive: bool = False) -> list[ZoneConfig]:
    query = db.query(ZoneConfig)
    if not include_inactive:
        query = query.filter(ZoneConfig.is_active.is_(True))
    return query.order_by(ZoneConfig.label.asc()).all()


def get_zone(db: Session, zone_id: int) -> ZoneConfig:
    config = db.query(ZoneConfig).filter(ZoneConfig.id == zone_id).first()
    if not config:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Zone not found")
    return config


def create_zone(db: Session, data: dict[str, Any]) -> ZoneConfig:
    key = data["zone"].strip().upper()
    if not key:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Zone key is required")
    if db.query(ZoneConfig).filter(ZoneConfig.zone == key).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Zone {key} already exists")
    config = ZoneConfig(**{**data, "zone": key})
    db.add(config)
    db.commit()
    db.refresh(config)
    logger.info("Created zone %s (%s)", config.zone, config.label)
    return config


def update_zone(db: Session, zone_id: int, updates: dict[str, Any]) -> ZoneConfig:
    config = get_zone(db, zone_id)
    for field, value in updates.items():
        if value is not None:
            setattr(config, field, value)
    db.commit()
    db.refresh(config)
    logger.info("Updated zone %s fields %s", config.zone, sorted(updates))
    return config


def deactivate_zone(db: Session, zone_id: int) -> ZoneConfig:
    """Soft delete: movements and history keep referring to the key."""
    config = get_zone(db, zone_id)
    config.is_active = False
    db.commit()
    db.refresh(config)
    logger.info("Deactivated zone %s", config.zone)
    return config
