"""Accreditation service — guarded mutations on a single accreditation.

Every mutation follows the same contract:
- 404 when the accreditation does not exist
- 409 when the caller supplied a ``version`` that no longer matches
- business-rule checks (400/409)
- scalar updates + ``version += 1`` + exactly one history row, one commit
"""
import logging
import re
from typing import Any, Optional

from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from app.models.accreditation import Accreditation, AccreditationStatus, Vehicle, VehicleType
from app.models.zone import ZoneAction, ZoneConfig, ZoneMovement
from app.schemas.accreditation import AccreditationCreate, AccreditationUpdate, serialize_unloading
from app.services import history_service, mailer
from app.services.history_service import Actor
from app.timeutils import utcnow

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9]")
INFO_FIELDS = ("company", "stand", "unloading", "event", "message", "email")


# ---------------------------------------------------------------------------
# Shared guards
# ---------------------------------------------------------------------------

def get_accreditation(db: Session, accreditation_id: str) -> Accreditation:
    acc = (
        db.query(Accreditation)
        .options(selectinload(Accreditation.vehicles))
        .filter(Accreditation.id == accreditation_id)
        .first()
    )
    if not acc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Accreditation not found")
    return acc


def check_version(acc: Accreditation, version: Optional[int]) -> None:
    """Optimistic lock: a supplied version must match the stored one."""
    if version is not None and acc.version != version:
        logger.warning("Version conflict on accreditation %s: stored %d, got %d", acc.id, acc.version, version)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=(
                f"Version mismatch: expected {acc.version}, got {version}. "
                "This accreditation was modified by another user, refresh and retry."
            ),
        )


def bump_version(acc: Accreditation) -> None:
    acc.version += 1
    acc.updated_at = utcnow()


def parse_status(value: str) -> AccreditationStatus:
    try:
        return AccreditationStatus(value)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid status: {value}")


def get_active_zone(db: Session, zone: Optional[str]) -> ZoneConfig:
    """Zones are dynamic: a key is valid iff an active ZoneConfig exists."""
    config = None
    if zone:
        config = db.query(ZoneConfig).filter(ZoneConfig.zone == zone).first()
    if not config or not config.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid zone: {zone}")
    return config


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def list_accreditations(db: Session, archived: bool = False) -> list[Accreditation]:
    return (
        db.query(Accreditation)
        .options(selectinload(Accreditation.vehicles))
        .filter(Accreditation.is_archived == archived)
        .order_by(Accreditation.created_at.desc())
        .all()
    )


def normalize_plate(plate: Optional[str]) -> str:
    return _NON_ALNUM.sub("", (plate or "").strip().lower())


def find_duplicates(
    db: Session,
    company: Optional[str],
    plate: Optional[str],
    trailer_plate: Optional[str] = None,
    limit: int = 10,
) -> list[Accreditation]:
    """Non-archived accreditations that look like the same submission.

    Company matches case-insensitively; plates match after case-folding and
    stripping punctuation. A trailer plate, when given, must match as well.
    """
    if not company or not company.strip() or not normalize_plate(plate):
        return []
    wanted_company = company.strip().lower()
    wanted_plate = normalize_plate(plate)
    wanted_trailer = normalize_plate(trailer_plate)

    candidates = (
        db.query(Accreditation)
        .options(selectinload(Accreditation.vehicles))
        .filter(
            Accreditation.is_archived.is_(False),
            func.lower(func.trim(Accreditation.company)) == wanted_company,
        )
        .order_by(Accreditation.created_at.desc())
        .all()
    )

    duplicates = []
    for acc in candidates:
        if not any(normalize_plate(v.plate) == wanted_plate for v in acc.vehicles):
            continue
        if wanted_trailer and not any(
            v.trailer_plate and normalize_plate(v.trailer_plate) == wanted_trailer for v in acc.vehicles
        ):
            continue
        duplicates.append(acc)
        if len(duplicates) >= limit:
            break
    return duplicates


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

def parse_vehicle_type(value: Optional[str]) -> Optional[VehicleType]:
    if not value:
        return None
    try:
        return VehicleType(value)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid vehicle type: {value}")


def build_vehicle(data: dict[str, Any]) -> Vehicle:
    return Vehicle(
        plate=data["plate"],
        size=data["size"],
        phone_code=data["phone_code"],
        phone_number=data["phone_number"],
        date=data["date"],
        time=data.get("time") or "",
        city=data["city"],
        unloading=serialize_unloading(data["unloading"]),
        kms=data.get("kms") or "",
        vehicle_type=parse_vehicle_type(data.get("vehicle_type")),
        trailer_plate=data.get("trailer_plate"),
        empty_weight=data.get("empty_weight"),
        max_weight=data.get("max_weight"),
        current_weight=data.get("current_weight"),
    )


def create_accreditation(db: Session, payload: AccreditationCreate, actor: Actor) -> Accreditation:
    """Create an accreditation and its vehicles in one transaction."""
    acc_status = parse_status(payload.status) if payload.status else AccreditationStatus.ATTENTE
    if payload.current_zone:
        get_active_zone(db, payload.current_zone)

    now = utcnow()
    acc = Accreditation(
        company=payload.company,
        stand=payload.stand,
        unloading=payload.unloading,
        event=payload.event,
        message=payload.message or "",
        consent=payload.consent,
        status=acc_status,
        current_zone=payload.current_zone,
        email=payload.email,
        entry_at=now if acc_status == AccreditationStatus.ENTREE else None,
        version=1,
        created_at=now,
        updated_at=now,
    )
    acc.vehicles = [build_vehicle(v.model_dump()) for v in payload.vehicles]
    db.add(acc)
    db.flush()

    if payload.current_zone:
        db.add(ZoneMovement(
            accreditation_id=acc.id,
            from_zone=None,
            to_zone=payload.current_zone,
            action=ZoneAction.ENTRY,
            user_id=actor.user_id,
            timestamp=now,
        ))

    history_service.record_created(db, acc.id, actor)
    db.commit()
    db.refresh(acc)
    logger.info("Created accreditation %s for '%s' with %d vehicle(s)", acc.id, acc.company, len(acc.vehicles))
    return acc


def update_info(db: Session, accreditation_id: str, payload: AccreditationUpdate, actor: Actor) -> Accreditation:
    """Edit descriptive fields; one INFO_UPDATED entry per changed field."""
    acc = get_accreditation(db, accreditation_id)
    check_version(acc, payload.version)

    updates = payload.model_dump(exclude_unset=True, exclude={"version"})
    changed = []
    for field in INFO_FIELDS:
        if field not in updates:
            continue
        new_value = updates[field]
        if field in ("message", "email"):
            new_value = new_value or ("" if field == "message" else None)
        elif not new_value:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{field} cannot be empty")
        old_value = getattr(acc, field)
        if new_value == old_value:
            continue
        setattr(acc, field, new_value)
        history_service.record_info_update(db, acc.id, field, old_value or "", new_value or "", actor)
        changed.append(field)

    if not changed:
        return acc

    bump_version(acc)
    db.commit()
    db.refresh(acc)
    logger.info("Updated accreditation %s fields %s to version %d", acc.id, changed, acc.version)
    return acc


def apply_status(db: Session, acc: Accreditation, new_status: AccreditationStatus, actor: Actor) -> None:
    """Status transition on an already-loaded row, without committing."""
    old_status = acc.status
    now = utcnow()
    acc.status = new_status
    if new_status == AccreditationStatus.ENTREE and not acc.entry_at:
        acc.entry_at = now
    if new_status == AccreditationStatus.SORTIE:
        acc.exit_at = now

    if new_status != old_status and acc.current_zone:
        if new_status == AccreditationStatus.ENTREE:
            db.add(ZoneMovement(
                accreditation_id=acc.id, from_zone=None, to_zone=acc.current_zone,
                action=ZoneAction.ENTRY, user_id=actor.user_id, timestamp=now,
            ))
        elif new_status == AccreditationStatus.SORTIE:
            db.add(ZoneMovement(
                accreditation_id=acc.id, from_zone=acc.current_zone, to_zone=acc.current_zone,
                action=ZoneAction.EXIT, user_id=actor.user_id, timestamp=now,
            ))

    bump_version(acc)
    history_service.record_status_change(db, acc.id, old_status, new_status, actor)


def change_status(
    db: Session,
    accreditation_id: str,
    new_status: str,
    actor: Actor,
    version: Optional[int] = None,
) -> Accreditation:
    target = parse_status(new_status)
    acc = get_accreditation(db, accreditation_id)
    check_version(acc, version)
    old_status = acc.status
    apply_status(db, acc, target, actor)
    db.commit()
    db.refresh(acc)
    logger.info(
        "Accreditation %s status %s -> %s (version %d)", acc.id, old_status.value, target.value, acc.version
    )
    return acc


def set_archived(
    db: Session,
    accreditation_id: str,
    archived: bool,
    actor: Actor,
    version: Optional[int] = None,
) -> Accreditation:
    acc = get_accreditation(db, accreditation_id)
    check_version(acc, version)
    acc.is_archived = archived
    bump_version(acc)
    history_service.record_archived(db, acc.id, archived, actor)
    db.commit()
    db.refresh(acc)
    logger.info("Accreditation %s %s (version %d)", acc.id, "archived" if archived else "unarchived", acc.version)
    return acc


def send_by_email(db: Session, accreditation_id: str, email: Optional[str], actor: Actor) -> Accreditation:
    """Mail the accreditation to ``email`` (or the stored address)."""
    acc = get_accreditation(db, accreditation_id)
    target = (email or acc.email or "").strip()
    if not target:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="E-mail address is required")

    html = mailer.render_accreditation_email(acc.company, acc.stand, acc.event, [v.plate for v in acc.vehicles])
    try:
        mailer.send_email(target, "Your vehicle accreditation", html)
    except mailer.MailerError as exc:
        logger.error("Sending accreditation %s to %s failed: %s", acc.id, target, exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="E-mail delivery failed")
    return mark_sent(db, acc, target, actor)


def mark_sent(db: Session, acc: Accreditation, email: str, actor: Actor) -> Accreditation:
    """Record a successful e-mail delivery on the accreditation."""
    acc.email = email
    acc.sent_at = utcnow()
    bump_version(acc)
    history_service.record_email_sent(db, acc.id, email, actor)
    db.commit()
    db.refresh(acc)
    logger.info("Accreditation %s sent to %s", acc.id, email)
    return acc
