"""Audit history — writer, readers, change polling and retention archival.

Every accreditation mutation appends exactly one ``AccreditationHistory`` row
through ``write_history`` inside the caller's transaction; the caller commits.
Rows older than the retention window are moved in batches into
``AccreditationHistoryArchive`` by ``archive_old_history``.
"""
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy.orm import Session

from app.config import settings
from app.models.accreditation import Accreditation
from app.models.history import AccreditationHistory, AccreditationHistoryArchive, HistoryAction
from app.models.user import User
from app.timeutils import ensure_utc, subtract_months, utcnow

logger = logging.getLogger(__name__)


@dataclass
class Actor:
    """Who performed a mutation, as recorded on history rows."""

    user_id: Optional[str] = None
    user_agent: Optional[str] = None


SYSTEM = Actor()

STATUS_LABELS = {
    "ATTENTE": "Waiting",
    "ENTREE": "Entered",
    "SORTIE": "Exited",
    "NOUVEAU": "New",
    "REFUS": "Refused",
    "ABSENT": "Absent",
}

FIELD_LABELS = {
    "company": "Company",
    "stand": "Stand",
    "unloading": "Unloading",
    "event": "Event",
    "message": "Message",
    "currentZone": "Zone",
    "vehicles": "Vehicles",
    "status": "Status",
    "email": "E-mail",
}

# History action -> change-poll event type
CHANGE_TYPES = {
    HistoryAction.ZONE_TRANSFER: "zone_transfer",
    HistoryAction.ZONE_CHANGED: "zone_change",
    HistoryAction.STATUS_CHANGED: "status_change",
    HistoryAction.CREATED: "created",
    HistoryAction.DELETED: "deleted",
    HistoryAction.VEHICLE_REMOVED: "vehicle_removed",
    HistoryAction.VEHICLE_ADDED: "vehicle_added",
    HistoryAction.VEHICLE_UPDATED: "vehicle_updated",
    HistoryAction.INFO_UPDATED: "info_updated",
    HistoryAction.VEHICLE_RETURN: "vehicle_return",
    HistoryAction.ARCHIVED: "archived",
    HistoryAction.CHAT_MESSAGE: "chat_message",
    HistoryAction.EMAIL_SENT: "update",
}


def _status_label(value: Any) -> str:
    value = getattr(value, "value", value)
    return STATUS_LABELS.get(value, value) if value else "None"


def _display(field: str, value: Optional[str]) -> str:
    if not value:
        return "None"
    if field == "status":
        return _status_label(value)
    return value


def _plain(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(getattr(value, "value", value))


def write_history(
    db: Session,
    accreditation_id: str,
    action: HistoryAction,
    description: str,
    actor: Actor = SYSTEM,
    field: Optional[str] = None,
    old_value: Any = None,
    new_value: Any = None,
) -> AccreditationHistory:
    """Append one history row to the current transaction (no commit)."""
    entry = AccreditationHistory(
        accreditation_id=accreditation_id,
        action=action,
        field=field,
        old_value=_plain(old_value),
        new_value=_plain(new_value),
        description=description,
        user_id=actor.user_id,
        user_agent=actor.user_agent,
        created_at=utcnow(),
    )
    db.add(entry)
    return entry


# ---------------------------------------------------------------------------
# Entry builders, one per mutation kind
# ---------------------------------------------------------------------------

def record_created(db: Session, accreditation_id: str, actor: Actor) -> AccreditationHistory:
    return write_history(db, accreditation_id, HistoryAction.CREATED, "Accreditation created", actor)


def record_status_change(db: Session, accreditation_id: str, old: Any, new: Any, actor: Actor):
    return write_history(
        db, accreditation_id, HistoryAction.STATUS_CHANGED,
        f"Status changed: {_status_label(old)} → {_status_label(new)}",
        actor, field="status", old_value=old, new_value=new,
    )


def record_info_update(db: Session, accreditation_id: str, field: str, old: Any, new: Any, actor: Actor):
    label = FIELD_LABELS.get(field, field)
    description = f"{label} changed: {_display(field, _plain(old))} → {_display(field, _plain(new))}"
    return write_history(
        db, accreditation_id, HistoryAction.INFO_UPDATED, description,
        actor, field=field, old_value=old, new_value=new,
    )


def record_zone_change(db: Session, accreditation_id: str, action: str, old_zone, zone: str, zone_label: str, actor: Actor):
    description = f"Entered zone {zone_label}" if action == "ENTRY" else f"Left zone {zone_label}"
    return write_history(
        db, accreditation_id, HistoryAction.ZONE_CHANGED, description,
        actor, field="currentZone", old_value=old_zone, new_value=zone,
    )


def record_transfer(db: Session, accreditation_id: str, from_zone, to_zone: str, reason: Optional[str], actor: Actor):
    description = f"Transferred from {from_zone or 'N/A'} to {to_zone}"
    if reason:
        description += f" - {reason}"
    return write_history(
        db, accreditation_id, HistoryAction.ZONE_TRANSFER, description,
        actor, field="currentZone", old_value=from_zone, new_value=to_zone,
    )


def record_return(db: Session, accreditation_id: str, zone: str, step_number: int, actor: Actor):
    return write_history(
        db, accreditation_id, HistoryAction.VEHICLE_RETURN,
        f"Vehicle returned to {zone} (step {step_number})",
        actor, field="currentZone", new_value=zone,
    )


def record_archived(db: Session, accreditation_id: str, archived: bool, actor: Actor):
    return write_history(
        db, accreditation_id, HistoryAction.ARCHIVED,
        "Accreditation archived" if archived else "Accreditation restored from archive",
        actor, field="isArchived", old_value=str(not archived).lower(), new_value=str(archived).lower(),
    )


def record_vehicle_added(db: Session, accreditation_id: str, plate: str, actor: Actor):
    return write_history(
        db, accreditation_id, HistoryAction.VEHICLE_ADDED, f"Vehicle {plate} added",
        actor, field="vehicles", new_value=plate,
    )


def record_vehicle_removed(db: Session, accreditation_id: str, plate: str, actor: Actor):
    return write_history(
        db, accreditation_id, HistoryAction.VEHICLE_REMOVED, f"Vehicle {plate} removed",
        actor, field="vehicles", old_value=plate,
    )


def record_vehicle_updated(db: Session, accreditation_id: str, plate: str, before: dict, after: dict, actor: Actor):
    return write_history(
        db, accreditation_id, HistoryAction.VEHICLE_UPDATED, f"Vehicle {plate} updated",
        actor, field="vehicles", old_value=json.dumps(before, sort_keys=True), new_value=json.dumps(after, sort_keys=True),
    )


def record_email_sent(db: Session, accreditation_id: str, email: str, actor: Actor):
    return write_history(
        db, accreditation_id, HistoryAction.EMAIL_SENT, f"E-mail sent to {email}",
        actor, field="email", new_value=email,
    )


def record_chat_message(db: Session, accreditation_id: str, user_name: str, message: str, actor: Actor):
    preview = message if len(message) <= 50 else message[:50] + "..."
    return write_history(
        db, accreditation_id, HistoryAction.CHAT_MESSAGE, f"Message from {user_name}: {preview}",
        actor, field="chat", new_value=message[:100],
    )


# ---------------------------------------------------------------------------
# Readers
# ---------------------------------------------------------------------------

def decompress_summary(summary: str) -> dict[str, Any]:
    """Expand an archive row's compact summary back to history fields."""
    try:
        parsed = json.loads(summary)
    except ValueError:
        parsed = None
    if not isinstance(parsed, dict):
        return {
            "field": None, "old_value": None, "new_value": None,
            "description": summary, "user_id": None, "user_agent": None,
        }
    return {
        "field": parsed.get("f"),
        "old_value": parsed.get("o"),
        "new_value": parsed.get("n"),
        "description": parsed.get("d") or "",
        "user_id": parsed.get("u"),
        "user_agent": parsed.get("ua"),
    }


def list_history(db: Session, accreditation_id: str, limit: Optional[int] = None) -> list[dict[str, Any]]:
    """Live and archived entries for one accreditation, newest first, at most ``limit``."""
    limit = limit or settings.HISTORY_MAX_ENTRIES
    recent = (
        db.query(AccreditationHistory)
        .filter(AccreditationHistory.accreditation_id == accreditation_id)
        .order_by(AccreditationHistory.created_at.desc(), AccreditationHistory.id.desc())
        .limit(limit)
        .all()
    )
    archived = (
        db.query(AccreditationHistoryArchive)
        .filter(AccreditationHistoryArchive.accreditation_id == accreditation_id)
        .order_by(AccreditationHistoryArchive.created_at.desc(), AccreditationHistoryArchive.id.desc())
        .limit(limit)
        .all()
    )

    entries = [
        {
            "id": h.id,
            "action": h.action.value,
            "field": h.field,
            "old_value": h.old_value,
            "new_value": h.new_value,
            "description": h.description,
            "user_id": h.user_id,
            "user_agent": h.user_agent,
            "created_at": ensure_utc(h.created_at),
            "is_archived": False,
        }
        for h in recent
    ]
    for h in archived:
        entry = {"id": h.id, "action": h.action.value, "created_at": ensure_utc(h.created_at), "is_archived": True}
        entry.update(decompress_summary(h.summary))
        entries.append(entry)

    user_ids = {e["user_id"] for e in entries if e["user_id"]}
    users = {}
    if user_ids:
        users = {u.id: u for u in db.query(User).filter(User.id.in_(user_ids)).all()}
    for e in entries:
        user = users.get(e["user_id"])
        e["user_name"] = user.name if user else None
        e["user_email"] = user.email if user else None

    entries.sort(key=lambda e: (e["created_at"], e["id"]), reverse=True)
    return entries[:limit]


def changes_since(db: Session, since: Optional[datetime] = None, zone: Optional[str] = None) -> dict[str, Any]:
    """History-derived change events for the polling endpoint."""
    if since is None:
        since = utcnow() - timedelta(seconds=settings.CHANGES_DEFAULT_WINDOW_SECONDS)
    since = ensure_utc(since)

    rows = (
        db.query(AccreditationHistory, Accreditation)
        .join(Accreditation, Accreditation.id == AccreditationHistory.accreditation_id)
        .filter(AccreditationHistory.created_at > since)
        .order_by(AccreditationHistory.created_at.asc(), AccreditationHistory.id.asc())
        .limit(settings.CHANGES_MAX_EVENTS)
        .all()
    )
    if zone:
        rows = [(h, acc) for h, acc in rows if acc.current_zone == zone]

    events = [
        {
            "type": CHANGE_TYPES.get(h.action, "update"),
            "accreditation_id": h.accreditation_id,
            "data": {
                "action": h.action.value,
                "field": h.field,
                "old_value": h.old_value,
                "new_value": h.new_value,
                "description": h.description,
                "zone": acc.current_zone,
                "company": acc.company,
                "status": acc.status.value,
            },
            "timestamp": ensure_utc(h.created_at),
        }
        for h, acc in rows
    ]
    return {"events": events, "server_time": utcnow()}


# ---------------------------------------------------------------------------
# Retention
# ---------------------------------------------------------------------------

def _compact_summary(entry: AccreditationHistory) -> str:
    summary = {
        "f": entry.field,
        "o": entry.old_value,
        "n": entry.new_value,
        "d": entry.description,
        "u": entry.user_id,
        "ua": entry.user_agent,
    }
    return json.dumps({k: v for k, v in summary.items() if v is not None}, separators=(",", ":"))


def archive_old_history(
    db: Session,
    cutoff: Optional[datetime] = None,
    batch_size: Optional[int] = None,
) -> dict[str, Any]:
    """Move history rows older than ``cutoff`` into the archive table.

    Each batch is its own transaction: a failure rolls back the current batch
    only and re-raises, earlier batches stay committed.
    """
    months = settings.HISTORY_RETENTION_MONTHS
    batch_size = batch_size or settings.HISTORY_ARCHIVE_BATCH_SIZE
    if cutoff is None:
        cutoff = subtract_months(utcnow(), months)
    cutoff = ensure_utc(cutoff)

    total_archived = 0
    total_deleted = 0
    while True:
        batch = (
            db.query(AccreditationHistory)
            .filter(AccreditationHistory.created_at < cutoff)
            .order_by(AccreditationHistory.id.asc())
            .limit(batch_size)
            .all()
        )
        if not batch:
            break

        try:
            for entry in batch:
                db.add(AccreditationHistoryArchive(
                    id=entry.id,
                    accreditation_id=entry.accreditation_id,
                    action=entry.action,
                    summary=_compact_summary(entry),
                    created_at=entry.created_at,
                ))
            ids = [entry.id for entry in batch]
            deleted = (
                db.query(AccreditationHistory)
                .filter(AccreditationHistory.id.in_(ids))
                .delete(synchronize_session=False)
            )
            db.commit()
        except Exception:
            db.rollback()
            logger.exception(
                "History archival batch failed after %d rows archived", total_archived
            )
            raise

        total_archived += len(batch)
        total_deleted += deleted
        logger.info("Archived history batch of %d rows (total %d)", len(batch), total_archived)

        if len(batch) < batch_size:
            break

    report = {
        "success": True,
        "cutoff_date": cutoff,
        "months_kept": months,
        "total_archived": total_archived,
        "total_deleted": total_deleted,
        "timestamp": utcnow(),
    }
    logger.info("History archival report: %s", report)
    return report
