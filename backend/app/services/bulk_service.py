"""Bulk status / archive actions over a list of accreditation ids.

Each id runs through the single-item service function in its own
transaction; a failing id is rolled back and reported without affecting the
others.
"""
import logging
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app.models.accreditation import AccreditationStatus
from app.services.accreditation_service import change_status, set_archived
from app.services.history_service import Actor

logger = logging.getLogger(__name__)

ARCHIVE_ACTIONS = ("ARCHIVE", "UNARCHIVE")
STATUS_ACTIONS = tuple(s.value for s in AccreditationStatus)


def is_archive_action(action: str) -> bool:
    return action in ARCHIVE_ACTIONS


def validate_action(action: str) -> None:
    if not is_archive_action(action) and action not in STATUS_ACTIONS:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid action: {action}")


def run_bulk(db: Session, ids: list[str], action: str, actor: Actor) -> dict[str, Any]:
    validate_action(action)
    results = []
    for accreditation_id in ids:
        try:
            if is_archive_action(action):
                set_archived(db, accreditation_id, action == "ARCHIVE", actor)
            else:
                change_status(db, accreditation_id, action, actor)
        except HTTPException as exc:
            db.rollback()
            results.append({"id": accreditation_id, "success": False, "error": str(exc.detail)})
            continue
        except Exception:
            db.rollback()
            logger.exception("Bulk %s failed on accreditation %s", action, accreditation_id)
            results.append({"id": accreditation_id, "success": False, "error": "Internal error"})
            continue
        results.append({"id": accreditation_id, "success": True})

    succeeded = sum(1 for r in results if r["success"])
    failed = len(results) - succeeded
    logger.info("Bulk %s over %d accreditation(s): %d succeeded, %d failed", action, len(ids), succeeded, failed)
    return {
        "success": True,
        "total": len(ids),
        "succeeded": succeeded,
        "failed": failed,
        "results": results,
    }
