"""Admin API routes — user accounts, permissions and maintenance jobs."""
import logging
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.models.user import User, UserRole
from app.schemas.history import ArchiveReport
from app.schemas.user import PasswordReset, PermissionOut, PermissionsUpdate, UserCreate, UserOut, UserUpdate
from app.security import bearer, get_optional_user, require_role
from app.services import history_service, user_service

logger = logging.getLogger(__name__)
router = APIRouter()

super_admin = require_role(UserRole.SUPER_ADMIN)


@router.get("/users", response_model=list[UserOut])
def list_users(db: Session = Depends(get_db), admin: User = Depends(super_admin)):
    return user_service.list_users(db)


@router.post("/users", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def create_user(payload: UserCreate, db: Session = Depends(get_db), admin: User = Depends(super_admin)):
    return user_service.create_user(db, payload)


@router.get("/users/{user_id}", response_model=UserOut)
def get_user(user_id: str, db: Session = Depends(get_db), admin: User = Depends(super_admin)):
    return user_service.get_user(db, user_id)


@router.patch("/users/{user_id}", response_model=UserOut)
def update_user(
    user_id: str,
    payload: UserUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(super_admin),
):
    return user_service.update_user(db, user_id, payload)


@router.put("/users/{user_id}/password", status_code=status.HTTP_204_NO_CONTENT)
def reset_password(
    user_id: str,
    payload: PasswordReset,
    db: Session = Depends(get_db),
    admin: User = Depends(super_admin),
):
    user_service.reset_password(db, user_id, payload.password)


@router.get("/users/{user_id}/permissions", response_model=list[PermissionOut])
def get_permissions(user_id: str, db: Session = Depends(get_db), admin: User = Depends(super_admin)):
    return user_service.get_permissions(db, user_id)


@router.put("/users/{user_id}/permissions", response_model=list[PermissionOut])
def set_permissions(
    user_id: str,
    payload: PermissionsUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(super_admin),
):
    return user_service.set_permissions(db, user_id, payload.permissions)


@router.get("/archive-history", response_model=ArchiveReport)
def archive_history(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    """Move history older than the retention window into the archive table.

    Called by the scheduler with ``Authorization: Bearer <CRON_SECRET>`` or
    manually by a SUPER_ADMIN.
    """
    is_cron = bool(
        settings.CRON_SECRET
        and creds is not None
        and secrets.compare_digest(creds.credentials, settings.CRON_SECRET)
    )
    if not is_cron:
        if user is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
        if user.role != UserRole.SUPER_ADMIN:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")
    logger.info("History archival triggered by %s", "cron" if is_cron else f"user {user.id}")
    return history_service.archive_old_history(db)
