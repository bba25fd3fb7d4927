"""User administration — accounts, passwords and feature permissions."""
import logging
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from app.models.user import Feature, User, UserPermission, UserRole
from app.schemas.user import PermissionIn, UserCreate, UserUpdate
from app.security import hash_password, verify_password

logger = logging.getLogger(__name__)


def _parse_role(value: str) -> UserRole:
    try:
        return UserRole(value)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid role: {value}")


def _parse_feature(value: str) -> Feature:
    try:
        return Feature(value)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid feature: {value}")


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def _check_email_free(db: Session, email: str, exclude_id: Optional[str] = None) -> None:
    query = db.query(User).filter(func.lower(User.email) == email)
    if exclude_id:
        query = query.filter(User.id != exclude_id)
    if query.first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="An account with this e-mail already exists")


def authenticate(db: Session, email: str, password: str) -> User:
    """Credential check for login; the same 401 for unknown e-mail and bad password."""
    user = db.query(User).filter(func.lower(User.email) == _normalize_email(email)).first()
    if not user or not verify_password(password, user.password_hash):
        logger.warning("Failed login for %s", email)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid e-mail or password")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account disabled")
    return user


def list_users(db: Session) -> list[User]:
    return (
        db.query(User)
        .options(selectinload(User.permissions))
        .order_by(User.created_at.asc(), User.email.asc())
        .all()
    )


def get_user(db: Session, user_id: str) -> User:
    user = db.query(User).options(selectinload(User.permissions)).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


def create_user(db: Session, payload: UserCreate) -> User:
    email = _normalize_email(payload.email)
    if not email or not payload.name.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="name and email are required")
    _check_email_free(db, email)

    user = User(
        name=payload.name.strip(),
        email=email,
        password_hash=hash_password(payload.password),
        role=_parse_role(payload.role),
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Created user %s (%s, %s)", user.id, user.email, user.role.value)
    return user


def update_user(db: Session, user_id: str, payload: UserUpdate) -> User:
    user = get_user(db, user_id)
    updates = payload.model_dump(exclude_unset=True)
    if updates.get("email") is not None:
        updates["email"] = _normalize_email(updates["email"])
        _check_email_free(db, updates["email"], exclude_id=user.id)
    if updates.get("role") is not None:
        updates["role"] = _parse_role(updates["role"])
    for field, value in updates.items():
        if value is not None:
            setattr(user, field, value)
    db.commit()
    db.refresh(user)
    logger.info("Updated user %s fields %s", user.id, sorted(updates))
    return user


def reset_password(db: Session, user_id: str, password: str) -> None:
    user = get_user(db, user_id)
    user.password_hash = hash_password(password)
    db.commit()
    logger.info("Password reset for user %s", user.id)


def get_permissions(db: Session, user_id: str) -> list[dict]:
    """Effective permissions; a SUPER_ADMIN holds every feature."""
    user = get_user(db, user_id)
    if user.role == UserRole.SUPER_ADMIN:
        return [{"feature": f.value, "can_read": True, "can_write": True} for f in Feature]
    return [
        {"feature": p.feature.value, "can_read": p.can_read, "can_write": p.can_write}
        for p in sorted(user.permissions, key=lambda p: p.feature.value)
    ]


def set_permissions(db: Session, user_id: str, permissions: list[PermissionIn]) -> list[dict]:
    user = get_user(db, user_id)
    if user.role == UserRole.SUPER_ADMIN:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Super admin permissions cannot be modified",
        )

    existing = {p.feature: p for p in user.permissions}
    for item in permissions:
        feature = _parse_feature(item.feature)
        row = existing.get(feature)
        if row is None:
            row = UserPermission(user_id=user.id, feature=feature)
            user.permissions.append(row)
            existing[feature] = row
        row.can_read = item.can_read or item.can_write
        row.can_write = item.can_write
    db.commit()
    logger.info("Updated %d permission(s) for user %s", len(permissions), user.id)
    return get_permissions(db, user_id)
