"""Authentication and role/feature access control.

Bearer JWTs (python-jose) identify the session user; passwords are hashed with
passlib. Route guards are FastAPI dependencies:

- ``get_current_user``        — 401 without a valid token, 403 if deactivated
- ``require_permission(f, m)`` — feature read/write check, SUPER_ADMIN bypasses
- ``require_role(r)``          — USER < ADMIN < SUPER_ADMIN hierarchy
"""
import logging
from datetime import timedelta
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.hash import pbkdf2_sha256 as hasher
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.models.user import Feature, User, UserPermission, UserRole
from app.services.history_service import Actor
from app.timeutils import utcnow

logger = logging.getLogger(__name__)

bearer = HTTPBearer(auto_error=False)

ROLE_HIERARCHY = {
    UserRole.USER: 0,
    UserRole.ADMIN: 1,
    UserRole.SUPER_ADMIN: 2,
}


def hash_password(password: str) -> str:
    return hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    try:
        return hasher.verify(password, password_hash)
    except ValueError:
        return False


def create_access_token(user_id: str, expires_minutes: Optional[int] = None) -> str:
    expire = utcnow() + timedelta(minutes=expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {"sub": user_id, "exp": expire}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def _user_from_token(token: str, db: Session) -> Optional[User]:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        logger.debug("Rejected invalid bearer token")
        return None
    user_id = payload.get("sub")
    if not user_id:
        return None
    return db.query(User).filter(User.id == user_id).first()


def get_current_user(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the session user or raise 401/403."""
    if creds is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    user = _user_from_token(creds.credentials, db)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account disabled")
    return user


def get_optional_user(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """Session user for public endpoints that record the actor when known."""
    if creds is None:
        return None
    user = _user_from_token(creds.credentials, db)
    if user is None or not user.is_active:
        return None
    return user


def has_permission(db: Session, user: User, feature: Feature, mode: str = "read") -> bool:
    if not user.is_active:
        return False
    if user.role == UserRole.SUPER_ADMIN:
        return True
    permission = (
        db.query(UserPermission)
        .filter(UserPermission.user_id == user.id, UserPermission.feature == feature)
        .first()
    )
    if not permission:
        return False
    return permission.can_read if mode == "read" else permission.can_write


def require_permission(feature: Feature, mode: str = "read"):
    """Dependency factory: the session user must hold ``feature`` in ``mode``."""

    def _guard(user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> User:
        if not has_permission(db, user, feature, mode):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied to feature {feature.value}",
            )
        return user

    return _guard


def require_role(role: UserRole):
    """Dependency factory: the session user's role must be at least ``role``."""

    def _guard(user: User = Depends(get_current_user)) -> User:
        if ROLE_HIERARCHY[user.role] < ROLE_HIERARCHY[role]:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")
        return user

    return _guard


def actor_for(request: Request, user: Optional[User]) -> Actor:
    """History attribution for the current request."""
    return Actor(user_id=user.id if user else None, user_agent=request.headers.get("user-agent"))
