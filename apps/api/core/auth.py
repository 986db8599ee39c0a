"""
Authentication dependencies.

Provides:
- resolve_user_id: bearer token -> user id, or None when unauthenticated
- get_current_user: FastAPI dependency that requires an authenticated user
- get_optional_user_id: same resolution, but anonymous callers get None

Handlers pass the resolved id explicitly to stores and tool executors;
nothing downstream reads the caller's identity from ambient state.
"""
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from core.database import get_db
from core.exceptions import UnauthorizedError
from core.security import token_subject
from models import User

# auto_error=False so missing credentials yield 401 (not 403)
security = HTTPBearer(auto_error=False)


def user_exists(db: Session, user_id: Optional[UUID]) -> bool:
    if user_id is None:
        return False
    return db.query(User.id).filter(User.id == user_id).first() is not None


def resolve_user_id(
    credentials: Optional[HTTPAuthorizationCredentials],
    db: Session,
) -> Optional[UUID]:
    """
    Resolve the authenticated user id for a request.

    Returns None ("unauthenticated") when credentials are missing, the token
    is invalid or expired, or the subject no longer exists.
    """
    if not credentials:
        return None
    user_id = token_subject(credentials.credentials)
    if not user_exists(db, user_id):
        return None
    return user_id


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> UUID:
    """Require an authenticated caller; return its id."""
    user_id = resolve_user_id(credentials, db)
    if user_id is None:
        raise UnauthorizedError("Not authenticated")
    return user_id


def get_current_user(
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> User:
    """Require an authenticated caller; return the User row."""
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise UnauthorizedError("User not found")
    return user


def get_optional_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> Optional[UUID]:
    """
    Resolve the caller without rejecting anonymous requests.

    Lets a handler validate its body first and decide on 401 afterwards.
    """
    return resolve_user_id(credentials, db)
