"""
Passwords and bearer tokens.

Passwords are stored as bcrypt hashes. Bearer tokens are HS256 JWTs whose
only trusted claim is `sub`, the user id.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

import bcrypt
from jose import JWTError, jwt

from core.config import settings

TOKEN_ALGORITHM = "HS256"
MIN_SECRET_LENGTH = 32

if len(settings.SECRET_KEY) < MIN_SECRET_LENGTH:
    raise ValueError(f"SECRET_KEY must be at least {MIN_SECRET_LENGTH} characters")


@dataclass(frozen=True)
class IssuedToken:
    access_token: str
    expires_in: int  # seconds


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def password_matches(password: str, password_hash: Optional[str]) -> bool:
    """False for accounts without a usable bcrypt hash."""
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def issue_token(user_id: UUID, lifetime: Optional[timedelta] = None) -> IssuedToken:
    lifetime = lifetime or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    now = datetime.now(timezone.utc)
    claims = {"sub": str(user_id), "iat": now, "exp": now + lifetime}
    return IssuedToken(
        access_token=jwt.encode(claims, settings.SECRET_KEY, algorithm=TOKEN_ALGORITHM),
        expires_in=int(lifetime.total_seconds()),
    )


def token_subject(token: Optional[str]) -> Optional[UUID]:
    """User id carried by a well-signed, unexpired token; None for anything else."""
    if not token:
        return None
    try:
        claims = jwt.decode(token, settings.SECRET_KEY, algorithms=[TOKEN_ALGORITHM])
    except JWTError:
        return None
    try:
        return UUID(str(claims.get("sub")))
    except ValueError:
        return None
