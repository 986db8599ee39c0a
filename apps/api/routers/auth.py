"""
Authentication API endpoints.

Provides:
- Sign-up (email/password)
- Login (JWT token generation)
- Current user profile
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
import logging

from core.auth import get_current_user
from core.config import settings
from core.database import get_db
from core.exceptions import ConflictError, UnauthorizedError, ValidationError
from core.security import hash_password, issue_token, password_matches
from models import User
from schemas import LoginRequest, SignupRequest, SignupResponse, TokenResponse, UserResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def _user_response(user: User) -> UserResponse:
    return UserResponse(id=user.id, name=user.display_name, email=user.email, image=user.image)


@router.post("/signup", response_model=SignupResponse, status_code=status.HTTP_201_CREATED)
def signup(
    user_data: SignupRequest,
    db: Session = Depends(get_db)
):
    """
    Register a new user account.

    The password hash is stored, never returned.
    """
    email = normalize_email(user_data.email)

    if len(user_data.password) < settings.PASSWORD_MIN_LENGTH:
        raise ValidationError(
            f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters",
            fields=["password"],
        )

    existing = db.query(User).filter(User.email == email).first()
    if existing:
        raise ConflictError("User with this email already exists")

    user = User(
        email=email,
        password_hash=hash_password(user_data.password),
        display_name=user_data.name.strip(),
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # lost a race with a concurrent signup for the same email
        db.rollback()
        raise ConflictError("User with this email already exists")
    db.refresh(user)

    logger.info("User signed up", extra={"extra_fields": {"user_id": str(user.id)}})
    return SignupResponse(user=_user_response(user), message="User created successfully")


@router.post("/login", response_model=TokenResponse)
def login(
    credentials: LoginRequest,
    db: Session = Depends(get_db)
):
    """Verify email/password and issue a bearer token carrying the user id as subject."""
    email = normalize_email(credentials.email)
    user = db.query(User).filter(User.email == email).first()

    if not user or not password_matches(credentials.password, user.password_hash):
        logger.info("Failed login attempt")
        raise UnauthorizedError("Invalid email or password")

    issued = issue_token(user.id)
    return TokenResponse(
        access_token=issued.access_token,
        token_type="bearer",
        expires_in=issued.expires_in,
    )


@router.get("/me", response_model=UserResponse)
def get_current_user_info(
    current_user: User = Depends(get_current_user)
):
    """Get current authenticated user information."""
    return _user_response(current_user)
