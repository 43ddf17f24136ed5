import logging

from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.deps import ROLE_USER, get_current_principal
from app.core.errors import AuthError, ConflictError, NotFoundError
from app.core.security import hash_password, issue_access_token, verify_password
from app.db.session import get_db
from app.models.user import User
from app.schemas.auth import AuthOut, LoginIn, MeOut, RegisterIn, UserOut
from app.services.universal_query import base_query

router = APIRouter()
_LOG = logging.getLogger("app.auth")


def normalize_email(raw: str | None) -> str:
    return str(raw or "").strip().lower()


def get_active_user_by_email(db: Session, email: str) -> User | None:
    normalized = normalize_email(email)
    if not normalized:
        return None
    return base_query(db, User).filter(func.lower(User.email) == normalized).first()


def _user_out(user: User) -> UserOut:
    return UserOut(id=user.id, name=user.name, email=user.email, role=user.role)


def _token_for(user: User) -> str:
    return issue_access_token(user.id, user.email, user.role, settings.JWT_SECRET, settings.JWT_TTL_HOURS)


@router.post("/register", response_model=AuthOut, status_code=201)
def register(payload: RegisterIn, db: Session = Depends(get_db)):
    if db.query(User).filter(func.lower(User.email) == payload.email).first() is not None:
        raise ConflictError("Email already registered")
    user = User(
        name=payload.name.strip(),
        email=payload.email,
        password_hash=hash_password(payload.password),
        role=payload.role or ROLE_USER,
    )
    try:
        db.add(user)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Email already registered")
    db.refresh(user)
    _LOG.info("registered user id=%s role=%s", user.id, user.role)
    return AuthOut(message="User registered successfully", user=_user_out(user), token=_token_for(user))


@router.post("/login", response_model=AuthOut)
def login(payload: LoginIn, db: Session = Depends(get_db)):
    user = get_active_user_by_email(db, payload.email)
    if user is None or not verify_password(payload.password, user.password_hash):
        raise AuthError("Invalid credentials")
    return AuthOut(message="Login successful", user=_user_out(user), token=_token_for(user))


@router.get("/me", response_model=MeOut)
def me(principal: dict = Depends(get_current_principal), db: Session = Depends(get_db)):
    try:
        user_id = int(str(principal.get("sub") or "").strip())
    except ValueError:
        raise AuthError("Invalid or expired token")
    user = base_query(db, User).filter(User.id == user_id).first()
    if user is None:
        raise NotFoundError("User not found")
    return MeOut(user=_user_out(user))
