# File: app/routers/auth.py

import logging
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.models.user import User, UserRole
from app.schemas.auth import RegisterIn, LoginIn, ProfileIn, AuthOut
from app.schemas.user import UserOut
from app.core.errors import AuthError, ValidationError
from app.core.ratelimit import limiter
from app.core.security import hash_password, verify_password, make_token, token_ttl, get_current_user
from app.core.config import settings
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

def _auth_out(user: User) -> AuthOut:
    return AuthOut(user=UserOut.model_validate(user), token=make_token(user), expires_in=token_ttl())

@router.post("/register", response_model=AuthOut, status_code=201)
@limiter.limit(settings.rate_limit_auth)
def register(request: Request, body: RegisterIn, db: Session = Depends(get_db)):
    email = body.email.strip().lower()
    if db.query(User).filter(User.email == email).first():
        raise ValidationError("User already exists")
    name = body.name.strip()
    if not name:
        raise ValidationError("name, email, and password are required")

    user = User(
        email=email,
        name=name,
        hashed_password=hash_password(body.password),
        role=UserRole.citizen,
        address=body.address,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("user %s registered", user.id)
    return _auth_out(user)

@router.post("/login", response_model=AuthOut)
@limiter.limit(settings.rate_limit_auth)
def login(request: Request, body: LoginIn, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == body.email.strip().lower()).first()
    if not user or not user.hashed_password:
        raise AuthError("Invalid email or password")
    if not verify_password(body.password, user.hashed_password):
        raise AuthError("Invalid email or password")
    if not user.is_active:
        raise AuthError("Account is deactivated")
    user.last_login = datetime.now(timezone.utc)
    db.commit()
    db.refresh(user)
    return _auth_out(user)

@router.get("/me", response_model=UserOut)
def me(current: User = Depends(get_current_user)):
    return current

@router.put("/profile", response_model=AuthOut)
def update_profile(
    body: ProfileIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if body.name is not None:
        if not body.name.strip():
            raise ValidationError("Name is required")
        user.name = body.name.strip()
    if body.email is not None:
        email = body.email.strip().lower()
        taken = db.query(User).filter(User.email == email, User.id != user.id).first()
        if taken:
            raise ValidationError("Email already in use")
        user.email = email
    if body.address is not None:
        user.address = body.address.strip() or None
    if body.password:
        user.hashed_password = hash_password(body.password)
    db.commit(); db.refresh(user)
    return _auth_out(user)
