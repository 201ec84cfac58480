# app/core/security.py
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from dataclasses import dataclass
from typing import Optional
import time, jwt
from sqlalchemy.orm import Session
from app.core.config import settings
from app.core.errors import AuthError, AuthorizationError
from passlib.hash import bcrypt_sha256
from app.db.session import get_db
from app.models.user import User, UserRole

ALGO = "HS256"
bearer = HTTPBearer(auto_error=False)

def hash_password(raw: str) -> str:
    return bcrypt_sha256.hash(raw)

def verify_password(raw: str, hashed: str) -> bool:
    return bcrypt_sha256.verify(raw, hashed)

def token_ttl() -> int:
    return settings.jwt_ttl_days * 24 * 3600

def make_token(user: User) -> str:
    now = int(time.time())
    payload = {"sub": str(user.id), "role": user.role.value, "iat": now, "exp": now + token_ttl()}
    return jwt.encode(payload, settings.jwt_secret, algorithm=ALGO)

def _decode_token(creds: Optional[HTTPAuthorizationCredentials]) -> dict:
    if not creds:
        raise AuthError("Not authorized, no token")
    try:
        return jwt.decode(creds.credentials, settings.jwt_secret, algorithms=[ALGO])
    except jwt.ExpiredSignatureError:
        raise AuthError("Token expired")
    except jwt.InvalidTokenError:
        raise AuthError("Not authorized, token failed")

def get_current_user(creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
                     db: Session = Depends(get_db)) -> User:
    payload = _decode_token(creds)
    sub = payload.get("sub")
    if not sub or not str(sub).isdigit():
        raise AuthError("Invalid token payload")
    user = db.get(User, int(sub))
    if not user:
        raise AuthError("User not found")
    if not user.is_active:
        raise AuthError("Account is deactivated")
    return user

def require_role(*roles):
    role_values = [r.value if isinstance(r, UserRole) else r for r in roles]
    def _dep(user: User = Depends(get_current_user)):
        if user.role.value not in role_values:
            raise AuthorizationError("Insufficient role permissions")
        return user
    return _dep

require_elevated = require_role(UserRole.staff, UserRole.admin, UserRole.super_admin)
require_admin = require_role(UserRole.admin, UserRole.super_admin)

@dataclass
class RequestMeta:
    """Client details recorded alongside every audit entry."""
    ip: Optional[str] = None
    user_agent: Optional[str] = None

def request_meta(request: Request) -> RequestMeta:
    return RequestMeta(
        ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
