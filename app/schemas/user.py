# app/schemas/user.py
from datetime import datetime
from typing import Optional
from app.models.user import UserRole
from app.schemas.base import CamelModel

class UserOut(CamelModel):
    id: int
    name: str
    email: str
    address: Optional[str] = None
    role: UserRole
    is_active: bool
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None

class UserAdminUpdate(CamelModel):
    name: Optional[str] = None
    is_active: Optional[bool] = None
    role: Optional[str] = None
