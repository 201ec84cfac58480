# File: app/schemas/auth.py

from pydantic import BaseModel, EmailStr, Field
from app.schemas.base import CamelModel
from app.schemas.user import UserOut

class RegisterIn(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    email: EmailStr
    password: str = Field(min_length=6, max_length=512)
    address: str | None = None

class LoginIn(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=512)

class ProfileIn(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=120)
    email: EmailStr | None = None
    address: str | None = None
    password: str | None = Field(default=None, min_length=6, max_length=512)

class AuthOut(CamelModel):
    user: UserOut
    token: str
    token_type: str = "bearer"
    expires_in: int
