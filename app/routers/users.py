# File: app/routers/users.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.core.errors import NotFoundError, ValidationError
from app.core.security import require_admin
from app.models.user import User, UserRole
from app.schemas.user import UserOut, UserAdminUpdate

router = APIRouter(prefix="/admin/users", tags=["admin-users"])

@router.get("", response_model=list[UserOut], dependencies=[Depends(require_admin)])
def list_users(db: Session = Depends(get_db)):
    return db.query(User).order_by(User.id.desc()).all()

@router.put("/{user_id}", response_model=UserOut, dependencies=[Depends(require_admin)])
def update_user(user_id: int, body: UserAdminUpdate, db: Session = Depends(get_db)):
    u = db.get(User, user_id)
    if not u: raise NotFoundError("User", user_id)
    if u.role == UserRole.super_admin and body.is_active is False:
        raise ValidationError("Super admin cannot be disabled")
    if body.name is not None: u.name = body.name.strip() or u.name
    if body.is_active is not None: u.is_active = body.is_active
    if body.role is not None:
        if body.role not in [x.value for x in UserRole]: raise ValidationError("Bad role")
        u.role = UserRole(body.role)
    db.commit(); db.refresh(u)
    return u
