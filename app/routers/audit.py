# File: app/routers/audit.py
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.core.security import require_admin
from app.schemas.audit import PaginatedAuditOut
from app.services import audit

router = APIRouter(prefix="/admin/audit", tags=["admin-audit"])

@router.get("", response_model=PaginatedAuditOut, dependencies=[Depends(require_admin)])
def list_audit(
    db: Session = Depends(get_db),
    entity_kind: Optional[str] = Query(default=None, alias="entityKind"),
    entity_id: Optional[int] = Query(default=None, alias="entityId"),
    actor: Optional[int] = Query(default=None),
    action: Optional[str] = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1),
):
    limit = min(limit, 100)
    items, count = audit.list_records(
        db,
        entity_kind=entity_kind,
        entity_id=entity_id,
        actor_id=actor,
        action=action,
        page=page,
        limit=limit,
    )
    return {"items": items, "count": count, "page": page, "limit": limit}
