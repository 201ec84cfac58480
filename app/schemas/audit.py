from typing import Any, Optional
from datetime import datetime
from app.schemas.base import CamelModel


class AuditRecordOut(CamelModel):
    id: int
    actor_id: Optional[int] = None
    action: str
    entity_kind: str
    entity_id: int
    details: dict[str, Any] = {}
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime


class PaginatedAuditOut(CamelModel):
    items: list[AuditRecordOut]
    count: int
    page: int
    limit: int
