"""
Audit sink.

``record`` appends one AuditRecord and commits it on its own. It runs
after the entity write has already been committed, so a failure here
leaves the entity change in place with no matching audit row.

``list_records`` is the read side used by the admin reporting endpoint;
the lifecycle services never read audit rows.
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from app.core.security import RequestMeta
from app.models.audit import AuditRecord, AuditAction, EntityKind

logger = logging.getLogger(__name__)


def record(
    db: Session,
    *,
    actor_id: int,
    action: AuditAction,
    entity_kind: EntityKind,
    entity_id: int,
    details: Optional[dict] = None,
    meta: Optional[RequestMeta] = None,
) -> AuditRecord:
    meta = meta or RequestMeta()
    row = AuditRecord(
        actor_id=actor_id,
        action=action.value,
        entity_kind=entity_kind.value,
        entity_id=entity_id,
        details=details or {},
        ip=meta.ip,
        user_agent=(meta.user_agent or "")[:500] or None,
    )
    db.add(row)
    db.commit()
    logger.info(
        "audit %s %s/%s by user %s", action.value, entity_kind.value, entity_id, actor_id,
        extra={"action": action.value, "actor_id": actor_id},
    )
    return row


def list_records(
    db: Session,
    *,
    entity_kind: Optional[str] = None,
    entity_id: Optional[int] = None,
    actor_id: Optional[int] = None,
    action: Optional[str] = None,
    page: int = 1,
    limit: int = 50,
) -> tuple[list[AuditRecord], int]:
    q = db.query(AuditRecord)
    if entity_kind:
        q = q.filter(AuditRecord.entity_kind == entity_kind)
    if entity_id is not None:
        q = q.filter(AuditRecord.entity_id == entity_id)
    if actor_id is not None:
        q = q.filter(AuditRecord.actor_id == actor_id)
    if action:
        q = q.filter(AuditRecord.action == action)

    total = q.count()
    items = (
        q.order_by(AuditRecord.created_at.desc(), AuditRecord.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, total
