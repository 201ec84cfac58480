"""
Work orders.

Their status has its own lifecycle and never touches the parent issue's
status. ``started_at`` and ``completed_at`` are stamped the first time the
order enters IN_PROGRESS and DONE respectively.
"""
import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from app.core.errors import NotFoundError, ValidationError
from app.core.security import RequestMeta
from app.models.audit import AuditAction, EntityKind
from app.models.issue import utcnow
from app.models.user import User
from app.models.work_order import WorkOrder, WorkOrderStatus
from app.services import audit
from app.services.issue_lifecycle import get_issue, parse_enum

logger = logging.getLogger(__name__)

MAX_NOTES = 4000
UPDATABLE_FIELDS = ("status", "eta", "notes", "assignee")

def _check_assignee(db: Session, assignee_id: Any) -> int:
    if not isinstance(assignee_id, int) or isinstance(assignee_id, bool) or not db.get(User, assignee_id):
        raise ValidationError("Assignee not found")
    return assignee_id

def _clean_notes(notes: Any) -> Optional[str]:
    if notes is None:
        return None
    if not isinstance(notes, str):
        raise ValidationError("notes must be a string")
    notes = notes.strip()
    if len(notes) > MAX_NOTES:
        raise ValidationError(f"notes must be at most {MAX_NOTES} characters")
    return notes or None

def _stamp(wo: WorkOrder, status: WorkOrderStatus) -> None:
    wo.status = status
    if status == WorkOrderStatus.IN_PROGRESS and wo.started_at is None:
        wo.started_at = utcnow()
    elif status == WorkOrderStatus.DONE and wo.completed_at is None:
        wo.completed_at = utcnow()

def get_work_order(db: Session, work_order_id: int) -> WorkOrder:
    wo = db.get(WorkOrder, work_order_id)
    if not wo:
        raise NotFoundError("Work order", work_order_id)
    return wo

def create_work_order(
    db: Session,
    actor_id: int,
    *,
    issue_id: Any,
    assignee_id: Any,
    status: Any = None,
    eta: Optional[datetime] = None,
    notes: Any = None,
    meta: Optional[RequestMeta] = None,
) -> WorkOrder:
    if not isinstance(issue_id, int) or isinstance(issue_id, bool):
        raise ValidationError("issue is required")
    get_issue(db, issue_id)
    assignee_id = _check_assignee(db, assignee_id)
    wo_status = parse_enum(WorkOrderStatus, status, "Invalid status") if status is not None else WorkOrderStatus.ASSIGNED

    wo = WorkOrder(
        issue_id=issue_id,
        assignee_id=assignee_id,
        assigned_by_id=actor_id,
        eta=eta,
        notes=_clean_notes(notes),
        created_at=utcnow(),
    )
    _stamp(wo, wo_status)
    db.add(wo)
    db.commit()
    db.refresh(wo)

    audit.record(
        db,
        actor_id=actor_id,
        action=AuditAction.WORKORDER_CREATED,
        entity_kind=EntityKind.WorkOrder,
        entity_id=wo.id,
        details={"issue": wo.issue_id, "assignee": wo.assignee_id},
        meta=meta,
    )
    logger.info("work order %s created for issue %s by user %s", wo.id, issue_id, actor_id)
    return wo

def update_work_order(
    db: Session,
    work_order_id: int,
    actor_id: int,
    fields: dict,
    meta: Optional[RequestMeta] = None,
) -> WorkOrder:
    """``fields`` holds only the keys the caller sent; ``eta`` is already parsed."""
    wo = get_work_order(db, work_order_id)

    changes: dict[str, Any] = {}
    if "status" in fields:
        changes["status"] = parse_enum(WorkOrderStatus, fields["status"], "Invalid status")
    if "eta" in fields:
        changes["eta"] = fields["eta"]
    if "notes" in fields:
        changes["notes"] = _clean_notes(fields["notes"])
    if "assignee" in fields:
        changes["assignee_id"] = _check_assignee(db, fields["assignee"])

    for attr, value in changes.items():
        if attr == "status":
            _stamp(wo, value)
        else:
            setattr(wo, attr, value)
    wo.updated_at = utcnow()
    db.commit()
    db.refresh(wo)

    audit.record(
        db,
        actor_id=actor_id,
        action=AuditAction.WORKORDER_UPDATED,
        entity_kind=EntityKind.WorkOrder,
        entity_id=wo.id,
        details={"fields": [k for k in UPDATABLE_FIELDS if k in fields]},
        meta=meta,
    )
    logger.info("work order %s updated by user %s", wo.id, actor_id)
    return wo

def list_work_orders(
    db: Session,
    assignee_id: Optional[int] = None,
    issue_id: Optional[int] = None,
) -> list[WorkOrder]:
    q = db.query(WorkOrder)
    if assignee_id is not None:
        q = q.filter(WorkOrder.assignee_id == assignee_id)
    if issue_id is not None:
        q = q.filter(WorkOrder.issue_id == issue_id)
    return q.order_by(WorkOrder.created_at.desc(), WorkOrder.id.desc()).all()
