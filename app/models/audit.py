"""
Audit trail model.

AuditRecord rows are append-only: they are inserted by
``app.services.audit.record`` and never updated or deleted. The mapper
events below refuse any attempt to flush a change to an existing row.
"""
from __future__ import annotations
from datetime import datetime, timezone
from enum import Enum as PyEnum
from sqlalchemy import String, DateTime, ForeignKey, JSON, Index, event
from sqlalchemy.orm import Mapped, mapped_column
from app.db.base import Base

class AuditAction(PyEnum):
    ISSUE_CREATED = "ISSUE_CREATED"
    ISSUE_UPDATED = "ISSUE_UPDATED"
    ISSUE_STATUS_CHANGED = "ISSUE_STATUS_CHANGED"
    ISSUE_DELETED = "ISSUE_DELETED"
    ISSUE_PHOTO_ADDED = "ISSUE_PHOTO_ADDED"
    COMMENT_ADDED = "COMMENT_ADDED"
    WORKORDER_CREATED = "WORKORDER_CREATED"
    WORKORDER_UPDATED = "WORKORDER_UPDATED"

class EntityKind(PyEnum):
    Issue = "Issue"
    Comment = "Comment"
    WorkOrder = "WorkOrder"
    User = "User"

class AuditRecord(Base):
    __tablename__ = "audit_records"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    actor_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), index=True, nullable=True)
    action: Mapped[str] = mapped_column(String(60), index=True, nullable=False)
    entity_kind: Mapped[str] = mapped_column(String(20), nullable=False)
    entity_id: Mapped[int] = mapped_column(nullable=False)
    details: Mapped[dict] = mapped_column(JSON, default=dict)
    ip: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )

    def __repr__(self):
        return f"<AuditRecord {self.id}: {self.action} on {self.entity_kind}/{self.entity_id}>"

Index("ix_audit_entity", AuditRecord.entity_kind, AuditRecord.entity_id, AuditRecord.created_at)

@event.listens_for(AuditRecord, "before_update")
def _refuse_update(mapper, connection, target):
    raise RuntimeError("audit records are append-only")

@event.listens_for(AuditRecord, "before_delete")
def _refuse_delete(mapper, connection, target):
    raise RuntimeError("audit records are append-only")
