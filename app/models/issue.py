# File: app/models/issue.py
from __future__ import annotations
from datetime import datetime, timezone
from enum import Enum as PyEnum
from sqlalchemy import String, Text, Float, Enum, Boolean, DateTime, ForeignKey, Index, event, inspect
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship
from app.db.base import Base

class IssueType(PyEnum):
    POTHOLE = "POTHOLE"
    STREET_LIGHT = "STREET_LIGHT"
    GRAFFITI = "GRAFFITI"
    TRASH = "TRASH"
    WATER_LEAK = "WATER_LEAK"
    SIDEWALK = "SIDEWALK"
    SIGNAGE = "SIGNAGE"
    OTHER = "OTHER"

class IssueStatus(PyEnum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"
    REJECTED = "REJECTED"

class IssuePriority(PyEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

class IssueStatusEvent(Base):
    """One row of an issue's status history. Rows are only ever appended."""

    __tablename__ = "issue_status_events"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    issue_id: Mapped[int] = mapped_column(ForeignKey("issues.id", ondelete="CASCADE"), index=True, nullable=False)
    status: Mapped[IssueStatus] = mapped_column(Enum(IssueStatus), nullable=False)
    note: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    actor_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

class IssueTag(Base):
    """One tag of an issue, stored per row so search can match a whole element."""

    __tablename__ = "issue_tags"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    issue_id: Mapped[int] = mapped_column(ForeignKey("issues.id", ondelete="CASCADE"), index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(60), index=True, nullable=False)

class Issue(Base):
    __tablename__ = "issues"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(140), index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[IssueType] = mapped_column(Enum(IssueType), index=True, nullable=False)
    status: Mapped[IssueStatus] = mapped_column(Enum(IssueStatus), default=IssueStatus.OPEN, index=True)
    priority: Mapped[IssuePriority] = mapped_column(Enum(IssuePriority), default=IssuePriority.MEDIUM, index=True)

    reporter_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), index=True, nullable=True)
    assigned_to_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), index=True, nullable=True)

    lng: Mapped[float] = mapped_column(Float, nullable=False)
    lat: Mapped[float] = mapped_column(Float, nullable=False)
    address: Mapped[str | None] = mapped_column(String(300), nullable=True)
    suburb: Mapped[str | None] = mapped_column(String(120), nullable=True)
    postcode: Mapped[str | None] = mapped_column(String(20), nullable=True)
    council: Mapped[str | None] = mapped_column(String(120), nullable=True)

    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false", index=True)

    opened_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=utcnow, nullable=True)

    status_history: Mapped[list[IssueStatusEvent]] = relationship(
        order_by=IssueStatusEvent.id, cascade="all, delete-orphan", lazy="selectin"
    )
    photos: Mapped[list["Attachment"]] = relationship(
        "Attachment",
        order_by="Attachment.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    tag_rows: Mapped[list[IssueTag]] = relationship(
        order_by=IssueTag.id, cascade="all, delete-orphan", lazy="selectin"
    )

    @property
    def tags(self) -> list[str]:
        return [t.name for t in self.tag_rows]

    @tags.setter
    def tags(self, names: list[str]) -> None:
        self.tag_rows = [IssueTag(name=n) for n in names]

    @property
    def location(self) -> dict:
        return {
            "geo": {"type": "Point", "coordinates": [self.lng, self.lat]},
            "address": self.address,
            "suburb": self.suburb,
            "postcode": self.postcode,
            "council": self.council,
        }

    def transition_to(self, status: IssueStatus, actor_id: int, at: datetime | None = None,
                      note: str | None = None) -> IssueStatusEvent:
        """Set the status, append its history entry and stamp the phase timestamp.

        Status must only change through here after creation; a flush that
        changes it without a new history entry is refused. Phase timestamps are set
        the first time a phase is entered and never again.
        """
        at = at or utcnow()
        self.status = status
        entry = IssueStatusEvent(status=status, note=note, actor_id=actor_id, timestamp=at)
        self.status_history.append(entry)
        if status == IssueStatus.IN_PROGRESS and self.started_at is None:
            self.started_at = at
        elif status == IssueStatus.RESOLVED and self.resolved_at is None:
            self.resolved_at = at
        elif status == IssueStatus.CLOSED and self.closed_at is None:
            self.closed_at = at
        return entry

Index("ix_issues_lat_lng", Issue.lat, Issue.lng)
Index("ix_issues_type_status_priority", Issue.type, Issue.status, Issue.priority, Issue.opened_at)

@event.listens_for(Session, "before_flush")
def _require_status_history(session, flush_context, instances):
    """Refuse to flush a status change that has no new history entry for it."""
    for obj in session.dirty:
        if not isinstance(obj, Issue):
            continue
        if not inspect(obj).attrs.status.history.has_changes():
            continue
        fresh = [e for e in obj.status_history if e in session.new]
        if not any(e.status == obj.status for e in fresh):
            raise RuntimeError(
                f"issue {obj.id} status set to {obj.status.value} without a history entry; use transition_to()"
            )
