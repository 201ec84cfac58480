from pydantic import Field
from typing import Any, Optional, List
from datetime import datetime
from app.models.attachment import StorageKind
from app.models.issue import IssueStatus, IssueType, IssuePriority
from app.schemas.base import CamelModel


class IssueCreate(CamelModel):
    # loosely typed on purpose: the lifecycle service owns validation
    title: Any = None
    type: Any = None
    description: Any = None
    priority: Any = None
    location: Any = None
    photos: Any = None
    tags: Any = None


class IssueStatusPatch(CamelModel):
    status: Any = None
    note: Any = None


class GeoPoint(CamelModel):
    type: str = "Point"
    coordinates: List[float]


class LocationOut(CamelModel):
    geo: GeoPoint
    address: Optional[str] = None
    suburb: Optional[str] = None
    postcode: Optional[str] = None
    council: Optional[str] = None


class AttachmentOut(CamelModel):
    id: int
    storage: StorageKind
    key: str
    url: Optional[str] = None
    content_type: Optional[str] = None
    size: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None
    caption: Optional[str] = None
    uploaded_by_id: Optional[int] = None
    created_at: datetime


class StatusEventOut(CamelModel):
    status: IssueStatus
    note: Optional[str] = None
    actor_id: Optional[int] = None
    timestamp: datetime


class IssueOut(CamelModel):
    id: int
    title: str
    description: Optional[str] = None
    type: IssueType
    priority: IssuePriority
    status: IssueStatus

    reporter_id: Optional[int] = None
    assigned_to_id: Optional[int] = None

    location: LocationOut
    tags: List[str] = []
    photos: List[AttachmentOut] = []

    opened_at: datetime
    started_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None

    status_history: List[StatusEventOut] = []

    created_at: datetime
    updated_at: Optional[datetime] = None


class IssueCommentOut(CamelModel):
    id: int
    text: str
    author_id: Optional[int] = None
    author_name: Optional[str] = None
    is_internal: bool
    created_at: datetime


class IssueDetailOut(IssueOut):
    comments: List[IssueCommentOut] = []


class PaginatedIssuesOut(CamelModel):
    items: list[IssueOut]
    count: int
    page: int
    limit: int
