"""
Issue lifecycle.

Owns creation, field updates, status transitions, soft deletion and the
filtered listing of issues. Every mutation commits the issue first and then
appends an audit record through ``app.services.audit``; the two writes are
independent, and errors from the database propagate to the caller unchanged.

The acting user is always passed explicitly as ``actor_id``.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import NotFoundError, ValidationError
from app.core.security import RequestMeta
from app.models.attachment import Attachment, StorageKind
from app.models.audit import AuditAction, EntityKind
from app.models.issue import Issue, IssueStatusEvent, IssueTag, IssueStatus, IssueType, IssuePriority, utcnow
from app.models.user import User
from app.services import audit
from app.services.geo import haversine, bounding_box

logger = logging.getLogger(__name__)

MAX_TITLE = 140
MAX_DESCRIPTION = 5000
MAX_NOTE = 2000
MAX_TAG = 60
DEFAULT_LIMIT = 20
MAX_LIMIT = 100

# Wire name -> what the update applies to. Anything else is ignored.
UPDATABLE_FIELDS = ("title", "description", "type", "priority", "location", "tags", "assignedTo")

# Used only when STRICT_STATUS_TRANSITIONS is on. Re-entering the current
# status is always accepted.
ALLOWED_TRANSITIONS = {
    IssueStatus.OPEN: {IssueStatus.IN_PROGRESS, IssueStatus.REJECTED, IssueStatus.CLOSED},
    IssueStatus.IN_PROGRESS: {IssueStatus.OPEN, IssueStatus.RESOLVED, IssueStatus.REJECTED},
    IssueStatus.RESOLVED: {IssueStatus.CLOSED, IssueStatus.IN_PROGRESS},
    IssueStatus.REJECTED: {IssueStatus.OPEN},
    IssueStatus.CLOSED: set(),
}


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------

def parse_enum(enum_cls, value: Any, message: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except (ValueError, TypeError):
        raise ValidationError(message, details={"value": value})

def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)

def _pick(d: dict, camel: str, snake: str, default=None):
    if camel in d:
        return d[camel]
    return d.get(snake, default)

def _clean_title(title: Any) -> str:
    if not isinstance(title, str) or not title.strip():
        raise ValidationError("Title is required")
    title = title.strip()
    if len(title) > MAX_TITLE:
        raise ValidationError(f"Title must be at most {MAX_TITLE} characters")
    return title

def _clean_description(description: Any) -> str:
    if description is None:
        return ""
    if not isinstance(description, str):
        raise ValidationError("Description must be a string")
    description = description.strip()
    if len(description) > MAX_DESCRIPTION:
        raise ValidationError(f"Description must be at most {MAX_DESCRIPTION} characters")
    return description

def _optional_text(d: dict, key: str, max_len: int) -> Optional[str]:
    val = d.get(key)
    if val is None:
        return None
    if not isinstance(val, str):
        raise ValidationError(f"location.{key} must be a string")
    val = val.strip()
    if len(val) > max_len:
        raise ValidationError(f"location.{key} must be at most {max_len} characters")
    return val or None

def clean_location(location: Any) -> dict:
    """Return column values for a ``{geo: {coordinates: [lng, lat]}, ...}`` location."""
    if not isinstance(location, dict) or not isinstance(location.get("geo"), dict):
        raise ValidationError("Valid location with coordinates is required")
    geo = location["geo"]
    if geo.get("type", "Point") != "Point":
        raise ValidationError("location.geo.type must be Point")
    coords = geo.get("coordinates")
    if not isinstance(coords, (list, tuple)) or len(coords) != 2 or not all(_is_number(c) for c in coords):
        raise ValidationError("coordinates must be [lng, lat]")
    lng, lat = float(coords[0]), float(coords[1])
    if not (-180.0 <= lng <= 180.0 and -90.0 <= lat <= 90.0):
        raise ValidationError("coordinates out of range")
    return {
        "lng": lng,
        "lat": lat,
        "address": _optional_text(location, "address", 300),
        "suburb": _optional_text(location, "suburb", 120),
        "postcode": _optional_text(location, "postcode", 20),
        "council": _optional_text(location, "council", 120),
    }

def clean_tags(tags: Any) -> list[str]:
    if tags is None:
        return []
    if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
        raise ValidationError("tags must be a list of strings")
    cleaned = [t.strip() for t in tags if t.strip()]
    if any(len(t) > MAX_TAG for t in cleaned):
        raise ValidationError(f"tags must be at most {MAX_TAG} characters each")
    return cleaned

def build_attachments(items: Any, uploaded_by_id: int) -> list[Attachment]:
    """Validate attachment metadata dicts and turn them into (unsaved) rows."""
    if items is None:
        return []
    if not isinstance(items, list):
        raise ValidationError("attachments must be a list")
    out = []
    for item in items:
        if not isinstance(item, dict):
            raise ValidationError("attachment must be an object")
        key = item.get("key")
        if not isinstance(key, str) or not key.strip():
            raise ValidationError("attachment key is required")
        storage = parse_enum(StorageKind, item.get("storage", "local"), "Invalid attachment storage")
        dims = {}
        for name in ("size", "width", "height"):
            val = item.get(name)
            if val is not None and (not isinstance(val, int) or isinstance(val, bool) or val < 0):
                raise ValidationError(f"attachment {name} must be a non-negative integer")
            dims[name] = val
        caption = str(item.get("caption") or "").strip()
        if len(caption) > 300:
            raise ValidationError("attachment caption must be at most 300 characters")
        out.append(Attachment(
            storage=storage,
            key=key.strip(),
            url=item.get("url"),
            content_type=_pick(item, "contentType", "content_type"),
            caption=caption or None,
            uploaded_by_id=uploaded_by_id,
            **dims,
        ))
    return out


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------

def get_issue(db: Session, issue_id: int) -> Issue:
    """Fetch a live issue. Soft-deleted issues are reported as missing."""
    issue = db.get(Issue, issue_id)
    if not issue or issue.is_deleted:
        raise NotFoundError("Issue", issue_id)
    return issue

def create_issue(
    db: Session,
    reporter_id: int,
    *,
    title: Any,
    type: Any,
    location: Any,
    priority: Any = None,
    description: Any = None,
    photos: Any = None,
    tags: Any = None,
    meta: Optional[RequestMeta] = None,
) -> Issue:
    title = _clean_title(title)
    if type is None:
        raise ValidationError("Valid issue type is required")
    issue_type = parse_enum(IssueType, type, "Valid issue type is required")
    loc = clean_location(location)
    prio = parse_enum(IssuePriority, priority, "Invalid priority") if priority is not None else IssuePriority.MEDIUM

    now = utcnow()
    issue = Issue(
        title=title,
        description=_clean_description(description),
        type=issue_type,
        priority=prio,
        status=IssueStatus.OPEN,
        reporter_id=reporter_id,
        tags=clean_tags(tags),
        opened_at=now,
        created_at=now,
        **loc,
    )
    issue.photos.extend(build_attachments(photos, reporter_id))
    db.add(issue)
    db.commit()
    db.refresh(issue)

    audit.record(
        db,
        actor_id=reporter_id,
        action=AuditAction.ISSUE_CREATED,
        entity_kind=EntityKind.Issue,
        entity_id=issue.id,
        details={"title": issue.title, "type": issue.type.value},
        meta=meta,
    )
    logger.info("issue %s created by user %s", issue.id, reporter_id,
                extra={"issue_id": issue.id, "actor_id": reporter_id, "action": "create"})
    return issue

def change_status(
    db: Session,
    issue_id: int,
    actor_id: int,
    new_status: Any,
    note: Any = None,
    meta: Optional[RequestMeta] = None,
) -> Issue:
    issue = get_issue(db, issue_id)
    status = parse_enum(IssueStatus, new_status, "Invalid status")

    if settings.strict_status_transitions and status != issue.status:
        if status not in ALLOWED_TRANSITIONS[issue.status]:
            raise ValidationError(f"Cannot move issue from {issue.status.value} to {status.value}")

    if note is not None and not isinstance(note, str):
        raise ValidationError("note must be a string")
    note = (note or "").strip()
    if len(note) > MAX_NOTE:
        raise ValidationError(f"note must be at most {MAX_NOTE} characters")
    note = note or None

    now = utcnow()
    if note and not settings.status_note_separate_entry:
        issue.transition_to(status, actor_id, now, note=note)
    else:
        issue.transition_to(status, actor_id, now)
        if note:
            issue.status_history.append(
                IssueStatusEvent(status=status, note=note, actor_id=actor_id, timestamp=now)
            )
    db.commit()
    db.refresh(issue)

    audit.record(
        db,
        actor_id=actor_id,
        action=AuditAction.ISSUE_STATUS_CHANGED,
        entity_kind=EntityKind.Issue,
        entity_id=issue.id,
        details={"status": status.value, "note": note},
        meta=meta,
    )
    logger.info("issue %s -> %s by user %s", issue.id, status.value, actor_id,
                extra={"issue_id": issue.id, "actor_id": actor_id, "action": "status"})
    return issue

def update_fields(
    db: Session,
    issue_id: int,
    actor_id: int,
    fields: dict,
    meta: Optional[RequestMeta] = None,
) -> Issue:
    """Apply the allow-listed keys of ``fields``; other keys are ignored."""
    issue = get_issue(db, issue_id)
    if not isinstance(fields, dict):
        raise ValidationError("Request body must be an object")

    updated = [k for k in UPDATABLE_FIELDS if k in fields]
    # validate everything before touching the row
    changes: dict[str, Any] = {}
    for key in updated:
        value = fields[key]
        if key == "title":
            changes["title"] = _clean_title(value)
        elif key == "description":
            changes["description"] = _clean_description(value)
        elif key == "type":
            changes["type"] = parse_enum(IssueType, value, "Valid issue type is required")
        elif key == "priority":
            changes["priority"] = parse_enum(IssuePriority, value, "Invalid priority")
        elif key == "location":
            changes.update(clean_location(value))
        elif key == "tags":
            changes["tags"] = clean_tags(value)
        elif key == "assignedTo":
            if value is not None:
                if not isinstance(value, int) or isinstance(value, bool) or not db.get(User, value):
                    raise ValidationError("Assignee not found")
            changes["assigned_to_id"] = value

    for attr, value in changes.items():
        setattr(issue, attr, value)
    issue.updated_at = utcnow()
    db.commit()
    db.refresh(issue)

    audit.record(
        db,
        actor_id=actor_id,
        action=AuditAction.ISSUE_UPDATED,
        entity_kind=EntityKind.Issue,
        entity_id=issue.id,
        details={"updatedFields": updated},
        meta=meta,
    )
    logger.info("issue %s updated by user %s: %s", issue.id, actor_id, ",".join(updated) or "-",
                extra={"issue_id": issue.id, "actor_id": actor_id, "action": "update"})
    return issue

def add_photos(
    db: Session,
    issue_id: int,
    actor_id: int,
    photos: list[dict],
    meta: Optional[RequestMeta] = None,
) -> Issue:
    issue = get_issue(db, issue_id)
    rows = build_attachments(photos, actor_id)
    issue.photos.extend(rows)
    db.commit()
    db.refresh(issue)

    audit.record(
        db,
        actor_id=actor_id,
        action=AuditAction.ISSUE_PHOTO_ADDED,
        entity_kind=EntityKind.Issue,
        entity_id=issue.id,
        details={"keys": [r.key for r in rows]},
        meta=meta,
    )
    return issue

def soft_delete(db: Session, issue_id: int, actor_id: int, meta: Optional[RequestMeta] = None) -> None:
    """Hide the issue. Comments and work orders are left untouched."""
    issue = get_issue(db, issue_id)
    issue.is_deleted = True
    db.commit()

    audit.record(
        db,
        actor_id=actor_id,
        action=AuditAction.ISSUE_DELETED,
        entity_kind=EntityKind.Issue,
        entity_id=issue_id,
        meta=meta,
    )
    logger.info("issue %s deleted by user %s", issue_id, actor_id,
                extra={"issue_id": issue_id, "actor_id": actor_id, "action": "delete"})


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

@dataclass
class IssueFilter:
    statuses: list[str] = field(default_factory=list)
    types: list[str] = field(default_factory=list)
    assigned_to_id: Optional[int] = None
    reporter_id: Optional[int] = None
    after: Optional[datetime] = None
    before: Optional[datetime] = None
    q: Optional[str] = None
    lng: Optional[float] = None
    lat: Optional[float] = None
    max_distance: Optional[float] = None
    page: int = 1
    limit: int = DEFAULT_LIMIT

    @property
    def has_proximity(self) -> bool:
        return self.lng is not None and self.lat is not None and self.max_distance is not None

@dataclass
class IssuePage:
    items: list[Issue]
    count: int
    page: int
    limit: int

def _enum_members(enum_cls, raw: list[str]) -> list:
    out = []
    for value in raw:
        try:
            out.append(enum_cls(value.strip().upper()))
        except ValueError:
            # unknown values match nothing
            pass
    return out

def _as_utc(dt: datetime) -> datetime:
    return dt.astimezone(timezone.utc) if dt.tzinfo else dt

def _like(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"

def _filtered_query(db: Session, flt: IssueFilter):
    q = db.query(Issue).filter(Issue.is_deleted.is_(False))

    if flt.statuses:
        q = q.filter(Issue.status.in_(_enum_members(IssueStatus, flt.statuses)))
    if flt.types:
        q = q.filter(Issue.type.in_(_enum_members(IssueType, flt.types)))
    if flt.assigned_to_id is not None:
        q = q.filter(Issue.assigned_to_id == flt.assigned_to_id)
    if flt.reporter_id is not None:
        q = q.filter(Issue.reporter_id == flt.reporter_id)
    if flt.after is not None:
        q = q.filter(Issue.created_at >= _as_utc(flt.after))
    if flt.before is not None:
        q = q.filter(Issue.created_at <= _as_utc(flt.before))

    # any term in title, description or tags
    terms = (flt.q or "").split()
    if terms:
        q = q.filter(or_(*[
            or_(
                Issue.title.ilike(_like(t), escape="\\"),
                Issue.description.ilike(_like(t), escape="\\"),
                Issue.tag_rows.any(IssueTag.name.ilike(_like(t), escape="\\")),
            )
            for t in terms
        ]))
    return q

def list_issues(db: Session, flt: IssueFilter) -> IssuePage:
    if flt.page < 1:
        raise ValidationError("page must be >= 1")
    if flt.limit < 1:
        raise ValidationError("limit must be >= 1")
    limit = min(flt.limit, MAX_LIMIT)
    offset = (flt.page - 1) * limit

    q = _filtered_query(db, flt)

    if not flt.has_proximity:
        count = q.count()
        items = (
            q.order_by(Issue.created_at.desc(), Issue.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return IssuePage(items=items, count=count, page=flt.page, limit=limit)

    if not (-180.0 <= flt.lng <= 180.0 and -90.0 <= flt.lat <= 90.0):
        raise ValidationError("coordinates out of range")
    if flt.max_distance <= 0:
        raise ValidationError("maxDistance must be positive")

    # bounding box in SQL, exact distance here; nearest first
    min_lat, max_lat, min_lng, max_lng = bounding_box(flt.lat, flt.lng, flt.max_distance)
    q = q.filter(Issue.lat >= min_lat, Issue.lat <= max_lat)
    if min_lng is not None:
        q = q.filter(Issue.lng >= min_lng, Issue.lng <= max_lng)

    hits = []
    for row in q.with_entities(Issue.id, Issue.lat, Issue.lng).all():
        d = haversine(flt.lat, flt.lng, row.lat, row.lng)
        if d <= flt.max_distance:
            hits.append((d, row.id))
    hits.sort()

    page_ids = [issue_id for _, issue_id in hits[offset:offset + limit]]
    by_id = {}
    if page_ids:
        by_id = {i.id: i for i in db.query(Issue).filter(Issue.id.in_(page_ids)).all()}
    return IssuePage(
        items=[by_id[i] for i in page_ids],
        count=len(hits),
        page=flt.page,
        limit=limit,
    )
