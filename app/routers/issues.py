# File: app/routers/issues.py
from fastapi import APIRouter, Body, Depends, File, Query, Request, Response, UploadFile
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import datetime
from app.db.session import get_db
from app.core.errors import AuthorizationError, ValidationError
from app.core.ratelimit import limiter
from app.core.config import settings
from app.core.security import get_current_user, request_meta, require_elevated, RequestMeta
from app.models.issue import Issue
from app.models.user import User, ADMIN_ROLES
from app.schemas.issue import (
    IssueCreate,
    IssueOut,
    IssueDetailOut,
    IssueCommentOut,
    IssueStatusPatch,
    PaginatedIssuesOut,
)
from app.schemas.comment import CommentCreate, CommentOut
from app.services import issue_lifecycle as lifecycle
from app.services import comments as comment_service
from app.services import storage

router = APIRouter(prefix="/issues", tags=["issues"])


def _split(raw: Optional[str]) -> list[str]:
    return [s.strip() for s in (raw or "").split(",") if s.strip()]

def _ensure_can_edit(issue: Issue, user: User) -> None:
    if not (user.is_elevated or issue.reporter_id == user.id):
        raise AuthorizationError("Only the reporter or staff can modify this issue")


@router.post("", response_model=IssueOut, status_code=201)
@limiter.limit(settings.rate_limit_create_issue)
def create_issue(
    request: Request,
    body: IssueCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    meta: RequestMeta = Depends(request_meta),
):
    return lifecycle.create_issue(
        db,
        current_user.id,
        title=body.title,
        type=body.type,
        location=body.location,
        priority=body.priority,
        description=body.description,
        photos=body.photos,
        tags=body.tags,
        meta=meta,
    )


@router.get("", response_model=PaginatedIssuesOut)
def list_issues(
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
    status: Optional[str] = Query(default=None, description="Comma-separated list of statuses"),
    type: Optional[str] = Query(default=None, description="Comma-separated list of types"),
    q: Optional[str] = Query(default=None),
    assigned_to: Optional[int] = Query(default=None, alias="assignedTo"),
    reporter: Optional[int] = Query(default=None),
    after: Optional[datetime] = Query(default=None),
    before: Optional[datetime] = Query(default=None),
    lng: Optional[float] = Query(default=None),
    lat: Optional[float] = Query(default=None),
    max_distance: Optional[float] = Query(default=None, alias="maxDistance", description="meters"),
    page: int = Query(default=1),
    limit: int = Query(default=lifecycle.DEFAULT_LIMIT),
):
    result = lifecycle.list_issues(db, lifecycle.IssueFilter(
        statuses=_split(status),
        types=_split(type),
        assigned_to_id=assigned_to,
        reporter_id=reporter,
        after=after,
        before=before,
        q=q,
        lng=lng,
        lat=lat,
        max_distance=max_distance,
        page=page,
        limit=limit,
    ))
    return {"items": result.items, "count": result.count, "page": result.page, "limit": result.limit}


@router.get("/{issue_id}", response_model=IssueDetailOut)
def get_issue(
    issue_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    issue = lifecycle.get_issue(db, issue_id)
    comments = comment_service.list_comments(db, issue_id, include_internal=current_user.is_elevated)

    author_ids = {c.author_id for c in comments if c.author_id}
    authors: dict[int, User] = {}
    if author_ids:
        for u in db.query(User).filter(User.id.in_(author_ids)):
            authors[u.id] = u

    out = IssueDetailOut.model_validate(issue)
    out.comments = [
        IssueCommentOut(
            id=c.id,
            text=c.body,
            author_id=c.author_id,
            author_name=authors[c.author_id].name if c.author_id in authors else None,
            is_internal=c.is_internal,
            created_at=c.created_at,
        )
        for c in comments
    ]
    return out


@router.put("/{issue_id}", response_model=IssueOut)
def update_issue(
    issue_id: int,
    body: dict = Body(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    meta: RequestMeta = Depends(request_meta),
):
    _ensure_can_edit(lifecycle.get_issue(db, issue_id), current_user)
    return lifecycle.update_fields(db, issue_id, current_user.id, body, meta=meta)


@router.patch("/{issue_id}/status", response_model=IssueOut)
def change_status(
    issue_id: int,
    body: IssueStatusPatch,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_elevated),
    meta: RequestMeta = Depends(request_meta),
):
    return lifecycle.change_status(db, issue_id, current_user.id, body.status, body.note, meta=meta)


@router.delete("/{issue_id}", status_code=204)
def delete_issue(
    issue_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    meta: RequestMeta = Depends(request_meta),
):
    issue = lifecycle.get_issue(db, issue_id)
    if current_user.role not in ADMIN_ROLES and issue.reporter_id != current_user.id:
        raise AuthorizationError("Only the reporter or an admin can delete this issue")
    lifecycle.soft_delete(db, issue_id, current_user.id, meta=meta)
    return Response(status_code=204)


@router.post("/{issue_id}/photos", response_model=IssueOut, status_code=201)
def upload_photos(
    issue_id: int,
    files: List[UploadFile] = File(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    meta: RequestMeta = Depends(request_meta),
):
    issue = lifecycle.get_issue(db, issue_id)
    _ensure_can_edit(issue, current_user)
    if len(files) > storage.MAX_FILES:
        raise ValidationError(f"Max {storage.MAX_FILES} images")

    photos = []
    for f in files:
        if f.content_type not in storage.ALLOWED:
            raise ValidationError("Unsupported image type")
        data = f.file.read()
        if len(data) > storage.MAX_BYTES:
            raise ValidationError("Image exceeds 5MB")
        key = storage.make_object_key(issue.id, f.filename or "upload.jpg")
        url = storage.upload_image(data, f.content_type, key)
        photos.append({
            "storage": storage.storage_kind(),
            "key": key,
            "url": url,
            "contentType": f.content_type,
            "size": len(data),
        })
    return lifecycle.add_photos(db, issue_id, current_user.id, photos, meta=meta)


@router.post("/{issue_id}/comments", response_model=CommentOut, status_code=201)
def add_comment(
    issue_id: int,
    body: CommentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    meta: RequestMeta = Depends(request_meta),
):
    if body.is_internal and not current_user.is_elevated:
        raise AuthorizationError("Only staff can post internal comments")
    return comment_service.add_comment(
        db,
        issue_id,
        current_user.id,
        body.body,
        attachments=body.attachments,
        is_internal=body.is_internal,
        meta=meta,
    )


@router.get("/{issue_id}/comments", response_model=List[CommentOut])
def list_comments(
    issue_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return comment_service.list_comments(db, issue_id, include_internal=current_user.is_elevated)
