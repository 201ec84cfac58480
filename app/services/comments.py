# app/services/comments.py
import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from app.core.errors import NotFoundError, ValidationError
from app.core.security import RequestMeta
from app.models.audit import AuditAction, EntityKind
from app.models.comment import Comment, MAX_COMMENT_LENGTH
from app.models.issue import Issue
from app.services import audit
from app.services.issue_lifecycle import get_issue, build_attachments

logger = logging.getLogger(__name__)

def add_comment(
    db: Session,
    issue_id: int,
    author_id: int,
    body: Any,
    attachments: Any = None,
    is_internal: bool = False,
    meta: Optional[RequestMeta] = None,
) -> Comment:
    if not isinstance(body, str) or not body.strip():
        raise ValidationError("Comment body is required")
    body = body.strip()
    if len(body) > MAX_COMMENT_LENGTH:
        raise ValidationError(f"Comment is too long (max {MAX_COMMENT_LENGTH} characters)")

    get_issue(db, issue_id)
    comment = Comment(
        issue_id=issue_id,
        author_id=author_id,
        body=body,
        is_internal=bool(is_internal),
    )
    comment.attachments.extend(build_attachments(attachments, author_id))
    db.add(comment)
    db.commit()
    db.refresh(comment)

    audit.record(
        db,
        actor_id=author_id,
        action=AuditAction.COMMENT_ADDED,
        entity_kind=EntityKind.Issue,
        entity_id=issue_id,
        details={"comment": comment.id, "isInternal": comment.is_internal},
        meta=meta,
    )
    logger.info("comment %s added to issue %s by user %s", comment.id, issue_id, author_id)
    return comment

def list_comments(db: Session, issue_id: int, include_internal: bool) -> list[Comment]:
    """Oldest first. Internal comments only when ``include_internal``.

    Comments of a soft-deleted issue stay readable here.
    """
    if not db.get(Issue, issue_id):
        raise NotFoundError("Issue", issue_id)
    q = db.query(Comment).filter(Comment.issue_id == issue_id)
    if not include_internal:
        q = q.filter(Comment.is_internal.is_(False))
    return q.order_by(Comment.created_at.asc(), Comment.id.asc()).all()
