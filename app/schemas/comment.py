from typing import Any, List, Optional
from datetime import datetime
from app.schemas.base import CamelModel
from app.schemas.issue import AttachmentOut


class CommentCreate(CamelModel):
    body: Any = None
    attachments: Any = None
    is_internal: bool = False


class CommentOut(CamelModel):
    id: int
    issue_id: int
    author_id: Optional[int] = None
    body: str
    attachments: List[AttachmentOut] = []
    is_internal: bool
    created_at: datetime
    updated_at: Optional[datetime] = None
