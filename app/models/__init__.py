# Import every model so Base.metadata knows all tables
from app.models.user import User, UserRole
from app.models.attachment import Attachment, StorageKind
from app.models.issue import Issue, IssueStatusEvent, IssueTag, IssueStatus, IssueType, IssuePriority
from app.models.comment import Comment
from app.models.work_order import WorkOrder, WorkOrderStatus
from app.models.audit import AuditRecord, AuditAction, EntityKind

__all__ = [
    "User", "UserRole",
    "Attachment", "StorageKind",
    "Issue", "IssueStatusEvent", "IssueTag", "IssueStatus", "IssueType", "IssuePriority",
    "Comment",
    "WorkOrder", "WorkOrderStatus",
    "AuditRecord", "AuditAction", "EntityKind",
]
