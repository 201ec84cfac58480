from typing import Any, Optional
from datetime import datetime
from app.models.work_order import WorkOrderStatus
from app.schemas.base import CamelModel


class WorkOrderCreate(CamelModel):
    issue: Any = None
    assignee: Any = None
    status: Any = None
    eta: Optional[datetime] = None
    notes: Any = None


class WorkOrderUpdate(CamelModel):
    status: Any = None
    eta: Optional[datetime] = None
    notes: Any = None
    assignee: Any = None


class WorkOrderOut(CamelModel):
    id: int
    issue_id: int
    assignee_id: Optional[int] = None
    assigned_by_id: Optional[int] = None
    status: WorkOrderStatus
    eta: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
