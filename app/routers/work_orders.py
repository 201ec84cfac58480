# File: app/routers/work_orders.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from app.db.session import get_db
from app.core.security import request_meta, require_elevated, RequestMeta
from app.models.user import User
from app.schemas.work_order import WorkOrderCreate, WorkOrderUpdate, WorkOrderOut
from app.services import work_orders as service

router = APIRouter(prefix="/workorders", tags=["workorders"])


@router.post("", response_model=WorkOrderOut, status_code=201)
def create_work_order(
    body: WorkOrderCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_elevated),
    meta: RequestMeta = Depends(request_meta),
):
    return service.create_work_order(
        db,
        current_user.id,
        issue_id=body.issue,
        assignee_id=body.assignee,
        status=body.status,
        eta=body.eta,
        notes=body.notes,
        meta=meta,
    )


@router.get("", response_model=List[WorkOrderOut], dependencies=[Depends(require_elevated)])
def list_work_orders(
    db: Session = Depends(get_db),
    assignee: Optional[int] = Query(default=None),
    issue: Optional[int] = Query(default=None),
):
    return service.list_work_orders(db, assignee_id=assignee, issue_id=issue)


@router.get("/{work_order_id}", response_model=WorkOrderOut, dependencies=[Depends(require_elevated)])
def get_work_order(work_order_id: int, db: Session = Depends(get_db)):
    return service.get_work_order(db, work_order_id)


def _update(work_order_id: int, body: WorkOrderUpdate, db: Session, user: User, meta: RequestMeta):
    fields = {name: getattr(body, name) for name in body.model_fields_set}
    return service.update_work_order(db, work_order_id, user.id, fields, meta=meta)


@router.put("/{work_order_id}", response_model=WorkOrderOut)
def replace_work_order(
    work_order_id: int,
    body: WorkOrderUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_elevated),
    meta: RequestMeta = Depends(request_meta),
):
    return _update(work_order_id, body, db, current_user, meta)


@router.patch("/{work_order_id}", response_model=WorkOrderOut)
def patch_work_order(
    work_order_id: int,
    body: WorkOrderUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_elevated),
    meta: RequestMeta = Depends(request_meta),
):
    return _update(work_order_id, body, db, current_user, meta)
