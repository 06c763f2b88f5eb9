from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from giftbox.api.auth import get_current_user, require_elevated
from giftbox.api.orders import notify_status_changed
from giftbox.database import get_db
from giftbox.models.user import User
from giftbox.schemas.order import OrderOut
from giftbox.schemas.production import (
    BoardOut,
    StageMove,
    TaskAssign,
    TaskCreate,
    TaskOut,
    TaskQualityUpdate,
    TaskStatusUpdate,
    TaskUpdate,
)
from giftbox.services import order_service, production_service

router = APIRouter(prefix="/production", tags=["Production"])


@router.get("/board", response_model=BoardOut)
def board(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return production_service.get_board(db)


@router.get("/stats")
def stats(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return production_service.production_stats(db)


@router.patch("/orders/{order_id}/stage", response_model=OrderOut)
def move_order(
    order_id: str,
    data: StageMove,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    before = order_service.get_order(db, order_id).version
    order = production_service.move_order(
        db, order_id, data.target, data.notes, user.username, data.expected_version, data.idempotency_key
    )
    if order.version != before:
        notify_status_changed(background_tasks, order)
    return order


@router.patch("/tasks/{task_id}/stage", response_model=OrderOut)
def move_task(
    task_id: str,
    data: StageMove,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    before = production_service.get_task(db, task_id).order.version
    order = production_service.move_task(
        db, task_id, data.target, data.notes, user.username, data.expected_version, data.idempotency_key
    )
    if order.version != before:
        notify_status_changed(background_tasks, order)
    return order


@router.post("/tasks", response_model=TaskOut, status_code=201)
def create_task(data: TaskCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return production_service.create_task(db, data, actor=user.username)


@router.get("/tasks", response_model=list[TaskOut])
def list_tasks(
    status: str | None = None,
    assigned_to: str | None = None,
    order_id: str | None = None,
    priority: str | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return production_service.list_tasks(
        db, status=status, assigned_to=assigned_to, order_id=order_id, priority=priority
    )


@router.get("/tasks/{task_id}", response_model=TaskOut)
def get_task(task_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return production_service.get_task(db, task_id)


@router.put("/tasks/{task_id}", response_model=TaskOut)
def update_task(
    task_id: str, data: TaskUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    return production_service.update_task(db, task_id, data)


@router.patch("/tasks/{task_id}/status", response_model=TaskOut)
def update_task_status(
    task_id: str, data: TaskStatusUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    return production_service.update_task_status(db, task_id, data.status)


@router.patch("/tasks/{task_id}/assign", response_model=TaskOut)
def assign_task(
    task_id: str, data: TaskAssign, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    return production_service.assign_task(db, task_id, data.assigned_to)


@router.patch("/tasks/{task_id}/quality", response_model=TaskOut)
def record_task_quality(
    task_id: str, data: TaskQualityUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    return production_service.record_task_quality(db, task_id, data.quality_status, data.quality_notes)


@router.delete("/tasks/{task_id}", status_code=204)
def delete_task(task_id: str, user: User = Depends(require_elevated), db: Session = Depends(get_db)):
    production_service.delete_task(db, task_id)
