import logging
from datetime import date, datetime, timedelta

from sqlalchemy import func
from sqlalchemy.orm import Session

from giftbox.config import settings
from giftbox.database import atomic, utcnow
from giftbox.exceptions import InvalidArgumentError, NotFoundError
from giftbox.models.order import OPEN_STATUSES, Order, OrderStatus, Priority
from giftbox.models.production import ProductionTask, TaskStatus
from giftbox.models.quality import QualityStatus
from giftbox.models.user import User
from giftbox.schemas.production import TaskCreate, TaskUpdate
from giftbox.services import order_service

logger = logging.getLogger(__name__)

PRIORITY_RANK = {Priority.URGENT: 1, Priority.HIGH: 2, Priority.NORMAL: 3, Priority.LOW: 4}

ACTIVE_STAGES = (
    OrderStatus.DESIGNING,
    OrderStatus.APPROVED,
    OrderStatus.PRODUCTION,
    OrderStatus.QUALITY_CONTROL,
)


def _board_key(order: Order):
    return (
        PRIORITY_RANK[Priority(order.priority)],
        order.due_date is None,
        order.due_date or date.max,
    )


def get_board(db: Session) -> dict:
    """Open orders grouped by stage, most urgent first within each column."""
    orders = db.query(Order).filter(Order.status.in_(OPEN_STATUSES)).all()
    board: dict[str, list[Order]] = {s.value: [] for s in OPEN_STATUSES}
    for order in sorted(orders, key=_board_key):
        board[OrderStatus(order.status).value].append(order)
    return {"board": board, "total_active": len(orders)}


def move_order(
    db: Session,
    order_id: str,
    target_stage: str,
    notes: str = "",
    actor: str | None = None,
    expected_version: int | None = None,
    idempotency_key: str | None = None,
) -> Order:
    """Drag an order to another column. Dropping it on its own column is a no-op."""
    target = order_service.parse_status(target_stage)
    order = order_service.get_order(db, order_id)
    if order.status == target:
        return order
    return order_service.transition_order(
        db,
        order_id,
        target.value,
        note=notes,
        actor=actor,
        expected_version=expected_version,
        idempotency_key=idempotency_key,
    )


def move_task(
    db: Session,
    task_id: str,
    target_stage: str,
    notes: str = "",
    actor: str | None = None,
    expected_version: int | None = None,
    idempotency_key: str | None = None,
) -> Order:
    task = get_task(db, task_id)
    return move_order(db, task.order_id, target_stage, notes, actor, expected_version, idempotency_key)


def production_stats(db: Session) -> dict:
    now = utcnow()
    today = now.date()
    start_of_day = datetime.combine(today, datetime.min.time())
    stale_before = now - timedelta(days=settings.QC_STALE_DAYS)

    def count(*criteria) -> int:
        return db.query(func.count(Order.id)).filter(*criteria).scalar()

    distribution = dict(
        db.query(Order.status, func.count(Order.id)).group_by(Order.status).all()
    )
    return {
        "active_orders": count(Order.status.in_(ACTIVE_STAGES)),
        "completed_today": count(Order.status == OrderStatus.COMPLETED, Order.updated_at >= start_of_day),
        "pending_approval": count(Order.status == OrderStatus.DESIGNING),
        "quality_issues": count(Order.status == OrderStatus.QUALITY_CONTROL, Order.updated_at < stale_before),
        "overdue_orders": count(
            Order.due_date < today,
            Order.status.notin_((OrderStatus.COMPLETED, OrderStatus.CANCELLED)),
        ),
        "stage_distribution": {s.value: distribution.get(s, 0) for s in OrderStatus},
    }


# Tasks

def _check_user(db: Session, user_id: str | None) -> None:
    if user_id and not db.query(User.id).filter(User.id == user_id).first():
        raise NotFoundError("User", user_id)


def create_task(db: Session, data: TaskCreate, actor: str | None = None) -> ProductionTask:
    with atomic(db):
        order_service.get_order(db, data.order_id)
        _check_user(db, data.assigned_to)
        task = ProductionTask(
            order_id=data.order_id,
            title=data.title,
            description=data.description,
            assigned_to=data.assigned_to,
            due_date=data.due_date,
            priority=data.priority,
            created_by=actor,
        )
        db.add(task)
    db.refresh(task)
    logger.info("Created task '%s' for order %s", task.title, task.order_number)
    return task


def get_task(db: Session, task_id: str) -> ProductionTask:
    task = db.query(ProductionTask).filter(ProductionTask.id == task_id).first()
    if not task:
        raise NotFoundError("Task", task_id)
    return task


def list_tasks(
    db: Session,
    status: str | None = None,
    assigned_to: str | None = None,
    order_id: str | None = None,
    priority: str | None = None,
) -> list[ProductionTask]:
    q = db.query(ProductionTask)
    if status:
        q = q.filter(ProductionTask.status == _task_status(status))
    if assigned_to:
        q = q.filter(ProductionTask.assigned_to == assigned_to)
    if order_id:
        q = q.filter(ProductionTask.order_id == order_id)
    if priority:
        try:
            q = q.filter(ProductionTask.priority == Priority(priority))
        except ValueError:
            raise InvalidArgumentError(f"Unknown priority '{priority}'", priority=priority) from None
    return q.order_by(ProductionTask.due_date.is_(None), ProductionTask.due_date, ProductionTask.created_at).all()


def update_task(db: Session, task_id: str, data: TaskUpdate) -> ProductionTask:
    with atomic(db):
        task = get_task(db, task_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(task, field, value)
    db.refresh(task)
    return task


def _task_status(value: str) -> TaskStatus:
    try:
        return TaskStatus(value)
    except ValueError:
        raise InvalidArgumentError(f"Unknown task status '{value}'", status=value) from None


def update_task_status(db: Session, task_id: str, status: str) -> ProductionTask:
    new_status = _task_status(status)
    with atomic(db):
        task = get_task(db, task_id)
        task.status = new_status
        task.completed_at = utcnow() if new_status == TaskStatus.COMPLETED else None
    db.refresh(task)
    logger.info("Task '%s' is now %s", task.title, new_status.value)
    return task


def assign_task(db: Session, task_id: str, user_id: str | None) -> ProductionTask:
    with atomic(db):
        task = get_task(db, task_id)
        _check_user(db, user_id)
        task.assigned_to = user_id
    db.refresh(task)
    return task


def record_task_quality(db: Session, task_id: str, quality_status: str, quality_notes: str = "") -> ProductionTask:
    try:
        outcome = QualityStatus(quality_status)
    except ValueError:
        raise InvalidArgumentError(
            f"Unknown quality status '{quality_status}'", quality_status=quality_status
        ) from None
    with atomic(db):
        task = get_task(db, task_id)
        task.quality_status = outcome.value
        task.quality_notes = quality_notes
    db.refresh(task)
    return task


def delete_task(db: Session, task_id: str) -> None:
    with atomic(db):
        task = get_task(db, task_id)
        db.delete(task)
