from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from giftbox.api.auth import get_current_user, require_elevated
from giftbox.database import get_db
from giftbox.models.order import Order
from giftbox.models.user import User
from giftbox.schemas.order import (
    OrderCreate,
    OrderDetailOut,
    OrderOut,
    OrderStatusUpdate,
    OrderUpdate,
    StageLogOut,
)
from giftbox.services import order_service, webhook_service

router = APIRouter(prefix="/orders", tags=["Orders"])


def _detail(order: Order) -> OrderDetailOut:
    detail = OrderDetailOut.model_validate(order)
    detail.allowed_transitions = order_service.allowed_targets(order.status)
    return detail


def notify_status_changed(background_tasks: BackgroundTasks, order: Order) -> None:
    payload = OrderOut.model_validate(order).model_dump(mode="json")
    background_tasks.add_task(webhook_service.send_event, webhook_service.ORDER_STATUS_CHANGED, payload)


@router.post("", response_model=OrderOut, status_code=201)
def create_order(data: OrderCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return order_service.create_order(db, data)


@router.get("", response_model=list[OrderOut])
def list_orders(
    skip: int = 0,
    limit: int = 100,
    status: str | None = None,
    priority: str | None = None,
    customer_id: str | None = None,
    search: str | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return order_service.list_orders(
        db, skip=skip, limit=limit, status=status, priority=priority, customer_id=customer_id, search=search
    )


@router.get("/by-number/{order_number}", response_model=OrderDetailOut)
def get_order_by_number(order_number: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return _detail(order_service.get_order_by_number(db, order_number))


@router.get("/{order_id}", response_model=OrderDetailOut)
def get_order(order_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return _detail(order_service.get_order(db, order_id))


@router.put("/{order_id}", response_model=OrderOut)
def update_order(
    order_id: str, data: OrderUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    return order_service.update_order(db, order_id, data)


@router.delete("/{order_id}", status_code=204)
def delete_order(order_id: str, user: User = Depends(require_elevated), db: Session = Depends(get_db)):
    order_service.delete_order(db, order_id)


@router.patch("/{order_id}/status", response_model=OrderOut)
def update_status(
    order_id: str,
    data: OrderStatusUpdate,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    order = order_service.transition_order(
        db,
        order_id,
        data.status,
        note=data.notes,
        actor=user.username,
        expected_version=data.expected_version,
        idempotency_key=data.idempotency_key,
    )
    notify_status_changed(background_tasks, order)
    return order


@router.get("/{order_id}/stages", response_model=list[StageLogOut])
def list_stages(order_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return order_service.list_stage_log(db, order_id)
