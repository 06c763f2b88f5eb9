import logging
from datetime import datetime, timezone

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from giftbox.config import settings
from giftbox.database import atomic
from giftbox.exceptions import (
    DuplicateRequestError,
    InvalidArgumentError,
    InvalidTransitionError,
    NotFoundError,
    StaleVersionError,
)
from giftbox.models.customer import Customer
from giftbox.models.order import Order, OrderStatus, Priority, StageLogEntry
from giftbox.schemas.order import OrderCreate, OrderUpdate, StageLogOut

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[OrderStatus, tuple[OrderStatus, ...]] = {
    OrderStatus.PENDING: (OrderStatus.DESIGNING, OrderStatus.CANCELLED),
    OrderStatus.DESIGNING: (OrderStatus.APPROVED, OrderStatus.PENDING, OrderStatus.CANCELLED),
    OrderStatus.APPROVED: (OrderStatus.PRODUCTION, OrderStatus.DESIGNING, OrderStatus.CANCELLED),
    OrderStatus.PRODUCTION: (OrderStatus.QUALITY_CONTROL, OrderStatus.APPROVED, OrderStatus.CANCELLED),
    OrderStatus.QUALITY_CONTROL: (OrderStatus.COMPLETED, OrderStatus.PRODUCTION, OrderStatus.CANCELLED),
    OrderStatus.COMPLETED: (),
    OrderStatus.CANCELLED: (OrderStatus.PENDING,),
}


def parse_status(value: str) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise InvalidArgumentError(f"Unknown order status '{value}'", status=value) from None


def allowed_targets(status: str) -> list[str]:
    return [s.value for s in ALLOWED_TRANSITIONS[OrderStatus(status)]]


def _generate_order_number(db: Session) -> str:
    """Next number in the current year's series, e.g. PGB-2026-007."""
    prefix = f"{settings.ORDER_NUMBER_PREFIX}-{datetime.now(timezone.utc).year}-"
    numbers = db.query(Order.order_number).filter(Order.order_number.like(f"{prefix}%")).all()
    last = 0
    for (number,) in numbers:
        suffix = number[len(prefix):]
        if suffix.isdigit():
            last = max(last, int(suffix))
    return f"{prefix}{last + 1:03d}"


def _lock_order(db: Session, order_id: str) -> Order:
    order = db.query(Order).filter(Order.id == order_id).with_for_update().first()
    if not order:
        raise NotFoundError("Order", order_id)
    return order


def _check_new_key(db: Session, idempotency_key: str | None) -> None:
    if not idempotency_key:
        return
    existing = db.query(StageLogEntry).filter(StageLogEntry.idempotency_key == idempotency_key).first()
    if existing:
        raise DuplicateRequestError(
            idempotency_key, existing=StageLogOut.model_validate(existing).model_dump(mode="json")
        )


def append_stage(
    order: Order,
    stage: OrderStatus,
    notes: str = "",
    actor: str | None = None,
    idempotency_key: str | None = None,
) -> StageLogEntry:
    """Add the next entry to the order's stage log. The caller commits."""
    sequence = order.stages[-1].sequence + 1 if order.stages else 1
    entry = StageLogEntry(
        sequence=sequence,
        stage=stage,
        notes=notes,
        created_by=actor,
        idempotency_key=idempotency_key,
    )
    order.stages.append(entry)
    return entry


def create_order(db: Session, data: OrderCreate) -> Order:
    with atomic(db):
        customer = db.query(Customer).filter(Customer.id == data.customer_id).first()
        if not customer:
            raise NotFoundError("Customer", data.customer_id)
        order = Order(
            order_number=_generate_order_number(db),
            customer_id=customer.id,
            status=OrderStatus.PENDING,
            priority=data.priority,
            total_amount=data.total_amount,
            due_date=data.due_date,
            box_type=data.box_type,
            special_requests=data.special_requests,
        )
        db.add(order)
    db.refresh(order)
    logger.info("Created order %s for customer %s", order.order_number, customer.name)
    return order


def get_order(db: Session, order_id: str) -> Order:
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise NotFoundError("Order", order_id)
    return order


def get_order_by_number(db: Session, order_number: str) -> Order:
    order = db.query(Order).filter(Order.order_number == order_number).first()
    if not order:
        raise NotFoundError("Order", order_number)
    return order


def list_orders(
    db: Session,
    skip: int = 0,
    limit: int = 100,
    status: str | None = None,
    priority: str | None = None,
    customer_id: str | None = None,
    search: str | None = None,
) -> list[Order]:
    q = db.query(Order)
    if status:
        q = q.filter(Order.status == parse_status(status))
    if priority:
        try:
            q = q.filter(Order.priority == Priority(priority))
        except ValueError:
            raise InvalidArgumentError(f"Unknown priority '{priority}'", priority=priority) from None
    if customer_id:
        q = q.filter(Order.customer_id == customer_id)
    if search:
        pattern = f"%{search}%"
        q = q.join(Order.customer).filter(
            or_(Order.order_number.ilike(pattern), Customer.name.ilike(pattern))
        )
    return q.order_by(Order.created_at.desc(), Order.order_number.desc()).offset(skip).limit(limit).all()


def update_order(db: Session, order_id: str, data: OrderUpdate) -> Order:
    """Edit the non-status fields of an order."""
    try:
        with atomic(db):
            order = _lock_order(db, order_id)
            for field, value in data.model_dump(exclude_unset=True).items():
                setattr(order, field, value)
    except StaleDataError as e:
        raise StaleVersionError(order_id, None, None) from e
    db.refresh(order)
    return order


def delete_order(db: Session, order_id: str) -> None:
    with atomic(db):
        order = _lock_order(db, order_id)
        order_number = order.order_number
        db.delete(order)
    logger.info("Deleted order %s", order_number)


def list_stage_log(db: Session, order_id: str) -> list[StageLogEntry]:
    get_order(db, order_id)
    return (
        db.query(StageLogEntry)
        .filter(StageLogEntry.order_id == order_id)
        .order_by(StageLogEntry.sequence)
        .all()
    )


def transition_order(
    db: Session,
    order_id: str,
    target: str,
    note: str = "",
    actor: str | None = None,
    expected_version: int | None = None,
    idempotency_key: str | None = None,
) -> Order:
    """Move an order to ``target`` if the transition table allows it.

    The status change, the version bump and the stage-log entry are written
    in one transaction. ``expected_version`` turns the move into a
    compare-and-set; ``idempotency_key`` makes a retried request fail with
    DuplicateRequestError instead of logging the stage twice.
    """
    target_status = parse_status(target)
    try:
        with atomic(db):
            order = _lock_order(db, order_id)
            if expected_version is not None and order.version != expected_version:
                logger.warning(
                    "Stale move of order %s: expected version %s, found %s",
                    order.order_number, expected_version, order.version,
                )
                raise StaleVersionError(order.id, expected_version, order.version)
            _check_new_key(db, idempotency_key)

            current = OrderStatus(order.status)
            if target_status not in ALLOWED_TRANSITIONS[current]:
                logger.warning(
                    "Rejected transition of order %s: %s -> %s",
                    order.order_number, current.value, target_status.value,
                )
                raise InvalidTransitionError(current.value, target_status.value, allowed_targets(current))

            order.status = target_status
            append_stage(order, target_status, note, actor, idempotency_key)
    except StaleDataError as e:
        raise StaleVersionError(order_id, expected_version, None) from e
    except IntegrityError as e:
        # Two requests raced on the same key; the loser lands here
        if idempotency_key:
            raise DuplicateRequestError(idempotency_key) from e
        raise

    db.refresh(order)
    logger.info(
        "Order %s moved %s -> %s by %s",
        order.order_number, current.value, target_status.value, actor or "system",
    )
    return order
