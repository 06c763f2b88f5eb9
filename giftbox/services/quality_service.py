import logging

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from giftbox.database import atomic
from giftbox.exceptions import InvalidArgumentError, NotFoundError, StaleVersionError
from giftbox.models.order import Order, OrderStatus
from giftbox.models.quality import QualityCheck, QualityStatus
from giftbox.services.order_service import append_stage

logger = logging.getLogger(__name__)


def _parse_outcome(value: str) -> QualityStatus:
    try:
        return QualityStatus(value)
    except ValueError:
        raise InvalidArgumentError(f"Unknown quality outcome '{value}'", overall_status=value) from None


def record_check(
    db: Session,
    order_id: str,
    checklist_items: list,
    overall_status: str,
    inspector: str | None = None,
    notes: str = "",
) -> tuple[QualityCheck, Order]:
    """Store an inspection and, when it passed, complete the order.

    A pass completes the order from whatever stage it is in; it is the one
    status change that does not go through the transition table. The
    completion is logged as a stage entry like any other move.
    """
    outcome = _parse_outcome(overall_status)
    if not isinstance(checklist_items, list):
        raise InvalidArgumentError("checklist_items must be a list")

    try:
        with atomic(db):
            order = db.query(Order).filter(Order.id == order_id).with_for_update().first()
            if not order:
                raise NotFoundError("Order", order_id)
            check = QualityCheck(
                order_id=order.id,
                checklist_items=checklist_items,
                overall_status=outcome,
                notes=notes,
                checked_by=inspector,
            )
            db.add(check)

            completed = outcome == QualityStatus.PASSED and order.status != OrderStatus.COMPLETED
            if completed:
                previous = OrderStatus(order.status).value
                order.status = OrderStatus.COMPLETED
                append_stage(order, OrderStatus.COMPLETED, notes or "Quality check passed", inspector)
    except StaleDataError as e:
        raise StaleVersionError(order_id, None, None) from e

    db.refresh(check)
    db.refresh(order)
    if completed:
        logger.info("Order %s passed quality check, %s -> completed", order.order_number, previous)
    else:
        logger.info("Quality check on order %s recorded as %s", order.order_number, outcome.value)
    return check, order


def get_check(db: Session, check_id: str) -> QualityCheck:
    check = db.query(QualityCheck).filter(QualityCheck.id == check_id).first()
    if not check:
        raise NotFoundError("Quality check", check_id)
    return check


def list_checks(db: Session, order_id: str | None = None, overall_status: str | None = None) -> list[QualityCheck]:
    q = db.query(QualityCheck)
    if order_id:
        q = q.filter(QualityCheck.order_id == order_id)
    if overall_status:
        q = q.filter(QualityCheck.overall_status == _parse_outcome(overall_status))
    return q.order_by(QualityCheck.checked_at.desc()).all()
