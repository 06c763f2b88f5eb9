import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from giftbox.database import atomic, utcnow
from giftbox.exceptions import ConflictError, InvalidArgumentError, NotFoundError
from giftbox.models.inventory import InventoryMaterial
from giftbox.models.reorder_alert import (
    ACTIVE_ALERT_STATUSES,
    AlertPriority,
    AlertStatus,
    ReorderAlert,
)
from giftbox.schemas.inventory import AlertOut

logger = logging.getLogger(__name__)

DUPLICATE_ALERT_MESSAGE = "An active reorder alert already exists for this item"


def _dump(alert: ReorderAlert) -> dict:
    return AlertOut.model_validate(alert).model_dump(mode="json")


def _parse(enum_cls, value: str, field: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidArgumentError(f"Unknown {field} '{value}'", **{field: value}) from None


def find_active_alert(db: Session, material_id: str, exclude_id: str | None = None) -> ReorderAlert | None:
    q = db.query(ReorderAlert).filter(
        ReorderAlert.material_id == material_id,
        ReorderAlert.status.in_(ACTIVE_ALERT_STATUSES),
    )
    if exclude_id:
        q = q.filter(ReorderAlert.id != exclude_id)
    return q.first()


def create_alert(
    db: Session,
    material_id: str,
    priority: str = AlertPriority.NORMAL.value,
    notes: str = "",
    actor: str | None = None,
) -> ReorderAlert:
    """Raise a reorder alert for a material, unless one is already active.

    The lookup and the insert share a transaction; the partial unique index
    on active alerts catches whatever slips past the lookup.
    """
    alert_priority = _parse(AlertPriority, priority, "priority")
    try:
        with atomic(db):
            material = (
                db.query(InventoryMaterial)
                .filter(InventoryMaterial.id == material_id)
                .with_for_update()
                .first()
            )
            if not material:
                raise NotFoundError("Inventory item", material_id)
            existing = find_active_alert(db, material.id)
            if existing:
                logger.warning("Duplicate reorder alert for %s (active alert %s)", material.name, existing.id)
                raise ConflictError(DUPLICATE_ALERT_MESSAGE, existing=_dump(existing), material_id=material.id)
            alert = ReorderAlert(
                material_id=material.id,
                item_name=material.name,
                current_stock=material.current_stock,
                reorder_level=material.reorder_level,
                status=AlertStatus.PENDING,
                priority=alert_priority,
                notes=notes,
                created_by=actor,
            )
            db.add(alert)
    except IntegrityError as e:
        existing = find_active_alert(db, material_id)
        raise ConflictError(
            DUPLICATE_ALERT_MESSAGE,
            existing=_dump(existing) if existing else None,
            material_id=material_id,
        ) from e

    db.refresh(alert)
    logger.info("Reorder alert %s raised for %s (%s)", alert.id, alert.item_name, alert_priority.value)
    return alert


def get_alert(db: Session, alert_id: str) -> ReorderAlert:
    alert = db.query(ReorderAlert).filter(ReorderAlert.id == alert_id).first()
    if not alert:
        raise NotFoundError("Reorder alert", alert_id)
    return alert


def list_alerts(db: Session, status: str | None = None, material_id: str | None = None) -> list[ReorderAlert]:
    q = db.query(ReorderAlert)
    if status:
        q = q.filter(ReorderAlert.status == _parse(AlertStatus, status, "status"))
    if material_id:
        q = q.filter(ReorderAlert.material_id == material_id)
    return q.order_by(ReorderAlert.created_at.desc()).all()


def update_alert_status(
    db: Session,
    alert_id: str,
    status: str,
    notes: str | None = None,
    actor: str | None = None,
) -> ReorderAlert:
    new_status = _parse(AlertStatus, status, "status")
    try:
        with atomic(db):
            alert = db.query(ReorderAlert).filter(ReorderAlert.id == alert_id).with_for_update().first()
            if not alert:
                raise NotFoundError("Reorder alert", alert_id)
            if new_status in ACTIVE_ALERT_STATUSES and alert.status not in ACTIVE_ALERT_STATUSES:
                existing = find_active_alert(db, alert.material_id, exclude_id=alert.id)
                if existing:
                    raise ConflictError(DUPLICATE_ALERT_MESSAGE, existing=_dump(existing), material_id=alert.material_id)

            alert.status = new_status
            if notes is not None:
                alert.notes = notes
            if new_status == AlertStatus.ACKNOWLEDGED:
                alert.acknowledged_by = actor
                alert.acknowledged_at = utcnow()
            elif new_status == AlertStatus.RESOLVED:
                alert.resolved_at = utcnow()
    except IntegrityError as e:
        raise ConflictError(DUPLICATE_ALERT_MESSAGE, alert_id=alert_id) from e

    db.refresh(alert)
    logger.info("Reorder alert %s for %s is now %s", alert.id, alert.item_name, new_status.value)
    return alert
