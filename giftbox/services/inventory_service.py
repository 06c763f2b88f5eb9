import logging
from datetime import date
from decimal import Decimal, InvalidOperation

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from giftbox.config import settings
from giftbox.database import atomic
from giftbox.exceptions import (
    DuplicateRequestError,
    InsufficientStockError,
    InvalidArgumentError,
    NotFoundError,
)
from giftbox.models.inventory import (
    MAX_QUANTITY,
    QUANTUM,
    SUBTRACTIVE_TYPES,
    InventoryMaterial,
    InventoryMovement,
    MaterialCategory,
    MovementType,
)
from giftbox.models.order import Order
from giftbox.schemas.inventory import MaterialCreate, MaterialUpdate, MovementOut

logger = logging.getLogger(__name__)


def _parse_type(value: str) -> MovementType:
    try:
        return MovementType(value)
    except ValueError:
        raise InvalidArgumentError(f"Unknown movement type '{value}'", type=value) from None


def _lock_material(db: Session, material_id: str) -> InventoryMaterial:
    material = (
        db.query(InventoryMaterial)
        .filter(InventoryMaterial.id == material_id)
        .with_for_update()
        .first()
    )
    if not material:
        raise NotFoundError("Inventory item", material_id)
    return material


def _find_by_key(db: Session, idempotency_key: str | None) -> InventoryMovement | None:
    if not idempotency_key:
        return None
    return db.query(InventoryMovement).filter(InventoryMovement.idempotency_key == idempotency_key).first()


def _to_quantity(value, field: str = "quantity") -> Decimal:
    """Exact decimal for a caller-supplied amount; floats go through their shortest repr."""
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidArgumentError(f"{field} must be a number", **{field: str(value)}) from None
    if not number.is_finite():
        raise InvalidArgumentError(f"{field} must be a finite number", **{field: str(value)})
    if abs(number) >= MAX_QUANTITY:
        raise InvalidArgumentError(f"{field} is out of range", **{field: str(value)})
    return number.quantize(QUANTUM)


def compute_delta(movement_type: MovementType, quantity: Decimal, current: Decimal) -> Decimal:
    """Signed stock change for a movement of ``quantity`` against ``current``."""
    if movement_type == MovementType.PURCHASE:
        return quantity
    if movement_type in SUBTRACTIVE_TYPES:
        return -quantity
    # adjustment: quantity is the counted level
    return quantity - current


def _apply_movement(
    db: Session,
    material: InventoryMaterial,
    movement_type: MovementType,
    quantity: Decimal,
    unit_cost: Decimal | None = None,
    order_id: str | None = None,
    reason: str = "",
    notes: str = "",
    actor: str | None = None,
    idempotency_key: str | None = None,
) -> InventoryMovement:
    current = Decimal(material.current_stock)
    delta = compute_delta(movement_type, quantity, current)
    new_stock = quantity if movement_type == MovementType.ADJUSTMENT else current + delta
    if new_stock < 0:
        logger.warning(
            "Rejected %s of %s %s on %s: only %s in stock",
            movement_type.value, quantity, material.unit, material.name, current,
        )
        raise InsufficientStockError(material.id, current, quantity, material.unit)
    if new_stock >= MAX_QUANTITY:
        raise InvalidArgumentError("Stock level would be out of range", quantity=str(quantity))

    cost = unit_cost if unit_cost is not None else Decimal(material.unit_cost)
    movement = InventoryMovement(
        material_id=material.id,
        type=movement_type,
        quantity=quantity,
        delta=delta,
        balance_after=new_stock,
        unit_cost=cost,
        total_cost=(quantity * cost).quantize(QUANTUM),
        reason=reason,
        order_id=order_id,
        notes=notes,
        created_by=actor,
        idempotency_key=idempotency_key,
    )
    db.add(movement)
    material.current_stock = new_stock
    if movement_type == MovementType.PURCHASE:
        material.last_restocked = date.today()
    return movement


def record_movement(
    db: Session,
    material_id: str,
    movement_type: str,
    quantity: Decimal | float,
    unit_cost: Decimal | float | None = None,
    order_id: str | None = None,
    reason: str = "",
    notes: str = "",
    actor: str | None = None,
    idempotency_key: str | None = None,
) -> tuple[InventoryMovement, Decimal]:
    """Write one ledger row and move the material's stock by its delta.

    Returns the movement and the stock level after it. The material row is
    re-read inside the write transaction, so the non-negative check sees
    every movement committed before this one. Amounts are exact decimals
    with six places; an adjustment lands on exactly the counted level.
    """
    mtype = _parse_type(movement_type)
    amount = _to_quantity(quantity)
    cost = _to_quantity(unit_cost, "unit_cost") if unit_cost is not None else None
    if mtype == MovementType.ADJUSTMENT:
        if amount < 0:
            raise InvalidArgumentError("Adjustment quantity cannot be negative", quantity=str(amount))
    elif amount <= 0:
        raise InvalidArgumentError("Quantity must be positive", quantity=str(amount))
    if cost is not None and cost < 0:
        raise InvalidArgumentError("Unit cost cannot be negative", unit_cost=str(cost))

    try:
        with atomic(db):
            material = _lock_material(db, material_id)
            existing = _find_by_key(db, idempotency_key)
            if existing:
                raise DuplicateRequestError(
                    idempotency_key, existing=MovementOut.model_validate(existing).model_dump(mode="json")
                )
            if order_id and not db.query(Order.id).filter(Order.id == order_id).first():
                raise NotFoundError("Order", order_id)
            movement = _apply_movement(
                db, material, mtype, amount, cost, order_id, reason, notes, actor, idempotency_key
            )
    except IntegrityError as e:
        if idempotency_key:
            raise DuplicateRequestError(idempotency_key) from e
        raise

    db.refresh(movement)
    new_stock = movement.balance_after
    logger.info(
        "Recorded %s of %s %s on %s, stock now %s",
        mtype.value, amount, movement.material.unit, movement.material.name, new_stock,
    )
    return movement, new_stock


def create_material(db: Session, data: MaterialCreate, actor: str | None = None) -> InventoryMaterial:
    """Add a material. Opening stock goes in as an adjustment so the ledger starts from zero."""
    opening = _to_quantity(data.current_stock, "current_stock")
    with atomic(db):
        material = InventoryMaterial(
            name=data.name,
            category=data.category,
            supplier=data.supplier,
            unit=data.unit,
            unit_cost=_to_quantity(data.unit_cost, "unit_cost"),
            current_stock=Decimal("0"),
            reorder_level=_to_quantity(
                data.reorder_level if data.reorder_level is not None else settings.DEFAULT_REORDER_LEVEL,
                "reorder_level",
            ),
            notes=data.notes,
        )
        db.add(material)
        db.flush()
        if opening > 0:
            _apply_movement(
                db, material, MovementType.ADJUSTMENT, opening,
                reason="Opening stock", actor=actor,
            )
    db.refresh(material)
    logger.info("Created material %s with %s %s", material.name, material.current_stock, material.unit)
    return material


def get_material(db: Session, material_id: str) -> InventoryMaterial:
    material = db.query(InventoryMaterial).filter(InventoryMaterial.id == material_id).first()
    if not material:
        raise NotFoundError("Inventory item", material_id)
    return material


def list_materials(
    db: Session,
    category: str | None = None,
    low_stock: bool = False,
    search: str | None = None,
) -> list[InventoryMaterial]:
    q = db.query(InventoryMaterial)
    if category:
        try:
            q = q.filter(InventoryMaterial.category == MaterialCategory(category))
        except ValueError:
            raise InvalidArgumentError(f"Unknown category '{category}'", category=category) from None
    if low_stock:
        q = q.filter(InventoryMaterial.current_stock <= InventoryMaterial.reorder_level)
    if search:
        pattern = f"%{search}%"
        q = q.filter(InventoryMaterial.name.ilike(pattern) | InventoryMaterial.supplier.ilike(pattern))
    return q.order_by(InventoryMaterial.name).all()


def low_stock_items(db: Session) -> list[InventoryMaterial]:
    return (
        db.query(InventoryMaterial)
        .filter(InventoryMaterial.current_stock <= InventoryMaterial.reorder_level)
        .order_by(InventoryMaterial.current_stock)
        .all()
    )


def update_material(db: Session, material_id: str, data: MaterialUpdate) -> InventoryMaterial:
    with atomic(db):
        material = _lock_material(db, material_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            if field in ("unit_cost", "reorder_level"):
                if value is None:
                    continue
                value = _to_quantity(value, field)
            setattr(material, field, value)
    db.refresh(material)
    return material


def delete_material(db: Session, material_id: str) -> None:
    with atomic(db):
        material = _lock_material(db, material_id)
        name = material.name
        db.delete(material)
    logger.info("Deleted material %s", name)


def list_movements(
    db: Session,
    material_id: str | None = None,
    movement_type: str | None = None,
    order_id: str | None = None,
    limit: int = 50,
) -> list[InventoryMovement]:
    q = db.query(InventoryMovement)
    if material_id:
        q = q.filter(InventoryMovement.material_id == material_id)
    if movement_type:
        q = q.filter(InventoryMovement.type == _parse_type(movement_type))
    if order_id:
        q = q.filter(InventoryMovement.order_id == order_id)
    return q.order_by(InventoryMovement.created_at.desc()).limit(limit).all()


def replay_stock(db: Session, material_id: str) -> Decimal:
    """Stock level rebuilt from the ledger alone, summed exactly."""
    get_material(db, material_id)
    deltas = db.query(InventoryMovement.delta).filter(InventoryMovement.material_id == material_id)
    return sum((delta for (delta,) in deltas), Decimal("0"))
