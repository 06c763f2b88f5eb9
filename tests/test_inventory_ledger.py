from datetime import date
from decimal import Decimal

import pytest

from giftbox.exceptions import (
    DuplicateRequestError,
    InsufficientStockError,
    InvalidArgumentError,
    NotFoundError,
)
from giftbox.models.inventory import InventoryMovement, MovementType
from giftbox.schemas.inventory import MaterialCreate, MaterialUpdate
from giftbox.services import inventory_service


def test_opening_stock_is_recorded_as_an_adjustment(db, make_material):
    material = make_material(current_stock=5)

    (movement,) = inventory_service.list_movements(db, material_id=material.id)
    assert movement.type == MovementType.ADJUSTMENT
    assert movement.delta == 5
    assert inventory_service.replay_stock(db, material.id) == 5


def test_material_without_opening_stock_has_empty_ledger(db, make_material):
    material = make_material(current_stock=0)
    assert material.current_stock == 0
    assert inventory_service.list_movements(db, material_id=material.id) == []


def test_purchase_adds_stock_and_costs_the_movement(db, make_material):
    material = make_material(current_stock=5, unit_cost=2.5)

    movement, new_stock = inventory_service.record_movement(db, material.id, "purchase", 20)

    assert new_stock == 25
    assert movement.delta == 20
    assert movement.balance_after == 25
    assert movement.total_cost == 50.0
    db.refresh(material)
    assert material.current_stock == 25
    assert material.last_restocked == date.today()


def test_explicit_unit_cost_overrides_the_material_cost(db, make_material):
    material = make_material(unit_cost=2.5)
    movement, _ = inventory_service.record_movement(db, material.id, "purchase", 4, unit_cost=3.0)
    assert movement.unit_cost == 3.0
    assert movement.total_cost == 12.0


def test_usage_beyond_stock_is_rejected_and_nothing_changes(db, make_material):
    material = make_material(current_stock=5)

    with pytest.raises(InsufficientStockError) as exc_info:
        inventory_service.record_movement(db, material.id, "usage", 10)

    assert exc_info.value.available == 5
    assert str(exc_info.value) == "Insufficient stock. Available: 5 pcs"
    db.refresh(material)
    assert material.current_stock == 5
    assert db.query(InventoryMovement).filter(InventoryMovement.material_id == material.id).count() == 1


@pytest.mark.parametrize("movement_type", ["usage", "sale", "waste"])
def test_subtractive_types_reduce_stock(db, make_material, movement_type):
    material = make_material(current_stock=5)
    movement, new_stock = inventory_service.record_movement(db, material.id, movement_type, 5)
    assert new_stock == 0
    assert movement.delta == -5


@pytest.mark.parametrize("prior", [0, 3, 40])
def test_adjustment_sets_the_counted_level(db, make_material, prior):
    material = make_material(current_stock=prior)
    movement, new_stock = inventory_service.record_movement(db, material.id, "adjustment", 7)
    assert new_stock == 7
    assert movement.delta == 7 - prior


def test_adjustment_to_zero_is_allowed(db, make_material):
    material = make_material(current_stock=3)
    _, new_stock = inventory_service.record_movement(db, material.id, "adjustment", 0)
    assert new_stock == 0


@pytest.mark.parametrize(
    "movement_type, quantity",
    [("purchase", 0), ("usage", -1), ("adjustment", -2), ("gift", 3)],
)
def test_invalid_movements(db, make_material, movement_type, quantity):
    material = make_material()
    with pytest.raises(InvalidArgumentError):
        inventory_service.record_movement(db, material.id, movement_type, quantity)


def test_unknown_material(db):
    with pytest.raises(NotFoundError):
        inventory_service.record_movement(db, "missing", "purchase", 1)


def test_stock_always_equals_the_sum_of_deltas(db, make_material):
    material = make_material(current_stock=5)
    for movement_type, quantity in [
        ("purchase", 20),
        ("usage", 8),
        ("waste", 2),
        ("adjustment", 12),
        ("sale", 4),
        ("purchase", 1.5),
    ]:
        inventory_service.record_movement(db, material.id, movement_type, quantity)

    db.refresh(material)
    assert material.current_stock == 9.5
    assert inventory_service.replay_stock(db, material.id) == material.current_stock


def test_rejected_movement_keeps_the_ledger_consistent(db, make_material):
    material = make_material(current_stock=5)
    inventory_service.record_movement(db, material.id, "usage", 3)
    with pytest.raises(InsufficientStockError):
        inventory_service.record_movement(db, material.id, "usage", 3)

    db.refresh(material)
    assert material.current_stock == 2
    assert inventory_service.replay_stock(db, material.id) == 2


def test_reused_idempotency_key_is_not_applied_twice(db, make_material):
    material = make_material(current_stock=5)
    inventory_service.record_movement(db, material.id, "purchase", 10, idempotency_key="po-77")

    with pytest.raises(DuplicateRequestError) as exc_info:
        inventory_service.record_movement(db, material.id, "purchase", 10, idempotency_key="po-77")

    assert exc_info.value.existing["quantity"] == 10
    db.refresh(material)
    assert material.current_stock == 15


def test_movement_linked_to_order(db, make_material, order):
    material = make_material(current_stock=5)
    inventory_service.record_movement(db, material.id, "usage", 2, order_id=order.id, reason="Lid wrap")
    (movement,) = inventory_service.list_movements(db, order_id=order.id)
    assert movement.reason == "Lid wrap"
    assert movement.item_name == "Kraft board"


def test_movement_for_unknown_order_is_rejected(db, make_material):
    material = make_material(current_stock=5)
    with pytest.raises(NotFoundError):
        inventory_service.record_movement(db, material.id, "usage", 2, order_id="missing")


def test_update_never_touches_stock(db, make_material):
    material = make_material(current_stock=5)
    updated = inventory_service.update_material(db, material.id, MaterialUpdate(supplier="Paper Co", unit_cost=3.0))
    assert updated.supplier == "Paper Co"
    assert updated.current_stock == 5


def test_low_stock_projection(db, make_material):
    low = make_material(name="Satin ribbon", current_stock=10, reorder_level=10)
    make_material(name="Magnet clasp", current_stock=50, reorder_level=10)

    assert [m.id for m in inventory_service.low_stock_items(db)] == [low.id]
    assert [m.id for m in inventory_service.list_materials(db, low_stock=True)] == [low.id]
    assert low.is_low_stock


def test_reorder_level_defaults_from_settings(db):
    material = inventory_service.create_material(db, MaterialCreate(name="Tissue paper"))
    assert material.reorder_level == 10.0


def test_delete_material_removes_its_ledger(db, make_material):
    material = make_material(current_stock=5)
    material_id = material.id
    inventory_service.delete_material(db, material_id)
    assert db.query(InventoryMovement).filter(InventoryMovement.material_id == material_id).count() == 0


@pytest.mark.parametrize(
    "opening, moves, expected",
    [
        (30.69, [("adjustment", 9.99)], "9.99"),
        (30.69, [("adjustment", 9.99), ("usage", 9.99)], "0"),
        (0.3, [("usage", 0.1), ("usage", 0.2)], "0"),
        (0, [("purchase", 0.1), ("purchase", 0.2)], "0.3"),
        (1.1, [("waste", 0.7), ("sale", 0.4)], "0"),
        (5, [("purchase", 0.07), ("adjustment", 2.33), ("usage", 0.01)], "2.32"),
    ],
)
def test_fractional_quantities_are_exact(db, make_material, opening, moves, expected):
    material = make_material(current_stock=opening)
    for movement_type, quantity in moves:
        _, new_stock = inventory_service.record_movement(db, material.id, movement_type, quantity)

    assert new_stock == Decimal(expected)
    db.refresh(material)
    assert material.current_stock == Decimal(expected)
    assert inventory_service.replay_stock(db, material.id) == material.current_stock


def test_insufficient_stock_message_shows_fractional_levels(db, make_material):
    material = make_material(current_stock=0.2)
    with pytest.raises(InsufficientStockError) as exc_info:
        inventory_service.record_movement(db, material.id, "usage", 0.25)
    assert str(exc_info.value) == "Insufficient stock. Available: 0.2 pcs"


@pytest.mark.parametrize(
    "quantity",
    [float("nan"), float("inf"), float("-inf"), Decimal("NaN"), "a dozen", 1e12],
)
def test_non_finite_or_out_of_range_quantities_are_invalid(db, make_material, quantity):
    material = make_material(current_stock=5)
    with pytest.raises(InvalidArgumentError):
        inventory_service.record_movement(db, material.id, "purchase", quantity)
    db.refresh(material)
    assert material.current_stock == 5
    assert inventory_service.replay_stock(db, material.id) == 5


def test_non_finite_unit_cost_is_invalid(db, make_material):
    material = make_material(current_stock=5)
    with pytest.raises(InvalidArgumentError):
        inventory_service.record_movement(db, material.id, "purchase", 1, unit_cost=float("nan"))


def test_key_collision_at_commit_leaves_stock_untouched(db, make_material, monkeypatch):
    material = make_material(current_stock=5)
    inventory_service.record_movement(db, material.id, "purchase", 10, idempotency_key="po-90")

    # Another writer committed the key between the lookup and the insert
    monkeypatch.setattr(inventory_service, "_find_by_key", lambda db, key: None)
    with pytest.raises(DuplicateRequestError):
        inventory_service.record_movement(db, material.id, "usage", 3, idempotency_key="po-90")

    db.refresh(material)
    assert material.current_stock == 15
    assert inventory_service.replay_stock(db, material.id) == 15
    assert db.query(InventoryMovement).filter(InventoryMovement.material_id == material.id).count() == 2
