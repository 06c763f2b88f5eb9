from datetime import datetime, timezone

import pytest

from giftbox.exceptions import (
    DuplicateRequestError,
    InvalidArgumentError,
    InvalidTransitionError,
    NotFoundError,
    StaleVersionError,
)
from giftbox.models.order import OrderStatus, StageLogEntry
from giftbox.schemas.order import OrderCreate, OrderUpdate
from giftbox.services import order_service


class TestCreateOrder:
    def test_new_order_is_pending_with_no_stage_history(self, db, order):
        assert order.status == OrderStatus.PENDING
        assert order.version == 1
        assert order_service.list_stage_log(db, order.id) == []

    def test_order_numbers_follow_the_yearly_series(self, make_order):
        year = datetime.now(timezone.utc).year
        first = make_order()
        second = make_order()
        assert first.order_number == f"PGB-{year}-001"
        assert second.order_number == f"PGB-{year}-002"

    def test_unknown_customer_is_rejected(self, db):
        with pytest.raises(NotFoundError):
            order_service.create_order(db, OrderCreate(customer_id="missing"))

    def test_lookup_by_number(self, db, order):
        assert order_service.get_order_by_number(db, order.order_number).id == order.id


class TestTransitions:
    def test_forward_path_logs_every_stage(self, db, order, advance):
        order = advance(order, "designing", "approved", "production", "quality_control", "completed")

        assert order.status == OrderStatus.COMPLETED
        stages = [e.stage for e in order_service.list_stage_log(db, order.id)]
        assert stages == ["designing", "approved", "production", "quality_control", "completed"]

    def test_skipping_stages_is_rejected(self, db, order):
        with pytest.raises(InvalidTransitionError) as exc_info:
            order_service.transition_order(db, order.id, "production")

        assert exc_info.value.allowed == ["designing", "cancelled"]
        db.refresh(order)
        assert order.status == OrderStatus.PENDING
        assert order_service.list_stage_log(db, order.id) == []

    def test_completed_is_terminal(self, db, order, advance):
        order = advance(order, "designing", "approved", "production", "quality_control", "completed")
        for target in ("pending", "cancelled", "production"):
            with pytest.raises(InvalidTransitionError):
                order_service.transition_order(db, order.id, target)

    def test_cancelled_order_can_be_reopened(self, db, order, advance):
        order = advance(order, "designing", "cancelled", "pending")
        assert order.status == OrderStatus.PENDING

    def test_quality_control_can_be_cancelled(self, db, order, advance):
        order = advance(order, "designing", "approved", "production", "quality_control", "cancelled")
        assert order.status == OrderStatus.CANCELLED

    def test_rework_moves_one_step_back(self, db, order, advance):
        order = advance(order, "designing", "approved", "designing")
        assert order.status == OrderStatus.DESIGNING

    def test_unknown_status_is_an_invalid_argument(self, db, order):
        with pytest.raises(InvalidArgumentError):
            order_service.transition_order(db, order.id, "shipped")

    def test_unknown_order(self, db):
        with pytest.raises(NotFoundError):
            order_service.transition_order(db, "missing", "designing")

    def test_stage_entry_records_actor_and_note(self, db, order):
        order_service.transition_order(db, order.id, "designing", note="Artwork received", actor="olivia")
        (entry,) = order_service.list_stage_log(db, order.id)
        assert entry.sequence == 1
        assert entry.notes == "Artwork received"
        assert entry.created_by == "olivia"

    def test_latest_stage_matches_status(self, db, order, advance):
        order = advance(order, "designing", "approved", "designing", "cancelled")
        log = order_service.list_stage_log(db, order.id)
        assert log[-1].stage == order.status
        assert [e.sequence for e in log] == [1, 2, 3, 4]


class TestVersioning:
    def test_each_move_bumps_the_version(self, db, order, advance):
        order = advance(order, "designing", "approved")
        assert order.version == 3

    def test_stale_expected_version_is_rejected(self, db, order, advance):
        advance(order, "designing")
        with pytest.raises(StaleVersionError) as exc_info:
            order_service.transition_order(db, order.id, "approved", expected_version=1)

        assert exc_info.value.data["actual_version"] == 2
        db.refresh(order)
        assert order.status == OrderStatus.DESIGNING

    def test_matching_expected_version_is_applied(self, db, order):
        order = order_service.transition_order(db, order.id, "designing", expected_version=1)
        assert order.status == OrderStatus.DESIGNING


class TestIdempotency:
    def test_reused_key_is_rejected_and_not_logged_twice(self, db, order):
        order_service.transition_order(db, order.id, "designing", idempotency_key="move-1")
        with pytest.raises(DuplicateRequestError) as exc_info:
            order_service.transition_order(db, order.id, "approved", idempotency_key="move-1")

        assert exc_info.value.existing["stage"] == "designing"
        assert db.query(StageLogEntry).filter(StageLogEntry.order_id == order.id).count() == 1


class TestEditAndDelete:
    def test_update_leaves_status_alone(self, db, order):
        updated = order_service.update_order(db, order.id, OrderUpdate(special_requests="Gold foil logo"))
        assert updated.special_requests == "Gold foil logo"
        assert updated.status == OrderStatus.PENDING

    def test_delete_cascades_stage_log(self, db, order, advance):
        advance(order, "designing")
        order_id = order.id
        order_service.delete_order(db, order_id)

        with pytest.raises(NotFoundError):
            order_service.get_order(db, order_id)
        assert db.query(StageLogEntry).filter(StageLogEntry.order_id == order_id).count() == 0

    def test_list_filters(self, db, make_order, advance):
        urgent = make_order(priority="urgent")
        make_order()
        advance(urgent, "designing")

        assert [o.id for o in order_service.list_orders(db, status="designing")] == [urgent.id]
        assert [o.id for o in order_service.list_orders(db, priority="urgent")] == [urgent.id]
        assert len(order_service.list_orders(db, search="acme")) == 2
