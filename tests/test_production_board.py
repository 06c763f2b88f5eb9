from datetime import date, timedelta

import pytest

from giftbox.database import utcnow
from giftbox.exceptions import InvalidArgumentError, InvalidTransitionError, NotFoundError, StaleVersionError
from giftbox.models.order import OrderStatus
from giftbox.models.production import TaskStatus
from giftbox.schemas.production import TaskCreate, TaskUpdate
from giftbox.services import order_service, production_service


@pytest.fixture
def task(db, order):
    return production_service.create_task(db, TaskCreate(order_id=order.id, title="Cut board"), actor="olivia")


class TestBoard:
    def test_columns_are_sorted_by_priority_then_due_date(self, db, make_order):
        late_normal = make_order(priority="normal", due_date=date(2030, 3, 1))
        early_normal = make_order(priority="normal", due_date=date(2030, 2, 1))
        undated_urgent = make_order(priority="urgent")
        low = make_order(priority="low", due_date=date(2030, 1, 1))
        high = make_order(priority="high", due_date=date(2030, 6, 1))

        result = production_service.get_board(db)

        assert [o.id for o in result["board"]["pending"]] == [
            undated_urgent.id, high.id, early_normal.id, late_normal.id, low.id,
        ]
        assert result["total_active"] == 5

    def test_closed_orders_are_off_the_board(self, db, make_order, advance):
        make_order()
        cancelled = make_order()
        advance(cancelled, "cancelled")
        moved = advance(make_order(), "designing")

        result = production_service.get_board(db)

        assert list(result["board"]) == ["pending", "designing", "approved", "production", "quality_control"]
        assert [o.id for o in result["board"]["designing"]] == [moved.id]
        assert result["total_active"] == 2


class TestMoves:
    def test_move_to_the_same_column_is_a_no_op(self, db, order):
        moved = production_service.move_order(db, order.id, "pending")
        assert moved.version == 1
        assert order_service.list_stage_log(db, order.id) == []

    def test_move_goes_through_the_transition_table(self, db, order):
        with pytest.raises(InvalidTransitionError):
            production_service.move_order(db, order.id, "quality_control")
        moved = production_service.move_order(db, order.id, "designing", actor="olivia")
        assert moved.status == OrderStatus.DESIGNING

    def test_stale_move_is_rejected(self, db, order):
        production_service.move_order(db, order.id, "designing", expected_version=1)
        with pytest.raises(StaleVersionError):
            production_service.move_order(db, order.id, "approved", expected_version=1)

    def test_move_without_version_is_last_write_wins(self, db, order):
        production_service.move_order(db, order.id, "designing")
        moved = production_service.move_order(db, order.id, "approved")
        assert moved.status == OrderStatus.APPROVED

    def test_task_move_moves_its_order(self, db, order, task):
        moved = production_service.move_task(db, task.id, "designing", notes="From task card")
        assert moved.id == order.id
        assert moved.status == OrderStatus.DESIGNING
        assert order_service.list_stage_log(db, order.id)[0].notes == "From task card"

    def test_unknown_target(self, db, order):
        with pytest.raises(InvalidArgumentError):
            production_service.move_order(db, order.id, "boxing")


class TestTasks:
    def test_task_needs_an_existing_order(self, db):
        with pytest.raises(NotFoundError):
            production_service.create_task(db, TaskCreate(order_id="missing", title="Glue lid"))

    def test_completion_is_stamped_and_cleared(self, db, task):
        task = production_service.update_task_status(db, task.id, "completed")
        assert task.status == TaskStatus.COMPLETED
        assert task.completed_at is not None

        task = production_service.update_task_status(db, task.id, "in_progress")
        assert task.completed_at is None

    def test_unknown_task_status(self, db, task):
        with pytest.raises(InvalidArgumentError):
            production_service.update_task_status(db, task.id, "done")

    def test_assign_to_user(self, db, task, make_user):
        sam = make_user("sam")
        task = production_service.assign_task(db, task.id, sam.id)
        assert task.assigned_to == sam.id
        assert [t.id for t in production_service.list_tasks(db, assigned_to=sam.id)] == [task.id]

        with pytest.raises(NotFoundError):
            production_service.assign_task(db, task.id, "nobody")

    def test_quality_note_on_task(self, db, task):
        task = production_service.record_task_quality(db, task.id, "needs_review", "Glue visible")
        assert task.quality_status == "needs_review"
        assert task.quality_notes == "Glue visible"

    def test_update_and_delete(self, db, task):
        task = production_service.update_task(db, task.id, TaskUpdate(title="Cut and score board"))
        assert task.title == "Cut and score board"
        assert task.order_number.startswith("PGB-")

        production_service.delete_task(db, task.id)
        with pytest.raises(NotFoundError):
            production_service.get_task(db, task.id)


class TestStats:
    def test_counts(self, db, make_order, advance):
        advance(make_order(), "designing")
        advance(make_order(), "designing", "approved", "production")
        in_qc = advance(make_order(), "designing", "approved", "production", "quality_control")
        advance(make_order(), "designing", "approved", "production", "quality_control", "completed")
        make_order(due_date=utcnow().date() - timedelta(days=1))

        in_qc.updated_at = utcnow() - timedelta(days=3)
        db.commit()

        stats = production_service.production_stats(db)

        assert stats["active_orders"] == 3
        assert stats["pending_approval"] == 1
        assert stats["completed_today"] == 1
        assert stats["quality_issues"] == 1
        assert stats["overdue_orders"] == 1
        assert stats["stage_distribution"]["pending"] == 1
        assert stats["stage_distribution"]["cancelled"] == 0
