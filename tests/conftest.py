"""
Pytest fixtures for the gift-box tracker test suite.

Every test gets its own in-memory SQLite store built through
``create_db_engine`` so it runs with the same pragmas as production.
"""

from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from giftbox.api.auth import get_current_user
from giftbox.database import create_db_engine, get_db, init_db
from giftbox.main import app
from giftbox.models.customer import Customer
from giftbox.models.user import User, UserRole
from giftbox.schemas.inventory import MaterialCreate
from giftbox.schemas.order import OrderCreate
from giftbox.services import inventory_service, order_service


@pytest.fixture
def engine():
    engine = create_db_engine("sqlite://")
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False)()
    yield session
    session.close()


@pytest.fixture
def make_user(db):
    def _make(username="staff", role=UserRole.STAFF.value):
        user = User(username=username, display_name=username.title(), password_hash="!", role=role)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def owner(make_user):
    return make_user("olivia", UserRole.OWNER.value)


@pytest.fixture
def customer(db):
    customer = Customer(name="Acme Corp", email="gifts@acme.test")
    db.add(customer)
    db.commit()
    db.refresh(customer)
    return customer


@pytest.fixture
def make_order(db, customer):
    def _make(**overrides):
        data = OrderCreate(customer_id=customer.id, **overrides)
        return order_service.create_order(db, data)

    return _make


@pytest.fixture
def order(make_order):
    return make_order(total_amount=250.0, due_date=date(2030, 1, 15))


@pytest.fixture
def advance(db):
    """Walk an order forward through the given stages."""

    def _advance(order, *stages):
        for stage in stages:
            order = order_service.transition_order(db, order.id, stage, actor="olivia")
        return order

    return _advance


@pytest.fixture
def make_material(db):
    def _make(name="Kraft board", current_stock=5.0, unit_cost=2.5, reorder_level=10.0, **kwargs):
        data = MaterialCreate(
            name=name,
            current_stock=current_stock,
            unit_cost=unit_cost,
            reorder_level=reorder_level,
            **kwargs,
        )
        return inventory_service.create_material(db, data, actor="olivia")

    return _make


@pytest.fixture
def acting(owner):
    """The caller the client authenticates as; replace ``acting["user"]`` to switch."""
    return {"user": owner}


@pytest.fixture
def client(db, acting):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_current_user] = lambda: acting["user"]
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def anonymous_client(db):
    """TestClient with the real token check in place."""
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()
