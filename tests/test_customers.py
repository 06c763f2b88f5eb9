import pytest

from giftbox.exceptions import NotFoundError
from giftbox.schemas.customer import CustomerCreate
from giftbox.services import customer_service, order_service


def test_open_order_count_skips_finished_orders(db, customer, make_order):
    make_order()
    cancelled = make_order()
    order_service.transition_order(db, cancelled.id, "cancelled")

    db.refresh(customer)
    assert customer.open_order_count == 1
    assert len(customer.orders) == 2


def test_search_matches_name_email_or_phone(db):
    customer_service.create_customer(db, CustomerCreate(name="Bloom Florists", phone="555-0101"))
    customer_service.create_customer(db, CustomerCreate(name="Acme Corp", email="gifts@acme.test"))

    assert [c.name for c in customer_service.list_customers(db, search="acme.test")] == ["Acme Corp"]
    assert [c.name for c in customer_service.list_customers(db, search="0101")] == ["Bloom Florists"]
    assert [c.name for c in customer_service.list_customers(db)] == ["Acme Corp", "Bloom Florists"]


def test_unknown_customer(db):
    with pytest.raises(NotFoundError):
        customer_service.get_customer(db, "missing")


def test_customer_route_reports_open_orders(client, customer, make_order):
    make_order()
    body = client.get(f"/api/v1/customers/{customer.id}").json()
    assert body["open_order_count"] == 1
