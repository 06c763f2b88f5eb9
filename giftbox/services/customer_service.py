from sqlalchemy.orm import Session

from giftbox.database import atomic
from giftbox.exceptions import NotFoundError
from giftbox.models.customer import Customer
from giftbox.schemas.customer import CustomerCreate


def create_customer(db: Session, data: CustomerCreate) -> Customer:
    with atomic(db):
        customer = Customer(**data.model_dump())
        db.add(customer)
    db.refresh(customer)
    return customer


def get_customer(db: Session, customer_id: str) -> Customer:
    customer = db.query(Customer).filter(Customer.id == customer_id).first()
    if not customer:
        raise NotFoundError("Customer", customer_id)
    return customer


def list_customers(db: Session, search: str = "", skip: int = 0, limit: int = 100) -> list[Customer]:
    q = db.query(Customer)
    if search:
        pattern = f"%{search}%"
        q = q.filter(Customer.name.ilike(pattern) | Customer.email.ilike(pattern) | Customer.phone.ilike(pattern))
    return q.order_by(Customer.name).offset(skip).limit(limit).all()
