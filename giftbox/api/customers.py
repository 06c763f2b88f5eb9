from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from giftbox.api.auth import get_current_user
from giftbox.database import get_db
from giftbox.models.user import User
from giftbox.schemas.customer import CustomerCreate, CustomerOut
from giftbox.services import customer_service

router = APIRouter(prefix="/customers", tags=["Customers"])


@router.post("", response_model=CustomerOut, status_code=201)
def create_customer(data: CustomerCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return customer_service.create_customer(db, data)


@router.get("", response_model=list[CustomerOut])
def list_customers(
    search: str = "",
    skip: int = 0,
    limit: int = 100,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return customer_service.list_customers(db, search=search, skip=skip, limit=limit)


@router.get("/{customer_id}", response_model=CustomerOut)
def get_customer(customer_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return customer_service.get_customer(db, customer_id)
