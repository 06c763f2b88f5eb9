from datetime import datetime

from pydantic import BaseModel, Field


class CustomerCreate(BaseModel):
    name: str = Field(min_length=1)
    email: str = ""
    phone: str = ""
    address: str = ""
    notes: str = ""


class CustomerOut(BaseModel):
    id: str
    name: str
    email: str
    phone: str
    address: str
    notes: str
    open_order_count: int = 0
    created_at: datetime

    model_config = {"from_attributes": True}
