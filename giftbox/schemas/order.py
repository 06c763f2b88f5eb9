from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field

from giftbox.models.order import BoxType, Priority


class OrderCreate(BaseModel):
    customer_id: str
    priority: Priority = Priority.NORMAL
    total_amount: float = Field(default=0.0, ge=0)
    due_date: Optional[date] = None
    box_type: Optional[BoxType] = None
    special_requests: str = ""


class OrderUpdate(BaseModel):
    priority: Optional[Priority] = None
    total_amount: Optional[float] = Field(default=None, ge=0)
    due_date: Optional[date] = None
    box_type: Optional[BoxType] = None
    special_requests: Optional[str] = None


class OrderStatusUpdate(BaseModel):
    # Plain str so unknown values reach the service and come back as INVALID_ARGUMENT
    status: str
    notes: str = ""
    expected_version: Optional[int] = None
    idempotency_key: Optional[str] = None


class StageLogOut(BaseModel):
    id: str
    order_id: str
    sequence: int
    stage: str
    notes: str
    created_by: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class OrderOut(BaseModel):
    id: str
    order_number: str
    customer_id: str
    customer_name: str = ""
    status: str
    priority: str
    total_amount: float
    due_date: Optional[date] = None
    box_type: Optional[str] = None
    special_requests: str
    version: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class OrderDetailOut(OrderOut):
    stages: list[StageLogOut] = []
    allowed_transitions: list[str] = []
