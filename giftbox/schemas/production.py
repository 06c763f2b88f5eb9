from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field

from giftbox.models.order import Priority
from giftbox.schemas.order import OrderOut


class StageMove(BaseModel):
    target: str
    notes: str = ""
    expected_version: Optional[int] = None
    idempotency_key: Optional[str] = None


class BoardOut(BaseModel):
    board: dict[str, list[OrderOut]]
    total_active: int


class TaskCreate(BaseModel):
    order_id: str
    title: str = Field(min_length=1)
    description: str = ""
    assigned_to: Optional[str] = None
    due_date: Optional[date] = None
    priority: Priority = Priority.NORMAL


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    due_date: Optional[date] = None
    priority: Optional[Priority] = None
    notes: Optional[str] = None


class TaskStatusUpdate(BaseModel):
    status: str


class TaskAssign(BaseModel):
    assigned_to: Optional[str] = None


class TaskQualityUpdate(BaseModel):
    quality_status: str
    quality_notes: str = ""


class TaskOut(BaseModel):
    id: str
    order_id: str
    order_number: str = ""
    title: str
    description: str
    status: str
    assigned_to: Optional[str] = None
    priority: str
    due_date: Optional[date] = None
    completed_at: Optional[datetime] = None
    quality_status: str
    quality_notes: str
    notes: str
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
