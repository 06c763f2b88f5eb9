from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel


class QualityCheckCreate(BaseModel):
    order_id: str
    checklist_items: list[Any]
    overall_status: str = "pending"
    notes: str = ""


class QualityCheckOut(BaseModel):
    id: str
    order_id: str
    order_number: str = ""
    checklist_items: list[Any]
    overall_status: str
    notes: str
    checked_by: Optional[str] = None
    checked_at: datetime

    model_config = {"from_attributes": True}


class QualityCheckResult(BaseModel):
    check: QualityCheckOut
    order_status: str
