from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from giftbox.models.inventory import MaterialCategory


class MaterialCreate(BaseModel):
    name: str = Field(min_length=1)
    category: Optional[MaterialCategory] = None
    supplier: str = ""
    unit: str = "pcs"
    unit_cost: Decimal = Field(default=Decimal("0"), ge=0, allow_inf_nan=False)
    current_stock: Decimal = Field(default=Decimal("0"), ge=0, allow_inf_nan=False)
    reorder_level: Optional[Decimal] = Field(default=None, ge=0, allow_inf_nan=False)
    notes: str = ""


class MaterialUpdate(BaseModel):
    """Descriptive fields only. Stock changes go through movements."""

    name: Optional[str] = Field(default=None, min_length=1)
    category: Optional[MaterialCategory] = None
    supplier: Optional[str] = None
    unit: Optional[str] = None
    unit_cost: Optional[Decimal] = Field(default=None, ge=0, allow_inf_nan=False)
    reorder_level: Optional[Decimal] = Field(default=None, ge=0, allow_inf_nan=False)
    notes: Optional[str] = None


class MovementCreate(BaseModel):
    type: str
    item_id: str
    quantity: Decimal = Field(allow_inf_nan=False)
    unit_cost: Optional[Decimal] = Field(default=None, ge=0, allow_inf_nan=False)
    reason: str = ""
    order_id: Optional[str] = None
    notes: str = ""
    idempotency_key: Optional[str] = None


class MovementOut(BaseModel):
    id: str
    material_id: str
    item_name: str = ""
    type: str
    quantity: float
    delta: float
    balance_after: float
    unit_cost: float
    total_cost: float
    reason: str
    order_id: Optional[str] = None
    notes: str
    created_by: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class MovementResult(BaseModel):
    movement: MovementOut
    new_stock: float


class MaterialOut(BaseModel):
    id: str
    name: str
    category: Optional[str] = None
    supplier: str
    unit: str
    unit_cost: float
    current_stock: float
    reorder_level: float
    is_low_stock: bool
    last_restocked: Optional[date] = None
    notes: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class MaterialDetailOut(MaterialOut):
    movements: list[MovementOut] = []


class AlertCreate(BaseModel):
    item_id: str
    priority: str = "normal"
    notes: str = ""


class AlertStatusUpdate(BaseModel):
    status: str
    notes: Optional[str] = None


class AlertOut(BaseModel):
    id: str
    material_id: str
    item_name: str
    current_stock: float
    reorder_level: float
    status: str
    priority: str
    notes: str
    created_by: Optional[str] = None
    acknowledged_by: Optional[str] = None
    acknowledged_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
