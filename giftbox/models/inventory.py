import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum as PyEnum

from sqlalchemy import Date, DateTime, Enum, ForeignKey, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from giftbox.database import Base, utcnow


class MaterialCategory(str, PyEnum):
    CARDBOARD = "cardboard"
    FABRIC = "fabric"
    RIBBON = "ribbon"
    ACCESSORIES = "accessories"
    PACKAGING = "packaging"
    TOOLS = "tools"


class MovementType(str, PyEnum):
    PURCHASE = "purchase"
    USAGE = "usage"
    SALE = "sale"
    WASTE = "waste"
    ADJUSTMENT = "adjustment"


SUBTRACTIVE_TYPES = (MovementType.USAGE, MovementType.SALE, MovementType.WASTE)

# Stock and cost columns. Six decimal places, read back as Decimal.
Quantity = Numeric(18, 6)
QUANTUM = Decimal("0.000001")
# Keeps every value within the 15 significant digits SQLite's REAL storage round-trips
MAX_QUANTITY = Decimal("1000000000")


class InventoryMaterial(Base):
    __tablename__ = "inventory_materials"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String, nullable=False, index=True)
    category: Mapped[str | None] = mapped_column(
        Enum(MaterialCategory, values_callable=lambda x: [e.value for e in x]),
        nullable=True,
    )
    supplier: Mapped[str] = mapped_column(String, default="")
    unit: Mapped[str] = mapped_column(String, default="pcs")  # pcs, meters, kg, ...
    unit_cost: Mapped[Decimal] = mapped_column(Quantity, default=Decimal("0"))

    # Materialized running sum of InventoryMovement.delta; written only by inventory_service
    current_stock: Mapped[Decimal] = mapped_column(Quantity, nullable=False, default=Decimal("0"))
    reorder_level: Mapped[Decimal] = mapped_column(Quantity, nullable=False, default=Decimal("0"))

    last_restocked: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    movements: Mapped[list["InventoryMovement"]] = relationship(
        "InventoryMovement", back_populates="material", cascade="all, delete-orphan"
    )

    @property
    def is_low_stock(self) -> bool:
        return self.current_stock <= self.reorder_level


class InventoryMovement(Base):
    """One ledger row per stock change. Never updated once written."""

    __tablename__ = "inventory_movements"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    material_id: Mapped[str] = mapped_column(
        String, ForeignKey("inventory_materials.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[str] = mapped_column(
        Enum(MovementType, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    quantity: Mapped[Decimal] = mapped_column(Quantity, nullable=False)  # as supplied; absolute level for adjustment
    delta: Mapped[Decimal] = mapped_column(Quantity, nullable=False)  # positive=in, negative=out
    balance_after: Mapped[Decimal] = mapped_column(Quantity, nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(Quantity, default=Decimal("0"))
    total_cost: Mapped[Decimal] = mapped_column(Quantity, default=Decimal("0"))
    reason: Mapped[str] = mapped_column(String, default="")
    order_id: Mapped[str | None] = mapped_column(String, ForeignKey("orders.id", ondelete="SET NULL"), nullable=True)
    notes: Mapped[str] = mapped_column(Text, default="")
    created_by: Mapped[str | None] = mapped_column(String, nullable=True)
    idempotency_key: Mapped[str | None] = mapped_column(String, unique=True, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)

    material: Mapped["InventoryMaterial"] = relationship("InventoryMaterial", back_populates="movements")

    @property
    def item_name(self) -> str:
        return self.material.name if self.material else ""
