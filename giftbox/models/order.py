import uuid
from datetime import date, datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from giftbox.database import Base, utcnow


class OrderStatus(str, PyEnum):
    PENDING = "pending"
    DESIGNING = "designing"
    APPROVED = "approved"
    PRODUCTION = "production"
    QUALITY_CONTROL = "quality_control"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Stages shown on the production board, in column order
OPEN_STATUSES = (
    OrderStatus.PENDING,
    OrderStatus.DESIGNING,
    OrderStatus.APPROVED,
    OrderStatus.PRODUCTION,
    OrderStatus.QUALITY_CONTROL,
)


class Priority(str, PyEnum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class BoxType(str, PyEnum):
    EXECUTIVE = "executive"
    LUXURY = "luxury"
    CUSTOM = "custom"


def _enum(enum_cls):
    return Enum(enum_cls, values_callable=lambda x: [e.value for e in x])


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    order_number: Mapped[str] = mapped_column(String, unique=True, index=True)
    customer_id: Mapped[str] = mapped_column(String, ForeignKey("customers.id"), nullable=False, index=True)

    status: Mapped[str] = mapped_column(_enum(OrderStatus), default=OrderStatus.PENDING, index=True)
    priority: Mapped[str] = mapped_column(_enum(Priority), default=Priority.NORMAL)
    total_amount: Mapped[float] = mapped_column(Float, default=0.0)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    box_type: Mapped[str | None] = mapped_column(_enum(BoxType), nullable=True)
    special_requests: Mapped[str] = mapped_column(Text, default="")

    # Bumped by the ORM on every UPDATE; a writer holding an old copy gets StaleDataError
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version}

    customer: Mapped["Customer"] = relationship("Customer", back_populates="orders")
    stages: Mapped[list["StageLogEntry"]] = relationship(
        "StageLogEntry",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="StageLogEntry.sequence",
    )
    tasks: Mapped[list["ProductionTask"]] = relationship(
        "ProductionTask", back_populates="order", cascade="all, delete-orphan"
    )
    quality_checks: Mapped[list["QualityCheck"]] = relationship(
        "QualityCheck", back_populates="order", cascade="all, delete-orphan"
    )

    @property
    def customer_name(self) -> str:
        return self.customer.name if self.customer else ""


class StageLogEntry(Base):
    """Append-only record of every stage an order has been moved to."""

    __tablename__ = "order_stages"
    __table_args__ = (UniqueConstraint("order_id", "sequence", name="uq_order_stages_order_sequence"),)

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id: Mapped[str] = mapped_column(String, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)  # 1-based position in the order's log
    stage: Mapped[str] = mapped_column(_enum(OrderStatus), nullable=False)
    notes: Mapped[str] = mapped_column(Text, default="")
    created_by: Mapped[str | None] = mapped_column(String, nullable=True)
    idempotency_key: Mapped[str | None] = mapped_column(String, unique=True, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    order: Mapped["Order"] = relationship("Order", back_populates="stages")


# Register the related mappers; these modules import back from here
import giftbox.models.customer  # noqa: E402, F401
import giftbox.models.production  # noqa: E402, F401
import giftbox.models.quality  # noqa: E402, F401
