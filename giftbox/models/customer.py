import uuid
from datetime import datetime

from sqlalchemy import DateTime, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from giftbox.database import Base


class Customer(Base):
    """Who the boxes are made for. Orders reference the customer and are never re-homed."""

    __tablename__ = "customers"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(254), default="", index=True)
    phone: Mapped[str] = mapped_column(String(40), default="")
    address: Mapped[str] = mapped_column(Text, default="")  # where finished boxes are delivered
    notes: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    orders: Mapped[list["Order"]] = relationship(
        "Order", back_populates="customer", order_by="Order.created_at.desc()"
    )

    @property
    def open_order_count(self) -> int:
        return sum(1 for order in self.orders if order.status in OPEN_STATUSES)


from giftbox.models.order import OPEN_STATUSES, Order  # noqa: E402, F401
