import uuid
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from giftbox.database import Base, utcnow


class QualityStatus(str, PyEnum):
    PENDING = "pending"
    PASSED = "passed"
    FAILED = "failed"
    NEEDS_REVIEW = "needs_review"


class QualityCheck(Base):
    """An inspection of an order. Rows are never updated once written."""

    __tablename__ = "quality_checks"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id: Mapped[str] = mapped_column(String, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    checklist_items: Mapped[list] = mapped_column(JSON, default=list)
    overall_status: Mapped[str] = mapped_column(
        Enum(QualityStatus, values_callable=lambda x: [e.value for e in x]),
        default=QualityStatus.PENDING,
    )
    notes: Mapped[str] = mapped_column(Text, default="")
    checked_by: Mapped[str | None] = mapped_column(String, nullable=True)
    checked_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    order: Mapped["Order"] = relationship("Order", back_populates="quality_checks")

    @property
    def order_number(self) -> str:
        return self.order.order_number if self.order else ""


from giftbox.models.order import Order  # noqa: E402, F401
