import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum as PyEnum

from sqlalchemy import DateTime, Enum, ForeignKey, Index, String, Text, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from giftbox.database import Base
from giftbox.models.inventory import InventoryMaterial, Quantity


class AlertStatus(str, PyEnum):
    PENDING = "pending"
    ACKNOWLEDGED = "acknowledged"
    ORDERED = "ordered"
    RESOLVED = "resolved"


ACTIVE_ALERT_STATUSES = (AlertStatus.PENDING, AlertStatus.ACKNOWLEDGED)


class AlertPriority(str, PyEnum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"


_ACTIVE_CLAUSE = text("status IN ('pending', 'acknowledged')")


class ReorderAlert(Base):
    __tablename__ = "reorder_alerts"
    __table_args__ = (
        # At most one active alert per material
        Index(
            "uq_reorder_alerts_active_material",
            "material_id",
            unique=True,
            sqlite_where=_ACTIVE_CLAUSE,
            postgresql_where=_ACTIVE_CLAUSE,
        ),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    material_id: Mapped[str] = mapped_column(
        String, ForeignKey("inventory_materials.id", ondelete="CASCADE"), nullable=False, index=True
    )
    item_name: Mapped[str] = mapped_column(String, nullable=False)

    # Stock state at the time the alert was raised; never refreshed
    current_stock: Mapped[Decimal] = mapped_column(Quantity, default=Decimal("0"))
    reorder_level: Mapped[Decimal] = mapped_column(Quantity, default=Decimal("0"))

    status: Mapped[str] = mapped_column(
        Enum(AlertStatus, values_callable=lambda x: [e.value for e in x]),
        default=AlertStatus.PENDING,
    )
    priority: Mapped[str] = mapped_column(
        Enum(AlertPriority, values_callable=lambda x: [e.value for e in x]),
        default=AlertPriority.NORMAL,
    )
    notes: Mapped[str] = mapped_column(Text, default="")
    created_by: Mapped[str | None] = mapped_column(String, nullable=True)
    acknowledged_by: Mapped[str | None] = mapped_column(String, nullable=True)
    acknowledged_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    material: Mapped["InventoryMaterial"] = relationship(InventoryMaterial)
