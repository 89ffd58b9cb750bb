from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, Index, Numeric, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from pharmacy_inventory.db.base import Base


class InventoryLot(Base):
    """
    Physical stock of one medication batch. Stock only changes through the
    receipt and allocation services; rows are never deleted.
    """
    __tablename__ = "inventory_lots"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    medication_key: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    lot_id: Mapped[str] = mapped_column(String(100), nullable=False)

    expiry_date: Mapped[date] = mapped_column(Date, nullable=False)
    stock: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False, default=Decimal("0"))
    unit_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("medication_key", "lot_id", name="ux_inventory_lots_medication_lot"),
        Index("ix_inventory_lots_medication_expiry", "medication_key", "expiry_date"),
    )
