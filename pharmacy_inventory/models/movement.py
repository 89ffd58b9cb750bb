from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import JSON, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from pharmacy_inventory.db.base import Base

MOVEMENT_ENTRY = "entry"
MOVEMENT_EXIT = "exit"


class Movement(Base):
    """
    Ledger row for one entry (receipt) or exit (dispense). Entry columns are
    null on exits and vice versa; exit lot debits live in movement_allocations.
    """
    __tablename__ = "movements"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    movement_type: Mapped[str] = mapped_column(String(10), nullable=False)  # "entry", "exit"
    medication_key: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    responsible: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False)

    # entry payload
    lot_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    expiry_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    unit_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    supplier: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    invoice: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    purchase_order: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    laboratory: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # exit payload
    reason: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    patient_json: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)

    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_movements_occurred_at", "occurred_at"),
        Index("ix_movements_type_occurred_at", "movement_type", "occurred_at"),
    )


class MovementAllocation(Base):
    __tablename__ = "movement_allocations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    movement_id: Mapped[str] = mapped_column(String(36), ForeignKey("movements.id"), index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    lot_id: Mapped[str] = mapped_column(String(100), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    expiry_date: Mapped[date] = mapped_column(Date, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
