"""
FEFO (first-expired, first-out) withdrawal of stock across lots.

The allocator only mutates lot rows; persisting the exit movement and
committing belong to the caller, which holds the medication lock for the
whole transaction.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from pharmacy_inventory.core.quantities import MAX_QUANTITY, ZERO_QUANTITY, to_money, to_quantity
from pharmacy_inventory.repositories.base import LotRepository
from pharmacy_inventory.services.errors import InsufficientStockError, InvalidQuantityError


@dataclass(frozen=True)
class AllocationLine:
    lot_id: str
    quantity: Decimal
    unit_cost: Decimal
    expiry_date: date


def validate_quantity(value: Decimal | int | float | str) -> Decimal:
    try:
        quantity = to_quantity(value)
    except ValueError as exc:
        raise InvalidQuantityError("Quantity must be a valid number") from exc
    if quantity <= 0:
        raise InvalidQuantityError("Quantity must be greater than zero")
    if quantity > MAX_QUANTITY:
        raise InvalidQuantityError(f"Quantity cannot exceed {MAX_QUANTITY}")
    return quantity


def allocate(
    lots: LotRepository,
    medication_key: str,
    requested_quantity: Decimal | int | float | str,
) -> list[AllocationLine]:
    """
    Debit `requested_quantity` from the lots of `medication_key`, earliest
    expiry first (ties by lot id). Expired lots stay eligible.

    Raises InvalidQuantityError for non-positive quantities and
    InsufficientStockError, before touching any lot, when the lots cannot
    cover the request.
    """
    requested = validate_quantity(requested_quantity)
    candidates = lots.list_available(medication_key, for_update=True)

    available = sum((to_quantity(lot.stock) for lot in candidates), ZERO_QUANTITY)
    if available < requested:
        raise InsufficientStockError(
            medication_key=medication_key,
            requested=requested,
            available=available,
        )

    remaining = requested
    lines: list[AllocationLine] = []
    for lot in candidates:
        if remaining <= 0:
            break
        lot_stock = to_quantity(lot.stock)
        taken = min(lot_stock, remaining)
        lot.stock = lot_stock - taken
        lines.append(
            AllocationLine(
                lot_id=lot.lot_id,
                quantity=taken,
                unit_cost=to_money(lot.unit_cost),
                expiry_date=lot.expiry_date,
            )
        )
        remaining -= taken

    lots.flush()
    return lines


def allocated_total(lines: list[AllocationLine]) -> Decimal:
    return sum((line.quantity for line in lines), ZERO_QUANTITY)
