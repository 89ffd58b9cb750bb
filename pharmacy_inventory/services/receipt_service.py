import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal

from pharmacy_inventory.core.id_utils import generate_shortuuid
from pharmacy_inventory.core.locks import KeyedLockRegistry, medication_locks
from pharmacy_inventory.core.observability import log_inventory_event
from pharmacy_inventory.core.quantities import MAX_MONEY, to_money, to_quantity
from pharmacy_inventory.models.lot import InventoryLot
from pharmacy_inventory.models.movement import MOVEMENT_ENTRY, Movement
from pharmacy_inventory.repositories.base import InventoryStore, LotRepository
from pharmacy_inventory.services.allocation_service import validate_quantity
from pharmacy_inventory.services.audit_service import log_audit_event
from pharmacy_inventory.services.errors import (
    InsufficientStockError,
    InventoryValidationError,
    NotFoundError,
)


@dataclass(frozen=True)
class ReceiptData:
    medication_key: str
    lot_id: str
    quantity: Decimal
    unit_cost: Decimal
    expiry_date: date
    responsible: str
    supplier: str | None = None
    invoice: str | None = None
    purchase_order: str | None = None
    laboratory: str | None = None


@dataclass(frozen=True)
class EntryEditResult:
    movement: Movement
    reversal_skipped: bool


def _normalize_receipt(store: InventoryStore, receipt: ReceiptData) -> ReceiptData:
    quantity = validate_quantity(receipt.quantity)
    try:
        unit_cost = to_money(receipt.unit_cost)
    except ArithmeticError as exc:
        raise InventoryValidationError("Unit cost must be a valid number", field="unit_cost") from exc
    if not unit_cost.is_finite() or unit_cost < 0:
        raise InventoryValidationError("Unit cost cannot be negative", field="unit_cost")
    if unit_cost > MAX_MONEY:
        raise InventoryValidationError(f"Unit cost cannot exceed {MAX_MONEY}", field="unit_cost")

    lot_id = receipt.lot_id.strip()
    if not lot_id:
        raise InventoryValidationError("Lot id is required", field="lot_id")
    responsible = receipt.responsible.strip()
    if not responsible:
        raise InventoryValidationError("Responsible party is required", field="responsible")

    if store.catalog.get_medication(receipt.medication_key) is None:
        raise NotFoundError(f"Medication not found in catalog: {receipt.medication_key}")

    return ReceiptData(
        medication_key=receipt.medication_key,
        lot_id=lot_id,
        quantity=quantity,
        unit_cost=unit_cost,
        expiry_date=receipt.expiry_date,
        responsible=responsible,
        supplier=receipt.supplier,
        invoice=receipt.invoice,
        purchase_order=receipt.purchase_order,
        laboratory=receipt.laboratory,
    )


def add_to_lot(
    lots: LotRepository,
    *,
    medication_key: str,
    lot_id: str,
    quantity: Decimal,
    unit_cost: Decimal,
    expiry_date: date,
) -> InventoryLot:
    """
    Increment an existing lot or create it. Cost and expiry are overwritten
    by the latest receipt rather than averaged.
    """
    lot = lots.get(medication_key, lot_id, for_update=True)
    if lot is not None:
        lot.stock = to_quantity(lot.stock) + quantity
        lot.unit_cost = unit_cost
        lot.expiry_date = expiry_date
    else:
        lot = lots.add(
            InventoryLot(
                id=str(uuid.uuid4()),
                medication_key=medication_key,
                lot_id=lot_id,
                expiry_date=expiry_date,
                stock=quantity,
                unit_cost=unit_cost,
            )
        )
    lots.flush()
    return lot


def _entry_snapshot(movement: Movement) -> dict:
    return {
        "medication_key": movement.medication_key,
        "lot_id": movement.lot_id,
        "quantity": str(movement.quantity),
        "unit_cost": str(movement.unit_cost),
        "expiry_date": movement.expiry_date.isoformat() if movement.expiry_date else None,
        "responsible": movement.responsible,
        "supplier": movement.supplier,
        "invoice": movement.invoice,
        "purchase_order": movement.purchase_order,
        "laboratory": movement.laboratory,
    }


def apply_receipt(
    store: InventoryStore,
    receipt: ReceiptData,
    *,
    locks: KeyedLockRegistry = medication_locks,
    now: datetime | None = None,
) -> Movement:
    """
    Add a receipt to its lot and append the entry movement. Identical
    receipts accumulate; nothing is deduplicated.
    """
    receipt = _normalize_receipt(store, receipt)
    occurred_at = now or datetime.now(timezone.utc)

    with locks.hold(receipt.medication_key), store.transaction():
        lot = add_to_lot(
            store.lots,
            medication_key=receipt.medication_key,
            lot_id=receipt.lot_id,
            quantity=receipt.quantity,
            unit_cost=receipt.unit_cost,
            expiry_date=receipt.expiry_date,
        )
        movement = Movement(
            id=generate_shortuuid(),
            movement_type=MOVEMENT_ENTRY,
            medication_key=receipt.medication_key,
            responsible=receipt.responsible,
            quantity=receipt.quantity,
            lot_id=receipt.lot_id,
            expiry_date=receipt.expiry_date,
            unit_cost=receipt.unit_cost,
            supplier=receipt.supplier,
            invoice=receipt.invoice,
            purchase_order=receipt.purchase_order,
            laboratory=receipt.laboratory,
            occurred_at=occurred_at,
        )
        store.movements.add(movement)
        lot_stock = lot.stock

    log_inventory_event(
        "receipt.applied",
        movement_id=movement.id,
        medication_key=receipt.medication_key,
        lot_id=receipt.lot_id,
        quantity=receipt.quantity,
        lot_stock=lot_stock,
    )
    return movement


def _rewrite_entry(
    store: InventoryStore, movement: Movement, receipt: ReceiptData, updated_at: datetime
) -> tuple[bool, Decimal]:
    previous = _entry_snapshot(movement)
    original_quantity = to_quantity(movement.quantity)

    original_lot = store.lots.get(movement.medication_key, movement.lot_id, for_update=True)
    reversal_skipped = original_lot is None
    if original_lot is not None:
        original_lot.stock = to_quantity(original_lot.stock) - original_quantity
        # The reapply below may re-read this same lot.
        store.lots.flush()
    else:
        log_inventory_event(
            "entry.reversal_skipped",
            level=logging.WARNING,
            movement_id=movement.id,
            medication_key=movement.medication_key,
            lot_id=movement.lot_id,
            quantity=original_quantity,
        )

    add_to_lot(
        store.lots,
        medication_key=receipt.medication_key,
        lot_id=receipt.lot_id,
        quantity=receipt.quantity,
        unit_cost=receipt.unit_cost,
        expiry_date=receipt.expiry_date,
    )

    if original_lot is not None and original_lot.stock < 0:
        raise InsufficientStockError(
            medication_key=original_lot.medication_key,
            lot_id=original_lot.lot_id,
            requested=original_quantity,
            available=to_quantity(original_lot.stock) + original_quantity,
        )

    movement.medication_key = receipt.medication_key
    movement.responsible = receipt.responsible
    movement.quantity = receipt.quantity
    movement.lot_id = receipt.lot_id
    movement.expiry_date = receipt.expiry_date
    movement.unit_cost = receipt.unit_cost
    movement.supplier = receipt.supplier
    movement.invoice = receipt.invoice
    movement.purchase_order = receipt.purchase_order
    movement.laboratory = receipt.laboratory
    movement.updated_at = updated_at

    log_audit_event(
        store.audit,
        actor=receipt.responsible,
        action="movement.entry.update",
        target_type="movement",
        target_id=movement.id,
        metadata_json={
            "previous": previous,
            "current": _entry_snapshot(movement),
            "reversal_skipped": reversal_skipped,
        },
    )
    return reversal_skipped, original_quantity


def edit_entry(
    store: InventoryStore,
    movement_id: str,
    receipt: ReceiptData,
    *,
    locks: KeyedLockRegistry = medication_locks,
    now: datetime | None = None,
) -> EntryEditResult:
    """
    Replace an entry movement's payload: reverse the original receipt on its
    lot, apply the corrected receipt, then rewrite the movement. The three
    steps commit together or not at all.

    A missing original lot skips the reversal with a warning. The edit is
    refused when the reversed lot would end below zero (its stock was
    already dispensed).

    The medication lock is chosen from an unlocked read of the entry. If a
    concurrent edit moved the entry to another medication in the meantime,
    the locks are released and taken again for the current medication.
    """
    original = store.movements.get(movement_id)
    if original is None or original.movement_type != MOVEMENT_ENTRY:
        raise NotFoundError("Entry movement not found")
    receipt = _normalize_receipt(store, receipt)
    updated_at = now or datetime.now(timezone.utc)
    locked_key = original.medication_key

    while True:
        with locks.hold(locked_key, receipt.medication_key), store.transaction():
            movement = store.movements.get(movement_id, for_update=True)
            if movement is None or movement.movement_type != MOVEMENT_ENTRY:
                raise NotFoundError("Entry movement not found")
            current_key = movement.medication_key
            if current_key == locked_key:
                reversal_skipped, original_quantity = _rewrite_entry(
                    store, movement, receipt, updated_at
                )
        if current_key == locked_key:
            log_inventory_event(
                "entry.edited",
                movement_id=movement_id,
                medication_key=receipt.medication_key,
                previous_quantity=original_quantity,
                quantity=receipt.quantity,
                reversal_skipped=reversal_skipped,
            )
            return EntryEditResult(movement=movement, reversal_skipped=reversal_skipped)
        log_inventory_event(
            "entry.edit_relocked",
            movement_id=movement_id,
            expected_medication_key=locked_key,
            medication_key=current_key,
        )
        locked_key = current_key
