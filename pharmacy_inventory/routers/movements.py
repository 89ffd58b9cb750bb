from fastapi import APIRouter, Depends

from pharmacy_inventory.core.api_docs import error_responses
from pharmacy_inventory.core.deps import get_store
from pharmacy_inventory.core.quantities import format_quantity
from pharmacy_inventory.models.movement import MOVEMENT_ENTRY, Movement, MovementAllocation
from pharmacy_inventory.repositories.base import InventoryStore
from pharmacy_inventory.schemas.movement import (
    AllocationOut,
    EntryCreate,
    EntryCreateOut,
    EntryPayloadOut,
    EntryUpdateOut,
    ExitCreate,
    ExitCreateOut,
    ExitPayloadOut,
    MovementDetailOut,
    MovementOut,
)
from pharmacy_inventory.services.dispense_service import register_exit
from pharmacy_inventory.services.receipt_service import ReceiptData, apply_receipt, edit_entry
from pharmacy_inventory.services.report_service import movement_detail

router = APIRouter(prefix="/api/inventory/movements", tags=["movements"])


def _allocation_out(row) -> AllocationOut:
    return AllocationOut(
        lot_id=row.lot_id,
        quantity=float(row.quantity),
        unit_cost=float(row.unit_cost),
        expiry_date=row.expiry_date,
    )


def _movement_fields(movement: Movement, allocations: list[MovementAllocation] | None = None) -> dict:
    fields = {
        "id": movement.id,
        "movement_type": movement.movement_type,
        "medication_key": movement.medication_key,
        "responsible": movement.responsible,
        "quantity": float(movement.quantity),
        "occurred_at": movement.occurred_at,
        "updated_at": movement.updated_at,
    }
    if movement.movement_type == MOVEMENT_ENTRY:
        fields["entry"] = EntryPayloadOut(
            lot_id=movement.lot_id,
            expiry_date=movement.expiry_date,
            unit_cost=float(movement.unit_cost) if movement.unit_cost is not None else None,
            supplier=movement.supplier,
            invoice=movement.invoice,
            purchase_order=movement.purchase_order,
            laboratory=movement.laboratory,
        )
    else:
        fields["exit"] = ExitPayloadOut(
            reason=movement.reason,
            patient=movement.patient_json,
            allocations=[_allocation_out(row) for row in allocations or []],
        )
    return fields


def _receipt_from_payload(payload: EntryCreate) -> ReceiptData:
    return ReceiptData(
        medication_key=payload.medication_key,
        lot_id=payload.lot_id,
        quantity=payload.quantity,
        unit_cost=payload.unit_cost,
        expiry_date=payload.expiry_date,
        responsible=payload.responsible,
        supplier=payload.supplier,
        invoice=payload.invoice,
        purchase_order=payload.purchase_order,
        laboratory=payload.laboratory,
    )


@router.post(
    "/entries",
    response_model=EntryCreateOut,
    status_code=201,
    summary="Register a receipt",
    description="Adds the received quantity to its lot (creating the lot if new) and records an entry movement.",
    responses=error_responses(400, 404, 422, 500),
)
def create_entry(payload: EntryCreate, store: InventoryStore = Depends(get_store)):
    movement = apply_receipt(store, _receipt_from_payload(payload))
    return EntryCreateOut(
        message="Entry registered and lot updated.",
        movement=MovementOut(**_movement_fields(movement)),
    )


@router.post(
    "/exits",
    response_model=ExitCreateOut,
    summary="Register an exit (FEFO)",
    description="Withdraws the quantity from the lots that expire first and records an exit movement.",
    responses=error_responses(400, 404, 409, 422, 500),
)
def create_exit(payload: ExitCreate, store: InventoryStore = Depends(get_store)):
    result = register_exit(
        store,
        medication_key=payload.medication_key,
        quantity=payload.quantity,
        reason=payload.reason.value,
        responsible=payload.responsible,
        patient=payload.patient.model_dump() if payload.patient else None,
    )
    allocations = [_allocation_out(line) for line in result.allocations]
    movement_out = MovementOut(
        **{
            **_movement_fields(result.movement),
            "exit": ExitPayloadOut(
                reason=result.movement.reason,
                patient=result.movement.patient_json,
                allocations=allocations,
            ),
        }
    )
    return ExitCreateOut(
        message=(
            f"Exit of {format_quantity(result.movement.quantity)} units of "
            f"{result.movement.medication_key} registered using FEFO."
        ),
        movement=movement_out,
        allocations=allocations,
    )


@router.get(
    "/{movement_id}",
    response_model=MovementDetailOut,
    summary="Get a movement",
    responses=error_responses(404, 500),
)
def get_movement(movement_id: str, store: InventoryStore = Depends(get_store)):
    detail = movement_detail(store, movement_id)
    return MovementDetailOut(
        **_movement_fields(detail.movement, detail.allocations),
        description=detail.description,
        presentation=detail.presentation,
        unit=detail.unit,
        responsible_staff_id=detail.responsible_staff_id,
    )


@router.put(
    "/entries/{movement_id}",
    response_model=EntryUpdateOut,
    summary="Edit a receipt",
    description=(
        "Reverses the original receipt on its lot, applies the corrected receipt and "
        "rewrites the entry movement in one transaction."
    ),
    responses=error_responses(400, 404, 409, 422, 500),
)
def update_entry(movement_id: str, payload: EntryCreate, store: InventoryStore = Depends(get_store)):
    result = edit_entry(store, movement_id, _receipt_from_payload(payload))
    return EntryUpdateOut(
        message="Entry updated and lot stock adjusted.",
        movement=MovementOut(**_movement_fields(result.movement)),
        reversal_skipped=result.reversal_skipped,
    )
