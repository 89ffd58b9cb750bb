import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from pharmacy_inventory.core.id_utils import generate_shortuuid
from pharmacy_inventory.core.locks import KeyedLockRegistry, medication_locks
from pharmacy_inventory.core.observability import log_inventory_event
from pharmacy_inventory.models.movement import MOVEMENT_EXIT, Movement, MovementAllocation
from pharmacy_inventory.repositories.base import InventoryStore
from pharmacy_inventory.services.allocation_service import (
    AllocationLine,
    allocate,
    allocated_total,
    validate_quantity,
)
from pharmacy_inventory.services.errors import InventoryValidationError, NotFoundError

REASON_PATIENT_ADMINISTRATION = "patient_administration"
EXIT_REASONS = {
    REASON_PATIENT_ADMINISTRATION,
    "waste",
    "return",
    "inventory_adjustment",
}


@dataclass(frozen=True)
class ExitResult:
    movement: Movement
    allocations: list[AllocationLine]


def register_exit(
    store: InventoryStore,
    *,
    medication_key: str,
    quantity,
    reason: str,
    responsible: str,
    patient: dict[str, Any] | None = None,
    locks: KeyedLockRegistry = medication_locks,
    now: datetime | None = None,
) -> ExitResult:
    requested = validate_quantity(quantity)
    if reason not in EXIT_REASONS:
        allowed = ", ".join(sorted(EXIT_REASONS))
        raise InventoryValidationError(f"Invalid reason. Allowed: {allowed}", field="reason")
    if not responsible.strip():
        raise InventoryValidationError("Responsible party is required", field="responsible")
    if reason == REASON_PATIENT_ADMINISTRATION and not patient:
        raise InventoryValidationError(
            "Patient data is required for patient administration", field="patient"
        )
    if store.catalog.get_medication(medication_key) is None:
        raise NotFoundError(f"Medication not found in catalog: {medication_key}")

    # Patient data only travels with administrations.
    patient_json = patient if reason == REASON_PATIENT_ADMINISTRATION else None
    occurred_at = now or datetime.now(timezone.utc)

    with locks.hold(medication_key), store.transaction():
        lines = allocate(store.lots, medication_key, requested)
        if allocated_total(lines) != requested:
            raise RuntimeError("Allocated quantity does not match the requested quantity")

        movement_id = generate_shortuuid()
        movement = Movement(
            id=movement_id,
            movement_type=MOVEMENT_EXIT,
            medication_key=medication_key,
            responsible=responsible.strip(),
            quantity=requested,
            reason=reason,
            patient_json=patient_json,
            occurred_at=occurred_at,
        )
        allocations = [
            MovementAllocation(
                id=str(uuid.uuid4()),
                movement_id=movement_id,
                position=position,
                lot_id=line.lot_id,
                quantity=line.quantity,
                unit_cost=line.unit_cost,
                expiry_date=line.expiry_date,
            )
            for position, line in enumerate(lines)
        ]
        store.movements.add(movement, allocations)

    log_inventory_event(
        "exit.allocated",
        movement_id=movement_id,
        medication_key=medication_key,
        quantity=requested,
        reason=reason,
        lots=[{"lot_id": line.lot_id, "quantity": line.quantity} for line in lines],
    )
    return ExitResult(movement=movement, allocations=lines)
