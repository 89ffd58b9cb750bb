from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal

from pharmacy_inventory.core.config import settings
from pharmacy_inventory.core.quantities import format_quantity
from pharmacy_inventory.models.catalog import Medication
from pharmacy_inventory.models.lot import InventoryLot
from pharmacy_inventory.models.movement import MOVEMENT_ENTRY, MOVEMENT_EXIT, Movement, MovementAllocation
from pharmacy_inventory.repositories.base import InventoryStore
from pharmacy_inventory.services.errors import InventoryValidationError, NotFoundError

NOT_AVAILABLE = "N/A"
ENTRY_REASON_LABEL = "Entry (receipt)"
MOVEMENT_TYPES = {MOVEMENT_ENTRY, MOVEMENT_EXIT}


@dataclass(frozen=True)
class InventoryTotal:
    medication_key: str
    description: str
    presentation: str
    unit: str
    total_stock: Decimal


@dataclass(frozen=True)
class HistoryFilters:
    movement_type: str | None = None
    start_date: date | None = None
    end_date: date | None = None


@dataclass
class HistoryRow:
    movement: Movement
    description: str
    presentation: str
    unit: str
    allocations: list[MovementAllocation] = field(default_factory=list)

    @property
    def reason_label(self) -> str:
        if self.movement.movement_type == MOVEMENT_ENTRY:
            return ENTRY_REASON_LABEL
        return self.movement.reason or NOT_AVAILABLE

    @property
    def affected_lots(self) -> str:
        if self.movement.movement_type == MOVEMENT_ENTRY:
            return self.movement.lot_id or NOT_AVAILABLE
        if not self.allocations:
            return NOT_AVAILABLE
        return ", ".join(
            f"{allocation.lot_id} ({format_quantity(allocation.quantity)})"
            for allocation in self.allocations
        )


@dataclass
class MovementDetail:
    movement: Movement
    allocations: list[MovementAllocation]
    description: str
    presentation: str
    unit: str
    responsible_staff_id: str | None


def _catalog_fields(medication: Medication | None) -> tuple[str, str, str]:
    if medication is None:
        return NOT_AVAILABLE, NOT_AVAILABLE, NOT_AVAILABLE
    return medication.description, medication.presentation, medication.unit


def global_inventory(store: InventoryStore) -> list[InventoryTotal]:
    """Stock per catalogued medication, summed over lots with stock."""
    totals = store.lots.stock_totals()
    catalog = store.catalog.medications_by_key(sorted(totals.keys()))
    return [
        InventoryTotal(
            medication_key=key,
            description=catalog[key].description,
            presentation=catalog[key].presentation,
            unit=catalog[key].unit,
            total_stock=totals[key],
        )
        for key in sorted(catalog.keys())
    ]


def fefo_lots(store: InventoryStore, medication_key: str | None) -> list[InventoryLot]:
    if not medication_key or not medication_key.strip():
        raise InventoryValidationError("medication_key is required", field="medication_key")
    lots = store.lots.list_available(medication_key.strip())
    if not lots:
        raise NotFoundError("No active lots for this medication")
    return lots


def movement_detail(store: InventoryStore, movement_id: str) -> MovementDetail:
    movement = store.movements.get(movement_id)
    if movement is None:
        raise NotFoundError("Movement not found")
    description, presentation, unit = _catalog_fields(
        store.catalog.get_medication(movement.medication_key)
    )
    staff = store.catalog.find_staff_by_name(movement.responsible)
    return MovementDetail(
        movement=movement,
        allocations=store.movements.allocations_for([movement.id]).get(movement.id, []),
        description=description,
        presentation=presentation,
        unit=unit,
        responsible_staff_id=staff.id if staff else None,
    )


def _resolve_window(filters: HistoryFilters) -> tuple[datetime | None, datetime | None]:
    if filters.movement_type is not None and filters.movement_type not in MOVEMENT_TYPES:
        allowed = ", ".join(sorted(MOVEMENT_TYPES))
        raise InventoryValidationError(
            f"Invalid movement_type. Allowed: {allowed}", field="movement_type"
        )
    if filters.start_date and filters.end_date and filters.start_date > filters.end_date:
        raise InventoryValidationError("start_date must be on or before end_date", field="start_date")

    start = (
        datetime.combine(filters.start_date, time.min, tzinfo=timezone.utc)
        if filters.start_date
        else None
    )
    # The end date covers its whole day.
    end = (
        datetime.combine(filters.end_date + timedelta(days=1), time.min, tzinfo=timezone.utc)
        if filters.end_date
        else None
    )
    return start, end


def movement_history(
    store: InventoryStore,
    filters: HistoryFilters,
    *,
    limit: int | None = None,
) -> list[HistoryRow]:
    """Newest first, capped at the configured history limit."""
    start, end = _resolve_window(filters)
    movements = store.movements.search(
        movement_type=filters.movement_type,
        start=start,
        end=end,
        limit=limit or settings.history_limit,
    )
    catalog = store.catalog.medications_by_key(sorted({m.medication_key for m in movements}))
    allocations = store.movements.allocations_for(
        [m.id for m in movements if m.movement_type == MOVEMENT_EXIT]
    )

    rows: list[HistoryRow] = []
    for movement in movements:
        description, presentation, unit = _catalog_fields(catalog.get(movement.medication_key))
        rows.append(
            HistoryRow(
                movement=movement,
                description=description,
                presentation=presentation,
                unit=unit,
                allocations=allocations.get(movement.id, []),
            )
        )
    return rows
