from fastapi import APIRouter, Depends, Query

from pharmacy_inventory.core.api_docs import error_responses
from pharmacy_inventory.core.deps import get_store
from pharmacy_inventory.repositories.base import InventoryStore
from pharmacy_inventory.schemas.inventory import FefoLotOut, InventoryItemOut
from pharmacy_inventory.services.report_service import fefo_lots, global_inventory

router = APIRouter(prefix="/api/inventory", tags=["inventory"])


@router.get(
    "",
    response_model=list[InventoryItemOut],
    summary="Global inventory",
    description="Total stock per catalogued medication, summed over lots with stock.",
    responses=error_responses(500),
)
def get_global_inventory(store: InventoryStore = Depends(get_store)):
    return [
        InventoryItemOut(
            medication_key=row.medication_key,
            description=row.description,
            presentation=row.presentation,
            unit=row.unit,
            total_stock=float(row.total_stock),
        )
        for row in global_inventory(store)
    ]


@router.get(
    "/lots/fefo",
    response_model=list[FefoLotOut],
    summary="Lots in FEFO order",
    description="Lots with stock for a medication, in the order exits consume them.",
    responses={
        200: {
            "description": "Lots, soonest expiry first",
            "content": {
                "application/json": {
                    "example": [
                        {"lot_id": "L-100", "expiry_date": "2026-11-01", "stock": 5.0, "unit_cost": 12.5},
                        {"lot_id": "L-200", "expiry_date": "2026-12-01", "stock": 10.0, "unit_cost": 11.0},
                    ]
                }
            },
        },
        **error_responses(404, 422, 500),
    },
)
def get_fefo_lots(
    medication_key: str | None = Query(default=None, description="Medication catalog key"),
    store: InventoryStore = Depends(get_store),
):
    return [
        FefoLotOut(
            lot_id=lot.lot_id,
            expiry_date=lot.expiry_date,
            stock=float(lot.stock),
            unit_cost=float(lot.unit_cost),
        )
        for lot in fefo_lots(store, medication_key)
    ]
