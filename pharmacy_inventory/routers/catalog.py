from fastapi import APIRouter, Depends

from pharmacy_inventory.core.api_docs import error_responses
from pharmacy_inventory.core.deps import get_store
from pharmacy_inventory.repositories.base import InventoryStore
from pharmacy_inventory.schemas.catalog import MedicationCreate, MedicationOut, StaffCreate, StaffOut
from pharmacy_inventory.services.catalog_service import create_medication, create_staff

router = APIRouter(prefix="/api/inventory", tags=["catalog"])


@router.get(
    "/medications",
    response_model=list[MedicationOut],
    summary="List medication catalog",
    responses=error_responses(500),
)
def list_medications(store: InventoryStore = Depends(get_store)):
    return [
        MedicationOut(
            key=row.key,
            description=row.description,
            presentation=row.presentation,
            unit=row.unit,
        )
        for row in store.catalog.list_medications()
    ]


@router.post(
    "/medications",
    response_model=MedicationOut,
    status_code=201,
    summary="Add a medication to the catalog",
    responses=error_responses(409, 422, 500),
)
def add_medication(payload: MedicationCreate, store: InventoryStore = Depends(get_store)):
    medication = create_medication(
        store,
        key=payload.key,
        description=payload.description,
        presentation=payload.presentation,
        unit=payload.unit,
    )
    return MedicationOut(
        key=medication.key,
        description=medication.description,
        presentation=medication.presentation,
        unit=medication.unit,
    )


@router.get(
    "/staff",
    response_model=list[StaffOut],
    summary="List staff members",
    responses=error_responses(500),
)
def list_staff(store: InventoryStore = Depends(get_store)):
    return [StaffOut(id=row.id, name=row.name, position=row.position) for row in store.catalog.list_staff()]


@router.post(
    "/staff",
    response_model=StaffOut,
    status_code=201,
    summary="Add a staff member",
    responses=error_responses(409, 422, 500),
)
def add_staff(payload: StaffCreate, store: InventoryStore = Depends(get_store)):
    staff = create_staff(store, staff_id=payload.id, name=payload.name, position=payload.position)
    return StaffOut(id=staff.id, name=staff.name, position=staff.position)
