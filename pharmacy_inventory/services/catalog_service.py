from pharmacy_inventory.models.catalog import Medication, StaffMember
from pharmacy_inventory.repositories.base import InventoryStore
from pharmacy_inventory.services.errors import ConflictError, InventoryValidationError


def create_medication(
    store: InventoryStore,
    *,
    key: str,
    description: str,
    presentation: str,
    unit: str = "mg",
) -> Medication:
    key = key.strip()
    if not key:
        raise InventoryValidationError("Medication key is required", field="key")
    if store.catalog.get_medication(key) is not None:
        raise ConflictError(f"Medication already exists: {key}")

    with store.transaction():
        medication = store.catalog.add_medication(
            Medication(
                key=key,
                description=description.strip(),
                presentation=presentation.strip(),
                unit=unit.strip() or "mg",
            )
        )
    return medication


def create_staff(store: InventoryStore, *, staff_id: str, name: str, position: str) -> StaffMember:
    staff_id = staff_id.strip()
    if not staff_id:
        raise InventoryValidationError("Staff id is required", field="id")
    if store.catalog.get_staff(staff_id) is not None:
        raise ConflictError(f"Staff member already exists: {staff_id}")

    with store.transaction():
        staff = store.catalog.add_staff(
            StaffMember(id=staff_id, name=name.strip(), position=position.strip())
        )
    return staff
