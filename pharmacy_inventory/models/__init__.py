from pharmacy_inventory.models.catalog import Medication, StaffMember
from pharmacy_inventory.models.lot import InventoryLot
from pharmacy_inventory.models.movement import Movement, MovementAllocation
from pharmacy_inventory.models.audit_log import AuditLog
