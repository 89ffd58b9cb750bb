from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from datetime import datetime
from decimal import Decimal
from typing import List

from pharmacy_inventory.models.audit_log import AuditLog
from pharmacy_inventory.models.catalog import Medication, StaffMember
from pharmacy_inventory.models.lot import InventoryLot
from pharmacy_inventory.models.movement import Movement, MovementAllocation


class LotRepository(ABC):
    """
    Lot records keyed by (medication_key, lot_id). Lists of available lots
    come back in FEFO order: expiry ascending, then lot id ascending.
    """

    @abstractmethod
    def get(
        self, medication_key: str, lot_id: str, *, for_update: bool = False
    ) -> InventoryLot | None:
        pass

    @abstractmethod
    def list_available(
        self, medication_key: str, *, for_update: bool = False
    ) -> List[InventoryLot]:
        pass

    @abstractmethod
    def list_all_available(self) -> List[InventoryLot]:
        pass

    @abstractmethod
    def stock_totals(self) -> dict[str, Decimal]:
        pass

    @abstractmethod
    def add(self, lot: InventoryLot) -> InventoryLot:
        pass

    @abstractmethod
    def flush(self) -> None:
        pass


class MovementRepository(ABC):

    @abstractmethod
    def add(
        self, movement: Movement, allocations: List[MovementAllocation] | None = None
    ) -> Movement:
        pass

    @abstractmethod
    def get(self, movement_id: str, *, for_update: bool = False) -> Movement | None:
        pass

    @abstractmethod
    def allocations_for(self, movement_ids: List[str]) -> dict[str, List[MovementAllocation]]:
        pass

    @abstractmethod
    def search(
        self,
        *,
        movement_type: str | None,
        start: datetime | None,
        end: datetime | None,
        limit: int,
    ) -> List[Movement]:
        pass


class CatalogRepository(ABC):

    @abstractmethod
    def get_medication(self, key: str) -> Medication | None:
        pass

    @abstractmethod
    def medications_by_key(self, keys: List[str]) -> dict[str, Medication]:
        pass

    @abstractmethod
    def list_medications(self) -> List[Medication]:
        pass

    @abstractmethod
    def add_medication(self, medication: Medication) -> Medication:
        pass

    @abstractmethod
    def get_staff(self, staff_id: str) -> StaffMember | None:
        pass

    @abstractmethod
    def find_staff_by_name(self, name: str) -> StaffMember | None:
        pass

    @abstractmethod
    def list_staff(self) -> List[StaffMember]:
        pass

    @abstractmethod
    def add_staff(self, staff: StaffMember) -> StaffMember:
        pass


class AuditRepository(ABC):

    @abstractmethod
    def add(self, event: AuditLog) -> AuditLog:
        pass

    @abstractmethod
    def list_for_target(self, target_type: str, target_id: str) -> List[AuditLog]:
        pass


class InventoryStore(ABC):
    """Bundle of repositories sharing one transaction."""

    lots: LotRepository
    movements: MovementRepository
    catalog: CatalogRepository
    audit: AuditRepository

    @abstractmethod
    def transaction(self) -> AbstractContextManager[None]:
        pass
