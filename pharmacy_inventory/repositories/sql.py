from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Iterator, List

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from pharmacy_inventory.core.quantities import to_quantity
from pharmacy_inventory.models.audit_log import AuditLog
from pharmacy_inventory.models.catalog import Medication, StaffMember
from pharmacy_inventory.models.lot import InventoryLot
from pharmacy_inventory.models.movement import Movement, MovementAllocation
from pharmacy_inventory.repositories.base import (
    AuditRepository,
    CatalogRepository,
    InventoryStore,
    LotRepository,
    MovementRepository,
)


class SqlLotRepository(LotRepository):
    def __init__(self, db: Session):
        self.db = db

    def get(
        self, medication_key: str, lot_id: str, *, for_update: bool = False
    ) -> InventoryLot | None:
        stmt = select(InventoryLot).where(
            InventoryLot.medication_key == medication_key,
            InventoryLot.lot_id == lot_id,
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return self.db.execute(stmt).scalar_one_or_none()

    def list_available(
        self, medication_key: str, *, for_update: bool = False
    ) -> List[InventoryLot]:
        stmt = (
            select(InventoryLot)
            .where(
                InventoryLot.medication_key == medication_key,
                InventoryLot.stock > 0,
            )
            .order_by(InventoryLot.expiry_date.asc(), InventoryLot.lot_id.asc())
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return list(self.db.execute(stmt).scalars().all())

    def list_all_available(self) -> List[InventoryLot]:
        stmt = (
            select(InventoryLot)
            .where(InventoryLot.stock > 0)
            .order_by(
                InventoryLot.expiry_date.asc(),
                InventoryLot.medication_key.asc(),
                InventoryLot.lot_id.asc(),
            )
        )
        return list(self.db.execute(stmt).scalars().all())

    def stock_totals(self) -> dict[str, Decimal]:
        rows = self.db.execute(
            select(InventoryLot.medication_key, func.coalesce(func.sum(InventoryLot.stock), 0))
            .where(InventoryLot.stock > 0)
            .group_by(InventoryLot.medication_key)
        ).all()
        return {medication_key: to_quantity(total) for medication_key, total in rows}

    def add(self, lot: InventoryLot) -> InventoryLot:
        self.db.add(lot)
        return lot

    def flush(self) -> None:
        self.db.flush()


class SqlMovementRepository(MovementRepository):
    def __init__(self, db: Session):
        self.db = db

    def add(
        self, movement: Movement, allocations: List[MovementAllocation] | None = None
    ) -> Movement:
        self.db.add(movement)
        if allocations:
            # Parent row first; allocations carry a foreign key to it.
            self.db.flush()
            self.db.add_all(allocations)
        return movement

    def get(self, movement_id: str, *, for_update: bool = False) -> Movement | None:
        stmt = select(Movement).where(Movement.id == movement_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return self.db.execute(stmt).scalar_one_or_none()

    def allocations_for(self, movement_ids: List[str]) -> dict[str, List[MovementAllocation]]:
        if not movement_ids:
            return {}
        rows = self.db.execute(
            select(MovementAllocation)
            .where(MovementAllocation.movement_id.in_(movement_ids))
            .order_by(MovementAllocation.movement_id, MovementAllocation.position)
        ).scalars().all()
        grouped: dict[str, List[MovementAllocation]] = {}
        for row in rows:
            grouped.setdefault(row.movement_id, []).append(row)
        return grouped

    def search(
        self,
        *,
        movement_type: str | None,
        start: datetime | None,
        end: datetime | None,
        limit: int,
    ) -> List[Movement]:
        stmt = select(Movement)
        if movement_type:
            stmt = stmt.where(Movement.movement_type == movement_type)
        if start is not None:
            stmt = stmt.where(Movement.occurred_at >= start)
        if end is not None:
            stmt = stmt.where(Movement.occurred_at < end)
        stmt = stmt.order_by(Movement.occurred_at.desc(), Movement.id.desc()).limit(limit)
        return list(self.db.execute(stmt).scalars().all())


class SqlCatalogRepository(CatalogRepository):
    def __init__(self, db: Session):
        self.db = db

    def get_medication(self, key: str) -> Medication | None:
        return self.db.get(Medication, key)

    def medications_by_key(self, keys: List[str]) -> dict[str, Medication]:
        if not keys:
            return {}
        rows = self.db.execute(select(Medication).where(Medication.key.in_(keys))).scalars().all()
        return {row.key: row for row in rows}

    def list_medications(self) -> List[Medication]:
        return list(self.db.execute(select(Medication).order_by(Medication.key)).scalars().all())

    def add_medication(self, medication: Medication) -> Medication:
        self.db.add(medication)
        return medication

    def get_staff(self, staff_id: str) -> StaffMember | None:
        return self.db.get(StaffMember, staff_id)

    def find_staff_by_name(self, name: str) -> StaffMember | None:
        return self.db.execute(
            select(StaffMember).where(StaffMember.name == name).order_by(StaffMember.id).limit(1)
        ).scalar_one_or_none()

    def list_staff(self) -> List[StaffMember]:
        return list(
            self.db.execute(select(StaffMember).order_by(StaffMember.name, StaffMember.id)).scalars().all()
        )

    def add_staff(self, staff: StaffMember) -> StaffMember:
        self.db.add(staff)
        return staff


class SqlAuditRepository(AuditRepository):
    def __init__(self, db: Session):
        self.db = db

    def add(self, event: AuditLog) -> AuditLog:
        self.db.add(event)
        return event

    def list_for_target(self, target_type: str, target_id: str) -> List[AuditLog]:
        return list(
            self.db.execute(
                select(AuditLog)
                .where(AuditLog.target_type == target_type, AuditLog.target_id == target_id)
                .order_by(AuditLog.created_at.asc(), AuditLog.id.asc())
            ).scalars().all()
        )


class SqlInventoryStore(InventoryStore):
    def __init__(self, db: Session):
        self.db = db
        self.lots = SqlLotRepository(db)
        self.movements = SqlMovementRepository(db)
        self.catalog = SqlCatalogRepository(db)
        self.audit = SqlAuditRepository(db)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        try:
            yield
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
