from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ExitReason(str, Enum):
    patient_administration = "patient_administration"
    waste = "waste"
    return_ = "return"
    inventory_adjustment = "inventory_adjustment"


class PatientData(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    age: int = Field(ge=0, le=150)
    diagnosis: str = Field(min_length=1, max_length=255)
    dose: str = Field(min_length=1, max_length=100)
    frequency: str = Field(min_length=1, max_length=100)
    doctor: str = Field(min_length=1, max_length=255)
    prescription_folio: str = Field(min_length=1, max_length=100)


class EntryCreate(BaseModel):
    medication_key: str = Field(min_length=1, max_length=64)
    lot_id: str = Field(min_length=1, max_length=100)
    quantity: Decimal = Field(
        max_digits=14, decimal_places=3, description="Units received. Must be greater than zero."
    )
    unit_cost: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    expiry_date: date
    responsible: str = Field(min_length=1, max_length=255)
    supplier: str | None = Field(default=None, max_length=255)
    invoice: str | None = Field(default=None, max_length=100)
    purchase_order: str | None = Field(default=None, max_length=100)
    laboratory: str | None = Field(default=None, max_length=255)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "medication_key": "010.000.0104.00",
                "lot_id": "L-2291",
                "quantity": 100,
                "unit_cost": 12.5,
                "expiry_date": "2027-06-30",
                "responsible": "Ana Torres",
                "supplier": "Distribuidora Norte",
                "invoice": "F-10023",
                "purchase_order": "PO-551",
                "laboratory": "Lab Central",
            }
        }
    )


class ExitCreate(BaseModel):
    medication_key: str = Field(min_length=1, max_length=64)
    quantity: Decimal = Field(
        max_digits=14, decimal_places=3, description="Units to withdraw. Must be greater than zero."
    )
    reason: ExitReason
    responsible: str = Field(min_length=1, max_length=255)
    patient: PatientData | None = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "medication_key": "010.000.0104.00",
                "quantity": 8,
                "reason": "patient_administration",
                "responsible": "Ana Torres",
                "patient": {
                    "name": "Juan Perez",
                    "age": 54,
                    "diagnosis": "Fever",
                    "dose": "500 mg",
                    "frequency": "every 8 h",
                    "doctor": "Dr. Ruiz",
                    "prescription_folio": "RX-8812",
                },
            }
        }
    )


class AllocationOut(BaseModel):
    lot_id: str
    quantity: float
    unit_cost: float
    expiry_date: date


class EntryPayloadOut(BaseModel):
    lot_id: str | None = None
    expiry_date: date | None = None
    unit_cost: float | None = None
    supplier: str | None = None
    invoice: str | None = None
    purchase_order: str | None = None
    laboratory: str | None = None


class ExitPayloadOut(BaseModel):
    reason: str | None = None
    patient: dict | None = None
    allocations: list[AllocationOut] = Field(default_factory=list)


class MovementOut(BaseModel):
    id: str
    movement_type: str
    medication_key: str
    responsible: str
    quantity: float
    occurred_at: datetime
    updated_at: datetime | None = None
    entry: EntryPayloadOut | None = None
    exit: ExitPayloadOut | None = None


class MovementDetailOut(MovementOut):
    description: str
    presentation: str
    unit: str
    responsible_staff_id: str | None = None


class EntryCreateOut(BaseModel):
    message: str
    movement: MovementOut


class EntryUpdateOut(BaseModel):
    message: str
    movement: MovementOut
    reversal_skipped: bool


class ExitCreateOut(BaseModel):
    message: str
    movement: MovementOut
    allocations: list[AllocationOut]
