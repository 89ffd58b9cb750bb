from pydantic import BaseModel, ConfigDict, Field


class MedicationCreate(BaseModel):
    key: str = Field(min_length=1, max_length=64)
    description: str = Field(min_length=1, max_length=255)
    presentation: str = Field(min_length=1, max_length=255)
    unit: str = Field(default="mg", min_length=1, max_length=20)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "key": "010.000.0104.00",
                "description": "Paracetamol",
                "presentation": "Tablet 500 mg, box with 10",
                "unit": "mg",
            }
        }
    )


class MedicationOut(BaseModel):
    key: str
    description: str
    presentation: str
    unit: str


class StaffCreate(BaseModel):
    id: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=255)
    position: str = Field(min_length=1, max_length=100)


class StaffOut(BaseModel):
    id: str
    name: str
    position: str
